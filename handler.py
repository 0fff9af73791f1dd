#!/usr/bin/env python3
"""
AWS Lambda handler for the USSD gateway.
Wraps the FastAPI application with Mangum; the dispatcher is built on the
first callback because Lambda runs without ASGI lifespan events.
"""
import logging

from mangum import Mangum

from app.main import app

# Configure logging for Lambda
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

asgi_handler = Mangum(app, lifespan="off")


def lambda_handler(event, context):
    """
    AWS Lambda entry point.
    Gateway errors never reach the caller as 5xx: the app answers END on failure.
    """
    logger.info("Processing Lambda event: %s %s", event.get("httpMethod", "UNKNOWN"), event.get("path", "/"))
    response = asgi_handler(event, context)
    logger.info("Lambda response status: %s", response.get("statusCode", "unknown"))
    return response

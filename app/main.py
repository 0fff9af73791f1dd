# app/main.py
from __future__ import annotations

# Load .env early so settings and os.getenv agree
from dotenv import load_dotenv
load_dotenv()

import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.errors import ErrorSeverity, error_aggregator, log_error
from app.core.logging import LoggingMiddleware, get_logger, setup_logging
from app.services.backends import build_platform_services, build_session_store
from app.services.sweeper import SessionSweeper
from app.services.ussd_service import UssdService

# Set up structured logging
debug_mode = settings.is_development
setup_logging(debug=debug_mode, max_log_length=settings.MAX_LOG_LENGTH, level=settings.LOG_LEVEL)
logger = get_logger(__name__)

# Routers
from app.api.routes.ussd import get_ussd_service, router as ussd_router

app = FastAPI(title="USSD Betting Gateway", description="Session state machine for USSD betting menus")

logging_middleware = LoggingMiddleware(
    log_requests=settings.LOG_REQUESTS or debug_mode,
    log_responses=settings.LOG_RESPONSES or debug_mode,
    slow_threshold=settings.SLOW_CALLBACK_THRESHOLD,
)
app.middleware("http")(logging_middleware)


# -------- Health / readiness (public) --------
@app.get("/healthz", include_in_schema=False)
async def healthz():
    return {"ok": True}


@app.get("/readyz", include_in_schema=False)
async def readyz(request: Request):
    service = get_ussd_service(request)
    try:
        await service.store.ping()
    except Exception as e:
        log_error(e, {"endpoint": "/readyz"}, ErrorSeverity.HIGH)
        return JSONResponse({"store": "unavailable"}, status_code=503)
    return {"store": "ok", "backend": settings.SESSION_BACKEND}


@app.get("/metrics", include_in_schema=False)
async def metrics():
    """Internal metrics endpoint for monitoring."""
    return {
        "status": "healthy",
        "errors": error_aggregator.get_error_summary(),
        "timestamp": time.time(),
    }


# -------- Include routers --------
app.include_router(ussd_router)


# -------- Application startup/shutdown events --------
@app.on_event("startup")
async def startup_event():
    """Build the dispatcher and start the expiry sweep."""
    logger.info("startup", session_backend=settings.SESSION_BACKEND, adapter_backend=settings.ADAPTER_BACKEND)
    service = UssdService(build_session_store(settings), build_platform_services(settings), settings)
    app.state.ussd_service = service

    sweeper = SessionSweeper(service.store, settings.SESSION_SWEEP_INTERVAL_SECONDS)
    sweeper.start()
    app.state.sweeper = sweeper


@app.on_event("shutdown")
async def shutdown_event():
    """Stop the sweep and close store/platform clients."""
    logger.info("shutdown")
    sweeper = getattr(app.state, "sweeper", None)
    if sweeper is not None:
        await sweeper.stop()

    service = getattr(app.state, "ussd_service", None)
    if service is not None:
        try:
            await service.close()
        except Exception as e:
            log_error(e, {"component": "shutdown"}, ErrorSeverity.LOW)

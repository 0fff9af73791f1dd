"""
Structured logging for gateway callbacks.

Every HTTP request gets a short correlation id (taken from the gateway's
X-Request-ID header when present) that is echoed back as X-Correlation-ID and
attached to every structlog line emitted while the request is handled.
"""
import logging
import time
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog
from fastapi import Request

CORRELATION_HEADER = "X-Correlation-ID"
INBOUND_REQUEST_HEADER = "X-Request-ID"

correlation_id: ContextVar[str] = ContextVar('correlation_id', default="")
callback_context: ContextVar[Dict[str, Any]] = ContextVar('callback_context', default={})


class TruncateProcessor:
    """Keep event and error fields short; USSD bodies can be long menus."""

    def __init__(self, max_length: int = 200):
        self.max_length = max_length

    def __call__(self, logger, method_name, event_dict):
        for key in ('event', 'error', 'response'):
            if key in event_dict:
                event_dict[key] = str(event_dict[key])[:self.max_length]
        return event_dict


def add_callback_context(logger, method_name, event_dict):
    cid = correlation_id.get()
    if cid:
        event_dict['correlation_id'] = cid
    event_dict.update(callback_context.get())
    return event_dict


def mask_phone(s: Optional[str]) -> str:
    """Mask a phone number for logs: +25****678."""
    if not s:
        return ""
    s = s.strip()
    if s.startswith("+") and len(s) > 4:
        return s[:3] + "****" + s[-3:]
    if len(s) > 4:
        return s[:2] + "****" + s[-2:]
    return s


def setup_logging(debug: bool = False, max_log_length: int = 200, level: str = "INFO"):
    """Configure structlog on top of stdlib logging."""
    log_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)

    processors = [
        structlog.stdlib.filter_by_level,
        add_callback_context,
        TruncateProcessor(max_length=max_log_length),
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(level=log_level, format="%(message)s")


def get_logger(name: str = __name__):
    return structlog.get_logger(name)


def bind_callback_context(**fields):
    """Add fields (session id, masked phone, ...) to the current request's log context."""
    context = dict(callback_context.get())
    context.update({k: v for k, v in fields.items() if v})
    callback_context.set(context)


class LoggingMiddleware:
    """Correlation ids plus request/slow-request logging."""

    def __init__(self, log_requests: bool = False, log_responses: bool = False,
                 slow_threshold: float = 2.0):
        self.log_requests = log_requests
        self.log_responses = log_responses
        self.slow_threshold = slow_threshold
        self.logger = get_logger("middleware")

    async def __call__(self, request: Request, call_next):
        cid = (request.headers.get(INBOUND_REQUEST_HEADER) or uuid.uuid4().hex)[:8]
        cid_token = correlation_id.set(cid)
        ctx_token = callback_context.set({'path': request.url.path})
        request.state.correlation_id = cid
        started = time.perf_counter()

        if self.log_requests:
            self.logger.info("request_start", method=request.method)

        try:
            response = await call_next(request)
        except Exception as e:
            self.logger.error("request_error", error=str(e), error_type=type(e).__name__,
                              duration=round(time.perf_counter() - started, 3))
            raise
        else:
            duration = time.perf_counter() - started
            slow = duration > self.slow_threshold
            if self.log_responses or slow or response.status_code >= 400:
                self.logger.info("request_complete", status_code=response.status_code,
                                 duration=round(duration, 3), slow=slow)
            response.headers[CORRELATION_HEADER] = cid
            return response
        finally:
            correlation_id.reset(cid_token)
            callback_context.reset(ctx_token)

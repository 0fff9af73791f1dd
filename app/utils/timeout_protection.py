# app/utils/timeout_protection.py
"""
Timeout protection for platform calls made while a gateway callback is open.
USSD gateways drop a callback after a few seconds, so every outbound call is
bounded and turned into ServiceUnavailable instead of hanging the session.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Optional

from app.core.errors import ServiceUnavailable

logger = logging.getLogger(__name__)


async def with_timeout(coro: Awaitable[Any], timeout_seconds: float = 3.0,
                       service: str = "platform", operation: str = "call") -> Any:
    """
    Await a platform call with a deadline.

    Args:
        coro: The call to await
        timeout_seconds: Maximum time to wait (default 3.0 seconds)
        service: Service name, for logs and the raised error
        operation: Operation name, for logs and the raised error

    Returns:
        Result of the call

    Raises:
        ServiceUnavailable: on timeout or any failure inside the call
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout_seconds)
    except asyncio.TimeoutError:
        logger.warning("%s.%s timed out after %.1fs", service, operation, timeout_seconds)
        raise ServiceUnavailable(service, operation, f"timed out after {timeout_seconds}s")
    except ServiceUnavailable:
        raise
    except Exception as e:
        logger.error("%s.%s failed: %s", service, operation, e)
        raise ServiceUnavailable(service, operation, str(e)) from e


class CallbackTimer:
    """
    Context manager that logs callbacks running past the gateway's patience.

    Usage:
        with CallbackTimer("ussd_callback", max_seconds=2.0) as timer:
            response = await service.process(request)
    """

    def __init__(self, operation_name: str, max_seconds: float = 2.0):
        self.operation_name = operation_name
        self.max_seconds = max_seconds
        self.start_time: Optional[float] = None

    def __enter__(self):
        self.start_time = time.monotonic()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = self.elapsed()
        if duration > self.max_seconds:
            logger.warning("%s took %.2fs (>%.1fs)", self.operation_name, duration, self.max_seconds)
        else:
            logger.debug("%s completed in %.2fs", self.operation_name, duration)

    def should_timeout(self) -> bool:
        return self.elapsed() > self.max_seconds

    def elapsed(self) -> float:
        if self.start_time is None:
            return 0.0
        return time.monotonic() - self.start_time

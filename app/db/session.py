import asyncio
import functools
import logging

from pymongo.errors import ConnectionFailure, ExecutionTimeout, WTimeoutError

from app.core.config import settings
from app.core.exceptions import UnavailableError

logger = logging.getLogger(__name__)


def store_operation(func):
    """
    Bound a repository coroutine by STORE_TIMEOUT_SECONDS.

    Timeouts and transient driver failures surface as UnavailableError;
    nothing is considered committed unless the store acknowledged it.
    """
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await asyncio.wait_for(
                func(*args, **kwargs),
                timeout=settings.STORE_TIMEOUT_SECONDS
            )
        except asyncio.TimeoutError:
            logger.warning("Store call timed out", extra={"operation": func.__qualname__})
            raise UnavailableError(f"Store timed out during {func.__name__}")
        except (ConnectionFailure, ExecutionTimeout, WTimeoutError) as exc:
            logger.warning(
                "Store call failed",
                extra={"operation": func.__qualname__, "error": str(exc)}
            )
            raise UnavailableError(f"Store unavailable during {func.__name__}") from exc
    return wrapper

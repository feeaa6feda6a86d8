# Langfuse integration
import functools
import threading
from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog
from langfuse import Langfuse, observe

from agentloop.infrastructure.config.settings import RuntimeSettings, get_settings

logger = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

_client: Optional[Langfuse] = None
_client_lock = threading.Lock()


def init_langfuse(settings: RuntimeSettings) -> Optional[Langfuse]:
    """Create the process-wide Langfuse client when tracing is enabled"""

    global _client
    if not settings.langfuse_enabled:
        return None

    with _client_lock:
        if _client is None:
            _client = Langfuse(
                public_key=settings.langfuse_public_key,
                secret_key=settings.langfuse_secret_key,
                host=settings.langfuse_host,
            )
            logger.info("Langfuse tracing enabled", host=settings.langfuse_host)
    return _client


def traced(name: str) -> Callable[[F], F]:
    """Trace an async operation with Langfuse ``observe`` when enabled.

    The setting is read on each call, so tracing can be switched on after
    import. When disabled the wrapped coroutine runs untouched.
    """

    def decorator(fn: F) -> F:
        observed = None

        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            nonlocal observed
            settings = get_settings()
            if not settings.langfuse_enabled:
                return await fn(*args, **kwargs)

            if observed is None:
                init_langfuse(settings)
                observed = observe(name=name)(fn)
            return await observed(*args, **kwargs)

        return wrapper

    return decorator

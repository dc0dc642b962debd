"""
Thread-safe rate-limited logging utilities.

Polling a node that is briefly unreachable would otherwise emit the same
warning every poll interval. Messages are remembered in a TTL cache per
interval and repeated ones are dropped until they expire.
"""
import logging
import threading
from typing import Dict, Optional

from cachetools import TTLCache

# Configure logger
logger = logging.getLogger(__name__)

_MAX_TRACKED_MESSAGES = 256

# One cache per interval so each message expires after its own interval
_log_caches: Dict[float, TTLCache] = {}
_log_caches_lock = threading.RLock()


def rate_limited_log(
    message: str,
    level: str = "warning",
    interval: float = 60,
    logger_instance: Optional[logging.Logger] = None
) -> bool:
    """
    Log a message with rate limiting, in a thread-safe manner.

    Args:
        message: Message to log
        level: Log level (debug, info, warning, error, critical)
        interval: Minimum interval between identical logs in seconds
        logger_instance: Logger to use (defaults to module logger)

    Returns:
        True if the message was logged, False if it was suppressed
    """
    log_instance = logger_instance or logger
    log_method = getattr(log_instance, level.lower(), log_instance.warning)
    key = f"{level}:{message}"

    with _log_caches_lock:
        cache = _log_caches.get(interval)
        if cache is None:
            cache = _log_caches[interval] = TTLCache(maxsize=_MAX_TRACKED_MESSAGES, ttl=interval)
        if key in cache:
            return False
        cache[key] = True

    log_method(message)
    return True


def reset_rate_limits() -> None:
    """Forget all recently logged messages."""
    with _log_caches_lock:
        _log_caches.clear()

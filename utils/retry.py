"""Exponential backoff for calls to remote services.

Firestore, Drive and Dropbox all fail now and then with rate limits (429),
overloaded servers (5xx) or dropped connections. Each client supplies a
predicate that says which of its exceptions are worth another attempt;
everything else is raised immediately.

Usage:
    from utils.retry import retry_on_transient_error, is_transient_network_error

    @retry_on_transient_error(is_retryable=is_transient_network_error, max_retries=3)
    def fetch():
        return client.get(...)
"""

import random
import time
from functools import wraps
from typing import Callable, Optional

# HTTP status codes that usually clear up on their own
TRANSIENT_HTTP_STATUS_CODES = {429, 500, 502, 503, 504}

# Connection resets, timeouts and socket errors
TRANSIENT_NETWORK_EXCEPTIONS = (ConnectionError, TimeoutError, OSError)


def retry_on_transient_error(
    is_retryable: Callable[[Exception], bool],
    max_retries: int = 5,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    on_retry: Optional[Callable[[Exception, int, float], None]] = None,
):
    """Decorator: retry on retryable exceptions with jittered exponential backoff.

    Args:
        is_retryable: Returns True for exceptions that should be retried
        max_retries: Retries after the first attempt (total = max_retries + 1)
        base_delay: Delay before the first retry, doubled each time
        max_delay: Upper bound for the un-jittered delay
        on_retry: Called as on_retry(exc, attempt, delay) before sleeping

    Raises:
        The first non-retryable exception, or the last one once retries run out.
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except Exception as exc:
                    if not is_retryable(exc) or attempt == max_retries:
                        raise
                    # Jitter in [0.5, 1.5) so parallel clients spread out
                    delay = min(base_delay * (2 ** attempt), max_delay)
                    delay *= 0.5 + random.random()
                    if on_retry:
                        on_retry(exc, attempt + 1, delay)
                    time.sleep(delay)

        return wrapper
    return decorator


def is_transient_network_error(exc: Exception) -> bool:
    """True for connection-level failures worth retrying."""
    return isinstance(exc, TRANSIENT_NETWORK_EXCEPTIONS)

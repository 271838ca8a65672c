from functools import wraps
import logging
import time

logger = logging.getLogger(__name__)


def with_retry(max_retries=3, delay=0.1, retry_on=(Exception,), backoff='linear'):
    """
    Retry ``func`` up to ``max_retries`` times after the first attempt.

    ``delay`` is the base wait in seconds; with ``backoff='linear'`` attempt
    N waits ``delay * N``, with ``backoff='exponential'`` it waits
    ``delay * 2 ** (N - 1)``. The last exception is re-raised once retries
    are exhausted.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except retry_on as e:
                    attempt += 1
                    if attempt > max_retries:
                        raise
                    if backoff == 'exponential':
                        wait = delay * (2 ** (attempt - 1))
                    else:
                        wait = delay * attempt
                    logger.warning(
                        f"{func.__name__} failed (attempt {attempt}/{max_retries + 1}): {e}. "
                        f"Retrying in {wait:.2f}s"
                    )
                    if wait > 0:
                        time.sleep(wait)
        return wrapper
    return decorator

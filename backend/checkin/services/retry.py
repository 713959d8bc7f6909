import asyncio
import logging
import random

logger = logging.getLogger(__name__)

# Fixing these needs a human (credentials, sharing, bad request, wrong id)
FATAL_STATUS_CODES = {400, 401, 403, 404}
# Throttling: back off exponentially with jitter
BACKOFF_STATUS_CODES = {429, 503}
JITTER_RATIO = 0.3

FATAL = "fatal"
EXPONENTIAL = "exponential"
LINEAR = "linear"


def classify(error: BaseException) -> str:
    """Decide how a failed attempt is handled based on its status code"""
    code = getattr(error, "status_code", None)
    if code in FATAL_STATUS_CODES:
        return FATAL
    if code in BACKOFF_STATUS_CODES:
        return EXPONENTIAL
    return LINEAR


def backoff_delay(kind: str, attempt: int, base_delay: float) -> float:
    if kind == EXPONENTIAL:
        exponential = base_delay * (2 ** (attempt - 1))
        return exponential + random.random() * JITTER_RATIO * exponential
    return base_delay * attempt


async def with_retry(operation, max_attempts: int = 3, base_delay: float = 1.0,
                     *, sleep=asyncio.sleep, description: str = "Sheets call"):
    """
    Await ``operation()`` up to ``max_attempts`` times.

    400/401/403/404 are raised on the first failure; 429/503 back off
    exponentially with up to 30% jitter; anything else backs off linearly.
    The last error is re-raised once attempts are exhausted.
    """
    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as e:
            kind = classify(e)
            if kind == FATAL:
                logger.error(f"❌ {description}: non-retryable error ({getattr(e, 'status_code', None)}): {e}")
                raise
            if attempt >= max_attempts:
                logger.error(f"❌ {description}: max retries ({max_attempts}) reached. Final error: {e}")
                raise

            delay = backoff_delay(kind, attempt, base_delay)
            logger.warning(
                f"⚠️ {description} failed ({getattr(e, 'status_code', None) or type(e).__name__}). "
                f"Retry attempt {attempt}/{max_attempts} after {delay:.2f}s"
            )
            await sleep(delay)
            attempt += 1

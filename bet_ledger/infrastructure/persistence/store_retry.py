"""Bounded retry for transient MongoDB driver errors"""
import logging
import time
from typing import Callable, TypeVar

from pymongo.errors import ConnectionFailure, ExecutionTimeout

from bet_ledger.domain.errors import Unavailable

logger = logging.getLogger(__name__)

T = TypeVar('T')

TRANSIENT_ERRORS = (ConnectionFailure, ExecutionTimeout)


def with_store_retry(operation: Callable[[], T], attempts: int, delay: float, description: str) -> T:
    """Run a storage call, retrying transient driver errors; raises Unavailable when they persist"""
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except TRANSIENT_ERRORS as e:
            if attempt >= attempts:
                logger.error(f"{description} failed after {attempt} attempt(s): {e}")
                raise Unavailable(f"Storage unavailable: {description}") from e
            logger.warning(f"{description} failed ({attempt}/{attempts}): {e}; retrying")
            time.sleep(delay * attempt)

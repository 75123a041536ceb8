"""Classification of generation failures into retry policies.

Provider errors reach the scheduler as arbitrary exceptions. Most SDKs and
raw HTTP adapters only expose a message, so the classification is a
substring heuristic over the lower-cased message, backed by the HTTP status
when the adapter raised a ``ProviderError`` that carries one.
"""

import asyncio
from enum import Enum

from stockbatch.utils.errors import JobAbortedError, ProviderError

TRANSIENT_MARKERS: tuple[str, ...] = (
    "429",
    "quota",
    "overloaded",
    "timeout",
    "fetch failed",
)

TRANSIENT_STATUS_CODES: frozenset[int] = frozenset({429, 503, 504})

ABORTED_MESSAGE = "file aborted"


class ErrorKind(str, Enum):
    TRANSIENT = "transient"
    PERMANENT = "permanent"
    ABORTED = "aborted"


def error_message(exc: BaseException) -> str:
    """Lower-cased message used for classification and for job errors."""
    return (str(exc) or type(exc).__name__).lower()


def classify_error(exc: BaseException) -> ErrorKind:
    """
    Decide how the scheduler reacts to a failed generation call.

    Args:
        exc: Exception raised by the generation capability

    Returns:
        TRANSIENT for rate limit, quota, overload, timeout and network
        failures; ABORTED when the job disappeared mid-flight; PERMANENT
        for everything else
    """
    if isinstance(exc, JobAbortedError):
        return ErrorKind.ABORTED

    message = error_message(exc)
    if message == ABORTED_MESSAGE:
        return ErrorKind.ABORTED

    if isinstance(exc, ProviderError) and exc.status_code in TRANSIENT_STATUS_CODES:
        return ErrorKind.TRANSIENT

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return ErrorKind.TRANSIENT

    if any(marker in message for marker in TRANSIENT_MARKERS):
        return ErrorKind.TRANSIENT

    return ErrorKind.PERMANENT


def truncate_error(exc: BaseException, max_length: int = 100) -> str:
    """Short diagnostic string stored on a failed job."""
    message = error_message(exc).strip()
    return message[:max_length] or "unknown error"

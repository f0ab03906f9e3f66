from __future__ import annotations

from enum import Enum
from typing import List, Optional


class BatchExtractionError(Exception):
    """Base class for errors raised by the batch extraction engine."""


class ConfigurationError(BatchExtractionError, ValueError):
    """Invalid engine configuration, raised at construction time."""


class InvalidTransition(BatchExtractionError):
    """A task status change that would move backwards or leave a terminal state."""


class AdmissionReason(str, Enum):
    INVALID_TASK = "invalid_task"
    QUEUE_FULL = "queue_full"
    DUPLICATE_TASK = "duplicate_task"


class AdmissionError(BatchExtractionError):
    """Raised synchronously by the admission gate when a task is rejected."""

    def __init__(self, reason: AdmissionReason, message: str, details: Optional[List[str]] = None):
        super().__init__(message)
        self.reason = reason
        self.details = list(details or [])


class TransportErrorKind(str, Enum):
    UNAUTHORIZED = "unauthorized"
    BAD_REQUEST = "bad_request"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"


RETRYABLE_KINDS = frozenset(
    {
        TransportErrorKind.RATE_LIMITED,
        TransportErrorKind.SERVER_ERROR,
        TransportErrorKind.NETWORK_ERROR,
        TransportErrorKind.TIMEOUT,
    }
)


class TransportError(BatchExtractionError):
    """
    Failure reported by an extraction transport.

    The kind is assigned once, where the raw error is caught, and `retryable`
    follows from it. Nothing downstream inspects the message text.
    """

    def __init__(self, kind: TransportErrorKind, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.kind = TransportErrorKind(kind)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    def __repr__(self) -> str:
        return f"TransportError(kind={self.kind.value!r}, message={str(self)!r}, status_code={self.status_code!r})"


class TaskValidationError(BatchExtractionError):
    """A task rejected by local validation before it was sent; never retried."""

    def __init__(self, message: str, reasons: Optional[List[str]] = None):
        super().__init__(message)
        self.reasons = list(reasons or [])


class RetryExhausted(BatchExtractionError):
    """Every allowed attempt failed. Recorded on the outcome, not raised."""

    def __init__(self, task_id: str, attempts: int, last_error: BaseException):
        super().__init__(f"{last_error} (gave up after {attempts} attempts)")
        self.task_id = task_id
        self.attempts = attempts
        self.last_error = last_error
        self.__cause__ = last_error


def is_retryable(exc: BaseException) -> bool:
    """Decide whether a failed attempt may be repeated."""
    if isinstance(exc, TransportError):
        return exc.retryable
    if isinstance(exc, TaskValidationError):
        return False
    return True

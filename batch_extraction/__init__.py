"""
batch_extraction: admits documents into a bounded queue, runs them against a
remote extraction service in concurrent waves, and retries transient failures
with capped exponential backoff.
"""

from .config import BatchConfig, RetryLoggingStyle
from .engine import BatchEngine
from .errors import (
    AdmissionError,
    AdmissionReason,
    ConfigurationError,
    RetryExhausted,
    TaskValidationError,
    TransportError,
    TransportErrorKind,
)
from .result import ExtractionResult, Outcome
from .task import ExtractionTask, TaskStatus

__all__ = [
    "AdmissionError",
    "AdmissionReason",
    "BatchConfig",
    "BatchEngine",
    "ConfigurationError",
    "ExtractionResult",
    "ExtractionTask",
    "Outcome",
    "RetryExhausted",
    "RetryLoggingStyle",
    "TaskStatus",
    "TaskValidationError",
    "TransportError",
    "TransportErrorKind",
]

from __future__ import annotations

import json
import logging
import random
import threading
import time
from typing import Any, Callable, Optional

from .config import BatchConfig, RetryLoggingStyle
from .errors import RetryExhausted, TransportError, is_retryable
from .result import Outcome
from .task import ExtractionTask

logger = logging.getLogger(__name__)

BACKOFF_CEILING_SECONDS = 30

Extract = Callable[[ExtractionTask], Any]


class RetryPolicy:
    """
    Runs the extraction transport for one task until it succeeds, fails with
    a non-retryable error, or runs out of attempts.

    `sleep` and `jitter` are injectable so tests can observe the backoff
    schedule without waiting for it.
    """

    def __init__(
        self,
        config: BatchConfig,
        *,
        sleep: Callable[[float], None] = time.sleep,
        jitter: Callable[[], float] = random.random,
    ):
        self.config = config
        self._sleep = sleep
        self._jitter = jitter

    @property
    def max_attempts(self) -> int:
        return max(1, self.config.max_retries)

    def backoff_seconds(self, attempt: int) -> float:
        """min(2^(attempt-1) + jitter, min(max_retry_wait_time, 30))"""
        cap = min(self.config.max_retry_wait_time, BACKOFF_CEILING_SECONDS)
        exponential = 2 ** (attempt - 1)
        return min(exponential + self._jitter(), cap)

    def run(
        self,
        task: ExtractionTask,
        extract: Extract,
        cancel: Optional[threading.Event] = None,
    ) -> Outcome:
        last_error: Optional[BaseException] = None

        for attempt in range(1, self.max_attempts + 1):
            task.record_attempt()
            try:
                result = extract(task)
            except Exception as exc:
                last_error = exc
                self._log_attempt(task, attempt, "FAILED", exc)
                if not is_retryable(exc):
                    logger.debug("Task %s: %r is not retryable", task.id, exc)
                    return Outcome(task.id, False, task.attempts, error=exc)
                if attempt >= self.max_attempts:
                    break
                if cancel is not None and cancel.is_set():
                    logger.info("Task %s: cancelled before retry %d", task.id, attempt + 1)
                    return Outcome(task.id, False, task.attempts, error=exc)
                self._sleep(self.backoff_seconds(attempt))
                continue

            self._log_attempt(task, attempt, "SUCCESS", None)
            return Outcome(task.id, True, task.attempts, result=result)

        assert last_error is not None
        return Outcome(
            task.id,
            False,
            task.attempts,
            error=RetryExhausted(task.id, task.attempts, last_error),
        )

    def _log_attempt(
        self,
        task: ExtractionTask,
        attempt: int,
        status: str,
        error: Optional[BaseException],
    ) -> None:
        style = self.config.retry_logging_style
        if style is RetryLoggingStyle.SILENT:
            return
        if style is RetryLoggingStyle.JSON:
            record: dict[str, Any] = {
                "document_id": task.id,
                "attempt": attempt,
                "max_attempts": self.max_attempts,
                "status": status,
            }
            if error is not None:
                record["error"] = str(error)
                if isinstance(error, TransportError):
                    record["kind"] = error.kind.value
                    record["retryable"] = error.retryable
            logger.info(json.dumps(record))
            return
        message = f"Document {task.id} - Attempt {attempt}/{self.max_attempts} - {status}"
        if error is not None:
            logger.info("%s - Error: %s", message, error)
        else:
            logger.info(message)

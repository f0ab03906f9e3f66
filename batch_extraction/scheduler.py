from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence

from .admission import AdmissionGate
from .aggregator import ResultAggregator
from .config import BatchConfig
from .errors import InvalidTransition
from .result import Outcome
from .retry import Extract, RetryPolicy
from .task import ExtractionTask

logger = logging.getLogger(__name__)


@dataclass
class TaskError:
    document_id: str
    error: str


@dataclass
class BatchSummary:
    processed: int = 0
    completed: int = 0
    failed: int = 0
    errors: List[TaskError] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    # skipped tasks that did not fit back into the queue
    unqueued: List[ExtractionTask] = field(default_factory=list)
    message: Optional[str] = None


def chunked(items: Sequence[ExtractionTask], size: int) -> Iterator[List[ExtractionTask]]:
    for start in range(0, len(items), size):
        yield list(items[start : start + size])


class WaveScheduler:
    """
    Withdraws one batch from the gate and runs it in waves of at most
    `max_workers` tasks. A wave starts only after every task of the previous
    wave reached a terminal status.
    """

    def __init__(
        self,
        config: BatchConfig,
        gate: AdmissionGate,
        policy: RetryPolicy,
        aggregator: ResultAggregator,
    ):
        self.config = config
        self.gate = gate
        self.policy = policy
        self.aggregator = aggregator

    def process_batch(
        self,
        extract: Extract,
        cancel: Optional[threading.Event] = None,
    ) -> BatchSummary:
        batch = self.gate.withdraw(self.config.batch_size)
        if not batch:
            return BatchSummary(message="No documents in queue to process")

        logger.info(
            "[Batch Processing] Starting batch processing: %d documents, %d workers, %d still queued",
            len(batch),
            self.config.max_workers,
            len(self.gate),
        )

        summary = BatchSummary()
        waves = list(chunked(batch, self.config.max_workers))
        for index, wave in enumerate(waves):
            if cancel is not None and cancel.is_set():
                remaining = [task for later in waves[index:] for task in later]
                summary.skipped.extend(task.id for task in remaining)
                summary.unqueued.extend(self.gate.restore(remaining))
                logger.warning(
                    "[Batch Processing] Cancelled before wave %d; %d documents returned to the queue, %d did not fit",
                    index + 1,
                    len(remaining) - len(summary.unqueued),
                    len(summary.unqueued),
                )
                break

            for outcome in self._run_wave(wave, extract, cancel):
                summary.processed += 1
                if outcome.success:
                    summary.completed += 1
                else:
                    summary.failed += 1
                    summary.errors.append(
                        TaskError(document_id=outcome.task_id, error=outcome.error_message or "")
                    )

        logger.info(
            "[Batch Processing] Batch processing completed: processed=%d completed=%d failed=%d skipped=%d",
            summary.processed,
            summary.completed,
            summary.failed,
            len(summary.skipped),
        )
        return summary

    def _run_wave(
        self,
        wave: List[ExtractionTask],
        extract: Extract,
        cancel: Optional[threading.Event],
    ) -> List[Outcome]:
        outcomes: List[Optional[Outcome]] = [None] * len(wave)
        runnable: List[int] = []
        for position, task in enumerate(wave):
            try:
                task.mark_processing()
            except InvalidTransition as exc:
                # already terminal: report it, leave its recorded result alone
                logger.error("Refusing to dispatch %s: %s", task.id, exc)
                outcomes[position] = Outcome(task.id, False, task.attempts, error=exc)
                continue
            runnable.append(position)

        if runnable:
            with ThreadPoolExecutor(max_workers=len(runnable), thread_name_prefix="extract") as pool:
                futures = {
                    position: pool.submit(self._run_task, wave[position], extract, cancel)
                    for position in runnable
                }
                # barrier: the pool joins on exit, results are read in dispatch order
                for position, future in futures.items():
                    outcomes[position] = future.result()
        return [outcome for outcome in outcomes if outcome is not None]

    def _run_task(
        self,
        task: ExtractionTask,
        extract: Extract,
        cancel: Optional[threading.Event],
    ) -> Outcome:
        try:
            outcome = self.policy.run(task, extract, cancel)
        except Exception as exc:
            logger.exception("Unexpected failure while processing %s", task.id)
            outcome = Outcome(task.id, False, task.attempts, error=exc)

        if outcome.success:
            task.mark_completed()
        else:
            task.mark_failed()
        logger.debug("Finished %s: %s after %d attempts", task.id, task.status.value, task.attempts)
        self.aggregator.record(task, outcome)
        return outcome

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

from .admission import AdmissionGate, Decision, QueuePlacement
from .aggregator import ResultAggregator
from .config import BatchConfig
from .retry import Extract, RetryPolicy
from .scheduler import BatchSummary, WaveScheduler
from .task import ExtractionTask

logger = logging.getLogger(__name__)


class BatchEngine:
    """
    Public surface of the batch extraction engine.

    Tasks are admitted into a bounded queue with `add_to_batch`, and each
    `process_batch` call withdraws at most one batch and runs it through the
    retry policy in concurrent waves. The queue is not drained automatically.
    """

    def __init__(
        self,
        config: Optional[BatchConfig] = None,
        *,
        sleep: Optional[Callable[[float], None]] = None,
        jitter: Optional[Callable[[], float]] = None,
    ):
        self.config = config or BatchConfig()
        policy_kwargs: dict[str, Any] = {}
        if sleep is not None:
            policy_kwargs["sleep"] = sleep
        if jitter is not None:
            policy_kwargs["jitter"] = jitter
        self.gate = AdmissionGate(self.config)
        self.aggregator = ResultAggregator()
        self.policy = RetryPolicy(self.config, **policy_kwargs)
        self.scheduler = WaveScheduler(self.config, self.gate, self.policy, self.aggregator)

    def can_add_to_batch(self, task: ExtractionTask) -> Decision:
        return self.gate.can_admit(task)

    def add_to_batch(self, task: ExtractionTask) -> QueuePlacement:
        placement = self.gate.enqueue(task)
        logger.info(
            "[Batch Processing] Document added to batch: %s (queue %d/%d)",
            task.id,
            len(self.gate),
            self.config.batch_size,
        )
        return placement

    def process_batch(
        self,
        extract: Extract,
        cancel: Optional[threading.Event] = None,
    ) -> BatchSummary:
        return self.scheduler.process_batch(extract, cancel)

    def get_batch_stats(self) -> dict[str, Any]:
        queue_size = len(self.gate)
        stats = self.aggregator.stats(queue_size)
        return {
            "configuration": self.config.as_dict(),
            "queue": {
                "size": queue_size,
                "max_size": self.config.batch_size,
                "available_slots": max(0, self.config.batch_size - queue_size),
            },
            "processing": {
                "max_workers": self.config.max_workers,
            },
            "results": {
                "completed": stats.completed_count,
                "failed": stats.failed_count,
                "total": stats.completed_count + stats.failed_count,
                "success_rate": stats.success_rate,
                "average_confidence": stats.average_confidence,
                "average_processing_time": stats.average_processing_time,
            },
        }

    def clear_results(self) -> None:
        self.aggregator.clear()

    def reset(self) -> None:
        self.gate.clear()
        self.aggregator.clear()
        logger.info("[Batch Processing] Queue and results reset")

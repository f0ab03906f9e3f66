from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional

from .config import BatchConfig
from .errors import AdmissionError, AdmissionReason
from .task import ExtractionTask, TaskStatus

logger = logging.getLogger(__name__)

# rough per-document latency used for wait estimates
ESTIMATED_SECONDS_PER_TASK = 5


@dataclass
class Decision:
    ok: bool
    reason: Optional[AdmissionReason] = None
    message: str = "Document can be added to batch"
    details: List[str] = field(default_factory=list)
    available_slots: int = 0


@dataclass
class QueuePlacement:
    task_id: str
    queue_position: int
    estimated_wait_seconds: int


class AdmissionGate:
    """
    Bounded FIFO of pending tasks.

    Only enqueue adds to the queue and only withdraw removes from its head,
    so insertion order is the dispatch order.
    """

    def __init__(self, config: BatchConfig):
        self.config = config
        self._queue: Deque[ExtractionTask] = deque()

    def __len__(self) -> int:
        return len(self._queue)

    def ids(self) -> List[str]:
        return [task.id for task in self._queue]

    def can_admit(self, task: ExtractionTask) -> Decision:
        report = task.validate()
        if not report.ok:
            return Decision(
                ok=False,
                reason=AdmissionReason.INVALID_TASK,
                message=f"Document validation failed: {', '.join(report.reasons)}",
                details=report.reasons,
            )
        if task.status is not TaskStatus.PENDING:
            return Decision(
                ok=False,
                reason=AdmissionReason.INVALID_TASK,
                message=f"Document {task.id} is already {task.status.value}; submit task.fresh() to reprocess",
            )
        if len(self._queue) >= self.config.batch_size:
            return Decision(
                ok=False,
                reason=AdmissionReason.QUEUE_FULL,
                message=f"Batch is full ({self.config.batch_size} documents)",
            )
        if any(queued.id == task.id for queued in self._queue):
            return Decision(
                ok=False,
                reason=AdmissionReason.DUPLICATE_TASK,
                message=f"Document {task.id} is already in processing queue",
            )
        return Decision(ok=True, available_slots=self.config.batch_size - len(self._queue))

    def enqueue(self, task: ExtractionTask) -> QueuePlacement:
        decision = self.can_admit(task)
        if not decision.ok:
            raise AdmissionError(
                decision.reason,  # type: ignore[arg-type]
                f"Cannot add document to batch: {decision.message}",
                decision.details,
            )
        self._queue.append(task)
        logger.debug("Queued %s at position %d", task.id, len(self._queue))
        return QueuePlacement(
            task_id=task.id,
            queue_position=len(self._queue),
            estimated_wait_seconds=self.estimated_wait_seconds(),
        )

    def estimated_wait_seconds(self) -> int:
        return math.ceil(len(self._queue) * ESTIMATED_SECONDS_PER_TASK / self.config.max_workers)

    def withdraw(self, limit: int) -> List[ExtractionTask]:
        """Remove and return up to `limit` tasks from the head of the queue."""
        count = min(limit, len(self._queue))
        return [self._queue.popleft() for _ in range(count)]

    def restore(self, tasks: List[ExtractionTask]) -> List[ExtractionTask]:
        """
        Put withdrawn, never-started tasks back at the head of the queue in
        their original order. Returns the tasks that no longer fit.
        """
        room = max(0, self.config.batch_size - len(self._queue))
        kept, overflow = tasks[:room], tasks[room:]
        self._queue.extendleft(reversed(kept))
        return list(overflow)

    def clear(self) -> None:
        self._queue.clear()

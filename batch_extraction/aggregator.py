from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .result import ExtractionResult, Outcome
from .task import ExtractionTask

Record = Tuple[ExtractionTask, Outcome]


@dataclass
class AggregateStats:
    queue_size: int
    completed_count: int
    failed_count: int
    success_rate: float
    average_confidence: Optional[float] = None
    average_processing_time: Optional[float] = None


class ResultAggregator:
    """
    Terminal outcomes in arrival order, split into completed and failed.

    Workers of one wave finish concurrently, so every read and write goes
    through the lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._completed: List[Record] = []
        self._failed: List[Record] = []

    def record(self, task: ExtractionTask, outcome: Outcome) -> None:
        with self._lock:
            if outcome.success:
                self._completed.append((task, outcome))
            else:
                self._failed.append((task, outcome))

    @property
    def completed(self) -> List[Record]:
        with self._lock:
            return list(self._completed)

    @property
    def failed(self) -> List[Record]:
        with self._lock:
            return list(self._failed)

    def records(self) -> List[Record]:
        with self._lock:
            return self._completed + self._failed

    def result_for(self, task_id: str) -> Optional[Outcome]:
        with self._lock:
            for task, outcome in self._completed:
                if task.id == task_id:
                    return outcome
        return None

    def error_for(self, task_id: str) -> Optional[Outcome]:
        with self._lock:
            for task, outcome in self._failed:
                if task.id == task_id:
                    return outcome
        return None

    def stats(self, queue_size: int = 0) -> AggregateStats:
        with self._lock:
            completed = len(self._completed)
            failed = len(self._failed)
            results = [
                outcome.result
                for _, outcome in self._completed
                if isinstance(outcome.result, ExtractionResult)
            ]
        total = completed + failed
        stats = AggregateStats(
            queue_size=queue_size,
            completed_count=completed,
            failed_count=failed,
            success_rate=completed / total if total else 0.0,
        )
        if results:
            stats.average_confidence = sum(r.confidence for r in results) / len(results)
            stats.average_processing_time = sum(r.processing_time for r in results) / len(results)
        return stats

    def clear(self) -> None:
        with self._lock:
            self._completed = []
            self._failed = []

import pytest

from batch_extraction.config import BatchConfig
from batch_extraction.engine import BatchEngine
from batch_extraction.errors import AdmissionError, AdmissionReason, TransportError, TransportErrorKind
from batch_extraction.result import ExtractionResult


def test_batch_size_tasks_admitted_then_queue_full(make_task, recording_sleep):
    engine = BatchEngine(BatchConfig(batch_size=3), sleep=recording_sleep)
    for i in range(3):
        placement = engine.add_to_batch(make_task(f"doc-{i}"))
        assert placement.queue_position == i + 1
    with pytest.raises(AdmissionError) as excinfo:
        engine.add_to_batch(make_task("doc-3"))
    assert excinfo.value.reason is AdmissionReason.QUEUE_FULL


def test_two_batches_drain_five_tasks(make_task, recording_sleep):
    engine = BatchEngine(BatchConfig(batch_size=4, max_workers=2), sleep=recording_sleep)
    tasks = [make_task(f"doc-{i}") for i in range(5)]
    for task in tasks[:4]:
        engine.add_to_batch(task)

    def extract(task):
        # the batch has been withdrawn, so the fifth task fits while it runs
        if task.id == "doc-0":
            engine.add_to_batch(tasks[4])
        return ExtractionResult(data={"invoice_number": task.id}, confidence=0.8, processing_time=0.1)

    first = engine.process_batch(extract)
    assert (first.processed, first.completed, first.failed) == (4, 4, 0)
    assert engine.get_batch_stats()["queue"]["size"] == 1

    second = engine.process_batch(extract)
    assert second.processed == 1
    assert engine.get_batch_stats()["queue"]["size"] == 0


def test_stats_report_configuration_queue_and_results(make_task, recording_sleep):
    config = BatchConfig(batch_size=4, max_workers=2, max_retries=2, max_retry_wait_time=10)
    engine = BatchEngine(config, sleep=recording_sleep, jitter=lambda: 0.0)
    engine.add_to_batch(make_task("good"))
    engine.add_to_batch(make_task("bad"))

    def extract(task):
        if task.id == "bad":
            raise TransportError(TransportErrorKind.SERVER_ERROR, "Internal server error", status_code=500)
        return ExtractionResult(data={"invoice_number": "1"}, confidence=0.9, processing_time=2.0)

    summary = engine.process_batch(extract)
    assert summary.completed == 1
    assert summary.failed == 1
    assert recording_sleep.calls == [1.0]

    engine.add_to_batch(make_task("waiting"))
    stats = engine.get_batch_stats()
    assert stats["configuration"] == {
        "batch_size": 4,
        "max_workers": 2,
        "max_retries": 2,
        "max_retry_wait_time": 10,
        "retry_logging_style": "log_msg",
    }
    assert stats["queue"] == {"size": 1, "max_size": 4, "available_slots": 3}
    assert stats["results"]["completed"] == 1
    assert stats["results"]["failed"] == 1
    assert stats["results"]["total"] == 2
    assert stats["results"]["success_rate"] == pytest.approx(0.5)
    assert stats["results"]["average_confidence"] == pytest.approx(0.9)
    assert stats["results"]["average_processing_time"] == pytest.approx(2.0)


def test_clear_results_keeps_queue(make_task, recording_sleep):
    engine = BatchEngine(BatchConfig(batch_size=1), sleep=recording_sleep)
    engine.add_to_batch(make_task("a"))
    engine.process_batch(lambda t: "ok")
    engine.add_to_batch(make_task("b"))

    engine.clear_results()
    stats = engine.get_batch_stats()
    assert stats["results"]["total"] == 0
    assert stats["queue"]["size"] == 1


def test_reset_clears_queue_and_results(make_task, recording_sleep):
    engine = BatchEngine(BatchConfig(batch_size=1), sleep=recording_sleep)
    engine.add_to_batch(make_task("a"))
    engine.process_batch(lambda t: "ok")
    engine.add_to_batch(make_task("b"))

    engine.reset()
    stats = engine.get_batch_stats()
    assert stats["results"]["total"] == 0
    assert stats["queue"]["size"] == 0


def test_failed_task_can_be_resubmitted_as_fresh_copy(make_task, recording_sleep):
    engine = BatchEngine(BatchConfig(batch_size=2, max_retries=1), sleep=recording_sleep)
    task = make_task("doc-1")
    engine.add_to_batch(task)
    def slow(task):
        raise TimeoutError("slow")

    engine.process_batch(slow)

    retry = task.fresh()
    engine.add_to_batch(retry)
    summary = engine.process_batch(lambda t: "ok")
    assert summary.completed == 1
    assert retry.attempts == 1


def test_can_add_to_batch_does_not_enqueue(make_task, recording_sleep):
    engine = BatchEngine(BatchConfig(batch_size=1), sleep=recording_sleep)
    decision = engine.can_add_to_batch(make_task("doc-1"))
    assert decision.ok
    assert engine.get_batch_stats()["queue"]["size"] == 0


def test_completed_task_cannot_be_resubmitted(make_task, recording_sleep):
    engine = BatchEngine(BatchConfig(batch_size=2), sleep=recording_sleep)
    done = make_task("doc-1")
    engine.add_to_batch(done)
    engine.process_batch(lambda t: "ok")

    with pytest.raises(AdmissionError) as excinfo:
        engine.add_to_batch(done)
    assert excinfo.value.reason is AdmissionReason.INVALID_TASK

    engine.add_to_batch(make_task("doc-2"))
    summary = engine.process_batch(lambda t: "ok")
    assert (summary.processed, summary.completed, summary.failed) == (1, 1, 0)
    assert engine.get_batch_stats()["results"]["completed"] == 2

import pytest

from batch_extraction.errors import InvalidTransition
from batch_extraction.task import MAX_FILE_SIZE, ExtractionTask, TaskStatus
from conftest import InvoiceFields


def test_new_task_is_pending_with_guessed_type(make_task):
    task = make_task("doc-001")
    assert task.status is TaskStatus.PENDING
    assert task.attempts == 0
    assert task.mime_type == "application/pdf"
    assert task.file_type_category == "pdf"
    assert task.size > 0
    assert task.validate().ok


def test_url_task_is_not_checked_on_disk():
    task = ExtractionTask(id="doc-002", payload="https://example.com/files/document.pdf", schema=InvoiceFields)
    assert task.is_url
    assert task.name == "document.pdf"
    assert task.size is None
    assert task.validate().ok


def test_image_task_category(make_task):
    task = make_task("doc-003", name="scan.png")
    assert task.mime_type == "image/png"
    assert task.file_type_category == "image"


def test_validation_collects_reasons(tmp_path):
    task = ExtractionTask(id="", payload=tmp_path / "missing.docx", schema=dict)
    report = task.validate()
    assert not report.ok
    assert "Document ID is required" in report.reasons
    assert "Schema must be a pydantic model class" in report.reasons
    assert "File does not exist or is not accessible" in report.reasons
    assert any(r.startswith("Unsupported file type") for r in report.reasons)


def test_oversized_task_is_invalid(make_task):
    task = make_task("big", size=MAX_FILE_SIZE + 1)
    report = task.validate()
    assert not report.ok
    assert "exceeds maximum allowed size" in report.reasons[0]


def test_status_transitions_are_monotonic(make_task):
    task = make_task()
    with pytest.raises(InvalidTransition):
        task.mark_completed()
    task.mark_processing()
    assert task.record_attempt() == 1
    assert task.last_attempt_at is not None
    task.mark_failed()
    assert task.status.terminal
    with pytest.raises(InvalidTransition):
        task.mark_processing()
    with pytest.raises(InvalidTransition):
        task.mark_completed()


def test_attempts_require_processing(make_task):
    task = make_task()
    with pytest.raises(InvalidTransition):
        task.record_attempt()


def test_fresh_copy_resets_state(make_task):
    task = make_task()
    task.mark_processing()
    task.record_attempt()
    task.mark_failed()

    retry = task.fresh()
    assert retry.id == task.id
    assert retry.status is TaskStatus.PENDING
    assert retry.attempts == 0
    assert retry.last_attempt_at is None
    assert task.status is TaskStatus.FAILED


def test_summary_describes_task(make_task):
    summary = make_task("doc-9").summary()
    assert summary["id"] == "doc-9"
    assert summary["type"] == "pdf"
    assert summary["status"] == "pending"
    assert summary["attempts"] == 0

import sys
from pathlib import Path
from typing import Optional

import pytest
from pydantic import BaseModel

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from batch_extraction.task import ExtractionTask  # noqa: E402


class InvoiceFields(BaseModel):
    invoice_number: str
    vendor: Optional[str] = None


class RecordingSleep:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def make_task(tmp_path):
    def _make(task_id: str = "doc-001", name: Optional[str] = None, **kwargs) -> ExtractionTask:
        path = tmp_path / (name or f"{task_id or 'unnamed'}.pdf")
        if not path.exists():
            path.write_bytes(b"%PDF-1.4\n%stub\n")
        return ExtractionTask(id=task_id, payload=path, schema=InvoiceFields, **kwargs)

    return _make


@pytest.fixture
def recording_sleep():
    return RecordingSleep()

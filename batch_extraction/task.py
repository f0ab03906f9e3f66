from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from mimetypes import guess_type
from pathlib import Path
from typing import Any, List, Optional, Type
from urllib.parse import urlparse

from pydantic import BaseModel

from .errors import InvalidTransition

MAX_FILE_SIZE = 50 * 1024 * 1024

PDF_MIME_TYPES = frozenset({"application/pdf"})

IMAGE_MIME_TYPES = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/tiff",
        "image/bmp",
        "image/gif",
        "image/webp",
        "image/x-portable-pixmap",
        "image/x-portable-graymap",
        "image/x-portable-bitmap",
        "image/x-sun-raster",
        "image/x-cmu-raster",
        "image/jp2",
        "image/jpm",
        "image/mj2",
        "image/x-tga",
        "image/x-exr",
        "image/vnd.radiance",
        "image/x-pict",
    }
)

SUPPORTED_MIME_TYPES = PDF_MIME_TYPES | IMAGE_MIME_TYPES


class TaskStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


_ALLOWED_TRANSITIONS = {
    TaskStatus.PENDING: {TaskStatus.PROCESSING},
    TaskStatus.PROCESSING: {TaskStatus.COMPLETED, TaskStatus.FAILED},
    TaskStatus.COMPLETED: set(),
    TaskStatus.FAILED: set(),
}


@dataclass
class ValidationReport:
    ok: bool
    reasons: List[str] = field(default_factory=list)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ExtractionTask:
    """
    One document to extract, paired with the pydantic model describing the
    fields to pull out of it, plus its processing state.
    """

    id: str
    payload: str | Path
    schema: Type[BaseModel]
    mime_type: Optional[str] = None
    size: Optional[int] = None
    attempts: int = 0
    status: TaskStatus = TaskStatus.PENDING
    last_attempt_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if self.mime_type is None and self.payload:
            self.mime_type = guess_type(self.name)[0]
        if self.size is None and self.payload and not self.is_url:
            path = Path(self.payload)
            if path.is_file():
                self.size = path.stat().st_size

    @property
    def is_url(self) -> bool:
        return urlparse(str(self.payload)).scheme in ("http", "https")

    @property
    def name(self) -> str:
        if self.is_url:
            return Path(urlparse(str(self.payload)).path).name
        return Path(self.payload).name

    @property
    def file_type_category(self) -> str:
        if self.mime_type in PDF_MIME_TYPES:
            return "pdf"
        if self.mime_type in IMAGE_MIME_TYPES:
            return "image"
        return "unknown"

    def validate(self) -> ValidationReport:
        reasons: List[str] = []
        if not self.id:
            reasons.append("Document ID is required")
        if not self.payload:
            reasons.append("File path is required")
        if not (isinstance(self.schema, type) and issubclass(self.schema, BaseModel)):
            reasons.append("Schema must be a pydantic model class")
        if self.size is not None and self.size < 0:
            reasons.append("File size cannot be negative")
        elif self.size is not None and self.size > MAX_FILE_SIZE:
            reasons.append(
                f"File size {self.size} bytes exceeds maximum allowed size of {MAX_FILE_SIZE} bytes"
            )
        if not self.mime_type:
            reasons.append("MIME type is required")
        elif self.mime_type not in SUPPORTED_MIME_TYPES:
            reasons.append(f"Unsupported file type: {self.mime_type}")
        if self.payload and not self.is_url and not Path(self.payload).is_file():
            reasons.append("File does not exist or is not accessible")
        return ValidationReport(ok=not reasons, reasons=reasons)

    def _transition(self, target: TaskStatus) -> None:
        if target not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransition(
                f"Task {self.id}: cannot move from {self.status.value} to {target.value}"
            )
        self.status = target

    def mark_processing(self) -> None:
        self._transition(TaskStatus.PROCESSING)

    def record_attempt(self) -> int:
        if self.status is not TaskStatus.PROCESSING:
            raise InvalidTransition(f"Task {self.id}: attempts are only made while processing")
        self.attempts += 1
        self.last_attempt_at = _utcnow()
        return self.attempts

    def mark_completed(self) -> None:
        self._transition(TaskStatus.COMPLETED)

    def mark_failed(self) -> None:
        self._transition(TaskStatus.FAILED)

    def fresh(self) -> "ExtractionTask":
        """Copy for reprocessing: pending, no attempts recorded."""
        return replace(
            self,
            attempts=0,
            status=TaskStatus.PENDING,
            last_attempt_at=None,
            created_at=_utcnow(),
        )

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.file_type_category,
            "is_url": self.is_url,
            "size": self.size,
            "status": self.status.value,
            "attempts": self.attempts,
        }

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Callable, List, Optional, Type

import httpx
import openai
from pydantic import BaseModel
from pydantic_ai import Agent, BinaryContent
from pydantic_ai.exceptions import ModelHTTPError, UnexpectedModelBehavior, UserError
from pydantic_ai.models.openai import OpenAIChatModel

from .errors import TaskValidationError, TransportError, TransportErrorKind
from .result import ExtractionResult, score_confidence
from .task import MAX_FILE_SIZE, ExtractionTask

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a careful information extraction assistant. "
    "Fill the provided schema using only evidence from the attached document. "
    "If a value is missing or unclear, leave it null. Do not invent data."
)


def kind_for_status(status_code: int) -> TransportErrorKind:
    if status_code in (401, 403):
        return TransportErrorKind.UNAUTHORIZED
    if status_code == 413:
        return TransportErrorKind.PAYLOAD_TOO_LARGE
    if status_code == 429:
        return TransportErrorKind.RATE_LIMITED
    if status_code >= 500:
        return TransportErrorKind.SERVER_ERROR
    return TransportErrorKind.BAD_REQUEST


def classify_exception(exc: BaseException) -> TransportError:
    """Map a raw client/model error to a tagged TransportError."""
    if isinstance(exc, TransportError):
        return exc
    if isinstance(exc, ModelHTTPError):
        return TransportError(
            kind_for_status(exc.status_code),
            f"Model API error ({exc.status_code}): {exc.body or exc.message}",
            status_code=exc.status_code,
        )
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return TransportError(kind_for_status(status), f"Download failed ({status})", status_code=status)
    if isinstance(exc, (httpx.TimeoutException, openai.APITimeoutError, TimeoutError)):
        return TransportError(TransportErrorKind.TIMEOUT, f"Request timeout: {exc}")
    if isinstance(exc, (httpx.TransportError, openai.APIConnectionError, ConnectionError)):
        return TransportError(TransportErrorKind.NETWORK_ERROR, f"Network error: {exc}")
    if isinstance(exc, UnexpectedModelBehavior):
        return TransportError(TransportErrorKind.SERVER_ERROR, f"Unexpected model behavior: {exc}")
    if isinstance(exc, UserError):
        return TransportError(TransportErrorKind.BAD_REQUEST, f"Invalid request: {exc}")
    if isinstance(exc, openai.APIStatusError):
        return TransportError(
            kind_for_status(exc.status_code),
            f"Model API error ({exc.status_code}): {exc.message}",
            status_code=exc.status_code,
        )
    if isinstance(exc, openai.APIError):
        return TransportError(TransportErrorKind.SERVER_ERROR, f"Model API error: {exc}")
    if isinstance(exc, openai.OpenAIError):
        # raised by the client itself, e.g. when no API key is configured
        return TransportError(TransportErrorKind.UNAUTHORIZED, f"Invalid API credentials: {exc}")
    return TransportError(TransportErrorKind.SERVER_ERROR, f"Extraction failed: {exc}")


class AgentTransport:
    """
    Extraction transport backed by a pydanticAI agent.

    The task's schema is bound as the agent's output type and the document is
    attached as binary content for a vision-capable model.
    """

    def __init__(
        self,
        model_name: str = "gpt-4o",
        *,
        instructions: str = "Extract the requested fields from the document.",
        download_timeout: float = 30.0,
        agent_factory: Optional[Callable[[Type[BaseModel]], Any]] = None,
    ):
        self.model_name = model_name
        self.instructions = instructions
        self.download_timeout = download_timeout
        self._agent_factory = agent_factory or self._build_agent

    def _build_agent(self, output_type: Type[BaseModel]) -> Agent[Any]:
        return Agent[Any](
            model=OpenAIChatModel(self.model_name),
            output_type=output_type,
            system_prompt=SYSTEM_PROMPT,
        )

    def load_document(self, task: ExtractionTask) -> bytes:
        if task.is_url:
            response = httpx.get(str(task.payload), timeout=self.download_timeout, follow_redirects=True)
            response.raise_for_status()
            data = response.content
        else:
            path = Path(task.payload)
            if not path.is_file():
                raise TaskValidationError(f"File not found: {path}")
            data = path.read_bytes()
        if len(data) > MAX_FILE_SIZE:
            raise TransportError(
                TransportErrorKind.PAYLOAD_TOO_LARGE,
                f"File too large. Maximum file size is {MAX_FILE_SIZE // (1024 * 1024)}MB.",
            )
        return data

    def __call__(self, task: ExtractionTask) -> ExtractionResult:
        report = task.validate()
        if not report.ok:
            raise TaskValidationError(
                f"Document validation failed: {', '.join(report.reasons)}", report.reasons
            )

        started = time.monotonic()
        try:
            data = self.load_document(task)
            prompt_parts: List[str] = [self.instructions, f"Document: {task.name} ({task.mime_type})"]
            inputs: List[Any] = [
                "\n\n".join(prompt_parts),
                BinaryContent(data=data, media_type=task.mime_type or "application/pdf"),
            ]
            agent = self._agent_factory(task.schema)
            result = agent.run_sync(inputs)
        except (TaskValidationError, TransportError):
            raise
        except Exception as exc:
            error = classify_exception(exc)
            logger.debug("Task %s: %s classified as %s", task.id, type(exc).__name__, error.kind.value)
            raise error from exc

        output = result.output
        record = output if isinstance(output, BaseModel) else task.schema.model_validate(output)
        extracted = record.model_dump(mode="json")
        required = [name for name, info in task.schema.model_fields.items() if info.is_required()]
        return ExtractionResult(
            data=extracted,
            confidence=score_confidence(extracted, required),
            processing_time=time.monotonic() - started,
            metadata={"model": self.model_name, "document_type": task.file_type_category},
        )

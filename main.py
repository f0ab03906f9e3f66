import logging
import re
from collections import deque
from pathlib import Path
from typing import List, Optional, Type

from dotenv import load_dotenv
from pydantic import BaseModel, Field, create_model
import typer

from batch_extraction.config import BatchConfig, RetryLoggingStyle
from batch_extraction.engine import BatchEngine
from batch_extraction.errors import AdmissionError, AdmissionReason, ConfigurationError
from batch_extraction.report import write_excel
from batch_extraction.task import ExtractionTask
from batch_extraction.transport import AgentTransport

load_dotenv()


app = typer.Typer(add_completion=False)

FIELD_NAME = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")


def build_field_schema(field_names: List[str]) -> Type[BaseModel]:
    """Schema with one optional string field per name."""
    fields = {}
    for name in field_names:
        if not FIELD_NAME.match(name):
            raise typer.BadParameter(
                f"Field name {name!r} must start with a letter and contain only letters, numbers, underscore"
            )
        fields[name] = (Optional[str], Field(default=None))
    return create_model("ExtractionFields", **fields)  # type: ignore[call-overload]


@app.command()
def process(
    files: List[Path],
    fields: List[str] = typer.Option(
        ..., "--field", "-f", help="Field to extract (repeat for several fields)"
    ),
    model_name: str = typer.Option("gpt-4o", "--model", help="OpenAI model used for extraction"),
    batch_size: Optional[int] = typer.Option(None, "--batch-size", help="Documents per batch [env: BATCH_SIZE]"),
    max_workers: Optional[int] = typer.Option(
        None, "--max-workers", help="Concurrent extractions per wave [env: MAX_WORKERS]"
    ),
    max_retries: Optional[int] = typer.Option(
        None, "--max-retries", help="Attempts per document [env: MAX_RETRIES]"
    ),
    max_retry_wait: Optional[int] = typer.Option(
        None, "--max-retry-wait", help="Backoff cap in seconds [env: MAX_RETRY_WAIT_TIME]"
    ),
    retry_logging_style: Optional[RetryLoggingStyle] = typer.Option(
        None, "--retry-logging-style", help="Per-attempt logging [env: RETRY_LOGGING_STYLE]"
    ),
    output: Path = typer.Option(
        Path("extractions.xlsx"),
        "--output",
        "-o",
        help="Output Excel file path",
    ),
    log_level: str = typer.Option(
        "INFO",
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    ),
):
    """
    Extract the requested fields from every document, in batches.
    """
    log_path = output.with_suffix(".log")
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_path),
        ],
    )
    logger = logging.getLogger(__name__)
    logger.info("Logging to %s", log_path)

    try:
        env_config = BatchConfig.from_env()
        overrides = {
            "batch_size": batch_size,
            "max_workers": max_workers,
            "max_retries": max_retries,
            "max_retry_wait_time": max_retry_wait,
            "retry_logging_style": retry_logging_style,
        }
        options = env_config.as_dict()
        options.update({k: v for k, v in overrides.items() if v is not None})
        config = BatchConfig(**options)
    except ConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc

    schema = build_field_schema(fields)
    engine = BatchEngine(config)
    transport = AgentTransport(model_name)

    pending = deque(
        ExtractionTask(id=f"doc_{index:04d}", payload=path, schema=schema)
        for index, path in enumerate(files, start=1)
    )
    while pending or len(engine.gate):
        while pending:
            task = pending[0]
            try:
                engine.add_to_batch(task)
            except AdmissionError as exc:
                if exc.reason is AdmissionReason.QUEUE_FULL:
                    break
                pending.popleft()
                typer.echo(f"{task.name}: rejected ({exc})")
                continue
            pending.popleft()
        engine.process_batch(transport)

    records = engine.aggregator.records()
    write_excel(records, output)
    for task, outcome in records:
        typer.echo(
            f"{task.name}: {task.status.value} after {outcome.attempts_used} attempt(s)"
            f" ({outcome.error_message or 'ok'})"
        )
    results = engine.get_batch_stats()["results"]
    typer.echo(
        f"Completed {results['completed']}/{results['total']}"
        f" (success rate {results['success_rate']:.0%})"
    )
    typer.echo(f"Wrote results to {output}")


def main():
    app()


if __name__ == "__main__":
    main()

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Sequence

import pandas as pd

from .aggregator import Record
from .result import ExtractionResult

logger = logging.getLogger(__name__)


def outcomes_to_dataframe(records: Sequence[Record]) -> pd.DataFrame:
    """
    Flatten aggregated outcomes into one row per document.

    Columns: document_id, document, status, attempts, confidence, error, <fields...>
    """
    rows: List[dict[str, Any]] = []
    for task, outcome in records:
        row: dict[str, Any] = {
            "document_id": task.id,
            "document": task.name,
            "status": task.status.value,
            "attempts": outcome.attempts_used,
            "confidence": None,
            "error": outcome.error_message,
        }
        if isinstance(outcome.result, ExtractionResult):
            row["confidence"] = outcome.result.confidence
            row.update(outcome.result.data)
        rows.append(row)
    return pd.DataFrame(rows)


def write_excel(records: Sequence[Record], output_path: Path) -> None:
    """Write outcomes to an Excel file with sheet 'extractions'."""
    df = outcomes_to_dataframe(records)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Writing results to %s", output_path)
    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name="extractions", index=False)

from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from .errors import ConfigurationError


class RetryLoggingStyle(str, Enum):
    LOG_MSG = "log_msg"
    JSON = "json"
    SILENT = "silent"


DEFAULT_BATCH_SIZE = 4
DEFAULT_MAX_WORKERS = 2
DEFAULT_MAX_RETRIES = 80
DEFAULT_MAX_RETRY_WAIT_TIME = 30


@dataclass(frozen=True)
class BatchConfig:
    """
    Immutable engine settings, validated on construction.

    batch_size: tasks admitted before the queue reports full, and the most
        withdrawn by one process_batch call.
    max_workers: concurrency ceiling within a wave.
    max_retries: attempts per task before giving up (at least one is made).
    max_retry_wait_time: backoff cap in seconds (never above 30).
    """

    batch_size: int = DEFAULT_BATCH_SIZE
    max_workers: int = DEFAULT_MAX_WORKERS
    max_retries: int = DEFAULT_MAX_RETRIES
    max_retry_wait_time: int = DEFAULT_MAX_RETRY_WAIT_TIME
    retry_logging_style: RetryLoggingStyle = RetryLoggingStyle.LOG_MSG

    def __post_init__(self) -> None:
        for name in ("batch_size", "max_workers", "max_retries", "max_retry_wait_time"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
        if self.batch_size <= 0:
            raise ConfigurationError("Batch size must be greater than 0")
        if self.max_workers <= 0:
            raise ConfigurationError("Maximum workers must be greater than 0")
        if self.max_retries < 0:
            raise ConfigurationError("Maximum retries cannot be negative")
        if self.max_retry_wait_time < 0:
            raise ConfigurationError("Maximum retry wait time cannot be negative")
        try:
            style = RetryLoggingStyle(self.retry_logging_style)
        except ValueError as exc:
            raise ConfigurationError(
                f"Unknown retry logging style: {self.retry_logging_style!r}"
            ) from exc
        # frozen dataclass: normalize plain strings to the enum
        object.__setattr__(self, "retry_logging_style", style)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "BatchConfig":
        """
        Build a config from BATCH_SIZE, MAX_WORKERS, MAX_RETRIES,
        MAX_RETRY_WAIT_TIME and RETRY_LOGGING_STYLE. Unset values keep defaults.
        """
        env = os.environ if environ is None else environ
        options: dict[str, Any] = {}
        for field_name, var in (
            ("batch_size", "BATCH_SIZE"),
            ("max_workers", "MAX_WORKERS"),
            ("max_retries", "MAX_RETRIES"),
            ("max_retry_wait_time", "MAX_RETRY_WAIT_TIME"),
        ):
            raw = (env.get(var) or "").strip()
            if not raw:
                continue
            try:
                options[field_name] = int(raw)
            except ValueError as exc:
                raise ConfigurationError(f"{var} must be an integer, got {raw!r}") from exc
        style = (env.get("RETRY_LOGGING_STYLE") or "").strip()
        if style:
            options["retry_logging_style"] = style
        return cls(**options)

    def as_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["retry_logging_style"] = self.retry_logging_style.value
        return data

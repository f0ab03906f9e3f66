import pytest

from batch_extraction.config import BatchConfig, RetryLoggingStyle
from batch_extraction.errors import ConfigurationError


def test_defaults_match_sdk_defaults():
    config = BatchConfig()
    assert config.batch_size == 4
    assert config.max_workers == 2
    assert config.max_retries == 80
    assert config.max_retry_wait_time == 30
    assert config.retry_logging_style is RetryLoggingStyle.LOG_MSG


@pytest.mark.parametrize(
    "options",
    [
        {"batch_size": 0},
        {"max_workers": 0},
        {"max_workers": -2},
        {"max_retries": -1},
        {"max_retry_wait_time": -5},
        {"retry_logging_style": "loud"},
        {"batch_size": "4"},
    ],
)
def test_invalid_options_fail_fast(options):
    with pytest.raises(ConfigurationError):
        BatchConfig(**options)


def test_string_style_is_normalized():
    config = BatchConfig(retry_logging_style="silent")
    assert config.retry_logging_style is RetryLoggingStyle.SILENT
    assert config.as_dict()["retry_logging_style"] == "silent"


def test_config_is_immutable():
    config = BatchConfig()
    with pytest.raises(AttributeError):
        config.batch_size = 10


def test_from_env_reads_variables():
    config = BatchConfig.from_env(
        {
            "BATCH_SIZE": "8",
            "MAX_WORKERS": "3",
            "MAX_RETRIES": "5",
            "MAX_RETRY_WAIT_TIME": "10",
            "RETRY_LOGGING_STYLE": "json",
        }
    )
    assert config == BatchConfig(8, 3, 5, 10, RetryLoggingStyle.JSON)


def test_from_env_blank_values_keep_defaults():
    assert BatchConfig.from_env({"BATCH_SIZE": "", "MAX_WORKERS": "  "}) == BatchConfig()


def test_from_env_rejects_non_integers():
    with pytest.raises(ConfigurationError, match="MAX_WORKERS"):
        BatchConfig.from_env({"MAX_WORKERS": "many"})

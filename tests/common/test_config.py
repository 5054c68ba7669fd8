from __future__ import annotations

import logging

import pytest

from refrecon.config import (
    ConfigurationError,
    InvalidConfigurationError,
    MissingConfigurationError,
    configure_logging,
    env_flag,
    env_positive_int,
    get_reconciliation_config,
    parse_source_priorities,
    require_env_vars,
)
from refrecon.config.logging import LOG_LEVEL_ENV


def test_require_env_vars_returns_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "value")

    result = require_env_vars(["EXAMPLE_VAR"])

    assert result["EXAMPLE_VAR"] == "value"


def test_require_env_vars_raises_when_any_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_VAR", raising=False)
    monkeypatch.setenv("BLANK_VAR", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_VAR", "BLANK_VAR"])

    assert "BLANK_VAR, MISSING_VAR" in str(exc.value)
    assert exc.value.variables == ("BLANK_VAR", "MISSING_VAR")


def test_env_flag_parses_booleans(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FLAG_VAR", "Yes")
    assert env_flag("FLAG_VAR") is True

    monkeypatch.setenv("FLAG_VAR", "off")
    assert env_flag("FLAG_VAR", default=True) is False

    monkeypatch.delenv("FLAG_VAR")
    assert env_flag("FLAG_VAR", default=True) is True


def test_env_flag_rejects_garbage(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FLAG_VAR", "maybe")

    with pytest.raises(InvalidConfigurationError) as exc:
        env_flag("FLAG_VAR")

    assert (exc.value.variable, exc.value.value) == ("FLAG_VAR", "maybe")
    assert str(exc.value) == "FLAG_VAR must be a boolean flag, got 'maybe'"


@pytest.mark.parametrize("raw", ["zero", "0", "-3"])
def test_env_positive_int_rejects_invalid_values(
    monkeypatch: pytest.MonkeyPatch, raw: str
) -> None:
    monkeypatch.setenv("WORKERS_VAR", raw)

    with pytest.raises(ConfigurationError):
        env_positive_int("WORKERS_VAR", default=1)


def test_parse_source_priorities_normalises_names() -> None:
    ranks = parse_source_priorities(" reuters=10, Bloomberg = 20 ,")

    assert ranks == {"REUTERS": 10, "BLOOMBERG": 20}


@pytest.mark.parametrize("raw", ["REUTERS", "=10", "REUTERS=ten", " , "])
def test_parse_source_priorities_rejects_malformed_input(raw: str) -> None:
    with pytest.raises(ConfigurationError) as exc:
        parse_source_priorities(raw)

    assert exc.value.variable == "REFRECON_SOURCE_PRIORITIES"


def test_reconciliation_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "REFRECON_SOURCE_PRIORITIES",
        "REFRECON_INTERNAL_ID_PREFIX",
        "REFRECON_ALLOW_TIMESTAMP_IDS",
        "REFRECON_BATCH_WORKERS",
    ):
        monkeypatch.delenv(name, raising=False)

    config = get_reconciliation_config()

    assert config.batch_workers == 1
    assert config.policy.internal_id_prefix == "IMS"
    assert config.policy.allow_timestamp_fallback is False
    assert config.policy.priorities.rank("REUTERS") == 10
    assert config.policy.priorities.rank("RIMES") == 50


def test_reconciliation_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("REFRECON_SOURCE_PRIORITIES", "BLOOMBERG=1,REUTERS=2")
    monkeypatch.setenv("REFRECON_INTERNAL_ID_PREFIX", "REF")
    monkeypatch.setenv("REFRECON_ALLOW_TIMESTAMP_IDS", "true")
    monkeypatch.setenv("REFRECON_BATCH_WORKERS", "4")

    config = get_reconciliation_config()

    assert config.batch_workers == 4
    assert config.policy.internal_id_prefix == "REF"
    assert config.policy.allow_timestamp_fallback is True
    assert config.policy.priorities.outranks("BLOOMBERG", "REUTERS")
    assert not config.policy.priorities.is_known("MARKIT")



@pytest.fixture
def basic_config_calls(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, object]]:
    calls: list[dict[str, object]] = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))
    return calls


def test_configure_logging_reads_level_from_environment(
    monkeypatch: pytest.MonkeyPatch, basic_config_calls: list[dict[str, object]]
) -> None:
    monkeypatch.setenv(LOG_LEVEL_ENV, "warning")

    level = configure_logging()

    assert level == logging.WARNING
    [call] = basic_config_calls
    assert call["level"] == logging.WARNING
    assert call["format"] == "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def test_configure_logging_explicit_level_wins(
    monkeypatch: pytest.MonkeyPatch, basic_config_calls: list[dict[str, object]]
) -> None:
    monkeypatch.setenv(LOG_LEVEL_ENV, "ERROR")

    assert configure_logging(level=logging.DEBUG, force=True) == logging.DEBUG
    assert basic_config_calls[0]["force"] is True


def test_configure_logging_falls_back_on_unknown_level(
    monkeypatch: pytest.MonkeyPatch,
    basic_config_calls: list[dict[str, object]],
    caplog: pytest.LogCaptureFixture,
) -> None:
    monkeypatch.setenv(LOG_LEVEL_ENV, "chatty")

    with caplog.at_level(logging.WARNING, logger="refrecon.config.logging"):
        level = configure_logging()

    assert level == logging.INFO
    assert basic_config_calls[0]["level"] == logging.INFO
    assert "REFRECON_LOG_LEVEL='chatty'" in caplog.text

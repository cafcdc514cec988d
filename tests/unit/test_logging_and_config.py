from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from partstracker import logging as tracker_logging
from partstracker.config import Settings, load_settings


def test_setup_logger_is_idempotent() -> None:
    logger = tracker_logging.setup_logger("partstracker.tests.idempotent")
    tracker_logging.setup_logger("partstracker.tests.idempotent")

    consoles = [handler for handler in logger.handlers if getattr(handler, "_partstracker_console", False)]
    assert len(consoles) == 1
    assert logger.propagate is True


def test_level_comes_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PARTSTRACKER_LOG_LEVEL", "warning")

    logger = tracker_logging.setup_logger("partstracker.tests.level", level="DEBUG")

    assert logger.level == logging.WARNING


def test_json_formatter_carries_operation_context() -> None:
    record = logging.LogRecord("partstracker.repositories", logging.ERROR, __file__, 1, "boom %s", ("now",), None)
    record.operation = "save_part"
    record.user_id = "u1"
    record.context = {"component": "GPU"}

    payload = json.loads(tracker_logging.JsonAuditFormatter().format(record))

    assert payload["message"] == "boom now"
    assert payload["operation"] == "save_part"
    assert payload["user_id"] == "u1"
    assert payload["context"] == {"component": "GPU"}


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("PARTSTRACKER_CONFIG", raising=False)
    monkeypatch.delenv("PARTSTRACKER_DB_URL", raising=False)

    settings = load_settings()

    assert isinstance(settings, Settings)
    assert settings.default_currency == "PHP"
    assert settings.database_url.startswith("sqlite:///")


def test_yaml_file_then_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text("database_url: sqlite:///from-yaml.db\nport: 9000\nunknown_key: 1\n", encoding="utf-8")
    monkeypatch.setenv("PARTSTRACKER_CONFIG", str(path))
    monkeypatch.setenv("PARTSTRACKER_PORT", "9100")

    settings = load_settings()

    assert settings.database_url == "sqlite:///from-yaml.db"
    assert settings.port == 9100


def test_yaml_must_be_a_mapping(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError, match="mapping"):
        load_settings(path)

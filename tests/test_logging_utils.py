from __future__ import annotations

import logging
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from employee_audit import logging_utils


def _settings(log_file: str | None, channel_dir: str | None = None) -> SimpleNamespace:
    return SimpleNamespace(
        logging=SimpleNamespace(level="INFO", file=log_file, channel_dir=channel_dir),
    )


@pytest.fixture(autouse=True)
def _detach_channel_handlers():
    yield
    logging_utils._configure_channels(None)
    logging.getLogger(logging_utils.AUDIT_CHANNEL).setLevel(logging.NOTSET)


@patch("employee_audit.logging_utils.load_settings")
@patch("employee_audit.logging_utils.logging.basicConfig")
def test_configure_logging_stream_only(
    mock_basic_config: MagicMock,
    mock_load_settings: MagicMock,
) -> None:
    mock_load_settings.return_value = _settings(None)

    logging_utils.configure_logging()

    kwargs = mock_basic_config.call_args.kwargs
    assert kwargs["force"] is True
    assert kwargs["level"] == logging.INFO
    assert len(kwargs["handlers"]) == 1


@patch("employee_audit.logging_utils.load_settings")
@patch("employee_audit.logging_utils.logging.FileHandler", side_effect=OSError("permission denied"))
@patch("employee_audit.logging_utils._logger")
def test_configure_logging_file_handler_error(
    mock_logger: MagicMock,
    _mock_file_handler: MagicMock,
    mock_load_settings: MagicMock,
) -> None:
    mock_load_settings.return_value = _settings("./logs/app.log")

    with patch("employee_audit.logging_utils.logging.basicConfig"):
        logging_utils.configure_logging()

    mock_logger.warning.assert_called_once()


@patch("employee_audit.logging_utils.load_settings")
@patch("employee_audit.logging_utils.logging.basicConfig")
def test_channel_files_are_written(
    _mock_basic_config: MagicMock,
    mock_load_settings: MagicMock,
    tmp_path,
) -> None:
    mock_load_settings.return_value = _settings(None, str(tmp_path / "channels"))

    logging_utils.configure_logging()
    audit = logging_utils.get_channel_logger(logging_utils.AUDIT_CHANNEL)
    audit.setLevel(logging.INFO)
    audit.info("Data access audit: {}")
    for handler in logging_utils._channel_handlers:
        handler.flush()

    files = sorted(path.name for path in (tmp_path / "channels").iterdir())
    assert files == sorted(f"{channel.lower()}.log" for channel in logging_utils.CHANNELS)
    assert "Data access audit" in (tmp_path / "channels" / "audit.log").read_text()


@patch("employee_audit.logging_utils.load_settings")
@patch("employee_audit.logging_utils.logging.basicConfig")
def test_reconfigure_replaces_channel_handlers(
    _mock_basic_config: MagicMock,
    mock_load_settings: MagicMock,
    tmp_path,
) -> None:
    mock_load_settings.return_value = _settings(None, str(tmp_path))

    logging_utils.configure_logging()
    logging_utils.configure_logging()

    audit = logging.getLogger(logging_utils.AUDIT_CHANNEL)
    owned = [h for h in audit.handlers if h in logging_utils._channel_handlers]
    assert len(owned) == 1


def test_unknown_channel_is_rejected() -> None:
    with pytest.raises(ValueError):
        logging_utils.get_channel_logger("BILLING")


def test_get_logger_auto_configures(monkeypatch) -> None:
    monkeypatch.setattr(logging_utils, "_logging_configured", False)

    calls = {"count": 0}

    def fake_configure() -> None:
        calls["count"] += 1
        monkeypatch.setattr(logging_utils, "_logging_configured", True)

    monkeypatch.setattr(logging_utils, "configure_logging", fake_configure)

    logger = logging_utils.get_logger("test.logger")
    assert logger.name == "test.logger"
    assert calls["count"] == 1

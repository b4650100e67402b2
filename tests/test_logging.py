import json
import logging
from pathlib import Path

import pytest

from incognitomail.config import load_settings
from incognitomail.core.logging import QUIET_LOGGERS, get_logger, setup_logging

REQUIRED = {
    "POSTFIX_DOMAIN": "@example.com",
    "POSTFIX_MAP_FILE_PATH": "/tmp/virtual",
}


@pytest.fixture(autouse=True)
def restore_root_logger():
    handlers, level = logging.root.handlers[:], logging.root.level
    yield
    for handler in logging.root.handlers:
        if handler not in handlers:
            handler.close()
    logging.root.handlers = handlers
    logging.root.setLevel(level)


def test_json_lines_go_to_log_file(tmp_path: Path) -> None:
    log_file = tmp_path / "incognitomail.log"
    setup_logging(load_settings(LOG_FORMAT="json", LOG_FILE=str(log_file), **REQUIRED))

    get_logger("incognitomail.test").info("Command actor started")
    for handler in logging.root.handlers:
        handler.flush()

    record = json.loads(log_file.read_text().splitlines()[-1])
    assert record["message"] == "Command actor started"
    assert record["level"] == "INFO"
    assert record["logger"] == "incognitomail.test"


def test_level_and_quiet_loggers() -> None:
    setup_logging(load_settings(LOG_LEVEL="DEBUG", **REQUIRED))

    assert logging.root.level == logging.DEBUG
    for name in QUIET_LOGGERS:
        assert logging.getLogger(name).level == logging.WARNING


def test_repeated_setup_replaces_handlers() -> None:
    settings = load_settings(**REQUIRED)

    setup_logging(settings)
    setup_logging(settings)

    assert len(logging.root.handlers) == 1

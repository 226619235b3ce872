import logging

import pytest
from flask import Flask

from pickem.utils.logging_config import (
    SYNC_LOGGERS,
    ContextualLogger,
    RequestContextFilter,
    setup_logging,
)


@pytest.fixture
def restore_loggers():
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers[:]:
        if handler not in before:
            root.removeHandler(handler)
            handler.close()
    for name in SYNC_LOGGERS:
        for handler in logging.getLogger(name).handlers[:]:
            logging.getLogger(name).removeHandler(handler)
            handler.close()
    root.setLevel(level)


def test_contextual_logger_appends_context(caplog):
    log = ContextualLogger("pickem.test", {"user_id": 3, "game_id": 9})

    with caplog.at_level(logging.INFO, logger="pickem.test"):
        log.info("Pick saved")

    assert caplog.messages == ["Pick saved [user_id=3 game_id=9]"]


def test_request_filter_outside_requests():
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)

    assert RequestContextFilter().filter(record) is True
    assert (record.method, record.path, record.user_id) == ("-", "-", "-")


def test_request_filter_inside_request(app):
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)

    with app.test_request_context("/api/picks", method="POST"):
        RequestContextFilter().filter(record)

    assert (record.method, record.path) == ("POST", "/api/picks")


def test_setup_logging_writes_files(tmp_path, restore_loggers):
    app = Flask(__name__)
    app.config.update(
        TESTING=True,
        LOG_LEVEL="debug",
        LOG_TO_CONSOLE=False,
        LOG_TO_FILE=True,
        LOG_DIR=str(tmp_path),
    )

    setup_logging(app)
    logging.getLogger("pickem.utils.data_sync").info("Synced 32 teams")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert {path.name for path in tmp_path.iterdir()} >= {
        "pickem.log",
        "errors.log",
        "sync.log",
    }
    assert "Synced 32 teams" in (tmp_path / "sync.log").read_text()
    assert logging.getLogger("apscheduler").level == logging.WARNING

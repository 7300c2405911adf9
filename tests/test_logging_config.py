"""Tests for logging configuration."""

import json
import logging

from nexus.logging_config import JSONFormatter, setup_logging


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="nexus.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Turn %s done",
        args=("t1",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_context():
    data = json.loads(JSONFormatter().format(make_record(context={"conversation_id": "c1"})))

    assert data["message"] == "Turn t1 done"
    assert data["level"] == "INFO"
    assert data["context"] == {"conversation_id": "c1"}


def test_json_formatter_without_context():
    data = json.loads(JSONFormatter().format(make_record()))
    assert "context" not in data


def test_setup_logging_writes_file(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    log_file = tmp_path / "logs" / "app.log"

    try:
        setup_logging(log_level="DEBUG", log_file=str(log_file), console_format="text")
        logging.getLogger("nexus.test").info("hello")
        for handler in root.handlers:
            handler.flush()

        assert json.loads(log_file.read_text().splitlines()[-1])["message"] == "hello"
        assert logging.getLogger("httpx").level == logging.DEBUG
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)
        for name in ("httpx", "httpcore", "anthropic", "aiosqlite"):
            logging.getLogger(name).setLevel(logging.NOTSET)

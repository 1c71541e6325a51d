"""Structured event log and the human-facing logger."""

from __future__ import annotations

import io
import json
from pathlib import Path

from termchat.errors import APIError, error_detail, format_error
from termchat.utils.logging_utils import ChatLogger, EventLog, _prepare_for_log


def test_event_log_writes_jsonl(tmp_path) -> None:
    log = EventLog(enabled=True, log_dir=tmp_path, max_chars=0)
    log.log_event("llm_request", model="m", prompt="hello", error=ValueError("bad"))

    files = list(tmp_path.glob("termchat-*.jsonl"))
    assert len(files) == 1
    record = json.loads(files[0].read_text(encoding="utf-8").strip())
    assert record["event"] == "llm_request"
    assert record["session_id"] == log.session_id
    assert record["prompt"] == "hello"
    assert record["error"] == "ValueError: bad"


def test_disabled_event_log_creates_nothing(tmp_path) -> None:
    log = EventLog(enabled=False, log_dir=tmp_path / "logs")
    log.log_event("anything")
    assert log.path is None
    assert not (tmp_path / "logs").exists()


def test_prepare_for_log_truncates_nested_values() -> None:
    out = _prepare_for_log({"a": ["x" * 50], "b": b"bytes"}, max_chars=20)
    assert len(out["a"][0]) == 20
    assert "truncated:50" in out["a"][0]
    assert out["b"] == "bytes"


def test_chat_logger_levels() -> None:
    stream = io.StringIO()
    logger = ChatLogger(debug_mode=False, stream=stream, event_log=EventLog(enabled=False))
    logger.debug("hidden")
    logger.info("visible")
    logger.error("went wrong")
    logger.any("raw line")
    assert stream.getvalue().splitlines() == ["[info] visible", "ERR: went wrong", "raw line"]

    logger.debug_mode = True
    logger.debug("shown")
    assert stream.getvalue().splitlines()[-1] == "[debug] shown"


def test_chat_logger_mirrors_to_event_log(tmp_path) -> None:
    log = EventLog(enabled=True, log_dir=tmp_path)
    logger = ChatLogger(stream=io.StringIO(), event_log=log)
    logger.error("boom", command=":help")
    logger.event("session_end", messages=3)

    lines = [json.loads(line) for line in Path(log.path).read_text(encoding="utf-8").splitlines()]
    assert [r["event"] for r in lines] == ["log_error", "session_end"]
    assert lines[0]["command"] == ":help"


def test_error_helpers() -> None:
    assert format_error("oops") == "ERR: oops"
    assert format_error("ERR: already") == "ERR: already"
    assert format_error("", code="empty") == "ERR: empty"
    detail = error_detail(APIError(503, "busy"), retryable=True)
    assert detail == {"code": "http_503", "message": "api error 503: busy", "retryable": True}

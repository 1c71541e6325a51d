"""Session logging utilities.

Provides structured JSONL event logging for a chat session and the
human-facing ``ChatLogger`` that every component receives explicitly.
"""

from __future__ import annotations

import json
import os
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, TextIO

from termchat.config import DEBUG_MODE, EXEC_LOG_DIR, EXEC_LOG_ENABLED, EXEC_LOG_MAX_CHARS
from termchat.errors import format_error


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _truncate_for_log(value: str, max_chars: int) -> str:
    """Truncate a string value for logging if *max_chars* is set."""
    if max_chars <= 0:
        return value
    if len(value) <= max_chars:
        return value
    marker = f"...[truncated:{len(value)}]"
    keep = max(0, max_chars - len(marker))
    return value[:keep] + marker


def _prepare_for_log(value: Any, max_chars: int = 0) -> Any:
    """Recursively prepare a value for JSON serialization in logs."""
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, str):
        return _truncate_for_log(value, max_chars)
    if isinstance(value, bytes):
        return _truncate_for_log(value.decode("utf-8", errors="replace"), max_chars)
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, BaseException):
        return _truncate_for_log(f"{type(value).__name__}: {value}", max_chars)
    if isinstance(value, dict):
        return {str(k): _prepare_for_log(v, max_chars) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_prepare_for_log(v, max_chars) for v in value]
    try:
        json.dumps(value, ensure_ascii=False)
        return value
    except Exception:
        return _truncate_for_log(repr(value), max_chars)


# ---------------------------------------------------------------------------
# Structured event log
# ---------------------------------------------------------------------------

class EventLog:
    """Append-only JSONL log, one file per process session.

    The file is created lazily on the first event. A failure to create or
    write the file disables the log for the rest of the session.
    """

    def __init__(
        self,
        *,
        enabled: bool = EXEC_LOG_ENABLED,
        log_dir: Path = EXEC_LOG_DIR,
        max_chars: int = EXEC_LOG_MAX_CHARS,
    ) -> None:
        self.enabled = bool(enabled)
        self.log_dir = Path(log_dir)
        self.max_chars = max(0, int(max_chars))
        self.session_id = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        self._path: Path | None = None
        self._failed = False
        self._lock = threading.Lock()

    def _ensure_file(self) -> Path | None:
        if not self.enabled or self._failed:
            return None
        if self._path is not None:
            return self._path
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            filename = f"termchat-{self.session_id}-pid{os.getpid()}.jsonl"
            self._path = (self.log_dir / filename).resolve()
            return self._path
        except Exception as exc:
            self._failed = True
            print(f"[warn] failed to initialize execution log file: {exc}", file=sys.stderr)
            return None

    @property
    def path(self) -> str | None:
        """Path to the current session's log file, or None."""
        path = self._ensure_file()
        return str(path) if path else None

    def log_event(self, event: str, **fields: Any) -> None:
        """Append a structured JSON event.

        Each record includes a UTC timestamp, session ID, event name,
        and any additional keyword-argument fields (recursively sanitised
        via ``_prepare_for_log``).
        """
        if not self.enabled:
            return
        path = self._ensure_file()
        if path is None:
            return
        record: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "session_id": self.session_id,
            "event": str(event or "unknown"),
        }
        record.update({k: _prepare_for_log(v, self.max_chars) for k, v in fields.items()})
        line = json.dumps(record, ensure_ascii=False)
        try:
            with self._lock:
                with path.open("a", encoding="utf-8") as f:
                    f.write(line + "\n")
        except Exception as exc:
            self._failed = True
            print(f"[warn] failed to write execution log: {exc}", file=sys.stderr)


# ---------------------------------------------------------------------------
# Human-facing logger
# ---------------------------------------------------------------------------

class ChatLogger:
    """Debug / error / info / any logger handed to every component.

    ``debug`` only prints in debug mode; ``error`` renders an ``ERR:`` line;
    ``any`` prints the message untouched. Every call is mirrored into the
    event log under a ``log_<level>`` event name.
    """

    def __init__(
        self,
        *,
        debug_mode: bool = DEBUG_MODE,
        stream: TextIO | None = None,
        event_log: EventLog | None = None,
    ) -> None:
        self.debug_mode = bool(debug_mode)
        self._stream = stream
        self.event_log = event_log if event_log is not None else EventLog()
        self._lock = threading.Lock()

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stderr

    def _write(self, text: str) -> None:
        with self._lock:
            print(text, file=self.stream, flush=True)

    def debug(self, message: str, **fields: Any) -> None:
        self.event_log.log_event("log_debug", message=message, **fields)
        if self.debug_mode:
            self._write(f"[debug] {message}")

    def error(self, message: Any, **fields: Any) -> None:
        self.event_log.log_event("log_error", message=str(message), **fields)
        self._write(format_error(message))

    def info(self, message: str, **fields: Any) -> None:
        self.event_log.log_event("log_info", message=message, **fields)
        self._write(f"[info] {message}")

    def any(self, message: str, **fields: Any) -> None:
        self.event_log.log_event("log_any", message=message, **fields)
        self._write(message)

    def event(self, event: str, **fields: Any) -> None:
        """Record a structured event without printing anything."""
        self.event_log.log_event(event, **fields)

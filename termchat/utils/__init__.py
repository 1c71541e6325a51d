"""Shared utility helpers used across termchat modules."""

from termchat.utils.logging_utils import (
    ChatLogger,
    EventLog,
)
from termchat.utils.text_utils import (
    content_hash,
    sanitize_message,
    strip_ansi,
    _truncate_middle,
)

__all__ = [
    "ChatLogger",
    "EventLog",
    "content_hash",
    "sanitize_message",
    "strip_ansi",
    "_truncate_middle",
]

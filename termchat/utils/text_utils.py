"""Text helpers shared by the message store and command handlers."""

from __future__ import annotations

import hashlib
import re

from termchat.config import AI_PREFIX, SYSTEM_PREFIX, USER_PREFIX

# CSI and OSC escape sequences, plus any stray ESC + single char.
_ANSI_RE = re.compile(r"\x1b(?:\[[0-?]*[ -/]*[@-~]|\][^\x07\x1b]*(?:\x07|\x1b\\)|[@-Z\\-_])")
_SPEAKER_PREFIXES = (USER_PREFIX, AI_PREFIX, SYSTEM_PREFIX)


def strip_ansi(text: str) -> str:
    return _ANSI_RE.sub("", str(text or ""))


def strip_speaker_prefix(text: str) -> str:
    """Drop one leading speaker prefix (``You:``, ``AI:``, ``System:``)."""
    s = str(text or "").lstrip()
    for prefix in _SPEAKER_PREFIXES:
        if s.startswith(prefix):
            return s[len(prefix):].lstrip()
    return s


def sanitize_message(text: str) -> str:
    """Remove non-content markup so equal content compares equal."""
    return strip_speaker_prefix(strip_ansi(text)).strip()


def content_hash(text: str) -> str:
    return hashlib.sha256(sanitize_message(text).encode("utf-8")).hexdigest()


def _truncate_middle(text: str, max_chars: int = 4000) -> str:
    """Keep head + tail of *text* so the model can still see endings."""
    s = str(text or "")
    if len(s) <= max_chars:
        return s
    marker = f"\n...[truncated {len(s)} chars total]...\n"
    keep = max_chars - len(marker)
    if keep <= 0:
        return marker.strip()
    head = max(0, keep // 2)
    tail = max(0, keep - head)
    return s[:head] + marker + s[-tail:]

"""Configuration and constants for the terminal chat session.

This module centralises every environment-variable lookup, compile-time
constant, and small helper used to derive them so that the rest of the
codebase can simply ``from termchat.config import …``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent
ENV_FILE = (PROJECT_ROOT / ".env").resolve()
load_dotenv(dotenv_path=ENV_FILE)


# ---------------------------------------------------------------------------
# Helpers for parsing env vars
# ---------------------------------------------------------------------------
def _resolve_env_path(name: str, default: str) -> Path:
    raw = os.getenv(name, default)
    text = str(raw or "").strip() or default
    path = Path(text).expanduser()
    if not path.is_absolute():
        path = (PROJECT_ROOT / path).resolve()
    return path


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() not in {"0", "false", "no", "off"}


def _env_int(name: str, default: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except Exception:
        return default


def _env_float(name: str, default: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except Exception:
        return default


# ---------------------------------------------------------------------------
# Application identity
# ---------------------------------------------------------------------------
APPLICATION_NAME = "termchat"
CURRENT_VERSION = "v0.4.0"

# ---------------------------------------------------------------------------
# Credentials / AI service
# ---------------------------------------------------------------------------
API_KEY_ENV = "API_KEY"
GEMINI_MODEL = (os.getenv("GEMINI_MODEL") or "gemini-2.0-flash").strip()
GEMINI_BASE_URL = (
    os.getenv("GEMINI_BASE_URL") or "https://generativelanguage.googleapis.com/v1beta"
).strip()
GEMINI_TIMEOUT = max(1, _env_int("GEMINI_TIMEOUT", 60))
GEMINI_TEMPERATURE = _env_float("GEMINI_TEMPERATURE", 0.9)
VERIFY_API_KEY = _env_flag("VERIFY_API_KEY", True)

# ---------------------------------------------------------------------------
# Retry policy
# ---------------------------------------------------------------------------
RETRY_MAX_ATTEMPTS = max(1, _env_int("RETRY_MAX_ATTEMPTS", 3))
RETRY_BASE_DELAY = max(0.0, _env_float("RETRY_BASE_DELAY", 1.0))
# Default budget covers every attempt timing out plus every backoff wait.
RETRY_MAX_ELAPSED = max(
    0.0,
    _env_float(
        "RETRY_MAX_ELAPSED",
        RETRY_MAX_ATTEMPTS * GEMINI_TIMEOUT
        + sum(RETRY_BASE_DELAY * 2**i for i in range(RETRY_MAX_ATTEMPTS - 1)),
    ),
)
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504, 529})

# ---------------------------------------------------------------------------
# Session behaviour
# ---------------------------------------------------------------------------
DEBUG_MODE = _env_flag("DEBUG_MODE", False)
SHOW_TOKEN_COUNT = _env_flag("SHOW_TOKEN_COUNT", False)
HISTORY_SIZE = max(1, _env_int("HISTORY_SIZE", 10))
TYPING_DELAY = max(0.0, _env_float("TYPING_DELAY", 0.01))
MAX_READ_ERRORS = max(1, _env_int("MAX_READ_ERRORS", 5))
HEARTBEAT_INTERVAL = max(0.0, _env_float("HEARTBEAT_INTERVAL", 0.0))

# ---------------------------------------------------------------------------
# Release check
# ---------------------------------------------------------------------------
RELEASE_API_URL = (
    os.getenv("RELEASE_API_URL") or "https://api.github.com/repos/termchat/termchat/releases"
).strip().rstrip("/")
RELEASE_TIMEOUT = max(1, _env_int("RELEASE_TIMEOUT", 10))
RELEASE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S UTC"

# ---------------------------------------------------------------------------
# Execution logging
# ---------------------------------------------------------------------------
EXEC_LOG_ENABLED = _env_flag("EXEC_LOG_ENABLED", False)
EXEC_LOG_DIR = _resolve_env_path("EXEC_LOG_DIR", "logs")
EXEC_LOG_MAX_CHARS = max(0, _env_int("EXEC_LOG_MAX_CHARS", 0))

# ---------------------------------------------------------------------------
# Speakers and display
# ---------------------------------------------------------------------------
COMMAND_PREFIX = ":"
USER_PREFIX = "You:"
AI_PREFIX = "AI:"
SYSTEM_PREFIX = "System:"
SEPARATOR = "---"

# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------
CONTEXT_PROMPT = "Hello! How can I assist you today?"
SHUTDOWN_PROMPT = (
    "The user has issued the {command} command to end this {app} session. "
    "Reply with a short, friendly farewell message as the assistant."
)
HELP_PROMPT = (
    "The user asked for help inside the {app} terminal chat. Briefly introduce "
    "these available commands in a friendly tone:\n{commands}"
)
SUMMARIZE_PROMPT = (
    "Summarize the conversation so far in a few concise bullet points. "
    "Keep names, numbers and decisions."
)
TRANSLATE_PROMPT = (
    "Translate the following text to {language}. Return only the translation.\n\n{text}"
)
RELEASE_NOTES_PROMPT = (
    "The user ran {command} in {app}. The installed version is {current}. "
    "The latest release is {tag} ({name}), published {date}. Summarize these "
    "release notes for the user:\n\n{body}"
)
LATEST_VERSION_PROMPT = (
    "The user ran {command} in {app}. Tell the user they are already on the "
    "latest version, {current}."
)


@dataclass
class ChatConfig:
    """History settings for a session.

    ``history_size`` bounds the store at twice its value; the window sent to
    the AI holds the last ``history_size`` messages.
    """

    history_size: int = HISTORY_SIZE

    @property
    def max_stored(self) -> int:
        return 2 * max(1, int(self.history_size))

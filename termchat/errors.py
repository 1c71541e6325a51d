"""Shared error taxonomy for the chat session and its collaborators."""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any


class TermChatError(Exception):
    """Base class for every error raised by termchat."""


class APIError(TermChatError):
    """A remote service answered with a non-success status."""

    def __init__(self, status_code: int, message: str = "", *, provider: str = "api") -> None:
        self.status_code = int(status_code)
        self.message = str(message or "").strip()
        self.provider = provider
        super().__init__(f"{provider} error {self.status_code}: {self.message}")

    @property
    def is_server_error(self) -> bool:
        return 500 <= self.status_code < 600


class MaxRetriesExceeded(TermChatError):
    """Every allowed attempt failed with a retryable error."""

    def __init__(self, attempts: int, last_error: BaseException | None = None, *, label: str = "") -> None:
        self.attempts = int(attempts)
        self.last_error = last_error
        self.label = label
        what = f"{label}: " if label else ""
        super().__init__(f"{what}maximum retries ({self.attempts}) exceeded")


class OperationCancelled(TermChatError):
    """The session cancellation signal fired while work was pending."""


class CollaboratorUnavailable(TermChatError):
    """The AI client handle is closed or otherwise unusable."""


class SessionStartError(TermChatError):
    """The AI client could not be constructed or verified at startup."""


class SessionRenewError(TermChatError):
    """A replacement AI client could not be constructed."""


class CommandError(TermChatError):
    """A command handler could not complete its work."""


class ContentBlocked(TermChatError):
    """The AI service refused to answer because of its safety filters."""


@dataclass(frozen=True)
class ErrorDetail:
    code: str
    message: str
    retryable: bool = False


def error_detail(exc: BaseException, *, retryable: bool = False) -> dict[str, Any]:
    """Describe *exc* as a plain dict for the execution log."""
    code = type(exc).__name__
    if isinstance(exc, APIError):
        code = f"http_{exc.status_code}"
    return asdict(ErrorDetail(code=code, message=str(exc), retryable=bool(retryable)))


def format_error(message: Any, *, code: str = "error") -> str:
    text = str(message or "").strip()
    if not text:
        text = code or "error"
    if text.upper().startswith("ERR:"):
        return text
    return f"ERR: {text}"


__all__ = [
    "TermChatError",
    "APIError",
    "MaxRetriesExceeded",
    "OperationCancelled",
    "CollaboratorUnavailable",
    "SessionStartError",
    "SessionRenewError",
    "CommandError",
    "ContentBlocked",
    "ErrorDetail",
    "error_detail",
    "format_error",
]

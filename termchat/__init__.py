"""Public entry points for the terminal chat session.

Higher layers (``termchat_cli``) and embedders import from here rather than
from the individual modules.
"""

from termchat.commands import CommandHandler, CommandRegistry, DIRECT_COMMANDS, build_default_registry
from termchat.config import ChatConfig
from termchat.errors import (
    APIError,
    CollaboratorUnavailable,
    CommandError,
    ContentBlocked,
    MaxRetriesExceeded,
    OperationCancelled,
    SessionRenewError,
    SessionStartError,
    TermChatError,
)
from termchat.history import Message, MessageStats, MessageStore
from termchat.llm import ChatCollaborator, GeminiClient
from termchat.printer import Printer, StreamPrinter
from termchat.release import ReleaseChecker, ReleaseInfo
from termchat.retry_policy import (
    RetryableOperation,
    RetryPolicy,
    is_retryable_api_error,
    is_retryable_http_error,
    never_retry,
)
from termchat.safety import SafetySettings
from termchat.session import SessionController, SessionState, SignalListener
from termchat.tokens import TokenCounter
from termchat.utils.logging_utils import ChatLogger, EventLog
from termchat.worker import PeriodicWorker

__all__ = [
    # session
    "SessionController",
    "SessionState",
    "SignalListener",
    "ChatConfig",
    # history
    "Message",
    "MessageStats",
    "MessageStore",
    # retry
    "RetryPolicy",
    "RetryableOperation",
    "is_retryable_api_error",
    "is_retryable_http_error",
    "never_retry",
    # commands
    "CommandHandler",
    "CommandRegistry",
    "DIRECT_COMMANDS",
    "build_default_registry",
    # collaborators
    "ChatCollaborator",
    "GeminiClient",
    "TokenCounter",
    "ReleaseChecker",
    "ReleaseInfo",
    "SafetySettings",
    "PeriodicWorker",
    "Printer",
    "StreamPrinter",
    "ChatLogger",
    "EventLog",
    # errors
    "TermChatError",
    "APIError",
    "MaxRetriesExceeded",
    "OperationCancelled",
    "CollaboratorUnavailable",
    "SessionStartError",
    "SessionRenewError",
    "CommandError",
    "ContentBlocked",
]

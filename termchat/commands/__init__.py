"""Command registry and built-in command handlers."""

from termchat.commands.handlers import build_default_registry
from termchat.commands.registry import DIRECT_COMMANDS, CommandHandler, CommandRegistry

__all__ = [
    "CommandHandler",
    "CommandRegistry",
    "DIRECT_COMMANDS",
    "build_default_registry",
]

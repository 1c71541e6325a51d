"""Concrete command handlers and the default registry."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from termchat.commands.registry import CommandHandler, CommandRegistry
from termchat.config import (
    APPLICATION_NAME,
    HELP_PROMPT,
    LATEST_VERSION_PROMPT,
    SHUTDOWN_PROMPT,
    SUMMARIZE_PROMPT,
    TRANSLATE_PROMPT,
)
from termchat.cryptorand import generate_random_string
from termchat.errors import CommandError
from termchat.release import VERSION_COMMAND, build_release_prompt
from termchat.safety import SAFETY_LEVELS

if TYPE_CHECKING:
    from termchat.session import SessionController

LANG_FLAG = ":lang"
CHAT_HISTORY_ARGS = ["chat", "history"]

SHUTDOWN_MESSAGE = "Shutting down gracefully..."
CHAT_HISTORY_CLEARED = "Chat history cleared."
TOKEN_TOTAL_RESET = "Total token usage has been reset."
SUMMARIES_CLEARED = "Chat summaries cleared."


# ---------------------------------------------------------------------------
# Session lifecycle / info
# ---------------------------------------------------------------------------

class QuitCommand(CommandHandler):
    name = ":quit"
    usage = ":quit"
    summary = "end the session"

    def execute(self, session: "SessionController", tokens: list[str]) -> bool:
        prompt = SHUTDOWN_PROMPT.format(command=self.name, app=APPLICATION_NAME)
        try:
            session.print_ai(session.send_prompt(prompt, with_history=False))
        except Exception as exc:
            # Shutdown continues without a farewell.
            session.logger.error(f"failed to get shutdown message: {exc}", error=exc)
        session.printer.print_line(SHUTDOWN_MESSAGE)
        return True


class HelpCommand(CommandHandler):
    name = ":help"
    usage = ":help"
    summary = "list the available commands"

    def execute(self, session: "SessionController", tokens: list[str]) -> bool:
        lines = [f"{h.usage} - {h.summary}" for h in session.registry.handlers()]
        listing = "\n".join(lines)
        session.printer.print_line(listing)
        reply = session.send_prompt(
            HELP_PROMPT.format(app=APPLICATION_NAME, commands=listing),
            with_history=False,
        )
        session.print_ai(reply)
        return False


class CheckVersionCommand(CommandHandler):
    name = VERSION_COMMAND
    usage = VERSION_COMMAND
    summary = "check for a newer release"

    def execute(self, session: "SessionController", tokens: list[str]) -> bool:
        checker = session.release_checker
        with session.remote_call():
            is_latest, tag = checker.check_latest()
            if is_latest:
                prompt = LATEST_VERSION_PROMPT.format(
                    command=self.name,
                    app=APPLICATION_NAME,
                    current=checker.current_version,
                )
            else:
                release = checker.fetch_release(tag)
                prompt = build_release_prompt(release, current_version=checker.current_version)
        session.print_ai(session.send_prompt(prompt, with_history=False))
        return False


class StatsCommand(CommandHandler):
    name = ":stats"
    usage = ":stats"
    summary = "show message counts"

    def execute(self, session: "SessionController", tokens: list[str]) -> bool:
        stats = session.store.stats()
        session.printer.print_line(
            f"Chat statistics: user messages {stats.user_messages}, "
            f"AI messages {stats.ai_messages}, system messages {stats.system_messages}"
        )
        return False


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

def _clear_chat_history(session: "SessionController") -> None:
    session.store.clear()
    message = CHAT_HISTORY_CLEARED
    if session.show_token_count:
        session.reset_token_total()
        message += "\n" + TOKEN_TOTAL_RESET
    session.printer.print_line(message)


class ClearCommand(CommandHandler):
    name = ":clear"
    usage = ":clear [chat history | summarize]"
    summary = "clear chat history or stored summaries"

    def execute(self, session: "SessionController", tokens: list[str]) -> bool:
        _clear_chat_history(session)
        return False


class ClearChatHistorySubcommand(CommandHandler):
    name = ":clear"
    usage = ":clear chat history"

    def is_valid(self, tokens: list[str]) -> bool:
        return tokens[1:] == CHAT_HISTORY_ARGS

    def handle_subcommand(self, subcommand: str, session: "SessionController", tokens: list[str]) -> bool:
        _clear_chat_history(session)
        return False


class ClearSummariesSubcommand(CommandHandler):
    name = ":clear"
    usage = ":clear summarize"

    def is_valid(self, tokens: list[str]) -> bool:
        return len(tokens) == 2

    def handle_subcommand(self, subcommand: str, session: "SessionController", tokens: list[str]) -> bool:
        removed = session.store.clear_system_messages()
        session.logger.debug(f"removed {removed} system message(s)")
        session.printer.print_line(SUMMARIES_CLEARED)
        return False


class ShowChatCommand(CommandHandler):
    name = ":show"
    usage = ":show chat history"
    summary = "print the conversation context"

    def is_valid(self, tokens: list[str]) -> bool:
        return tokens[1:] == CHAT_HISTORY_ARGS

    def execute(self, session: "SessionController", tokens: list[str]) -> bool:
        return self.handle_subcommand("chat", session, tokens)

    def handle_subcommand(self, subcommand: str, session: "SessionController", tokens: list[str]) -> bool:
        window = session.store.get_window(session.config)
        session.printer.print_line(window or "(chat history is empty)")
        return False


class SummarizeCommand(CommandHandler):
    name = ":summarize"
    usage = ":summarize"
    summary = "summarize the conversation into a system message"

    def execute(self, session: "SessionController", tokens: list[str]) -> bool:
        summary = session.send_prompt(SUMMARIZE_PROMPT, with_history=True)
        session.store.replace_system_message(summary, session.config)
        session.print_ai(summary)
        return False


# ---------------------------------------------------------------------------
# Session settings
# ---------------------------------------------------------------------------

class SafetyCommand(CommandHandler):
    name = ":safety"
    usage = ":safety low|default|high"
    summary = "set content-safety thresholds"

    def is_valid(self, tokens: list[str]) -> bool:
        return len(tokens) == 2 and tokens[1] in SAFETY_LEVELS

    def execute(self, session: "SessionController", tokens: list[str]) -> bool:
        return self.handle_subcommand(tokens[1], session, tokens)

    def handle_subcommand(self, subcommand: str, session: "SessionController", tokens: list[str]) -> bool:
        if not session.safety.apply_level(subcommand):
            raise CommandError(f"unknown safety level: {subcommand}")
        session.printer.print_line(f"Safety level set to {subcommand}.")
        return False


class SwitchModelCommand(CommandHandler):
    name = ":model"
    usage = ":model <model-name>"
    summary = "switch the AI model"

    def is_valid(self, tokens: list[str]) -> bool:
        return len(tokens) == 2

    def execute(self, session: "SessionController", tokens: list[str]) -> bool:
        session.model = tokens[1]
        session.printer.print_line(f"Switched model to {session.model}.")
        return False


class CheckModelCommand(CommandHandler):
    name = ":checkmodel"
    usage = ":checkmodel <model-name>"
    summary = "show model metadata"

    def is_valid(self, tokens: list[str]) -> bool:
        return len(tokens) == 2

    def execute(self, session: "SessionController", tokens: list[str]) -> bool:
        info = session.model_info(tokens[1])
        session.printer.print_line(_format_model_info(info))
        return False


def _format_model_info(info: dict[str, Any]) -> str:
    fields = (
        ("Name", "name"),
        ("Display name", "displayName"),
        ("Version", "version"),
        ("Input token limit", "inputTokenLimit"),
        ("Output token limit", "outputTokenLimit"),
        ("Description", "description"),
    )
    lines = [f"{label}: {info[key]}" for label, key in fields if info.get(key) not in (None, "")]
    return "\n".join(lines) or "(no model metadata)"


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------

class TranslateCommand(CommandHandler):
    name = ":aitranslate"
    usage = ":aitranslate <text...> :lang <language>"
    summary = "translate text with the AI"

    def is_valid(self, tokens: list[str]) -> bool:
        return len(tokens) >= 4 and tokens[-2] == LANG_FLAG

    def execute(self, session: "SessionController", tokens: list[str]) -> bool:
        text = " ".join(tokens[1:-2])
        language = tokens[-1]
        reply = session.send_prompt(TRANSLATE_PROMPT.format(language=language, text=text), with_history=False)
        session.print_ai(reply)
        return False


class CryptoRandCommand(CommandHandler):
    name = ":cryptorand"
    usage = ":cryptorand <length>"
    summary = "print a random alphanumeric string"

    def is_valid(self, tokens: list[str]) -> bool:
        return len(tokens) == 2

    def execute(self, session: "SessionController", tokens: list[str]) -> bool:
        try:
            length = int(tokens[1])
        except ValueError as exc:
            raise CommandError(f"length must be an integer: {tokens[1]!r}") from exc
        try:
            value = generate_random_string(length)
        except ValueError as exc:
            raise CommandError(str(exc)) from exc
        session.printer.print_line(value)
        return False


class TokenCountCommand(CommandHandler):
    name = ":tokencount"
    usage = ":tokencount file <path...>"
    summary = "count tokens in text or image files"

    def is_valid(self, tokens: list[str]) -> bool:
        return len(tokens) >= 3 and tokens[1] == "file"

    def handle_subcommand(self, subcommand: str, session: "SessionController", tokens: list[str]) -> bool:
        total = 0
        for path in tokens[2:]:
            try:
                with session.remote_call():
                    count = session.token_counter.count_file(path)
            except OSError as exc:
                session.logger.error(f"cannot read {path}: {exc}", error=exc)
                continue
            total += count
            session.printer.print_line(f"{path}: {count} tokens")
        session.printer.print_line(f"Total tokens: {total}")
        return False


def build_default_registry() -> CommandRegistry:
    """Registry with every built-in command and subcommand."""
    registry = CommandRegistry()
    for handler in (
        QuitCommand(),
        HelpCommand(),
        CheckVersionCommand(),
        ClearCommand(),
        SafetyCommand(),
        TranslateCommand(),
        CryptoRandCommand(),
        ShowChatCommand(),
        SummarizeCommand(),
        StatsCommand(),
        TokenCountCommand(),
        CheckModelCommand(),
        SwitchModelCommand(),
    ):
        registry.register(handler.name, handler)

    registry.register_subcommand(":clear", "chat", ClearChatHistorySubcommand())
    registry.register_subcommand(":clear", "summarize", ClearSummariesSubcommand())
    registry.register_subcommand(":show", "chat", registry.get(":show"))
    safety = registry.get(":safety")
    for level in SAFETY_LEVELS:
        registry.register_subcommand(":safety", level, safety)
    registry.register_subcommand(":tokencount", "file", registry.get(":tokencount"))
    return registry

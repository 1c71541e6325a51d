"""termchat CLI: interactive terminal chat with a remote AI collaborator."""

from __future__ import annotations

import argparse
import os
import sys
from typing import Callable

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.key_binding import KeyBindings

from termchat.commands import CommandRegistry, build_default_registry
from termchat.config import (
    API_KEY_ENV,
    APPLICATION_NAME,
    COMMAND_PREFIX,
    CURRENT_VERSION,
    DEBUG_MODE,
    GEMINI_MODEL,
    HISTORY_SIZE,
    TYPING_DELAY,
    ChatConfig,
)
from termchat.errors import SessionStartError
from termchat.printer import StreamPrinter
from termchat.retry_policy import RetryPolicy
from termchat.session import SessionController
from termchat.utils.logging_utils import ChatLogger

ANSI_CYAN = "\033[0;36m"
ANSI_RESET = "\033[0m"


class ColonCommandCompleter(Completer):
    """Autocomplete ``:`` commands while typing."""

    def __init__(self, registry: CommandRegistry) -> None:
        self.registry = registry

    def get_completions(self, document, complete_event):  # type: ignore[override]
        text = str(document.text_before_cursor or "")
        stripped = text.lstrip()
        if not stripped.startswith(COMMAND_PREFIX) or " " in stripped:
            return
        token = stripped
        for handler in self.registry.handlers():
            name = handler.name
            if token == COMMAND_PREFIX or name.startswith(token):
                yield Completion(
                    name,
                    start_position=-len(token),
                    display=name,
                    display_meta=handler.summary,
                )


def _build_prompt_session(registry: CommandRegistry) -> PromptSession | None:
    if not sys.stdin.isatty():
        return None
    kb = KeyBindings()

    @kb.add(COMMAND_PREFIX)
    def _command_autocomplete(event):  # type: ignore[no-redef]
        buf = event.app.current_buffer
        buf.insert_text(COMMAND_PREFIX)
        if str(buf.document.text_before_cursor or "").strip() == COMMAND_PREFIX:
            # Open the completion popup right after the prefix is typed.
            buf.start_completion(select_first=False)

    return PromptSession(
        completer=ColonCommandCompleter(registry),
        complete_while_typing=True,
        reserve_space_for_menu=8,
        key_bindings=kb,
    )


def _build_reader(registry: CommandRegistry) -> Callable[[str], str]:
    prompt_session = _build_prompt_session(registry)
    if prompt_session is None:
        return input
    return lambda message: str(prompt_session.prompt(message))


def _print_cli_banner() -> None:
    print(ANSI_CYAN)
    print("╔══════════════════════════════════════╗")
    print(f"║   {APPLICATION_NAME:<10} {CURRENT_VERSION:<24}║")
    print("║   terminal chat with a remote AI     ║")
    print("╚══════════════════════════════════════╝")
    print(ANSI_RESET)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=f"{APPLICATION_NAME} terminal chat")
    parser.add_argument(
        "--debug",
        action=argparse.BooleanOptionalAction,
        default=DEBUG_MODE,
        help="Print debug log lines.",
    )
    parser.add_argument(
        "--history-size",
        type=int,
        default=HISTORY_SIZE,
        help="Messages sent to the AI as context (the store keeps twice as many).",
    )
    parser.add_argument("--model", default=GEMINI_MODEL, help="AI model name.")
    parser.add_argument(
        "--typing-delay",
        type=float,
        default=TYPING_DELAY,
        help="Seconds per character when printing AI replies.",
    )
    parser.add_argument("--no-banner", action="store_true", help="Suppress startup banner.")
    parser.add_argument("--version", action="version", version=f"{APPLICATION_NAME} {CURRENT_VERSION}")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logger = ChatLogger(debug_mode=bool(args.debug))
    api_key = (os.getenv(API_KEY_ENV) or "").strip()
    if not api_key:
        logger.error(f"{API_KEY_ENV} environment variable is not set")
        return 1

    if not args.no_banner:
        _print_cli_banner()
        print(f"Type {COMMAND_PREFIX}help for commands.\n")

    registry = build_default_registry()
    session = SessionController(
        api_key,
        registry=registry,
        config=ChatConfig(history_size=max(1, int(args.history_size))),
        logger=logger,
        printer=StreamPrinter(delay=max(0.0, float(args.typing_delay))),
        policy=RetryPolicy(logger=logger),
        read_input=_build_reader(registry),
        model=str(args.model),
    )
    try:
        session.start()
    except SessionStartError as exc:
        logger.error(str(exc), error=exc)
        return 1
    return session.run()


if __name__ == "__main__":
    raise SystemExit(main())

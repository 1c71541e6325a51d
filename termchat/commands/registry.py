"""Command registry: name -> handler and (base, sub) -> handler dispatch."""

from __future__ import annotations

from typing import TYPE_CHECKING

from termchat.config import COMMAND_PREFIX
from termchat.errors import CommandError, OperationCancelled

if TYPE_CHECKING:
    from termchat.session import SessionController

# Argument-bearing commands that always run ``execute`` whatever follows them.
DIRECT_COMMANDS = frozenset({":aitranslate", ":checkmodel", ":model", ":cryptorand"})


class CommandHandler:
    """Validate-and-run unit for one command name.

    ``execute`` and ``handle_subcommand`` return the terminate flag; only the
    quit command ever returns True.
    """

    name = ""
    usage = ""
    summary = ""

    def is_valid(self, tokens: list[str]) -> bool:
        return len(tokens) == 1

    def execute(self, session: "SessionController", tokens: list[str]) -> bool:
        raise NotImplementedError

    def handle_subcommand(self, subcommand: str, session: "SessionController", tokens: list[str]) -> bool:
        raise CommandError(f"{self.name} has no subcommand {subcommand!r}")


class CommandRegistry:
    def __init__(self, *, direct_commands: frozenset[str] = DIRECT_COMMANDS) -> None:
        self._commands: dict[str, CommandHandler] = {}
        self._subcommands: dict[str, dict[str, CommandHandler]] = {}
        self.direct_commands = frozenset(direct_commands)

    def register(self, name: str, handler: CommandHandler) -> None:
        key = str(name or "").strip()
        if not key.startswith(COMMAND_PREFIX):
            raise ValueError(f"command names start with {COMMAND_PREFIX!r}: {name!r}")
        if key in self._commands:
            raise ValueError(f"command already registered: {key}")
        self._commands[key] = handler

    def register_subcommand(self, base: str, subcommand: str, handler: CommandHandler) -> None:
        subs = self._subcommands.setdefault(str(base).strip(), {})
        sub = str(subcommand or "").strip()
        if sub in subs:
            raise ValueError(f"subcommand already registered: {base} {sub}")
        subs[sub] = handler

    def get(self, name: str) -> CommandHandler | None:
        return self._commands.get(str(name or "").strip())

    def names(self) -> list[str]:
        return list(self._commands)

    def handlers(self) -> list[CommandHandler]:
        return list(self._commands.values())

    def subcommands(self, base: str) -> list[str]:
        return list(self._subcommands.get(base, {}))

    @staticmethod
    def is_command(text: str) -> bool:
        return str(text or "").strip().startswith(COMMAND_PREFIX)

    # -- dispatch -----------------------------------------------------------

    def dispatch(self, raw: str, session: "SessionController") -> bool:
        """Route *raw* input to its handler. Returns the terminate flag."""
        tokens = str(raw or "").split()
        if not tokens:
            return False
        logger = session.logger
        name = tokens[0]
        handler = self._commands.get(name)
        if handler is None:
            logger.error(f"unrecognized command: {name}")
            return False

        logger.debug(f"executing command {name} {tokens[1:]}")
        if name in self.direct_commands or len(tokens) == 1:
            return self._run(handler, name, tokens, session, lambda: handler.execute(session, tokens))

        subcommand = tokens[1]
        sub_handler = self._subcommands.get(name, {}).get(subcommand)
        if sub_handler is None:
            logger.error(f"unrecognized subcommand for {name}: {subcommand}")
            return False
        return self._run(
            sub_handler,
            name,
            tokens,
            session,
            lambda: sub_handler.handle_subcommand(subcommand, session, tokens),
        )

    def _run(self, handler, name, tokens, session, action) -> bool:
        logger = session.logger
        if not handler.is_valid(tokens):
            usage = handler.usage or name
            logger.error(f"invalid arguments for {name}. usage: {usage}")
            return False
        try:
            return bool(action())
        except OperationCancelled as exc:
            logger.debug(f"{name}: cancelled: {exc}")
            return False
        except Exception as exc:
            logger.error(f"{name}: {exc}", command=name, error=exc)
            return False

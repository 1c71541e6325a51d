"""CLI entry point: exit codes and command completion."""

from __future__ import annotations

from prompt_toolkit.document import Document

import termchat_cli.main as cli
from termchat.commands import build_default_registry
from termchat.errors import SessionStartError


class _StubSession:
    start_error: Exception | None = None
    instances: list["_StubSession"] = []

    def __init__(self, api_key, **kwargs):
        self.api_key = api_key
        self.kwargs = kwargs
        _StubSession.instances.append(self)

    def start(self):
        if self.start_error is not None:
            raise self.start_error

    def run(self):
        return 0


def test_missing_api_key_exits_1(monkeypatch, capsys) -> None:
    monkeypatch.delenv("API_KEY", raising=False)
    assert cli.main(["--no-banner"]) == 1
    assert "API_KEY" in capsys.readouterr().err


def test_fatal_start_exits_1(monkeypatch) -> None:
    monkeypatch.setenv("API_KEY", "k")

    class Failing(_StubSession):
        start_error = SessionStartError("invalid key")

    monkeypatch.setattr(cli, "SessionController", Failing)
    assert cli.main(["--no-banner"]) == 1


def test_graceful_run_exits_0(monkeypatch) -> None:
    monkeypatch.setenv("API_KEY", "k")
    _StubSession.instances = []
    monkeypatch.setattr(cli, "SessionController", _StubSession)

    assert cli.main(["--no-banner", "--history-size", "4", "--model", "gemini-x"]) == 0

    [session] = _StubSession.instances
    assert session.api_key == "k"
    assert session.kwargs["config"].history_size == 4
    assert session.kwargs["model"] == "gemini-x"


def test_completer_suggests_commands() -> None:
    completer = cli.ColonCommandCompleter(build_default_registry())

    names = [c.text for c in completer.get_completions(Document(":he"), None)]
    assert names == [":help"]

    everything = [c.text for c in completer.get_completions(Document(":"), None)]
    assert ":quit" in everything and ":tokencount" in everything

    assert list(completer.get_completions(Document("hello"), None)) == []
    assert list(completer.get_completions(Document(":clear chat"), None)) == []

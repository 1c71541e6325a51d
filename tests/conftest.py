"""Shared fakes: AI client, logger, printer, scripted input."""

from __future__ import annotations

import io
from types import SimpleNamespace
from typing import Any

import pytest

from termchat.config import ChatConfig
from termchat.errors import CollaboratorUnavailable
from termchat.release import ReleaseInfo
from termchat.retry_policy import RetryPolicy
from termchat.session import SessionController
from termchat.utils.logging_utils import ChatLogger, EventLog


class FakeClient:
    def __init__(self, replies: list[str] | None = None) -> None:
        self.replies = list(replies or [])
        self.errors: list[BaseException] = []
        self.ping_error: BaseException | None = None
        self.prompts: list[str] = []
        self.models: list[str | None] = []
        self.safety: list[Any] = []
        self.token_calls: list[dict[str, Any]] = []
        self.token_count = 7
        self.closed = False
        self.close_calls = 0

    def generate(self, prompt, *, model=None, safety=None, cancel=None):
        if self.closed:
            raise CollaboratorUnavailable("fake client closed")
        self.prompts.append(prompt)
        self.models.append(model)
        self.safety.append(safety)
        if self.errors:
            raise self.errors.pop(0)
        if self.replies:
            return self.replies.pop(0)
        return f"reply {len(self.prompts)}"

    def ping(self):
        if self.ping_error is not None:
            raise self.ping_error
        return True

    def model_info(self, model):
        return {"name": f"models/{model}", "displayName": model.upper(), "inputTokenLimit": 1000}

    def count_tokens(self, *, text="", image=b"", mime_type="", model=None):
        self.token_calls.append({"text": text, "image": image, "mime_type": mime_type, "model": model})
        return self.token_count

    def close(self):
        self.close_calls += 1
        self.closed = True


class ClientFactory:
    def __init__(self, replies: list[str] | None = None) -> None:
        self.replies = replies
        self.created: list[FakeClient] = []
        self.fail = False

    def __call__(self, api_key: str) -> FakeClient:
        if self.fail:
            raise RuntimeError("cannot build client")
        client = FakeClient(self.replies)
        self.created.append(client)
        return client

    @property
    def current(self) -> FakeClient:
        return self.created[-1]


class RecordingLogger(ChatLogger):
    def __init__(self) -> None:
        super().__init__(debug_mode=False, stream=io.StringIO(), event_log=EventLog(enabled=False))
        self.records: list[tuple[str, str]] = []
        self.events: list[tuple[str, dict[str, Any]]] = []

    def debug(self, message, **fields):
        self.records.append(("debug", str(message)))

    def error(self, message, **fields):
        self.records.append(("error", str(message)))

    def info(self, message, **fields):
        self.records.append(("info", str(message)))

    def any(self, message, **fields):
        self.records.append(("any", str(message)))

    def event(self, event, **fields):
        self.events.append((event, fields))

    def messages(self, level: str) -> list[str]:
        return [msg for lvl, msg in self.records if lvl == level]


class RecordingPrinter:
    def __init__(self) -> None:
        self.lines: list[str] = []

    def print_line(self, text: str = "") -> None:
        self.lines.append(text)

    def print_typing(self, text: str) -> None:
        self.lines.append(text)

    @property
    def output(self) -> str:
        return "\n".join(self.lines)


class ScriptedInput:
    """Return scripted lines; exception instances are raised; then EOF."""

    def __init__(self, items=()) -> None:
        self.items = list(items)
        self.calls = 0

    def __call__(self, prompt: str = "") -> str:
        self.calls += 1
        if not self.items:
            raise EOFError
        item = self.items.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


class FakeReleaseChecker:
    def __init__(self, latest: str = "v0.4.0", current_version: str = "v0.4.0") -> None:
        self.latest = latest
        self.current_version = current_version
        self.fetched: list[str] = []
        self.close_calls = 0

    def check_latest(self):
        return self.latest == self.current_version, self.latest

    def fetch_release(self, tag):
        self.fetched.append(tag)
        return ReleaseInfo(tag_name=tag, name=f"Release {tag}", body="Faster replies.", published_at="2024-05-01T10:00:00Z")

    def close(self):
        self.close_calls += 1


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = text or ("" if payload is None else str(payload))

    def json(self):
        if self._payload is None:
            raise ValueError("no JSON")
        return self._payload

    def raise_for_status(self):
        import requests

        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


def no_sleep_policy(logger=None, **kwargs) -> RetryPolicy:
    kwargs.setdefault("base_delay", 0.0)
    kwargs.setdefault("max_elapsed", None)
    return RetryPolicy(sleep=lambda _delay: None, logger=logger, **kwargs)


@pytest.fixture
def logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def printer() -> RecordingPrinter:
    return RecordingPrinter()


@pytest.fixture
def make_session():
    """Build a SessionController wired to in-memory fakes."""

    def _make(*, inputs=(), history_size: int = 10, factory: ClientFactory | None = None, **kwargs):
        env_logger = RecordingLogger()
        env_printer = RecordingPrinter()
        factory = factory or ClientFactory()
        reader = ScriptedInput(inputs)
        exits: list[int] = []
        kwargs.setdefault("release_checker", FakeReleaseChecker())
        kwargs.setdefault("verify_api_key", True)
        kwargs.setdefault("show_token_count", False)
        kwargs.setdefault("heartbeat_interval", 0.0)
        session = SessionController(
            "test-key",
            client_factory=factory,
            config=ChatConfig(history_size=history_size),
            logger=env_logger,
            printer=env_printer,
            policy=no_sleep_policy(env_logger),
            read_input=reader,
            exit_func=exits.append,
            **kwargs,
        )
        return SimpleNamespace(
            session=session,
            logger=env_logger,
            printer=env_printer,
            factory=factory,
            reader=reader,
            exits=exits,
        )

    return _make

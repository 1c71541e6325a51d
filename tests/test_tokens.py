"""Token counting through the retry policy."""

from __future__ import annotations

import pytest

from conftest import FakeClient, no_sleep_policy
from termchat.errors import APIError
from termchat.tokens import TokenCounter


def _counter(client: FakeClient, model: str = "gemini-test") -> TokenCounter:
    return TokenCounter(lambda: client, no_sleep_policy(), model=lambda: model)


def test_count_text_passes_model() -> None:
    client = FakeClient()
    assert _counter(client).count(text="hello") == 7
    assert client.token_calls == [{"text": "hello", "image": b"", "mime_type": "", "model": "gemini-test"}]


def test_count_requires_content() -> None:
    with pytest.raises(ValueError):
        _counter(FakeClient()).count()


def test_count_retries_transient_failures() -> None:
    client = FakeClient()
    calls = {"n": 0}
    original = client.count_tokens

    def flaky(**kwargs):
        calls["n"] += 1
        if calls["n"] == 1:
            raise APIError(500, "hiccup")
        return original(**kwargs)

    client.count_tokens = flaky
    assert _counter(client).count(text="x") == 7
    assert calls["n"] == 2


def test_count_file_text_and_image(tmp_path) -> None:
    client = FakeClient()
    counter = _counter(client)
    (tmp_path / "a.md").write_text("# title", encoding="utf-8")
    (tmp_path / "b.jpg").write_bytes(b"\xff\xd8jpeg")

    counter.count_file(tmp_path / "a.md")
    counter.count_file(str(tmp_path / "b.jpg"))

    assert client.token_calls[0]["text"] == "# title"
    assert client.token_calls[1]["image"] == b"\xff\xd8jpeg"
    assert client.token_calls[1]["mime_type"] == "image/jpeg"


def test_count_file_missing_raises_oserror(tmp_path) -> None:
    with pytest.raises(OSError):
        _counter(FakeClient()).count_file(tmp_path / "nope.txt")

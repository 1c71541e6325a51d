"""Behaviour tests for the bounded, deduplicated message store."""

from __future__ import annotations

import threading

from termchat.config import AI_PREFIX, SYSTEM_PREFIX, USER_PREFIX, ChatConfig
from termchat.history import MessageStore


def _texts(store: MessageStore) -> list[str]:
    return [m.text for m in store.snapshot()]


def test_add_stores_message_and_formats_line() -> None:
    store = MessageStore()
    assert store.add(USER_PREFIX, "hello", ChatConfig(history_size=5)) is True
    [message] = store.snapshot()
    assert message.speaker == USER_PREFIX
    assert message.line == "You: hello"
    assert message.is_user and not message.is_ai


def test_sanitized_duplicates_are_stored_once() -> None:
    store = MessageStore()
    cfg = ChatConfig(history_size=5)
    assert store.add(USER_PREFIX, "hello world", cfg)
    assert not store.add(USER_PREFIX, "\x1b[1;32mhello world\x1b[0m", cfg)
    assert not store.add(USER_PREFIX, "  You: hello world  ", cfg)
    assert len(store) == 1


def test_dedup_ignores_speaker() -> None:
    store = MessageStore()
    cfg = ChatConfig(history_size=5)
    store.add(USER_PREFIX, "same text", cfg)
    assert not store.add(AI_PREFIX, "same text", cfg)
    assert len(store) == 1


def test_store_never_exceeds_twice_history_size() -> None:
    store = MessageStore()
    cfg = ChatConfig(history_size=3)
    for i in range(25):
        store.add(USER_PREFIX if i % 2 == 0 else AI_PREFIX, f"message {i}", cfg)
        assert len(store) <= 6


def test_eviction_removes_two_oldest_together() -> None:
    store = MessageStore()
    cfg = ChatConfig(history_size=3)
    for i in range(6):
        store.add(USER_PREFIX, f"m{i}", cfg)
    assert _texts(store) == ["m0", "m1", "m2", "m3", "m4", "m5"]

    store.add(USER_PREFIX, "m6", cfg)
    assert _texts(store) == ["m2", "m3", "m4", "m5", "m6"]


def test_evicted_content_can_be_added_again() -> None:
    store = MessageStore()
    cfg = ChatConfig(history_size=1)
    store.add(USER_PREFIX, "first", cfg)
    store.add(AI_PREFIX, "second", cfg)
    store.add(USER_PREFIX, "third", cfg)
    assert not store.contains("first")
    assert store.add(USER_PREFIX, "first", cfg)


def test_get_window_renders_recent_messages_with_separator() -> None:
    store = MessageStore()
    cfg = ChatConfig(history_size=3)
    store.add(USER_PREFIX, "old question", cfg)
    store.add(USER_PREFIX, "a", cfg)
    store.add(AI_PREFIX, "\x1b[31mb\x1b[0m", cfg)
    store.add(USER_PREFIX, "c", cfg)

    assert store.get_window(cfg) == "You: a\nAI: b\n---\nYou: c"


def test_get_window_has_no_trailing_separator_after_last_ai_message() -> None:
    store = MessageStore()
    cfg = ChatConfig(history_size=4)
    store.add(USER_PREFIX, "q", cfg)
    store.add(AI_PREFIX, "r", cfg)
    assert store.get_window(cfg) == "You: q\nAI: r"


def test_remove_recent_and_containing_keep_index_in_step() -> None:
    store = MessageStore()
    cfg = ChatConfig(history_size=10)
    for text in ("alpha", "beta foo", "gamma", "delta foo", "epsilon"):
        store.add(USER_PREFIX, text, cfg)

    assert store.remove_recent(1) == 1
    assert store.remove_containing("foo") == 2
    assert _texts(store) == ["alpha", "gamma"]
    assert store.add(USER_PREFIX, "beta foo", cfg)
    assert store.add(USER_PREFIX, "epsilon", cfg)


def test_remove_dispatches_on_type_and_ignores_bad_input() -> None:
    store = MessageStore()
    cfg = ChatConfig(history_size=10)
    for text in ("one", "two", "three"):
        store.add(USER_PREFIX, text, cfg)

    assert store.remove(0) == 0
    assert store.remove(-3) == 0
    assert store.remove("") == 0
    assert store.remove(True) == 0
    assert store.remove("tw") == 1
    assert store.remove(5) == 2
    assert len(store) == 0


def test_filter_messages_does_not_mutate() -> None:
    store = MessageStore()
    cfg = ChatConfig(history_size=10)
    store.add(USER_PREFIX, "question", cfg)
    store.add(AI_PREFIX, "answer", cfg)

    ai_only = store.filter_messages(lambda m: m.is_ai)
    assert [m.text for m in ai_only] == ["answer"]
    assert len(store) == 2


def test_clear_resets_messages_and_hash_index() -> None:
    store = MessageStore()
    cfg = ChatConfig(history_size=10)
    store.add(USER_PREFIX, "x", cfg)
    store.clear()
    assert len(store) == 0
    assert store.add(USER_PREFIX, "x", cfg)


def test_stats_and_system_summaries() -> None:
    store = MessageStore()
    cfg = ChatConfig(history_size=10)
    store.add(USER_PREFIX, "u", cfg)
    store.add(AI_PREFIX, "a", cfg)
    store.replace_system_message("summary one", cfg)
    store.replace_system_message("summary two", cfg)

    stats = store.stats()
    assert (stats.user_messages, stats.ai_messages, stats.system_messages) == (1, 1, 1)
    assert stats.total == 3
    assert [m.text for m in store.filter_messages(lambda m: m.is_system)] == ["summary two"]

    assert store.clear_system_messages() == 1
    assert store.stats().system_messages == 0
    assert store.add(SYSTEM_PREFIX, "summary one", cfg)


def test_concurrent_adds_respect_bound() -> None:
    store = MessageStore()
    cfg = ChatConfig(history_size=5)

    def _writer(n: int) -> None:
        for i in range(200):
            store.add(USER_PREFIX, f"w{n}-{i}", cfg)
            store.get_window(cfg)

    threads = [threading.Thread(target=_writer, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(store) <= 10
    digests = [m.digest for m in store.snapshot()]
    assert len(digests) == len(set(digests))

"""Bounded, deduplicated, thread-safe chat history.

The store keeps messages in chronological order together with an index of
sanitized-content hashes. Messages are never mutated once stored; sanitizing
happens again whenever the history is rendered for the AI.

Size is capped at ``2 * config.history_size``. When an add pushes the store
over the cap, the two oldest messages (one user/AI exchange) are evicted
together.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator

from termchat.config import AI_PREFIX, SEPARATOR, SYSTEM_PREFIX, USER_PREFIX, ChatConfig
from termchat.utils.text_utils import content_hash, sanitize_message


class ReadWriteLock:
    """Many readers or one writer. Writers are preferred once waiting."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass(frozen=True)
class Message:
    speaker: str
    text: str
    line: str
    digest: str

    @classmethod
    def create(cls, speaker: str, text: str) -> "Message":
        speaker = str(speaker or "").strip()
        text = str(text or "")
        return cls(
            speaker=speaker,
            text=text,
            line=f"{speaker} {text}" if speaker else text,
            digest=content_hash(text),
        )

    @property
    def is_user(self) -> bool:
        return self.speaker == USER_PREFIX

    @property
    def is_ai(self) -> bool:
        return self.speaker == AI_PREFIX

    @property
    def is_system(self) -> bool:
        return self.speaker == SYSTEM_PREFIX

    def sanitized(self) -> str:
        return sanitize_message(self.text)


@dataclass(frozen=True)
class MessageStats:
    user_messages: int = 0
    ai_messages: int = 0
    system_messages: int = 0

    @property
    def total(self) -> int:
        return self.user_messages + self.ai_messages + self.system_messages


class MessageStore:
    """Chronological message log with hash dedup and pair eviction."""

    def __init__(self) -> None:
        self._messages: list[Message] = []
        self._hashes: set[str] = set()
        self._lock = ReadWriteLock()

    # -- writes -------------------------------------------------------------

    def add(self, speaker: str, text: str, config: ChatConfig) -> bool:
        """Store a message unless its sanitized content is already present.

        Dedup ignores the speaker. Returns True when the message was stored.
        """
        message = Message.create(speaker, text)
        with self._lock.write():
            if message.digest in self._hashes:
                return False
            self._messages.append(message)
            self._hashes.add(message.digest)
            limit = config.max_stored
            while len(self._messages) > limit:
                for evicted in self._messages[:2]:
                    self._hashes.discard(evicted.digest)
                del self._messages[:2]
            return True

    def remove_recent(self, count: int) -> int:
        """Evict the most recent *count* messages. Returns how many went."""
        try:
            n = int(count)
        except (TypeError, ValueError):
            return 0
        if n <= 0:
            return 0
        with self._lock.write():
            removed = self._messages[-n:]
            del self._messages[-n:]
            for message in removed:
                self._hashes.discard(message.digest)
            return len(removed)

    def remove_containing(self, content: str) -> int:
        """Evict every message whose text contains *content*."""
        needle = str(content or "")
        if not needle:
            return 0
        return self._remove_where(lambda m: needle in m.text)

    def remove(self, target: int | str) -> int:
        if isinstance(target, bool):
            return 0
        if isinstance(target, int):
            return self.remove_recent(target)
        return self.remove_containing(str(target))

    def clear(self) -> None:
        with self._lock.write():
            self._messages = []
            self._hashes = set()

    def clear_system_messages(self) -> int:
        return self._remove_where(lambda m: m.is_system)

    def replace_system_message(self, text: str, config: ChatConfig) -> bool:
        """Store *text* as the only system message (e.g. a fresh summary)."""
        message = Message.create(SYSTEM_PREFIX, text)
        with self._lock.write():
            kept = [m for m in self._messages if not m.is_system]
            hashes = {m.digest for m in kept}
            if message.digest in hashes:
                return False
            kept.append(message)
            hashes.add(message.digest)
            while len(kept) > config.max_stored:
                for evicted in kept[:2]:
                    hashes.discard(evicted.digest)
                del kept[:2]
            self._messages = kept
            self._hashes = hashes
            return True

    def _remove_where(self, predicate: Callable[[Message], bool]) -> int:
        with self._lock.write():
            kept = [m for m in self._messages if not predicate(m)]
            removed = len(self._messages) - len(kept)
            if removed:
                self._messages = kept
                self._hashes = {m.digest for m in kept}
            return removed

    # -- reads --------------------------------------------------------------

    def get_window(self, config: ChatConfig) -> str:
        """Render the last ``history_size`` messages as AI context."""
        size = max(0, int(config.history_size))
        with self._lock.read():
            window = self._messages[-size:] if size else []
        lines: list[str] = []
        for idx, message in enumerate(window):
            text = message.sanitized()
            lines.append(f"{message.speaker} {text}" if message.speaker else text)
            if message.is_ai and idx < len(window) - 1:
                lines.append(SEPARATOR)
        return "\n".join(lines)

    def filter_messages(self, predicate: Callable[[Message], bool]) -> list[Message]:
        with self._lock.read():
            return [m for m in self._messages if predicate(m)]

    def snapshot(self) -> list[Message]:
        with self._lock.read():
            return list(self._messages)

    def contains(self, text: str) -> bool:
        digest = content_hash(text)
        with self._lock.read():
            return digest in self._hashes

    def stats(self) -> MessageStats:
        with self._lock.read():
            return MessageStats(
                user_messages=sum(1 for m in self._messages if m.is_user),
                ai_messages=sum(1 for m in self._messages if m.is_ai),
                system_messages=sum(1 for m in self._messages if m.is_system),
            )

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._messages)

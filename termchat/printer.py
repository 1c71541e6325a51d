"""Output primitives the session prints through."""

from __future__ import annotations

import sys
import threading
import time
from typing import Callable, Protocol, TextIO


class Printer(Protocol):
    def print_line(self, text: str = "") -> None: ...

    def print_typing(self, text: str) -> None: ...


class StreamPrinter:
    """Write to a text stream; ``print_typing`` emits one character per *delay*."""

    def __init__(
        self,
        stream: TextIO | None = None,
        *,
        delay: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._stream = stream
        self.delay = max(0.0, float(delay))
        self._sleep = sleep
        self._lock = threading.Lock()

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def print_line(self, text: str = "") -> None:
        with self._lock:
            print(text, file=self.stream, flush=True)

    def print_typing(self, text: str) -> None:
        if self.delay <= 0:
            self.print_line(text)
            return
        with self._lock:
            out = self.stream
            for ch in str(text):
                out.write(ch)
                out.flush()
                self._sleep(self.delay)
            out.write("\n")
            out.flush()

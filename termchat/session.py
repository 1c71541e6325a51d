"""Session lifecycle: start, read/dispatch loop, renewal and shutdown.

The controller owns the message store, the AI client handle and every
piece of per-session state (safety thresholds, active model, token total).
All collaborators are passed in; nothing here reaches for module-level
singletons.
"""

from __future__ import annotations

import os
import queue
import signal
import threading
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Iterator

import requests

from termchat.commands import CommandRegistry, build_default_registry
from termchat.config import (
    AI_PREFIX,
    CONTEXT_PROMPT,
    GEMINI_MODEL,
    HEARTBEAT_INTERVAL,
    MAX_READ_ERRORS,
    SEPARATOR,
    SHOW_TOKEN_COUNT,
    USER_PREFIX,
    VERIFY_API_KEY,
    ChatConfig,
)
from termchat.errors import (
    CollaboratorUnavailable,
    OperationCancelled,
    SessionRenewError,
    SessionStartError,
    TermChatError,
)
from termchat.history import MessageStore
from termchat.llm import ChatCollaborator, GeminiClient
from termchat.printer import Printer, StreamPrinter
from termchat.release import ReleaseChecker
from termchat.retry_policy import RetryPolicy
from termchat.safety import SafetySettings
from termchat.tokens import TokenCounter
from termchat.utils.logging_utils import ChatLogger
from termchat.worker import PeriodicWorker

SIGNAL_MESSAGE = "Received an interrupt signal, shutting down gracefully..."
INTERRUPT_MESSAGE = "Interrupted, shutting down gracefully..."

# Errors a single round-trip may surface after the retry policy gives up.
REMOTE_ERRORS = (TermChatError, requests.RequestException, ValueError)


class SessionState(str, Enum):
    ACTIVE = "active"
    ENDED = "ended"


# ---------------------------------------------------------------------------
# Signal listener
# ---------------------------------------------------------------------------

class SignalListener:
    """Forward SIGINT/SIGTERM to *callback* on a dedicated thread.

    The OS-level handler only enqueues the signal number; the callback runs
    on the listener thread, outside the interrupted frame.
    """

    def __init__(
        self,
        callback: Callable[[int], None],
        *,
        signals: tuple[int, ...] = (signal.SIGINT, signal.SIGTERM),
    ) -> None:
        self.callback = callback
        self.signals = tuple(signals)
        self._queue: queue.Queue[int | None] = queue.Queue()
        self._previous: dict[int, Any] = {}
        self._thread: threading.Thread | None = None

    def _enqueue(self, signum: int, frame: Any) -> None:
        self._queue.put(signum)

    def _loop(self) -> None:
        while True:
            signum = self._queue.get()
            if signum is None:
                return
            self.callback(signum)

    def start(self) -> None:
        """Install handlers. Must be called from the main thread."""
        if self._thread is not None:
            return
        for sig in self.signals:
            self._previous[sig] = signal.signal(sig, self._enqueue)
        self._thread = threading.Thread(target=self._loop, name="termchat-signals", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if threading.current_thread() is threading.main_thread():
            for sig, previous in self._previous.items():
                signal.signal(sig, previous)
        self._previous.clear()
        if self._thread is not None:
            self._queue.put(None)
            self._thread = None


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class SessionController:
    def __init__(
        self,
        api_key: str,
        *,
        client_factory: Callable[[str], ChatCollaborator] | None = None,
        registry: CommandRegistry | None = None,
        config: ChatConfig | None = None,
        logger: ChatLogger | None = None,
        printer: Printer | None = None,
        policy: RetryPolicy | None = None,
        read_input: Callable[[str], str] | None = None,
        release_checker: ReleaseChecker | None = None,
        token_counter: TokenCounter | None = None,
        model: str = GEMINI_MODEL,
        verify_api_key: bool = VERIFY_API_KEY,
        show_token_count: bool = SHOW_TOKEN_COUNT,
        max_read_errors: int = MAX_READ_ERRORS,
        heartbeat_interval: float = HEARTBEAT_INTERVAL,
        exit_func: Callable[[int], Any] | None = None,
    ) -> None:
        self.api_key = api_key
        self.logger = logger if logger is not None else ChatLogger()
        self.policy = policy if policy is not None else RetryPolicy(logger=self.logger)
        self.cancel_event = self.policy.cancel_event
        self._client_factory = client_factory or self._default_client_factory
        self.registry = registry if registry is not None else build_default_registry()
        self.config = config if config is not None else ChatConfig()
        self.printer = printer if printer is not None else StreamPrinter()
        self.release_checker = release_checker if release_checker is not None else ReleaseChecker(self.policy)
        self.token_counter = (
            token_counter
            if token_counter is not None
            else TokenCounter(self.ensure_client, self.policy, model=lambda: self.model)
        )
        self._read_input = read_input or input
        self.model = model
        self.verify_api_key = bool(verify_api_key)
        self.show_token_count = bool(show_token_count)
        self.max_read_errors = max(1, int(max_read_errors))
        self.heartbeat_interval = float(heartbeat_interval)
        self._exit = exit_func or os._exit

        self.store = MessageStore()
        self.safety = SafetySettings()
        self.state = SessionState.ACTIVE
        self.exit_code = 0
        self.token_total = 0

        # Guards the client handle and the lifecycle flag.
        self._lock = threading.RLock()
        self._client: ChatCollaborator | None = None
        self._started = False
        self._shutdown_done = False
        self._read_errors = 0
        self._worker: PeriodicWorker | None = None
        # Remote calls in flight; shutdown leaves their client open until they return.
        self._inflight = 0
        self._close_deferred = False
        self._deferred_client: ChatCollaborator | None = None

    def _default_client_factory(self, api_key: str) -> ChatCollaborator:
        return GeminiClient(api_key, model=self.model, logger=self.logger)

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.ACTIVE

    # -- lifecycle ----------------------------------------------------------

    def start(self) -> None:
        """Create and verify the AI client, then greet the user.

        Raises ``SessionStartError`` when the client cannot be built or the
        key cannot be verified.
        """
        try:
            client = self._client_factory(self.api_key)
        except Exception as exc:
            self.state = SessionState.ENDED
            raise SessionStartError(f"failed to create AI client: {exc}") from exc
        if self.verify_api_key:
            try:
                self.policy.call(client.ping, label="verify API key")
            except Exception as exc:
                client.close()
                self.state = SessionState.ENDED
                raise SessionStartError(f"failed to start session: {exc}") from exc
        with self._lock:
            self._client = client
            self._started = True
        self.logger.event("session_start", model=self.model, history_size=self.config.history_size)
        self.print_ai(CONTEXT_PROMPT)

    def run(self, *, install_signals: bool = True) -> int:
        """Drive the read/dispatch loop until quit, EOF or a fatal error."""
        if not self._started:
            self.start()
        listener = SignalListener(self.handle_signal) if install_signals else None
        if listener is not None:
            listener.start()
        if self.heartbeat_interval > 0:
            self._worker = PeriodicWorker(
                self.heartbeat_interval,
                lambda: self.logger.event("heartbeat", messages=len(self.store)),
                cancel_event=self.cancel_event,
                logger=self.logger,
            )
            self._worker.start()
        try:
            while self.is_active:
                if self.process_input():
                    break
        finally:
            self.shutdown()
            if listener is not None:
                listener.stop()
        return self.exit_code

    def process_input(self) -> bool:
        """Read and handle one line. Returns True when the session should end."""
        if not self.is_active:
            return True
        try:
            line = self._read_input(f"{USER_PREFIX} ")
        except EOFError:
            self.logger.debug("input stream closed")
            return True
        except KeyboardInterrupt:
            self.printer.print_line(INTERRUPT_MESSAGE)
            return True
        except (OSError, UnicodeDecodeError) as exc:
            self._read_errors += 1
            self.logger.error(f"error reading user input: {exc}", error=exc, consecutive=self._read_errors)
            if self._read_errors >= self.max_read_errors:
                self.logger.error(f"giving up after {self._read_errors} consecutive input errors")
                self.exit_code = 1
                return True
            return False
        self._read_errors = 0

        text = str(line or "").strip()
        if not text:
            return False
        if self.registry.is_command(text):
            return self.registry.dispatch(text, self)
        return self.handle_user_input(text)

    def handle_user_input(self, text: str) -> bool:
        """Send plain text to the AI and record the exchange on success."""
        try:
            reply = self.send_prompt(text, with_history=True)
        except SessionRenewError as exc:
            self.logger.error(f"failed to renew session: {exc}", error=exc)
            return True
        except OperationCancelled as exc:
            self.logger.debug(f"message cancelled: {exc}")
            return not self.is_active
        except REMOTE_ERRORS as exc:
            self.logger.error(f"error sending message: {exc}", error=exc)
            return False

        self.store.add(USER_PREFIX, text, self.config)
        self.store.add(AI_PREFIX, reply, self.config)
        self.print_ai(reply)
        if self.show_token_count:
            self._report_tokens(text, reply)
        return False

    def shutdown(self) -> bool:
        """Cancel pending work and end the session. Safe to call repeatedly.

        Called from the signal thread while a round-trip is running, the
        client and the release checker stay open until that call returns.
        """
        self.cancel_event.set()
        with self._lock:
            if self._shutdown_done:
                return False
            self._shutdown_done = True
            self.state = SessionState.ENDED
            client, self._client = self._client, None
            deferred = self._inflight > 0
            if deferred:
                self._close_deferred = True
                self._deferred_client = client
        if self._worker is not None:
            self._worker.stop()
        if deferred:
            self.logger.debug("remote call in flight, closing the AI client once it returns")
        else:
            self._release_resources(client)
        self.logger.event("session_end", messages=len(self.store), exit_code=self.exit_code)
        return True

    def _release_resources(self, client: ChatCollaborator | None) -> None:
        if client is not None:
            try:
                client.close()
            except Exception as exc:
                self.logger.debug(f"closing AI client failed: {exc}", error=exc)
        try:
            self.release_checker.close()
        except Exception as exc:
            self.logger.debug(f"closing release checker failed: {exc}", error=exc)

    @contextmanager
    def remote_call(self) -> Iterator[None]:
        """Mark a remote round-trip as in flight for the duration of the block."""
        with self._lock:
            self._inflight += 1
        try:
            yield
        finally:
            with self._lock:
                self._inflight -= 1
                release = self._inflight == 0 and self._close_deferred
                client = None
                if release:
                    self._close_deferred = False
                    client, self._deferred_client = self._deferred_client, None
            if release:
                self._release_resources(client)

    def handle_signal(self, signum: int) -> None:
        self.printer.print_line(SIGNAL_MESSAGE)
        self.logger.event("signal_received", signum=signum)
        self.shutdown()
        self._exit(0)

    # -- client handle ------------------------------------------------------

    def renew(self) -> None:
        """Replace the client handle with a fresh one; history is untouched."""
        with self._lock:
            if not self.is_active:
                raise SessionRenewError("session has ended")
            old, self._client = self._client, None
            if old is not None:
                try:
                    old.close()
                except Exception as exc:
                    self.logger.debug(f"closing stale AI client failed: {exc}", error=exc)
            try:
                self._client = self._client_factory(self.api_key)
            except Exception as exc:
                self.state = SessionState.ENDED
                self.exit_code = 1
                raise SessionRenewError(f"failed to create AI client: {exc}") from exc
        self.logger.event("session_renewed", messages=len(self.store))

    def ensure_client(self) -> ChatCollaborator:
        with self._lock:
            client = self._client
            if client is None or getattr(client, "closed", False):
                if not self.is_active:
                    raise CollaboratorUnavailable("session has ended")
                self.renew()
                client = self._client
            return client

    # -- round-trips --------------------------------------------------------

    def _generate(self, prompt: str) -> str:
        with self.remote_call():
            client = self.ensure_client()
            return self.policy.call(
                lambda: client.generate(prompt, model=self.model, safety=self.safety, cancel=self.cancel_event),
                label="send message",
            )

    def send_prompt(self, prompt: str, *, with_history: bool = True) -> str:
        """One AI round-trip through the retry policy.

        With *with_history* the current context window is prepended. A
        closed client handle is renewed once and the call repeated.
        """
        context = self.store.get_window(self.config) if with_history else ""
        full = f"{context}\n{SEPARATOR}\n{USER_PREFIX} {prompt}" if context else prompt
        try:
            return self._generate(full)
        except CollaboratorUnavailable as exc:
            self.logger.info(f"AI client unavailable ({exc}), renewing session")
            self.renew()
            return self._generate(full)

    def model_info(self, model: str) -> dict[str, Any]:
        with self.remote_call():
            client = self.ensure_client()
            return self.policy.call(lambda: client.model_info(model), label=f"check model {model}")

    # -- display ------------------------------------------------------------

    def print_ai(self, text: str) -> None:
        self.printer.print_typing(f"{AI_PREFIX} {text}")

    def reset_token_total(self) -> None:
        self.token_total = 0

    def _report_tokens(self, text: str, reply: str) -> None:
        try:
            with self.remote_call():
                count = self.token_counter.count(text=f"{text}\n{reply}")
        except REMOTE_ERRORS as exc:
            self.logger.debug(f"token count failed: {exc}", error=exc)
            return
        self.token_total += count
        self.printer.print_line(f"Tokens used: {count} (total {self.token_total})")

"""AI round-trip collaborator for the Google Generative Language REST API."""

from __future__ import annotations

import base64
import threading
from typing import Any, Protocol

import requests

from termchat.config import (
    GEMINI_BASE_URL,
    GEMINI_MODEL,
    GEMINI_TEMPERATURE,
    GEMINI_TIMEOUT,
)
from termchat.errors import APIError, CollaboratorUnavailable, ContentBlocked, OperationCancelled
from termchat.safety import SafetySettings
from termchat.utils.logging_utils import ChatLogger

_PROVIDER = "gemini"
# The key travels in this header, never in the URL.
_API_KEY_HEADER = "x-goog-api-key"


class ChatCollaborator(Protocol):
    """What the session needs from an AI client handle."""

    closed: bool

    def generate(
        self,
        prompt: str,
        *,
        model: str | None = None,
        safety: SafetySettings | None = None,
        cancel: threading.Event | None = None,
    ) -> str: ...

    def ping(self) -> bool: ...

    def model_info(self, model: str) -> dict[str, Any]: ...

    def count_tokens(
        self,
        *,
        text: str = "",
        image: bytes = b"",
        mime_type: str = "",
        model: str | None = None,
    ) -> int: ...

    def close(self) -> None: ...


def _model_path(model: str) -> str:
    name = str(model or "").strip()
    if name.startswith("models/"):
        name = name[len("models/"):]
    if not name:
        raise ValueError("model name is empty")
    return f"models/{name}"


def _error_message(resp: requests.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return str(resp.text or "")[:1000]
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
    return str(resp.text or "")[:1000]


def _check_cancel(cancel: threading.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise OperationCancelled("request cancelled")


def _response_text(data: dict[str, Any]) -> str:
    candidates = data.get("candidates") or []
    if not candidates:
        feedback = data.get("promptFeedback") or {}
        reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
        if reason:
            raise ContentBlocked(f"prompt blocked: {reason}")
        return ""
    first = candidates[0] or {}
    content = first.get("content") or {}
    parts = content.get("parts") or []
    text = "".join(
        str(p.get("text", "")) for p in parts if isinstance(p, dict) and p.get("text")
    )
    if not text and first.get("finishReason") == "SAFETY":
        raise ContentBlocked("response blocked by safety filters")
    return text


class GeminiClient:
    """One authenticated handle on the generateContent API.

    The handle owns a ``requests.Session`` unless one is injected. After
    ``close()`` every call raises ``CollaboratorUnavailable`` so the session
    knows to renew it.
    """

    def __init__(
        self,
        api_key: str,
        *,
        model: str = GEMINI_MODEL,
        base_url: str = GEMINI_BASE_URL,
        timeout: int = GEMINI_TIMEOUT,
        temperature: float = GEMINI_TEMPERATURE,
        http: requests.Session | None = None,
        logger: ChatLogger | None = None,
    ) -> None:
        key = str(api_key or "").strip()
        if not key:
            raise ValueError("missing API key")
        self._api_key = key
        self.model = model
        self.base_url = str(base_url or GEMINI_BASE_URL).rstrip("/")
        self.timeout = timeout
        self.temperature = temperature
        self._owns_http = http is None
        self._http = http if http is not None else requests.Session()
        self.logger = logger
        self.closed = False
        self._lock = threading.Lock()

    def _request(
        self,
        method: str,
        path: str,
        *,
        payload: dict[str, Any] | None = None,
        cancel: threading.Event | None = None,
    ) -> dict[str, Any]:
        if self.closed:
            raise CollaboratorUnavailable("AI client is closed")
        _check_cancel(cancel)
        resp = self._http.request(
            method,
            f"{self.base_url}/{path}",
            headers={_API_KEY_HEADER: self._api_key},
            json=payload,
            timeout=self.timeout,
        )
        _check_cancel(cancel)
        if resp.status_code >= 400:
            raise APIError(resp.status_code, _error_message(resp), provider=_PROVIDER)
        try:
            data = resp.json()
        except ValueError as exc:
            preview = str(resp.text or "")[:1000]
            raise APIError(resp.status_code, f"non-JSON response: {preview}", provider=_PROVIDER) from exc
        if not isinstance(data, dict):
            raise APIError(resp.status_code, f"expected object, got {type(data).__name__}", provider=_PROVIDER)
        return data

    def generate(
        self,
        prompt: str,
        *,
        model: str | None = None,
        safety: SafetySettings | None = None,
        cancel: threading.Event | None = None,
    ) -> str:
        model = model or self.model
        payload: dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": str(prompt or "")}]}],
            "generationConfig": {"temperature": self.temperature},
        }
        if safety is not None:
            payload["safetySettings"] = safety.to_payload()
        if self.logger is not None:
            self.logger.event("llm_request", provider=_PROVIDER, model=model, prompt=prompt)
        data = self._request("POST", f"{_model_path(model)}:generateContent", payload=payload, cancel=cancel)
        text = _response_text(data)
        if self.logger is not None:
            self.logger.event(
                "llm_response",
                provider=_PROVIDER,
                model=model,
                output=text,
                usage=data.get("usageMetadata"),
            )
        return text

    def ping(self) -> bool:
        """Cheap authenticated call used to verify the key at startup."""
        self.model_info(self.model)
        return True

    def model_info(self, model: str) -> dict[str, Any]:
        return self._request("GET", _model_path(model))

    def count_tokens(
        self,
        *,
        text: str = "",
        image: bytes = b"",
        mime_type: str = "",
        model: str | None = None,
    ) -> int:
        parts: list[dict[str, Any]] = []
        if text:
            parts.append({"text": text})
        if image:
            parts.append({
                "inline_data": {
                    "mime_type": mime_type or "application/octet-stream",
                    "data": base64.b64encode(image).decode("ascii"),
                }
            })
        if not parts:
            raise ValueError("nothing to count: provide text or image bytes")
        model = model or self.model
        data = self._request(
            "POST",
            f"{_model_path(model)}:countTokens",
            payload={"contents": [{"parts": parts}]},
        )
        try:
            return int(data.get("totalTokens", 0))
        except (TypeError, ValueError) as exc:
            raise APIError(200, f"invalid totalTokens: {data.get('totalTokens')!r}", provider=_PROVIDER) from exc

    def close(self) -> None:
        with self._lock:
            if self.closed:
                return
            self.closed = True
        if self._owns_http:
            self._http.close()

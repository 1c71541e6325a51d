"""Token-count collaborator, always called through the retry policy."""

from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Callable

from termchat.llm import ChatCollaborator
from termchat.retry_policy import RetryPolicy, is_retryable_api_error


class TokenCounter:
    """Count tokens for text and/or image content.

    ``client`` is a getter rather than a handle so a renewed session client
    is picked up without rebuilding the counter.
    """

    def __init__(
        self,
        client: Callable[[], ChatCollaborator],
        policy: RetryPolicy,
        *,
        model: Callable[[], str] | None = None,
    ) -> None:
        self._client = client
        self.policy = policy
        self._model = model

    def count(self, text: str = "", image: bytes = b"", mime_type: str = "") -> int:
        if not text and not image:
            raise ValueError("nothing to count: provide text or image bytes")
        model = self._model() if self._model is not None else None

        def _count() -> int:
            return self._client().count_tokens(
                text=text, image=image, mime_type=mime_type, model=model
            )

        return self.policy.call(_count, is_retryable_api_error, label="count tokens")

    def count_file(self, path: str | Path) -> int:
        """Count one file; images are sent as inline bytes, anything else as UTF-8 text."""
        p = Path(path).expanduser()
        mime_type, _ = mimetypes.guess_type(p.name)
        if mime_type and mime_type.startswith("image/"):
            return self.count(image=p.read_bytes(), mime_type=mime_type)
        return self.count(text=p.read_text(encoding="utf-8", errors="replace"))

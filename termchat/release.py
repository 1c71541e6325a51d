"""Release-info collaborator: latest-version check over HTTP+JSON."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import requests

from termchat.config import (
    APPLICATION_NAME,
    CURRENT_VERSION,
    RELEASE_API_URL,
    RELEASE_DATE_FORMAT,
    RELEASE_NOTES_PROMPT,
    RELEASE_TIMEOUT,
)
from termchat.retry_policy import RetryPolicy, is_retryable_http_error
from termchat.utils.text_utils import _truncate_middle

VERSION_COMMAND = ":checkversion"


@dataclass(frozen=True)
class ReleaseInfo:
    tag_name: str
    name: str = ""
    body: str = ""
    published_at: str = ""

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "ReleaseInfo":
        tag = str(data.get("tag_name") or "").strip()
        if not tag:
            raise ValueError("release payload has no tag_name")
        return cls(
            tag_name=tag,
            name=str(data.get("name") or ""),
            body=str(data.get("body") or ""),
            published_at=str(data.get("published_at") or ""),
        )


def format_release_date(value: str) -> str:
    """Render an RFC 3339 timestamp (``2024-01-31T12:00:00Z``) in UTC."""
    text = str(value or "").strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc).strftime(RELEASE_DATE_FORMAT)


def build_release_prompt(release: ReleaseInfo, *, current_version: str = CURRENT_VERSION) -> str:
    date = release.published_at
    if date:
        try:
            date = format_release_date(date)
        except ValueError:
            pass
    return RELEASE_NOTES_PROMPT.format(
        command=VERSION_COMMAND,
        app=APPLICATION_NAME,
        current=current_version,
        tag=release.tag_name,
        name=release.name or release.tag_name,
        date=date or "unknown date",
        body=_truncate_middle(release.body, 4000) if release.body else "(no release notes)",
    )


class ReleaseChecker:
    def __init__(
        self,
        policy: RetryPolicy,
        *,
        http: requests.Session | None = None,
        base_url: str = RELEASE_API_URL,
        timeout: int = RELEASE_TIMEOUT,
        current_version: str = CURRENT_VERSION,
    ) -> None:
        self.policy = policy
        self._owns_http = http is None
        self._http = http if http is not None else requests.Session()
        self.base_url = str(base_url or RELEASE_API_URL).rstrip("/")
        self.timeout = timeout
        self.current_version = current_version

    def _get_release(self, url: str) -> ReleaseInfo:
        resp = self._http.get(
            url,
            headers={"Accept": "application/vnd.github+json"},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise ValueError(f"expected release object, got {type(data).__name__}")
        return ReleaseInfo.from_payload(data)

    def latest(self) -> ReleaseInfo:
        url = f"{self.base_url}/latest"
        return self.policy.call(lambda: self._get_release(url), is_retryable_http_error, label="check latest release")

    def check_latest(self) -> tuple[bool, str]:
        """Return ``(is_latest, latest_tag)`` for the installed version."""
        release = self.latest()
        return release.tag_name == self.current_version, release.tag_name

    def fetch_release(self, tag: str) -> ReleaseInfo:
        url = f"{self.base_url}/tags/{tag}"
        return self.policy.call(lambda: self._get_release(url), is_retryable_http_error, label=f"fetch release {tag}")

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

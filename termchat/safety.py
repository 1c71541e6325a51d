"""Content-safety thresholds sent with every generation request."""

from __future__ import annotations

from dataclasses import dataclass, fields

BLOCK_LOW_AND_ABOVE = "BLOCK_LOW_AND_ABOVE"
BLOCK_MEDIUM_AND_ABOVE = "BLOCK_MEDIUM_AND_ABOVE"
BLOCK_ONLY_HIGH = "BLOCK_ONLY_HIGH"

# Category names understood by the generateContent endpoint.
_CATEGORY_BY_FIELD = {
    "dangerous_content": "HARM_CATEGORY_DANGEROUS_CONTENT",
    "harassment": "HARM_CATEGORY_HARASSMENT",
    "sexually_explicit": "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "hate_speech": "HARM_CATEGORY_HATE_SPEECH",
}


@dataclass
class SafetySettings:
    dangerous_content: str = BLOCK_MEDIUM_AND_ABOVE
    harassment: str = BLOCK_MEDIUM_AND_ABOVE
    sexually_explicit: str = BLOCK_MEDIUM_AND_ABOVE
    hate_speech: str = BLOCK_MEDIUM_AND_ABOVE

    def _set_all(self, threshold: str) -> None:
        for f in fields(self):
            setattr(self, f.name, threshold)

    def set_low(self) -> None:
        """Filter more aggressively: block from low probability upwards."""
        self._set_all(BLOCK_LOW_AND_ABOVE)

    def set_default(self) -> None:
        self._set_all(BLOCK_MEDIUM_AND_ABOVE)

    def set_high(self) -> None:
        """Only block content with a high probability of harm."""
        self._set_all(BLOCK_ONLY_HIGH)

    def apply_level(self, level: str) -> bool:
        setter = SAFETY_LEVELS.get(str(level or "").strip().lower())
        if setter is None:
            return False
        setter(self)
        return True

    def to_payload(self) -> list[dict[str, str]]:
        return [
            {"category": category, "threshold": getattr(self, name)}
            for name, category in _CATEGORY_BY_FIELD.items()
        ]


SAFETY_LEVELS = {
    "low": SafetySettings.set_low,
    "default": SafetySettings.set_default,
    "high": SafetySettings.set_high,
}

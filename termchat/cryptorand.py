"""Cryptographically random strings for the ``:cryptorand`` command."""

from __future__ import annotations

import secrets
import string

CHARSET = string.ascii_lowercase + string.ascii_uppercase + string.digits

_rng = secrets.SystemRandom()


def generate_random_string(length: int) -> str:
    """Return *length* distinct characters drawn from a shuffled charset.

    Characters never repeat, so *length* cannot exceed ``len(CHARSET)``.
    """
    if length <= 0:
        raise ValueError("length must be a positive integer")
    if length > len(CHARSET):
        raise ValueError(f"length cannot exceed the size of the character set ({len(CHARSET)})")
    return "".join(_rng.sample(CHARSET, length))

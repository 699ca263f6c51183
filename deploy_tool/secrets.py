"""Application secret handling for the generated ``.env`` file."""
from __future__ import annotations

import base64
import os
from typing import Optional

from .config import SECRET_PLACEHOLDER

SECRET_KEY_NAME = "SECRET_KEY"


class SecretError(Exception):
    """Raised when a secret cannot be generated."""


def generate_secret_key(length: int = 50) -> str:
    """Return a random secret of *length* characters.

    64 random bytes are base64 encoded and the ``=`` padding is stripped, so the
    result only contains ``[A-Za-z0-9+/]``. No quoting is needed in ``.env``.
    """

    if length <= 0:
        raise SecretError("Длина секрета должна быть положительной.")
    encoded = ""
    while len(encoded) < length:
        encoded += base64.b64encode(os.urandom(64)).decode("ascii").replace("=", "")
    return encoded[:length]


def is_placeholder(value: Optional[str], placeholder: str = SECRET_PLACEHOLDER) -> bool:
    """Return ``True`` when *value* still needs a real secret."""

    if value is None:
        return True
    value = value.strip()
    return not value or value == placeholder


__all__ = [
    "SECRET_KEY_NAME",
    "SecretError",
    "generate_secret_key",
    "is_placeholder",
]

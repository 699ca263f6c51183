"""Helper utilities for the deployment tool."""
from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

LOGGER = logging.getLogger(__name__)

SENSITIVE_MARKERS = ("PASSWORD", "SECRET_KEY")
HIDDEN_VALUE = "***HIDDEN***"


class DeployError(Exception):
    """Base class for failures that abort a deployment step."""


class MissingDependencyError(DeployError):
    """Raised when a required external tool is not installed."""


class PermissionDeniedError(DeployError):
    """Raised when a file cannot be written even with elevated privileges."""


def require_tool(name: str, hint: Optional[str] = None) -> str:
    """Return the absolute path of *name* or raise :class:`MissingDependencyError`."""

    path = shutil.which(name)
    if not path:
        message = f"Не найдена утилита '{name}'."
        if hint:
            message = f"{message} {hint}"
        raise MissingDependencyError(message)
    return path


def ensure_directory(path: Path) -> Path:
    """Create *path* if it does not exist and return it."""

    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def invoking_user_ids() -> Tuple[int, int]:
    """Return uid/gid of the user who started the tool, looking through ``sudo``."""

    uid = os.environ.get("SUDO_UID")
    gid = os.environ.get("SUDO_GID")
    if uid and gid and uid.isdigit() and gid.isdigit():
        return int(uid), int(gid)
    return os.getuid(), os.getgid()


def write_with_fallback(path: Path, content: str) -> None:
    """Write *content* to *path*, escalating through ``sudo`` on ``PermissionError``.

    The first tier is a plain write. When the target is not writable the text is
    piped through ``sudo tee`` and ownership is handed back to the invoking user.
    A failure of the second tier raises :class:`PermissionDeniedError`.
    """

    path = Path(path)
    try:
        path.write_text(content, encoding="utf-8")
        return
    except PermissionError as exc:
        LOGGER.warning("Нет прав на запись в '%s' (%s), пробуем через sudo.", path, exc)

    sudo = require_tool("sudo", "Запустите утилиту от имени пользователя с правами на запись.")
    result = subprocess.run(
        [sudo, "tee", str(path)],
        input=content,
        capture_output=True,
        text=True,
    )
    if result.returncode != 0:
        raise PermissionDeniedError(
            f"Не удалось записать '{path}' через sudo: {result.stderr.strip()}"
        )

    uid, gid = invoking_user_ids()
    chown = subprocess.run(
        [sudo, "chown", f"{uid}:{gid}", str(path)],
        capture_output=True,
        text=True,
    )
    if chown.returncode != 0:
        raise PermissionDeniedError(
            f"Не удалось вернуть владельца файла '{path}': {chown.stderr.strip()}"
        )
    LOGGER.info("Файл '%s' записан через sudo, владелец %s:%s.", path, uid, gid)


def is_sensitive_key(key: str) -> bool:
    upper = key.upper()
    return any(marker in upper for marker in SENSITIVE_MARKERS)


def mask_sensitive(value: str, secrets: Iterable[str]) -> str:
    """Replace occurrences of secret values in *value* with '***'."""

    masked = value
    for secret in secrets:
        if secret:
            masked = masked.replace(secret, "***")
    return masked


def masked_env_lines(pairs: Iterable[Tuple[str, str]], visible: Iterable[str] = ("SERVER_IP",)) -> List[str]:
    """Render ``KEY=VALUE`` lines for display, hiding every value except *visible* keys.

    Sensitive keys are moved to the end so the summary reads the same way as the
    setup script always printed it.
    """

    shown = set(visible)
    regular: List[str] = []
    sensitive: List[str] = []
    for key, value in pairs:
        if key in shown:
            regular.append(f"{key}={value}")
        elif is_sensitive_key(key):
            sensitive.append(f"{key}={HIDDEN_VALUE}")
        else:
            regular.append(f"{key}={HIDDEN_VALUE}")
    return regular + sensitive


__all__ = [
    "DeployError",
    "MissingDependencyError",
    "PermissionDeniedError",
    "ensure_directory",
    "invoking_user_ids",
    "is_sensitive_key",
    "mask_sensitive",
    "masked_env_lines",
    "require_tool",
    "write_with_fallback",
]

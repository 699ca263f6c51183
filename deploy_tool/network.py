"""Detection of the host IP address used in generated URLs."""
from __future__ import annotations

import ipaddress
import logging
import re
import shutil
import socket
import subprocess
from typing import Callable, List, Optional, Sequence

LOGGER = logging.getLogger(__name__)

PROBE_TARGET = "8.8.8.8"

_INET_RE = re.compile(r"inet (?:addr:)?(\d{1,3}(?:\.\d{1,3}){3})")


class DetectionError(Exception):
    """Raised when no server IP could be determined."""


def is_valid_ip(value: Optional[str]) -> bool:
    if not value:
        return False
    try:
        ipaddress.ip_address(value.strip())
    except ValueError:
        return False
    return True


def _command_output(command: Sequence[str]) -> Optional[str]:
    if not shutil.which(command[0]):
        LOGGER.debug("Утилита '%s' не найдена, пропускаем.", command[0])
        return None
    try:
        result = subprocess.run(list(command), capture_output=True, text=True, timeout=5)
    except (OSError, subprocess.TimeoutExpired) as exc:
        LOGGER.debug("Команда '%s' завершилась ошибкой: %s", " ".join(command), exc)
        return None
    if result.returncode != 0:
        return None
    return result.stdout


def from_hostname() -> Optional[str]:
    output = _command_output(["hostname", "-I"])
    if not output:
        return None
    tokens = output.split()
    return tokens[0] if tokens else None


def from_ip_route() -> Optional[str]:
    output = _command_output(["ip", "route", "get", PROBE_TARGET])
    if not output:
        return None
    tokens = output.split()
    if "src" in tokens:
        index = tokens.index("src")
        if index + 1 < len(tokens):
            return tokens[index + 1]
    return None


def from_ifconfig() -> Optional[str]:
    output = _command_output(["ifconfig"])
    if not output:
        return None
    for address in _INET_RE.findall(output):
        if not address.startswith("127."):
            return address
    return None


def from_socket() -> Optional[str]:
    # UDP connect sends no packets, it only selects the outgoing interface.
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect((PROBE_TARGET, 80))
            address = sock.getsockname()[0]
    except OSError as exc:
        LOGGER.debug("Не удалось определить адрес через сокет: %s", exc)
        return None
    if address.startswith("127.") or address == "0.0.0.0":
        return None
    return address


DEFAULT_PROBES: List[Callable[[], Optional[str]]] = [
    from_hostname,
    from_ip_route,
    from_ifconfig,
    from_socket,
]


def detect_server_ip(probes: Optional[Sequence[Callable[[], Optional[str]]]] = None) -> Optional[str]:
    """Return the first valid address reported by *probes*, or ``None``."""

    for probe in probes if probes is not None else DEFAULT_PROBES:
        address = probe()
        if is_valid_ip(address):
            LOGGER.debug("Адрес %s определён методом %s.", address, getattr(probe, "__name__", probe))
            return address.strip()
    return None


__all__ = [
    "DetectionError",
    "detect_server_ip",
    "from_hostname",
    "from_ifconfig",
    "from_ip_route",
    "from_socket",
    "is_valid_ip",
]

"""Interactive console helpers used by the setup flow."""
from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Callable, Optional, TextIO

from .network import DetectionError, is_valid_ip

GREEN = "\033[0;32m"
YELLOW = "\033[1;33m"
RED = "\033[0;31m"
RESET = "\033[0m"

TRUE_VALUES = {"y", "yes", "д", "да", "true", "1"}
FALSE_VALUES = {"n", "no", "н", "нет", "false", "0"}


@dataclass
class ConsolePrompter:
    input_func: Callable[[str], str] = input
    stream: TextIO = field(default_factory=lambda: sys.stdout)
    color: Optional[bool] = None

    def __post_init__(self) -> None:
        if self.color is None:
            self.color = bool(getattr(self.stream, "isatty", lambda: False)())

    # ------------------------------------------------------------------
    def success(self, message: str) -> None:
        self._print(f"✓ {message}", GREEN)

    def warning(self, message: str) -> None:
        self._print(f"⚠ {message}", YELLOW)

    def error(self, message: str) -> None:
        self._print(f"✗ {message}", RED)

    def info(self, message: str = "") -> None:
        print(message, file=self.stream)

    def banner(self, title: str) -> None:
        self.info("=" * 42)
        self.info(title)
        self.info("=" * 42)

    # ------------------------------------------------------------------
    def confirm(self, question: str, *, default: bool = False) -> bool:
        while True:
            try:
                answer = self.input_func(question).strip().lower()
            except EOFError:
                # stdin closed, nobody is there to answer
                self.info()
                return default
            if not answer:
                return default
            if answer in TRUE_VALUES:
                return True
            if answer in FALSE_VALUES:
                return False
            self.info("Ответ не распознан. Введите 'y' или 'n'.")

    def ask_server_ip(self) -> str:
        """Ask the operator for the server address; an empty answer is fatal."""

        while True:
            try:
                answer = self.input_func("Введите IP-адрес сервера: ").strip()
            except EOFError:
                self.info()
                answer = ""
            if not answer:
                raise DetectionError("IP-адрес сервера не указан.")
            if is_valid_ip(answer):
                return answer
            self.info("Некорректный IP-адрес, попробуйте ещё раз.")

    # ------------------------------------------------------------------
    def _print(self, message: str, color: str) -> None:
        if self.color:
            message = f"{color}{message}{RESET}"
        print(message, file=self.stream)


__all__ = ["ConsolePrompter"]

"""Discovery and invocation of Docker Compose."""
from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from .config import ComposeConfig
from .utils import DeployError, MissingDependencyError, require_tool

LOGGER = logging.getLogger(__name__)

DOCKER_INSTALL_HINT = (
    "Установите Docker:\n"
    "  curl -fsSL https://get.docker.com -o get-docker.sh\n"
    "  sudo sh get-docker.sh"
)


class ComposeError(DeployError):
    """Raised when a compose command exits with a non-zero status."""


def require_docker() -> str:
    return require_tool("docker", DOCKER_INSTALL_HINT)


def detect_compose_command() -> List[str]:
    """Return the compose invocation available on this host.

    The standalone ``docker-compose`` binary wins over the ``docker compose``
    plugin, matching what operators of older hosts have installed.
    """

    standalone = shutil.which("docker-compose")
    if standalone:
        return ["docker-compose"]
    docker = shutil.which("docker")
    if docker:
        result = subprocess.run(
            ["docker", "compose", "version"],
            capture_output=True,
            text=True,
        )
        if result.returncode == 0:
            return ["docker", "compose"]
    raise MissingDependencyError("Docker Compose не установлен. Установите Docker Compose.")


@dataclass
class ComposeRunner:
    command: List[str]
    config: ComposeConfig = field(default_factory=ComposeConfig)
    logger: logging.Logger = LOGGER

    @classmethod
    def detect(cls, config: Optional[ComposeConfig] = None) -> "ComposeRunner":
        return cls(command=detect_compose_command(), config=config or ComposeConfig())

    # ------------------------------------------------------------------
    def base_command(self) -> List[str]:
        args = list(self.command)
        for compose_file in self.config.files:
            args.extend(["-f", compose_file])
        return args

    def display_command(self, *args: str) -> str:
        return shlex.join(self.base_command() + list(args))

    # ------------------------------------------------------------------
    def up(self, services: Sequence[str] = (), *, build: bool = True, detach: bool = True) -> None:
        args = ["up"]
        if detach:
            args.append("-d")
        if build:
            args.append("--build")
        args.extend(services)
        self._run(args, description="Запуск контейнеров")

    def run(self, service: str, args: Sequence[str], *, remove: bool = True) -> None:
        command = ["run"]
        if remove:
            command.append("--rm")
        command.append(service)
        command.extend(args)
        self._run(command, description=f"Запуск одноразового контейнера {service}")

    def restart(self, service: Optional[str] = None) -> None:
        args = ["restart"]
        if service:
            args.append(service)
        self._run(args, description="Перезапуск контейнеров")

    # ------------------------------------------------------------------
    def _run(self, args: Sequence[str], *, description: Optional[str] = None) -> None:
        command = self.base_command() + list(args)
        desc = f" ({description})" if description else ""
        self.logger.info("Выполнение команды%s: %s", desc, shlex.join(command))
        cwd = Path(self.config.project_directory).expanduser()
        try:
            result = subprocess.run(command, cwd=str(cwd))
        except OSError as exc:
            raise ComposeError(f"Не удалось выполнить '{shlex.join(command)}': {exc}") from exc
        if result.returncode != 0:
            raise ComposeError(
                f"Команда '{shlex.join(command)}' завершилась с кодом {result.returncode}."
            )


__all__ = [
    "ComposeError",
    "ComposeRunner",
    "detect_compose_command",
    "require_docker",
]

"""End-to-end setup: environment checks, ``.env`` reconciliation and compose start."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from .compose import ComposeRunner, detect_compose_command, require_docker
from .config import AppConfig
from .configurator import ConsolePrompter
from .envfile import ConfigReconciler, EnvFile, ReconcileReport, desired_pairs_for
from .network import detect_server_ip, is_valid_ip
from .utils import masked_env_lines

LOGGER = logging.getLogger(__name__)


@dataclass
class DeploymentRunner:
    config: AppConfig
    env_path: Path
    prompter: ConsolePrompter = field(default_factory=ConsolePrompter)
    reconciler: Optional[ConfigReconciler] = None
    detector: Callable[[], Optional[str]] = detect_server_ip
    compose_factory: Optional[Callable[[], ComposeRunner]] = None
    logger: logging.Logger = LOGGER

    def __post_init__(self) -> None:
        self.env_path = Path(self.env_path)
        if self.reconciler is None:
            self.reconciler = ConfigReconciler(self.config.env)
        if self.compose_factory is None:
            self.compose_factory = self._default_compose

    def run(self, server_ip: Optional[str] = None, *, assume_yes: bool = False, start: Optional[bool] = None) -> bool:
        """Run the whole setup flow; return ``True`` when containers were started.

        *start* forces the answer to the "start containers" question; ``None``
        means ask (or accept with *assume_yes*).
        """

        self.prompter.banner("Настройка и запуск FunZone в Docker")
        self.prompter.info()

        compose = self.check_environment()
        server_ip = self.resolve_server_ip(server_ip)
        self.reconcile_env(server_ip)
        self.show_env_summary()

        if start is None:
            start = assume_yes or self.prompter.confirm(
                "Запустить Docker-контейнеры сейчас? (y/n): ", default=False
            )
        if not start:
            self.prompter.info("Настройка завершена. Запустить Docker можно позже командой:")
            self.prompter.info(f"  {compose.display_command('up', '-d', '--build')}")
            return False

        self.prompter.info()
        self.prompter.banner("Запуск Docker-контейнеров...")
        compose.up()
        self.print_server_information(server_ip, compose)
        return True

    # ------------------------------------------------------------------
    def check_environment(self) -> ComposeRunner:
        self.prompter.info("Проверка установки Docker...")
        require_docker()
        self.prompter.success("Docker установлен")

        self.prompter.info("Проверка установки Docker Compose...")
        compose = self.compose_factory()
        self.prompter.success("Docker Compose установлен")
        return compose

    def resolve_server_ip(self, server_ip: Optional[str] = None) -> str:
        self.prompter.info()
        if server_ip:
            if not is_valid_ip(server_ip):
                self.prompter.warning(f"Указанное значение '{server_ip}' не похоже на IP-адрес")
            self.prompter.success(f"Используется IP сервера: {server_ip}")
            return server_ip

        self.prompter.info("Определение IP-адреса сервера...")
        detected = self.detector()
        if detected:
            self.prompter.success(f"Обнаружен IP сервера: {detected}")
            return detected
        self.prompter.warning("Не удалось автоматически определить IP сервера")
        return self.prompter.ask_server_ip()

    def reconcile_env(self, server_ip: str) -> ReconcileReport:
        self.prompter.info()
        self.prompter.info("Создание/обновление файла .env...")
        report = self.reconciler.reconcile(self.env_path, desired_pairs_for(server_ip, self.config.env))
        if report.created:
            if report.source == "defaults":
                self.prompter.success("Создан новый файл .env")
            else:
                self.prompter.success(f"Файл .env создан из {Path(report.source).name}")
        else:
            self.prompter.success("Файл .env уже существует")
        if report.secret_generated:
            self.prompter.success("Сгенерирован новый SECRET_KEY")
        else:
            self.prompter.success("SECRET_KEY уже задан в файле .env")
        for key in report.changed:
            self.prompter.success(f"Обновлён {key}")
        return report

    def show_env_summary(self) -> None:
        env = EnvFile.load(self.env_path)
        self.prompter.info()
        self.prompter.banner("Конфигурация файла .env:")
        for line in masked_env_lines(env.items()):
            self.prompter.info(line)
        self.prompter.info()

    def print_server_information(self, server_ip: str, compose: ComposeRunner) -> None:
        self.prompter.info()
        self.prompter.banner("Docker-контейнеры запущены!")
        self.prompter.info()
        self.prompter.info("Информация о сервере:")
        self.prompter.info(f"  IP-адрес: {server_ip}")
        self.prompter.info(f"  Клиентский фронтенд: http://{server_ip}")
        self.prompter.info(f"  Фронтенд владельца: http://{server_ip}/owner")
        self.prompter.info(f"  Backend API: http://{server_ip}/api")
        self.prompter.info(f"  Панель администратора: http://{server_ip}/admin")
        self.prompter.info()
        self.prompter.info("Просмотр логов:")
        self.prompter.info(f"  {compose.display_command('logs', '-f')}")
        self.prompter.info("Остановка контейнеров:")
        self.prompter.info(f"  {compose.display_command('down')}")
        self.prompter.info("Перезапуск контейнеров:")
        self.prompter.info(f"  {compose.display_command('restart')}")

    # ------------------------------------------------------------------
    def _default_compose(self) -> ComposeRunner:
        return ComposeRunner(command=detect_compose_command(), config=self.config.compose)


__all__ = ["DeploymentRunner"]

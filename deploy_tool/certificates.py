"""Let's Encrypt certificate requests through the compose ``certbot`` service."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

import requests

from .compose import ComposeRunner
from .config import CertificateConfig, ConfigError
from .utils import ensure_directory

LOGGER = logging.getLogger(__name__)

NEXT_STEPS = (
    "Дальнейшие шаги:\n"
    "1. Раскомментируйте редирект с HTTP на HTTPS в nginx.conf (строка с 'return 301 https://').\n"
    "2. Перезапустите nginx: {restart_command}\n"
    "3. После этого весь HTTP-трафик будет перенаправляться на HTTPS."
)


def wait_for_http(url: str, timeout: float, *, interval: float = 1.0,
                  sleep: Callable[[float], None] = time.sleep,
                  clock: Callable[[], float] = time.monotonic) -> bool:
    """Poll *url* until any HTTP response arrives or *timeout* seconds pass."""

    deadline = clock() + timeout
    while True:
        try:
            with requests.get(url, timeout=interval):
                return True
        except requests.RequestException as exc:
            LOGGER.debug("Сервис '%s' пока недоступен: %s", url, exc)
        if clock() >= deadline:
            return False
        sleep(interval)


@dataclass
class CertificateRequester:
    config: CertificateConfig
    compose: ComposeRunner
    base_directory: Path = Path(".")
    logger: logging.Logger = LOGGER
    sleep: Callable[[float], None] = field(default=time.sleep)

    def certbot_arguments(self, email: str) -> List[str]:
        args = [
            "certonly",
            "--webroot",
            f"--webroot-path={self.config.container_webroot}",
            "--email",
            email,
            "--agree-tos",
            "--no-eff-email",
        ]
        if self.config.force_renewal:
            args.append("--force-renewal")
        for domain in self.config.domains:
            args.extend(["-d", domain])
        return args

    def request(self, email: Optional[str]) -> None:
        if not email or not email.strip():
            raise ConfigError(
                "Необходимо указать e-mail. Пример: deploy_manager.py certificates your-email@example.com"
            )
        email = email.strip()
        self.config.validate()

        print(f"Получение сертификатов для: {' '.join(self.config.domains)}")
        print(f"E-mail: {email}\n")

        webroot = ensure_directory(Path(self.base_directory) / self.config.webroot)
        self.logger.info("Каталог webroot для certbot: %s", webroot)

        print("Запуск nginx...")
        self.compose.up([self.config.nginx_service], build=False)

        print("Ожидание готовности nginx...")
        self._wait_for_nginx()

        print("Запрос сертификатов у Let's Encrypt...")
        self.compose.run(self.config.certbot_service, self.certbot_arguments(email))

        print("\nСертификаты успешно получены!\n")
        print(NEXT_STEPS.format(
            restart_command=self.compose.display_command("restart", self.config.nginx_service)
        ))

    # ------------------------------------------------------------------
    def _wait_for_nginx(self) -> None:
        if self.config.readiness_url:
            if wait_for_http(self.config.readiness_url, self.config.wait_seconds, sleep=self.sleep):
                self.logger.info("nginx отвечает по адресу %s.", self.config.readiness_url)
                return
            self.logger.warning(
                "nginx не ответил на %s за %s с, продолжаем.",
                self.config.readiness_url,
                self.config.wait_seconds,
            )
            return
        self.sleep(self.config.wait_seconds)


__all__ = ["CertificateRequester", "wait_for_http"]

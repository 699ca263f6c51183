"""First-boot database restore for the PostgreSQL container."""
from __future__ import annotations

import enum
import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional

from .config import DatabaseCredentials, RestoreConfig
from .utils import mask_sensitive

LOGGER = logging.getLogger(__name__)

CUSTOM_DUMP_SIGNATURE = b"PGDMP"
HEADER_SIZE = len(CUSTOM_DUMP_SIGNATURE)


class RestoreError(Exception):
    """Raised when the restore tool exits with a non-zero status."""


class BackupFormat(enum.Enum):
    CUSTOM_DUMP = "custom"
    SQL_SCRIPT = "sql"


class RestoreOutcome(enum.Enum):
    NO_ARTIFACT = "no_artifact"
    NOT_EMPTY = "not_empty"
    SKIPPED_UNKNOWN_STATE = "skipped_unknown_state"
    RESTORED = "restored"
    FAILED = "failed"


def classify(header: bytes) -> BackupFormat:
    """Return the format of a backup given its first bytes."""

    if header[:HEADER_SIZE] == CUSTOM_DUMP_SIGNATURE:
        return BackupFormat.CUSTOM_DUMP
    return BackupFormat.SQL_SCRIPT


def read_header(path: Path) -> bytes:
    try:
        with Path(path).open("rb") as fh:
            return fh.read(HEADER_SIZE)
    except OSError as exc:
        LOGGER.warning("Не удалось прочитать заголовок файла '%s': %s", path, exc)
        return b""


Runner = Callable[..., subprocess.CompletedProcess]


@dataclass
class RestoreGuard:
    config: RestoreConfig
    runner: Optional[Runner] = None
    logger: logging.Logger = LOGGER

    def __post_init__(self) -> None:
        if self.runner is None:
            self.runner = subprocess.run

    def maybe_restore(self, credentials: DatabaseCredentials, artifact_path: Optional[Path] = None) -> RestoreOutcome:
        """Restore *artifact_path* into an empty database.

        Nothing happens when the artifact is missing or the database already has
        tables. A failing restore tool is reported and swallowed so container
        startup continues with whatever the tool left behind.
        """

        artifact = Path(artifact_path or self.config.backup_path)
        self.logger.info("Проверяем наличие файла бэкапа '%s'.", artifact)
        if not artifact.is_file():
            self.logger.info("Файл '%s' не найден, база будет инициализирована пустой.", artifact)
            return RestoreOutcome.NO_ARTIFACT

        table_count = self.count_tables(credentials)
        if table_count is None:
            if self.config.skip_when_unreachable:
                self.logger.warning(
                    "Не удалось определить количество таблиц, восстановление пропущено."
                )
                return RestoreOutcome.SKIPPED_UNKNOWN_STATE
            self.logger.warning(
                "Не удалось определить количество таблиц, считаем базу пустой."
            )
        elif table_count > 0:
            self.logger.info(
                "База уже содержит данные (%s таблиц). Восстановление пропущено.", table_count
            )
            return RestoreOutcome.NOT_EMPTY

        backup_format = classify(read_header(artifact))
        self.logger.info("База пуста. Восстанавливаем из '%s' (формат: %s).", artifact, backup_format.value)
        try:
            self.restore(credentials, artifact, backup_format)
        except RestoreError as exc:
            self.logger.warning("%s Продолжаем с пустой базой, подробности в журнале выше.", exc)
            return RestoreOutcome.FAILED
        self.logger.info("База успешно восстановлена из '%s'.", artifact)
        return RestoreOutcome.RESTORED

    # ------------------------------------------------------------------
    def count_tables(self, credentials: DatabaseCredentials) -> Optional[int]:
        query = (
            "SELECT COUNT(*) FROM information_schema.tables "
            f"WHERE table_schema = '{self.config.schema}';"
        )
        command = ["psql", *credentials.connection_args(), "-tAc", query]
        try:
            result = self.runner(
                command,
                capture_output=True,
                text=True,
                errors="replace",
                env=self._environment(credentials),
            )
        except OSError as exc:
            self.logger.debug("Не удалось запустить psql: %s", exc)
            return None
        if result.returncode != 0:
            self.logger.debug("psql завершился с кодом %s: %s", result.returncode, (result.stderr or "").strip())
            return None
        output = (result.stdout or "").strip()
        try:
            return int(output)
        except ValueError:
            return None

    def restore(self, credentials: DatabaseCredentials, artifact: Path, backup_format: BackupFormat) -> None:
        if backup_format is BackupFormat.CUSTOM_DUMP:
            tool = "pg_restore"
            command = [tool, *credentials.connection_args(), "-v", "--no-owner", "--no-acl", str(artifact)]
        else:
            tool = "psql"
            command = [tool, *credentials.connection_args(), "-f", str(artifact)]

        secrets = [credentials.password] if credentials.password else []
        self.logger.info("Запуск %s: %s", tool, mask_sensitive(" ".join(command), secrets))
        try:
            result = self.runner(
                command,
                capture_output=True,
                text=True,
                errors="replace",
                env=self._environment(credentials),
            )
        except OSError as exc:
            raise RestoreError(f"Не удалось запустить {tool}: {exc}") from exc
        if result.stdout:
            self.logger.debug("STDOUT: %s", result.stdout.strip())
        if result.stderr:
            # pg_restore -v reports progress on stderr
            level = logging.WARNING if result.returncode != 0 else logging.DEBUG
            self.logger.log(level, "STDERR: %s", mask_sensitive(result.stderr.strip(), secrets))
        if result.returncode != 0:
            raise RestoreError(
                f"Не удалось восстановить базу с помощью {tool} (код {result.returncode})."
            )

    # ------------------------------------------------------------------
    def _environment(self, credentials: DatabaseCredentials) -> Dict[str, str]:
        env = os.environ.copy()
        if credentials.password:
            env["PGPASSWORD"] = credentials.password
        return env


__all__ = [
    "BackupFormat",
    "RestoreError",
    "RestoreGuard",
    "RestoreOutcome",
    "classify",
    "read_header",
]

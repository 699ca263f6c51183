"""Command line interface for the FunZone deployment tool."""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Iterable, Optional

from deploy_tool.certificates import CertificateRequester
from deploy_tool.compose import ComposeRunner
from deploy_tool.config import AppConfig, ConfigError, DatabaseCredentials, load_config, save_config
from deploy_tool.deployment import DeploymentRunner
from deploy_tool.envfile import EnvFile
from deploy_tool.network import DetectionError
from deploy_tool.restore import RestoreGuard, RestoreOutcome
from deploy_tool.utils import DeployError, masked_env_lines


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Утилита для настройки и запуска FunZone в Docker.",
    )
    parser.add_argument("--config", default="deploy.yaml", help="Путь к файлу конфигурации.")
    parser.add_argument("--env-file", help="Путь к файлу .env (по умолчанию из конфигурации).")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Увеличить уровень логирования.")

    subparsers = parser.add_subparsers(dest="command")

    parser_setup = subparsers.add_parser("setup", help="Подготовить .env и запустить контейнеры.")
    parser_setup.add_argument("--ip", help="IP-адрес сервера (по умолчанию определяется автоматически).")
    parser_setup.add_argument("-y", "--yes", action="store_true", help="Не задавать вопрос о запуске контейнеров.")
    parser_setup.add_argument("--no-start", action="store_true", help="Только подготовить .env, не запуская Docker.")

    parser_env = subparsers.add_parser("env", help="Создать или обновить файл .env.")
    parser_env.add_argument("--ip", help="IP-адрес сервера (по умолчанию определяется автоматически).")

    subparsers.add_parser("show-env", help="Показать .env со скрытыми значениями.")

    parser_certs = subparsers.add_parser("certificates", help="Получить сертификаты Let's Encrypt.")
    parser_certs.add_argument("email", nargs="?", help="E-mail для регистрации в Let's Encrypt.")

    parser_restore = subparsers.add_parser(
        "restore", help="Восстановить базу из бэкапа при первом запуске контейнера PostgreSQL."
    )
    parser_restore.add_argument("--backup", help="Путь к файлу бэкапа (по умолчанию из конфигурации).")

    parser_init = subparsers.add_parser("init-config", help="Записать конфигурацию по умолчанию в файл --config.")
    parser_init.add_argument("--force", action="store_true", help="Перезаписать существующий файл.")

    return parser


def configure_logging(level: int) -> None:
    if level >= 2:
        log_level = logging.DEBUG
    elif level == 1:
        log_level = logging.INFO
    else:
        log_level = logging.WARNING
    logging.basicConfig(level=log_level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")


def load_application_config(path: Path) -> AppConfig:
    try:
        return load_config(path)
    except ConfigError as exc:
        print(f"Ошибка чтения конфигурации: {exc}", file=sys.stderr)
        sys.exit(1)


def resolve_env_path(args: argparse.Namespace, config: AppConfig) -> Path:
    return Path(args.env_file or config.env.env_file)


def handle_setup(args: argparse.Namespace, config: AppConfig, env_path: Path) -> None:
    runner = DeploymentRunner(config=config, env_path=env_path)
    start = False if args.no_start else None
    try:
        runner.run(args.ip, assume_yes=args.yes, start=start)
    except (DeployError, DetectionError) as exc:
        runner.prompter.error(str(exc))
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nОперация отменена пользователем.")
        sys.exit(1)


def handle_env(args: argparse.Namespace, config: AppConfig, env_path: Path) -> None:
    runner = DeploymentRunner(config=config, env_path=env_path)
    try:
        server_ip = runner.resolve_server_ip(args.ip)
        runner.reconcile_env(server_ip)
    except (DeployError, DetectionError) as exc:
        runner.prompter.error(str(exc))
        sys.exit(1)


def handle_show_env(env_path: Path) -> None:
    if not env_path.exists():
        print(f"Файл {env_path} не найден.", file=sys.stderr)
        sys.exit(1)
    for line in masked_env_lines(EnvFile.load(env_path).items()):
        print(line)


def handle_certificates(args: argparse.Namespace, config: AppConfig) -> None:
    if not args.email:
        print("Ошибка: необходимо указать e-mail.", file=sys.stderr)
        print("Использование: deploy_manager.py certificates your-email@example.com", file=sys.stderr)
        sys.exit(1)
    try:
        compose = ComposeRunner.detect(config.compose)
        requester = CertificateRequester(
            config=config.certificates,
            compose=compose,
            base_directory=Path(config.compose.project_directory),
        )
        requester.request(args.email)
    except (ConfigError, DeployError) as exc:
        print(f"Ошибка: {exc}", file=sys.stderr)
        sys.exit(1)


def handle_restore(args: argparse.Namespace, config: AppConfig) -> None:
    print("Инициализация базы данных FunZone")
    artifact = Path(args.backup or config.restore.backup_path)
    if not artifact.is_file():
        print(f"Файл бэкапа {artifact} не найден, база останется пустой.")
        print("Инициализация базы данных завершена.")
        return
    try:
        credentials = DatabaseCredentials.from_mapping(os.environ)
    except ConfigError as exc:
        print(f"Ошибка: {exc}", file=sys.stderr)
        sys.exit(1)
    guard = RestoreGuard(config.restore)
    outcome = guard.maybe_restore(credentials, artifact)
    if outcome is RestoreOutcome.FAILED:
        print("Не удалось восстановить базу из бэкапа, продолжаем с пустой базой.", file=sys.stderr)
    print("Инициализация базы данных завершена.")


def handle_init_config(args: argparse.Namespace, config_path: Path) -> None:
    if config_path.exists() and not args.force:
        print(
            f"Ошибка: файл {config_path} уже существует. Используйте --force для перезаписи.",
            file=sys.stderr,
        )
        sys.exit(1)
    try:
        save_config(AppConfig(), config_path)
    except OSError as exc:
        print(f"Ошибка записи конфигурации: {exc}", file=sys.stderr)
        sys.exit(1)
    print(f"Конфигурация по умолчанию сохранена в {config_path}")


def main(argv: Optional[Iterable[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return

    # the restore hook runs unattended, its progress belongs in the container log
    configure_logging(args.verbose + 1 if args.command == "restore" else args.verbose)
    config_path = Path(args.config)
    if args.command == "init-config":
        handle_init_config(args, config_path)
        return
    config = load_application_config(config_path)
    env_path = resolve_env_path(args, config)

    if args.command == "setup":
        handle_setup(args, config, env_path)
    elif args.command == "env":
        handle_env(args, config, env_path)
    elif args.command == "show-env":
        handle_show_env(env_path)
    elif args.command == "certificates":
        handle_certificates(args, config)
    elif args.command == "restore":
        handle_restore(args, config)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()

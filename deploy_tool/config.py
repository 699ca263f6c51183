"""Configuration models and helpers for the deployment tool."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import yaml

CONFIG_FILENAME = "deploy.yaml"

SCHEMA_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

SECRET_PLACEHOLDER = "your-super-secret-key-change-in-production"

DEFAULT_ENV_VALUES: Dict[str, str] = {
    "DEBUG": "False",
    "POSTGRES_DB": "funzone_db",
    "POSTGRES_USER": "funzone_user",
    "POSTGRES_PASSWORD": "funzone_password",
    "MONGO_USER": "mongo_user",
    "MONGO_PASSWORD": "mongo_password",
}

DEFAULT_DOMAINS = ["zone-co.ir", "www.zone-co.ir", "beta.zoneco.org"]


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""


@dataclass
class EnvConfig:
    env_file: str = ".env"
    example_file: str = "env.example"
    secret_placeholder: str = SECRET_PLACEHOLDER
    secret_length: int = 50
    defaults: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ENV_VALUES))
    api_url_template: str = "http://{server_ip}/api"
    frontend_url_template: str = "http://{server_ip}"
    owner_frontend_url_template: str = "http://{server_ip}/owner"

    def validate(self) -> None:
        if not self.env_file:
            raise ConfigError("Не задан путь к файлу окружения (env.env_file).")
        if self.secret_length <= 0:
            raise ConfigError("Поле env.secret_length должно быть положительным.")
        for name in ("api_url_template", "frontend_url_template", "owner_frontend_url_template"):
            if "{server_ip}" not in getattr(self, name):
                raise ConfigError(f"Шаблон env.{name} должен содержать переменную {{server_ip}}.")

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "EnvConfig":
        data = data or {}
        defaults = data.get("defaults")
        if defaults is not None and not isinstance(defaults, dict):
            raise ConfigError("Поле env.defaults должно быть словарём KEY: VALUE.")
        config = cls(
            env_file=data.get("env_file", ".env"),
            example_file=data.get("example_file", "env.example"),
            secret_placeholder=data.get("secret_placeholder", SECRET_PLACEHOLDER),
            secret_length=_safe_int(data.get("secret_length"), default=50),
            defaults=(
                {str(key): str(value) for key, value in defaults.items()}
                if defaults is not None
                else dict(DEFAULT_ENV_VALUES)
            ),
            api_url_template=data.get("api_url_template", "http://{server_ip}/api"),
            frontend_url_template=data.get("frontend_url_template", "http://{server_ip}"),
            owner_frontend_url_template=data.get(
                "owner_frontend_url_template", "http://{server_ip}/owner"
            ),
        )
        config.validate()
        return config

    def to_dict(self) -> Dict:
        return {
            "env_file": self.env_file,
            "example_file": self.example_file,
            "secret_placeholder": self.secret_placeholder,
            "secret_length": self.secret_length,
            "defaults": dict(self.defaults),
            "api_url_template": self.api_url_template,
            "frontend_url_template": self.frontend_url_template,
            "owner_frontend_url_template": self.owner_frontend_url_template,
        }


@dataclass
class ComposeConfig:
    project_directory: str = "."
    files: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "ComposeConfig":
        data = data or {}
        files = data.get("files") or []
        if isinstance(files, str):
            files = [files]
        return cls(
            project_directory=data.get("project_directory", "."),
            files=[str(item) for item in files],
        )

    def to_dict(self) -> Dict:
        result: Dict[str, object] = {
            "project_directory": self.project_directory,
            "files": list(self.files),
        }
        return {key: value for key, value in result.items() if value not in (None, [])}


@dataclass
class CertificateConfig:
    domains: List[str] = field(default_factory=lambda: list(DEFAULT_DOMAINS))
    webroot: str = "nginx/certbot-webroot"
    container_webroot: str = "/var/www/certbot"
    nginx_service: str = "nginx"
    certbot_service: str = "certbot"
    readiness_url: Optional[str] = "http://localhost/"
    wait_seconds: int = 5
    force_renewal: bool = True

    def validate(self) -> None:
        if not self.domains:
            raise ConfigError("Список certificates.domains не может быть пустым.")
        if self.wait_seconds < 0:
            raise ConfigError("Поле certificates.wait_seconds должно быть неотрицательным.")

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "CertificateConfig":
        data = data or {}
        domains = data.get("domains", DEFAULT_DOMAINS)
        if isinstance(domains, str):
            domains = domains.split()
        config = cls(
            domains=[str(item) for item in domains],
            webroot=data.get("webroot", "nginx/certbot-webroot"),
            container_webroot=data.get("container_webroot", "/var/www/certbot"),
            nginx_service=data.get("nginx_service", "nginx"),
            certbot_service=data.get("certbot_service", "certbot"),
            readiness_url=data.get("readiness_url", "http://localhost/"),
            wait_seconds=_safe_int(data.get("wait_seconds"), default=5),
            force_renewal=bool(data.get("force_renewal", True)),
        )
        config.validate()
        return config

    def to_dict(self) -> Dict:
        result: Dict[str, object] = {
            "domains": list(self.domains),
            "webroot": self.webroot,
            "container_webroot": self.container_webroot,
            "nginx_service": self.nginx_service,
            "certbot_service": self.certbot_service,
            "readiness_url": self.readiness_url,
            "wait_seconds": self.wait_seconds,
            "force_renewal": self.force_renewal,
        }
        # remove None values for cleaner YAML
        return {key: value for key, value in result.items() if value is not None}


@dataclass
class RestoreConfig:
    backup_path: str = "/docker-entrypoint-initdb.d/FunZoneApp.backup"
    schema: str = "public"
    skip_when_unreachable: bool = False

    def validate(self) -> None:
        if not SCHEMA_NAME_RE.fullmatch(self.schema):
            raise ConfigError(
                f"Поле restore.schema должно быть именем схемы без кавычек, получено: {self.schema!r}."
            )

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> "RestoreConfig":
        data = data or {}
        config = cls(
            backup_path=data.get("backup_path", "/docker-entrypoint-initdb.d/FunZoneApp.backup"),
            schema=str(data.get("schema", "public")),
            skip_when_unreachable=bool(data.get("skip_when_unreachable", False)),
        )
        config.validate()
        return config

    def to_dict(self) -> Dict:
        return {
            "backup_path": self.backup_path,
            "schema": self.schema,
            "skip_when_unreachable": self.skip_when_unreachable,
        }


@dataclass
class DatabaseCredentials:
    database: str
    user: str
    password: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None

    @classmethod
    def from_mapping(cls, values: Mapping[str, str]) -> "DatabaseCredentials":
        """Build credentials from ``POSTGRES_*`` entries of *values*."""

        database = values.get("POSTGRES_DB")
        user = values.get("POSTGRES_USER")
        if not user:
            raise ConfigError("Не задана переменная POSTGRES_USER.")
        if not database:
            raise ConfigError("Не задана переменная POSTGRES_DB.")
        return cls(
            database=database,
            user=user,
            password=values.get("POSTGRES_PASSWORD") or None,
            host=values.get("POSTGRES_HOST") or None,
            port=_safe_int(values.get("POSTGRES_PORT") or None),
        )

    def connection_args(self) -> List[str]:
        args = ["-U", self.user, "-d", self.database]
        if self.host:
            args.extend(["-h", self.host])
        if self.port:
            args.extend(["-p", str(self.port)])
        return args


@dataclass
class AppConfig:
    env: EnvConfig = field(default_factory=EnvConfig)
    compose: ComposeConfig = field(default_factory=ComposeConfig)
    certificates: CertificateConfig = field(default_factory=CertificateConfig)
    restore: RestoreConfig = field(default_factory=RestoreConfig)

    @classmethod
    def from_dict(cls, data: Dict) -> "AppConfig":
        for section in ("env", "compose", "certificates", "restore"):
            value = data.get(section)
            if value is not None and not isinstance(value, dict):
                raise ConfigError(f"Раздел '{section}' должен быть словарём.")
        return cls(
            env=EnvConfig.from_dict(data.get("env")),
            compose=ComposeConfig.from_dict(data.get("compose")),
            certificates=CertificateConfig.from_dict(data.get("certificates")),
            restore=RestoreConfig.from_dict(data.get("restore")),
        )

    def to_dict(self) -> Dict:
        return {
            "env": self.env.to_dict(),
            "compose": self.compose.to_dict(),
            "certificates": self.certificates.to_dict(),
            "restore": self.restore.to_dict(),
        }


# ---------------------------------------------------------------------------
def _safe_int(value, default: Optional[int] = None) -> Optional[int]:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Значение '{value}' не может быть преобразовано в целое число.")


# ---------------------------------------------------------------------------
def load_config(path: Path = Path(CONFIG_FILENAME)) -> AppConfig:
    path = Path(path)
    if not path.exists():
        return AppConfig()
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Не удалось разобрать YAML в '{path}': {exc}") from exc
    if not data:
        return AppConfig()
    if not isinstance(data, dict):
        raise ConfigError("Файл конфигурации должен содержать словарь разделов.")
    return AppConfig.from_dict(data)


def save_config(config: AppConfig, path: Path = Path(CONFIG_FILENAME)) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        yaml.safe_dump(
            config.to_dict(),
            fh,
            allow_unicode=True,
            sort_keys=False,
            default_flow_style=False,
        )


__all__ = [
    "AppConfig",
    "CertificateConfig",
    "ComposeConfig",
    "ConfigError",
    "DatabaseCredentials",
    "DEFAULT_ENV_VALUES",
    "EnvConfig",
    "RestoreConfig",
    "SECRET_PLACEHOLDER",
    "load_config",
    "save_config",
]

"""Reading and reconciling the flat ``KEY=VALUE`` environment file."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .config import EnvConfig
from .secrets import SECRET_KEY_NAME, generate_secret_key, is_placeholder
from .utils import write_with_fallback

LOGGER = logging.getLogger(__name__)

ALLOWED_HOSTS_KEY = "ALLOWED_HOSTS"
DEFAULT_ALLOWED_HOSTS = ("localhost", "127.0.0.1")

Pair = Tuple[str, str]


@dataclass
class _Line:
    raw: str
    key: Optional[str] = None


def _parse_line(raw: str) -> _Line:
    stripped = raw.strip()
    if not stripped or stripped.startswith("#") or "=" not in raw:
        return _Line(raw)
    key = raw.split("=", 1)[0]
    if not key or key != key.strip():
        return _Line(raw)
    return _Line(raw, key)


class EnvFile:
    """In-memory view of an env file that keeps comments and line order.

    Only lines that start with ``KEY=`` are treated as entries; everything else
    is carried through untouched.
    """

    def __init__(self, lines: Iterable[str] = ()) -> None:
        self._lines: List[_Line] = [_parse_line(line) for line in lines]

    @classmethod
    def from_text(cls, text: str) -> "EnvFile":
        return cls(text.splitlines())

    @classmethod
    def load(cls, path: Path) -> "EnvFile":
        return cls.from_text(Path(path).read_text(encoding="utf-8"))

    @classmethod
    def from_pairs(cls, pairs: Iterable[Pair], header: Optional[str] = None) -> "EnvFile":
        lines = [f"# {header}"] if header else []
        lines.extend(f"{key}={value}" for key, value in pairs)
        return cls(lines)

    def __contains__(self, key: object) -> bool:
        return any(line.key == key for line in self._lines)

    def __iter__(self) -> Iterator[Pair]:
        return iter(self.items())

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        for line in self._lines:
            if line.key == key:
                return line.raw.split("=", 1)[1]
        return default

    def keys(self) -> List[str]:
        seen: List[str] = []
        for line in self._lines:
            if line.key is not None and line.key not in seen:
                seen.append(line.key)
        return seen

    def items(self) -> List[Pair]:
        return [(key, self.get(key) or "") for key in self.keys()]

    def as_dict(self) -> Dict[str, str]:
        return dict(self.items())

    def count(self, key: str) -> int:
        return sum(1 for line in self._lines if line.key == key)

    def set(self, key: str, value: str) -> bool:
        """Store *value* under *key* and report whether the text changed.

        The first ``KEY=`` line is rewritten in place and later duplicates are
        dropped. A missing key is appended at the end.
        """

        new_raw = f"{key}={value}"
        changed = False
        found = False
        kept: List[_Line] = []
        for line in self._lines:
            if line.key != key:
                kept.append(line)
                continue
            if found:
                changed = True
                continue
            found = True
            if line.raw != new_raw:
                changed = True
            kept.append(_Line(new_raw, key))
        if not found:
            kept.append(_Line(new_raw, key))
            changed = True
        self._lines = kept
        return changed

    def render(self) -> str:
        if not self._lines:
            return ""
        return "\n".join(line.raw for line in self._lines) + "\n"


def merge_hosts(current: Optional[str], additions: str) -> str:
    """Union the comma separated *additions* into the *current* host list."""

    if current is None:
        hosts = list(DEFAULT_ALLOWED_HOSTS)
    else:
        hosts = [item.strip() for item in current.split(",") if item.strip()]
    for host in additions.split(","):
        host = host.strip()
        if host and host not in hosts:
            hosts.append(host)
    return ",".join(hosts)


def desired_pairs_for(server_ip: str, env_config: EnvConfig) -> List[Pair]:
    """Return the managed keys in the order they are reconciled."""

    context = {"server_ip": server_ip}
    return [
        (SECRET_KEY_NAME, generate_secret_key(env_config.secret_length)),
        ("VITE_API_BASE_URL", env_config.api_url_template.format_map(context)),
        ("SERVER_IP", server_ip),
        ("FRONTEND_URL", env_config.frontend_url_template.format_map(context)),
        ("OWNER_FRONTEND_URL", env_config.owner_frontend_url_template.format_map(context)),
        (ALLOWED_HOSTS_KEY, server_ip),
    ]


@dataclass
class ReconcileReport:
    path: Path
    created: bool = False
    source: Optional[str] = None
    changed: List[str] = field(default_factory=list)
    written: bool = False
    secret_generated: bool = False


@dataclass
class ConfigReconciler:
    env_config: EnvConfig = field(default_factory=EnvConfig)
    writer: Callable[[Path, str], None] = write_with_fallback
    logger: logging.Logger = LOGGER

    def reconcile(self, path: Path, desired_pairs: Sequence[Pair]) -> ReconcileReport:
        """Bring the env file at *path* in line with *desired_pairs*.

        Unmanaged lines keep their content and position. ``SECRET_KEY`` is only
        filled in while it is missing or still the placeholder, and
        ``ALLOWED_HOSTS`` is extended rather than replaced.
        """

        path = Path(path)
        report = ReconcileReport(path=path)
        if path.exists():
            original = path.read_text(encoding="utf-8")
        else:
            original = self._template_for(path, desired_pairs, report)
            report.created = True

        env = EnvFile.from_text(original)
        for key, value in desired_pairs:
            if self._apply(env, key, value):
                report.changed.append(key)
                if key == SECRET_KEY_NAME:
                    report.secret_generated = True

        rendered = env.render()
        if report.created or rendered != original:
            self.writer(path, rendered)
            report.written = True
            self.logger.info("Файл '%s' обновлён, изменены ключи: %s", path, ", ".join(report.changed) or "-")
        else:
            self.logger.info("Файл '%s' уже актуален.", path)
        return report

    # ------------------------------------------------------------------
    def _apply(self, env: EnvFile, key: str, value: str) -> bool:
        if key == SECRET_KEY_NAME:
            current = env.get(key)
            if not is_placeholder(current, self.env_config.secret_placeholder):
                self.logger.debug("SECRET_KEY уже задан, оставляем без изменений.")
                if env.count(key) > 1:
                    return env.set(key, current)
                return False
            return env.set(key, value)
        if key == ALLOWED_HOSTS_KEY:
            current = env.get(key)
            if current is not None and env.count(key) == 1:
                members = {host.strip() for host in current.split(",")}
                wanted = [host.strip() for host in value.split(",") if host.strip()]
                if all(host in members for host in wanted):
                    return False
            return env.set(key, merge_hosts(current, value))
        return env.set(key, value)

    # ------------------------------------------------------------------
    def _template_for(self, path: Path, desired_pairs: Sequence[Pair], report: ReconcileReport) -> str:
        example = path.parent / self.env_config.example_file
        if self.env_config.example_file and example.is_file():
            self.logger.info("Создаём '%s' из шаблона '%s'.", path, example)
            report.source = str(example)
            return example.read_text(encoding="utf-8")

        self.logger.info("Шаблон '%s' не найден, создаём '%s' со значениями по умолчанию.", example, path)
        report.source = "defaults"
        managed = {key for key, _ in desired_pairs}
        defaults = [(key, value) for key, value in self.env_config.defaults.items() if key not in managed]
        return EnvFile.from_pairs(defaults, header="Generated by deploy_manager").render()


__all__ = [
    "ALLOWED_HOSTS_KEY",
    "ConfigReconciler",
    "EnvFile",
    "ReconcileReport",
    "desired_pairs_for",
    "merge_hosts",
]

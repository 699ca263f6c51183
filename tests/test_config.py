from __future__ import annotations

import pytest

from deploy_tool.config import (
    AppConfig,
    ConfigError,
    DatabaseCredentials,
    load_config,
    save_config,
)
from deploy_tool.secrets import generate_secret_key, is_placeholder


def test_missing_config_file_gives_defaults(tmp_path):
    config = load_config(tmp_path / "deploy.yaml")
    assert config.env.env_file == ".env"
    assert config.certificates.domains == ["zone-co.ir", "www.zone-co.ir", "beta.zoneco.org"]
    assert config.restore.backup_path == "/docker-entrypoint-initdb.d/FunZoneApp.backup"
    assert config.restore.skip_when_unreachable is False


def test_load_config_reads_sections(tmp_path):
    path = tmp_path / "deploy.yaml"
    path.write_text(
        "env:\n"
        "  env_file: config/.env\n"
        "  defaults:\n"
        "    DEBUG: 'True'\n"
        "compose:\n"
        "  files: docker-compose.prod.yml\n"
        "certificates:\n"
        "  domains: example.org www.example.org\n"
        "  wait_seconds: 10\n"
        "restore:\n"
        "  schema: app\n",
        encoding="utf-8",
    )
    config = load_config(path)

    assert config.env.env_file == "config/.env"
    assert config.env.defaults == {"DEBUG": "True"}
    assert config.compose.files == ["docker-compose.prod.yml"]
    assert config.certificates.domains == ["example.org", "www.example.org"]
    assert config.certificates.wait_seconds == 10
    assert config.restore.schema == "app"


@pytest.mark.parametrize(
    "content",
    [
        "- just\n- a list\n",
        "env: [1, 2]\n",
        "env:\n  secret_length: many\n",
        "env:\n  api_url_template: http://example/api\n",
        "certificates:\n  domains: []\n",
        "env: {unclosed\n",
        "restore:\n  schema: \"public'; DROP TABLE users; --\"\n",
        "restore:\n  schema: app-data\n",
    ],
)
def test_invalid_config_raises(tmp_path, content):
    path = tmp_path / "deploy.yaml"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


def test_saved_config_loads_back(tmp_path):
    path = tmp_path / "nested" / "deploy.yaml"
    config = AppConfig()
    config.certificates.domains = ["example.org"]
    config.restore.skip_when_unreachable = True

    save_config(config, path)
    loaded = load_config(path)

    assert loaded.certificates.domains == ["example.org"]
    assert loaded.restore.skip_when_unreachable is True


def test_credentials_from_environment():
    credentials = DatabaseCredentials.from_mapping(
        {"POSTGRES_DB": "db", "POSTGRES_USER": "user", "POSTGRES_PASSWORD": "pw", "POSTGRES_PORT": "5433"}
    )
    assert credentials.password == "pw"
    assert credentials.connection_args() == ["-U", "user", "-d", "db", "-p", "5433"]


def test_credentials_require_user_and_database():
    with pytest.raises(ConfigError):
        DatabaseCredentials.from_mapping({"POSTGRES_DB": "db"})
    with pytest.raises(ConfigError):
        DatabaseCredentials.from_mapping({"POSTGRES_USER": "user"})


def test_generated_secret_key_shape():
    first = generate_secret_key()
    second = generate_secret_key(80)
    assert len(first) == 50
    assert len(second) == 80
    assert "=" not in first and "\n" not in first
    assert first != generate_secret_key()


def test_placeholder_detection():
    assert is_placeholder(None)
    assert is_placeholder("  ")
    assert is_placeholder("your-super-secret-key-change-in-production")
    assert not is_placeholder("real-secret")

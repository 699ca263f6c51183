from __future__ import annotations

import pytest

import deploy_manager
from deploy_tool import restore
from deploy_tool.config import AppConfig, load_config
from deploy_tool.envfile import EnvFile

from conftest import RecordingRunner, completed


def _args(tmp_path, *rest):
    return ["--config", str(tmp_path / "deploy.yaml"), "--env-file", str(tmp_path / ".env"), *rest]


def test_no_command_prints_help(capsys):
    deploy_manager.main([])
    assert "usage" in capsys.readouterr().out.lower()


def test_env_command_reconciles_file(tmp_path):
    deploy_manager.main(_args(tmp_path, "env", "--ip", "10.0.0.5"))
    assert EnvFile.load(tmp_path / ".env").get("SERVER_IP") == "10.0.0.5"


def test_show_env_masks_secrets(tmp_path, capsys):
    (tmp_path / ".env").write_text("SECRET_KEY=abc\nSERVER_IP=10.0.0.5\n", encoding="utf-8")
    deploy_manager.main(_args(tmp_path, "show-env"))
    out = capsys.readouterr().out
    assert "SECRET_KEY=***HIDDEN***" in out
    assert "SERVER_IP=10.0.0.5" in out
    assert "abc" not in out


def test_show_env_without_file_fails(tmp_path):
    with pytest.raises(SystemExit) as excinfo:
        deploy_manager.main(_args(tmp_path, "show-env"))
    assert excinfo.value.code == 1


def test_certificates_require_email(tmp_path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        deploy_manager.main(_args(tmp_path, "certificates"))
    assert excinfo.value.code == 1
    assert "e-mail" in capsys.readouterr().err


def test_invalid_config_exits(tmp_path):
    (tmp_path / "deploy.yaml").write_text("- broken\n", encoding="utf-8")
    with pytest.raises(SystemExit) as excinfo:
        deploy_manager.main(_args(tmp_path, "show-env"))
    assert excinfo.value.code == 1


def test_restore_without_backup_succeeds(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("POSTGRES_DB", "funzone_db")
    monkeypatch.setenv("POSTGRES_USER", "funzone_user")

    deploy_manager.main(_args(tmp_path, "restore", "--backup", str(tmp_path / "missing.backup")))

    assert "Инициализация базы данных завершена." in capsys.readouterr().out


def test_restore_failure_does_not_fail_the_hook(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("POSTGRES_DB", "funzone_db")
    monkeypatch.setenv("POSTGRES_USER", "funzone_user")
    artifact = tmp_path / "FunZoneApp.backup"
    artifact.write_bytes(b"PGDMP")

    def respond(command):
        if "-tAc" in command:
            return completed(command, stdout="0")
        return completed(command, 1, stderr="pg_restore: error")

    monkeypatch.setattr(restore.subprocess, "run", RecordingRunner(respond))

    deploy_manager.main(_args(tmp_path, "restore", "--backup", str(artifact)))

    captured = capsys.readouterr()
    assert "продолжаем с пустой базой" in captured.err
    assert "Инициализация базы данных завершена." in captured.out


def test_restore_requires_credentials(tmp_path, monkeypatch):
    monkeypatch.delenv("POSTGRES_USER", raising=False)
    monkeypatch.setenv("POSTGRES_DB", "funzone_db")
    artifact = tmp_path / "FunZoneApp.backup"
    artifact.write_bytes(b"PGDMP")
    with pytest.raises(SystemExit) as excinfo:
        deploy_manager.main(_args(tmp_path, "restore", "--backup", str(artifact)))
    assert excinfo.value.code == 1


def test_restore_without_backup_needs_no_credentials(tmp_path, monkeypatch, capsys):
    monkeypatch.delenv("POSTGRES_USER", raising=False)
    monkeypatch.delenv("POSTGRES_DB", raising=False)
    (tmp_path / "deploy.yaml").write_text(
        f"restore:\n  backup_path: {tmp_path / 'absent.backup'}\n", encoding="utf-8"
    )

    deploy_manager.main(_args(tmp_path, "restore"))

    assert "Инициализация базы данных завершена." in capsys.readouterr().out


def test_init_config_writes_defaults(tmp_path, capsys):
    deploy_manager.main(_args(tmp_path, "init-config"))

    config = load_config(tmp_path / "deploy.yaml")
    assert config.to_dict() == AppConfig().to_dict()
    assert "deploy.yaml" in capsys.readouterr().out


def test_init_config_keeps_existing_file(tmp_path):
    path = tmp_path / "deploy.yaml"
    path.write_text("restore:\n  schema: app\n", encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        deploy_manager.main(_args(tmp_path, "init-config"))

    assert excinfo.value.code == 1
    assert path.read_text(encoding="utf-8") == "restore:\n  schema: app\n"


def test_init_config_force_replaces_broken_file(tmp_path):
    path = tmp_path / "deploy.yaml"
    path.write_text("- broken\n", encoding="utf-8")

    deploy_manager.main(_args(tmp_path, "init-config", "--force"))

    assert load_config(path).restore.schema == "public"

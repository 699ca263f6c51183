from __future__ import annotations

import io

import pytest

from deploy_tool import deployment
from deploy_tool.config import AppConfig
from deploy_tool.configurator import ConsolePrompter
from deploy_tool.deployment import DeploymentRunner
from deploy_tool.envfile import EnvFile
from deploy_tool.network import DetectionError
from deploy_tool.utils import MissingDependencyError

from conftest import FakeCompose


@pytest.fixture(autouse=True)
def docker_installed(monkeypatch):
    monkeypatch.setattr(deployment, "require_docker", lambda: "/usr/bin/docker")


def _runner(tmp_path, prompter, detected="10.0.0.5"):
    fake_compose = FakeCompose()
    runner = DeploymentRunner(
        config=AppConfig(),
        env_path=tmp_path / ".env",
        prompter=prompter,
        detector=lambda: detected,
        compose_factory=lambda: fake_compose,
    )
    return runner, fake_compose


def test_full_setup_starts_containers(tmp_path, console):
    prompter = console(["y"])
    runner, fake_compose = _runner(tmp_path, prompter)

    assert runner.run() is True

    values = EnvFile.load(tmp_path / ".env").as_dict()
    assert values["SERVER_IP"] == "10.0.0.5"
    assert values["ALLOWED_HOSTS"] == "localhost,127.0.0.1,10.0.0.5"
    assert fake_compose.ups == [{"services": [], "build": True, "detach": True}]
    output = prompter.stream.getvalue()
    assert "Обнаружен IP сервера: 10.0.0.5" in output
    assert "http://10.0.0.5/admin" in output
    assert "POSTGRES_PASSWORD=***HIDDEN***" in output
    assert values["SECRET_KEY"] not in output


def test_declining_start_leaves_containers_stopped(tmp_path, console):
    prompter = console(["n"])
    runner, fake_compose = _runner(tmp_path, prompter)

    assert runner.run() is False
    assert fake_compose.ups == []
    assert "docker compose up -d --build" in prompter.stream.getvalue()
    assert (tmp_path / ".env").exists()


def test_assume_yes_skips_question(tmp_path, console):
    runner, fake_compose = _runner(tmp_path, console())
    assert runner.run(assume_yes=True) is True
    assert len(fake_compose.ups) == 1


def test_manual_ip_when_detection_fails(tmp_path, console):
    prompter = console(["192.168.1.20"])
    runner, _ = _runner(tmp_path, prompter, detected=None)

    runner.run(start=False)

    assert EnvFile.load(tmp_path / ".env").get("VITE_API_BASE_URL") == "http://192.168.1.20/api"


def test_empty_manual_ip_is_fatal(tmp_path, console):
    runner, _ = _runner(tmp_path, console([""]), detected=None)
    with pytest.raises(DetectionError):
        runner.run(start=False)
    assert not (tmp_path / ".env").exists()


def test_explicit_ip_bypasses_detection(tmp_path, console):
    runner, _ = _runner(tmp_path, console(), detected="10.9.9.9")
    runner.run("10.0.0.7", start=False)
    assert EnvFile.load(tmp_path / ".env").get("SERVER_IP") == "10.0.0.7"


def test_missing_docker_aborts(tmp_path, console, monkeypatch):
    def missing():
        raise MissingDependencyError("Не найдена утилита 'docker'.")

    monkeypatch.setattr(deployment, "require_docker", missing)
    runner, _ = _runner(tmp_path, console())

    with pytest.raises(MissingDependencyError):
        runner.run(start=False)
    assert not (tmp_path / ".env").exists()


def _closed_stdin(question):
    raise EOFError


def test_closed_stdin_declines_start(tmp_path):
    prompter = ConsolePrompter(input_func=_closed_stdin, stream=io.StringIO(), color=False)
    runner, fake_compose = _runner(tmp_path, prompter)

    assert runner.run() is False
    assert fake_compose.ups == []
    assert EnvFile.load(tmp_path / ".env").get("SERVER_IP") == "10.0.0.5"


def test_closed_stdin_without_detected_ip_is_fatal(tmp_path):
    prompter = ConsolePrompter(input_func=_closed_stdin, stream=io.StringIO(), color=False)
    runner, _ = _runner(tmp_path, prompter, detected=None)

    with pytest.raises(DetectionError):
        runner.run(start=False)
    assert not (tmp_path / ".env").exists()

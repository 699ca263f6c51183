from __future__ import annotations

import io
import subprocess
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

import pytest

from deploy_tool.configurator import ConsolePrompter


@dataclass
class RecordingRunner:
    """Stand-in for :func:`subprocess.run` that answers from a callback."""

    respond: Callable[[List[str]], subprocess.CompletedProcess]
    calls: List[Dict[str, Any]] = field(default_factory=list)

    def __call__(self, command, **kwargs) -> subprocess.CompletedProcess:
        self.calls.append({"command": list(command), **kwargs})
        return self.respond(list(command))

    @property
    def commands(self) -> List[List[str]]:
        return [call["command"] for call in self.calls]


def completed(command: Sequence[str], returncode: int = 0, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(list(command), returncode, stdout, stderr)


@dataclass
class FakeCompose:
    ups: List[Dict[str, Any]] = field(default_factory=list)
    runs: List[Dict[str, Any]] = field(default_factory=list)

    def up(self, services: Sequence[str] = (), *, build: bool = True, detach: bool = True) -> None:
        self.ups.append({"services": list(services), "build": build, "detach": detach})

    def run(self, service: str, args: Sequence[str], *, remove: bool = True) -> None:
        self.runs.append({"service": service, "args": list(args), "remove": remove})

    def display_command(self, *args: str) -> str:
        return " ".join(["docker", "compose", *args])


@pytest.fixture
def console():
    def factory(answers: Optional[Sequence[str]] = None) -> ConsolePrompter:
        queue = list(answers or [])

        def fake_input(question: str) -> str:
            if not queue:
                raise AssertionError(f"unexpected prompt: {question}")
            return queue.pop(0)

        return ConsolePrompter(input_func=fake_input, stream=io.StringIO(), color=False)

    return factory

# Shared fixtures for the agentexec test-suite

import shutil
import subprocess

import pytest

from agentexec.executors.process import CommandResult
from agentexec.tasks import Task, TaskType

git_required = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


class FakeRunner:
    """Stands in for run_command: records argv and replays canned results."""

    def __init__(self, *results: CommandResult):
        self.results = list(results)
        self.calls = []

    def __call__(self, argv, cwd, timeout, cancel_event=None):
        self.calls.append({"argv": list(argv), "cwd": cwd, "timeout": timeout})
        if self.results:
            return self.results.pop(0)
        return CommandResult(exit_code=0, stdout="", stderr="")

    @property
    def argvs(self):
        return [c["argv"] for c in self.calls]


@pytest.fixture
def project(tmp_path):
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def fake_runner():
    return FakeRunner()


def make_task(kind: TaskType, task_id: str = None, tool_name: str = None, **parameters) -> Task:
    extra = {"id": task_id} if task_id else {}
    return Task(type=kind, parameters=parameters, tool_name=tool_name, description=f"test {kind.value}", **extra)


def init_repo(root):
    def git(*args):
        subprocess.run(["git", *args], cwd=root, check=True, capture_output=True, text=True)
    git("init", "-q")
    git("config", "user.email", "dev@example.com")
    git("config", "user.name", "Dev")
    git("config", "commit.gpgsign", "false")
    return git

# tests/test_cli.py

import sys

import pytest
import yaml
from typer.testing import CliRunner

from cli.main import app

runner = CliRunner()


def write_plan(path, tasks):
    path.write_text(yaml.safe_dump({"tasks": tasks}))
    return path


@pytest.mark.parametrize("args, exit_code", [
    (["check", "build-op", " Build "], 0),
    (["check", "build-op", "build test"], 1),
    (["check", "commit", "Add parser"], 0),
    (["check", "commit", "fix; rm -rf /"], 1),
])
def test_check_commands(args, exit_code):
    result = runner.invoke(app, args)
    assert result.exit_code == exit_code, result.output


def test_check_path(project):
    assert runner.invoke(app, ["--root", str(project), "check", "path", "src/App.java"]).exit_code == 0
    rejected = runner.invoke(app, ["--root", str(project), "check", "path", "../outside.txt"])
    assert rejected.exit_code == 1
    assert "Rejected" in rejected.output


def test_run_plan(project, tmp_path):
    plan = write_plan(tmp_path / "plan.yaml", [
        {"id": "T-1", "type": "file_operation",
         "parameters": {"operation": "create", "file_path": "src/app.py", "content": "x = 1\n"}},
        {"id": "T-2", "type": "code_modification",
         "parameters": {"file_path": "src/app.py", "modification_type": "replace_text",
                        "old_text": "1", "new_text": "2"}},
    ])
    result = runner.invoke(app, ["--root", str(project), "run", str(plan)])
    assert result.exit_code == 0, result.output
    assert (project / "src" / "app.py").read_text() == "x = 2\n"
    assert "2/2 tasks succeeded" in result.output


def test_run_rolls_back_on_failure(project, tmp_path):
    plan = write_plan(tmp_path / "plan.yaml", [
        {"id": "T-1", "type": "file_operation",
         "parameters": {"operation": "create", "file_path": "a.txt", "content": "x"}},
        {"id": "T-2", "type": "file_operation",
         "parameters": {"operation": "create", "file_path": "../escape.txt", "content": "x"}},
    ])
    result = runner.invoke(app, ["--root", str(project), "run", str(plan), "--rollback-on-failure"])
    assert result.exit_code == 1
    assert not (project / "a.txt").exists()
    assert "Rollback T-1" in result.output


def test_run_prompts_for_risky_operations(project, tmp_path):
    (project / "a.txt").write_text("x")
    plan = write_plan(tmp_path / "plan.yaml", [
        {"id": "T-1", "type": "file_operation", "parameters": {"operation": "delete", "file_path": "a.txt"}},
    ])
    denied = runner.invoke(app, ["--root", str(project), "run", str(plan)], input="n\n")
    assert denied.exit_code == 1
    assert (project / "a.txt").exists()

    approved = runner.invoke(app, ["--root", str(project), "run", str(plan)], input="y\n")
    assert approved.exit_code == 0, approved.output
    assert not (project / "a.txt").exists()


def test_run_yes_skips_prompt(project, tmp_path):
    (project / "a.txt").write_text("x")
    plan = write_plan(tmp_path / "plan.yaml", [
        {"id": "T-1", "type": "file_operation", "parameters": {"operation": "delete", "file_path": "a.txt"}},
    ])
    result = runner.invoke(app, ["--root", str(project), "run", str(plan), "--yes"])
    assert result.exit_code == 0, result.output
    assert not (project / "a.txt").exists()


def test_run_invalid_plan(project, tmp_path):
    plan = tmp_path / "plan.yaml"
    plan.write_text("tasks:\n  - {id: T-1, type: teleport}\n")
    result = runner.invoke(app, ["--root", str(project), "run", str(plan)])
    assert result.exit_code == 2
    assert "Invalid plan" in result.output


def test_run_missing_root(tmp_path):
    plan = write_plan(tmp_path / "plan.yaml", [])
    result = runner.invoke(app, ["--root", str(tmp_path / "missing"), "run", str(plan)])
    assert result.exit_code == 2


def test_validate_with_configured_compiler(project, tmp_path):
    config = tmp_path / "agentexec.yml"
    config.write_text(yaml.safe_dump({
        "project_root": str(project),
        "build_commands": {"compile": [sys.executable, "-c", "print('compiled')"]},
    }))
    result = runner.invoke(app, ["--config", str(config), "validate"])
    assert result.exit_code == 0, result.output
    assert "compilation successful" in result.output


def test_validate_reports_errors(project, tmp_path):
    failing = [sys.executable, "-c", "import sys; print('Main.java:1: error: boom', file=sys.stderr); sys.exit(1)"]
    config = tmp_path / "agentexec.yml"
    config.write_text(yaml.safe_dump({
        "project_root": str(project),
        "build_commands": {"compile": failing, "diagnostics": failing},
    }))
    result = runner.invoke(app, ["--config", str(config), "validate"])
    assert result.exit_code == 1
    assert "Main.java:1: error: boom" in result.output

# tests/test_file_executor.py

import pytest

from agentexec.executors import FileOperationExecutor
from agentexec.observability.trace import SourceReference
from agentexec.rollback.snapshot import ActionType
from agentexec.tasks import TaskType

from conftest import make_task


@pytest.fixture
def executor(project):
    return FileOperationExecutor(project)


def file_task(**parameters):
    return make_task(TaskType.FILE_OPERATION, **parameters)


def test_create_writes_file_and_parents(executor, project):
    result = executor.execute(file_task(operation="create", file_path="src/App.java", content="class App {}"))
    assert result.success
    assert result.message == "File created: src/App.java"
    assert (project / "src" / "App.java").read_text() == "class App {}"
    assert isinstance(result.data["sources"][0], SourceReference)
    assert result.execution_time is not None


def test_create_existing_fails(executor, project):
    (project / "a.txt").write_text("x")
    result = executor.execute(file_task(operation="create", file_path="a.txt", content="y"))
    assert not result.success
    assert "File already exists" in result.error_message
    assert (project / "a.txt").read_text() == "x"


def test_traversal_is_rejected_before_touching_disk(executor, project):
    task = file_task(operation="create", file_path="../escape.txt", content="x")
    result = executor.execute(task)
    assert not result.success
    assert result.error_message.startswith("Security validation failed")
    assert not (project.parent / "escape.txt").exists()
    assert result.task_id == task.id


def test_missing_parameter(executor):
    result = executor.execute(file_task(operation="create"))
    assert result.error_message == "Missing required parameter 'file_path'"


def test_modify_without_content_fails_preflight(executor, project):
    (project / "a.txt").write_text("x")
    failure = executor.preflight(file_task(operation="modify", file_path="a.txt"))
    assert failure is not None
    assert failure.error_message == "Missing required parameter 'content'"

    # Empty content is a valid modify
    assert executor.preflight(file_task(operation="modify", file_path="a.txt", content="")) is None


def test_unsupported_operation(executor):
    result = executor.execute(file_task(operation="chmod", file_path="a.txt"))
    assert result.error_message == "Unsupported file operation: chmod"


def test_modify_overwrites(executor, project):
    (project / "a.txt").write_text("old")
    result = executor.execute(file_task(operation="modify", file_path="a.txt", content="new"))
    assert result.success
    assert (project / "a.txt").read_text() == "new"


def test_modify_missing_file(executor):
    result = executor.execute(file_task(operation="modify", file_path="a.txt", content="new"))
    assert not result.success
    assert "File not found" in result.error_message


def test_delete(executor, project):
    (project / "a.txt").write_text("x")
    result = executor.execute(file_task(operation="delete", file_path="a.txt"))
    assert result.success
    assert not (project / "a.txt").exists()


def test_move_and_copy(executor, project):
    (project / "a.txt").write_text("x")
    moved = executor.execute(file_task(operation="move", file_path="a.txt", target_path="docs/b.txt"))
    assert moved.message == "File moved from a.txt to docs/b.txt"
    assert not (project / "a.txt").exists()
    assert (project / "docs" / "b.txt").read_text() == "x"

    copied = executor.execute(file_task(operation="copy", file_path="docs/b.txt", target_path="c.txt"))
    assert copied.success
    assert (project / "docs" / "b.txt").exists()
    assert (project / "c.txt").read_text() == "x"


def test_move_refuses_to_overwrite(executor, project):
    (project / "a.txt").write_text("a")
    (project / "b.txt").write_text("b")
    result = executor.execute(file_task(operation="move", file_path="a.txt", target_path="b.txt"))
    assert "Target already exists" in result.error_message
    assert (project / "b.txt").read_text() == "b"


def test_read(executor, project):
    (project / "notes.md").write_text("hello")
    result = executor.execute(file_task(operation="read", file_path="notes.md"))
    assert result.get_data("content", str) == "hello"


# ------------------------------------------------------------
# Snapshots
# ------------------------------------------------------------
def test_create_snapshot_states(executor, project):
    task = file_task(operation="create", file_path="a.txt", content="hi")
    before = executor.capture_before_snapshot(task)
    assert before.action_type == ActionType.FILE_CREATE
    assert before.task_id == task.id
    assert before.action_id.startswith(task.id)
    assert not before.before_state.file_exists

    executor.execute(task)
    after = executor.capture_after_snapshot(task, before)
    assert after.after_state.file_content == b"hi"
    assert after.before_state == before.before_state


def test_delete_snapshot_keeps_content(executor, project):
    (project / "a.txt").write_text("keep me")
    before = executor.capture_before_snapshot(file_task(operation="delete", file_path="a.txt"))
    assert before.action_type == ActionType.FILE_DELETE
    assert before.before_state.file_content == b"keep me"


def test_copy_snapshot_tracks_target(executor, project):
    (project / "a.txt").write_text("x")
    task = file_task(operation="copy", file_path="a.txt", target_path="b.txt")
    before = executor.capture_before_snapshot(task)
    assert before.action_type == ActionType.FILE_CREATE
    assert before.before_state.file_path == "b.txt"
    assert not before.before_state.file_exists


def test_read_has_no_snapshot(executor):
    task = file_task(operation="read", file_path="a.txt")
    assert not executor.supports_rollback(task)
    assert executor.capture_before_snapshot(task) is None

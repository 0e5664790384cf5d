# tests/test_rollback.py

from unittest.mock import MagicMock, patch

import pytest

from agentexec.executors.process import CommandResult
from agentexec.rollback import (
    ActionSnapshot,
    ActionType,
    RollbackManager,
    RollbackResult,
    RollbackStatus,
    SnapshotData,
)
from agentexec.tasks import TaskResult

from conftest import FakeRunner


def snapshot(action_id, action_type, before=None, after=None, task_id="T-1"):
    return ActionSnapshot(action_id=action_id, task_id=task_id, action_type=action_type,
                          before_state=before, after_state=after)


@pytest.fixture
def manager(project, fake_runner):
    return RollbackManager(project, runner=fake_runner)


def test_snapshot_data_consistency():
    with pytest.raises(ValueError):
        SnapshotData(file_path="a.txt", file_exists=True)
    with pytest.raises(ValueError):
        SnapshotData(file_path="a.txt", file_content=b"x", file_exists=False)


def test_task_rollback_runs_newest_first(manager):
    for action_id in ("a1", "a2", "a3"):
        manager.record_snapshot(snapshot(action_id, ActionType.BUILD_OPERATION))

    order = []

    def fake_rollback(action_id):
        order.append(action_id)
        return RollbackResult.ok(f"undone {action_id}")

    with patch.object(manager, "rollback_action", side_effect=fake_rollback):
        result = manager.rollback_task("T-1")

    assert order == ["a3", "a2", "a1"]
    assert result.success
    assert result.message == "Rolled back task T-1 (3 actions)"


def test_delete_is_undone_by_recreating(manager, project):
    manager.record_snapshot(snapshot(
        "d1", ActionType.FILE_DELETE,
        before=SnapshotData.for_file("src/Old.java", b"original"),
        after=SnapshotData.for_deleted_file("src/Old.java"),
    ))
    result = manager.rollback_action("d1")
    assert result.success
    assert result.message == "Recreated file: src/Old.java"
    assert (project / "src" / "Old.java").read_text() == "original"


def test_create_is_undone_by_deleting(manager, project):
    (project / "a.txt").write_text("new")
    manager.record_snapshot(snapshot(
        "c1", ActionType.FILE_CREATE,
        before=SnapshotData.for_deleted_file("a.txt"),
        after=SnapshotData.for_file("a.txt", b"new"),
    ))
    assert manager.rollback_action("c1").message == "Deleted created file: a.txt"
    assert not (project / "a.txt").exists()


def test_create_already_removed_is_success(manager):
    manager.record_snapshot(snapshot(
        "c1", ActionType.FILE_CREATE,
        before=SnapshotData.for_deleted_file("a.txt"),
        after=SnapshotData.for_file("a.txt", b"new"),
    ))
    result = manager.rollback_action("c1")
    assert result.success
    assert result.message == "File already removed: a.txt"


def test_modify_restores_content(manager, project):
    (project / "a.txt").write_text("changed")
    manager.record_snapshot(snapshot(
        "m1", ActionType.FILE_MODIFY,
        before=SnapshotData.for_file("a.txt", b"original"),
        after=SnapshotData.for_file("a.txt", b"changed"),
    ))
    assert manager.rollback_action("m1").success
    assert (project / "a.txt").read_text() == "original"


def test_modify_of_vanished_file_fails(manager):
    manager.record_snapshot(snapshot(
        "m1", ActionType.FILE_MODIFY, before=SnapshotData.for_file("a.txt", b"original"),
    ))
    result = manager.rollback_action("m1")
    assert result.status == RollbackStatus.FAILURE
    assert "File to restore not found" in result.error_message


def test_move_is_undone(manager, project):
    (project / "b.txt").write_text("x")
    manager.record_snapshot(snapshot(
        "mv1", ActionType.FILE_MOVE,
        before=SnapshotData.for_file("a.txt", b"x"),
        after=SnapshotData.for_file("b.txt", b"x"),
    ))
    assert manager.rollback_action("mv1").message == "Moved file back: b.txt -> a.txt"
    assert (project / "a.txt").read_text() == "x"
    assert not (project / "b.txt").exists()


def test_push_rollback_is_refused(manager):
    manager.record_snapshot(snapshot("p1", ActionType.GIT_PUSH, before=SnapshotData.empty()))
    result = manager.rollback_action("p1")
    assert not result.success
    assert "not supported" in result.error_message


def test_unknown_action_and_task(manager):
    assert manager.rollback_action("nope").error_message == "Snapshot not found for action: nope"
    assert manager.rollback_task("T-9").error_message == "No snapshots found for task: T-9"


def test_partial_rollback(manager, project):
    manager.record_snapshot(snapshot(
        "d1", ActionType.FILE_DELETE, before=SnapshotData.for_file("a.txt", b"x"),
    ))
    manager.record_snapshot(snapshot("p1", ActionType.GIT_PUSH, before=SnapshotData.empty()))

    result = manager.rollback_task("T-1")
    assert result.is_partial
    assert result.message == "Partial rollback: 1 succeeded, 1 failed"
    assert len(result.failed_actions) == 1
    assert result.failed_actions[0].startswith("p1:")
    assert (project / "a.txt").exists()


def test_total_failure(manager):
    manager.record_snapshot(snapshot("p1", ActionType.GIT_PUSH, before=SnapshotData.empty()))
    manager.record_snapshot(snapshot("p2", ActionType.GIT_PUSH, before=SnapshotData.empty()))
    result = manager.rollback_task("T-1")
    assert result.status == RollbackStatus.FAILURE
    assert result.error_message == "Rollback of task T-1 failed for all 2 actions"


def test_git_add_rollback_unstages_recorded_files(project):
    runner = FakeRunner()
    manager = RollbackManager(project, runner=runner)
    manager.record_snapshot(snapshot(
        "g1", ActionType.GIT_ADD,
        before=SnapshotData.empty(vcs_state={"head": "abc", "branch": "main", "previously_staged": "old.txt"}),
        after=SnapshotData.empty(vcs_state={"head": "abc", "branch": "main", "files": "b.txt"}),
    ))
    assert manager.rollback_action("g1").success
    assert runner.argvs == [["git", "reset", "-q", "--", "b.txt"]]


def test_git_add_rollback_without_after_state_keeps_earlier_staging(project):
    runner = FakeRunner()
    manager = RollbackManager(project, runner=runner)
    manager.record_snapshot(snapshot(
        "g1", ActionType.GIT_ADD,
        before=SnapshotData.empty(vcs_state={"head": "abc", "branch": "main", "previously_staged": "old.txt"}),
    ))
    result = manager.rollback_action("g1")
    assert not result.success
    assert "not recorded" in result.error_message
    assert runner.argvs == []


def test_git_add_rollback_without_commits(project):
    runner = FakeRunner()
    manager = RollbackManager(project, runner=runner)
    manager.record_snapshot(snapshot(
        "g1", ActionType.GIT_ADD,
        before=SnapshotData.empty(vcs_state={"head": "", "branch": "main", "previously_staged": ""}),
        after=SnapshotData.empty(vcs_state={"head": "", "branch": "main", "files": "a.txt"}),
    ))
    manager.rollback_action("g1")
    assert runner.argvs == [["git", "rm", "-r", "-q", "--cached", "--", "a.txt"]]


def test_git_commit_rollback(project):
    runner = FakeRunner()
    manager = RollbackManager(project, runner=runner)
    manager.record_snapshot(snapshot(
        "g1", ActionType.GIT_COMMIT, before=SnapshotData.empty(vcs_state={"head": "abc123"}),
    ))
    manager.record_snapshot(snapshot(
        "g2", ActionType.GIT_COMMIT, before=SnapshotData.empty(vcs_state={"head": ""}),
    ))
    assert manager.rollback_action("g1").success
    assert manager.rollback_action("g2").message == "Reverted initial commit"
    assert runner.argvs == [["git", "reset", "-q", "--soft", "abc123"], ["git", "update-ref", "-d", "HEAD"]]


def test_git_failure_becomes_rollback_failure(project):
    runner = FakeRunner(CommandResult(128, "", "fatal: bad revision"))
    manager = RollbackManager(project, runner=runner)
    manager.record_snapshot(snapshot(
        "g1", ActionType.GIT_COMMIT, before=SnapshotData.empty(vcs_state={"head": "abc123"}),
    ))
    result = manager.rollback_action("g1")
    assert not result.success
    assert "fatal: bad revision" in result.error_message


def test_build_rollback_calls_cleaner(project):
    cleaner = MagicMock(return_value=TaskResult.ok("cleaned"))
    manager = RollbackManager(project, build_cleaner=cleaner)
    manager.record_snapshot(snapshot("b1", ActionType.BUILD_OPERATION, before=SnapshotData.empty()))
    assert manager.rollback_action("b1").message == "Build artifacts cleaned"
    cleaner.assert_called_once_with()

    cleaner.return_value = TaskResult.failure("make: *** No rule to make target 'clean'")
    assert not manager.rollback_action("b1").success


def test_cleanup_removes_both_indexes(manager):
    manager.record_snapshot(snapshot("a1", ActionType.BUILD_OPERATION))
    manager.record_snapshot(snapshot("b1", ActionType.BUILD_OPERATION, task_id="T-2"))
    manager.cleanup_task_snapshots("T-1")
    assert manager.get_snapshot("a1") is None
    assert manager.get_task_snapshots("T-1") == ()
    assert manager.snapshot_count == 1

    manager.clear_all_snapshots()
    assert manager.snapshot_count == 0

# agentexec/rollback/manager.py

import logging
import os
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

from agentexec.errors import AgentExecError, RollbackFailure
from agentexec.executors.process import CommandResult, run_command
from agentexec.rollback.result import RollbackResult
from agentexec.rollback.snapshot import ActionSnapshot, ActionType, SnapshotData
from agentexec.security.validator import resolve_project_path
from agentexec.tasks.schema import TaskResult

logger = logging.getLogger(__name__)

CommandRunner = Callable[..., CommandResult]


class RollbackManager:
    """
    Keeps the snapshots recorded for executed actions and replays their undo.

    Snapshots are indexed by action id (single undo) and by task id as an
    append-only list (batch undo, replayed newest first). They stay in memory
    until `cleanup_task_snapshots` or `clear_all_snapshots` is called.
    """

    def __init__(
        self,
        project_root: Union[str, Path],
        runner: CommandRunner = run_command,
        build_cleaner: Optional[Callable[[], TaskResult]] = None,
        git_timeout_seconds: float = 60,
    ):
        self.project_root = Path(project_root)
        self._runner = runner
        self._build_cleaner = build_cleaner
        self._git_timeout = git_timeout_seconds

        self._lock = threading.RLock()
        self._action_snapshots: Dict[str, ActionSnapshot] = {}
        self._task_snapshots: Dict[str, List[ActionSnapshot]] = {}

    # ------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------
    def record_snapshot(self, snapshot: ActionSnapshot) -> None:
        logger.debug("Recording snapshot for action %s (task %s)", snapshot.action_id, snapshot.task_id)
        with self._lock:
            self._action_snapshots[snapshot.action_id] = snapshot
            self._task_snapshots.setdefault(snapshot.task_id, []).append(snapshot)

    def get_snapshot(self, action_id: str) -> Optional[ActionSnapshot]:
        with self._lock:
            return self._action_snapshots.get(action_id)

    def get_task_snapshots(self, task_id: str) -> Tuple[ActionSnapshot, ...]:
        with self._lock:
            return tuple(self._task_snapshots.get(task_id, ()))

    @property
    def snapshot_count(self) -> int:
        with self._lock:
            return len(self._action_snapshots)

    def cleanup_task_snapshots(self, task_id: str) -> None:
        with self._lock:
            snapshots = self._task_snapshots.pop(task_id, [])
            for snapshot in snapshots:
                self._action_snapshots.pop(snapshot.action_id, None)
        logger.debug("Cleaned up %d snapshots for task %s", len(snapshots), task_id)

    def clear_all_snapshots(self) -> None:
        with self._lock:
            self._action_snapshots.clear()
            self._task_snapshots.clear()
        logger.info("All snapshots cleared")

    # ------------------------------------------------------------
    # Rollback
    # ------------------------------------------------------------
    def rollback_action(self, action_id: str) -> RollbackResult:
        snapshot = self.get_snapshot(action_id)
        if snapshot is None:
            return RollbackResult.failure(f"Snapshot not found for action: {action_id}")

        try:
            result = self._execute_rollback(snapshot)
        except RollbackFailure as e:
            logger.warning("Rollback of action %s failed: %s", action_id, e)
            return RollbackResult.failure(str(e))
        except (AgentExecError, OSError) as e:
            logger.error("Error while rolling back action %s", action_id, exc_info=True)
            return RollbackResult.failure(f"Rollback error: {e}")

        logger.info("Rolled back action %s (%s): %s", action_id, snapshot.action_type.value, result.message)
        return result

    def rollback_task(self, task_id: str) -> RollbackResult:
        snapshots = self.get_task_snapshots(task_id)
        if not snapshots:
            return RollbackResult.failure(f"No snapshots found for task: {task_id}")

        failed: List[str] = []
        success_count = 0

        # Later actions may depend on earlier ones: undo newest first
        for snapshot in reversed(snapshots):
            result = self.rollback_action(snapshot.action_id)
            if result.success:
                success_count += 1
            else:
                failed.append(f"{snapshot.action_id}: {result.error_message}")

        if not failed:
            return RollbackResult.ok(f"Rolled back task {task_id} ({success_count} actions)")
        if success_count == 0:
            return RollbackResult.failure(
                f"Rollback of task {task_id} failed for all {len(failed)} actions", failed
            )
        return RollbackResult.partial(
            f"Partial rollback: {success_count} succeeded, {len(failed)} failed", failed
        )

    def _execute_rollback(self, snapshot: ActionSnapshot) -> RollbackResult:
        handlers = {
            ActionType.FILE_CREATE: self._rollback_file_create,
            ActionType.FILE_DELETE: self._rollback_file_delete,
            ActionType.FILE_MODIFY: self._rollback_file_modify,
            ActionType.FILE_MOVE: self._rollback_file_move,
            ActionType.GIT_ADD: self._rollback_git_add,
            ActionType.GIT_COMMIT: self._rollback_git_commit,
            ActionType.GIT_PUSH: self._rollback_git_push,
            ActionType.BUILD_OPERATION: self._rollback_build_operation,
        }
        handler = handlers.get(snapshot.action_type)
        if handler is None:
            return RollbackResult.failure(f"Unsupported action type: {snapshot.action_type}")
        return handler(snapshot)

    # ------------------------------------------------------------
    # File undo routines
    # ------------------------------------------------------------
    def _path(self, state: SnapshotData) -> Path:
        return resolve_project_path(state.file_path, self.project_root)

    def _rollback_file_create(self, snapshot: ActionSnapshot) -> RollbackResult:
        after = snapshot.after_state
        if after is None or not after.file_exists or after.file_path is None:
            raise RollbackFailure("No after-creation state recorded")

        target = self._path(after)
        if not target.exists():
            return RollbackResult.ok(f"File already removed: {after.file_path}")
        target.unlink()
        return RollbackResult.ok(f"Deleted created file: {after.file_path}")

    def _rollback_file_delete(self, snapshot: ActionSnapshot) -> RollbackResult:
        before = snapshot.before_state
        if before is None or not before.file_exists or before.file_content is None:
            raise RollbackFailure("No before-deletion state recorded")

        target = self._path(before)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(before.file_content)
        return RollbackResult.ok(f"Recreated file: {before.file_path}")

    def _rollback_file_modify(self, snapshot: ActionSnapshot) -> RollbackResult:
        before = snapshot.before_state
        if before is None or before.file_content is None:
            raise RollbackFailure("No before-modification state recorded")

        target = self._path(before)
        if not target.is_file():
            raise RollbackFailure(f"File to restore not found: {before.file_path}")
        target.write_bytes(before.file_content)
        return RollbackResult.ok(f"Restored original content: {before.file_path}")

    def _rollback_file_move(self, snapshot: ActionSnapshot) -> RollbackResult:
        before, after = snapshot.before_state, snapshot.after_state
        if before is None or after is None or before.file_path is None or after.file_path is None:
            raise RollbackFailure("Move states not recorded")

        original = self._path(before)
        moved = self._path(after)
        if not moved.exists():
            if original.exists():
                return RollbackResult.ok(f"File already back in place: {before.file_path}")
            raise RollbackFailure(f"Moved file not found: {after.file_path}")

        original.parent.mkdir(parents=True, exist_ok=True)
        os.replace(moved, original)
        return RollbackResult.ok(f"Moved file back: {after.file_path} -> {before.file_path}")

    # ------------------------------------------------------------
    # Version control undo routines
    # ------------------------------------------------------------
    def _git(self, *args: str) -> CommandResult:
        result = self._runner(["git", *args], cwd=self.project_root, timeout=self._git_timeout)
        if not result.ok:
            raise RollbackFailure(f"git {args[0]} failed: {result.output.strip()}")
        return result

    def _rollback_git_add(self, snapshot: ActionSnapshot) -> RollbackResult:
        # Only the after-state knows what this add staged; the before-state
        # lists earlier staging, which must survive the undo
        after = (snapshot.after_state.vcs_state if snapshot.after_state else None) or {}
        if "files" not in after:
            raise RollbackFailure("Files staged by this add were not recorded")
        files = [f for f in after["files"].splitlines() if f]
        if not files:
            return RollbackResult.ok("Nothing to unstage")

        head = snapshot.before_state.vcs_state.get("head") if (
            snapshot.before_state and snapshot.before_state.vcs_state) else None
        if head:
            self._git("reset", "-q", "--", *files)
        else:
            # No commit yet: there is nothing to reset to, drop from the index instead
            self._git("rm", "-r", "-q", "--cached", "--", *files)
        return RollbackResult.ok(f"Unstaged files: {', '.join(files)}")

    def _rollback_git_commit(self, snapshot: ActionSnapshot) -> RollbackResult:
        before = (snapshot.before_state.vcs_state if snapshot.before_state else None) or {}
        head = before.get("head")
        if not head:
            # First commit of the repository: drop the ref, keep the index
            self._git("update-ref", "-d", "HEAD")
            return RollbackResult.ok("Reverted initial commit")
        self._git("reset", "-q", "--soft", head)
        return RollbackResult.ok(f"Reverted last commit (soft reset to {head[:12]})")

    def _rollback_git_push(self, snapshot: ActionSnapshot) -> RollbackResult:
        raise RollbackFailure(
            "Rollback of push is not supported: pushed history is shared and cannot be taken back"
        )

    def _rollback_build_operation(self, snapshot: ActionSnapshot) -> RollbackResult:
        if self._build_cleaner is None:
            return RollbackResult.ok("Build artifacts left as is (no cleaner configured)")
        result = self._build_cleaner()
        if not result.success:
            raise RollbackFailure(f"Clean failed: {result.error_message}")
        return RollbackResult.ok("Build artifacts cleaned")

# agentexec/executors/git.py

import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Union

from agentexec.errors import ExecutionFailure, SecurityValidationError, UnsupportedOperation
from agentexec.executors.base import SnapshotCapable, TaskExecutor
from agentexec.executors.process import CommandResult, run_command
from agentexec.observability.trace import SourceReference, SourceType
from agentexec.rollback.snapshot import ActionSnapshot, ActionType, SnapshotData
from agentexec.security.validator import VCS_FLAG, resolve_project_path, sanitize_commit_message
from agentexec.tasks.schema import Task, TaskResult, TaskType

logger = logging.getLogger(__name__)

OPERATIONS = ("add", "commit", "push", "pull", "status", "log")

_ACTION_TYPES = {
    "add": ActionType.GIT_ADD,
    "commit": ActionType.GIT_COMMIT,
    "push": ActionType.GIT_PUSH,
}

DEFAULT_LOG_LIMIT = 10


class GitOperationExecutor(TaskExecutor, SnapshotCapable):
    """
    Runs git in the project root: add, commit, push, pull, status, log.

    git is always invoked with an argument vector, never through a shell.
    """

    handles = TaskType.GIT_OPERATION

    def __init__(self, project_root: Union[str, Path], timeout_seconds: float = 60,
                 runner: Callable[..., CommandResult] = run_command):
        super().__init__(project_root)
        self.timeout_seconds = timeout_seconds
        self._runner = runner

    def validate_parameters(self, task: Task) -> None:
        operation = self.operation_of(task)
        if operation not in OPERATIONS:
            raise UnsupportedOperation(f"Unsupported git operation: {operation}")

        if operation == "commit":
            sanitize_commit_message(self.require(task, "message"))
        if operation == "add":
            for f in self._requested_files(task):
                resolve_project_path(f, self.project_root)
        for key in ("remote", "branch"):
            value = task.get_parameter(key, str)
            if value is not None and (VCS_FLAG.search(value) or not value.strip()):
                raise SecurityValidationError(f"Invalid {key} name: {value!r}")

    # ------------------------------------------------------------
    # git plumbing
    # ------------------------------------------------------------
    def _git(self, *args: str, check: bool = True) -> CommandResult:
        result = self._runner(["git", *args], cwd=self.project_root, timeout=self.timeout_seconds)
        if result.timed_out:
            raise ExecutionFailure(f"git {args[0]} timed out after {self.timeout_seconds}s")
        if check and not result.ok:
            raise ExecutionFailure(f"git {args[0]} failed: {result.output.strip()}")
        return result

    def _ensure_repository(self) -> None:
        result = self._git("rev-parse", "--is-inside-work-tree", check=False)
        if not result.ok or result.stdout.strip() != "true":
            raise ExecutionFailure(f"Not a git repository: {self.project_root}")

    def _head(self) -> str:
        result = self._git("rev-parse", "--verify", "-q", "HEAD", check=False)
        return result.stdout.strip() if result.ok else ""

    def _branch(self) -> str:
        result = self._git("symbolic-ref", "--short", "-q", "HEAD", check=False)
        return result.stdout.strip() if result.ok else ""

    def _staged_files(self) -> Set[str]:
        result = self._git("diff", "--cached", "--name-only", check=False)
        return {line for line in result.stdout.splitlines() if line.strip()}

    def _vcs_state(self, files: Optional[Set[str]] = None, key: str = "files") -> Dict[str, str]:
        state = {"head": self._head(), "branch": self._branch()}
        if files is not None:
            state[key] = "\n".join(sorted(files))
        return state

    @staticmethod
    def _requested_files(task: Task) -> List[str]:
        files = task.get_parameter("files", list)
        if files is None:
            single = task.get_parameter("files", str)
            files = [single] if single else []
        return [str(f) for f in files if str(f).strip()]

    def _remote_args(self, task: Task) -> List[str]:
        return [v for v in (task.get_parameter("remote", str), task.get_parameter("branch", str)) if v]

    # ------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------
    def _run(self, task: Task) -> TaskResult:
        self._ensure_repository()
        operation = self.operation_of(task)
        return getattr(self, f"_{operation}")(task)

    def _add(self, task: Task) -> TaskResult:
        files = self._requested_files(task)
        self._git("add", "--", *(files or ["."]))
        if files:
            return TaskResult.ok(f"Files staged: {', '.join(files)}", {"files": files})
        return TaskResult.ok("All changes staged", {"files": ["."]})

    def _commit(self, task: Task) -> TaskResult:
        # argv element, not a shell word: the trimmed message goes through unescaped
        message = task.get_parameter("message", str).strip()
        self._git("commit", "-q", "-m", message)
        head = self._head()
        logger.info("Committed %s: %s", head[:12], message)
        return TaskResult.ok(f"Committed {head[:12]}: {message}", {
            "commit": head,
            "sources": [SourceReference(uri=head, type=SourceType.COMMIT, description=message)],
        })

    def _push(self, task: Task) -> TaskResult:
        result = self._git("push", *self._remote_args(task))
        return TaskResult.ok("Changes pushed", {"output": result.output.strip()})

    def _pull(self, task: Task) -> TaskResult:
        result = self._git("pull", *self._remote_args(task))
        return TaskResult.ok("Changes pulled", {"output": result.output.strip()})

    def _status(self, task: Task) -> TaskResult:
        result = self._git("status", "--porcelain")
        changes = [line for line in result.stdout.splitlines() if line.strip()]
        branch = self._branch()
        if not changes:
            return TaskResult.ok(f"Working tree clean on {branch or 'detached HEAD'}",
                                 {"branch": branch, "changes": [], "clean": True})
        return TaskResult.ok(f"{len(changes)} changed files on {branch or 'detached HEAD'}",
                             {"branch": branch, "changes": changes, "clean": False})

    def _log(self, task: Task) -> TaskResult:
        limit = task.get_parameter("limit", int) or DEFAULT_LOG_LIMIT
        if not self._head():
            return TaskResult.ok("No commits yet", {"commits": []})
        result = self._git("log", "--oneline", "-n", str(max(1, limit)))
        commits = result.stdout.splitlines()
        return TaskResult.ok(f"{len(commits)} commits", {"commits": commits})

    # ------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------
    def supports_rollback(self, task: Task) -> bool:
        operation = (task.get_parameter("operation", str) or "").strip().lower()
        return operation in _ACTION_TYPES

    def capture_before_snapshot(self, task: Task) -> Optional[ActionSnapshot]:
        if not self.supports_rollback(task):
            return None
        operation = self.operation_of(task)
        staged = self._staged_files() if operation == "add" else None
        return ActionSnapshot(
            action_id=self.new_action_id(task),
            task_id=task.id,
            action_type=_ACTION_TYPES[operation],
            before_state=SnapshotData.empty(vcs_state=self._vcs_state(staged, key="previously_staged")),
            metadata=self.snapshot_metadata(task, operation=operation),
        )

    def capture_after_snapshot(self, task: Task, before: ActionSnapshot) -> Optional[ActionSnapshot]:
        if before is None:
            return None
        if before.action_type == ActionType.GIT_ADD:
            previously = set((before.before_state.vcs_state or {}).get("previously_staged", "").splitlines())
            # Only what this add staged is undone; earlier staging is left alone
            newly_staged = self._staged_files() - previously
            return before.with_after_state(SnapshotData.empty(vcs_state=self._vcs_state(newly_staged)))
        return before.with_after_state(SnapshotData.empty(vcs_state=self._vcs_state()))

# agentexec/executors/build.py

import logging
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

from agentexec.errors import ExecutionFailure, ParameterError
from agentexec.executors.base import SnapshotCapable, TaskExecutor
from agentexec.executors.process import CommandResult, run_command
from agentexec.rollback.snapshot import ActionSnapshot, ActionType, SnapshotData
from agentexec.security.validator import validate_build_operation
from agentexec.tasks.schema import Task, TaskResult, TaskType

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 300

# Operations that leave artifacts behind and are undone by a clean
SNAPSHOT_OPERATIONS = ("build", "compile", "package", "jar", "test")

# Project type -> operation -> argv. None means the operation is a no-op for that type.
_GRADLE = {
    "build": ["build"], "compile": ["build"], "test": ["test"], "clean": ["clean"],
    "package": ["jar"], "jar": ["jar"], "diagnostics": ["compileJava", "--console=plain"],
}
_PYTHON = sys.executable or "python3"
COMMAND_TABLE: Dict[str, Dict[str, Optional[List[str]]]] = {
    "gradlew": {op: ["./gradlew", *args] for op, args in _GRADLE.items()},
    "gradlew.bat": {op: ["gradlew.bat", *args] for op, args in _GRADLE.items()},
    "pom.xml": {
        "build": ["mvn", "compile"], "compile": ["mvn", "compile"], "test": ["mvn", "test"],
        "clean": ["mvn", "clean"], "package": ["mvn", "package"], "jar": ["mvn", "package"],
        "diagnostics": ["mvn", "compile", "-q"],
    },
    "package.json": {
        "build": ["npm", "run", "build"], "compile": ["npm", "run", "build"], "test": ["npm", "test"],
        "clean": ["npm", "run", "clean"], "package": ["npm", "pack"], "jar": ["npm", "pack"],
        "diagnostics": ["npm", "run", "build"],
    },
    "python": {
        "build": [_PYTHON, "-m", "compileall", "-q", "."],
        "compile": [_PYTHON, "-m", "compileall", "-q", "."],
        "test": [_PYTHON, "-m", "pytest", "-q"],
        "clean": None,
        "package": [_PYTHON, "-m", "build"],
        "jar": [_PYTHON, "-m", "build"],
        "diagnostics": [_PYTHON, "-m", "compileall", "-q", "."],
    },
    "make": {
        "build": ["make"], "compile": ["make"], "test": ["make", "test"], "clean": ["make", "clean"],
        "package": ["make", "package"], "jar": ["make", "package"], "diagnostics": ["make", "compile"],
    },
}

# Detection order: first marker file found in the project root wins
_MARKERS = (
    ("gradlew", "gradlew"),
    ("gradlew.bat", "gradlew.bat"),
    ("pom.xml", "pom.xml"),
    ("package.json", "package.json"),
    ("pyproject.toml", "python"),
    ("setup.py", "python"),
)

_OUTPUT_TAIL_CHARS = 4000


def detect_project_type(project_root: Union[str, Path]) -> str:
    root = Path(project_root)
    for marker, project_type in _MARKERS:
        if (root / marker).exists():
            return project_type
    return "make"


class BuildOperationExecutor(TaskExecutor, SnapshotCapable):
    """
    Invokes the project's own build tool. Parameters: ``operation`` (one of
    the allow-listed names) and an optional ``timeout`` in seconds.
    """

    handles = TaskType.BUILD_OPERATION

    def __init__(
        self,
        project_root: Union[str, Path],
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
        build_commands: Optional[Dict[str, List[str]]] = None,
        runner: Callable[..., CommandResult] = run_command,
    ):
        super().__init__(project_root)
        self.timeout_seconds = timeout_seconds
        self.build_commands = dict(build_commands or {})
        self._runner = runner

    def validate_parameters(self, task: Task) -> None:
        validate_build_operation(self.require(task, "operation"))
        timeout = task.parameters.get("timeout")
        if timeout is not None and (isinstance(timeout, bool)
                                    or not isinstance(timeout, (int, float)) or timeout <= 0):
            raise ParameterError("timeout", f"Parameter 'timeout' must be a positive number, got {timeout!r}")

    def command_for(self, operation: str) -> Optional[Sequence[str]]:
        """Configured override first, then the detected project type's command."""
        if operation in self.build_commands:
            return self.build_commands[operation]
        return COMMAND_TABLE[detect_project_type(self.project_root)].get(operation)

    # ------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------
    def _run(self, task: Task) -> TaskResult:
        operation = validate_build_operation(task.get_parameter("operation", str))
        timeout = task.parameters.get("timeout") or self.timeout_seconds
        return self._invoke(operation, timeout, task.cancel_event)

    def _invoke(self, operation: str, timeout: float, cancel_event=None) -> TaskResult:
        command = self.command_for(operation)
        if command is None:
            return TaskResult.ok(f"Nothing to {operation} for this project type", {"operation": operation})

        logger.info("Running %s: %s", operation, " ".join(command))
        result = self._runner(command, cwd=self.project_root, timeout=timeout, cancel_event=cancel_event)
        data = {
            "operation": operation,
            "command": list(command),
            "exit_code": result.exit_code,
            "output": result.output[-_OUTPUT_TAIL_CHARS:],
        }

        if result.cancelled:
            return TaskResult(success=False, error_message=f"Operation {operation} cancelled", data=data)
        if result.timed_out:
            return TaskResult(
                success=False,
                error_message=f"Operation {operation} interrupted (timeout of {timeout} seconds)",
                data=data,
            )
        if result.exit_code != 0:
            errors = (result.stderr.strip() or result.stdout.strip())[-_OUTPUT_TAIL_CHARS:]
            return TaskResult(
                success=False,
                error_message=f"Operation {operation} failed (exit code {result.exit_code}).\nErrors:\n{errors}",
                data=data,
            )
        return TaskResult.ok(f"Operation {operation} completed successfully.\nOutput:\n{result.stdout.strip()}", data)

    def clean(self) -> TaskResult:
        """Idempotent clean used to undo build operations."""
        try:
            return self._invoke("clean", self.timeout_seconds)
        except ExecutionFailure as e:
            return TaskResult.failure(str(e))

    # ------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------
    def supports_rollback(self, task: Task) -> bool:
        operation = (task.get_parameter("operation", str) or "").strip().lower()
        return operation in SNAPSHOT_OPERATIONS

    def capture_before_snapshot(self, task: Task) -> Optional[ActionSnapshot]:
        if not self.supports_rollback(task):
            return None
        operation = self.operation_of(task)
        return ActionSnapshot(
            action_id=self.new_action_id(task),
            task_id=task.id,
            action_type=ActionType.BUILD_OPERATION,
            before_state=SnapshotData.empty(),
            metadata=self.snapshot_metadata(task, operation=operation),
        )

    def capture_after_snapshot(self, task: Task, before: ActionSnapshot) -> Optional[ActionSnapshot]:
        if before is None:
            return None
        return before.with_after_state(SnapshotData.empty())

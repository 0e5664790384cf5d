# agentexec/executors/files.py

import logging
import os
import shutil
from pathlib import Path
from typing import Optional

from agentexec.errors import ExecutionFailure, ParameterError, UnsupportedOperation
from agentexec.executors.base import SnapshotCapable, TaskExecutor
from agentexec.observability.trace import SourceReference, SourceType
from agentexec.rollback.snapshot import ActionSnapshot, ActionType, SnapshotData
from agentexec.security.validator import resolve_project_path, validate_file_path
from agentexec.tasks.schema import Task, TaskResult, TaskType

logger = logging.getLogger(__name__)

OPERATIONS = ("create", "modify", "delete", "move", "copy", "read")

# Operation -> what its snapshot records as undoable
_ACTION_TYPES = {
    "create": ActionType.FILE_CREATE,
    "modify": ActionType.FILE_MODIFY,
    "delete": ActionType.FILE_DELETE,
    "move": ActionType.FILE_MOVE,
    "copy": ActionType.FILE_CREATE,
}


class FileOperationExecutor(TaskExecutor, SnapshotCapable):
    """
    create / modify / delete / move / copy / read on files inside the project.

    Parameters: ``operation``, ``file_path``, ``target_path`` (move, copy) and
    ``content`` (create, modify).
    """

    handles = TaskType.FILE_OPERATION

    def validate_parameters(self, task: Task) -> None:
        operation = self.operation_of(task)
        if operation not in OPERATIONS:
            raise UnsupportedOperation(f"Unsupported file operation: {operation}")

        file_path = self.require(task, "file_path")
        if operation == "read":
            resolve_project_path(file_path, self.project_root)
        else:
            validate_file_path(file_path, self.project_root)

        if operation in ("move", "copy"):
            validate_file_path(self.require(task, "target_path"), self.project_root)

        # Empty content is a legitimate modify
        if operation == "modify" and task.get_parameter("content", str) is None:
            raise ParameterError("content")

    # ------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------
    def _run(self, task: Task) -> TaskResult:
        operation = self.operation_of(task)
        file_path = task.get_parameter("file_path", str)
        handler = getattr(self, f"_{operation}")
        return handler(task, file_path)

    def _create(self, task: Task, file_path: str) -> TaskResult:
        target = validate_file_path(file_path, self.project_root)
        if target.exists():
            raise ExecutionFailure(f"File already exists: {file_path}")

        content = task.get_parameter("content", str) or ""
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content.encode("utf-8"))
        logger.info("File created: %s (%d chars)", file_path, len(content))
        return TaskResult.ok(f"File created: {file_path}", self._file_data(target, file_path))

    def _modify(self, task: Task, file_path: str) -> TaskResult:
        target = validate_file_path(file_path, self.project_root)
        if not target.is_file():
            raise ExecutionFailure(f"File not found: {file_path}")

        content = task.get_parameter("content", str)
        target.write_bytes(content.encode("utf-8"))
        logger.info("File modified: %s", file_path)
        return TaskResult.ok(f"File modified: {file_path}", self._file_data(target, file_path))

    def _delete(self, task: Task, file_path: str) -> TaskResult:
        target = validate_file_path(file_path, self.project_root)
        if not target.is_file():
            raise ExecutionFailure(f"File not found: {file_path}")
        target.unlink()
        logger.info("File deleted: %s", file_path)
        return TaskResult.ok(f"File deleted: {file_path}", {"file_path": file_path})

    def _move(self, task: Task, file_path: str) -> TaskResult:
        source, target, target_path = self._source_and_target(task, file_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        os.replace(source, target)
        logger.info("File moved from %s to %s", file_path, target_path)
        return TaskResult.ok(
            f"File moved from {file_path} to {target_path}",
            self._file_data(target, target_path),
        )

    def _copy(self, task: Task, file_path: str) -> TaskResult:
        source, target, target_path = self._source_and_target(task, file_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)
        logger.info("File copied from %s to %s", file_path, target_path)
        return TaskResult.ok(
            f"File copied from {file_path} to {target_path}",
            self._file_data(target, target_path),
        )

    def _read(self, task: Task, file_path: str) -> TaskResult:
        target = resolve_project_path(file_path, self.project_root)
        if not target.is_file():
            raise ExecutionFailure(f"File not found: {file_path}")
        content = target.read_text(encoding="utf-8", errors="replace")
        data = self._file_data(target, file_path)
        data["content"] = content
        return TaskResult.ok(f"Read {len(content)} characters from {file_path}", data)

    # ------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------
    def _source_and_target(self, task: Task, file_path: str):
        source = validate_file_path(file_path, self.project_root)
        target_path = task.get_parameter("target_path", str)
        target = validate_file_path(target_path, self.project_root)
        if not source.is_file():
            raise ExecutionFailure(f"Source file not found: {file_path}")
        if target.exists():
            raise ExecutionFailure(f"Target already exists: {target_path}")
        return source, target, target_path

    def _file_data(self, target: Path, file_path: str) -> dict:
        return {
            "file_path": file_path,
            "absolute_path": str(target),
            "sources": [SourceReference(uri=str(target), type=SourceType.FILE,
                                        description=f"File {file_path}")],
        }

    def _read_optional(self, file_path: str) -> SnapshotData:
        target = resolve_project_path(file_path, self.project_root)
        if target.is_file():
            return SnapshotData.for_file(file_path, target.read_bytes())
        return SnapshotData.for_deleted_file(file_path)

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
        file_path = self.require(task, "file_path")

        # A copy only creates its target; the source is left alone
        if operation == "copy":
            before = self._read_optional(self.require(task, "target_path"))
        else:
            before = self._read_optional(file_path)

        return ActionSnapshot(
            action_id=self.new_action_id(task),
            task_id=task.id,
            action_type=_ACTION_TYPES[operation],
            before_state=before,
            metadata=self.snapshot_metadata(task, operation=operation),
        )

    def capture_after_snapshot(self, task: Task, before: ActionSnapshot) -> Optional[ActionSnapshot]:
        if before is None:
            return None
        operation = self.operation_of(task)
        if operation in ("move", "copy"):
            after = self._read_optional(self.require(task, "target_path"))
        else:
            after = self._read_optional(self.require(task, "file_path"))
        return before.with_after_state(after)

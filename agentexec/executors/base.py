# agentexec/executors/base.py

import logging
import time
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional, Type, TypeVar, Union

from agentexec.errors import (
    ExecutionFailure,
    ParameterError,
    SecurityValidationError,
    UnsupportedOperation,
)
from agentexec.rollback.snapshot import ActionSnapshot
from agentexec.tasks.schema import Task, TaskResult, TaskType

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TaskExecutor(ABC):
    """
    Handler for one task kind.

    Subclasses set `handles`, check parameters in `validate_parameters` and
    do the work in `_run`. `execute` never raises for expected faults: it
    turns them into a failed TaskResult.
    """

    handles: TaskType

    def __init__(self, project_root: Union[str, Path]):
        self.project_root = Path(project_root)

    @property
    def name(self) -> str:
        return type(self).__name__

    def can_execute(self, task: Task) -> bool:
        return task.type == self.handles

    # ------------------------------------------------------------
    # Parameter checks (before any mutation)
    # ------------------------------------------------------------
    def validate_parameters(self, task: Task) -> None:
        """Raise ParameterError / SecurityValidationError / UnsupportedOperation."""

    def preflight(self, task: Task) -> Optional[TaskResult]:
        """Run the parameter checks; a failed result means nothing was touched."""
        try:
            self.validate_parameters(task)
        except ParameterError as e:
            logger.warning("%s rejected task %s: %s", self.name, task.id, e)
            return TaskResult.failure(str(e))
        except SecurityValidationError as e:
            logger.warning("%s rejected task %s: %s", self.name, task.id, e.reason)
            return TaskResult.failure(f"Security validation failed: {e.reason}")
        except UnsupportedOperation as e:
            return TaskResult.failure(str(e))
        return None

    @staticmethod
    def require(task: Task, key: str, expected_type: Type[T] = str) -> T:
        value = task.get_parameter(key, expected_type)
        if value is None:
            raise ParameterError(key)
        if isinstance(value, str) and not value.strip():
            raise ParameterError(key, f"Parameter '{key}' cannot be empty")
        return value

    @staticmethod
    def operation_of(task: Task, key: str = "operation") -> str:
        return TaskExecutor.require(task, key).strip().lower()

    # ------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------
    def execute(self, task: Task) -> TaskResult:
        logger.debug("%s executing task %s", self.name, task.id)
        failure = self.preflight(task)
        if failure is not None:
            return failure.model_copy(update={"task_id": task.id})

        start = time.monotonic()
        try:
            result = self._run(task)
        except (ParameterError, UnsupportedOperation) as e:
            result = TaskResult.failure(str(e))
        except SecurityValidationError as e:
            result = TaskResult.failure(f"Security validation failed: {e.reason}")
        except ExecutionFailure as e:
            logger.error("%s failed on task %s: %s", self.name, task.id, e)
            result = TaskResult.failure(str(e))
        except OSError as e:
            logger.error("I/O error in %s for task %s", self.name, task.id, exc_info=True)
            result = TaskResult.failure("I/O error", e)

        return result.model_copy(update={
            "execution_time": time.monotonic() - start,
            "task_id": task.id,
        })

    @abstractmethod
    def _run(self, task: Task) -> TaskResult:
        ...


class SnapshotCapable(ABC):
    """
    Mixin for executors whose actions can be undone.

    `capture_before_snapshot` runs strictly before the mutation and
    `capture_after_snapshot` only after it succeeded. Returning None means
    the action has nothing to undo.
    """

    def supports_rollback(self, task: Task) -> bool:
        return True

    @abstractmethod
    def capture_before_snapshot(self, task: Task) -> Optional[ActionSnapshot]:
        ...

    @abstractmethod
    def capture_after_snapshot(self, task: Task, before: ActionSnapshot) -> Optional[ActionSnapshot]:
        ...

    @staticmethod
    def new_action_id(task: Task) -> str:
        return f"{task.id}_{uuid.uuid4().hex[:8]}"

    @staticmethod
    def snapshot_metadata(task: Task, **extra: Any) -> dict:
        data = {"description": task.description}
        if task.tool_name:
            data["tool_name"] = task.tool_name
        data.update(extra)
        return data

# agentexec/tasks/schema.py

from __future__ import annotations
from enum import Enum
from typing import Any, Dict, Optional, Type, TypeVar
import datetime
import threading
import uuid

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from agentexec.errors import TaskStateError

T = TypeVar("T")


class TaskType(str, Enum):
    """Closed set of action kinds the engine knows how to dispatch."""
    FILE_OPERATION = "file_operation"
    CODE_MODIFICATION = "code_modification"
    GIT_OPERATION = "git_operation"
    BUILD_OPERATION = "build_operation"
    CAPABILITY_OPERATION = "capability_operation"


class TaskPriority(int, Enum):
    LOW = 1
    NORMAL = 2
    HIGH = 3
    CRITICAL = 4


class TaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED)


class Task(BaseModel):
    """
    A single action proposed by the planning loop.

    The planner builds the task; from the moment it is submitted the engine
    owns its status and drives it through PENDING -> RUNNING -> terminal.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    description: str = Field("", description="Short human-readable description")
    type: TaskType = Field(..., description="Action kind used for executor dispatch")
    priority: TaskPriority = TaskPriority.NORMAL
    parameters: Dict[str, Any] = Field(default_factory=dict)
    tool_name: Optional[str] = Field(
        None, description="Name of the planner tool that proposed this task"
    )
    created_at: datetime.datetime = Field(default_factory=datetime.datetime.now)

    status: TaskStatus = TaskStatus.PENDING
    error_message: Optional[str] = None
    started_at: Optional[datetime.datetime] = None
    completed_at: Optional[datetime.datetime] = None

    _cancelled: threading.Event = PrivateAttr(default_factory=threading.Event)
    _status_lock: threading.Lock = PrivateAttr(default_factory=threading.Lock)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "T-101",
                "description": "Create the service module",
                "type": "file_operation",
                "priority": 2,
                "parameters": {"operation": "create", "file_path": "src/service.py", "content": ""},
            }
        }
    )

    @field_validator("id")
    @classmethod
    def id_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Task id cannot be blank")
        return v

    # ------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------
    def get_parameter(self, key: str, expected_type: Type[T] = object) -> Optional[T]:
        """Return parameters[key] if present and of the expected type, else None."""
        value = self.parameters.get(key)
        if value is not None and isinstance(value, expected_type):
            # bool is an int subclass; don't let True pass as a line number
            if expected_type is int and isinstance(value, bool):
                return None
            return value
        return None

    # ------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------
    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def cancel_event(self) -> threading.Event:
        """Set when the task is cancelled; long-running executors poll it."""
        return self._cancelled

    def cancel(self) -> None:
        with self._status_lock:
            self._cancelled.set()
            if self.status in (TaskStatus.PENDING, TaskStatus.RUNNING):
                self.status = TaskStatus.CANCELLED
                self.completed_at = datetime.datetime.now()

    def mark_started(self) -> None:
        with self._status_lock:
            if self.status != TaskStatus.PENDING:
                raise TaskStateError(f"Task {self.id} cannot start from status {self.status.value}")
            self.status = TaskStatus.RUNNING
            self.started_at = datetime.datetime.now()

    def mark_completed(self) -> None:
        self._finish(TaskStatus.COMPLETED)

    def mark_failed(self, error_message: Optional[str]) -> None:
        self._finish(TaskStatus.FAILED)
        self.error_message = error_message

    def _finish(self, status: TaskStatus) -> None:
        with self._status_lock:
            if self.status != TaskStatus.RUNNING:
                raise TaskStateError(
                    f"Task {self.id} cannot move to {status.value} from {self.status.value}"
                )
            self.status = status
            self.completed_at = datetime.datetime.now()


class TaskResult(BaseModel):
    """
    Immutable outcome of one execution attempt.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    success: bool
    message: Optional[str] = None
    error_message: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime.datetime = Field(default_factory=datetime.datetime.now)
    execution_time: Optional[float] = Field(None, description="Seconds spent executing")
    task_id: Optional[str] = None

    @classmethod
    def ok(cls, message: str, data: Optional[Dict[str, Any]] = None) -> "TaskResult":
        return cls(success=True, message=message, data=data or {})

    @classmethod
    def failure(cls, error_message: str, exc: Optional[BaseException] = None) -> "TaskResult":
        if exc is not None:
            error_message = f"{error_message}: {exc}"
        return cls(success=False, error_message=error_message)

    def get_data(self, key: str, expected_type: Type[T] = object) -> Optional[T]:
        value = self.data.get(key)
        if value is not None and isinstance(value, expected_type):
            return value
        return None

    @property
    def has_data(self) -> bool:
        return bool(self.data)

    @property
    def display_message(self) -> str:
        if self.success:
            return self.message or "Task executed successfully"
        return self.error_message or "Task failed"

    def with_data(self, **extra: Any) -> "TaskResult":
        return self.model_copy(update={"data": {**self.data, **extra}})

"""
Notification payloads for task lifecycle and agent events.
"""

from enum import Enum
from typing import Any, Dict, Optional
import datetime
import uuid

from pydantic import BaseModel, Field

from agentexec.tasks.schema import Task, TaskResult


class NotificationType(Enum):
    TASK_STARTED = "task_started"
    TASK_PROGRESS = "task_progress"
    TASK_SUCCESS = "task_success"
    TASK_FAILURE = "task_failure"
    TASK_CANCELLED = "task_cancelled"
    APPROVAL_REQUIRED = "approval_required"
    APPROVAL_GRANTED = "approval_granted"
    APPROVAL_DENIED = "approval_denied"
    AGENT_ERROR = "agent_error"
    AGENT_INFO = "agent_info"


class NotificationPriority(int, Enum):
    LOW = 1
    NORMAL = 2
    HIGH = 3
    CRITICAL = 4


class AgentNotification(BaseModel):
    """
    One event pushed to the notification sinks.
    """
    id: str = Field(default_factory=lambda: f"agent_notif_{uuid.uuid4().hex[:12]}")
    type: NotificationType
    title: str
    message: str
    task_id: Optional[str] = None
    details: Optional[str] = None
    progress: Optional[int] = Field(default=None, ge=0, le=100)
    result: Optional[TaskResult] = None
    priority: NotificationPriority = NotificationPriority.NORMAL
    timestamp: datetime.datetime = Field(default_factory=datetime.datetime.now)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = {
        "json_schema_extra": {
            "example": {
                "type": "task_failure",
                "title": "Agent Task Failed",
                "message": "Failed: Create the service module",
                "task_id": "T-101",
                "details": "Security validation failed: Path traversal detected",
                "priority": 3,
            }
        }
    }

    @classmethod
    def task_started(cls, task: Task) -> "AgentNotification":
        return cls(type=NotificationType.TASK_STARTED, task_id=task.id,
                   title="Agent Task Started", message=f"Starting: {task.description or task.type.value}")

    @classmethod
    def task_progress(cls, task: Task, percentage: int, details: Optional[str] = None) -> "AgentNotification":
        return cls(type=NotificationType.TASK_PROGRESS, task_id=task.id, title="Agent Progress",
                   message=f"{task.description or task.type.value} - {percentage}% complete",
                   details=details, progress=percentage, priority=NotificationPriority.LOW)

    @classmethod
    def task_success(cls, task: Task, result: TaskResult) -> "AgentNotification":
        return cls(type=NotificationType.TASK_SUCCESS, task_id=task.id, title="Agent Task Completed",
                   message=f"Completed: {task.description or task.type.value}",
                   details=result.message, result=result)

    @classmethod
    def task_failure(cls, task: Task, result: TaskResult) -> "AgentNotification":
        return cls(type=NotificationType.TASK_FAILURE, task_id=task.id, title="Agent Task Failed",
                   message=f"Failed: {task.description or task.type.value}",
                   details=result.error_message, result=result, priority=NotificationPriority.HIGH)

    @classmethod
    def task_cancelled(cls, task: Task) -> "AgentNotification":
        return cls(type=NotificationType.TASK_CANCELLED, task_id=task.id, title="Agent Task Cancelled",
                   message=f"Cancelled: {task.description or task.type.value}")

    @classmethod
    def approval_required(cls, subject: str, task_id: Optional[str] = None) -> "AgentNotification":
        return cls(type=NotificationType.APPROVAL_REQUIRED, task_id=task_id, title="Approval Required",
                   message=f"Approval required for {subject}", priority=NotificationPriority.HIGH)

    @classmethod
    def approval_granted(cls, subject: str, task_id: Optional[str] = None) -> "AgentNotification":
        return cls(type=NotificationType.APPROVAL_GRANTED, task_id=task_id, title="Approval Granted",
                   message=f"Approved: {subject}")

    @classmethod
    def approval_denied(cls, subject: str, reason: str, task_id: Optional[str] = None) -> "AgentNotification":
        return cls(type=NotificationType.APPROVAL_DENIED, task_id=task_id, title="Approval Denied",
                   message=f"Not approved: {subject}", details=reason, priority=NotificationPriority.HIGH)

    @classmethod
    def agent_error(cls, message: str, details: Optional[str] = None) -> "AgentNotification":
        return cls(type=NotificationType.AGENT_ERROR, title="Agent Error", message=message,
                   details=details, priority=NotificationPriority.CRITICAL)

    @classmethod
    def agent_info(cls, message: str, details: Optional[str] = None) -> "AgentNotification":
        return cls(type=NotificationType.AGENT_INFO, title="Agent Info", message=message,
                   details=details, priority=NotificationPriority.LOW)

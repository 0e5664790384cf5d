# agentexec/tasks/__init__.py

from .schema import Task, TaskType, TaskPriority, TaskStatus, TaskResult
from .plan import TaskPlan, load_plan

__all__ = ["Task", "TaskType", "TaskPriority", "TaskStatus", "TaskResult", "TaskPlan", "load_plan"]

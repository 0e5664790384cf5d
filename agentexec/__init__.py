"""
agentexec - action execution engine for an autonomous coding agent.
"""

from agentexec.config import Settings, get_settings
from agentexec.context import EngineContext
from agentexec.engine import ExecutionEngine, ExecutionStats
from agentexec.tasks import Task, TaskPriority, TaskResult, TaskStatus, TaskType

__version__ = "0.1.0"

__all__ = [
    "Settings", "get_settings", "EngineContext", "ExecutionEngine", "ExecutionStats",
    "Task", "TaskPriority", "TaskResult", "TaskStatus", "TaskType",
]

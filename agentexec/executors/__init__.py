"""
Task executors, one per task kind, plus the subprocess helper they share.
"""

from .process import CommandResult, run_command
from .base import TaskExecutor, SnapshotCapable
from .files import FileOperationExecutor
from .code import CodeModificationExecutor
from .git import GitOperationExecutor
from .build import BuildOperationExecutor, detect_project_type
from .capability import CapabilityOperationExecutor

__all__ = [
    "CommandResult",
    "run_command",
    "TaskExecutor",
    "SnapshotCapable",
    "FileOperationExecutor",
    "CodeModificationExecutor",
    "GitOperationExecutor",
    "BuildOperationExecutor",
    "detect_project_type",
    "CapabilityOperationExecutor",
]

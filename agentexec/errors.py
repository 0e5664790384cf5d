"""
Exception taxonomy for the execution engine.

Parameter and security errors are raised before any mutation and are turned
into failed results by the executors. Only ProjectRootError and
TaskStateError are meant to escape to callers: both signal programmer error.
"""

from typing import Optional


class AgentExecError(Exception):
    """Base class for every error raised by agentexec."""


class ParameterError(AgentExecError):
    """A required task parameter is missing or has the wrong type."""

    def __init__(self, parameter: str, message: Optional[str] = None):
        self.parameter = parameter
        super().__init__(message or f"Missing required parameter '{parameter}'")


class SecurityValidationError(AgentExecError):
    """Input rejected by the security validator (traversal, injection, sensitive file)."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class ExecutionFailure(AgentExecError):
    """An executor could not complete its I/O or tool invocation."""


class UnsupportedOperation(AgentExecError):
    """Unknown task kind, operation or capability."""


class RollbackFailure(AgentExecError):
    """An undo routine could not complete."""


class ProjectRootError(AgentExecError):
    """The configured project root is missing or is not a directory."""


class TaskStateError(AgentExecError):
    """Illegal task status transition."""

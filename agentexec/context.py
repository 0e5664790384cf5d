"""
Engine context: settings plus every collaborator the engine talks to.

Everything that would otherwise be a process-wide registry (capability
servers, the notification channel, the approval channel) is built here and
passed in explicitly.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from agentexec.approval.gate import ApprovalGate, ApprovalRequester
from agentexec.capabilities.provider import CapabilityProvider, CapabilityServer
from agentexec.config import Settings
from agentexec.errors import ProjectRootError
from agentexec.executors.base import TaskExecutor
from agentexec.executors.build import BuildOperationExecutor
from agentexec.executors.capability import CapabilityOperationExecutor
from agentexec.executors.code import CodeModificationExecutor
from agentexec.executors.files import FileOperationExecutor
from agentexec.executors.git import GitOperationExecutor
from agentexec.executors.process import CommandResult, run_command
from agentexec.notifications.service import NotificationService, NotificationSink
from agentexec.observability.trace_logger import TraceLogger
from agentexec.rollback.manager import RollbackManager
from agentexec.validation.compiler import AsyncCompilationValidator
from agentexec.validation.interceptor import ValidationInterceptor

logger = logging.getLogger(__name__)


def check_project_root(project_root: Path) -> Path:
    root = Path(project_root).expanduser()
    if not root.exists():
        raise ProjectRootError(f"Project root does not exist: {root}")
    if not root.is_dir():
        raise ProjectRootError(f"Project root is not a directory: {root}")
    return root.resolve()


@dataclass
class EngineContext:
    settings: Settings
    project_root: Path
    executors: List[TaskExecutor]
    build_executor: BuildOperationExecutor
    rollback_manager: RollbackManager
    compilation_validator: AsyncCompilationValidator
    interceptor: ValidationInterceptor
    notifications: NotificationService
    approval_gate: ApprovalGate
    capability_provider: CapabilityProvider
    trace_logger: Optional[TraceLogger] = None
    _closed: bool = field(default=False, repr=False)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        approval_requester: Optional[ApprovalRequester] = None,
        sinks: Optional[List[NotificationSink]] = None,
        capability_servers: Optional[List[CapabilityServer]] = None,
        runner: Callable[..., CommandResult] = run_command,
    ) -> "EngineContext":
        """
        Wire the default collaborators for `settings.project_root`.

        Raises:
            ProjectRootError: the root is missing or not a directory.
        """
        root = check_project_root(settings.project_root)
        provider = CapabilityProvider(capability_servers)

        build = BuildOperationExecutor(
            root,
            timeout_seconds=settings.build_timeout_seconds,
            build_commands=settings.build_commands,
            runner=runner,
        )
        executors: List[TaskExecutor] = [
            FileOperationExecutor(root),
            CodeModificationExecutor(root),
            GitOperationExecutor(root, timeout_seconds=settings.git_timeout_seconds, runner=runner),
            build,
            CapabilityOperationExecutor(root, provider),
        ]

        validator = AsyncCompilationValidator(build, timeout_seconds=settings.validation_timeout_seconds)
        ctx = cls(
            settings=settings,
            project_root=root,
            executors=executors,
            build_executor=build,
            rollback_manager=RollbackManager(
                root, runner=runner, build_cleaner=build.clean,
                git_timeout_seconds=settings.git_timeout_seconds,
            ),
            compilation_validator=validator,
            interceptor=ValidationInterceptor(build, validator, settings.validation_tools),
            notifications=NotificationService(sinks, history_size=settings.notification_history_size),
            approval_gate=ApprovalGate(
                approval_requester,
                required=settings.approval_required,
                timeout_seconds=settings.approval_timeout_seconds,
            ),
            capability_provider=provider,
            trace_logger=TraceLogger(settings.trace_log_dir) if settings.trace_log_dir else None,
        )
        logger.debug("Engine context ready for %s", root)
        return ctx

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.interceptor.cleanup()
        self.notifications.shutdown()

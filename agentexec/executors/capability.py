# agentexec/executors/capability.py

import logging
from pathlib import Path
from typing import Union

from agentexec.capabilities.provider import CapabilityProvider
from agentexec.errors import ParameterError
from agentexec.executors.base import TaskExecutor
from agentexec.tasks.schema import Task, TaskResult, TaskType

logger = logging.getLogger(__name__)


class CapabilityOperationExecutor(TaskExecutor):
    """
    Delegates a named capability to an external tool server.

    Parameters: ``capability``, optional ``server_id`` and optional ``params``
    (a mapping). Capability calls are not snapshotted: the remote side owns
    whatever state they touch.
    """

    handles = TaskType.CAPABILITY_OPERATION

    def __init__(self, project_root: Union[str, Path], provider: CapabilityProvider):
        super().__init__(project_root)
        self.provider = provider

    def validate_parameters(self, task: Task) -> None:
        self.require(task, "capability")
        if "params" in task.parameters and task.get_parameter("params", dict) is None:
            raise ParameterError("params", "Parameter 'params' must be a mapping")
        if "server_id" in task.parameters:
            self.require(task, "server_id")

    def _run(self, task: Task) -> TaskResult:
        capability = task.get_parameter("capability", str).strip()
        server_id = task.get_parameter("server_id", str)
        params = task.get_parameter("params", dict) or {}

        response = self.provider.execute_capability(capability, params, server_id=server_id)
        if not response.is_success:
            logger.warning("Capability %s failed: [%d] %s",
                           capability, response.error.code, response.error.message)
            return TaskResult(
                success=False,
                error_message=f"Capability operation failed: {response.error.message}",
                data={"error_code": response.error.code, "capability": capability},
            )
        return TaskResult.ok(f"Capability {capability} executed", {
            "capability": capability,
            "result": response.result,
            "response": response.model_dump(),
        })

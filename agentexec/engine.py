# agentexec/engine.py

import fnmatch
import logging
import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from agentexec.context import EngineContext
from agentexec.errors import AgentExecError, TaskStateError, UnsupportedOperation
from agentexec.executors.base import SnapshotCapable, TaskExecutor
from agentexec.notifications.protocol import AgentNotification
from agentexec.observability.trace import ExecutionState, ExecutionTrace, StepTrace
from agentexec.rollback.result import RollbackResult
from agentexec.tasks.schema import Task, TaskResult, TaskStatus, TaskType
from agentexec.validation.result import ValidationResult

logger = logging.getLogger(__name__)

# Parameter naming the operation of each kind, used to build "kind:operation" subjects
_OPERATION_KEYS = {
    TaskType.FILE_OPERATION: "operation",
    TaskType.CODE_MODIFICATION: "modification_type",
    TaskType.GIT_OPERATION: "operation",
    TaskType.BUILD_OPERATION: "operation",
    TaskType.CAPABILITY_OPERATION: "capability",
}


@dataclass
class ExecutionStats:
    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    total_execution_time: float = 0.0

    @property
    def average_execution_time(self) -> float:
        if self.total_executions == 0:
            return 0.0
        return self.total_execution_time / self.total_executions

    @property
    def success_rate(self) -> float:
        if self.total_executions == 0:
            return 0.0
        return self.successful_executions / self.total_executions

    def to_dict(self) -> dict:
        return {
            "total_executions": self.total_executions,
            "successful_executions": self.successful_executions,
            "failed_executions": self.failed_executions,
            "average_execution_time": round(self.average_execution_time, 4),
            "success_rate": round(self.success_rate, 4),
        }


class ExecutionEngine:
    """
    Runs planner tasks: dispatch, approval, snapshots, trace, validation, notification.

    `execute_task` never raises; every outcome is a TaskResult.
    """

    def __init__(self, context: EngineContext):
        self.context = context
        self._registry = self._build_registry(context.executors)

        self._stats = ExecutionStats()
        self._stats_lock = threading.Lock()

        self._trace_lock = threading.Lock()
        self._trace = ExecutionTrace()

    @staticmethod
    def _build_registry(executors: Iterable[TaskExecutor]) -> Dict[TaskType, TaskExecutor]:
        registry: Dict[TaskType, TaskExecutor] = {}
        for executor in executors:
            if executor.handles in registry:
                raise ValueError(
                    f"Two executors for {executor.handles.value}: "
                    f"{registry[executor.handles].name} and {executor.name}"
                )
            registry[executor.handles] = executor
        return registry

    def executor_for(self, task: Task) -> Optional[TaskExecutor]:
        executor = self._registry.get(task.type)
        if executor is not None and executor.can_execute(task):
            return executor
        return None

    # ------------------------------------------------------------
    # Task execution
    # ------------------------------------------------------------
    def execute_task(self, task: Task) -> TaskResult:
        notifications = self.context.notifications

        if task.is_cancelled or task.status == TaskStatus.CANCELLED:
            return TaskResult.failure("Task was cancelled before execution").model_copy(update={"task_id": task.id})
        if task.status != TaskStatus.PENDING:
            return TaskResult.failure(
                f"Task {task.id} cannot be executed from status {task.status.value}"
            ).model_copy(update={"task_id": task.id})

        executor = self.executor_for(task)
        if executor is None:
            error = UnsupportedOperation(f"No executor found for task type: {task.type.value}")
            logger.warning(str(error))
            return TaskResult.failure(str(error)).model_copy(update={"task_id": task.id})

        try:
            task.mark_started()
        except TaskStateError as e:
            # Cancelled from another thread after the status check
            return TaskResult.failure(str(e)).model_copy(update={"task_id": task.id})

        step = self._new_step(task)
        step.record_start()
        notifications.notify_task_started(task)
        logger.info("Executing task %s (%s) with %s", task.id, task.type.value, executor.name)

        start = time.monotonic()
        try:
            result = self._run(executor, task)
        except Exception as e:  # the planner must always get a result back
            logger.error("Unexpected error while executing task %s", task.id, exc_info=True)
            result = TaskResult.failure("Unexpected error while executing task", e)
        result = result.model_copy(update={
            "task_id": task.id,
            "execution_time": time.monotonic() - start,
        })

        self._finish(task, result, step)
        return result

    def _run(self, executor: TaskExecutor, task: Task) -> TaskResult:
        failure = executor.preflight(task)
        if failure is not None:
            return failure

        subject = self.approval_subject(task)
        if self.is_risky(subject):
            denied = self._request_approval(task, subject)
            if denied is not None:
                return denied

        snapshot = None
        if isinstance(executor, SnapshotCapable) and executor.supports_rollback(task):
            try:
                snapshot = executor.capture_before_snapshot(task)
            except (AgentExecError, OSError) as e:
                logger.error("Could not capture state before task %s: %s", task.id, e)
                return TaskResult.failure("Could not capture state before execution", e)

        result = executor.execute(task)

        if result.success and snapshot is not None:
            try:
                recorded = executor.capture_after_snapshot(task, snapshot) or snapshot
            except (AgentExecError, OSError) as e:
                logger.warning("Could not capture state after task %s: %s", task.id, e)
                recorded = snapshot
            self.context.rollback_manager.record_snapshot(recorded)
            result = result.with_data(snapshot_id=recorded.action_id)
        return result

    def _request_approval(self, task: Task, subject: str) -> Optional[TaskResult]:
        gate = self.context.approval_gate
        notifications = self.context.notifications
        if gate.required and not gate.is_always_approved(subject):
            notifications.publish(AgentNotification.approval_required(subject, task.id))

        decision = gate.request(subject, task.parameters)
        if decision.approved:
            notifications.publish(AgentNotification.approval_granted(subject, task.id))
            return None

        # Denied and timed out are the same hard stop
        reason = "timed out" if decision.value == "timed_out" else "denied"
        notifications.publish(AgentNotification.approval_denied(subject, reason, task.id))
        result = TaskResult.failure(f"Approval {reason} for {subject}")
        return result.with_data(approval=decision.value)

    def _finish(self, task: Task, result: TaskResult, step: StepTrace) -> None:
        notifications = self.context.notifications

        cancelled = task.is_cancelled
        if not cancelled:
            try:
                if result.success:
                    task.mark_completed()
                else:
                    task.mark_failed(result.error_message)
            except TaskStateError:
                # cancel_task ran on another thread after the check above
                if not task.is_cancelled:
                    raise
                cancelled = True

        if cancelled:
            step.record_error("Task cancelled")
        elif result.success:
            step.record_success(result)
        else:
            step.record_error(result.error_message or "Task failed")

        with self._trace_lock:
            self._trace.add_step_trace(step)
        self._record_stats(result)

        if result.success and self.context.settings.auto_validate \
                and self.context.interceptor.requires_compilation_check(task.tool_name, result):
            self.context.compilation_validator.trigger()

        if cancelled:
            notifications.notify_task_cancelled(task)
            logger.info("Task %s cancelled", task.id)
        elif result.success:
            notifications.notify_task_success(task, result)
            logger.info("Task %s completed in %.3fs", task.id, result.execution_time or 0.0)
        else:
            notifications.notify_task_failure(task, result)
            logger.info("Task %s failed: %s", task.id, result.error_message)

    def cancel_task(self, task: Task) -> None:
        """Cancel a pending or running task. A running build is killed."""
        was_pending = task.status == TaskStatus.PENDING
        task.cancel()
        if was_pending:
            self.context.notifications.notify_task_cancelled(task)

    def execute_plan(self, tasks: Iterable[Task], stop_on_failure: bool = True) -> List[TaskResult]:
        results = []
        for task in tasks:
            result = self.execute_task(task)
            results.append(result)
            if not result.success and stop_on_failure:
                break
        return results

    # ------------------------------------------------------------
    # Approval policy
    # ------------------------------------------------------------
    @staticmethod
    def approval_subject(task: Task) -> str:
        key = _OPERATION_KEYS.get(task.type, "operation")
        operation = (task.get_parameter(key, str) or "").strip().lower()
        return f"{task.type.value}:{operation}"

    def is_risky(self, subject: str) -> bool:
        return any(fnmatch.fnmatchcase(subject, pattern)
                   for pattern in self.context.settings.risky_operations)

    # ------------------------------------------------------------
    # Rollback
    # ------------------------------------------------------------
    def rollback_action(self, action_id: str) -> RollbackResult:
        return self.context.rollback_manager.rollback_action(action_id)

    def rollback_task(self, task_id: str) -> RollbackResult:
        result = self.context.rollback_manager.rollback_task(task_id)
        logger.info("Rollback of task %s: %s", task_id, result.status.value)
        return result

    def rollback_tasks(self, task_ids: Iterable[str]) -> List[Tuple[str, RollbackResult]]:
        """Undo several tasks, last one first. Tasks without snapshots are skipped."""
        outcomes = []
        manager = self.context.rollback_manager
        for task_id in reversed(list(task_ids)):
            if not manager.get_task_snapshots(task_id):
                continue
            outcomes.append((task_id, self.rollback_task(task_id)))
        return outcomes

    # ------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------
    def execute_and_validate(self, task: Task) -> Tuple[TaskResult, Optional[ValidationResult]]:
        """
        Execute, then compile if the task came from a source-mutating tool.

        The validation result is None when no check applied.
        """
        result = self.execute_task(task)
        interceptor = self.context.interceptor
        if not interceptor.requires_compilation_check(task.tool_name, result):
            return result, None

        start = time.monotonic()
        validation = interceptor.auto_validate(task.tool_name, result)
        with self._trace_lock:
            self._trace.metrics.record_validation(timedelta(seconds=time.monotonic() - start))
        return result, validation

    def validation_feedback(self, result: TaskResult, validation: ValidationResult) -> str:
        return self.context.interceptor.format_validation_feedback(validation, result.display_message)

    # ------------------------------------------------------------
    # Traces / stats
    # ------------------------------------------------------------
    def _new_step(self, task: Task) -> StepTrace:
        with self._trace_lock:
            return self._trace.new_step(
                tool_name=task.tool_name, action=task.type.value, input_parameters=task.parameters
            )

    def _record_stats(self, result: TaskResult) -> None:
        with self._stats_lock:
            self._stats.total_executions += 1
            if result.success:
                self._stats.successful_executions += 1
            else:
                self._stats.failed_executions += 1
            self._stats.total_execution_time += result.execution_time or 0.0

    def stats(self) -> ExecutionStats:
        with self._stats_lock:
            return ExecutionStats(**vars(self._stats))

    @property
    def current_trace(self) -> ExecutionTrace:
        with self._trace_lock:
            return self._trace

    def start_execution(self, user_request_id: Optional[str] = None) -> ExecutionTrace:
        """Begin a new execution trace; the previous one is dropped unless finished first."""
        with self._trace_lock:
            self._trace = ExecutionTrace(user_request_id=user_request_id)
            return self._trace

    def finish_execution(self, state: Optional[ExecutionState] = None,
                         error_message: Optional[str] = None) -> ExecutionTrace:
        """Close the current trace, write it out if a trace log is configured, start a fresh one."""
        with self._trace_lock:
            trace = self._trace
            if state is None:
                state = ExecutionState.FAILED if trace.failed_steps else ExecutionState.COMPLETED
            trace.finish(state, error_message)
            self._trace = ExecutionTrace()

        if self.context.trace_logger is not None:
            self.context.trace_logger.log_trace(trace)
        return trace

    def dispose(self) -> None:
        self.context.close()

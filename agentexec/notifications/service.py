"""
Notification service: hands lifecycle events to external sinks off the task thread.
"""

from collections import deque
from typing import Callable, Deque, List, Optional
import logging
import queue
import threading

from agentexec.tasks.schema import Task, TaskResult

from .protocol import AgentNotification, NotificationType

logger = logging.getLogger(__name__)

NotificationSink = Callable[[AgentNotification], None]


class NotificationService:
    """
    Fan-out of notifications to registered sinks.

    Handles:
    - Non-blocking publish (unbounded queue, one delivery thread)
    - Sink isolation (a raising sink is logged, others still receive)
    - Bounded history for later inspection
    """

    def __init__(self, sinks: Optional[List[NotificationSink]] = None, history_size: int = 200):
        self._sinks: List[NotificationSink] = list(sinks or [])
        self._sinks_lock = threading.Lock()

        self._queue: "queue.Queue" = queue.Queue()
        self._history: Deque[AgentNotification] = deque(maxlen=history_size)
        self._history_lock = threading.Lock()

        self._shutdown_event = threading.Event()
        self._worker = threading.Thread(
            target=self._delivery_worker,
            daemon=True,
            name="notification-worker",
        )
        self._worker.start()

        self._stats = {"published": 0, "delivered": 0, "sink_errors": 0}

    # ------------------------------------------------------------
    # Sinks
    # ------------------------------------------------------------
    def add_sink(self, sink: NotificationSink) -> None:
        with self._sinks_lock:
            self._sinks.append(sink)

    def remove_sink(self, sink: NotificationSink) -> None:
        with self._sinks_lock:
            if sink in self._sinks:
                self._sinks.remove(sink)

    # ------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------
    def publish(self, notification: AgentNotification) -> None:
        """Record and enqueue; never blocks the caller."""
        with self._history_lock:
            self._history.append(notification)
        self._stats["published"] += 1

        if self._shutdown_event.is_set():
            logger.debug("Notification %s not delivered: service is shut down", notification.id)
            return
        self._queue.put_nowait(notification)

    def notify_task_started(self, task: Task) -> None:
        self.publish(AgentNotification.task_started(task))

    def notify_task_progress(self, task: Task, percentage: int, details: Optional[str] = None) -> None:
        self.publish(AgentNotification.task_progress(task, percentage, details))

    def notify_task_success(self, task: Task, result: TaskResult) -> None:
        self.publish(AgentNotification.task_success(task, result))

    def notify_task_failure(self, task: Task, result: TaskResult) -> None:
        self.publish(AgentNotification.task_failure(task, result))

    def notify_task_cancelled(self, task: Task) -> None:
        self.publish(AgentNotification.task_cancelled(task))

    def notify_error(self, message: str, details: Optional[str] = None) -> None:
        self.publish(AgentNotification.agent_error(message, details))

    def notify_info(self, message: str, details: Optional[str] = None) -> None:
        self.publish(AgentNotification.agent_info(message, details))

    # ------------------------------------------------------------
    # History / lifecycle
    # ------------------------------------------------------------
    def history(self, task_id: Optional[str] = None,
                type: Optional[NotificationType] = None) -> List[AgentNotification]:
        with self._history_lock:
            items = list(self._history)
        if task_id is not None:
            items = [n for n in items if n.task_id == task_id]
        if type is not None:
            items = [n for n in items if n.type == type]
        return items

    def clear_history(self) -> None:
        with self._history_lock:
            self._history.clear()

    def get_stats(self) -> dict:
        return {**self._stats, "queued": self._queue.qsize(), "history_size": len(self._history)}

    def flush(self, timeout: float = 5.0) -> bool:
        """Wait until everything published so far has been delivered."""
        if self._shutdown_event.is_set() or not self._worker.is_alive():
            return self._queue.empty()
        marker = threading.Event()
        self._queue.put_nowait(marker)
        return marker.wait(timeout)

    def shutdown(self, timeout: float = 5.0) -> None:
        if self._shutdown_event.is_set():
            return
        self.flush(timeout)
        self._shutdown_event.set()
        self._worker.join(timeout)
        logger.debug("Notification service stopped")

    def _delivery_worker(self) -> None:
        while not self._shutdown_event.is_set():
            try:
                item = self._queue.get(timeout=0.1)
            except queue.Empty:
                continue

            if isinstance(item, threading.Event):
                item.set()
                continue

            with self._sinks_lock:
                sinks = list(self._sinks)
            for sink in sinks:
                try:
                    sink(item)
                    self._stats["delivered"] += 1
                except Exception:  # sink code is external; keep delivering to the rest
                    self._stats["sink_errors"] += 1
                    logger.error("Notification sink %r failed on %s", sink, item.id, exc_info=True)

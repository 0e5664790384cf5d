"""
Background compilation with single-flight coordination.

One dedicated worker thread per validator. While a compilation is in
flight further triggers are dropped, so two builds never race over the
same output directory. Results are read back with a bounded wait.
"""

import concurrent.futures
import logging
import re
import threading
from typing import Iterable, List, Optional

from agentexec.executors.build import BuildOperationExecutor
from agentexec.tasks.schema import Task, TaskPriority, TaskResult, TaskType

from .result import ValidationResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 120.0

# Lines that carry a compiler error (javac/gradle/maven/tsc/python) or a warning
ERROR_MARKERS = re.compile(r"error:|\bERROR\b|\bfailed\b|\*\*\* Error|\b\w+Error:")
WARNING_MARKERS = re.compile(r"warning:|\bWARNING\b|\bWARN\b|\b\w+Warning:")


def _lines_matching(texts: Iterable[Optional[str]], pattern: re.Pattern) -> List[str]:
    found: List[str] = []
    for text in texts:
        for line in (text or "").splitlines():
            line = line.strip()
            if line and pattern.search(line) and line not in found:
                found.append(line)
    return found


def extract_errors(result: TaskResult) -> List[str]:
    """Error lines from a build result; the whole error message if none match."""
    errors = _lines_matching((result.error_message, result.get_data("output", str)), ERROR_MARKERS)
    if not errors and result.error_message:
        errors.append(result.error_message)
    return errors


def extract_warnings(result: TaskResult) -> List[str]:
    return _lines_matching((result.message, result.error_message, result.get_data("output", str)),
                           WARNING_MARKERS)


def build_task(operation: str, description: str) -> Task:
    return Task(
        description=description,
        type=TaskType.BUILD_OPERATION,
        priority=TaskPriority.HIGH,
        parameters={"operation": operation},
    )


class AsyncCompilationValidator:
    """
    Runs `operation` (``compile`` by default) through the build executor on a
    background worker.

    idle -> compiling -> completed(result). `trigger` is a no-op while
    compiling; `get_last_result` waits at most `timeout_seconds`.
    """

    def __init__(self, build_executor: BuildOperationExecutor,
                 timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
                 operation: str = "compile"):
        self.build_executor = build_executor
        self.timeout_seconds = timeout_seconds
        self.operation = operation

        self._pool = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="async-compilation"
        )
        self._lock = threading.Lock()
        self._future: Optional[concurrent.futures.Future] = None
        self._current_task: Optional[Task] = None
        self._in_flight = False
        self._generation = 0
        self._shutdown = False
        self.compilations_started = 0

    # ------------------------------------------------------------
    # Triggering
    # ------------------------------------------------------------
    def trigger(self) -> bool:
        """
        Start a background compilation unless one is already running.

        Returns:
            True if a new compilation was started.
        """
        with self._lock:
            if self._shutdown:
                logger.warning("Compilation trigger rejected: validator is shut down")
                return False
            if self._in_flight:
                logger.debug("Compilation already in progress, skipping trigger")
                return False

            self._generation += 1
            task = build_task(self.operation, "Async compilation validation")
            self._current_task = task
            self._in_flight = True
            self.compilations_started += 1
            self._future = self._pool.submit(self._run_in_background, task, self._generation)

        logger.info("Triggered async compilation")
        return True

    def _run_in_background(self, task: Task, generation: int) -> ValidationResult:
        try:
            return self._perform_compilation(task)
        finally:
            with self._lock:
                # A newer trigger (after a cancel) owns the flag now
                if generation == self._generation:
                    self._in_flight = False

    def _perform_compilation(self, task: Task) -> ValidationResult:
        logger.debug("Performing compilation (%s)", task.id)
        try:
            result = self.build_executor.execute(task)
        except Exception as e:  # never let a build fault escape the worker
            logger.error("Exception during compilation", exc_info=True)
            return ValidationResult.failed(f"Compilation exception: {e}")

        if result.success:
            logger.debug("Compilation successful")
            warnings = extract_warnings(result)
            if warnings:
                return ValidationResult.with_warnings("Compilation successful", warnings)
            return ValidationResult.ok("Compilation successful")

        logger.debug("Compilation failed: %s", result.error_message)
        return ValidationResult.failed(
            "Compilation failed",
            extract_errors(result),
            diagnostics=result.get_data("output", str),
        )

    # ------------------------------------------------------------
    # Results
    # ------------------------------------------------------------
    def get_last_result(self, timeout: Optional[float] = None) -> ValidationResult:
        """
        Wait (bounded) for the last triggered compilation. Compiles
        synchronously if nothing was ever triggered.
        """
        with self._lock:
            future = self._future
        if future is None:
            logger.warning("No compilation has been triggered yet, performing synchronous compilation")
            return self._perform_compilation(build_task(self.operation, "Synchronous compilation"))

        wait = self.timeout_seconds if timeout is None else timeout
        try:
            return future.result(timeout=wait)
        except concurrent.futures.TimeoutError:
            logger.warning("Timed out after %ss waiting for compilation", wait)
            return ValidationResult.failed(f"Timed out after {wait}s waiting for compilation result")
        except concurrent.futures.CancelledError:
            return ValidationResult.failed("Compilation was cancelled")
        except Exception as e:
            logger.error("Error getting compilation result", exc_info=True)
            return ValidationResult.failed(f"Failed to get compilation result: {e}")

    def get_last_result_nowait(self) -> Optional[ValidationResult]:
        """The finished result, or None while compiling / if never triggered."""
        with self._lock:
            future = self._future
        if future is None or not future.done():
            return None
        if future.cancelled():
            return ValidationResult.failed("Compilation was cancelled")
        return future.result()

    @property
    def is_compiling(self) -> bool:
        with self._lock:
            return self._in_flight

    def await_completion(self, timeout: float) -> bool:
        with self._lock:
            future = self._future
        if future is None:
            return True
        done, _ = concurrent.futures.wait([future], timeout=timeout)
        return bool(done)

    def status(self) -> str:
        if self.is_compiling:
            return "Compilation in progress..."
        with self._lock:
            future = self._future
        if future is None:
            return "No compilation triggered yet"
        result = self.get_last_result_nowait()
        if result is None:
            return "Compilation pending..."
        return "Last compilation: SUCCESS" if result.success else "Last compilation: FAILED"

    # ------------------------------------------------------------
    # Cancellation / shutdown
    # ------------------------------------------------------------
    def cancel(self) -> None:
        """Kill the in-flight build and free the flag for the next trigger."""
        with self._lock:
            future, task = self._future, self._current_task
            if not self._in_flight:
                return
            self._in_flight = False
        logger.info("Cancelling ongoing compilation")
        if future is not None:
            future.cancel()
        if task is not None:
            task.cancel()

    def shutdown(self, wait: bool = True) -> None:
        logger.info("Shutting down async compilation validator")
        with self._lock:
            self._shutdown = True
        self.cancel()
        self._pool.shutdown(wait=wait, cancel_futures=True)

    @property
    def is_shut_down(self) -> bool:
        with self._lock:
            return self._shutdown

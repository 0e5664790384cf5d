# tests/test_compiler.py

import threading
import time

import pytest

from agentexec.tasks import TaskResult
from agentexec.validation import AsyncCompilationValidator, extract_errors, extract_warnings

COMPILE_ERROR = "src/Main.java:3: error: ';' expected"


class BlockingBuild:
    """Fake build executor whose compile blocks until released or cancelled."""

    def __init__(self, result=None):
        self.release = threading.Event()
        self.started = threading.Event()
        self.tasks = []
        self.result = result or TaskResult.ok("Operation compile completed successfully.\nOutput:\n")

    def execute(self, task):
        self.tasks.append(task)
        self.started.set()
        while not self.release.is_set() and not task.is_cancelled:
            time.sleep(0.01)
        if task.is_cancelled:
            return TaskResult.failure("Operation compile cancelled")
        return self.result


@pytest.fixture
def build():
    fake = BlockingBuild()
    yield fake
    fake.release.set()


@pytest.fixture
def validator(build):
    v = AsyncCompilationValidator(build, timeout_seconds=5)
    yield v
    v.shutdown()


def test_single_flight(validator, build):
    assert validator.trigger()
    assert build.started.wait(2)
    assert validator.is_compiling
    assert not validator.trigger()
    assert not validator.trigger()

    build.release.set()
    result = validator.get_last_result()
    assert result.success
    assert len(build.tasks) == 1
    assert validator.compilations_started == 1
    assert not validator.is_compiling


def test_trigger_again_after_completion(validator, build):
    build.release.set()
    validator.trigger()
    validator.get_last_result()
    assert validator.trigger()
    validator.get_last_result()
    assert len(build.tasks) == 2


def test_bounded_wait(validator, build):
    validator.trigger()
    result = validator.get_last_result(timeout=0.1)
    assert not result.success
    assert result.message.startswith("Timed out after 0.1s")


def test_nowait_and_status(validator, build):
    assert validator.status() == "No compilation triggered yet"
    assert validator.get_last_result_nowait() is None

    validator.trigger()
    build.started.wait(2)
    assert validator.get_last_result_nowait() is None
    assert validator.status() == "Compilation in progress..."

    build.release.set()
    assert validator.await_completion(5)
    assert validator.get_last_result_nowait().success
    assert validator.status() == "Last compilation: SUCCESS"


def test_untriggered_result_compiles_synchronously(validator, build):
    build.release.set()
    assert validator.get_last_result().success
    assert len(build.tasks) == 1


def test_cancel_kills_and_frees_the_flag(validator, build):
    validator.trigger()
    build.started.wait(2)
    validator.cancel()

    assert build.tasks[0].is_cancelled
    assert not validator.is_compiling
    assert validator.trigger()


def test_shutdown_rejects_triggers(build):
    validator = AsyncCompilationValidator(build)
    build.release.set()
    validator.shutdown()
    assert validator.is_shut_down
    assert not validator.trigger()


def test_failed_compile_extracts_errors():
    failing = TaskResult(
        success=False,
        error_message=f"Operation compile failed (exit code 1).\nErrors:\n{COMPILE_ERROR}",
        data={"output": COMPILE_ERROR + "\n1 error"},
    )
    build = BlockingBuild(result=failing)
    build.release.set()
    validator = AsyncCompilationValidator(build)
    try:
        validator.trigger()
        result = validator.get_last_result()
    finally:
        validator.shutdown()

    assert not result.success
    assert result.message == "Compilation failed"
    assert COMPILE_ERROR in result.errors
    assert result.errors.count(COMPILE_ERROR) == 1


def test_build_exception_is_a_failed_result():
    class Exploding:
        def execute(self, task):
            raise RuntimeError("boom")

    validator = AsyncCompilationValidator(Exploding())
    try:
        validator.trigger()
        result = validator.get_last_result()
    finally:
        validator.shutdown()
    assert result.message == "Compilation exception: boom"


def test_extractors():
    result = TaskResult(
        success=False,
        error_message="Build broke",
        data={"output": "compiling\nFoo.java:1: warning: [deprecation] old API\nTypeError: bad\n"},
    )
    assert extract_errors(result) == ["TypeError: bad"]
    assert extract_warnings(result) == ["Foo.java:1: warning: [deprecation] old API"]

    assert extract_errors(TaskResult.failure("something odd")) == ["something odd"]

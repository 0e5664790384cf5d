# agentexec/executors/process.py

import logging
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

from agentexec.errors import ExecutionFailure

logger = logging.getLogger(__name__)

_CANCEL_POLL_SECONDS = 0.2


@dataclass
class CommandResult:
    exit_code: int
    stdout: str
    stderr: str
    timed_out: bool = False
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and not self.timed_out and not self.cancelled

    @property
    def output(self) -> str:
        """stdout and stderr joined, for tools that report errors on either stream."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


def run_command(
    argv: Sequence[str],
    cwd: Union[str, Path],
    timeout: float,
    cancel_event: Optional[threading.Event] = None,
) -> CommandResult:
    """
    Run `argv` (never through a shell), enforce timeout, capture stdout/stderr.

    A set `cancel_event` kills the process on the next poll.

    Raises:
        ExecutionFailure: the executable could not be started.
    """
    logger.debug("Running %s in %s (timeout %ss)", list(argv), cwd, timeout)
    try:
        proc = subprocess.Popen(
            list(argv),
            cwd=str(cwd),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
    except OSError as e:
        raise ExecutionFailure(f"Could not start {argv[0]}: {e}") from e

    state = {"timed_out": False, "cancelled": False}

    def _on_timeout():
        state["timed_out"] = True
        proc.kill()

    # Timer thread to kill if needed
    timer = threading.Timer(timeout, _on_timeout)
    timer.daemon = True
    try:
        timer.start()
        if cancel_event is None:
            stdout, stderr = proc.communicate()
        else:
            while True:
                try:
                    stdout, stderr = proc.communicate(timeout=_CANCEL_POLL_SECONDS)
                    break
                except subprocess.TimeoutExpired:
                    if cancel_event.is_set() and not state["cancelled"]:
                        state["cancelled"] = True
                        proc.kill()
    finally:
        timer.cancel()

    return CommandResult(
        exit_code=proc.returncode,
        stdout=stdout or "",
        stderr=stderr or "",
        timed_out=state["timed_out"],
        cancelled=state["cancelled"],
    )

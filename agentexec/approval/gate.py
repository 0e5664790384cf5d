"""
Human-in-the-loop approval for risky tasks.

The gate hands an ApprovalRequest to a requester callback (a UI, a CLI
prompt, a queue consumer) and waits on it with a deadline. The outcome is a
value: APPROVED, DENIED or TIMED_OUT. Anything but APPROVED sets
`halt_event`, which tells model-response streaming to stop.
"""

import datetime
import logging
import threading
import uuid
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

logger = logging.getLogger(__name__)


class ApprovalDecision(Enum):
    APPROVED = "approved"
    DENIED = "denied"
    TIMED_OUT = "timed_out"

    @property
    def approved(self) -> bool:
        return self is ApprovalDecision.APPROVED


class ApprovalRequest:
    """One pending question. The first resolution wins; later ones are ignored."""

    def __init__(self, subject: str, arguments: Optional[Dict[str, Any]] = None,
                 timeout_seconds: float = 60.0):
        self.id = str(uuid.uuid4())
        self.subject = subject
        self.arguments = dict(arguments or {})
        self.created_at = datetime.datetime.now()
        self.deadline = self.created_at + datetime.timedelta(seconds=timeout_seconds)
        self._timeout_seconds = timeout_seconds
        self._lock = threading.Lock()
        self._resolved = threading.Event()
        self._decision: Optional[ApprovalDecision] = None

    def approve(self) -> bool:
        return self._resolve(ApprovalDecision.APPROVED)

    def deny(self) -> bool:
        return self._resolve(ApprovalDecision.DENIED)

    def _resolve(self, decision: ApprovalDecision) -> bool:
        with self._lock:
            if self._decision is not None:
                return False
            self._decision = decision
        self._resolved.set()
        return True

    @property
    def decision(self) -> Optional[ApprovalDecision]:
        with self._lock:
            return self._decision

    @property
    def is_resolved(self) -> bool:
        return self._resolved.is_set()

    def wait(self) -> ApprovalDecision:
        """Block until resolved or the deadline passes; a passed deadline resolves to TIMED_OUT."""
        if not self._resolved.wait(self._timeout_seconds):
            self._resolve(ApprovalDecision.TIMED_OUT)
        return self.decision

    def __repr__(self) -> str:
        return f"ApprovalRequest(subject={self.subject!r}, decision={self._decision})"


ApprovalRequester = Callable[[ApprovalRequest], None]


class ApprovalGate:

    def __init__(self, requester: Optional[ApprovalRequester] = None, required: bool = True,
                 timeout_seconds: float = 60.0):
        self.requester = requester
        self.required = required
        self.timeout_seconds = timeout_seconds
        self.halt_event = threading.Event()

        self._lock = threading.Lock()
        self._always_approved: Set[str] = set()
        self._pending: Dict[str, ApprovalRequest] = {}

    # ------------------------------------------------------------
    # Session allow-list
    # ------------------------------------------------------------
    def add_always_approved(self, subject: str) -> None:
        with self._lock:
            self._always_approved.add(subject)
        logger.info("Added %s to the always-approved list", subject)

    def clear_always_approved(self) -> None:
        with self._lock:
            self._always_approved.clear()
        logger.info("Cleared always-approved list")

    def is_always_approved(self, subject: str) -> bool:
        with self._lock:
            return subject in self._always_approved

    # ------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------
    def request(self, subject: str, arguments: Optional[Dict[str, Any]] = None,
                timeout: Optional[float] = None) -> ApprovalDecision:
        if not self.required:
            logger.debug("Approval bypassed (not required) for %s", subject)
            return ApprovalDecision.APPROVED
        if self.is_always_approved(subject):
            logger.debug("%s is in the always-approved list", subject)
            return ApprovalDecision.APPROVED

        if self.requester is None:
            logger.warning("No approval channel configured, denying %s", subject)
            return self._refuse(subject, ApprovalDecision.DENIED)

        request = ApprovalRequest(subject, arguments, self.timeout_seconds if timeout is None else timeout)
        with self._lock:
            self._pending[request.id] = request
        try:
            self.requester(request)
            decision = request.wait()
        except Exception:  # a broken channel counts as a refusal
            logger.error("Approval requester failed for %s", subject, exc_info=True)
            request.deny()
            decision = request.decision
        finally:
            with self._lock:
                self._pending.pop(request.id, None)

        if decision.approved:
            logger.info("Approved: %s", subject)
            return decision
        return self._refuse(subject, decision)

    def _refuse(self, subject: str, decision: ApprovalDecision) -> ApprovalDecision:
        if decision is ApprovalDecision.TIMED_OUT:
            logger.warning("Approval timed out for %s", subject)
        else:
            logger.warning("Approval denied for %s", subject)
        self.halt_event.set()
        return decision

    def pending_requests(self) -> List[ApprovalRequest]:
        with self._lock:
            return list(self._pending.values())

    def reset_halt(self) -> None:
        self.halt_event.clear()

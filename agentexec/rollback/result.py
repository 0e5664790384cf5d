from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RollbackStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"


class RollbackResult(BaseModel):
    """Outcome of undoing one action or a whole task."""
    model_config = ConfigDict(frozen=True)

    status: RollbackStatus
    message: Optional[str] = None
    error_message: Optional[str] = None
    failed_actions: List[str] = Field(default_factory=list)

    @classmethod
    def ok(cls, message: str) -> "RollbackResult":
        return cls(status=RollbackStatus.SUCCESS, message=message)

    @classmethod
    def failure(cls, error_message: str, failed_actions: Optional[List[str]] = None) -> "RollbackResult":
        return cls(status=RollbackStatus.FAILURE, error_message=error_message,
                   failed_actions=failed_actions or [])

    @classmethod
    def partial(cls, message: str, failed_actions: List[str]) -> "RollbackResult":
        return cls(status=RollbackStatus.PARTIAL, message=message,
                   error_message="Partial rollback", failed_actions=failed_actions)

    @property
    def success(self) -> bool:
        return self.status == RollbackStatus.SUCCESS

    @property
    def is_partial(self) -> bool:
        return self.status == RollbackStatus.PARTIAL

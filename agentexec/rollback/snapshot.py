"""
Snapshot models: before/after state of one resource, captured around an action.
"""

from enum import Enum
from typing import Any, Dict, Optional
import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ActionType(str, Enum):
    """What an action did, which decides how it is undone."""
    FILE_CREATE = "file_create"
    FILE_DELETE = "file_delete"
    FILE_MODIFY = "file_modify"
    FILE_MOVE = "file_move"
    GIT_ADD = "git_add"
    GIT_COMMIT = "git_commit"
    GIT_PUSH = "git_push"
    BUILD_OPERATION = "build_operation"


class SnapshotData(BaseModel):
    """
    State of one resource at a point in time.

    Build instances through ``for_file``, ``for_deleted_file`` or ``empty``;
    the validator rejects half-populated combinations. File content is kept
    as raw bytes so a restore reproduces line endings and encoding exactly.
    """
    model_config = ConfigDict(frozen=True)

    file_path: Optional[str] = None
    file_content: Optional[bytes] = None
    file_exists: bool = False
    vcs_state: Optional[Dict[str, str]] = None

    @model_validator(mode='after')
    def consistent(self):
        if self.file_exists and (self.file_path is None or self.file_content is None):
            raise ValueError("An existing file snapshot needs both a path and its content")
        if not self.file_exists and self.file_content is not None:
            raise ValueError("An absent file cannot carry content")
        return self

    @classmethod
    def for_file(cls, file_path: str, content: bytes,
                 vcs_state: Optional[Dict[str, str]] = None) -> "SnapshotData":
        return cls(file_path=file_path, file_content=content, file_exists=True, vcs_state=vcs_state)

    @classmethod
    def for_deleted_file(cls, file_path: str,
                         vcs_state: Optional[Dict[str, str]] = None) -> "SnapshotData":
        return cls(file_path=file_path, file_exists=False, vcs_state=vcs_state)

    @classmethod
    def empty(cls, vcs_state: Optional[Dict[str, str]] = None) -> "SnapshotData":
        return cls(file_exists=False, vcs_state=vcs_state)


class ActionSnapshot(BaseModel):
    """
    Immutable record of one action: the state before it ran and, once it
    succeeded, the state after. ``task_id`` groups the snapshots of a batch.
    """
    model_config = ConfigDict(frozen=True)

    action_id: str
    task_id: str
    action_type: ActionType
    before_state: Optional[SnapshotData] = None
    after_state: Optional[SnapshotData] = None
    timestamp: datetime.datetime = Field(default_factory=datetime.datetime.now)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def with_after_state(self, after_state: SnapshotData) -> "ActionSnapshot":
        return self.model_copy(update={"after_state": after_state})

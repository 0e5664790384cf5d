"""
Snapshot capture and LIFO rollback of executed actions.
"""

from .snapshot import ActionType, SnapshotData, ActionSnapshot
from .result import RollbackResult, RollbackStatus
from .manager import RollbackManager

__all__ = [
    "ActionType",
    "SnapshotData",
    "ActionSnapshot",
    "RollbackResult",
    "RollbackStatus",
    "RollbackManager",
]

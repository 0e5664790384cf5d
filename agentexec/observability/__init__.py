"""
Step/execution traces, run metrics and the JSON trace logger.
"""

from .trace import (
    SourceType,
    SourceReference,
    StepState,
    StepMetrics,
    StepTrace,
    ExecutionState,
    ExecutionMetrics,
    ExecutionTrace,
)
from .trace_logger import TraceLogger

__all__ = [
    "SourceType",
    "SourceReference",
    "StepState",
    "StepMetrics",
    "StepTrace",
    "ExecutionState",
    "ExecutionMetrics",
    "ExecutionTrace",
    "TraceLogger",
]

"""
Step and execution traces for agent runs.

A StepTrace follows one task through PENDING -> RUNNING -> COMPLETED/FAILED
and keeps a timestamped log. An ExecutionTrace groups the steps of one run
and carries roll-up metrics that are updated incrementally as events arrive.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from pathlib import PurePath
from typing import Any, Dict, List, Optional
import uuid

from agentexec.tasks.schema import TaskResult

SNIPPET_MAX_CHARS = 500

# Example rate used for the cost estimate
COST_PER_1K_TOKENS = 0.01


class SourceType(Enum):
    """Kinds of sources an agent step can cite."""
    FILE = "file"
    URL = "url"
    CLASS = "class"
    COMMIT = "commit"
    DOCUMENTATION = "documentation"
    SNIPPET = "snippet"
    EMBEDDING = "embedding"


class StepState(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ExecutionState(Enum):
    """State of a whole agent run."""
    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ExecutionState.COMPLETED, ExecutionState.FAILED, ExecutionState.CANCELLED)


@dataclass
class SourceReference:
    """A file, commit, URL or snippet a step used or produced, kept for citation."""
    uri: str
    type: SourceType = SourceType.FILE
    line_start: Optional[int] = None
    line_end: Optional[int] = None
    snippet: Optional[str] = None
    description: Optional[str] = None
    relevance_score: Optional[float] = None
    source_agent: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if self.snippet is not None and len(self.snippet) > SNIPPET_MAX_CHARS:
            self.snippet = self.snippet[:SNIPPET_MAX_CHARS]

    @property
    def display_name(self) -> str:
        """File name for files, the raw uri otherwise."""
        if self.type == SourceType.FILE:
            return PurePath(self.uri).name
        return self.uri

    @property
    def navigation_url(self) -> str:
        if self.type == SourceType.FILE and self.line_start is not None:
            return f"file://{self.uri}:{self.line_start}"
        return self.uri

    @property
    def is_navigable(self) -> bool:
        return self.type in (SourceType.FILE, SourceType.CLASS, SourceType.COMMIT)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uri": self.uri,
            "type": self.type.value,
            "line_start": self.line_start,
            "line_end": self.line_end,
            "snippet": self.snippet,
            "description": self.description,
            "relevance_score": self.relevance_score,
            "source_agent": self.source_agent,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }


@dataclass
class StepMetrics:
    total_llm_calls: int = 0
    total_tokens_input: int = 0
    total_tokens_output: int = 0
    llm_total_time: timedelta = field(default_factory=timedelta)
    tool_execution_time: timedelta = field(default_factory=timedelta)

    def record_llm_call(self, input_tokens: int, output_tokens: int, duration: timedelta) -> None:
        self.total_llm_calls += 1
        self.total_tokens_input += input_tokens
        self.total_tokens_output += output_tokens
        self.llm_total_time += duration

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_llm_calls": self.total_llm_calls,
            "total_tokens_input": self.total_tokens_input,
            "total_tokens_output": self.total_tokens_output,
            "llm_total_seconds": self.llm_total_time.total_seconds(),
            "tool_execution_seconds": self.tool_execution_time.total_seconds(),
        }


@dataclass
class ExecutionMetrics(StepMetrics):
    """Run-level counters. Every field is bumped by an explicit record/increment call."""
    estimated_cost: float = 0.0
    validation_time: timedelta = field(default_factory=timedelta)
    embedding_searches: int = 0
    embedding_hits: int = 0
    average_relevance_score: float = 0.0
    retries: int = 0
    failures: int = 0

    def record_llm_call(self, input_tokens: int, output_tokens: int, duration: timedelta) -> None:
        super().record_llm_call(input_tokens, output_tokens, duration)
        self.estimated_cost += (input_tokens + output_tokens) / 1000.0 * COST_PER_1K_TOKENS

    def record_retrieval(self, searches: int, hits: int, relevance: Optional[float] = None) -> None:
        """
        Add retrieval counts. `relevance` is the mean score of this batch of
        hits and is folded into a running average weighted by hit count.
        """
        if relevance is not None and hits > 0:
            total_hits = self.embedding_hits + hits
            self.average_relevance_score = (
                self.average_relevance_score * self.embedding_hits + relevance * hits
            ) / total_hits
        self.embedding_searches += searches
        self.embedding_hits += hits

    def record_validation(self, duration: timedelta) -> None:
        self.validation_time += duration

    def increment_retries(self) -> None:
        self.retries += 1

    def increment_failures(self) -> None:
        self.failures += 1

    @property
    def retrieval_hit_rate(self) -> float:
        if self.embedding_searches == 0:
            return 0.0
        return self.embedding_hits / self.embedding_searches

    @property
    def average_tokens_per_call(self) -> float:
        if self.total_llm_calls == 0:
            return 0.0
        return (self.total_tokens_input + self.total_tokens_output) / self.total_llm_calls

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "estimated_cost": round(self.estimated_cost, 6),
            "validation_seconds": self.validation_time.total_seconds(),
            "embedding_searches": self.embedding_searches,
            "embedding_hits": self.embedding_hits,
            "retrieval_hit_rate": self.retrieval_hit_rate,
            "average_relevance_score": self.average_relevance_score,
            "average_tokens_per_call": self.average_tokens_per_call,
            "retries": self.retries,
            "failures": self.failures,
        })
        return data


@dataclass
class StepTrace:
    """Trace of one step: inputs, outcome, timing, sources and a log."""
    step_number: int
    execution_id: Optional[str] = None
    tool_name: Optional[str] = None
    action: Optional[str] = None
    step_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    input_parameters: Dict[str, Any] = field(default_factory=dict)
    state: StepState = StepState.PENDING
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    error_message: Optional[str] = None
    output: Optional[TaskResult] = None
    reasoning: Optional[str] = None
    sources: List[SourceReference] = field(default_factory=list)
    logs: List[str] = field(default_factory=list)
    metrics: StepMetrics = field(default_factory=StepMetrics)

    def record_start(self) -> None:
        self.start_time = datetime.now()
        self.state = StepState.RUNNING
        self.add_log(f"START: {self.action or self.tool_name or 'step'}")

    def record_success(self, result: Optional[TaskResult] = None) -> None:
        self._finish(StepState.COMPLETED)
        self.output = result
        if result is not None:
            sources = result.data.get("sources")
            if sources:
                self.sources = [s for s in sources if isinstance(s, SourceReference)]
        self.add_log("COMPLETED")

    def record_error(self, error: Any) -> None:
        self._finish(StepState.FAILED)
        self.error_message = str(error)
        self.add_log(f"ERROR: {self.error_message}")

    def record_reasoning(self, reasoning: str) -> None:
        self.reasoning = reasoning
        self.add_log(f"REASONING: {reasoning}")

    def add_log(self, message: str) -> None:
        self.logs.append(f"[{datetime.now().isoformat()}] {message}")

    def _finish(self, state: StepState) -> None:
        self.end_time = datetime.now()
        if self.start_time is None:
            self.start_time = self.end_time
        self.state = state
        self.metrics.tool_execution_time = self.duration

    @property
    def duration(self) -> timedelta:
        if self.start_time is None or self.end_time is None:
            return timedelta()
        return self.end_time - self.start_time

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_id": self.step_id,
            "step_number": self.step_number,
            "execution_id": self.execution_id,
            "tool_name": self.tool_name,
            "action": self.action,
            "state": self.state.value,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_seconds": self.duration.total_seconds(),
            "error_message": self.error_message,
            "input_parameters": self.input_parameters,
            "output": self.output.model_dump(mode="json", exclude={"data"}) if self.output else None,
            "reasoning": self.reasoning,
            "sources": [s.to_dict() for s in self.sources],
            "logs": self.logs,
            "metrics": self.metrics.to_dict(),
        }


@dataclass
class ExecutionTrace:
    """All steps of one agent run, the sources they cited, and run-level metrics."""
    execution_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    user_request_id: Optional[str] = None
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    final_state: ExecutionState = ExecutionState.RUNNING
    error_message: Optional[str] = None
    step_traces: List[StepTrace] = field(default_factory=list)
    all_sources: List[SourceReference] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    metrics: ExecutionMetrics = field(default_factory=ExecutionMetrics)
    _steps_issued: int = field(default=0, repr=False)

    def new_step(self, tool_name: Optional[str] = None, action: Optional[str] = None,
                 input_parameters: Optional[Dict[str, Any]] = None) -> StepTrace:
        """
        Create the next step trace, numbered from 1 in creation order. It is
        not added until finished, so overlapping steps still get distinct numbers.
        """
        self._steps_issued += 1
        return StepTrace(
            step_number=self._steps_issued,
            execution_id=self.execution_id,
            tool_name=tool_name,
            action=action,
            input_parameters=dict(input_parameters or {}),
        )

    def add_step_trace(self, step: StepTrace) -> None:
        self.step_traces.append(step)
        self.all_sources.extend(step.sources)
        if step.state == StepState.FAILED:
            self.metrics.increment_failures()

    @property
    def completed_steps(self) -> int:
        return sum(1 for s in self.step_traces if s.state == StepState.COMPLETED)

    @property
    def total_steps(self) -> int:
        return len(self.step_traces)

    @property
    def failed_steps(self) -> List[StepTrace]:
        return [s for s in self.step_traces if s.state == StepState.FAILED]

    @property
    def total_duration(self) -> timedelta:
        return (self.end_time or datetime.now()) - self.start_time

    def finish(self, state: ExecutionState, error_message: Optional[str] = None) -> None:
        if not state.is_terminal:
            raise ValueError(f"Cannot finish an execution in non-terminal state {state.value}")
        self.end_time = datetime.now()
        self.final_state = state
        self.error_message = error_message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "execution_id": self.execution_id,
            "user_request_id": self.user_request_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "total_duration_seconds": self.total_duration.total_seconds(),
            "final_state": self.final_state.value,
            "error_message": self.error_message,
            "completed_steps": self.completed_steps,
            "total_steps": self.total_steps,
            "steps": [s.to_dict() for s in self.step_traces],
            "sources": [s.to_dict() for s in self.all_sources],
            "metadata": self.metadata,
            "metrics": self.metrics.to_dict(),
        }

"""Record models for workflow executions, steps and queue entries."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

ExecutionStatus = Literal["success", "failed", "running", "pending", "cancelled"]
StepStatus = Literal["success", "failed", "running", "pending"]
QueueStatus = Literal["pending", "updated", "failed"]

EXECUTION_STATUSES: tuple[str, ...] = (
    "success",
    "failed",
    "running",
    "pending",
    "cancelled",
)


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", protected_namespaces=())


class Execution(_Record):
    """A single run of a workflow definition."""

    id: str = Field(min_length=1)
    workflow_id: str
    overall_status: ExecutionStatus
    created_at: datetime
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    total_latency_ms: Optional[int] = Field(default=None, ge=0)
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)
    payload: Any = None
    tool_usage: Any = None
    response_data: Any = None
    error_message: Optional[str] = None

    @field_validator("input_tokens", "output_tokens", "total_tokens", mode="before")
    @classmethod
    def _missing_tokens_are_zero(cls, value: Any) -> Any:
        return 0 if value is None else value


class Step(_Record):
    """One step of an execution's trace."""

    id: str = Field(min_length=1)
    execution_id: str = Field(min_length=1)
    step_name: str
    step_order: int
    status: Optional[StepStatus] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    latency_ms: Optional[int] = Field(default=None, ge=0)
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    model_name: Optional[str] = None
    error_message: Optional[str] = None
    response_data: Any = None
    retrieved_contexts: Any = None

    @field_validator("status", mode="before")
    @classmethod
    def _blank_status_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("input_tokens", "output_tokens", mode="before")
    @classmethod
    def _missing_tokens_are_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class QueueEntry(_Record):
    """Queue bookkeeping for an execution."""

    id: str = Field(min_length=1)
    execution_id: Optional[str] = None
    workflow_execution_id: Optional[str] = None
    status: QueueStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CompositeExecution(Execution):
    """An execution joined with its steps and queue entries."""

    steps: List[Step] = Field(default_factory=list)
    queue: List[QueueEntry] = Field(default_factory=list)

    @property
    def ordered_steps(self) -> list[Step]:
        """Steps sorted by ``step_order``; ties keep fetch order."""
        return sorted(self.steps, key=lambda step: step.step_order)

    @property
    def queue_status(self) -> Optional[str]:
        """Status of the first queue entry in fetch order."""
        return self.queue[0].status if self.queue else None

    def as_execution(self) -> Execution:
        """Return the bare execution without its children."""
        return Execution.model_validate(
            {name: getattr(self, name) for name in Execution.model_fields}
        )


class FetchResult(BaseModel):
    """The three flat collections returned by one fetch."""

    executions: List[Execution] = Field(default_factory=list)
    steps: List[Step] = Field(default_factory=list)
    queue: List[QueueEntry] = Field(default_factory=list)

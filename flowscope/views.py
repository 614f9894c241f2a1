"""View models for the overview, steps analysis and drill-down surfaces."""

from __future__ import annotations

from datetime import date
from typing import List, Optional, Sequence

from pydantic import BaseModel

from .filters import as_local
from .join import flatten_steps
from .metrics import (
    ExecutionSummary,
    ModelUsage,
    StatusSlice,
    StepLatency,
    TrendPoint,
    TREND_DAYS,
    execution_trend,
    model_usage,
    status_distribution,
    step_latency_by_name,
    step_status_distribution,
    summarize_executions,
)
from .pagination import Page, paginate
from .records import CompositeExecution, Step

FRAGMENT_PREFIX = "#execution-"


class ExecutionSelection(BaseModel):
    """The execution picked for drill-down, if any.

    Owned by the top-level controller and passed down as a plain id. It can
    be shared as a location fragment of the form ``#execution-<id>``.
    """

    execution_id: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.execution_id

    @classmethod
    def from_fragment(cls, fragment: str) -> "ExecutionSelection":
        if fragment.startswith(FRAGMENT_PREFIX):
            execution_id = fragment[len(FRAGMENT_PREFIX) :]
            return cls(execution_id=execution_id or None)
        return cls()

    def to_fragment(self) -> str:
        return f"{FRAGMENT_PREFIX}{self.execution_id}" if self.execution_id else ""


class OverviewView(BaseModel):
    summary: ExecutionSummary
    status_distribution: List[StatusSlice]
    trend: List[TrendPoint]
    executions: Page[CompositeExecution]


class StepsAnalysisView(BaseModel):
    total_steps: int
    step_latency: List[StepLatency]
    step_status: List[StatusSlice]
    model_usage: List[ModelUsage]
    steps: Page[Step]


class ExecutionDetail(BaseModel):
    execution: CompositeExecution
    steps: List[Step]
    queue_status: Optional[str] = None
    has_error: bool = False


def build_overview(
    records: Sequence[CompositeExecution],
    page: int = 1,
    page_size: int = 50,
    today: Optional[date] = None,
    trend_days: int = TREND_DAYS,
) -> OverviewView:
    return OverviewView(
        summary=summarize_executions(records),
        status_distribution=status_distribution(records),
        trend=execution_trend(records, today=today, days=trend_days),
        executions=Page[CompositeExecution](**dict(paginate(records, page, page_size))),
    )


def build_steps_analysis(
    records: Sequence[CompositeExecution],
    page: int = 1,
    page_size: int = 100,
) -> StepsAnalysisView:
    steps = flatten_steps(records)
    dated = [s for s in steps if s.created_at is not None]
    undated = [s for s in steps if s.created_at is None]
    # Steps without a timestamp go last.
    recent_first = (
        sorted(dated, key=lambda s: as_local(s.created_at), reverse=True) + undated
    )
    return StepsAnalysisView(
        total_steps=len(steps),
        step_latency=step_latency_by_name(steps),
        step_status=step_status_distribution(steps),
        model_usage=model_usage(steps),
        steps=Page[Step](**dict(paginate(recent_first, page, page_size))),
    )


def build_execution_list(
    records: Sequence[CompositeExecution], search: str = ""
) -> list[CompositeExecution]:
    """Executions whose workflow id or id contains ``search``, ignoring case."""
    term = search.lower()
    return [
        record
        for record in records
        if term in record.workflow_id.lower() or term in record.id.lower()
    ]


def build_execution_detail(record: CompositeExecution) -> ExecutionDetail:
    return ExecutionDetail(
        execution=record,
        steps=record.ordered_steps,
        queue_status=record.queue_status,
        has_error=bool(record.error_message),
    )

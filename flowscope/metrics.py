"""Summary statistics over joined executions and flattened steps.

Every function here is pure: it reads its input, never mutates it, and
returns freshly built models. Callers decide which record set to pass in,
the full joined collection or a flattened step projection.
"""

from __future__ import annotations

import math
from collections import Counter, defaultdict
from datetime import date, timedelta
from typing import Iterable, Literal, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from .errors import InvariantViolation
from .filters import as_local
from .records import Execution, Step

STEP_LATENCY_LIMIT = 10
MODEL_USAGE_LIMIT = 8
TREND_DAYS = 30
LABEL_THRESHOLD = 5.0

Severity = Literal["normal", "elevated", "high"]


class ExecutionSummary(BaseModel):
    """Headline numbers for a set of executions."""

    total: int
    failed: int
    error_rate: float
    error_rate_severity: Severity
    latency_sample_size: int
    avg_latency: float
    p95_latency: int
    total_input_tokens: int
    total_output_tokens: int
    total_tokens: int


class StatusSlice(BaseModel):
    status: str
    label: str
    count: int
    percentage: float
    show_label: bool


class StepLatency(BaseModel):
    step_name: str
    avg_latency: float
    count: int


class ModelUsage(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_name: str
    count: int


class TrendPoint(BaseModel):
    date: str
    total: int = 0
    success: int = 0
    failed: int = 0


def _require_identity(records: Sequence[Execution] | Sequence[Step]) -> None:
    for record in records:
        if not getattr(record, "id", None):
            raise InvariantViolation(
                f"{type(record).__name__} record without an id; refusing to summarize"
            )


def _label(status: str) -> str:
    return status[:1].upper() + status[1:]


def _percentage(count: int, total: int) -> float:
    return round(100 * count / total, 1) if total else 0.0


def error_rate_severity(error_rate: float) -> Severity:
    if error_rate > 10:
        return "high"
    if error_rate > 5:
        return "elevated"
    return "normal"


def p95(values: Iterable[int]) -> int:
    """Nearest-rank 95th percentile: ``sorted[floor(0.95 * n)]``, 0 when empty."""
    ordered = sorted(values)
    index = math.floor(0.95 * len(ordered))
    if index >= len(ordered):
        return 0
    return ordered[index]


def summarize_executions(executions: Sequence[Execution]) -> ExecutionSummary:
    _require_identity(executions)
    total = len(executions)
    failed = sum(1 for e in executions if e.overall_status == "failed")
    raw_rate = 100 * failed / total if total else 0.0

    latencies = [
        e.total_latency_ms
        for e in executions
        if e.total_latency_ms is not None and e.total_latency_ms > 0
    ]
    avg_latency = sum(latencies) / len(latencies) if latencies else 0.0

    return ExecutionSummary(
        total=total,
        failed=failed,
        error_rate=round(raw_rate, 1),
        error_rate_severity=error_rate_severity(raw_rate),
        latency_sample_size=len(latencies),
        avg_latency=avg_latency,
        p95_latency=p95(latencies),
        total_input_tokens=sum(e.input_tokens for e in executions),
        total_output_tokens=sum(e.output_tokens for e in executions),
        total_tokens=sum(e.total_tokens for e in executions),
    )


def _distribution(statuses: list[str]) -> list[StatusSlice]:
    counts = Counter(statuses)
    total = len(statuses)
    slices = []
    for status, count in counts.items():
        percentage = _percentage(count, total)
        slices.append(
            StatusSlice(
                status=status,
                label=_label(status),
                count=count,
                percentage=percentage,
                show_label=percentage >= LABEL_THRESHOLD,
            )
        )
    return slices


def status_distribution(executions: Sequence[Execution]) -> list[StatusSlice]:
    """Executions per ``overall_status`` in first-seen order.

    ``show_label`` is False for slices under 5%; those slices still count
    toward every total.
    """
    _require_identity(executions)
    return _distribution([e.overall_status for e in executions])


def step_status_distribution(steps: Sequence[Step]) -> list[StatusSlice]:
    _require_identity(steps)
    return _distribution([s.status for s in steps if s.status])


def step_latency_by_name(
    steps: Sequence[Step], limit: int = STEP_LATENCY_LIMIT
) -> list[StepLatency]:
    """Average positive latency per step name, slowest first."""
    _require_identity(steps)
    totals: dict[str, list[int]] = defaultdict(list)
    for step in steps:
        if step.latency_ms is not None and step.latency_ms > 0:
            totals[step.step_name].append(step.latency_ms)
    averages = [
        StepLatency(
            step_name=name,
            avg_latency=sum(values) / len(values),
            count=len(values),
        )
        for name, values in totals.items()
    ]
    averages.sort(key=lambda item: item.avg_latency, reverse=True)
    return averages[:limit]


def model_usage(steps: Sequence[Step], limit: int = MODEL_USAGE_LIMIT) -> list[ModelUsage]:
    """Step counts per model name, most used first."""
    _require_identity(steps)
    counts = Counter(
        step.model_name
        for step in steps
        if step.model_name and step.model_name.strip()
    )
    usage = [ModelUsage(model_name=name, count=count) for name, count in counts.items()]
    usage.sort(key=lambda item: item.count, reverse=True)
    return usage[:limit]


def execution_trend(
    executions: Sequence[Execution],
    today: Optional[date] = None,
    days: int = TREND_DAYS,
) -> list[TrendPoint]:
    """Daily totals over the trailing ``days`` ending ``today``.

    The series always has exactly ``days`` points; empty days are zeroed.
    Days are local calendar days of ``created_at``.
    """
    _require_identity(executions)
    today = today or date.today()
    window = [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]
    buckets = {day.isoformat(): TrendPoint(date=day.isoformat()) for day in window}

    for execution in executions:
        key = as_local(execution.created_at).date().isoformat()
        point = buckets.get(key)
        if point is None:
            continue
        point.total += 1
        if execution.overall_status == "success":
            point.success += 1
        elif execution.overall_status == "failed":
            point.failed += 1

    return list(buckets.values())

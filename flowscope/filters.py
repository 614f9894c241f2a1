"""Search criteria for workflow executions."""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Literal, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field

from .records import Execution, ExecutionStatus

END_OF_DAY = time(23, 59, 59, 999000)


class Predicate(NamedTuple):
    """Backend-neutral comparison on an execution column."""

    field: str
    op: Literal["ilike", "eq", "gte", "lte"]
    value: Any


def as_local(moment: datetime) -> datetime:
    """Return ``moment`` as an aware datetime in local time.

    Naive datetimes are taken to already be local.
    """
    return moment.astimezone()


class ExecutionFilters(BaseModel):
    """User-selected search criteria.

    Every field is optional; a filter with no fields set matches every
    execution. ``start_date`` and ``end_date`` are inclusive calendar days in
    local time.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    workflow_id: Optional[str] = Field(default=None, alias="workflowId")
    execution_id: Optional[str] = Field(default=None, alias="executionId")
    overall_status: Optional[ExecutionStatus] = None
    start_date: Optional[date] = Field(default=None, alias="startDate")
    end_date: Optional[date] = Field(default=None, alias="endDate")

    def is_empty(self) -> bool:
        return not self.predicates()

    def replace(self, **changes: Any) -> "ExecutionFilters":
        """Return a new filter with ``changes`` overwriting existing keys."""
        aliases = {
            field.alias: name
            for name, field in ExecutionFilters.model_fields.items()
            if field.alias
        }
        data = self.model_dump()
        for key, value in changes.items():
            name = aliases.get(key, key)
            if name not in data:
                raise ValueError(f"Unknown filter field: {key}")
            data[name] = value
        return ExecutionFilters.model_validate(data)

    def start_bound(self) -> Optional[datetime]:
        if self.start_date is None:
            return None
        return datetime.combine(self.start_date, time.min).astimezone()

    def end_bound(self) -> Optional[datetime]:
        if self.end_date is None:
            return None
        return datetime.combine(self.end_date, END_OF_DAY).astimezone()

    def predicates(self) -> list[Predicate]:
        """Translate the filter into column predicates."""
        predicates: list[Predicate] = []
        if self.workflow_id:
            predicates.append(Predicate("workflow_id", "ilike", self.workflow_id))
        if self.execution_id:
            predicates.append(Predicate("id", "ilike", self.execution_id))
        if self.overall_status:
            predicates.append(Predicate("overall_status", "eq", self.overall_status))
        start = self.start_bound()
        if start is not None:
            predicates.append(Predicate("created_at", "gte", start))
        end = self.end_bound()
        if end is not None:
            predicates.append(Predicate("created_at", "lte", end))
        return predicates

    def to_postgrest_params(self) -> list[tuple[str, str]]:
        """Render the predicates as PostgREST query parameters."""
        params: list[tuple[str, str]] = []
        for predicate in self.predicates():
            if predicate.op == "ilike":
                value = f"ilike.*{predicate.value}*"
            elif isinstance(predicate.value, datetime):
                value = f"{predicate.op}.{predicate.value.isoformat()}"
            else:
                value = f"{predicate.op}.{predicate.value}"
            params.append((predicate.field, value))
        return params

    def matches(self, execution: Execution) -> bool:
        """Evaluate the predicates against a single execution."""
        for predicate in self.predicates():
            actual = getattr(execution, predicate.field)
            if predicate.op == "ilike":
                if predicate.value.lower() not in str(actual).lower():
                    return False
            elif predicate.op == "eq":
                if actual != predicate.value:
                    return False
            elif predicate.op == "gte":
                if as_local(actual) < predicate.value:
                    return False
            elif predicate.op == "lte":
                if as_local(actual) > predicate.value:
                    return False
        return True

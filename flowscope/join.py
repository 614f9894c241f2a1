"""Join steps and queue entries onto their owning executions."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Iterable, Mapping, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from .errors import InvariantViolation
from .filters import ExecutionFilters
from .records import CompositeExecution, Execution, QueueEntry, Step

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


def _coerce(model: Type[RecordT], record: Union[RecordT, Mapping[str, Any]]) -> RecordT:
    if isinstance(record, model):
        return record
    try:
        return model.model_validate(record)
    except ValidationError as exc:
        raise InvariantViolation(
            f"Malformed {model.__name__} record: {exc.errors()[0]['msg']}"
        ) from exc


def join_records(
    executions: Iterable[Union[Execution, Mapping[str, Any]]],
    steps: Iterable[Union[Step, Mapping[str, Any]]],
    queue: Iterable[Union[QueueEntry, Mapping[str, Any]]],
    filters: Optional[ExecutionFilters] = None,
) -> list[CompositeExecution]:
    """Build one composite record per execution.

    Steps are grouped by ``execution_id`` and queue entries by
    ``workflow_execution_id``, both in fetch order. Children that point at
    an execution outside ``executions`` are dropped. The output keeps the
    order of ``executions``. ``filters`` is only logged; it is never
    re-applied here.
    """

    parents = [_coerce(Execution, e) for e in executions]
    known_ids: set[str] = set()
    for execution in parents:
        if not execution.id:
            raise InvariantViolation("Execution record without an id")
        if execution.id in known_ids:
            raise InvariantViolation(f"Duplicate execution id {execution.id}")
        known_ids.add(execution.id)

    steps_by_execution: dict[str, list[Step]] = defaultdict(list)
    dropped = 0
    for raw_step in steps:
        step = _coerce(Step, raw_step)
        if not step.execution_id:
            raise InvariantViolation(f"Step {step.id} has no execution_id")
        if step.execution_id not in known_ids:
            dropped += 1
            continue
        steps_by_execution[step.execution_id].append(step)

    queue_by_execution: dict[str, list[QueueEntry]] = defaultdict(list)
    for raw_entry in queue:
        entry = _coerce(QueueEntry, raw_entry)
        if entry.workflow_execution_id not in known_ids:
            dropped += 1
            continue
        queue_by_execution[entry.workflow_execution_id].append(entry)

    if dropped:
        logger.debug(f"Dropped {dropped} child records without a fetched execution")

    joined = [
        CompositeExecution.model_validate(
            {
                **{name: getattr(execution, name) for name in Execution.model_fields},
                "steps": steps_by_execution.get(execution.id, []),
                "queue": queue_by_execution.get(execution.id, []),
            }
        )
        for execution in parents
    ]
    logger.debug(
        f"Joined {len(joined)} executions"
        + (f" for filters {filters.model_dump(exclude_none=True)}" if filters else "")
    )
    return joined


def flatten_steps(records: Iterable[CompositeExecution]) -> list[Step]:
    """Concatenate every execution's steps in execution order."""
    return [step for record in records for step in record.steps]


def split_records(
    records: Iterable[CompositeExecution],
) -> tuple[list[Execution], list[Step], list[QueueEntry]]:
    """Project composite records back onto the three flat collections."""
    executions: list[Execution] = []
    steps: list[Step] = []
    queue: list[QueueEntry] = []
    for record in records:
        executions.append(record.as_execution())
        steps.extend(record.steps)
        queue.extend(record.queue)
    return executions, steps, queue

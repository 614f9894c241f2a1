"""In-memory implementation of the record store."""

from __future__ import annotations

from typing import Iterable

from ..filters import ExecutionFilters, as_local
from ..records import Execution, FetchResult, QueueEntry, Step
from .base import RecordStore


class InMemoryRecordStore(RecordStore):
    """Serve records held in local memory.

    Useful for tests or when no backend is configured.
    """

    def __init__(self) -> None:
        self._executions: list[Execution] = []
        self._steps: list[Step] = []
        self._queue: list[QueueEntry] = []

    def load(
        self,
        executions: Iterable[Execution] = (),
        steps: Iterable[Step] = (),
        queue: Iterable[QueueEntry] = (),
    ) -> None:
        """Add records to the store."""
        self._executions.extend(executions)
        self._steps.extend(steps)
        self._queue.extend(queue)

    # ------------------------------------------------------------------
    def _scoped(self, executions: list[Execution]) -> FetchResult:
        executions = sorted(executions, key=lambda e: as_local(e.created_at), reverse=True)
        ids = {e.id for e in executions}
        if not ids:
            return FetchResult()
        steps = sorted(
            (s for s in self._steps if s.execution_id in ids),
            key=lambda s: s.step_order,
        )
        queue = [q for q in self._queue if q.workflow_execution_id in ids]
        return FetchResult(executions=executions, steps=steps, queue=queue)

    async def fetch(self, filters: ExecutionFilters) -> FetchResult:
        return self._scoped([e for e in self._executions if filters.matches(e)])

    async def fetch_execution(self, execution_id: str) -> FetchResult:
        return self._scoped([e for e in self._executions if e.id == execution_id])

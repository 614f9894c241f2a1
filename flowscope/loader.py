"""Fetch-cycle controller feeding the presentation surfaces."""

from __future__ import annotations

import logging
from typing import List, Optional

from pydantic import BaseModel, Field

from .errors import FetchFailure, InvariantViolation
from .filters import ExecutionFilters
from .join import join_records
from .records import CompositeExecution
from .store import RecordStore, get_store

logger = logging.getLogger(__name__)


class LoaderState(BaseModel):
    """Snapshot of what a view displays."""

    records: List[CompositeExecution] = Field(default_factory=list)
    loading: bool = False
    error: Optional[str] = None


class WorkflowDataLoader:
    """Fetch, join and hold the composite records for one view.

    Each fetch cycle is tagged with a sequence number. A cycle that finishes
    after a newer one has started is discarded, so the held records always
    belong to the most recently requested filters.
    """

    def __init__(
        self,
        store: RecordStore | None = None,
        filters: ExecutionFilters | None = None,
    ) -> None:
        self._store = store or get_store()
        self.filters = filters or ExecutionFilters()
        self.records: list[CompositeExecution] = []
        self.loading = False
        self.error: Optional[str] = None
        self._sequence = 0

    @property
    def state(self) -> LoaderState:
        return LoaderState(records=self.records, loading=self.loading, error=self.error)

    async def set_filters(self, filters: ExecutionFilters) -> LoaderState:
        """Replace the filters and start a new fetch cycle."""
        self.filters = filters
        return await self.refetch()

    async def refetch(self) -> LoaderState:
        """Run a fetch cycle with the current filters."""
        self._sequence += 1
        sequence = self._sequence
        filters = self.filters
        self.loading = True
        self.error = None

        try:
            result = await self._store.fetch(filters)
            records = join_records(result.executions, result.steps, result.queue, filters)
            error = None
        except (FetchFailure, InvariantViolation) as exc:
            logger.warning(f"Fetch cycle {sequence} failed: {exc}")
            records = []
            error = str(exc)
        finally:
            # Anything else propagates, but must not leave the view loading.
            if sequence == self._sequence:
                self.loading = False

        if sequence != self._sequence:
            logger.debug(
                f"Discarding fetch cycle {sequence}; cycle {self._sequence} is newer"
            )
            return self.state

        self.records = records
        self.error = error
        self.loading = False
        if error is None:
            logger.info(f"Fetch cycle {sequence} loaded {len(records)} executions")
        return self.state

    async def load_execution(self, execution_id: str) -> Optional[CompositeExecution]:
        """Fetch a single execution by exact id for the detail view."""
        result = await self._store.fetch_execution(execution_id)
        records = join_records(result.executions, result.steps, result.queue)
        return records[0] if records else None

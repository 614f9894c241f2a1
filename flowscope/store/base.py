"""Record store abstraction for fetching workflow records."""

from __future__ import annotations

from typing import Protocol

from ..filters import ExecutionFilters
from ..records import FetchResult


class RecordStore(Protocol):
    """Protocol for read-only workflow record backends.

    Implementations return executions most recent first, with steps and
    queue entries scoped to exactly the returned execution ids. Failures
    are raised as :class:`~flowscope.errors.FetchFailure`.
    """

    async def fetch(self, filters: ExecutionFilters) -> FetchResult:
        """Return the records matching ``filters``."""

    async def fetch_execution(self, execution_id: str) -> FetchResult:
        """Return the execution with exactly ``execution_id`` and its children."""

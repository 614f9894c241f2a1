"""flowscope: operational analytics over recorded workflow executions."""

from .errors import FetchFailure, FlowscopeError, InvariantViolation
from .filters import ExecutionFilters
from .join import flatten_steps, join_records
from .loader import LoaderState, WorkflowDataLoader
from .pagination import Page, Paginator, paginate, total_pages
from .records import CompositeExecution, Execution, FetchResult, QueueEntry, Step
from .store import get_store

__version__ = "0.1.0"
__all__ = [
    "CompositeExecution",
    "Execution",
    "ExecutionFilters",
    "FetchFailure",
    "FetchResult",
    "FlowscopeError",
    "InvariantViolation",
    "LoaderState",
    "Page",
    "Paginator",
    "QueueEntry",
    "Step",
    "WorkflowDataLoader",
    "flatten_steps",
    "get_store",
    "join_records",
    "paginate",
    "total_pages",
]

import itertools
from datetime import datetime, timezone

import pytest

import flowscope.store as store_module
from flowscope.records import Execution, QueueEntry, Step

_ids = itertools.count(1)


def _next_id(prefix: str) -> str:
    return f"{prefix}-{next(_ids)}"


@pytest.fixture
def make_execution():
    def factory(**overrides) -> Execution:
        data = {
            "id": _next_id("exec"),
            "workflow_id": "wf-default",
            "overall_status": "success",
            "created_at": datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        }
        data.update(overrides)
        return Execution(**data)

    return factory


@pytest.fixture
def make_step():
    def factory(execution_id: str, **overrides) -> Step:
        data = {
            "id": _next_id("step"),
            "execution_id": execution_id,
            "step_name": "fetch",
            "step_order": 1,
            "status": "success",
        }
        data.update(overrides)
        return Step(**data)

    return factory


@pytest.fixture
def make_queue_entry():
    def factory(workflow_execution_id, **overrides) -> QueueEntry:
        data = {
            "id": _next_id("queue"),
            "workflow_execution_id": workflow_execution_id,
            "status": "pending",
        }
        data.update(overrides)
        return QueueEntry(**data)

    return factory


@pytest.fixture(autouse=True)
def reset_store_singleton(monkeypatch):
    monkeypatch.delenv("FLOWSCOPE_STORE", raising=False)
    monkeypatch.delenv("FLOWSCOPE_CONFIG", raising=False)
    monkeypatch.delenv("FLOWSCOPE_DATABASE_URL", raising=False)
    store_module._store_instance = None
    yield
    store_module._store_instance = None

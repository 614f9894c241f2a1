"""Tests for the fetch-cycle controller."""

import asyncio

import httpx
import pytest

from flowscope.errors import FetchFailure
from flowscope.filters import ExecutionFilters
from flowscope.loader import WorkflowDataLoader
from flowscope.records import FetchResult
from flowscope.store import InMemoryRecordStore
from flowscope.store.postgrest import PostgrestRecordStore


class FailingStore:
    def __init__(self, message: str) -> None:
        self.message = message

    async def fetch(self, filters):
        raise FetchFailure(self.message)

    async def fetch_execution(self, execution_id):
        raise FetchFailure(self.message)


class GatedStore:
    """Holds each fetch until the test releases it."""

    def __init__(self, results):
        self.results = results
        self.gates = {key: asyncio.Event() for key in results}

    async def fetch(self, filters):
        key = filters.workflow_id
        await self.gates[key].wait()
        return self.results[key]

    async def fetch_execution(self, execution_id):
        return FetchResult()


@pytest.mark.asyncio
async def test_refetch_joins_records(make_execution, make_step, make_queue_entry):
    store = InMemoryRecordStore()
    execution = make_execution()
    store.load([execution], [make_step(execution.id)], [make_queue_entry(execution.id)])
    loader = WorkflowDataLoader(store)

    state = await loader.refetch()
    assert state.error is None
    assert not state.loading
    assert len(state.records) == 1
    assert len(state.records[0].steps) == 1
    assert state.records[0].queue_status == "pending"


@pytest.mark.asyncio
async def test_set_filters_replaces_results(make_execution):
    store = InMemoryRecordStore()
    store.load(
        [
            make_execution(workflow_id="billing"),
            make_execution(workflow_id="search"),
        ]
    )
    loader = WorkflowDataLoader(store)
    await loader.refetch()
    assert len(loader.records) == 2

    await loader.set_filters(ExecutionFilters(workflow_id="bill"))
    assert [r.workflow_id for r in loader.records] == ["billing"]
    assert loader.filters.workflow_id == "bill"


@pytest.mark.asyncio
async def test_fetch_failure_yields_empty_records(make_execution):
    store = InMemoryRecordStore()
    store.load([make_execution()])
    loader = WorkflowDataLoader(store)
    await loader.refetch()
    assert loader.records

    loader._store = FailingStore("relation does not exist")
    state = await loader.refetch()
    assert state.records == []
    assert state.error == "relation does not exist"
    assert not state.loading


@pytest.mark.asyncio
async def test_stale_cycle_is_discarded(make_execution):
    old = make_execution(workflow_id="old")
    new = make_execution(workflow_id="new")
    store = GatedStore(
        {
            "old": FetchResult(executions=[old]),
            "new": FetchResult(executions=[new]),
        }
    )
    loader = WorkflowDataLoader(store)

    first = asyncio.create_task(loader.set_filters(ExecutionFilters(workflow_id="old")))
    await asyncio.sleep(0)
    assert loader.loading
    second = asyncio.create_task(loader.set_filters(ExecutionFilters(workflow_id="new")))
    await asyncio.sleep(0)

    store.gates["new"].set()
    await second
    assert [r.id for r in loader.records] == [new.id]
    assert not loader.loading

    store.gates["old"].set()
    await first
    assert [r.id for r in loader.records] == [new.id]
    assert loader.filters.workflow_id == "new"


@pytest.mark.asyncio
async def test_pending_newer_cycle_keeps_loading(make_execution):
    store = GatedStore(
        {
            "a": FetchResult(executions=[make_execution()]),
            "b": FetchResult(executions=[]),
        }
    )
    loader = WorkflowDataLoader(store)
    first = asyncio.create_task(loader.set_filters(ExecutionFilters(workflow_id="a")))
    await asyncio.sleep(0)
    second = asyncio.create_task(loader.set_filters(ExecutionFilters(workflow_id="b")))
    await asyncio.sleep(0)

    store.gates["a"].set()
    await first
    assert loader.loading
    assert loader.records == []

    store.gates["b"].set()
    await second
    assert not loader.loading


@pytest.mark.asyncio
async def test_load_execution(make_execution, make_step):
    store = InMemoryRecordStore()
    execution = make_execution()
    other = make_execution()
    store.load(
        [execution, other],
        [make_step(execution.id, step_order=2), make_step(other.id)],
    )
    loader = WorkflowDataLoader(store)

    record = await loader.load_execution(execution.id)
    assert record is not None
    assert record.id == execution.id
    assert len(record.steps) == 1
    assert await loader.load_execution("missing") is None


class StaticStore:
    def __init__(self, result: FetchResult) -> None:
        self.result = result

    async def fetch(self, filters):
        return self.result

    async def fetch_execution(self, execution_id):
        return self.result


class ExplodingStore:
    async def fetch(self, filters):
        raise RuntimeError("driver crashed")

    async def fetch_execution(self, execution_id):
        raise RuntimeError("driver crashed")


@pytest.mark.asyncio
async def test_non_json_response_ends_cycle_with_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>gateway</html>")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    loader = WorkflowDataLoader(PostgrestRecordStore("https://example.supabase.co", client=client))

    state = await loader.refetch()
    assert state.records == []
    assert state.error == "Unexpected response from workflow_executions"
    assert not state.loading


@pytest.mark.asyncio
async def test_duplicate_execution_ids_end_cycle_with_error(make_execution):
    execution = make_execution()
    loader = WorkflowDataLoader(StaticStore(FetchResult(executions=[execution, execution])))

    state = await loader.refetch()
    assert state.records == []
    assert state.error
    assert execution.id in state.error
    assert not state.loading


@pytest.mark.asyncio
async def test_unexpected_error_still_clears_loading():
    loader = WorkflowDataLoader(ExplodingStore())

    with pytest.raises(RuntimeError):
        await loader.refetch()
    assert not loader.loading

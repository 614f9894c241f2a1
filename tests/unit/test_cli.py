from datetime import datetime, timedelta

from typer.testing import CliRunner

import flowscope.store as store_module
from flowscope.cli import app
from flowscope.errors import FetchFailure
from flowscope.store import InMemoryRecordStore


def _setup_store() -> InMemoryRecordStore:
    store = InMemoryRecordStore()
    store_module._store_instance = store
    return store


def _seed(store, make_execution, make_step, make_queue_entry):
    now = datetime.now().astimezone()
    ok = make_execution(
        id="exec-ok-1",
        workflow_id="invoice-sync",
        overall_status="success",
        created_at=now - timedelta(hours=1),
        total_latency_ms=400,
        input_tokens=100,
        output_tokens=50,
        total_tokens=150,
    )
    bad = make_execution(
        id="exec-bad-2",
        workflow_id="report-builder",
        overall_status="failed",
        created_at=now - timedelta(hours=2),
        total_latency_ms=1600,
        error_message="tool timeout",
    )
    store.load(
        [ok, bad],
        [
            make_step(ok.id, step_name="summarize", step_order=2, latency_ms=300, model_name="gpt-4o",
                      response_data={"summary": "ok"}),
            make_step(ok.id, step_name="retrieve", step_order=1, latency_ms=100),
            make_step(bad.id, step_name="render", step_order=1, status="failed", error_message="boom"),
        ],
        [make_queue_entry(ok.id, status="updated")],
    )
    return ok, bad


def test_executions_list(make_execution, make_step, make_queue_entry):
    store = _setup_store()
    ok, bad = _seed(store, make_execution, make_step, make_queue_entry)

    runner = CliRunner()
    result = runner.invoke(app, ["executions", "list"])
    assert result.exit_code == 0, result.stdout
    output = result.stdout
    assert "Executions: 2" in output
    assert "Error rate: 50.0%" in output
    assert "Avg latency: 1000ms" in output
    assert ok.id in output and bad.id in output
    assert "updated" in output
    assert "Page 1 of 1" in output
    assert output.index(ok.id) < output.index(bad.id)


def test_executions_list_filters(make_execution, make_step, make_queue_entry):
    store = _setup_store()
    ok, bad = _seed(store, make_execution, make_step, make_queue_entry)

    runner = CliRunner()
    result = runner.invoke(app, ["executions", "list", "--status", "failed"])
    assert result.exit_code == 0, result.stdout
    assert bad.id in result.stdout
    assert ok.id not in result.stdout

    result = runner.invoke(app, ["executions", "list", "--status", "bogus"])
    assert result.exit_code == 2


def test_executions_show(make_execution, make_step, make_queue_entry):
    store = _setup_store()
    ok, bad = _seed(store, make_execution, make_step, make_queue_entry)

    runner = CliRunner()
    result = runner.invoke(app, ["executions", "show", ok.id])
    assert result.exit_code == 0, result.stdout
    output = result.stdout
    assert f"Execution {ok.id}: success" in output
    assert "Queue: updated" in output
    assert output.index("retrieve") < output.index("summarize")
    assert "gpt-4o" in output
    assert "Response: {'summary': 'ok'}" in output

    result = runner.invoke(app, ["executions", "show", bad.id])
    assert "tool timeout" in result.stdout
    assert "boom" in result.stdout

    missing = runner.invoke(app, ["executions", "show", "nope"])
    assert missing.exit_code == 1
    assert "Execution not found" in missing.stdout


def test_executions_search(make_execution, make_step, make_queue_entry):
    store = _setup_store()
    ok, bad = _seed(store, make_execution, make_step, make_queue_entry)

    result = CliRunner().invoke(app, ["executions", "search", "REPORT"])
    assert result.exit_code == 0, result.stdout
    assert "1 found" in result.stdout
    assert bad.id in result.stdout


def test_metrics_steps_and_trend(make_execution, make_step, make_queue_entry):
    store = _setup_store()
    _seed(store, make_execution, make_step, make_queue_entry)
    runner = CliRunner()

    result = runner.invoke(app, ["metrics"])
    assert result.exit_code == 0, result.stdout
    assert "Total executions: 2" in result.stdout
    assert "Success\t1\t50.0%" in result.stdout
    assert "Total tokens: 150 (100 in / 50 out)" in result.stdout

    result = runner.invoke(app, ["steps"])
    assert result.exit_code == 0, result.stdout
    assert "summarize\t300ms" in result.stdout
    assert "Showing 3 of 3 steps" in result.stdout

    result = runner.invoke(app, ["trend"])
    assert result.exit_code == 0, result.stdout
    assert len(result.stdout.strip().splitlines()) == 30


def test_fetch_failure_exits_with_message():
    class BrokenStore:
        async def fetch(self, filters):
            raise FetchFailure("permission denied for table workflow_executions")

        async def fetch_execution(self, execution_id):
            raise FetchFailure("permission denied for table workflow_executions")

    store_module._store_instance = BrokenStore()
    runner = CliRunner()

    result = runner.invoke(app, ["metrics"])
    assert result.exit_code == 1
    assert "permission denied" in result.stdout

    result = runner.invoke(app, ["executions", "show", "x"])
    assert result.exit_code == 1
    assert "permission denied" in result.stdout

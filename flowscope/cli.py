"""Command line interface for inspecting workflow executions."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional

import typer

from flowscope.config import load_config
from flowscope.errors import FetchFailure, InvariantViolation
from flowscope.filters import ExecutionFilters, as_local
from flowscope.loader import WorkflowDataLoader
from flowscope.records import CompositeExecution, EXECUTION_STATUSES
from flowscope.store import get_store
from flowscope.views import (
    build_execution_detail,
    build_execution_list,
    build_overview,
    build_steps_analysis,
)

app = typer.Typer(help="CLI for flowscope workflow analytics")

# Command groups
executions_app = typer.Typer(help="Commands for browsing executions")

app.add_typer(executions_app, name="executions")

WORKFLOW_OPTION = typer.Option(None, "--workflow-id", help="Workflow id substring")
EXECUTION_OPTION = typer.Option(None, "--execution-id", help="Execution id substring")
STATUS_OPTION = typer.Option(None, "--status", help="Exact overall status")
START_OPTION = typer.Option(None, "--start-date", formats=["%Y-%m-%d"])
END_OPTION = typer.Option(None, "--end-date", formats=["%Y-%m-%d"])


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, help="Logging level override"),
) -> None:
    """flowscope CLI entry point."""
    config = load_config()
    logging.basicConfig(level=(log_level or config.log_level).upper())


def _filters(
    workflow_id: Optional[str],
    execution_id: Optional[str],
    status: Optional[str],
    start_date: Optional[datetime],
    end_date: Optional[datetime],
) -> ExecutionFilters:
    if status and status not in EXECUTION_STATUSES:
        typer.secho(
            f"Unknown status {status!r}; expected one of {', '.join(EXECUTION_STATUSES)}",
            fg=typer.colors.RED,
        )
        raise typer.Exit(code=2)
    return ExecutionFilters(
        workflow_id=workflow_id,
        execution_id=execution_id,
        overall_status=status,
        start_date=start_date.date() if start_date else None,
        end_date=end_date.date() if end_date else None,
    )


def _load(filters: ExecutionFilters) -> list[CompositeExecution]:
    loader = WorkflowDataLoader(get_store())
    state = asyncio.run(loader.set_filters(filters))
    if state.error:
        typer.secho(f"Error: {state.error}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    return state.records


def _format_time(moment: datetime, pattern: str = "%b %d, %H:%M") -> str:
    return as_local(moment).strftime(pattern)


@executions_app.command("list")
def executions_list(
    page: int = typer.Option(1, help="1-based page number"),
    workflow_id: Optional[str] = WORKFLOW_OPTION,
    execution_id: Optional[str] = EXECUTION_OPTION,
    status: Optional[str] = STATUS_OPTION,
    start_date: Optional[datetime] = START_OPTION,
    end_date: Optional[datetime] = END_OPTION,
) -> None:
    """
    List executions with their headline metrics.

    Prints the summary cards, then one page of executions (most recent
    first) with status, queue status, latency and tokens.

    Example:
        flowscope executions list --status failed --page 2
    """
    config = load_config()
    records = _load(_filters(workflow_id, execution_id, status, start_date, end_date))
    view = build_overview(
        records,
        page=page,
        page_size=config.display.executions_page_size,
        trend_days=config.display.trend_days,
    )
    summary = view.summary
    typer.echo(
        f"Executions: {summary.total}  Error rate: {summary.error_rate:.1f}%  "
        f"Avg latency: {round(summary.avg_latency)}ms  P95: {summary.p95_latency}ms"
    )
    if not view.executions.items:
        typer.echo("No executions found")
        return
    for record in view.executions.items:
        typer.echo(
            f"{record.workflow_id}\t{record.id}\t{record.overall_status}\t"
            f"{record.queue_status or '-'}\t{_format_time(record.created_at)}\t"
            f"{record.total_latency_ms or 0}ms\t{record.total_tokens:,} tokens"
        )
    typer.echo(f"Page {view.executions.page} of {view.executions.total_pages}")


@executions_app.command("search")
def executions_search(
    term: str = typer.Argument("", help="Workflow id or execution id substring"),
    workflow_id: Optional[str] = WORKFLOW_OPTION,
    execution_id: Optional[str] = EXECUTION_OPTION,
    status: Optional[str] = STATUS_OPTION,
    start_date: Optional[datetime] = START_OPTION,
    end_date: Optional[datetime] = END_OPTION,
) -> None:
    """Search executions to pick one for ``executions show``."""
    records = _load(_filters(workflow_id, execution_id, status, start_date, end_date))
    matches = build_execution_list(records, term)
    typer.echo(f"{len(matches)} found")
    for record in matches[:50]:
        typer.echo(
            f"{record.workflow_id}\t{record.overall_status}\t{record.id}\t"
            f"{_format_time(record.created_at, '%b %d, %Y %H:%M')}"
        )


@executions_app.command("show")
def executions_show(execution_id: str) -> None:
    """
    Show one execution and its ordered step trace.

    Args:
        execution_id: Exact execution id (get from 'executions list')

    Example:
        flowscope executions show 3f2a9c1e-...
    """
    loader = WorkflowDataLoader(get_store())
    try:
        record = asyncio.run(loader.load_execution(execution_id))
    except (FetchFailure, InvariantViolation) as exc:
        typer.secho(f"Error: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    if record is None:
        typer.echo("Execution not found")
        raise typer.Exit(code=1)

    detail = build_execution_detail(record)
    execution = detail.execution
    typer.echo(f"Execution {execution.id}: {execution.overall_status}")
    typer.echo(f"Workflow: {execution.workflow_id}")
    typer.echo(f"Created: {_format_time(execution.created_at, '%b %d, %Y %H:%M:%S')}")
    typer.echo(f"Latency: {execution.total_latency_ms or 0}ms")
    typer.echo(
        f"Tokens: {execution.total_tokens:,} "
        f"({execution.input_tokens:,} in / {execution.output_tokens:,} out)"
    )
    if detail.queue_status:
        typer.echo(f"Queue: {detail.queue_status}")
    if detail.has_error:
        typer.secho(f"Error: {execution.error_message}", fg=typer.colors.RED)
    if execution.payload:
        typer.echo(f"Payload: {execution.payload}")
    if execution.tool_usage:
        typer.echo(f"Tool usage: {execution.tool_usage}")
    for step in detail.steps:
        line = f"{step.step_order}. {step.step_name}: {step.status or '-'} ({step.latency_ms or 0}ms, {step.total_tokens:,} tokens"
        if step.model_name:
            line += f", {step.model_name}"
        typer.echo(line + ")")
        if step.error_message:
            typer.echo(f"   Error: {step.error_message}")
        if step.response_data:
            typer.echo(f"   Response: {step.response_data}")


@app.command("metrics")
def metrics(
    workflow_id: Optional[str] = WORKFLOW_OPTION,
    execution_id: Optional[str] = EXECUTION_OPTION,
    status: Optional[str] = STATUS_OPTION,
    start_date: Optional[datetime] = START_OPTION,
    end_date: Optional[datetime] = END_OPTION,
) -> None:
    """Print execution metrics and the status distribution."""
    records = _load(_filters(workflow_id, execution_id, status, start_date, end_date))
    view = build_overview(records)
    summary = view.summary
    typer.echo(f"Total executions: {summary.total:,}")
    typer.echo(f"Error rate: {summary.error_rate:.1f}% ({summary.error_rate_severity})")
    typer.echo(
        f"Avg latency: {round(summary.avg_latency)}ms (P95: {summary.p95_latency}ms)"
    )
    typer.echo(
        f"Total tokens: {summary.total_tokens:,} "
        f"({summary.total_input_tokens:,} in / {summary.total_output_tokens:,} out)"
    )
    for item in view.status_distribution:
        typer.echo(f"{item.label}\t{item.count}\t{item.percentage:.1f}%")


@app.command("steps")
def steps(
    page: int = typer.Option(1, help="1-based page number"),
    workflow_id: Optional[str] = WORKFLOW_OPTION,
    execution_id: Optional[str] = EXECUTION_OPTION,
    status: Optional[str] = STATUS_OPTION,
    start_date: Optional[datetime] = START_OPTION,
    end_date: Optional[datetime] = END_OPTION,
) -> None:
    """Print per-step latency, status and model usage breakdowns."""
    config = load_config()
    records = _load(_filters(workflow_id, execution_id, status, start_date, end_date))
    view = build_steps_analysis(
        records, page=page, page_size=config.display.steps_page_size
    )
    if not view.total_steps:
        typer.echo("No steps found")
        return
    typer.echo("Slowest steps:")
    for item in view.step_latency:
        typer.echo(f"  {item.step_name}\t{round(item.avg_latency)}ms")
    typer.echo("Step status:")
    for item in view.step_status:
        typer.echo(f"  {item.label}\t{item.count}")
    typer.echo("Model usage:")
    for item in view.model_usage:
        typer.echo(f"  {item.model_name}\t{item.count}")
    typer.echo(
        f"Showing {len(view.steps.items)} of {view.total_steps:,} steps "
        f"(page {view.steps.page} of {view.steps.total_pages})"
    )
    for step in view.steps.items:
        typer.echo(
            f"  {step.execution_id[:8]}...\t{step.step_name}\t{step.step_order}\t"
            f"{step.status or '-'}\t{step.model_name or '-'}\t{step.latency_ms or 0}ms"
        )


@app.command("trend")
def trend(
    workflow_id: Optional[str] = WORKFLOW_OPTION,
    execution_id: Optional[str] = EXECUTION_OPTION,
    status: Optional[str] = STATUS_OPTION,
    start_date: Optional[datetime] = START_OPTION,
    end_date: Optional[datetime] = END_OPTION,
) -> None:
    """Print daily execution counts for the trailing window."""
    config = load_config()
    records = _load(_filters(workflow_id, execution_id, status, start_date, end_date))
    view = build_overview(records, trend_days=config.display.trend_days)
    for point in view.trend:
        typer.echo(f"{point.date}\t{point.total}\t{point.success}\t{point.failed}")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()

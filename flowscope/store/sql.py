"""SQL implementation of the record store."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy import JSON, Column
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlmodel import Field, SQLModel, select

from ..errors import FetchFailure, InvariantViolation
from ..filters import ExecutionFilters
from ..records import Execution, FetchResult, QueueEntry, Step
from .base import RecordStore

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


class ExecutionRow(SQLModel, table=True):
    """A row of the ``workflow_executions`` table."""

    __tablename__ = "workflow_executions"

    id: str = Field(primary_key=True)
    workflow_id: str = Field(index=True)
    overall_status: str
    created_at: datetime = Field(index=True)
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    total_latency_ms: Optional[int] = None
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    total_tokens: Optional[int] = None
    payload: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    tool_usage: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    response_data: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    error_message: Optional[str] = None


class StepRow(SQLModel, table=True):
    """A row of the ``workflow_steps`` table."""

    __tablename__ = "workflow_steps"

    id: str = Field(primary_key=True)
    execution_id: str = Field(foreign_key="workflow_executions.id", index=True)
    step_name: str
    step_order: int
    status: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    latency_ms: Optional[int] = None
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None
    model_name: Optional[str] = None
    error_message: Optional[str] = None
    response_data: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    retrieved_contexts: Optional[dict] = Field(default=None, sa_column=Column(JSON))


class QueueRow(SQLModel, table=True):
    """A row of the ``workflow_queue`` table."""

    __tablename__ = "workflow_queue"

    id: str = Field(primary_key=True)
    execution_id: Optional[str] = None
    workflow_execution_id: Optional[str] = Field(
        default=None, foreign_key="workflow_executions.id", index=True
    )
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def to_db_time(value: datetime) -> datetime:
    """Timestamps are stored as naive UTC."""
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _from_db_time(value: Any) -> Any:
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_record(model: Type[RecordT], row: SQLModel) -> RecordT:
    data = {key: _from_db_time(value) for key, value in row.model_dump().items()}
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise InvariantViolation(
            f"Malformed {model.__name__} row {data.get('id')!r}: {exc.errors()[0]['msg']}"
        ) from exc


class SQLRecordStore(RecordStore):
    """Read workflow records from a SQL database through SQLModel."""

    def __init__(self, database_url: str) -> None:
        connect_args = (
            {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        )
        self.engine = create_async_engine(
            database_url, echo=False, future=True, connect_args=connect_args
        )

    async def init_db(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with AsyncSession(self.engine) as session:
            yield session

    # ------------------------------------------------------------------
    async def _scoped(self, session: AsyncSession, statement: Any) -> FetchResult:
        rows = (await session.execute(statement)).scalars().all()
        executions = [_to_record(Execution, row) for row in rows]
        ids = [e.id for e in executions]
        if not ids:
            return FetchResult()

        step_rows = (
            await session.execute(
                select(StepRow)
                .where(StepRow.execution_id.in_(ids))
                .order_by(StepRow.step_order)
            )
        ).scalars().all()
        queue_rows = (
            await session.execute(
                select(QueueRow).where(QueueRow.workflow_execution_id.in_(ids))
            )
        ).scalars().all()
        return FetchResult(
            executions=executions,
            steps=[_to_record(Step, row) for row in step_rows],
            queue=[_to_record(QueueEntry, row) for row in queue_rows],
        )

    async def fetch(self, filters: ExecutionFilters) -> FetchResult:
        statement = select(ExecutionRow)
        for predicate in filters.predicates():
            column = getattr(ExecutionRow, predicate.field)
            if predicate.op == "ilike":
                statement = statement.where(column.ilike(f"%{predicate.value}%"))
            elif predicate.op == "eq":
                statement = statement.where(column == predicate.value)
            elif predicate.op == "gte":
                statement = statement.where(column >= to_db_time(predicate.value))
            elif predicate.op == "lte":
                statement = statement.where(column <= to_db_time(predicate.value))
        statement = statement.order_by(ExecutionRow.created_at.desc())

        try:
            async with self.session() as session:
                result = await self._scoped(session, statement)
        except SQLAlchemyError as exc:
            logger.error(f"Fetching executions failed: {exc}")
            raise FetchFailure(str(exc)) from exc
        logger.info(
            f"Fetched {len(result.executions)} executions, {len(result.steps)} steps, "
            f"{len(result.queue)} queue entries"
        )
        return result

    async def fetch_execution(self, execution_id: str) -> FetchResult:
        statement = select(ExecutionRow).where(ExecutionRow.id == execution_id)
        try:
            async with self.session() as session:
                return await self._scoped(session, statement)
        except SQLAlchemyError as exc:
            logger.error(f"Fetching execution {execution_id} failed: {exc}")
            raise FetchFailure(str(exc)) from exc

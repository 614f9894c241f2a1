"""PostgREST implementation of the record store.

Talks to a PostgREST endpoint, such as the REST API of a Supabase project,
over ``httpx``.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from ..errors import FetchFailure, InvariantViolation
from ..filters import ExecutionFilters
from ..records import Execution, FetchResult, QueueEntry, Step
from .base import RecordStore

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

EXECUTIONS_TABLE = "workflow_executions"
STEPS_TABLE = "workflow_steps"
QUEUE_TABLE = "workflow_queue"


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _in_list(ids: list[str]) -> str:
    quoted = ",".join(_quote(value) for value in ids)
    return f"in.({quoted})"


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"{response.status_code} {response.reason_phrase}".strip()


class PostgrestRecordStore(RecordStore):
    """Read workflow records through a PostgREST API."""

    def __init__(
        self,
        url: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = url.rstrip("/") + "/rest/v1"
        headers = {"Accept": "application/json"}
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"
        self._headers = headers
        self._timeout = timeout
        self._client = client

    # ------------------------------------------------------------------
    async def _get(
        self, client: httpx.AsyncClient, table: str, params: list[tuple[str, str]]
    ) -> list[dict[str, Any]]:
        try:
            response = await client.get(
                f"{self.base_url}/{table}",
                params=[("select", "*"), *params],
                headers=self._headers,
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.error(f"Request to {table} failed: {exc}")
            raise FetchFailure(str(exc) or type(exc).__name__) from exc
        if response.is_error:
            message = _error_message(response)
            logger.error(f"Request to {table} failed: {message}")
            raise FetchFailure(message)
        try:
            rows = response.json()
        except ValueError:
            rows = None
        if not isinstance(rows, list):
            logger.error(f"Request to {table} returned a non-list body")
            raise FetchFailure(f"Unexpected response from {table}")
        return rows

    @staticmethod
    def _parse(model: Type[RecordT], rows: list[dict[str, Any]]) -> list[RecordT]:
        try:
            return [model.model_validate(row) for row in rows]
        except ValidationError as exc:
            raise InvariantViolation(
                f"Malformed {model.__name__} record: {exc.errors()[0]['msg']}"
            ) from exc

    async def _scoped(self, execution_params: list[tuple[str, str]]) -> FetchResult:
        if self._client is not None:
            return await self._scoped_with(self._client, execution_params)
        async with httpx.AsyncClient() as client:
            return await self._scoped_with(client, execution_params)

    async def _scoped_with(
        self, client: httpx.AsyncClient, execution_params: list[tuple[str, str]]
    ) -> FetchResult:
        executions = self._parse(
            Execution,
            await self._get(
                client,
                EXECUTIONS_TABLE,
                [*execution_params, ("order", "created_at.desc")],
            ),
        )
        ids = [e.id for e in executions]
        if not ids:
            return FetchResult()

        steps = self._parse(
            Step,
            await self._get(
                client,
                STEPS_TABLE,
                [("execution_id", _in_list(ids)), ("order", "step_order.asc")],
            ),
        )
        queue = self._parse(
            QueueEntry,
            await self._get(
                client, QUEUE_TABLE, [("workflow_execution_id", _in_list(ids))]
            ),
        )
        return FetchResult(executions=executions, steps=steps, queue=queue)

    async def fetch(self, filters: ExecutionFilters) -> FetchResult:
        result = await self._scoped(filters.to_postgrest_params())
        logger.info(
            f"Fetched {len(result.executions)} executions, {len(result.steps)} steps, "
            f"{len(result.queue)} queue entries"
        )
        return result

    async def fetch_execution(self, execution_id: str) -> FetchResult:
        return await self._scoped([("id", f"eq.{execution_id}")])

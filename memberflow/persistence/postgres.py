"""PostgreSQL implementation of the workflow repository."""

from __future__ import annotations

import json
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

import asyncpg

from ..constants import DEFAULT_EXECUTION_LIST_LIMIT
from ..contracts import Workflow, WorkflowExecution, as_utc
from ..exceptions import ExecutionNotFoundError, WorkflowNotFoundError
from .models import (
    execution_document,
    execution_from_row,
    merge_workflow_document,
    workflow_document,
    workflow_from_row,
)
from .repository import WorkflowRepository


def _load(value: Any) -> Dict[str, Any]:
    return json.loads(value) if isinstance(value, str) else value


def _affected(status: str) -> int:
    # asyncpg returns command tags such as "UPDATE 1" or "DELETE 0".
    return int(status.rsplit(" ", 1)[-1])


class PostgresWorkflowRepository(WorkflowRepository):
    """Persist workflows and executions using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                id TEXT PRIMARY KEY,
                seq BIGSERIAL,
                document JSONB NOT NULL,
                executions INTEGER NOT NULL DEFAULT 0,
                last_executed TIMESTAMPTZ,
                created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_executions (
                id TEXT PRIMARY KEY,
                seq BIGSERIAL,
                workflow_id TEXT NOT NULL,
                started_at TIMESTAMPTZ NOT NULL,
                status TEXT NOT NULL,
                document JSONB NOT NULL
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_executions_workflow "
            "ON workflow_executions (workflow_id, started_at DESC)"
        )

    @staticmethod
    def _workflow(row: asyncpg.Record) -> Workflow:
        return workflow_from_row(
            row["id"],
            _load(row["document"]),
            row["executions"],
            row["last_executed"],
            row["created_at"],
            row["updated_at"],
        )

    # ------------------------------------------------------------------
    async def create_workflow(self, workflow: Workflow) -> str:
        workflow_id = workflow.id or str(uuid.uuid4())
        conn = await self._connect()
        try:
            await conn.execute(
                "INSERT INTO workflows (id, document, executions, last_executed) "
                "VALUES ($1, $2::jsonb, $3, $4)",
                workflow_id,
                json.dumps(workflow_document(workflow)),
                workflow.executions,
                as_utc(workflow.last_executed),
            )
        finally:
            await conn.close()
        return workflow_id

    async def get_workflow(self, workflow_id: str) -> Workflow | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow("SELECT * FROM workflows WHERE id = $1", workflow_id)
        finally:
            await conn.close()
        return self._workflow(row) if row else None

    async def list_workflows(self) -> list[Workflow]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                "SELECT * FROM workflows ORDER BY created_at DESC, seq DESC"
            )
        finally:
            await conn.close()
        return [self._workflow(row) for row in rows]

    async def update_workflow(self, workflow_id: str, fields: Dict[str, Any]) -> None:
        conn = await self._connect()
        try:
            async with conn.transaction():
                row = await conn.fetchrow(
                    "SELECT document FROM workflows WHERE id = $1 FOR UPDATE", workflow_id
                )
                if row is None:
                    raise WorkflowNotFoundError(workflow_id)
                document = merge_workflow_document(_load(row["document"]), fields)
                await conn.execute(
                    "UPDATE workflows SET document = $1::jsonb, updated_at = now() WHERE id = $2",
                    json.dumps(document),
                    workflow_id,
                )
        finally:
            await conn.close()

    async def delete_workflow(self, workflow_id: str) -> bool:
        conn = await self._connect()
        try:
            status = await conn.execute("DELETE FROM workflows WHERE id = $1", workflow_id)
        finally:
            await conn.close()
        return _affected(status) > 0

    async def increment_executions(self, workflow_id: str, executed_at: datetime) -> None:
        conn = await self._connect()
        try:
            status = await conn.execute(
                "UPDATE workflows SET executions = executions + 1, last_executed = $1 "
                "WHERE id = $2",
                as_utc(executed_at),
                workflow_id,
            )
        finally:
            await conn.close()
        if not _affected(status):
            raise WorkflowNotFoundError(workflow_id)

    # ------------------------------------------------------------------
    async def create_execution(self, execution: WorkflowExecution) -> str:
        execution_id = execution.id or str(uuid.uuid4())
        conn = await self._connect()
        try:
            await conn.execute(
                "INSERT INTO workflow_executions (id, workflow_id, started_at, status, document) "
                "VALUES ($1, $2, $3, $4, $5::jsonb)",
                execution_id,
                execution.workflow_id,
                as_utc(execution.started_at),
                execution.status,
                json.dumps(execution_document(execution)),
            )
        finally:
            await conn.close()
        return execution_id

    async def save_execution(self, execution: WorkflowExecution) -> None:
        conn = await self._connect()
        try:
            status = await conn.execute(
                "UPDATE workflow_executions SET status = $1, document = $2::jsonb WHERE id = $3",
                execution.status,
                json.dumps(execution_document(execution)),
                execution.id,
            )
        finally:
            await conn.close()
        if not _affected(status):
            raise ExecutionNotFoundError(str(execution.id))

    async def get_execution(self, execution_id: str) -> WorkflowExecution | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT id, document FROM workflow_executions WHERE id = $1", execution_id
            )
        finally:
            await conn.close()
        return execution_from_row(row["id"], _load(row["document"])) if row else None

    async def list_executions(
        self,
        workflow_id: Optional[str] = None,
        limit: int = DEFAULT_EXECUTION_LIST_LIMIT,
    ) -> list[WorkflowExecution]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                "SELECT id, document FROM workflow_executions "
                "WHERE $1::text IS NULL OR workflow_id = $1 "
                "ORDER BY started_at DESC, seq DESC LIMIT $2",
                workflow_id,
                max(limit, 0),
            )
        finally:
            await conn.close()
        return [execution_from_row(r["id"], _load(r["document"])) for r in rows]

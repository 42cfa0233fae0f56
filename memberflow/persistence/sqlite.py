"""SQLite implementation of the workflow repository."""

from __future__ import annotations

import asyncio
import json
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from ..constants import DEFAULT_EXECUTION_LIST_LIMIT
from ..contracts import Workflow, WorkflowExecution, as_utc, utcnow
from ..exceptions import ExecutionNotFoundError, WorkflowNotFoundError
from .models import (
    execution_document,
    execution_from_row,
    merge_workflow_document,
    workflow_document,
    workflow_from_row,
)
from .repository import WorkflowRepository


def _ts(value: Optional[datetime]) -> Optional[str]:
    value = as_utc(value)
    return value.isoformat(timespec="microseconds") if value else None


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class SQLiteWorkflowRepository(WorkflowRepository):
    """Persist workflows and executions using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflows (
                id TEXT PRIMARY KEY,
                document TEXT NOT NULL,
                executions INTEGER NOT NULL DEFAULT 0,
                last_executed TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_executions (
                id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                started_at TEXT NOT NULL,
                status TEXT NOT NULL,
                document TEXT NOT NULL
            )
            """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS idx_executions_workflow "
            "ON workflow_executions (workflow_id, started_at)"
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> int:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()
        return cur.rowcount

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    def _merge_document(self, workflow_id: str, fields: Dict[str, Any]) -> int:
        # Read-modify-write inside one transaction.
        with self._conn:
            row = self._conn.execute(
                "SELECT document FROM workflows WHERE id = ?", (workflow_id,)
            ).fetchone()
            if row is None:
                return 0
            document = merge_workflow_document(json.loads(row["document"]), fields)
            return self._conn.execute(
                "UPDATE workflows SET document = ?, updated_at = ? WHERE id = ?",
                (json.dumps(document), _ts(utcnow()), workflow_id),
            ).rowcount

    @staticmethod
    def _workflow(row: sqlite3.Row) -> Workflow:
        return workflow_from_row(
            row["id"],
            json.loads(row["document"]),
            row["executions"],
            _parse_ts(row["last_executed"]),
            _parse_ts(row["created_at"]),
            _parse_ts(row["updated_at"]),
        )

    # ------------------------------------------------------------------
    # Repository API
    async def create_workflow(self, workflow: Workflow) -> str:
        workflow_id = workflow.id or str(uuid.uuid4())
        now = _ts(utcnow())
        await asyncio.to_thread(
            self._execute,
            "INSERT INTO workflows (id, document, executions, last_executed, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            workflow_id,
            json.dumps(workflow_document(workflow)),
            workflow.executions,
            _ts(workflow.last_executed),
            now,
            now,
        )
        return workflow_id

    async def get_workflow(self, workflow_id: str) -> Workflow | None:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT * FROM workflows WHERE id = ?", workflow_id
        )
        return self._workflow(row) if row else None

    async def list_workflows(self) -> list[Workflow]:
        rows = await asyncio.to_thread(
            self._fetchall, "SELECT * FROM workflows ORDER BY created_at DESC, rowid DESC"
        )
        return [self._workflow(row) for row in rows]

    async def update_workflow(self, workflow_id: str, fields: Dict[str, Any]) -> None:
        updated = await asyncio.to_thread(self._merge_document, workflow_id, fields)
        if not updated:
            raise WorkflowNotFoundError(workflow_id)

    async def delete_workflow(self, workflow_id: str) -> bool:
        deleted = await asyncio.to_thread(
            self._execute, "DELETE FROM workflows WHERE id = ?", workflow_id
        )
        return deleted > 0

    async def increment_executions(self, workflow_id: str, executed_at: datetime) -> None:
        updated = await asyncio.to_thread(
            self._execute,
            "UPDATE workflows SET executions = executions + 1, last_executed = ? WHERE id = ?",
            _ts(executed_at),
            workflow_id,
        )
        if not updated:
            raise WorkflowNotFoundError(workflow_id)

    async def create_execution(self, execution: WorkflowExecution) -> str:
        execution_id = execution.id or str(uuid.uuid4())
        await asyncio.to_thread(
            self._execute,
            "INSERT INTO workflow_executions (id, workflow_id, started_at, status, document) "
            "VALUES (?, ?, ?, ?, ?)",
            execution_id,
            execution.workflow_id,
            _ts(execution.started_at),
            execution.status,
            json.dumps(execution_document(execution)),
        )
        return execution_id

    async def save_execution(self, execution: WorkflowExecution) -> None:
        updated = await asyncio.to_thread(
            self._execute,
            "UPDATE workflow_executions SET status = ?, document = ? WHERE id = ?",
            execution.status,
            json.dumps(execution_document(execution)),
            execution.id,
        )
        if not updated:
            raise ExecutionNotFoundError(str(execution.id))

    async def get_execution(self, execution_id: str) -> WorkflowExecution | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT id, document FROM workflow_executions WHERE id = ?",
            execution_id,
        )
        if not row:
            return None
        return execution_from_row(row["id"], json.loads(row["document"]))

    async def list_executions(
        self,
        workflow_id: Optional[str] = None,
        limit: int = DEFAULT_EXECUTION_LIST_LIMIT,
    ) -> list[WorkflowExecution]:
        if workflow_id is None:
            rows = await asyncio.to_thread(
                self._fetchall,
                "SELECT id, document FROM workflow_executions "
                "ORDER BY started_at DESC, rowid DESC LIMIT ?",
                max(limit, 0),
            )
        else:
            rows = await asyncio.to_thread(
                self._fetchall,
                "SELECT id, document FROM workflow_executions WHERE workflow_id = ? "
                "ORDER BY started_at DESC, rowid DESC LIMIT ?",
                workflow_id,
                max(limit, 0),
            )
        return [execution_from_row(r["id"], json.loads(r["document"])) for r in rows]

    def close(self) -> None:
        self._conn.close()

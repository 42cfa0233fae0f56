"""In-memory implementation of the workflow repository."""

from __future__ import annotations

import itertools
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from ..constants import DEFAULT_EXECUTION_LIST_LIMIT
from ..contracts import Workflow, WorkflowExecution, as_utc, utcnow
from ..exceptions import ExecutionNotFoundError, WorkflowNotFoundError
from .models import WORKFLOW_DOCUMENT_FIELDS
from .repository import WorkflowRepository


class InMemoryWorkflowRepository(WorkflowRepository):
    """Store workflows and executions in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. Stored models are copied on the way in
    and out so callers never share state with the store.
    """

    def __init__(self) -> None:
        self._workflows: Dict[str, Workflow] = {}
        self._executions: Dict[str, WorkflowExecution] = {}
        self._sequence: Dict[str, int] = {}
        self._counter = itertools.count(1)

    # ------------------------------------------------------------------
    async def create_workflow(self, workflow: Workflow) -> str:
        workflow_id = workflow.id or str(uuid.uuid4())
        now = utcnow()
        self._workflows[workflow_id] = workflow.model_copy(
            deep=True,
            update={"id": workflow_id, "created_at": now, "updated_at": now},
        )
        self._sequence[workflow_id] = next(self._counter)
        return workflow_id

    async def get_workflow(self, workflow_id: str) -> Workflow | None:
        workflow = self._workflows.get(workflow_id)
        return workflow.model_copy(deep=True) if workflow else None

    async def list_workflows(self) -> list[Workflow]:
        ordered = sorted(
            self._workflows.values(),
            key=lambda w: (w.created_at, self._sequence[w.id]),
            reverse=True,
        )
        return [w.model_copy(deep=True) for w in ordered]

    async def update_workflow(self, workflow_id: str, fields: Dict[str, Any]) -> None:
        workflow = self._workflows.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        data = workflow.model_dump()
        data.update({k: v for k, v in fields.items() if k in WORKFLOW_DOCUMENT_FIELDS})
        data["updated_at"] = utcnow()
        self._workflows[workflow_id] = Workflow.model_validate(data)

    async def delete_workflow(self, workflow_id: str) -> bool:
        self._sequence.pop(workflow_id, None)
        return self._workflows.pop(workflow_id, None) is not None

    async def increment_executions(self, workflow_id: str, executed_at: datetime) -> None:
        # No await between read and write, so this is atomic on the event loop.
        workflow = self._workflows.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        workflow.executions += 1
        workflow.last_executed = as_utc(executed_at)

    # ------------------------------------------------------------------
    async def create_execution(self, execution: WorkflowExecution) -> str:
        execution_id = execution.id or str(uuid.uuid4())
        self._executions[execution_id] = execution.model_copy(
            deep=True, update={"id": execution_id}
        )
        self._sequence[execution_id] = next(self._counter)
        return execution_id

    async def save_execution(self, execution: WorkflowExecution) -> None:
        if execution.id not in self._executions:
            raise ExecutionNotFoundError(str(execution.id))
        self._executions[execution.id] = execution.model_copy(deep=True)

    async def get_execution(self, execution_id: str) -> WorkflowExecution | None:
        execution = self._executions.get(execution_id)
        return execution.model_copy(deep=True) if execution else None

    async def list_executions(
        self,
        workflow_id: Optional[str] = None,
        limit: int = DEFAULT_EXECUTION_LIST_LIMIT,
    ) -> list[WorkflowExecution]:
        matching = [
            e
            for e in self._executions.values()
            if workflow_id is None or e.workflow_id == workflow_id
        ]
        matching.sort(key=lambda e: (e.started_at, self._sequence[e.id]), reverse=True)
        return [e.model_copy(deep=True) for e in matching[: max(limit, 0)]]

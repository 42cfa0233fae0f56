"""Repository abstraction for workflow and execution persistence."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional, Protocol

from ..constants import DEFAULT_EXECUTION_LIST_LIMIT
from ..contracts import Workflow, WorkflowExecution


class WorkflowRepository(Protocol):
    """Protocol for persistence backends.

    Backends assign ids and ``created_at``/``updated_at`` timestamps.
    """

    async def create_workflow(self, workflow: Workflow) -> str:
        """Store a new workflow and return its id."""

    async def get_workflow(self, workflow_id: str) -> Workflow | None:
        """Retrieve a workflow by id."""

    async def list_workflows(self) -> list[Workflow]:
        """Return all workflows, newest first."""

    async def update_workflow(self, workflow_id: str, fields: Dict[str, Any]) -> None:
        """Merge definition fields into a stored workflow.

        Raises:
            WorkflowNotFoundError: If no such workflow exists.
        """

    async def delete_workflow(self, workflow_id: str) -> bool:
        """Delete a workflow; return whether it existed."""

    async def increment_executions(self, workflow_id: str, executed_at: datetime) -> None:
        """Atomically bump ``executions`` and set ``last_executed``."""

    async def create_execution(self, execution: WorkflowExecution) -> str:
        """Store a new execution record and return its id."""

    async def save_execution(self, execution: WorkflowExecution) -> None:
        """Overwrite an existing execution record."""

    async def get_execution(self, execution_id: str) -> WorkflowExecution | None:
        """Retrieve an execution by id."""

    async def list_executions(
        self,
        workflow_id: Optional[str] = None,
        limit: int = DEFAULT_EXECUTION_LIST_LIMIT,
    ) -> list[WorkflowExecution]:
        """Return at most ``limit`` executions, most recently started first."""

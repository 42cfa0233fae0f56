"""Document mapping shared by the SQL-backed repositories."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from ..contracts import Workflow, WorkflowExecution

# Stored as one JSON document; counters and timestamps live in their own columns.
WORKFLOW_DOCUMENT_FIELDS = {"name", "description", "trigger", "steps", "active"}


def workflow_document(workflow: Workflow) -> Dict[str, Any]:
    return workflow.model_dump(mode="json", include=WORKFLOW_DOCUMENT_FIELDS)


def merge_workflow_document(
    document: Dict[str, Any], fields: Dict[str, Any]
) -> Dict[str, Any]:
    updates = {k: v for k, v in fields.items() if k in WORKFLOW_DOCUMENT_FIELDS}
    return {**document, **updates}


def workflow_from_row(
    workflow_id: str,
    document: Dict[str, Any],
    executions: int,
    last_executed: Optional[datetime],
    created_at: Optional[datetime],
    updated_at: Optional[datetime],
) -> Workflow:
    return Workflow.model_validate(
        {
            **document,
            "id": workflow_id,
            "executions": executions,
            "last_executed": last_executed,
            "created_at": created_at,
            "updated_at": updated_at,
        }
    )


def execution_document(execution: WorkflowExecution) -> Dict[str, Any]:
    return execution.model_dump(mode="json", exclude={"id"})


def execution_from_row(execution_id: str, document: Dict[str, Any]) -> WorkflowExecution:
    return WorkflowExecution.model_validate({**document, "id": execution_id})

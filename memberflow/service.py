"""Application-facing surface over workflow definitions and executions."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Union

from .config import MemberflowConfig, load_config
from .contracts import TriggerType, Workflow, WorkflowExecution
from .dispatch import StepDispatcher
from .exceptions import WorkflowNotFoundError, WorkflowValidationError
from .execute import WorkflowEngine
from .persistence import WorkflowRepository, get_repository
from .persistence.models import WORKFLOW_DOCUMENT_FIELDS
from .providers import HttpxClient, Providers
from .validation import validate_workflow

logger = logging.getLogger(__name__)


class WorkflowService:
    """CRUD over workflows, execution on demand and the execution audit trail.

    Everything except :meth:`execute_workflow` is a thin pass-through to the
    repository.
    """

    def __init__(
        self,
        repository: WorkflowRepository | None = None,
        providers: Providers | None = None,
        config: MemberflowConfig | None = None,
        engine: WorkflowEngine | None = None,
    ) -> None:
        self._config = config or load_config()
        self._repository = repository or get_repository(config=self._config)
        if providers is None:
            providers = Providers(
                http=HttpxClient(
                    timeout=self._config.http.timeout_seconds,
                    default_headers=self._config.http.default_headers,
                )
            )
        self._engine = engine or WorkflowEngine(
            self._repository,
            StepDispatcher(providers),
            step_timeout=self._config.engine.step_timeout_seconds,
        )

    @property
    def engine(self) -> WorkflowEngine:
        return self._engine

    # ------------------------------------------------------------------
    # Workflows
    async def list_workflows(self) -> list[Workflow]:
        return await self._repository.list_workflows()

    async def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        return await self._repository.get_workflow(workflow_id)

    async def create_workflow(self, definition: Union[Workflow, Mapping[str, Any]]) -> str:
        """Validate and store a new workflow; the counter starts at zero.

        Raises:
            WorkflowValidationError: If the definition has errors.
        """
        workflow = (
            definition
            if isinstance(definition, Workflow)
            else Workflow.model_validate(dict(definition))
        )
        workflow = workflow.model_copy(update={"executions": 0, "last_executed": None})
        self._ensure_valid(workflow)
        workflow_id = await self._repository.create_workflow(workflow)
        logger.info(f"Created workflow {workflow_id} ({workflow.name!r})")
        return workflow_id

    async def update_workflow(self, workflow_id: str, patch: Mapping[str, Any]) -> Workflow:
        """Apply a partial update to a workflow's definition.

        Only ``name``, ``description``, ``trigger``, ``steps`` and ``active``
        can be changed; other keys are ignored.
        """
        current = await self._repository.get_workflow(workflow_id)
        if current is None:
            raise WorkflowNotFoundError(workflow_id)

        ignored = set(patch) - WORKFLOW_DOCUMENT_FIELDS
        if ignored:
            logger.warning(f"Ignoring non-editable workflow fields: {sorted(ignored)}")
        changes = {k: v for k, v in patch.items() if k in WORKFLOW_DOCUMENT_FIELDS}

        merged = Workflow.model_validate({**current.model_dump(), **changes})
        self._ensure_valid(merged)
        await self._repository.update_workflow(
            workflow_id, merged.model_dump(mode="json", include=set(changes))
        )
        return await self._repository.get_workflow(workflow_id) or merged

    async def delete_workflow(self, workflow_id: str) -> bool:
        """Delete a workflow definition. Its executions are kept."""
        deleted = await self._repository.delete_workflow(workflow_id)
        if deleted:
            logger.info(f"Deleted workflow {workflow_id}")
        return deleted

    # ------------------------------------------------------------------
    # Executions
    async def execute_workflow(
        self,
        workflow_id: str,
        context: Optional[Dict[str, Any]] = None,
        triggered_by: TriggerType = "manual",
    ) -> WorkflowExecution:
        return await self._engine.execute_workflow(workflow_id, context, triggered_by)

    def cancel_execution(self, execution_id: str) -> bool:
        return self._engine.cancel_execution(execution_id)

    async def list_executions(
        self, workflow_id: Optional[str] = None, limit: Optional[int] = None
    ) -> list[WorkflowExecution]:
        if limit is None:
            limit = self._config.engine.execution_list_limit
        if limit < 1:
            raise ValueError("limit must be a positive integer")
        return await self._repository.list_executions(workflow_id, limit)

    async def get_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        return await self._repository.get_execution(execution_id)

    # ------------------------------------------------------------------
    def _ensure_valid(self, workflow: Workflow) -> None:
        result = validate_workflow(workflow)
        for warning in result.warnings:
            logger.warning(f"Workflow {workflow.name!r}: {warning.message}")
        if not result.is_valid:
            raise WorkflowValidationError(result.errors)

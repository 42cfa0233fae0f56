"""Execution orchestrator for memberflow workflows."""

from __future__ import annotations

import asyncio
import logging
import time
import traceback
from datetime import datetime
from typing import Any, Dict, List, Optional

from .constants import DEFAULT_STEP_TIMEOUT_SECONDS
from .contracts import (
    ExecutionError,
    StepResult,
    TriggerType,
    Workflow,
    WorkflowExecution,
    WorkflowExecutionStep,
    WorkflowStep,
    utcnow,
)
from .dispatch import StepDispatcher
from .exceptions import (
    ExecutionCancelledError,
    StepTimeoutError,
    WorkflowInactiveError,
    WorkflowNotFoundError,
)
from .persistence import WorkflowRepository, get_repository

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class WorkflowEngine:
    """Runs workflows step by step and records an execution trail.

    Each run is a single task: step N+1 starts only after step N resolved.
    The first failing step aborts the run; its error becomes the execution's
    top-level ``error``. Runs of the same workflow may overlap; each gets its
    own execution record.
    """

    def __init__(
        self,
        repository: WorkflowRepository | None = None,
        dispatcher: StepDispatcher | None = None,
        step_timeout: float = DEFAULT_STEP_TIMEOUT_SECONDS,
    ) -> None:
        self._repository = repository or get_repository()
        self._dispatcher = dispatcher or StepDispatcher()
        self._step_timeout = step_timeout
        self._cancel_events: Dict[str, asyncio.Event] = {}

    @property
    def running_executions(self) -> List[str]:
        return list(self._cancel_events)

    async def execute_workflow(
        self,
        workflow_id: str,
        context: Optional[Dict[str, Any]] = None,
        triggered_by: TriggerType = "manual",
    ) -> WorkflowExecution:
        """Run ``workflow_id`` to completion and return the finalized record.

        Raises:
            WorkflowNotFoundError: No such workflow; nothing is recorded.
            WorkflowInactiveError: Workflow is disabled; nothing is recorded.
        """
        workflow = await self._repository.get_workflow(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        if not workflow.active:
            raise WorkflowInactiveError(workflow_id)

        execution = WorkflowExecution(
            workflow_id=workflow_id,
            workflow_name=workflow.name,
            triggered_by=triggered_by,
            context=dict(context or {}),
        )
        run_started = time.perf_counter()
        execution.id = await self._repository.create_execution(execution)
        logger.info(
            f"Started execution {execution.id} of workflow {workflow_id} "
            f"(triggered by {triggered_by})"
        )

        run_context = {
            **(context or {}),
            "execution_id": execution.id,
            "workflow_id": workflow_id,
        }
        cancel_event = asyncio.Event()
        self._cancel_events[execution.id] = cancel_event
        try:
            await self._run_steps(workflow, execution, run_context, cancel_event)
        finally:
            self._cancel_events.pop(execution.id, None)

        execution.status = "failed" if execution.error else "success"
        execution.completed_at = utcnow()
        execution.duration = _elapsed_ms(run_started)
        await self._repository.save_execution(execution)
        await self._record_run(workflow_id, execution.completed_at)

        logger.info(
            f"Execution {execution.id} finished with status {execution.status} "
            f"in {execution.duration}ms"
        )
        return execution

    def cancel_execution(self, execution_id: str) -> bool:
        """Ask a running execution to stop; ``False`` if it is not running here."""
        event = self._cancel_events.get(execution_id)
        if event is None:
            return False
        logger.info(f"Cancellation requested for execution {execution_id}")
        event.set()
        return True

    # ------------------------------------------------------------------
    async def _run_steps(
        self,
        workflow: Workflow,
        execution: WorkflowExecution,
        run_context: Dict[str, Any],
        cancel_event: asyncio.Event,
    ) -> None:
        branch_target: Optional[str] = None

        for step in workflow.ordered_steps():
            if branch_target is not None:
                if step.id != branch_target:
                    execution.executed_steps.append(
                        self._skipped(step, f"branch to {branch_target}")
                    )
                    continue
                branch_target = None

            started_at = utcnow()
            step_started = time.perf_counter()
            try:
                result = await self._invoke(step, run_context, cancel_event, execution.id)
            except Exception as exc:
                message = str(exc) or exc.__class__.__name__
                logger.error(f"Step {step.id} ({step.type}) failed: {message}")
                execution.executed_steps.append(
                    WorkflowExecutionStep(
                        step_id=step.id,
                        step_type=step.type,
                        step_order=step.order,
                        status="failed",
                        started_at=started_at,
                        completed_at=utcnow(),
                        duration=_elapsed_ms(step_started),
                        error=message,
                    )
                )
                execution.error = ExecutionError(
                    message=message,
                    step_id=step.id,
                    step_type=step.type,
                    stack="".join(
                        traceback.format_exception(type(exc), exc, exc.__traceback__)
                    ),
                    kind=getattr(exc, "kind", "error"),
                )
                return

            execution.executed_steps.append(
                WorkflowExecutionStep(
                    step_id=step.id,
                    step_type=step.type,
                    step_order=step.order,
                    status=result.status,
                    started_at=started_at,
                    completed_at=utcnow(),
                    duration=_elapsed_ms(step_started),
                    output=result.output or None,
                )
            )
            if step.type == "conditional":
                branch_target = result.output.get("next_step_id")

        if branch_target is not None:
            logger.warning(
                f"Branch target {branch_target} not found after its conditional step "
                f"in workflow {workflow.id}"
            )

    async def _invoke(
        self,
        step: WorkflowStep,
        run_context: Dict[str, Any],
        cancel_event: asyncio.Event,
        execution_id: str,
    ) -> StepResult:
        if cancel_event.is_set():
            raise ExecutionCancelledError(execution_id)
        timeout = step.parse_config().timeout or self._step_timeout

        step_task = asyncio.ensure_future(self._dispatcher.execute(step, run_context))
        cancel_task = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {step_task, cancel_task},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            step_task.cancel()
            raise
        finally:
            cancel_task.cancel()

        if step_task in done:
            return step_task.result()

        step_task.cancel()
        await asyncio.gather(step_task, return_exceptions=True)
        if cancel_event.is_set():
            raise ExecutionCancelledError(execution_id)
        raise StepTimeoutError(step.id, timeout)

    async def _record_run(self, workflow_id: str, executed_at: datetime) -> None:
        try:
            await self._repository.increment_executions(workflow_id, executed_at)
        except WorkflowNotFoundError:
            logger.warning(f"Workflow {workflow_id} was deleted while it was running")

    @staticmethod
    def _skipped(step: WorkflowStep, reason: str) -> WorkflowExecutionStep:
        now = utcnow()
        return WorkflowExecutionStep(
            step_id=step.id,
            step_type=step.type,
            step_order=step.order,
            status="skipped",
            started_at=now,
            completed_at=now,
            duration=0,
            output={"reason": reason},
        )

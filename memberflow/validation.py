"""Static checks for workflow definitions before they are stored."""

from __future__ import annotations

from collections import Counter
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from .contracts import STEP_TYPES, ConditionalConfig, Workflow


class ValidationIssue(BaseModel):
    code: str
    message: str
    severity: Literal["error", "warning"] = "error"
    step_id: Optional[str] = None


class ValidationResult(BaseModel):
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_workflow(workflow: Workflow) -> ValidationResult:
    """Check step ids, orders, step configs, branch targets and trigger config."""
    result = ValidationResult()
    _check_structure(workflow, result)
    _check_steps(workflow, result)
    _check_trigger(workflow, result)
    return result


def _error(result: ValidationResult, code: str, message: str, step_id: str | None = None) -> None:
    result.errors.append(ValidationIssue(code=code, message=message, step_id=step_id))


def _warn(result: ValidationResult, code: str, message: str, step_id: str | None = None) -> None:
    result.warnings.append(
        ValidationIssue(code=code, message=message, severity="warning", step_id=step_id)
    )


def _check_structure(workflow: Workflow, result: ValidationResult) -> None:
    if not workflow.steps:
        _warn(result, "no_steps", f"Workflow {workflow.name!r} has no steps")

    duplicate_ids = [i for i, n in Counter(s.id for s in workflow.steps).items() if n > 1]
    if duplicate_ids:
        _error(result, "duplicate_step_ids", f"Duplicate step ids: {', '.join(duplicate_ids)}")

    duplicate_orders = [o for o, n in Counter(s.order for s in workflow.steps).items() if n > 1]
    if duplicate_orders:
        _error(
            result,
            "duplicate_step_orders",
            f"Duplicate step orders: {', '.join(str(o) for o in sorted(duplicate_orders))}",
        )


def _check_steps(workflow: Workflow, result: ValidationResult) -> None:
    for step in workflow.steps:
        if step.type not in STEP_TYPES:
            _warn(
                result,
                "unknown_step_type",
                f"Step {step.id} has unknown type {step.type!r} and will be ignored",
                step.id,
            )
            continue
        try:
            config = step.parse_config()
        except ValidationError as exc:
            _error(
                result,
                "invalid_config",
                f"Step {step.id} ({step.type}) has invalid config: {exc.errors()[0]['msg']}",
                step.id,
            )
            continue

        if isinstance(config, ConditionalConfig):
            for target in (config.on_true, config.on_false):
                if target is None:
                    continue
                target_step = workflow.step_by_id(target)
                if target_step is None:
                    _error(
                        result,
                        "unknown_branch_target",
                        f"Step {step.id} branches to unknown step {target}",
                        step.id,
                    )
                elif target_step.order <= step.order:
                    _error(
                        result,
                        "backward_branch",
                        f"Step {step.id} branches backwards to step {target}",
                        step.id,
                    )


def _check_trigger(workflow: Workflow, result: ValidationResult) -> None:
    trigger = workflow.trigger
    if trigger.type == "schedule" and not (
        trigger.config.get("cron") or trigger.config.get("interval")
    ):
        _warn(result, "schedule_without_timing", "Schedule trigger has no cron or interval")
    if trigger.type == "webhook" and not trigger.config.get("path"):
        _warn(result, "webhook_without_path", "Webhook trigger has no path")

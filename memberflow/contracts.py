"""Core data contracts for memberflow workflows and their executions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

TriggerType = Literal["manual", "event", "schedule", "webhook", "condition"]
ExecutionStatus = Literal["running", "success", "failed"]
StepStatus = Literal["success", "failed", "skipped"]
ErrorKind = Literal["error", "timeout", "cancelled"]

STEP_TYPES = (
    "send_email",
    "award_points",
    "create_notification",
    "call_webhook",
    "update_data",
    "conditional",
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize ``value`` to an aware UTC timestamp (naive values are UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ConfigModel(BaseModel):
    """Base for operator-authored payloads; accepts camelCase or snake_case keys."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )


class Condition(ConfigModel):
    """``{field, operator, value}`` comparison against the run context."""

    field: Optional[str] = None
    operator: Optional[str] = None
    value: Any = None


class RetryPolicy(ConfigModel):
    """Exponential backoff policy for non-fatal steps."""

    max_attempts: int = Field(default=1, ge=1)
    backoff_base: float = Field(default=1.5, ge=0)
    jitter: float = Field(default=0.5, ge=0)


class StepConfig(ConfigModel):
    """Settings shared by every step type."""

    timeout: Optional[float] = Field(default=None, gt=0)


class SendEmailConfig(StepConfig):
    recipient_email: Optional[Union[str, List[str]]] = None
    to: Optional[Union[str, List[str]]] = None
    recipient_id: Optional[str] = None
    recipient_ids: Optional[List[str]] = None
    subject: Optional[str] = None
    html: Optional[str] = None
    body: Optional[str] = None
    message: Optional[str] = None
    text: Optional[str] = None
    cc: Optional[Union[str, List[str]]] = None
    bcc: Optional[Union[str, List[str]]] = None
    reply_to: Optional[str] = None
    tags: Optional[List[str]] = None
    retry: Optional[RetryPolicy] = None


class AwardPointsConfig(StepConfig):
    member_id: Optional[str] = None
    category: Optional[str] = None
    amount: Optional[int] = None
    points: Optional[int] = None
    description: Optional[str] = None
    related_entity_id: Optional[str] = None
    related_entity_type: Optional[str] = None


class CreateNotificationConfig(StepConfig):
    member_id: Optional[str] = None
    title: Optional[str] = None
    message: Optional[str] = None
    body: Optional[str] = None
    notification_type: Optional[str] = Field(default=None, alias="type")


class CallWebhookConfig(StepConfig):
    url: Optional[str] = None
    webhook_url: Optional[str] = None
    method: str = "POST"
    headers: Optional[Dict[str, str]] = None
    body: Any = None
    retry: Optional[RetryPolicy] = None


class UpdateDataConfig(StepConfig):
    collection: str
    document_id: Optional[str] = None
    document_id_field: Optional[str] = None
    fields: Dict[str, Any] = Field(default_factory=dict)


class ConditionalConfig(StepConfig):
    condition: Optional[Condition] = None
    on_true: Optional[str] = None
    on_false: Optional[str] = None


STEP_CONFIG_MODELS: Dict[str, Type[StepConfig]] = {
    "send_email": SendEmailConfig,
    "award_points": AwardPointsConfig,
    "create_notification": CreateNotificationConfig,
    "call_webhook": CallWebhookConfig,
    "update_data": UpdateDataConfig,
    "conditional": ConditionalConfig,
}


class Trigger(BaseModel):
    """Describes what should cause a workflow to run."""

    type: TriggerType = "manual"
    config: Dict[str, Any] = Field(default_factory=dict)


class WorkflowStep(BaseModel):
    """One typed unit of work within a workflow."""

    id: str
    type: str
    order: int
    config: Dict[str, Any] = Field(default_factory=dict)
    conditions: Optional[Dict[str, Any]] = None

    def parse_config(self) -> StepConfig:
        """Validate ``config`` against the model registered for ``type``.

        Unknown step types fall back to :class:`StepConfig`.

        Raises:
            pydantic.ValidationError: If the payload does not fit the model.
        """
        model = STEP_CONFIG_MODELS.get(self.type, StepConfig)
        return model.model_validate(self.config)


class Workflow(BaseModel):
    """A named, ordered set of steps bound to a single trigger."""

    id: Optional[str] = None
    name: str
    description: Optional[str] = None
    trigger: Trigger = Field(default_factory=Trigger)
    steps: List[WorkflowStep] = Field(default_factory=list)
    active: bool = True
    executions: int = 0
    last_executed: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("last_executed", "created_at", "updated_at")
    @classmethod
    def _normalize_timestamps(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    def ordered_steps(self) -> List[WorkflowStep]:
        """Return steps ascending by ``order``."""
        return sorted(self.steps, key=lambda step: step.order)

    def step_by_id(self, step_id: str) -> Optional[WorkflowStep]:
        return next((s for s in self.steps if s.id == step_id), None)


class StepResult(BaseModel):
    """Outcome reported by the step dispatcher for a non-failing step."""

    status: Literal["success", "skipped"] = "success"
    output: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def success(cls, **output: Any) -> "StepResult":
        return cls(status="success", output=output)

    @classmethod
    def skipped(cls, reason: str, **output: Any) -> "StepResult":
        return cls(status="skipped", output={"reason": reason, **output})


class WorkflowExecutionStep(BaseModel):
    """Recorded outcome of one step in one execution."""

    step_id: str
    step_type: str
    step_order: int
    status: StepStatus
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration: Optional[int] = None
    error: Optional[str] = None
    output: Optional[Dict[str, Any]] = None

    @field_validator("started_at", "completed_at")
    @classmethod
    def _normalize_timestamps(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)


class ExecutionError(BaseModel):
    """Top-level failure of an execution, pointing at the offending step."""

    message: str
    step_id: Optional[str] = None
    step_type: Optional[str] = None
    stack: Optional[str] = None
    kind: ErrorKind = "error"


class WorkflowExecution(BaseModel):
    """One run of a workflow with its append-only step log."""

    id: Optional[str] = None
    workflow_id: str
    workflow_name: str
    status: ExecutionStatus = "running"
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    duration: Optional[int] = None
    triggered_by: TriggerType = "manual"
    executed_steps: List[WorkflowExecutionStep] = Field(default_factory=list)
    error: Optional[ExecutionError] = None
    context: Optional[Dict[str, Any]] = None

    @field_validator("started_at", "completed_at")
    @classmethod
    def _normalize_timestamps(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @property
    def is_terminal(self) -> bool:
        return self.status != "running"

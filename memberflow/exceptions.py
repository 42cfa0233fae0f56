"""Exception taxonomy for the workflow engine."""

from __future__ import annotations

from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from .validation import ValidationIssue


class AutomationError(Exception):
    """Base class for memberflow errors."""


class PreconditionError(AutomationError):
    """Workflow cannot be executed; nothing was recorded."""


class WorkflowNotFoundError(PreconditionError):
    def __init__(self, workflow_id: str) -> None:
        super().__init__(f"Workflow {workflow_id} not found")
        self.workflow_id = workflow_id


class WorkflowInactiveError(PreconditionError):
    def __init__(self, workflow_id: str) -> None:
        super().__init__(f"Workflow {workflow_id} is not active")
        self.workflow_id = workflow_id


class ExecutionNotFoundError(AutomationError):
    def __init__(self, execution_id: str) -> None:
        super().__init__(f"Execution {execution_id} not found")
        self.execution_id = execution_id


class WorkflowValidationError(AutomationError):
    """Workflow definition rejected before it was stored."""

    def __init__(self, issues: List["ValidationIssue"]) -> None:
        summary = "; ".join(issue.message for issue in issues)
        super().__init__(f"Invalid workflow definition: {summary}")
        self.issues = issues


class StepError(AutomationError):
    """Fatal step failure that aborts the remaining run."""

    kind = "error"


class StepTimeoutError(StepError):
    kind = "timeout"

    def __init__(self, step_id: str, timeout: float) -> None:
        super().__init__(f"Step {step_id} timed out after {timeout:g}s")
        self.step_id = step_id
        self.timeout = timeout


class ExecutionCancelledError(StepError):
    kind = "cancelled"

    def __init__(self, execution_id: str) -> None:
        super().__init__(f"Execution {execution_id} was cancelled")
        self.execution_id = execution_id


class RecipientNotResolvedError(AutomationError):
    """No email address could be resolved for a ``send_email`` step."""


class WebhookError(AutomationError):
    """Webhook target answered with a non-2xx status."""

    def __init__(self, url: str, status_code: int, reason: str = "") -> None:
        super().__init__(f"Webhook call to {url} failed: {status_code} {reason}".rstrip())
        self.url = url
        self.status_code = status_code


class DeliveryError(AutomationError):
    """Mailer refused or failed to deliver a message."""

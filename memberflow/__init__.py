"""memberflow: workflow automation engine for membership organisations."""

from .conditions import evaluate_condition
from .contracts import (
    ExecutionError,
    Trigger,
    Workflow,
    WorkflowExecution,
    WorkflowExecutionStep,
    WorkflowStep,
)
from .dispatch import StepDispatcher
from .execute import WorkflowEngine
from .persistence import get_repository
from .providers import Providers
from .service import WorkflowService
from .validation import validate_workflow

__version__ = "0.1.0"
__all__ = [
    "ExecutionError",
    "Providers",
    "StepDispatcher",
    "Trigger",
    "Workflow",
    "WorkflowEngine",
    "WorkflowExecution",
    "WorkflowExecutionStep",
    "WorkflowService",
    "WorkflowStep",
    "evaluate_condition",
    "get_repository",
    "validate_workflow",
]

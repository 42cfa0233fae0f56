"""Command line interface for managing and running memberflow workflows."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional, get_args

import typer
import yaml
from pydantic import ValidationError

from memberflow import WorkflowService, get_repository
from memberflow.config import load_config
from memberflow.contracts import TriggerType
from memberflow.exceptions import PreconditionError, WorkflowValidationError

app = typer.Typer(help="CLI for memberflow workflows")

# Command groups
workflow_app = typer.Typer(help="Commands for managing workflows")
execution_app = typer.Typer(help="Commands for inspecting executions")

app.add_typer(workflow_app, name="workflow")
app.add_typer(execution_app, name="execution")


def _service() -> WorkflowService:
    return WorkflowService(repository=get_repository())


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(None, help="Override the configured log level"),
) -> None:
    """memberflow CLI entry point."""
    level = (log_level or load_config().log_level).upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


@workflow_app.command("list")
def workflow_list() -> None:
    """
    List all workflows, newest first.

    Example:
        memberflow workflow list
        # Output: 3f2c...    New member onboarding    active    12
    """
    workflows = asyncio.run(_service().list_workflows())
    if not workflows:
        typer.echo("No workflows found")
        return
    for wf in workflows:
        state = "active" if wf.active else "inactive"
        typer.echo(f"{wf.id}\t{wf.name}\t{state}\t{wf.executions}")


@workflow_app.command("show")
def workflow_show(workflow_id: str) -> None:
    """Show a workflow's trigger and its steps in execution order."""
    wf = asyncio.run(_service().get_workflow(workflow_id))
    if wf is None:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)
    typer.echo(f"Workflow {wf.id}: {wf.name} ({'active' if wf.active else 'inactive'})")
    if wf.description:
        typer.echo(wf.description)
    typer.echo(f"Trigger: {wf.trigger.type} {wf.trigger.config or ''}".rstrip())
    typer.echo(
        f"Executions: {wf.executions}"
        + (f" (last {wf.last_executed.isoformat()})" if wf.last_executed else "")
    )
    for step in wf.ordered_steps():
        typer.echo(f"- [{step.order}] {step.id}: {step.type}")


@workflow_app.command("create")
def workflow_create(definition_path: Path) -> None:
    """
    Create a workflow from a YAML definition file.

    Example:
        memberflow workflow create ./workflows/onboarding.yaml
        # Output: Created workflow 3f2c...
    """
    if not definition_path.exists():
        typer.secho("Specified path does not exist", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    definition = yaml.safe_load(definition_path.read_text()) or {}
    try:
        workflow_id = asyncio.run(_service().create_workflow(definition))
    except WorkflowValidationError as exc:
        typer.secho("Workflow definition is invalid:", fg=typer.colors.RED)
        for issue in exc.issues:
            typer.echo(f"  - {issue.message}")
        raise typer.Exit(code=1)
    except ValidationError as exc:
        typer.secho(f"Workflow definition is malformed: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(f"Created workflow {workflow_id}")


@workflow_app.command("delete")
def workflow_delete(workflow_id: str) -> None:
    """Delete a workflow definition. Its execution history is kept."""
    if not asyncio.run(_service().delete_workflow(workflow_id)):
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)
    typer.echo(f"Deleted workflow {workflow_id}")


@workflow_app.command("execute")
def workflow_execute(
    workflow_id: str,
    context: Optional[str] = typer.Option(None, help="JSON object passed as run context"),
    triggered_by: str = typer.Option("manual", help="Trigger type recorded on the run"),
) -> None:
    """
    Run a workflow now and print the execution trail.

    Email, points, notification and data steps are recorded in-process; webhook
    steps issue real HTTP requests.

    Example:
        memberflow workflow execute 3f2c... --context '{"member_id": "m-1"}'
        # Output: Execution 9a1b...: success (42ms)
        #         - [1] welcome: send_email success
    """
    if triggered_by not in get_args(TriggerType):
        typer.secho(f"Unknown trigger type: {triggered_by}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    try:
        run_context = json.loads(context) if context else {}
    except json.JSONDecodeError as exc:
        typer.secho(f"Invalid --context JSON: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    try:
        execution = asyncio.run(
            _service().execute_workflow(workflow_id, run_context, triggered_by)
        )
    except PreconditionError as exc:
        typer.echo(str(exc))
        raise typer.Exit(code=1)

    _echo_execution(execution)
    if execution.status == "failed":
        raise typer.Exit(code=2)


@execution_app.command("list")
def execution_list(
    workflow_id: Optional[str] = typer.Option(None, help="Only runs of this workflow"),
    limit: Optional[int] = typer.Option(None, min=1, help="Maximum number of runs"),
) -> None:
    """List executions, most recently started first."""
    executions = asyncio.run(_service().list_executions(workflow_id, limit))
    if not executions:
        typer.echo("No executions found")
        return
    for ex in executions:
        typer.echo(
            f"{ex.id}\t{ex.workflow_name}\t{ex.status}\t{ex.started_at.isoformat()}"
        )


@execution_app.command("show")
def execution_show(execution_id: str) -> None:
    """Show the step-by-step trail of one execution."""
    execution = asyncio.run(_service().get_execution(execution_id))
    if execution is None:
        typer.echo("Execution not found")
        raise typer.Exit(code=1)
    _echo_execution(execution)


def _echo_execution(execution) -> None:
    duration = f" ({execution.duration}ms)" if execution.duration is not None else ""
    typer.echo(
        f"Execution {execution.id} of {execution.workflow_name}: {execution.status}{duration}"
    )
    for step in execution.executed_steps:
        line = f"- [{step.step_order}] {step.step_id}: {step.step_type} {step.status}"
        if step.error:
            line += f" ({step.error})"
        typer.echo(line)
    if execution.error:
        typer.echo(f"Error: {execution.error.message}")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()

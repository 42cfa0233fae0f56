from datetime import datetime, timezone

import pytest

from memberflow.contracts import (
    ExecutionError,
    Trigger,
    Workflow,
    WorkflowExecution,
    WorkflowExecutionStep,
    WorkflowStep,
)
from memberflow.exceptions import ExecutionNotFoundError, WorkflowNotFoundError
from memberflow.persistence import InMemoryWorkflowRepository, SQLiteWorkflowRepository


@pytest.fixture(params=["memory", "sqlite"])
def repo(request, tmp_path):
    if request.param == "memory":
        yield InMemoryWorkflowRepository()
        return
    sqlite_repo = SQLiteWorkflowRepository(tmp_path / "wf.db")
    yield sqlite_repo
    sqlite_repo.close()


def _workflow(name: str = "Onboarding") -> Workflow:
    return Workflow(
        name=name,
        description="Welcome new members",
        trigger=Trigger(type="event", config={"event": "member.joined"}),
        steps=[
            WorkflowStep(id="welcome", type="send_email", order=1, config={"subject": "Hi"}),
            WorkflowStep(id="points", type="award_points", order=2, config={"amount": 5}),
        ],
    )


@pytest.mark.asyncio
async def test_repository_workflow_crud(repo):
    workflow_id = await repo.create_workflow(_workflow())

    wf = await repo.get_workflow(workflow_id)
    assert wf is not None
    assert wf.id == workflow_id
    assert wf.name == "Onboarding"
    assert wf.trigger.config == {"event": "member.joined"}
    assert [s.id for s in wf.steps] == ["welcome", "points"]
    assert wf.executions == 0
    assert wf.last_executed is None
    assert wf.created_at is not None and wf.created_at.tzinfo is not None

    await repo.update_workflow(workflow_id, {"name": "Renamed", "active": False})
    wf = await repo.get_workflow(workflow_id)
    assert wf.name == "Renamed"
    assert wf.active is False
    assert wf.steps[1].config == {"amount": 5}

    assert await repo.delete_workflow(workflow_id) is True
    assert await repo.get_workflow(workflow_id) is None
    assert await repo.delete_workflow(workflow_id) is False


@pytest.mark.asyncio
async def test_repository_update_ignores_counter_fields(repo):
    workflow_id = await repo.create_workflow(_workflow())
    await repo.update_workflow(workflow_id, {"executions": 99, "description": "Changed"})

    wf = await repo.get_workflow(workflow_id)
    assert wf.executions == 0
    assert wf.description == "Changed"


@pytest.mark.asyncio
async def test_repository_update_missing_workflow_raises(repo):
    with pytest.raises(WorkflowNotFoundError):
        await repo.update_workflow("missing", {"name": "x"})


@pytest.mark.asyncio
async def test_repository_lists_newest_workflow_first(repo):
    first = await repo.create_workflow(_workflow("First"))
    second = await repo.create_workflow(_workflow("Second"))

    workflows = await repo.list_workflows()
    assert [w.id for w in workflows] == [second, first]


@pytest.mark.asyncio
async def test_repository_increment_executions(repo):
    workflow_id = await repo.create_workflow(_workflow())
    executed_at = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    await repo.increment_executions(workflow_id, executed_at)
    await repo.increment_executions(workflow_id, executed_at)

    wf = await repo.get_workflow(workflow_id)
    assert wf.executions == 2
    assert wf.last_executed == executed_at

    with pytest.raises(WorkflowNotFoundError):
        await repo.increment_executions("missing", executed_at)


@pytest.mark.asyncio
async def test_repository_execution_lifecycle(repo):
    started = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    execution = WorkflowExecution(
        workflow_id="wf-1",
        workflow_name="Onboarding",
        started_at=started,
        context={"member_id": "m-1"},
    )
    execution.id = await repo.create_execution(execution)

    stored = await repo.get_execution(execution.id)
    assert stored.status == "running"
    assert stored.executed_steps == []

    execution.executed_steps.append(
        WorkflowExecutionStep(
            step_id="points",
            step_type="award_points",
            step_order=1,
            status="failed",
            started_at=started,
            completed_at=started,
            duration=3,
            error="ledger unavailable",
        )
    )
    execution.status = "failed"
    execution.completed_at = started
    execution.duration = 3
    execution.error = ExecutionError(
        message="ledger unavailable", step_id="points", step_type="award_points"
    )
    await repo.save_execution(execution)

    stored = await repo.get_execution(execution.id)
    assert stored.status == "failed"
    assert stored.context == {"member_id": "m-1"}
    assert stored.executed_steps[0].error == "ledger unavailable"
    assert stored.error.step_id == "points"
    assert stored.started_at == started


@pytest.mark.asyncio
async def test_repository_save_unknown_execution_raises(repo):
    execution = WorkflowExecution(id="nope", workflow_id="wf-1", workflow_name="x")
    with pytest.raises(ExecutionNotFoundError):
        await repo.save_execution(execution)


@pytest.mark.asyncio
async def test_repository_list_executions_filters_and_limits(repo):
    ids = []
    for minute in range(3):
        execution = WorkflowExecution(
            workflow_id="wf-1",
            workflow_name="Onboarding",
            started_at=datetime(2024, 5, 1, 12, minute, tzinfo=timezone.utc),
        )
        ids.append(await repo.create_execution(execution))
    await repo.create_execution(
        WorkflowExecution(
            workflow_id="wf-2",
            workflow_name="Renewal",
            started_at=datetime(2024, 5, 1, 13, 0, tzinfo=timezone.utc),
        )
    )

    latest = await repo.list_executions("wf-1", 1)
    assert [e.id for e in latest] == [ids[-1]]

    everything = await repo.list_executions()
    assert len(everything) == 4
    assert everything[0].workflow_id == "wf-2"
    assert [e.id for e in await repo.list_executions("wf-1")] == list(reversed(ids))


@pytest.mark.asyncio
async def test_sqlite_repository_survives_reopen(tmp_path):
    db_path = tmp_path / "wf.db"
    repo = SQLiteWorkflowRepository(db_path)
    workflow_id = await repo.create_workflow(_workflow())
    repo.close()

    reopened = SQLiteWorkflowRepository(db_path)
    wf = await reopened.get_workflow(workflow_id)
    assert wf is not None
    assert wf.name == "Onboarding"
    reopened.close()


@pytest.mark.asyncio
async def test_inmemory_repository_returns_copies():
    repo = InMemoryWorkflowRepository()
    workflow_id = await repo.create_workflow(_workflow())

    wf = await repo.get_workflow(workflow_id)
    wf.name = "Mutated"

    assert (await repo.get_workflow(workflow_id)).name == "Onboarding"

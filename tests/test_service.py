import pytest

from memberflow.contracts import Workflow, WorkflowStep
from memberflow.exceptions import WorkflowNotFoundError, WorkflowValidationError


def _definition(**overrides):
    definition = {
        "name": "Event check-in",
        "description": "Reward members who attend",
        "trigger": {"type": "event", "config": {"event": "event.checked_in"}},
        "steps": [
            {"id": "points", "type": "award_points", "order": 1, "config": {"amount": 15}},
            {
                "id": "thanks",
                "type": "create_notification",
                "order": 2,
                "config": {"title": "Thanks for coming"},
            },
        ],
    }
    definition.update(overrides)
    return definition


@pytest.mark.asyncio
async def test_create_and_get_workflow(service):
    workflow_id = await service.create_workflow(_definition(executions=42))

    workflow = await service.get_workflow(workflow_id)
    assert workflow.name == "Event check-in"
    assert workflow.executions == 0
    assert [w.id for w in await service.list_workflows()] == [workflow_id]


@pytest.mark.asyncio
async def test_create_workflow_accepts_model(service):
    workflow = Workflow(
        name="Model",
        steps=[WorkflowStep(id="n", type="create_notification", order=1)],
    )
    workflow_id = await service.create_workflow(workflow)
    assert (await service.get_workflow(workflow_id)).name == "Model"


@pytest.mark.asyncio
async def test_create_invalid_workflow_is_rejected(service, repository):
    definition = _definition()
    definition["steps"][1]["order"] = 1

    with pytest.raises(WorkflowValidationError) as excinfo:
        await service.create_workflow(definition)

    assert [issue.code for issue in excinfo.value.issues] == ["duplicate_step_orders"]
    assert await repository.list_workflows() == []


@pytest.mark.asyncio
async def test_update_workflow_applies_editable_fields(service):
    workflow_id = await service.create_workflow(_definition())

    updated = await service.update_workflow(
        workflow_id, {"active": False, "name": "Check-in v2", "executions": 10}
    )

    assert updated.active is False
    assert updated.name == "Check-in v2"
    assert updated.executions == 0
    assert updated.steps[0].config == {"amount": 15}


@pytest.mark.asyncio
async def test_update_workflow_validates_merged_definition(service):
    workflow_id = await service.create_workflow(_definition())

    with pytest.raises(WorkflowValidationError):
        await service.update_workflow(
            workflow_id,
            {
                "steps": [
                    {"id": "a", "type": "award_points", "order": 1},
                    {"id": "a", "type": "award_points", "order": 2},
                ]
            },
        )
    assert len((await service.get_workflow(workflow_id)).steps) == 2


@pytest.mark.asyncio
async def test_update_missing_workflow_raises(service):
    with pytest.raises(WorkflowNotFoundError):
        await service.update_workflow("missing", {"name": "x"})


@pytest.mark.asyncio
async def test_delete_keeps_execution_history(service):
    workflow_id = await service.create_workflow(_definition())
    execution = await service.execute_workflow(workflow_id, {"member_id": "m-1"})

    assert await service.delete_workflow(workflow_id) is True
    assert await service.get_workflow(workflow_id) is None
    assert (await service.get_execution(execution.id)).status == "success"
    assert await service.delete_workflow(workflow_id) is False


@pytest.mark.asyncio
async def test_execute_and_list_executions(service, providers):
    workflow_id = await service.create_workflow(_definition())

    first = await service.execute_workflow(workflow_id, {"member_id": "m-2"})
    second = await service.execute_workflow(workflow_id, {"member_id": "m-2"})

    assert providers.points.balance("m-2") == 30
    executions = await service.list_executions(workflow_id)
    assert [e.id for e in executions] == [second.id, first.id]
    assert [e.id for e in await service.list_executions(workflow_id, 1)] == [second.id]
    assert (await service.get_workflow(workflow_id)).executions == 2


@pytest.mark.asyncio
async def test_list_executions_rejects_non_positive_limit(service):
    with pytest.raises(ValueError):
        await service.list_executions(limit=0)


@pytest.mark.asyncio
async def test_cancel_unknown_execution(service):
    assert service.cancel_execution("not-running") is False

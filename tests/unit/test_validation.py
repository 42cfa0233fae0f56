from memberflow.contracts import Trigger, Workflow, WorkflowStep
from memberflow.validation import validate_workflow


def _codes(issues):
    return [issue.code for issue in issues]


def test_valid_workflow_has_no_issues():
    workflow = Workflow(
        name="Onboarding",
        steps=[
            WorkflowStep(id="a", type="send_email", order=1, config={"to": "x@example.org"}),
            WorkflowStep(id="b", type="award_points", order=2),
        ],
    )
    result = validate_workflow(workflow)
    assert result.is_valid
    assert result.errors == []
    assert result.warnings == []


def test_duplicate_ids_and_orders_are_errors():
    workflow = Workflow(
        name="Broken",
        steps=[
            WorkflowStep(id="a", type="award_points", order=1),
            WorkflowStep(id="a", type="award_points", order=1),
        ],
    )
    result = validate_workflow(workflow)
    assert not result.is_valid
    assert _codes(result.errors) == ["duplicate_step_ids", "duplicate_step_orders"]


def test_invalid_step_config_is_an_error():
    workflow = Workflow(
        name="Broken",
        steps=[WorkflowStep(id="u", type="update_data", order=1, config={"fields": {}})],
    )
    result = validate_workflow(workflow)
    assert _codes(result.errors) == ["invalid_config"]
    assert result.errors[0].step_id == "u"


def test_branch_targets_must_exist_and_point_forward():
    workflow = Workflow(
        name="Branches",
        steps=[
            WorkflowStep(id="start", type="create_notification", order=1),
            WorkflowStep(
                id="check",
                type="conditional",
                order=2,
                config={"onTrue": "start", "onFalse": "nowhere"},
            ),
        ],
    )
    result = validate_workflow(workflow)
    assert sorted(_codes(result.errors)) == ["backward_branch", "unknown_branch_target"]


def test_warnings_do_not_invalidate():
    workflow = Workflow(
        name="Loose",
        trigger=Trigger(type="schedule"),
        steps=[WorkflowStep(id="x", type="teleport", order=1)],
    )
    result = validate_workflow(workflow)
    assert result.is_valid
    assert _codes(result.warnings) == ["unknown_step_type", "schedule_without_timing"]


def test_empty_workflow_and_webhook_trigger_warn():
    workflow = Workflow(name="Empty", trigger=Trigger(type="webhook"))
    result = validate_workflow(workflow)
    assert result.is_valid
    assert _codes(result.warnings) == ["no_steps", "webhook_without_path"]

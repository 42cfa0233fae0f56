"""Step dispatcher tests."""

import httpx
import pytest
from pydantic import ValidationError

from memberflow import StepDispatcher
from memberflow.constants import CONDITION_RESULT_KEY
from memberflow.contracts import WorkflowStep


def _step(step_type: str, **config) -> WorkflowStep:
    return WorkflowStep(id=f"{step_type}-1", type=step_type, order=1, config=config)


class RefusingMailer:
    def __init__(self):
        self.calls = 0

    async def send(self, message):
        self.calls += 1
        raise RuntimeError("smtp down")


class BrokenDirectory:
    async def get_by_id(self, member_id):
        raise RuntimeError("directory down")


class FailingLedger:
    async def award(self, *args, **kwargs):
        raise RuntimeError("ledger unavailable")


@pytest.mark.asyncio
async def test_send_email_to_explicit_address(providers):
    dispatcher = StepDispatcher(providers)
    result = await dispatcher.execute(
        _step("send_email", recipientEmail="ops@example.org", subject="Hi", body="Hello"),
        {"workflow_id": "wf-1"},
    )

    assert result.status == "success"
    assert result.output["to"] == ["ops@example.org"]
    sent = providers.mailer.sent[0]
    assert sent.subject == "Hi"
    assert sent.html == "Hello"
    assert sent.tags == ["automation", "workflow"]
    assert sent.metadata["step_id"] == "send_email-1"


@pytest.mark.asyncio
async def test_send_email_looks_up_recipient_ids(providers):
    dispatcher = StepDispatcher(providers)
    await dispatcher.execute(_step("send_email", recipientIds=["m-1", "m-2", "m-3", "ghost"]), {})

    assert providers.mailer.sent[0].to == ["ada@example.org", "grace@example.org"]


@pytest.mark.asyncio
async def test_send_email_without_any_recipient_is_skipped(providers):
    dispatcher = StepDispatcher(providers)
    result = await dispatcher.execute(_step("send_email", subject="Hi"), {})

    assert result.status == "skipped"
    assert result.output == {"reason": "no recipient", "error": "No recipient email specified"}
    assert providers.mailer.sent == []


@pytest.mark.asyncio
async def test_send_email_directory_failure_falls_back_to_notification(providers):
    providers.members = BrokenDirectory()
    dispatcher = StepDispatcher(providers)
    result = await dispatcher.execute(
        _step("send_email", recipientId="m-1", subject="Welcome"), {}
    )

    assert result.output == {"channel": "notification", "fallback_reason": "directory down"}
    assert providers.notifications.notifications[0]["member_id"] == "m-1"


@pytest.mark.asyncio
async def test_send_email_directory_failure_without_member_is_skipped(providers):
    providers.members = BrokenDirectory()
    dispatcher = StepDispatcher(providers)
    result = await dispatcher.execute(_step("send_email", recipientIds=["m-1", "m-2"]), {})

    assert result.status == "skipped"
    assert result.output["error"] == "directory down"


@pytest.mark.asyncio
async def test_send_email_unknown_member_falls_back_to_notification(providers):
    dispatcher = StepDispatcher(providers)
    result = await dispatcher.execute(
        _step("send_email", recipientId="m-3", subject="Renewal", message="Due soon"), {}
    )

    assert result.output["channel"] == "notification"
    assert providers.mailer.sent == []
    assert providers.notifications.notifications == [
        {"member_id": "m-3", "title": "Renewal", "message": "Due soon", "type": "info"}
    ]


@pytest.mark.asyncio
async def test_send_email_failure_is_absorbed(providers):
    providers.mailer = RefusingMailer()
    dispatcher = StepDispatcher(providers)
    result = await dispatcher.execute(
        _step("send_email", recipientId="m-1", subject="Welcome"), {}
    )

    assert result.status == "success"
    assert result.output["channel"] == "notification"
    assert "smtp down" in result.output["fallback_reason"]
    assert providers.notifications.notifications[0]["member_id"] == "m-1"


@pytest.mark.asyncio
async def test_send_email_retries_before_giving_up(providers):
    providers.mailer = RefusingMailer()
    dispatcher = StepDispatcher(providers)
    result = await dispatcher.execute(
        _step(
            "send_email",
            to="ops@example.org",
            retry={"maxAttempts": 3, "backoffBase": 0, "jitter": 0},
        ),
        {},
    )

    assert providers.mailer.calls == 3
    assert result.output == {"channel": "email", "delivered": False, "error": "smtp down"}


@pytest.mark.asyncio
async def test_award_points_uses_context_member_and_defaults(providers):
    dispatcher = StepDispatcher(providers)
    result = await dispatcher.execute(
        _step("award_points", amount=25), {"memberId": "m-1", "entity_id": "evt-9"}
    )

    assert result.output == {"member_id": "m-1", "amount": 25, "category": "media_contribution"}
    award = providers.points.awards[0]
    assert award["description"] == "Automated points award"
    assert award["related_entity_id"] == "evt-9"
    assert providers.points.balance("m-1") == 25


@pytest.mark.asyncio
async def test_award_points_without_member_is_skipped(providers):
    dispatcher = StepDispatcher(providers)
    result = await dispatcher.execute(_step("award_points", points=5), {})

    assert result.status == "skipped"
    assert providers.points.awards == []


@pytest.mark.asyncio
async def test_award_points_ledger_error_propagates(providers):
    providers.points = FailingLedger()
    dispatcher = StepDispatcher(providers)
    with pytest.raises(RuntimeError, match="ledger unavailable"):
        await dispatcher.execute(_step("award_points", memberId="m-1"), {})


@pytest.mark.asyncio
async def test_create_notification(providers):
    dispatcher = StepDispatcher(providers)
    await dispatcher.execute(
        _step("create_notification", title="Badge", body="You earned it", type="success"),
        {"member_id": "m-2"},
    )

    assert providers.notifications.notifications == [
        {"member_id": "m-2", "title": "Badge", "message": "You earned it", "type": "success"}
    ]


@pytest.mark.asyncio
async def test_call_webhook_posts_context_by_default(providers):
    dispatcher = StepDispatcher(providers)
    context = {"member_id": "m-1"}
    result = await dispatcher.execute(_step("call_webhook", url="https://hooks.test/x"), context)

    assert result.output == {"url": "https://hooks.test/x", "ok": True, "status_code": 200}
    request = providers.http.requests[0]
    assert request["method"] == "POST"
    assert request["json"] == context
    assert request["headers"] == {"Content-Type": "application/json"}


@pytest.mark.asyncio
async def test_call_webhook_non_2xx_is_absorbed(providers):
    providers.http.status_code = 503
    dispatcher = StepDispatcher(providers)
    result = await dispatcher.execute(_step("call_webhook", url="https://hooks.test/x"), {})

    assert result.status == "success"
    assert result.output["ok"] is False
    assert "503" in result.output["error"]


@pytest.mark.asyncio
async def test_call_webhook_network_error_is_retried_then_absorbed(providers):
    providers.http.error = httpx.ConnectError("refused")
    dispatcher = StepDispatcher(providers)
    result = await dispatcher.execute(
        _step(
            "call_webhook",
            webhookUrl="https://hooks.test/x",
            retry={"maxAttempts": 2, "backoffBase": 0, "jitter": 0},
        ),
        {},
    )

    assert len(providers.http.requests) == 2
    assert result.output["ok"] is False


@pytest.mark.asyncio
async def test_call_webhook_without_url_is_skipped(providers):
    dispatcher = StepDispatcher(providers)
    result = await dispatcher.execute(_step("call_webhook"), {})
    assert result.status == "skipped"


@pytest.mark.asyncio
async def test_update_data_patches_document_from_context_id(providers):
    dispatcher = StepDispatcher(providers)
    result = await dispatcher.execute(
        _step(
            "update_data",
            collection="members",
            documentIdField="member.id",
            fields={"status": "active"},
        ),
        {"member": {"id": "m-1"}},
    )

    assert result.output["document_id"] == "m-1"
    assert providers.documents.get("members", "m-1") == {"status": "active"}


@pytest.mark.asyncio
async def test_update_data_requires_collection(providers):
    dispatcher = StepDispatcher(providers)
    with pytest.raises(ValidationError):
        await dispatcher.execute(_step("update_data", documentId="x"), {})


@pytest.mark.asyncio
async def test_conditional_stores_result_and_branch(providers):
    dispatcher = StepDispatcher(providers)
    context = {"points": 120}
    result = await dispatcher.execute(
        _step(
            "conditional",
            condition={"field": "points", "operator": ">=", "value": 100},
            onTrue="gold",
            onFalse="silver",
        ),
        context,
    )

    assert context[CONDITION_RESULT_KEY] is True
    assert result.output == {"result": True, "next_step_id": "gold"}


@pytest.mark.asyncio
async def test_unknown_step_type_is_ignored(providers):
    dispatcher = StepDispatcher(providers)
    result = await dispatcher.execute(_step("teleport"), {})
    assert result.status == "success"
    assert result.output == {"ignored": True}


@pytest.mark.asyncio
async def test_call_webhook_empty_body_sends_context(providers):
    dispatcher = StepDispatcher(providers)
    context = {"member_id": "m-1"}
    await dispatcher.execute(_step("call_webhook", url="https://hooks.test/x", body={}), context)

    assert providers.http.requests[0]["json"] == context

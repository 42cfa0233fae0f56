"""Simple example showing how to define and run a workflow."""

import asyncio

from memberflow import Providers, Trigger, Workflow, WorkflowService, WorkflowStep
from memberflow.config import MemberflowConfig
from memberflow.persistence import InMemoryWorkflowRepository
from memberflow.providers import InMemoryMemberDirectory, Member


async def main():
    """Create an onboarding workflow and run it for one member."""
    # Collaborators that record side effects in memory
    providers = Providers(
        members=InMemoryMemberDirectory([Member(id="m-1", email="ada@example.org")])
    )
    service = WorkflowService(
        repository=InMemoryWorkflowRepository(),
        providers=providers,
        config=MemberflowConfig(),
    )

    workflow = Workflow(
        name="New member onboarding",
        trigger=Trigger(type="event", config={"event": "member.joined"}),
        steps=[
            WorkflowStep(
                id="welcome",
                type="send_email",
                order=1,
                config={"recipientId": "m-1", "subject": "Welcome aboard"},
            ),
            WorkflowStep(id="points", type="award_points", order=2, config={"amount": 50}),
            WorkflowStep(
                id="notify",
                type="create_notification",
                order=3,
                config={"title": "You earned 50 points"},
            ),
        ],
    )
    workflow_id = await service.create_workflow(workflow)

    execution = await service.execute_workflow(
        workflow_id, {"member_id": "m-1"}, triggered_by="event"
    )

    print(f"✅ Execution {execution.id} finished: {execution.status}")
    for step in execution.executed_steps:
        print(f"  [{step.step_order}] {step.step_id}: {step.status}")
    print(f"📬 Emails recorded: {len(providers.mailer.sent)}")
    print(f"🏅 Points balance: {providers.points.balance('m-1')}")


if __name__ == "__main__":
    asyncio.run(main())

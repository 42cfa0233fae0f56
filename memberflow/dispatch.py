"""Step dispatcher: performs the side effect of a single workflow step."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Union

from pydantic.alias_generators import to_camel

from .conditions import evaluate_condition, resolve_path
from .constants import (
    CONDITION_RESULT_KEY,
    DEFAULT_EMAIL_TAGS,
    DEFAULT_POINTS_AMOUNT,
    DEFAULT_POINTS_CATEGORY,
)
from .contracts import (
    AwardPointsConfig,
    CallWebhookConfig,
    ConditionalConfig,
    CreateNotificationConfig,
    SendEmailConfig,
    StepResult,
    UpdateDataConfig,
    WorkflowStep,
)
from .exceptions import DeliveryError, RecipientNotResolvedError, WebhookError
from .providers import EmailMessage, HttpResponse, Providers
from .utils.retry import call_with_retry

logger = logging.getLogger(__name__)

StepHandler = Callable[[WorkflowStep, Any, Dict[str, Any]], Awaitable[StepResult]]


def context_value(context: Dict[str, Any], key: str) -> Any:
    """Read ``key`` from the run context, accepting its camelCase spelling too."""
    if context.get(key) is not None:
        return context[key]
    return context.get(to_camel(key))


class StepDispatcher:
    """Execute one step against the configured providers.

    ``award_points``, ``create_notification`` and ``update_data`` let provider
    exceptions propagate; the orchestrator treats them as fatal. ``send_email``
    and ``call_webhook`` absorb recipient and delivery failures.
    """

    def __init__(self, providers: Providers | None = None) -> None:
        self._providers = providers or Providers()
        self._handlers: Dict[str, StepHandler] = {
            "send_email": self._send_email,
            "award_points": self._award_points,
            "create_notification": self._create_notification,
            "call_webhook": self._call_webhook,
            "update_data": self._update_data,
            "conditional": self._conditional,
        }

    @property
    def providers(self) -> Providers:
        return self._providers

    async def execute(self, step: WorkflowStep, context: Dict[str, Any]) -> StepResult:
        handler = self._handlers.get(step.type)
        if handler is None:
            logger.warning(f"Unknown step type {step.type!r} for step {step.id}; ignoring")
            return StepResult.success(ignored=True)
        config = step.parse_config()
        return await handler(step, config, context)

    # ------------------------------------------------------------------
    # send_email
    async def _send_email(
        self, step: WorkflowStep, config: SendEmailConfig, context: Dict[str, Any]
    ) -> StepResult:
        try:
            recipients = await self._resolve_recipients(config)
        except Exception as exc:
            if not config.recipient_id:
                logger.warning(f"Step {step.id}: {exc}; skipping email")
                return StepResult.skipped("no recipient", error=str(exc))
            logger.warning(f"Step {step.id}: {exc}; notifying member instead")
            await self._notify_instead_of_email(config)
            return StepResult.success(channel="notification", fallback_reason=str(exc))

        message = EmailMessage(
            to=recipients,
            subject=config.subject or context.get("subject") or "Notification",
            html=config.html or config.body or config.message or "",
            text=config.text,
            cc=config.cc,
            bcc=config.bcc,
            reply_to=config.reply_to,
            tags=config.tags or list(DEFAULT_EMAIL_TAGS),
            metadata={**context, "workflow_id": context.get("workflow_id"), "step_id": step.id},
        )

        try:
            await call_with_retry(
                lambda: self._deliver(message), config.retry, f"send_email step {step.id}"
            )
        except Exception as exc:
            logger.warning(f"Step {step.id}: email delivery failed: {exc}")
            if config.recipient_id:
                await self._notify_instead_of_email(config)
                return StepResult.success(channel="notification", fallback_reason=str(exc))
            return StepResult.success(channel="email", delivered=False, error=str(exc))

        logger.info(f"Email sent to {', '.join(_as_list(recipients))}")
        return StepResult.success(channel="email", delivered=True, to=_as_list(recipients))

    async def _resolve_recipients(self, config: SendEmailConfig) -> Union[str, List[str]]:
        recipients = config.recipient_email or config.to
        members = self._providers.members

        if config.recipient_id and not recipients:
            member = await members.get_by_id(config.recipient_id)
            if member is None or not member.email:
                raise RecipientNotResolvedError(
                    f"Member {config.recipient_id} not found or has no email"
                )
            recipients = member.email

        if config.recipient_ids:
            found = [await members.get_by_id(member_id) for member_id in config.recipient_ids]
            recipients = [m.email for m in found if m is not None and m.email]

        if not recipients:
            raise RecipientNotResolvedError("No recipient email specified")
        return recipients

    async def _deliver(self, message: EmailMessage) -> None:
        if not await self._providers.mailer.send(message):
            raise DeliveryError(f"Mailer refused message to {message.to}")

    async def _notify_instead_of_email(self, config: SendEmailConfig) -> None:
        await self._providers.notifications.create(
            member_id=config.recipient_id,
            title=config.subject or "Notification",
            message=config.body or config.message or "",
            type="info",
        )

    # ------------------------------------------------------------------
    # award_points / create_notification
    async def _award_points(
        self, step: WorkflowStep, config: AwardPointsConfig, context: Dict[str, Any]
    ) -> StepResult:
        member_id = config.member_id or context_value(context, "member_id")
        if not member_id:
            logger.warning(f"Step {step.id}: no member_id for award_points; skipping")
            return StepResult.skipped("no member_id")

        amount = config.amount or config.points or DEFAULT_POINTS_AMOUNT
        category = config.category or DEFAULT_POINTS_CATEGORY
        await self._providers.points.award(
            member_id,
            category,
            amount,
            config.description
            or context_value(context, "description")
            or "Automated points award",
            related_entity_id=config.related_entity_id or context_value(context, "entity_id"),
            related_entity_type=config.related_entity_type
            or context_value(context, "entity_type"),
        )
        logger.info(f"Awarded {amount} points to member {member_id}")
        return StepResult.success(member_id=member_id, amount=amount, category=category)

    async def _create_notification(
        self,
        step: WorkflowStep,
        config: CreateNotificationConfig,
        context: Dict[str, Any],
    ) -> StepResult:
        member_id = config.member_id or context_value(context, "member_id")
        if not member_id:
            logger.warning(f"Step {step.id}: no member_id for create_notification; skipping")
            return StepResult.skipped("no member_id")

        title = config.title or "Notification"
        await self._providers.notifications.create(
            member_id=member_id,
            title=title,
            message=config.message or config.body or "",
            type=config.notification_type or "info",
        )
        logger.info(f"Created notification for member {member_id}")
        return StepResult.success(member_id=member_id, title=title)

    # ------------------------------------------------------------------
    # call_webhook
    async def _call_webhook(
        self, step: WorkflowStep, config: CallWebhookConfig, context: Dict[str, Any]
    ) -> StepResult:
        url = config.url or config.webhook_url
        if not url:
            logger.warning(f"Step {step.id}: no url for call_webhook; skipping")
            return StepResult.skipped("no url")

        method = config.method.upper()
        headers = config.headers or {"Content-Type": "application/json"}
        body = config.body or context

        async def call() -> HttpResponse:
            response = await self._providers.http.request(method, url, headers=headers, json=body)
            if not response.ok:
                raise WebhookError(url, response.status_code, response.reason)
            return response

        try:
            response = await call_with_retry(call, config.retry, f"call_webhook step {step.id}")
        except Exception as exc:
            logger.warning(f"Step {step.id}: webhook call failed, continuing: {exc}")
            return StepResult.success(url=url, ok=False, error=str(exc))

        logger.info(f"Webhook called successfully: {url}")
        return StepResult.success(url=url, ok=True, status_code=response.status_code)

    # ------------------------------------------------------------------
    # update_data / conditional
    async def _update_data(
        self, step: WorkflowStep, config: UpdateDataConfig, context: Dict[str, Any]
    ) -> StepResult:
        document_id = config.document_id
        if not document_id and config.document_id_field:
            document_id = resolve_path(context, config.document_id_field)
        if not document_id:
            logger.warning(f"Step {step.id}: no document id for update_data; skipping")
            return StepResult.skipped("no document id")

        await self._providers.documents.patch(config.collection, str(document_id), config.fields)
        logger.info(f"Updated {config.collection}/{document_id}: {sorted(config.fields)}")
        return StepResult.success(
            collection=config.collection,
            document_id=str(document_id),
            fields=sorted(config.fields),
        )

    async def _conditional(
        self, step: WorkflowStep, config: ConditionalConfig, context: Dict[str, Any]
    ) -> StepResult:
        result = evaluate_condition(config.condition, context)
        context[CONDITION_RESULT_KEY] = result
        logger.info(f"Step {step.id}: condition evaluated to {result}")

        output: Dict[str, Any] = {"result": result}
        target = config.on_true if result else config.on_false
        if target:
            output["next_step_id"] = target
        return StepResult.success(**output)


def _as_list(recipients: Union[str, List[str]]) -> List[str]:
    return [recipients] if isinstance(recipients, str) else list(recipients)


__all__ = ["StepDispatcher", "context_value"]

"""Transaction emails: render per action kind and send through Resend. Best effort only."""

from dataclasses import dataclass
from html import escape
from typing import Any

import httpx

from app.core.config import get_settings
from app.core.events import TRANSACTION_LOGGED, EventBus, eventbus
from app.core.logging import get_logger
from app.models.profile import Profile
from app.models.transaction_record import (
    CREDIT_ADD,
    CREDIT_DEDUCT,
    CREDIT_USAGE,
    PROPERTY_BOOSTED,
    PROPERTY_POSTED,
    ROLE_CHANGE,
    TransactionRecord,
)

log = get_logger(__name__)

USAGE_ACTIONS = (CREDIT_USAGE, PROPERTY_POSTED, PROPERTY_BOOSTED)

_WRAP_OPEN = (
    '<html><body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">'
    '<div style="max-width: 600px; margin: 0 auto; padding: 20px;">'
)
_WRAP_CLOSE = (
    '<p style="margin-top: 30px; font-size: 0.9em; color: #666;">Thank you for using {app}!</p>'
    "</div></body></html>"
)
_BOX = '<div style="background: #f3f4f6; padding: 15px; border-radius: 5px; margin: 20px 0;">{rows}</div>'
_ROW = '<p style="margin: 5px 0;"><strong>{label}:</strong> {value}</p>'
_NOTE = '<p style="font-size: 0.9em; color: #666;">{text}</p>'


@dataclass
class Notification:
    to: str
    subject: str
    html: str


def _page(title: str, color: str, body: str, rows: list[tuple[str, Any]], note: str) -> str:
    app_name = escape(get_settings().app_name)
    box = _BOX.format(rows="".join(_ROW.format(label=label, value=escape(str(value))) for label, value in rows))
    return (
        _WRAP_OPEN
        + f'<h2 style="color: {color};">{title}</h2>'
        + body
        + box
        + _NOTE.format(text=note)
        + _WRAP_CLOSE.format(app=app_name)
    )


def _credits_label(details: dict[str, Any]) -> str:
    kind = details.get("credit_type")
    return f"{kind} credits" if kind else "credits"


def render_notification(
    record: TransactionRecord,
    user_email: str | None,
    user_name: str | None = None,
    performer_email: str | None = None,
) -> Notification | None:
    """Pick the template for ``record.action_type``; None when the kind has no email."""
    if not user_email:
        return None
    details = record.details or {}
    hello = f"<p>Hello {escape(user_name or 'there')},</p>"
    unit = _credits_label(details)
    performer = escape(performer_email or "System")

    if record.action_type == CREDIT_ADD:
        body = hello + (
            f'<p>Your account has been credited with <strong style="color: #10b981;">'
            f"{abs(details.get('delta', 0))} {unit}</strong>.</p>"
        )
        html = _page(
            "Credits Added",
            "#2563eb",
            body,
            [("Previous Balance", details.get("old_credits")), ("New Balance", details.get("new_credits"))],
            f"Action performed by: {performer}",
        )
        return Notification(user_email, "Credits Added to Your Account", html)

    if record.action_type == CREDIT_DEDUCT:
        body = hello + (
            f'<p><strong style="color: #ef4444;">{abs(details.get("delta", 0))} {unit}</strong>'
            " have been deducted from your account.</p>"
        )
        html = _page(
            "Credits Deducted",
            "#ef4444",
            body,
            [("Previous Balance", details.get("old_credits")), ("New Balance", details.get("new_credits"))],
            f"Action performed by: {performer}",
        )
        return Notification(user_email, "Credits Deducted from Your Account", html)

    if record.action_type in USAGE_ACTIONS:
        amount = details.get("amount_used", details.get("credits_deducted", 0))
        if not amount:
            return None
        body = hello + f'<p>You have used <strong style="color: #f59e0b;">{amount} {unit}</strong>.</p>'
        html = _page(
            "Credits Used",
            "#f59e0b",
            body,
            [("Remaining Balance", details.get("new_credits"))],
            f"Reason: {escape(details.get('reason') or 'Credit usage')}",
        )
        return Notification(user_email, "Credits Used - Transaction Confirmation", html)

    if record.action_type == ROLE_CHANGE:
        app_name = escape(get_settings().app_name)
        body = f"<p>Hello,</p><p>Your role in {app_name} has been updated.</p>"
        html = _page(
            "Role Updated",
            "#2563eb",
            body,
            [("Previous Role", details.get("old_role") or "user"), ("New Role", details.get("new_role"))],
            "If you have any questions, please contact support.",
        )
        return Notification(user_email, "Your Role Has Been Updated", html)

    return None


async def send_email(to: str, subject: str, html: str, *, transport: httpx.AsyncBaseTransport | None = None) -> dict:
    """POST to the Resend API. Without an API key the email is only logged."""
    settings = get_settings()
    if not settings.resend_api_key:
        log.info("email_logged", to=to, subject=subject, html_preview=html[:100])
        return {"success": True, "message": "Email logged (RESEND_API_KEY not configured)"}

    async with httpx.AsyncClient(
        timeout=httpx.Timeout(settings.notification_timeout_seconds),
        transport=transport,
    ) as client:
        response = await client.post(
            settings.resend_api_url,
            headers={"Authorization": f"Bearer {settings.resend_api_key}"},
            json={"from": settings.notification_from, "to": [to], "subject": subject, "html": html},
        )
    response.raise_for_status()
    data = response.json()
    return {"success": True, "email_id": data.get("id")}


async def notify(record: TransactionRecord, *, transport: httpx.AsyncBaseTransport | None = None) -> bool:
    """Render and send one record's email. Returns False when the kind is not notified."""
    user = await Profile.get(record.user_id)
    performer = await Profile.get(record.performed_by) if record.performed_by else None
    message = render_notification(
        record,
        user.email if user else None,
        user.full_name if user else None,
        performer.email if performer else None,
    )
    if message is None:
        return False
    await send_email(message.to, message.subject, message.html, transport=transport)
    log.info("notification_sent", record_id=str(record.id), action_type=record.action_type, to=message.to)
    return True


async def on_transaction_logged(record: TransactionRecord) -> None:
    """Event handler. Never raises: a failed email must not fail the committed change."""
    try:
        if get_settings().notification_backend == "arq":
            from app.worker.tasks import enqueue_notification

            await enqueue_notification(str(record.id))
            return
        await notify(record)
    except Exception as e:
        log.warning(
            "notification_failed",
            record_id=str(record.id),
            action_type=record.action_type,
            reason=str(e),
        )


def register(bus: EventBus = eventbus) -> None:
    bus.subscribe(TRANSACTION_LOGGED, on_transaction_logged)

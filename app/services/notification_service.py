"""Order update email notifications.

Runs on the dispatcher's worker threads with its own session. Nothing here
may touch the request that produced the comment.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass

import anyio
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.structured_logging import build_log_context
from app.db.models import Order, User
from app.services import identity_service
from app.services.email_provider import EmailProvider, get_email_provider
from app.services.order_errors import NotificationError
from app.utils.normalization import mask_email, preview_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderUpdateNotice:
    """What a worker needs to email the other party about a new comment."""

    order_id: int
    event_id: int
    actor_user_id: int
    target_user_id: int
    body: str


def build_order_link(order_id: int) -> str:
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}/orders/{order_id}"


def build_subject(order_id: int) -> str:
    return f"Order #{order_id} — New update"


def _actor_label(order: Order, actor: User | None) -> str:
    if identity_service.is_admin(actor):
        return "Our team"
    if order.name:
        return order.name
    return "The customer"


def build_update_email(order: Order, actor: User | None, body: str) -> tuple[str, str]:
    """Return (html, text). Every interpolated value is escaped."""
    preview = preview_text(body, settings.NOTIFY_PREVIEW_CHARS)
    link = build_order_link(order.id)
    label = _actor_label(order, actor)
    html_body = (
        f"<p>{html.escape(label)} posted an update on order #{order.id}.</p>"
        f'<blockquote style="margin:0;padding-left:12px;border-left:3px solid #ddd">'
        f"{html.escape(preview)}</blockquote>"
        f'<p><a href="{html.escape(link, quote=True)}">View the conversation</a></p>'
    )
    text_body = f"{label} posted an update on order #{order.id}.\n\n{preview}\n\n{link}"
    return html_body, text_body


def _send_blocking(provider: EmailProvider, *, to: str, subject: str, html_body: str, text: str):
    async def _runner():
        with anyio.fail_after(settings.NOTIFY_SEND_TIMEOUT_SECONDS):
            return await provider.send(to=to, subject=subject, html=html_body, text=text)

    return anyio.run(_runner)


def notify_order_update(
    db: Session,
    notice: OrderUpdateNotice,
    provider: EmailProvider | None = None,
) -> str | None:
    """
    Email the target user about a new comment.

    Returns the provider message id, or None when skipped (order or target
    email missing).

    Raises:
        NotificationError: Provider reported an error, returned no id, or timed out
    """
    log_extra = build_log_context(user_id=notice.actor_user_id, order_id=notice.order_id)

    order = db.query(Order).filter(Order.id == notice.order_id).first()
    if not order:
        logger.info("Notification skipped: order missing", extra=log_extra)
        return None

    target = identity_service.get_user(db, notice.target_user_id)
    if not target or not target.email:
        logger.info("Notification skipped: target has no email", extra=log_extra)
        return None

    actor = identity_service.get_user(db, notice.actor_user_id)
    html_body, text_body = build_update_email(order, actor, notice.body)
    provider = provider or get_email_provider()

    try:
        result = _send_blocking(
            provider,
            to=target.email,
            subject=build_subject(order.id),
            html_body=html_body,
            text=text_body,
        )
    except TimeoutError as exc:
        raise NotificationError("Email send timed out") from exc

    if result.error or not result.id:
        raise NotificationError(result.error or "Provider returned no message id")

    logger.info(
        "Order update email sent to=%s provider=%s message_id=%s",
        mask_email(target.email),
        provider.key,
        result.id,
        extra=log_extra,
    )
    return result.id

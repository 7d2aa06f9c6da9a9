"""
email_service.py

Email templating and the outbound email queue.

Templates are Jinja2 strings. An active EmailTemplate row overrides the
built-in template of the same name. Rendering an email never sends it:
queue_email() writes an EmailLog row in status "queued" inside the caller's
transaction, and the outbox worker (portal.worker) delivers it later.
"""
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from fastapi import HTTPException
from jinja2 import BaseLoader, Environment, TemplateError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from portal import models
from portal.settings import settings

logger = logging.getLogger(__name__)

PLATFORM_NAME = "ORII Research Platform"

html_env = Environment(
    loader=BaseLoader(),
    autoescape=True,
    trim_blocks=True,
    lstrip_blocks=True,
)
# Subjects and plain-text bodies are not HTML
text_env = Environment(
    loader=BaseLoader(),
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True,
)

_LAYOUT_HEAD = (
    '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
    '<h2 style="color: #1e3a8a;">{{ platform_name }}</h2>'
)
_LAYOUT_FOOT = (
    '<hr><p style="color: #6b7280; font-size: 12px;">'
    'This message was sent by {{ platform_name }}. '
    '<a href="{{ frontend_url }}">{{ frontend_url }}</a></p></div>'
)

BUILTIN_TEMPLATES: Dict[str, Dict[str, str]] = {
    "welcome": {
        "category": "user-management",
        "subject": "Welcome to {{ platform_name }}",
        "html": _LAYOUT_HEAD
        + "<p>Dear {{ user_name }},</p>"
        "<p>Thank you for registering. Your account is pending approval by an administrator. "
        "We will email you as soon as it has been reviewed.</p>"
        + _LAYOUT_FOOT,
        "text": "Dear {{ user_name }}, thank you for registering with {{ platform_name }}. "
        "Your account is pending approval.",
    },
    "account_approved": {
        "category": "user-management",
        "subject": "Your {{ platform_name }} account has been approved",
        "html": _LAYOUT_HEAD
        + "<p>Dear {{ user_name }},</p>"
        "<p>Your account has been approved. You can now "
        '<a href="{{ frontend_url }}/login">sign in</a>.</p>'
        + _LAYOUT_FOOT,
        "text": "Dear {{ user_name }}, your account has been approved. Sign in at {{ frontend_url }}/login",
    },
    "account_rejected": {
        "category": "user-management",
        "subject": "Your {{ platform_name }} registration",
        "html": _LAYOUT_HEAD
        + "<p>Dear {{ user_name }},</p>"
        "<p>We are unable to approve your registration at this time.</p>"
        "<p><strong>Reason:</strong> {{ reason }}</p>"
        + _LAYOUT_FOOT,
        "text": "Dear {{ user_name }}, your registration was not approved. Reason: {{ reason }}",
    },
    "notification": {
        "category": "notification",
        "subject": "{{ title }}",
        "html": _LAYOUT_HEAD
        + "<p>Dear {{ user_name }},</p>"
        "<h3>{{ title }}</h3><p>{{ message }}</p>"
        "{% if action_url %}<p><a href=\"{{ action_url }}\">View details</a></p>{% endif %}"
        + _LAYOUT_FOOT,
        "text": "{{ title }}\n\n{{ message }}{% if action_url %}\n\n{{ action_url }}{% endif %}",
    },
    "event_reminder": {
        "category": "event",
        "subject": "Reminder: {{ event_title }} {{ when }}",
        "html": _LAYOUT_HEAD
        + "<p>Dear {{ user_name }},</p>"
        "<p><strong>{{ event_title }}</strong> starts {{ when }} "
        "({{ start_date }}{% if start_time %} at {{ start_time }}{% endif %}).</p>"
        "{% if venue %}<p>Venue: {{ venue }}</p>{% endif %}"
        "{% if message %}<p>{{ message }}</p>{% endif %}"
        '<p><a href="{{ frontend_url }}/events/{{ event_id }}">Event details</a></p>'
        + _LAYOUT_FOOT,
        "text": "{{ event_title }} starts {{ when }} ({{ start_date }}).",
    },
    "collaboration_invitation": {
        "category": "research",
        "subject": "{{ inviter_name }} invited you to collaborate on {{ collaboration_title }}",
        "html": _LAYOUT_HEAD
        + "<p>Dear {{ user_name }},</p>"
        "<p>{{ inviter_name }} invited you to join <strong>{{ collaboration_title }}</strong> "
        "as {{ role }}.</p>"
        "{% if message %}<blockquote>{{ message }}</blockquote>{% endif %}"
        '<p><a href="{{ frontend_url }}/collaboration">Respond to the invitation</a></p>'
        + _LAYOUT_FOOT,
        "text": "{{ inviter_name }} invited you to join {{ collaboration_title }} as {{ role }}.",
    },
    "contact_reply": {
        "category": "custom",
        "subject": "Re: {{ subject }}",
        "html": _LAYOUT_HEAD
        + "<p>Dear {{ name }},</p><p>{{ response }}</p>"
        "<hr><p><em>Your message:</em></p><p>{{ original_message }}</p>"
        + _LAYOUT_FOOT,
        "text": "Dear {{ name }},\n\n{{ response }}",
    },
}


def _base_context() -> Dict[str, Any]:
    return {"platform_name": PLATFORM_NAME, "frontend_url": settings.frontend_url}


def render_string(source: str, context: Dict[str, Any], html: bool = False) -> str:
    env = html_env if html else text_env
    return env.from_string(source).render(**{**_base_context(), **context})


async def render_template(
    db: AsyncSession, name: str, context: Dict[str, Any]
) -> Tuple[str, str, Optional[str], str]:
    """
    Render a template by name.

    Returns:
        (subject, html, text, category)

    Raises:
        HTTPException 404 when neither an active stored template nor a
        built-in template has this name; 400 when the template fails to render.
    """
    result = await db.execute(
        select(models.EmailTemplate).filter(
            models.EmailTemplate.name == name, models.EmailTemplate.is_active.is_(True)
        )
    )
    stored = result.scalars().first()
    if stored:
        subject_src, html_src, text_src, category = (
            stored.subject, stored.html_content, stored.text_content, stored.category,
        )
        stored.usage_count = (stored.usage_count or 0) + 1
        stored.last_used_at = datetime.utcnow()
    elif name in BUILTIN_TEMPLATES:
        builtin = BUILTIN_TEMPLATES[name]
        subject_src, html_src, text_src, category = (
            builtin["subject"], builtin["html"], builtin.get("text"), builtin["category"],
        )
    else:
        raise HTTPException(status_code=404, detail=f"Email template '{name}' not found")

    try:
        subject = render_string(subject_src, context).strip()
        html = render_string(html_src, context, html=True)
        text = render_string(text_src, context) if text_src else None
    except TemplateError as e:
        raise HTTPException(status_code=400, detail=f"Template '{name}' failed to render: {e}")
    return subject, html, text, category


def queue_email(
    db: AsyncSession,
    *,
    to_email: str,
    subject: str,
    html_content: str,
    text_content: Optional[str] = None,
    template_name: Optional[str] = None,
    category: str = "notification",
    recipient_name: Optional[str] = None,
    recipient_user_id: Optional[int] = None,
    sender_user_id: Optional[int] = None,
    notification_id: Optional[int] = None,
) -> models.EmailLog:
    """Add a queued EmailLog row to the session; the outbox worker sends it."""
    entry = models.EmailLog(
        message_id=uuid.uuid4().hex,
        template_name=template_name,
        category=category,
        recipient_email=to_email,
        recipient_name=recipient_name,
        recipient_user_id=recipient_user_id,
        sender_user_id=sender_user_id,
        notification_id=notification_id,
        subject=subject,
        html_content=html_content,
        text_content=text_content,
        status="queued",
        attempts=0,
        next_attempt_at=datetime.utcnow(),
    )
    db.add(entry)
    logger.info(f"Queued email '{subject}' for {to_email}")
    return entry


async def queue_template_email(
    db: AsyncSession,
    template_name: str,
    to_email: str,
    context: Dict[str, Any],
    **kwargs,
) -> models.EmailLog:
    subject, html, text, category = await render_template(db, template_name, context)
    return queue_email(
        db,
        to_email=to_email,
        subject=subject,
        html_content=html,
        text_content=text,
        template_name=template_name,
        category=category,
        **kwargs,
    )


async def queue_welcome_email(db: AsyncSession, user: models.User) -> models.EmailLog:
    return await queue_template_email(
        db, "welcome", user.email, {"user_name": user.full_name},
        recipient_name=user.full_name, recipient_user_id=user.id,
    )

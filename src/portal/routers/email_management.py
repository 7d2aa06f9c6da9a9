"""
email_management.py

Admin endpoints for email templates and the email log. Sending only queues
EmailLog rows; delivery is the outbox worker's job.
"""
from datetime import datetime, timedelta
from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from jinja2 import TemplateError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal import crud, email_service, models, schemas
from portal.auth import require_admin
from portal.database import get_db
from portal.utils import Pagination, success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/email", tags=["Email management"])

CONTENT_FIELDS = ("subject", "html_content", "text_content")


async def _get_template_or_404(db: AsyncSession, template_id: int) -> models.EmailTemplate:
    template = await db.get(models.EmailTemplate, template_id)
    if not template:
        raise HTTPException(status_code=404, detail="Email template not found")
    return template


# Templates

@router.get("/templates", summary="Email templates")
async def list_templates(
    category: Optional[schemas.EmailCategory] = None,
    db: AsyncSession = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    stmt = select(models.EmailTemplate)
    if category:
        stmt = stmt.filter(models.EmailTemplate.category == category.value)
    result = await db.execute(stmt.order_by(models.EmailTemplate.name))
    templates = [schemas.EmailTemplateResponse.model_validate(t) for t in result.scalars().all()]
    return success({"templates": templates, "builtinTemplates": sorted(email_service.BUILTIN_TEMPLATES)})


@router.post("/templates", status_code=status.HTTP_201_CREATED, summary="Create an email template")
async def create_template(
    payload: schemas.EmailTemplateCreate,
    db: AsyncSession = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    existing = await db.execute(select(models.EmailTemplate.id).filter(models.EmailTemplate.name == payload.name))
    if existing.first():
        raise HTTPException(status_code=400, detail="A template with this name already exists")
    data = payload.model_dump()
    data["category"] = payload.category.value
    template = models.EmailTemplate(
        **data, is_system=False, version=1, usage_count=0, created_by_id=admin.id
    )
    db.add(template)
    await db.commit()
    return success({"template": schemas.EmailTemplateResponse.model_validate(template)}, message="Template created")


@router.get("/templates/{template_id}", summary="Email template detail")
async def get_template(template_id: int, db: AsyncSession = Depends(get_db), admin: models.User = Depends(require_admin)):
    template = await _get_template_or_404(db, template_id)
    return success({"template": schemas.EmailTemplateResponse.model_validate(template)})


@router.put("/templates/{template_id}", summary="Update an email template")
async def update_template(
    template_id: int,
    payload: schemas.EmailTemplateUpdate,
    db: AsyncSession = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    template = await _get_template_or_404(db, template_id)
    changes = payload.model_dump(exclude_unset=True)
    content_changed = False
    for key, value in changes.items():
        if value is None and key in ("subject", "html_content", "category", "is_active"):
            continue
        value = getattr(value, "value", value)
        if key in CONTENT_FIELDS and getattr(template, key) != value:
            content_changed = True
        setattr(template, key, value)
    if content_changed:
        template.version = (template.version or 1) + 1
    await db.commit()
    return success({"template": schemas.EmailTemplateResponse.model_validate(template)}, message="Template updated")


@router.delete("/templates/{template_id}", summary="Delete an email template")
async def delete_template(template_id: int, db: AsyncSession = Depends(get_db), admin: models.User = Depends(require_admin)):
    template = await _get_template_or_404(db, template_id)
    if template.is_system:
        raise HTTPException(status_code=400, detail="System templates cannot be deleted")
    await db.delete(template)
    await db.commit()
    return success(message="Template deleted")


@router.post("/templates/{template_id}/preview", summary="Render a template with sample variables")
async def preview_template(
    template_id: int,
    payload: schemas.TemplatePreview,
    db: AsyncSession = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    template = await _get_template_or_404(db, template_id)
    try:
        rendered = {
            "subject": email_service.render_string(template.subject, payload.variables).strip(),
            "htmlContent": email_service.render_string(template.html_content, payload.variables, html=True),
            "textContent": (
                email_service.render_string(template.text_content, payload.variables)
                if template.text_content else None
            ),
        }
    except TemplateError as e:
        raise HTTPException(status_code=400, detail=f"Template failed to render: {e}")
    return success({"preview": rendered})


# Sending

@router.post("/send", summary="Queue an email to users or addresses")
async def send_email(
    payload: schemas.SendEmailRequest,
    db: AsyncSession = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    recipients = {}
    if payload.recipient_ids:
        result = await db.execute(select(models.User).filter(models.User.id.in_(payload.recipient_ids)))
        users = result.scalars().all()
        missing = set(payload.recipient_ids) - {u.id for u in users}
        if missing:
            raise HTTPException(status_code=404, detail=f"Users not found: {', '.join(map(str, sorted(missing)))}")
        for user in users:
            recipients[user.email.lower()] = (user.full_name, user.id)
    for email in payload.recipient_emails:
        recipients.setdefault(email.lower(), (None, None))

    queued = []
    for email, (name, user_id) in recipients.items():
        context = {"user_name": name or email, **payload.variables}
        if payload.template_name:
            entry = await email_service.queue_template_email(
                db, payload.template_name, email, context,
                recipient_name=name, recipient_user_id=user_id, sender_user_id=admin.id,
            )
        else:
            try:
                subject = email_service.render_string(payload.subject, context).strip()
                html = email_service.render_string(payload.html_content, context, html=True)
            except TemplateError as e:
                raise HTTPException(status_code=400, detail=f"Email content failed to render: {e}")
            entry = email_service.queue_email(
                db, to_email=email, subject=subject, html_content=html, category="custom",
                recipient_name=name, recipient_user_id=user_id, sender_user_id=admin.id,
            )
        queued.append(entry)
    await db.commit()
    logger.info(f"Admin {admin.id} queued {len(queued)} email(s)")
    return success(
        {"queued": len(queued), "messageIds": [e.message_id for e in queued]},
        message=f"{len(queued)} email(s) queued for delivery",
    )


# Log

@router.get("/logs", summary="Email log")
async def list_logs(
    pagination: Pagination = Depends(),
    log_status: Optional[schemas.EmailStatus] = Query(None, alias="status"),
    category: Optional[schemas.EmailCategory] = None,
    recipient: Optional[str] = Query(None, max_length=120),
    db: AsyncSession = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    stmt = select(models.EmailLog)
    if log_status:
        stmt = stmt.filter(models.EmailLog.status == log_status.value)
    if category:
        stmt = stmt.filter(models.EmailLog.category == category.value)
    if recipient:
        stmt = stmt.filter(models.EmailLog.recipient_email.ilike(f"%{recipient}%"))
    total = await crud.count(db, stmt)
    result = await db.execute(
        stmt.order_by(models.EmailLog.queued_at.desc(), models.EmailLog.id.desc())
        .offset(pagination.offset).limit(pagination.limit)
    )
    logs = [schemas.EmailLogResponse.model_validate(e) for e in result.scalars().all()]
    return success({"logs": logs, "pagination": pagination.meta(total)})


@router.post("/logs/{log_id}/retry", summary="Requeue a failed email")
async def retry_email(log_id: int, db: AsyncSession = Depends(get_db), admin: models.User = Depends(require_admin)):
    entry = await db.get(models.EmailLog, log_id)
    if not entry:
        raise HTTPException(status_code=404, detail="Email log entry not found")
    if entry.status != "failed":
        raise HTTPException(status_code=400, detail="Only failed emails can be retried")
    entry.status = "queued"
    entry.attempts = 0
    entry.next_attempt_at = datetime.utcnow()
    entry.last_error = None
    await db.commit()
    return success({"log": schemas.EmailLogResponse.model_validate(entry)}, message="Email requeued")


@router.get("/stats", summary="Email delivery statistics")
async def email_stats(db: AsyncSession = Depends(get_db), admin: models.User = Depends(require_admin)):
    by_status = await db.execute(
        select(models.EmailLog.status, func.count(models.EmailLog.id)).group_by(models.EmailLog.status)
    )
    by_category = await db.execute(
        select(models.EmailLog.category, func.count(models.EmailLog.id)).group_by(models.EmailLog.category)
    )
    last_day = await db.execute(
        select(func.count(models.EmailLog.id)).filter(
            models.EmailLog.status == "sent",
            models.EmailLog.sent_at >= datetime.utcnow() - timedelta(hours=24),
        )
    )
    counts = {s: total for s, total in by_status.all()}
    delivered, failed = counts.get("sent", 0), counts.get("failed", 0)
    return success({
        "byStatus": counts,
        "byCategory": {c: total for c, total in by_category.all()},
        "sentLast24h": last_day.scalar_one(),
        "deliveryRate": round(delivered / (delivered + failed) * 100, 1) if delivered + failed else None,
    })

from datetime import datetime
from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal import crud, email_service, models, schemas
from portal.auth import require_admin
from portal.database import get_db
from portal.utils import Pagination, client_ip, success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/contact", tags=["Contact"])


async def _get_contact_or_404(db: AsyncSession, contact_id: int) -> models.Contact:
    contact = await db.get(models.Contact, contact_id)
    if not contact:
        raise HTTPException(status_code=404, detail="Contact enquiry not found")
    return contact


@router.post("", status_code=status.HTTP_201_CREATED, summary="Submit a contact enquiry")
async def submit_contact(payload: schemas.ContactCreate, request: Request, db: AsyncSession = Depends(get_db)):
    contact = models.Contact(
        name=payload.name,
        email=payload.email.lower(),
        subject=payload.subject,
        message=payload.message,
        category=payload.category.value,
        status="new",
        ip_address=client_ip(request),
    )
    db.add(contact)
    await db.commit()
    logger.info(f"Contact enquiry {contact.id} received ({contact.category})")
    return success(
        {"contact": schemas.ContactResponse.model_validate(contact)},
        message="Thank you for contacting us. We will get back to you soon.",
    )


@router.get("", summary="Contact enquiries")
async def list_contacts(
    pagination: Pagination = Depends(),
    contact_status: Optional[schemas.ContactStatus] = Query(None, alias="status"),
    category: Optional[schemas.ContactCategory] = None,
    search: Optional[str] = Query(None, max_length=100),
    db: AsyncSession = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    stmt = select(models.Contact)
    if contact_status:
        stmt = stmt.filter(models.Contact.status == contact_status.value)
    if category:
        stmt = stmt.filter(models.Contact.category == category.value)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.filter(or_(
            models.Contact.name.ilike(pattern),
            models.Contact.email.ilike(pattern),
            models.Contact.subject.ilike(pattern),
        ))
    total = await crud.count(db, stmt)
    result = await db.execute(
        stmt.order_by(models.Contact.created_at.desc()).offset(pagination.offset).limit(pagination.limit)
    )
    items = [schemas.ContactResponse.model_validate(c) for c in result.scalars().all()]
    return success({"contacts": items, "pagination": pagination.meta(total)})


@router.get("/stats", summary="Contact enquiry statistics")
async def contact_stats(db: AsyncSession = Depends(get_db), admin: models.User = Depends(require_admin)):
    by_status = await db.execute(
        select(models.Contact.status, func.count(models.Contact.id)).group_by(models.Contact.status)
    )
    by_category = await db.execute(
        select(models.Contact.category, func.count(models.Contact.id)).group_by(models.Contact.category)
    )
    return success({
        "byStatus": {s: total for s, total in by_status.all()},
        "byCategory": {c: total for c, total in by_category.all()},
    })


@router.get("/{contact_id}", summary="Contact enquiry detail")
async def get_contact(contact_id: int, db: AsyncSession = Depends(get_db), admin: models.User = Depends(require_admin)):
    contact = await _get_contact_or_404(db, contact_id)
    return success({"contact": schemas.ContactResponse.model_validate(contact)})


@router.put("/{contact_id}/status", summary="Update an enquiry's status")
async def update_contact_status(
    contact_id: int,
    payload: schemas.ContactStatusUpdate,
    db: AsyncSession = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    contact = await _get_contact_or_404(db, contact_id)
    contact.status = payload.status.value
    await db.commit()
    return success({"contact": schemas.ContactResponse.model_validate(contact)}, message="Status updated")


@router.post("/{contact_id}/respond", summary="Reply to an enquiry")
async def respond_to_contact(
    contact_id: int,
    payload: schemas.ContactReply,
    db: AsyncSession = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    contact = await _get_contact_or_404(db, contact_id)
    if contact.status == "spam":
        raise HTTPException(status_code=400, detail="Cannot respond to an enquiry marked as spam")
    contact.response = payload.response
    contact.responded_by_id = admin.id
    contact.responded_at = datetime.utcnow()
    contact.status = "resolved"
    await email_service.queue_template_email(
        db, "contact_reply", contact.email,
        {
            "name": contact.name,
            "subject": contact.subject,
            "response": payload.response,
            "original_message": contact.message,
        },
        recipient_name=contact.name,
        sender_user_id=admin.id,
    )
    await db.commit()
    return success({"contact": schemas.ContactResponse.model_validate(contact)}, message="Response sent")


@router.put("/{contact_id}/spam", summary="Mark an enquiry as spam")
async def mark_spam(contact_id: int, db: AsyncSession = Depends(get_db), admin: models.User = Depends(require_admin)):
    contact = await _get_contact_or_404(db, contact_id)
    contact.status = "spam"
    await db.commit()
    return success({"contact": schemas.ContactResponse.model_validate(contact)}, message="Marked as spam")


@router.delete("/{contact_id}", summary="Delete an enquiry")
async def delete_contact(contact_id: int, db: AsyncSession = Depends(get_db), admin: models.User = Depends(require_admin)):
    contact = await _get_contact_or_404(db, contact_id)
    await db.delete(contact)
    await db.commit()
    return success(message="Contact enquiry deleted")

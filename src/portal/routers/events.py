"""
events.py

Event listing, management and attendee registration. Reminder rows are kept
in step with the event through portal.reminders.
"""
from datetime import datetime
from typing import Optional
import enum

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from portal import crud, models, reminders, schemas
from portal.auth import get_current_user, get_optional_user, require_admin, require_editor
from portal.database import get_db
from portal.utils import Pagination, success

router = APIRouter(prefix="/api/events", tags=["Events"])


def _can_manage(event: models.Event, user: Optional[models.User]) -> bool:
    return bool(user) and (user.role == "admin" or event.created_by_id == user.id)


async def _managed_event(db: AsyncSession, event_id: int, user: models.User) -> models.Event:
    event = await crud.get_event_or_404(db, event_id)
    if not _can_manage(event, user):
        raise HTTPException(status_code=403, detail="Only the event creator or an admin can manage this event")
    return event


@router.get("", summary="Upcoming and past public events")
async def list_events(
    pagination: Pagination = Depends(),
    type: Optional[schemas.EventType] = None,
    category: Optional[schemas.EventCategory] = None,
    search: Optional[str] = Query(None, max_length=100),
    upcoming: bool = False,
    featured: Optional[bool] = None,
    db: AsyncSession = Depends(get_db),
):
    stmt = select(models.Event).filter(
        models.Event.status == "published",
        models.Event.is_public.is_(True),
        models.Event.is_archived.is_(False),
    )
    if type:
        stmt = stmt.filter(models.Event.type == type.value)
    if category:
        stmt = stmt.filter(models.Event.category == category.value)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.filter(or_(models.Event.title.ilike(pattern), models.Event.description.ilike(pattern)))
    if upcoming:
        stmt = stmt.filter(models.Event.start_date > datetime.utcnow())
    if featured is not None:
        stmt = stmt.filter(models.Event.is_featured.is_(featured))

    total = await crud.count(db, stmt)
    result = await db.execute(
        stmt.options(selectinload(models.Event.attendees))
        .order_by(models.Event.start_date.asc())
        .offset(pagination.offset).limit(pagination.limit)
    )
    events = [schemas.EventResponse.model_validate(e) for e in result.scalars().all()]
    return success({"events": events, "pagination": pagination.meta(total)})


@router.get("/reminders/stats", summary="Reminder scheduler statistics")
async def reminder_statistics(db: AsyncSession = Depends(get_db), admin: models.User = Depends(require_admin)):
    return success(await reminders.reminder_stats(db))


@router.get("/{event_id}", summary="Event detail")
async def get_event(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    viewer: Optional[models.User] = Depends(get_optional_user),
):
    event = await crud.get_event_or_404(db, event_id)
    visible = event.status == "published" and event.is_public
    if not visible and not _can_manage(event, viewer):
        raise HTTPException(status_code=404, detail="Event not found")
    data = {"event": schemas.EventResponse.model_validate(event)}
    if viewer:
        data["isRegistered"] = any(a.id == viewer.id for a in event.attendees)
    return success(data)


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create an event")
async def create_event(
    payload: schemas.EventCreate,
    db: AsyncSession = Depends(get_db),
    editor: models.User = Depends(require_editor),
):
    data = payload.model_dump()
    for key, value in data.items():
        if isinstance(value, enum.Enum):
            data[key] = value.value
    event = models.Event(**data, created_by_id=editor.id, is_archived=False)
    db.add(event)
    await db.commit()
    event = await crud.get_event(db, event.id)
    return success({"event": schemas.EventResponse.model_validate(event)}, message="Event created successfully")


@router.put("/{event_id}", summary="Update an event")
async def update_event(
    event_id: int,
    payload: schemas.EventUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    event = await _managed_event(db, event_id, current_user)
    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is None and key in ("title", "description", "type", "start_date", "end_date", "status"):
            continue
        setattr(event, key, value.value if isinstance(value, enum.Enum) else value)
    if event.end_date < event.start_date:
        raise HTTPException(status_code=400, detail="End date must be after start date")
    if event.registration_deadline and event.registration_deadline > event.start_date:
        raise HTTPException(status_code=400, detail="Registration deadline must be before the event starts")

    await reminders.reschedule_event_reminders(db, event)
    await db.commit()
    event = await crud.get_event(db, event_id)
    return success({"event": schemas.EventResponse.model_validate(event)}, message="Event updated successfully")


@router.delete("/{event_id}", summary="Delete an event")
async def delete_event(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    event = await _managed_event(db, event_id, current_user)
    await db.refresh(event, attribute_names=["reminders"])
    await db.delete(event)
    await db.commit()
    return success(message="Event deleted successfully")


@router.post("/{event_id}/register", summary="Register for an event")
async def register_for_event(
    event_id: int,
    payload: Optional[schemas.EventRegistration] = None,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    event = await crud.get_event_or_404(db, event_id)
    preferences = [p.value for p in (payload or schemas.EventRegistration()).reminder_preferences]
    await reminders.register_attendee(db, event, current_user, preferences)
    await db.commit()
    event = await crud.get_event(db, event_id)
    return success(
        {"event": schemas.EventResponse.model_validate(event), "isRegistered": True},
        message="Successfully registered for the event",
    )


@router.delete("/{event_id}/register", summary="Cancel a registration")
async def unregister_from_event(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    event = await crud.get_event_or_404(db, event_id)
    await reminders.unregister_attendee(db, event, current_user)
    await db.commit()
    event = await crud.get_event(db, event_id)
    return success(
        {"event": schemas.EventResponse.model_validate(event), "isRegistered": False},
        message="Registration cancelled",
    )


@router.get("/{event_id}/attendees", summary="Registered attendees")
async def list_attendees(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    event = await _managed_event(db, event_id, current_user)
    attendees = [schemas.UserSummary.model_validate(u) for u in event.attendees]
    return success({"attendees": attendees, "total": len(attendees)})


@router.get("/{event_id}/reminders", summary="Scheduled reminders")
async def list_reminders(
    event_id: int,
    reminder_status: Optional[str] = Query(None, alias="status", pattern="^(pending|sent|cancelled|expired)$"),
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    await _managed_event(db, event_id, current_user)
    stmt = select(models.EventReminder).filter(models.EventReminder.event_id == event_id)
    if reminder_status:
        stmt = stmt.filter(models.EventReminder.status == reminder_status)
    result = await db.execute(stmt.order_by(models.EventReminder.run_at))
    items = [schemas.ReminderResponse.model_validate(r) for r in result.scalars().all()]
    return success({"reminders": items})


@router.post("/{event_id}/reminders", status_code=status.HTTP_201_CREATED, summary="Schedule a custom reminder")
async def create_custom_reminder(
    event_id: int,
    payload: schemas.CustomReminderCreate,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    event = await _managed_event(db, event_id, current_user)
    reminder = await reminders.schedule_custom_reminder(
        db, event, payload.run_at, current_user, payload.message, payload.user_id
    )
    await db.commit()
    return success({"reminder": schemas.ReminderResponse.model_validate(reminder)}, message="Reminder scheduled")


@router.delete("/{event_id}/reminders/{reminder_id}", summary="Cancel a scheduled reminder")
async def cancel_custom_reminder(
    event_id: int,
    reminder_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    await _managed_event(db, event_id, current_user)
    reminder = await reminders.cancel_reminder(db, reminder_id, event_id)
    await db.commit()
    return success({"reminder": schemas.ReminderResponse.model_validate(reminder)}, message="Reminder cancelled")

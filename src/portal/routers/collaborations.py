"""
collaborations.py

Research collaborations between portal users: membership by invitation,
per-member permissions, milestones and a feed of updates.
"""
from datetime import datetime
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal import crud, models, schemas
from portal.auth import get_current_user
from portal.database import get_db
from portal.notification_service import NotificationService
from portal.utils import Pagination, success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/collaborations", tags=["Collaborations"])

ACTIVE_MEMBER_STATES = ("pending", "accepted")


def _membership(collaboration: models.Collaboration, user: models.User) -> Optional[models.Collaborator]:
    return next((c for c in collaboration.collaborators if c.user_id == user.id), None)


def _is_member(collaboration: models.Collaboration, user: models.User) -> bool:
    member = _membership(collaboration, user)
    return collaboration.initiator_id == user.id or (member is not None and member.status == "accepted")


def _has_permission(collaboration: models.Collaboration, user: models.User, flag: str) -> bool:
    if collaboration.initiator_id == user.id or user.role == "admin":
        return True
    member = _membership(collaboration, user)
    return member is not None and member.status == "accepted" and bool(getattr(member, flag))


def _accepted_users(collaboration: models.Collaboration) -> List[models.User]:
    return [c.user for c in collaboration.collaborators if c.status == "accepted"]


async def _collaboration_response(db: AsyncSession, collaboration_id: int, message: Optional[str] = None):
    collaboration = await crud.get_collaboration_or_404(db, collaboration_id)
    return success(
        {"collaboration": schemas.CollaborationResponse.model_validate(collaboration)}, message=message
    )


@router.post("", status_code=status.HTTP_201_CREATED, summary="Start a collaboration")
async def create_collaboration(
    payload: schemas.CollaborationCreate,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    now = datetime.utcnow()
    collaboration = models.Collaboration(
        title=payload.title,
        description=payload.description,
        type=payload.type.value,
        visibility=payload.visibility.value,
        status="active",
        initiator_id=current_user.id,
        research_areas=payload.research_areas,
        keywords=payload.keywords,
        start_date=now,
        expected_end_date=payload.expected_end_date,
    )
    collaboration.collaborators.append(models.Collaborator(
        user_id=current_user.id, role="lead", status="accepted",
        can_edit=True, can_invite=True, can_manage=True, joined_at=now,
    ))
    for milestone in payload.milestones:
        collaboration.milestones.append(models.CollaborationMilestone(status="pending", **milestone.model_dump()))
    db.add(collaboration)
    await db.commit()
    logger.info(f"Collaboration {collaboration.id} created by user {current_user.id}")
    return await _collaboration_response(db, collaboration.id, message="Collaboration created successfully")


@router.get("", summary="My collaborations")
async def list_collaborations(
    pagination: Pagination = Depends(),
    collaboration_status: Optional[schemas.CollaborationStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    stmt = select(models.Collaboration).filter(or_(
        models.Collaboration.initiator_id == current_user.id,
        models.Collaboration.collaborators.any(
            (models.Collaborator.user_id == current_user.id)
            & (models.Collaborator.status.in_(ACTIVE_MEMBER_STATES))
        ),
    ))
    if collaboration_status:
        stmt = stmt.filter(models.Collaboration.status == collaboration_status.value)
    total = await crud.count(db, stmt)
    result = await db.execute(
        stmt.options(*crud.COLLABORATION_LOAD_OPTIONS)
        .order_by(models.Collaboration.updated_at.desc())
        .offset(pagination.offset).limit(pagination.limit)
    )
    items = [schemas.CollaborationResponse.model_validate(c) for c in result.scalars().all()]
    return success({"collaborations": items, "pagination": pagination.meta(total)})


@router.get("/stats", summary="Collaboration statistics for the current user")
async def collaboration_stats(db: AsyncSession = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    mine = or_(
        models.Collaboration.initiator_id == current_user.id,
        models.Collaboration.collaborators.any(
            (models.Collaborator.user_id == current_user.id) & (models.Collaborator.status == "accepted")
        ),
    )
    by_status = await db.execute(
        select(models.Collaboration.status, func.count(models.Collaboration.id))
        .filter(mine).group_by(models.Collaboration.status)
    )
    pending = await db.execute(
        select(func.count(models.Collaborator.id)).filter(
            models.Collaborator.user_id == current_user.id, models.Collaborator.status == "pending"
        )
    )
    counts = {s: total for s, total in by_status.all()}
    return success({
        "total": sum(counts.values()),
        "byStatus": counts,
        "pendingInvitations": pending.scalar_one(),
    })


@router.get("/{collaboration_id}", summary="Collaboration detail")
async def get_collaboration(
    collaboration_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    collaboration = await crud.get_collaboration_or_404(db, collaboration_id)
    invited = _membership(collaboration, current_user)
    if not (
        _is_member(collaboration, current_user)
        or (invited is not None and invited.status == "pending")
        or collaboration.visibility in ("public", "institute")
        or current_user.role == "admin"
    ):
        raise HTTPException(status_code=403, detail="This collaboration is private")
    return success({"collaboration": schemas.CollaborationResponse.model_validate(collaboration)})


@router.put("/{collaboration_id}", summary="Update a collaboration")
async def update_collaboration(
    collaboration_id: int,
    payload: schemas.CollaborationUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    collaboration = await crud.get_collaboration_or_404(db, collaboration_id)
    if not _has_permission(collaboration, current_user, "can_manage"):
        raise HTTPException(status_code=403, detail="You do not have permission to manage this collaboration")

    was_completed = collaboration.status == "completed"
    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is None and key in ("title", "description", "status", "visibility"):
            continue
        setattr(collaboration, key, getattr(value, "value", value))
    if collaboration.status == "completed" and not was_completed:
        collaboration.completed_at = datetime.utcnow()
        recipients = [u for u in _accepted_users(collaboration) if u.id != current_user.id]
        await NotificationService.collaboration_completed(db, collaboration, current_user, recipients)
    await db.commit()
    return await _collaboration_response(db, collaboration_id, message="Collaboration updated successfully")


@router.delete("/{collaboration_id}", summary="Delete a collaboration")
async def delete_collaboration(
    collaboration_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    collaboration = await crud.get_collaboration_or_404(db, collaboration_id)
    if collaboration.initiator_id != current_user.id and current_user.role != "admin":
        raise HTTPException(status_code=403, detail="Only the initiator can delete this collaboration")
    await db.delete(collaboration)
    await db.commit()
    return success(message="Collaboration deleted successfully")


@router.post("/{collaboration_id}/invite", status_code=status.HTTP_201_CREATED, summary="Invite a collaborator")
async def invite_collaborator(
    collaboration_id: int,
    payload: schemas.CollaboratorInvite,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    collaboration = await crud.get_collaboration_or_404(db, collaboration_id)
    if not (_has_permission(collaboration, current_user, "can_invite")
            or _has_permission(collaboration, current_user, "can_manage")):
        raise HTTPException(status_code=403, detail="You do not have permission to invite collaborators")
    if collaboration.status != "active":
        raise HTTPException(status_code=400, detail="Only active collaborations accept new collaborators")

    invitee = await crud.get_user_by_email(db, payload.email)
    if not invitee or not invitee.is_active:
        raise HTTPException(status_code=404, detail="User not found")
    existing = _membership(collaboration, invitee)
    if existing and existing.status in ACTIVE_MEMBER_STATES:
        raise HTTPException(status_code=400, detail="User is already a collaborator or has a pending invitation")

    fields = dict(
        role=payload.role.value, status="pending",
        can_edit=payload.can_edit, can_invite=payload.can_invite, can_manage=payload.can_manage,
        invited_by_id=current_user.id, invited_at=datetime.utcnow(), joined_at=None,
    )
    if existing:
        for key, value in fields.items():
            setattr(existing, key, value)
    else:
        collaboration.collaborators.append(models.Collaborator(user_id=invitee.id, **fields))

    await NotificationService.collaboration_invitation(
        db, collaboration, invitee, current_user, payload.role.value, payload.message
    )
    await db.commit()
    return await _collaboration_response(db, collaboration_id, message="Invitation sent successfully")


@router.patch("/{collaboration_id}/respond", summary="Accept or decline an invitation")
async def respond_to_invitation(
    collaboration_id: int,
    payload: schemas.InvitationResponse,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    collaboration = await crud.get_collaboration_or_404(db, collaboration_id)
    member = _membership(collaboration, current_user)
    if not member or member.status != "pending":
        raise HTTPException(status_code=404, detail="No pending invitation found")

    accepted = payload.response == schemas.AssignmentResponse.accepted
    member.status = "accepted" if accepted else "declined"
    if accepted:
        member.joined_at = datetime.utcnow()
    await NotificationService.collaboration_response(
        db, collaboration, current_user, collaboration.initiator, accepted
    )
    await db.commit()
    verb = "accepted" if accepted else "declined"
    return await _collaboration_response(db, collaboration_id, message=f"Invitation {verb}")


@router.post("/{collaboration_id}/updates", status_code=status.HTTP_201_CREATED, summary="Post an update")
async def post_update(
    collaboration_id: int,
    payload: schemas.CollaborationPost,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    collaboration = await crud.get_collaboration_or_404(db, collaboration_id)
    if not _is_member(collaboration, current_user):
        raise HTTPException(status_code=403, detail="Only collaborators can post updates")
    collaboration.updates.append(models.CollaborationUpdate(
        author_id=current_user.id, title=payload.title, content=payload.content,
        type=payload.type.value, created_at=datetime.utcnow(),
    ))
    await NotificationService.collaboration_update(
        db, collaboration, current_user, payload.title, _accepted_users(collaboration)
    )
    await db.commit()
    return await _collaboration_response(db, collaboration_id, message="Update posted successfully")


@router.post("/{collaboration_id}/milestones", status_code=status.HTTP_201_CREATED, summary="Add a milestone")
async def add_milestone(
    collaboration_id: int,
    payload: schemas.MilestoneCreate,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    collaboration = await crud.get_collaboration_or_404(db, collaboration_id)
    if not _has_permission(collaboration, current_user, "can_edit"):
        raise HTTPException(status_code=403, detail="You do not have permission to edit this collaboration")
    collaboration.milestones.append(models.CollaborationMilestone(status="pending", **payload.model_dump()))
    await db.commit()
    return await _collaboration_response(db, collaboration_id, message="Milestone added")


@router.put("/{collaboration_id}/milestones/{milestone_id}", summary="Update a milestone's status")
async def update_milestone(
    collaboration_id: int,
    milestone_id: int,
    payload: schemas.MilestoneStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    collaboration = await crud.get_collaboration_or_404(db, collaboration_id)
    if not (_is_member(collaboration, current_user) or current_user.role == "admin"):
        raise HTTPException(status_code=403, detail="Only collaborators can update milestones")
    milestone = next((m for m in collaboration.milestones if m.id == milestone_id), None)
    if not milestone:
        raise HTTPException(status_code=404, detail="Milestone not found")
    milestone.status = payload.status.value
    milestone.completed_at = datetime.utcnow() if milestone.status == "completed" else None
    await db.commit()
    return await _collaboration_response(db, collaboration_id, message="Milestone updated")

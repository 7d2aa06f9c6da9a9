from datetime import datetime, timedelta
from typing import Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal import crud, models, schemas
from portal.auth import require_admin
from portal.database import get_db
from portal.notification_service import NotificationService
from portal.review import change_status
from portal.utils import Pagination, success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])


async def _count_users(db: AsyncSession, *criteria) -> int:
    result = await db.execute(select(func.count(models.User.id)).filter(*criteria))
    return result.scalar_one()


@router.get("/stats", summary="Dashboard statistics")
async def admin_stats(db: AsyncSession = Depends(get_db), admin: models.User = Depends(require_admin)):
    week_ago = datetime.utcnow() - timedelta(days=7)
    by_role = await db.execute(
        select(models.User.role, func.count(models.User.id))
        .filter(models.User.approval_status == "approved")
        .group_by(models.User.role)
    )
    papers_by_status = await db.execute(
        select(models.ResearchPaper.status, func.count(models.ResearchPaper.id))
        .group_by(models.ResearchPaper.status)
    )
    stats = {
        "users": {
            "total": await _count_users(db),
            "pending": await _count_users(db, models.User.approval_status == "pending"),
            "approved": await _count_users(db, models.User.approval_status == "approved"),
            "rejected": await _count_users(db, models.User.approval_status == "rejected"),
            "inactive": await _count_users(db, models.User.is_active.is_(False)),
            "recentRegistrations": await _count_users(db, models.User.created_at >= week_ago),
            "byRole": {role: total for role, total in by_role.all()},
        },
        "papers": {status: total for status, total in papers_by_status.all()},
    }
    return success(stats)


def _user_list_query(approval_status: str, search: Optional[str], role: Optional[schemas.UserRole]):
    stmt = select(models.User).filter(models.User.approval_status == approval_status)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.filter(or_(
            models.User.first_name.ilike(pattern),
            models.User.last_name.ilike(pattern),
            models.User.email.ilike(pattern),
        ))
    if role:
        stmt = stmt.filter(models.User.role == role.value)
    return stmt


@router.get("/users/pending", summary="Accounts awaiting approval")
async def pending_users(
    pagination: Pagination = Depends(),
    search: Optional[str] = Query(None, max_length=100),
    role: Optional[schemas.UserRole] = None,
    db: AsyncSession = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    stmt = _user_list_query("pending", search, role)
    total = await crud.count(db, stmt)
    result = await db.execute(
        stmt.order_by(models.User.created_at.asc()).offset(pagination.offset).limit(pagination.limit)
    )
    users = [schemas.UserResponse.model_validate(u) for u in result.scalars().all()]
    return success({"users": users, "pagination": pagination.meta(total)})


@router.get("/users", summary="Approved accounts")
async def approved_users(
    pagination: Pagination = Depends(),
    search: Optional[str] = Query(None, max_length=100),
    role: Optional[schemas.UserRole] = None,
    db: AsyncSession = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    stmt = _user_list_query("approved", search, role)
    total = await crud.count(db, stmt)
    result = await db.execute(
        stmt.order_by(models.User.created_at.desc()).offset(pagination.offset).limit(pagination.limit)
    )
    users = [schemas.UserResponse.model_validate(u) for u in result.scalars().all()]
    return success({"users": users, "pagination": pagination.meta(total)})


@router.put("/users/{user_id}/approve", summary="Approve an account")
async def approve_user(
    user_id: int, db: AsyncSession = Depends(get_db), admin: models.User = Depends(require_admin)
):
    user = await crud.get_user_or_404(db, user_id)
    if user.approval_status == "approved":
        raise HTTPException(status_code=400, detail="User is already approved")

    user.approval_status = "approved"
    user.is_approved = True
    user.approved_by_id = admin.id
    user.approval_date = datetime.utcnow()
    user.rejection_reason = None
    await NotificationService.account_approved(db, user, admin)
    await db.commit()
    logger.info(f"User {user.id} approved by admin {admin.id}")
    return success({"user": schemas.UserResponse.model_validate(user)}, message="User approved successfully")


@router.put("/users/{user_id}/reject", summary="Reject an account")
async def reject_user(
    user_id: int,
    payload: Optional[schemas.RejectUserRequest] = None,
    db: AsyncSession = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    user = await crud.get_user_or_404(db, user_id)
    if user.role == "admin":
        raise HTTPException(status_code=400, detail="Admin accounts cannot be rejected")

    user.approval_status = "rejected"
    user.is_approved = False
    user.approved_by_id = admin.id
    user.approval_date = datetime.utcnow()
    user.rejection_reason = (payload.reason if payload and payload.reason else None) or "No reason provided"
    await NotificationService.account_rejected(db, user, admin)
    await db.commit()
    logger.info(f"User {user.id} rejected by admin {admin.id}")
    return success({"user": schemas.UserResponse.model_validate(user)}, message="User rejected")


@router.put("/users/{user_id}/status", summary="Activate or deactivate an account")
async def update_user_status(
    user_id: int,
    payload: schemas.UserStatusUpdate,
    db: AsyncSession = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    if user_id == admin.id and not payload.is_active:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")
    user = await crud.get_user_or_404(db, user_id)
    user.is_active = payload.is_active
    await db.commit()
    state = "activated" if payload.is_active else "deactivated"
    return success({"user": schemas.UserResponse.model_validate(user)}, message=f"User {state} successfully")


@router.put("/users/{user_id}/role", summary="Change an account's role")
async def update_user_role(
    user_id: int,
    payload: schemas.UserRoleUpdate,
    db: AsyncSession = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    if user_id == admin.id and payload.role != schemas.UserRole.admin:
        raise HTTPException(status_code=400, detail="You cannot remove your own admin role")
    user = await crud.get_user_or_404(db, user_id)
    user.role = payload.role.value
    await db.commit()
    return success({"user": schemas.UserResponse.model_validate(user)}, message="User role updated successfully")


@router.get("/papers", summary="All research papers")
async def list_papers(
    pagination: Pagination = Depends(),
    status: Optional[schemas.PaperStatus] = None,
    field: Optional[schemas.ResearchField] = None,
    search: Optional[str] = Query(None, max_length=100),
    db: AsyncSession = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    stmt = select(models.ResearchPaper)
    if status:
        stmt = stmt.filter(models.ResearchPaper.status == status.value)
    if field:
        stmt = stmt.filter(models.ResearchPaper.field == field.value)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.filter(or_(
            models.ResearchPaper.title.ilike(pattern),
            models.ResearchPaper.submission_id.ilike(pattern),
        ))
    total = await crud.count(db, stmt)
    result = await db.execute(
        stmt.options(*crud.PAPER_LOAD_OPTIONS)
        .order_by(models.ResearchPaper.updated_at.desc())
        .offset(pagination.offset).limit(pagination.limit)
    )
    papers = [schemas.PaperSummary.model_validate(p) for p in result.scalars().all()]
    return success({"papers": papers, "pagination": pagination.meta(total)})


@router.put("/papers/{paper_id}/status", summary="Change a paper's status")
async def update_paper_status(
    paper_id: int,
    payload: schemas.PaperStatusUpdate,
    db: AsyncSession = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    paper = await crud.get_paper_or_404(db, paper_id)
    await change_status(db, paper, payload, admin)
    await db.commit()
    paper = await crud.get_paper(db, paper_id)
    return success(
        {"paper": schemas.PaperSummary.model_validate(paper)},
        message=f"Paper status updated to {paper.status}",
    )

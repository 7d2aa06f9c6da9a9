"""
users.py

Public user directory and avatar management. Only approved, active accounts
are ever listed.
"""
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal import cloudinary_utils, crud, models, schemas
from portal.auth import get_current_user
from portal.database import get_db
from portal.utils import Pagination, success

router = APIRouter(prefix="/api/users", tags=["Users"])

ALLOWED_AVATAR_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif"}
MAX_AVATAR_SIZE = 5 * 1024 * 1024  # 5MB


def visible_users_query():
    return select(models.User).filter(
        models.User.approval_status == "approved",
        models.User.is_approved.is_(True),
        models.User.is_active.is_(True),
    )


@router.get("", summary="Directory of approved users")
async def list_users(
    pagination: Pagination = Depends(),
    search: Optional[str] = Query(None, max_length=100),
    role: Optional[schemas.UserRole] = None,
    department: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    stmt = visible_users_query()
    if search:
        pattern = f"%{search}%"
        stmt = stmt.filter(or_(
            models.User.first_name.ilike(pattern),
            models.User.last_name.ilike(pattern),
            models.User.email.ilike(pattern),
            models.User.institution.ilike(pattern),
        ))
    if role:
        stmt = stmt.filter(models.User.role == role.value)
    if department:
        stmt = stmt.filter(models.User.department == department)

    total = await crud.count(db, stmt)
    result = await db.execute(
        stmt.order_by(models.User.last_name, models.User.first_name)
        .offset(pagination.offset).limit(pagination.limit)
    )
    users = [schemas.PublicUser.model_validate(u) for u in result.scalars().all()]
    return success({"users": users, "pagination": pagination.meta(total)})


@router.get("/{user_id}", summary="Public profile")
async def get_user_profile(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    result = await db.execute(visible_users_query().filter(models.User.id == user_id))
    user = result.scalars().first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return success({"user": schemas.PublicUser.model_validate(user)})


@router.post("/me/avatar", summary="Upload my avatar")
async def upload_avatar(
    file: UploadFile = File(...),
    current_user: models.User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if file.content_type not in ALLOWED_AVATAR_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file type. Allowed types: JPEG, PNG, WEBP, GIF",
        )
    content = await file.read()
    if len(content) > MAX_AVATAR_SIZE:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="File size too large. Maximum size is 5MB.",
        )

    upload = await run_in_threadpool(
        cloudinary_utils.upload_avatar_to_cloudinary, content, file.filename, current_user.id
    )
    if not upload["success"]:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Failed to upload avatar: {upload['error']}",
        )
    current_user.avatar_url = upload["url"]
    current_user.avatar_public_id = upload["public_id"]
    await db.commit()
    return success({"avatarUrl": current_user.avatar_url}, message="Avatar uploaded successfully")


@router.delete("/me/avatar", summary="Remove my avatar")
async def delete_avatar(
    current_user: models.User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not current_user.avatar_public_id:
        raise HTTPException(status_code=404, detail="No avatar to delete")
    await run_in_threadpool(cloudinary_utils.delete_avatar, current_user.avatar_public_id)
    current_user.avatar_url = None
    current_user.avatar_public_id = None
    await db.commit()
    return success(message="Avatar removed")

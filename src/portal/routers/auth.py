"""
auth.py

API endpoints for registration, login and the signed-in user's own account.
"""
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from portal import auth, crud, email_service, models, schemas
from portal.database import get_db
from portal.settings import settings
from portal.utils import check_and_increment_rate_limit, client_ip, success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED, summary="Register a new account")
async def register_user(user: schemas.UserCreate, db: AsyncSession = Depends(get_db)):
    """
    Register a new account. The account starts in approval status "pending"
    and cannot sign in until an admin approves it.
    """
    if await crud.get_user_by_email(db, user.email):
        raise HTTPException(status_code=400, detail="User with this email already exists")

    user_dict = user.model_dump(exclude={"password"})
    user_dict["role"] = user.role.value
    user_dict["password_hash"] = auth.hash_password(user.password)
    user_dict.update({"is_approved": False, "approval_status": "pending", "research_interests": []})

    db_user = await crud.create_user(db, user_dict)
    await email_service.queue_welcome_email(db, db_user)
    await db.commit()
    logger.info(f"User {db_user.id} registered with role {db_user.role}; awaiting approval")

    return success(
        {"user": schemas.UserResponse.model_validate(db_user)},
        message="Registration successful. Your account is pending admin approval.",
    )


@router.post("/login", summary="Sign in")
async def login(credentials: schemas.UserLogin, request: Request, db: AsyncSession = Depends(get_db)):
    allowed = await check_and_increment_rate_limit(
        client_ip(request), settings.login_rate_limit, settings.login_rate_period, settings.redis_url
    )
    if not allowed:
        raise HTTPException(status_code=429, detail="Too many login attempts. Please try again later.")

    user = await crud.get_user_by_email(db, credentials.email)
    if not user or not auth.verify_password(credentials.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account is deactivated. Please contact support.")
    blocked = auth.approval_block_message(user)
    if blocked:
        raise HTTPException(status_code=403, detail=blocked)

    user.last_login = datetime.utcnow()
    await db.commit()

    token = auth.create_user_token(user)
    return success(
        schemas.TokenResponse(token=token, user=schemas.UserResponse.model_validate(user)),
        message="Login successful",
    )


@router.get("/me", summary="My account")
async def get_me(current_user: models.User = Depends(auth.get_current_user)):
    return success({"user": schemas.UserResponse.model_validate(current_user)})


@router.put("/me", summary="Update my profile")
async def update_me(
    update: schemas.ProfileUpdate,
    current_user: models.User = Depends(auth.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    for key, value in update.model_dump(exclude_unset=True).items():
        if value is None and key in ("first_name", "last_name"):
            continue
        setattr(current_user, key, value)
    await db.commit()
    return success({"user": schemas.UserResponse.model_validate(current_user)}, message="Profile updated successfully")


@router.put("/change-password", summary="Change my password")
async def change_password(
    payload: schemas.PasswordChange,
    current_user: models.User = Depends(auth.get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Change the password and revoke every token issued before the change."""
    if not auth.verify_password(payload.current_password, current_user.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    current_user.password_hash = auth.hash_password(payload.new_password)
    current_user.token_version = (current_user.token_version or 0) + 1
    await db.commit()
    return success({"token": auth.create_user_token(current_user)}, message="Password changed successfully")

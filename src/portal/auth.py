from passlib.context import CryptContext
from jose import JWTError, jwt
from datetime import datetime, timedelta
from typing import Optional, List
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from portal import models
from portal.database import get_db
from portal.settings import settings


"""
Authentication logic using centralized settings for secrets and config.
All dependencies are async.
"""

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


# JWT utilities
SECRET_KEY = settings.jwt_secret_key
ALGORITHM = settings.jwt_algorithm
ACCESS_TOKEN_EXPIRE_MINUTES = settings.access_token_expire_minutes


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None, token_version: int = 0):
    to_encode = data.copy()
    to_encode["token_version"] = token_version
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def create_user_token(user: models.User) -> str:
    return create_access_token(
        {"sub": str(user.id), "role": user.role}, token_version=user.token_version or 0
    )


def verify_access_token(token: str):
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


def approval_block_message(user: models.User) -> Optional[str]:
    """Message explaining why a non-admin account may not sign in, or None."""
    if user.role == "admin" or (user.is_approved and user.approval_status == "approved"):
        return None
    if user.approval_status == "rejected":
        reason = user.rejection_reason or "No reason provided"
        return f"Your account registration was rejected. Reason: {reason}"
    return "Your account is pending approval by an administrator."


bearer_scheme = HTTPBearer(auto_error=False)


async def _user_from_credentials(
    credentials: Optional[HTTPAuthorizationCredentials], db: AsyncSession
) -> models.User:
    token = credentials.credentials if credentials else None
    if not token:
        raise HTTPException(status_code=401, detail="Access denied. No token provided.")

    payload = verify_access_token(token)
    if not payload or "sub" not in payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token.")

    result = await db.execute(select(models.User).filter(models.User.id == int(payload["sub"])))
    user = result.scalars().first()

    if not user:
        raise HTTPException(status_code=401, detail="Invalid token. User not found.")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account is deactivated.")
    if payload.get("token_version") != (user.token_version or 0):
        raise HTTPException(status_code=401, detail="Token has been revoked.")
    blocked = approval_block_message(user)
    if blocked:
        raise HTTPException(status_code=403, detail=blocked)
    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db)
) -> models.User:
    """
    Async: Extract and validate the current user from the Bearer JWT token.
    """
    return await _user_from_credentials(credentials, db)


async def get_optional_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db)
) -> Optional[models.User]:
    """Like get_current_user, but anonymous requests resolve to None."""
    if not credentials:
        return None
    try:
        return await _user_from_credentials(credentials, db)
    except HTTPException:
        return None


def require_role(allowed_roles: List[str]):
    """
    Dependency factory to enforce role-based access control on endpoints.
    Usage: Depends(require_role(["faculty", "admin"]))
    """
    async def role_checker(user=Depends(get_current_user)):
        if user.role not in allowed_roles:
            raise HTTPException(status_code=403, detail="You do not have permission to perform this action.")
        return user
    return role_checker


require_admin = require_role(["admin"])
require_editor = require_role(["admin", "faculty"])

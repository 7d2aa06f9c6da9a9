"""
Create (or promote) an administrator account.

Admins cannot register through the API; run this once per deployment:

    python -m portal.create_admin --email admin@orii.org --first-name Site --last-name Admin
"""
from datetime import datetime
import argparse
import asyncio
import getpass
import logging
import sys

from sqlalchemy import select

from portal import models
from portal.auth import hash_password
from portal.database import AsyncSessionLocal, engine

logger = logging.getLogger(__name__)


async def create_admin(email: str, first_name: str, last_name: str, password: str) -> models.User:
    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        result = await db.execute(select(models.User).filter(models.User.email == email.lower()))
        user = result.scalar_one_or_none()
        if user:
            logger.info(f"Promoting existing user {user.id} to admin")
        else:
            user = models.User(
                email=email.lower(), first_name=first_name, last_name=last_name, token_version=0,
            )
            db.add(user)
        user.password_hash = hash_password(password)
        user.role = "admin"
        user.is_active = True
        user.is_approved = True
        user.email_verified = True
        user.approval_status = "approved"
        user.approval_date = datetime.utcnow()
        user.rejection_reason = None
        user.token_version = (user.token_version or 0) + 1
        await db.commit()
        return user


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create or promote an ORII portal administrator")
    parser.add_argument("--email", required=True)
    parser.add_argument("--first-name", default="Portal")
    parser.add_argument("--last-name", default="Admin")
    parser.add_argument("--password", help="Prompted for when omitted")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    password = args.password or getpass.getpass("Admin password: ")
    if len(password) < 8:
        parser.error("password must be at least 8 characters")

    async def run():
        try:
            return await create_admin(args.email, args.first_name, args.last_name, password)
        finally:
            await engine.dispose()

    user = asyncio.run(run())
    print(f"Admin ready: {user.email} (id={user.id})")
    return 0


if __name__ == "__main__":
    sys.exit(main())

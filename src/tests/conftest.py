"""
ORII research portal - test configuration and fixtures.

Every test gets a fresh in-memory SQLite database. Requests go through the
ASGI app with get_db overridden; external services (Firebase, Cloudinary,
SendGrid) are replaced with in-process fakes.
"""
import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-for-testing"
os.environ["ENV"] = "test"
os.environ["BACKGROUND_WORKERS_ENABLED"] = "false"
os.environ.pop("REDIS_URL", None)

from datetime import datetime
from typing import AsyncGenerator

import email_validator
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from portal import auth, cloudinary_utils, firebase_utils, models, utils
from portal.database import get_db
from portal.main import app

DEFAULT_PASSWORD = "Password123"

# Fixture accounts live under the reserved .test domain
if "test" in email_validator.SPECIAL_USE_DOMAIN_NAMES:
    email_validator.SPECIAL_USE_DOMAIN_NAMES.remove("test")


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for arranging data and checking results outside of requests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Test client; each request gets its own session, like get_db."""
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def storage(monkeypatch):
    """Fake Firebase bucket: path -> bytes."""
    blobs = {}

    def upload(content, path, content_type):
        blobs[path] = content
        return path

    def delete(path):
        return blobs.pop(path, None) is not None

    monkeypatch.setattr(firebase_utils, "upload_file_to_firebase", upload)
    monkeypatch.setattr(
        firebase_utils, "generate_download_url",
        lambda path, filename: f"https://storage.test/{path}?signature=test",
    )
    monkeypatch.setattr(firebase_utils, "delete_file_from_firebase", delete)
    return blobs


@pytest.fixture(autouse=True)
def avatars(monkeypatch):
    uploads = []

    def upload(content, filename, user_id):
        uploads.append(user_id)
        return {
            "success": True,
            "url": f"https://res.cloudinary.test/orii/avatars/avatar_{user_id}.png",
            "public_id": f"orii/avatars/avatar_{user_id}",
        }

    monkeypatch.setattr(cloudinary_utils, "upload_avatar_to_cloudinary", upload)
    monkeypatch.setattr(cloudinary_utils, "delete_avatar", lambda public_id: True)
    monkeypatch.setattr(
        cloudinary_utils, "get_avatar_url", lambda public_id: f"https://res.cloudinary.test/{public_id}.png"
    )
    return uploads


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Messages handed to the mail transport by the outbox worker."""
    outbox = []

    def fake_send(to, subject, body, is_html=False, text_body=None):
        outbox.append({"to": to, "subject": subject, "body": body, "text": text_body})
        return f"sg-{len(outbox)}"

    monkeypatch.setattr(utils, "send_email", fake_send)
    return outbox


@pytest.fixture
def create_user(db):
    async def _create(
        email: str,
        role: str = "researcher",
        approval_status: str = "approved",
        password: str = DEFAULT_PASSWORD,
        **fields,
    ) -> models.User:
        user = models.User(
            first_name=fields.pop("first_name", "Test"),
            last_name=fields.pop("last_name", "User"),
            email=email.lower(),
            password_hash=auth.hash_password(password),
            role=role,
            is_active=fields.pop("is_active", True),
            email_verified=True,
            is_approved=approval_status == "approved",
            approval_status=approval_status,
            approval_date=datetime.utcnow() if approval_status == "approved" else None,
            token_version=0,
            research_interests=[],
            **fields,
        )
        db.add(user)
        await db.commit()
        return user
    return _create


def token_headers(user: models.User) -> dict:
    return {"Authorization": f"Bearer {auth.create_user_token(user)}"}


@pytest.fixture
def headers_for():
    return token_headers


@pytest.fixture
async def admin_user(create_user):
    return await create_user("admin@orii.test", role="admin", first_name="Ada", last_name="Admin")


@pytest.fixture
async def researcher(create_user):
    return await create_user("researcher@orii.test", first_name="Rita", last_name="Researcher",
                             institution="ORII")


@pytest.fixture
async def faculty_user(create_user):
    return await create_user("faculty@orii.test", role="faculty", first_name="Fred", last_name="Faculty")


@pytest.fixture
def admin_headers(admin_user):
    return token_headers(admin_user)


@pytest.fixture
def researcher_headers(researcher):
    return token_headers(researcher)


@pytest.fixture
def faculty_headers(faculty_user):
    return token_headers(faculty_user)

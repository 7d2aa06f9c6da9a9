import pytest
from httpx import AsyncClient
from sqlalchemy import select

from portal import models
from portal.auth import create_access_token

REGISTRATION = {
    "firstName": "Grace",
    "lastName": "Hopper",
    "email": "Grace@Example.com",
    "password": "StrongPass1",
    "role": "researcher",
    "institution": "ORII",
}


@pytest.mark.asyncio
async def test_register_creates_pending_account(client: AsyncClient, db):
    response = await client.post("/api/auth/register", json=REGISTRATION)
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    user = body["data"]["user"]
    assert user["email"] == "grace@example.com"
    assert user["approvalStatus"] == "pending"
    assert user["isApproved"] is False
    assert "passwordHash" not in user

    result = await db.execute(select(models.EmailLog).filter(models.EmailLog.recipient_email == "grace@example.com"))
    welcome = result.scalars().one()
    assert welcome.template_name == "welcome"
    assert welcome.status == "queued"


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient):
    await client.post("/api/auth/register", json=REGISTRATION)
    response = await client.post("/api/auth/register", json={**REGISTRATION, "email": "grace@example.com"})
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "User with this email already exists"}


@pytest.mark.asyncio
async def test_register_rejects_admin_role(client: AsyncClient):
    response = await client.post("/api/auth/register", json={**REGISTRATION, "role": "admin"})
    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Validation failed"
    assert any(d["field"] == "role" for d in body["details"])


@pytest.mark.asyncio
async def test_register_weak_password(client: AsyncClient):
    response = await client.post("/api/auth/register", json={**REGISTRATION, "password": "abcdefgh"})
    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "password"


@pytest.mark.asyncio
async def test_pending_user_cannot_login(client: AsyncClient):
    await client.post("/api/auth/register", json=REGISTRATION)
    response = await client.post(
        "/api/auth/login", json={"email": "grace@example.com", "password": "StrongPass1"}
    )
    assert response.status_code == 403
    assert "pending approval" in response.json()["message"]


@pytest.mark.asyncio
async def test_wrong_password_is_unauthorized_even_when_pending(client: AsyncClient):
    await client.post("/api/auth/register", json=REGISTRATION)
    response = await client.post("/api/auth/login", json={"email": "grace@example.com", "password": "nope"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid email or password"


@pytest.mark.asyncio
async def test_rejected_user_sees_reason(client: AsyncClient, create_user):
    await create_user("rejected@orii.test", approval_status="rejected", rejection_reason="Unknown affiliation")
    response = await client.post("/api/auth/login", json={"email": "rejected@orii.test", "password": "Password123"})
    assert response.status_code == 403
    assert response.json()["message"] == (
        "Your account registration was rejected. Reason: Unknown affiliation"
    )


@pytest.mark.asyncio
async def test_login_success_returns_token(client: AsyncClient, researcher, db):
    response = await client.post(
        "/api/auth/login", json={"email": "RESEARCHER@orii.test", "password": "Password123"}
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["tokenType"] == "bearer"
    assert data["user"]["id"] == researcher.id

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['token']}"})
    assert me.status_code == 200
    assert me.json()["data"]["user"]["email"] == "researcher@orii.test"

    refreshed = await db.get(models.User, researcher.id, populate_existing=True)
    assert refreshed.last_login is not None


@pytest.mark.asyncio
async def test_deactivated_user_cannot_login(client: AsyncClient, create_user):
    await create_user("gone@orii.test", is_active=False)
    response = await client.post("/api/auth/login", json={"email": "gone@orii.test", "password": "Password123"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_missing_and_invalid_tokens(client: AsyncClient):
    response = await client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json()["message"] == "Access denied. No token provided."

    response = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_expired_token(client: AsyncClient, researcher):
    from datetime import timedelta

    token = create_access_token({"sub": str(researcher.id)}, expires_delta=timedelta(minutes=-1))
    response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_pending_user_token_is_blocked(client: AsyncClient, create_user, headers_for):
    pending = await create_user("pending@orii.test", approval_status="pending")
    response = await client.get("/api/auth/me", headers=headers_for(pending))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_update_profile(client: AsyncClient, researcher_headers):
    response = await client.put(
        "/api/auth/me",
        headers=researcher_headers,
        json={"bio": "Studies soil microbes", "researchInterests": ["ecology", "microbiology"]},
    )
    assert response.status_code == 200
    user = response.json()["data"]["user"]
    assert user["bio"] == "Studies soil microbes"
    assert user["researchInterests"] == ["ecology", "microbiology"]
    assert user["firstName"] == "Rita"


@pytest.mark.asyncio
async def test_change_password_revokes_old_tokens(client: AsyncClient, researcher_headers):
    response = await client.put(
        "/api/auth/change-password",
        headers=researcher_headers,
        json={"currentPassword": "Password123", "newPassword": "NewPassword456"},
    )
    assert response.status_code == 200
    new_token = response.json()["data"]["token"]

    old = await client.get("/api/auth/me", headers=researcher_headers)
    assert old.status_code == 401
    assert old.json()["message"] == "Token has been revoked."

    new = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {new_token}"})
    assert new.status_code == 200

    login = await client.post(
        "/api/auth/login", json={"email": "researcher@orii.test", "password": "NewPassword456"}
    )
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_change_password_wrong_current(client: AsyncClient, researcher_headers):
    response = await client.put(
        "/api/auth/change-password",
        headers=researcher_headers,
        json={"currentPassword": "wrong-one", "newPassword": "NewPassword456"},
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Current password is incorrect"

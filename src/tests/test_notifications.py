from datetime import datetime, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from portal import models
from portal.notification_service import NotificationService
from portal.schemas import NotificationType


@pytest.fixture
async def inbox(db, researcher):
    """Three notifications for the researcher, one of them expired."""
    first = await NotificationService.create(db, researcher, NotificationType.general, "First", "one")
    second = await NotificationService.create(db, researcher, NotificationType.system_announcement, "Second", "two")
    expired = await NotificationService.create(db, researcher, NotificationType.general, "Old", "gone")
    expired.expires_at = datetime.utcnow() - timedelta(days=1)
    await db.commit()
    return first, second, expired


@pytest.mark.asyncio
async def test_list_skips_expired(client: AsyncClient, researcher_headers, inbox):
    response = await client.get("/api/notifications", headers=researcher_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert [n["title"] for n in data["notifications"]] == ["Second", "First"]
    assert data["unreadCount"] == 2
    assert data["pagination"]["totalItems"] == 2


@pytest.mark.asyncio
async def test_filter_by_type(client: AsyncClient, researcher_headers, inbox):
    response = await client.get("/api/notifications?type=system_announcement", headers=researcher_headers)
    assert [n["title"] for n in response.json()["data"]["notifications"]] == ["Second"]


@pytest.mark.asyncio
async def test_mark_read_and_unread_only(client: AsyncClient, researcher_headers, inbox):
    first, _, _ = inbox
    response = await client.put(f"/api/notifications/{first.id}/read", headers=researcher_headers)
    assert response.status_code == 200
    notification = response.json()["data"]["notification"]
    assert notification["isRead"] is True
    assert notification["readAt"] is not None

    unread = await client.get("/api/notifications?unreadOnly=true", headers=researcher_headers)
    assert [n["title"] for n in unread.json()["data"]["notifications"]] == ["Second"]
    count = await client.get("/api/notifications/unread-count", headers=researcher_headers)
    assert count.json()["data"]["unreadCount"] == 1


@pytest.mark.asyncio
async def test_mark_all_read(client: AsyncClient, researcher_headers, inbox):
    response = await client.put("/api/notifications/read-all", headers=researcher_headers)
    assert response.status_code == 200
    count = await client.get("/api/notifications/unread-count", headers=researcher_headers)
    assert count.json()["data"]["unreadCount"] == 0


@pytest.mark.asyncio
async def test_other_users_notifications_are_hidden(client: AsyncClient, faculty_headers, inbox):
    first, _, _ = inbox
    assert (await client.put(f"/api/notifications/{first.id}/read", headers=faculty_headers)).status_code == 404
    assert (await client.delete(f"/api/notifications/{first.id}", headers=faculty_headers)).status_code == 404


@pytest.mark.asyncio
async def test_delete_notification(client: AsyncClient, researcher_headers, inbox, db):
    first, _, _ = inbox
    response = await client.delete(f"/api/notifications/{first.id}", headers=researcher_headers)
    assert response.status_code == 200
    result = await db.execute(select(models.Notification).filter(models.Notification.id == first.id))
    assert result.scalars().first() is None


@pytest.mark.asyncio
async def test_announcement_reaches_approved_users(
    client: AsyncClient, admin_headers, researcher, faculty_user, create_user, db
):
    await create_user("waiting@orii.test", approval_status="pending")
    response = await client.post(
        "/api/notifications/announcements",
        headers=admin_headers,
        json={"title": "Maintenance", "message": "The portal is down on Sunday.", "sendEmail": True},
    )
    assert response.status_code == 201
    assert response.json()["data"]["recipients"] == 3

    result = await db.execute(
        select(models.EmailLog).filter(models.EmailLog.template_name == "notification")
    )
    assert sorted(e.recipient_email for e in result.scalars().all()) == [
        "admin@orii.test", "faculty@orii.test", "researcher@orii.test",
    ]


@pytest.mark.asyncio
async def test_targeted_announcement(client: AsyncClient, admin_headers, researcher, faculty_user, researcher_headers):
    response = await client.post(
        "/api/notifications/announcements",
        headers=admin_headers,
        json={"title": "Lab meeting", "message": "Friday 10am.", "recipientIds": [researcher.id], "priority": "high"},
    )
    assert response.json()["data"]["recipients"] == 1
    inbox = await client.get("/api/notifications", headers=researcher_headers)
    notification = inbox.json()["data"]["notifications"][0]
    assert notification["priority"] == "high"
    assert notification["type"] == "system_announcement"
    assert notification["emailSent"] is False


@pytest.mark.asyncio
async def test_only_admins_announce(client: AsyncClient, faculty_headers):
    response = await client.post(
        "/api/notifications/announcements", headers=faculty_headers, json={"title": "Hi", "message": "there"}
    )
    assert response.status_code == 403

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from portal import models

ENQUIRY = {
    "name": "Jane Journalist",
    "email": "Jane@News.test",
    "subject": "Interview request",
    "message": "I would like to interview your soil team next week.",
    "category": "media-inquiry",
}


async def submit(client: AsyncClient, **overrides) -> dict:
    response = await client.post(
        "/api/contact", json={**ENQUIRY, **overrides}, headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]["contact"]


@pytest.mark.asyncio
async def test_submit_enquiry(client: AsyncClient, db):
    contact = await submit(client)
    assert contact["status"] == "new"
    assert contact["email"] == "jane@news.test"

    stored = await db.get(models.Contact, contact["id"])
    assert stored.ip_address == "203.0.113.7"


@pytest.mark.asyncio
async def test_short_message_is_rejected(client: AsyncClient):
    response = await client.post("/api/contact", json={**ENQUIRY, "message": "hi"})
    assert response.status_code == 400
    assert response.json()["details"][0]["field"] == "message"


@pytest.mark.asyncio
async def test_admin_listing_and_filters(client: AsyncClient, admin_headers, researcher_headers):
    await submit(client)
    await submit(client, category="partnership", subject="Partnership proposal")

    assert (await client.get("/api/contact", headers=researcher_headers)).status_code == 403

    response = await client.get("/api/contact?category=partnership", headers=admin_headers)
    assert [c["subject"] for c in response.json()["data"]["contacts"]] == ["Partnership proposal"]

    stats = await client.get("/api/contact/stats", headers=admin_headers)
    data = stats.json()["data"]
    assert data["byStatus"] == {"new": 2}
    assert data["byCategory"] == {"media-inquiry": 1, "partnership": 1}


@pytest.mark.asyncio
async def test_respond_queues_reply(client: AsyncClient, admin_headers, admin_user, db):
    contact = await submit(client)
    response = await client.post(
        f"/api/contact/{contact['id']}/respond",
        headers=admin_headers,
        json={"response": "Happy to arrange it. Please call our office."},
    )
    assert response.status_code == 200
    data = response.json()["data"]["contact"]
    assert data["status"] == "resolved"
    assert data["respondedById"] == admin_user.id

    result = await db.execute(select(models.EmailLog).filter(models.EmailLog.template_name == "contact_reply"))
    reply = result.scalars().one()
    assert reply.recipient_email == "jane@news.test"
    assert "Happy to arrange it." in reply.html_content


@pytest.mark.asyncio
async def test_spam_cannot_be_answered(client: AsyncClient, admin_headers):
    contact = await submit(client)
    spam = await client.put(f"/api/contact/{contact['id']}/spam", headers=admin_headers)
    assert spam.json()["data"]["contact"]["status"] == "spam"

    response = await client.post(
        f"/api/contact/{contact['id']}/respond", headers=admin_headers, json={"response": "Thanks"}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_status_update_and_delete(client: AsyncClient, admin_headers):
    contact = await submit(client)
    response = await client.put(
        f"/api/contact/{contact['id']}/status", headers=admin_headers, json={"status": "in_progress"}
    )
    assert response.json()["data"]["contact"]["status"] == "in_progress"

    assert (await client.delete(f"/api/contact/{contact['id']}", headers=admin_headers)).status_code == 200
    assert (await client.get(f"/api/contact/{contact['id']}", headers=admin_headers)).status_code == 404

from datetime import datetime, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from portal import email_service, models, utils, worker
from portal.notification_service import NotificationService
from portal.schemas import NotificationType

TEMPLATE = {
    "name": "lab_newsletter",
    "category": "newsletter",
    "subject": "{{ lab }} newsletter",
    "htmlContent": "<p>Hello {{ user_name }}, news from {{ lab }}.</p>",
    "variables": ["lab"],
}


def queue(db, to="reader@orii.test", subject="Hello"):
    return email_service.queue_email(db, to_email=to, subject=subject, html_content="<p>Hi</p>")


def later(minutes: int = 1) -> datetime:
    return datetime.utcnow() + timedelta(minutes=minutes)


@pytest.mark.asyncio
async def test_outbox_delivers_queued_email(db, sent_emails):
    entry = queue(db)
    await db.commit()

    counts = await worker.deliver_pending(db, now=later())
    assert counts == {"sent": 1, "retried": 0, "failed": 0}
    assert sent_emails == [{"to": "reader@orii.test", "subject": "Hello", "body": "<p>Hi</p>", "text": None}]

    stored = await db.get(models.EmailLog, entry.id, populate_existing=True)
    assert stored.status == "sent"
    assert stored.attempts == 1
    assert stored.message_id == "sg-1"
    assert stored.sent_at is not None

    assert await worker.deliver_pending(db, now=later()) == {"sent": 0, "retried": 0, "failed": 0}


@pytest.mark.asyncio
async def test_delivery_marks_notification(db, researcher):
    notification = await NotificationService.create(
        db, researcher, NotificationType.general, "Lab closed", "The lab is closed on Friday.", send_email=True
    )
    await db.commit()

    await worker.deliver_pending(db, now=later())
    stored = await db.get(models.Notification, notification.id, populate_existing=True)
    assert stored.email_sent is True
    assert stored.email_sent_at is not None


@pytest.mark.asyncio
async def test_failed_delivery_backs_off_then_fails(db, monkeypatch):
    def refuse(to, subject, body, is_html=False, text_body=None):
        raise utils.EmailDeliveryError("SendGrid error 503")

    monkeypatch.setattr(utils, "send_email", refuse)
    entry = queue(db)
    await db.commit()

    now = later()
    counts = await worker.deliver_pending(db, now=now)
    assert counts == {"sent": 0, "retried": 1, "failed": 0}
    stored = await db.get(models.EmailLog, entry.id, populate_existing=True)
    assert stored.status == "queued"
    assert stored.last_error == "SendGrid error 503"
    assert stored.next_attempt_at == now + worker.backoff_delay(1)

    # not due again until the backoff has elapsed
    assert await worker.deliver_pending(db, now=now) == {"sent": 0, "retried": 0, "failed": 0}

    for day in range(1, 5):
        counts = await worker.deliver_pending(db, now=now + timedelta(days=day))
    assert counts == {"sent": 0, "retried": 0, "failed": 1}
    stored = await db.get(models.EmailLog, entry.id, populate_existing=True)
    assert stored.status == "failed"
    assert stored.attempts == 5


@pytest.mark.asyncio
async def test_unexpected_send_error_is_recorded_as_failed_attempt(db, monkeypatch):
    def broken(to, subject, body, is_html=False, text_body=None):
        raise ValueError("invalid recipient")

    monkeypatch.setattr(utils, "send_email", broken)
    entry = queue(db)
    await db.commit()

    now = later()
    counts = await worker.deliver_pending(db, now=now)
    assert counts == {"sent": 0, "retried": 1, "failed": 0}
    stored = await db.get(models.EmailLog, entry.id, populate_existing=True)
    assert stored.status == "queued"
    assert stored.attempts == 1
    assert stored.last_error == "invalid recipient"
    assert stored.next_attempt_at == now + worker.backoff_delay(1)


def test_backoff_doubles():
    assert worker.backoff_delay(1) == timedelta(seconds=60)
    assert worker.backoff_delay(2) == timedelta(seconds=120)
    assert worker.backoff_delay(4) == timedelta(seconds=480)


@pytest.mark.asyncio
async def test_recover_stale_requeues_sending_rows(db, session_factory):
    entry = queue(db)
    entry.status = "sending"
    await db.commit()

    outbox = worker.EmailOutboxWorker(interval_seconds=1, session_factory=session_factory)
    await outbox.recover_stale()
    stored = await db.get(models.EmailLog, entry.id, populate_existing=True)
    assert stored.status == "queued"


@pytest.mark.asyncio
async def test_retry_failed_email(client: AsyncClient, db, admin_headers):
    entry = queue(db)
    entry.status = "failed"
    entry.attempts = 5
    entry.last_error = "bounced"
    await db.commit()

    response = await client.post(f"/api/admin/email/logs/{entry.id}/retry", headers=admin_headers)
    assert response.status_code == 200
    log = response.json()["data"]["log"]
    assert log["status"] == "queued"
    assert log["attempts"] == 0
    assert log["lastError"] is None

    again = await client.post(f"/api/admin/email/logs/{entry.id}/retry", headers=admin_headers)
    assert again.status_code == 400


@pytest.mark.asyncio
async def test_template_crud_and_versioning(client: AsyncClient, admin_headers):
    response = await client.post("/api/admin/email/templates", headers=admin_headers, json=TEMPLATE)
    assert response.status_code == 201
    template = response.json()["data"]["template"]
    assert template["version"] == 1
    assert template["isSystem"] is False

    duplicate = await client.post("/api/admin/email/templates", headers=admin_headers, json=TEMPLATE)
    assert duplicate.status_code == 400

    updated = await client.put(
        f"/api/admin/email/templates/{template['id']}",
        headers=admin_headers,
        json={"subject": "{{ lab }} monthly"},
    )
    assert updated.json()["data"]["template"]["version"] == 2

    described = await client.put(
        f"/api/admin/email/templates/{template['id']}",
        headers=admin_headers,
        json={"description": "Monthly lab news"},
    )
    assert described.json()["data"]["template"]["version"] == 2

    preview = await client.post(
        f"/api/admin/email/templates/{template['id']}/preview",
        headers=admin_headers,
        json={"variables": {"lab": "Soil Lab", "user_name": "Rita"}},
    )
    assert preview.json()["data"]["preview"]["subject"] == "Soil Lab monthly"
    assert preview.json()["data"]["preview"]["htmlContent"] == "<p>Hello Rita, news from Soil Lab.</p>"

    deleted = await client.delete(f"/api/admin/email/templates/{template['id']}", headers=admin_headers)
    assert deleted.status_code == 200
    missing = await client.get(f"/api/admin/email/templates/{template['id']}", headers=admin_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_system_template_cannot_be_deleted(client: AsyncClient, db, admin_headers):
    template = models.EmailTemplate(
        name="welcome", category="user-management", subject="Hi", html_content="<p>Hi</p>",
        variables=[], is_active=True, is_system=True, version=1, usage_count=0,
    )
    db.add(template)
    await db.commit()
    response = await client.delete(f"/api/admin/email/templates/{template.id}", headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_stored_template_overrides_builtin(client: AsyncClient, db, admin_headers):
    override = {
        "name": "welcome",
        "category": "user-management",
        "subject": "Welcome aboard, {{ user_name }}",
        "htmlContent": "<p>Custom welcome for {{ user_name }}</p>",
    }
    response = await client.post("/api/admin/email/templates", headers=admin_headers, json=override)
    template_id = response.json()["data"]["template"]["id"]

    await client.post(
        "/api/auth/register",
        json={
            "firstName": "Grace", "lastName": "Hopper", "email": "grace@orii.test",
            "password": "StrongPass1", "role": "researcher",
        },
    )
    result = await db.execute(
        select(models.EmailLog).filter(models.EmailLog.recipient_email == "grace@orii.test")
    )
    assert result.scalars().one().subject == "Welcome aboard, Grace Hopper"
    stored = await db.get(models.EmailTemplate, template_id, populate_existing=True)
    assert stored.usage_count == 1


@pytest.mark.asyncio
async def test_render_unknown_template(db):
    from fastapi import HTTPException

    with pytest.raises(HTTPException) as excinfo:
        await email_service.render_template(db, "does_not_exist", {})
    assert excinfo.value.status_code == 404


@pytest.mark.asyncio
async def test_send_custom_email(client: AsyncClient, admin_headers, researcher, db):
    response = await client.post(
        "/api/admin/email/send",
        headers=admin_headers,
        json={
            "recipientIds": [researcher.id],
            "recipientEmails": ["guest@orii.test", "RESEARCHER@orii.test"],
            "subject": "Update for {{ user_name }}",
            "htmlContent": "<p>Hello</p>",
        },
    )
    assert response.status_code == 200
    assert response.json()["data"]["queued"] == 2

    result = await db.execute(select(models.EmailLog).order_by(models.EmailLog.recipient_email))
    subjects = {e.recipient_email: e.subject for e in result.scalars().all()}
    assert subjects == {
        "guest@orii.test": "Update for guest@orii.test",
        "researcher@orii.test": "Update for Rita Researcher",
    }


@pytest.mark.asyncio
async def test_send_requires_content(client: AsyncClient, admin_headers):
    response = await client.post(
        "/api/admin/email/send", headers=admin_headers, json={"recipientEmails": ["guest@orii.test"]}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_logs_and_stats(client: AsyncClient, db, admin_headers):
    queue(db, to="one@orii.test")
    failed = queue(db, to="two@orii.test")
    failed.status = "failed"
    await db.commit()

    logs = await client.get("/api/admin/email/logs?status=failed", headers=admin_headers)
    assert [e["recipientEmail"] for e in logs.json()["data"]["logs"]] == ["two@orii.test"]

    stats = await client.get("/api/admin/email/stats", headers=admin_headers)
    data = stats.json()["data"]
    assert data["byStatus"] == {"queued": 1, "failed": 1}
    assert data["deliveryRate"] == 0.0


@pytest.mark.asyncio
async def test_email_admin_requires_admin(client: AsyncClient, faculty_headers):
    response = await client.get("/api/admin/email/logs", headers=faculty_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_only_html_bodies_are_escaped(client: AsyncClient, researcher_headers, create_user, db):
    from tests.test_papers import BASIC_INFO

    await create_user("coauthor@orii.test")
    response = await client.post(
        "/api/research", headers=researcher_headers, json={**BASIC_INFO, "title": 'R&D <Soil> "Field"'}
    )
    paper_id = response.json()["data"]["id"]
    await client.post(
        f"/api/research/{paper_id}/authors", headers=researcher_headers, json={"email": "coauthor@orii.test"}
    )

    result = await db.execute(
        select(models.EmailLog).filter(models.EmailLog.recipient_email == "coauthor@orii.test")
    )
    email = result.scalars().one()
    assert email.subject == "You were added as a co-author"
    assert 'author of "R&D <Soil> "Field""' in email.text_content
    assert "R&amp;D &lt;Soil&gt;" in email.html_content
    assert "<Soil>" not in email.html_content


def test_subjects_are_rendered_verbatim():
    subject = email_service.render_string("Reminder: {{ event_title }}", {"event_title": "Q&A <live>"})
    assert subject == "Reminder: Q&A <live>"
    html = email_service.render_string("<p>{{ event_title }}</p>", {"event_title": "Q&A <live>"}, html=True)
    assert html == "<p>Q&amp;A &lt;live&gt;</p>"

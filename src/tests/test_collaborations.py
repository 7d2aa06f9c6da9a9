import pytest
from httpx import AsyncClient
from sqlalchemy import select

from portal import models

PROJECT = {
    "title": "Drought-resilient soils",
    "description": "Joint field study across three sites.",
    "type": "research_project",
    "visibility": "private",
    "researchAreas": ["ecology"],
    "milestones": [{"title": "Site selection"}],
}


@pytest.fixture
async def project(client: AsyncClient, researcher_headers) -> dict:
    response = await client.post("/api/collaborations", headers=researcher_headers, json=PROJECT)
    assert response.status_code == 201, response.text
    return response.json()["data"]["collaboration"]


async def invite(client: AsyncClient, headers: dict, collaboration_id: int, email: str, **extra):
    return await client.post(
        f"/api/collaborations/{collaboration_id}/invite", headers=headers, json={"email": email, **extra}
    )


@pytest.mark.asyncio
async def test_initiator_is_lead(project, researcher):
    members = project["collaborators"]
    assert len(members) == 1
    assert members[0]["user"]["id"] == researcher.id
    assert members[0]["role"] == "lead"
    assert members[0]["canManage"] is True
    assert project["milestones"][0]["status"] == "pending"


@pytest.mark.asyncio
async def test_private_collaboration_is_hidden(client: AsyncClient, project, faculty_headers, admin_headers):
    assert (await client.get(f"/api/collaborations/{project['id']}", headers=faculty_headers)).status_code == 403
    assert (await client.get(f"/api/collaborations/{project['id']}", headers=admin_headers)).status_code == 200


@pytest.mark.asyncio
async def test_invite_and_accept(
    client: AsyncClient, project, researcher_headers, faculty_user, faculty_headers, researcher, db
):
    response = await invite(
        client, researcher_headers, project["id"], "faculty@orii.test", role="advisor", message="Join us"
    )
    assert response.status_code == 201
    pending = next(c for c in response.json()["data"]["collaboration"]["collaborators"]
                   if c["user"]["id"] == faculty_user.id)
    assert pending["status"] == "pending"
    assert pending["role"] == "advisor"

    # invitees can look before answering
    assert (await client.get(f"/api/collaborations/{project['id']}", headers=faculty_headers)).status_code == 200
    stats = await client.get("/api/collaborations/stats", headers=faculty_headers)
    assert stats.json()["data"]["pendingInvitations"] == 1

    duplicate = await invite(client, researcher_headers, project["id"], "faculty@orii.test")
    assert duplicate.status_code == 400

    accepted = await client.patch(
        f"/api/collaborations/{project['id']}/respond", headers=faculty_headers, json={"response": "accepted"}
    )
    assert accepted.status_code == 200
    member = next(c for c in accepted.json()["data"]["collaboration"]["collaborators"]
                  if c["user"]["id"] == faculty_user.id)
    assert member["status"] == "accepted"
    assert member["joinedAt"] is not None

    result = await db.execute(
        select(models.Notification).filter(models.Notification.type == "collaboration_response")
    )
    assert result.scalars().one().recipient_id == researcher.id

    listing = await client.get("/api/collaborations", headers=faculty_headers)
    assert [c["id"] for c in listing.json()["data"]["collaborations"]] == [project["id"]]


@pytest.mark.asyncio
async def test_invitation_notification_and_email(client: AsyncClient, project, researcher_headers, faculty_user, db):
    await invite(client, researcher_headers, project["id"], "faculty@orii.test")
    result = await db.execute(
        select(models.EmailLog).filter(models.EmailLog.template_name == "collaboration_invitation")
    )
    email = result.scalars().one()
    assert email.recipient_email == "faculty@orii.test"
    assert email.subject == "Rita Researcher invited you to collaborate on Drought-resilient soils"


@pytest.mark.asyncio
async def test_declined_invitation_can_be_renewed(client: AsyncClient, project, researcher_headers, faculty_headers):
    await invite(client, researcher_headers, project["id"], "faculty@orii.test")
    await client.patch(
        f"/api/collaborations/{project['id']}/respond", headers=faculty_headers, json={"response": "declined"}
    )
    again = await client.patch(
        f"/api/collaborations/{project['id']}/respond", headers=faculty_headers, json={"response": "accepted"}
    )
    assert again.status_code == 404

    renewed = await invite(client, researcher_headers, project["id"], "faculty@orii.test")
    assert renewed.status_code == 201
    statuses = [c["status"] for c in renewed.json()["data"]["collaboration"]["collaborators"]]
    assert sorted(statuses) == ["accepted", "pending"]


@pytest.mark.asyncio
async def test_invite_unknown_user(client: AsyncClient, project, researcher_headers):
    response = await invite(client, researcher_headers, project["id"], "nobody@orii.test")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_members_without_invite_permission(
    client: AsyncClient, project, researcher_headers, faculty_headers, admin_user
):
    await invite(client, researcher_headers, project["id"], "faculty@orii.test")
    await client.patch(
        f"/api/collaborations/{project['id']}/respond", headers=faculty_headers, json={"response": "accepted"}
    )
    response = await invite(client, faculty_headers, project["id"], "admin@orii.test")
    assert response.status_code == 403

    update = await client.put(
        f"/api/collaborations/{project['id']}", headers=faculty_headers, json={"title": "Renamed"}
    )
    assert update.status_code == 403


@pytest.mark.asyncio
async def test_updates_and_milestones(client: AsyncClient, project, researcher_headers, faculty_headers, faculty_user, db):
    await invite(client, researcher_headers, project["id"], "faculty@orii.test")
    await client.patch(
        f"/api/collaborations/{project['id']}/respond", headers=faculty_headers, json={"response": "accepted"}
    )

    posted = await client.post(
        f"/api/collaborations/{project['id']}/updates",
        headers=researcher_headers,
        json={"title": "Sites chosen", "content": "We picked three sites in Karnataka."},
    )
    assert posted.status_code == 201
    assert posted.json()["data"]["collaboration"]["updates"][0]["title"] == "Sites chosen"

    result = await db.execute(
        select(models.Notification).filter(models.Notification.type == "collaboration_update")
    )
    assert [n.recipient_id for n in result.scalars().all()] == [faculty_user.id]

    milestone_id = project["milestones"][0]["id"]
    done = await client.put(
        f"/api/collaborations/{project['id']}/milestones/{milestone_id}",
        headers=faculty_headers,
        json={"status": "completed"},
    )
    milestone = done.json()["data"]["collaboration"]["milestones"][0]
    assert milestone["status"] == "completed"
    assert milestone["completedAt"] is not None

    forbidden = await client.post(
        f"/api/collaborations/{project['id']}/milestones", headers=faculty_headers, json={"title": "Sampling"}
    )
    assert forbidden.status_code == 403
    added = await client.post(
        f"/api/collaborations/{project['id']}/milestones", headers=researcher_headers, json={"title": "Sampling"}
    )
    assert len(added.json()["data"]["collaboration"]["milestones"]) == 2


@pytest.mark.asyncio
async def test_outsiders_cannot_post(client: AsyncClient, project, faculty_headers):
    response = await client.post(
        f"/api/collaborations/{project['id']}/updates", headers=faculty_headers, json={"title": "Hi", "content": "x"}
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_completion_notifies_members(client: AsyncClient, project, researcher_headers, faculty_headers, faculty_user, db):
    await invite(client, researcher_headers, project["id"], "faculty@orii.test")
    await client.patch(
        f"/api/collaborations/{project['id']}/respond", headers=faculty_headers, json={"response": "accepted"}
    )
    response = await client.put(
        f"/api/collaborations/{project['id']}", headers=researcher_headers, json={"status": "completed"}
    )
    assert response.status_code == 200
    data = response.json()["data"]["collaboration"]
    assert data["status"] == "completed"
    assert data["completedAt"] is not None

    result = await db.execute(
        select(models.Notification).filter(models.Notification.type == "collaboration_completion")
    )
    assert [n.recipient_id for n in result.scalars().all()] == [faculty_user.id]

    closed = await invite(client, researcher_headers, project["id"], "admin@orii.test")
    assert closed.status_code == 400


@pytest.mark.asyncio
async def test_delete_collaboration(client: AsyncClient, project, researcher_headers, faculty_headers):
    assert (await client.delete(f"/api/collaborations/{project['id']}", headers=faculty_headers)).status_code == 403
    assert (await client.delete(f"/api/collaborations/{project['id']}", headers=researcher_headers)).status_code == 200
    assert (await client.get(f"/api/collaborations/{project['id']}", headers=researcher_headers)).status_code == 404

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from portal import models
from tests.test_papers import create_draft, upload_manuscript

REVIEW = {
    "overallRating": 4,
    "recommendation": "minor_revision",
    "commentsOverall": "Solid work; the discussion needs tightening.",
    "confidentialComments": "Borderline on novelty.",
}


async def submitted_paper(client: AsyncClient, headers: dict, **submit) -> dict:
    paper = await create_draft(client, headers)
    await client.post(f"/api/research/{paper['id']}/authors/confirm", headers=headers)
    await upload_manuscript(client, headers, paper["id"])
    response = await client.post(f"/api/research/{paper['id']}/submit", headers=headers, json=submit or None)
    assert response.status_code == 200, response.text
    return response.json()["data"]


async def assign(client: AsyncClient, headers: dict, paper_id: int, reviewer_id: int):
    return await client.post(
        f"/api/research/{paper_id}/reviewers", headers=headers, json={"reviewerId": reviewer_id}
    )


@pytest.mark.asyncio
async def test_assignment_moves_paper_under_review(
    client: AsyncClient, researcher_headers, admin_headers, faculty_user, db
):
    paper = await submitted_paper(client, researcher_headers)
    response = await assign(client, admin_headers, paper["id"], faculty_user.id)
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["status"] == "under_review"
    assert data["timeline"]["reviewStartedAt"] is not None
    assigned = data["reviewProcess"]["assignedReviewers"]
    assert [(a["reviewer"]["id"], a["status"]) for a in assigned] == [(faculty_user.id, "pending")]

    result = await db.execute(
        select(models.Notification).filter(models.Notification.type == "paper_review_assigned")
    )
    assert result.scalars().one().recipient_id == faculty_user.id

    again = await assign(client, admin_headers, paper["id"], faculty_user.id)
    assert again.status_code == 400


@pytest.mark.asyncio
async def test_only_editors_assign(client: AsyncClient, researcher_headers, faculty_user):
    paper = await submitted_paper(client, researcher_headers)
    response = await assign(client, researcher_headers, paper["id"], faculty_user.id)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_cannot_assign_to_draft(client: AsyncClient, researcher_headers, admin_headers, faculty_user):
    paper = await create_draft(client, researcher_headers)
    response = await assign(client, admin_headers, paper["id"], faculty_user.id)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_excluded_reviewer_and_author_are_refused(
    client: AsyncClient, researcher_headers, admin_headers, faculty_user, researcher
):
    paper = await submitted_paper(client, researcher_headers, excludedReviewers=["Faculty@orii.test"])
    excluded = await assign(client, admin_headers, paper["id"], faculty_user.id)
    assert excluded.status_code == 400
    assert excluded.json()["message"] == "This reviewer was excluded by the authors"

    author = await assign(client, admin_headers, paper["id"], researcher.id)
    assert author.status_code == 400


@pytest.mark.asyncio
async def test_pending_reviewer_is_refused(client: AsyncClient, researcher_headers, admin_headers, create_user):
    pending = await create_user("newcomer@orii.test", role="faculty", approval_status="pending")
    paper = await submitted_paper(client, researcher_headers)
    response = await assign(client, admin_headers, paper["id"], pending.id)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_reviewer_can_view_and_respond(
    client: AsyncClient, researcher_headers, admin_headers, faculty_user, faculty_headers
):
    paper = await submitted_paper(client, researcher_headers)
    await assign(client, admin_headers, paper["id"], faculty_user.id)

    assigned = await client.get("/api/research/assigned", headers=faculty_headers)
    assert [p["id"] for p in assigned.json()["data"]["papers"]] == [paper["id"]]

    response = await client.patch(
        f"/api/research/{paper['id']}/reviewers/me", headers=faculty_headers, json={"response": "accepted"}
    )
    assert response.status_code == 200
    assignment = response.json()["data"]["assignment"]
    assert assignment["status"] == "accepted"
    assert assignment["acceptedAt"] is not None

    twice = await client.patch(
        f"/api/research/{paper['id']}/reviewers/me", headers=faculty_headers, json={"response": "declined"}
    )
    assert twice.status_code == 400


@pytest.mark.asyncio
async def test_declined_reviewer_cannot_review(
    client: AsyncClient, researcher_headers, admin_headers, faculty_user, faculty_headers
):
    paper = await submitted_paper(client, researcher_headers)
    await assign(client, admin_headers, paper["id"], faculty_user.id)
    await client.patch(
        f"/api/research/{paper['id']}/reviewers/me", headers=faculty_headers, json={"response": "declined"}
    )
    response = await client.post(f"/api/research/{paper['id']}/reviews", headers=faculty_headers, json=REVIEW)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unassigned_user_cannot_review(client: AsyncClient, researcher_headers, faculty_headers):
    paper = await submitted_paper(client, researcher_headers)
    response = await client.post(f"/api/research/{paper['id']}/reviews", headers=faculty_headers, json=REVIEW)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_review_visibility(
    client: AsyncClient, researcher_headers, admin_headers, faculty_user, faculty_headers, db
):
    paper = await submitted_paper(client, researcher_headers)
    await assign(client, admin_headers, paper["id"], faculty_user.id)

    response = await client.post(f"/api/research/{paper['id']}/reviews", headers=faculty_headers, json=REVIEW)
    assert response.status_code == 201
    own = response.json()["data"]["reviewProcess"]
    assert own["assignedReviewers"][0]["status"] == "completed"
    assert own["reviews"][0]["confidentialComments"] == "Borderline on novelty."

    duplicate = await client.post(f"/api/research/{paper['id']}/reviews", headers=faculty_headers, json=REVIEW)
    assert duplicate.status_code == 400

    author_view = await client.get(f"/api/research/{paper['id']}", headers=researcher_headers)
    review = author_view.json()["data"]["reviewProcess"]["reviews"][0]
    assert review["confidentialComments"] is None
    assert review["reviewer"] is None
    assert review["recommendation"] == "minor_revision"

    editor_view = await client.get(f"/api/research/{paper['id']}", headers=admin_headers)
    review = editor_view.json()["data"]["reviewProcess"]["reviews"][0]
    assert review["reviewer"]["id"] == faculty_user.id

    result = await db.execute(
        select(models.Notification).filter(models.Notification.type == "paper_review_completed")
    )
    assert result.scalars().one().recipient_id == paper["submittedById"]


@pytest.mark.asyncio
async def test_revision_cycle_through_publication(
    client: AsyncClient, researcher_headers, admin_headers, faculty_user, faculty_headers
):
    paper = await submitted_paper(client, researcher_headers)
    paper_id = paper["id"]
    await assign(client, admin_headers, paper_id, faculty_user.id)
    await client.post(f"/api/research/{paper_id}/reviews", headers=faculty_headers, json=REVIEW)

    response = await client.put(
        f"/api/research/{paper_id}/decision",
        headers=admin_headers,
        json={"decision": "minor_revision", "comments": "Please address the reviewer's points."},
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "revision_required"
    assert data["reviewProcess"]["editorialDecision"]["decision"] == "minor_revision"

    revised = await upload_manuscript(client, researcher_headers, paper_id, changes="Tightened discussion")
    assert revised.json()["data"]["currentVersion"] == 2
    resubmitted = await client.post(f"/api/research/{paper_id}/submit", headers=researcher_headers)
    assert resubmitted.status_code == 200
    data = resubmitted.json()["data"]
    assert data["status"] == "revised_submitted"
    assert data["timeline"]["revisedAt"] is not None

    accepted = await client.put(
        f"/api/research/{paper_id}/decision", headers=admin_headers, json={"decision": "accept"}
    )
    assert accepted.json()["data"]["status"] == "accepted"

    hidden = await client.get(f"/api/research/{paper_id}")
    assert hidden.status_code == 404

    published = await client.put(
        f"/api/admin/papers/{paper_id}/status",
        headers=admin_headers,
        json={"status": "published", "publication": {"journal": "ORII Letters", "doi": "10.1234/orii.1"}},
    )
    assert published.status_code == 200
    data = published.json()["data"]["paper"]
    assert data["status"] == "published"
    assert data["isPublic"] is True
    public = await client.get(f"/api/research/{paper_id}")
    assert public.status_code == 200
    assert public.json()["data"]["journal"] == "ORII Letters"
    assert public.json()["data"]["metrics"]["views"] == 1
    listing = await client.get("/api/research")
    assert [p["id"] for p in listing.json()["data"]["papers"]] == [paper_id]


@pytest.mark.asyncio
async def test_illegal_status_change(client: AsyncClient, researcher_headers, admin_headers):
    paper = await create_draft(client, researcher_headers)
    response = await client.put(
        f"/api/admin/papers/{paper['id']}/status", headers=admin_headers, json={"status": "published"}
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Cannot change paper status from draft to published"


@pytest.mark.asyncio
async def test_rejected_paper_cannot_be_reopened_by_decision(
    client: AsyncClient, researcher_headers, admin_headers, faculty_user
):
    paper = await submitted_paper(client, researcher_headers)
    await assign(client, admin_headers, paper["id"], faculty_user.id)

    rejected = await client.put(
        f"/api/research/{paper['id']}/decision", headers=admin_headers, json={"decision": "reject"}
    )
    assert rejected.json()["data"]["status"] == "rejected"
    assert rejected.json()["data"]["timeline"]["finalDecisionAt"] is not None

    reopened = await client.put(
        f"/api/research/{paper['id']}/decision", headers=admin_headers, json={"decision": "accept"}
    )
    assert reopened.status_code == 400
    assert reopened.json()["message"] == "A decision cannot be recorded for a paper in status rejected"

    stored = await client.get(f"/api/research/{paper['id']}", headers=admin_headers)
    assert stored.json()["data"]["status"] == "rejected"
    assert stored.json()["data"]["reviewProcess"]["editorialDecision"]["decision"] == "reject"


@pytest.mark.asyncio
async def test_revision_must_be_resubmitted_before_acceptance(
    client: AsyncClient, researcher_headers, admin_headers, faculty_user
):
    paper = await submitted_paper(client, researcher_headers)
    await assign(client, admin_headers, paper["id"], faculty_user.id)
    await client.put(
        f"/api/research/{paper['id']}/decision", headers=admin_headers, json={"decision": "major_revision"}
    )

    response = await client.put(
        f"/api/research/{paper['id']}/decision", headers=admin_headers, json={"decision": "accept"}
    )
    assert response.status_code == 400
    stored = await client.get(f"/api/research/{paper['id']}", headers=admin_headers)
    assert stored.json()["data"]["status"] == "revision_required"


@pytest.mark.asyncio
async def test_decision_needs_a_paper_under_review(client: AsyncClient, researcher_headers, admin_headers):
    paper = await submitted_paper(client, researcher_headers)
    response = await client.put(
        f"/api/research/{paper['id']}/decision", headers=admin_headers, json={"decision": "accept"}
    )
    assert response.status_code == 400

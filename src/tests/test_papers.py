import re

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from portal import models

BASIC_INFO = {
    "title": "Soil microbiome resilience under drought",
    "abstract": "We measure how soil microbial communities recover after prolonged drought.",
    "keywords": ["soil", " microbiome ", ""],
    "field": "biology",
    "researchType": "original_research",
    "methodology": "experimental",
}
PDF = ("manuscript.pdf", b"%PDF-1.4 test manuscript", "application/pdf")


async def create_draft(client: AsyncClient, headers: dict) -> dict:
    response = await client.post("/api/research", headers=headers, json=BASIC_INFO)
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def upload_manuscript(client: AsyncClient, headers: dict, paper_id: int, changes=None):
    data = {"changes": changes} if changes else None
    return await client.post(
        f"/api/research/{paper_id}/upload-manuscript", headers=headers, files={"file": PDF}, data=data
    )


@pytest.mark.asyncio
async def test_create_draft(client: AsyncClient, researcher_headers, researcher, db):
    paper = await create_draft(client, researcher_headers)
    assert re.fullmatch(r"ORII-\d{8}-[A-Z0-9]{6}", paper["submissionId"])
    assert paper["status"] == "draft"
    assert paper["keywords"] == ["soil", "microbiome"]
    assert paper["completionPercentage"] == 20
    assert paper["submissionProgress"]["step1_basic_info"]["completed"] is True
    assert paper["submissionProgress"]["step2_authors"]["completed"] is False

    authors = paper["authors"]
    assert len(authors) == 1
    assert authors[0]["role"] == "primary_author"
    assert authors[0]["isCorresponding"] is True
    assert authors[0]["user"]["id"] == researcher.id

    result = await db.execute(
        select(models.Notification).filter(models.Notification.type == "paper_draft_created")
    )
    assert result.scalars().one().recipient_id == researcher.id


@pytest.mark.asyncio
async def test_create_minimal_draft(client: AsyncClient, researcher_headers, researcher):
    response = await client.post(
        "/api/research",
        headers=researcher_headers,
        json={
            "title": "T",
            "abstract": "A",
            "keywords": ["x"],
            "field": "computer_science",
            "researchType": "original_research",
        },
    )
    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["submissionProgress"]["step1_basic_info"]["completed"] is True
    assert len(body["data"]["authors"]) == 1
    assert body["data"]["authors"][0]["user"]["id"] == researcher.id
    assert body["data"]["authors"][0]["role"] == "primary_author"
    assert body["data"]["authors"][0]["isCorresponding"] is True


@pytest.mark.asyncio
async def test_create_draft_requires_keywords(client: AsyncClient, researcher_headers):
    response = await client.post("/api/research", headers=researcher_headers, json={**BASIC_INFO, "keywords": [" "]})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_manuscript_before_authors_is_rejected(client: AsyncClient, researcher_headers):
    paper = await create_draft(client, researcher_headers)
    response = await upload_manuscript(client, researcher_headers, paper["id"])
    assert response.status_code == 400
    assert "authors step" in response.json()["message"]


@pytest.mark.asyncio
async def test_add_coauthor_and_corresponding(client: AsyncClient, researcher_headers, create_user, db):
    coauthor = await create_user("coauthor@orii.test", first_name="Carl", last_name="Coauthor")
    paper = await create_draft(client, researcher_headers)

    response = await client.post(
        f"/api/research/{paper['id']}/authors",
        headers=researcher_headers,
        json={"email": "coauthor@orii.test", "isCorresponding": True, "contribution": "Field sampling"},
    )
    assert response.status_code == 200
    updated = response.json()["data"]
    assert updated["submissionProgress"]["step2_authors"]["completed"] is True
    corresponding = [a for a in updated["authors"] if a["isCorresponding"]]
    assert len(corresponding) == 1
    assert corresponding[0]["user"]["id"] == coauthor.id
    assert [a["order"] for a in updated["authors"]] == [1, 2]

    duplicate = await client.post(
        f"/api/research/{paper['id']}/authors", headers=researcher_headers, json={"userId": coauthor.id}
    )
    assert duplicate.status_code == 400

    result = await db.execute(
        select(models.Notification).filter(models.Notification.type == "paper_author_added")
    )
    assert result.scalars().one().recipient_id == coauthor.id


@pytest.mark.asyncio
async def test_unknown_author(client: AsyncClient, researcher_headers):
    paper = await create_draft(client, researcher_headers)
    response = await client.post(
        f"/api/research/{paper['id']}/authors", headers=researcher_headers, json={"email": "nobody@orii.test"}
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_remove_corresponding_author_falls_back_to_primary(client: AsyncClient, researcher_headers, create_user):
    await create_user("coauthor@orii.test")
    paper = await create_draft(client, researcher_headers)
    response = await client.post(
        f"/api/research/{paper['id']}/authors",
        headers=researcher_headers,
        json={"email": "coauthor@orii.test", "role": "corresponding_author"},
    )
    coauthor_entry = next(a for a in response.json()["data"]["authors"] if a["order"] == 2)
    assert coauthor_entry["isCorresponding"] is True

    response = await client.delete(
        f"/api/research/{paper['id']}/authors/{coauthor_entry['id']}", headers=researcher_headers
    )
    assert response.status_code == 200
    authors = response.json()["data"]["authors"]
    assert len(authors) == 1
    assert authors[0]["isCorresponding"] is True

    primary = await client.delete(
        f"/api/research/{paper['id']}/authors/{authors[0]['id']}", headers=researcher_headers
    )
    assert primary.status_code == 400


@pytest.mark.asyncio
async def test_only_authors_can_edit(client: AsyncClient, researcher_headers, create_user, headers_for):
    outsider = await create_user("outsider@orii.test")
    paper = await create_draft(client, researcher_headers)
    response = await client.put(
        f"/api/research/{paper['id']}/basic-info", headers=headers_for(outsider), json={"title": "Hijacked"}
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_manuscript_versions(client: AsyncClient, researcher_headers, storage):
    paper = await create_draft(client, researcher_headers)
    await client.post(f"/api/research/{paper['id']}/authors/confirm", headers=researcher_headers)

    first = await upload_manuscript(client, researcher_headers, paper["id"])
    assert first.status_code == 200
    data = first.json()["data"]
    assert data["currentVersion"] == 1
    assert data["manuscript"]["version"] == 1
    assert data["versions"][0]["changes"] == "Initial submission"

    second = await upload_manuscript(client, researcher_headers, paper["id"], changes="Fixed figure 2")
    data = second.json()["data"]
    assert data["currentVersion"] == 2
    assert data["manuscript"]["version"] == 2
    assert [v["version"] for v in data["versions"]] == [1, 2]
    assert data["versions"][1]["changes"] == "Fixed figure 2"
    assert data["completionPercentage"] == 60
    assert len(storage) == 2


@pytest.mark.asyncio
async def test_manuscript_rejects_bad_type(client: AsyncClient, researcher_headers):
    paper = await create_draft(client, researcher_headers)
    await client.post(f"/api/research/{paper['id']}/authors/confirm", headers=researcher_headers)
    response = await client.post(
        f"/api/research/{paper['id']}/upload-manuscript",
        headers=researcher_headers,
        files={"file": ("run.exe", b"MZ", "application/x-msdownload")},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_supplementary_and_figures(client: AsyncClient, researcher_headers):
    paper = await create_draft(client, researcher_headers)
    response = await client.post(
        f"/api/research/{paper['id']}/upload-supplementary",
        headers=researcher_headers,
        files=[
            ("files", ("data.txt", b"raw data", "text/plain")),
            ("files", ("appendix.pdf", b"%PDF appendix", "application/pdf")),
        ],
        data={"descriptions": ["Raw measurements", "Appendix"]},
    )
    assert response.status_code == 200
    supplementary = response.json()["data"]["supplementaryMaterials"]
    assert [s["description"] for s in supplementary] == ["Raw measurements", "Appendix"]

    response = await client.post(
        f"/api/research/{paper['id']}/upload-figures",
        headers=researcher_headers,
        files=[("files", ("fig1.png", b"\x89PNG figure", "image/png"))],
        data={"captions": ["Recovery curve"]},
    )
    assert response.status_code == 200
    figures = response.json()["data"]["figures"]
    assert figures[0]["caption"] == "Recovery curve"
    assert figures[0]["order"] == 1


@pytest.mark.asyncio
async def test_submit_requires_all_steps(client: AsyncClient, researcher_headers):
    paper = await create_draft(client, researcher_headers)
    response = await client.post(f"/api/research/{paper['id']}/submit", headers=researcher_headers)
    assert response.status_code == 400
    assert response.json()["success"] is False
    assert response.json()["message"] == (
        "Please complete all required steps before submitting. Missing: authors, manuscript"
    )

    stored = await client.get(f"/api/research/{paper['id']}", headers=researcher_headers)
    assert stored.json()["data"]["status"] == "draft"
    assert stored.json()["data"]["timeline"]["submittedAt"] is None


@pytest.mark.asyncio
async def test_full_submission_notifies_authors(client: AsyncClient, researcher_headers, create_user, db):
    coauthor = await create_user("coauthor@orii.test")
    paper = await create_draft(client, researcher_headers)
    await client.post(
        f"/api/research/{paper['id']}/authors", headers=researcher_headers, json={"email": "coauthor@orii.test"}
    )
    await upload_manuscript(client, researcher_headers, paper["id"])

    response = await client.post(
        f"/api/research/{paper['id']}/submit",
        headers=researcher_headers,
        json={"excludedReviewers": ["Rival@Other.org"], "coverLetter": "Dear editor"},
    )
    assert response.status_code == 200
    submitted = response.json()["data"]
    assert submitted["status"] == "submitted"
    assert submitted["completionPercentage"] == 100
    assert submitted["timeline"]["submittedAt"] is not None
    assert submitted["excludedReviewers"] == ["rival@other.org"]

    result = await db.execute(
        select(models.Notification).filter(models.Notification.type == "paper_submission")
    )
    recipients = sorted(n.recipient_id for n in result.scalars().all())
    assert recipients == sorted([submitted["submittedById"], coauthor.id])

    again = await client.post(f"/api/research/{paper['id']}/submit", headers=researcher_headers)
    assert again.status_code == 400


@pytest.mark.asyncio
async def test_paper_visibility(client: AsyncClient, researcher_headers, create_user, headers_for):
    outsider = await create_user("outsider@orii.test")
    paper = await create_draft(client, researcher_headers)

    anonymous = await client.get(f"/api/research/{paper['id']}")
    assert anonymous.status_code == 404
    forbidden = await client.get(f"/api/research/{paper['id']}", headers=headers_for(outsider))
    assert forbidden.status_code == 403
    own = await client.get(f"/api/research/{paper['id']}", headers=researcher_headers)
    assert own.status_code == 200
    assert own.json()["data"]["metrics"]["views"] == 0


@pytest.mark.asyncio
async def test_my_papers(client: AsyncClient, researcher_headers):
    await create_draft(client, researcher_headers)
    await create_draft(client, researcher_headers)
    response = await client.get("/api/research/mine", headers=researcher_headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["pagination"]["totalItems"] == 2
    assert all(p["status"] == "draft" for p in data["papers"])


@pytest.mark.asyncio
async def test_delete_draft_removes_files(client: AsyncClient, researcher_headers, storage):
    paper = await create_draft(client, researcher_headers)
    await client.post(f"/api/research/{paper['id']}/authors/confirm", headers=researcher_headers)
    await upload_manuscript(client, researcher_headers, paper["id"])
    assert storage

    response = await client.delete(f"/api/research/{paper['id']}", headers=researcher_headers)
    assert response.status_code == 200
    assert storage == {}
    missing = await client.get(f"/api/research/{paper['id']}", headers=researcher_headers)
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_withdraw(client: AsyncClient, researcher_headers):
    paper = await create_draft(client, researcher_headers)
    response = await client.post(f"/api/research/{paper['id']}/withdraw", headers=researcher_headers)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "withdrawn"

    edit = await client.put(
        f"/api/research/{paper['id']}/basic-info", headers=researcher_headers, json={"title": "Too late"}
    )
    assert edit.status_code == 400

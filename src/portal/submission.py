"""
submission.py

Research paper submission workflow: the five-step wizard, author management,
file uploads and the paper status machine.

Wizard steps complete strictly in order. ResearchPaper.completed_step holds
the highest completed step; completing a step whose predecessor is open is
rejected, and re-completing a finished step is a no-op.
"""
import enum
import logging
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from portal import crud, firebase_utils, models, schemas
from portal.notification_service import NotificationService
from portal.settings import settings
from portal.utils import generate_submission_id

logger = logging.getLogger(__name__)


class SubmissionStep(enum.IntEnum):
    BASIC_INFO = 1
    AUTHORS = 2
    MANUSCRIPT = 3
    REVIEW = 4
    SUBMIT = 5

    @property
    def key(self) -> str:
        return models.SUBMISSION_STEP_KEYS[self.value - 1]

    @property
    def label(self) -> str:
        return self.name.replace("_", " ").lower()


def ensure_step_ready(paper: models.ResearchPaper, step: SubmissionStep) -> None:
    """Raise 400 unless every step before `step` is complete."""
    completed = paper.completed_step or 0
    if step > completed + 1:
        missing = SubmissionStep(completed + 1)
        raise HTTPException(
            status_code=400,
            detail=f"Complete the {missing.label} step before the {step.label} step.",
        )


def complete_step(paper: models.ResearchPaper, step: SubmissionStep) -> bool:
    """
    Mark `step` complete. Returns False when it was already complete.
    Raises HTTPException(400) when an earlier step is still open.
    """
    if (paper.completed_step or 0) >= step:
        return False
    ensure_step_ready(paper, step)
    paper.completed_step = int(step)
    setattr(paper, f"step{int(step)}_completed_at", datetime.utcnow())
    return True


# Paper status machine

PAPER_STATUS_TRANSITIONS = {
    "draft": {"submitted", "withdrawn"},
    "submitted": {"under_review", "rejected", "withdrawn"},
    "under_review": {"revision_required", "accepted", "rejected", "withdrawn"},
    "revision_required": {"revised_submitted", "withdrawn"},
    "revised_submitted": {"under_review", "revision_required", "accepted", "rejected", "withdrawn"},
    "accepted": {"published"},
    "rejected": set(),
    "published": set(),
    "withdrawn": set(),
}

EDITABLE_STATUSES = {"draft", "revision_required"}


def transition_status(paper: models.ResearchPaper, new_status: str) -> str:
    """Move the paper to `new_status`, stamping the timeline. Returns the old status."""
    old_status = paper.status
    if new_status not in PAPER_STATUS_TRANSITIONS.get(old_status, set()):
        raise HTTPException(
            status_code=400,
            detail=f"Cannot change paper status from {old_status} to {new_status}",
        )
    now = datetime.utcnow()
    paper.status = new_status
    if new_status == "submitted":
        paper.submitted_at = now
        paper.submission_date = now
    elif new_status == "under_review" and not paper.review_started_at:
        paper.review_started_at = now
    elif new_status == "revision_required" and not paper.first_decision_at:
        paper.first_decision_at = now
    elif new_status == "revised_submitted":
        paper.revised_at = now
    elif new_status in ("accepted", "rejected"):
        paper.first_decision_at = paper.first_decision_at or now
        paper.final_decision_at = now
    elif new_status == "published":
        paper.published_at = now
    return old_status


# Access control

EDITOR_ROLES = ("admin", "faculty")


def is_editor(user: Optional[models.User]) -> bool:
    return bool(user) and user.role in EDITOR_ROLES


def is_author(paper: models.ResearchPaper, user: models.User) -> bool:
    return paper.submitted_by_id == user.id or any(a.user_id == user.id for a in paper.authors)


def is_assigned_reviewer(paper: models.ResearchPaper, user: models.User) -> bool:
    return any(a.reviewer_id == user.id and a.status != "declined" for a in paper.assignments)


def can_view(paper: models.ResearchPaper, user: Optional[models.User]) -> bool:
    if paper.is_public and paper.status == "published":
        return True
    if not user:
        return False
    return is_editor(user) or is_author(paper, user) or is_assigned_reviewer(paper, user)


def ensure_can_edit(paper: models.ResearchPaper, user: models.User) -> None:
    if not is_author(paper, user):
        raise HTTPException(status_code=403, detail="Only the paper's authors can modify it")
    if paper.status not in EDITABLE_STATUSES:
        raise HTTPException(
            status_code=400, detail=f"A paper in status {paper.status} cannot be modified"
        )


def author_users(paper: models.ResearchPaper) -> List[models.User]:
    """Submitter and authors, de-duplicated, in author order."""
    users = {paper.submitted_by.id: paper.submitted_by}
    for author in paper.authors:
        users.setdefault(author.user.id, author.user)
    return list(users.values())


# Response shaping

def serialize_paper(paper: models.ResearchPaper, viewer: Optional[models.User]) -> schemas.PaperResponse:
    """
    Paper response for `viewer`. Editors see the whole review process;
    reviewers see their own assignment and review; authors see reviews
    without confidential comments and without anonymous reviewers' identities.
    """
    response = schemas.PaperResponse.model_validate(paper)
    if not viewer:
        return response

    editor = is_editor(viewer)
    author = is_author(paper, viewer)
    if not (editor or author or is_assigned_reviewer(paper, viewer)):
        return response

    assignments = [
        schemas.AssignmentOut.model_validate(a)
        for a in paper.assignments
        if editor or a.reviewer_id == viewer.id
    ]
    reviews = []
    for review in paper.reviews:
        own = review.reviewer_id == viewer.id
        if not (editor or author or own):
            continue
        out = schemas.ReviewOut.model_validate(review)
        if not (editor or own):
            out.confidential_comments = None
            if review.is_anonymous:
                out.reviewer = None
        reviews.append(out)

    decision = paper.editorial_decision
    response.review_process = schemas.ReviewProcessOut(
        assigned_reviewers=assignments,
        reviews=reviews,
        editorial_decision=schemas.EditorialDecisionOut.model_validate(decision) if decision else None,
    )
    return response


# Wizard operations

async def create_draft(
    db: AsyncSession, user: models.User, basic_info: schemas.PaperBasicInfo
) -> models.ResearchPaper:
    data = basic_info.model_dump()
    paper = models.ResearchPaper(
        submission_id=generate_submission_id(),
        title=data["title"],
        abstract=data["abstract"],
        keywords=data["keywords"],
        field=data["field"].value,
        subfield=data.get("subfield"),
        research_type=data["research_type"].value,
        methodology=data["methodology"].value if data.get("methodology") else None,
        submitted_by_id=user.id,
        status="draft",
        completed_step=0,
        suggested_reviewers=[],
        excluded_reviewers=[],
    )
    paper.authors.append(
        models.PaperAuthor(
            user_id=user.id,
            order=1,
            role=schemas.AuthorRole.primary_author.value,
            affiliation=user.institution or user.department,
            is_corresponding=True,
        )
    )
    complete_step(paper, SubmissionStep.BASIC_INFO)
    db.add(paper)
    await db.flush()
    await NotificationService.paper_draft_created(db, paper, user)
    logger.info(f"Draft {paper.submission_id} created by user {user.id}")
    return paper


def update_basic_info(
    paper: models.ResearchPaper, user: models.User, update: schemas.PaperBasicInfoUpdate
) -> models.ResearchPaper:
    ensure_can_edit(paper, user)
    for key, value in update.model_dump(exclude_unset=True).items():
        if value is None and key in ("title", "abstract", "keywords", "field", "research_type"):
            continue
        setattr(paper, key, value.value if isinstance(value, enum.Enum) else value)
    complete_step(paper, SubmissionStep.BASIC_INFO)
    return paper


def _set_corresponding(paper: models.ResearchPaper, target: models.PaperAuthor) -> None:
    for author in paper.authors:
        author.is_corresponding = author is target


async def add_author(
    db: AsyncSession, paper: models.ResearchPaper, user: models.User, payload: schemas.AuthorCreate
) -> models.PaperAuthor:
    ensure_can_edit(paper, user)
    if payload.user_id is not None:
        new_user = await crud.get_user(db, payload.user_id)
    else:
        new_user = await crud.get_user_by_email(db, payload.email)
    if not new_user:
        raise HTTPException(
            status_code=404,
            detail="User not found. Authors must have an account on the platform.",
        )
    if any(a.user_id == new_user.id for a in paper.authors):
        raise HTTPException(status_code=400, detail="User is already an author of this paper")

    order = payload.order or max((a.order for a in paper.authors), default=0) + 1
    author = models.PaperAuthor(
        user_id=new_user.id,
        order=order,
        role=payload.role.value,
        affiliation=payload.affiliation or new_user.institution,
        contribution=payload.contribution,
        is_corresponding=False,
    )
    author.user = new_user
    paper.authors.append(author)
    paper.authors.sort(key=lambda a: (a.order, a.id or 0))
    if payload.is_corresponding or payload.role == schemas.AuthorRole.corresponding_author:
        _set_corresponding(paper, author)
    complete_step(paper, SubmissionStep.AUTHORS)
    await db.flush()
    await NotificationService.paper_author_added(db, paper, new_user, user)
    return author


def confirm_authors(paper: models.ResearchPaper, user: models.User) -> None:
    ensure_can_edit(paper, user)
    complete_step(paper, SubmissionStep.AUTHORS)


def _find_author(paper: models.ResearchPaper, author_id: int) -> models.PaperAuthor:
    author = next((a for a in paper.authors if a.id == author_id), None)
    if not author:
        raise HTTPException(status_code=404, detail="Author not found on this paper")
    return author


def remove_author(paper: models.ResearchPaper, user: models.User, author_id: int) -> None:
    ensure_can_edit(paper, user)
    author = _find_author(paper, author_id)
    if author.role == schemas.AuthorRole.primary_author.value:
        raise HTTPException(status_code=400, detail="The primary author cannot be removed")
    paper.authors.remove(author)
    if author.is_corresponding:
        primary = next(a for a in paper.authors if a.role == schemas.AuthorRole.primary_author.value)
        _set_corresponding(paper, primary)


def set_corresponding_author(paper: models.ResearchPaper, user: models.User, author_id: int) -> None:
    ensure_can_edit(paper, user)
    _set_corresponding(paper, _find_author(paper, author_id))


# Uploads

ALLOWED_MIME_TYPES = {
    "application/pdf": ".pdf",
    "application/msword": ".doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/tiff": ".tiff",
    "text/plain": ".txt",
}
MAX_SUPPLEMENTARY_FILES = 10
MAX_FIGURES = 20


async def _read_upload(file: UploadFile) -> bytes:
    if file.content_type not in ALLOWED_MIME_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file type {file.content_type}. Allowed types: "
            f"{', '.join(sorted(set(ALLOWED_MIME_TYPES.values())))}",
        )
    content = await file.read()
    if len(content) > settings.max_upload_size:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {settings.max_upload_size // (1024 * 1024)}MB.",
        )
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    return content


async def _store(paper: models.ResearchPaper, kind: str, file: UploadFile, content: bytes) -> models.PaperFile:
    stored_name = f"{uuid.uuid4().hex}{ALLOWED_MIME_TYPES[file.content_type]}"
    path = f"papers/{paper.submission_id}/{kind}/{stored_name}"
    await run_in_threadpool(firebase_utils.upload_file_to_firebase, content, path, file.content_type)
    return models.PaperFile(
        kind=kind,
        filename=stored_name,
        original_name=file.filename or stored_name,
        storage_path=path,
        size=len(content),
        mime_type=file.content_type,
        uploaded_at=datetime.utcnow(),
    )


async def upload_manuscript(
    db: AsyncSession, paper: models.ResearchPaper, user: models.User, file: UploadFile,
    changes: Optional[str] = None,
) -> models.PaperFile:
    """Replace the manuscript and append a version entry."""
    ensure_can_edit(paper, user)
    ensure_step_ready(paper, SubmissionStep.MANUSCRIPT)
    content = await _read_upload(file)
    stored = await _store(paper, "manuscript", file, content)

    previous = paper.manuscript
    if previous:
        paper.files.remove(previous)
    version = paper.current_version + 1
    stored.version = version
    stored.uploaded_by_id = user.id
    paper.files.append(stored)
    paper.versions.append(
        models.PaperVersion(
            version=version,
            filename=stored.original_name,
            storage_path=stored.storage_path,
            changes=changes or ("Initial submission" if version == 1 else None),
            uploaded_by_id=user.id,
            uploaded_at=stored.uploaded_at,
        )
    )
    complete_step(paper, SubmissionStep.MANUSCRIPT)
    await NotificationService.manuscript_uploaded(db, paper, user, version)
    return stored


async def upload_supplementary(
    paper: models.ResearchPaper, user: models.User, files: List[UploadFile],
    descriptions: Optional[List[str]] = None,
) -> List[models.PaperFile]:
    ensure_can_edit(paper, user)
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded")
    if len(paper.supplementary_materials) + len(files) > MAX_SUPPLEMENTARY_FILES:
        raise HTTPException(
            status_code=400,
            detail=f"A paper can have at most {MAX_SUPPLEMENTARY_FILES} supplementary files",
        )
    descriptions = descriptions or []
    contents = [await _read_upload(f) for f in files]
    next_order = len(paper.supplementary_materials)
    stored = []
    for index, (file, content) in enumerate(zip(files, contents)):
        entry = await _store(paper, "supplementary", file, content)
        entry.description = descriptions[index] if index < len(descriptions) else None
        entry.order = next_order + index + 1
        entry.uploaded_by_id = user.id
        paper.files.append(entry)
        stored.append(entry)
    return stored


async def upload_figures(
    paper: models.ResearchPaper, user: models.User, files: List[UploadFile],
    captions: Optional[List[str]] = None, orders: Optional[List[int]] = None,
) -> List[models.PaperFile]:
    ensure_can_edit(paper, user)
    if not files:
        raise HTTPException(status_code=400, detail="No files uploaded")
    if len(paper.figures) + len(files) > MAX_FIGURES:
        raise HTTPException(status_code=400, detail=f"A paper can have at most {MAX_FIGURES} figures")
    captions = captions or []
    orders = orders or []
    contents = [await _read_upload(f) for f in files]
    next_order = len(paper.figures)
    stored = []
    for index, (file, content) in enumerate(zip(files, contents)):
        entry = await _store(paper, "figure", file, content)
        entry.caption = captions[index] if index < len(captions) else None
        entry.order = orders[index] if index < len(orders) else next_order + index + 1
        entry.uploaded_by_id = user.id
        paper.files.append(entry)
        stored.append(entry)
    paper.files.sort(key=lambda f: (f.kind, f.order or 0))
    return stored


# Submission

async def submit_paper(
    db: AsyncSession, paper: models.ResearchPaper, user: models.User, payload: schemas.SubmitPaperRequest
) -> models.ResearchPaper:
    ensure_can_edit(paper, user)
    missing = [
        step.label for step in (SubmissionStep.BASIC_INFO, SubmissionStep.AUTHORS, SubmissionStep.MANUSCRIPT)
        if (paper.completed_step or 0) < step
    ]
    if missing or not paper.manuscript:
        if not missing:
            missing = [SubmissionStep.MANUSCRIPT.label]
        raise HTTPException(
            status_code=400,
            detail=f"Please complete all required steps before submitting. Missing: {', '.join(missing)}",
        )

    resubmission = paper.status == "revision_required"
    transition_status(paper, "revised_submitted" if resubmission else "submitted")
    paper.suggested_reviewers = [e.lower() for e in payload.suggested_reviewers]
    paper.excluded_reviewers = [e.lower() for e in payload.excluded_reviewers]
    if payload.cover_letter is not None:
        paper.cover_letter = payload.cover_letter
    complete_step(paper, SubmissionStep.REVIEW)
    complete_step(paper, SubmissionStep.SUBMIT)

    submitter = paper.submitted_by
    co_authors = [a.user for a in paper.authors if a.user_id != submitter.id]
    await NotificationService.paper_submitted(db, paper, submitter, co_authors)
    logger.info(f"Paper {paper.submission_id} submitted by user {user.id} (resubmission={resubmission})")
    return paper


async def withdraw_paper(
    db: AsyncSession, paper: models.ResearchPaper, user: models.User
) -> models.ResearchPaper:
    if not is_author(paper, user):
        raise HTTPException(status_code=403, detail="Only the paper's authors can withdraw it")
    old_status = transition_status(paper, "withdrawn")
    others = [u for u in author_users(paper) if u.id != user.id]
    await NotificationService.paper_status_changed(db, paper, others, old_status, user)
    return paper


async def delete_paper(db: AsyncSession, paper: models.ResearchPaper, user: models.User) -> None:
    if paper.submitted_by_id != user.id:
        raise HTTPException(status_code=403, detail="Only the submitter can delete this paper")
    if paper.status != "draft":
        raise HTTPException(status_code=400, detail="Only draft papers can be deleted")
    paths = [f.storage_path for f in paper.files] + [v.storage_path for v in paper.versions]
    await db.delete(paper)
    await db.flush()
    for path in set(paths):
        await run_in_threadpool(firebase_utils.delete_file_from_firebase, path)

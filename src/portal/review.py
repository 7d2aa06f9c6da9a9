"""
review.py

Peer-review process for research papers: reviewer assignment, reviewer
responses, review submission, the single-slot editorial decision and
explicit status changes by administrators.
"""
import logging
from datetime import datetime

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from portal import crud, models, schemas
from portal.notification_service import NotificationService
from portal.submission import author_users, is_author, transition_status

logger = logging.getLogger(__name__)

REVIEWABLE_STATUSES = {"submitted", "under_review", "revised_submitted"}

DECISION_STATUS = {
    "accept": "accepted",
    "minor_revision": "revision_required",
    "major_revision": "revision_required",
    "reject": "rejected",
}
DECIDABLE_STATUSES = {"under_review", "revised_submitted"}


def _assignment_for(paper: models.ResearchPaper, reviewer_id: int):
    return next((a for a in paper.assignments if a.reviewer_id == reviewer_id), None)


async def assign_reviewer(
    db: AsyncSession, paper: models.ResearchPaper, payload: schemas.AssignReviewerRequest, actor: models.User
) -> models.ReviewAssignment:
    if paper.status not in REVIEWABLE_STATUSES:
        raise HTTPException(
            status_code=400, detail=f"Reviewers cannot be assigned to a paper in status {paper.status}"
        )
    reviewer = await crud.get_user_or_404(db, payload.reviewer_id)
    if not reviewer.is_active or (reviewer.role != "admin" and reviewer.approval_status != "approved"):
        raise HTTPException(status_code=400, detail="Reviewer account is not active and approved")
    if is_author(paper, reviewer):
        raise HTTPException(status_code=400, detail="Authors cannot review their own paper")
    excluded = {e.lower() for e in (paper.excluded_reviewers or [])}
    if reviewer.email.lower() in excluded:
        raise HTTPException(status_code=400, detail="This reviewer was excluded by the authors")
    if _assignment_for(paper, reviewer.id):
        raise HTTPException(status_code=400, detail="Reviewer is already assigned to this paper")

    assignment = models.ReviewAssignment(
        reviewer_id=reviewer.id,
        assigned_by_id=actor.id,
        assigned_at=datetime.utcnow(),
        due_date=payload.due_date,
        status="pending",
    )
    assignment.reviewer = reviewer
    paper.assignments.append(assignment)
    if paper.status in ("submitted", "revised_submitted"):
        transition_status(paper, "under_review")

    await NotificationService.review_assigned(db, paper, reviewer, actor, payload.due_date)
    logger.info(f"Reviewer {reviewer.id} assigned to paper {paper.submission_id} by {actor.id}")
    return assignment


def respond_to_assignment(
    paper: models.ResearchPaper, reviewer: models.User, response: schemas.AssignmentResponse
) -> models.ReviewAssignment:
    assignment = _assignment_for(paper, reviewer.id)
    if not assignment:
        raise HTTPException(status_code=404, detail="You are not assigned to review this paper")
    if assignment.status != "pending":
        raise HTTPException(status_code=400, detail=f"Assignment is already {assignment.status}")
    assignment.status = response.value
    if response == schemas.AssignmentResponse.accepted:
        assignment.accepted_at = datetime.utcnow()
    return assignment


async def submit_review(
    db: AsyncSession, paper: models.ResearchPaper, reviewer: models.User, payload: schemas.ReviewCreate
) -> models.Review:
    """Record a review; the reviewer's assignment becomes completed."""
    assignment = _assignment_for(paper, reviewer.id)
    if not assignment or assignment.status == "declined":
        raise HTTPException(status_code=403, detail="You are not assigned to review this paper")
    if assignment.status == "completed":
        raise HTTPException(status_code=400, detail="You have already reviewed this paper")
    if paper.status != "under_review":
        raise HTTPException(status_code=400, detail=f"Paper in status {paper.status} is not under review")

    now = datetime.utcnow()
    review = models.Review(reviewer_id=reviewer.id, submitted_at=now, **payload.model_dump())
    review.recommendation = payload.recommendation.value
    review.reviewer = reviewer
    paper.reviews.append(review)
    assignment.status = "completed"
    assignment.accepted_at = assignment.accepted_at or now
    assignment.completed_at = now
    await db.flush()

    await NotificationService.review_submitted(db, paper, review, paper.submitted_by)
    return review


async def record_decision(
    db: AsyncSession, paper: models.ResearchPaper, payload: schemas.EditorialDecisionRequest, actor: models.User
) -> models.ResearchPaper:
    """Write the single editorial decision slot, overwriting any earlier decision."""
    if paper.status not in DECIDABLE_STATUSES:
        raise HTTPException(
            status_code=400, detail=f"A decision cannot be recorded for a paper in status {paper.status}"
        )
    decision = payload.decision.value
    new_status = DECISION_STATUS[decision]
    transition_status(paper, new_status)
    paper.decision = decision
    paper.decision_comments = payload.comments
    paper.decided_by_id = actor.id
    paper.decided_at = datetime.utcnow()
    paper.revision_due_date = payload.revision_due_date if new_status == "revision_required" else None

    await NotificationService.editorial_decision(db, paper, author_users(paper), actor)
    logger.info(f"Decision {decision} recorded for paper {paper.submission_id} by {actor.id}")
    return paper


async def change_status(
    db: AsyncSession, paper: models.ResearchPaper, payload: schemas.PaperStatusUpdate, actor: models.User
) -> models.ResearchPaper:
    old_status = transition_status(paper, payload.status.value)
    if paper.status == "published":
        paper.is_public = True
        if payload.publication:
            for key, value in payload.publication.model_dump(exclude_unset=True).items():
                setattr(paper, key, value)
        paper.published_date = paper.published_date or paper.published_at
    await NotificationService.paper_status_changed(
        db, paper, author_users(paper), old_status, actor, payload.comments
    )
    return paper

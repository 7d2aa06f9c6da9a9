"""
papers.py

Research paper endpoints: the submission wizard, uploads and the review
process. Every mutating endpoint reloads the paper after commit so the
response reflects the stored state.
"""
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal import crud, models, review, schemas, submission
from portal.auth import get_current_user, get_optional_user, require_editor
from portal.database import get_db
from portal.utils import Pagination, success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/research", tags=["Research"])


async def _paper_response(db: AsyncSession, paper_id: int, viewer: models.User, message: Optional[str] = None, **extra):
    paper = await crud.get_paper(db, paper_id)
    return success(submission.serialize_paper(paper, viewer), message=message, **extra)


async def _paged_summaries(db: AsyncSession, stmt, pagination: Pagination, order_by) -> dict:
    total = await crud.count(db, stmt)
    result = await db.execute(
        stmt.options(*crud.PAPER_LOAD_OPTIONS).order_by(order_by)
        .offset(pagination.offset).limit(pagination.limit)
    )
    papers = [schemas.PaperSummary.model_validate(p) for p in result.scalars().all()]
    return {"papers": papers, "pagination": pagination.meta(total)}


@router.get("", summary="Published papers")
async def list_public_papers(
    pagination: Pagination = Depends(),
    search: Optional[str] = Query(None, max_length=100),
    field: Optional[schemas.ResearchField] = None,
    research_type: Optional[schemas.ResearchType] = Query(None, alias="researchType"),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(models.ResearchPaper).filter(
        models.ResearchPaper.status == "published", models.ResearchPaper.is_public.is_(True)
    )
    if search:
        pattern = f"%{search}%"
        stmt = stmt.filter(or_(
            models.ResearchPaper.title.ilike(pattern),
            models.ResearchPaper.abstract.ilike(pattern),
        ))
    if field:
        stmt = stmt.filter(models.ResearchPaper.field == field.value)
    if research_type:
        stmt = stmt.filter(models.ResearchPaper.research_type == research_type.value)
    return success(await _paged_summaries(db, stmt, pagination, models.ResearchPaper.published_at.desc()))


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create a draft (wizard step 1)")
async def create_paper(
    basic_info: schemas.PaperBasicInfo,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    paper = await submission.create_draft(db, current_user, basic_info)
    await db.commit()
    return await _paper_response(db, paper.id, current_user, message="Research paper draft created successfully")


@router.get("/mine", summary="Papers I submitted or co-authored")
async def my_papers(
    pagination: Pagination = Depends(),
    paper_status: Optional[schemas.PaperStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    stmt = select(models.ResearchPaper).filter(or_(
        models.ResearchPaper.submitted_by_id == current_user.id,
        models.ResearchPaper.authors.any(models.PaperAuthor.user_id == current_user.id),
    ))
    if paper_status:
        stmt = stmt.filter(models.ResearchPaper.status == paper_status.value)
    return success(await _paged_summaries(db, stmt, pagination, models.ResearchPaper.updated_at.desc()))


@router.get("/assigned", summary="Papers assigned to me for review")
async def assigned_papers(
    pagination: Pagination = Depends(),
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    stmt = select(models.ResearchPaper).filter(
        models.ResearchPaper.assignments.any(
            (models.ReviewAssignment.reviewer_id == current_user.id)
            & (models.ReviewAssignment.status != "declined")
        )
    )
    return success(await _paged_summaries(db, stmt, pagination, models.ResearchPaper.updated_at.desc()))


@router.get("/{paper_id}", summary="Paper detail")
async def get_paper(
    paper_id: int,
    db: AsyncSession = Depends(get_db),
    viewer: Optional[models.User] = Depends(get_optional_user),
):
    paper = await crud.get_paper_or_404(db, paper_id)
    if not submission.can_view(paper, viewer):
        if viewer is None:
            raise HTTPException(status_code=404, detail="Research paper not found")
        raise HTTPException(status_code=403, detail="You do not have access to this paper")
    if viewer is None or not submission.is_author(paper, viewer):
        paper.views = (paper.views or 0) + 1
        await db.commit()
    return await _paper_response(db, paper_id, viewer)


@router.put("/{paper_id}/basic-info", summary="Update basic information (step 1)")
async def update_basic_info(
    paper_id: int,
    update: schemas.PaperBasicInfoUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    paper = await crud.get_paper_or_404(db, paper_id)
    submission.update_basic_info(paper, current_user, update)
    await db.commit()
    return await _paper_response(db, paper_id, current_user, message="Basic information updated successfully")


@router.post("/{paper_id}/authors", summary="Add an author (step 2)")
async def add_author(
    paper_id: int,
    payload: schemas.AuthorCreate,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    paper = await crud.get_paper_or_404(db, paper_id)
    await submission.add_author(db, paper, current_user, payload)
    await db.commit()
    return await _paper_response(db, paper_id, current_user, message="Author added successfully")


@router.post("/{paper_id}/authors/confirm", summary="Confirm the author list (step 2)")
async def confirm_authors(
    paper_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    paper = await crud.get_paper_or_404(db, paper_id)
    submission.confirm_authors(paper, current_user)
    await db.commit()
    return await _paper_response(db, paper_id, current_user, message="Authors confirmed")


@router.delete("/{paper_id}/authors/{author_id}", summary="Remove an author")
async def remove_author(
    paper_id: int,
    author_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    paper = await crud.get_paper_or_404(db, paper_id)
    submission.remove_author(paper, current_user, author_id)
    await db.commit()
    return await _paper_response(db, paper_id, current_user, message="Author removed successfully")


@router.put("/{paper_id}/authors/{author_id}/corresponding", summary="Set the corresponding author")
async def set_corresponding_author(
    paper_id: int,
    author_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    paper = await crud.get_paper_or_404(db, paper_id)
    submission.set_corresponding_author(paper, current_user, author_id)
    await db.commit()
    return await _paper_response(db, paper_id, current_user, message="Corresponding author updated")


@router.post("/{paper_id}/upload-manuscript", summary="Upload the manuscript (step 3)")
async def upload_manuscript(
    paper_id: int,
    file: UploadFile = File(...),
    changes: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    paper = await crud.get_paper_or_404(db, paper_id)
    stored = await submission.upload_manuscript(db, paper, current_user, file, changes)
    await db.commit()
    logger.info(f"Manuscript v{stored.version} uploaded for paper {paper_id} by user {current_user.id}")
    return await _paper_response(db, paper_id, current_user, message="Manuscript uploaded successfully")


@router.post("/{paper_id}/upload-supplementary", summary="Upload supplementary materials")
async def upload_supplementary(
    paper_id: int,
    files: List[UploadFile] = File(...),
    descriptions: Optional[List[str]] = Form(None),
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    paper = await crud.get_paper_or_404(db, paper_id)
    stored = await submission.upload_supplementary(paper, current_user, files, descriptions)
    await db.commit()
    return await _paper_response(
        db, paper_id, current_user, message=f"{len(stored)} supplementary file(s) uploaded successfully"
    )


@router.post("/{paper_id}/upload-figures", summary="Upload figures")
async def upload_figures(
    paper_id: int,
    files: List[UploadFile] = File(...),
    captions: Optional[List[str]] = Form(None),
    orders: Optional[List[int]] = Form(None),
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    paper = await crud.get_paper_or_404(db, paper_id)
    stored = await submission.upload_figures(paper, current_user, files, captions, orders)
    await db.commit()
    return await _paper_response(db, paper_id, current_user, message=f"{len(stored)} figure(s) uploaded successfully")


@router.post("/{paper_id}/submit", summary="Submit for review (steps 4 and 5)")
async def submit_paper(
    paper_id: int,
    payload: Optional[schemas.SubmitPaperRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    paper = await crud.get_paper_or_404(db, paper_id)
    await submission.submit_paper(db, paper, current_user, payload or schemas.SubmitPaperRequest())
    await db.commit()
    return await _paper_response(db, paper_id, current_user, message="Research paper submitted successfully")


@router.post("/{paper_id}/withdraw", summary="Withdraw a paper")
async def withdraw_paper(
    paper_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    paper = await crud.get_paper_or_404(db, paper_id)
    await submission.withdraw_paper(db, paper, current_user)
    await db.commit()
    return await _paper_response(db, paper_id, current_user, message="Research paper withdrawn")


@router.delete("/{paper_id}", summary="Delete a draft")
async def delete_paper(
    paper_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    paper = await crud.get_paper_or_404(db, paper_id)
    await submission.delete_paper(db, paper, current_user)
    await db.commit()
    logger.info(f"Draft paper {paper_id} deleted by user {current_user.id}")
    return success(message="Research paper deleted successfully")


# Review process

@router.post("/{paper_id}/reviewers", status_code=status.HTTP_201_CREATED, summary="Assign a reviewer")
async def assign_reviewer(
    paper_id: int,
    payload: schemas.AssignReviewerRequest,
    db: AsyncSession = Depends(get_db),
    editor: models.User = Depends(require_editor),
):
    paper = await crud.get_paper_or_404(db, paper_id)
    await review.assign_reviewer(db, paper, payload, editor)
    await db.commit()
    return await _paper_response(db, paper_id, editor, message="Reviewer assigned successfully")


@router.patch("/{paper_id}/reviewers/me", summary="Accept or decline a review assignment")
async def respond_to_assignment(
    paper_id: int,
    payload: schemas.AssignmentRespond,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    paper = await crud.get_paper_or_404(db, paper_id)
    assignment = review.respond_to_assignment(paper, current_user, payload.response)
    await db.commit()
    return success(
        {"assignment": schemas.AssignmentOut.model_validate(assignment)},
        message=f"Review assignment {assignment.status}",
    )


@router.post("/{paper_id}/reviews", status_code=status.HTTP_201_CREATED, summary="Submit a review")
async def submit_review(
    paper_id: int,
    payload: schemas.ReviewCreate,
    db: AsyncSession = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    paper = await crud.get_paper_or_404(db, paper_id)
    await review.submit_review(db, paper, current_user, payload)
    await db.commit()
    return await _paper_response(db, paper_id, current_user, message="Review submitted successfully")


@router.put("/{paper_id}/decision", summary="Record the editorial decision")
async def editorial_decision(
    paper_id: int,
    payload: schemas.EditorialDecisionRequest,
    db: AsyncSession = Depends(get_db),
    editor: models.User = Depends(require_editor),
):
    paper = await crud.get_paper_or_404(db, paper_id)
    await review.record_decision(db, paper, payload, editor)
    await db.commit()
    return await _paper_response(db, paper_id, editor, message="Editorial decision recorded")

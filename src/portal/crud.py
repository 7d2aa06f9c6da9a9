"""
crud.py

Async database operations shared by the routers and services of the ORII research portal.
Loaders eager-load the relationships each response needs, since async sessions cannot lazy-load.
"""
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from portal import models

# User CRUD


async def get_user_by_email(db: AsyncSession, email: str):
    """Asynchronously retrieve a user by email address."""
    result = await db.execute(select(models.User).filter(models.User.email == email.lower()))
    return result.scalars().first()


async def get_user(db: AsyncSession, user_id: int):
    result = await db.execute(select(models.User).filter(models.User.id == user_id))
    return result.scalars().first()


async def get_user_or_404(db: AsyncSession, user_id: int) -> models.User:
    user = await get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def create_user(db: AsyncSession, user: dict):
    """Asynchronously create a new user in the database."""
    valid_fields = [column.name for column in models.User.__table__.columns]
    user_data = {key: value for key, value in user.items() if key in valid_fields}

    db_user = models.User(**user_data)
    db.add(db_user)
    await db.flush()
    return db_user


async def count(db: AsyncSession, stmt) -> int:
    """Row count of an arbitrary select."""
    result = await db.execute(select(func.count()).select_from(stmt.order_by(None).subquery()))
    return result.scalar_one()


# Research paper CRUD

PAPER_LOAD_OPTIONS = (
    selectinload(models.ResearchPaper.submitted_by),
    selectinload(models.ResearchPaper.authors).selectinload(models.PaperAuthor.user),
    selectinload(models.ResearchPaper.files),
    selectinload(models.ResearchPaper.versions),
    selectinload(models.ResearchPaper.assignments).selectinload(models.ReviewAssignment.reviewer),
    selectinload(models.ResearchPaper.reviews).selectinload(models.Review.reviewer),
)


async def get_paper(db: AsyncSession, paper_id: int) -> Optional[models.ResearchPaper]:
    """Load a paper with every relationship the paper response renders."""
    result = await db.execute(
        select(models.ResearchPaper)
        .filter(models.ResearchPaper.id == paper_id)
        .options(*PAPER_LOAD_OPTIONS)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def get_paper_or_404(db: AsyncSession, paper_id: int) -> models.ResearchPaper:
    paper = await get_paper(db, paper_id)
    if not paper:
        raise HTTPException(status_code=404, detail="Research paper not found")
    return paper


async def get_paper_file(db: AsyncSession, file_id: int) -> Optional[models.PaperFile]:
    result = await db.execute(select(models.PaperFile).filter(models.PaperFile.id == file_id))
    return result.scalars().first()


# Event CRUD

async def get_event(db: AsyncSession, event_id: int) -> Optional[models.Event]:
    result = await db.execute(
        select(models.Event)
        .filter(models.Event.id == event_id)
        .options(selectinload(models.Event.attendees))
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def get_event_or_404(db: AsyncSession, event_id: int) -> models.Event:
    event = await get_event(db, event_id)
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


# Collaboration CRUD

COLLABORATION_LOAD_OPTIONS = (
    selectinload(models.Collaboration.initiator),
    selectinload(models.Collaboration.collaborators).selectinload(models.Collaborator.user),
    selectinload(models.Collaboration.milestones),
    selectinload(models.Collaboration.updates).selectinload(models.CollaborationUpdate.author),
)


async def get_collaboration_or_404(db: AsyncSession, collaboration_id: int) -> models.Collaboration:
    result = await db.execute(
        select(models.Collaboration)
        .filter(models.Collaboration.id == collaboration_id)
        .options(*COLLABORATION_LOAD_OPTIONS)
        .execution_options(populate_existing=True)
    )
    collaboration = result.scalars().first()
    if not collaboration:
        raise HTTPException(status_code=404, detail="Collaboration not found")
    return collaboration


# Job CRUD

async def get_job_or_404(db: AsyncSession, job_id: int) -> models.Job:
    result = await db.execute(select(models.Job).filter(models.Job.id == job_id))
    job = result.scalars().first()
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job

from datetime import datetime
from typing import Optional
import enum
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal import crud, models, schemas
from portal.auth import get_optional_user, require_admin
from portal.database import get_db
from portal.utils import Pagination, success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/jobs", tags=["Jobs"])


def _open_jobs_filter(now: datetime):
    return (
        models.Job.is_active.is_(True),
        or_(models.Job.application_deadline.is_(None), models.Job.application_deadline > now),
    )


def _is_open(job: models.Job, now: datetime) -> bool:
    return bool(job.is_active) and (job.application_deadline is None or job.application_deadline > now)


def _plain(data: dict) -> dict:
    return {k: (v.value if isinstance(v, enum.Enum) else v) for k, v in data.items()}


@router.get("", summary="Open job postings")
async def list_jobs(
    pagination: Pagination = Depends(),
    department: Optional[str] = None,
    type: Optional[schemas.JobType] = None,
    experience: Optional[schemas.JobExperience] = None,
    search: Optional[str] = Query(None, max_length=100),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(models.Job).filter(*_open_jobs_filter(datetime.utcnow()))
    if department:
        stmt = stmt.filter(models.Job.department == department)
    if type:
        stmt = stmt.filter(models.Job.type == type.value)
    if experience:
        stmt = stmt.filter(models.Job.experience == experience.value)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.filter(or_(models.Job.title.ilike(pattern), models.Job.description.ilike(pattern)))
    total = await crud.count(db, stmt)
    result = await db.execute(
        stmt.order_by(models.Job.created_at.desc()).offset(pagination.offset).limit(pagination.limit)
    )
    jobs = [schemas.JobResponse.model_validate(j) for j in result.scalars().all()]
    return success({"jobs": jobs, "pagination": pagination.meta(total)})


@router.get("/stats", summary="Job and application statistics")
async def job_stats(db: AsyncSession = Depends(get_db), admin: models.User = Depends(require_admin)):
    now = datetime.utcnow()
    total = await db.execute(select(func.count(models.Job.id)))
    open_jobs = await db.execute(select(func.count(models.Job.id)).filter(*_open_jobs_filter(now)))
    by_department = await db.execute(
        select(models.Job.department, func.count(models.Job.id)).group_by(models.Job.department)
    )
    by_status = await db.execute(
        select(models.JobApplication.status, func.count(models.JobApplication.id))
        .group_by(models.JobApplication.status)
    )
    return success({
        "totalJobs": total.scalar_one(),
        "activeJobs": open_jobs.scalar_one(),
        "byDepartment": {dept: count for dept, count in by_department.all()},
        "applicationsByStatus": {s: count for s, count in by_status.all()},
    })


@router.get("/{job_id}", summary="Job detail")
async def get_job(
    job_id: int,
    db: AsyncSession = Depends(get_db),
    viewer: Optional[models.User] = Depends(get_optional_user),
):
    job = await crud.get_job_or_404(db, job_id)
    if not job.is_active and not (viewer and viewer.role == "admin"):
        raise HTTPException(status_code=404, detail="Job not found")
    return success({"job": schemas.JobResponse.model_validate(job)})


@router.post("", status_code=status.HTTP_201_CREATED, summary="Post a job")
async def create_job(
    payload: schemas.JobCreate,
    db: AsyncSession = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    data = _plain(payload.model_dump())
    if data.get("application_deadline") is None:
        data.pop("application_deadline", None)
    job = models.Job(**data, posted_by_id=admin.id, is_active=True, applications_count=0)
    db.add(job)
    await db.commit()
    logger.info(f"Job {job.id} posted by admin {admin.id}")
    return success({"job": schemas.JobResponse.model_validate(job)}, message="Job created successfully")


@router.put("/{job_id}", summary="Update a job")
async def update_job(
    job_id: int,
    payload: schemas.JobUpdate,
    db: AsyncSession = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    job = await crud.get_job_or_404(db, job_id)
    for key, value in _plain(payload.model_dump(exclude_unset=True)).items():
        setattr(job, key, value)
    if job.salary_min is not None and job.salary_max is not None and job.salary_max < job.salary_min:
        raise HTTPException(status_code=400, detail="Maximum salary must be greater than minimum salary")
    await db.commit()
    return success({"job": schemas.JobResponse.model_validate(job)}, message="Job updated successfully")


@router.delete("/{job_id}", summary="Delete a job")
async def delete_job(job_id: int, db: AsyncSession = Depends(get_db), admin: models.User = Depends(require_admin)):
    job = await crud.get_job_or_404(db, job_id)
    await db.refresh(job, attribute_names=["applications"])
    await db.delete(job)
    await db.commit()
    return success(message="Job deleted successfully")


@router.post("/{job_id}/apply", status_code=status.HTTP_201_CREATED, summary="Apply for a job")
async def apply_for_job(
    job_id: int,
    payload: schemas.JobApplicationCreate,
    db: AsyncSession = Depends(get_db),
):
    job = await crud.get_job_or_404(db, job_id)
    if not _is_open(job, datetime.utcnow()):
        raise HTTPException(status_code=404, detail="Job not found or no longer accepting applications")

    existing = await db.execute(
        select(models.JobApplication.id).filter(
            models.JobApplication.job_id == job.id, models.JobApplication.email == payload.email
        )
    )
    if existing.first():
        raise HTTPException(status_code=400, detail="You have already applied for this job")

    application = models.JobApplication(job_id=job.id, status="Applied", review_notes=[], **payload.model_dump())
    db.add(application)
    job.applications_count = (job.applications_count or 0) + 1
    await db.commit()
    logger.info(f"Application {application.id} received for job {job.id}")
    return success(
        {"application": schemas.JobApplicationResponse.model_validate(application)},
        message="Application submitted successfully",
    )


@router.get("/{job_id}/applications", summary="Applications for a job")
async def list_applications(
    job_id: int,
    pagination: Pagination = Depends(),
    application_status: Optional[schemas.ApplicationStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    await crud.get_job_or_404(db, job_id)
    stmt = select(models.JobApplication).filter(models.JobApplication.job_id == job_id)
    if application_status:
        stmt = stmt.filter(models.JobApplication.status == application_status.value)
    total = await crud.count(db, stmt)
    result = await db.execute(
        stmt.order_by(models.JobApplication.applied_at.desc()).offset(pagination.offset).limit(pagination.limit)
    )
    items = [schemas.JobApplicationResponse.model_validate(a) for a in result.scalars().all()]
    return success({"applications": items, "pagination": pagination.meta(total)})


@router.put("/applications/{application_id}/status", summary="Update an application's status")
async def update_application_status(
    application_id: int,
    payload: schemas.ApplicationStatusUpdate,
    db: AsyncSession = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    application = await db.get(models.JobApplication, application_id)
    if not application:
        raise HTTPException(status_code=404, detail="Application not found")
    application.status = payload.status.value
    if payload.note:
        # reassign so the JSON column is flagged as modified
        application.review_notes = list(application.review_notes or []) + [{
            "note": payload.note,
            "status": payload.status.value,
            "reviewedBy": admin.id,
            "reviewedAt": datetime.utcnow().isoformat(),
        }]
    await db.commit()
    return success(
        {"application": schemas.JobApplicationResponse.model_validate(application)},
        message="Application status updated",
    )

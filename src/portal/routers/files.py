"""
files.py

File serving. Paper files are private Firebase blobs handed out through
short-lived signed URLs; avatars live on Cloudinary. Responses carry their
own CORS allow-list (FILE_CORS_ORIGINS).
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from portal import cloudinary_utils, crud, firebase_utils, models, submission
from portal.auth import get_optional_user
from portal.database import get_db
from portal.settings import settings

router = APIRouter(prefix="/api/files", tags=["Files"])


def with_file_cors(request: Request, response):
    origin = request.headers.get("origin")
    if origin and origin in settings.file_cors_origins:
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"
        response.headers["Vary"] = "Origin"
    return response


@router.get("/papers/{file_id}", summary="Download a paper file")
async def download_paper_file(
    file_id: int,
    request: Request,
    redirect: bool = Query(True),
    db: AsyncSession = Depends(get_db),
    viewer: Optional[models.User] = Depends(get_optional_user),
):
    paper_file = await crud.get_paper_file(db, file_id)
    if not paper_file:
        raise HTTPException(status_code=404, detail="File not found")
    paper = await crud.get_paper_or_404(db, paper_file.paper_id)
    if not submission.can_view(paper, viewer):
        if viewer is None:
            raise HTTPException(status_code=404, detail="File not found")
        raise HTTPException(status_code=403, detail="You do not have access to this file")

    url = await run_in_threadpool(
        firebase_utils.generate_download_url, paper_file.storage_path, paper_file.original_name
    )
    paper.downloads = (paper.downloads or 0) + 1
    await db.commit()

    if redirect:
        return with_file_cors(request, RedirectResponse(url, status_code=307))
    return with_file_cors(request, JSONResponse({
        "success": True,
        "data": {
            "url": url,
            "filename": paper_file.original_name,
            "mimeType": paper_file.mime_type,
            "size": paper_file.size,
            "expiresInMinutes": settings.signed_url_expire_minutes,
        },
    }))


@router.get("/avatars/{user_id}", summary="Redirect to a user's avatar")
async def get_avatar(user_id: int, request: Request, db: AsyncSession = Depends(get_db)):
    user = await crud.get_user(db, user_id)
    if not user or not user.is_active:
        raise HTTPException(status_code=404, detail="Avatar not found")
    url = user.avatar_url
    if not url and user.avatar_public_id:
        url = cloudinary_utils.get_avatar_url(user.avatar_public_id)
    if not url:
        raise HTTPException(status_code=404, detail="Avatar not found")
    return with_file_cors(request, RedirectResponse(url, status_code=307))

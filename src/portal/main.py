from contextlib import asynccontextmanager
import logging
import sys

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from portal.database import engine
from portal.models import Base
from portal.reminders import scheduler
from portal.routers import (
    admin, auth, collaborations, contact, email_management, events, files, jobs, notifications, papers, users,
)
from portal.settings import settings
from portal.worker import outbox_worker

# Configure logging
handlers = [logging.StreamHandler(sys.stdout)]
if settings.log_file:
    handlers.append(logging.FileHandler(settings.log_file))
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s %(levelname)s %(name)s %(message)s',
    handlers=handlers,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables for development databases and run the background workers."""
    logger.info(f"Starting ORII research portal API (env={settings.env})")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if settings.background_workers_enabled:
        await scheduler.start()
        await outbox_worker.start()

    yield

    if settings.background_workers_enabled:
        await outbox_worker.stop()
        await scheduler.stop()
    await engine.dispose()
    logger.info("ORII research portal API stopped")


app = FastAPI(title="ORII Research Portal API", lifespan=lifespan)

"""
Configure CORS using origins from centralized settings.
"""
app.add_middleware(
    CORSMiddleware,
    allow_origins=[str(origin) for origin in settings.cors_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"]
)

# Warn if CORS is insecure in production
if settings.env == "production" and (not settings.cors_origins or "*" in settings.cors_origins):
    logging.warning("CORS is set to allow all origins in production! Set CORS_ORIGINS to trusted domains only.")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [
        {
            "field": ".".join(str(part) for part in error["loc"] if part != "body"),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    logger.warning(f"Validation failed at {request.url}: {details}")
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Validation failed", "details": details},
    )


# Global error handler for HTTPException
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(f"HTTPException: {exc.detail} (status: {exc.status_code}) at {request.url}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


# Global error handler for generic exceptions
@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled Exception: {exc} at {request.url}", exc_info=True)
    content = {"success": False, "message": "Internal server error"}
    if settings.debug:
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)


app.include_router(auth.router)
app.include_router(users.router)
app.include_router(admin.router)
app.include_router(email_management.router)
app.include_router(papers.router)
app.include_router(events.router)
app.include_router(jobs.router)
app.include_router(collaborations.router)
app.include_router(contact.router)
app.include_router(notifications.router)
app.include_router(files.router)


@app.get("/")
def read_root():
    logger.info("Root endpoint accessed.")
    return {"success": True, "message": "Welcome to the ORII Research Portal API"}


@app.get("/api/health")
async def health():
    return {
        "success": True,
        "data": {
            "status": "ok",
            "env": settings.env,
            "workers": {"reminders": scheduler.running, "emailOutbox": outbox_worker.running},
        },
    }

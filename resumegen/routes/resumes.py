"""
Resume generation API routes

Generation is asynchronous: POST /generate queues a job and returns 202,
the client polls /available or /jobs/{job_id}, then asks /download/{id}
for a short-lived signed link.
"""

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, field_validator
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from slowapi import Limiter
from slowapi.util import get_remote_address

from resumegen.config import Settings
from resumegen.database import get_db
from resumegen.errors import NotFoundError
from resumegen.middleware.auth import get_current_user
from resumegen.models.user import User
from resumegen.services import job_queue, resume_documents
from resumegen.services.artifact_store import ArtifactStore
from resumegen.services.renderer import TEMPLATES

router = APIRouter()

# Shared with the app (app.state.limiter) so the 429 handler can find it
limiter = Limiter(key_func=get_remote_address)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_artifact_store(request: Request) -> ArtifactStore:
    return request.app.state.artifact_store


class GenerateRequest(BaseModel):
    template: str = "default"

    @field_validator("template")
    @classmethod
    def known_template(cls, value: str) -> str:
        if value not in TEMPLATES:
            raise ValueError(f"Unknown template. Choose one of: {', '.join(sorted(TEMPLATES))}")
        return value


@router.post("/generate", status_code=202)
@limiter.limit("10/minute")
async def generate_resume(
    request: Request,
    data: Optional[GenerateRequest] = None,
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
    db: AsyncSession = Depends(get_db),
):
    """Queue resume generation for the current user (eligibility re-checked here)"""
    template = data.template if data else "default"
    document_id, job_id = await resume_documents.request_generation(
        db, current_user.id, template, minimum=settings.eligibility_min_applications
    )
    return {"jobId": job_id, "documentId": document_id}


@router.get("/available")
async def resume_availability(
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
    db: AsyncSession = Depends(get_db),
):
    return await resume_documents.check_availability(
        db, current_user.id, minimum=settings.eligibility_min_applications
    )


@router.get("/download/{document_id}")
async def download_resume(
    document_id: str,
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
    store: ArtifactStore = Depends(get_artifact_store),
    db: AsyncSession = Depends(get_db),
):
    """Mint a fresh signed URL; links are never stored"""
    url = await resume_documents.authorize_download(
        db, store, current_user.id, document_id, ttl_seconds=settings.signed_url_ttl_seconds
    )
    return {"downloadUrl": url}


@router.get("/jobs/{job_id}")
async def resume_job_status(
    job_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    job = await job_queue.get_job(db, job_id)
    # Someone else's job looks exactly like a missing one
    if not job or job.user_id != current_user.id:
        raise NotFoundError("Job not found")
    return job_queue.serialize_job(job)

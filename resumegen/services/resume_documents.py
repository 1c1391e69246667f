"""
Request-path operations for generated resumes: enqueue, availability, download.

All checks happen server-side; nothing here trusts client-supplied state.
"""
from typing import Any, Dict, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from resumegen.errors import ConflictError, EligibilityError, ForbiddenError, NotFoundError
from resumegen.models.generated_document import DocumentStatus
from resumegen.services import job_queue
from resumegen.services.artifact_store import ArtifactStore
from resumegen.services.eligibility import count_applications, is_eligible
from resumegen.utils.logger import logger


async def request_generation(
    db: AsyncSession,
    user_id: int,
    template: str = "default",
    minimum: int = 2,
) -> Tuple[str, str]:
    """Re-check eligibility, then enqueue. Returns (document_id, job_id)."""
    if not await is_eligible(db, user_id, minimum):
        logger.info("resume.ineligible", extra={"user_id": user_id})
        raise EligibilityError(f"Apply to at least {minimum} jobs to generate a resume.")

    return await job_queue.enqueue_document_job(db, user_id, template)


async def check_availability(db: AsyncSession, user_id: int, minimum: int = 2) -> Dict[str, Any]:
    application_count = await count_applications(db, user_id)
    response: Dict[str, Any] = {
        "eligible": application_count >= minimum,
        "applicationCount": application_count,
    }

    document = await job_queue.latest_document_for_user(db, user_id)
    if document:
        job = await job_queue.latest_job_for_document(db, document.id)
        response["existingDocument"] = {
            "id": document.id,
            "url": document.url,
            "status": document.status,
            "jobStatus": job.status if job else None,
        }
    return response


async def authorize_download(
    db: AsyncSession,
    store: ArtifactStore,
    user_id: int,
    document_id: str,
    ttl_seconds: int = 3600,
) -> str:
    """Mint a fresh signed URL for a READY document owned by `user_id`"""
    document = await job_queue.get_document(db, document_id)
    if not document:
        raise NotFoundError("Resume not found")
    if document.user_id != user_id:
        logger.warning("resume.download_forbidden", extra={"user_id": user_id, "document_id": document_id})
        raise ForbiddenError()
    if document.status != DocumentStatus.READY.value:
        raise ConflictError()

    return await store.signed_read_url(document.url, ttl_seconds)

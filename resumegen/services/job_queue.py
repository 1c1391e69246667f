"""
Database-backed queue for resume rendering jobs.

Every status change is a conditional UPDATE on the current status, so a job
moves QUEUED → PROCESSING → DONE | FAILED exactly once even with several
workers polling the same table.

Usage:
    document_id, job_id = await job_queue.enqueue_document_job(db, user_id, "default")
    job = await job_queue.claim_next_job(db)
    await job_queue.complete_job(db, job.id, job.document_id, path, generated_at, expires_at)
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Tuple

from resumegen.errors import PersistenceError
from resumegen.models.document_job import DocumentJob, JobStatus
from resumegen.models.generated_document import GeneratedDocument, DocumentStatus
from resumegen.utils.logger import logger

# Candidates a single claim call will try before giving up on a busy queue
MAX_CLAIM_ATTEMPTS = 10


async def enqueue_document_job(
    db: AsyncSession,
    user_id: int,
    template: str = "default",
) -> Tuple[str, str]:
    """Create a PENDING document placeholder and a QUEUED job that targets it.

    Eligibility must already have been checked by the caller.
    Returns (document_id, job_id).
    """
    document = GeneratedDocument(
        user_id=user_id,
        url="",
        template=template,
        status=DocumentStatus.PENDING.value,
    )
    db.add(document)
    try:
        await db.flush()
        job = DocumentJob(
            user_id=user_id,
            template=template,
            document_id=document.id,
            status=JobStatus.QUEUED.value,
        )
        db.add(job)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise PersistenceError(f"Could not enqueue document job: {exc}") from exc

    logger.info("job.enqueued", extra={"job_id": job.id, "document_id": document.id,
                                       "user_id": user_id, "template": template})
    return document.id, job.id


async def claim_next_job(db: AsyncSession) -> Optional[DocumentJob]:
    """
    Atomically claim the oldest QUEUED job (created_at, then id).

    The claim is a compare-and-swap: UPDATE ... WHERE status = 'QUEUED'.
    If another worker wins the row first, move on to the next candidate.
    """
    for attempt in range(1, MAX_CLAIM_ATTEMPTS + 1):
        result = await db.execute(
            select(DocumentJob.id)
            .where(DocumentJob.status == JobStatus.QUEUED.value)
            .order_by(DocumentJob.created_at.asc(), DocumentJob.id.asc())
            .limit(1)
        )
        candidate_id = result.scalar_one_or_none()
        if candidate_id is None:
            # Close the read transaction before the caller goes idle
            await db.commit()
            return None

        claimed = await db.execute(
            update(DocumentJob)
            .where(
                DocumentJob.id == candidate_id,
                DocumentJob.status == JobStatus.QUEUED.value,
            )
            .values(status=JobStatus.PROCESSING.value)
            .execution_options(synchronize_session=False)
        )
        await db.commit()

        if claimed.rowcount == 1:
            job = await db.get(DocumentJob, candidate_id, populate_existing=True)
            logger.info("job.claimed", extra={"job_id": job.id, "user_id": job.user_id, "attempt": attempt})
            return job

        logger.debug("job.claim_lost", extra={"job_id": candidate_id, "attempt": attempt})

    logger.warning("job.claim_exhausted", extra={"attempt": MAX_CLAIM_ATTEMPTS})
    return None


async def complete_job(
    db: AsyncSession,
    job_id: str,
    document_id: str,
    storage_path: str,
    generated_at: datetime,
    expires_at: datetime,
) -> bool:
    """
    Resolve a PROCESSING job to DONE and mark its document READY.

    Both writes share one transaction, so a READY document always has a DONE job.
    Returns False without writing anything if the job was not PROCESSING.
    """
    result = await db.execute(
        update(DocumentJob)
        .where(DocumentJob.id == job_id, DocumentJob.status == JobStatus.PROCESSING.value)
        .values(
            status=JobStatus.DONE.value,
            document_id=document_id,
            processed_at=generated_at,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        logger.warning("job.resolve_rejected", extra={"job_id": job_id, "status": JobStatus.DONE.value})
        return False

    await db.execute(
        update(GeneratedDocument)
        .where(GeneratedDocument.id == document_id)
        .values(
            url=storage_path,
            status=DocumentStatus.READY.value,
            generated_at=generated_at,
            expires_at=expires_at,
        )
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.info("job.completed", extra={"job_id": job_id, "document_id": document_id,
                                        "storage_path": storage_path})
    return True


async def fail_job(
    db: AsyncSession,
    job_id: str,
    error: str,
) -> bool:
    """Resolve a PROCESSING job to FAILED. The document stays PENDING."""
    result = await db.execute(
        update(DocumentJob)
        .where(DocumentJob.id == job_id, DocumentJob.status == JobStatus.PROCESSING.value)
        .values(
            status=JobStatus.FAILED.value,
            error_message=error[:1000],
            processed_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        logger.warning("job.resolve_rejected", extra={"job_id": job_id, "status": JobStatus.FAILED.value})
        return False

    await db.commit()
    logger.error("job.failed", extra={"job_id": job_id, "error": error[:500]})
    return True


async def get_job(db: AsyncSession, job_id: str) -> Optional[DocumentJob]:
    """Get the raw DocumentJob ORM object"""
    result = await db.execute(
        select(DocumentJob).where(DocumentJob.id == job_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_document(db: AsyncSession, document_id: str) -> Optional[GeneratedDocument]:
    result = await db.execute(
        select(GeneratedDocument)
        .where(GeneratedDocument.id == document_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def latest_document_for_user(db: AsyncSession, user_id: int) -> Optional[GeneratedDocument]:
    """Most recently requested document for a user, READY or not"""
    result = await db.execute(
        select(GeneratedDocument)
        .where(GeneratedDocument.user_id == user_id)
        .order_by(GeneratedDocument.created_at.desc(), GeneratedDocument.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def latest_job_for_document(db: AsyncSession, document_id: str) -> Optional[DocumentJob]:
    result = await db.execute(
        select(DocumentJob)
        .where(DocumentJob.document_id == document_id)
        .order_by(DocumentJob.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


def serialize_job(job: DocumentJob) -> Dict[str, Any]:
    """Status payload clients poll while a resume is being generated"""
    response = {
        "jobId": job.id,
        "documentId": job.document_id,
        "status": job.status,
        "template": job.template,
        "createdAt": job.created_at.isoformat() if job.created_at else None,
        "processedAt": job.processed_at.isoformat() if job.processed_at else None,
    }
    if job.status == JobStatus.FAILED.value and job.error_message:
        response["error"] = "Resume generation failed"
    return response

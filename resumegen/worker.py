"""
Resume worker: polls the document_jobs table and renders queued resumes.

Can run as:
  1. FastAPI background task (same process, RUN_WORKER_IN_API=true)
  2. Standalone worker (separate service): python -m resumegen.worker

One job is fully resolved before the next claim. Job failures never stop
the loop; only the stop event (SIGINT/SIGTERM or app shutdown) does.
"""
import asyncio
import signal
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from resumegen.config import Settings, get_settings
from resumegen.database import Database
from resumegen.errors import NotFoundError, PersistenceError, RenderError
from resumegen.models.application import Application
from resumegen.models.document_job import DocumentJob
from resumegen.models.profile import Profile
from resumegen.models.user import User
from resumegen.services import job_queue
from resumegen.services.artifact_store import ArtifactStore, DOCX_CONTENT_TYPE, build_artifact_path
from resumegen.services.renderer import DocumentRenderer
from resumegen.utils.logger import logger

RECENT_APPLICATIONS_LIMIT = 3


class DocumentWorker:
    """Claims QUEUED jobs, renders them, uploads the result and resolves the job."""

    def __init__(
        self,
        database: Database,
        store: ArtifactStore,
        renderer: DocumentRenderer,
        settings: Settings,
    ):
        self.database = database
        self.store = store
        self.renderer = renderer
        self.settings = settings
        self._stop = asyncio.Event()
        # Renders never share the default executor that S3 calls run on
        self._render_pool = ThreadPoolExecutor(
            max_workers=settings.render_pool_size, thread_name_prefix="resume-render"
        )
        self._render_slots = threading.BoundedSemaphore(settings.render_pool_size)

    def stop(self) -> None:
        self._stop.set()

    def close(self) -> None:
        """Release the render threads. Renders still running are abandoned."""
        self._render_pool.shutdown(wait=False, cancel_futures=True)

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    async def _sleep(self, seconds: float) -> None:
        """Wait `seconds`, returning early if stop() is called"""
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    # -----------------------------------------------------------------------
    # Loop
    # -----------------------------------------------------------------------

    async def run(self) -> None:
        logger.info("worker.started", extra={"interval": self.settings.worker_poll_interval})

        while not self.stopping:
            try:
                claimed = await self.run_once()
            except Exception as exc:
                # Loop-level failure (database unreachable, etc.)
                logger.error("worker.poll_error", extra={"error": str(exc)[:500]}, exc_info=True)
                await self._sleep(self.settings.worker_error_backoff)
                continue

            if not claimed:
                await self._sleep(self.settings.worker_poll_interval)

        logger.info("worker.stopped")

    async def run_once(self) -> bool:
        """Claim and process at most one job. Returns True if a job was claimed."""
        async with self.database.session() as db:
            job = await job_queue.claim_next_job(db)
            if job is None:
                return False
            await self.process_job(db, job)
        return True

    # -----------------------------------------------------------------------
    # Per-job processing
    # -----------------------------------------------------------------------

    async def process_job(self, db: AsyncSession, job: DocumentJob) -> None:
        """Render, upload and resolve one claimed job. Never raises."""
        try:
            if not job.document_id:
                raise PersistenceError(f"Job {job.id} has no document placeholder")

            user, profile, recent = await self._load_snapshot(db, job.user_id)
            now = datetime.now(timezone.utc)

            data = await self._render(user, profile, recent, job.template, now)

            path = build_artifact_path(
                job.user_id, now, self.renderer.extension, self.settings.artifact_random_suffix
            )
            await self.store.put(data, path, DOCX_CONTENT_TYPE)

            completed_at = datetime.now(timezone.utc)
            expires_at = completed_at + timedelta(days=self.settings.document_expiry_days)
            await job_queue.complete_job(db, job.id, job.document_id, path, completed_at, expires_at)

        except Exception as exc:
            logger.error(
                "worker.job_error",
                extra={
                    "job_id": job.id,
                    "user_id": job.user_id,
                    "error": str(exc)[:500],
                    "error_type": type(exc).__name__,
                },
            )
            await self._mark_failed(db, job.id, f"{type(exc).__name__}: {exc}")

    async def _load_snapshot(self, db: AsyncSession, user_id: int):
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundError(f"User not found for resume job (user_id={user_id})")

        result = await db.execute(select(Profile).where(Profile.user_id == user_id))
        profile = result.scalar_one_or_none()

        result = await db.execute(
            select(Application)
            .where(Application.user_id == user_id)
            .order_by(Application.created_at.desc(), Application.id.desc())
            .limit(RECENT_APPLICATIONS_LIMIT)
        )
        recent = list(result.scalars().all())
        return user, profile, recent

    async def _render(self, user, profile, recent, template: str, generated_at: datetime) -> bytes:
        # All slots held by renders that have not returned yet
        if not self._render_slots.acquire(blocking=False):
            logger.error("worker.render_pool_exhausted", extra={"template": template})
            raise RenderError("No render capacity: earlier renders are still running")

        def render_in_slot() -> bytes:
            try:
                return self.renderer.render(user, profile, recent, template, generated_at)
            finally:
                self._render_slots.release()

        # The thread cannot be interrupted; on timeout its result is discarded
        # and its slot comes back only when it returns.
        timeout = self.settings.render_timeout_seconds
        loop = asyncio.get_running_loop()
        try:
            future = loop.run_in_executor(self._render_pool, render_in_slot)
        except RuntimeError:
            self._render_slots.release()
            raise
        try:
            return await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise RenderError(f"Rendering exceeded {timeout}s") from exc

    async def _mark_failed(self, db: AsyncSession, job_id: str, error: str) -> None:
        try:
            await db.rollback()
            await job_queue.fail_job(db, job_id, error)
        except Exception as exc:
            logger.error("worker.fail_write_error", extra={"job_id": job_id, "error": str(exc)[:500]})


# ---------------------------------------------------------------------------
# Standalone entry point
# ---------------------------------------------------------------------------

def build_worker(settings: Settings, database: Database, store: Optional[ArtifactStore] = None) -> DocumentWorker:
    return DocumentWorker(
        database=database,
        store=store or ArtifactStore.from_settings(settings),
        renderer=DocumentRenderer(),
        settings=settings,
    )


async def main() -> None:
    """Run worker as standalone process."""
    settings = get_settings()
    database = Database(settings.database_url, echo=settings.debug)
    await database.init_models()

    worker = build_worker(settings, database)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, worker.stop)
        except NotImplementedError:
            # Windows event loops: Ctrl+C surfaces as KeyboardInterrupt instead
            logger.warning(f"Signal handler for {sig.name} not supported on this platform")

    try:
        await worker.run()
    finally:
        worker.close()
        await database.dispose()


if __name__ == "__main__":
    asyncio.run(main())

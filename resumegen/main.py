import asyncio
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from resumegen.config import Settings, get_settings
from resumegen.database import Database
from resumegen.errors import AuthError, ResumeGenError
from resumegen.middleware.correlation import CorrelationIdFilter, CorrelationMiddleware
from resumegen.routes import resumes
from resumegen.services.artifact_store import ArtifactStore
from resumegen.utils.logger import logger
from resumegen.worker import build_worker


async def resumegen_error_handler(request: Request, exc: ResumeGenError) -> JSONResponse:
    """Map domain errors to their status with a caller-safe message"""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        body = {"detail": type(exc).default_message}
    else:
        body = {"detail": exc.message}
    headers = {"WWW-Authenticate": "ApiKey"} if isinstance(exc, AuthError) else None
    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    artifact_store: Optional[ArtifactStore] = None,
) -> FastAPI:
    """Build the API. Process-wide clients are created here once and kept on app.state."""
    settings = settings or get_settings()
    database = database or Database(settings.database_url, echo=settings.debug)
    artifact_store = artifact_store or ArtifactStore.from_settings(settings)

    app = FastAPI(title=settings.app_name, version=settings.app_version)
    app.state.settings = settings
    app.state.database = database
    app.state.artifact_store = artifact_store
    app.state.limiter = resumes.limiter
    app.state.worker_task = None

    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(ResumeGenError, resumegen_error_handler)

    # CORS - Explicit origins for security
    allowed_origins = [origin.strip() for origin in settings.allowed_origins.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-API-Key", "X-Correlation-ID"],
    )
    app.add_middleware(CorrelationMiddleware)
    if not any(isinstance(f, CorrelationIdFilter) for f in logger.filters):
        logger.addFilter(CorrelationIdFilter())

    @app.on_event("startup")
    async def startup_event():
        logger.info(f"Starting {settings.app_name}...")
        await database.init_models()
        if settings.run_worker_in_api:
            worker = build_worker(settings, database, artifact_store)
            app.state.worker = worker
            app.state.worker_task = asyncio.create_task(worker.run())
            logger.info("worker.embedded")
        logger.info(f"Backend ready at http://{settings.backend_host}:{settings.backend_port}")

    @app.on_event("shutdown")
    async def shutdown_event():
        task = app.state.worker_task
        if task is not None:
            app.state.worker.stop()
            await task
            app.state.worker.close()
        await database.dispose()

    # Health check endpoint (minimal response to prevent information disclosure)
    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    app.include_router(resumes.router, prefix="/api/resumes", tags=["Resumes"])
    return app


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "resumegen.main:create_app",
        factory=True,
        host=settings.backend_host,
        port=settings.backend_port,
        reload=settings.debug
    )

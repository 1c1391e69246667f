from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional
import os

class Settings(BaseSettings):
    # Database - Railway provides DATABASE_URL, fallback to SQLite for local
    database_url: Optional[str] = None

    # Artifact storage (S3)
    aws_s3_bucket: str = "resumegen-documents"
    aws_s3_region: str = "us-east-1"
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_s3_endpoint_url: Optional[str] = None  # MinIO / localstack
    signed_url_ttl_seconds: int = 3600
    artifact_random_suffix: bool = False  # Must be on when more than one worker runs

    # Worker
    worker_poll_interval: float = 3.0
    worker_error_backoff: float = 5.0
    render_timeout_seconds: float = 120.0
    render_pool_size: int = 2  # Renderer threads; a timed-out render holds its slot until it returns
    document_expiry_days: int = 7
    run_worker_in_api: bool = False

    # Eligibility
    eligibility_min_applications: int = 2

    # App Settings
    app_name: str = "ResumeGen"
    app_version: str = "1.0.0"
    debug: bool = False
    allowed_origins: str = "http://localhost:3000"

    # API Settings
    backend_host: str = "0.0.0.0"
    backend_port: int = int(os.getenv("PORT", "8000"))

    class Config:
        env_file = ".env"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # DATABASE_URL (Railway) lands in database_url; local runs fall back to SQLite
        self.database_url = async_database_url(
            self.database_url or "sqlite+aiosqlite:///./database/resumegen.db"
        )


def async_database_url(url: str) -> str:
    """Point postgres URLs at the asyncpg driver; anything else passes through"""
    for scheme in ("postgres://", "postgresql://"):
        if url.startswith(scheme):
            return "postgresql+asyncpg://" + url[len(scheme):]
    return url


@lru_cache()
def get_settings() -> Settings:
    return Settings()

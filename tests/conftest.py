"""
Shared test fixtures.

Provides: file-backed SQLite database per test, seeded candidates, an in-memory
artifact store, and a reset rate limiter.
"""

import itertools
import json
from datetime import datetime, timedelta, timezone

import pytest

from resumegen.config import Settings
from resumegen.database import Database
from resumegen.errors import StorageError
from resumegen.models import Application, Profile, User
from resumegen.routes.resumes import limiter
from resumegen.services.artifact_store import DOCX_CONTENT_TYPE


class FakeArtifactStore:
    """In-memory stand-in for the S3-backed ArtifactStore."""

    def __init__(self, fail_uploads: bool = False):
        self.fail_uploads = fail_uploads
        self.objects = {}
        self.signed = []

    async def put(self, data: bytes, path: str, content_type: str = DOCX_CONTENT_TYPE) -> str:
        if self.fail_uploads:
            raise StorageError(f"Upload failed for {path}")
        self.objects[path] = (data, content_type)
        return path

    async def signed_read_url(self, path: str, ttl_seconds: int = 3600) -> str:
        self.signed.append((path, ttl_seconds))
        return f"https://storage.example/{path}?expires={ttl_seconds}&sig={len(self.signed)}"


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'resumegen.db'}",
        aws_s3_bucket="test-bucket",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
        worker_poll_interval=0.01,
        worker_error_backoff=0.01,
        render_timeout_seconds=5,
        debug=False,
    )


@pytest.fixture
async def database(settings):
    db = Database(settings.database_url)
    await db.init_models()
    yield db
    await db.dispose()


@pytest.fixture
async def session(database):
    async with database.session() as s:
        yield s


@pytest.fixture
def artifact_store() -> FakeArtifactStore:
    return FakeArtifactStore()


@pytest.fixture
def make_user(session):
    """Factory: make_user(applications=2) -> (user, plaintext_api_key)"""
    counter = itertools.count(1)
    base_time = datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc)

    async def _make(applications: int = 2, with_profile: bool = True, active: bool = True):
        n = next(counter)
        user = User(email=f"candidate{n}@example.com", name=f"Candidate {n}", is_active=active)
        api_key = user.issue_api_key()
        session.add(user)
        await session.flush()

        if with_profile:
            session.add(Profile(
                user_id=user.id,
                headline="Forklift-certified warehouse associate",
                skills=json.dumps(["Forklift", "Inventory"]),
                experience=json.dumps([
                    {"role": "Picker", "company": "Acme Co", "start": "2022", "end": "2024",
                     "summary": "Picked 200 orders per shift."},
                ]),
            ))

        for i in range(applications):
            session.add(Application(
                user_id=user.id,
                job_title=f"Role {i + 1}",
                company_name="Acme Co",
                created_at=base_time + timedelta(days=i),
            ))

        await session.commit()
        return user, api_key

    return _make

"""
API tests for /api/resumes: generate, availability, download, job status.
"""

import httpx
import pytest
from sqlalchemy import func, select

from resumegen.main import create_app
from resumegen.models import DocumentJob, GeneratedDocument
from resumegen.worker import DocumentWorker
from resumegen.services.renderer import DocumentRenderer


@pytest.fixture
def app(settings, database, artifact_store):
    return create_app(settings=settings, database=database, artifact_store=artifact_store)


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def worker(database, settings, artifact_store):
    return DocumentWorker(database, artifact_store, DocumentRenderer(), settings)


def auth(api_key):
    return {"X-API-Key": api_key}


async def count_rows(session, model):
    result = await session.execute(select(func.count(model.id)))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TestGenerate:

    @pytest.mark.asyncio
    async def test_requires_api_key(self, client):
        response = await client.post("/api/resumes/generate")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "ApiKey"

    @pytest.mark.asyncio
    async def test_rejects_unknown_api_key(self, client, make_user):
        await make_user()
        response = await client.post("/api/resumes/generate", headers=auth("not-a-real-key-123"))
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_disabled_user_is_forbidden(self, client, make_user):
        _, key = await make_user(active=False)
        response = await client.post("/api/resumes/generate", headers=auth(key))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_one_application_is_not_enough(self, client, session, make_user):
        _, key = await make_user(applications=1)

        response = await client.post("/api/resumes/generate", headers=auth(key))

        assert response.status_code == 403
        assert "at least 2" in response.json()["detail"]
        assert await count_rows(session, DocumentJob) == 0
        assert await count_rows(session, GeneratedDocument) == 0

    @pytest.mark.asyncio
    async def test_two_applications_queue_a_job(self, client, session, make_user):
        _, key = await make_user(applications=2)

        response = await client.post("/api/resumes/generate", headers=auth(key))

        assert response.status_code == 202
        body = response.json()
        assert set(body) == {"jobId", "documentId"}
        assert await count_rows(session, DocumentJob) == 1

    @pytest.mark.asyncio
    async def test_unknown_template_is_a_validation_error(self, client, make_user):
        _, key = await make_user()
        response = await client.post(
            "/api/resumes/generate", headers=auth(key), json={"template": "glossy"}
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_threshold_comes_from_settings(self, client, settings, make_user):
        settings.eligibility_min_applications = 3
        _, key = await make_user(applications=2)

        response = await client.post("/api/resumes/generate", headers=auth(key))

        assert response.status_code == 403


class TestAvailability:

    @pytest.mark.asyncio
    async def test_reports_count_without_document(self, client, make_user):
        _, key = await make_user(applications=1)

        response = await client.get("/api/resumes/available", headers=auth(key))

        assert response.status_code == 200
        assert response.json() == {"eligible": False, "applicationCount": 1}

    @pytest.mark.asyncio
    async def test_reports_pending_document_after_enqueue(self, client, make_user):
        _, key = await make_user(applications=2)
        queued = (await client.post("/api/resumes/generate", headers=auth(key))).json()

        body = (await client.get("/api/resumes/available", headers=auth(key))).json()

        assert body["eligible"] is True
        assert body["applicationCount"] == 2
        assert body["existingDocument"] == {
            "id": queued["documentId"],
            "url": "",
            "status": "PENDING",
            "jobStatus": "QUEUED",
        }


class TestDownload:

    @pytest.mark.asyncio
    async def test_missing_document_is_404(self, client, make_user):
        _, key = await make_user()
        response = await client.get("/api/resumes/download/does-not-exist", headers=auth(key))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_pending_document_is_409(self, client, make_user):
        _, key = await make_user()
        queued = (await client.post("/api/resumes/generate", headers=auth(key))).json()

        response = await client.get(f"/api/resumes/download/{queued['documentId']}", headers=auth(key))

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_other_users_document_is_403(self, client, worker, make_user):
        _, owner_key = await make_user()
        _, other_key = await make_user()
        queued = (await client.post("/api/resumes/generate", headers=auth(owner_key))).json()
        await worker.run_once()

        response = await client.get(f"/api/resumes/download/{queued['documentId']}", headers=auth(other_key))

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_ready_document_gets_fresh_signed_url_per_request(
        self, client, worker, artifact_store, make_user
    ):
        _, key = await make_user()
        queued = (await client.post("/api/resumes/generate", headers=auth(key))).json()
        await worker.run_once()

        first = await client.get(f"/api/resumes/download/{queued['documentId']}", headers=auth(key))
        second = await client.get(f"/api/resumes/download/{queued['documentId']}", headers=auth(key))

        assert first.status_code == 200
        assert second.status_code == 200
        assert first.json()["downloadUrl"] != second.json()["downloadUrl"]
        (path, ttl), _ = artifact_store.signed
        assert ttl == 3600
        assert path in artifact_store.objects


class TestJobStatus:

    @pytest.mark.asyncio
    async def test_owner_can_poll_job(self, client, worker, make_user):
        _, key = await make_user()
        queued = (await client.post("/api/resumes/generate", headers=auth(key))).json()

        before = (await client.get(f"/api/resumes/jobs/{queued['jobId']}", headers=auth(key))).json()
        await worker.run_once()
        after = (await client.get(f"/api/resumes/jobs/{queued['jobId']}", headers=auth(key))).json()

        assert before["status"] == "QUEUED"
        assert after["status"] == "DONE"
        assert after["documentId"] == queued["documentId"]
        assert after["processedAt"] is not None

    @pytest.mark.asyncio
    async def test_other_users_job_is_404(self, client, make_user):
        _, owner_key = await make_user()
        _, other_key = await make_user()
        queued = (await client.post("/api/resumes/generate", headers=auth(owner_key))).json()

        response = await client.get(f"/api/resumes/jobs/{queued['jobId']}", headers=auth(other_key))

        assert response.status_code == 404


@pytest.mark.asyncio
async def test_end_to_end_generation(client, worker, artifact_store, make_user):
    _, key = await make_user(applications=2)

    queued = await client.post("/api/resumes/generate", headers=auth(key))
    assert queued.status_code == 202
    document_id = queued.json()["documentId"]

    assert await worker.run_once() is True

    available = (await client.get("/api/resumes/available", headers=auth(key))).json()
    existing = available["existingDocument"]
    assert existing["id"] == document_id
    assert existing["status"] == "READY"
    assert existing["jobStatus"] == "DONE"
    assert existing["url"].startswith("documents/")
    assert existing["url"] in artifact_store.objects

    download = await client.get(f"/api/resumes/download/{document_id}", headers=auth(key))
    assert download.status_code == 200
    assert download.json()["downloadUrl"].startswith("https://storage.example/documents/")

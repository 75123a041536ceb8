"""Tests for the HTTP surface over the job queue.

Feature: stockbatch
Property 13: Invalid API Input Error Response
"""

import asyncio
import time

import pytest
from fastapi.testclient import TestClient
from hypothesis import given, settings, strategies as st
from pydantic import ValidationError

from stockbatch.api.routes import RunRequest, stockbatch_exception_handler
from stockbatch.main import create_app
from stockbatch.models.job import Job, JobStatus
from stockbatch.models.run import RunMode
from stockbatch.services.job_store import JobStateStore
from stockbatch.utils.errors import InvalidTransitionError


async def quick_generate(job, credential, mode):
    await asyncio.sleep(0.01)
    return {"result": {"title": f"{job.label} title"}}


async def slow_generate(job, credential, mode):
    await asyncio.sleep(0.3)
    return {"result": {"title": job.label}}


def wait_until_idle(client: TestClient, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get("/api/run").json()
        if body["state"] == "idle":
            return body
        time.sleep(0.02)
    raise AssertionError("run did not finish in time")


@pytest.fixture
def keyed_settings(fast_settings):
    return fast_settings.model_copy(update={"api_keys": ["key-a", "key-b"]})


@pytest.fixture
def store():
    return JobStateStore([Job(label="a.jpg"), Job(label="b.jpg"), Job(label="c.jpg")])


class TestProperty13InvalidAPIInputErrorResponse:
    """
    Property 13: Invalid API Input Error Response

    *For any* worker count outside 1..10 the run request is rejected, and the
    HTTP layer answers with 422 and a JSON body describing the field.
    """

    @given(worker_count=st.one_of(st.integers(max_value=0), st.integers(min_value=11)))
    @settings(max_examples=100)
    def test_out_of_range_worker_count_rejected(self, worker_count: int) -> None:
        with pytest.raises(ValidationError) as exc_info:
            RunRequest(worker_count=worker_count)

        field_names = [e.get("loc", [])[-1] for e in exc_info.value.errors()]
        assert "worker_count" in field_names

    @given(worker_count=st.integers(min_value=1, max_value=10))
    @settings(max_examples=50)
    def test_valid_run_request(self, worker_count: int) -> None:
        request = RunRequest(worker_count=worker_count, mode="idea")
        assert request.worker_count == worker_count
        assert request.mode == RunMode.IDEA

    def test_unknown_mode_returns_422(self, keyed_settings, store) -> None:
        client = TestClient(create_app(quick_generate, keyed_settings, store))
        response = client.post("/api/run", json={"mode": "video"})
        assert response.status_code == 422
        assert "detail" in response.json()


class TestJobEndpoints:
    def test_list_jobs(self, keyed_settings, store) -> None:
        client = TestClient(create_app(quick_generate, keyed_settings, store))
        response = client.get("/api/jobs")

        assert response.status_code == 200
        body = response.json()
        assert [j["label"] for j in body["jobs"]] == ["a.jpg", "b.jpg", "c.jpg"]
        assert body["counts"]["pending"] == 3

    def test_retry_failed_job(self, keyed_settings, store) -> None:
        job = store.snapshot()[0]
        store.mark_failed(job.id, "invalid request")
        client = TestClient(create_app(quick_generate, keyed_settings, store))

        response = client.post(f"/api/jobs/{job.id}/retry")

        assert response.status_code == 200
        assert response.json()["status"] == "pending"
        assert store.get(job.id).error is None

    def test_delete_job(self, keyed_settings, store) -> None:
        job = store.snapshot()[1]
        client = TestClient(create_app(quick_generate, keyed_settings, store))

        response = client.delete(f"/api/jobs/{job.id}")

        assert response.status_code == 200
        assert response.json()["status"] == "deleted"
        assert job.id not in store

    @pytest.mark.parametrize("method,path", [
        ("post", "/api/jobs/missing/retry"),
        ("delete", "/api/jobs/missing"),
    ])
    def test_unknown_job_returns_404(self, keyed_settings, store, method, path) -> None:
        client = TestClient(create_app(quick_generate, keyed_settings, store))
        response = getattr(client, method)(path)

        assert response.status_code == 404
        assert response.json()["error_type"] == "JobNotFoundError"

    def test_processing_job_cannot_be_deleted(self, keyed_settings, store) -> None:
        job = store.snapshot()[0]
        store.mark_processing(job.id)
        client = TestClient(create_app(quick_generate, keyed_settings, store))

        response = client.delete(f"/api/jobs/{job.id}")

        assert response.status_code == 409
        assert "processing" in response.json()["detail"]
        assert store.get(job.id).status == JobStatus.PROCESSING


class TestRunEndpoints:
    def test_idle_status(self, keyed_settings, store) -> None:
        client = TestClient(create_app(quick_generate, keyed_settings, store))
        body = client.get("/api/run").json()
        assert body["state"] == "idle"
        assert body["queued"] == 0

    def test_cancel_while_idle(self, keyed_settings, store) -> None:
        client = TestClient(create_app(quick_generate, keyed_settings, store))
        response = client.post("/api/run/cancel")
        assert response.status_code == 200
        assert response.json()["state"] == "idle"

    def test_run_without_keys_returns_400(self, fast_settings, store) -> None:
        client = TestClient(create_app(quick_generate, fast_settings, store))

        response = client.post("/api/run", json={})

        assert response.status_code == 400
        assert response.json()["error_type"] == "PreconditionError"
        assert all(j.status == JobStatus.PENDING for j in store.snapshot())

    def test_run_processes_every_job(self, keyed_settings, store) -> None:
        with TestClient(create_app(quick_generate, keyed_settings, store)) as client:
            response = client.post("/api/run", json={"worker_count": 5})
            assert response.status_code == 200
            body = response.json()
            assert body["queued"] == 3
            assert body["effective_concurrency"] == 2

            wait_until_idle(client)
            counts = client.get("/api/jobs").json()["counts"]

        assert counts["completed"] == 3

    def test_second_run_rejected_while_active(self, keyed_settings, store) -> None:
        with TestClient(create_app(slow_generate, keyed_settings, store)) as client:
            assert client.post("/api/run", json={}).status_code == 200

            response = client.post("/api/run", json={})
            assert response.status_code == 409
            assert response.json()["error_type"] == "RunInProgressError"

            wait_until_idle(client)

    def test_history_saved_for_idea_runs(self, keyed_settings, store) -> None:
        app = create_app(quick_generate, keyed_settings, store)
        with TestClient(app) as client:
            client.post("/api/run", json={"mode": "idea"})
            wait_until_idle(client)

        restored = app.state.history.load(RunMode.IDEA)
        assert len(restored) == 3


@pytest.mark.asyncio
async def test_invalid_transition_maps_to_409() -> None:
    response = await stockbatch_exception_handler(
        None, InvalidTransitionError("abc", "completed", "processing")
    )
    assert response.status_code == 409
    assert b"InvalidTransitionError" in response.body

"""Tests for the ClassifyX API."""

from __future__ import annotations

import io
import json
import os
from typing import TYPE_CHECKING
from unittest.mock import patch

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

import httpx
import pytest
from classifier_fakes import color_response, json_response, tag_payload
from fastapi import FastAPI, status

from classifyx.config import credentials_override, get_settings
from classifyx.jobs import JobPool
from classifyx.main import create_app
from classifyx.worker import MetadataWorker

SOURCE_URL = "https://cdn.test/assets/cat.jpg"
JPEG = b"\xff\xd8\xff\xe0 fake jpeg"


def _classifier_service(request: httpx.Request) -> httpx.Response:
    """Fake classifier backend: tag classifier 500 fails, everything else answers."""
    if request.url.host == "sensei-stage-va6.adobe.io":
        return color_response(navy=(0.7, 0, 0, 128))
    if "/classifiers/500/" in request.url.path:
        return json_response({"message": "internal error"}, status_code=500, request_id="req-500")
    return json_response(tag_payload(("cat", 0.9), ("sofa", 0.4)))


def _init_app_state(app: FastAPI, **env_overrides: str) -> None:
    """Manually initialize app state (ASGITransport does not trigger lifespan)."""
    env = {"CLASSIFYX_TEST_MODE": "true", **env_overrides}
    with patch.dict(os.environ, env):
        settings = get_settings()
    app.state.settings = settings
    app.state.job_pool = JobPool(settings)
    app.state.worker = MetadataWorker(
        settings,
        credentials_override=credentials_override(settings),
        transport=httpx.MockTransport(_classifier_service),
    )


async def _make_client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as ac:
        yield ac


@pytest.fixture()
def app() -> FastAPI:
    """Create a fresh app instance in test mode."""
    application = create_app()
    _init_app_state(application)
    return application


@pytest.fixture()
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    """Async HTTP client for testing the app."""
    async for ac in _make_client(app):
        yield ac


async def _process(
    client: httpx.AsyncClient,
    content: bytes = JPEG,
    instructions: dict[str, str] | str | None = None,
    source_url: str | None = SOURCE_URL,
) -> httpx.Response:
    data: dict[str, str] = {}
    if instructions is not None:
        data["instructions"] = instructions if isinstance(instructions, str) else json.dumps(instructions)
    if source_url is not None:
        data["source_url"] = source_url
    return await client.post(
        "/api/v1/process",
        files={"file": ("cat.jpg", io.BytesIO(content), "image/jpeg")},
        data=data,
    )


class TestHealthEndpoint:
    async def test_health_returns_ok(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/v1/health")
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "ok"
        assert data["test_mode"] is True
        assert data["active_jobs"] == 0
        assert data["queue_depth"] == 0


class TestClassifiersEndpoint:
    async def test_lists_default_targets(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/v1/classifiers")
        assert response.status_code == status.HTTP_200_OK
        classifiers = response.json()["classifiers"]
        tags = [c for c in classifiers if c["kind"] == "tag"]
        colors = [c for c in classifiers if c["kind"] == "color"]
        assert [c["id"] for c in tags] == ["10021", "10023"]
        assert tags[0]["endpoint"].endswith("/classifiers/10021/predict_tags")
        assert len(colors) == 1


class TestProcessEndpoint:
    async def test_tag_job(self, client: httpx.AsyncClient) -> None:
        response = await _process(client, instructions={"CLASSIFIER_IDS": "1,2"})
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        names = [label["ccai:name"] for label in data["metadata"]["ccai:labels"]]
        assert names == ["cat", "cat", "sofa", "sofa"]
        assert json.loads(data["document"])["metadata"] == data["metadata"]

    async def test_color_job(self, client: httpx.AsyncClient) -> None:
        response = await _process(client, instructions={"FEATURE_KIND": "color"}, source_url=None)
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["metadata"]["ccai:colorRGB"] == ["#000080, 70%"]

    async def test_empty_file_is_unprocessable(self, client: httpx.AsyncClient) -> None:
        response = await _process(client, content=b"")
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert "empty" in response.json()["detail"]

    async def test_failing_classifier_is_bad_gateway(self, client: httpx.AsyncClient) -> None:
        response = await _process(client, instructions={"CLASSIFIER_IDS": "1,500"})
        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        data = response.json()
        assert data["classifier_id"] == "500"
        assert data["request_id"] == "req-500"
        assert "internal error" in data["detail"]

    async def test_invalid_instructions_json(self, client: httpx.AsyncClient) -> None:
        response = await _process(client, instructions="{not json")
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    async def test_tag_job_needs_source_url(self, client: httpx.AsyncClient) -> None:
        response = await _process(client, source_url=None)
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "URL" in response.json()["detail"]

    async def test_saturated_pool_returns_503(self) -> None:
        app = create_app()
        _init_app_state(app, CLASSIFYX_MAX_CONCURRENT_JOBS="1", CLASSIFYX_JOB_QUEUE_TIMEOUT="0.05")
        pool: JobPool = app.state.job_pool
        await pool._semaphore.acquire()
        async for ac in _make_client(app):
            response = await _process(ac)
            assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE


class TestAuthentication:
    async def test_no_auth_required_by_default(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/v1/health")
        assert response.status_code == status.HTTP_200_OK

    async def test_auth_required_when_api_key_set(self) -> None:
        app = create_app()
        _init_app_state(app, CLASSIFYX_API_KEY="test-secret-key")
        async for ac in _make_client(app):
            response = await ac.get("/api/v1/health")
            assert response.status_code == status.HTTP_401_UNAUTHORIZED

    @pytest.mark.parametrize(
        "headers",
        [{"Authorization": "Bearer test-secret-key"}, {"x-api-key": "test-secret-key"}],
    )
    async def test_auth_passes_with_correct_key(self, headers: dict[str, str]) -> None:
        app = create_app()
        _init_app_state(app, CLASSIFYX_API_KEY="test-secret-key")
        async for ac in _make_client(app):
            response = await ac.get("/api/v1/health", headers=headers)
            assert response.status_code == status.HTTP_200_OK

    async def test_auth_fails_with_wrong_key(self) -> None:
        app = create_app()
        _init_app_state(app, CLASSIFYX_API_KEY="test-secret-key")
        async for ac in _make_client(app):
            response = await ac.get(
                "/api/v1/health",
                headers={"Authorization": "Bearer wrong-key", "x-api-key": "also-wrong"},
            )
            assert response.status_code == status.HTTP_401_UNAUTHORIZED

"""Tests for the Vercel client and deployment selection."""

import json

import httpx
import pytest

from sitepulse.api_logger import ApiLogger
from sitepulse.errors import DecodeError, ProjectNotFound
from sitepulse.models import VercelDeployment
from sitepulse.vercel_client import (
    VercelClient,
    deployment_state,
    is_successful,
    select_active_deployment,
)


def _deployment(uid: str, state: str, target: str | None = None) -> VercelDeployment:
    return VercelDeployment.model_validate({"uid": uid, "readyState": state, "target": target})


def _client(handler) -> VercelClient:
    return VercelClient("token", "https://vercel.test", transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# Deployment helpers
# ---------------------------------------------------------------------------


class TestDeploymentHelpers:
    def test_uid_becomes_id(self) -> None:
        assert _deployment("dpl_1", "READY").id == "dpl_1"

    def test_state_prefers_ready_state(self) -> None:
        d = VercelDeployment.model_validate({"id": "x", "readyState": "ERROR", "status": "READY"})
        assert deployment_state(d) == "ERROR"
        assert not is_successful(d)

    def test_status_fallback(self) -> None:
        d = VercelDeployment.model_validate({"id": "x", "status": "ready"})
        assert is_successful(d)

    def test_active_prefers_ready_production(self) -> None:
        deployments = [
            _deployment("preview", "READY", "preview"),
            _deployment("prod-failed", "ERROR", "production"),
            _deployment("prod", "READY", "production"),
        ]
        assert select_active_deployment(deployments).id == "prod"

    def test_active_falls_back_to_any_ready(self) -> None:
        deployments = [_deployment("building", "BUILDING"), _deployment("preview", "READY")]
        assert select_active_deployment(deployments).id == "preview"

    def test_active_falls_back_to_latest(self) -> None:
        deployments = [_deployment("newest", "ERROR"), _deployment("older", "CANCELED")]
        assert select_active_deployment(deployments).id == "newest"

    def test_active_none_when_empty(self) -> None:
        assert select_active_deployment([]) is None


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class TestVercelClient:
    @pytest.mark.asyncio
    async def test_get_projects_enriches_with_deployments(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path
            if path == "/v9/projects":
                return httpx.Response(
                    200,
                    json={"projects": [{"id": "p1", "name": "site"}, {"id": "p2", "name": "docs"}]},
                )
            if path == "/v9/projects/p1":
                return httpx.Response(
                    200,
                    json={
                        "id": "p1",
                        "name": "site",
                        "framework": "nextjs",
                        "latestDeployments": [{"id": "d1", "readyState": "READY"}],
                    },
                )
            if path == "/v9/projects/p2":
                return httpx.Response(200, json={"id": "p2", "name": "docs"})
            if path == "/v6/deployments":
                assert request.url.params["projectId"] == "p2"
                return httpx.Response(200, json={"deployments": [{"uid": "d2", "state": "ERROR"}]})
            return httpx.Response(404, json={"error": "not found"})

        projects = await _client(handler).get_projects()

        assert [p.name for p in projects] == ["site", "docs"]
        assert projects[0].framework == "nextjs"
        assert projects[0].latest_deployments[0].id == "d1"
        assert projects[1].latest_deployments[0].id == "d2"

    @pytest.mark.asyncio
    async def test_get_projects_keeps_project_when_details_fail(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/v9/projects":
                return httpx.Response(200, json={"projects": [{"id": "p1", "name": "site"}]})
            return httpx.Response(500, text="boom")

        projects = await _client(handler).get_projects()
        assert [(p.id, p.latest_deployments) for p in projects] == [("p1", [])]

    @pytest.mark.asyncio
    async def test_resolve_project_by_name(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            path = request.url.path
            if path == "/v9/projects/my-site":
                return httpx.Response(404, json={"error": "not found"})
            if path == "/v9/projects":
                return httpx.Response(200, json={"projects": [{"id": "p1", "name": "my-site"}]})
            if path == "/v9/projects/p1":
                return httpx.Response(200, json={"id": "p1", "name": "my-site"})
            return httpx.Response(200, json={"deployments": []})

        project = await _client(handler).resolve_project("my-site")
        assert project.id == "p1"

    @pytest.mark.asyncio
    async def test_resolve_project_not_found(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/v9/projects":
                return httpx.Response(200, json={"projects": []})
            return httpx.Response(404, json={"error": "not found"})

        with pytest.raises(ProjectNotFound, match="ghost"):
            await _client(handler).resolve_project("ghost")

    @pytest.mark.asyncio
    async def test_logs_bare_list_and_wrapped(self) -> None:
        events = [
            {"type": "stdout", "created": 1700000000000, "payload": {"text": "Building"}},
            {"type": "error", "created": 1700000001000, "payload": {"error": {"message": "x"}}},
        ]

        logs = await _client(lambda r: httpx.Response(200, json=events)).get_deployment_logs("d1")
        assert [log.type for log in logs] == ["stdout", "error"]

        wrapped = await _client(
            lambda r: httpx.Response(200, json={"logs": events})
        ).get_deployment_logs("d1")
        assert len(wrapped) == 2

    @pytest.mark.asyncio
    async def test_wrong_shape_is_logged_decode_error(self, tmp_path) -> None:
        api_logger = ApiLogger("vercel", base_dir=tmp_path, enabled=True)
        client = VercelClient(
            "token",
            "https://vercel.test",
            api_logger=api_logger,
            transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"deployments": "x"})),
        )
        with pytest.raises(DecodeError):
            await client.get_deployments("p1")

        [path] = (tmp_path / "vercel").glob("*.json")
        entry = json.loads(path.read_text())
        assert entry["success"] is False
        assert entry["error"]["type"] == "DecodeError"

"""Vercel REST API client for projects, deployments and build logs."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Optional

import httpx

from sitepulse.api_logger import ApiLogger
from sitepulse.errors import ApiError, ProjectNotFound
from sitepulse.fanout import gather_outcomes
from sitepulse.http import DEFAULT_TIMEOUT, ApiClient
from sitepulse.models import VercelDeployment, VercelLog, VercelProject

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.vercel.com"

SUCCESS_STATES = frozenset({"ready", "complete", "success"})


def deployment_state(deployment: VercelDeployment) -> str:
    """The deployment's state, preferring ``readyState`` over ``status``."""
    return deployment.ready_state or deployment.status or deployment.state or ""


def is_successful(deployment: VercelDeployment) -> bool:
    return deployment_state(deployment).lower() in SUCCESS_STATES


def select_active_deployment(
    deployments: Sequence[VercelDeployment],
) -> Optional[VercelDeployment]:
    """Pick the deployment currently serving traffic.

    Ready production deployment first, then any ready deployment, then the
    most recent one.
    """
    for d in deployments:
        if is_successful(d) and d.target == "production":
            return d
    for d in deployments:
        if is_successful(d):
            return d
    return deployments[0] if deployments else None


class VercelClient(ApiClient):
    """Async client for the Vercel REST API."""

    service = "vercel"

    def __init__(
        self,
        api_token: str,
        base_url: str = DEFAULT_BASE_URL,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        api_logger: Optional[ApiLogger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(
            api_token,
            base_url,
            timeout=timeout,
            api_logger=api_logger,
            transport=transport,
        )

    async def _get_model(self, endpoint: str, key: Optional[str], model: Any, **params: Any) -> Any:
        def parse(data: Any) -> Any:
            if key is None:
                return model.model_validate(data)
            return [model.model_validate(item) for item in data.get(key, [])]

        return await self._request("GET", endpoint, params=params or None, parse=parse)

    async def get_project(self, project_id: str) -> VercelProject:
        return await self._get_model(f"/v9/projects/{project_id}", None, VercelProject)

    async def get_deployments(self, project_id: str, limit: int = 10) -> list[VercelDeployment]:
        return await self._get_model(
            "/v6/deployments", "deployments", VercelDeployment, projectId=project_id, limit=limit
        )

    async def get_deployment_logs(self, deployment_id: str) -> list[VercelLog]:
        return await self._request(
            "GET", f"/v2/deployments/{deployment_id}/events", parse=_parse_logs
        )

    async def get_projects(self) -> list[VercelProject]:
        """List projects, each enriched with its latest deployments.

        Details are fetched concurrently. A project whose details cannot be
        fetched is returned as listed.
        """
        projects = await self._get_model("/v9/projects", "projects", VercelProject, limit=100)
        outcomes = await gather_outcomes({p.id: self._with_deployments(p) for p in projects})

        enriched: list[VercelProject] = []
        for project in projects:
            outcome = outcomes[project.id]
            if outcome.ok:
                enriched.append(outcome.value)
            else:
                logger.warning("Could not fetch details for %s: %s", project.name, outcome.error)
                enriched.append(project)
        return enriched

    async def _with_deployments(self, project: VercelProject) -> VercelProject:
        detailed = await self.get_project(project.id)
        if detailed.latest_deployments:
            return detailed
        try:
            deployments = await self.get_deployments(project.id, 5)
        except ApiError as exc:
            logger.warning("Could not fetch latest deployments for %s: %s", project.name, exc)
            return detailed
        return detailed.model_copy(update={"latest_deployments": deployments})

    async def resolve_project(self, identifier: str) -> VercelProject:
        """Find a project by ID, falling back to an exact name match.

        Raises:
            ProjectNotFound: neither lookup matched.
        """
        try:
            return await self.get_project(identifier)
        except ApiError:
            logger.info("No project with ID %s, searching by name", identifier)

        for project in await self.get_projects():
            if project.name == identifier:
                return project
        raise ProjectNotFound(identifier)


def _parse_logs(data: Any) -> list[VercelLog]:
    # The events endpoint returns a bare list; older responses wrap it.
    raw = data.get("logs", []) if isinstance(data, dict) else data
    return [VercelLog.model_validate(item) for item in raw]

"""Plausible Stats API client.

Breakdowns go through the v1 endpoint, which pages results; ad-hoc
multi-metric queries go through the v2 query endpoint.
"""

from __future__ import annotations

import logging
from collections.abc import Hashable, Mapping
from typing import Any, Optional

import httpx

from sitepulse.api_logger import ApiLogger
from sitepulse.errors import PageLimitExceeded
from sitepulse.fanout import BranchOutcome, gather_outcomes
from sitepulse.http import DEFAULT_TIMEOUT, ApiClient
from sitepulse.models import BreakdownQuery, BreakdownResult, QueryRequest, Site
from sitepulse.time_range import NormalizedRange

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://plausible.io/api"
DEFAULT_MAX_PAGES = 100


class PlausibleClient(ApiClient):
    """Async client for a Plausible instance."""

    service = "plausible"

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        max_pages: int = DEFAULT_MAX_PAGES,
        api_logger: Optional[ApiLogger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(
            api_key,
            base_url,
            timeout=timeout,
            api_logger=api_logger,
            transport=transport,
        )
        self.max_pages = max_pages

    # ------------------------------------------------------------------
    # Breakdowns
    # ------------------------------------------------------------------

    async def fetch_breakdown(self, query: BreakdownQuery) -> BreakdownResult:
        """Fetch the single page of *query* identified by ``query.page``."""
        return await self._request(
            "GET",
            "/v1/stats/breakdown",
            params=query.to_params(),
            parse=BreakdownResult.model_validate,
        )

    async def fetch_all_breakdown(self, query: BreakdownQuery) -> list[dict[str, Any]]:
        """Fetch every page of *query*, starting at page 1.

        All-or-nothing: any failing page raises and the records gathered so
        far are dropped.

        Raises:
            PageLimitExceeded: the provider reports more than ``max_pages``.
        """
        records: list[dict[str, Any]] = []
        page = 1
        total_pages = 1
        fetched = 0

        while page <= total_pages:
            result = await self.fetch_breakdown(query.with_page(page))
            records.extend(result.results)
            fetched += 1

            if result.pagination is None:
                break

            total_pages = result.pagination.total_pages
            if total_pages > self.max_pages:
                raise PageLimitExceeded(total_pages, self.max_pages)
            page += 1

        logger.info(
            "Fetched %d %s records for %s over %d page(s)",
            len(records),
            query.property,
            query.site_id,
            fetched,
        )
        return records

    async def fetch_breakdowns(
        self,
        queries: Mapping[Hashable, BreakdownQuery],
        *,
        all_pages: bool = False,
    ) -> dict[Hashable, BranchOutcome[list[dict[str, Any]]]]:
        """Fetch several independent breakdowns concurrently.

        Each outcome carries the records or the error for its key; one
        failure does not stop the rest.
        """
        if all_pages:
            branches = {key: self.fetch_all_breakdown(q) for key, q in queries.items()}
        else:
            branches = {key: self._records(q) for key, q in queries.items()}
        return await gather_outcomes(branches)

    async def _records(self, query: BreakdownQuery) -> list[dict[str, Any]]:
        return (await self.fetch_breakdown(query)).results

    # ------------------------------------------------------------------
    # Other endpoints
    # ------------------------------------------------------------------

    async def get_sites(self) -> list[Site]:
        """List the sites in the account."""
        return await self._request("GET", "/v1/sites", parse=_parse_sites)

    async def timeseries(self, site_id: str, time_range: NormalizedRange) -> list[dict[str, Any]]:
        """Daily visitor counts for *site_id* over *time_range*."""
        return await self._request(
            "GET",
            "/v1/stats/timeseries",
            params={"site_id": site_id, **time_range.v1_params()},
            parse=_parse_results,
        )

    async def query(self, request: QueryRequest) -> dict[str, Any]:
        """Run a v2 query and return the raw response body."""
        return await self._request(
            "POST", "/v2/query", json_body=request.to_body(), parse=_parse_object
        )


def _parse_sites(data: Any) -> list[Site]:
    raw = data.get("sites", []) if isinstance(data, dict) else data
    return [Site.model_validate(s) for s in raw]


def _parse_results(data: Any) -> list[dict[str, Any]]:
    if not isinstance(data, dict) or not isinstance(data.get("results"), list):
        raise ValueError("missing 'results' list")
    return data["results"]


def _parse_object(data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return data

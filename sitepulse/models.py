"""Pydantic models for provider requests and responses."""

from __future__ import annotations

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from sitepulse.metric_map import (
    BREAKDOWN_PROPERTIES,
    Dimension,
    Filter,
    FilterOperator,
    Metric,
)
from sitepulse.time_range import NormalizedRange

MAX_BREAKDOWN_LIMIT = 1000  # Stats API v1 maximum page size
DEFAULT_QUERY_LIMIT = 10000

# ---------------------------------------------------------------------------
# Plausible
# ---------------------------------------------------------------------------


class Site(BaseModel):
    """A site registered in the Plausible account."""

    model_config = ConfigDict(extra="allow")

    domain: str
    timezone: str = "Etc/UTC"


class Pagination(BaseModel):
    page: int
    total_pages: int


class BreakdownResult(BaseModel):
    """One page of a breakdown. No ``pagination`` means the set is complete."""

    results: list[dict[str, Any]] = Field(default_factory=list)
    pagination: Optional[Pagination] = None


class BreakdownQuery(BaseModel):
    """Parameters for ``GET /v1/stats/breakdown``."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    site_id: str = Field(..., min_length=1, description="Site domain, e.g. example.com")
    property: str = Field(..., description="Breakdown property, e.g. event:page")
    time_range: NormalizedRange
    metrics: tuple[Metric, ...] = (Metric.VISITORS,)
    limit: int = Field(default=10, ge=1)
    page: int = Field(default=1, ge=1)
    filters: tuple[Filter, ...] = ()

    @field_validator("site_id")
    @classmethod
    def _strip_site(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("site_id must be a non-empty domain")
        return v

    @field_validator("property")
    @classmethod
    def _known_property(cls, v: str) -> str:
        if v not in BREAKDOWN_PROPERTIES:
            raise ValueError(
                f"unknown breakdown property '{v}', expected one of {', '.join(BREAKDOWN_PROPERTIES)}"
            )
        return v

    @field_validator("limit")
    @classmethod
    def _cap_limit(cls, v: int) -> int:
        return min(v, MAX_BREAKDOWN_LIMIT)

    @model_validator(mode="after")
    def _filters_expressible(self) -> "BreakdownQuery":
        for f in self.filters:
            if f.operator in (FilterOperator.MATCHES, FilterOperator.MATCHES_NOT):
                raise ValueError(
                    f"operator '{f.operator.value}' is not supported by the breakdown endpoint"
                )
        return self

    def with_page(self, page: int) -> "BreakdownQuery":
        return self.model_copy(update={"page": page})

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {
            "site_id": self.site_id,
            "property": self.property,
            "metrics": ",".join(m.value for m in self.metrics),
            "limit": self.limit,
            "page": self.page,
            **self.time_range.v1_params(),
        }
        if self.filters:
            params["filters"] = ";".join(f.to_v1() for f in self.filters)
        return params


class QueryRequest(BaseModel):
    """Body for ``POST /v2/query``."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    site_id: str = Field(..., min_length=1)
    metrics: tuple[Metric, ...] = (Metric.VISITORS,)
    dimensions: tuple[Dimension, ...] = ()
    time_range: NormalizedRange
    filters: tuple[Filter, ...] = ()
    limit: Optional[int] = Field(default=None, ge=1)
    page: Optional[int] = Field(default=None, ge=1)

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "site_id": self.site_id,
            "metrics": [m.value for m in self.metrics],
            "date_range": self.time_range.v2_date_range(),
        }
        if self.dimensions:
            body["dimensions"] = [d.value for d in self.dimensions]
        if self.filters:
            body["filters"] = [f.to_wire() for f in self.filters]
        if self.limit is not None or self.page is not None:
            limit = self.limit or DEFAULT_QUERY_LIMIT
            page = self.page or 1
            body["pagination"] = {"limit": limit, "offset": (page - 1) * limit}
        return body


# ---------------------------------------------------------------------------
# Vercel
# ---------------------------------------------------------------------------


class VercelDeployment(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = ""
    url: Optional[str] = None
    name: Optional[str] = None
    target: Optional[str] = None
    state: Optional[str] = None
    status: Optional[str] = None
    ready_state: Optional[str] = Field(default=None, alias="readyState")
    created: Optional[Union[str, int]] = None
    created_at: Optional[Union[str, int]] = Field(default=None, alias="createdAt")

    @model_validator(mode="before")
    @classmethod
    def _id_or_uid(cls, data: Any) -> Any:
        # /v9/projects embeds deployments with "id"; /v6/deployments uses "uid".
        if isinstance(data, dict) and "id" not in data and "uid" in data:
            data = {**data, "id": data["uid"]}
        return data


class VercelProject(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    name: str
    framework: Optional[str] = None
    latest_deployments: list[VercelDeployment] = Field(
        default_factory=list, alias="latestDeployments"
    )


class VercelLog(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    type: str = "unknown"
    created: Optional[Union[str, int]] = None
    payload: dict[str, Any] = Field(default_factory=dict)

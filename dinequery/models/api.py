"""Request and response models for a query turn."""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field

from dinequery.models.domain import CandidateResult, MenuItem, Restaurant
from dinequery.models.state import SuggestedAction


class OutcomeCode(str, Enum):
    """Machine-readable outcome of a turn."""

    MISSING_LOCATION = "MISSING_LOCATION"
    RESTAURANT_NOT_FOUND = "RESTAURANT_NOT_FOUND"
    NOT_PARTNER = "NOT_PARTNER"
    NO_RESULTS = "NO_RESULTS"
    AMBIGUOUS = "AMBIGUOUS"


ResultKind = Literal["answer", "restaurants", "restaurant_info", "menu", "error"]


class QueryRequest(BaseModel):
    """One user turn."""

    text: str = Field(..., min_length=1, max_length=500)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    radius_km: float | None = None
    limit: int | None = None
    cursor: str | None = None
    thread_id: str | None = Field(default=None, max_length=128)
    language: Literal["hr", "en"] = "hr"


class PageInfo(BaseModel):
    """Pagination summary."""

    offset: int
    limit: int
    total: int
    has_next: bool
    has_prev: bool


class QueryResponse(BaseModel):
    """Structured answer for one turn."""

    kind: ResultKind
    code: OutcomeCode | None = None
    answer: str
    results: list[CandidateResult] = Field(default_factory=list)
    restaurant: Restaurant | None = None
    items: list[MenuItem] = Field(default_factory=list)
    next_cursor: str | None = None
    prev_cursor: str | None = None
    page_info: PageInfo | None = None
    intent: str | None = None
    params: dict[str, Any] = Field(default_factory=dict)
    params_hash: str | None = None
    suggested_action: SuggestedAction | None = None
    route_source: str | None = None
    duration_ms: float = 0.0

"""LangGraph turn state and session models."""

from datetime import datetime, timezone
from typing import Any, Literal, TypedDict

from pydantic import BaseModel, Field

from dinequery.models.domain import CandidateResult, MenuItem, OpenState, Restaurant
from dinequery.models.intents import ResolvedIntent


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SuggestedAction(BaseModel):
    """Follow-up hint offered to the user, applied by an affirmation."""

    type: Literal["increase_radius"] = "increase_radius"
    to_km: float = Field(gt=0)


class SessionState(BaseModel):
    """Short-lived conversation context for one thread."""

    thread_id: str
    last_intent: str | None = None
    last_params: dict[str, Any] = Field(default_factory=dict)
    suggested_action: SuggestedAction | None = None
    last_result_ids: list[int] = Field(default_factory=list)
    last_results_count: int = 0
    updated_at: datetime = Field(default_factory=_utcnow)

    def summary(self) -> dict[str, Any] | None:
        """Compact context handed to the oracle.

        Only location and the item/perk filters are exposed.
        """
        if not self.last_intent:
            return None
        safe_keys = ("item_name", "perk_name", "city", "latitude", "longitude", "radius_km")
        return {
            "last_intent": self.last_intent,
            "last_params": {k: self.last_params[k] for k in safe_keys if k in self.last_params},
            "suggested_action": (
                self.suggested_action.model_dump() if self.suggested_action else None
            ),
            "last_results_count": self.last_results_count,
        }


class ExecutionResult(BaseModel):
    """Outcome of running one intent against the data store.

    Stored in the result cache, so it holds only data derived from the
    resolved parameters.
    """

    kind: Literal["answer", "restaurants", "restaurant_info", "menu", "error"]
    code: str | None = None
    candidates: list[CandidateResult] = Field(default_factory=list)
    restaurant: Restaurant | None = None
    items: list[MenuItem] = Field(default_factory=list)
    open_state: OpenState | None = None
    at: datetime | None = None
    facts: dict[str, Any] = Field(default_factory=dict)


class TurnState(TypedDict, total=False):
    """LangGraph pipeline state for one turn."""

    # Input
    text: str
    latitude: float | None
    longitude: float | None
    radius_km: float | None
    limit: int | None
    cursor: str | None
    thread_id: str | None
    language: str
    now: datetime

    # Session
    session: SessionState | None
    confirmation_applied: bool

    # Routing
    intent: ResolvedIntent | None
    route_source: str
    oracle_error: str | None
    code: str | None

    # Execution
    result: ExecutionResult | None
    params_hash: str | None
    cache_hit: bool

    # Output
    page: Any
    suggested_action: SuggestedAction | None
    answer: str

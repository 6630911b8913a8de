"""Data models for the query engine."""

from dinequery.models.domain import (
    BoundingBox,
    CandidateResult,
    MenuItem,
    OpeningHours,
    OpeningPeriod,
    OpeningTime,
    OpenState,
    Restaurant,
    TaxonomyRow,
    TaxonomyTables,
    WorkingDayOverride,
)
from dinequery.models.intents import TOOL_REGISTRY, ResolvedIntent, ToolArgs, parse_intent
from dinequery.models.state import ExecutionResult, SessionState, SuggestedAction, TurnState
from dinequery.models.api import OutcomeCode, PageInfo, QueryRequest, QueryResponse

__all__ = [
    # Domain models
    "BoundingBox",
    "CandidateResult",
    "MenuItem",
    "OpeningHours",
    "OpeningPeriod",
    "OpeningTime",
    "OpenState",
    "Restaurant",
    "TaxonomyRow",
    "TaxonomyTables",
    "WorkingDayOverride",
    # Intents
    "TOOL_REGISTRY",
    "ResolvedIntent",
    "ToolArgs",
    "parse_intent",
    # State models
    "ExecutionResult",
    "SessionState",
    "SuggestedAction",
    "TurnState",
    # API models
    "OutcomeCode",
    "PageInfo",
    "QueryRequest",
    "QueryResponse",
]

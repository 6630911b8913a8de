"""Intent routing: tool registry, oracle and heuristic fallback."""

from dinequery.routing.heuristic import HeuristicResult, parse_heuristic
from dinequery.routing.oracle import ChatOpenAIOracle, ToolOracle, ToolSelection
from dinequery.routing.router import IntentRouter, RouteDecision, backfill

__all__ = [
    "ChatOpenAIOracle",
    "HeuristicResult",
    "IntentRouter",
    "RouteDecision",
    "ToolOracle",
    "ToolSelection",
    "backfill",
    "parse_heuristic",
]

"""LangGraph pipeline for one query turn."""

from dinequery.pipeline.graph import compile_turn_graph, create_turn_graph
from dinequery.pipeline.handlers import IntentExecutor
from dinequery.pipeline.nodes import TurnNodes

__all__ = [
    "IntentExecutor",
    "TurnNodes",
    "compile_turn_graph",
    "create_turn_graph",
]

"""LangGraph turn pipeline definition."""

from typing import Literal

from langgraph.graph import END, StateGraph

from dinequery.models.state import TurnState
from dinequery.pipeline.nodes import TurnNodes


def route_after_confirmation(state: TurnState) -> Literal["execute_node", "router_node"]:
    """Skip the router when a confirmation already produced the intent."""
    if state.get("confirmation_applied") and state.get("intent") is not None:
        return "execute_node"
    return "router_node"


def route_after_router(state: TurnState) -> Literal["execute_node", "format_node"]:
    """Routing outcomes without an intent (AMBIGUOUS) go straight to the answer."""
    if state.get("intent") is None or state.get("code"):
        return "format_node"
    return "execute_node"


def create_turn_graph(nodes: TurnNodes) -> StateGraph:
    """Create the LangGraph turn pipeline.

    Pipeline Flow:
    1. Context → Load session for the thread
    2. Confirmation → Apply a short reply to the previous turn
       - applied → Execute (router skipped)
    3. Router → Oracle or heuristic intent
       - AMBIGUOUS → Format
    4. Execute → Cached domain lookup
    5. Suggest → Wider radius on empty nearby results
    6. Paginate → Cursor page
    7. Format → Answer text
    8. Persist → Session write-back
    """
    graph = StateGraph(TurnState)

    graph.add_node("context_node", nodes.context_node)
    graph.add_node("confirmation_node", nodes.confirmation_node)
    graph.add_node("router_node", nodes.router_node)
    graph.add_node("execute_node", nodes.execute_node)
    graph.add_node("suggest_node", nodes.suggest_node)
    graph.add_node("paginate_node", nodes.paginate_node)
    graph.add_node("format_node", nodes.format_node)
    graph.add_node("persist_node", nodes.persist_node)

    graph.set_entry_point("context_node")
    graph.add_edge("context_node", "confirmation_node")

    graph.add_conditional_edges(
        "confirmation_node",
        route_after_confirmation,
        {
            "execute_node": "execute_node",
            "router_node": "router_node",
        },
    )

    graph.add_conditional_edges(
        "router_node",
        route_after_router,
        {
            "execute_node": "execute_node",
            "format_node": "format_node",
        },
    )

    graph.add_edge("execute_node", "suggest_node")
    graph.add_edge("suggest_node", "paginate_node")
    graph.add_edge("paginate_node", "format_node")
    graph.add_edge("format_node", "persist_node")
    graph.add_edge("persist_node", END)

    return graph


def compile_turn_graph(nodes: TurnNodes):
    """Compile the turn graph for execution."""
    return create_turn_graph(nodes).compile()

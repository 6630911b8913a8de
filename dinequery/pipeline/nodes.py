"""LangGraph node implementations for one query turn."""

from typing import Any

import structlog
from pydantic import ValidationError

from dinequery import metrics
from dinequery.cache import ResultCache
from dinequery.config import get_settings
from dinequery.formatter import AnswerFormatter
from dinequery.models.api import OutcomeCode
from dinequery.models.intents import NEARBY_INTENTS, ResolvedIntent, parse_intent
from dinequery.models.state import SessionState, SuggestedAction, TurnState
from dinequery.pagination import hash_params, paginate
from dinequery.pipeline.handlers import TIME_DEPENDENT_INTENTS, IntentExecutor
from dinequery.resolvers.taxonomy import extract_filters, ids_by_dimension, message_filter_ids, resolve_names
from dinequery.routing.router import IntentRouter, backfill
from dinequery.session.confirmation import apply_confirmation, parse_confirmation
from dinequery.session.store import SessionStore

logger = structlog.get_logger()
settings = get_settings()


def cache_params(state: TurnState) -> dict[str, Any]:
    """Cache key for a turn's execution: intent, resolved params and, for
    clock-dependent intents, the current minute."""
    intent = state["intent"]
    params: dict[str, Any] = {"intent": intent.name, "params": intent.params}
    if intent.name in TIME_DEPENDENT_INTENTS:
        params["minute"] = state["now"].strftime("%Y-%m-%dT%H:%M")
    return params


class TurnNodes:
    """Pipeline nodes bound to the components the engine owns.

    Args:
        router: Intent router
        executor: Per-intent executor
        formatter: Answer formatter
        sessions: Session store
        cache: Result cache
        max_radius_km: Radius cap for confirmations and suggestions
    """

    def __init__(
        self,
        router: IntentRouter,
        executor: IntentExecutor,
        formatter: AnswerFormatter,
        sessions: SessionStore,
        cache: ResultCache,
        max_radius_km: float | None = None,
    ):
        self.router = router
        self.executor = executor
        self.formatter = formatter
        self.sessions = sessions
        self.cache = cache
        self.max_radius_km = max_radius_km if max_radius_km is not None else settings.max_radius_km

    async def context_node(self, state: TurnState) -> TurnState:
        """Load the thread's session, if any."""
        thread_id = state.get("thread_id")
        state["session"] = self.sessions.get(thread_id) if thread_id else None
        state["confirmation_applied"] = False
        state["intent"] = None
        state["code"] = None
        state["result"] = None
        state["suggested_action"] = None
        if state["session"] is not None:
            logger.debug("session_loaded", thread_id=thread_id, last_intent=state["session"].last_intent)
        return state

    async def confirmation_node(self, state: TurnState) -> TurnState:
        """Apply a short confirmation to the previous turn, bypassing the router."""
        session = state.get("session")
        if session is None or not session.last_intent:
            return state

        confirmation = parse_confirmation(state["text"])
        if confirmation is None:
            return state

        tables = await self.executor.taxonomy.tables()
        applied = apply_confirmation(
            session,
            confirmation,
            self.max_radius_km,
            is_perk=lambda term: bool(resolve_names(term, "perks", tables)),
            term_ids=lambda term: ids_by_dimension(extract_filters(term, tables)),
        )
        if applied is None:
            logger.debug("confirmation_not_applicable", kind=confirmation.kind)
            return state

        params = dict(applied.params)
        # the user may have moved since the previous turn
        latitude, longitude = state.get("latitude"), state.get("longitude")
        if applied.intent in NEARBY_INTENTS and latitude is not None and longitude is not None:
            params["latitude"] = latitude
            params["longitude"] = longitude

        try:
            intent = parse_intent(applied.intent, params)
        except ValidationError as e:
            logger.info("confirmation_params_invalid", intent=applied.intent, error=str(e))
            return state

        state["intent"] = backfill(
            intent,
            state.get("latitude"),
            state.get("longitude"),
            state.get("radius_km"),
            self.max_radius_km,
        )
        state["session"] = applied.state
        state["confirmation_applied"] = True
        state["route_source"] = "confirmation"
        metrics.record_route_source("confirmation")
        logger.info("confirmation_applied", kind=confirmation.kind, intent=applied.intent)
        return state

    async def router_node(self, state: TurnState) -> TurnState:
        """Resolve the intent through the oracle or the heuristic parser."""
        decision = await self.router.route(
            state["text"],
            latitude=state.get("latitude"),
            longitude=state.get("longitude"),
            radius_km=state.get("radius_km"),
            session=state.get("session"),
        )
        intent = decision.intent
        if intent is not None and intent.is_nearby:
            intent = await self._with_message_filters(intent, state["text"])
        state["intent"] = intent
        state["code"] = decision.code.value if decision.code else None
        state["route_source"] = decision.source
        state["oracle_error"] = decision.oracle_error
        return state

    async def _with_message_filters(self, intent: ResolvedIntent, text: str) -> ResolvedIntent:
        """Attach taxonomy ids mentioned anywhere in the message to a nearby intent."""
        params = intent.params
        searched = [params[key] for key in ("item_name", "perk_name") if params.get(key)]
        ids = message_filter_ids(text, await self.executor.taxonomy.tables(), searched)
        if ids:
            logger.debug("message_filters", intent=intent.name, taxonomy_ids=ids)
        return ResolvedIntent(
            name=intent.name, args=intent.args.model_copy(update={"taxonomy_ids": ids or None})
        )

    async def execute_node(self, state: TurnState) -> TurnState:
        """Run the intent, reading through and writing to the result cache."""
        intent = state["intent"]
        key = cache_params(state)
        state["params_hash"] = hash_params(intent.name, intent.params)

        cache_hit = True
        result = self.cache.get(key)
        if result is None:
            async with self.cache.lock(key):
                result = self.cache.get(key)
                if result is None:
                    cache_hit = False
                    result = await self.executor.execute(intent, state["now"])
                    self.cache.set(key, result)

        metrics.record_cache_event("hit" if cache_hit else "miss")
        if cache_hit:
            logger.info("cache_hit", intent=intent.name)
        state["cache_hit"] = cache_hit
        state["result"] = result
        state["code"] = result.code
        return state

    async def suggest_node(self, state: TurnState) -> TurnState:
        """Offer a wider radius when a nearby search found nothing."""
        intent = state["intent"]
        result = state["result"]
        if result.code != OutcomeCode.NO_RESULTS.value or not intent.is_nearby:
            return state

        radius = result.facts.get("radius_km") or intent.params.get("radius_km")
        if not radius:
            return state
        to_km = min(radius * 2, self.max_radius_km)
        if to_km > radius:
            state["suggested_action"] = SuggestedAction(to_km=to_km)
            logger.debug("radius_suggested", radius_km=radius, to_km=to_km)
        return state

    async def paginate_node(self, state: TurnState) -> TurnState:
        """Slice candidates (or menu items) into the requested page."""
        result = state["result"]
        if result.kind == "restaurants":
            items = result.candidates
        elif result.kind == "menu":
            items = result.items
        else:
            state["page"] = None
            return state

        state["page"] = paginate(
            items, state["params_hash"], limit=state.get("limit"), cursor=state.get("cursor")
        )
        return state

    async def format_node(self, state: TurnState) -> TurnState:
        """Phrase the reply."""
        intent = state.get("intent")
        result = state.get("result")
        page = state.get("page")
        page_items = page.items if page is not None and result and result.kind == "restaurants" else None

        state["answer"] = await self.formatter.format(
            intent.name if intent else None,
            state.get("code"),
            result,
            language=state.get("language", "hr"),
            now=state.get("now"),
            text=state.get("text"),
            page_items=page_items,
            total=page.page_info.total if page is not None else None,
            suggested_action=state.get("suggested_action"),
            max_radius_km=self.max_radius_km,
        )
        return state

    async def persist_node(self, state: TurnState) -> TurnState:
        """Write the turn's context back to the session store."""
        thread_id = state.get("thread_id")
        if not thread_id:
            return state

        intent = state.get("intent")
        session = state.get("session") or SessionState(thread_id=thread_id)
        if intent is None:
            # routing gave up; keep the previous context alive
            self.sessions.set(session)
            metrics.set_active_sessions(len(self.sessions))
            return state

        result = state.get("result")
        page = state.get("page")
        if result is not None and result.kind == "restaurants":
            result_ids = [c.restaurant.id for c in (page.items if page else result.candidates)]
            count = len(result.candidates)
        elif result is not None and result.restaurant is not None:
            result_ids = [result.restaurant.id]
            count = 1
        else:
            result_ids, count = [], 0

        updated = session.model_copy(
            update={
                "last_intent": intent.name,
                "last_params": intent.params,
                "suggested_action": state.get("suggested_action"),
                "last_result_ids": result_ids,
                "last_results_count": count,
            }
        )
        self.sessions.set(updated)
        metrics.set_active_sessions(len(self.sessions))
        return state

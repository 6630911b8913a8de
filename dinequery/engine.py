"""Query engine entry point."""

import asyncio
import time
from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo

import structlog

from dinequery import metrics
from dinequery.cache import ResultCache
from dinequery.config import Settings, get_settings
from dinequery.datastore import DataStore
from dinequery.errors import TurnFailedError
from dinequery.formatter import AnswerFormatter
from dinequery.models.api import OutcomeCode, QueryRequest, QueryResponse
from dinequery.models.state import TurnState
from dinequery.pipeline.graph import compile_turn_graph
from dinequery.pipeline.handlers import IntentExecutor
from dinequery.pipeline.nodes import TurnNodes
from dinequery.resolvers.taxonomy import TaxonomyResolver
from dinequery.routing.oracle import ChatOpenAIOracle, ToolOracle, get_chat_model
from dinequery.routing.router import IntentRouter
from dinequery.session.store import SessionStore

logger = structlog.get_logger()


class QueryEngine:
    """Answer restaurant questions turn by turn.

    The engine owns the session store and the result cache; turns on the
    same thread id run one at a time.

    Args:
        store: Restaurant data source
        oracle: Tool-selection oracle; None uses the heuristic parser only
        formatter: Answer formatter; templates only when omitted
        sessions: Session store
        cache: Result cache
        now: Wall-clock source returning aware datetimes
        settings: Settings override
    """

    def __init__(
        self,
        store: DataStore,
        oracle: ToolOracle | None = None,
        formatter: AnswerFormatter | None = None,
        sessions: SessionStore | None = None,
        cache: ResultCache | None = None,
        now: Callable[[], datetime] | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.sessions = sessions or SessionStore(ttl_seconds=self.settings.session_ttl_seconds)
        self.cache = cache or ResultCache(
            max_size=self.settings.cache_max_size, ttl_seconds=self.settings.cache_ttl_seconds
        )
        self.taxonomy = TaxonomyResolver(
            store, ResultCache(max_size=1, ttl_seconds=self.settings.taxonomy_ttl_seconds)
        )
        self.router = IntentRouter(
            oracle,
            timeout_seconds=self.settings.oracle_timeout_seconds,
            max_radius_km=self.settings.max_radius_km,
        )
        self.executor = IntentExecutor(
            store,
            self.taxonomy,
            max_radius_km=self.settings.max_radius_km,
            tz=self.settings.timezone,
        )
        self.formatter = formatter or AnswerFormatter(enabled=False)
        self._zone = ZoneInfo(self.settings.timezone)
        self._now = now or (lambda: datetime.now(self._zone))
        self._pipeline = compile_turn_graph(
            TurnNodes(
                self.router,
                self.executor,
                self.formatter,
                self.sessions,
                self.cache,
                max_radius_km=self.settings.max_radius_km,
            )
        )
        self._tasks: list[asyncio.Task] = []

    @classmethod
    def from_settings(cls, store: DataStore, settings: Settings | None = None) -> "QueryEngine":
        """Build an engine with OpenAI-backed routing and phrasing when a key is configured."""
        settings = settings or get_settings()
        if not settings.openai_api_key:
            logger.warning("openai_key_missing_using_heuristics")
            return cls(store, settings=settings)

        llm = get_chat_model(settings.openai_model)
        return cls(
            store,
            oracle=ChatOpenAIOracle(llm),
            formatter=AnswerFormatter(llm, enabled=settings.answer_generation_enabled),
            settings=settings,
        )

    async def start(self) -> None:
        """Start the session sweeper and cache cleanup tasks."""
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(
                self.sessions.run_sweeper(self.settings.session_sweep_interval_seconds)
            ),
            asyncio.create_task(
                self.cache.run_cleanup(self.settings.cache_cleanup_interval_seconds)
            ),
        ]
        logger.info("engine_started", app_name=self.settings.app_name)

    async def stop(self) -> None:
        """Cancel background tasks."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("engine_stopped")

    async def _run(self, state: TurnState) -> TurnState:
        thread_id = state.get("thread_id")
        if not thread_id:
            return await self._pipeline.ainvoke(state)
        async with self.sessions.lock(thread_id):
            return await self._pipeline.ainvoke(state)

    async def handle(self, request: QueryRequest) -> QueryResponse:
        """Answer one turn.

        Args:
            request: The user's turn

        Returns:
            QueryResponse; expected misses are reported through ``code``

        Raises:
            TurnFailedError: On any unexpected internal failure
        """
        start = time.perf_counter()
        state: TurnState = {
            "text": request.text,
            "latitude": request.latitude,
            "longitude": request.longitude,
            "radius_km": request.radius_km,
            "limit": request.limit,
            "cursor": request.cursor,
            "thread_id": request.thread_id,
            "language": request.language,
            "now": self._now(),
        }

        try:
            final = await self._run(state)
        except Exception as e:
            duration = time.perf_counter() - start
            logger.error(
                "turn_failed",
                error=str(e),
                error_type=type(e).__name__,
                thread_id=request.thread_id,
            )
            metrics.record_turn(None, "TURN_FAILED", duration)
            raise TurnFailedError(request.language) from e

        response = self._build_response(final, time.perf_counter() - start)
        metrics.record_turn(response.intent, response.code.value if response.code else None,
                            response.duration_ms / 1000)
        logger.info(
            "turn_complete",
            intent=response.intent,
            code=response.code.value if response.code else None,
            route_source=response.route_source,
            cache_hit=final.get("cache_hit"),
            duration_ms=response.duration_ms,
        )
        return response

    def _build_response(self, final: TurnState, duration: float) -> QueryResponse:
        intent = final.get("intent")
        result = final.get("result")
        page = final.get("page")
        code = final.get("code")

        kind = result.kind if result is not None else "error" if code else "answer"
        results = []
        items = result.items if result is not None else []
        if page is not None and kind == "restaurants":
            results = page.items
        elif page is not None and kind == "menu":
            items = page.items

        return QueryResponse(
            kind=kind,
            code=OutcomeCode(code) if code else None,
            answer=final.get("answer", ""),
            results=results,
            restaurant=result.restaurant if result is not None else None,
            items=items,
            next_cursor=page.next_cursor if page is not None else None,
            prev_cursor=page.prev_cursor if page is not None else None,
            page_info=page.page_info if page is not None else None,
            intent=intent.name if intent else None,
            params=intent.params if intent else {},
            params_hash=final.get("params_hash"),
            suggested_action=final.get("suggested_action"),
            route_source=final.get("route_source"),
            duration_ms=round(duration * 1000, 2),
        )

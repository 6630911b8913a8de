"""Intent routing: oracle tool selection with a heuristic fallback."""

import asyncio
import json
import time
from typing import Literal

import structlog
from pydantic import BaseModel, ValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from dinequery import metrics
from dinequery.config import get_settings
from dinequery.errors import UnknownToolError
from dinequery.models.api import OutcomeCode
from dinequery.models.intents import INTERNAL_FIELDS, ResolvedIntent, parse_intent
from dinequery.models.state import SessionState
from dinequery.prompts import ROUTER_SYSTEM_PROMPT, SESSION_CONTEXT_PROMPT
from dinequery.resolvers.geo import clamp_radius
from dinequery.routing.heuristic import parse_heuristic
from dinequery.routing.oracle import ToolOracle, ToolSelection

logger = structlog.get_logger()
settings = get_settings()

RouteSource = Literal["oracle", "heuristic", "confirmation"]

ORACLE_ATTEMPTS = 2


class RouteDecision(BaseModel):
    """Routing outcome. ``intent`` is None only when ``code`` says why."""

    intent: ResolvedIntent | None = None
    code: OutcomeCode | None = None
    source: RouteSource
    oracle_error: str | None = None


def build_system_prompt(has_location: bool, session: SessionState | None = None) -> str:
    """System instruction, with the previous turn appended when there is one."""
    prompt = ROUTER_SYSTEM_PROMPT.format(has_location="yes" if has_location else "no")
    summary = session.summary() if session else None
    if summary:
        prompt += SESSION_CONTEXT_PROMPT.format(summary=json.dumps(summary, ensure_ascii=False))
    return prompt


def backfill(
    intent: ResolvedIntent,
    latitude: float | None,
    longitude: float | None,
    radius_km: float | None,
    max_radius_km: float | None = None,
) -> ResolvedIntent:
    """Fill missing coordinates/radius from the call site and clamp the radius."""
    if not intent.is_nearby:
        return intent

    args = intent.args
    update = {}
    if getattr(args, "latitude", None) is None and latitude is not None:
        update["latitude"] = latitude
    if getattr(args, "longitude", None) is None and longitude is not None:
        update["longitude"] = longitude
    requested = getattr(args, "radius_km", None) or radius_km
    update["radius_km"] = clamp_radius(requested, max_radius_km)
    return ResolvedIntent(name=intent.name, args=args.model_copy(update=update))


class IntentRouter:
    """Resolve one turn's text into a validated intent.

    Args:
        oracle: Tool-selection oracle; None routes every turn through the
            heuristic parser
        timeout_seconds: Per-attempt oracle timeout
        max_radius_km: Radius cap applied during backfill
    """

    def __init__(
        self,
        oracle: ToolOracle | None = None,
        timeout_seconds: float | None = None,
        max_radius_km: float | None = None,
    ):
        self.oracle = oracle
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.oracle_timeout_seconds
        )
        self.max_radius_km = max_radius_km if max_radius_km is not None else settings.max_radius_km

    async def _attempt(self, system: str, text: str) -> ToolSelection:
        start = time.perf_counter()
        try:
            selection = await asyncio.wait_for(
                self.oracle.select_tool(system, text), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            metrics.record_oracle_call("timeout", time.perf_counter() - start)
            logger.warning("oracle_call_timeout", timeout=self.timeout_seconds)
            raise
        except Exception as e:
            metrics.record_oracle_call("error", time.perf_counter() - start)
            logger.error("oracle_call_error", error=str(e) or type(e).__name__)
            raise
        metrics.record_oracle_call("success", time.perf_counter() - start)
        return selection

    async def _select_tool(self, system: str, text: str) -> tuple[ToolSelection | None, str | None]:
        """Call the oracle with a timeout, retrying once on failure.

        Returns:
            Tuple of (selection or None, last error description)
        """
        if self.oracle is None:
            return None, "oracle_unavailable"

        retrying = AsyncRetrying(
            stop=stop_after_attempt(ORACLE_ATTEMPTS),
            retry=retry_if_exception_type(Exception),
            reraise=True,
        )
        try:
            selection = await retrying(self._attempt, system, text)
        except asyncio.TimeoutError:
            return None, "timeout"
        except Exception as e:
            return None, str(e) or type(e).__name__
        return selection, None

    def _finalize(
        self,
        name: str,
        raw_args: dict | None,
        source: RouteSource,
        latitude: float | None,
        longitude: float | None,
        radius_km: float | None,
        oracle_error: str | None = None,
    ) -> RouteDecision:
        raw_args = {k: v for k, v in (raw_args or {}).items() if k not in INTERNAL_FIELDS}
        try:
            intent = parse_intent(name, raw_args)
        except (ValidationError, UnknownToolError) as e:
            logger.info("intent_args_invalid", intent=name, source=source, error=str(e))
            return RouteDecision(code=OutcomeCode.AMBIGUOUS, source=source, oracle_error=oracle_error)

        intent = backfill(intent, latitude, longitude, radius_km, self.max_radius_km)
        metrics.record_route_source(source)
        logger.info("intent_routed", intent=intent.name, source=source)
        return RouteDecision(intent=intent, source=source, oracle_error=oracle_error)

    def route_heuristic(
        self,
        text: str,
        latitude: float | None = None,
        longitude: float | None = None,
        radius_km: float | None = None,
        oracle_error: str | None = None,
    ) -> RouteDecision:
        """Route with the keyword parser only."""
        parsed = parse_heuristic(text)
        logger.info("heuristic_fallback", intent=parsed.intent, reason=oracle_error)
        if parsed.ambiguous:
            metrics.record_route_source("heuristic")
            return RouteDecision(
                code=OutcomeCode.AMBIGUOUS, source="heuristic", oracle_error=oracle_error
            )
        return self._finalize(
            parsed.intent, parsed.args, "heuristic", latitude, longitude, radius_km, oracle_error
        )

    async def route(
        self,
        text: str,
        latitude: float | None = None,
        longitude: float | None = None,
        radius_km: float | None = None,
        session: SessionState | None = None,
    ) -> RouteDecision:
        """Resolve text to a validated intent.

        Args:
            text: User text
            latitude: Caller latitude, used to backfill nearby intents
            longitude: Caller longitude
            radius_km: Requested radius
            session: Previous turn's state, summarized for the oracle

        Returns:
            RouteDecision; oracle failures fall back to the heuristic
            parser and invalid arguments yield AMBIGUOUS
        """
        has_location = latitude is not None and longitude is not None
        system = build_system_prompt(has_location, session)
        selection, error = await self._select_tool(system, text)

        if selection is None:
            return self.route_heuristic(text, latitude, longitude, radius_km, error)
        if selection.invalid:
            return self.route_heuristic(text, latitude, longitude, radius_km, "invalid_tool_arguments")
        if not selection.name:
            return self.route_heuristic(text, latitude, longitude, radius_km, "no_tool_call")

        return self._finalize(selection.name, selection.args, "oracle", latitude, longitude, radius_km)

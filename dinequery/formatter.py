"""Answer generation: LLM phrasing over structured facts, with templates as fallback."""

import json
from datetime import datetime
from typing import Any

import structlog
from langchain_openai import ChatOpenAI

from dinequery import metrics
from dinequery.config import get_settings
from dinequery.models.api import OutcomeCode
from dinequery.models.domain import CandidateResult, MenuItem
from dinequery.models.state import ExecutionResult, SuggestedAction
from dinequery.prompts import ANSWER_GENERATION_PROMPT
from dinequery.resolvers.temporal import asks_closing_time, day_relation_label

logger = structlog.get_logger()
settings = get_settings()

# answers that must state facts exactly
TEMPLATE_ONLY_INTENTS = frozenset({
    "is_restaurant_open",
    "check_item_in_restaurant",
    "can_i_reserve_restaurant",
    "unknown",
})

LANGUAGE_NAMES = {"hr": "Croatian", "en": "English"}

MESSAGES = {
    "hr": {
        OutcomeCode.RESTAURANT_NOT_FOUND: "Nismo pronašli taj restoran.",
        OutcomeCode.NOT_PARTNER: (
            "{name} trenutno nije naš partner pa nemamo njihov službeni jelovnik."
        ),
        OutcomeCode.MISSING_LOCATION: (
            "Za pretragu u blizini trebam tvoju lokaciju ili naziv grada."
        ),
        OutcomeCode.AMBIGUOUS: (
            "Nisam siguran što tražiš. Možeš li navesti naziv restorana ili jela?"
        ),
        OutcomeCode.NO_RESULTS: "Nažalost, nisam našao rezultate koji odgovaraju upitu.",
        "no_results_radius": "Nažalost, nisam našao rezultate u krugu od {radius} km.",
        "suggest_radius": " Želiš li proširiti pretragu na {to_km} km?",
        "radius_at_max": " Već sam pretražio najveći mogući radijus od {radius} km.",
        "help": (
            "Mogu ti pomoći pronaći restorane, jela i pogodnosti u blizini te provjeriti "
            "radno vrijeme i rezervacije. Pitaj npr. \"Koji restoran blizu mene ima lignje?\""
        ),
        "found_one": "Pronašao sam 1 restoran.",
        "found_many": "Pronašao sam {count} restorana.",
        "nearest": " Najbliži je {name} ({distance} km).",
        "open_now": "Da, {name} je trenutno otvoren i radi do {closes_at}.",
        "open_at": "Da, {name} radi {day} u {time}, do {closes_at}.",
        "closes_at": "{name} {day} radi do {closes_at}.",
        "closed_now": "Ne, {name} je trenutno zatvoren.",
        "closed_at": "Ne, {name} ne radi {day} u {time}.",
        "opens_later": " Otvara se u {opens_at}.",
        "hours_unknown": "Radno vrijeme za {name} nije dostupno.",
        "reservation_yes": "Da, u restoranu {name} moguće je rezervirati.",
        "reservation_no": "Rezervacije u restoranu {name} nisu omogućene.",
        "item_found": "Da, {name} ima {item}: {items}.",
        "item_missing": "{name} nema {item} na jelovniku.",
        "menu": "Na jelovniku restorana {name} ima {count} stavki: {items}.",
        "menu_empty": "Jelovnik restorana {name} još nije objavljen.",
        "info": "{name}, {address}.",
        "info_phone": " Telefon: {phone}.",
    },
    "en": {
        OutcomeCode.RESTAURANT_NOT_FOUND: "We couldn't find that restaurant.",
        OutcomeCode.NOT_PARTNER: (
            "{name} is not a partner yet, so we don't have their official menu."
        ),
        OutcomeCode.MISSING_LOCATION: "To search nearby I need your location or a city name.",
        OutcomeCode.AMBIGUOUS: (
            "I'm not sure what you're looking for. Could you name the restaurant or the dish?"
        ),
        OutcomeCode.NO_RESULTS: "Unfortunately, I couldn't find anything matching your request.",
        "no_results_radius": "Unfortunately, I couldn't find anything within {radius} km.",
        "suggest_radius": " Should I widen the search to {to_km} km?",
        "radius_at_max": " That is already the widest search radius ({radius} km).",
        "help": (
            "I can help you find restaurants, dishes and amenities nearby and check opening "
            "hours and reservations. Try \"Which restaurant near me has squid?\""
        ),
        "found_one": "I found 1 restaurant.",
        "found_many": "I found {count} restaurants.",
        "nearest": " The nearest is {name} ({distance} km).",
        "open_now": "Yes, {name} is open now until {closes_at}.",
        "open_at": "Yes, {name} is open {day} at {time}, until {closes_at}.",
        "closes_at": "{name} is open {day} until {closes_at}.",
        "closed_now": "No, {name} is closed right now.",
        "closed_at": "No, {name} is closed {day} at {time}.",
        "opens_later": " It opens at {opens_at}.",
        "hours_unknown": "Opening hours for {name} are not available.",
        "reservation_yes": "Yes, {name} accepts reservations.",
        "reservation_no": "{name} does not take reservations.",
        "item_found": "Yes, {name} has {item}: {items}.",
        "item_missing": "{name} doesn't have {item} on the menu.",
        "menu": "The menu of {name} has {count} items: {items}.",
        "menu_empty": "The menu of {name} hasn't been published yet.",
        "info": "{name}, {address}.",
        "info_phone": " Phone: {phone}.",
    },
}


def _km(value: float) -> str:
    return f"{value:g}"


def _item_list(items: list[MenuItem], language: str, limit: int = 5) -> str:
    parts = []
    for item in items[:limit]:
        label = item.name(language)
        if item.price is not None:
            label += f" ({item.price:.2f} €)"
        parts.append(label)
    return ", ".join(parts)


def _open_answer(
    result: ExecutionResult, language: str, now: datetime, text: str | None
) -> str:
    msg = MESSAGES[language]
    name = result.restaurant.name
    state = result.open_state
    if state is None or state.state == "undefined":
        return msg["hours_unknown"].format(name=name)

    at = result.at or now
    is_now = at == now
    day = day_relation_label(at, now, language)
    time = at.strftime("%H:%M")

    if state.state == "open":
        if asks_closing_time(text):
            return msg["closes_at"].format(name=name, day=day, closes_at=state.closes_at)
        if is_now:
            return msg["open_now"].format(name=name, closes_at=state.closes_at)
        return msg["open_at"].format(name=name, day=day, time=time, closes_at=state.closes_at)

    answer = (
        msg["closed_now"].format(name=name)
        if is_now
        else msg["closed_at"].format(name=name, day=day, time=time)
    )
    if state.opens_at:
        answer += msg["opens_later"].format(opens_at=state.opens_at)
    return answer


def template_answer(
    intent_name: str | None,
    code: str | None,
    result: ExecutionResult | None,
    language: str = "hr",
    now: datetime | None = None,
    text: str | None = None,
    page_items: list[CandidateResult] | None = None,
    total: int | None = None,
    suggested_action: SuggestedAction | None = None,
    max_radius_km: float | None = None,
) -> str:
    """Deterministic answer for an outcome.

    Args:
        intent_name: Executed intent, None when routing gave up
        code: Outcome code value, None on success
        result: Execution result, when execution ran
        language: "hr" or "en"
        now: Turn timestamp
        text: Original user text
        page_items: Candidates on the current page
        total: Candidate count across all pages
        suggested_action: Follow-up offered to the user
        max_radius_km: Largest radius a search may use

    Returns:
        Answer text
    """
    msg = MESSAGES.get(language, MESSAGES["hr"])
    now = now or datetime.now()
    restaurant = result.restaurant if result else None

    if code is not None:
        code = OutcomeCode(code)
        if code == OutcomeCode.NOT_PARTNER:
            return msg[code].format(name=restaurant.name if restaurant else "")
        if code == OutcomeCode.NO_RESULTS:
            if intent_name == "check_item_in_restaurant" and restaurant:
                return msg["item_missing"].format(
                    name=restaurant.name, item=result.facts.get("item_name", "")
                )
            if intent_name == "get_restaurant_menu" and restaurant:
                return msg["menu_empty"].format(name=restaurant.name)
            radius = result.facts.get("radius_km") if result else None
            answer = (
                msg["no_results_radius"].format(radius=_km(radius))
                if radius
                else msg[OutcomeCode.NO_RESULTS]
            )
            if suggested_action is not None:
                answer += msg["suggest_radius"].format(to_km=_km(suggested_action.to_km))
            elif radius and max_radius_km is not None and radius >= max_radius_km:
                answer += msg["radius_at_max"].format(radius=_km(radius))
            return answer
        return msg[code]

    if intent_name is None or intent_name == "unknown" or result is None:
        return msg["help"]

    if intent_name == "is_restaurant_open":
        return _open_answer(result, language, now, text)

    if intent_name == "can_i_reserve_restaurant":
        key = "reservation_yes" if result.facts.get("reservation_enabled") else "reservation_no"
        return msg[key].format(name=restaurant.name)

    if intent_name == "check_item_in_restaurant":
        return msg["item_found"].format(
            name=restaurant.name,
            item=result.facts.get("item_name", ""),
            items=_item_list(result.items, language),
        )

    if result.kind == "menu":
        return msg["menu"].format(
            name=restaurant.name, count=len(result.items), items=_item_list(result.items, language)
        )

    if result.kind == "restaurant_info":
        answer = msg["info"].format(
            name=restaurant.name,
            address=", ".join(p for p in (restaurant.address, restaurant.place) if p),
        )
        if restaurant.phone:
            answer += msg["info_phone"].format(phone=restaurant.phone)
        return answer

    count = total if total is not None else len(result.candidates)
    answer = msg["found_one"] if count == 1 else msg["found_many"].format(count=count)
    first = (page_items or result.candidates or [None])[0]
    if first is not None and first.distance_km is not None:
        answer += msg["nearest"].format(name=first.restaurant.name, distance=_km(first.distance_km))
    return answer


def answer_facts(
    result: ExecutionResult, page_items: list[CandidateResult] | None, language: str
) -> dict[str, Any]:
    """Compact JSON-safe facts handed to the answer model."""
    facts: dict[str, Any] = {k: v for k, v in result.facts.items() if k not in ("latitude", "longitude")}
    if result.restaurant is not None:
        r = result.restaurant
        facts["restaurant"] = {
            "name": r.name,
            "address": r.address,
            "city": r.place,
            "phone": r.phone,
            "website": r.website_url,
            "reservation_enabled": r.reservation_enabled,
        }
    if result.open_state is not None:
        facts["open_state"] = result.open_state.model_dump(exclude_none=True)
    if result.items:
        facts["items"] = [
            {"name": item.name(language), "price": item.price} for item in result.items[:20]
        ]
    if page_items:
        facts["restaurants"] = [
            {
                "name": c.restaurant.name,
                "distance_km": c.distance_km,
                "items": [item.name(language) for item in c.items],
            }
            for c in page_items
        ]
    return facts


class AnswerFormatter:
    """Phrase turn results for the user.

    Args:
        llm: Chat model for phrasing; templates only when None
        enabled: Whether to call the model at all
    """

    def __init__(self, llm: ChatOpenAI | None = None, enabled: bool | None = None):
        self.llm = llm
        self.enabled = settings.answer_generation_enabled if enabled is None else enabled

    async def format(
        self,
        intent_name: str | None,
        code: str | None,
        result: ExecutionResult | None,
        language: str = "hr",
        now: datetime | None = None,
        text: str | None = None,
        page_items: list[CandidateResult] | None = None,
        total: int | None = None,
        suggested_action: SuggestedAction | None = None,
        max_radius_km: float | None = None,
    ) -> str:
        """Build the answer, preferring the model and falling back to templates."""
        fallback = template_answer(
            intent_name, code, result, language, now, text, page_items, total, suggested_action,
            max_radius_km,
        )
        if (
            self.llm is None
            or not self.enabled
            or code is not None
            or result is None
            or intent_name in TEMPLATE_ONLY_INTENTS
        ):
            return fallback

        prompt = ANSWER_GENERATION_PROMPT.format(
            language_name=LANGUAGE_NAMES.get(language, "Croatian"),
            question=text or "",
            outcome=fallback,
            facts=json.dumps(answer_facts(result, page_items, language), ensure_ascii=False, default=str),
        )
        try:
            response = await self.llm.ainvoke(prompt)
            answer = response.content.strip() if isinstance(response.content, str) else ""
            if not answer:
                raise ValueError("empty answer")
            return answer
        except Exception as e:
            logger.error("answer_generation_error", intent=intent_name, error=str(e))
            metrics.record_answer_fallback()
            return fallback

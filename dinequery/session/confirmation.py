"""Interpret short follow-up replies against the previous turn.

``parse_confirmation`` classifies the reply and ``apply_confirmation``
merges it into the prior parameters. Both are pure; persisting the new
state is up to the caller.
"""

import re
from typing import Any, Callable, Literal

from pydantic import BaseModel

from dinequery.config import get_settings
from dinequery.models.intents import NEARBY_INTENTS, TOOL_REGISTRY
from dinequery.models.state import SessionState
from dinequery.resolvers.geo import clamp_radius
from dinequery.resolvers.taxonomy import matches
from dinequery.resolvers.text import normalize_text, tokenize

settings = get_settings()

MAX_CONFIRMATION_TOKENS = 6

AFFIRMATIONS = frozenset({
    "da", "ok", "okej", "okay", "moze", "yes", "yep", "sure", "naravno", "svakako",
    "povecaj", "prosiri", "hajde", "ajde", "widen", "expand", "go",
})

# words allowed around an affirmation: "da molim", "proširi pretragu", "go ahead"
AFFIRMATION_FILLERS = frozenset({
    "molim", "hvala", "samo", "naprijed", "pretragu", "radijus", "please", "thanks",
    "ahead", "it", "search", "radius",
})

_RADIUS_RE = re.compile(
    r"^(?:(?:da|ok|moze)\s+)?(?:do|radius|radijus|within|unutar|na|to|postavi\s+radijus\s+na|set\s+radius\s+to)?"
    r"\s*(\d+(?:[.,]\d+)?)\s*(?:km|kilometara|kilometra|kilometar|kilometers?)$"
)
_REMOVE_RE = re.compile(r"^(?:makni|ukloni|izbaci|bez|remove|drop|without)\s+(.+)$")
_ADD_RE = re.compile(r"^(?:dodaj|add|i|also|plus|jos|with)\s+(.+)$")

# "bez glutena" asks for a dietary filter, not a removal
_DIETARY_BEZ = ("glutena", "laktoze", "mesa", "secera")


class Confirmation(BaseModel):
    """A classified follow-up reply."""

    kind: Literal["affirm", "set_radius", "remove_filter", "add_filter"]
    radius_km: float | None = None
    term: str | None = None


class ConfirmationResult(BaseModel):
    """Parameters to re-run plus the session state to store afterwards."""

    intent: str
    params: dict[str, Any]
    state: SessionState
    confirmation: Confirmation


def parse_confirmation(text: str | None) -> Confirmation | None:
    """Classify a short reply; longer or unrecognized text returns None."""
    norm = normalize_text(text).strip(" ?!.,")
    tokens = tokenize(norm)
    if not tokens or len(tokens) > MAX_CONFIRMATION_TOKENS:
        return None

    radius = _RADIUS_RE.match(norm)
    if radius:
        return Confirmation(kind="set_radius", radius_km=float(radius.group(1).replace(",", ".")))

    removal = _REMOVE_RE.match(norm)
    if removal and not (tokens[0] == "bez" and tokens[-1] in _DIETARY_BEZ):
        return Confirmation(kind="remove_filter", term=removal.group(1).strip())

    addition = _ADD_RE.match(norm)
    if addition:
        return Confirmation(kind="add_filter", term=addition.group(1).strip())

    # "da li ima pizzu?" is a new question, not a yes
    if (
        tokens[0] in AFFIRMATIONS
        and len(tokens) <= 4
        and all(t in AFFIRMATIONS or t in AFFIRMATION_FILLERS for t in tokens)
    ):
        return Confirmation(kind="affirm")
    return None


def _fields(intent: str) -> set[str]:
    return set(TOOL_REGISTRY[intent].args_model.model_fields)


def _strip(values: list[str], term: str) -> list[str]:
    return [v for v in values if not (term in normalize_text(v) or matches(v, term))]


def _apply_removal(
    intent: str,
    params: dict[str, Any],
    term: str,
    term_ids: Callable[[str], dict[str, list[int]]] | None = None,
) -> str | None:
    removed = False
    for key in ("perks", "food_types"):
        if params.get(key):
            kept = _strip(params[key], term)
            removed = removed or len(kept) != len(params[key])
            params[key] = kept

    mentioned = params.get("taxonomy_ids")
    if mentioned and term_ids is not None:
        dropped = term_ids(term)
        kept_ids = {
            dimension: [i for i in ids if i not in dropped.get(dimension, [])]
            for dimension, ids in mentioned.items()
        }
        kept_ids = {dimension: ids for dimension, ids in kept_ids.items() if ids}
        if kept_ids != mentioned:
            removed = True
            if kept_ids:
                params["taxonomy_ids"] = kept_ids
            else:
                del params["taxonomy_ids"]

    perk = params.get("perk_name")
    if perk and _strip([perk], term) == []:
        if intent != "find_by_item_and_perk_nearby":
            return None
        del params["perk_name"]
        intent = "find_items_nearby"
        removed = True
    return intent if removed else None


def _apply_addition(
    intent: str,
    params: dict[str, Any],
    term: str,
    is_perk: Callable[[str], bool] | None,
) -> str | None:
    fields = _fields(intent)
    perk = bool(is_perk and is_perk(term))

    if perk:
        if intent == "find_items_nearby":
            params["perk_name"] = term
            return "find_by_item_and_perk_nearby"
        if "perks" in fields:
            params["perks"] = [*params.get("perks", []), term]
            return intent
        return None

    if "food_types" in fields:
        params["food_types"] = [*params.get("food_types", []), term]
        return intent
    if intent == "find_perk_nearby":
        params["item_name"] = term
        return "find_by_item_and_perk_nearby"
    return None


def apply_confirmation(
    state: SessionState | None,
    confirmation: Confirmation,
    max_radius_km: float | None = None,
    is_perk: Callable[[str], bool] | None = None,
    term_ids: Callable[[str], dict[str, list[int]]] | None = None,
) -> ConfirmationResult | None:
    """Merge a confirmation into the previous turn's parameters.

    Args:
        state: Session state left by the previous turn
        confirmation: Classified reply
        max_radius_km: Radius cap; defaults to the configured maximum
        is_perk: Predicate deciding whether an added term is a perk
        term_ids: Taxonomy ids a removed term stands for, by dimension

    Returns:
        ConfirmationResult, or None when the reply does not apply to the
        previous intent
    """
    if state is None or not state.last_intent or state.last_intent not in TOOL_REGISTRY:
        return None
    if state.last_intent == "unknown":
        return None

    max_radius = max_radius_km if max_radius_km is not None else settings.max_radius_km
    intent: str | None = state.last_intent
    params = dict(state.last_params)

    if confirmation.kind == "affirm":
        if state.suggested_action is not None:
            params["radius_km"] = clamp_radius(state.suggested_action.to_km, max_radius)
        elif intent in NEARBY_INTENTS:
            current = clamp_radius(params.get("radius_km"), max_radius)
            params["radius_km"] = min(current * 2, max_radius)
        else:
            return None

    elif confirmation.kind == "set_radius":
        if intent not in NEARBY_INTENTS:
            return None
        params["radius_km"] = clamp_radius(confirmation.radius_km, max_radius)

    elif confirmation.kind == "remove_filter":
        intent = _apply_removal(intent, params, normalize_text(confirmation.term), term_ids)

    elif confirmation.kind == "add_filter":
        intent = _apply_addition(intent, params, confirmation.term or "", is_perk)

    if intent is None:
        return None

    new_state = state.model_copy(
        update={"last_intent": intent, "last_params": params, "suggested_action": None}
    )
    return ConfirmationResult(intent=intent, params=params, state=new_state, confirmation=confirmation)

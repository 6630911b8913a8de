"""Parse relative and absolute time references into zoned instants."""

import re
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

import structlog

from dinequery.config import get_settings
from dinequery.resolvers.text import normalize_text, tokenize

logger = structlog.get_logger()
settings = get_settings()

NOON = time(12, 0)
EVENING = time(20, 0)

# Monday = 0; nominative, accusative, instrumental and genitive forms
WEEKDAY_FORMS: dict[str, int] = {
    "ponedjeljak": 0, "ponedjeljkom": 0, "ponedjeljka": 0, "monday": 0,
    "utorak": 1, "utorkom": 1, "utorka": 1, "tuesday": 1,
    "srijeda": 2, "srijedu": 2, "srijedom": 2, "srijede": 2, "wednesday": 2,
    "cetvrtak": 3, "cetvrtkom": 3, "cetvrtka": 3, "thursday": 3,
    "petak": 4, "petkom": 4, "petka": 4, "friday": 4,
    "subota": 5, "subotu": 5, "subotom": 5, "subote": 5, "saturday": 5,
    "nedjelja": 6, "nedjelju": 6, "nedjeljom": 6, "nedjelje": 6, "sunday": 6,
}

WEEKDAY_LABELS = {
    "hr": ["ponedjeljak", "utorak", "srijedu", "četvrtak", "petak", "subotu", "nedjelju"],
    "en": ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"],
}

NOW_WORDS = frozenset({"now", "sada", "sad", "trenutno", "odmah"})
TODAY_WORDS = frozenset({"danas", "today"})
TOMORROW_WORDS = frozenset({"sutra", "tomorrow"})
DAY_AFTER_WORDS = frozenset({"preksutra", "prekosutra"})
TONIGHT_WORDS = frozenset({"veceras", "tonight"})

_TIME_RE = re.compile(r"(?<!\d)([01]?\d|2[0-3])[:.]([0-5]\d)(?!\d)")
_HOUR_RE = re.compile(r"\b(?:u|at|oko)\s+([01]?\d|2[0-3])\s*(?:h|sati|sata|o'?clock)\b")
_DMY_RE = re.compile(r"\b(\d{1,2})\.\s?(\d{1,2})\.\s?(\d{4})\.?")
_ISO_DATE_RE = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")
_IN_DAYS_RE = re.compile(r"\b(?:za|in)\s+(\d{1,2})\s+(?:dana|dan|days?)\b")

_CLOSING_RE = re.compile(
    r"(do\s+kad(a)?|kad(a)?\s+zatvara|zatvaraju|radno\s+vrijeme\s+do|"
    r"until\s+when|what\s+time\s+.*close|closing\s+time|when\s+.*close)"
)


def _zone(tz: str | None) -> ZoneInfo:
    return ZoneInfo(tz or settings.timezone)


def _extract_time(text: str) -> time | None:
    match = _TIME_RE.search(text)
    if match:
        return time(int(match.group(1)), int(match.group(2)))
    match = _HOUR_RE.search(text)
    if match:
        return time(int(match.group(1)), 0)
    return None


def _extract_date(text: str) -> date | None:
    match = _ISO_DATE_RE.search(text)
    if match:
        year, month, day = (int(g) for g in match.groups())
    else:
        match = _DMY_RE.search(text)
        if not match:
            return None
        day, month, year = (int(g) for g in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        logger.debug("invalid_literal_date", text=text)
        return None


def next_weekday(today: date, weekday: int, include_today: bool = False) -> date:
    """Next occurrence of ``weekday``; today's weekday advances a full week."""
    delta = (weekday - today.weekday()) % 7
    if delta == 0 and not include_today:
        delta = 7
    return today + timedelta(days=delta)


def parse_time_ref(text: str | None, now: datetime | None = None, tz: str | None = None) -> datetime:
    """Resolve a free-text time reference to a concrete instant.

    Args:
        text: Reference such as "sutra u 18:00", "petkom", "15:30" or "2025-03-01"
        now: Current instant; defaults to the wall clock
        tz: IANA zone name; defaults to the configured zone

    Returns:
        Timezone-aware datetime in ``tz``. Dates without a time of day
        resolve to noon; "now" keeps the current wall-clock time.
    """
    zone = _zone(tz)
    current = (now or datetime.now(zone)).astimezone(zone)
    norm = normalize_text(text)
    tokens = set(tokenize(norm))

    if not norm or tokens & NOW_WORDS:
        return current

    today = current.date()
    # literal dates would otherwise read as HH.MM
    at_time = _extract_time(_ISO_DATE_RE.sub(" ", _DMY_RE.sub(" ", norm)))
    target: date | None = None
    default_time = NOON

    literal = _extract_date(norm)
    in_days = _IN_DAYS_RE.search(norm)
    weekdays = [WEEKDAY_FORMS[t] for t in tokenize(norm) if t in WEEKDAY_FORMS]

    if literal is not None:
        target = literal
    elif in_days:
        target = today + timedelta(days=int(in_days.group(1)))
    elif tokens & DAY_AFTER_WORDS:
        target = today + timedelta(days=2)
    elif tokens & TOMORROW_WORDS:
        target = today + timedelta(days=1)
    elif weekdays:
        target = next_weekday(today, weekdays[0], include_today=bool(tokens & TODAY_WORDS))
    elif tokens & TONIGHT_WORDS:
        target = today
        default_time = EVENING
    elif tokens & TODAY_WORDS:
        target = today

    if target is None:
        if at_time is None:
            # nothing recognizable; treat as now
            logger.debug("time_ref_unrecognized", text=text)
            return current
        target = today

    return datetime.combine(target, at_time or default_time, tzinfo=zone)


def day_relation_label(at: datetime, now: datetime | None = None, language: str = "hr") -> str:
    """Human label for ``at`` relative to ``now``: danas, sutra or "u petak"."""
    zone = at.tzinfo or _zone(None)
    current = (now or datetime.now(zone)).astimezone(zone)
    delta = (at.astimezone(zone).date() - current.date()).days
    if language == "en":
        if delta == 0:
            return "today"
        if delta == 1:
            return "tomorrow"
        return f"on {WEEKDAY_LABELS['en'][at.weekday()]}"
    if delta == 0:
        return "danas"
    if delta == 1:
        return "sutra"
    return f"u {WEEKDAY_LABELS['hr'][at.weekday()]}"


def asks_closing_time(text: str | None) -> bool:
    """True when the question is about closing time rather than open/closed."""
    return _CLOSING_RE.search(normalize_text(text)) is not None

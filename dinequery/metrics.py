"""Metrics definitions for the query engine."""

from prometheus_client import Counter, Gauge, Histogram


# Routing Metrics
ORACLE_CALLS_TOTAL = Counter(
    'oracle_calls_total',
    'Total tool-selection oracle calls',
    ['outcome']
)

ORACLE_CALL_DURATION = Histogram(
    'oracle_call_duration_seconds',
    'Tool-selection oracle call duration'
)

ROUTE_SOURCE_TOTAL = Counter(
    'route_source_total',
    'Turns routed, by routing source',
    ['source']
)


# Turn Metrics
TURN_OUTCOMES_TOTAL = Counter(
    'turn_outcomes_total',
    'Turn outcomes by code',
    ['code']
)

TURN_DURATION_SECONDS = Histogram(
    'turn_duration_seconds',
    'End-to-end turn duration',
    ['intent']
)

ANSWER_FALLBACKS_TOTAL = Counter(
    'answer_fallbacks_total',
    'Answers rendered from templates after generation failed'
)


# Cache Metrics
CACHE_EVENTS_TOTAL = Counter(
    'cache_events_total',
    'Result cache events',
    ['event']
)


# Session Metrics
ACTIVE_SESSIONS = Gauge(
    'active_sessions',
    'Number of live conversation sessions'
)


def record_oracle_call(outcome: str, duration: float):
    """Record one oracle attempt."""
    ORACLE_CALLS_TOTAL.labels(outcome=outcome).inc()
    ORACLE_CALL_DURATION.observe(duration)


def record_route_source(source: str):
    ROUTE_SOURCE_TOTAL.labels(source=source).inc()


def record_turn(intent: str | None, code: str | None, duration: float):
    """Record a finished turn; ``code`` None is a successful answer."""
    TURN_OUTCOMES_TOTAL.labels(code=code or "OK").inc()
    TURN_DURATION_SECONDS.labels(intent=intent or "none").observe(duration)


def record_cache_event(event: str):
    """Record a cache hit, miss or eviction."""
    CACHE_EVENTS_TOTAL.labels(event=event).inc()


def record_answer_fallback():
    ANSWER_FALLBACKS_TOTAL.inc()


def set_active_sessions(count: int):
    ACTIVE_SESSIONS.set(count)

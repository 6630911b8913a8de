"""Exceptions raised by the query engine."""

GENERIC_APOLOGY = {
    "hr": "Ispričavamo se, došlo je do pogreške. Pokušajte ponovno.",
    "en": "Sorry, something went wrong. Please try again.",
}


class DineQueryError(Exception):
    """Base class for engine errors."""


class ConfigurationError(DineQueryError):
    """Raised when a component is created without the configuration it needs."""


class UnknownToolError(DineQueryError, ValueError):
    """Raised when a tool name is not in the registry."""

    def __init__(self, name: str):
        super().__init__(f"unknown tool: {name}")
        self.name = name


class TurnFailedError(DineQueryError):
    """A turn failed for an unexpected internal reason.

    ``user_message`` is safe to show to end users; the underlying
    exception is chained as ``__cause__`` for logs only.
    """

    def __init__(self, language: str = "hr"):
        self.user_message = GENERIC_APOLOGY.get(language, GENERIC_APOLOGY["hr"])
        super().__init__(self.user_message)

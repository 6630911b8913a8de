"""Conversation session state and follow-up handling."""

from dinequery.session.confirmation import (
    Confirmation,
    ConfirmationResult,
    apply_confirmation,
    parse_confirmation,
)
from dinequery.session.store import SessionStore

__all__ = [
    "Confirmation",
    "ConfirmationResult",
    "SessionStore",
    "apply_confirmation",
    "parse_confirmation",
]

"""Conversational restaurant query routing and resolution engine."""

from dinequery.engine import QueryEngine
from dinequery.errors import TurnFailedError
from dinequery.models.api import OutcomeCode, QueryRequest, QueryResponse

__version__ = "0.1.0"

__all__ = ["OutcomeCode", "QueryEngine", "QueryRequest", "QueryResponse", "TurnFailedError"]

"""Tool-selection oracle backed by an OpenAI chat model."""

from typing import Any, Protocol

import structlog
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel

from dinequery.config import get_settings
from dinequery.errors import ConfigurationError
from dinequery.routing.tools import tool_definitions

logger = structlog.get_logger()
settings = get_settings()


class ToolSelection(BaseModel):
    """What the oracle returned: a tool call, an unparseable call, or text."""

    name: str | None = None
    args: dict[str, Any] | None = None
    raw_text: str | None = None
    invalid: bool = False


class ToolOracle(Protocol):
    async def select_tool(self, system: str, user_text: str) -> ToolSelection:
        ...


def get_chat_model(model: str | None = None) -> ChatOpenAI:
    """Get a deterministic chat model instance."""
    if not settings.openai_api_key:
        raise ConfigurationError("OPENAI_API_KEY is not set")
    return ChatOpenAI(
        model=model or settings.openai_model,
        api_key=settings.openai_api_key,
        temperature=0,
    )


class ChatOpenAIOracle:
    """Ask the chat model to pick one registered tool.

    Args:
        llm: Chat model; built from settings when omitted
        tools: Tool definitions; the full registry when omitted
    """

    def __init__(self, llm: ChatOpenAI | None = None, tools: list[dict[str, Any]] | None = None):
        self.llm = llm or get_chat_model()
        self.model_name = getattr(self.llm, "model_name", settings.openai_model)
        self._bound = self.llm.bind_tools(tools or tool_definitions())

    async def select_tool(self, system: str, user_text: str) -> ToolSelection:
        response = await self._bound.ainvoke(
            [SystemMessage(content=system), HumanMessage(content=user_text)]
        )

        tool_calls = getattr(response, "tool_calls", None) or []
        if tool_calls:
            call = tool_calls[0]
            return ToolSelection(name=call["name"], args=call.get("args") or {})

        invalid = getattr(response, "invalid_tool_calls", None) or []
        if invalid:
            logger.warning("oracle_invalid_tool_call", name=invalid[0].get("name"))
            return ToolSelection(name=invalid[0].get("name"), invalid=True)

        content = response.content if isinstance(response.content, str) else str(response.content)
        return ToolSelection(raw_text=content)

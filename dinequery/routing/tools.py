"""OpenAI-format tool definitions derived from the intent registry."""

from typing import Any

from dinequery.models.intents import INTERNAL_FIELDS, TOOL_REGISTRY, ToolSpec


def _parameters_schema(spec: ToolSpec) -> dict[str, Any]:
    schema = spec.args_model.model_json_schema()
    schema.pop("title", None)
    for name in INTERNAL_FIELDS:
        schema.get("properties", {}).pop(name, None)
    for prop in schema.get("properties", {}).values():
        prop.pop("title", None)
    schema.setdefault("properties", {})
    return schema


def tool_definition(spec: ToolSpec) -> dict[str, Any]:
    """One registry entry as a function-calling tool."""
    return {
        "type": "function",
        "function": {
            "name": spec.name,
            "description": spec.description,
            "parameters": _parameters_schema(spec),
        },
    }


def tool_definitions() -> list[dict[str, Any]]:
    """Every registered tool, in registry order."""
    return [tool_definition(spec) for spec in TOOL_REGISTRY.values()]

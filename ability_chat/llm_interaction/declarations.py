from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Dict, List, Mapping

from ..schemas import AbilityDefinition, ToolDeclaration

if TYPE_CHECKING:
    from ..registry import AbilityRegistry


NAMESPACE_SEPARATOR = "/"
PROVIDER_SEPARATOR = "_"
MAX_DECLARATION_NAME = 64

# Registry names: letters, digits, '-', '.', ':' in segments joined by '/'.
# '_' is excluded so the '/' -> '_' rewrite can always be undone.
ABILITY_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9.:-]*(?:/[A-Za-z0-9.:-]+)*$")


def sanitize_name(name: str) -> str:
    """Registry name -> function name accepted by the model provider."""
    return name.replace(NAMESPACE_SEPARATOR, PROVIDER_SEPARATOR)


def desanitize_name(name: str) -> str:
    """Exact inverse of :func:`sanitize_name` over valid registry names."""
    return name.replace(PROVIDER_SEPARATOR, NAMESPACE_SEPARATOR)


def is_valid_ability_name(name: str) -> bool:
    if not isinstance(name, str) or not ABILITY_NAME_PATTERN.match(name):
        return False
    return len(sanitize_name(name)) <= MAX_DECLARATION_NAME


def default_parameters() -> Dict[str, Any]:
    return {"type": "object", "properties": {}, "required": []}


def translate_input_schema(schema: Mapping[str, Any] | None) -> Dict[str, Any]:
    """
    Pass ``type``/``properties``/``required`` through when the schema is a
    well-formed object schema; anything else falls back to an empty one.
    """
    if not isinstance(schema, Mapping) or not schema:
        return default_parameters()
    if schema.get("type") != "object":
        return default_parameters()
    properties = schema.get("properties", {})
    if not isinstance(properties, Mapping):
        return default_parameters()

    required = schema.get("required", [])
    if not isinstance(required, (list, tuple)) or not all(isinstance(item, str) for item in required):
        required = []

    return {
        "type": "object",
        "properties": dict(properties),
        "required": list(required),
    }


def to_tool_declaration(definition: AbilityDefinition) -> ToolDeclaration:
    return ToolDeclaration(
        name=sanitize_name(definition.name),
        description=definition.description,
        parameters=translate_input_schema(definition.input_schema),
    )


def build_declarations(registry: "AbilityRegistry") -> List[ToolDeclaration]:
    return [to_tool_declaration(definition) for definition in registry.list_all()]


__all__ = [
    "ABILITY_NAME_PATTERN",
    "build_declarations",
    "default_parameters",
    "desanitize_name",
    "is_valid_ability_name",
    "sanitize_name",
    "to_tool_declaration",
    "translate_input_schema",
]

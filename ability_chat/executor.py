from __future__ import annotations

import json
import logging
from typing import Any, Optional

from pydantic import BaseModel

from .llm_interaction.declarations import desanitize_name
from .registry import AbilityRegistry
from .schemas import AbilityDefinition, AbilityFailure, ToolCall


DEFAULT_MAX_RESULT_CHARS = 8000
TRUNCATION_MARKER = "\n[truncated]"


class DispatchError(RuntimeError):
    """Base for failures resolving or running a requested ability."""


class AbilityNotFoundError(DispatchError):
    pass


class PermissionDeniedError(DispatchError):
    pass


class AbilityExecutionError(DispatchError):
    pass


class ToolCallDispatcher:
    """
    Runs a model-requested function call against the ability registry.

    dispatch() never raises for unknown abilities, denied permissions or
    failing abilities: the model gets a readable error string instead so it
    can explain the failure in its final answer.
    """

    def __init__(
        self,
        registry: AbilityRegistry,
        *,
        max_result_chars: int = DEFAULT_MAX_RESULT_CHARS,
        verbose: bool = False,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.registry = registry
        self.max_result_chars = max(len(TRUNCATION_MARKER) + 1, max_result_chars)
        self.verbose = verbose
        self.logger = logger or logging.getLogger(__name__)

    def dispatch(self, call: ToolCall) -> str:
        if self.verbose:
            self.logger.debug(
                "Dispatching %s with args:\n%s",
                call.function_name,
                json.dumps(call.arguments, indent=2, default=str),
            )
        try:
            definition = self.resolve(call.function_name)
            self.check_permission(definition)
            result = self.invoke(definition, call)
        except DispatchError as exc:
            self.logger.warning("Tool call %s failed: %s", call.function_name, exc)
            return self._bound(f"Error: {exc}")

        text = self._bound(stringify_result(result))
        if self.verbose:
            self.logger.debug("Tool %s result:\n%s", call.function_name, text)
        return text

    # -------------------------------------------------

    def resolve(self, function_name: str) -> AbilityDefinition:
        ability_name = desanitize_name(function_name)
        definition = self.registry.get(ability_name)
        if definition is None:
            raise AbilityNotFoundError(f"unknown ability '{ability_name}'")
        return definition

    def check_permission(self, definition: AbilityDefinition) -> None:
        try:
            allowed = bool(definition.permission_check())
        except Exception as exc:  # noqa: BLE001 - a failing predicate is a denial
            self.logger.warning("Permission check for %s raised: %s", definition.name, exc)
            allowed = False
        if not allowed:
            raise PermissionDeniedError(f"ability '{definition.name}' is not accessible")

    def invoke(self, definition: AbilityDefinition, call: ToolCall) -> Any:
        try:
            result = definition.execute(dict(call.arguments))
        except Exception as exc:  # noqa: BLE001 - surface ability failure details
            message = str(exc) or exc.__class__.__name__
            raise AbilityExecutionError(f"ability '{definition.name}' failed: {message}") from exc
        if isinstance(result, AbilityFailure):
            raise AbilityExecutionError(f"ability '{definition.name}' failed: {result.message}")
        return result

    def _bound(self, text: str) -> str:
        if len(text) <= self.max_result_chars:
            return text
        keep = self.max_result_chars - len(TRUNCATION_MARKER)
        return text[:keep] + TRUNCATION_MARKER


def stringify_result(result: Any) -> str:
    if result is None:
        return ""
    if isinstance(result, str):
        return result
    if isinstance(result, BaseModel):
        return result.model_dump_json()
    if isinstance(result, (dict, list, tuple)):
        try:
            return json.dumps(result, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            return str(result)
    return str(result)


__all__ = [
    "AbilityExecutionError",
    "AbilityNotFoundError",
    "DispatchError",
    "PermissionDeniedError",
    "ToolCallDispatcher",
    "stringify_result",
]

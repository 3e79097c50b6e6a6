from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Union


def _allow_all() -> bool:
    return True


@dataclass(frozen=True)
class AbilityFailure:
    """Structured failure an ability may return instead of raising."""

    message: str
    code: str = ""

    def to_json(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"message": self.message}
        if self.code:
            payload["code"] = self.code
        return payload


@dataclass(frozen=True)
class AbilityDefinition:
    name: str
    description: str
    execute: Callable[[Dict[str, Any]], Any]
    input_schema: Mapping[str, Any] = field(default_factory=dict)
    output_schema: Mapping[str, Any] = field(default_factory=dict)  # informational only
    permission_check: Callable[[], bool] = _allow_all
    label: str = ""
    category: str = ""

    def to_json(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "input_schema": dict(self.input_schema),
            "output_schema": dict(self.output_schema),
        }
        if self.label:
            payload["label"] = self.label
        if self.category:
            payload["category"] = self.category
        return payload


@dataclass
class ToolCall:
    function_name: str
    arguments: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> Dict[str, Any]:
        return {"name": self.function_name, "arguments": self.arguments}


@dataclass(frozen=True)
class ToolDeclaration:
    name: str
    description: str
    parameters: Dict[str, Any]

    def to_json(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


class Role(str, Enum):
    USER = "user"
    MODEL = "model"
    FUNCTION_RESULT = "function-result"


@dataclass
class FunctionResult:
    name: str
    result: str

    def to_json(self) -> Dict[str, Any]:
        return {"name": self.name, "result": self.result}


@dataclass
class ConversationTurn:
    role: Role
    content: Union[str, ToolCall, FunctionResult]

    @classmethod
    def user(cls, text: str) -> "ConversationTurn":
        return cls(Role.USER, text)

    @classmethod
    def function_call(cls, call: ToolCall) -> "ConversationTurn":
        return cls(Role.MODEL, call)

    @classmethod
    def function_result(cls, name: str, result: str) -> "ConversationTurn":
        return cls(Role.FUNCTION_RESULT, FunctionResult(name=name, result=result))


# --- Model replies -------------------------------------------------------


@dataclass(frozen=True)
class TextReply:
    text: str


@dataclass(frozen=True)
class FunctionCallReply:
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)

    def to_tool_call(self) -> ToolCall:
        return ToolCall(function_name=self.name, arguments=dict(self.arguments))


@dataclass(frozen=True)
class ErrorReply:
    kind: str
    message: str


ModelReply = Union[TextReply, FunctionCallReply, ErrorReply]


@dataclass
class ChatResult:
    """Outcome of one orchestrated exchange, as handed back to the caller."""

    success: bool
    message: str
    state: str = ""
    tool_calls: List[Dict[str, Any]] = field(default_factory=list)
    error_kind: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        return {"success": self.success, "message": self.message}


__all__ = [
    "AbilityDefinition",
    "AbilityFailure",
    "ChatResult",
    "ConversationTurn",
    "ErrorReply",
    "FunctionCallReply",
    "FunctionResult",
    "ModelReply",
    "Role",
    "TextReply",
    "ToolCall",
    "ToolDeclaration",
]

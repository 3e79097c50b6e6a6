from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx
import ollama
from ollama import RequestError, ResponseError
from pydantic import ValidationError

from ..schemas import (
    ConversationTurn,
    FunctionCallReply,
    FunctionResult,
    ModelReply,
    Role,
    TextReply,
    ToolCall,
    ToolDeclaration,
)
from .adapter import (
    DEFAULT_TIMEOUT,
    ModelAdapter,
    ModelConfigurationError,
    ModelTimeoutError,
    TransportError,
    UnparseableResponseError,
    UpstreamStatusError,
)

logger = logging.getLogger(__name__)


DEFAULT_OLLAMA_MODEL = "gpt-oss:20b"
DEFAULT_OLLAMA_HOST = "http://localhost:11434"


class OllamaAdapter(ModelAdapter):
    """
    Same send() contract as the Gemini adapter, against a local Ollama server.
    Tool declarations go out in the function-tool shape; the function result
    goes back as a ``tool`` message.
    """

    def __init__(
        self,
        model: str = DEFAULT_OLLAMA_MODEL,
        *,
        host: str = DEFAULT_OLLAMA_HOST,
        timeout: float = DEFAULT_TIMEOUT,
        options: Optional[Mapping[str, Any]] = None,
        client: Any = None,
        verbose: bool = False,
    ) -> None:
        super().__init__(timeout=timeout, verbose=verbose)
        self.model = model
        self.host = host
        self.options = dict(options or {})
        self._owns_client = client is None
        self._client = client or ollama.Client(host=host, timeout=timeout)

    def close(self) -> None:
        # Older SDK releases have no close(); their pool is dropped with the client.
        close = getattr(self._client, "close", None)
        if self._owns_client and callable(close):
            close()

    # -------------------------------------------------

    def build_messages(self, turns: List[ConversationTurn]) -> List[Dict[str, Any]]:
        return [_turn_to_message(turn) for turn in turns]

    @staticmethod
    def build_tools(declarations: List[ToolDeclaration]) -> List[Dict[str, Any]]:
        return [{"type": "function", "function": decl.to_json()} for decl in declarations]

    def _request(
        self,
        turns: List[ConversationTurn],
        declarations: List[ToolDeclaration],
    ) -> ModelReply:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": self.build_messages(turns),
            "options": self.options or None,
        }
        if declarations:
            kwargs["tools"] = self.build_tools(declarations)

        if self.verbose:
            logger.debug("Ollama request (%s):\n%s", self.model, json.dumps(kwargs, indent=2, default=str))

        try:
            response = self._client.chat(**kwargs)
        except (RequestError, ValidationError) as exc:
            # Rejected by the SDK before any request was sent (e.g. an empty model name).
            raise ModelConfigurationError(f"Invalid Ollama request: {exc}") from exc
        except ResponseError as exc:
            raise UpstreamStatusError(
                f"API returned error code: {exc.status_code} - {exc.error}",
                status_code=exc.status_code,
            ) from exc
        except httpx.TimeoutException as exc:
            raise ModelTimeoutError(f"Request timed out after {self.timeout:g}s") from exc
        except (ConnectionError, httpx.HTTPError) as exc:
            raise TransportError(str(exc) or exc.__class__.__name__) from exc

        calls = self._normalize_tool_calls(response)
        if calls:
            first = calls[0]
            if len(calls) > 1:
                logger.info("Model requested %s tool calls; only '%s' is used", len(calls), first["name"])
            return FunctionCallReply(name=first["name"], arguments=first["arguments"])

        content = self._extract_content(response).strip()
        if content:
            return TextReply(text=content)
        raise UnparseableResponseError("Could not find text or a function call in the response")

    # -------------------------------------------------

    @staticmethod
    def _message_payload(response: Any) -> Dict[str, Any]:
        message = getattr(response, "message", None)
        if message is None and isinstance(response, dict):
            message = response.get("message")
        if not message:
            return {}
        if hasattr(message, "model_dump"):
            return message.model_dump(exclude_none=True)
        if isinstance(message, dict):
            return message
        return {}

    @classmethod
    def _extract_content(cls, response: Any) -> str:
        content = cls._message_payload(response).get("content", "")
        if isinstance(content, list):
            content = "".join(map(str, content))
        return str(content or "")

    @classmethod
    def _normalize_tool_calls(cls, response: Any) -> List[Dict[str, Any]]:
        """
        Convert model tool calls into a stable shape:
        [{'name': str, 'arguments': dict}, ...]
        """
        tool_calls = cls._message_payload(response).get("tool_calls") or []
        normalized: List[Dict[str, Any]] = []

        for call in tool_calls:
            if hasattr(call, "model_dump"):
                call = call.model_dump(exclude_none=True)
            if not isinstance(call, dict):
                continue

            function_payload = call.get("function")
            if isinstance(function_payload, dict):
                name = function_payload.get("name") or call.get("name") or ""
                arguments = function_payload.get("arguments", {})
            else:
                name = call.get("name", "")
                arguments = call.get("arguments", {})
            if not name:
                continue

            parsed_arguments: Dict[str, Any] = {}
            if isinstance(arguments, str):
                try:
                    loaded = json.loads(arguments)
                    if isinstance(loaded, dict):
                        parsed_arguments = loaded
                except json.JSONDecodeError:
                    parsed_arguments = {}
            elif isinstance(arguments, Mapping):
                parsed_arguments = dict(arguments)

            normalized.append({"name": str(name), "arguments": parsed_arguments})

        return normalized


def _turn_to_message(turn: ConversationTurn) -> Dict[str, Any]:
    content = turn.content
    if turn.role is Role.FUNCTION_RESULT and isinstance(content, FunctionResult):
        return {
            "role": "tool",
            "tool_name": content.name,
            "content": json.dumps({"result": content.result}, ensure_ascii=False),
        }
    if turn.role is Role.MODEL:
        if isinstance(content, ToolCall):
            return {
                "role": "assistant",
                "content": "",
                "tool_calls": [
                    {"function": {"name": content.function_name, "arguments": content.arguments}}
                ],
            }
        return {"role": "assistant", "content": str(content)}
    return {"role": "user", "content": str(content)}


__all__ = ["DEFAULT_OLLAMA_HOST", "DEFAULT_OLLAMA_MODEL", "OllamaAdapter"]

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union

import httpx

from ..config import CredentialProvider, StaticCredentialProvider
from ..schemas import (
    ConversationTurn,
    ErrorReply,
    FunctionCallReply,
    FunctionResult,
    ModelReply,
    Role,
    TextReply,
    ToolCall,
    ToolDeclaration,
)

logger = logging.getLogger(__name__)


DEFAULT_TIMEOUT = 45.0
DEFAULT_GEMINI_BASE = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"
PREVIEW_CHARS = 500
REDACTED = "***"
# Shorter secrets are not real keys; replacing them would mangle unrelated text.
MIN_REDACT_CHARS = 8


class ModelError(RuntimeError):
    """Base class for failures talking to the model provider."""

    kind = "model"

    def to_reply(self) -> ErrorReply:
        return ErrorReply(kind=self.kind, message=str(self))


class TransportError(ModelError):
    """Network, DNS or connection failure before a response arrived."""

    kind = "transport"


class ModelTimeoutError(TransportError):
    kind = "timeout"


class UpstreamStatusError(ModelError):
    kind = "upstream_status"

    def __init__(self, message: str, *, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(ModelError):
    """The body is not JSON or lacks the expected shape."""

    kind = "malformed"


class NoCandidatesError(MalformedResponseError):
    kind = "no_candidates"


class ContentBlockedError(NoCandidatesError):
    kind = "blocked"

    def __init__(self, message: str, *, block_reason: str) -> None:
        super().__init__(message)
        self.block_reason = block_reason


class UnparseableResponseError(MalformedResponseError):
    kind = "unparseable"


class ModelConfigurationError(ModelError):
    """The adapter is set up with values the provider cannot accept."""

    kind = "configuration"


class MissingCredentialError(ModelConfigurationError):
    pass


class ModelClient(Protocol):
    def send(
        self,
        turns: Sequence[ConversationTurn],
        declarations: Optional[Sequence[ToolDeclaration]] = None,
    ) -> ModelReply:
        ...


class ModelAdapter(ABC):
    """
    Shared front for provider adapters.
    Subclasses implement ``_request`` and raise ModelError subclasses;
    ``send`` folds those into an ErrorReply so callers get one reply type.
    No retries: each call is a single bounded attempt.
    """

    def __init__(self, *, timeout: float = DEFAULT_TIMEOUT, verbose: bool = False) -> None:
        self.timeout = timeout
        self.verbose = verbose

    def send(
        self,
        turns: Sequence[ConversationTurn],
        declarations: Optional[Sequence[ToolDeclaration]] = None,
    ) -> ModelReply:
        try:
            return self._request(list(turns), list(declarations or []))
        except ModelError as exc:
            logger.warning("Model call failed [%s]: %s", exc.kind, exc)
            return exc.to_reply()

    @abstractmethod
    def _request(
        self,
        turns: List[ConversationTurn],
        declarations: List[ToolDeclaration],
    ) -> ModelReply:
        ...

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


# -------------------------------------------------


class GeminiAdapter(ModelAdapter):
    """Talks to the Gemini ``generateContent`` endpoint over plain HTTPS."""

    def __init__(
        self,
        credentials: Union[CredentialProvider, str],
        *,
        model: str = DEFAULT_GEMINI_MODEL,
        base_url: str = DEFAULT_GEMINI_BASE,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.Client] = None,
        verbose: bool = False,
    ) -> None:
        super().__init__(timeout=timeout, verbose=verbose)
        if isinstance(credentials, str):
            credentials = StaticCredentialProvider(credentials)
        self.credentials = credentials
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    # -------------------------------------------------

    def build_request_body(
        self,
        turns: Sequence[ConversationTurn],
        declarations: Sequence[ToolDeclaration],
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"contents": [_turn_to_content(turn) for turn in turns]}
        # An empty tool list is not the same as no tools; leave the key out.
        if declarations:
            body["tools"] = [
                {"function_declarations": [_declaration_to_wire(decl) for decl in declarations]}
            ]
        return body

    def _request(
        self,
        turns: List[ConversationTurn],
        declarations: List[ToolDeclaration],
    ) -> ModelReply:
        api_key = self.credentials.get_credential()
        if not api_key:
            raise MissingCredentialError("API key is missing.")

        body = self.build_request_body(turns, declarations)
        if self.verbose:
            logger.debug("Gemini request (%s):\n%s", self.model, json.dumps(body, indent=2))

        try:
            response = self._client.post(
                self.endpoint,
                json=body,
                headers={"x-goog-api-key": api_key},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise ModelTimeoutError(f"Request timed out after {self.timeout:g}s") from exc
        except httpx.HTTPError as exc:
            detail = str(exc) or exc.__class__.__name__
            raise TransportError(_redact(detail, api_key)) from exc
        except UnicodeEncodeError as exc:
            raise ModelConfigurationError(
                "API key contains characters that cannot be sent in an HTTP header."
            ) from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.status_code != 200:
            message = f"API returned error code: {response.status_code}"
            upstream = _error_message(payload)
            if upstream:
                message += f" - {upstream}"
            elif response.text:
                message += f" - {response.text[:PREVIEW_CHARS]}"
            raise UpstreamStatusError(_redact(message, api_key), status_code=response.status_code)

        if payload is None:
            raise MalformedResponseError(
                _redact(f"Response body is not valid JSON: {response.text[:PREVIEW_CHARS]}", api_key)
            )

        if self.verbose:
            logger.debug("Gemini response:\n%s", json.dumps(payload, indent=2))

        try:
            return parse_generate_content(payload)
        except ModelError as exc:
            raise _redact_error(exc, api_key)


def parse_generate_content(payload: Any) -> ModelReply:
    """Read ``candidates[0].content.parts[0]`` into a reply."""
    if not isinstance(payload, dict) or "candidates" not in payload:
        raise MalformedResponseError(f"Invalid API response format: {_preview(payload)}")

    candidates = payload["candidates"]
    if not isinstance(candidates, list):
        raise MalformedResponseError(f"'candidates' is not a list: {_preview(payload)}")
    if not candidates:
        feedback = payload.get("promptFeedback") or {}
        block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
        if block_reason:
            raise ContentBlockedError(
                f"No candidates returned from API. Blocked: {block_reason}",
                block_reason=str(block_reason),
            )
        raise NoCandidatesError("No candidates returned from API.")

    candidate = candidates[0] if isinstance(candidates[0], dict) else {}
    content = candidate.get("content") or {}
    parts = content.get("parts") if isinstance(content, dict) else None
    part = parts[0] if isinstance(parts, list) and parts and isinstance(parts[0], dict) else {}

    function_call = part.get("functionCall")
    if isinstance(function_call, dict) and function_call.get("name"):
        args = function_call.get("args") or {}
        if not isinstance(args, Mapping):
            args = {}
        return FunctionCallReply(name=str(function_call["name"]), arguments=dict(args))

    text = part.get("text")
    if isinstance(text, str):
        return TextReply(text=text)

    message = "Could not find text or a function call in the response"
    finish_reason = candidate.get("finishReason")
    if finish_reason:
        message += f" (finishReason: {finish_reason})"
    raise UnparseableResponseError(f"{message}: {_preview(payload)}")


# -------------------------------------------------


def _turn_to_content(turn: ConversationTurn) -> Dict[str, Any]:
    content = turn.content
    if turn.role is Role.FUNCTION_RESULT and isinstance(content, FunctionResult):
        part: Dict[str, Any] = {
            "functionResponse": {
                "name": content.name,
                "response": {"result": content.result},
            }
        }
        return {"role": "function", "parts": [part]}
    if turn.role is Role.MODEL:
        if isinstance(content, ToolCall):
            part = {"functionCall": {"name": content.function_name, "args": content.arguments}}
        else:
            part = {"text": str(content)}
        return {"role": "model", "parts": [part]}
    return {"role": "user", "parts": [{"text": str(content)}]}


def _declaration_to_wire(declaration: ToolDeclaration) -> Dict[str, Any]:
    wire = declaration.to_json()
    # generateContent rejects OBJECT parameters with no properties.
    if not declaration.parameters.get("properties"):
        wire.pop("parameters")
    return wire


def _error_message(payload: Any) -> str:
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return ""


def _preview(payload: Any) -> str:
    try:
        text = json.dumps(payload, ensure_ascii=False)
    except (TypeError, ValueError):
        text = repr(payload)
    if len(text) > PREVIEW_CHARS:
        text = text[:PREVIEW_CHARS] + "..."
    return text


def _redact(text: str, secret: str) -> str:
    if not secret or len(secret) < MIN_REDACT_CHARS:
        return text
    return text.replace(secret, REDACTED)


def _redact_error(exc: ModelError, secret: str) -> ModelError:
    redacted = _redact(str(exc), secret)
    if redacted != str(exc):
        exc.args = (redacted,)
    return exc


__all__ = [
    "ContentBlockedError",
    "DEFAULT_GEMINI_BASE",
    "DEFAULT_GEMINI_MODEL",
    "DEFAULT_TIMEOUT",
    "GeminiAdapter",
    "MalformedResponseError",
    "MissingCredentialError",
    "ModelAdapter",
    "ModelConfigurationError",
    "ModelClient",
    "ModelError",
    "ModelTimeoutError",
    "NoCandidatesError",
    "TransportError",
    "UnparseableResponseError",
    "UpstreamStatusError",
    "parse_generate_content",
]

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional

from .abilities import build_default_registry
from .content import ContentSource, content_source_from_settings
from .config import Settings
from .executor import ToolCallDispatcher
from .llm_interaction.adapter import GeminiAdapter, ModelClient, ModelError
from .llm_interaction.declarations import build_declarations
from .llm_interaction.ollama_adapter import OllamaAdapter
from .registry import AbilityRegistry
from .schemas import (
    ChatResult,
    ConversationTurn,
    ErrorReply,
    FunctionCallReply,
    ModelReply,
    TextReply,
    ToolDeclaration,
)


logger = logging.getLogger(__name__)


EMPTY_PROMPT = "Prompt is empty."
FINAL_RESPONSE_UNAVAILABLE = "Sorry, the final response could not be generated."

UNPARSEABLE_KINDS = {"malformed", "no_candidates", "unparseable"}


class OrchestratorState(str, Enum):
    AWAITING_FIRST_REPLY = "awaiting_first_reply"
    AWAITING_SECOND_REPLY = "awaiting_second_reply"
    ANSWERED = "answered"
    FAILED = "failed"


def describe_model_error(reply: ErrorReply) -> str:
    """User-facing text for a failed model call."""
    if reply.kind in UNPARSEABLE_KINDS:
        return f"API Error: could not parse the model's answer ({reply.message})"
    if reply.kind == "blocked":
        return f"API Error: the model declined to answer ({reply.message})"
    if reply.kind == "configuration":
        return f"API Error: the model is not configured ({reply.message})"
    return f"API Error: could not reach the model ({reply.message})"


class Orchestrator:
    """
    One user prompt in, one answer out, with at most two model round-trips:
    the first offers every registered ability as a tool; if the model asks
    for one, the result goes back in a three-turn transcript without tools.
    Nothing is kept between calls to handle().
    """

    def __init__(
        self,
        registry: AbilityRegistry,
        client: ModelClient,
        *,
        dispatcher: Optional[ToolCallDispatcher] = None,
        verbose: bool = False,
    ) -> None:
        self.registry = registry
        self.client = client
        self.dispatcher = dispatcher or ToolCallDispatcher(registry, verbose=verbose)
        self.verbose = verbose

    def handle(self, prompt: str) -> ChatResult:
        user_text = (prompt or "").strip()
        if not user_text:
            return ChatResult(success=False, message=EMPTY_PROMPT, state=OrchestratorState.FAILED.value)

        declarations = build_declarations(self.registry)
        user_turn = ConversationTurn.user(user_text)

        self._transition(OrchestratorState.AWAITING_FIRST_REPLY)
        reply = self._call_model([user_turn], declarations)

        if isinstance(reply, TextReply):
            return self._answered(reply.text)
        if isinstance(reply, ErrorReply):
            return self._failed(describe_model_error(reply), reply.kind)
        if not isinstance(reply, FunctionCallReply):
            return self._failed(FINAL_RESPONSE_UNAVAILABLE, "unparseable")

        call = reply.to_tool_call()
        result_text = self.dispatcher.dispatch(call)
        trace = [{**call.to_json(), "result": result_text}]

        transcript = [
            user_turn,
            ConversationTurn.function_call(call),
            ConversationTurn.function_result(call.function_name, result_text),
        ]
        self._transition(OrchestratorState.AWAITING_SECOND_REPLY)
        final = self._call_model(transcript, None)

        if isinstance(final, TextReply):
            return self._answered(final.text, trace)
        if isinstance(final, ErrorReply):
            return self._failed(
                f"{FINAL_RESPONSE_UNAVAILABLE} {describe_model_error(final)}",
                final.kind,
                trace,
            )
        # Single hop only: a second function call is not executed.
        if isinstance(final, FunctionCallReply):
            logger.warning("Ignoring nested function call '%s' in the final round", final.name)
        return self._failed(FINAL_RESPONSE_UNAVAILABLE, "nested_function_call", trace)

    # -------------------------------------------------

    def _call_model(
        self,
        turns: List[ConversationTurn],
        declarations: Optional[List[ToolDeclaration]],
    ) -> ModelReply:
        try:
            return self.client.send(turns, declarations or None)
        except ModelError as exc:
            logger.warning("Model call raised [%s]: %s", exc.kind, exc)
            return exc.to_reply()
        except Exception as exc:  # noqa: BLE001
            logger.exception("Model client failed unexpectedly")
            return ErrorReply(kind="internal", message=f"{exc.__class__.__name__}: {exc}")

    def close(self) -> None:
        close = getattr(self.client, "close", None)
        if callable(close):
            close()

    def _transition(self, state: OrchestratorState) -> None:
        if self.verbose:
            logger.debug("Orchestrator -> %s", state.value)

    def _answered(self, text: str, trace: Optional[List[dict]] = None) -> ChatResult:
        self._transition(OrchestratorState.ANSWERED)
        return ChatResult(
            success=True,
            message=text,
            state=OrchestratorState.ANSWERED.value,
            tool_calls=list(trace or []),
        )

    def _failed(self, message: str, kind: str, trace: Optional[List[dict]] = None) -> ChatResult:
        self._transition(OrchestratorState.FAILED)
        return ChatResult(
            success=False,
            message=message,
            state=OrchestratorState.FAILED.value,
            tool_calls=list(trace or []),
            error_kind=kind,
        )


def build_client(settings: Settings, *, verbose: bool = False) -> ModelClient:
    if settings.provider == "ollama":
        return OllamaAdapter(
            settings.ollama_model,
            host=settings.ollama_host,
            timeout=settings.timeout,
            verbose=verbose,
        )
    return GeminiAdapter(
        settings.credentials(),
        model=settings.gemini_model,
        base_url=settings.gemini_api_base,
        timeout=settings.timeout,
        verbose=verbose,
    )


def build_orchestrator(
    settings: Settings,
    *,
    registry: Optional[AbilityRegistry] = None,
    content_source: Optional[ContentSource] = None,
    client: Optional[ModelClient] = None,
    verbose: bool = False,
) -> Orchestrator:
    if registry is None:
        source = content_source or content_source_from_settings(settings)
        registry = build_default_registry(source, on_duplicate=settings.duplicate_policy)
    return Orchestrator(
        registry,
        client or build_client(settings, verbose=verbose),
        verbose=verbose,
    )


__all__ = [
    "EMPTY_PROMPT",
    "FINAL_RESPONSE_UNAVAILABLE",
    "Orchestrator",
    "OrchestratorState",
    "build_client",
    "build_orchestrator",
    "describe_model_error",
]

from __future__ import annotations

import pytest

from ability_chat.config import Settings
from ability_chat.llm_interaction.adapter import (
    MalformedResponseError,
    ModelTimeoutError,
    TransportError,
)
from ability_chat.pipeline import (
    EMPTY_PROMPT,
    FINAL_RESPONSE_UNAVAILABLE,
    Orchestrator,
    OrchestratorState,
    build_orchestrator,
)
from ability_chat.registry import AbilityRegistry
from ability_chat.schemas import ErrorReply, FunctionCallReply, FunctionResult, Role, TextReply, ToolCall


class CountingDispatcher:
    def __init__(self) -> None:
        self.calls = []

    def dispatch(self, call):
        self.calls.append(call)
        return "dispatched"


def _search_registry(make_ability, results):
    def execute(args):
        results.append(args)
        return f"3 posts about {args['query']}"

    return AbilityRegistry([make_ability("search/content", execute=execute)])


def test_direct_text_answer_uses_one_call(make_ability, scripted_client):
    client = scripted_client(TextReply("hello"))
    orchestrator = Orchestrator(AbilityRegistry([make_ability()]), client)

    result = orchestrator.handle("hi there")

    assert result.to_json() == {"success": True, "message": "hello"}
    assert result.state == OrchestratorState.ANSWERED.value
    assert len(client.calls) == 1
    turns = client.calls[0]["turns"]
    assert [t.role for t in turns] == [Role.USER]
    assert turns[0].content == "hi there"


def test_function_call_round_trip(make_ability, scripted_client):
    executed = []
    client = scripted_client(
        FunctionCallReply("search_content", {"query": "foo"}),
        TextReply("answer using foo"),
    )
    orchestrator = Orchestrator(_search_registry(make_ability, executed), client)

    result = orchestrator.handle("what about foo?")

    assert result.to_json() == {"success": True, "message": "answer using foo"}
    assert executed == [{"query": "foo"}]
    assert len(client.calls) == 2

    first, second = client.calls
    assert [d.name for d in first["declarations"]] == ["search_content"]
    assert second["declarations"] is None

    transcript = second["turns"]
    assert [t.role for t in transcript] == [Role.USER, Role.MODEL, Role.FUNCTION_RESULT]
    assert transcript[0].content == "what about foo?"
    assert transcript[1].content == ToolCall("search_content", {"query": "foo"})
    assert transcript[2].content == FunctionResult(name="search_content", result="3 posts about foo")
    assert result.tool_calls == [
        {"name": "search_content", "arguments": {"query": "foo"}, "result": "3 posts about foo"}
    ]


def test_transport_error_on_first_call_skips_dispatch(make_ability, scripted_client):
    dispatcher = CountingDispatcher()
    client = scripted_client(TransportError("connection refused"))
    orchestrator = Orchestrator(AbilityRegistry([make_ability()]), client, dispatcher=dispatcher)

    result = orchestrator.handle("hi")

    assert result.success is False
    assert "API Error" in result.message
    assert "could not reach the model" in result.message
    assert dispatcher.calls == []
    assert len(client.calls) == 1


def test_error_reply_on_first_call(make_ability, scripted_client):
    client = scripted_client(ErrorReply(kind="malformed", message="Invalid API response format"))
    result = Orchestrator(AbilityRegistry(), client).handle("hi")

    assert result.success is False
    assert "could not parse the model's answer" in result.message
    assert result.error_kind == "malformed"


def test_timeout_is_reported_as_unreachable(scripted_client):
    client = scripted_client(ModelTimeoutError("Request timed out after 45s"))
    result = Orchestrator(AbilityRegistry(), client).handle("hi")

    assert result.success is False
    assert result.error_kind == "timeout"
    assert "could not reach the model" in result.message


def test_empty_registry_sends_no_declarations(scripted_client):
    client = scripted_client(TextReply("ok"))

    Orchestrator(AbilityRegistry(), client).handle("hi")

    assert client.calls[0]["declarations"] is None


def test_unknown_ability_still_completes_round_trip(scripted_client):
    client = scripted_client(
        FunctionCallReply("missing_tool", {}),
        TextReply("Sorry, that tool failed."),
    )

    result = Orchestrator(AbilityRegistry(), client).handle("do it")

    assert result.success is True
    function_turn = client.calls[1]["turns"][2]
    assert function_turn.content.result.startswith("Error:")


def test_nested_function_call_is_not_executed(make_ability, scripted_client):
    executed = []
    client = scripted_client(
        FunctionCallReply("search_content", {"query": "foo"}),
        FunctionCallReply("search_content", {"query": "bar"}),
    )

    result = Orchestrator(_search_registry(make_ability, executed), client).handle("foo?")

    assert result.to_json() == {"success": False, "message": FINAL_RESPONSE_UNAVAILABLE}
    assert executed == [{"query": "foo"}]
    assert len(client.calls) == 2


def test_second_call_error_returns_fallback(make_ability, scripted_client):
    client = scripted_client(
        FunctionCallReply("search_content", {"query": "foo"}),
        MalformedResponseError("No candidates returned from API."),
    )

    result = Orchestrator(_search_registry(make_ability, []), client).handle("foo?")

    assert result.success is False
    assert result.message.startswith(FINAL_RESPONSE_UNAVAILABLE)
    assert "could not parse" in result.message
    assert result.state == OrchestratorState.FAILED.value


def test_empty_prompt_makes_no_call(scripted_client):
    client = scripted_client()

    result = Orchestrator(AbilityRegistry(), client).handle("   ")

    assert result.to_json() == {"success": False, "message": EMPTY_PROMPT}
    assert client.calls == []


def test_prompt_is_stripped(scripted_client):
    client = scripted_client(TextReply("ok"))

    Orchestrator(AbilityRegistry(), client).handle("  hello \n")

    assert client.calls[0]["turns"][0].content == "hello"


def test_requests_do_not_share_state(make_ability, scripted_client):
    client = scripted_client(TextReply("one"), TextReply("two"))
    orchestrator = Orchestrator(AbilityRegistry([make_ability()]), client)

    orchestrator.handle("first")
    orchestrator.handle("second")

    assert [len(call["turns"]) for call in client.calls] == [1, 1]
    assert client.calls[1]["turns"][0].content == "second"


def test_build_orchestrator_with_default_abilities(content_source, scripted_client):
    client = scripted_client(
        FunctionCallReply("ability-chat_search-content", {"query": "compost"}),
        TextReply("You have two compost posts."),
    )
    orchestrator = build_orchestrator(Settings(), content_source=content_source, client=client)

    result = orchestrator.handle("Do you have posts about compost?")

    assert result.success is True
    names = [d.name for d in client.calls[0]["declarations"]]
    assert names == ["ability-chat_search-content", "ability-chat_get-recent-posts"]
    tool_output = client.calls[1]["turns"][2].content.result
    assert "TITLE: Composting basics" in tool_output
    assert "Draft: compost tea" not in tool_output


@pytest.mark.parametrize("provider,expected", [("gemini", "GeminiAdapter"), ("ollama", "OllamaAdapter")])
def test_build_orchestrator_picks_client(provider, expected):
    orchestrator = build_orchestrator(Settings(provider=provider))
    try:
        assert type(orchestrator.client).__name__ == expected
    finally:
        orchestrator.client.close()


def test_unexpected_client_exception_becomes_failed_result(make_ability, scripted_client):
    dispatcher = CountingDispatcher()
    client = scripted_client(RuntimeError("adapter bug"))
    orchestrator = Orchestrator(AbilityRegistry([make_ability()]), client, dispatcher=dispatcher)

    result = orchestrator.handle("hi")

    assert result.success is False
    assert result.error_kind == "internal"
    assert "API Error" in result.message
    assert dispatcher.calls == []


def test_close_releases_the_client(scripted_client):
    class ClosableClient:
        closed = 0

        def send(self, turns, declarations=None):
            return TextReply("ok")

        def close(self):
            self.closed += 1

    client = ClosableClient()
    Orchestrator(AbilityRegistry(), client).close()
    # Clients without close() are fine too.
    Orchestrator(AbilityRegistry(), scripted_client()).close()

    assert client.closed == 1

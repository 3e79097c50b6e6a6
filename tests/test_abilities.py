from __future__ import annotations

from ability_chat.abilities import (
    GET_RECENT_POSTS,
    SEARCH_CONTENT,
    build_default_registry,
    get_recent_posts,
    make_snippet,
    search_content,
    strip_tags,
)
from ability_chat.content import ContentItem, InMemoryContentSource, NullContentSource
from ability_chat.executor import ToolCallDispatcher
from ability_chat.schemas import AbilityFailure, ToolCall


def test_default_registry_contents(default_registry):
    assert default_registry.names() == [SEARCH_CONTENT, GET_RECENT_POSTS]
    search = default_registry.get(SEARCH_CONTENT)
    assert search.category == "content-retrieval"
    assert search.input_schema["required"] == ["query"]
    assert search.permission_check() is True


def test_search_formats_matches(content_source):
    text = search_content({"query": "compost"}, content_source)

    assert text.startswith("Content snippets for query 'compost':\n\n")
    assert "TITLE: Composting basics\nURL: https://example.test/composting-basics\n" in text
    assert "SNIPPET: Start a compost pile with greens and browns....\n---\n" in text
    assert "TITLE: Winter compost care" in text
    assert "Draft" not in text


def test_search_snippets_are_truncated(content_source):
    text = search_content({"query": "winter"}, content_source)
    snippet_line = next(line for line in text.splitlines() if line.startswith("SNIPPET: "))

    assert len(snippet_line) == len("SNIPPET: ") + 300 + 3
    assert snippet_line.endswith("...")


def test_search_limits_to_three_results():
    source = InMemoryContentSource(
        ContentItem(title=f"Bread {i}", url=f"https://example.test/{i}", body="bread") for i in range(6)
    )

    text = search_content({"query": "bread"}, source)

    assert text.count("TITLE:") == 3


def test_search_without_matches(content_source):
    text = search_content({"query": "quantum"}, content_source)

    assert text == "No relevant content found on the site for the query 'quantum'."


def test_search_empty_query_is_failure(content_source):
    result = search_content({"query": "   "}, content_source)

    assert isinstance(result, AbilityFailure)
    assert result.code == "empty_query"


def test_search_invalid_query_type(content_source):
    result = search_content({"query": {"nested": True}}, content_source)

    assert isinstance(result, AbilityFailure)
    assert result.code == "invalid_input"
    assert "query" in result.message


def test_recent_posts_newest_first(content_source):
    text = get_recent_posts({"limit": 2}, content_source)

    assert text.splitlines() == [
        "2 most recent posts:",
        "1. Winter compost care - https://example.test/winter-compost",
        "2. Choosing tomato varieties - https://example.test/tomatoes",
    ]


def test_recent_posts_default_limit(content_source):
    text = get_recent_posts({}, content_source)

    assert text.startswith("3 most recent posts:")


def test_recent_posts_limit_out_of_range(content_source):
    result = get_recent_posts({"limit": 500}, content_source)

    assert isinstance(result, AbilityFailure)
    assert "limit" in result.message


def test_null_source_reports_nothing():
    registry = build_default_registry(NullContentSource())
    dispatcher = ToolCallDispatcher(registry)

    assert "No relevant content found" in dispatcher.dispatch(
        ToolCall("ability-chat_search-content", {"query": "anything"})
    )
    assert dispatcher.dispatch(ToolCall("ability-chat_get-recent-posts", {})) == (
        "No published content found on the site."
    )


def test_dispatching_empty_query_reports_error(default_registry):
    dispatcher = ToolCallDispatcher(default_registry)

    result = dispatcher.dispatch(ToolCall("ability-chat_search-content", {}))

    assert result == (
        "Error: ability 'ability-chat/search-content' failed: No search query provided for content search."
    )


def test_strip_tags_and_snippet():
    assert strip_tags("<h1>Title</h1>\n<p>Body  text</p>") == "Title Body text"
    assert make_snippet("<b>short</b>") == "short..."

# ability_chat/abilities.py
import re
from typing import Any, Callable, List

from pydantic import BaseModel, Field, ValidationError

from .content import ContentItem, ContentSource, NullContentSource
from .registry import AbilityRegistry
from .schemas import AbilityDefinition, AbilityFailure


NAMESPACE = "ability-chat"
SEARCH_CONTENT = f"{NAMESPACE}/search-content"
GET_RECENT_POSTS = f"{NAMESPACE}/get-recent-posts"

SEARCH_LIMIT = 3
SNIPPET_CHARS = 300
_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")


class SearchContentInput(BaseModel):
    query: str = Field(default="", max_length=200)


class RecentPostsInput(BaseModel):
    limit: int = Field(default=5, ge=1, le=20)


def strip_tags(html: str) -> str:
    return _SPACE_RE.sub(" ", _TAG_RE.sub(" ", html or "")).strip()


def make_snippet(body: str) -> str:
    return strip_tags(body)[:SNIPPET_CHARS] + "..."


def search_content(arguments: dict[str, Any], source: ContentSource) -> str | AbilityFailure:
    """Look up site content matching a free-text query."""
    try:
        payload = SearchContentInput.model_validate(arguments)
    except ValidationError as exc:
        return AbilityFailure(message=_first_error(exc), code="invalid_input")

    query = payload.query.strip()
    if not query:
        return AbilityFailure(message="No search query provided for content search.", code="empty_query")

    matches = source.search(query, SEARCH_LIMIT)
    if not matches:
        return f"No relevant content found on the site for the query '{query}'."

    lines = [f"Content snippets for query '{query}':", ""]
    for item in matches:
        lines.append(f"TITLE: {item.title}")
        lines.append(f"URL: {item.url}")
        lines.append(f"SNIPPET: {make_snippet(item.body)}")
        lines.append("---")
    return "\n".join(lines) + "\n"


def get_recent_posts(arguments: dict[str, Any], source: ContentSource) -> str | AbilityFailure:
    """List the newest published items."""
    try:
        payload = RecentPostsInput.model_validate(arguments)
    except ValidationError as exc:
        return AbilityFailure(message=_first_error(exc), code="invalid_input")

    items: List[ContentItem] = source.recent(payload.limit)
    if not items:
        return "No published content found on the site."

    lines = [f"{len(items)} most recent posts:"]
    for index, item in enumerate(items, start=1):
        lines.append(f"{index}. {item.title} - {item.url}")
    return "\n".join(lines)


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid input."
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "input"
    return f"Invalid input for '{location}': {first.get('msg', 'invalid value')}"


def _bind(func: Callable[[dict[str, Any], ContentSource], Any], source: ContentSource):
    def _execute(arguments: dict[str, Any]) -> Any:
        return func(arguments, source)

    _execute.__name__ = func.__name__
    return _execute


def content_abilities(source: ContentSource) -> List[AbilityDefinition]:
    return [
        AbilityDefinition(
            name=SEARCH_CONTENT,
            label="Search Site Content",
            category="content-retrieval",
            description=(
                "Retrieves relevant content snippets from the site's posts and pages based on a "
                "search query. Use this when the user asks about site-specific content, like "
                '"what are your recent articles" or "do you have a post about [topic]".'
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "The search term to use for querying the site's content.",
                    }
                },
                "required": ["query"],
            },
            output_schema={
                "type": "string",
                "description": "Formatted string containing search results with titles, URLs, and content snippets.",
            },
            execute=_bind(search_content, source),
        ),
        AbilityDefinition(
            name=GET_RECENT_POSTS,
            label="Get Recent Posts",
            category="content-retrieval",
            description="Gets the most recent published posts from the site.",
            input_schema={
                "type": "object",
                "properties": {
                    "limit": {
                        "type": "integer",
                        "description": "Number of posts to retrieve (1-20, default 5).",
                    }
                },
                "required": [],
            },
            output_schema={
                "type": "string",
                "description": "Formatted list of recent posts with titles and URLs.",
            },
            execute=_bind(get_recent_posts, source),
        ),
    ]


def build_default_registry(
    source: ContentSource | None = None,
    *,
    on_duplicate: str = "reject",
) -> AbilityRegistry:
    """Registry holding the built-in content abilities."""
    return AbilityRegistry(content_abilities(source or NullContentSource()), on_duplicate=on_duplicate)


__all__ = [
    "GET_RECENT_POSTS",
    "SEARCH_CONTENT",
    "build_default_registry",
    "content_abilities",
    "get_recent_posts",
    "make_snippet",
    "search_content",
    "strip_tags",
]

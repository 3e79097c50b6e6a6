# tests/conftest.py
# ============================================================
#   Shared pytest fixtures for all tests under tests/:
#   - ScriptedClient / scripted_client: model client stub that replays
#     a fixed list of replies and records every call it receives
#   - make_ability: AbilityDefinition factory with sane defaults
#   - content_items / content_source: small in-memory site
#   - default_registry: the built-in abilities over content_source
# ============================================================

from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest


# ---------- Ensure project root is importable ----------
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ability_chat.abilities import build_default_registry  # noqa: E402
from ability_chat.content import ContentItem, InMemoryContentSource  # noqa: E402
from ability_chat.schemas import AbilityDefinition  # noqa: E402


class ScriptedClient:
    """Returns queued replies in order; an Exception in the queue is raised."""

    def __init__(self, replies: List[Any]) -> None:
        self.replies = list(replies)
        self.calls: List[Dict[str, Any]] = []

    def send(self, turns, declarations=None):
        self.calls.append({"turns": list(turns), "declarations": declarations})
        if not self.replies:
            raise AssertionError("ScriptedClient ran out of replies")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def scripted_client():
    def _make(*replies: Any) -> ScriptedClient:
        return ScriptedClient(list(replies))

    return _make


@pytest.fixture
def make_ability():
    def _make(
        name: str = "demo/echo",
        *,
        execute=None,
        permission_check=None,
        input_schema: Optional[Dict[str, Any]] = None,
        description: str = "Echo the arguments back.",
    ) -> AbilityDefinition:
        kwargs: Dict[str, Any] = {
            "name": name,
            "description": description,
            "execute": execute or (lambda args: args),
            "input_schema": input_schema if input_schema is not None else {},
        }
        if permission_check is not None:
            kwargs["permission_check"] = permission_check
        return AbilityDefinition(**kwargs)

    return _make


@pytest.fixture
def content_items() -> List[ContentItem]:
    return [
        ContentItem(
            title="Composting basics",
            url="https://example.test/composting-basics",
            body="<p>Start a <strong>compost</strong> pile with greens and browns.</p>",
            published_at=datetime(2024, 3, 1),
        ),
        ContentItem(
            title="Winter compost care",
            url="https://example.test/winter-compost",
            body="Keep the compost covered when it freezes. " * 20,
            published_at=datetime(2024, 12, 5),
        ),
        ContentItem(
            title="Draft: compost tea",
            url="https://example.test/?p=99",
            body="compost tea notes",
            published=False,
            published_at=datetime(2025, 1, 1),
        ),
        ContentItem(
            title="Choosing tomato varieties",
            url="https://example.test/tomatoes",
            body="Cherry, beefsteak and paste tomatoes.",
            published_at=datetime(2024, 6, 10),
        ),
    ]


@pytest.fixture
def content_source(content_items) -> InMemoryContentSource:
    return InMemoryContentSource(content_items)


@pytest.fixture
def default_registry(content_source):
    return build_default_registry(content_source)

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Protocol

import psycopg
from psycopg.rows import dict_row

from .config import Settings


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContentItem:
    title: str
    url: str
    body: str = ""
    published: bool = True
    published_at: Optional[datetime] = None


class ContentSource(Protocol):
    """What the host site offers the content abilities."""

    def search(self, query: str, limit: int) -> List[ContentItem]:
        ...

    def recent(self, limit: int) -> List[ContentItem]:
        ...


class NullContentSource:
    """Stand-in when the host has no content backend; every lookup is empty."""

    def search(self, query: str, limit: int) -> List[ContentItem]:
        return []

    def recent(self, limit: int) -> List[ContentItem]:
        return []


class InMemoryContentSource:
    """Case-insensitive substring search over a fixed list of items."""

    def __init__(self, items: Iterable[ContentItem] = ()) -> None:
        self.items = list(items)

    def search(self, query: str, limit: int) -> List[ContentItem]:
        terms = [term for term in query.lower().split() if term]
        if not terms:
            return []
        matches = []
        for item in self._published():
            haystack = f"{item.title}\n{item.body}".lower()
            if all(term in haystack for term in terms):
                matches.append(item)
        return matches[: max(0, limit)]

    def recent(self, limit: int) -> List[ContentItem]:
        ordered = sorted(
            self._published(),
            key=lambda item: item.published_at or datetime.min,
            reverse=True,
        )
        return ordered[: max(0, limit)]

    def _published(self) -> List[ContentItem]:
        return [item for item in self.items if item.published]


class PostgresContentSource:
    """
    Full-text search over the ``content.items`` table.

    Expected columns: title, url, body, status ('publish' for live items)
    and published_at. Ranking uses Postgres' english text search.
    """

    def __init__(self, dsn: str) -> None:
        self.dsn = dsn

    def search(self, query: str, limit: int) -> List[ContentItem]:
        with psycopg.connect(self.dsn, row_factory=dict_row, autocommit=True) as cx, cx.cursor() as cur:
            cur.execute(
                """
                SELECT i.title, i.url, i.body, i.published_at
                FROM content.items i,
                     websearch_to_tsquery('english', %s) q
                WHERE i.status = 'publish'
                  AND to_tsvector('english', i.title || ' ' || i.body) @@ q
                ORDER BY ts_rank(to_tsvector('english', i.title || ' ' || i.body), q) DESC,
                         i.published_at DESC
                LIMIT %s
                """,
                (query, limit),
            )
            rows = cur.fetchall() or []
        return [_row_to_item(row) for row in rows]

    def recent(self, limit: int) -> List[ContentItem]:
        with psycopg.connect(self.dsn, row_factory=dict_row, autocommit=True) as cx, cx.cursor() as cur:
            cur.execute(
                """
                SELECT i.title, i.url, i.body, i.published_at
                FROM content.items i
                WHERE i.status = 'publish'
                ORDER BY i.published_at DESC
                LIMIT %s
                """,
                (limit,),
            )
            rows = cur.fetchall() or []
        return [_row_to_item(row) for row in rows]


def _row_to_item(row: dict) -> ContentItem:
    return ContentItem(
        title=row.get("title") or "",
        url=row.get("url") or "",
        body=row.get("body") or "",
        published_at=row.get("published_at"),
    )


def content_source_from_settings(settings: Settings) -> ContentSource:
    if settings.pg_dsn:
        return PostgresContentSource(settings.pg_dsn)
    logger.info("No content backend configured; content abilities will report no results")
    return NullContentSource()


__all__ = [
    "ContentItem",
    "ContentSource",
    "InMemoryContentSource",
    "NullContentSource",
    "PostgresContentSource",
    "content_source_from_settings",
]

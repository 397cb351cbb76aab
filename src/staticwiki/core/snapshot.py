"""Snapshot codec: JSON export/import of the article collection.

A snapshot document looks like::

    {
      "version": 1,
      "exportedAt": "2026-01-05T10:00:00.000Z",
      "articles": [
        {"id": "...", "title": "...", "content": "<p>...</p>",
         "createdAt": "...", "updatedAt": "..."}
      ]
    }

Loading is tolerant: every article entry goes through ``repair_article``,
which fills in whatever is missing. The startup load never fails; a user
import fails only when the document is not snapshot-shaped at all.
"""

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx

from staticwiki.core.errors import InvalidFormat, ResourceUnavailable
from staticwiki.core.models import SNAPSHOT_VERSION, Article, Snapshot, now_iso
from staticwiki.core.repository import ArticleRepository, new_article_id

logger = logging.getLogger(__name__)

PLACEHOLDER_TITLE = "Untitled"

FETCH_TIMEOUT = 10.0


def _text(value: Any) -> str | None:
    """Return value if it is a non-empty string, else None."""
    if isinstance(value, str) and value:
        return value
    return None


def repair_article(
    raw: dict[str, Any],
    now: Callable[[], str] = now_iso,
    id_factory: Callable[[], str] = new_article_id,
) -> Article:
    """Build a fully populated Article from a partially populated entry.

    Missing or wrong-typed fields are replaced: ``id`` by a fresh id,
    ``title`` by a placeholder, ``content`` by an empty string (the older
    ``html`` key is accepted too), ``createdAt`` by the current time and
    ``updatedAt`` by ``createdAt``.
    """
    title = raw.get("title")
    if not isinstance(title, str):
        title = PLACEHOLDER_TITLE

    content = raw.get("content")
    if not isinstance(content, str):
        content = raw.get("html")
    if not isinstance(content, str):
        content = ""

    created_at = _text(raw.get("createdAt")) or now()
    updated_at = _text(raw.get("updatedAt")) or created_at
    if updated_at < created_at:
        updated_at = created_at

    return Article(
        id=_text(raw.get("id")) or id_factory(),
        title=title,
        content=content,
        created_at=created_at,
        updated_at=updated_at,
    )


def _parse(raw: bytes | str) -> Any:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8-sig")
    return json.loads(raw)


def _build(data: dict[str, Any], entries: list[Any]) -> Snapshot:
    """Repair every entry and assemble the snapshot."""
    articles: list[Article] = []
    seen_ids: set[str] = set()
    for entry in entries:
        if not isinstance(entry, dict):
            logger.debug("Skipping non-object article entry: %r", entry)
            continue
        article = repair_article(entry)
        if article.id in seen_ids:
            article = article.model_copy(update={"id": new_article_id()})
        seen_ids.add(article.id)
        articles.append(article)

    exported_at = data.get("exportedAt")
    return Snapshot(
        version=SNAPSHOT_VERSION,
        exported_at=exported_at if isinstance(exported_at, str) else None,
        articles=articles,
    )


def _load_object(raw: bytes | str) -> dict[str, Any] | None:
    """Parse a document and return its top-level object, or None."""
    try:
        data = _parse(raw)
    except (ValueError, UnicodeDecodeError) as e:
        logger.info("Snapshot is not valid JSON: %s", e)
        return None
    if not isinstance(data, dict):
        logger.info("Snapshot top level is not an object")
        return None
    return data


def _tolerant(data: dict[str, Any]) -> Snapshot:
    entries = data.get("articles")
    if not isinstance(entries, list):
        entries = []
    return _build(data, entries)


def decode(raw: bytes | str) -> Snapshot:
    """Decode a snapshot document, falling back to an empty snapshot.

    Never raises: unparseable input or a top level that is not an object
    yields the empty snapshot, and a non-list ``articles`` is treated as an
    empty list.
    """
    data = _load_object(raw)
    if data is None:
        return Snapshot.empty()
    return _tolerant(data)


def decode_strict(raw: bytes | str) -> Snapshot:
    """Decode a user-supplied snapshot document.

    Applies the same repair rules as ``decode`` to each article.

    Raises:
        InvalidFormat: If the document is not JSON, the top level is not an
            object, or ``articles`` is not a list.
    """
    try:
        data = _parse(raw)
    except (ValueError, UnicodeDecodeError) as e:
        raise InvalidFormat(f"not JSON ({e})") from e

    if not isinstance(data, dict):
        raise InvalidFormat("top level is not an object")

    entries = data.get("articles")
    if not isinstance(entries, list):
        raise InvalidFormat("'articles' is not a list")
    return _build(data, entries)


def encode(articles: list[Article], exported_at: str | None) -> Snapshot:
    """Build the snapshot for a collection, keeping its order."""
    return Snapshot(
        version=SNAPSHOT_VERSION,
        exported_at=exported_at,
        articles=[article.model_copy() for article in articles],
    )


def dumps(snapshot: Snapshot) -> str:
    """Serialize a snapshot to pretty-printed JSON with wire field names."""
    data = snapshot.model_dump(by_alias=True, mode="json")
    return json.dumps(data, ensure_ascii=False, indent=2)


def export_document(repository: ArticleRepository, exported_at: str | None = None) -> str:
    """Export the repository as a downloadable snapshot document."""
    snapshot = encode(repository.articles, exported_at or now_iso())
    return dumps(snapshot)


def import_snapshot(repository: ArticleRepository, raw: bytes | str) -> Snapshot:
    """Replace the repository contents with an imported snapshot.

    Raises:
        InvalidFormat: If the document is rejected. The repository is left
            unchanged in that case.
    """
    snapshot = decode_strict(raw)
    repository.replace_all(snapshot.articles)
    return snapshot


@dataclass
class LoadResult:
    """Outcome of the startup snapshot read."""

    snapshot: Snapshot
    loaded_from_source: bool
    hint: str | None = None


async def _read_source(source: str, client: httpx.AsyncClient | None) -> bytes:
    """Read raw snapshot bytes from a path or an http(s) URL."""
    if source.startswith(("http://", "https://")):
        try:
            if client is None:
                async with httpx.AsyncClient(timeout=FETCH_TIMEOUT) as own_client:
                    response = await own_client.get(source, headers={"Cache-Control": "no-store"})
            else:
                response = await client.get(source, headers={"Cache-Control": "no-store"})
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise ResourceUnavailable(source, str(e)) from e
        return response.content

    path = Path(source)
    try:
        return await asyncio.to_thread(path.read_bytes)
    except OSError as e:
        raise ResourceUnavailable(source, e.strerror or str(e)) from e


async def load_snapshot(source: str, client: httpx.AsyncClient | None = None) -> LoadResult:
    """Read the startup snapshot once.

    Missing or corrupt sources are not errors: the result is an empty
    snapshot with a hint explaining why, which the UI may show quietly.

    Args:
        source: Filesystem path or http(s) URL of the snapshot document.
        client: Optional HTTP client to use for URL sources.

    Returns:
        LoadResult with the decoded snapshot.
    """
    try:
        raw = await _read_source(source, client)
    except ResourceUnavailable as e:
        logger.info("%s; starting with an empty collection", e)
        return LoadResult(
            snapshot=Snapshot.empty(),
            loaded_from_source=False,
            hint=f"{source} not found or unreadable; this is normal on first run",
        )

    data = _load_object(raw)
    if data is None:
        logger.info("Snapshot %s is malformed; starting with an empty collection", source)
        return LoadResult(
            snapshot=Snapshot.empty(),
            loaded_from_source=False,
            hint=f"{source} is not a valid snapshot; starting empty",
        )

    snapshot = _tolerant(data)
    logger.info("Loaded %d articles from %s", len(snapshot.articles), source)
    return LoadResult(snapshot=snapshot, loaded_from_source=True)

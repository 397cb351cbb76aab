"""Data models for StaticWiki."""

import re
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

SNAPSHOT_VERSION = 1

_WHITESPACE_RUN = re.compile(r"\s+")


def now_iso() -> str:
    """Return the current UTC time as a sortable ISO-8601 string.

    Millisecond precision with a ``Z`` suffix, e.g. ``2026-01-05T10:00:00.000Z``.
    """
    stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return stamp.replace("+00:00", "Z")


def normalize_title(title: str) -> str:
    """Trim a title and collapse internal whitespace runs to single spaces."""
    return _WHITESPACE_RUN.sub(" ", title.strip())


class Article(BaseModel):
    """A single wiki article."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    content: str = ""
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")


class Snapshot(BaseModel):
    """Portable representation of the whole article collection."""

    model_config = ConfigDict(populate_by_name=True)

    version: int = SNAPSHOT_VERSION
    exported_at: str | None = Field(default=None, alias="exportedAt")
    articles: list[Article] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "Snapshot":
        return cls(version=SNAPSHOT_VERSION, exported_at=None, articles=[])


class RouteName(str, Enum):
    """Named views reachable from a location fragment."""

    HOME = "home"
    ABOUT = "about"
    RANDOM = "random"
    EDIT = "edit"
    ARTICLE = "article"


class Route(BaseModel):
    """A resolved location fragment: view name plus optional argument."""

    model_config = ConfigDict(frozen=True)

    name: RouteName
    arg: str | None = None

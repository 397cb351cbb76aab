"""Rendering of article bodies and Markdown pages."""

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from markdown import Markdown

from staticwiki.core.router import article_fragment
from staticwiki.core.sanitizer import clean_tree, parse_fragment, serialize

TOC_HEADINGS = ["h2", "h3", "h4"]
SLUG_MAX_LENGTH = 60

WIKI_LINK_CLASS = "wiki-link"
MISSING_LINK_CLASS = "wiki-link wiki-link-missing"

DEFAULT_ABOUT = """\
# About this wiki

This wiki runs entirely in memory. Articles you create or edit live only
until the page is closed, unless you **export** them.

1. Unlock the editor, then create or edit articles.
2. Use *Export* to download `articles.json`.
3. Put that file next to the application to load it on the next start.

Link to other articles with the editor's link button; links to articles that
do not exist yet are shown as ~~missing~~ links until someone writes them.
"""


def _link_class(title: str, exists: Callable[[str], bool]) -> str:
    return WIKI_LINK_CLASS if exists(title) else MISSING_LINK_CLASS


def create_markdown() -> Markdown:
    """Create the Markdown parser used for static pages."""
    return Markdown(
        extensions=[
            "extra",  # Includes: abbreviations, attr_list, def_list, fenced_code, footnotes, md_in_html, tables
            "sane_lists",
            "smarty",
            "pymdownx.tilde",
            "pymdownx.tasklist",
        ]
    )


def render_markdown(text: str) -> str:
    """Render Markdown to sanitized HTML."""
    html = create_markdown().convert(text)
    return serialize(clean_tree(parse_fragment(html)))


def load_about(path: Path | None) -> str:
    """Markdown source of the About page."""
    if path is not None and path.is_file():
        return path.read_text(encoding="utf-8")
    return DEFAULT_ABOUT


@dataclass
class TocEntry:
    """One heading in an article's table of contents."""

    level: int
    id: str
    text: str


@dataclass
class RenderedArticle:
    html: str
    toc: list[TocEntry] = field(default_factory=list)


def slugify_heading(text: str) -> str:
    """Anchor id for a heading: lower-case, punctuation dropped, dashes."""
    slug = re.sub(r"[^\w\s-]", "", text.strip().lower())
    slug = re.sub(r"\s+", "-", slug)[:SLUG_MAX_LENGTH]
    return slug or "section"


def render_article_body(content: str, exists: Callable[[str], bool]) -> RenderedArticle:
    """Prepare stored article content for display.

    Sanitizes the content, points internal links at their article routes
    (marking links to missing articles), and gives every h2-h4 heading an
    id for the table of contents.

    Args:
        content: Stored rich-content fragment.
        exists: Callback to check if an article title exists.

    Returns:
        RenderedArticle with the HTML and table of contents entries.
    """
    soup = clean_tree(parse_fragment(content or ""))

    for link in soup.find_all("a", attrs={"data-article-title": True}):
        title = link.get("data-article-title") or ""
        link["href"] = article_fragment(title)
        link["class"] = _link_class(title, exists).split()

    headings = soup.find_all(TOC_HEADINGS)
    used = {el["id"] for el in soup.find_all(id=True)}
    toc: list[TocEntry] = []
    for heading in headings:
        text = heading.get_text().strip()
        heading_id = heading.get("id")
        if not heading_id:
            base = slugify_heading(text)
            heading_id = base
            suffix = 2
            while heading_id in used:
                heading_id = f"{base}-{suffix}"
                suffix += 1
            heading["id"] = heading_id
            used.add(heading_id)
        toc.append(TocEntry(level=int(heading.name[1]), id=heading_id, text=text))

    return RenderedArticle(html=serialize(soup), toc=toc)


def format_timestamp(iso: str | None) -> str:
    """Human-readable form of a stored timestamp.

    Unparseable values are returned unchanged.
    """
    if not iso:
        return ""
    try:
        dt = datetime.fromisoformat(iso.replace("Z", "+00:00"))
    except ValueError:
        return iso
    return dt.strftime("%Y-%m-%d %H:%M")

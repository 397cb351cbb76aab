"""Editing session: the draft being composed and the toolbar operations.

The draft is a rich-content fragment plus a selection expressed as
character offsets into it. Every toolbar operation is a pure transformation
of the draft: it replaces the selection with new markup and leaves the
cursor after the insertion. Nothing reaches the repository until ``save``.
"""

import base64
import html
import logging
import mimetypes
from dataclasses import dataclass

from bs4 import BeautifulSoup

from staticwiki.core.errors import EmptyTitle, UnknownCommand
from staticwiki.core.models import Article, normalize_title
from staticwiki.core.repository import ArticleRepository
from staticwiki.core.router import HOME_FRAGMENT, article_fragment
from staticwiki.core.sanitizer import PARSER, sanitize, serialize

logger = logging.getLogger(__name__)

EMPTY_DOCUMENT = "<p></p>"
QUOTE_PLACEHOLDER = "Quote text…"

INLINE_FORMATTING = [
    "b", "strong", "i", "em", "u", "s", "strike", "del", "ins", "mark",
    "font", "span", "sub", "sup", "small", "big", "code",
]

WRAP_COMMANDS = {
    "bold": "b",
    "italic": "i",
    "underline": "u",
    "strikeThrough": "s",
}

LIST_COMMANDS = {
    "insertUnorderedList": "ul",
    "insertOrderedList": "ol",
}

BLOCK_FORMATS = {"p", "h2", "h3", "h4", "blockquote", "pre"}

TITLE_HINT_LIMIT = 12


def _escape(text: str) -> str:
    return html.escape(text, quote=True)


def plain_text(markup: str) -> str:
    """Visible text of a markup fragment."""
    return BeautifulSoup(markup, PARSER).get_text()


def title_hint(titles: list[str]) -> str:
    """Short list of existing titles for the article link prompt."""
    if not titles:
        return "No articles yet."
    shown = ", ".join(titles[:TITLE_HINT_LIMIT])
    more = "…" if len(titles) > TITLE_HINT_LIMIT else ""
    return f"Available: {shown}{more}"


@dataclass(frozen=True)
class Selection:
    """Selected range of the draft, as offsets into its markup."""

    start: int
    end: int

    @classmethod
    def cursor(cls, offset: int) -> "Selection":
        return cls(offset, offset)

    @property
    def collapsed(self) -> bool:
        return self.start == self.end


async def file_to_data_url(upload, content_type: str | None = None) -> str:
    """Read a chosen file and return it as an embeddable ``data:`` URL.

    Args:
        upload: Object with an async ``read()`` (e.g. FastAPI's UploadFile),
                optionally carrying ``content_type`` and ``filename``.
        content_type: MIME type to use instead of the upload's own.

    Returns:
        ``data:<mime>;base64,<payload>``
    """
    data = await upload.read()
    mime = content_type or getattr(upload, "content_type", None)
    if not mime:
        filename = getattr(upload, "filename", None) or ""
        mime = mimetypes.guess_type(filename)[0] or "application/octet-stream"
    payload = base64.b64encode(data).decode("ascii")
    return f"data:{mime};base64,{payload}"


class EditingSession:
    """Transient state of composing a new article or editing an existing one.

    ``target_id`` is None while creating. The session reads the repository
    to seed drafts and writes to it only through ``save``.
    """

    def __init__(self, repository: ArticleRepository):
        self.repository = repository
        self.target_id: str | None = None
        self.draft_title = ""
        self.draft_content = EMPTY_DOCUMENT
        self.selection = Selection.cursor(len(EMPTY_DOCUMENT))

    @property
    def is_new(self) -> bool:
        return self.target_id is None

    @property
    def link_prompt(self) -> str:
        """Prompt text for inserting an article link."""
        return f"Article link. Enter the exact title.\n{title_hint(self.repository.titles())}"

    def open(self, title_or_none: str | None) -> None:
        """Start editing the titled article, or start a new one.

        A title with no matching article opens a new draft with that title
        pre-filled, so links to missing articles lead to their creation.
        """
        title = normalize_title(title_or_none or "")
        article = self.repository.find_by_title(title) if title else None

        if article is not None:
            self.target_id = article.id
            self.draft_title = article.title
            self.draft_content = article.content or EMPTY_DOCUMENT
        else:
            self.target_id = None
            self.draft_title = title
            self.draft_content = EMPTY_DOCUMENT
        self.selection = Selection.cursor(len(self.draft_content))

    def update_draft(
        self,
        title: str | None = None,
        content: str | None = None,
        selection: Selection | None = None,
    ) -> None:
        """Sync the draft with what the editing surface currently shows."""
        if title is not None:
            self.draft_title = title
        if content is not None:
            self.draft_content = content
        if selection is not None:
            self.selection = selection
        self.selection = self._clamped(self.selection)

    def _clamped(self, selection: Selection) -> Selection:
        size = len(self.draft_content)
        start = min(max(selection.start, 0), size)
        end = min(max(selection.end, 0), size)
        return Selection(min(start, end), max(start, end))

    def save(self) -> Article:
        """Commit the draft to the repository.

        Raises:
            EmptyTitle: If the draft title is blank. Nothing is saved.
            DuplicateTitle: If another article has the title. Nothing is saved.
        """
        title = normalize_title(self.draft_title or "")
        if not title:
            raise EmptyTitle()

        if self.target_id is not None and self.repository.find_by_id(self.target_id) is None:
            logger.warning("Article %s vanished while editing; saving as new", self.target_id)
            self.target_id = None

        content = sanitize(self.draft_content)
        if self.target_id is None:
            article = self.repository.create(title, content)
        else:
            article = self.repository.update(self.target_id, title, content)

        self.target_id = article.id
        self.draft_title = article.title
        self.draft_content = article.content
        self.selection = self._clamped(self.selection)
        return article

    def cancel(self) -> str:
        """Discard the draft and return the fragment to go back to."""
        fragment = HOME_FRAGMENT
        if self.target_id is not None:
            article = self.repository.find_by_id(self.target_id)
            if article is not None:
                fragment = article_fragment(article.title)
        self.target_id = None
        self.draft_title = ""
        self.draft_content = EMPTY_DOCUMENT
        self.selection = Selection.cursor(len(EMPTY_DOCUMENT))
        return fragment

    # ========== Draft transformations ==========

    @property
    def selected_markup(self) -> str:
        selection = self._clamped(self.selection)
        return self.draft_content[selection.start : selection.end]

    @property
    def selected_text(self) -> str:
        return plain_text(self.selected_markup).strip()

    def _replace_selection(self, markup: str) -> None:
        selection = self._clamped(self.selection)
        before = self.draft_content[: selection.start]
        after = self.draft_content[selection.end :]
        self.draft_content = before + markup + after
        self.selection = Selection.cursor(selection.start + len(markup))

    def insert_internal_link(self, title: str, label: str | None = None) -> bool:
        """Insert a link to another article, existing or not.

        The link carries the target title in ``data-article-title`` so the
        renderer can re-resolve it and mark it missing.
        """
        title = normalize_title(title or "")
        if not title:
            return False
        text = label or self.selected_text or title
        self._replace_selection(
            f'<a data-article-title="{_escape(title)}" '
            f'href="{_escape(article_fragment(title))}">{_escape(text)}</a>'
        )
        return True

    def insert_external_link(self, url: str, text: str | None = None) -> bool:
        """Insert a link that opens in a new context without an opener."""
        url = (url or "").strip()
        if not url:
            return False
        text = text or self.selected_text or url
        self._replace_selection(
            f'<a href="{_escape(url)}" target="_blank" '
            f'rel="noopener noreferrer">{_escape(text)}</a>'
        )
        return True

    def insert_image(self, src: str, caption: str = "") -> bool:
        """Insert an image with a caption as a figure."""
        src = (src or "").strip()
        if not src:
            return False
        caption = caption or ""
        self._replace_selection(
            f'<figure><img alt="{_escape(caption)}" src="{_escape(src)}"/>'
            f"<figcaption>{_escape(caption)}</figcaption></figure>"
        )
        return True

    async def insert_image_file(self, upload, caption: str = "") -> bool:
        """Embed a locally chosen image file as a data URL."""
        return self.insert_image(await file_to_data_url(upload), caption)

    def insert_quote(self) -> bool:
        text = self.selected_text or QUOTE_PLACEHOLDER
        self._replace_selection(f"<blockquote>{_escape(text)}</blockquote>")
        return True

    def insert_section_break(self) -> bool:
        self._replace_selection("<hr/>")
        return True

    def clear_formatting(self) -> bool:
        """Strip inline formatting from the selected markup."""
        if self.selection.collapsed:
            return False
        soup = BeautifulSoup(self.selected_markup, PARSER)
        for element in soup.find_all(INLINE_FORMATTING):
            element.unwrap()
        for element in soup.find_all(style=True):
            del element["style"]
        self._replace_selection(serialize(soup))
        return True

    def _wrap_selection(self, tag: str, inner: str | None = None) -> bool:
        if self.selection.collapsed:
            return False
        content = self.selected_markup if inner is None else inner
        self._replace_selection(f"<{tag}>{content}</{tag}>")
        return True

    def apply_command(
        self, token: str, value: str | None = None, caption: str | None = None
    ) -> bool:
        """Apply a toolbar command token to the draft.

        ``caption`` is only used by ``insertImage``.

        Returns:
            True if the draft changed.

        Raises:
            UnknownCommand: If the token is not a known command.
        """
        if token in WRAP_COMMANDS:
            return self._wrap_selection(WRAP_COMMANDS[token])
        if token in LIST_COMMANDS:
            return self._wrap_selection(
                LIST_COMMANDS[token], f"<li>{self.selected_markup}</li>"
            )
        if token == "formatBlock":
            block = (value or "p").lower()
            if block not in BLOCK_FORMATS:
                raise UnknownCommand(f"formatBlock:{value}")
            return self._wrap_selection(block, _escape(self.selected_text))
        if token == "insertInternalLink":
            return self.insert_internal_link(value or "")
        if token == "insertExternalLink":
            return self.insert_external_link(value or "")
        if token == "insertImage":
            return self.insert_image(value or "", caption or "")
        if token == "insertQuote":
            return self.insert_quote()
        if token == "insertHorizontalRule":
            return self.insert_section_break()
        if token == "removeFormat":
            return self.clear_formatting()
        raise UnknownCommand(token)

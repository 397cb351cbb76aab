"""Hash-fragment routing and the view state machine.

The location fragment is the single source of truth for navigation. The
browser reports every fragment change, ``Router.handle`` resolves it and
answers with either a view to render or another fragment to go to. Nothing
else switches views directly; other components hand back a fragment.
"""

import logging
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote, unquote

from staticwiki.core.models import Route, RouteName

logger = logging.getLogger(__name__)

HOME_FRAGMENT = "#/"

EDIT_TOKEN = "edit"

RESERVED_TOKENS = {
    "about": RouteName.ABOUT,
    "random": RouteName.RANDOM,
}

NOTICE_NO_ARTICLES = "No random article: the wiki has no articles yet."
NOTICE_EDITOR_LOCKED = "The editor is locked."


def resolve(fragment: str | None) -> Route:
    """Resolve a location fragment to a route.

    ``#/`` is home, ``#/about`` and ``#/random`` are reserved views,
    ``#/edit`` and ``#/edit/<title>`` open the editor, and anything else
    is an article title (percent-decoded).
    """
    raw = fragment or ""
    if raw.startswith("#"):
        raw = raw[1:]
    if raw.startswith("/"):
        raw = raw[1:]
    if not raw:
        return Route(name=RouteName.HOME)

    head, _, rest = raw.partition("/")
    head = unquote(head)

    if head == "":
        return Route(name=RouteName.HOME)
    if head in RESERVED_TOKENS:
        return Route(name=RESERVED_TOKENS[head])
    if head == EDIT_TOKEN:
        title = unquote(rest)
        return Route(name=RouteName.EDIT, arg=title or None)

    return Route(name=RouteName.ARTICLE, arg=unquote(raw))


def article_fragment(title: str) -> str:
    """Fragment that shows the article with this title."""
    return f"#/{quote(title, safe='')}"


def edit_fragment(title: str | None = None) -> str:
    """Fragment that opens the editor, for a new article when title is None."""
    if not title:
        return f"#/{EDIT_TOKEN}"
    return f"#/{EDIT_TOKEN}/{quote(title, safe='')}"


@dataclass
class Render:
    """Render a view with the given context."""

    view: str
    context: dict[str, Any] = field(default_factory=dict)


@dataclass
class Redirect:
    """Navigate to another fragment, optionally telling the user why."""

    fragment: str
    notice: str | None = None


Outcome = Render | Redirect


class Router:
    """Drives which view is active from the location fragment."""

    def __init__(self, state):
        self.state = state

    def handle(self, fragment: str | None, query: str | None = None) -> Outcome:
        """Resolve a fragment and decide what to show.

        Args:
            fragment: Location fragment reported by the browser.
            query: Current search text, used by the home view.

        Returns:
            A Render for a view, or a Redirect to another fragment.
        """
        route = resolve(fragment)
        self.state.current_route = route
        repository = self.state.repository

        if route.name is RouteName.HOME:
            return Render("home", {"articles": repository.list(query), "query": query or ""})

        if route.name is RouteName.ABOUT:
            return Render("about")

        if route.name is RouteName.RANDOM:
            article = repository.pick_random()
            if article is None:
                return Redirect(HOME_FRAGMENT, NOTICE_NO_ARTICLES)
            return Redirect(article_fragment(article.title))

        if route.name is RouteName.EDIT:
            if not self.state.gate.unlocked:
                logger.debug("Edit route refused, gate locked")
                return Redirect(HOME_FRAGMENT, NOTICE_EDITOR_LOCKED)
            self.state.session.open(route.arg)
            return Render("editor", {"session": self.state.session})

        article = repository.find_by_title(route.arg or "")
        if article is None:
            self.state.current_article_id = None
            return Render("not_found", {"title": route.arg})
        self.state.current_article_id = article.id
        return Render("article", {"article": article})

    def edit_current_fragment(self) -> str | None:
        """Fragment for editing the article currently shown, if any."""
        article_id = self.state.current_article_id
        if article_id is None:
            return None
        article = self.state.repository.find_by_id(article_id)
        if article is None:
            return None
        return edit_fragment(article.title)

"""In-memory article repository."""

import logging
import random
import uuid
from collections.abc import Callable, Iterable, Iterator

from staticwiki.core.errors import ArticleNotFound, DuplicateTitle, EmptyTitle
from staticwiki.core.models import Article, normalize_title, now_iso

logger = logging.getLogger(__name__)


def new_article_id() -> str:
    """Allocate a fresh opaque article id."""
    return str(uuid.uuid4())


class ArticleRepository:
    """Canonical in-memory collection of articles.

    Articles are kept in insertion order and looked up by linear scan. Titles
    are unique after normalization (case-sensitive). There is no delete:
    the collection only grows, or is replaced wholesale by a snapshot load.
    """

    def __init__(
        self,
        articles: Iterable[Article] | None = None,
        clock: Callable[[], str] = now_iso,
        id_factory: Callable[[], str] = new_article_id,
        rng: random.Random | None = None,
    ):
        self._articles: list[Article] = list(articles or [])
        self._clock = clock
        self._id_factory = id_factory
        self._rng = rng or random.Random()

    def __len__(self) -> int:
        return len(self._articles)

    def __iter__(self) -> Iterator[Article]:
        return iter(list(self._articles))

    @property
    def articles(self) -> list[Article]:
        """Articles in collection (insertion) order."""
        return list(self._articles)

    def replace_all(self, articles: Iterable[Article]) -> None:
        """Replace the whole collection, e.g. after a snapshot load."""
        self._articles = list(articles)
        logger.info("Collection replaced: %d articles", len(self._articles))

    def find_by_title(self, title: str) -> Article | None:
        """Get the article whose normalized title equals the normalized query."""
        wanted = normalize_title(title)
        for article in self._articles:
            if normalize_title(article.title) == wanted:
                return article
        return None

    def find_by_id(self, article_id: str) -> Article | None:
        """Get an article by id. Returns None if not found."""
        index = self.index_of(article_id)
        return self._articles[index] if index >= 0 else None

    def index_of(self, article_id: str) -> int:
        """Position of the article in the collection, or -1."""
        for index, article in enumerate(self._articles):
            if article.id == article_id:
                return index
        return -1

    def exists(self, title: str) -> bool:
        """Check if an article with this title exists."""
        return self.find_by_title(title) is not None

    def titles(self) -> list[str]:
        """All titles, sorted case-insensitively."""
        return sorted((a.title for a in self._articles), key=str.lower)

    def _checked_title(self, title: str, own_id: str | None) -> str:
        """Normalize a title and enforce the non-empty and unique rules."""
        normalized = normalize_title(title or "")
        if not normalized:
            raise EmptyTitle()
        existing = self.find_by_title(normalized)
        if existing is not None and existing.id != own_id:
            raise DuplicateTitle(normalized, existing.id)
        return normalized

    def create(self, title: str, content: str) -> Article:
        """Create a new article.

        Raises:
            EmptyTitle: If the title is blank after normalization.
            DuplicateTitle: If another article already has the title.
        """
        normalized = self._checked_title(title, own_id=None)
        now = self._clock()
        article = Article(
            id=self._id_factory(),
            title=normalized,
            content=content,
            created_at=now,
            updated_at=now,
        )
        self._articles.append(article)
        logger.info("Created article %s (%s)", article.id, article.title)
        return article

    def update(self, article_id: str, title: str, content: str) -> Article:
        """Replace title and content of an existing article.

        The article keeps its id, position and creation time.

        Raises:
            ArticleNotFound: If no article has this id.
            EmptyTitle: If the title is blank after normalization.
            DuplicateTitle: If a different article already has the title.
        """
        index = self.index_of(article_id)
        if index < 0:
            raise ArticleNotFound(article_id)
        normalized = self._checked_title(title, own_id=article_id)
        current = self._articles[index]
        updated_at = max(self._clock(), current.created_at)
        article = current.model_copy(
            update={"title": normalized, "content": content, "updated_at": updated_at}
        )
        self._articles[index] = article
        logger.info("Updated article %s (%s)", article.id, article.title)
        return article

    def list(self, query: str | None = None) -> list[Article]:
        """List articles, most recently updated first.

        Args:
            query: Optional case-insensitive substring to match in titles.
                   Empty or blank queries match everything.

        Returns:
            Matching articles sorted by ``updated_at`` descending. Articles
            with equal timestamps keep their collection order.
        """
        needle = (query or "").strip().lower()
        matches = [a for a in self._articles if not needle or needle in a.title.lower()]
        return sorted(matches, key=lambda a: a.updated_at, reverse=True)

    def pick_random(self) -> Article | None:
        """Pick a uniformly random article, or None if the collection is empty."""
        if not self._articles:
            return None
        return self._rng.choice(self._articles)

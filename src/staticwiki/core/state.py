"""Application state shared by the router and the editing session."""

from dataclasses import dataclass, field

from staticwiki.core.editor import EditingSession
from staticwiki.core.gate import CapabilityGate
from staticwiki.core.models import Route, RouteName
from staticwiki.core.repository import ArticleRepository
from staticwiki.core.snapshot import LoadResult


@dataclass
class AppState:
    """Everything one wiki session holds in memory.

    One instance per application. Views change only through ``Router`` and
    the collection only through ``ArticleRepository`` methods.
    """

    repository: ArticleRepository = field(default_factory=ArticleRepository)
    gate: CapabilityGate = field(default_factory=CapabilityGate)
    session: EditingSession | None = None
    current_route: Route = field(default_factory=lambda: Route(name=RouteName.HOME))
    current_article_id: str | None = None
    loaded_from_source: bool = False
    hint: str | None = None

    def __post_init__(self) -> None:
        if self.session is None:
            self.session = EditingSession(self.repository)

    @property
    def editing_article_id(self) -> str | None:
        return self.session.target_id

    def apply_load(self, result: LoadResult) -> None:
        """Install the startup snapshot."""
        self.repository.replace_all(result.snapshot.articles)
        self.loaded_from_source = result.loaded_from_source
        self.hint = result.hint

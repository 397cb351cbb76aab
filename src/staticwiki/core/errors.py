"""Typed exception hierarchy for wiki operations.

Every condition here is recoverable: callers catch it where the user gave the
input, report it and let the user retry. Nothing is fatal to the process.
"""


class WikiError(Exception):
    """Base exception for all wiki errors."""

    pass


class EmptyTitle(WikiError):
    """Raised when an article would be saved with a blank title."""

    def __init__(self) -> None:
        super().__init__("Article title is empty")


class DuplicateTitle(WikiError):
    """Raised when another article already uses the normalized title."""

    def __init__(self, title: str, existing_id: str):
        super().__init__(f"An article titled '{title}' already exists")
        self.title = title
        self.existing_id = existing_id


class ArticleNotFound(WikiError):
    """Raised when an update targets an id that is not in the collection."""

    def __init__(self, article_id: str):
        super().__init__(f"No article with id {article_id}")
        self.article_id = article_id


class InvalidFormat(WikiError):
    """Raised when an imported document does not look like a snapshot."""

    def __init__(self, reason: str):
        super().__init__(f"Not a valid articles snapshot: {reason}")
        self.reason = reason


class ResourceUnavailable(WikiError):
    """Raised when the startup snapshot cannot be read.

    Only used internally by the loader, which turns it into an empty
    collection plus a hint.
    """

    def __init__(self, source: str, reason: str):
        super().__init__(f"Snapshot source {source} unavailable: {reason}")
        self.source = source
        self.reason = reason


class UnknownCommand(WikiError):
    """Raised when the editor receives a command token it does not know."""

    def __init__(self, token: str):
        super().__init__(f"Unknown editor command: {token}")
        self.token = token

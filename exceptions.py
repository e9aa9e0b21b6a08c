"""Exceptions raised by the store, the sources and the synchronizer."""
from typing import Optional


class ChapterRangeError(ValueError):
    """A group label is not one integer or two integers separated by '-'."""

    def __init__(self, text: str, token: Optional[str] = None):
        self.text = text
        self.token = token
        message = f"Malformed chapter range: {text!r}"
        if token is not None:
            message += f" (bad token {token!r})"
        super().__init__(message)


class GroupNotFoundError(ValueError):
    """No group with the given link exists; the caller holds a stale reference."""

    def __init__(self, link: str):
        self.link = link
        super().__init__(f"Chapter group {link!r} does not exist")


class BookNotLinkedError(LookupError):
    """The book has no identifier for the provider the operation needs."""

    def __init__(self, book_id: int, provider: str):
        self.book_id = book_id
        self.provider = provider
        super().__init__(f"Book {book_id} has no {provider} identifier")


class ProviderError(Exception):
    """A remote provider could not be reached or returned unusable data."""

    def __init__(self, source: str, message: str):
        self.source = source
        self.message = message
        super().__init__(f"[{source}] {message}")

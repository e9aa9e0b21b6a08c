"""Resolution of a book's web-novel identity."""
import logging
from typing import Optional

from database import Database
from live import LiveQuery
from models import Book
from queries import BookQueries
from schemas import WebNovelRef
from sources.webnovel import WebNovelClient

logger = logging.getLogger(__name__)


class MetadataRepository:
    """
    Finds and remembers which web-novel book corresponds to a local book.

    The identifier is looked up by title on the web-novel site and stored on
    the book row, so later calls are answered from the store.
    """

    def __init__(self, db: Database, client: WebNovelClient):
        self.books = BookQueries(db)
        self.client = client

    async def get_book(self, book: Book, refresh: bool = False) -> LiveQuery[Optional[WebNovelRef]]:
        """
        Resolve the web-novel reference of a book.

        Args:
            book: Local book
            refresh: Search again even if a reference is stored

        Returns:
            Live view of the stored reference (None while unknown)

        Raises:
            ProviderError: If the search request fails
        """
        stored = self.books.get_webnovel_by_id(book.id)
        if stored is None or refresh:
            results = await self.client.search(book.name)
            match = self._best_match(book, results)
            if match is not None:
                if stored is None or stored.id != match.id:
                    logger.info(f"Linked book {book.id} to web novel {match.id}")
                self.books.update_webnovel(book.id, match.id, match.link)
            else:
                logger.warning(f"No web novel found for book {book.id} ({book.name!r})")

        return self.books.watch_webnovel_by_id(book.id)

    @staticmethod
    def _best_match(book: Book, results: list[WebNovelRef]) -> Optional[WebNovelRef]:
        """Prefer an exact (case-insensitive) title match, else the first result."""
        if not results:
            return None
        wanted = book.name.strip().lower()
        for result in results:
            if result.title and result.title.strip().lower() == wanted:
                return result
        return results[0]

"""
Chapter group synchronization.

``GroupSynchronizer.get_groups`` keeps a book's cached chapter groups in step
with the remote providers. The provider path is chosen from the book row:
books with an underground identifier follow ``UndergroundSync``, all others
``WebNovelSync``.

Known limitations: two concurrent refreshes of the same book may both update
the same stale group; the last transaction to commit wins. On the underground
path the web-novel reference found by the metadata lookup is stored as soon as
it is resolved, so it persists even if the underground fetch then fails or the
refresh is cancelled.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from collections import Counter

from database import Database
from exceptions import BookNotLinkedError
from live import LiveQuery
from metadata import MetadataRepository
from models import Book, Group, GroupSource
from normalizer import ChapterRangeParser
from preferences import LibraryPreferences
from queries import BookQueries, GroupQueries, ContentQueries
from schemas import GroupCandidate
from sources import UndergroundSource, WebNovelSource

logger = logging.getLogger(__name__)


def find_groups_to_update(
    db_groups: list[Group],
    remote_groups: list[GroupCandidate],
) -> list[tuple[Group, GroupCandidate]]:
    """
    Pair cached groups with the underground group that replaces them.

    A cached group of either source is replaced when a remote group starts at
    the same chapter but ends at a different one, so a web-novel chapter
    covered by an underground range becomes that range. Remote groups are
    keyed by first chapter; when several share one, the last listed wins.
    Cached groups sharing a first chapter with another cached group cannot be
    matched reliably and are left untouched.

    Args:
        db_groups: Cached groups of the book
        remote_groups: Underground listing

    Returns:
        (cached group, remote replacement) pairs
    """
    remote_index = {ChapterRangeParser.first_chapter(group.text): group for group in remote_groups}

    first_chapters = Counter(group.first_chapter for group in db_groups)

    pairs = []
    for group in db_groups:
        remote = remote_index.get(group.first_chapter)
        if remote is None or group.last_chapter == ChapterRangeParser.last_chapter(remote.text):
            continue
        if first_chapters[group.first_chapter] > 1:
            logger.warning(
                f"Skipping update of {group.text!r} ({group.link}): "
                f"{first_chapters[group.first_chapter]} cached groups start at chapter {group.first_chapter}"
            )
            continue
        pairs.append((group, remote))

    return pairs


class SyncStrategy(ABC):
    """Fetch-and-merge procedure for one provider affiliation."""

    def __init__(self, db: Database):
        self.db = db
        self.books = BookQueries(db)
        self.groups = GroupQueries(db)
        self.contents = ContentQueries(db)

    @abstractmethod
    async def synchronize(self, book: Book, db_groups: list[Group], refresh: bool) -> None:
        """
        Fetch remote groups for a book and merge them into the store.

        Args:
            book: Book to synchronize
            db_groups: Groups cached before the fetch
            refresh: Whether the caller forced the refresh
        """
        pass

    def _insert_all(self, candidates: list[GroupCandidate]) -> int:
        """Insert candidates, ignoring links already stored. Returns the number inserted."""
        return sum(1 for candidate in candidates if self.groups.insert(candidate))


class WebNovelSync(SyncStrategy):
    """Books known only to the web-novel provider. Only ever inserts."""

    def __init__(self, db: Database, webnovel: WebNovelSource):
        super().__init__(db)
        self.webnovel = webnovel

    async def synchronize(self, book: Book, db_groups: list[Group], refresh: bool) -> None:
        ref = self.books.get_webnovel_by_id(book.id)
        if ref is None:
            raise BookNotLinkedError(book.id, "web novel")

        candidates = await self.webnovel.list_chapters(book, ref)

        with self.db.transaction():
            inserted = self._insert_all(candidates)

        logger.info(f"Book {book.id}: {inserted} new web novel chapters ({len(candidates)} listed)")


class UndergroundSync(SyncStrategy):
    """
    Books followed on the underground provider.

    The underground listing and, when needed, the web-novel listing are
    fetched concurrently. A failing web-novel fetch never aborts the refresh.
    Cached ranges that grew or shrank are rewritten in place after their
    downloaded content is dropped.
    """

    def __init__(
        self,
        db: Database,
        underground: UndergroundSource,
        webnovel: WebNovelSource,
        metadata: MetadataRepository,
        preferences: LibraryPreferences,
    ):
        super().__init__(db)
        self.underground = underground
        self.webnovel = webnovel
        self.metadata = metadata
        self.preferences = preferences

    def needs_webnovel(self, db_groups: list[Group]) -> bool:
        """Whether web-novel chapters should be fetched alongside the underground listing."""
        return (
            self.preferences.check_for_webnovel
            or not db_groups
            or not any(group.source == GroupSource.WEBNOVEL for group in db_groups)
        )

    async def _fetch_webnovel(self, book: Book, refresh: bool) -> list[GroupCandidate]:
        try:
            ref = await (await self.metadata.get_book(book, refresh)).first()
            if ref is None:
                return []
            return await self.webnovel.list_chapters(book, ref)
        except Exception as e:
            logger.warning(f"Web novel chapters unavailable for book {book.id}: {e}", exc_info=True)
            return []

    async def synchronize(self, book: Book, db_groups: list[Group], refresh: bool) -> None:
        ref = self.books.get_underground_by_id(book.id)
        if ref is None:
            raise BookNotLinkedError(book.id, "underground")

        tasks = [asyncio.ensure_future(self.underground.list_chapters(book, ref))]
        if self.needs_webnovel(db_groups):
            tasks.append(asyncio.ensure_future(self._fetch_webnovel(book, refresh)))

        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        remote_groups = results[0]
        webnovel_groups = results[1] if len(results) > 1 else []

        if not remote_groups:
            logger.info(f"Book {book.id}: underground listed no chapters, nothing to merge")
            return

        to_update = find_groups_to_update(db_groups, remote_groups)

        with self.db.transaction():
            for group, remote in to_update:
                # Content references the old link, so it has to go before the group changes
                deleted = self.contents.delete_by_group_link(group.link)
                self.groups.update(
                    link=group.link,
                    updated_text=remote.text,
                    updated_link=remote.link,
                    updated_source=remote.source,
                )
                logger.info(
                    f"Book {book.id}: {group.text!r} -> {remote.text!r}, "
                    f"dropped {deleted} downloaded chapters"
                )

            inserted = self._insert_all(remote_groups)
            inserted_webnovel = self._insert_all(webnovel_groups)

        logger.info(
            f"Book {book.id}: {len(to_update)} groups updated, {inserted} new underground groups, "
            f"{inserted_webnovel} new web novel chapters"
        )


class GroupSynchronizer:
    """
    Entry point of the synchronization engine.

    Args:
        db: Local store
        underground: Underground chapter source
        webnovel: Web-novel chapter source
        metadata: Web-novel identity lookup
        preferences: Library preferences
    """

    def __init__(
        self,
        db: Database,
        underground: UndergroundSource,
        webnovel: WebNovelSource,
        metadata: MetadataRepository,
        preferences: LibraryPreferences,
    ):
        self.books = BookQueries(db)
        self.strategies: dict[GroupSource, SyncStrategy] = {
            GroupSource.UNDERGROUND: UndergroundSync(db, underground, webnovel, metadata, preferences),
            GroupSource.WEBNOVEL: WebNovelSync(db, webnovel),
        }

    def affiliation(self, book: Book) -> GroupSource:
        """Provider path of a book, read from the book row on every call."""
        if self.books.get_underground_by_id(book.id) is None:
            return GroupSource.WEBNOVEL
        return GroupSource.UNDERGROUND

    async def get_groups(self, book: Book, refresh: bool = False) -> LiveQuery[list[Group]]:
        """
        Ensure the cache is populated and return a live view of the book's groups.

        Remote providers are only contacted when ``refresh`` is set or nothing
        is cached yet. Errors from the underground listing propagate unchanged.
        """
        db_groups = self.books.chapters(book.id)
        affiliation = self.affiliation(book)

        if refresh or not db_groups:
            logger.info(
                f"Synchronizing book {book.id} via {affiliation.value} "
                f"(refresh={refresh}, cached={len(db_groups)})"
            )
            await self.strategies[affiliation].synchronize(book, db_groups, refresh)

        return self.books.watch_chapters(book.id)

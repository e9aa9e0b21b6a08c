"""Group repository - the surface the reader screens and the API talk to."""
import logging

from database import Database, get_database
from exceptions import GroupNotFoundError
from live import LiveQuery
from metadata import MetadataRepository
from models import Book, Group
from preferences import LibraryPreferences
from queries import BookQueries, GroupQueries, ContentQueries
from sources import UndergroundClient, UndergroundSource, WebNovelClient, WebNovelSource
from sync import GroupSynchronizer

logger = logging.getLogger(__name__)


def build_repository(
    db: Database = None,
    underground_client: UndergroundClient = None,
    webnovel_client: WebNovelClient = None,
    preferences: LibraryPreferences = None,
) -> "GroupRepository":
    """Wire a repository with its synchronizer, sources and metadata lookup."""
    db = db or get_database()
    underground_client = underground_client or UndergroundClient()
    webnovel_client = webnovel_client or WebNovelClient()

    synchronizer = GroupSynchronizer(
        db,
        UndergroundSource(underground_client),
        WebNovelSource(webnovel_client),
        MetadataRepository(db, webnovel_client),
        preferences or LibraryPreferences(),
    )
    return GroupRepository(db, synchronizer)


class GroupRepository:
    """
    Chapter group access for one library.

    Reads are returned as live views; ``get_groups`` may contact the remote
    providers before answering.
    """

    def __init__(self, db: Database, synchronizer: GroupSynchronizer):
        self.books = BookQueries(db)
        self.groups = GroupQueries(db)
        self.contents = ContentQueries(db)
        self.synchronizer = synchronizer

    async def get_groups(self, book: Book, refresh: bool = False) -> LiveQuery[list[Group]]:
        """Chapter groups of a book, synchronized with the providers when needed."""
        return await self.synchronizer.get_groups(book, refresh)

    def get_book(self, group: Group) -> LiveQuery[Book]:
        return self.books.watch_by_id(group.book_id)

    def get_chapters_by_book(self, group: Group) -> LiveQuery[list[Group]]:
        """Every cached group of the book the given group belongs to."""
        return self.groups.watch_by_book_id(group.book_id)

    def get_group_by_link(self, link: str) -> LiveQuery[Group]:
        return self.groups.watch(link)

    def is_downloaded(self, group: Group) -> bool:
        """True when every chapter the group covers has stored content."""
        return self.contents.count_by_group_link(group.link) == group.total

    def update_last_read(self, group: Group, last_read: int) -> None:
        """
        Move the last-read marker of a group.

        Raises:
            GroupNotFoundError: If the group's link is no longer stored
        """
        if self.groups.get(group.link) is None:
            raise GroupNotFoundError(group.link)
        self.groups.update_last_read(last_read, group.link)
        logger.debug(f"Group {group.link} last read -> {last_read}")

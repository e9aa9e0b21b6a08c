"""
Query surface of the local store.

Each class groups the reads and writes of one table. Writes run inside
``Database.transaction()`` and join the caller's transaction when there is
one. ``watch*`` methods return live views of the same reads.
"""
import logging
from typing import Optional

from sqlalchemy import select, update, delete, func
from sqlalchemy.dialects import postgresql, sqlite

from database import Database
from live import LiveQuery
from models import Book, Group, Content, GroupSource
from normalizer import ChapterRangeParser
from schemas import GroupCandidate, UndergroundRef, WebNovelRef

logger = logging.getLogger(__name__)

# Dialect-specific INSERT constructs supporting ON CONFLICT DO NOTHING
_INSERT_CONSTRUCTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def _ordered(groups: list[Group]) -> list[Group]:
    """Order groups by first chapter, underground before web-novel."""
    return sorted(groups, key=lambda group: (group.first_chapter, group.source.value))


def _insert_or_ignore(db: Database, session, model, values: dict, conflict_column: str) -> bool:
    """Insert a row unless ``conflict_column`` already holds the value. Returns True if inserted."""
    construct = _INSERT_CONSTRUCTS.get(db.dialect)
    if construct is None:
        raise ValueError(f"Unsupported database dialect for insert-or-ignore: {db.dialect!r}")

    stmt = construct(model).values(**values).on_conflict_do_nothing(
        index_elements=[conflict_column]
    )
    result = session.execute(stmt)
    return result.rowcount > 0


class BookQueries:
    """Reads and writes on ``books``."""

    def __init__(self, db: Database):
        self.db = db

    @staticmethod
    def _by_id(session, book_id: int) -> Optional[Book]:
        return session.get(Book, book_id)

    @staticmethod
    def _webnovel_by_id(session, book_id: int) -> Optional[WebNovelRef]:
        book = session.get(Book, book_id)
        if book is None or not book.webnovel_id or not book.webnovel_link:
            return None
        return WebNovelRef(id=book.webnovel_id, link=book.webnovel_link, title=book.name)

    @staticmethod
    def _chapters(session, book_id: int) -> list[Group]:
        rows = session.execute(
            select(Group).where(Group.book_id == book_id).order_by(Group.id)
        ).scalars().all()
        return _ordered(list(rows))

    def get_by_id(self, book_id: int) -> Optional[Book]:
        with self.db.session() as session:
            return self._by_id(session, book_id)

    def get_underground_by_id(self, book_id: int) -> Optional[UndergroundRef]:
        """Underground identifier of the book, or None if it is web-novel only."""
        with self.db.session() as session:
            row = session.execute(
                select(Book.id, Book.underground_id).where(
                    Book.id == book_id,
                    Book.underground_id.is_not(None),
                )
            ).first()
            if row is None:
                return None
            return UndergroundRef(book_id=row.id, underground_id=row.underground_id)

    def get_webnovel_by_id(self, book_id: int) -> Optional[WebNovelRef]:
        with self.db.session() as session:
            return self._webnovel_by_id(session, book_id)

    def chapters(self, book_id: int) -> list[Group]:
        """Cached chapter groups of a book, ordered by first chapter."""
        with self.db.session() as session:
            return self._chapters(session, book_id)

    def list_all(self) -> list[Book]:
        with self.db.session() as session:
            return list(session.execute(select(Book).order_by(Book.name)).scalars().all())

    def insert(
        self,
        name: str,
        author: str = None,
        link: str = None,
        underground_id: str = None,
        webnovel_id: str = None,
        webnovel_link: str = None,
    ) -> Book:
        """Create a book record."""
        with self.db.transaction() as session:
            book = Book(
                name=name,
                author=author,
                link=link,
                underground_id=underground_id,
                webnovel_id=webnovel_id,
                webnovel_link=webnovel_link,
            )
            session.add(book)
            session.flush()
            logger.info(f"Created book {book.id}: {name}")
            return book

    def update_webnovel(self, book_id: int, webnovel_id: str, webnovel_link: str) -> int:
        """Store the web-novel identifier and link of a book."""
        with self.db.transaction() as session:
            result = session.execute(
                update(Book)
                .where(Book.id == book_id)
                .values(webnovel_id=webnovel_id, webnovel_link=webnovel_link)
            )
            return result.rowcount

    def watch_by_id(self, book_id: int) -> LiveQuery[Book]:
        return LiveQuery(
            self.db, {Book.__tablename__},
            lambda session: self._by_id(session, book_id),
            skip_none=True,
        )

    def watch_webnovel_by_id(self, book_id: int) -> LiveQuery[Optional[WebNovelRef]]:
        return LiveQuery(
            self.db, {Book.__tablename__},
            lambda session: self._webnovel_by_id(session, book_id),
        )

    def watch_chapters(self, book_id: int) -> LiveQuery[list[Group]]:
        return LiveQuery(
            self.db, {Group.__tablename__},
            lambda session: self._chapters(session, book_id),
        )


class GroupQueries:
    """Reads and writes on ``groups``."""

    def __init__(self, db: Database):
        self.db = db

    @staticmethod
    def _get(session, link: str) -> Optional[Group]:
        return session.execute(
            select(Group).where(Group.link == link)
        ).scalar_one_or_none()

    def get(self, link: str) -> Optional[Group]:
        with self.db.session() as session:
            return self._get(session, link)

    def get_by_book_id(self, book_id: int) -> list[Group]:
        with self.db.session() as session:
            return BookQueries._chapters(session, book_id)

    def insert(self, group: GroupCandidate) -> bool:
        """
        Insert a group unless its link is already stored.

        Returns:
            True if a row was inserted, False if the link existed

        Raises:
            ChapterRangeError: If the label cannot be parsed
        """
        ChapterRangeParser.validate(group.text)
        with self.db.transaction() as session:
            return _insert_or_ignore(
                self.db,
                session,
                Group,
                {
                    "book_id": group.book_id,
                    "text": group.text,
                    "link": group.link,
                    "last_read": group.last_read,
                    "source": group.source,
                },
                "link",
            )

    def update(
        self,
        link: str,
        updated_text: str,
        updated_link: str,
        updated_source: GroupSource = GroupSource.UNDERGROUND,
    ) -> int:
        """
        Replace the label, link and source of the group currently stored under ``link``.

        Content rows referencing ``link`` must be deleted first.
        """
        ChapterRangeParser.validate(updated_text)
        with self.db.transaction() as session:
            result = session.execute(
                update(Group)
                .where(Group.link == link)
                .values(text=updated_text, link=updated_link, source=updated_source)
            )
            return result.rowcount

    def update_last_read(self, last_read: int, link: str) -> int:
        with self.db.transaction() as session:
            result = session.execute(
                update(Group).where(Group.link == link).values(last_read=last_read)
            )
            return result.rowcount

    def watch(self, link: str) -> LiveQuery[Group]:
        return LiveQuery(
            self.db, {Group.__tablename__},
            lambda session: self._get(session, link),
            skip_none=True,
        )

    def watch_by_book_id(self, book_id: int) -> LiveQuery[list[Group]]:
        return LiveQuery(
            self.db, {Group.__tablename__},
            lambda session: BookQueries._chapters(session, book_id),
        )


class ContentQueries:
    """Reads and writes on ``contents``."""

    def __init__(self, db: Database):
        self.db = db

    def get_by_group_link(self, link: str) -> list[Content]:
        with self.db.session() as session:
            return list(
                session.execute(
                    select(Content).where(Content.group_link == link).order_by(Content.number)
                ).scalars().all()
            )

    def count_by_group_link(self, link: str) -> int:
        with self.db.session() as session:
            return session.execute(
                select(func.count(Content.id)).where(Content.group_link == link)
            ).scalar_one()

    def delete_by_group_link(self, link: str) -> int:
        with self.db.transaction() as session:
            result = session.execute(delete(Content).where(Content.group_link == link))
            return result.rowcount

    def insert(self, group_link: str, number: int, title: str = None, body: str = "") -> Content:
        """Store a downloaded chapter of a group."""
        with self.db.transaction() as session:
            content = Content(group_link=group_link, number=number, title=title, body=body)
            session.add(content)
            session.flush()
            return content

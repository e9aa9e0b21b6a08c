"""Database models for the chapter group cache."""
from sqlalchemy import (
    Column, Integer, String, Text, Float, Boolean, Enum,
    ForeignKey, Index,
)
from database import Base
from normalizer import ChapterRangeParser
import enum


class GroupSource(str, enum.Enum):
    """Provider a chapter group was fetched from."""
    UNDERGROUND = "underground"
    WEBNOVEL = "webnovel"


class Book(Base):
    """Book model - a novel followed on one or both providers."""
    __tablename__ = 'books'

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(500), nullable=False, index=True)
    author = Column(String(500), nullable=True)
    link = Column(String(1000), nullable=True)
    rating = Column(Float, default=0.0, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    last_read = Column(Integer, default=0, nullable=False)

    # Provider affiliation
    underground_id = Column(String(200), nullable=True, index=True)
    webnovel_id = Column(String(200), nullable=True, index=True)
    webnovel_link = Column(String(1000), nullable=True)

    def __repr__(self):
        return f"<Book(id={self.id}, name='{self.name}', underground_id={self.underground_id!r})>"


class Group(Base):
    """
    Chapter group model.

    ``text`` is the range label ("12 - 15" or "7"), ``link`` the natural key
    shared with downloaded content.
    """
    __tablename__ = 'groups'

    id = Column(Integer, primary_key=True, index=True)
    book_id = Column(Integer, ForeignKey('books.id', ondelete='CASCADE'), nullable=False, index=True)
    text = Column(String(100), nullable=False)
    link = Column(String(1000), nullable=False, unique=True, index=True)
    last_read = Column(Integer, default=0, nullable=False)
    source = Column(Enum(GroupSource), nullable=False, index=True)

    @property
    def first_chapter(self) -> int:
        return ChapterRangeParser.first_chapter(self.text)

    @property
    def last_chapter(self) -> int:
        return ChapterRangeParser.last_chapter(self.text)

    @property
    def total(self) -> int:
        """Number of chapters in the group."""
        return ChapterRangeParser.total(self.text)

    def __repr__(self):
        return f"<Group(book_id={self.book_id}, text='{self.text}', source={self.source.value})>"


class Content(Base):
    """Downloaded chapter belonging to a group."""
    __tablename__ = 'contents'

    id = Column(Integer, primary_key=True, index=True)
    group_link = Column(String(1000), ForeignKey('groups.link'), nullable=False)
    number = Column(Integer, nullable=False)
    title = Column(String(500), nullable=True)
    body = Column(Text, nullable=False, default="")

    __table_args__ = (
        Index('ix_contents_group_link_number', 'group_link', 'number', unique=True),
    )

    def __repr__(self):
        return f"<Content(group_link='{self.group_link}', number={self.number})>"

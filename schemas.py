"""Pydantic schemas for provider payloads and API responses."""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from models import GroupSource


# Provider payloads
class UndergroundGroup(BaseModel):
    """One chapter range published by the underground provider."""
    text: str = Field(..., alias="Text")
    link: str = Field(..., alias="Href")

    model_config = ConfigDict(populate_by_name=True)


class WebNovelChapter(BaseModel):
    """One chapter listed in a web-novel catalog."""
    index: int
    link: str
    title: Optional[str] = None
    premium: bool = False


class GroupCandidate(BaseModel):
    """Provider-neutral chapter group ready to be inserted into the store."""
    book_id: int
    text: str
    link: str
    source: GroupSource
    last_read: int = 0


# Provider references stored on a book
class UndergroundRef(BaseModel):
    """Underground identifier of a book."""
    book_id: int
    underground_id: str


class WebNovelRef(BaseModel):
    """Web-novel identifier and link of a book."""
    id: str
    link: str
    title: Optional[str] = None


# API Schemas
class BookSchema(BaseModel):
    """Book for API responses."""
    id: int
    name: str
    author: Optional[str] = None
    link: Optional[str] = None
    rating: float
    completed: bool
    last_read: int
    underground_id: Optional[str] = None
    webnovel_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class GroupSchema(BaseModel):
    """Chapter group for API responses."""
    book_id: int
    text: str
    link: str
    last_read: int
    source: GroupSource
    first_chapter: int
    last_chapter: int

    model_config = ConfigDict(from_attributes=True)


class GroupListResponse(BaseModel):
    """Chapter groups of a book."""
    items: List[GroupSchema]
    total: int


class BookListResponse(BaseModel):
    """Book list response."""
    items: List[BookSchema]
    total: int


class LastReadUpdate(BaseModel):
    """Request to move a group's last-read marker."""
    link: str
    last_read: int = Field(..., ge=0)


class DownloadStatus(BaseModel):
    """Whether every chapter of a group has been downloaded."""
    link: str
    downloaded: bool

"""Web-novel provider: chapter catalog and book search scraped from HTML."""
import logging
from typing import Optional
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from config import settings
from exceptions import ProviderError
from models import Book, GroupSource
from schemas import GroupCandidate, WebNovelChapter, WebNovelRef
from sources.base import ChapterSource, ProviderClient

logger = logging.getLogger(__name__)


class WebNovelClient(ProviderClient):
    """
    Client for the web-novel site.

    The catalog page lists every chapter of a book grouped by volume; locked
    (premium) chapters carry a lock icon.
    """

    name = "webnovel"

    CATALOG_VOLUME_SELECTOR = ".volume-item"
    CATALOG_CHAPTER_SELECTOR = ".volume-item li"
    SEARCH_RESULT_SELECTOR = "a[data-bid]"

    def __init__(
        self,
        base_url: str = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ):
        super().__init__(base_url or settings.webnovel_base_url, session, timeout)

    async def get_chapters(self, book_id: str, book_link: str) -> Optional[list[WebNovelChapter]]:
        """
        Fetch the chapter catalog of a book.

        Returns:
            Chapters in catalog order, or None if the page has no catalog

        Raises:
            ProviderError: On network errors or an unreadable catalog
        """
        response = await self.fetch(f"/book/{book_id}/catalog", headers={"Referer": book_link})
        chapters = self.parse_catalog(response.text)

        if chapters is None:
            logger.info(f"No catalog found for web novel {book_id}")
        else:
            logger.info(f"Web novel {book_id} lists {len(chapters)} chapters")
        return chapters

    async def search(self, keywords: str) -> list[WebNovelRef]:
        """Search books by title."""
        response = await self.fetch("/search", params={"keywords": keywords})
        results = self.parse_search(response.text)
        logger.info(f"Web novel search for {keywords!r} returned {len(results)} books")
        return results

    def parse_catalog(self, html: str) -> Optional[list[WebNovelChapter]]:
        """
        Extract chapters from a catalog page.

        Args:
            html: Catalog page HTML

        Returns:
            Chapters, or None if the page carries no volume list
        """
        soup = BeautifulSoup(html, "lxml")
        if soup.select_one(self.CATALOG_VOLUME_SELECTOR) is None:
            return None

        chapters = []
        for item in soup.select(self.CATALOG_CHAPTER_SELECTOR):
            anchor = item.find("a", href=True)
            if anchor is None:
                continue

            number = anchor.find("i")
            index_text = number.get_text(strip=True) if number else ""
            if not index_text.isdigit():
                raise ProviderError(self.name, f"Chapter without index in catalog: {anchor['href']}")

            title = anchor.get("title") or anchor.get_text(" ", strip=True)
            chapters.append(
                WebNovelChapter(
                    index=int(index_text),
                    link=urljoin(self.base_url + "/", anchor["href"]),
                    title=title,
                    premium=anchor.find("svg") is not None,
                )
            )

        return chapters

    def parse_search(self, html: str) -> list[WebNovelRef]:
        """Extract book references from a search results page."""
        soup = BeautifulSoup(html, "lxml")

        results = {}
        for anchor in soup.select(self.SEARCH_RESULT_SELECTOR):
            book_id = anchor["data-bid"].strip()
            if not book_id or book_id in results or not anchor.get("href"):
                continue
            results[book_id] = WebNovelRef(
                id=book_id,
                link=urljoin(self.base_url + "/", anchor["href"]),
                title=anchor.get("title") or anchor.get_text(" ", strip=True),
            )

        return list(results.values())


class WebNovelSource(ChapterSource):
    """Accessible (non-premium) chapters from the web-novel provider."""

    source = GroupSource.WEBNOVEL

    def __init__(self, client: WebNovelClient):
        self.client = client

    async def list_chapters(self, book: Book, ref: WebNovelRef) -> list[GroupCandidate]:
        chapters = await self.client.get_chapters(ref.id, ref.link)
        if chapters is None:
            return []

        free = [chapter for chapter in chapters if not chapter.premium]
        logger.debug(f"Skipping {len(chapters) - len(free)} premium chapters of book {book.id}")

        return [
            GroupCandidate(
                book_id=book.id,
                text=str(chapter.index),
                link=chapter.link,
                source=self.source,
            )
            for chapter in free
        ]

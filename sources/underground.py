"""Underground provider: chapter ranges published as JSON."""
import logging
from typing import Optional

import requests

from config import settings
from exceptions import ProviderError
from models import Book, GroupSource
from normalizer import ChapterRangeParser
from schemas import GroupCandidate, UndergroundGroup, UndergroundRef
from sources.base import ChapterSource, ProviderClient

logger = logging.getLogger(__name__)


class UndergroundClient(ProviderClient):
    """Client for the underground table-of-contents API."""

    name = "underground"

    def __init__(
        self,
        base_url: str = None,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ):
        super().__init__(base_url or settings.underground_base_url, session, timeout)

    def default_headers(self) -> dict:
        headers = super().default_headers()
        headers["Accept"] = "application/json"
        return headers

    async def get_chapters(self, underground_id: str) -> list[UndergroundGroup]:
        """
        Fetch every chapter range published for a book.

        Raises:
            ProviderError: On network errors or an unexpected payload
        """
        response = await self.fetch(f"/api/v1/pages/public/{underground_id}/chapters")

        try:
            payload = response.json()
            groups = [UndergroundGroup.model_validate(item) for item in payload]
        except (ValueError, TypeError) as e:
            logger.error(f"Failed to parse chapter listing for {underground_id}: {e}")
            raise ProviderError(self.name, f"Unexpected chapter listing for {underground_id}") from e

        logger.info(f"Underground listed {len(groups)} groups for {underground_id}")
        return groups


class UndergroundSource(ChapterSource):
    """Chapter groups from the underground provider."""

    source = GroupSource.UNDERGROUND

    def __init__(self, client: UndergroundClient):
        self.client = client

    async def list_chapters(self, book: Book, ref: UndergroundRef) -> list[GroupCandidate]:
        groups = await self.client.get_chapters(ref.underground_id)
        return [
            GroupCandidate(
                book_id=book.id,
                text=ChapterRangeParser.validate(group.text),
                link=group.link,
                source=self.source,
            )
            for group in groups
        ]

"""Base classes shared by the provider sources."""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

import requests

from config import settings
from exceptions import ProviderError
from models import Book, GroupSource
from schemas import GroupCandidate

logger = logging.getLogger(__name__)


class ProviderClient:
    """
    HTTP client for one remote provider.

    Requests are blocking, so the async entry points run them on a worker
    thread. Transport errors and HTTP error statuses surface as
    ``ProviderError``.
    """

    # Must be set by child clients
    name: str = "provider"

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or settings.http_timeout
        self.session = session or requests.Session()
        self.session.headers.update(self.default_headers())

    def default_headers(self) -> dict:
        return {
            "User-Agent": settings.user_agent,
            "Accept-Language": "en",
        }

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _get(self, path: str, params: Optional[dict] = None, headers: Optional[dict] = None):
        url = self.url(path)
        logger.debug(f"[{self.name}] GET {url} params={params}")
        try:
            response = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"[{self.name}] Request failed: {url}: {e}")
            raise ProviderError(self.name, f"GET {url} failed: {e}") from e
        return response

    async def fetch(self, path: str, params: Optional[dict] = None, headers: Optional[dict] = None):
        """Perform a GET without blocking the event loop."""
        return await asyncio.to_thread(self._get, path, params, headers)

    def close(self) -> None:
        self.session.close()


class ChapterSource(ABC):
    """
    Uniform contract over the remote providers.

    Each source turns a provider listing into ``GroupCandidate`` records
    tagged with the source they came from.
    """

    # Must be set by child sources
    source: GroupSource

    @abstractmethod
    async def list_chapters(self, book: Book, ref) -> list[GroupCandidate]:
        """
        List the chapter groups a provider publishes for a book.

        Args:
            book: Book being synchronized
            ref: Provider reference of the book (identifier and link)

        Returns:
            Normalized group candidates, in provider order
        """
        pass

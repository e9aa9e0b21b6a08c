import asyncio
import sys
from pathlib import Path

import pytest
import requests

# Add project root to path
sys.path.append(str(Path(__file__).parent.parent))

from database import Database  # noqa: E402
from preferences import LibraryPreferences  # noqa: E402
from queries import BookQueries, GroupQueries, ContentQueries  # noqa: E402
from repository import build_repository  # noqa: E402
from schemas import UndergroundGroup, WebNovelChapter, WebNovelRef  # noqa: E402


async def wait_until(condition, attempts=200):
    """Yield to the event loop until ``condition()`` holds."""
    for _ in range(attempts):
        if condition():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


class FakeUndergroundClient:
    """Stands in for UndergroundClient; optionally blocks until ``gate`` is set."""

    name = "underground"

    def __init__(self, events):
        self.events = events
        self.groups = []
        self.error = None
        self.gate = None
        self.calls = 0

    async def get_chapters(self, underground_id):
        self.calls += 1
        self.events.append("underground:start")
        try:
            if self.gate is not None:
                await self.gate.wait()
        except asyncio.CancelledError:
            self.events.append("underground:cancelled")
            raise
        if self.error is not None:
            raise self.error
        return [UndergroundGroup(text=text, link=link) for text, link in self.groups]


class FakeWebNovelClient:
    """Stands in for WebNovelClient."""

    name = "webnovel"

    def __init__(self, events):
        self.events = events
        self.chapters = []
        self.search_results = []
        self.error = None
        self.gate = None
        self.calls = 0
        self.searches = []

    async def get_chapters(self, book_id, book_link):
        self.calls += 1
        self.events.append("webnovel:start")
        try:
            if self.gate is not None:
                await self.gate.wait()
        except asyncio.CancelledError:
            self.events.append("webnovel:cancelled")
            raise
        if self.error is not None:
            raise self.error
        return self.chapters

    async def search(self, keywords):
        self.searches.append(keywords)
        self.events.append("webnovel:search")
        return self.search_results


class FakeResponse:
    def __init__(self, status_code=200, text="", payload=None):
        self.status_code = status_code
        self.text = text
        self.payload = payload

    def json(self):
        if self.payload is None:
            raise ValueError("No JSON object could be decoded")
        return self.payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


class FakeSession:
    """Records GET calls and answers them with a canned response or error."""

    def __init__(self, response=None, error=None):
        self.headers = {}
        self.response = response or FakeResponse()
        self.error = error
        self.calls = []
        self.closed = False

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        self.closed = True


@pytest.fixture
def db():
    """Fresh in-memory database with the schema created."""
    database = Database("sqlite://")
    database.create_all()
    yield database
    database.engine.dispose()


@pytest.fixture
def books(db):
    return BookQueries(db)


@pytest.fixture
def groups(db):
    return GroupQueries(db)


@pytest.fixture
def contents(db):
    return ContentQueries(db)


@pytest.fixture
def events():
    return []


@pytest.fixture
def underground_client(events):
    return FakeUndergroundClient(events)


@pytest.fixture
def webnovel_client(events):
    return FakeWebNovelClient(events)


@pytest.fixture
def preferences():
    return LibraryPreferences(check_for_webnovel=False)


@pytest.fixture
def repository(db, underground_client, webnovel_client, preferences):
    return build_repository(db, underground_client, webnovel_client, preferences)


@pytest.fixture
def underground_book(books):
    return books.insert(
        name="Lord of the Mysteries",
        author="Cuttlefish",
        underground_id="lotm",
        webnovel_id="wn-lotm",
        webnovel_link="https://www.webnovel.com/book/wn-lotm",
    )


@pytest.fixture
def webnovel_book(books):
    return books.insert(
        name="Shadow Slave",
        webnovel_id="wn-shadow",
        webnovel_link="https://www.webnovel.com/book/wn-shadow",
    )


@pytest.fixture
def sample_chapters():
    return [
        WebNovelChapter(index=1, link="L1", title="Nightmare Begins"),
        WebNovelChapter(index=2, link="L2", title="Locked", premium=True),
    ]


@pytest.fixture
def sample_ref():
    return WebNovelRef(id="wn-lotm", link="https://www.webnovel.com/book/wn-lotm", title="Lord of the Mysteries")

import asyncio

import pytest
import requests

from conftest import FakeResponse, FakeSession
from exceptions import ChapterRangeError, ProviderError
from models import GroupSource
from schemas import UndergroundRef, WebNovelRef
from sources import UndergroundClient, UndergroundSource, WebNovelClient, WebNovelSource

CATALOG_HTML = """
<html><body>
<div class="volume-item">
  <h4>Volume 1</h4>
  <ol>
    <li><a href="/book/wn-lotm/crimson_1" title="Crimson"><i>1</i><strong>Crimson</strong></a></li>
    <li><a href="/book/wn-lotm/situation_2" title="Situation"><i>2</i><strong>Situation</strong></a></li>
  </ol>
</div>
<div class="volume-item">
  <h4>Volume 2</h4>
  <ol>
    <li><a href="/book/wn-lotm/clown_3" title="Clown"><i>3</i><strong>Clown</strong><svg><use href="#i-lock"></use></svg></a></li>
  </ol>
</div>
</body></html>
"""

SEARCH_HTML = """
<html><body>
<ul class="search-result">
  <li><a data-bid="111" href="/book/111" title="Lord of the Mysteries 2">Lord of the Mysteries 2</a></li>
  <li><a data-bid="222" href="/book/222" title="Lord of the Mysteries">Lord of the Mysteries</a></li>
  <li><a data-bid="222" href="/book/222">cover</a></li>
</ul>
</body></html>
"""


class TestUndergroundClient:
    def test_get_chapters(self):
        session = FakeSession(FakeResponse(payload=[
            {"Text": "1 - 5", "Href": "https://example.org/a"},
            {"Text": "6 - 9", "Href": "https://example.org/b"},
        ]))
        client = UndergroundClient("https://toc.example.org/", session=session)

        groups = asyncio.run(client.get_chapters("lotm"))

        assert [(g.text, g.link) for g in groups] == [
            ("1 - 5", "https://example.org/a"),
            ("6 - 9", "https://example.org/b"),
        ]
        assert session.calls[0]["url"] == "https://toc.example.org/api/v1/pages/public/lotm/chapters"
        assert session.headers["Accept"] == "application/json"

    def test_http_error_becomes_provider_error(self):
        client = UndergroundClient("https://toc.example.org", session=FakeSession(FakeResponse(status_code=503)))

        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(client.get_chapters("lotm"))

        assert exc_info.value.source == "underground"

    def test_network_error_becomes_provider_error(self):
        session = FakeSession(error=requests.ConnectionError("connection refused"))
        client = UndergroundClient("https://toc.example.org", session=session)

        with pytest.raises(ProviderError):
            asyncio.run(client.get_chapters("lotm"))

    @pytest.mark.parametrize("response", [
        FakeResponse(text="<html>maintenance</html>"),
        FakeResponse(payload=[{"Text": "1 - 5"}]),
    ])
    def test_unexpected_payload_becomes_provider_error(self, response):
        client = UndergroundClient("https://toc.example.org", session=FakeSession(response))

        with pytest.raises(ProviderError):
            asyncio.run(client.get_chapters("lotm"))


class TestUndergroundSource:
    def test_maps_groups_to_candidates(self, underground_book):
        session = FakeSession(FakeResponse(payload=[{"Text": "1 - 5", "Href": "A"}]))
        source = UndergroundSource(UndergroundClient("https://toc.example.org", session=session))
        ref = UndergroundRef(book_id=underground_book.id, underground_id="lotm")

        candidates = asyncio.run(source.list_chapters(underground_book, ref))

        assert len(candidates) == 1
        assert candidates[0].book_id == underground_book.id
        assert candidates[0].text == "1 - 5"
        assert candidates[0].link == "A"
        assert candidates[0].source == GroupSource.UNDERGROUND
        assert candidates[0].last_read == 0

    def test_malformed_range_is_fatal(self, underground_book):
        session = FakeSession(FakeResponse(payload=[{"Text": "Side story", "Href": "A"}]))
        source = UndergroundSource(UndergroundClient("https://toc.example.org", session=session))
        ref = UndergroundRef(book_id=underground_book.id, underground_id="lotm")

        with pytest.raises(ChapterRangeError):
            asyncio.run(source.list_chapters(underground_book, ref))


class TestWebNovelClient:
    def setup_method(self):
        self.client = WebNovelClient("https://www.webnovel.com", session=FakeSession())

    def test_parse_catalog(self):
        chapters = self.client.parse_catalog(CATALOG_HTML)

        assert [c.index for c in chapters] == [1, 2, 3]
        assert chapters[0].link == "https://www.webnovel.com/book/wn-lotm/crimson_1"
        assert chapters[0].title == "Crimson"
        assert [c.premium for c in chapters] == [False, False, True]

    def test_page_without_catalog_is_absent(self):
        assert self.client.parse_catalog("<html><body><p>Not found</p></body></html>") is None

    def test_chapter_without_index_is_rejected(self):
        html = '<div class="volume-item"><ol><li><a href="/c/x">Auxiliary</a></li></ol></div>'

        with pytest.raises(ProviderError):
            self.client.parse_catalog(html)

    def test_parse_search_dedupes_books(self):
        results = self.client.parse_search(SEARCH_HTML)

        assert [r.id for r in results] == ["111", "222"]
        assert results[1].link == "https://www.webnovel.com/book/222"
        assert results[1].title == "Lord of the Mysteries"

    def test_get_chapters_sends_referer(self):
        session = FakeSession(FakeResponse(text=CATALOG_HTML))
        client = WebNovelClient("https://www.webnovel.com", session=session)

        chapters = asyncio.run(client.get_chapters("wn-lotm", "https://www.webnovel.com/book/wn-lotm"))

        assert len(chapters) == 3
        call = session.calls[0]
        assert call["url"] == "https://www.webnovel.com/book/wn-lotm/catalog"
        assert call["headers"] == {"Referer": "https://www.webnovel.com/book/wn-lotm"}

    def test_search_passes_keywords(self):
        session = FakeSession(FakeResponse(text=SEARCH_HTML))
        client = WebNovelClient("https://www.webnovel.com", session=session)

        results = asyncio.run(client.search("Lord of the Mysteries"))

        assert len(results) == 2
        assert session.calls[0]["params"] == {"keywords": "Lord of the Mysteries"}


class TestWebNovelSource:
    def test_premium_chapters_are_filtered(self, underground_book):
        session = FakeSession(FakeResponse(text=CATALOG_HTML))
        source = WebNovelSource(WebNovelClient("https://www.webnovel.com", session=session))
        ref = WebNovelRef(id="wn-lotm", link="https://www.webnovel.com/book/wn-lotm")

        candidates = asyncio.run(source.list_chapters(underground_book, ref))

        assert [(c.text, c.source) for c in candidates] == [
            ("1", GroupSource.WEBNOVEL),
            ("2", GroupSource.WEBNOVEL),
        ]

    def test_absent_catalog_maps_to_empty(self, underground_book):
        session = FakeSession(FakeResponse(text="<html></html>"))
        source = WebNovelSource(WebNovelClient("https://www.webnovel.com", session=session))
        ref = WebNovelRef(id="wn-lotm", link="https://www.webnovel.com/book/wn-lotm")

        assert asyncio.run(source.list_chapters(underground_book, ref)) == []

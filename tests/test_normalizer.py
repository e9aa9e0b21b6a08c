import pytest
from hypothesis import given, strategies as st

from exceptions import ChapterRangeError
from normalizer import ChapterRangeParser


@pytest.mark.parametrize(
    "text, expected",
    [
        ("12 - 15", (12, 15)),
        ("12-15", (12, 15)),
        ("7", (7, 7)),
        ("  3 ", (3, 3)),
        ("1 - 2 - 9", (1, 9)),
    ],
)
def test_parse(text, expected):
    assert ChapterRangeParser.parse(text) == expected


def test_total():
    assert ChapterRangeParser.total("12 - 15") == 4
    assert ChapterRangeParser.total("7") == 1


@pytest.mark.parametrize("text", ["", "abc", "1 - ", " - 5", "1.5 - 3", "-1", "one - two"])
def test_malformed_labels_are_rejected(text):
    with pytest.raises(ChapterRangeError):
        ChapterRangeParser.parse(text)


def test_error_names_the_bad_token():
    with pytest.raises(ChapterRangeError) as exc_info:
        ChapterRangeParser.last_chapter("10 - x")

    assert exc_info.value.text == "10 - x"
    assert exc_info.value.token == "x"


def test_validate_returns_label_unchanged():
    assert ChapterRangeParser.validate("1 - 5") == "1 - 5"


def test_validate_accepts_descending_range(caplog):
    assert ChapterRangeParser.validate("9 - 3") == "9 - 3"
    assert "ends before it starts" in caplog.text


@given(st.integers(min_value=0, max_value=10**6), st.integers(min_value=0, max_value=10**4))
def test_well_formed_ranges_round_trip(first, length):
    last = first + length
    text = f"{first} - {last}"

    assert ChapterRangeParser.first_chapter(text) <= ChapterRangeParser.last_chapter(text)
    assert ChapterRangeParser.parse(text) == (first, last)
    assert ChapterRangeParser.total(text) == length + 1

"""Chapter range label parsing."""
import re
import logging

from exceptions import ChapterRangeError

logger = logging.getLogger(__name__)


class ChapterRangeParser:
    """
    Parse group labels such as ``"12 - 15"`` or ``"7"``.

    The first chapter is the integer before the first '-', the last chapter
    is the integer after the last '-'. A label without '-' names a single
    chapter. Tokens are trimmed; anything that is not a plain non-negative
    integer is rejected instead of being coerced.
    """

    SEPARATOR = "-"
    NUMBER_PATTERN = re.compile(r"^\d+$")

    @classmethod
    def _to_int(cls, text: str, token: str) -> int:
        token = token.strip()
        if not cls.NUMBER_PATTERN.match(token):
            raise ChapterRangeError(text, token)
        return int(token)

    @classmethod
    def first_chapter(cls, text: str) -> int:
        """
        Get the first chapter number of a label.

        Args:
            text: Group label

        Returns:
            First chapter number

        Raises:
            ChapterRangeError: If the leading token is not an integer
        """
        return cls._to_int(text, text.split(cls.SEPARATOR)[0])

    @classmethod
    def last_chapter(cls, text: str) -> int:
        """
        Get the last chapter number of a label.

        Args:
            text: Group label

        Returns:
            Last chapter number

        Raises:
            ChapterRangeError: If the trailing token is not an integer
        """
        return cls._to_int(text, text.split(cls.SEPARATOR)[-1])

    @classmethod
    def parse(cls, text: str) -> tuple[int, int]:
        """Return ``(first, last)`` for a label."""
        return cls.first_chapter(text), cls.last_chapter(text)

    @classmethod
    def total(cls, text: str) -> int:
        """Number of chapters covered by a label."""
        first, last = cls.parse(text)
        return last - first + 1

    @classmethod
    def validate(cls, text: str) -> str:
        """
        Check that a label parses and return it unchanged.

        Used before a label is written to the store so that every stored
        group can be parsed later.
        """
        first, last = cls.parse(text)
        if first > last:
            logger.warning(f"Chapter range {text!r} ends before it starts")
        return text

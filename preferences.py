"""User preferences consulted by the synchronizer."""
import logging

from config import settings

logger = logging.getLogger(__name__)


class LibraryPreferences:
    """Library toggles, read synchronously."""

    def __init__(self, check_for_webnovel: bool = None):
        if check_for_webnovel is None:
            check_for_webnovel = settings.always_check_webnovel
        self._check_for_webnovel = check_for_webnovel

    @property
    def check_for_webnovel(self) -> bool:
        """Always fetch web-novel chapters alongside underground ones."""
        return self._check_for_webnovel

    @check_for_webnovel.setter
    def check_for_webnovel(self, value: bool) -> None:
        logger.info(f"Always check web novel: {value}")
        self._check_for_webnovel = bool(value)

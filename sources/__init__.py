"""
Remote chapter sources.

    - ChapterSource: contract shared by every provider
    - UndergroundSource: chapter ranges from the underground provider
    - WebNovelSource: non-premium chapters from the web-novel provider
"""

from .base import ChapterSource, ProviderClient
from .underground import UndergroundClient, UndergroundSource
from .webnovel import WebNovelClient, WebNovelSource

__all__ = [
    "ChapterSource",
    "ProviderClient",
    "UndergroundClient",
    "UndergroundSource",
    "WebNovelClient",
    "WebNovelSource",
]

"""
Abstract ranking provider
"""

from abc import ABC, abstractmethod
from typing import Optional

from models.base import Device, RankingSource
from schemas.tracking import PositionObservation

# Provider location code -> search language
LOCATION_LANGUAGES = {
    2840: "en",  # United States
    2826: "en",  # United Kingdom
    2124: "en",  # Canada
    2036: "en",  # Australia
    2528: "nl",  # Netherlands
    2056: "nl",  # Belgium
    2705: "sl",  # Slovenia
    2276: "de",  # Germany
    2250: "fr",  # France
    2724: "es",  # Spain
    2380: "it",  # Italy
}

DEFAULT_LANGUAGE = "en"


def language_for_location(location_code: int) -> str:
    return LOCATION_LANGUAGES.get(location_code, DEFAULT_LANGUAGE)


class RankingProvider(ABC):
    """
    A source of "where does this domain rank for this keyword" answers.

    Implementations are stateless between calls and never retry; retry
    policy belongs to the caller.
    """

    source: RankingSource

    @abstractmethod
    async def fetch_position(
        self,
        keyword: str,
        location_code: int,
        device: Device,
        domain: Optional[str] = None
    ) -> PositionObservation:
        """
        Look up the current rank of ``domain`` for ``keyword``.

        Raises:
            RateLimitedError, ProviderTimeoutError: transient, may be retried
            InvalidResponseError, AuthError: permanent for this call
        """
        pass

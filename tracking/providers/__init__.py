from tracking.providers.base import RankingProvider, language_for_location
from tracking.providers.dataforseo import DataForSEOClient

__all__ = ["RankingProvider", "DataForSEOClient", "language_for_location"]

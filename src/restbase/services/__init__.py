"""Application-facing services built on the client."""

from restbase.services.rankings import RANKINGS_TABLE, RankingService

__all__ = ["RANKINGS_TABLE", "RankingService"]

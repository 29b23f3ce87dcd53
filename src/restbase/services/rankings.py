"""Ranking board operations used by the game layer."""

from restbase.client import Client
from restbase.realtime.poller import ChangePoller
from restbase.schemas.models import RankingEntry
from restbase.utils.telemetry import get_logger

RANKINGS_TABLE = "rankings"


class RankingService:
    """Submit scores, read the leaderboard and watch it for changes."""

    def __init__(self, client: Client, table: str = RANKINGS_TABLE):
        self._client = client
        self.table = table
        self._logger = get_logger("restbase.services.rankings")

    async def submit_score(
        self, player_name: str, score: int, accuracy: float
    ) -> RankingEntry | None:
        """Insert one score and return the stored row."""
        if not player_name.strip():
            raise ValueError("player_name cannot be empty")

        entry = await self._client.db.from_(self.table, RankingEntry).insert(
            {"player_name": player_name, "score": score, "accuracy": accuracy}
        )
        self._logger.info("Score submitted", score=score, accuracy=accuracy)
        return entry

    async def fetch_ranking(self, limit: int = 10) -> list[RankingEntry]:
        """Return the ``limit`` best scores, highest first."""
        return await (
            self._client.db.from_(self.table, RankingEntry)
            .select("*")
            .order("score", ascending=False)
            .limit(limit)
            .execute()
        )

    def watch(self, interval_seconds: float = 1.0) -> ChangePoller[RankingEntry]:
        """Create a stopped poller publishing new and changed ranking rows."""
        return self._client.poller(
            self.table, RankingEntry, interval_seconds=interval_seconds
        )

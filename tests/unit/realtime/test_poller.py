"""Unit tests for the polling change emulator."""

import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from restbase.db.database import Database
from restbase.realtime.poller import ChangePoller, PollerState, record_timestamp
from restbase.schemas.models import ChangeKind, RankingEntry
from restbase.utils.errors import ApiError

T0 = datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


def row(row_id: int, created: datetime, updated: datetime, score: int = 10) -> dict:
    return {
        "id": row_id,
        "player_name": f"player-{row_id}",
        "score": score,
        "accuracy": 0.5,
        "created_at": created.isoformat(),
        "updated_at": updated.isoformat(),
    }


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def poller(gateway, clock) -> ChangePoller:
    return ChangePoller(
        Database(gateway), "rankings", RankingEntry, interval_seconds=60, clock=clock
    )


class TestRecordTimestamp:
    def test_mapping_with_iso_string(self) -> None:
        value = record_timestamp({"created_at": "2024-05-01T10:00:00Z"}, "created_at")
        assert value == T0

    def test_naive_datetime_is_utc(self) -> None:
        value = record_timestamp({"created_at": datetime(2024, 5, 1, 10)}, "created_at")
        assert value == T0

    def test_missing_column(self) -> None:
        with pytest.raises(ValueError):
            record_timestamp({"id": 1}, "created_at")


class TestConstruction:
    def test_rejects_non_positive_interval(self, gateway) -> None:
        with pytest.raises(ValueError):
            ChangePoller(Database(gateway), "rankings", interval_seconds=0)

    def test_initial_state(self, poller) -> None:
        assert poller.watermark == T0
        assert poller.state == PollerState.STOPPED
        assert not poller.is_running

    def test_watermark_query(self, poller) -> None:
        assert poller.watermark_query(T0).to_query_string() == (
            "select=*&updated_at=gte.2024-05-01T10%3A00%3A00%2B00%3A00"
            "&order=updated_at.asc"
        )


class TestPollOnce:
    @pytest.mark.asyncio
    async def test_classifies_inserts_and_updates(self, poller, clock, backend) -> None:
        inserts: list = []
        updates: list = []
        poller.inserts.subscribe(inserts.append)
        poller.updates.subscribe(updates.append)

        created_now = T0 + timedelta(seconds=5)
        created_long_ago = T0 - timedelta(hours=1)
        backend.respond(
            json=[
                row(1, created_now, created_now),
                row(2, created_long_ago, T0 + timedelta(seconds=6)),
            ]
        )
        cycle_start = clock.advance(10)

        events = await poller.poll_once()

        assert [event.kind for event in events] == [ChangeKind.INSERT, ChangeKind.UPDATE]
        assert [event.record.id for event in inserts] == [1]
        assert [event.record.id for event in updates] == [2]
        assert isinstance(inserts[0].record, RankingEntry)
        assert inserts[0].table == "rankings"
        assert inserts[0].observed_at == cycle_start
        assert poller.watermark == cycle_start

        request = backend.last
        assert request.url.path == "/rest/v1/rankings"
        assert request.url.params["updated_at"] == "gte.2024-05-01T10:00:00+00:00"
        assert request.url.params["order"] == "updated_at.asc"

    @pytest.mark.asyncio
    async def test_row_created_at_watermark_is_insert(self, poller, clock, backend) -> None:
        backend.respond(json=[row(1, T0, T0)])
        clock.advance(1)

        events = await poller.poll_once()

        assert events[0].kind == ChangeKind.INSERT

    @pytest.mark.asyncio
    async def test_empty_cycle_advances_watermark(self, poller, clock, backend) -> None:
        backend.respond(json=[])
        cycle_start = clock.advance(5)

        assert await poller.poll_once() == []
        assert poller.watermark == cycle_start

    @pytest.mark.asyncio
    async def test_failed_cycle_keeps_watermark(self, poller, clock, backend) -> None:
        backend.respond(500, json={"message": "boom"})
        clock.advance(5)

        with pytest.raises(ApiError):
            await poller.poll_once()
        assert poller.watermark == T0

    @pytest.mark.asyncio
    async def test_undecodable_row_keeps_watermark(self, gateway, clock, backend) -> None:
        poller = ChangePoller(Database(gateway), "scores", clock=clock)
        backend.respond(json=[{"id": 1}])
        clock.advance(5)

        with pytest.raises(ValueError):
            await poller.poll_once()
        assert poller.watermark == T0

    @pytest.mark.asyncio
    async def test_bad_row_publishes_nothing_from_batch(
        self, gateway, clock, backend
    ) -> None:
        poller = ChangePoller(Database(gateway), "scores", clock=clock)
        seen: list = []
        poller.inserts.subscribe(lambda event: seen.append(event.record["id"]))

        created = T0 + timedelta(seconds=1)
        good = row(1, created, created)
        backend.respond(json=[good, {"id": 2, "updated_at": created.isoformat()}])
        backend.respond(json=[good])
        clock.advance(5)

        with pytest.raises(ValueError):
            await poller.poll_once()
        assert seen == []

        await poller.poll_once()
        assert seen == [1]

    @pytest.mark.asyncio
    async def test_watermark_never_decreases(self, poller, clock, backend) -> None:
        clock.advance(30)
        await poller.poll_once()
        high = poller.watermark

        clock.now = T0 - timedelta(minutes=5)
        await poller.poll_once()

        assert poller.watermark == high

        backend.respond(503)
        clock.advance(1)
        with pytest.raises(ApiError):
            await poller.poll_once()
        assert poller.watermark == high

    @pytest.mark.asyncio
    async def test_next_cycle_uses_advanced_watermark(
        self, poller, clock, backend
    ) -> None:
        clock.advance(10)
        await poller.poll_once()
        clock.advance(10)
        await poller.poll_once()

        first, second = backend.requests
        assert first.url.params["updated_at"] == "gte.2024-05-01T10:00:00+00:00"
        assert second.url.params["updated_at"] == "gte.2024-05-01T10:00:10+00:00"


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_advances_watermark_to_now(self, poller, clock) -> None:
        started_at = clock.advance(120)

        poller.start()
        try:
            assert poller.is_running
            assert poller.watermark == started_at
        finally:
            await poller.stop()

        assert poller.state == PollerState.STOPPED

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self, poller) -> None:
        poller.start()
        task = poller._task
        poller.start()

        assert poller._task is task
        await poller.stop()

    @pytest.mark.asyncio
    async def test_stop_when_not_running(self, poller) -> None:
        await poller.stop()
        assert poller.state == PollerState.STOPPED

    @pytest.mark.asyncio
    async def test_close_ends_streams(self, poller) -> None:
        subscription = poller.inserts.subscribe()

        await poller.close()

        assert poller.inserts.closed
        assert poller.updates.closed
        assert poller.deletes.closed
        assert [event async for event in subscription] == []
        with pytest.raises(RuntimeError):
            poller.start()

    @pytest.mark.asyncio
    async def test_loop_survives_errors(self, gateway, backend) -> None:
        clock = FakeClock()
        poller = ChangePoller(
            Database(gateway), "rankings", RankingEntry, interval_seconds=0.01, clock=clock
        )
        subscription = poller.inserts.subscribe()

        backend.respond(500, json={"message": "temporarily down"})

        def later_insert(request):
            created = clock.advance(1)
            return httpx.Response(200, json=[row(9, created, created)])

        backend.call(later_insert)

        async with poller:
            event = await asyncio.wait_for(subscription.get(), timeout=2)

        assert event.kind == ChangeKind.INSERT
        assert event.record.id == 9
        assert not poller.is_running
        assert poller.inserts.closed

"""Polling-based change notifications for backends without a push channel.

A :class:`ChangePoller` re-runs a query filtered by ``updated_at >=
watermark`` on a fixed interval, classifies each returned row as an insert
(``created_at >= watermark``) or an update, and publishes the result on its
event streams. Deletions cannot be observed this way; the ``deletes`` stream
exists for interface symmetry and is never fed.

The watermark only moves forward: after every successful cycle (empty or
not) it advances to the time the cycle started, and a failed cycle leaves
it unchanged.
"""

import asyncio
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, TypeVar

from restbase.db.database import Database
from restbase.db.query import QueryBuilder
from restbase.realtime.streams import EventStream
from restbase.schemas.models import ChangeEvent, ChangeKind
from restbase.utils.telemetry import (
    get_logger,
    record_change_event,
    record_poll_cycle,
)

RecordT = TypeVar("RecordT")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def record_timestamp(record: Any, column: str) -> datetime:
    """Read a timestamp column from a model instance or a mapping row.

    Raises:
        ValueError: If the column is missing or not a timestamp
    """
    if isinstance(record, Mapping):
        value = record.get(column)
    else:
        value = getattr(record, column, None)

    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if not isinstance(value, datetime):
        raise ValueError(f"Row has no usable {column!r} timestamp: {value!r}")
    return _as_utc(value)


class PollerState(Enum):
    """Run state of a change poller."""

    STOPPED = "stopped"
    RUNNING = "running"


class ChangePoller(Generic[RecordT]):
    """Background task emulating insert/update notifications by polling.

    Cycles never overlap: the next wait starts only after the previous
    query and all event publication have completed.
    """

    def __init__(
        self,
        database: Database,
        table: str,
        row_type: Any = dict[str, Any],
        interval_seconds: float = 1.0,
        clock: Clock | None = None,
        created_column: str = "created_at",
        updated_column: str = "updated_at",
    ):
        """Initialize change poller.

        Args:
            database: Database used to run the watermark query
            table: Table to watch
            row_type: Row type; must expose created/updated timestamps
            interval_seconds: Wait between the end of one cycle and the next
            clock: Source of the current UTC time (injectable for tests)
            created_column: Name of the creation timestamp column
            updated_column: Name of the modification timestamp column

        Raises:
            ValueError: If interval_seconds is not positive
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self.table = table
        self.interval_seconds = interval_seconds
        self.created_column = created_column
        self.updated_column = updated_column

        self._clock = clock or utc_now
        self._watermark = _as_utc(self._clock())
        self._base_query: QueryBuilder[RecordT] = database.from_(table, row_type).select()
        self._task: asyncio.Task[None] | None = None
        self._closed = False
        self._logger = get_logger("restbase.realtime.poller", table=table)

        self.inserts: EventStream[ChangeEvent[RecordT]] = EventStream(f"{table}.insert")
        self.updates: EventStream[ChangeEvent[RecordT]] = EventStream(f"{table}.update")
        self.deletes: EventStream[ChangeEvent[RecordT]] = EventStream(f"{table}.delete")

    @property
    def watermark(self) -> datetime:
        return self._watermark

    @property
    def state(self) -> PollerState:
        if self._task is not None and not self._task.done():
            return PollerState.RUNNING
        return PollerState.STOPPED

    @property
    def is_running(self) -> bool:
        return self.state is PollerState.RUNNING

    def start(self) -> None:
        """Start polling on the running event loop.

        Starting an already running poller only logs a warning.

        Raises:
            RuntimeError: If the poller was closed
        """
        if self._closed:
            raise RuntimeError("Cannot start a closed poller")

        if self.is_running:
            self._logger.warning("Poller is already running")
            return

        self._advance(self._clock())
        self._task = asyncio.get_running_loop().create_task(
            self._poll_loop(), name=f"restbase-poller-{self.table}"
        )
        self._logger.info(
            "Poller started",
            interval_seconds=self.interval_seconds,
            watermark=self._watermark.isoformat(),
        )

    async def stop(self) -> None:
        """Cancel the polling task and wait for it to exit."""
        task, self._task = self._task, None
        if task is None:
            return

        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

        self._logger.info("Poller stopped")

    async def close(self) -> None:
        """Stop polling and close all three event streams."""
        await self.stop()
        self._closed = True
        self.inserts.close()
        self.updates.close()
        self.deletes.close()

    def watermark_query(self, watermark: datetime) -> QueryBuilder[RecordT]:
        """Query returning rows modified at or after ``watermark``."""
        return self._base_query.gte(self.updated_column, watermark).order(
            self.updated_column
        )

    async def poll_once(self) -> list[ChangeEvent[RecordT]]:
        """Run one poll cycle: query, classify, publish, advance the watermark.

        Returns:
            The events published in this cycle, in backend order

        Raises:
            Exception: Whatever the query raised; the watermark is unchanged
        """
        watermark = self._watermark
        cycle_time = _as_utc(self._clock())

        rows = await self.watermark_query(watermark).execute()

        # Classify the whole batch before publishing so a bad row fails the
        # cycle without emitting anything.
        events: list[ChangeEvent[RecordT]] = []
        for row in rows:
            if record_timestamp(row, self.created_column) >= watermark:
                kind = ChangeKind.INSERT
            else:
                kind = ChangeKind.UPDATE
            events.append(
                ChangeEvent(
                    kind=kind, table=self.table, record=row, observed_at=cycle_time
                )
            )

        for event in events:
            stream = self.inserts if event.kind == ChangeKind.INSERT else self.updates
            await stream.publish(event)
            record_change_event(self.table, event.kind.value)

        self._advance(cycle_time)
        record_poll_cycle(self.table, "success")

        if events:
            self._logger.debug(
                "Poll cycle published changes",
                events=len(events),
                watermark=self._watermark.isoformat(),
            )
        return events

    def _advance(self, timestamp: datetime) -> None:
        self._watermark = max(self._watermark, _as_utc(timestamp))

    async def _poll_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval_seconds)

                try:
                    await self.poll_once()
                except Exception as e:
                    record_poll_cycle(self.table, "error")
                    self._logger.error(
                        "Polling error, retrying on next tick",
                        error=str(e),
                        error_type=type(e).__name__,
                    )

        except asyncio.CancelledError:
            self._logger.debug("Poll loop cancelled")
            raise

    async def __aenter__(self) -> "ChangePoller[RecordT]":
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

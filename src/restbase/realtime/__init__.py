"""Change notifications emulated by polling."""

from restbase.realtime.poller import ChangePoller, PollerState, record_timestamp
from restbase.realtime.streams import EventStream, Subscription

__all__ = [
    "ChangePoller",
    "EventStream",
    "PollerState",
    "Subscription",
    "record_timestamp",
]

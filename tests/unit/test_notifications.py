"""Unit tests for notification events, delivery, and fan-out."""

from __future__ import annotations

import asyncio
import json
import logging

import pytest

from gig_market_service.logging import ROOT_LOGGER_NAME
from gig_market_service.services.notifications import (
    InProcessDeliveryChannel,
    NotificationEvent,
    NotificationFanout,
    hire_events,
    new_bid_event,
    stream_notifications,
)
from tests.helpers import FailingChannel, RecordingChannel

pytestmark = pytest.mark.unit


def _bid(bid_id: str, freelancer_id: str, price: float = 100.0) -> dict[str, object]:
    return {
        "bid_id": bid_id,
        "gig_id": "g-1",
        "gig_title": "Logo design",
        "freelancer_id": freelancer_id,
        "freelancer_name": "Freya",
        "price": price,
    }


def _event(recipient: str = "a-u1") -> NotificationEvent:
    return NotificationEvent(
        recipient_id=recipient,
        kind="hired",
        message="hello",
        gig_id="g-1",
        gig_title="Logo design",
    )


def test_event_wire_shape() -> None:
    event = _event()
    data = event.to_dict()

    assert data["event_id"].startswith("evt-")
    assert data["timestamp"].endswith("Z")
    assert set(data) == {
        "recipient_id",
        "kind",
        "message",
        "gig_id",
        "gig_title",
        "bid_id",
        "amounts",
        "resubmission_allowed",
        "event_id",
        "timestamp",
    }


def test_hire_events_one_per_party() -> None:
    events = hire_events(_bid("bid-1", "a-u2"), [_bid("bid-2", "a-u3"), _bid("bid-3", "a-u4")])

    assert [(e.recipient_id, e.kind) for e in events] == [
        ("a-u2", "hired"),
        ("a-u3", "rejected"),
        ("a-u4", "rejected"),
    ]
    assert all(e.resubmission_allowed for e in events[1:])


def test_new_bid_event_formats_fractional_price() -> None:
    event = new_bid_event(_bid("bid-1", "a-u2", price=49.5), "a-owner")

    assert event.recipient_id == "a-owner"
    assert event.message == 'Freya placed a bid of $49.50 on your gig "Logo design"'


async def test_fanout_delivers_without_blocking_caller() -> None:
    channel = RecordingChannel()
    fanout = NotificationFanout(channel=channel)

    fanout.emit_all([_event("a-u1"), _event("a-u2")])
    assert channel.delivered == []

    await fanout.drain()
    assert sorted(recipient for recipient, _ in channel.delivered) == ["a-u1", "a-u2"]


async def test_fanout_logs_and_swallows_delivery_failure(caplog, monkeypatch) -> None:
    monkeypatch.setattr(logging.getLogger(ROOT_LOGGER_NAME), "propagate", True)
    channel = FailingChannel()
    fanout = NotificationFanout(channel=channel)

    with caplog.at_level(logging.WARNING):
        fanout.emit(_event("a-u9"))
        await fanout.drain()

    assert channel.attempts == 1
    failures = [r for r in caplog.records if r.getMessage() == "Notification delivery failed"]
    assert len(failures) == 1
    assert failures[0].recipient_id == "a-u9"
    assert failures[0].kind == "hired"


async def test_in_process_channel_delivers_to_every_stream_of_user() -> None:
    channel = InProcessDeliveryChannel(queue_size=10)
    first = channel.subscribe("a-u1")
    second = channel.subscribe("a-u1")
    other = channel.subscribe("a-u2")

    event = _event("a-u1")
    await channel.deliver("a-u1", event)

    assert first.get_nowait() is event
    assert second.get_nowait() is event
    assert other.empty()
    assert channel.connected_users == 2

    channel.unsubscribe("a-u1", first)
    assert channel.connected_users == 2
    channel.unsubscribe("a-u1", second)
    assert channel.connected_users == 1


async def test_in_process_channel_ignores_offline_users_and_full_queues() -> None:
    channel = InProcessDeliveryChannel(queue_size=1)
    await channel.deliver("a-nobody", _event("a-nobody"))

    queue = channel.subscribe("a-u1")
    await channel.deliver("a-u1", _event())
    await channel.deliver("a-u1", _event())

    assert queue.qsize() == 1


async def test_stream_yields_retry_events_and_keepalive_then_unsubscribes() -> None:
    channel = InProcessDeliveryChannel(queue_size=10)
    stream = stream_notifications(channel, "a-u1", keepalive_interval=1)

    assert await stream.__anext__() == {"retry": 3000}
    assert channel.connected_users == 1

    event = _event("a-u1")
    await channel.deliver("a-u1", event)
    message = await stream.__anext__()
    assert message["event"] == "hired"
    assert message["id"] == event.event_id
    assert json.loads(message["data"])["gig_title"] == "Logo design"

    keepalive = await asyncio.wait_for(stream.__anext__(), timeout=5)
    assert keepalive == {"comment": "keepalive"}

    await stream.aclose()
    assert channel.connected_users == 0

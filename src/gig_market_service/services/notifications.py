"""Real-time notification events, the delivery capability, and fan-out."""

from __future__ import annotations

import asyncio
import json
import uuid
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from gig_market_service.logging import get_logger
from gig_market_service.services.values import format_amount, now_iso

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable

EVENT_KINDS: frozenset[str] = frozenset({"new_bid", "bid_updated", "hired", "rejected"})


@dataclass(frozen=True)
class NotificationEvent:
    """One event addressed to one recipient."""

    recipient_id: str
    kind: str
    message: str
    gig_id: str
    gig_title: str
    bid_id: str | None = None
    amounts: dict[str, float] | None = None
    resubmission_allowed: bool | None = None
    event_id: str = field(default_factory=lambda: f"evt-{uuid.uuid4()}")
    timestamp: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        """Wire representation sent to the recipient."""
        return asdict(self)


class DeliveryChannel(Protocol):
    """Transport that can push an event to a user, wherever they are connected."""

    async def deliver(self, user_id: str, event: NotificationEvent) -> None: ...


class InProcessDeliveryChannel:
    """
    Presence registry for a single service instance.

    Every open stream subscribes a bounded queue under its user id; a user
    with several open streams receives each event on all of them. Users
    with no open stream are simply not reached.
    """

    def __init__(self, queue_size: int) -> None:
        self._queue_size = queue_size
        self._subscribers: dict[str, set[asyncio.Queue[NotificationEvent]]] = {}

    def subscribe(self, user_id: str) -> asyncio.Queue[NotificationEvent]:
        """Register a new stream for a user and return its queue."""
        queue: asyncio.Queue[NotificationEvent] = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.setdefault(user_id, set()).add(queue)
        get_logger(__name__).info("Notification stream opened", extra={"user_id": user_id})
        return queue

    def unsubscribe(self, user_id: str, queue: asyncio.Queue[NotificationEvent]) -> None:
        """Remove a stream's queue; forget the user once no streams remain."""
        queues = self._subscribers.get(user_id)
        if queues is None:
            return
        queues.discard(queue)
        if len(queues) == 0:
            del self._subscribers[user_id]
        get_logger(__name__).info("Notification stream closed", extra={"user_id": user_id})

    @property
    def connected_users(self) -> int:
        """Number of distinct users with at least one open stream."""
        return len(self._subscribers)

    async def deliver(self, user_id: str, event: NotificationEvent) -> None:
        for queue in list(self._subscribers.get(user_id, ())):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                get_logger(__name__).warning(
                    "Notification dropped, subscriber queue full",
                    extra={"user_id": user_id, "kind": event.kind, "event_id": event.event_id},
                )


class NotificationFanout:
    """
    Hands events to the delivery channel without making callers wait.

    Each event is delivered on its own task. A failed delivery is logged
    and never reaches the business operation that produced the event.
    """

    def __init__(self, channel: DeliveryChannel) -> None:
        self._channel = channel
        self._pending: set[asyncio.Task[None]] = set()

    def emit(self, event: NotificationEvent) -> None:
        """Schedule delivery of one event and return immediately."""
        task = asyncio.get_running_loop().create_task(self._deliver(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def emit_all(self, events: Iterable[NotificationEvent]) -> None:
        for event in events:
            self.emit(event)

    async def _deliver(self, event: NotificationEvent) -> None:
        try:
            await self._channel.deliver(event.recipient_id, event)
        except Exception:
            get_logger(__name__).warning(
                "Notification delivery failed",
                exc_info=True,
                extra={
                    "recipient_id": event.recipient_id,
                    "kind": event.kind,
                    "event_id": event.event_id,
                },
            )

    async def drain(self) -> None:
        """Wait for every scheduled delivery to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))


# ---------------------------------------------------------------------------
# Event builders
# ---------------------------------------------------------------------------


def new_bid_event(bid: dict[str, Any], owner_id: str) -> NotificationEvent:
    """Tell a gig owner that a bid arrived."""
    return NotificationEvent(
        recipient_id=owner_id,
        kind="new_bid",
        message=(
            f"{bid['freelancer_name']} placed a bid of ${format_amount(bid['price'])} "
            f'on your gig "{bid["gig_title"]}"'
        ),
        gig_id=bid["gig_id"],
        gig_title=bid["gig_title"],
        bid_id=bid["bid_id"],
        amounts={"price": bid["price"]},
    )


def bid_updated_event(
    before: dict[str, Any],
    after: dict[str, Any],
    owner_id: str,
) -> NotificationEvent:
    """Tell a gig owner that a bid was edited, with the old and new price."""
    return NotificationEvent(
        recipient_id=owner_id,
        kind="bid_updated",
        message=(
            f"{after['freelancer_name']} updated their bid on your gig "
            f'"{after["gig_title"]}" from ${format_amount(before["price"])} '
            f"to ${format_amount(after['price'])}"
        ),
        gig_id=after["gig_id"],
        gig_title=after["gig_title"],
        bid_id=after["bid_id"],
        amounts={"old_price": before["price"], "new_price": after["price"]},
    )


def hired_event(bid: dict[str, Any]) -> NotificationEvent:
    """Tell the winning freelancer they were hired."""
    return NotificationEvent(
        recipient_id=bid["freelancer_id"],
        kind="hired",
        message=f'Congratulations! You have been hired for "{bid["gig_title"]}"!',
        gig_id=bid["gig_id"],
        gig_title=bid["gig_title"],
        bid_id=bid["bid_id"],
        amounts={"price": bid["price"]},
    )


def rejected_event(bid: dict[str, Any], *, position_filled: bool) -> NotificationEvent:
    """Tell a freelancer their bid was rejected; they may always bid again."""
    if position_filled:
        message = (
            f'Your bid for "{bid["gig_title"]}" was not selected. The position has been filled.'
        )
    else:
        message = f'Your bid for "{bid["gig_title"]}" has been declined by the client.'
    return NotificationEvent(
        recipient_id=bid["freelancer_id"],
        kind="rejected",
        message=message,
        gig_id=bid["gig_id"],
        gig_title=bid["gig_title"],
        bid_id=bid["bid_id"],
        resubmission_allowed=True,
    )


def hire_events(
    winner: dict[str, Any],
    losers: Iterable[dict[str, Any]],
) -> list[NotificationEvent]:
    """One hired event for the winner, one rejected event per loser."""
    events = [hired_event(winner)]
    events.extend(rejected_event(loser, position_filled=True) for loser in losers)
    return events


# ---------------------------------------------------------------------------
# SSE stream
# ---------------------------------------------------------------------------


async def stream_notifications(
    channel: InProcessDeliveryChannel,
    user_id: str,
    keepalive_interval: int,
) -> AsyncIterator[dict[str, Any]]:
    """Async generator that yields SSE messages for one user's stream."""
    queue = channel.subscribe(user_id)
    try:
        yield {"retry": 3000}
        while True:
            try:
                event = await asyncio.wait_for(queue.get(), timeout=keepalive_interval)
            except TimeoutError:
                yield {"comment": "keepalive"}
                continue
            yield {
                "event": event.kind,
                "data": json.dumps(event.to_dict()),
                "id": event.event_id,
            }
    finally:
        channel.unsubscribe(user_id, queue)

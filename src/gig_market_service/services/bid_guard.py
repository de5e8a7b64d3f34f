"""Authorization and state checks in front of the bid ledger."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING, Any

from gig_market_service.core.exceptions import ServiceError
from gig_market_service.logging import get_logger
from gig_market_service.services.bid_ledger import storage_failure
from gig_market_service.services.marketplace_store import StaleStateError
from gig_market_service.services.notifications import (
    bid_updated_event,
    new_bid_event,
    rejected_event,
)
from gig_market_service.services.values import now_iso

if TYPE_CHECKING:
    from gig_market_service.services.bid_ledger import BidLedger
    from gig_market_service.services.gig_registry import GigRegistry
    from gig_market_service.services.marketplace_store import MarketplaceStore
    from gig_market_service.services.notifications import NotificationFanout


class BidSubmissionGuard:
    """Validates and authorizes bid creation, edits and owner rejections."""

    def __init__(
        self,
        store: MarketplaceStore,
        gig_registry: GigRegistry,
        bid_ledger: BidLedger,
        fanout: NotificationFanout,
    ) -> None:
        self._store = store
        self._gig_registry = gig_registry
        self._bid_ledger = bid_ledger
        self._fanout = fanout

    async def submit(
        self,
        gig_id: str,
        freelancer_id: str,
        message: object,
        price: object,
        freelancer_name: str | None = None,
    ) -> dict[str, Any]:
        """Place a bid on an open gig and tell the owner about it."""
        gig = self._gig_registry.get(gig_id)

        # Self-bids are refused whatever state the gig is in.
        if freelancer_id == gig["owner_id"]:
            raise ServiceError("SELF_BID", "You cannot bid on your own gig", 403)

        gig = self._gig_registry.get_open_or_fail(gig_id)

        bid = self._bid_ledger.create(
            gig_id=gig_id,
            freelancer_id=freelancer_id,
            message=message,
            price=price,
            freelancer_name=freelancer_name,
        )
        self._fanout.emit(new_bid_event(bid, gig["owner_id"]))
        return bid

    async def update(
        self,
        bid_id: str,
        acting_user_id: str,
        patch: dict[str, Any],
    ) -> dict[str, Any]:
        """Edit a bid; a rejected bid comes back as pending."""
        before, after = self._bid_ledger.update(bid_id, acting_user_id, **patch)
        self._fanout.emit(bid_updated_event(before, after, after["gig_owner_id"]))
        return after

    async def reject(self, bid_id: str, acting_user_id: str) -> dict[str, Any]:
        """Owner declines a single pending bid outside of a hire."""
        bid = self._bid_ledger.get(bid_id)

        if bid["gig_owner_id"] != acting_user_id:
            raise ServiceError("FORBIDDEN", "Not authorized to reject bids on this gig", 403)
        if bid["status"] != "pending":
            raise ServiceError(
                "BID_NOT_PENDING",
                "Only pending bids can be rejected",
                409,
                {"bid_id": bid_id, "status": bid["status"]},
            )

        # A concurrent hire or edit shows up here as BID_NOT_PENDING.
        try:
            with self._store.transaction() as unit:
                self._bid_ledger.reject(unit, bid_id, now_iso())
                rejected = unit.get_bid(bid_id)
        except (StaleStateError, sqlite3.Error) as exc:
            raise storage_failure("rejection", exc, bid_id=bid_id) from exc

        assert rejected is not None
        get_logger(__name__).info(
            "Bid rejected",
            extra={"bid_id": bid_id, "gig_id": rejected["gig_id"], "owner_id": acting_user_id},
        )
        self._fanout.emit(rejected_event(rejected, position_filled=False))
        return rejected

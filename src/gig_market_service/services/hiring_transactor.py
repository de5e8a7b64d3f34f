"""Atomic hire: one bid hired, its gig assigned, every sibling pending bid rejected."""

from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING, Any

from gig_market_service.core.exceptions import ServiceError
from gig_market_service.logging import get_logger
from gig_market_service.services.bid_ledger import storage_failure
from gig_market_service.services.marketplace_store import StaleStateError
from gig_market_service.services.notifications import hire_events
from gig_market_service.services.values import now_iso

if TYPE_CHECKING:
    from gig_market_service.services.bid_ledger import BidLedger
    from gig_market_service.services.gig_registry import GigRegistry
    from gig_market_service.services.marketplace_store import MarketplaceStore
    from gig_market_service.services.notifications import NotificationFanout


class HiringTransactor:
    """
    Coordinates a hiring decision.

    Preconditions are checked against a snapshot first so that ordinary
    refusals touch nothing. The writes then run in one ``BEGIN IMMEDIATE``
    transaction that re-checks the gig is still open as part of the
    assignment itself; the losers are enumerated inside that same
    transaction. Notifications go out only after commit.
    """

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

    async def hire(self, bid_id: str, acting_user_id: str) -> dict[str, Any]:
        """
        Hire a bid on behalf of the gig owner.

        Raises:
            ServiceError: BID_NOT_FOUND, FORBIDDEN, GIG_ALREADY_ASSIGNED,
                          BID_NOT_PENDING, or STORAGE_ERROR
        """
        bid = self._bid_ledger.get(bid_id)

        if bid["gig_owner_id"] != acting_user_id:
            raise ServiceError(
                "FORBIDDEN",
                "Not authorized to hire for this gig",
                403,
            )
        if bid["gig_status"] != "open":
            raise ServiceError(
                "GIG_ALREADY_ASSIGNED",
                "This gig has already been assigned",
                409,
                {"gig_id": bid["gig_id"]},
            )
        if bid["status"] != "pending":
            raise ServiceError(
                "BID_NOT_PENDING",
                "This bid has already been processed",
                409,
                {"bid_id": bid_id, "status": bid["status"]},
            )

        losers = self.apply_hire(bid["gig_id"], bid_id)

        hired = self._bid_ledger.get(bid_id)
        self._fanout.emit_all(hire_events(hired, losers))
        return hired

    def apply_hire(self, gig_id: str, bid_id: str) -> list[dict[str, Any]]:
        """
        Run the hiring writes as one all-or-nothing unit.

        Returns the sibling bids that were rejected. Any failure leaves the
        gig and all of its bids exactly as they were.
        """
        logger = get_logger(__name__)
        decided_at = now_iso()

        try:
            with self._store.transaction() as unit:
                self._gig_registry.mark_assigned(unit, gig_id, bid_id, decided_at)
                losers = self._bid_ledger.pending_siblings(unit, gig_id, bid_id)
                self._bid_ledger.hire(unit, bid_id, decided_at)
                for loser in losers:
                    self._bid_ledger.reject(unit, loser["bid_id"], decided_at)
        except StaleStateError as exc:
            logger.warning(
                "Hire aborted on storage constraint",
                extra={"gig_id": gig_id, "bid_id": bid_id, "error": str(exc)},
            )
            raise ServiceError(
                "GIG_ALREADY_ASSIGNED",
                "This gig has already been assigned",
                409,
                {"gig_id": gig_id},
            ) from exc
        except sqlite3.Error as exc:
            raise storage_failure("hire", exc, gig_id=gig_id, bid_id=bid_id) from exc

        logger.info(
            "Hire committed",
            extra={"gig_id": gig_id, "bid_id": bid_id, "rejected_count": len(losers)},
        )
        return losers

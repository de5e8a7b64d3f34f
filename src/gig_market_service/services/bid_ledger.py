"""Bid records and their pending / hired / rejected lifecycle."""

from __future__ import annotations

import sqlite3
import uuid
from typing import TYPE_CHECKING, Any

from gig_market_service.core.exceptions import ServiceError
from gig_market_service.logging import get_logger
from gig_market_service.services.marketplace_store import (
    DuplicatePendingBidError,
    StaleStateError,
)
from gig_market_service.services.values import is_positive_amount, now_iso

if TYPE_CHECKING:
    from gig_market_service.services.marketplace_store import MarketplaceStore, StoreTransaction

_UNSET: Any = object()


def _duplicate_pending_error(gig_id: str) -> ServiceError:
    return ServiceError(
        "BID_ALREADY_PENDING",
        "You already have a pending bid on this gig",
        409,
        {"gig_id": gig_id},
    )


def storage_failure(action: str, exc: Exception, **context: Any) -> ServiceError:
    """Log a failed write and build the 500 telling the caller nothing changed."""
    get_logger(__name__).error(
        "Write aborted on storage failure",
        exc_info=exc,
        extra={"action": action, **context},
    )
    return ServiceError(
        "STORAGE_ERROR",
        f"The {action} could not be saved; no changes were made, please retry",
        500,
        context,
    )


def _gig_not_open_error(gig_id: str, status: str) -> ServiceError:
    return ServiceError(
        "GIG_NOT_OPEN",
        "This gig is no longer accepting bids",
        409,
        {"gig_id": gig_id, "status": status},
    )


class BidLedger:
    """
    Owns bid records and the one-pending-bid-per-(gig, freelancer) rule.

    The partial unique index in the store is what actually holds the rule;
    the lookup done here only turns the common case into a clean error
    before the insert is attempted.
    """

    def __init__(
        self,
        store: MarketplaceStore,
        min_message_length: int,
        max_message_length: int,
    ) -> None:
        self._store = store
        self._min_message_length = min_message_length
        self._max_message_length = max_message_length

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_message(self, message: object) -> str:
        """Trim and length-check a bid message."""
        if not isinstance(message, str):
            raise ServiceError("INVALID_PAYLOAD", "Message must be a string", 400)
        trimmed = message.strip()
        if len(trimmed) < self._min_message_length:
            raise ServiceError(
                "MESSAGE_TOO_SHORT",
                f"Message must be at least {self._min_message_length} characters",
                400,
            )
        if len(trimmed) > self._max_message_length:
            raise ServiceError(
                "MESSAGE_TOO_LONG",
                f"Message cannot exceed {self._max_message_length} characters",
                400,
            )
        return trimmed

    @staticmethod
    def validate_price(price: object) -> float:
        """Check that a price is a positive number."""
        if not is_positive_amount(price):
            raise ServiceError("INVALID_PRICE", "Price must be a positive number", 400)
        return float(price)  # type: ignore[arg-type]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(
        self,
        gig_id: str,
        freelancer_id: str,
        message: object,
        price: object,
        freelancer_name: str | None = None,
    ) -> dict[str, Any]:
        """
        Insert a new pending bid.

        The gig is re-read inside the write transaction so that a hire
        committed between the caller's check and this insert is not missed.
        """
        trimmed = self.validate_message(message)
        amount = self.validate_price(price)
        created_at = now_iso()
        bid_id = f"bid-{uuid.uuid4()}"

        try:
            with self._store.transaction() as unit:
                gig = unit.get_gig(gig_id)
                if gig is None:
                    raise ServiceError("GIG_NOT_FOUND", "Gig not found", 404)
                if gig["status"] != "open":
                    raise _gig_not_open_error(gig_id, gig["status"])
                if unit.find_pending_bid(gig_id, freelancer_id) is not None:
                    raise _duplicate_pending_error(gig_id)

                unit.insert_bid(
                    {
                        "bid_id": bid_id,
                        "gig_id": gig_id,
                        "freelancer_id": freelancer_id,
                        "freelancer_name": freelancer_name or freelancer_id,
                        "message": trimmed,
                        "price": amount,
                        "status": "pending",
                        "created_at": created_at,
                        "updated_at": created_at,
                    }
                )
                bid = unit.get_bid(bid_id)
        except DuplicatePendingBidError as exc:
            raise _duplicate_pending_error(gig_id) from exc
        except (StaleStateError, sqlite3.Error) as exc:
            raise storage_failure("bid", exc, gig_id=gig_id) from exc

        assert bid is not None
        get_logger(__name__).info(
            "Bid submitted",
            extra={
                "bid_id": bid_id,
                "gig_id": gig_id,
                "freelancer_id": freelancer_id,
                "price": amount,
            },
        )
        return bid

    def update(
        self,
        bid_id: str,
        actor_id: str,
        *,
        price: object = _UNSET,
        message: object = _UNSET,
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        """
        Edit a bid's price and/or message.

        A rejected bid edited this way goes back to pending. Returns the bid
        as it was before the edit and as it is after.
        """
        updates: dict[str, Any] = {}
        if price is not _UNSET:
            updates["price"] = self.validate_price(price)
        if message is not _UNSET:
            updates["message"] = self.validate_message(message)
        if len(updates) == 0:
            raise ServiceError(
                "INVALID_PAYLOAD",
                "At least one of 'price' or 'message' must be provided",
                400,
            )

        try:
            with self._store.transaction() as unit:
                before = unit.get_bid(bid_id)
                if before is None:
                    raise ServiceError("BID_NOT_FOUND", "Bid not found", 404)
                if before["freelancer_id"] != actor_id:
                    raise ServiceError(
                        "FORBIDDEN",
                        "Not authorized to update this bid",
                        403,
                    )
                if before["status"] == "hired":
                    raise ServiceError(
                        "BID_ALREADY_HIRED",
                        "Cannot update a bid that has already been hired",
                        409,
                        {"bid_id": bid_id},
                    )
                if before["gig_status"] != "open":
                    raise _gig_not_open_error(before["gig_id"], before["gig_status"])

                updates["status"] = "pending"
                updates["updated_at"] = now_iso()
                updated = unit.update_bid(
                    bid_id,
                    updates,
                    expected_status=("pending", "rejected"),
                )
                if updated == 0:
                    raise ServiceError(
                        "BID_ALREADY_HIRED",
                        "Cannot update a bid that has already been hired",
                        409,
                        {"bid_id": bid_id},
                    )
                after = unit.get_bid(bid_id)
        except DuplicatePendingBidError as exc:
            raise _duplicate_pending_error(before["gig_id"]) from exc
        except (StaleStateError, sqlite3.Error) as exc:
            raise storage_failure("bid update", exc, bid_id=bid_id) from exc

        assert after is not None
        get_logger(__name__).info(
            "Bid updated",
            extra={
                "bid_id": bid_id,
                "gig_id": after["gig_id"],
                "previous_status": before["status"],
                "old_price": before["price"],
                "new_price": after["price"],
            },
        )
        return before, after

    @staticmethod
    def hire(unit: StoreTransaction, bid_id: str, decided_at: str) -> None:
        """Set a pending bid to hired. Only valid inside the hiring transaction."""
        updated = unit.update_bid(
            bid_id,
            {"status": "hired", "updated_at": decided_at},
            expected_status="pending",
        )
        if updated == 0:
            raise ServiceError(
                "BID_NOT_PENDING",
                "This bid has already been processed",
                409,
                {"bid_id": bid_id},
            )

    @staticmethod
    def reject(unit: StoreTransaction, bid_id: str, decided_at: str) -> None:
        """Set a pending bid to rejected inside the caller's transaction."""
        updated = unit.update_bid(
            bid_id,
            {"status": "rejected", "updated_at": decided_at},
            expected_status="pending",
        )
        if updated == 0:
            raise ServiceError(
                "BID_NOT_PENDING",
                "This bid has already been processed",
                409,
                {"bid_id": bid_id},
            )

    @staticmethod
    def pending_siblings(
        unit: StoreTransaction,
        gig_id: str,
        exclude_bid_id: str,
    ) -> list[dict[str, Any]]:
        """Pending bids on a gig other than the given one, read in the caller's transaction."""
        return unit.list_bids(gig_id, "pending", exclude_bid_id=exclude_bid_id)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, bid_id: str) -> dict[str, Any]:
        """Fetch a bid (with gig title, status and owner) or fail with BID_NOT_FOUND."""
        bid = self._store.get_bid(bid_id)
        if bid is None:
            raise ServiceError("BID_NOT_FOUND", "Bid not found", 404)
        return bid

    def list_by_gig(self, gig_id: str) -> list[dict[str, Any]]:
        """All bids on a gig, newest first."""
        return self._store.list_bids_for_gig(gig_id)

    def list_by_freelancer(self, freelancer_id: str) -> list[dict[str, Any]]:
        """All bids a freelancer has placed, newest first."""
        return self._store.list_bids_for_freelancer(freelancer_id)

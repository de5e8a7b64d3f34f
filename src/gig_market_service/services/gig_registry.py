"""Gig records and their open -> assigned lifecycle."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from gig_market_service.core.exceptions import ServiceError
from gig_market_service.logging import get_logger
from gig_market_service.services.values import is_positive_amount, now_iso

if TYPE_CHECKING:
    from gig_market_service.services.marketplace_store import MarketplaceStore, StoreTransaction


class GigRegistry:
    """
    Owns gig records and is the authority on whether a gig is still biddable.

    Status moves only from open to assigned, and only through
    ``mark_assigned`` inside the hiring transaction.
    """

    def __init__(
        self,
        store: MarketplaceStore,
        max_title_length: int,
        max_description_length: int,
    ) -> None:
        self._store = store
        self._max_title_length = max_title_length
        self._max_description_length = max_description_length

    def create(
        self,
        owner_id: str,
        title: object,
        description: object,
        budget: object,
    ) -> dict[str, Any]:
        """Validate and persist a new open gig."""
        if not isinstance(title, str) or len(title.strip()) == 0:
            raise ServiceError("INVALID_PAYLOAD", "Title is required", 400)
        if not isinstance(description, str) or len(description.strip()) == 0:
            raise ServiceError("INVALID_PAYLOAD", "Description is required", 400)

        title = title.strip()
        description = description.strip()

        if len(title) > self._max_title_length:
            raise ServiceError(
                "TITLE_TOO_LONG",
                f"Title cannot exceed {self._max_title_length} characters",
                400,
            )
        if len(description) > self._max_description_length:
            raise ServiceError(
                "DESCRIPTION_TOO_LONG",
                f"Description cannot exceed {self._max_description_length} characters",
                400,
            )
        if not is_positive_amount(budget):
            raise ServiceError("INVALID_BUDGET", "Budget must be a positive number", 400)

        gig: dict[str, Any] = {
            "gig_id": f"g-{uuid.uuid4()}",
            "owner_id": owner_id,
            "title": title,
            "description": description,
            "budget": float(budget),  # type: ignore[arg-type]
            "status": "open",
            "hired_bid_id": None,
            "created_at": now_iso(),
            "assigned_at": None,
        }
        self._store.insert_gig(gig)

        get_logger(__name__).info(
            "Gig created",
            extra={"gig_id": gig["gig_id"], "owner_id": owner_id, "budget": gig["budget"]},
        )
        return gig

    def get(self, gig_id: str) -> dict[str, Any]:
        """Fetch a gig or fail with GIG_NOT_FOUND."""
        gig = self._store.get_gig(gig_id)
        if gig is None:
            raise ServiceError("GIG_NOT_FOUND", "Gig not found", 404)
        return gig

    def get_open_or_fail(self, gig_id: str) -> dict[str, Any]:
        """Fetch a gig that still accepts bids."""
        gig = self.get(gig_id)
        if gig["status"] != "open":
            raise ServiceError(
                "GIG_NOT_OPEN",
                "This gig is no longer accepting bids",
                409,
                {"gig_id": gig_id, "status": gig["status"]},
            )
        return gig

    def mark_assigned(
        self,
        unit: StoreTransaction,
        gig_id: str,
        hired_bid_id: str,
        assigned_at: str,
    ) -> None:
        """
        Flip an open gig to assigned inside the caller's transaction.

        The status check and the write are one statement, so of two
        concurrent hires on the same gig only one can observe ``open``.
        """
        updated = unit.update_gig(
            gig_id,
            {"status": "assigned", "hired_bid_id": hired_bid_id, "assigned_at": assigned_at},
            expected_status="open",
        )
        if updated == 0:
            raise ServiceError(
                "GIG_ALREADY_ASSIGNED",
                "This gig has already been assigned",
                409,
                {"gig_id": gig_id},
            )

    def list_open(
        self,
        search: str | None = None,
        offset: int | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """List open gigs, newest first."""
        return self._store.list_gigs(
            status="open",
            owner_id=None,
            search=search,
            limit=limit,
            offset=offset,
        )

    def list_by_owner(self, owner_id: str) -> list[dict[str, Any]]:
        """List every gig posted by an owner, newest first."""
        return self._store.list_gigs(
            status=None,
            owner_id=owner_id,
            search=None,
            limit=None,
            offset=None,
        )

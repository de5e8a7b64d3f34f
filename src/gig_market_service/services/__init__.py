"""Service layer components."""

from gig_market_service.services.bid_guard import BidSubmissionGuard
from gig_market_service.services.bid_ledger import BidLedger
from gig_market_service.services.gig_registry import GigRegistry
from gig_market_service.services.hiring_transactor import HiringTransactor
from gig_market_service.services.marketplace_store import MarketplaceStore
from gig_market_service.services.notifications import (
    InProcessDeliveryChannel,
    NotificationFanout,
)
from gig_market_service.services.token_validator import TokenValidator

__all__ = [
    "BidLedger",
    "BidSubmissionGuard",
    "GigRegistry",
    "HiringTransactor",
    "InProcessDeliveryChannel",
    "MarketplaceStore",
    "NotificationFanout",
    "TokenValidator",
]

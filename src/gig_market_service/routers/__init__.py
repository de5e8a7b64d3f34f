"""API routers."""

from gig_market_service.routers import bids, gigs, health, notifications

__all__ = ["bids", "gigs", "health", "notifications"]

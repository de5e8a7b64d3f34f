"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from gig_market_service.core.state import get_app_state
from gig_market_service.schemas import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check service health and return statistics."""
    state = get_app_state()
    gigs_by_status: dict[str, int] = {}
    bids_by_status: dict[str, int] = {}
    if state.store is not None:
        gigs_by_status = state.store.count_gigs_by_status()
        bids_by_status = state.store.count_bids_by_status()
    connected_users = 0
    if state.delivery_channel is not None:
        connected_users = state.delivery_channel.connected_users
    return HealthResponse(
        status="ok",
        uptime_seconds=state.uptime_seconds,
        started_at=state.started_at,
        total_gigs=sum(gigs_by_status.values()),
        gigs_by_status=gigs_by_status,
        total_bids=sum(bids_by_status.values()),
        bids_by_status=bids_by_status,
        connected_users=connected_users,
    )

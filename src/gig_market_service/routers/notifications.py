"""Real-time notification stream endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Request
from sse_starlette.sse import EventSourceResponse

from gig_market_service.config import get_settings
from gig_market_service.core.state import get_app_state
from gig_market_service.routers.validation import verify_bearer_token
from gig_market_service.services.notifications import stream_notifications

router = APIRouter()


@router.get("/notifications/stream")
async def notification_stream(request: Request) -> EventSourceResponse:
    """Server-Sent Events stream of the caller's notifications."""
    state = get_app_state()
    payload = await verify_bearer_token(
        state.token_validator,
        request.headers.get("authorization"),
        "subscribe_notifications",
    )

    if state.delivery_channel is None:
        msg = "Delivery channel not initialized"
        raise RuntimeError(msg)

    settings = get_settings()
    return EventSourceResponse(
        stream_notifications(
            state.delivery_channel,
            payload["_signer_id"],
            settings.notifications.keepalive_interval_seconds,
        ),
        headers={"X-Accel-Buffering": "no"},
    )

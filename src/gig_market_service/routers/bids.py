"""Bid submission, editing, rejection, and hiring endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from gig_market_service.core.exceptions import ServiceError
from gig_market_service.core.state import get_app_state
from gig_market_service.routers.validation import (
    require_field,
    require_path_match,
    verify_bearer_token,
    verify_body_token,
)
from gig_market_service.schemas import BidListResponse, BidResponse

router = APIRouter()


def _bid_content(bid: dict[str, Any]) -> dict[str, Any]:
    return BidResponse(**bid).model_dump()


# ---------------------------------------------------------------------------
# POST /bids — submit bid
# ---------------------------------------------------------------------------


@router.post("/bids", status_code=201)
async def submit_bid(request: Request) -> JSONResponse:
    """Place a bid on an open gig."""
    state = get_app_state()
    payload = await verify_body_token(state.token_validator, await request.body(), "submit_bid")

    gig_id = require_field(payload, "gig_id")
    if not isinstance(gig_id, str) or not gig_id:
        raise ServiceError("INVALID_PAYLOAD", "gig_id must be a non-empty string", 400)

    freelancer_name = payload.get("freelancer_name")
    if freelancer_name is not None and not isinstance(freelancer_name, str):
        raise ServiceError("INVALID_PAYLOAD", "freelancer_name must be a string", 400)

    if state.bid_guard is None:
        msg = "BidSubmissionGuard not initialized"
        raise RuntimeError(msg)

    bid = await state.bid_guard.submit(
        gig_id=gig_id,
        freelancer_id=payload["_signer_id"],
        message=require_field(payload, "message"),
        price=require_field(payload, "price"),
        freelancer_name=freelancer_name,
    )
    return JSONResponse(status_code=201, content=_bid_content(bid))


# ---------------------------------------------------------------------------
# GET /bids/mine — caller's bid history
# ---------------------------------------------------------------------------


@router.get("/bids/mine")
async def list_my_bids(request: Request) -> BidListResponse:
    """List every bid the caller has placed, newest first."""
    state = get_app_state()
    payload = await verify_bearer_token(
        state.token_validator,
        request.headers.get("authorization"),
        "list_my_bids",
    )

    if state.bid_ledger is None:
        msg = "BidLedger not initialized"
        raise RuntimeError(msg)

    bids = state.bid_ledger.list_by_freelancer(payload["_signer_id"])
    return BidListResponse(bids=[BidResponse(**bid) for bid in bids])


# ---------------------------------------------------------------------------
# PATCH /bids/{bid_id} — edit price and/or message
# ---------------------------------------------------------------------------


@router.patch("/bids/{bid_id}")
async def update_bid(bid_id: str, request: Request) -> JSONResponse:
    """Edit a bid. Editing a rejected bid puts it back to pending."""
    state = get_app_state()
    payload = await verify_body_token(state.token_validator, await request.body(), "update_bid")
    require_path_match(payload, "bid_id", bid_id)

    patch = {key: payload[key] for key in ("price", "message") if key in payload}

    if state.bid_guard is None:
        msg = "BidSubmissionGuard not initialized"
        raise RuntimeError(msg)

    bid = await state.bid_guard.update(bid_id, payload["_signer_id"], patch)
    return JSONResponse(status_code=200, content=_bid_content(bid))


# ---------------------------------------------------------------------------
# POST /bids/{bid_id}/reject — owner declines one bid
# ---------------------------------------------------------------------------


@router.post("/bids/{bid_id}/reject")
async def reject_bid(bid_id: str, request: Request) -> JSONResponse:
    """Decline a single pending bid without hiring anyone."""
    state = get_app_state()
    payload = await verify_body_token(state.token_validator, await request.body(), "reject_bid")
    require_path_match(payload, "bid_id", bid_id)

    if state.bid_guard is None:
        msg = "BidSubmissionGuard not initialized"
        raise RuntimeError(msg)

    bid = await state.bid_guard.reject(bid_id, payload["_signer_id"])
    return JSONResponse(status_code=200, content=_bid_content(bid))


# ---------------------------------------------------------------------------
# POST /bids/{bid_id}/hire — hire, assign gig, reject the rest
# ---------------------------------------------------------------------------


@router.post("/bids/{bid_id}/hire")
async def hire_bid(bid_id: str, request: Request) -> JSONResponse:
    """Hire a bid. Every other pending bid on the gig is rejected in the same step."""
    state = get_app_state()
    payload = await verify_body_token(state.token_validator, await request.body(), "hire_bid")
    require_path_match(payload, "bid_id", bid_id)

    if state.hiring_transactor is None:
        msg = "HiringTransactor not initialized"
        raise RuntimeError(msg)

    bid = await state.hiring_transactor.hire(bid_id, payload["_signer_id"])
    return JSONResponse(status_code=200, content=_bid_content(bid))

"""Gig posting and listing endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from gig_market_service.core.exceptions import ServiceError
from gig_market_service.core.state import get_app_state
from gig_market_service.routers.validation import (
    require_field,
    require_path_match,
    verify_bearer_token,
    verify_body_token,
)
from gig_market_service.schemas import (
    BidListResponse,
    BidResponse,
    GigListResponse,
    GigResponse,
)

router = APIRouter()

_MAX_PAGE_SIZE = 100
# Largest value SQLite can bind as an INTEGER.
_MAX_SQLITE_INTEGER = 2**63 - 1


def _parse_non_negative_int(raw: str | None, name: str) -> int | None:
    if raw is None:
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ServiceError("INVALID_PARAMETER", f"{name} must be an integer", 400) from None
    if value < 0:
        raise ServiceError("INVALID_PARAMETER", f"{name} must be >= 0", 400)
    if value > _MAX_SQLITE_INTEGER:
        raise ServiceError("INVALID_PARAMETER", f"{name} is too large", 400)
    return value


# ---------------------------------------------------------------------------
# POST /gigs — create gig
# ---------------------------------------------------------------------------


@router.post("/gigs", status_code=201)
async def create_gig(request: Request) -> JSONResponse:
    """Post a new gig. The signer becomes its owner."""
    state = get_app_state()
    payload = await verify_body_token(state.token_validator, await request.body(), "create_gig")

    if state.gig_registry is None:
        msg = "GigRegistry not initialized"
        raise RuntimeError(msg)

    gig = state.gig_registry.create(
        owner_id=payload["_signer_id"],
        title=require_field(payload, "title"),
        description=require_field(payload, "description"),
        budget=require_field(payload, "budget"),
    )
    return JSONResponse(status_code=201, content=GigResponse(**gig).model_dump())


# ---------------------------------------------------------------------------
# GET /gigs — open gigs, newest first
# ---------------------------------------------------------------------------


@router.get("/gigs")
async def list_gigs(
    search: str | None = Query(None),
    offset: str | None = Query(None),
    limit: str | None = Query(None),
) -> GigListResponse:
    """List open gigs with optional title search and pagination."""
    offset_int = _parse_non_negative_int(offset, "offset")
    limit_int = _parse_non_negative_int(limit, "limit")
    if limit_int is not None:
        limit_int = min(limit_int, _MAX_PAGE_SIZE)

    state = get_app_state()
    if state.gig_registry is None:
        msg = "GigRegistry not initialized"
        raise RuntimeError(msg)

    gigs = state.gig_registry.list_open(search=search, offset=offset_int, limit=limit_int)
    return GigListResponse(gigs=[GigResponse(**gig) for gig in gigs])


# ---------------------------------------------------------------------------
# GET /gigs/mine — caller's own gigs, any status
# MUST be before GET /gigs/{gig_id}
# ---------------------------------------------------------------------------


@router.get("/gigs/mine")
async def list_my_gigs(request: Request) -> GigListResponse:
    """List every gig the caller has posted."""
    state = get_app_state()
    payload = await verify_bearer_token(
        state.token_validator,
        request.headers.get("authorization"),
        "list_my_gigs",
    )

    if state.gig_registry is None:
        msg = "GigRegistry not initialized"
        raise RuntimeError(msg)

    gigs = state.gig_registry.list_by_owner(payload["_signer_id"])
    return GigListResponse(gigs=[GigResponse(**gig) for gig in gigs])


# ---------------------------------------------------------------------------
# GET /gigs/{gig_id}
# ---------------------------------------------------------------------------


@router.get("/gigs/{gig_id}")
async def get_gig(gig_id: str) -> GigResponse:
    """Fetch a single gig."""
    state = get_app_state()
    if state.gig_registry is None:
        msg = "GigRegistry not initialized"
        raise RuntimeError(msg)

    return GigResponse(**state.gig_registry.get(gig_id))


# ---------------------------------------------------------------------------
# GET /gigs/{gig_id}/bids — owner only
# ---------------------------------------------------------------------------


@router.get("/gigs/{gig_id}/bids")
async def list_gig_bids(gig_id: str, request: Request) -> BidListResponse:
    """List all bids on a gig, newest first. Only the gig owner may look."""
    state = get_app_state()
    payload = await verify_bearer_token(
        state.token_validator,
        request.headers.get("authorization"),
        "list_bids",
    )
    require_path_match(payload, "gig_id", gig_id)

    if state.gig_registry is None or state.bid_ledger is None:
        msg = "Marketplace services not initialized"
        raise RuntimeError(msg)

    gig = state.gig_registry.get(gig_id)
    if gig["owner_id"] != payload["_signer_id"]:
        raise ServiceError("FORBIDDEN", "Not authorized to view bids for this gig", 403)

    bids = state.bid_ledger.list_by_gig(gig_id)
    return BidListResponse(bids=[BidResponse(**bid) for bid in bids])

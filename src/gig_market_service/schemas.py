"""Pydantic request/response models for the API."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict


class HealthResponse(BaseModel):
    """Response model for GET /health."""

    model_config = ConfigDict(extra="forbid")
    status: Literal["ok"]
    uptime_seconds: float
    started_at: str
    total_gigs: int
    gigs_by_status: dict[str, int]
    total_bids: int
    bids_by_status: dict[str, int]
    connected_users: int


class ErrorResponse(BaseModel):
    """Standard error response model."""

    model_config = ConfigDict(extra="forbid")
    error: str
    message: str
    details: dict[str, object]


class GigResponse(BaseModel):
    """Full gig record."""

    model_config = ConfigDict(extra="forbid")
    gig_id: str
    owner_id: str
    title: str
    description: str
    budget: float
    status: Literal["open", "assigned"]
    hired_bid_id: str | None
    created_at: str
    assigned_at: str | None


class GigListResponse(BaseModel):
    """Response model for gig listings."""

    model_config = ConfigDict(extra="forbid")
    gigs: list[GigResponse]


class BidResponse(BaseModel):
    """Full bid record with the title and status of its gig."""

    model_config = ConfigDict(extra="forbid")
    bid_id: str
    gig_id: str
    gig_title: str
    gig_owner_id: str
    gig_status: Literal["open", "assigned"]
    freelancer_id: str
    freelancer_name: str
    message: str
    price: float
    status: Literal["pending", "hired", "rejected"]
    created_at: str
    updated_at: str


class BidListResponse(BaseModel):
    """Response model for bid listings."""

    model_config = ConfigDict(extra="forbid")
    bids: list[BidResponse]

"""Unit tests for GigRegistry."""

from __future__ import annotations

import pytest

from gig_market_service.core.exceptions import ServiceError

pytestmark = pytest.mark.unit


def test_create_gig_is_open_and_trimmed(gig_registry, store) -> None:
    gig = gig_registry.create("a-owner", "  Logo design  ", "A clean vector logo", 150)

    assert gig["gig_id"].startswith("g-")
    assert gig["status"] == "open"
    assert gig["title"] == "Logo design"
    assert gig["budget"] == 150.0
    assert gig["assigned_at"] is None
    assert store.get_gig(gig["gig_id"]) == gig


@pytest.mark.parametrize(
    ("title", "description", "budget", "error"),
    [
        ("", "desc", 10, "INVALID_PAYLOAD"),
        ("Title", "   ", 10, "INVALID_PAYLOAD"),
        ("Title", 42, 10, "INVALID_PAYLOAD"),
        ("x" * 101, "desc", 10, "TITLE_TOO_LONG"),
        ("Title", "d" * 5001, 10, "DESCRIPTION_TOO_LONG"),
        ("Title", "desc", 0, "INVALID_BUDGET"),
        ("Title", "desc", -5, "INVALID_BUDGET"),
        ("Title", "desc", "100", "INVALID_BUDGET"),
        ("Title", "desc", True, "INVALID_BUDGET"),
        ("Title", "desc", float("inf"), "INVALID_BUDGET"),
    ],
)
def test_create_rejects_invalid_fields(gig_registry, store, title, description, budget, error):
    with pytest.raises(ServiceError) as exc_info:
        gig_registry.create("a-owner", title, description, budget)

    assert exc_info.value.error == error
    assert exc_info.value.status_code == 400
    assert store.count_gigs_by_status() == {"open": 0, "assigned": 0}


def test_get_missing_gig(gig_registry) -> None:
    with pytest.raises(ServiceError) as exc_info:
        gig_registry.get("g-missing")

    assert exc_info.value.error == "GIG_NOT_FOUND"
    assert exc_info.value.status_code == 404


def test_get_open_or_fail(gig_registry, store) -> None:
    gig = gig_registry.create("a-owner", "Logo", "A clean vector logo", 150)
    assert gig_registry.get_open_or_fail(gig["gig_id"])["gig_id"] == gig["gig_id"]

    with store.transaction() as unit:
        gig_registry.mark_assigned(unit, gig["gig_id"], "bid-x", "2026-01-01T00:00:00Z")

    with pytest.raises(ServiceError) as exc_info:
        gig_registry.get_open_or_fail(gig["gig_id"])

    assert exc_info.value.error == "GIG_NOT_OPEN"
    assert exc_info.value.status_code == 409
    assert exc_info.value.message == "This gig is no longer accepting bids"


def test_mark_assigned_is_test_and_set(gig_registry, store) -> None:
    gig = gig_registry.create("a-owner", "Logo", "A clean vector logo", 150)

    with store.transaction() as unit:
        gig_registry.mark_assigned(unit, gig["gig_id"], "bid-1", "2026-01-01T00:00:00Z")

    with pytest.raises(ServiceError) as exc_info, store.transaction() as unit:
        gig_registry.mark_assigned(unit, gig["gig_id"], "bid-2", "2026-01-01T00:00:01Z")

    assert exc_info.value.error == "GIG_ALREADY_ASSIGNED"
    assigned = store.get_gig(gig["gig_id"])
    assert assigned is not None
    assert assigned["status"] == "assigned"
    assert assigned["hired_bid_id"] == "bid-1"
    assert assigned["assigned_at"] == "2026-01-01T00:00:00Z"


def test_list_open_excludes_assigned_and_list_by_owner_includes_all(gig_registry, store) -> None:
    first = gig_registry.create("a-owner", "Logo", "A clean vector logo", 150)
    second = gig_registry.create("a-owner", "Site", "A landing page", 400)
    gig_registry.create("a-other", "Copy", "Marketing copy", 80)

    with store.transaction() as unit:
        gig_registry.mark_assigned(unit, first["gig_id"], "bid-1", "2026-01-01T00:00:00Z")

    open_ids = [g["gig_id"] for g in gig_registry.list_open()]
    assert first["gig_id"] not in open_ids
    assert second["gig_id"] in open_ids
    assert len(open_ids) == 2

    owned = [g["gig_id"] for g in gig_registry.list_by_owner("a-owner")]
    assert owned == [second["gig_id"], first["gig_id"]]

    assert [g["title"] for g in gig_registry.list_open(search="sit")] == ["Site"]

"""Unit test fixtures — auto-clear caches between tests, build wired services."""

from __future__ import annotations

import pytest

from gig_market_service.config import clear_settings_cache
from gig_market_service.core.state import reset_app_state
from gig_market_service.services.bid_guard import BidSubmissionGuard
from gig_market_service.services.bid_ledger import BidLedger
from gig_market_service.services.gig_registry import GigRegistry
from gig_market_service.services.hiring_transactor import HiringTransactor
from gig_market_service.services.marketplace_store import MarketplaceStore
from gig_market_service.services.notifications import NotificationFanout
from tests.helpers import RecordingChannel


@pytest.fixture(autouse=True)
def _clear_caches():
    """Clear settings cache and app state between tests."""
    clear_settings_cache()
    reset_app_state()
    yield
    clear_settings_cache()
    reset_app_state()


@pytest.fixture
def store(tmp_path):
    marketplace_store = MarketplaceStore(db_path=str(tmp_path / "gig-market.db"))
    yield marketplace_store
    marketplace_store.close()


@pytest.fixture
def gig_registry(store):
    return GigRegistry(store=store, max_title_length=100, max_description_length=5000)


@pytest.fixture
def bid_ledger(store):
    return BidLedger(store=store, min_message_length=10, max_message_length=1000)


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def fanout(channel):
    return NotificationFanout(channel=channel)


@pytest.fixture
def bid_guard(store, gig_registry, bid_ledger, fanout):
    return BidSubmissionGuard(
        store=store,
        gig_registry=gig_registry,
        bid_ledger=bid_ledger,
        fanout=fanout,
    )


@pytest.fixture
def hiring_transactor(store, gig_registry, bid_ledger, fanout):
    return HiringTransactor(
        store=store,
        gig_registry=gig_registry,
        bid_ledger=bid_ledger,
        fanout=fanout,
    )

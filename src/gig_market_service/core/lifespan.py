"""Application lifecycle management."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from gig_market_service.clients.identity_client import IdentityClient
from gig_market_service.config import get_settings
from gig_market_service.core.state import init_app_state
from gig_market_service.logging import get_logger, setup_logging
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

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle."""
    # === STARTUP ===
    settings = get_settings()

    setup_logging(settings.logging.level, settings.service.name, settings.logging.directory)
    logger = get_logger(__name__)

    state = init_app_state()

    store = MarketplaceStore(db_path=settings.database.path)
    state.store = store

    identity_client = IdentityClient(
        base_url=settings.identity.base_url,
        verify_jws_path=settings.identity.verify_jws_path,
        timeout_seconds=settings.identity.timeout_seconds,
    )
    state.identity_client = identity_client
    state.token_validator = TokenValidator(identity_client=identity_client)

    delivery_channel = InProcessDeliveryChannel(queue_size=settings.notifications.queue_size)
    state.delivery_channel = delivery_channel
    fanout = NotificationFanout(channel=delivery_channel)
    state.fanout = fanout

    gig_registry = GigRegistry(
        store=store,
        max_title_length=settings.gigs.max_title_length,
        max_description_length=settings.gigs.max_description_length,
    )
    state.gig_registry = gig_registry
    bid_ledger = BidLedger(
        store=store,
        min_message_length=settings.bids.min_message_length,
        max_message_length=settings.bids.max_message_length,
    )
    state.bid_ledger = bid_ledger
    state.bid_guard = BidSubmissionGuard(
        store=store,
        gig_registry=gig_registry,
        bid_ledger=bid_ledger,
        fanout=fanout,
    )
    state.hiring_transactor = HiringTransactor(
        store=store,
        gig_registry=gig_registry,
        bid_ledger=bid_ledger,
        fanout=fanout,
    )

    logger.info(
        "Service starting",
        extra={
            "service": settings.service.name,
            "version": settings.service.version,
            "port": settings.server.port,
            "db_path": settings.database.path,
            "identity_base_url": settings.identity.base_url,
        },
    )

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Service shutting down", extra={"uptime_seconds": state.uptime_seconds})

    await fanout.drain()
    store.close()
    await identity_client.close()

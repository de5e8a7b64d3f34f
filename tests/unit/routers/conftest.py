"""Router test fixtures with a mocked Identity service."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from gig_market_service.app import create_app
from gig_market_service.config import clear_settings_cache
from gig_market_service.core.lifespan import lifespan
from gig_market_service.core.state import get_app_state, reset_app_state
from tests.helpers import fake_verify_jws, generate_keypair, make_config_yaml, make_jws_token

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

    from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
    from httpx import Response

# ---------------------------------------------------------------------------
# Fixed agent IDs
# ---------------------------------------------------------------------------
ALICE_AGENT_ID = "a-alice-uuid"
BOB_AGENT_ID = "a-bob-uuid"
CAROL_AGENT_ID = "a-carol-uuid"

BID_MESSAGE = "I have shipped a dozen of these already"


class MarketplaceApi:
    """Signs requests as a given agent and calls the marketplace endpoints."""

    def __init__(self, client: AsyncClient, keys: dict[str, Ed25519PrivateKey]) -> None:
        self.client = client
        self._keys = keys

    def token(self, agent_id: str, payload: dict[str, Any]) -> str:
        return make_jws_token(self._keys[agent_id], agent_id, payload)

    def bearer(self, agent_id: str, payload: dict[str, Any]) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token(agent_id, payload)}"}

    async def create_gig(
        self,
        owner_id: str = ALICE_AGENT_ID,
        title: str = "Logo design",
        budget: float = 500,
    ) -> Response:
        payload = {
            "action": "create_gig",
            "title": title,
            "description": "A clean vector logo for a bakery",
            "budget": budget,
        }
        return await self.client.post("/gigs", json={"token": self.token(owner_id, payload)})

    async def submit_bid(
        self,
        gig_id: str,
        freelancer_id: str,
        price: float = 100,
        message: str = BID_MESSAGE,
        **extra: Any,
    ) -> Response:
        payload = {
            "action": "submit_bid",
            "gig_id": gig_id,
            "message": message,
            "price": price,
            **extra,
        }
        return await self.client.post("/bids", json={"token": self.token(freelancer_id, payload)})

    async def update_bid(self, bid_id: str, agent_id: str, **changes: Any) -> Response:
        payload = {"action": "update_bid", "bid_id": bid_id, **changes}
        return await self.client.patch(
            f"/bids/{bid_id}", json={"token": self.token(agent_id, payload)}
        )

    async def reject_bid(self, bid_id: str, agent_id: str) -> Response:
        payload = {"action": "reject_bid", "bid_id": bid_id}
        return await self.client.post(
            f"/bids/{bid_id}/reject", json={"token": self.token(agent_id, payload)}
        )

    async def hire_bid(self, bid_id: str, agent_id: str) -> Response:
        payload = {"action": "hire_bid", "bid_id": bid_id}
        return await self.client.post(
            f"/bids/{bid_id}/hire", json={"token": self.token(agent_id, payload)}
        )


# ---------------------------------------------------------------------------
# App + client fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
async def app(tmp_path: Path) -> AsyncIterator[Any]:
    """Create a test app with temp database and a mocked Identity service."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(make_config_yaml(str(tmp_path / "test.db"), str(tmp_path / "logs")))

    old_config = os.environ.get("CONFIG_PATH")
    os.environ["CONFIG_PATH"] = str(config_path)

    clear_settings_cache()
    reset_app_state()

    test_app = create_app()
    async with lifespan(test_app):
        state = get_app_state()

        # Mock Identity client: trusts the kid header, fails tampered tokens
        mock_identity = AsyncMock()
        mock_identity.verify_jws = AsyncMock(side_effect=fake_verify_jws)
        mock_identity.close = AsyncMock()
        state.identity_client = mock_identity

        yield test_app

    reset_app_state()
    clear_settings_cache()
    if old_config is None:
        os.environ.pop("CONFIG_PATH", None)
    else:
        os.environ["CONFIG_PATH"] = old_config


@pytest.fixture
async def client(app: Any) -> AsyncIterator[AsyncClient]:
    """Create an async HTTP client for the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as async_client:
        yield async_client


@pytest.fixture
def recorded_events(app: Any) -> list[tuple[str, Any]]:
    """Capture every event handed to the delivery channel."""
    state = get_app_state()
    assert state.delivery_channel is not None
    delivered: list[tuple[str, Any]] = []
    original_deliver = state.delivery_channel.deliver

    async def recording_deliver(user_id: str, event: Any) -> None:
        delivered.append((user_id, event))
        await original_deliver(user_id, event)

    state.delivery_channel.deliver = recording_deliver  # type: ignore[method-assign]
    return delivered


@pytest.fixture
def api(client: AsyncClient) -> MarketplaceApi:
    agent_ids = (ALICE_AGENT_ID, BOB_AGENT_ID, CAROL_AGENT_ID)
    keys = {agent_id: generate_keypair()[0] for agent_id in agent_ids}
    return MarketplaceApi(client, keys)


@pytest.fixture
async def open_gig(api: MarketplaceApi) -> dict[str, Any]:
    """An open gig owned by Alice."""
    response = await api.create_gig()
    assert response.status_code == 201
    gig: dict[str, Any] = response.json()
    return gig

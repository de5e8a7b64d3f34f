"""Shared test helpers for JWS authentication and mocking."""

from __future__ import annotations

import base64
import json
from typing import Any

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from joserfc import jws
from joserfc.jwk import OKPKey

from gig_market_service.core.exceptions import ServiceError


def generate_keypair() -> tuple[Ed25519PrivateKey, str]:
    """Generate Ed25519 keypair -> (private_key, 'ed25519:<base64_pub>')."""
    private_key = Ed25519PrivateKey.generate()
    pub_bytes = private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    public_key = f"ed25519:{base64.b64encode(pub_bytes).decode()}"
    return private_key, public_key


def make_jws_token(
    private_key: Ed25519PrivateKey,
    agent_id: str,
    payload: dict[str, Any],
) -> str:
    """Create a real JWS compact token signed by the given key."""
    raw_private = private_key.private_bytes_raw()
    raw_public = private_key.public_key().public_bytes_raw()
    jwk_dict = {
        "kty": "OKP",
        "crv": "Ed25519",
        "d": base64.urlsafe_b64encode(raw_private).rstrip(b"=").decode(),
        "x": base64.urlsafe_b64encode(raw_public).rstrip(b"=").decode(),
    }
    key = OKPKey.import_key(jwk_dict)
    protected = {"alg": "EdDSA", "kid": agent_id}
    payload_bytes = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode()
    return jws.serialize_compact(protected, payload_bytes, key, algorithms=["EdDSA"])


def make_fake_jws(payload: dict[str, Any], kid: str = "a-test-agent") -> str:
    """Build a structurally valid but unsigned JWS (for format-only tests)."""
    header = (
        base64.urlsafe_b64encode(json.dumps({"alg": "EdDSA", "kid": kid}).encode())
        .rstrip(b"=")
        .decode()
    )
    body = base64.urlsafe_b64encode(json.dumps(payload).encode()).rstrip(b"=").decode()
    signature = base64.urlsafe_b64encode(b"fake-signature").rstrip(b"=").decode()
    return f"{header}.{body}.{signature}"


def tamper_jws(token: str) -> str:
    """Alter the payload of a JWS after signing (creates invalid signature)."""
    parts = token.split(".")
    payload_bytes = base64.urlsafe_b64decode(parts[1] + "==")
    payload = json.loads(payload_bytes)
    payload["_tampered"] = True
    new_payload = base64.urlsafe_b64encode(json.dumps(payload).encode()).rstrip(b"=").decode()
    return f"{parts[0]}.{new_payload}.{parts[2]}"


def _decode_part(part: str) -> dict[str, Any]:
    decoded: dict[str, Any] = json.loads(base64.urlsafe_b64decode(part + "=" * (-len(part) % 4)))
    return decoded


async def fake_verify_jws(token: str) -> dict[str, Any]:
    """
    Stand-in for IdentityClient.verify_jws.

    Trusts the ``kid`` header as the signer and fails tokens marked by
    ``tamper_jws`` the way the Identity service fails a bad signature.
    """
    header_part, payload_part, _signature = token.split(".")
    header = _decode_part(header_part)
    payload = _decode_part(payload_part)
    if payload.get("_tampered") is True:
        raise ServiceError("FORBIDDEN", "JWS signature verification failed", 403)
    return {"valid": True, "agent_id": header["kid"], "payload": payload}


def make_config_yaml(db_path: str, log_directory: str, *, queue_size: int = 100) -> str:
    """Render a complete service config pointing at temporary paths."""
    return f"""\
service:
  name: "gig-market"
  version: "0.1.0"
server:
  host: "0.0.0.0"
  port: 8010
  log_level: "info"
logging:
  level: "WARNING"
  directory: "{log_directory}"
database:
  path: "{db_path}"
identity:
  base_url: "http://localhost:8001"
  verify_jws_path: "/agents/verify-jws"
  timeout_seconds: 10
request:
  max_body_size: 1048576
gigs:
  max_title_length: 100
  max_description_length: 5000
bids:
  min_message_length: 10
  max_message_length: 1000
notifications:
  queue_size: {queue_size}
  keepalive_interval_seconds: 15
"""


class RecordingChannel:
    """Delivery channel that remembers every (recipient, event) it was handed."""

    def __init__(self) -> None:
        self.delivered: list[tuple[str, Any]] = []

    async def deliver(self, user_id: str, event: Any) -> None:
        self.delivered.append((user_id, event))

    def kinds_for(self, user_id: str) -> list[str]:
        return [event.kind for recipient, event in self.delivered if recipient == user_id]


class FailingChannel:
    """Delivery channel whose transport is always down."""

    def __init__(self) -> None:
        self.attempts = 0

    async def deliver(self, user_id: str, event: Any) -> None:
        self.attempts += 1
        raise ConnectionError(f"cannot reach {user_id}")

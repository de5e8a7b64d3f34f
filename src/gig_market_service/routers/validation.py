"""Shared request validation helpers for the marketplace routers."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from gig_market_service.core.exceptions import ServiceError

if TYPE_CHECKING:
    from gig_market_service.services.token_validator import TokenValidator


def parse_json_body(raw_body: bytes) -> dict[str, Any]:
    """Parse JSON body, raising ServiceError on failure."""
    try:
        data = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ServiceError("INVALID_JSON", "Request body is not valid JSON", 400) from exc

    if not isinstance(data, dict):
        raise ServiceError("INVALID_JSON", "Request body must be a JSON object", 400)

    return data


def extract_token(data: dict[str, Any], field_name: str) -> str:
    """Extract and validate a token field from parsed JSON body."""
    if field_name not in data:
        raise ServiceError("INVALID_JWS", f"Missing required field: {field_name}", 400)

    value = data[field_name]

    if value is None:
        raise ServiceError("INVALID_JWS", f"Field '{field_name}' must not be null", 400)

    if not isinstance(value, str):
        raise ServiceError("INVALID_JWS", f"Field '{field_name}' must be a string", 400)

    if not value:
        raise ServiceError("INVALID_JWS", f"Field '{field_name}' must not be empty", 400)

    return value


def extract_bearer_token(authorization: str | None) -> str:
    """Extract JWS token from a required Authorization header."""
    if authorization is None:
        raise ServiceError("INVALID_JWS", "Missing Authorization header", 400)

    if not authorization.startswith("Bearer "):
        raise ServiceError("INVALID_JWS", "Authorization header must use Bearer scheme", 400)

    token = authorization[len("Bearer ") :]
    if not token:
        raise ServiceError("INVALID_JWS", "Bearer token must not be empty", 400)

    return token


def require_field(payload: dict[str, Any], field_name: str) -> Any:
    """Fetch a required field from a verified token payload."""
    if field_name not in payload:
        raise ServiceError(
            "INVALID_PAYLOAD",
            f"JWS payload must include '{field_name}'",
            400,
        )
    return payload[field_name]


def require_path_match(payload: dict[str, Any], field_name: str, path_value: str) -> None:
    """Reject tokens signed for a different resource than the one in the URL."""
    if require_field(payload, field_name) != path_value:
        raise ServiceError(
            "INVALID_PAYLOAD",
            f"Payload {field_name} does not match URL",
            400,
        )


async def verify_body_token(
    token_validator: TokenValidator | None,
    raw_body: bytes,
    action: str,
) -> dict[str, Any]:
    """Parse a ``{"token": ...}`` body and return the verified payload."""
    data = parse_json_body(raw_body)
    token = extract_token(data, "token")
    if token_validator is None:
        msg = "TokenValidator not initialized"
        raise RuntimeError(msg)
    return await token_validator.validate_jws_token(token, action)


async def verify_bearer_token(
    token_validator: TokenValidator | None,
    authorization: str | None,
    action: str,
) -> dict[str, Any]:
    """Verify the Bearer token of a read request and return its payload."""
    token = extract_bearer_token(authorization)
    if token_validator is None:
        msg = "TokenValidator not initialized"
        raise RuntimeError(msg)
    return await token_validator.validate_jws_token(token, action)

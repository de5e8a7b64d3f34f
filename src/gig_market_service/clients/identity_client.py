"""Async HTTP client for the Identity service."""

from __future__ import annotations

from typing import Any

import httpx

from gig_market_service.core.exceptions import ServiceError
from gig_market_service.logging import get_logger


class IdentityClient:
    """
    Asks the Identity service who signed a marketplace token.

    The gig market holds no keys. Every signed request is forwarded to
    the Identity service's verify endpoint, and its answer (signer id and
    decoded payload) is what the marketplace acts on.
    """

    def __init__(
        self,
        base_url: str,
        verify_jws_path: str,
        timeout_seconds: int,
    ) -> None:
        self._base_url = base_url
        self._verify_jws_path = verify_jws_path
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout_seconds),
        )

    def _unavailable(self, message: str, **log_extra: Any) -> ServiceError:
        get_logger(__name__).warning(
            "Identity service unusable",
            extra={"reason": message, "base_url": self._base_url, **log_extra},
        )
        return ServiceError(
            error="IDENTITY_SERVICE_UNAVAILABLE",
            message=message,
            status_code=502,
        )

    async def verify_jws(self, token: str) -> dict[str, Any]:
        """
        Verify a compact JWS with the Identity service.

        Returns the service's answer: ``valid``, ``agent_id`` and ``payload``.

        Raises:
            ServiceError: FORBIDDEN (403) when the signature does not verify,
                          IDENTITY_SERVICE_UNAVAILABLE (502) when the service
                          cannot be reached or answers with something unusable
        """
        try:
            response = await self._client.post(
                self._verify_jws_path,
                json={"token": token},
            )
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            raise self._unavailable("Cannot connect to Identity service", error=str(exc)) from exc
        except httpx.HTTPError as exc:
            raise self._unavailable("Identity service request failed", error=str(exc)) from exc

        if response.status_code != 200:
            raise self._unavailable(
                "Identity service returned unexpected status",
                status_code=response.status_code,
            )

        try:
            answer = response.json()
        except ValueError as exc:
            raise self._unavailable("Identity service returned a non-JSON body") from exc
        if not isinstance(answer, dict):
            raise self._unavailable("Identity service returned an unexpected body")

        if answer.get("valid") is not True:
            raise ServiceError(
                error="FORBIDDEN",
                message="JWS signature verification failed",
                status_code=403,
            )
        return answer

    async def close(self) -> None:
        await self._client.aclose()

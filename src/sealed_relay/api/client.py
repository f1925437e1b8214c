"""
Relay client for nodes that reach the relay over HTTP.

Implements the same `RelayLink` a node uses in-process, so a node does not
know whether its relay is local or remote.

Trust model:

- The relay is not trusted with message contents. Whatever it returns for a
  forward is only a report of what the peer answered.
- Receipts from /ack are reports too. The ledger is the authority on
  whether a reward was paid.
"""

from __future__ import annotations

import json
import logging

import httpx
from pydantic import ValidationError

from sealed_relay.ledger import ClaimReceipt, DeliveryProof
from sealed_relay.relay import ForwardOutcome
from sealed_relay.types import (
    Bytes20,
    DeliveryRefused,
    DeliveryTimedOut,
    LedgerRejected,
    Role,
    TransportFailure,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
"""HTTP request timeout in seconds when the caller sets none."""

FORWARD_ENDPOINT = "/relay/v0/{role}"
"""Relay endpoint that forwards to a role."""

ACK_ENDPOINT = "/relay/v0/ack"
"""Relay endpoint that takes delivery proofs."""

BALANCE_ENDPOINT = "/relay/v0/balance/{address}"
"""Relay endpoint that reports ledger balances."""


def _error_text(response: httpx.Response) -> str:
    """Pull the error message out of a relay error body."""
    try:
        return str(response.json()["error"])
    except (ValueError, KeyError, TypeError):
        return response.text[:200]


class RelayClient:
    """`RelayLink` over HTTP."""

    def __init__(self, base_url: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        """
        Args:
            base_url: Base URL of the relay (e.g., "http://localhost:3000").
            timeout: HTTP timeout used when a call passes none.
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def _request(
        self, method: str, path: str, timeout: float | None, content: bytes | None = None
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        timeout = self.timeout if timeout is None else timeout
        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                return await client.request(
                    method,
                    url,
                    content=content,
                    headers={"Content-Type": "application/json"} if content is not None else None,
                )
        except httpx.TimeoutException as exc:
            raise DeliveryTimedOut(timeout) from exc
        except httpx.RequestError as exc:
            raise TransportFailure(
                f"Network error while connecting to {exc.request.url}: {exc}"
            ) from exc

    async def forward(
        self, destination: Role, payload: bytes, *, timeout: float | None = None
    ) -> ForwardOutcome:
        """
        Ask the relay to carry a payload to `destination`.

        Raises:
            TransportFailure: If the relay or the destination cannot be reached.
            DeliveryTimedOut: If the relay or the destination timed out.
        """
        destination = Role(destination)
        path = FORWARD_ENDPOINT.format(role=destination.value)
        response = await self._request("POST", path, timeout, payload)

        if response.status_code == 504:
            raise DeliveryTimedOut(timeout if timeout is not None else self.timeout)
        if response.status_code == 502:
            raise TransportFailure(_error_text(response))

        return ForwardOutcome(
            destination=destination,
            status=response.status_code,
            body=response.content,
        )

    async def submit_proof(
        self, proof: DeliveryProof, *, timeout: float | None = None
    ) -> ClaimReceipt:
        """
        Submit a delivery proof through the relay.

        Raises:
            LedgerRejected: With the ledger's reason, verbatim.
            DeliveryRefused: If the relay refused the proof itself.
            DeliveryTimedOut: If the relay or the ledger timed out.
            TransportFailure: If the relay cannot be reached.
        """
        response = await self._request("POST", ACK_ENDPOINT, timeout, proof.to_json())

        if response.status_code == 409:
            raise LedgerRejected(_error_text(response))
        if response.status_code == 504:
            raise DeliveryTimedOut(timeout if timeout is not None else self.timeout)
        if response.status_code != 200:
            raise DeliveryRefused(response.status_code, _error_text(response))

        try:
            return ClaimReceipt.model_validate_json(response.content)
        except ValidationError as exc:
            raise TransportFailure(f"relay returned an unreadable receipt: {exc}") from exc

    async def balance(self, address: Bytes20, *, timeout: float | None = None) -> int:
        """
        Query a ledger balance through the relay.

        Raises:
            DeliveryRefused: If the relay refused the query.
            TransportFailure: If the relay cannot be reached.
        """
        path = BALANCE_ENDPOINT.format(address=Bytes20(address).to_0x_hex())
        response = await self._request("GET", path, timeout)

        if response.status_code != 200:
            raise DeliveryRefused(response.status_code, _error_text(response))

        try:
            return int(response.json()["balance"])
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            raise TransportFailure(f"relay returned an unreadable balance: {exc}") from exc

"""
Inbound endpoints reached over HTTP.

The relay posts the raw payload to the node's inbound URL and hands the
node's answer back unchanged. Nothing in the payload is parsed here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from sealed_relay.types import DeliveryTimedOut, TransportFailure

from .interfaces import Delivery

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
"""HTTP request timeout in seconds when the caller sets none."""

INBOUND_PATH = "/node/v0/msg"
"""Path of a node's inbound message endpoint."""


@dataclass(frozen=True, slots=True)
class HttpEndpoint:
    """A node's inbound endpoint behind an HTTP URL."""

    url: str
    """Full URL the payload is posted to."""

    timeout: float = DEFAULT_TIMEOUT
    """Per-request HTTP timeout in seconds."""

    @classmethod
    def for_node(cls, base_url: str, timeout: float = DEFAULT_TIMEOUT) -> HttpEndpoint:
        """Build the endpoint of a node served at `base_url`."""
        return cls(url=f"{base_url.rstrip('/')}{INBOUND_PATH}", timeout=timeout)

    async def deliver(self, payload: bytes) -> Delivery:
        """
        Post the payload and return the node's answer.

        Raises:
            DeliveryTimedOut: If the node does not answer within `timeout`.
            TransportFailure: If the node cannot be reached.
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.url,
                    content=payload,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.TimeoutException as exc:
            raise DeliveryTimedOut(self.timeout) from exc
        except httpx.RequestError as exc:
            raise TransportFailure(f"Network error while connecting to {self.url}: {exc}") from exc

        logger.debug("%s answered %d", self.url, response.status_code)
        return Delivery(status=response.status_code, body=response.content)

"""
Interfaces between nodes, the relay and inbound endpoints.

    Node --RelayLink--> RelayAuthority --InboundEndpoint--> Node

`RelayLink` is what a node needs from the relay: forward a payload to the
other role and submit a delivery proof. `RelayAuthority` implements it
in-process and `RelayClient` implements it over HTTP.

`InboundEndpoint` is how the relay reaches a node: hand over raw bytes,
get back a status and a body. The relay never looks inside either.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from sealed_relay.ledger import ClaimReceipt, DeliveryProof
from sealed_relay.types import Role


@dataclass(frozen=True, slots=True)
class Delivery:
    """What an inbound endpoint answered."""

    status: int
    """HTTP-style status code."""

    body: bytes = b""
    """Response body, passed back untouched."""

    @property
    def accepted(self) -> bool:
        """Whether the endpoint took the payload."""
        return 200 <= self.status < 300


@dataclass(frozen=True, slots=True)
class ForwardOutcome:
    """Result of forwarding one payload through the relay."""

    destination: Role
    """Role the payload was forwarded to."""

    status: int
    """Status returned by the destination."""

    body: bytes = b""
    """Body returned by the destination."""

    @property
    def accepted(self) -> bool:
        """Whether the destination took the payload."""
        return 200 <= self.status < 300

    @property
    def reason(self) -> str:
        """The destination's answer as text, for error reporting."""
        return self.body.decode("utf-8", errors="replace")


@runtime_checkable
class InboundEndpoint(Protocol):
    """A node's inbound side, as seen by the relay."""

    async def deliver(self, payload: bytes) -> Delivery:
        """
        Hand a payload to the node.

        Raises:
            TransportFailure: If the node cannot be reached.
        """
        ...


@runtime_checkable
class RelayLink(Protocol):
    """A node's view of the relay."""

    async def forward(
        self, destination: Role, payload: bytes, *, timeout: float | None = None
    ) -> ForwardOutcome:
        """
        Carry a payload to the node playing `destination`.

        Raises:
            TransportFailure: If the relay or the destination cannot be reached.
        """
        ...

    async def submit_proof(
        self, proof: DeliveryProof, *, timeout: float | None = None
    ) -> ClaimReceipt:
        """
        Submit a delivery proof to the reward ledger.

        Raises:
            LedgerRejected: With the ledger's reason when the claim is refused.
            TransportFailure: If the relay or the ledger cannot be reached.
        """
        ...

"""
The relay authority.

The relay is the untrusted hop between SOURCE and SINK. It has two jobs:

1. Forward envelopes between the two nodes, byte for byte. It holds no
   session keys, so it could not read or re-seal them even if it tried.
2. Submit delivery proofs to the reward ledger and report the outcome.

Trust model:

- The relay may drop, delay, reorder or corrupt traffic. Confidentiality
  and availability are not its to guarantee.
- Authenticity does not depend on it. The AEAD tag and the sender signature
  are checked end to end, and the ledger checks the proof signature itself.

Nothing is retried here. A failed forward or a refused claim goes straight
back to the caller.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping

from sealed_relay.ledger import ClaimReceipt, DeliveryProof, RewardLedger
from sealed_relay.metrics import (
    claims_rejected,
    envelopes_forwarded,
    proofs_submitted,
)
from sealed_relay.types import (
    Bytes20,
    DeliveryTimedOut,
    LedgerRejected,
    LedgerRevert,
    Role,
    TransportFailure,
)

from .interfaces import ForwardOutcome, InboundEndpoint

logger = logging.getLogger(__name__)


class RelayAuthority:
    """
    Forwarding hop and proof submitter.

    One instance serves both directions. Routing is a table from role to
    inbound endpoint, so there is a single forwarding path for every peer.
    """

    def __init__(
        self,
        endpoints: Mapping[Role, InboundEndpoint],
        ledger: RewardLedger,
        *,
        default_timeout: float | None = None,
    ) -> None:
        """
        Args:
            endpoints: Inbound endpoint of each role.
            ledger: Reward ledger that proofs are submitted to.
            default_timeout: Timeout applied when a caller passes none.
        """
        self.endpoints: dict[Role, InboundEndpoint] = {Role(r): e for r, e in endpoints.items()}
        self.ledger = ledger
        self.default_timeout = default_timeout

    def register(self, role: Role, endpoint: InboundEndpoint) -> None:
        """Route payloads for `role` to `endpoint`."""
        self.endpoints[Role(role)] = endpoint

    async def forward(
        self, destination: Role, payload: bytes, *, timeout: float | None = None
    ) -> ForwardOutcome:
        """
        Hand a payload to the destination node, untouched.

        The destination's answer is returned as-is. A refusal by the node
        is not an error here: the relay does not judge payloads.

        Raises:
            TransportFailure: If no endpoint is registered for the destination
                or the endpoint cannot be reached.
            DeliveryTimedOut: If the endpoint does not answer in time.
        """
        destination = Role(destination)
        endpoint = self.endpoints.get(destination)
        if endpoint is None:
            raise TransportFailure(f"no endpoint registered for {destination.value}")

        timeout = self.default_timeout if timeout is None else timeout
        logger.debug("Forwarding %d bytes to %s", len(payload), destination.value)

        try:
            delivery = await asyncio.wait_for(endpoint.deliver(payload), timeout)
        except asyncio.TimeoutError as exc:
            envelopes_forwarded.labels(destination=destination.value, outcome="timeout").inc()
            logger.warning("Forward to %s timed out after %ss", destination.value, timeout)
            raise DeliveryTimedOut(timeout) from exc
        except DeliveryTimedOut:
            envelopes_forwarded.labels(destination=destination.value, outcome="timeout").inc()
            logger.warning("Forward to %s timed out in transit", destination.value)
            raise
        except TransportFailure as exc:
            envelopes_forwarded.labels(destination=destination.value, outcome="unreachable").inc()
            logger.warning("Forward to %s failed: %s", destination.value, exc.detail)
            raise

        outcome = "accepted" if delivery.accepted else "refused"
        envelopes_forwarded.labels(destination=destination.value, outcome=outcome).inc()
        if not delivery.accepted:
            logger.info("%s refused payload with status %d", destination.value, delivery.status)

        return ForwardOutcome(destination=destination, status=delivery.status, body=delivery.body)

    async def submit_proof(
        self, proof: DeliveryProof, *, timeout: float | None = None
    ) -> ClaimReceipt:
        """
        Claim the reward for a delivery.

        Raises:
            LedgerRejected: Carrying the ledger's revert reason verbatim.
            DeliveryTimedOut: If the ledger does not answer in time.
        """
        timeout = self.default_timeout if timeout is None else timeout
        message_hash = proof.message_hash.to_0x_hex()
        logger.info("Claiming reward for %s", message_hash)
        proofs_submitted.inc()

        try:
            receipt = await asyncio.wait_for(
                self.ledger.claim_reward(proof.message_hash, proof.signature), timeout
            )
        except asyncio.TimeoutError as exc:
            logger.warning("Ledger did not answer claim for %s within %ss", message_hash, timeout)
            raise DeliveryTimedOut(timeout) from exc
        except LedgerRevert as exc:
            claims_rejected.inc()
            logger.error("Error claiming reward for hash %s: %s", message_hash, exc.reason)
            raise LedgerRejected(exc.reason) from exc

        logger.info("Reward claimed for %s (sequence %d)", message_hash, receipt.sequence)
        return receipt

    async def balance(self, address: Bytes20, *, timeout: float | None = None) -> int:
        """
        Query the ledger balance of an address.

        Raises:
            DeliveryTimedOut: If the ledger does not answer in time.
        """
        timeout = self.default_timeout if timeout is None else timeout
        try:
            return await asyncio.wait_for(self.ledger.get_balance(Bytes20(address)), timeout)
        except asyncio.TimeoutError as exc:
            raise DeliveryTimedOut(timeout) from exc

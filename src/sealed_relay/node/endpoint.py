"""
In-process inbound endpoint.

Wraps a `Node` so the relay can deliver to it without a network hop. The
HTTP node server answers with exactly what this endpoint returns.

Response bodies are JSON:

    200  {"status": "delivered", "messageId": "0x..", "signed": true,
          "proof": {"messageHash": "0x..", "signature": "0x.."} | null}
    400  {"status": "rejected", "reason": "<RejectReason>", "detail": "..."}
"""

from __future__ import annotations

import asyncio
import json
import logging

from sealed_relay.ledger import ClaimReceipt, DeliveryProof
from sealed_relay.relay.interfaces import Delivery
from sealed_relay.types import SealedRelayError

from .node import Node, Rejected

logger = logging.getLogger(__name__)


class LocalEndpoint:
    """
    A node's inbound side, reached by direct call.

    With `auto_acknowledge`, every delivery proof is submitted through the
    node's relay link in the background. The delivery answer does not wait
    for the ledger, and a refused claim does not turn a delivery into a
    failure.
    """

    def __init__(self, node: Node, *, auto_acknowledge: bool = False) -> None:
        self.node = node
        self.auto_acknowledge = auto_acknowledge
        self.receipts: list[ClaimReceipt] = []
        self.failures: list[SealedRelayError] = []
        self._pending: set[asyncio.Task[None]] = set()

    async def deliver(self, payload: bytes) -> Delivery:
        """Receive a wire envelope and describe the result."""
        result = self.node.accept(payload)

        if isinstance(result, Rejected):
            body = {"status": "rejected", "reason": result.reason.value, "detail": result.detail}
            return Delivery(status=400, body=json.dumps(body).encode("utf-8"))

        proof = result.proof
        if proof is not None and self.auto_acknowledge:
            task = asyncio.create_task(self._acknowledge(proof))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

        body = {
            "status": "delivered",
            "messageId": result.message_id.to_0x_hex(),
            "signed": result.signed,
            "proof": proof.model_dump(mode="json", by_alias=True) if proof is not None else None,
        }
        return Delivery(status=200, body=json.dumps(body).encode("utf-8"))

    async def wait_for_acknowledgements(self) -> None:
        """Wait until every background proof submission has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def _acknowledge(self, proof: DeliveryProof) -> None:
        try:
            receipt = await self.node.acknowledge(proof)
        except SealedRelayError as e:
            logger.error("Acknowledgement of %s failed: %s", proof.message_hash.to_0x_hex(), e)
            self.failures.append(e)
            return
        self.receipts.append(receipt)

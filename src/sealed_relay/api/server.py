"""
HTTP servers for the relay and the nodes.

Relay endpoints:
- POST /relay/v0/sink, /relay/v0/source - Forward a raw envelope to that role
- POST /relay/v0/ack - Submit a delivery proof to the reward ledger
- GET /relay/v0/balance/{address} - Ledger balance of an address
- GET /relay/v0/health - Health check endpoint
- GET /metrics - Prometheus metrics endpoint

Node endpoints:
- POST /node/v0/msg - Inbound envelope
- GET /node/v0/health - Health check endpoint
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import ClassVar

from aiohttp import web

from sealed_relay.ledger import DeliveryProof, to_checksum_address
from sealed_relay.metrics import generate_metrics
from sealed_relay.node import LocalEndpoint
from sealed_relay.relay import RelayAuthority
from sealed_relay.types import (
    Bytes20,
    DeliveryTimedOut,
    LedgerRejected,
    Role,
    TransportFailure,
)

logger = logging.getLogger(__name__)

RELAY_SERVICE_NAME = "sealed-relay"
"""Service identifier returned by the relay health endpoint."""

NODE_SERVICE_NAME = "sealed-relay-node"
"""Service identifier returned by the node health endpoint."""


def _json_error(status: int, message: str) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def _handle_metrics(_request: web.Request) -> web.Response:
    """Handle Prometheus metrics endpoint."""
    return web.Response(
        body=generate_metrics(),
        content_type="text/plain; version=0.0.4",
        charset="utf-8",
    )


@dataclass(frozen=True, slots=True)
class RelayServerConfig:
    """Configuration for the relay server."""

    host: str = "127.0.0.1"
    """Host address to bind to."""

    port: int = 3000
    """Port to listen on."""

    forward_timeout: float | None = 10.0
    """Timeout for forwarding and ledger calls, in seconds."""


@dataclass(frozen=True, slots=True)
class NodeServerConfig:
    """Configuration for a node server."""

    host: str = "127.0.0.1"
    """Host address to bind to."""

    port: int = 3001
    """Port to listen on."""


class _HttpService(ABC):
    """aiohttp lifecycle shared by the relay and node servers."""

    name: ClassVar[str] = "HTTP"

    config: RelayServerConfig | NodeServerConfig
    _runner: web.AppRunner | None
    _site: web.TCPSite | None
    _stop_task: asyncio.Task[None] | None

    @abstractmethod
    def routes(self) -> list[web.RouteDef]:
        """Routes served by this service."""

    @property
    def url(self) -> str:
        """Base URL the service listens on."""
        return f"http://{self.config.host}:{self.config.port}"

    async def start(self) -> None:
        """Start the server in the background."""
        app = web.Application()
        app.add_routes(self.routes())

        self._runner = web.AppRunner(app)
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.config.host, self.config.port)
        await self._site.start()

        logger.info(f"{self.name} server listening on {self.config.host}:{self.config.port}")

    async def run(self) -> None:
        """
        Run the server until shutdown.

        This method blocks until stop() or shutdown() is called.
        """
        await self.start()

        while self._runner is not None:
            await asyncio.sleep(1)

    def stop(self) -> asyncio.Task[None] | None:
        """
        Request graceful shutdown from synchronous code.

        Returns:
            The shutdown task, or None if the server is not running.
        """
        if self._runner is not None and self._stop_task is None:
            self._stop_task = asyncio.create_task(self.shutdown())
        return self._stop_task

    async def shutdown(self) -> None:
        """Gracefully stop the server and wait until it is down."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._site = None
            logger.info(f"{self.name} server stopped")
        self._stop_task = None


@dataclass(slots=True)
class RelayServer(_HttpService):
    """
    HTTP front of the relay authority.

    Envelopes are forwarded as opaque bytes. The downstream status and body
    come back unchanged, so a sender sees exactly what the peer answered.
    """

    name: ClassVar[str] = "Relay"

    config: RelayServerConfig
    """Server configuration."""

    relay: RelayAuthority
    """The forwarding and proof submission logic."""

    _runner: web.AppRunner | None = field(default=None, init=False)
    """The aiohttp application runner."""

    _site: web.TCPSite | None = field(default=None, init=False)
    """The TCP site for the server."""

    _stop_task: asyncio.Task[None] | None = field(default=None, init=False)
    """Pending shutdown requested through stop()."""

    def routes(self) -> list[web.RouteDef]:
        """Relay routes."""
        return [
            web.get("/relay/v0/health", self._handle_health),
            web.get("/metrics", _handle_metrics),
            web.post("/relay/v0/ack", self._handle_ack),
            web.get("/relay/v0/balance/{address}", self._handle_balance),
            web.post("/relay/v0/{role}", self._handle_forward),
        ]

    async def _handle_health(self, _request: web.Request) -> web.Response:
        """Handle health check endpoint."""
        return web.json_response({"status": "healthy", "service": RELAY_SERVICE_NAME})

    async def _handle_forward(self, request: web.Request) -> web.Response:
        """
        Forward the request body to the node playing the role in the path.

        Status Codes:
            Downstream status: The node answered.
            404 Not Found: Unknown role.
            502 Bad Gateway: The node could not be reached.
            504 Gateway Timeout: The node did not answer in time.
        """
        try:
            destination = Role(request.match_info["role"])
        except ValueError:
            return _json_error(404, f"unknown role {request.match_info['role']!r}")

        payload = await request.read()
        try:
            outcome = await self.relay.forward(
                destination, payload, timeout=self.config.forward_timeout
            )
        except DeliveryTimedOut as exc:
            return _json_error(504, exc.detail)
        except TransportFailure as exc:
            return _json_error(502, exc.detail)

        return web.Response(
            status=outcome.status,
            body=outcome.body,
            content_type="application/json",
        )

    async def _handle_ack(self, request: web.Request) -> web.Response:
        """
        Submit a delivery proof.

        Request: {"messageHash": "0x...", "signature": "0x..."}

        Status Codes:
            200 OK: Reward paid, body is the claim receipt.
            400 Bad Request: Proof is malformed.
            409 Conflict: Ledger refused the claim, body carries its reason.
            504 Gateway Timeout: The ledger did not answer in time.
        """
        try:
            proof = DeliveryProof.from_json(await request.read())
        except ValueError as exc:
            return _json_error(400, str(exc))

        try:
            receipt = await self.relay.submit_proof(proof, timeout=self.config.forward_timeout)
        except LedgerRejected as exc:
            return _json_error(409, exc.reason)
        except DeliveryTimedOut as exc:
            return _json_error(504, exc.detail)

        return web.Response(
            body=receipt.model_dump_json(by_alias=True),
            content_type="application/json",
        )

    async def _handle_balance(self, request: web.Request) -> web.Response:
        """
        Report the ledger balance of an address.

        Response: {"address": "<EIP-55 address>", "balance": <integer>}
        """
        try:
            address = Bytes20(request.match_info["address"])
        except ValueError:
            return _json_error(400, "address must be 20-byte hex")

        try:
            balance = await self.relay.balance(address, timeout=self.config.forward_timeout)
        except DeliveryTimedOut as exc:
            return _json_error(504, exc.detail)

        return web.json_response({"address": to_checksum_address(address), "balance": balance})


@dataclass(slots=True)
class NodeServer(_HttpService):
    """HTTP front of a node's inbound endpoint."""

    name: ClassVar[str] = "Node"

    config: NodeServerConfig
    """Server configuration."""

    endpoint: LocalEndpoint
    """The node's inbound side."""

    _runner: web.AppRunner | None = field(default=None, init=False)
    """The aiohttp application runner."""

    _site: web.TCPSite | None = field(default=None, init=False)
    """The TCP site for the server."""

    _stop_task: asyncio.Task[None] | None = field(default=None, init=False)
    """Pending shutdown requested through stop()."""

    def routes(self) -> list[web.RouteDef]:
        """Node routes."""
        return [
            web.get("/node/v0/health", self._handle_health),
            web.post("/node/v0/msg", self._handle_message),
        ]

    async def _handle_health(self, _request: web.Request) -> web.Response:
        """Handle health check endpoint."""
        return web.Response(
            body=json.dumps(
                {
                    "status": "healthy",
                    "service": NODE_SERVICE_NAME,
                    "role": self.endpoint.node.role.value,
                }
            ),
            content_type="application/json",
        )

    async def _handle_message(self, request: web.Request) -> web.Response:
        """
        Receive an envelope.

        Status Codes:
            200 OK: Delivered.
            400 Bad Request: Rejected, body carries the reason.
        """
        delivery = await self.endpoint.deliver(await request.read())
        return web.Response(
            status=delivery.status,
            body=delivery.body,
            content_type="application/json",
        )

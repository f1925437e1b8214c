"""Tests for the relay and node HTTP servers."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest
from aiohttp import web

from sealed_relay.api import NodeServer, NodeServerConfig, RelayServer, RelayServerConfig
from sealed_relay.api.server import _HttpService
from sealed_relay.ledger import DeliveryProof, to_checksum_address
from sealed_relay.relay import Delivery, HttpEndpoint, RelayAuthority
from sealed_relay.types import Role

from ..helpers import RecordingEndpoint, make_network


class StalledEndpoint:
    """Endpoint that never answers in time."""

    async def deliver(self, payload: bytes) -> Delivery:
        await asyncio.sleep(5)
        return Delivery(status=200)


def relay_server(port: int, relay: RelayAuthority, forward_timeout: float = 2.0) -> RelayServer:
    return RelayServer(
        config=RelayServerConfig(port=port, forward_timeout=forward_timeout), relay=relay
    )


class TestServerConfiguration:
    """Tests for server configuration defaults."""

    def test_relay_defaults(self) -> None:
        """Relay server binds to localhost with a bounded forward timeout."""
        config = RelayServerConfig()

        assert config.host == "127.0.0.1"
        assert config.port == 3000
        assert config.forward_timeout == 10.0

    def test_url_reflects_config(self) -> None:
        """The server URL is built from host and port."""
        network = make_network()
        server = NodeServer(
            config=NodeServerConfig(host="127.0.0.1", port=15199),
            endpoint=network.sink_endpoint,
        )

        assert server.url == "http://127.0.0.1:15199"


class TestServerLifecycle:
    """Tests for starting and stopping servers."""

    def test_service_without_routes_cannot_be_built(self) -> None:
        """A server class that defines no routes fails at construction."""

        class Routeless(_HttpService):
            pass

        with pytest.raises(TypeError, match="routes"):
            Routeless()

    def test_service_with_routes_can_be_built(self) -> None:
        """Defining routes is all a subclass needs."""

        class Minimal(_HttpService):
            def routes(self) -> list[web.RouteDef]:
                return []

        assert Minimal().routes() == []

    def test_stop_returns_awaitable_shutdown(self) -> None:
        """stop() hands back the shutdown task, and awaiting it frees the port."""

        async def run_test() -> None:
            server = relay_server(15114, make_network().relay)
            await server.start()

            task = server.stop()
            assert task is not None
            assert server.stop() is task
            await task

            assert server.stop() is None
            async with httpx.AsyncClient() as client:
                with pytest.raises(httpx.ConnectError):
                    await client.get("http://127.0.0.1:15114/relay/v0/health")

        asyncio.run(run_test())

    def test_shutdown_is_idempotent(self) -> None:
        """Shutting down twice is harmless, and the port can be bound again."""

        async def run_test() -> None:
            server = relay_server(15115, make_network().relay)
            await server.start()
            await server.shutdown()
            await server.shutdown()

            again = relay_server(15115, make_network().relay)
            await again.start()
            await again.shutdown()

        asyncio.run(run_test())


class TestHealthEndpoints:
    """Tests for the health endpoints."""

    def test_relay_health(self) -> None:
        """Relay health endpoint returns JSON with healthy status."""

        async def run_test() -> None:
            server = relay_server(15100, make_network().relay)
            await server.start()

            try:
                async with httpx.AsyncClient() as client:
                    response = await client.get("http://127.0.0.1:15100/relay/v0/health")

                assert response.status_code == 200
                assert response.json() == {"status": "healthy", "service": "sealed-relay"}
            finally:
                await server.shutdown()

        asyncio.run(run_test())

    def test_node_health_reports_role(self) -> None:
        """Node health endpoint names the role the node plays."""

        async def run_test() -> None:
            network = make_network()
            server = NodeServer(
                config=NodeServerConfig(port=15101), endpoint=network.source_endpoint
            )
            await server.start()

            try:
                async with httpx.AsyncClient() as client:
                    response = await client.get("http://127.0.0.1:15101/node/v0/health")

                assert response.status_code == 200
                assert response.json()["role"] == "source"
                assert response.json()["service"] == "sealed-relay-node"
            finally:
                await server.shutdown()

        asyncio.run(run_test())


class TestMetricsEndpoint:
    """Tests for the /metrics endpoint."""

    def test_returns_prometheus_text(self) -> None:
        """Metrics endpoint serves the sealed relay registry."""

        async def run_test() -> None:
            network = make_network()
            await network.relay.forward(Role.SINK, network.source.seal_message(b"x").to_json())
            server = relay_server(15102, network.relay)
            await server.start()

            try:
                async with httpx.AsyncClient() as client:
                    response = await client.get("http://127.0.0.1:15102/metrics")

                assert response.status_code == 200
                assert response.headers["content-type"].startswith("text/plain")
                assert "sealed_relay_envelopes_forwarded_total" in response.text
                assert "python_gc_objects_collected_total" not in response.text
            finally:
                await server.shutdown()

        asyncio.run(run_test())


class TestForwardEndpoint:
    """Tests for POST /relay/v0/{role}."""

    def test_delivers_over_http_to_node_server(self) -> None:
        """An envelope travels relay server to node server and back."""

        async def run_test() -> None:
            network = make_network()
            node = NodeServer(config=NodeServerConfig(port=15104), endpoint=network.sink_endpoint)
            network.relay.register(Role.SINK, HttpEndpoint.for_node(node.url, timeout=2.0))
            relay = relay_server(15103, network.relay)
            await node.start()
            await relay.start()

            try:
                envelope = network.source.seal_message(b"hello")
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        "http://127.0.0.1:15103/relay/v0/sink", content=envelope.to_json()
                    )

                assert response.status_code == 200
                body = response.json()
                assert body["status"] == "delivered"
                assert body["messageId"] == envelope.message_id.to_0x_hex()
            finally:
                await relay.shutdown()
                await node.shutdown()

        asyncio.run(run_test())

    def test_node_refusal_passes_through(self) -> None:
        """The node's 400 and reason come back unchanged."""

        async def run_test() -> None:
            server = relay_server(15105, make_network().relay)
            await server.start()

            try:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        "http://127.0.0.1:15105/relay/v0/sink", content=b"garbage"
                    )

                assert response.status_code == 400
                assert response.json()["reason"] == "MalformedEnvelope"
            finally:
                await server.shutdown()

        asyncio.run(run_test())

    def test_payload_reaches_node_unchanged(self) -> None:
        """The relay forwards the request body byte for byte."""

        async def run_test() -> None:
            sink = RecordingEndpoint(status=202, body=b'{"ok": true}')
            relay = RelayAuthority({Role.SINK: sink}, make_network().ledger)
            server = relay_server(15106, relay)
            await server.start()

            try:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        "http://127.0.0.1:15106/relay/v0/sink", content=b'{"a":  1}'
                    )

                assert sink.payloads == [b'{"a":  1}']
                assert response.status_code == 202
                assert response.json() == {"ok": True}
            finally:
                await server.shutdown()

        asyncio.run(run_test())

    def test_unknown_role_is_404(self) -> None:
        """Only source and sink are routable."""

        async def run_test() -> None:
            server = relay_server(15107, make_network().relay)
            await server.start()

            try:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        "http://127.0.0.1:15107/relay/v0/observer", content=b"{}"
                    )

                assert response.status_code == 404
                assert "observer" in response.json()["error"]
            finally:
                await server.shutdown()

        asyncio.run(run_test())

    def test_unreachable_node_is_502(self) -> None:
        """A node that refuses connections maps to Bad Gateway."""

        async def run_test() -> None:
            relay = RelayAuthority(
                {Role.SINK: HttpEndpoint.for_node("http://127.0.0.1:15198", timeout=1.0)},
                make_network().ledger,
            )
            server = relay_server(15108, relay)
            await server.start()

            try:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        "http://127.0.0.1:15108/relay/v0/sink", content=b"{}"
                    )

                assert response.status_code == 502
            finally:
                await server.shutdown()

        asyncio.run(run_test())

    def test_stalled_node_is_504(self) -> None:
        """A node that does not answer in time maps to Gateway Timeout."""

        async def run_test() -> None:
            relay = RelayAuthority({Role.SINK: StalledEndpoint()}, make_network().ledger)
            server = relay_server(15109, relay, forward_timeout=0.1)
            await server.start()

            try:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        "http://127.0.0.1:15109/relay/v0/sink", content=b"{}"
                    )

                assert response.status_code == 504
            finally:
                await server.shutdown()

        asyncio.run(run_test())


class TestAckEndpoint:
    """Tests for POST /relay/v0/ack."""

    def test_paid_then_already_claimed(self) -> None:
        """The first claim is paid and the second gets the ledger's reason."""

        async def run_test() -> None:
            network = make_network()
            server = relay_server(15110, network.relay)
            await server.start()
            proof = DeliveryProof.create(b"hello", network.sink.acknowledger)

            try:
                async with httpx.AsyncClient() as client:
                    first = await client.post(
                        "http://127.0.0.1:15110/relay/v0/ack", content=proof.to_json()
                    )
                    second = await client.post(
                        "http://127.0.0.1:15110/relay/v0/ack", content=proof.to_json()
                    )

                assert first.status_code == 200
                receipt = first.json()
                assert receipt["messageHash"] == proof.message_hash.to_0x_hex()
                assert receipt["amount"] == 100
                assert second.status_code == 409
                assert second.json() == {"error": "Already claimed"}
            finally:
                await server.shutdown()

        asyncio.run(run_test())

    def test_malformed_proof_is_400(self) -> None:
        """A proof without 0x hex fields never reaches the ledger."""

        async def run_test() -> None:
            server = relay_server(15111, make_network().relay)
            await server.start()

            try:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        "http://127.0.0.1:15111/relay/v0/ack",
                        content=json.dumps({"messageHash": "abc", "signature": "0x00"}),
                    )

                assert response.status_code == 400
                assert "messageHash" in response.json()["error"]
            finally:
                await server.shutdown()

        asyncio.run(run_test())


class TestBalanceEndpoint:
    """Tests for GET /relay/v0/balance/{address}."""

    def test_reports_checksummed_balance(self) -> None:
        """Balance is reported for the EIP-55 form of the address."""

        async def run_test() -> None:
            network = make_network()
            await network.relay.submit_proof(
                DeliveryProof.create(b"hello", network.sink.acknowledger)
            )
            server = relay_server(15112, network.relay)
            await server.start()
            address = network.relay_account.address

            try:
                async with httpx.AsyncClient() as client:
                    response = await client.get(
                        f"http://127.0.0.1:15112/relay/v0/balance/{address.to_0x_hex()}"
                    )

                assert response.status_code == 200
                assert response.json() == {
                    "address": to_checksum_address(address),
                    "balance": 100,
                }
            finally:
                await server.shutdown()

        asyncio.run(run_test())

    def test_bad_address_is_400(self) -> None:
        """Addresses must be 20 bytes of hex."""

        async def run_test() -> None:
            server = relay_server(15113, make_network().relay)
            await server.start()

            try:
                async with httpx.AsyncClient() as client:
                    response = await client.get("http://127.0.0.1:15113/relay/v0/balance/0x1234")

                assert response.status_code == 400
            finally:
                await server.shutdown()

        asyncio.run(run_test())

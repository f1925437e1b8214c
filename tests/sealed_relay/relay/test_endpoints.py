"""Tests for HTTP inbound endpoints."""

from __future__ import annotations

import asyncio
import json

import pytest

from sealed_relay.api import NodeServer, NodeServerConfig
from sealed_relay.relay import HttpEndpoint, InboundEndpoint
from sealed_relay.types import TransportFailure

from ..helpers import make_network


class TestHttpEndpoint:
    """Tests for HttpEndpoint."""

    def test_for_node_appends_inbound_path(self) -> None:
        """The inbound path is appended once, whatever the base URL's trailing slash."""
        assert HttpEndpoint.for_node("http://127.0.0.1:9999/").url == (
            "http://127.0.0.1:9999/node/v0/msg"
        )
        assert HttpEndpoint.for_node("http://127.0.0.1:9999").url == (
            "http://127.0.0.1:9999/node/v0/msg"
        )

    def test_is_inbound_endpoint(self) -> None:
        """HTTP endpoints are interchangeable with in-process ones."""
        assert isinstance(HttpEndpoint("http://127.0.0.1:1/node/v0/msg"), InboundEndpoint)

    def test_delivers_to_node_server(self) -> None:
        """The node server's answer comes back as the delivery."""

        async def run_test() -> None:
            network = make_network()
            server = NodeServer(config=NodeServerConfig(port=15130), endpoint=network.sink_endpoint)
            await server.start()

            try:
                endpoint = HttpEndpoint.for_node(server.url, timeout=2.0)
                delivery = await endpoint.deliver(network.source.seal_message(b"hi").to_json())

                assert delivery.accepted
                assert json.loads(delivery.body)["status"] == "delivered"
            finally:
                await server.shutdown()

        asyncio.run(run_test())

    def test_rejection_is_a_delivery_not_an_error(self) -> None:
        """A 400 from the node is returned, not raised."""

        async def run_test() -> None:
            network = make_network()
            server = NodeServer(config=NodeServerConfig(port=15131), endpoint=network.sink_endpoint)
            await server.start()

            try:
                delivery = await HttpEndpoint.for_node(server.url, timeout=2.0).deliver(b"{}")

                assert delivery.status == 400
                assert not delivery.accepted
            finally:
                await server.shutdown()

        asyncio.run(run_test())

    def test_connection_refused(self) -> None:
        """Nothing listening raises TransportFailure."""

        async def run_test() -> None:
            endpoint = HttpEndpoint.for_node("http://127.0.0.1:15195", timeout=1.0)

            with pytest.raises(TransportFailure, match="15195"):
                await endpoint.deliver(b"{}")

        asyncio.run(run_test())

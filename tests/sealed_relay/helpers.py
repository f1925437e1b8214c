"""Builders shared by the sealed relay tests."""

from __future__ import annotations

from dataclasses import dataclass

from sealed_relay.ledger import InMemoryRewardLedger, LedgerAccount
from sealed_relay.node import LocalEndpoint, Node, NodeConfig
from sealed_relay.registry import PublicKeyRegistry
from sealed_relay.relay import Delivery, RelayAuthority
from sealed_relay.types import Role


@dataclass
class Network:
    """A relay, a ledger and two announced nodes wired in-process."""

    registry: PublicKeyRegistry
    ledger: InMemoryRewardLedger
    relay: RelayAuthority
    relay_account: LedgerAccount
    source: Node
    sink: Node
    source_endpoint: LocalEndpoint
    sink_endpoint: LocalEndpoint


def make_network(
    *,
    reward: int = 100,
    pool: int = 1_000,
    auto_acknowledge: bool = False,
    sink_config: NodeConfig | None = None,
) -> Network:
    """Build a network in which both nodes may claim rewards."""
    registry = PublicKeyRegistry()
    relay_account = LedgerAccount.generate()
    accounts = {role: LedgerAccount.generate() for role in Role}

    ledger = InMemoryRewardLedger(
        authorized_signers=[a.address for a in accounts.values()],
        beneficiary=relay_account.address,
        reward=reward,
        pool=pool,
    )
    relay = RelayAuthority({}, ledger)

    source = Node(Role.SOURCE, registry, relay, acknowledger=accounts[Role.SOURCE])
    sink = Node(
        Role.SINK, registry, relay, acknowledger=accounts[Role.SINK], config=sink_config
    )
    source.announce()
    sink.announce()

    source_endpoint = LocalEndpoint(source, auto_acknowledge=auto_acknowledge)
    sink_endpoint = LocalEndpoint(sink, auto_acknowledge=auto_acknowledge)
    relay.register(Role.SOURCE, source_endpoint)
    relay.register(Role.SINK, sink_endpoint)

    return Network(
        registry=registry,
        ledger=ledger,
        relay=relay,
        relay_account=relay_account,
        source=source,
        sink=sink,
        source_endpoint=source_endpoint,
        sink_endpoint=sink_endpoint,
    )


def flip_bit(data: bytes, index: int = 0, bit: int = 0) -> bytes:
    """Return `data` with one bit inverted."""
    mutated = bytearray(data)
    mutated[index] ^= 1 << bit
    return bytes(mutated)


class RecordingEndpoint:
    """Inbound endpoint that stores payloads and answers with a fixed status."""

    def __init__(self, status: int = 200, body: bytes = b"{}") -> None:
        self.status = status
        self.body = body
        self.payloads: list[bytes] = []

    async def deliver(self, payload: bytes) -> Delivery:
        self.payloads.append(payload)
        return Delivery(status=self.status, body=self.body)

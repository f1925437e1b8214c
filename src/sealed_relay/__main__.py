"""
Sealed relay CLI entry point.

Usage::

    python -m sealed_relay relay --config deploy.yaml
    python -m sealed_relay demo --message hello --message "second message"

Commands:
    relay   Run the relay server with the reference reward ledger
    demo    Run the relay, a SOURCE and a SINK in one process and send messages

Options:
    --config     Path to deployment YAML file (defaults apply when omitted)
    --message    Message for the demo to send (can be repeated)
    --verbose    Enable debug logging
    --no-color   Disable colored logging output
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from sealed_relay.api import (
    NodeServer,
    NodeServerConfig,
    RelayClient,
    RelayServer,
    RelayServerConfig,
)
from sealed_relay.config import DeploymentConfig
from sealed_relay.ledger import InMemoryRewardLedger, LedgerAccount, to_checksum_address
from sealed_relay.node import LocalEndpoint, Node, NodeConfig, SendState
from sealed_relay.registry import PublicKeyRegistry
from sealed_relay.relay import HttpEndpoint, RelayAuthority
from sealed_relay.types import Role, SealedRelayError

logger = logging.getLogger(__name__)


class ColoredFormatter(logging.Formatter):
    """Logging formatter with ANSI colors for better readability."""

    GREY = "\x1b[38;5;244m"
    BLUE = "\x1b[38;5;39m"
    GREEN = "\x1b[38;5;40m"
    YELLOW = "\x1b[38;5;220m"
    RED = "\x1b[38;5;196m"
    BOLD_RED = "\x1b[38;5;196;1m"
    CYAN = "\x1b[38;5;51m"
    RESET = "\x1b[0m"

    LEVEL_COLORS = {
        logging.DEBUG: GREY,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD_RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors."""
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)
        timestamp = f"{self.CYAN}{self.formatTime(record, self.datefmt)}{self.RESET}"
        levelname = f"{color}{record.levelname:8}{self.RESET}"
        name = f"{self.BLUE}{record.name}{self.RESET}"
        return f"{timestamp} {levelname} {name}: {record.getMessage()}"


def setup_logging(verbose: bool = False, no_color: bool = False) -> None:
    """Configure logging with optional colors."""
    level = logging.DEBUG if verbose else logging.INFO

    handler = logging.StreamHandler()
    handler.setLevel(level)

    if no_color:
        formatter = logging.Formatter(
            "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = ColoredFormatter(datefmt="%Y-%m-%d %H:%M:%S")

    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)

    # Per-request access lines drown out the protocol logs.
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def load_config(path: Path | None) -> DeploymentConfig:
    """Load the deployment file, or the defaults when none is given."""
    if path is None:
        return DeploymentConfig()
    return DeploymentConfig.from_yaml_file(path)


def build_relay(
    config: DeploymentConfig, beneficiary: LedgerAccount, extra_signers: list[bytes] | None = None
) -> RelayAuthority:
    """
    Wire a relay authority to both nodes' HTTP endpoints and a fresh ledger.

    Args:
        config: Deployment description.
        beneficiary: Account credited for every paid claim.
        extra_signers: Addresses authorized on top of the configured ones.
    """
    ledger = InMemoryRewardLedger(
        authorized_signers=[*config.relay.authorized_signers, *(extra_signers or [])],
        beneficiary=beneficiary.address,
        reward=config.relay.reward_wei,
        pool=config.relay.pool_wei,
    )
    endpoints = {
        role: HttpEndpoint.for_node(config.node(role).url, timeout=config.timeout_seconds)
        for role in Role
    }
    return RelayAuthority(endpoints, ledger, default_timeout=config.timeout_seconds)


def relay_server(config: DeploymentConfig, relay: RelayAuthority) -> RelayServer:
    """Build the relay's HTTP server from the deployment description."""
    return RelayServer(
        config=RelayServerConfig(
            host=config.relay.host,
            port=config.relay.port,
            forward_timeout=config.timeout_seconds,
        ),
        relay=relay,
    )


async def run_relay(config: DeploymentConfig) -> None:
    """Run the relay server until interrupted."""
    beneficiary = LedgerAccount.generate()
    logger.info("Relay ledger account: %s", beneficiary.checksum_address)

    if not config.relay.authorized_signers:
        logger.warning("No authorized signers configured: every claim will be refused")

    server = relay_server(config, build_relay(config, beneficiary))
    await server.run()


async def run_demo(config: DeploymentConfig, messages: list[str]) -> int:
    """
    Send messages from SOURCE to SINK through a relay, all over localhost HTTP.

    Returns:
        Process exit code: 0 when every message was accepted by the SINK.
    """
    registry = PublicKeyRegistry()
    relay_account = LedgerAccount.generate()
    accounts = {role: LedgerAccount.generate() for role in Role}

    relay = build_relay(config, relay_account, [a.address for a in accounts.values()])

    nodes: dict[Role, Node] = {}
    endpoints: dict[Role, LocalEndpoint] = {}
    servers: list[RelayServer | NodeServer] = [relay_server(config, relay)]

    for role in Role:
        section = config.node(role)
        node = Node(
            role,
            registry,
            RelayClient(config.relay_url, timeout=config.timeout_seconds),
            acknowledger=accounts[role],
            config=NodeConfig(
                require_signature=section.require_signature,
                replay_ttl_seconds=config.replay_ttl_seconds,
                default_timeout=config.timeout_seconds,
            ),
        )
        node.announce()
        nodes[role] = node
        endpoints[role] = LocalEndpoint(node, auto_acknowledge=section.auto_acknowledge)
        servers.append(
            NodeServer(
                config=NodeServerConfig(host=section.host, port=section.port),
                endpoint=endpoints[role],
            )
        )

    failures = 0
    for server in servers:
        await server.start()

    try:
        for message in messages:
            try:
                receipt = await nodes[Role.SOURCE].send(message.encode("utf-8"))
            except SealedRelayError as e:
                logger.error("Sending %r failed: %s", message, e)
                failures += 1
                continue

            if receipt.state is not SendState.ACKNOWLEDGED:
                failures += 1
            print(f"{message!r}: {receipt.state.value} (status {receipt.status})")

        await endpoints[Role.SINK].wait_for_acknowledgements()

        client = RelayClient(config.relay_url, timeout=config.timeout_seconds)
        balance = await client.balance(relay_account.address)
        print(f"Relay balance of {to_checksum_address(relay_account.address)}: {balance} wei")
    finally:
        for server in servers:
            await server.shutdown()

    return 1 if failures else 0


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="sealed_relay",
        description="Sealed messaging through an untrusted relay",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored logging output",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    relay_parser = commands.add_parser("relay", help="Run the relay server")
    relay_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to deployment YAML file",
    )

    demo_parser = commands.add_parser("demo", help="Run relay and both nodes, send messages")
    demo_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to deployment YAML file",
    )
    demo_parser.add_argument(
        "--message",
        action="append",
        default=[],
        dest="messages",
        help="Message to send from SOURCE to SINK (can be repeated)",
    )

    args = parser.parse_args()

    setup_logging(args.verbose, args.no_color)
    config = load_config(args.config)

    try:
        if args.command == "relay":
            asyncio.run(run_relay(config))
            code = 0
        else:
            code = asyncio.run(run_demo(config, args.messages or ["hello"]))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        code = 0

    sys.exit(code)


if __name__ == "__main__":
    main()

"""
HTTP binding.

- `RelayServer` / `NodeServer`: aiohttp servers for the relay and the nodes
- `RelayClient`: httpx client a node uses to reach a remote relay
"""

from .client import RelayClient
from .server import NodeServer, NodeServerConfig, RelayServer, RelayServerConfig

__all__ = [
    "NodeServer",
    "NodeServerConfig",
    "RelayClient",
    "RelayServer",
    "RelayServerConfig",
]

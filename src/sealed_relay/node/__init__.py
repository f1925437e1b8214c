"""
Protocol endpoints.

- `Node`: a SOURCE or SINK that seals, sends, receives and acknowledges
- `LocalEndpoint`: a node's inbound side for in-process delivery
- `ReplayGuard`: memory of already delivered envelopes
"""

from .endpoint import LocalEndpoint
from .node import (
    DIRECTIONS,
    Delivered,
    EnvelopeSentReceipt,
    Node,
    NodeConfig,
    ReceiveResult,
    RejectReason,
    Rejected,
    SendState,
)
from .replay import ReplayGuard

__all__ = [
    "DIRECTIONS",
    "Delivered",
    "EnvelopeSentReceipt",
    "LocalEndpoint",
    "Node",
    "NodeConfig",
    "ReceiveResult",
    "RejectReason",
    "Rejected",
    "ReplayGuard",
    "SendState",
]

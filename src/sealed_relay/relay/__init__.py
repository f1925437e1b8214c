"""
The untrusted relay.

- `RelayAuthority`: forwards payloads between roles and submits proofs
- `InboundEndpoint` / `RelayLink`: the seams on either side of it
- `HttpEndpoint`: a node's inbound side reached over HTTP
"""

from .authority import RelayAuthority
from .endpoints import HttpEndpoint
from .interfaces import Delivery, ForwardOutcome, InboundEndpoint, RelayLink

__all__ = [
    "Delivery",
    "ForwardOutcome",
    "HttpEndpoint",
    "InboundEndpoint",
    "RelayAuthority",
    "RelayLink",
]

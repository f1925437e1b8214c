"""
Metrics module for observability.

Provides counters and histograms for tracking node and relay behavior.
Exposes metrics in Prometheus text format.
"""

from .registry import (
    REGISTRY,
    claims_rejected,
    envelopes_delivered,
    envelopes_forwarded,
    envelopes_rejected,
    envelopes_sealed,
    generate_metrics,
    open_time,
    proofs_submitted,
    seal_time,
)

__all__ = [
    "REGISTRY",
    "claims_rejected",
    "envelopes_delivered",
    "envelopes_forwarded",
    "envelopes_rejected",
    "envelopes_sealed",
    "generate_metrics",
    "open_time",
    "proofs_submitted",
    "seal_time",
]

"""
Metric registry using prometheus_client.

Provides pre-defined metrics for nodes and the relay.
Exposes metrics in Prometheus text format via the relay's /metrics endpoint.
"""

from __future__ import annotations

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Create a dedicated registry for sealed relay metrics.
#
# Using a dedicated registry avoids pollution from default Python process metrics.
REGISTRY = CollectorRegistry()

# -----------------------------------------------------------------------------
# Node
# -----------------------------------------------------------------------------

envelopes_sealed = Counter(
    "sealed_relay_envelopes_sealed_total",
    "Envelopes sealed and handed to the relay",
    ["role"],
    registry=REGISTRY,
)

envelopes_delivered = Counter(
    "sealed_relay_envelopes_delivered_total",
    "Envelopes opened and verified",
    ["role"],
    registry=REGISTRY,
)

envelopes_rejected = Counter(
    "sealed_relay_envelopes_rejected_total",
    "Envelopes refused on receipt",
    ["role", "reason"],
    registry=REGISTRY,
)

seal_time = Histogram(
    "sealed_relay_seal_seconds",
    "Key agreement, derivation and sealing duration",
    buckets=(0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05),
    registry=REGISTRY,
)

open_time = Histogram(
    "sealed_relay_open_seconds",
    "Key agreement, derivation, opening and verification duration",
    buckets=(0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05),
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
# Relay
# -----------------------------------------------------------------------------

envelopes_forwarded = Counter(
    "sealed_relay_envelopes_forwarded_total",
    "Payloads forwarded by the relay",
    ["destination", "outcome"],
    registry=REGISTRY,
)

proofs_submitted = Counter(
    "sealed_relay_proofs_submitted_total",
    "Delivery proofs submitted to the ledger",
    registry=REGISTRY,
)

claims_rejected = Counter(
    "sealed_relay_claims_rejected_total",
    "Delivery proofs refused by the ledger",
    registry=REGISTRY,
)


def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics output.

    Returns:
        Prometheus text format output as bytes.
    """
    return generate_latest(REGISTRY)

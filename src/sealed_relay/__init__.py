"""
Sealed relay: end-to-end sealed messaging through an untrusted relay.

A SOURCE node and a SINK node exchange short opaque messages through a
relay that can move bytes but cannot read or forge them. The SINK turns
each authenticated delivery into a proof that an external reward ledger
checks before paying the relay.
"""

__version__ = "0.1.0"

"""
Session key derivation.

Both parties expand the ECDH shared secret with RFC 5869 HKDF-SHA256:

    okm   = HKDF-SHA256(ikm=shared_secret, salt=salt, info=context_label, L=28)
    key   = okm[0:16]     AES-128-GCM key
    nonce = okm[16:28]    AES-GCM nonce

The derivation is deterministic. Neither side sends the key or the nonce;
each recomputes them from the shared secret, so no negotiation round trip
is needed.

Nonce uniqueness
----------------

The nonce is not random. It is a function of the shared secret alone, and
the shared secret of a message sent to a given static key only changes
because the sender's ephemeral key changes. The protocol therefore rests
on one invariant:

    No ephemeral key may ever be used for two messages.

Reusing an ephemeral key repeats the (key, nonce) pair under AES-GCM, which
leaks the XOR of the plaintexts and the GHASH authentication key.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from sealed_relay.types import Bytes12, Bytes16

KEY_SIZE: Final = 16
"""AES-128 key size in bytes."""

NONCE_SIZE: Final = 12
"""AES-GCM nonce size in bytes."""

OKM_SIZE: Final = KEY_SIZE + NONCE_SIZE
"""Total HKDF output: key followed by nonce."""


@dataclass(frozen=True, slots=True)
class Direction:
    """
    Fixed, public HKDF labels for one direction of traffic.

    Binding the direction into the derivation keeps a SOURCE→SINK session
    key from ever equalling a SINK→SOURCE one, even for the same secret.
    """

    salt: bytes
    """HKDF salt."""

    context_label: bytes
    """HKDF info string."""


UPLINK: Final = Direction(salt=b"uplink_salt", context_label=b"uplink_key_derivation")
"""Labels for messages travelling from SOURCE to SINK."""

DOWNLINK: Final = Direction(salt=b"downlink_salt", context_label=b"downlink_key_derivation")
"""Labels for messages travelling from SINK to SOURCE."""


def derive_key_and_nonce(
    shared_secret: bytes, salt: bytes, context_label: bytes
) -> tuple[Bytes16, Bytes12]:
    """
    Expand a shared secret into an AES-128 key and a GCM nonce.

    Args:
        shared_secret: 32-byte ECDH output.
        salt: Protocol-wide salt (not secret).
        context_label: Protocol-wide context string (not secret).

    Returns:
        Tuple of (16-byte key, 12-byte nonce).
    """
    if len(shared_secret) == 0:
        raise ValueError("Shared secret must not be empty")

    okm = HKDF(
        algorithm=hashes.SHA256(),
        length=OKM_SIZE,
        salt=salt,
        info=context_label,
    ).derive(bytes(shared_secret))

    return Bytes16(okm[:KEY_SIZE]), Bytes12(okm[KEY_SIZE:OKM_SIZE])


def derive_for_direction(shared_secret: bytes, direction: Direction) -> tuple[Bytes16, Bytes12]:
    """Derive session material using the labels of one traffic direction."""
    return derive_key_and_nonce(shared_secret, direction.salt, direction.context_label)

"""
Cryptographic building blocks of the sealed relay protocol.

Per message:

    ephemeral pair  ->  ECDH with peer static key  ->  HKDF-SHA256 (16 + 12 bytes)
                    ->  AES-128-GCM seal  ->  ECDSA-SHA256 over ciphertext || tag

All primitives come from `cryptography` (OpenSSL).
"""

from .agreement import (
    CURVE,
    KeyPair,
    decode_private_key,
    decode_public_key,
    derive_shared_secret,
    encode_public_key,
    generate_keypair,
)
from .envelope import (
    TAG_SIZE,
    Envelope,
    SealedPayload,
    open_sealed,
    seal,
    signed_bytes,
    verify_signature,
)
from .kdf import DOWNLINK, UPLINK, Direction, derive_for_direction, derive_key_and_nonce
from .signing import SigningKeyPair, verify_ecdsa

__all__ = [
    # Key agreement
    "CURVE",
    "KeyPair",
    "generate_keypair",
    "derive_shared_secret",
    "encode_public_key",
    "decode_public_key",
    "decode_private_key",
    # Key derivation
    "Direction",
    "UPLINK",
    "DOWNLINK",
    "derive_key_and_nonce",
    "derive_for_direction",
    # Envelope
    "TAG_SIZE",
    "Envelope",
    "SealedPayload",
    "seal",
    "open_sealed",
    "signed_bytes",
    "verify_signature",
    # Signing
    "SigningKeyPair",
    "verify_ecdsa",
]

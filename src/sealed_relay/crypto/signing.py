"""
ECDSA signing keys.

Each node holds a second long-lived P-256 pair, separate from its identity
pair, and uses it for one thing only: signing the exact bytes the AEAD
authenticated (`ciphertext || tag`).

Signatures are DER-encoded ECDSA-SHA256, as produced by OpenSSL.
"""

from __future__ import annotations

from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec

from sealed_relay.types import CurveMismatch, InvalidKeyFormat

from .agreement import CURVE, PublicKeyLike, decode_public_key, encode_public_key

__all__ = [
    "SigningKeyPair",
    "verify_ecdsa",
]


@dataclass(frozen=True, slots=True)
class SigningKeyPair:
    """
    P-256 keypair used for envelope signatures.

    Attributes:
        private_key: The P-256 private key.
    """

    private_key: ec.EllipticCurvePrivateKey

    @classmethod
    def generate(cls) -> SigningKeyPair:
        """
        Generate a new random signing keypair.

        Returns:
            A fresh signing keypair.
        """
        return cls(private_key=ec.generate_private_key(CURVE))

    @property
    def public_key(self) -> ec.EllipticCurvePublicKey:
        """The verification key."""
        return self.private_key.public_key()

    def public_key_bytes(self) -> bytes:
        """
        Return the verification key as DER SubjectPublicKeyInfo.

        This is the form published in the key registry.
        """
        return encode_public_key(self.public_key)

    def sign(self, message: bytes) -> bytes:
        """
        Sign a message with ECDSA-SHA256.

        Args:
            message: Data to sign.

        Returns:
            DER-encoded ECDSA signature.
        """
        return self.private_key.sign(message, ec.ECDSA(hashes.SHA256()))


def verify_ecdsa(public_key: PublicKeyLike, message: bytes, signature: bytes) -> bool:
    """
    Verify an ECDSA-SHA256 signature.

    Malformed keys and malformed signatures are reported exactly like a
    signature that simply does not match: `False`.

    Args:
        public_key: P-256 verification key (object, DER or PEM).
        message: Original message that was signed.
        signature: DER-encoded ECDSA signature.

    Returns:
        True if signature is valid, False otherwise.
    """
    if not signature:
        return False

    try:
        key = decode_public_key(public_key)
        key.verify(bytes(signature), bytes(message), ec.ECDSA(hashes.SHA256()))
        return True
    except (InvalidSignature, InvalidKeyFormat, CurveMismatch, ValueError, TypeError):
        return False

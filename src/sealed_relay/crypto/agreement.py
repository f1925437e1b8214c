"""
Elliptic-curve key agreement.

Every key pair in the protocol lives on NIST P-256 (secp256r1):

- long-lived identity pairs, used only as the static side of ECDH
- long-lived signing pairs (see `signing`), used only for ECDSA
- ephemeral pairs, one per outbound message

Public keys travel as DER-encoded SubjectPublicKeyInfo. SPKI carries the
curve OID, so a peer key on the wrong curve is detected at import time
instead of producing a silently different secret.

The scalar multiplication is delegated to OpenSSL through `cryptography`,
which runs in constant time with respect to the private scalar.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from sealed_relay.types import Bytes32, CurveMismatch, InvalidKeyFormat

CURVE: Final = ec.SECP256R1()
"""The single curve every protocol key uses."""

SHARED_SECRET_SIZE: Final = 32
"""ECDH output size in bytes (x coordinate of the shared point)."""

_PEM_MARKER: Final = b"-----BEGIN"

PublicKeyLike = ec.EllipticCurvePublicKey | bytes | str
"""A public key object, or its DER / PEM encoding."""

PrivateKeyLike = ec.EllipticCurvePrivateKey | bytes | str
"""A private key object, or its PKCS#8 DER / PEM encoding."""


@dataclass(frozen=True, slots=True)
class KeyPair:
    """
    A P-256 key pair.

    Attributes:
        private_key: The private key. The public half is derived from it.
    """

    private_key: ec.EllipticCurvePrivateKey

    @classmethod
    def generate(cls) -> KeyPair:
        """
        Generate a fresh key pair from the operating system RNG.

        Safe to call from any number of threads or tasks concurrently:
        nothing is shared between calls.
        """
        return cls(private_key=ec.generate_private_key(CURVE))

    @property
    def public_key(self) -> ec.EllipticCurvePublicKey:
        """The public half of the pair."""
        return self.private_key.public_key()

    def public_key_bytes(self) -> bytes:
        """Return the public key as DER SubjectPublicKeyInfo."""
        return encode_public_key(self.public_key)


def generate_keypair() -> KeyPair:
    """Generate a fresh P-256 key pair."""
    return KeyPair.generate()


def encode_public_key(public_key: ec.EllipticCurvePublicKey) -> bytes:
    """
    Encode a public key as DER SubjectPublicKeyInfo.

    Args:
        public_key: The key to encode.

    Returns:
        DER bytes (91 bytes for an uncompressed P-256 key).
    """
    return public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def _as_bytes(data: bytes | str) -> bytes:
    return data.encode("ascii") if isinstance(data, str) else bytes(data)


def _check_curve(curve: ec.EllipticCurve) -> None:
    if curve.name != CURVE.name:
        raise CurveMismatch(expected=CURVE.name, actual=curve.name)


def decode_public_key(data: PublicKeyLike) -> ec.EllipticCurvePublicKey:
    """
    Import a peer public key.

    Accepts DER SubjectPublicKeyInfo or its PEM armour. Key objects are
    passed through after the curve check.

    Args:
        data: The encoded key (or an already-imported key).

    Returns:
        The imported P-256 public key.

    Raises:
        InvalidKeyFormat: If the bytes do not hold an elliptic-curve public key.
        CurveMismatch: If the key is on a curve other than P-256.
    """
    if isinstance(data, ec.EllipticCurvePublicKey):
        _check_curve(data.curve)
        return data

    raw = _as_bytes(data)
    try:
        if raw.lstrip().startswith(_PEM_MARKER):
            key = serialization.load_pem_public_key(raw)
        else:
            key = serialization.load_der_public_key(raw)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise InvalidKeyFormat(f"cannot import public key: {exc}") from exc

    if not isinstance(key, ec.EllipticCurvePublicKey):
        raise InvalidKeyFormat(f"expected an elliptic-curve key, got {type(key).__name__}")

    _check_curve(key.curve)
    return key


def decode_private_key(data: PrivateKeyLike) -> ec.EllipticCurvePrivateKey:
    """
    Import a local private key from PKCS#8 DER or PEM.

    Raises:
        InvalidKeyFormat: If the bytes do not hold an elliptic-curve private key.
        CurveMismatch: If the key is on a curve other than P-256.
    """
    if isinstance(data, ec.EllipticCurvePrivateKey):
        _check_curve(data.curve)
        return data

    raw = _as_bytes(data)
    try:
        if raw.lstrip().startswith(_PEM_MARKER):
            key = serialization.load_pem_private_key(raw, password=None)
        else:
            key = serialization.load_der_private_key(raw, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise InvalidKeyFormat(f"cannot import private key: {exc}") from exc

    if not isinstance(key, ec.EllipticCurvePrivateKey):
        raise InvalidKeyFormat(f"expected an elliptic-curve key, got {type(key).__name__}")

    _check_curve(key.curve)
    return key


def derive_shared_secret(
    local_private_key: PrivateKeyLike, peer_public_key: PublicKeyLike
) -> Bytes32:
    """
    Perform P-256 Diffie-Hellman.

    Both parties compute the same secret from their own private key and the
    other party's public key:

        derive_shared_secret(a.private, b.public) == derive_shared_secret(b.private, a.public)

    Args:
        local_private_key: Our private key (object, DER or PEM).
        peer_public_key: The peer's public key (object, DER or PEM).

    Returns:
        32-byte shared secret.

    Raises:
        InvalidKeyFormat: If either key cannot be imported.
        CurveMismatch: If either key is not a P-256 key.
    """
    private_key = decode_private_key(local_private_key)
    public_key = decode_public_key(peer_public_key)

    try:
        secret = private_key.exchange(ec.ECDH(), public_key)
    except ValueError as exc:
        # OpenSSL refuses points that are not on the curve.
        raise InvalidKeyFormat(f"key agreement failed: {exc}") from exc

    return Bytes32(secret)

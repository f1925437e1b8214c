"""
Authenticated encryption and the wire envelope.

Sealing runs AES-128-GCM over the plaintext and, when the sender has a
signing key, signs the authenticated bytes:

    ciphertext || tag  = AES-128-GCM(key, nonce, plaintext)
    signature          = ECDSA-SHA256(signing_key, ciphertext || tag)

The signature covers what the AEAD authenticated, not the plaintext. A
relay that substitutes another validly-sealed payload cannot carry the old
signature over to it.

Wire format (JSON, every value standard base64):

    {
        "ephemeralPublicKey": <DER SubjectPublicKeyInfo>,
        "ciphertext": <bytes>,
        "tag": <16 bytes>,
        "sign": <DER ECDSA signature>      (optional)
    }

An envelope without `sign` carries no authenticity beyond the AEAD tag.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
from dataclasses import dataclass
from typing import Any, Final

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from pydantic import ValidationError, field_serializer, field_validator

from sealed_relay.types import (
    AuthenticationFailed,
    Bytes32,
    KeyAgreementError,
    MalformedEnvelope,
    StrictBaseModel,
)

from .agreement import PublicKeyLike, decode_public_key, encode_public_key
from .kdf import KEY_SIZE, NONCE_SIZE
from .signing import SigningKeyPair, verify_ecdsa

TAG_SIZE: Final = 16
"""AES-GCM authentication tag size in bytes."""


@dataclass(frozen=True, slots=True)
class SealedPayload:
    """Output of `seal`: the AEAD result plus an optional signature."""

    ciphertext: bytes
    """Encrypted plaintext, same length as the plaintext."""

    tag: bytes
    """16-byte GCM authentication tag."""

    signature: bytes | None = None
    """ECDSA signature over `ciphertext || tag`, if the sender signed."""


def _check_key_and_nonce(key: bytes, nonce: bytes) -> None:
    if len(key) != KEY_SIZE:
        raise ValueError(f"Key must be {KEY_SIZE} bytes, got {len(key)}")
    if len(nonce) != NONCE_SIZE:
        raise ValueError(f"Nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")


def signed_bytes(ciphertext: bytes, tag: bytes) -> bytes:
    """Return the exact byte string an envelope signature covers."""
    return bytes(ciphertext) + bytes(tag)


def seal(
    key: bytes,
    nonce: bytes,
    plaintext: bytes,
    signing_key: SigningKeyPair | None = None,
) -> SealedPayload:
    """
    Encrypt and authenticate a plaintext, optionally signing the result.

    Args:
        key: 16-byte AES key.
        nonce: 12-byte GCM nonce.
        plaintext: Message bytes (may be empty).
        signing_key: The sender's long-lived signing pair, or None.

    Returns:
        Ciphertext, tag and (if signing_key was given) signature.
    """
    _check_key_and_nonce(key, nonce)

    # AESGCM appends the tag to the ciphertext.
    sealed = AESGCM(bytes(key)).encrypt(bytes(nonce), bytes(plaintext), None)
    ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]

    signature = signing_key.sign(signed_bytes(ciphertext, tag)) if signing_key else None
    return SealedPayload(ciphertext=ciphertext, tag=tag, signature=signature)


def open_sealed(key: bytes, nonce: bytes, ciphertext: bytes, tag: bytes) -> bytes:
    """
    Verify the tag and decrypt.

    GCM verification happens before any plaintext is returned, so a failed
    open never releases even a prefix of the plaintext.

    Args:
        key: 16-byte AES key.
        nonce: 12-byte GCM nonce.
        ciphertext: Encrypted message.
        tag: 16-byte authentication tag.

    Returns:
        Decrypted plaintext.

    Raises:
        AuthenticationFailed: If the tag does not verify.
    """
    _check_key_and_nonce(key, nonce)
    if len(tag) != TAG_SIZE:
        raise AuthenticationFailed(f"Tag must be {TAG_SIZE} bytes, got {len(tag)}")

    try:
        return AESGCM(bytes(key)).decrypt(bytes(nonce), bytes(ciphertext) + bytes(tag), None)
    except InvalidTag as exc:
        raise AuthenticationFailed() from exc


def verify_signature(
    signing_public_key: PublicKeyLike,
    ciphertext: bytes,
    tag: bytes,
    signature: bytes,
) -> bool:
    """
    Check an envelope signature against a sender's verification key.

    Pure function. Malformed keys and signatures return False, so callers
    treat "does not verify" and "cannot be parsed" alike: untrusted.
    """
    return verify_ecdsa(signing_public_key, signed_bytes(ciphertext, tag), signature)


def _b64decode(value: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"invalid base64: {exc}") from exc


class Envelope(StrictBaseModel):
    """
    The wire record carrying one sealed message.

    Immutable once built. The relay forwards its JSON encoding verbatim.
    """

    ephemeral_public_key: bytes
    """Sender's one-time public key, DER SubjectPublicKeyInfo."""

    ciphertext: bytes
    """AES-GCM ciphertext."""

    tag: bytes
    """AES-GCM authentication tag."""

    sign: bytes | None = None
    """Sender's ECDSA signature over `ciphertext || tag`."""

    @field_validator("ephemeral_public_key", "ciphertext", "tag", "sign", mode="before")
    @classmethod
    def decode_base64(cls, value: Any) -> Any:
        """Accept raw bytes from Python callers and base64 text from the wire."""
        if isinstance(value, str):
            return _b64decode(value)
        if isinstance(value, bytearray):
            return bytes(value)
        return value

    @field_serializer("ephemeral_public_key", "ciphertext", "tag", "sign")
    def encode_base64(self, value: bytes | None) -> str | None:
        """Emit standard base64 on the wire."""
        return None if value is None else base64.b64encode(value).decode("ascii")

    @classmethod
    def from_sealed(cls, ephemeral_public_key: bytes, sealed: SealedPayload) -> Envelope:
        """Assemble an envelope around the output of `seal`."""
        return cls(
            ephemeral_public_key=ephemeral_public_key,
            ciphertext=sealed.ciphertext,
            tag=sealed.tag,
            sign=sealed.signature,
        )

    @property
    def is_signed(self) -> bool:
        """Whether the envelope carries a sender signature."""
        return self.sign is not None

    @property
    def message_id(self) -> Bytes32:
        """
        Identifier of this envelope for logs and replay detection.

        Derived from the ephemeral key alone, which is unique per message.
        The key is hashed in its canonical DER form, so a PEM or
        compressed-point re-encoding of the same key keeps the same ID.
        Undecodable keys are hashed as received.
        """
        try:
            key = encode_public_key(decode_public_key(self.ephemeral_public_key))
        except KeyAgreementError:
            key = self.ephemeral_public_key
        return Bytes32(hashlib.sha256(key).digest())

    def to_json(self) -> bytes:
        """Encode as the JSON wire record."""
        return self.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")

    @classmethod
    def from_json(cls, data: bytes | str) -> Envelope:
        """
        Decode a JSON wire record.

        Raises:
            MalformedEnvelope: If the record is not valid JSON, misses a field,
                has an unknown field or holds invalid base64.
        """
        try:
            return cls.model_validate_json(data)
        except ValidationError as exc:
            raise MalformedEnvelope(str(exc.errors()[0]["msg"])) from exc

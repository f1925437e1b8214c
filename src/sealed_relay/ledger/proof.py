"""
Delivery proofs.

A delivery proof is what the ledger pays on:

    { "messageHash": "0x" + 64 hex digits, "signature": "0x" + hex }

`messageHash` is the Keccak-256 digest of the delivered plaintext (the
ledger hashes with keccak256 too). `signature` is the acknowledging
account's EIP-191 signature over that hash.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import ValidationError, field_serializer, field_validator

from sealed_relay.types import Bytes32, StrictBaseModel

from .accounts import LedgerAccount, keccak256, recover_address

_HEX_PATTERN = re.compile(r"^0x(?:[0-9a-fA-F]{2})+$")


def message_hash_of(plaintext: bytes) -> Bytes32:
    """Return the ledger-compatible hash of a delivered plaintext."""
    return keccak256(plaintext)


class DeliveryProof(StrictBaseModel):
    """Proof that one specific plaintext reached its destination."""

    message_hash: Bytes32
    """Keccak-256 digest of the plaintext."""

    signature: bytes
    """Acknowledging account's signature over `message_hash`."""

    @field_validator("message_hash", mode="before")
    @classmethod
    def parse_message_hash(cls, value: Any) -> Any:
        """Require `0x`-prefixed hex for text input."""
        if isinstance(value, str):
            if not _HEX_PATTERN.match(value) or len(value) != 66:
                raise ValueError("messageHash must be 0x-prefixed 32-byte hex")
            return Bytes32(value)
        return value

    @field_validator("signature", mode="before")
    @classmethod
    def parse_signature(cls, value: Any) -> Any:
        """Require non-empty `0x`-prefixed hex for text input."""
        if isinstance(value, str):
            if not _HEX_PATTERN.match(value):
                raise ValueError("signature must be 0x-prefixed hex")
            return bytes.fromhex(value[2:])
        if isinstance(value, bytearray):
            return bytes(value)
        return value

    @field_serializer("signature")
    def serialize_signature(self, value: bytes) -> str:
        """Emit `0x`-prefixed hex."""
        return "0x" + value.hex()

    @classmethod
    def create(cls, plaintext: bytes, account: LedgerAccount) -> DeliveryProof:
        """
        Acknowledge a plaintext with a ledger account.

        Args:
            plaintext: The verified, decrypted message.
            account: The account the ledger recognises as acknowledger.
        """
        message_hash = message_hash_of(plaintext)
        signature = account.sign_message_hash(message_hash)
        return cls(message_hash=message_hash, signature=bytes(signature))

    def signer(self) -> bytes | None:
        """Recover the signer's address, or None if the signature is malformed."""
        return recover_address(self.message_hash, self.signature)

    def to_json(self) -> bytes:
        """Encode as the JSON submission record."""
        return self.model_dump_json(by_alias=True).encode("utf-8")

    @classmethod
    def from_json(cls, data: bytes | str) -> DeliveryProof:
        """
        Decode a JSON submission record.

        Raises:
            ValueError: If either field is missing or not well-formed hex.
        """
        try:
            return cls.model_validate_json(data)
        except ValidationError as exc:
            raise ValueError(f"Invalid delivery proof: {exc.errors()[0]['msg']}") from exc

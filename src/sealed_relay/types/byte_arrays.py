"""
Fixed-length byte array types.

Every key, nonce, digest and signature that has a protocol-mandated size
gets its own `bytes` subclass. Constructing one with the wrong length fails
immediately, so a truncated key never reaches a cipher.

Text input is hex, with or without `0x`. Inside pydantic models the types
serialize back to `0x` hex, which is the form ledger records use.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, ClassVar

from pydantic.annotated_handlers import GetCoreSchemaHandler
from pydantic_core import core_schema
from typing_extensions import Self


def _as_bytes(value: Any) -> bytes:
    """Turn bytes-like, hex text or a sequence of octets into `bytes`."""
    match value:
        case bytes() | bytearray() | memoryview():
            return bytes(value)
        case str():
            text = value[2:] if value[:2].lower() == "0x" else value
            return bytes.fromhex(text)
        case Iterable():
            return bytes(list(value))
    raise TypeError(f"cannot read {type(value).__name__} as bytes")


class BaseBytes(bytes):
    """
    Immutable bytes of one exact length.

    Subclasses only set `LENGTH`.
    """

    LENGTH: ClassVar[int]
    """Required size in bytes."""

    def __new__(cls, value: Any = b"") -> Self:
        """
        Raises:
            ValueError: If `value` has the wrong length or is not valid hex.
            TypeError: If `value` cannot be read as bytes at all.
        """
        length = getattr(cls, "LENGTH", None)
        if length is None:
            raise TypeError(f"{cls.__name__} has no LENGTH")

        data = _as_bytes(value)
        if len(data) != length:
            raise ValueError(f"{cls.__name__} needs {length} bytes, got {len(data)}")
        return super().__new__(cls, data)

    @classmethod
    def zero(cls) -> Self:
        """All-zero value."""
        return cls(bytes(cls.LENGTH))

    def to_0x_hex(self) -> str:
        """Lowercase hex with a `0x` prefix."""
        return f"0x{bytes(self).hex()}"

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        # JSON input arrives as str, Python input as bytes or str. One plain
        # validator covers both modes.
        def validate(value: Any) -> BaseBytes:
            if isinstance(value, cls):
                return value
            try:
                return cls(value)
            except TypeError as e:
                raise ValueError(str(e)) from e

        return core_schema.no_info_plain_validator_function(
            validate,
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda value: value.to_0x_hex()
            ),
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({bytes(self).hex()})"

    def __hash__(self) -> int:
        # Keyed by type so a Bytes20 and a Bytes32 never collide in one dict.
        return hash((type(self), bytes(self)))


class Bytes12(BaseBytes):
    """AES-GCM nonce."""

    LENGTH = 12


class Bytes16(BaseBytes):
    """AES-128 key or GCM tag."""

    LENGTH = 16


class Bytes20(BaseBytes):
    """Ledger account address."""

    LENGTH = 20


class Bytes32(BaseBytes):
    """Digest, shared secret or message identifier."""

    LENGTH = 32


class Bytes65(BaseBytes):
    """Recoverable signature `r || s || v`."""

    LENGTH = 65


ZERO_HASH: Bytes32 = Bytes32.zero()
"""The all-zero 32-byte value."""

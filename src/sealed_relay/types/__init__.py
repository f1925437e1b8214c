"""Reusable type definitions for the sealed relay protocol."""

from .base import CamelModel, StrictBaseModel
from .byte_arrays import ZERO_HASH, BaseBytes, Bytes12, Bytes16, Bytes20, Bytes32, Bytes65
from .exceptions import (
    AuthenticationFailed,
    CurveMismatch,
    DeliveryRefused,
    DeliveryTimedOut,
    InvalidKeyFormat,
    InvalidSignature,
    KeyAgreementError,
    LedgerRejected,
    LedgerRevert,
    MalformedEnvelope,
    SealedRelayError,
    TransportFailure,
    UnknownRole,
)
from .role import Role

__all__ = [
    # Core types
    "BaseBytes",
    "Bytes12",
    "Bytes16",
    "Bytes20",
    "Bytes32",
    "Bytes65",
    "ZERO_HASH",
    "CamelModel",
    "StrictBaseModel",
    "Role",
    # Exceptions
    "SealedRelayError",
    "KeyAgreementError",
    "InvalidKeyFormat",
    "CurveMismatch",
    "AuthenticationFailed",
    "InvalidSignature",
    "MalformedEnvelope",
    "UnknownRole",
    "TransportFailure",
    "DeliveryRefused",
    "DeliveryTimedOut",
    "LedgerRevert",
    "LedgerRejected",
]

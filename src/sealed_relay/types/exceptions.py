"""Exception hierarchy for the sealed relay protocol."""

from __future__ import annotations


class SealedRelayError(Exception):
    """
    Base exception for all protocol errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class KeyAgreementError(SealedRelayError):
    """Base class for errors raised while importing keys or running ECDH."""


class InvalidKeyFormat(KeyAgreementError):
    """
    Raised when a key cannot be parsed or imported.

    Attributes:
        detail: What was wrong with the encoding.
    """

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Invalid key format: {detail}")


class CurveMismatch(KeyAgreementError):
    """
    Raised when a peer key lives on a different curve than ours.

    Attributes:
        expected: Name of the protocol curve.
        actual: Name of the curve the peer key uses.
    """

    def __init__(self, expected: str, actual: str) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Curve mismatch: expected {expected}, got {actual}")


class AuthenticationFailed(SealedRelayError):
    """
    Raised when an AEAD tag does not verify.

    Tampered ciphertext, tampered tag, wrong key and wrong nonce are all
    indistinguishable and all produce this error.
    """

    def __init__(self, message: str = "AEAD authentication tag mismatch") -> None:
        super().__init__(message)


class InvalidSignature(SealedRelayError):
    """Raised when a signature is missing, malformed or does not verify."""

    def __init__(self, message: str = "Signature verification failed") -> None:
        super().__init__(message)


class MalformedEnvelope(SealedRelayError):
    """
    Raised when a wire envelope cannot be decoded.

    Attributes:
        detail: Description of the decoding problem.
    """

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Malformed envelope: {detail}")


class UnknownRole(SealedRelayError):
    """
    Raised when the key registry has no entry for a role.

    Attributes:
        role: The role that was looked up.
    """

    def __init__(self, role: str) -> None:
        self.role = role
        super().__init__(f"No registry entry for role {role!r}")


class TransportFailure(SealedRelayError):
    """
    Raised when a network hop fails, times out or is refused.

    Attributes:
        detail: Description of the failure.
    """

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Transport failure: {detail}")


class DeliveryRefused(TransportFailure):
    """
    Raised when the far end answers but refuses the payload.

    Attributes:
        status: HTTP-style status code returned by the far end.
        reason: Body or reason text returned by the far end.
    """

    def __init__(self, status: int, reason: str) -> None:
        self.status = status
        self.reason = reason
        super().__init__(f"delivery refused with status {status}: {reason}")


class LedgerRevert(SealedRelayError):
    """
    Raised by a reward ledger when a call reverts.

    Attributes:
        reason: The revert reason string, untouched.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class LedgerRejected(SealedRelayError):
    """
    Raised when the reward ledger refuses a delivery proof.

    The reason string is passed through verbatim. Telling "already claimed"
    apart from "insufficient funds" is the caller's job.

    Attributes:
        reason: The ledger-provided reason.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Ledger rejected claim: {reason}")


class DeliveryTimedOut(TransportFailure):
    """
    Raised when a network hop does not complete within the caller's timeout.

    Attributes:
        timeout: The timeout that expired, in seconds.
    """

    def __init__(self, timeout: float | None) -> None:
        self.timeout = timeout
        super().__init__(f"timed out after {timeout}s")

"""
The endpoint node.

A node plays one role, SOURCE or SINK, and talks to the other role only
through the relay. Every outbound message is its own cryptographic session:

    IDLE -> EPHEMERAL_GENERATED -> SECRET_DERIVED -> SEALED -> SENT
         -> ACKNOWLEDGED | TIMED_OUT

1. A fresh ephemeral key pair is generated.
2. ECDH against the peer's static key (read from one registry snapshot)
   gives a 32-byte shared secret.
3. HKDF turns the secret into a 16-byte key and a 12-byte nonce, using the
   labels of the sending direction.
4. AES-128-GCM seals the plaintext and the node's signing key signs
   `ciphertext || tag`.
5. The envelope goes to the relay.

The ephemeral private key, the secret and the session key are dropped as
soon as the envelope is built. A retry is a new call to `send` and runs the
whole sequence again with a new ephemeral pair.

Receiving runs the same steps in reverse with the node's own static key.
Nothing is released (no plaintext, no delivery proof) until the AEAD tag
and, when present, the sender's signature have both verified.

A refused envelope is a `Rejected` result, never an exception: one bad
message must not stop a node from serving the next.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from sealed_relay.crypto import (
    DOWNLINK,
    UPLINK,
    Direction,
    Envelope,
    KeyPair,
    SigningKeyPair,
    derive_for_direction,
    derive_shared_secret,
    open_sealed,
    seal,
    verify_signature,
)
from sealed_relay.ledger import ClaimReceipt, DeliveryProof, LedgerAccount
from sealed_relay.metrics import (
    envelopes_delivered,
    envelopes_rejected,
    envelopes_sealed,
    open_time,
    seal_time,
)
from sealed_relay.registry import PublicKeyRegistry, RegistryEntry, RegistrySnapshot
from sealed_relay.relay.interfaces import RelayLink
from sealed_relay.types import (
    AuthenticationFailed,
    Bytes32,
    CurveMismatch,
    DeliveryTimedOut,
    InvalidKeyFormat,
    MalformedEnvelope,
    Role,
    TransportFailure,
    UnknownRole,
)

from .replay import ReplayGuard

logger = logging.getLogger(__name__)


class SendState(Enum):
    """Where an outbound message is in its lifecycle."""

    IDLE = "idle"
    EPHEMERAL_GENERATED = "ephemeral_generated"
    SECRET_DERIVED = "secret_derived"
    SEALED = "sealed"
    SENT = "sent"
    ACKNOWLEDGED = "acknowledged"
    TIMED_OUT = "timed_out"


class RejectReason(str, Enum):
    """Why an inbound envelope was refused."""

    AUTHENTICATION_FAILED = "AuthenticationFailed"
    """The AEAD tag did not verify."""

    INVALID_SIGNATURE = "InvalidSignature"
    """Signature missing when required, sender unknown, or signature invalid."""

    INVALID_KEY_FORMAT = "InvalidKeyFormat"
    """The ephemeral public key could not be parsed."""

    CURVE_MISMATCH = "CurveMismatch"
    """The ephemeral public key is not on P-256."""

    MALFORMED_ENVELOPE = "MalformedEnvelope"
    """The wire record could not be decoded."""

    REPLAYED = "Replayed"
    """The envelope was already delivered."""


DIRECTIONS: dict[Role, Direction] = {Role.SOURCE: UPLINK, Role.SINK: DOWNLINK}
"""Key derivation labels used by each sending role."""


@dataclass(frozen=True, slots=True)
class EnvelopeSentReceipt:
    """Outcome of a completed `send`."""

    message_id: Bytes32
    """Identifier of the envelope that was sent."""

    destination: Role
    """Role the envelope was addressed to."""

    state: SendState
    """ACKNOWLEDGED if the peer accepted the envelope, SENT otherwise."""

    status: int
    """Status returned by the peer through the relay."""

    body: bytes = b""
    """Body returned by the peer through the relay."""


@dataclass(frozen=True, slots=True)
class Delivered:
    """An envelope that opened and verified."""

    plaintext: bytes
    """The decrypted message."""

    message_id: Bytes32
    """Identifier of the envelope."""

    signed: bool
    """Whether the sender signature was present and verified."""

    proof: DeliveryProof | None = None
    """Delivery proof, when the envelope was signed and the node acknowledges."""


@dataclass(frozen=True, slots=True)
class Rejected:
    """An envelope that was refused."""

    reason: RejectReason
    """Category of the refusal."""

    detail: str
    """Human-readable description."""

    message_id: Bytes32 | None = None
    """Identifier of the envelope, if it could be decoded."""


ReceiveResult = Delivered | Rejected
"""What `Node.receive` returns."""


@dataclass(frozen=True, slots=True)
class NodeConfig:
    """Behaviour switches of a node."""

    sign_outbound: bool = True
    """Sign every outbound envelope."""

    require_signature: bool = False
    """Refuse inbound envelopes that carry no signature."""

    replay_ttl_seconds: float = 600.0
    """How long delivered envelopes are remembered for replay detection."""

    default_timeout: float | None = None
    """Timeout for relay calls when the caller passes none."""


class Node:
    """One endpoint of the protocol."""

    def __init__(
        self,
        role: Role,
        registry: PublicKeyRegistry,
        relay: RelayLink | None = None,
        *,
        acknowledger: LedgerAccount | None = None,
        config: NodeConfig | None = None,
        identity: KeyPair | None = None,
        signing: SigningKeyPair | None = None,
        time_fn: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            role: Role this node plays.
            registry: Shared public key registry.
            relay: Link to the relay. Needed only to send and acknowledge.
            acknowledger: Ledger account that signs delivery proofs.
                Without one, the node delivers but never emits proofs.
            config: Behaviour switches.
            identity: Static ECDH key pair. Generated when omitted.
            signing: Envelope signing key pair. Generated when omitted.
            time_fn: Clock for replay expiry.
        """
        self.role = Role(role)
        self.registry = registry
        self.relay = relay
        self.acknowledger = acknowledger
        self.config = config or NodeConfig()
        self.identity = identity or KeyPair.generate()
        self.signing = signing or SigningKeyPair.generate()
        self._replay = ReplayGuard(ttl_seconds=self.config.replay_ttl_seconds, time_fn=time_fn)

    @property
    def peer(self) -> Role:
        """The role this node exchanges messages with."""
        return self.role.peer

    def registry_entry(self) -> RegistryEntry:
        """The public keys this node publishes."""
        return RegistryEntry(
            static_public_key=self.identity.public_key_bytes(),
            signing_public_key=self.signing.public_key_bytes(),
        )

    def announce(self) -> None:
        """Publish this node's public keys in the registry."""
        self.registry.set(self.role, self.registry_entry())
        logger.info("%s published its public keys", self.role.value)

    def seal_message(self, plaintext: bytes, snapshot: RegistrySnapshot | None = None) -> Envelope:
        """
        Build an envelope for the peer.

        Args:
            plaintext: Message to send (may be empty).
            snapshot: Registry view to use. Taken now when omitted.

        Raises:
            UnknownRole: If the peer has not published its keys.
            InvalidKeyFormat: If the peer's published key cannot be parsed.
            CurveMismatch: If the peer's published key is not on P-256.
        """
        snapshot = snapshot or self.registry.snapshot()
        peer_key = snapshot.get(self.peer).static_public_key
        signer = self.signing if self.config.sign_outbound else None

        with seal_time.time():
            ephemeral = KeyPair.generate()
            shared_secret = derive_shared_secret(ephemeral.private_key, peer_key)
            key, nonce = derive_for_direction(shared_secret, DIRECTIONS[self.role])
            sealed = seal(key, nonce, plaintext, signer)
            envelope = Envelope.from_sealed(ephemeral.public_key_bytes(), sealed)

            # One message, one session.
            del ephemeral, shared_secret, key, nonce

        envelopes_sealed.labels(role=self.role.value).inc()
        return envelope

    async def send(self, plaintext: bytes, *, timeout: float | None = None) -> EnvelopeSentReceipt:
        """
        Seal a message and hand it to the relay.

        Nothing is retried. On failure the session material is already gone
        and a new call starts over with a new ephemeral key.

        Raises:
            TransportFailure: If the node has no relay or the relay fails.
            DeliveryTimedOut: If the relay does not answer within `timeout`.
            UnknownRole: If the peer has not published its keys.
        """
        if self.relay is None:
            raise TransportFailure(f"{self.role.value} node has no relay link")

        timeout = self.config.default_timeout if timeout is None else timeout
        envelope = self.seal_message(plaintext)
        message_id = envelope.message_id
        payload = envelope.to_json()
        del envelope

        logger.debug("Sending message %s to %s", message_id.hex()[:16], self.peer.value)
        try:
            outcome = await asyncio.wait_for(
                self.relay.forward(self.peer, payload, timeout=timeout), timeout
            )
        except asyncio.TimeoutError as exc:
            logger.warning("Message %s %s", message_id.hex()[:16], SendState.TIMED_OUT.value)
            raise DeliveryTimedOut(timeout) from exc
        except DeliveryTimedOut:
            logger.warning("Message %s %s", message_id.hex()[:16], SendState.TIMED_OUT.value)
            raise

        state = SendState.ACKNOWLEDGED if outcome.accepted else SendState.SENT
        if not outcome.accepted:
            logger.warning(
                "%s did not accept message %s (status %d): %s",
                self.peer.value,
                message_id.hex()[:16],
                outcome.status,
                outcome.reason,
            )

        return EnvelopeSentReceipt(
            message_id=message_id,
            destination=self.peer,
            state=state,
            status=outcome.status,
            body=outcome.body,
        )

    def receive(self, envelope: Envelope) -> ReceiveResult:
        """
        Open and verify an envelope from the peer.

        The registry is read once, at the start. The sender's signing key
        comes from that snapshot.
        """
        message_id = envelope.message_id
        sender = self.peer

        if self._replay.seen(message_id):
            return self._reject(RejectReason.REPLAYED, "envelope already delivered", message_id)

        snapshot = self.registry.snapshot()

        with open_time.time():
            try:
                shared_secret = derive_shared_secret(
                    self.identity.private_key, envelope.ephemeral_public_key
                )
            except CurveMismatch as exc:
                return self._reject(RejectReason.CURVE_MISMATCH, exc.message, message_id)
            except InvalidKeyFormat as exc:
                return self._reject(RejectReason.INVALID_KEY_FORMAT, exc.message, message_id)

            key, nonce = derive_for_direction(shared_secret, DIRECTIONS[sender])
            del shared_secret

            try:
                plaintext = open_sealed(key, nonce, envelope.ciphertext, envelope.tag)
            except AuthenticationFailed as exc:
                return self._reject(RejectReason.AUTHENTICATION_FAILED, exc.message, message_id)
            finally:
                del key, nonce

            signed = envelope.sign is not None
            if signed:
                try:
                    signing_key = snapshot.get(sender).signing_public_key
                except UnknownRole as exc:
                    return self._reject(RejectReason.INVALID_SIGNATURE, exc.message, message_id)

                if not verify_signature(
                    signing_key, envelope.ciphertext, envelope.tag, envelope.sign
                ):
                    return self._reject(
                        RejectReason.INVALID_SIGNATURE,
                        f"signature does not verify under the {sender.value} signing key",
                        message_id,
                    )
            elif self.config.require_signature:
                return self._reject(
                    RejectReason.INVALID_SIGNATURE, "envelope is unsigned", message_id
                )

        # Two deliveries of the same envelope can both get here only if they
        # race across threads. The second one still loses.
        if not self._replay.mark(message_id):
            return self._reject(RejectReason.REPLAYED, "envelope already delivered", message_id)

        proof = None
        if signed and self.acknowledger is not None:
            proof = DeliveryProof.create(plaintext, self.acknowledger)

        envelopes_delivered.labels(role=self.role.value).inc()
        logger.info(
            "Delivered %d-byte message %s from %s%s",
            len(plaintext),
            message_id.hex()[:16],
            sender.value,
            "" if signed else " (unsigned)",
        )
        return Delivered(plaintext=plaintext, message_id=message_id, signed=signed, proof=proof)

    def accept(self, payload: bytes | str) -> ReceiveResult:
        """Decode a wire envelope and receive it."""
        try:
            envelope = Envelope.from_json(payload)
        except MalformedEnvelope as exc:
            return self._reject(RejectReason.MALFORMED_ENVELOPE, exc.detail, None)
        return self.receive(envelope)

    async def acknowledge(
        self, proof: DeliveryProof, *, timeout: float | None = None
    ) -> ClaimReceipt:
        """
        Submit a delivery proof through the relay.

        Raises:
            LedgerRejected: With the ledger's reason, verbatim.
            TransportFailure: If the node has no relay or the relay fails.
            DeliveryTimedOut: If no answer arrives within `timeout`.
        """
        if self.relay is None:
            raise TransportFailure(f"{self.role.value} node has no relay link")

        timeout = self.config.default_timeout if timeout is None else timeout
        try:
            receipt = await asyncio.wait_for(
                self.relay.submit_proof(proof, timeout=timeout), timeout
            )
        except asyncio.TimeoutError as exc:
            raise DeliveryTimedOut(timeout) from exc

        logger.info("Delivery of %s acknowledged on the ledger", proof.message_hash.to_0x_hex())
        return receipt

    def _reject(self, reason: RejectReason, detail: str, message_id: Bytes32 | None) -> Rejected:
        envelopes_rejected.labels(role=self.role.value, reason=reason.value).inc()
        short_id = message_id.hex()[:16] if message_id is not None else "-"
        logger.warning(
            "%s rejected message %s from %s: %s", reason.value, short_id, self.peer.value, detail
        )
        return Rejected(reason=reason, detail=detail, message_id=message_id)

"""
Ledger accounts.

The reward ledger is an Ethereum-style contract. It identifies signers by
their 20-byte address and checks proofs with `ecrecover`, so the account
that acknowledges deliveries signs the way an Ethereum wallet does:

    digest    = keccak256("\\x19Ethereum Signed Message:\\n32" || message_hash)
    signature = r || s || v          (65 bytes, low-s, v in {27, 28})
    address   = keccak256(uncompressed_pubkey[1:])[12:]

Signing goes through OpenSSL. Recovery only touches public values, so it
uses plain affine arithmetic on secp256k1.

References:
- https://eips.ethereum.org/EIPS/eip-191
- https://eips.ethereum.org/EIPS/eip-55
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from Crypto.Hash import keccak
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed, decode_dss_signature

from sealed_relay.types import Bytes20, Bytes32, Bytes65

SIGNED_MESSAGE_PREFIX: Final = b"\x19Ethereum Signed Message:\n32"
"""EIP-191 prefix for signing a 32-byte payload."""

SIGNATURE_SIZE: Final = 65
"""Recoverable signature size (r || s || v)."""

_P: Final = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEFFFFFC2F
"""secp256k1 field prime."""

_N: Final = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
"""secp256k1 curve order."""

_Gx: Final = 0x79BE667EF9DCBBAC55A06295CE870B07029BFCDB2DCE28D959F2815B16F81798
"""secp256k1 generator x-coordinate."""

_Gy: Final = 0x483ADA7726A3C4655DA4FBFC0E1108A8FD17B448A68554199C47D08FFB10D4B8
"""secp256k1 generator y-coordinate."""

_Point = tuple[int, int] | None


def keccak256(data: bytes) -> Bytes32:
    """Compute the Keccak-256 digest used by Ethereum (not NIST SHA3-256)."""
    k = keccak.new(digest_bits=256)
    k.update(bytes(data))
    return Bytes32(k.digest())


def eth_signed_message_digest(message_hash: bytes) -> Bytes32:
    """Apply the EIP-191 prefix to a 32-byte hash, as `personal_sign` does."""
    if len(message_hash) != 32:
        raise ValueError(f"Message hash must be 32 bytes, got {len(message_hash)}")
    return keccak256(SIGNED_MESSAGE_PREFIX + bytes(message_hash))


def _modinv(a: int, m: int) -> int:
    """Compute modular inverse using Fermat's little theorem (m must be prime)."""
    return pow(a, m - 2, m)


def _point_add(p1: _Point, p2: _Point) -> _Point:
    """Add two secp256k1 curve points."""
    if p1 is None:
        return p2
    if p2 is None:
        return p1

    x1, y1 = p1
    x2, y2 = p2

    if x1 == x2 and y1 != y2:
        return None

    if x1 == x2:
        # Point doubling.
        lam = (3 * x1 * x1 * _modinv(2 * y1, _P)) % _P
    else:
        lam = ((y2 - y1) * _modinv(x2 - x1, _P)) % _P

    x3 = (lam * lam - x1 - x2) % _P
    y3 = (lam * (x1 - x3) - y1) % _P
    return (x3, y3)


def _point_mul(k: int, point: _Point) -> _Point:
    """Scalar multiplication using double-and-add. Public scalars only."""
    result = None
    addend = point
    while k:
        if k & 1:
            result = _point_add(result, addend)
        addend = _point_add(addend, addend)
        k >>= 1
    return result


def _lift_x(x: int, odd: bool) -> _Point:
    """Return the curve point with the given x and y parity, if one exists."""
    if not 0 < x < _P:
        return None
    y_sq = (pow(x, 3, _P) + 7) % _P
    y = pow(y_sq, (_P + 1) // 4, _P)
    if (y * y) % _P != y_sq:
        return None
    if (y & 1) != odd:
        y = _P - y
    return (x, y)


def _address_from_point(point: tuple[int, int]) -> Bytes20:
    x, y = point
    return Bytes20(keccak256(x.to_bytes(32, "big") + y.to_bytes(32, "big"))[12:])


def _recover_point(digest: bytes, r: int, s: int, recovery_id: int) -> _Point:
    """
    Recover the signer's public point from (r, s, recovery_id).

        Q = r^-1 * (s * R - e * G)
    """
    big_r = _lift_x(r, bool(recovery_id & 1))
    if big_r is None:
        return None

    e = int.from_bytes(digest, "big") % _N
    r_inv = _modinv(r, _N)
    u1 = (-e * r_inv) % _N
    u2 = (s * r_inv) % _N
    return _point_add(_point_mul(u1, (_Gx, _Gy)), _point_mul(u2, big_r))


def recover_digest_address(digest: bytes, signature: bytes) -> Bytes20 | None:
    """
    Recover the address that signed a 32-byte digest (Solidity `ecrecover`).

    High-s signatures and unknown recovery bytes are refused, matching
    OpenZeppelin's ECDSA library.

    Args:
        digest: The exact digest that was signed, prefix already applied.
        signature: 65-byte r || s || v.

    Returns:
        The signer address, or None if the signature is malformed.
    """
    if len(digest) != 32 or len(signature) != SIGNATURE_SIZE:
        return None

    r = int.from_bytes(signature[:32], "big")
    s = int.from_bytes(signature[32:64], "big")
    v = signature[64]
    if v in (27, 28):
        v -= 27
    if v not in (0, 1):
        return None
    if not (0 < r < _N and 0 < s <= _N // 2):
        return None

    point = _recover_point(digest, r, s, v)
    if point is None:
        return None
    return _address_from_point(point)


def recover_address(message_hash: bytes, signature: bytes) -> Bytes20 | None:
    """
    Recover the address that produced an EIP-191 signature over a hash.

    Mirrors what the ledger does on-chain.

    Args:
        message_hash: The 32-byte hash that was signed (before prefixing).
        signature: 65-byte r || s || v.

    Returns:
        The signer address, or None if the signature is malformed.
    """
    if len(message_hash) != 32:
        return None
    return recover_digest_address(eth_signed_message_digest(message_hash), signature)


def to_checksum_address(address: bytes) -> str:
    """
    Format an address with the EIP-55 mixed-case checksum.

    Args:
        address: 20-byte account address.

    Returns:
        `0x`-prefixed checksummed hex string.
    """
    hex_address = bytes(address).hex()
    digest = keccak256(hex_address.encode("ascii")).hex()
    return "0x" + "".join(
        ch.upper() if ch.isalpha() and int(digest[i], 16) >= 8 else ch
        for i, ch in enumerate(hex_address)
    )


@dataclass(frozen=True, slots=True)
class LedgerAccount:
    """
    secp256k1 account that signs delivery proofs.

    Attributes:
        private_key: The secp256k1 private key.
    """

    private_key: ec.EllipticCurvePrivateKey

    @classmethod
    def generate(cls) -> LedgerAccount:
        """Generate a new random account."""
        return cls(private_key=ec.generate_private_key(ec.SECP256K1()))

    @classmethod
    def from_bytes(cls, data: bytes) -> LedgerAccount:
        """
        Load an account from its raw private key.

        Args:
            data: 32-byte secp256k1 private key (a `0x` hex string is accepted).

        Raises:
            ValueError: If data is not a valid secp256k1 private key.
        """
        if isinstance(data, str):
            data = bytes.fromhex(data.removeprefix("0x"))
        if len(data) != 32:
            raise ValueError(f"Expected 32 bytes, got {len(data)}")

        private_key = ec.derive_private_key(int.from_bytes(data, "big"), ec.SECP256K1())
        return cls(private_key=private_key)

    def private_key_bytes(self) -> bytes:
        """Return the raw 32-byte private key."""
        return self.private_key.private_numbers().private_value.to_bytes(32, "big")

    def public_key_bytes(self) -> bytes:
        """Return the 65-byte uncompressed public key (0x04 || x || y)."""
        return self.private_key.public_key().public_bytes(
            encoding=serialization.Encoding.X962,
            format=serialization.PublicFormat.UncompressedPoint,
        )

    @property
    def address(self) -> Bytes20:
        """The 20-byte ledger address of this account."""
        numbers = self.private_key.public_key().public_numbers()
        return _address_from_point((numbers.x, numbers.y))

    @property
    def checksum_address(self) -> str:
        """The EIP-55 formatted address."""
        return to_checksum_address(self.address)

    def sign_message_hash(self, message_hash: bytes) -> Bytes65:
        """
        Sign a 32-byte hash the way `personal_sign` does.

        Args:
            message_hash: The hash to acknowledge.

        Returns:
            65-byte signature r || s || v with low s and v in {27, 28}.
        """
        digest = eth_signed_message_digest(message_hash)

        der_signature = self.private_key.sign(digest, ec.ECDSA(Prehashed(hashes.SHA256())))
        r, s = decode_dss_signature(der_signature)

        # Ethereum only accepts the lower of the two equivalent s values.
        if s > _N // 2:
            s = _N - s

        # OpenSSL does not expose the nonce point, so find the recovery id
        # by trying both parities against our own key.
        numbers = self.private_key.public_key().public_numbers()
        for recovery_id in (0, 1):
            if _recover_point(digest, r, s, recovery_id) == (numbers.x, numbers.y):
                break
        else:
            raise ValueError("Could not determine signature recovery id")

        return Bytes65(r.to_bytes(32, "big") + s.to_bytes(32, "big") + bytes([27 + recovery_id]))

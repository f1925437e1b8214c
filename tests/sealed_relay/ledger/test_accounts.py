"""Tests for Ethereum-style ledger accounts."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from sealed_relay.ledger import (
    LedgerAccount,
    eth_signed_message_digest,
    keccak256,
    recover_address,
    recover_digest_address,
    to_checksum_address,
)

SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

# web3.js `eth.accounts.sign("Some data", key)` reference output.
WEB3_KEY = bytes.fromhex("4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318")
WEB3_ADDRESS = "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"
WEB3_DIGEST = "1da44b586eb0729ff70a73c326926f6ed5a25f5b056e7f47fbc6e58d86871655"
WEB3_SIGNATURE = bytes.fromhex(
    "b91467e570a6466aa9e9876cbcd013baba02900b8979d43fe208a4a4f339f5fd"
    "6007e74cd82e037b800186422fc2da167c747ef045e5d18a5f5d4300f8e1a029"
    "1c"
)


class TestHashing:
    """Tests for keccak256 and the EIP-191 digest."""

    def test_keccak_of_empty_input(self):
        """Test the well-known Keccak-256 digest of the empty string."""
        assert keccak256(b"").hex() == (
            "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
        )

    def test_signed_message_digest_prefixes_hash(self):
        """Test that the digest hashes the EIP-191 prefix and the hash."""
        message_hash = keccak256(b"hello")

        assert eth_signed_message_digest(message_hash) == keccak256(
            b"\x19Ethereum Signed Message:\n32" + message_hash
        )


class TestAddresses:
    """Tests for address derivation and formatting."""

    @pytest.mark.parametrize(
        ("private_key", "address"),
        [
            (1, "0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf"),
            (2, "0x2B5AD5c4795c026514f8317c7a215E218DcCD6cF"),
        ],
    )
    def test_known_addresses(self, private_key, address):
        """Test address derivation against well-known keys."""
        account = LedgerAccount.from_bytes(private_key.to_bytes(32, "big"))

        assert account.checksum_address == address

    def test_checksum_vector(self):
        """Test the EIP-55 reference vector."""
        address = bytes.fromhex("5aaeb6053f3e94c9b9a09f33669435e7ef1beaed")

        assert to_checksum_address(address) == "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"

    def test_from_hex_string(self):
        """Test that a 0x hex private key is accepted."""
        account = LedgerAccount.generate()
        restored = LedgerAccount.from_bytes("0x" + account.private_key_bytes().hex())

        assert restored.address == account.address

    def test_from_bytes_rejects_wrong_length(self):
        """Test that a short private key is refused."""
        with pytest.raises(ValueError, match="Expected 32 bytes"):
            LedgerAccount.from_bytes(b"\x01" * 31)

    def test_public_key_is_uncompressed(self):
        """Test the uncompressed public key encoding."""
        public_key = LedgerAccount.generate().public_key_bytes()

        assert len(public_key) == 65
        assert public_key[0] == 0x04


class TestSignAndRecover:
    """Tests for sign_message_hash and recover_address."""

    @given(st.binary(min_size=32, max_size=32))
    def test_recovers_signer(self, message_hash):
        """Test that recovery returns the signing account's address."""
        account = LedgerAccount.from_bytes(b"\x01" * 32)
        signature = account.sign_message_hash(message_hash)

        assert recover_address(message_hash, signature) == account.address

    def test_signature_shape(self):
        """Test that signatures are 65 bytes, low-s, with v in {27, 28}."""
        account = LedgerAccount.generate()

        for i in range(20):
            signature = account.sign_message_hash(keccak256(bytes([i])))
            s = int.from_bytes(signature[32:64], "big")

            assert len(signature) == 65
            assert signature[64] in (27, 28)
            assert s <= SECP256K1_ORDER // 2

    def test_other_hash_recovers_other_address(self):
        """Test that a signature does not recover its signer for another hash."""
        account = LedgerAccount.generate()
        signature = account.sign_message_hash(keccak256(b"a"))

        assert recover_address(keccak256(b"b"), signature) != account.address

    def test_high_s_is_refused(self):
        """Test that the malleable high-s twin of a signature is refused."""
        account = LedgerAccount.generate()
        message_hash = keccak256(b"hello")
        signature = account.sign_message_hash(message_hash)

        s = int.from_bytes(signature[32:64], "big")
        flipped_v = 55 - signature[64]
        twin = signature[:32] + (SECP256K1_ORDER - s).to_bytes(32, "big") + bytes([flipped_v])

        assert recover_address(message_hash, twin) is None

    @pytest.mark.parametrize(
        "signature",
        [
            b"",
            b"\x00" * 64,
            b"\x00" * 65,
            b"\x01" * 64 + b"\x05",
        ],
    )
    def test_malformed_signatures_recover_nothing(self, signature):
        """Test that malformed signatures return None."""
        assert recover_address(keccak256(b"hello"), signature) is None

    def test_raw_recovery_id_is_accepted(self):
        """Test that v in {0, 1} is treated like {27, 28}."""
        account = LedgerAccount.generate()
        message_hash = keccak256(b"hello")
        signature = account.sign_message_hash(message_hash)
        raw = signature[:64] + bytes([signature[64] - 27])

        assert recover_address(message_hash, raw) == account.address


class TestWalletVector:
    """Tests against a signature produced by an Ethereum wallet library."""

    def test_personal_sign_digest(self):
        """Test that the EIP-191 personal_sign digest matches the wallet's."""
        digest = keccak256(b"\x19Ethereum Signed Message:\n9Some data")

        assert digest.hex() == WEB3_DIGEST

    def test_account_address(self):
        """Test that the wallet key derives the wallet's address."""
        account = LedgerAccount.from_bytes(WEB3_KEY)

        assert account.checksum_address == WEB3_ADDRESS

    def test_wallet_signature_recovers_wallet_address(self):
        """Test that recovery of r || s || v with v = 28 yields the signer."""
        recovered = recover_digest_address(bytes.fromhex(WEB3_DIGEST), WEB3_SIGNATURE)

        assert recovered is not None
        assert to_checksum_address(recovered) == WEB3_ADDRESS

    def test_wallet_signature_with_raw_recovery_id(self):
        """Test that v = 1 is read the same as v = 28."""
        signature = WEB3_SIGNATURE[:64] + bytes([1])

        recovered = recover_digest_address(bytes.fromhex(WEB3_DIGEST), signature)

        assert recovered == LedgerAccount.from_bytes(WEB3_KEY).address

    def test_wallet_signature_on_other_digest_recovers_someone_else(self):
        """Test that the recovered signer depends on the digest."""
        other = keccak256(b"\x19Ethereum Signed Message:\n9Some date")

        assert recover_digest_address(other, WEB3_SIGNATURE) != (
            LedgerAccount.from_bytes(WEB3_KEY).address
        )

    def test_account_signature_recovers_through_digest_path(self):
        """Test that proofs signed here recover at the digest level like wallet ones."""
        account = LedgerAccount.from_bytes(WEB3_KEY)
        message_hash = keccak256(b"hello")

        signature = account.sign_message_hash(message_hash)

        assert signature[64] in (27, 28)
        assert (
            recover_digest_address(eth_signed_message_digest(message_hash), signature)
            == account.address
        )

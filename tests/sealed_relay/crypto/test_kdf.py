"""Tests for HKDF key and nonce derivation."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from sealed_relay.crypto import DOWNLINK, UPLINK, derive_for_direction, derive_key_and_nonce
from sealed_relay.types import Bytes12, Bytes16


class TestDeriveKeyAndNonce:
    """Tests for derive_key_and_nonce."""

    def test_output_sizes(self):
        """Test that the key is 16 bytes and the nonce 12 bytes."""
        key, nonce = derive_key_and_nonce(b"\x01" * 32, b"salt", b"label")

        assert isinstance(key, Bytes16)
        assert isinstance(nonce, Bytes12)

    @given(st.binary(min_size=1, max_size=64), st.binary(max_size=16), st.binary(max_size=32))
    def test_deterministic(self, secret, salt, label):
        """Test that the same inputs always give the same output."""
        first = derive_key_and_nonce(secret, salt, label)
        assert first == derive_key_and_nonce(secret, salt, label)

    def test_salt_and_label_separate_outputs(self):
        """Test that changing the salt or label changes the output."""
        secret = b"\x42" * 32
        base = derive_key_and_nonce(secret, b"salt", b"label")

        assert derive_key_and_nonce(secret, b"other", b"label") != base
        assert derive_key_and_nonce(secret, b"salt", b"other") != base

    def test_key_and_nonce_come_from_one_expansion(self):
        """Test that the nonce continues the same 28-byte HKDF output as the key."""
        from cryptography.hazmat.primitives import hashes
        from cryptography.hazmat.primitives.kdf.hkdf import HKDF

        secret = b"\x07" * 32
        okm = HKDF(algorithm=hashes.SHA256(), length=28, salt=b"s", info=b"i").derive(secret)
        key, nonce = derive_key_and_nonce(secret, b"s", b"i")

        assert bytes(key) + bytes(nonce) == okm

    def test_empty_secret_is_refused(self):
        """Test that an empty shared secret raises ValueError."""
        with pytest.raises(ValueError, match="must not be empty"):
            derive_key_and_nonce(b"", b"salt", b"label")


class TestDirections:
    """Tests for the per-direction protocol labels."""

    def test_labels(self):
        """Test the uplink and downlink constants."""
        assert UPLINK.salt == b"uplink_salt"
        assert UPLINK.context_label == b"uplink_key_derivation"
        assert DOWNLINK.salt == b"downlink_salt"
        assert DOWNLINK.context_label == b"downlink_key_derivation"

    def test_directions_derive_different_material(self):
        """Test that one secret yields different keys for each direction."""
        secret = b"\x11" * 32

        assert derive_for_direction(secret, UPLINK) != derive_for_direction(secret, DOWNLINK)

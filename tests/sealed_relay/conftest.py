"""Shared fixtures for sealed relay tests."""

from __future__ import annotations

import pytest

from sealed_relay.crypto import KeyPair, SigningKeyPair
from sealed_relay.ledger import LedgerAccount

from .helpers import Network, make_network


@pytest.fixture
def network() -> Network:
    """A relay between an announced SOURCE and SINK, with a funded ledger."""
    return make_network()


@pytest.fixture
def keypair() -> KeyPair:
    """A fresh P-256 key pair."""
    return KeyPair.generate()


@pytest.fixture
def signing_key() -> SigningKeyPair:
    """A fresh envelope signing key pair."""
    return SigningKeyPair.generate()


@pytest.fixture
def account() -> LedgerAccount:
    """A fresh ledger account."""
    return LedgerAccount.generate()

"""
Reward ledger integration.

- `DeliveryProof`: the (messageHash, signature) pair a ledger pays on
- `LedgerAccount`: Ethereum-style secp256k1 account that signs proofs
- `RewardLedger`: the claimReward / getBalance capability
- `InMemoryRewardLedger`: reference ledger with the contract's rules
"""

from .accounts import (
    LedgerAccount,
    eth_signed_message_digest,
    keccak256,
    recover_address,
    recover_digest_address,
    to_checksum_address,
)
from .interface import ClaimReceipt, RewardLedger
from .memory import InMemoryRewardLedger
from .proof import DeliveryProof, message_hash_of

__all__ = [
    "ClaimReceipt",
    "DeliveryProof",
    "InMemoryRewardLedger",
    "LedgerAccount",
    "RewardLedger",
    "eth_signed_message_digest",
    "keccak256",
    "message_hash_of",
    "recover_address",
    "recover_digest_address",
    "to_checksum_address",
]

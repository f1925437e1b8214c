"""
Reward ledger interface.

The ledger is external. This package talks to it through two calls that
mirror the deployed contract:

    claimReward(messageHash, signature) -> receipt    (or revert with a reason)
    getBalance(address) -> amount

A ledger signals refusal by raising `LedgerRevert` with its reason string.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from sealed_relay.types import Bytes20, Bytes32, StrictBaseModel


class ClaimReceipt(StrictBaseModel):
    """Receipt for an accepted reward claim."""

    message_hash: Bytes32
    """The hash whose delivery was paid for."""

    signer: Bytes20
    """Address recovered from the proof signature."""

    beneficiary: Bytes20
    """Address that was credited."""

    amount: int
    """Reward paid, in the ledger's smallest unit."""

    sequence: int
    """Position of this claim in the ledger's history (block number on-chain)."""


@runtime_checkable
class RewardLedger(Protocol):
    """The two ledger entry points the relay depends on."""

    async def claim_reward(self, message_hash: Bytes32, signature: bytes) -> ClaimReceipt:
        """
        Claim the reward for a delivered message.

        Raises:
            LedgerRevert: With the ledger's reason when the claim is refused.
        """
        ...

    async def get_balance(self, address: Bytes20) -> int:
        """Return the balance credited to an address."""
        ...

"""
In-process reward ledger.

Reproduces the rules of the deployed reward contract so the protocol can be
exercised without a chain:

- a fixed reward per accepted claim, paid out of a funded pool
- a fixed set of authorized signer addresses
- each message hash can be claimed once
- the claimant (the contract's msg.sender) is the credited beneficiary

Revert reasons match the contract's strings.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Final

from sealed_relay.types import Bytes20, Bytes32, LedgerRevert

from .accounts import recover_address, to_checksum_address
from .interface import ClaimReceipt

logger = logging.getLogger(__name__)

REASON_ALREADY_CLAIMED: Final = "Already claimed"
REASON_INVALID_SIGNATURE: Final = "Invalid signature"
REASON_UNAUTHORIZED: Final = "Signer not authorized"
REASON_INSUFFICIENT_BALANCE: Final = "Insufficient contract balance"


class InMemoryRewardLedger:
    """
    Reward ledger held in memory.

    Every check and state update of a claim runs without suspending, so
    concurrent claims on one event loop cannot interleave.
    """

    def __init__(
        self,
        authorized_signers: Iterable[bytes],
        beneficiary: bytes,
        reward: int,
        pool: int = 0,
    ) -> None:
        """
        Args:
            authorized_signers: Addresses whose acknowledgements are paid.
            beneficiary: Address credited on each claim (the relay's account).
            reward: Amount paid per accepted claim.
            pool: Initial funding of the contract.
        """
        if reward < 0 or pool < 0:
            raise ValueError("reward and pool must be non-negative")

        self.authorized_signers: frozenset[Bytes20] = frozenset(
            Bytes20(a) for a in authorized_signers
        )
        self.beneficiary = Bytes20(beneficiary)
        self.reward = reward
        self.pool = pool
        self._claimed: set[Bytes32] = set()
        self._balances: dict[Bytes20, int] = {}
        self._sequence = 0

    def fund(self, amount: int) -> None:
        """Add funds to the reward pool."""
        if amount < 0:
            raise ValueError("amount must be non-negative")
        self.pool += amount

    def is_claimed(self, message_hash: bytes) -> bool:
        """Whether a reward was already paid for this hash."""
        return Bytes32(message_hash) in self._claimed

    async def claim_reward(self, message_hash: Bytes32, signature: bytes) -> ClaimReceipt:
        """
        Pay the beneficiary for a correctly acknowledged delivery.

        Raises:
            LedgerRevert: "Already claimed", "Invalid signature",
                "Signer not authorized" or "Insufficient contract balance".
        """
        message_hash = Bytes32(message_hash)

        if message_hash in self._claimed:
            raise LedgerRevert(REASON_ALREADY_CLAIMED)

        signer = recover_address(message_hash, signature)
        if signer is None:
            raise LedgerRevert(REASON_INVALID_SIGNATURE)

        if signer not in self.authorized_signers:
            raise LedgerRevert(REASON_UNAUTHORIZED)

        if self.pool < self.reward:
            raise LedgerRevert(REASON_INSUFFICIENT_BALANCE)

        self._claimed.add(message_hash)
        self.pool -= self.reward
        self._balances[self.beneficiary] = self._balances.get(self.beneficiary, 0) + self.reward
        self._sequence += 1

        logger.info(
            "Reward %d paid to %s for %s (signer %s)",
            self.reward,
            to_checksum_address(self.beneficiary),
            message_hash.to_0x_hex(),
            to_checksum_address(signer),
        )

        return ClaimReceipt(
            message_hash=message_hash,
            signer=signer,
            beneficiary=self.beneficiary,
            amount=self.reward,
            sequence=self._sequence,
        )

    async def get_balance(self, address: Bytes20) -> int:
        """Return the amount credited to an address."""
        return self._balances.get(Bytes20(address), 0)

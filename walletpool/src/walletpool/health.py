"""
Wallet health policy.

Decides from a wallet's unspents whether it can be handed out, needs a reset,
can pay for its own reset, or holds more than it should.
"""

from __future__ import annotations

from loguru import logger

from walletpool.chain import ChainView
from walletpool.config import GroupConfig
from walletpool.constants import READY_MIN_CONFIRMATIONS, SELF_RESET_MARGIN
from walletpool.errors import ConfigurationError
from walletpool.models import (
    CHAIN_CODE_GROUPS,
    ChainCodeGroup,
    ResetReason,
    Unspent,
    WalletLimits,
    WalletState,
    sum_unspents,
)


def compute_limits(config: GroupConfig) -> WalletLimits:
    """
    Derive balance thresholds from the group configuration.

    A full reset creates twice the minimum number of unspents per group, each
    worth ``reset_unspent_balance``. A wallet can fund that itself with a 10%
    margin; anything above twice the full reset cost goes back to the faucet.
    """
    n_min_total = sum(config.get_min_unspents(g) for g in CHAIN_CODE_GROUPS)
    n_reset_total = n_min_total * 2

    min_unspent_balance = config.min_unspent_balance
    reset_unspent_balance = min_unspent_balance * 2
    min_self_reset_balance = n_reset_total * reset_unspent_balance * SELF_RESET_MARGIN
    max_total_balance = 2 * n_reset_total * reset_unspent_balance

    if not min_self_reset_balance < max_total_balance:
        raise ConfigurationError(
            f"group {config.name}: min_self_reset_balance={min_self_reset_balance} "
            f"must be below max_total_balance={max_total_balance}"
        )

    return WalletLimits(
        min_unspent_balance=min_unspent_balance,
        reset_unspent_balance=reset_unspent_balance,
        min_self_reset_balance=min_self_reset_balance,
        max_total_balance=max_total_balance,
    )


def reset_count(minimum: int, count: int) -> int:
    """Unspents to add so the wallet does not drop below minimum after one spend"""
    return 0 if count >= minimum else 2 * minimum - count


class WalletHealthPolicy:
    """Pure health checks over a wallet's unspents for one group configuration."""

    def __init__(self, config: GroupConfig, chain: ChainView | None = None):
        self.config = config
        self.chain = chain
        self.limits = compute_limits(config)

    def required_top_ups(self, unspents: list[Unspent]) -> list[tuple[ChainCodeGroup, int]]:
        """Number of new unspents needed per group (0 if the group has enough)"""
        qualifying = [u for u in unspents if u.value > self.limits.min_unspent_balance]
        result = []
        for group in CHAIN_CODE_GROUPS:
            count = sum(1 for u in qualifying if group.has(u.chain))
            result.append((group, reset_count(self.config.get_min_unspents(group), count)))
        return result

    def excess_unspents(self, unspents: list[Unspent]) -> dict[ChainCodeGroup, list[Unspent]]:
        """Unspents beyond each group's maximum count, first observed are kept"""
        excess: dict[ChainCodeGroup, list[Unspent]] = {}
        for group in CHAIN_CODE_GROUPS:
            maximum = self.config.get_max_unspents(group)
            if maximum is None:
                continue
            group_unspents = [u for u in unspents if group.has(u.chain)]
            if len(group_unspents) > maximum:
                excess[group] = group_unspents[maximum:]
        return excess

    def needs_reset(self, unspents: list[Unspent]) -> ResetReason | None:
        reason = ResetReason(
            excess_balance=sum_unspents(unspents) > self.limits.max_total_balance,
            excess_unspents=bool(self.excess_unspents(unspents)),
            missing_unspent=any(count > 0 for _, count in self.required_top_ups(unspents)),
        )
        if reason.excess_balance or reason.excess_unspents or reason.missing_unspent:
            return reason
        return None

    def can_self_reset(self, unspents: list[Unspent]) -> bool:
        return sum_unspents(unspents) > self.limits.min_self_reset_balance

    def should_refund_to_faucet(self, unspents: list[Unspent]) -> bool:
        return sum_unspents(unspents) > self.limits.max_total_balance

    def is_ready(self, unspents: list[Unspent]) -> bool:
        """
        Check whether confirmed unspents alone satisfy the group minimums.

        Only unspents with more than two confirmations count.
        """
        if self.chain is None:
            raise ConfigurationError("readiness check requires a chain view")
        confirmed = [
            u for u in unspents if self.chain.confirmations(u) > READY_MIN_CONFIRMATIONS
        ]
        return all(count <= 0 for _, count in self.required_top_ups(confirmed))

    def classify(self, unspents: list[Unspent]) -> WalletState:
        if self.needs_reset(unspents) is None:
            return WalletState.HEALTHY
        if self.can_self_reset(unspents):
            return WalletState.SELF_RESET
        return WalletState.FAUCET

    def describe(self, label: str, unspents: list[Unspent]) -> None:
        """Log the health of a wallet at debug level"""
        logger.debug(
            f"wallet {label}: {len(unspents)} unspents, balance={sum_unspents(unspents)}, "
            f"needs_reset={self.needs_reset(unspents)}, "
            f"can_self_reset={self.can_self_reset(unspents)}, "
            f"should_refund={self.should_refund_to_faucet(unspents)}"
        )

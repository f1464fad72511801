"""
Tests for the wallet health policy.
"""

from __future__ import annotations

import pytest
from fakes import make_unspent

from walletpool.chain import ChainView
from walletpool.config import GROUP_PURE_P2SH, GroupConfig
from walletpool.errors import ConfigurationError
from walletpool.health import WalletHealthPolicy, compute_limits, reset_count
from walletpool.models import P2SH, P2SH_P2WSH, P2WSH, WalletState


class TestLimits:
    """Tests for derived balance thresholds."""

    def test_default_group(self, group_config: GroupConfig) -> None:
        limits = compute_limits(group_config)
        assert limits.min_unspent_balance == 100_000
        assert limits.reset_unspent_balance == 200_000
        assert limits.min_self_reset_balance == pytest.approx(880_000)
        assert limits.max_total_balance == 1_600_000

    def test_custom_min_unspent_balance(self) -> None:
        config = GroupConfig(name="big", min_unspents={"p2sh": 5}, min_unspent_balance=100_000)
        limits = compute_limits(config)
        assert limits.max_total_balance == 4_000_000
        assert limits.min_self_reset_balance < limits.max_total_balance


class TestTopUps:
    """Tests for required top-ups per chain code group."""

    def test_reset_count(self) -> None:
        assert reset_count(2, 0) == 4
        assert reset_count(2, 1) == 3
        assert reset_count(2, 2) == 0
        assert reset_count(0, 0) == 0

    def test_empty_wallet(self, policy: WalletHealthPolicy) -> None:
        top_ups = dict(policy.required_top_ups([]))
        assert top_ups == {P2SH: 4, P2SH_P2WSH: 0, P2WSH: 0}

    def test_small_unspents_do_not_qualify(self, policy: WalletHealthPolicy) -> None:
        unspents = [make_unspent(100_000), make_unspent(99_999)]
        assert dict(policy.required_top_ups(unspents))[P2SH] == 4

    def test_top_ups_never_increase_with_more_unspents(self, policy: WalletHealthPolicy) -> None:
        previous = None
        for count in range(6):
            unspents = [make_unspent(200_000) for _ in range(count)]
            current = dict(policy.required_top_ups(unspents))[P2SH]
            if previous is not None:
                assert current <= previous
            previous = current
        assert previous == 0

    def test_zero_minimum_needs_nothing(self, policy: WalletHealthPolicy) -> None:
        unspents = [make_unspent(200_000), make_unspent(200_000)]
        top_ups = dict(policy.required_top_ups(unspents))
        assert top_ups[P2WSH] == 0
        assert top_ups[P2SH_P2WSH] == 0


class TestNeedsReset:
    """Tests for reset detection."""

    def test_healthy(self, policy: WalletHealthPolicy) -> None:
        unspents = [make_unspent(200_000), make_unspent(200_000)]
        assert policy.needs_reset(unspents) is None

    def test_excess_balance(self) -> None:
        config = GroupConfig(name="big", min_unspents={"p2sh": 5})
        policy = WalletHealthPolicy(config, ChainView(height=100))
        unspents = [make_unspent(1_000_000) for _ in range(5)]

        reason = policy.needs_reset(unspents)

        assert reason is not None
        assert reason.excess_balance
        assert not reason.missing_unspent
        assert not reason.excess_unspents
        assert policy.should_refund_to_faucet(unspents)

    def test_excess_unspents(self, policy: WalletHealthPolicy) -> None:
        stray = make_unspent(50_000, chain=20)
        unspents = [make_unspent(200_000), make_unspent(200_000), stray]

        reason = policy.needs_reset(unspents)

        assert reason is not None
        assert reason.excess_unspents
        assert policy.excess_unspents(unspents) == {P2WSH: [stray]}

    def test_excess_keeps_first_observed(self) -> None:
        config = GroupConfig(name="capped", min_unspents={"p2sh": 1}, max_unspents={"p2sh": 2})
        policy = WalletHealthPolicy(config)
        unspents = [make_unspent(200_000) for _ in range(4)]
        assert policy.excess_unspents(unspents) == {P2SH: unspents[2:]}

    def test_unlimited_maximum(self) -> None:
        policy = WalletHealthPolicy(GROUP_PURE_P2SH)
        unspents = [make_unspent(200_000) for _ in range(10)]
        assert policy.excess_unspents(unspents) == {}
        assert policy.needs_reset(unspents) is None

    def test_missing_unspent(self, policy: WalletHealthPolicy) -> None:
        reason = policy.needs_reset([make_unspent(200_000)])
        assert reason is not None
        assert reason.missing_unspent


class TestReadiness:
    """Tests for confirmation-based readiness."""

    def test_unconfirmed_wallet_is_not_flagged_but_not_ready(
        self, policy: WalletHealthPolicy
    ) -> None:
        unspents = [make_unspent(200_000, block_height=None) for _ in range(2)]
        assert policy.needs_reset(unspents) is None
        assert not policy.is_ready(unspents)

    def test_needs_more_than_two_confirmations(self, policy: WalletHealthPolicy) -> None:
        # tip is at 100
        two_confs = [make_unspent(200_000, block_height=98) for _ in range(2)]
        three_confs = [make_unspent(200_000, block_height=97) for _ in range(2)]
        assert not policy.is_ready(two_confs)
        assert policy.is_ready(three_confs)

    @pytest.mark.parametrize("count", [0, 1, 2, 3])
    def test_confirmed_readiness_matches_missing_unspent(
        self, policy: WalletHealthPolicy, count: int
    ) -> None:
        unspents = [make_unspent(200_000) for _ in range(count)]
        reason = policy.needs_reset(unspents)
        missing = reason is not None and reason.missing_unspent
        assert policy.is_ready(unspents) == (not missing)

    def test_requires_chain_view(self, group_config: GroupConfig) -> None:
        policy = WalletHealthPolicy(group_config)
        with pytest.raises(ConfigurationError):
            policy.is_ready([])


class TestClassify:
    """Tests for wallet classification."""

    def test_healthy(self, policy: WalletHealthPolicy) -> None:
        unspents = [make_unspent(200_000), make_unspent(200_000)]
        assert policy.classify(unspents) == WalletState.HEALTHY

    def test_self_reset(self, policy: WalletHealthPolicy) -> None:
        unspents = [make_unspent(1_000_000)]
        assert policy.can_self_reset(unspents)
        assert policy.classify(unspents) == WalletState.SELF_RESET

    def test_faucet(self, policy: WalletHealthPolicy) -> None:
        assert policy.classify([]) == WalletState.FAUCET
        assert policy.classify([make_unspent(300_000)]) == WalletState.FAUCET

    def test_self_reset_threshold_is_strict(self, policy: WalletHealthPolicy) -> None:
        assert not policy.can_self_reset([make_unspent(880_000)])
        assert policy.can_self_reset([make_unspent(880_001)])

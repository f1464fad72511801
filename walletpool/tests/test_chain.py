"""
Tests for chain view and fee estimation.
"""

from __future__ import annotations

import asyncio

import pytest
from fakes import FakeWalletClient, make_unspent

from walletpool.chain import ChainView, output_vsize
from walletpool.errors import RemoteOperationError


class TestConfirmations:
    """Tests for confirmation counting."""

    def test_tip_block_has_no_confirmations(self, chain: ChainView) -> None:
        assert chain.confirmations(make_unspent(1, block_height=100)) == 0

    def test_older_block(self, chain: ChainView) -> None:
        assert chain.confirmations(make_unspent(1, block_height=90)) == 10

    def test_unconfirmed(self, chain: ChainView) -> None:
        assert chain.confirmations(make_unspent(1, block_height=None)) == 0

    def test_height_above_tip(self, chain: ChainView) -> None:
        assert chain.confirmations(make_unspent(1, block_height=101)) == 0

    def test_is_confirmed(self, chain: ChainView) -> None:
        unspent = make_unspent(1, block_height=97)
        assert chain.is_confirmed(unspent, 3)
        assert not chain.is_confirmed(unspent, 4)
        assert not chain.is_confirmed(make_unspent(1, block_height=98), 3)

    @pytest.mark.asyncio
    async def test_fetch(self) -> None:
        view = await ChainView.fetch(FakeWalletClient(height=2_500_000), timeout=5)
        assert view.height == 2_500_000
        assert view.network == "testnet"

    @pytest.mark.asyncio
    async def test_fetch_times_out(self) -> None:
        client = FakeWalletClient()

        async def stalled() -> int:
            await asyncio.sleep(10)
            return 0

        client.get_block_height = stalled
        with pytest.raises(RemoteOperationError, match="get block height"):
            await ChainView.fetch(client, timeout=0.01)

    @pytest.mark.asyncio
    async def test_fetch_failure_is_normalized(self) -> None:
        client = FakeWalletClient()

        async def broken() -> int:
            raise ConnectionError("service unavailable")

        client.get_block_height = broken
        with pytest.raises(RemoteOperationError, match="service unavailable"):
            await ChainView.fetch(client, timeout=5)


class TestFeeEstimation:
    """Tests for transaction size and fee estimation."""

    def test_output_vsize(self) -> None:
        assert output_vsize("tb1q" + "q" * 38) == 31
        assert output_vsize("tb1q" + "q" * 58) == 43
        assert output_vsize("2N1LGaGg836mqSQqiuUBLfcyGBhyZbremDX") == 32
        assert output_vsize("mipcBbFg9gMiCh81Kj8tqqdgoZub1ZJRfn") == 34

    def test_estimate_vsize(self, chain: ChainView) -> None:
        unspents = [make_unspent(10_000, chain=0), make_unspent(10_000, chain=20)]
        assert chain.estimate_vsize(unspents, ["2Nfaucet"]) == 11 + 298 + 105 + 32

    def test_max_spendable(self, chain: ChainView) -> None:
        unspents = [make_unspent(10_000, chain=0)]
        assert chain.max_spendable(unspents, ["2Nfaucet"], fee_rate=10) == 10_000 - 341 * 10

    def test_max_spendable_never_negative(self, chain: ChainView) -> None:
        unspents = [make_unspent(1_000, chain=10)]
        assert chain.max_spendable(unspents, ["2Nfaucet"], fee_rate=10) == 0

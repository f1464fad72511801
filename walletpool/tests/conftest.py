"""
Test configuration for walletpool tests.
"""

from __future__ import annotations

import pytest
from fakes import LABEL_PREFIX, FakeWallet, FakeWalletClient

from walletpool.allocator import WalletPoolAllocator
from walletpool.batch import BatchRunner
from walletpool.chain import ChainView
from walletpool.config import GroupConfig, get_passphrase
from walletpool.constants import FAUCET_LABEL
from walletpool.directory import WalletDirectory
from walletpool.health import WalletHealthPolicy
from walletpool.inventory import UnspentInventory
from walletpool.replenisher import PoolReplenisher


@pytest.fixture
def chain() -> ChainView:
    """Chain tip at height 100; make_unspent defaults to height 90."""
    return ChainView(height=100)


@pytest.fixture
def group_config() -> GroupConfig:
    """Two p2sh unspents, no segwit unspents allowed."""
    return GroupConfig(
        name="test",
        min_unspents={"p2sh": 2},
        max_unspents={"p2shP2wsh": 0, "p2wsh": 0},
    )


@pytest.fixture
def policy(group_config: GroupConfig, chain: ChainView) -> WalletHealthPolicy:
    return WalletHealthPolicy(group_config, chain)


@pytest.fixture
def faucet() -> FakeWallet:
    return FakeWallet("faucet", FAUCET_LABEL, balance=10_000_000)


@pytest.fixture
def make_pool(chain: ChainView, group_config: GroupConfig):
    """Build an allocator and replenisher over a fake wallet service."""

    def _make(
        client: FakeWalletClient,
        pool_size: int,
        faucet: FakeWallet | None = None,
        config: GroupConfig | None = None,
        concurrency: int = 4,
        send_timeout: float | None = None,
    ) -> tuple[WalletPoolAllocator, PoolReplenisher | None]:
        policy = WalletHealthPolicy(config or group_config, chain)
        runner = BatchRunner(concurrency)
        directory = WalletDirectory(client, get_passphrase(), timeout=5)
        allocator = WalletPoolAllocator(
            directory=directory,
            inventory=UnspentInventory(timeout=5),
            policy=policy,
            label_prefix=LABEL_PREFIX,
            pool_size=pool_size,
            runner=runner,
        )
        replenisher = None
        if faucet is not None:
            replenisher = PoolReplenisher(
                allocator=allocator,
                faucet=faucet,
                chain=chain,
                passphrase=get_passphrase(),
                fee_rate=10,
                timeout=5,
                send_timeout=send_timeout,
                runner=runner,
            )
        return allocator, replenisher

    return _make

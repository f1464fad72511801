"""
Wallet pool allocator.

Hands out pooled wallets one caller at a time. The scan is linear in pool
order: used wallets are skipped first, then wallets needing a reset, then
wallets whose confirmed unspents are not sufficient yet.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from loguru import logger

from walletpool.backends.base import Wallet
from walletpool.batch import BatchRunner, failures
from walletpool.constants import LEGACY_LABEL_FORMAT
from walletpool.directory import WalletDirectory
from walletpool.errors import NoWalletAvailableError
from walletpool.health import WalletHealthPolicy
from walletpool.inventory import UnspentInventory
from walletpool.models import Unspent
from walletpool.predicates import as_predicate


@dataclass
class ManagedWallet:
    wallet: Wallet
    index: int
    used: bool = False

    @property
    def label(self) -> str:
        return self.wallet.label


class WalletPoolAllocator:
    """
    Owns the fixed-size wallet pool and the set of wallets handed out.

    Not safe for concurrent callers: ``get_next_wallet`` assumes sequential use.
    """

    def __init__(
        self,
        directory: WalletDirectory,
        inventory: UnspentInventory,
        policy: WalletHealthPolicy,
        label_prefix: str,
        pool_size: int,
        runner: BatchRunner | None = None,
    ):
        self.directory = directory
        self.inventory = inventory
        self.policy = policy
        self.label_prefix = label_prefix
        self.pool_size = pool_size
        self.runner = runner or BatchRunner()
        self._pool: list[ManagedWallet] | None = None
        self._pool_lock = asyncio.Lock()

    def get_label_for_index(self, index: int) -> str:
        return f"{self.label_prefix}{index}"

    def get_wallet_index(self, label: str) -> int | None:
        """Pool index encoded in a label, None if the label is not a pool label"""
        if not label.startswith(self.label_prefix):
            return None
        suffix = label[len(self.label_prefix) :]
        if not (suffix.isascii() and suffix.isdigit()):
            return None
        index = int(suffix)
        # only the canonical spelling of an index belongs to the pool
        if label != self.get_label_for_index(index):
            return None
        return index

    async def _materialize_one(self, index: int) -> ManagedWallet:
        wallet, created = await self.directory.get_or_create(
            self.get_label_for_index(index),
            rename_from=LEGACY_LABEL_FORMAT.format(index=index),
        )
        if created:
            self.inventory.seed(wallet, [])
        return ManagedWallet(wallet=wallet, index=index)

    async def get_pool(self) -> list[ManagedWallet]:
        """
        Get the pooled wallets, resolving or creating them on first use.

        Raises:
            WalletPoolError: The first error hit while resolving a wallet
        """
        async with self._pool_lock:
            if self._pool is None:
                await self.directory.list_wallets()
                results = await self.runner.run(range(self.pool_size), self._materialize_one)
                failed = failures(results)
                if failed:
                    for result in failed:
                        logger.error(f"Failed to resolve pool wallet {result.item}: {result.error}")
                    assert failed[0].error is not None
                    raise failed[0].error
                self._pool = [r.value for r in results if r.value is not None]
                logger.info(f"Wallet pool ready: {len(self._pool)} wallets ({self.label_prefix})")
            return self._pool

    async def get_unspents(self, wallet: Wallet, cache: bool = True) -> list[Unspent]:
        return await self.inventory.get_unspents(wallet, force_refresh=not cache)

    async def get_next_wallet(self, predicate: Any = None, cache: bool = True) -> Wallet:
        """
        Get the next unused, healthy and ready wallet matching predicate.

        Args:
            predicate: WalletPredicate, callable(wallet, unspents) returning a bool
                or an awaitable bool, or None to accept any wallet
            cache: Use cached unspents (False forces a refresh of scanned wallets)

        Raises:
            ConfigurationError: If predicate has an unsupported type
            NoWalletAvailableError: If no wallet qualifies
            RemoteOperationError: If fetching wallets or unspents fails
        """
        strategy = as_predicate(predicate)
        pool = await self.get_pool()

        used_count = needs_reset_count = not_ready_count = rejected_count = 0
        for managed in pool:
            if managed.used:
                used_count += 1
                continue

            unspents = await self.get_unspents(managed.wallet, cache=cache)
            if self.policy.needs_reset(unspents) is not None:
                logger.debug(f"Skipping wallet {managed.label}: needs reset")
                needs_reset_count += 1
                continue

            if not self.policy.is_ready(unspents):
                logger.debug(f"Skipping wallet {managed.label}: not ready")
                not_ready_count += 1
                continue

            if await strategy.matches(managed.wallet, unspents):
                self.mark_used(managed.wallet)
                logger.debug(f"Handing out wallet {managed.label}")
                return managed.wallet

            rejected_count += 1

        raise NoWalletAvailableError(
            used_count=used_count,
            needs_reset_count=needs_reset_count,
            not_ready_count=not_ready_count,
            rejected_count=rejected_count,
        )

    def mark_used(self, wallet: Wallet) -> None:
        for managed in self._pool or []:
            if managed.wallet.id == wallet.id:
                managed.used = True

    def used_wallets(self) -> list[Wallet]:
        return [m.wallet for m in self._pool or [] if m.used]

    def is_used(self, wallet: Wallet) -> bool:
        return any(m.used and m.wallet.id == wallet.id for m in self._pool or [])

"""
Cached per-wallet view of unspents and known addresses.
"""

from __future__ import annotations

import asyncio

from loguru import logger

from walletpool.backends.base import Wallet
from walletpool.constants import PAGE_LIMIT
from walletpool.models import Address, Unspent
from walletpool.remote import call_remote


class UnspentInventory:
    """
    Cache of wallet unspents and addresses keyed by wallet id.

    Each entry holds the pending or completed fetch so concurrent readers of
    the same wallet share one request. A failed fetch is evicted so the next
    read retries it. The unspent set of a wallet is only ever replaced
    wholesale.
    """

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout
        self._unspents: dict[str, asyncio.Future[list[Unspent]]] = {}
        self._addresses: dict[str, asyncio.Future[list[Address]]] = {}

    async def _fetch_unspents(self, wallet: Wallet) -> list[Unspent]:
        unspents: list[Unspent] = []
        prev_id: str | None = None
        while True:
            page = await call_remote(
                wallet.unspents(limit=PAGE_LIMIT, prev_id=prev_id),
                f"unspents {wallet.label}",
                self.timeout,
            )
            unspents.extend(page.unspents)
            prev_id = page.next_batch_prev_id
            if prev_id is None:
                break
        logger.debug(f"Fetched {len(unspents)} unspents of {wallet.label}")
        return unspents

    async def _fetch_addresses(self, wallet: Wallet) -> list[Address]:
        addresses: list[Address] = []
        prev_id: str | None = None
        while True:
            page = await call_remote(
                wallet.addresses(limit=PAGE_LIMIT, prev_id=prev_id),
                f"addresses {wallet.label}",
                self.timeout,
            )
            addresses.extend(page.addresses)
            prev_id = page.next_batch_prev_id
            if prev_id is None:
                break
        return addresses

    @staticmethod
    async def _resolve(cache: dict[str, asyncio.Future], wallet_id: str, task: asyncio.Future):
        try:
            return await task
        except BaseException:
            if cache.get(wallet_id) is task:
                del cache[wallet_id]
            raise

    async def get_unspents(self, wallet: Wallet, force_refresh: bool = False) -> list[Unspent]:
        """Get unspents of a wallet, fetching them if not cached or force_refresh is set"""
        if force_refresh or wallet.id not in self._unspents:
            self._unspents[wallet.id] = asyncio.ensure_future(self._fetch_unspents(wallet))
        return list(await self._resolve(self._unspents, wallet.id, self._unspents[wallet.id]))

    async def get_addresses(self, wallet: Wallet, force_refresh: bool = False) -> list[Address]:
        """Get known addresses of a wallet"""
        if force_refresh or wallet.id not in self._addresses:
            self._addresses[wallet.id] = asyncio.ensure_future(self._fetch_addresses(wallet))
        return list(await self._resolve(self._addresses, wallet.id, self._addresses[wallet.id]))

    def seed(self, wallet: Wallet, unspents: list[Unspent]) -> None:
        """Set known unspents, e.g. for a freshly generated (empty) wallet"""
        future: asyncio.Future[list[Unspent]] = asyncio.get_running_loop().create_future()
        future.set_result(list(unspents))
        self._unspents[wallet.id] = future

    def invalidate(self, wallet: Wallet) -> None:
        """Drop cached data of a wallet"""
        self._unspents.pop(wallet.id, None)
        self._addresses.pop(wallet.id, None)

    def is_cached(self, wallet: Wallet) -> bool:
        return wallet.id in self._unspents

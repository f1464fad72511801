"""
Label-based lookup of wallets on the wallet service.
"""

from __future__ import annotations

import asyncio

from loguru import logger

from walletpool.backends.base import Wallet, WalletClient
from walletpool.constants import PAGE_LIMIT
from walletpool.errors import ConfigurationError, DuplicateLabelError
from walletpool.remote import call_remote


class WalletDirectory:
    """
    Resolves wallets by exact label, creating missing ones.

    The full wallet list is fetched once (paginated) and kept up to date with
    wallets created or renamed through this directory.
    """

    def __init__(self, client: WalletClient, passphrase: str, timeout: float | None = None):
        self.client = client
        self.passphrase = passphrase
        self.timeout = timeout
        self._wallets: list[Wallet] | None = None
        self._lock = asyncio.Lock()

    async def list_wallets(self, force_refresh: bool = False) -> list[Wallet]:
        """All wallets visible to the client"""
        async with self._lock:
            if self._wallets is None or force_refresh:
                self._wallets = await self._fetch_wallets()
            return self._wallets

    async def _fetch_wallets(self) -> list[Wallet]:
        wallets: list[Wallet] = []
        prev_id: str | None = None
        while True:
            page = await call_remote(
                self.client.list_wallets(prev_id=prev_id, limit=PAGE_LIMIT),
                "list wallets",
                self.timeout,
            )
            wallets.extend(page.wallets)
            prev_id = page.next_batch_prev_id
            if prev_id is None:
                break

        logger.debug(f"Fetched {len(wallets)} wallets")
        return wallets

    def _remember(self, wallet: Wallet) -> None:
        if self._wallets is not None:
            self._wallets.append(wallet)

    def _replace(self, wallet: Wallet) -> None:
        if self._wallets is not None:
            self._wallets = [wallet if w.id == wallet.id else w for w in self._wallets]

    async def get_or_create(
        self, label: str, rename_from: str | None = None
    ) -> tuple[Wallet, bool]:
        """
        Get the wallet with the given label, creating it if missing.

        A wallet still carrying the legacy label ``rename_from`` is renamed and
        resolved again once.

        Returns:
            (wallet, created) where created is True for a freshly generated wallet

        Raises:
            DuplicateLabelError: If several wallets match
            ConfigurationError: If a renamed wallet still has the wrong label
        """
        wallets = await self.list_wallets()
        matches = [
            w
            for w in wallets
            if w.label == label or (rename_from is not None and w.label == rename_from)
        ]

        if not matches:
            logger.info(f"No wallet with label {label} - creating new wallet...")
            wallet = await call_remote(
                self.client.generate_wallet(label, self.passphrase),
                f"generate wallet {label}",
                self.timeout,
            )
            self._remember(wallet)
            return wallet, True

        if len(matches) > 1:
            raise DuplicateLabelError(label, len(matches))

        match = matches[0]
        if match.label != label:
            logger.warning(f"Renaming wallet {match.id} from {match.label} to {label}")
            await call_remote(
                self.client.rename_wallet(match.id, label),
                f"rename wallet {match.id}",
                self.timeout,
            )
            renamed = await call_remote(
                self.client.get_wallet(match.id), f"get wallet {match.id}", self.timeout
            )
            if renamed.label != label:
                raise ConfigurationError(
                    f"wallet {match.id} has label {renamed.label!r} after rename to {label!r}"
                )
            self._replace(renamed)
            return await self.get_or_create(label)

        logger.debug(f"Fetching wallet {label}...")
        wallet = await call_remote(
            self.client.get_wallet(match.id), f"get wallet {label}", self.timeout
        )
        self._replace(wallet)
        return wallet, False

    def forget(self, wallet: Wallet) -> None:
        """Remove a deleted wallet from the cached list"""
        if self._wallets is not None:
            self._wallets = [w for w in self._wallets if w.id != wallet.id]

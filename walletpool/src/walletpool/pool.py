"""
Managed wallet pool.

Entry point for test harnesses::

    async with await ManagedWallets.create("test", "ci@example.com", GROUP_PURE_P2WSH) as mw:
        wallet = await mw.get_next_wallet(lambda w, unspents: len(unspents) > 4)
        ...

Leaving the context runs ``reset_wallets`` so the pool is healthy for the
next run. Callers not using the context manager call ``reset_wallets``
themselves.
"""

from __future__ import annotations

from types import TracebackType
from typing import Any

from loguru import logger

from walletpool.allocator import WalletPoolAllocator
from walletpool.backends.base import Wallet, WalletClient
from walletpool.backends.rest import RestWalletClient
from walletpool.batch import BatchRunner
from walletpool.chain import ChainView
from walletpool.config import (
    GroupConfig,
    PoolSettings,
    get_passphrase,
    load_settings,
    resolve_api_url,
)
from walletpool.constants import FAUCET_LABEL, LABEL_PREFIX_FORMAT
from walletpool.directory import WalletDirectory
from walletpool.health import WalletHealthPolicy
from walletpool.inventory import UnspentInventory
from walletpool.models import ReplenishmentReport, Unspent
from walletpool.predicates import UnspentsConfirmed
from walletpool.replenisher import PoolReplenisher


class ManagedWallets:
    """
    Pool of funded wallets for one group configuration.

    Use ``await ManagedWallets.create(...)`` rather than the constructor.
    """

    def __init__(
        self,
        env: str,
        client_id: str,
        group_config: GroupConfig,
        client: WalletClient,
        settings: PoolSettings,
        chain: ChainView,
        faucet: Wallet,
        directory: WalletDirectory,
    ):
        self.env = env
        self.client_id = client_id
        self.group_config = group_config
        self.client = client
        self.settings = settings
        self.chain = chain
        self.faucet = faucet
        self.label_prefix = LABEL_PREFIX_FORMAT.format(group=group_config.name)

        runner = BatchRunner(settings.concurrency)
        self.inventory = UnspentInventory(timeout=settings.remote_timeout)
        self.policy = WalletHealthPolicy(group_config, chain)
        self.allocator = WalletPoolAllocator(
            directory=directory,
            inventory=self.inventory,
            policy=self.policy,
            label_prefix=self.label_prefix,
            pool_size=settings.pool_size,
            runner=runner,
        )
        self.replenisher = PoolReplenisher(
            allocator=self.allocator,
            faucet=faucet,
            chain=chain,
            passphrase=get_passphrase(),
            fee_rate=settings.fee_rate,
            timeout=settings.remote_timeout,
            send_timeout=settings.send_timeout,
            runner=runner,
        )

    @classmethod
    async def create(
        cls,
        env: str,
        client_id: str,
        group_config: GroupConfig,
        pool_size: int | None = None,
        *,
        client: WalletClient | None = None,
        settings: PoolSettings | None = None,
    ) -> ManagedWallets:
        """
        Connect to the wallet service and resolve the faucet.

        Pool wallets are resolved lazily on first use.

        Args:
            env: Wallet service environment ("test" or "dev")
            client_id: Identity of the harness user, used in logs and request headers
            group_config: Unspent requirements of the pooled wallets
            pool_size: Number of pooled wallets (default: MW_POOL_SIZE or 32)
            client: Wallet service client (default: REST client for env)
            settings: Pool settings (default: loaded from the environment)

        Raises:
            ConfigurationError: On unsupported env or invalid settings
            RemoteOperationError: If the wallet service cannot be reached
        """
        if settings is None:
            settings = load_settings(pool_size=pool_size)
        elif pool_size is not None:
            settings = settings.model_copy(update={"pool_size": pool_size})

        api_url = resolve_api_url(env, settings)
        if client is None:
            client = RestWalletClient(
                base_url=api_url,
                access_token=settings.access_token,
                coin=settings.coin,
                client_id=client_id,
                send_timeout=settings.send_timeout,
            )

        logger.info(
            f"Initializing managed wallets env={env} group={group_config.name} "
            f"pool_size={settings.pool_size} client={client_id}"
        )
        chain = await ChainView.fetch(client, timeout=settings.remote_timeout)

        directory = WalletDirectory(client, get_passphrase(), timeout=settings.remote_timeout)
        faucet, _ = await directory.get_or_create(FAUCET_LABEL)

        return cls(
            env=env,
            client_id=client_id,
            group_config=group_config,
            client=client,
            settings=settings,
            chain=chain,
            faucet=faucet,
            directory=directory,
        )

    @property
    def pool_size(self) -> int:
        return self.settings.pool_size

    @staticmethod
    def get_passphrase() -> str:
        return get_passphrase()

    async def get_next_wallet(self, predicate: Any = None) -> Wallet:
        """Hand out the next ready wallet matching predicate (see WalletPoolAllocator)"""
        return await self.allocator.get_next_wallet(predicate)

    async def get_unspents(self, wallet: Wallet, cache: bool = True) -> list[Unspent]:
        return await self.allocator.get_unspents(wallet, cache=cache)

    def predicate_unspents_confirmed(self, min_confirmations: int) -> UnspentsConfirmed:
        return UnspentsConfirmed(min_confirmations, self.chain)

    async def reset_wallets(self) -> ReplenishmentReport:
        """Restore pool health; raises AggregateReplenishmentError on partial failure"""
        return await self.replenisher.reset_wallets()

    async def cleanup(self) -> dict[str, str]:
        """Sweep and remove group wallets outside the pool"""
        return await self.replenisher.cleanup()

    async def close(self) -> None:
        await self.client.close()

    async def __aenter__(self) -> ManagedWallets:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            await self.reset_wallets()
            logger.debug("reset_wallets() finished")
        finally:
            await self.close()

"""
Base wallet service interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from walletpool.models import Address, Recipient, SendResult, Unspent


@dataclass
class UnspentPage:
    unspents: list[Unspent]
    next_batch_prev_id: str | None = None


@dataclass
class AddressPage:
    addresses: list[Address]
    next_batch_prev_id: str | None = None


@dataclass
class WalletPage:
    wallets: list[Wallet] = field(default_factory=list)
    next_batch_prev_id: str | None = None


class Wallet(ABC):
    """
    Handle to a wallet hosted by the wallet service.

    Identity and balances reflect the state at the time the handle was fetched.
    Transaction construction and signing happen on the service side.
    """

    @property
    @abstractmethod
    def id(self) -> str:
        """Wallet id"""

    @property
    @abstractmethod
    def label(self) -> str:
        """Wallet label"""

    @property
    @abstractmethod
    def balance(self) -> int:
        """Confirmed plus unconfirmed balance in base units"""

    @property
    @abstractmethod
    def spendable_balance(self) -> int:
        """Balance available for spending in base units"""

    @property
    @abstractmethod
    def receive_address(self) -> str:
        """Current default receive address"""

    @abstractmethod
    async def create_address(self, chain: int) -> Address:
        """Derive a new address on the given chain code"""

    @abstractmethod
    async def unspents(self, limit: int = 100, prev_id: str | None = None) -> UnspentPage:
        """List a page of unspent outputs"""

    @abstractmethod
    async def addresses(self, limit: int = 100, prev_id: str | None = None) -> AddressPage:
        """List a page of known addresses"""

    @abstractmethod
    async def send_many(
        self,
        recipients: list[Recipient],
        wallet_passphrase: str,
        fee_rate: int | None = None,
        unspents: list[str] | None = None,
        change_address: str | None = None,
    ) -> SendResult:
        """Build, sign and broadcast a transaction paying the recipients"""

    @abstractmethod
    async def sweep(
        self, address: str, wallet_passphrase: str, fee_rate: int | None = None
    ) -> SendResult:
        """Send the whole balance to a single address"""

    @abstractmethod
    async def consolidate_unspents(self, wallet_passphrase: str, **params: Any) -> SendResult:
        """Merge unspents into fewer outputs"""

    @abstractmethod
    async def fanout_unspents(self, wallet_passphrase: str, **params: Any) -> SendResult:
        """Split unspents into more outputs"""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.label} ({self.id})>"


class WalletClient(ABC):
    """
    Abstract wallet service client.
    All calls are remote and may fail; callers decide about timeouts.
    """

    network: str = "testnet"

    @abstractmethod
    async def list_wallets(self, prev_id: str | None = None, limit: int = 100) -> WalletPage:
        """List a page of wallets visible to the client"""

    @abstractmethod
    async def get_wallet(self, wallet_id: str) -> Wallet:
        """Fetch a wallet with current balances"""

    @abstractmethod
    async def generate_wallet(self, label: str, passphrase: str) -> Wallet:
        """Create a new wallet"""

    @abstractmethod
    async def rename_wallet(self, wallet_id: str, label: str) -> None:
        """Change the label of a wallet"""

    @abstractmethod
    async def remove_wallet(self, wallet_id: str) -> None:
        """Delete a wallet"""

    @abstractmethod
    async def get_block_height(self) -> int:
        """Get current blockchain height"""

    async def close(self) -> None:
        """Close client connection"""
        pass

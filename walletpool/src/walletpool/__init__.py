"""
walletpool - Pool of reusable funded wallets for integration tests

Hands out healthy wallets to test cases and restores their unspent
inventory from a faucet wallet afterwards.
"""

__version__ = "0.1.0"

from walletpool.allocator import ManagedWallet, WalletPoolAllocator
from walletpool.batch import BatchResult, BatchRunner, run_bounded
from walletpool.chain import ChainView
from walletpool.config import (
    GROUP_PRESETS,
    GROUP_PURE_P2SH,
    GROUP_PURE_P2SH_P2WSH,
    GROUP_PURE_P2WSH,
    GroupConfig,
    PoolSettings,
    get_passphrase,
)
from walletpool.errors import (
    AggregateReplenishmentError,
    ConfigurationError,
    DuplicateLabelError,
    FaucetDryError,
    NoAvailableResourceError,
    NoWalletAvailableError,
    RemoteOperationError,
    ResourceExhaustionError,
    WalletPoolError,
)
from walletpool.health import WalletHealthPolicy
from walletpool.inventory import UnspentInventory
from walletpool.models import ChainCodeGroup, Unspent, WalletLimits
from walletpool.pool import ManagedWallets
from walletpool.predicates import (
    AnyWallet,
    FunctionPredicate,
    MinUnspentCount,
    UnspentsConfirmed,
    WalletPredicate,
)
from walletpool.replenisher import PoolReplenisher

__all__ = [
    "AggregateReplenishmentError",
    "AnyWallet",
    "BatchResult",
    "BatchRunner",
    "ChainCodeGroup",
    "ChainView",
    "ConfigurationError",
    "DuplicateLabelError",
    "FaucetDryError",
    "FunctionPredicate",
    "GROUP_PRESETS",
    "GROUP_PURE_P2SH",
    "GROUP_PURE_P2SH_P2WSH",
    "GROUP_PURE_P2WSH",
    "GroupConfig",
    "ManagedWallet",
    "ManagedWallets",
    "MinUnspentCount",
    "NoAvailableResourceError",
    "NoWalletAvailableError",
    "PoolReplenisher",
    "PoolSettings",
    "RemoteOperationError",
    "ResourceExhaustionError",
    "Unspent",
    "UnspentInventory",
    "UnspentsConfirmed",
    "WalletHealthPolicy",
    "WalletLimits",
    "WalletPoolAllocator",
    "WalletPoolError",
    "WalletPredicate",
    "get_passphrase",
    "run_bounded",
]

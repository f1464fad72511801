"""
Wallet service client implementations.

Available backends:
- RestWalletClient: BitGo-Express-style JSON API over HTTPS
"""

from walletpool.backends.base import (
    AddressPage,
    UnspentPage,
    Wallet,
    WalletClient,
    WalletPage,
)
from walletpool.backends.rest import ENVIRONMENT_URLS, RestWallet, RestWalletClient

__all__ = [
    "AddressPage",
    "ENVIRONMENT_URLS",
    "RestWallet",
    "RestWalletClient",
    "UnspentPage",
    "Wallet",
    "WalletClient",
    "WalletPage",
]

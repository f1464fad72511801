"""
Wallet selection predicates.

Callers of ``get_next_wallet`` describe the wallet they need with a
``WalletPredicate``. Plain callables (sync or async) are wrapped in a
``FunctionPredicate``.
"""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from walletpool.backends.base import Wallet
from walletpool.chain import ChainView
from walletpool.errors import ConfigurationError
from walletpool.models import Unspent


class WalletPredicate(ABC):
    """Decides whether a ready wallet fits a caller's needs."""

    @abstractmethod
    async def matches(self, wallet: Wallet, unspents: list[Unspent]) -> bool:
        """Return True if the wallet should be handed out"""


class AnyWallet(WalletPredicate):
    async def matches(self, wallet: Wallet, unspents: list[Unspent]) -> bool:
        return True


class FunctionPredicate(WalletPredicate):
    """Adapter for a callable returning a bool or an awaitable bool"""

    def __init__(self, func: Callable[[Wallet, list[Unspent]], Any]):
        self.func = func

    async def matches(self, wallet: Wallet, unspents: list[Unspent]) -> bool:
        result = self.func(wallet, unspents)
        if inspect.isawaitable(result):
            result = await result
        return bool(result)


class MinUnspentCount(WalletPredicate):
    """Wallet holds more than ``count`` unspents"""

    def __init__(self, count: int):
        self.count = count

    async def matches(self, wallet: Wallet, unspents: list[Unspent]) -> bool:
        return len(unspents) > self.count


class UnspentsConfirmed(WalletPredicate):
    """Every unspent of the wallet has at least ``min_confirmations``"""

    def __init__(self, min_confirmations: int, chain: ChainView):
        self.min_confirmations = min_confirmations
        self.chain = chain

    async def matches(self, wallet: Wallet, unspents: list[Unspent]) -> bool:
        return all(self.chain.is_confirmed(u, self.min_confirmations) for u in unspents)


def as_predicate(predicate: Any) -> WalletPredicate:
    """
    Normalize a caller-supplied predicate.

    Raises:
        ConfigurationError: If predicate is neither None, a WalletPredicate nor callable
    """
    if predicate is None:
        return AnyWallet()
    if isinstance(predicate, WalletPredicate):
        return predicate
    if callable(predicate):
        return FunctionPredicate(predicate)
    raise ConfigurationError(f"predicate must be callable, got {type(predicate).__name__}")

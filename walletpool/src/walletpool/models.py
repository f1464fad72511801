"""
Wallet pool data models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class ChainCodeGroup:
    """Chain codes of one address script family (external and internal)."""

    name: str
    external: int
    internal: int

    @property
    def values(self) -> tuple[int, int]:
        return (self.external, self.internal)

    def has(self, chain: int) -> bool:
        return chain in self.values


P2SH = ChainCodeGroup("p2sh", external=0, internal=1)
P2SH_P2WSH = ChainCodeGroup("p2shP2wsh", external=10, internal=11)
P2WSH = ChainCodeGroup("p2wsh", external=20, internal=21)

CHAIN_CODE_GROUPS: tuple[ChainCodeGroup, ...] = (P2SH, P2SH_P2WSH, P2WSH)


def group_for_chain(chain: int) -> ChainCodeGroup:
    """Get the group a chain code belongs to"""
    for group in CHAIN_CODE_GROUPS:
        if group.has(chain):
            return group
    raise ValueError(f"Unknown chain code {chain}")


def get_group(name: str) -> ChainCodeGroup:
    for group in CHAIN_CODE_GROUPS:
        if group.name == name:
            return group
    raise ValueError(f"Unknown chain code group {name}")


@dataclass(frozen=True)
class Unspent:
    """Unspent output of a wallet as reported by the wallet service"""

    id: str  # "<txid>:<vout>"
    address: str
    value: int
    chain: int
    index: int
    block_height: int | None = None  # None while unconfirmed

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Unspent:
        height = data.get("blockHeight")
        return cls(
            id=data["id"],
            address=data["address"],
            value=int(data["value"]),
            chain=int(data["chain"]),
            index=int(data.get("index", 0)),
            block_height=int(height) if height is not None else None,
        )


@dataclass(frozen=True)
class Address:
    """Receive address known to a wallet"""

    address: str
    chain: int
    index: int = 0
    total_received: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Address:
        balance = data.get("balance") or {}
        return cls(
            address=data["address"],
            chain=int(data["chain"]),
            index=int(data.get("index", 0)),
            total_received=int(balance.get("totalReceived", 0)),
        )


@dataclass(frozen=True)
class Recipient:
    address: str
    amount: int

    def to_dict(self) -> dict[str, Any]:
        return {"address": self.address, "amount": self.amount}


@dataclass
class SendResult:
    """Result of a transaction submission"""

    status: str
    txid: str | None = None
    tx: str | None = None  # Raw transaction hex

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SendResult:
        return cls(status=data.get("status", ""), txid=data.get("txid"), tx=data.get("tx"))


@dataclass(frozen=True)
class WalletLimits:
    """Balance thresholds derived from a group configuration"""

    min_unspent_balance: int
    reset_unspent_balance: int
    min_self_reset_balance: float
    max_total_balance: int


@dataclass(frozen=True)
class ResetReason:
    """Why a wallet needs a reset"""

    excess_balance: bool = False
    excess_unspents: bool = False
    missing_unspent: bool = False


class WalletState(str, Enum):
    HEALTHY = "healthy"
    SELF_RESET = "self_reset"
    FAUCET = "faucet"


@dataclass
class ReplenishmentReport:
    """Summary of a successful replenishment run"""

    healthy: list[str] = field(default_factory=list)
    self_reset: list[str] = field(default_factory=list)
    swept: list[str] = field(default_factory=list)
    faucet_funded: list[str] = field(default_factory=list)
    txids: list[str] = field(default_factory=list)

    @property
    def transaction_count(self) -> int:
        return len(self.txids)


def sum_unspents(unspents: list[Unspent]) -> int:
    return sum(u.value for u in unspents)

"""
Wallet pool exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from walletpool.models import Recipient


class WalletPoolError(Exception):
    """Base class for wallet pool errors."""


class ConfigurationError(WalletPoolError):
    """Invalid environment, settings, predicate or wallet labels."""


class DuplicateLabelError(ConfigurationError):
    """More than one wallet carries the same label."""

    def __init__(self, label: str, count: int):
        self.label = label
        self.count = count
        super().__init__(f"More than one wallet with label {label} ({count}). Remove duplicates.")


class ResourceExhaustionError(WalletPoolError):
    """Not enough funds or recipients to perform an operation."""


class FaucetDryError(ResourceExhaustionError):
    """Faucet balance does not cover all required top-ups."""

    def __init__(
        self,
        faucet_balance: int,
        faucet_address: str,
        unfunded: list[Recipient],
    ):
        self.faucet_balance = faucet_balance
        self.faucet_address = faucet_address
        self.unfunded = unfunded
        super().__init__(
            f"Faucet has run dry (faucet_balance={faucet_balance}, "
            f"unfunded_recipients={len(unfunded)}). "
            f"Please deposit funds at {faucet_address}"
        )


class NoAvailableResourceError(WalletPoolError):
    """No pooled resource satisfies the request."""


class NoWalletAvailableError(NoAvailableResourceError):
    """No wallet matches the predicate and readiness criteria."""

    def __init__(
        self,
        used_count: int,
        needs_reset_count: int,
        not_ready_count: int,
        rejected_count: int = 0,
    ):
        self.used_count = used_count
        self.needs_reset_count = needs_reset_count
        self.not_ready_count = not_ready_count
        self.rejected_count = rejected_count
        super().__init__(
            f"No wallet matching criteria found (used={used_count}, "
            f"needs_reset={needs_reset_count}, not_ready={not_ready_count}, "
            f"rejected={rejected_count})"
        )

    @property
    def total(self) -> int:
        return self.used_count + self.needs_reset_count + self.not_ready_count + self.rejected_count


class RemoteOperationError(WalletPoolError):
    """An external wallet service call failed or timed out."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation}: {message}")


class UnexpectedTransactionError(RemoteOperationError):
    """A submitted transaction does not have the expected shape."""


@dataclass
class ItemFailure:
    """Failure of a single item during a fan-out step"""

    identity: str
    error: BaseException

    def __str__(self) -> str:
        return f"{self.identity}: {type(self.error).__name__}: {self.error}"


class AggregateReplenishmentError(WalletPoolError):
    """One or more operations failed during replenishment."""

    def __init__(self, failures: list[ItemFailure]):
        self.failures = failures
        lines = [f"{len(failures)} failure(s) during replenishment:"]
        lines.extend(f"  - {failure}" for failure in failures)
        super().__init__("\n".join(lines))

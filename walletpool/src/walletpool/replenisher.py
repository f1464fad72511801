"""
Pool replenishment.

Restores the health of every pooled wallet after a run:

1. Refresh inventories (forced for wallets handed out during the run).
2. Classify wallets as healthy, self-resettable or faucet-dependent.
3. Self-reset: a wallet with enough funds spends all its unspents into fresh
   outputs of ``reset_unspent_balance``.
4. Sweep: faucet-dependent wallets holding too many unspents send the excess
   to the faucet.
5. Faucet funding: the remaining top-ups are paid from the faucet in a single
   transaction, as far as its balance allows.

Per-wallet operations run with bounded concurrency; failures are collected
and raised together once all wallets have been processed.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeVar

from loguru import logger

from walletpool.allocator import ManagedWallet, WalletPoolAllocator
from walletpool.backends.base import Wallet
from walletpool.batch import BatchResult, BatchRunner
from walletpool.chain import ChainView
from walletpool.constants import DEFAULT_FEE_RATE
from walletpool.errors import (
    AggregateReplenishmentError,
    FaucetDryError,
    ItemFailure,
    RemoteOperationError,
    ResourceExhaustionError,
    UnexpectedTransactionError,
    WalletPoolError,
)
from walletpool.health import WalletHealthPolicy
from walletpool.inventory import UnspentInventory
from walletpool.models import (
    Recipient,
    ReplenishmentReport,
    ResetReason,
    SendResult,
    Unspent,
    WalletState,
)
from walletpool.remote import call_remote
from walletpool.tx import parse_outputs

T = TypeVar("T")
R = TypeVar("R")


def wallet_identity(wallet: Wallet) -> str:
    return f"{wallet.label} ({wallet.id})"


def select_fundable(
    recipients: list[Recipient], balance: int
) -> tuple[list[Recipient], list[Recipient]]:
    """
    Split recipients into those the faucet can pay and the rest.

    Recipients are accepted in order while the cumulative amount stays within
    balance. The first recipient that would exceed it, and every later one, is
    rejected.
    """
    total = 0
    for i, recipient in enumerate(recipients):
        if total + recipient.amount > balance:
            return recipients[:i], recipients[i:]
        total += recipient.amount
    return list(recipients), []


class PoolReplenisher:
    """Brings every wallet of a pool back into a healthy state."""

    def __init__(
        self,
        allocator: WalletPoolAllocator,
        faucet: Wallet,
        chain: ChainView,
        passphrase: str,
        fee_rate: int = DEFAULT_FEE_RATE,
        timeout: float | None = None,
        send_timeout: float | None = None,
        runner: BatchRunner | None = None,
    ):
        self.allocator = allocator
        self.faucet = faucet
        self.chain = chain
        self.passphrase = passphrase
        self.fee_rate = fee_rate
        self.timeout = timeout
        self.send_timeout = send_timeout if send_timeout is not None else timeout
        self.runner = runner or allocator.runner

    @property
    def policy(self) -> WalletHealthPolicy:
        return self.allocator.policy

    @property
    def inventory(self) -> UnspentInventory:
        return self.allocator.inventory

    async def _run(
        self,
        items: list[T],
        operation: Callable[[T], Awaitable[R]],
        identity: Callable[[T], str],
        errors: list[ItemFailure],
        step: str,
    ) -> list[BatchResult[T, R]]:
        results = await self.runner.run(items, operation)
        for result in results:
            if result.error is not None:
                name = identity(result.item)
                logger.error(f"{step} failed for {name}: {result.error}")
                errors.append(ItemFailure(name, result.error))
        return [r for r in results if r.ok]

    async def _refresh_faucet(self) -> Wallet:
        """Fetch the faucet with current balances (once per run)"""
        self.faucet = await call_remote(
            self.allocator.directory.client.get_wallet(self.faucet.id),
            f"get faucet {self.faucet.label}",
            self.timeout,
        )
        return self.faucet

    async def reset_recipients(self, wallet: Wallet, unspents: list[Unspent]) -> list[Recipient]:
        """
        Recipients topping up the wallet's groups, each worth reset_unspent_balance.

        Known addresses that never received funds are used before new
        addresses are derived.
        """
        top_ups = [(g, c) for g, c in self.policy.required_top_ups(unspents) if c > 0]
        if not top_ups:
            return []

        known = await self.inventory.get_addresses(wallet, force_refresh=True)
        taken: set[str] = set()
        recipients: list[Recipient] = []
        amount = self.policy.limits.reset_unspent_balance

        for group, count in top_ups:
            addresses = [
                a.address
                for a in known
                if a.chain == group.external and a.total_received == 0 and a.address not in taken
            ][:count]
            taken.update(addresses)

            for _ in range(count - len(addresses)):
                created = await call_remote(
                    wallet.create_address(group.external),
                    f"create address {wallet.label}",
                    self.timeout,
                )
                if created.chain != group.external:
                    raise RemoteOperationError(
                        f"create address {wallet.label}",
                        f"unexpected chain {created.chain}, expected {group.external}",
                    )
                addresses.append(created.address)

            recipients.extend(Recipient(address, amount) for address in addresses)

        return recipients

    async def try_self_reset(
        self, wallet: Wallet, unspents: list[Unspent], faucet_address: str
    ) -> SendResult:
        """
        Spend all unspents of a wallet into a fresh set of reset outputs.

        One recipient address is used as change so that the payment outputs all
        have exactly ``reset_unspent_balance``. Wallets over the maximum balance
        send their change to the faucet instead.

        Raises:
            ResourceExhaustionError: If fewer than two recipients can be formed
            RemoteOperationError: If address creation or submission fails
        """
        recipients = await self.reset_recipients(wallet, [])
        if len(recipients) < 2:
            raise ResourceExhaustionError(
                f"insufficient reset recipients for {wallet_identity(wallet)}: "
                f"{len(recipients)}, need at least 2"
            )

        if self.policy.should_refund_to_faucet(unspents):
            change_address = faucet_address
        else:
            change_address = recipients.pop().address

        logger.info(
            f"Self-reset {wallet.label}: {len(unspents)} unspents -> "
            f"{len(recipients)} outputs, change to {change_address}"
        )
        return await call_remote(
            wallet.send_many(
                recipients=recipients,
                wallet_passphrase=self.passphrase,
                fee_rate=self.fee_rate,
                unspents=[u.id for u in unspents],
                change_address=change_address,
            ),
            f"self-reset {wallet.label}",
            self.send_timeout,
        )

    async def sweep_excess_unspents(
        self, wallet: Wallet, unspents: list[Unspent], faucet_address: str
    ) -> SendResult:
        """
        Send the unspents beyond each group's maximum to the faucet.

        Raises:
            ResourceExhaustionError: If the excess does not cover the fee
            UnexpectedTransactionError: If the transaction has other than one output
        """
        excess = [u for group in self.policy.excess_unspents(unspents).values() for u in group]
        amount = self.chain.max_spendable(excess, [faucet_address], self.fee_rate)
        if amount <= 0:
            raise ResourceExhaustionError(
                f"excess unspents of {wallet_identity(wallet)} do not cover the sweep fee"
            )

        logger.info(
            f"Sweeping {len(excess)} excess unspents of {wallet.label} ({amount}) to faucet"
        )
        operation = f"sweep excess {wallet.label}"
        result = await call_remote(
            wallet.send_many(
                recipients=[Recipient(faucet_address, amount)],
                wallet_passphrase=self.passphrase,
                fee_rate=self.fee_rate,
                unspents=[u.id for u in excess],
            ),
            operation,
            self.send_timeout,
        )

        if not result.tx:
            raise UnexpectedTransactionError(operation, "no transaction returned")
        try:
            outputs = parse_outputs(result.tx)
        except ValueError as e:
            raise UnexpectedTransactionError(operation, f"unparseable transaction: {e}") from e
        if len(outputs) != 1:
            raise UnexpectedTransactionError(
                operation, f"expected exactly 1 output, got {len(outputs)}"
            )
        return result

    async def reset_wallets(self) -> ReplenishmentReport:
        """
        Restore the health of all pooled wallets.

        Returns:
            Summary of what was done

        Raises:
            AggregateReplenishmentError: If any wallet failed or the faucet could
                not fund every required top-up
        """
        pool = await self.allocator.get_pool()
        errors: list[ItemFailure] = []
        report = ReplenishmentReport()

        def managed_identity(managed: ManagedWallet) -> str:
            return wallet_identity(managed.wallet)

        async def load(managed: ManagedWallet) -> list[Unspent]:
            return await self.inventory.get_unspents(managed.wallet, force_refresh=managed.used)

        loaded = await self._run(pool, load, managed_identity, errors, "Refreshing unspents")
        unspent_map = {r.item.wallet.id: r.value or [] for r in loaded}
        wallets = [r.item for r in loaded]

        by_state: dict[WalletState, list[ManagedWallet]] = {state: [] for state in WalletState}
        for managed in wallets:
            unspents = unspent_map[managed.wallet.id]
            self.policy.describe(managed.label, unspents)
            by_state[self.policy.classify(unspents)].append(managed)

        report.healthy = [m.label for m in by_state[WalletState.HEALTHY]]
        self_resettable = by_state[WalletState.SELF_RESET]
        faucet_dependent = by_state[WalletState.FAUCET]
        logger.info(
            f"Checking reset for {len(pool)} wallets: {len(report.healthy)} healthy, "
            f"{len(self_resettable)} self-reset, {len(faucet_dependent)} faucet-dependent"
        )

        if self_resettable or faucet_dependent:
            faucet = await self._refresh_faucet()
            faucet_address = faucet.receive_address

            # Self-reset
            async def self_reset(managed: ManagedWallet) -> SendResult:
                return await self.try_self_reset(
                    managed.wallet, unspent_map[managed.wallet.id], faucet_address
                )

            for result in await self._run(
                self_resettable, self_reset, managed_identity, errors, "Self-reset"
            ):
                report.self_reset.append(result.item.label)
                report.txids.append(result.value.txid if result.value else "")
            for managed in self_resettable:
                self.inventory.invalidate(managed.wallet)

            # Excess unspent sweep
            remaining = {
                m.wallet.id: self._without_excess(unspent_map[m.wallet.id])
                for m in faucet_dependent
            }
            sweep_candidates = [
                m
                for m in faucet_dependent
                if self._reason(unspent_map[m.wallet.id]).excess_unspents
            ]

            async def sweep(managed: ManagedWallet) -> SendResult:
                return await self.sweep_excess_unspents(
                    managed.wallet, unspent_map[managed.wallet.id], faucet_address
                )

            for result in await self._run(
                sweep_candidates, sweep, managed_identity, errors, "Excess sweep"
            ):
                report.swept.append(result.item.label)
                report.txids.append(result.value.txid if result.value else "")
            for managed in sweep_candidates:
                self.inventory.invalidate(managed.wallet)

            # Faucet-funded reset
            async def recipients_for(managed: ManagedWallet) -> list[Recipient]:
                return await self.reset_recipients(managed.wallet, remaining[managed.wallet.id])

            faucet_recipients: list[Recipient] = []
            funded_wallets: list[tuple[ManagedWallet, int]] = []
            for result in await self._run(
                faucet_dependent, recipients_for, managed_identity, errors, "Reset recipients"
            ):
                if result.value:
                    funded_wallets.append((result.item, len(result.value)))
                    faucet_recipients.extend(result.value)

            faucet_balance = faucet.spendable_balance
            accepted, rejected = select_fundable(faucet_recipients, faucet_balance)

            if accepted:
                logger.info(
                    f"Funding {len(accepted)} recipients from faucet "
                    f"({sum(r.amount for r in accepted)} of {faucet_balance})"
                )
                try:
                    sent = await call_remote(
                        faucet.send_many(recipients=accepted, wallet_passphrase=self.passphrase),
                        "faucet sendMany",
                        self.send_timeout,
                    )
                except WalletPoolError as e:
                    logger.error(f"Faucet funding failed: {e}")
                    errors.append(ItemFailure(wallet_identity(faucet), e))
                else:
                    report.txids.append(sent.txid or "")
                    covered = len(accepted)
                    for managed, count in funded_wallets:
                        if covered >= count:
                            report.faucet_funded.append(managed.label)
                        covered -= count
                        self.inventory.invalidate(managed.wallet)

            if rejected:
                dry = FaucetDryError(faucet_balance, faucet_address, rejected)
                logger.warning(str(dry))
                errors.append(ItemFailure(wallet_identity(faucet), dry))

        if errors:
            raise AggregateReplenishmentError(errors)

        logger.info(
            f"Replenishment complete: {len(report.self_reset)} self-reset, "
            f"{len(report.swept)} swept, {len(report.faucet_funded)} faucet-funded, "
            f"{report.transaction_count} transactions"
        )
        return report

    def _reason(self, unspents: list[Unspent]) -> ResetReason:
        reason = self.policy.needs_reset(unspents)
        assert reason is not None
        return reason

    def _without_excess(self, unspents: list[Unspent]) -> list[Unspent]:
        excess = {u.id for group in self.policy.excess_unspents(unspents).values() for u in group}
        return [u for u in unspents if u.id not in excess]

    async def cleanup(self) -> dict[str, str]:
        """
        Retire wallets of the group that are outside the pool.

        Funded wallets are swept to the faucet; empty ones are removed. A
        wallet swept in one run is removed by the next.

        Returns:
            Mapping of wallet label to the action taken ("swept" or "removed")

        Raises:
            AggregateReplenishmentError: If any wallet could not be retired
        """
        directory = self.allocator.directory
        wallets = await directory.list_wallets(force_refresh=True)
        retired = []
        for wallet in wallets:
            if not wallet.label.startswith(self.allocator.label_prefix):
                continue
            index = self.allocator.get_wallet_index(wallet.label)
            if index is None or index >= self.allocator.pool_size:
                retired.append(wallet)

        if not retired:
            logger.info("Cleanup: no wallets to retire")
            return {}

        faucet = await self._refresh_faucet()
        faucet_address = faucet.receive_address
        errors: list[ItemFailure] = []

        async def retire(wallet: Wallet) -> str:
            current = await call_remote(
                directory.client.get_wallet(wallet.id), f"get wallet {wallet.label}", self.timeout
            )
            if current.balance > 0:
                await call_remote(
                    current.sweep(faucet_address, self.passphrase, fee_rate=self.fee_rate),
                    f"sweep {wallet.label}",
                    self.send_timeout,
                )
                return "swept"
            await call_remote(
                directory.client.remove_wallet(wallet.id), f"remove {wallet.label}", self.timeout
            )
            directory.forget(wallet)
            return "removed"

        done = await self._run(retired, retire, wallet_identity, errors, "Cleanup")
        actions = {r.item.label: r.value or "" for r in done}
        for label, action in actions.items():
            logger.info(f"Cleanup: {action} {label}")

        if errors:
            raise AggregateReplenishmentError(errors)
        return actions

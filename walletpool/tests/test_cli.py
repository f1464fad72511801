"""
Tests for the maintenance CLI.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

from typer.testing import CliRunner

from walletpool.cli import app
from walletpool.errors import AggregateReplenishmentError, FaucetDryError, ItemFailure
from walletpool.models import ReplenishmentReport

runner = CliRunner()


def mock_pool(**methods: AsyncMock) -> MagicMock:
    pool = MagicMock()
    pool.close = AsyncMock()
    for name, method in methods.items():
        setattr(pool, name, method)
    return pool


def test_requires_one_mode() -> None:
    result = runner.invoke(app, [])
    assert result.exit_code == 2


def test_rejects_both_modes() -> None:
    result = runner.invoke(app, ["--cleanup", "--reset"])
    assert result.exit_code == 2


def test_unknown_group() -> None:
    result = runner.invoke(app, ["--reset", "--group", "pure_p2tr"])
    assert result.exit_code == 1


def test_reset() -> None:
    report = ReplenishmentReport(healthy=["managed/pure_p2sh/0"], txids=["abc"])
    pool = mock_pool(reset_wallets=AsyncMock(return_value=report))

    with patch("walletpool.cli.ManagedWallets.create", AsyncMock(return_value=pool)) as create:
        result = runner.invoke(app, ["--reset", "--poolSize", "4", "--env", "dev"])

    assert result.exit_code == 0
    assert "Healthy: 1" in result.stdout
    assert "Transactions: 1" in result.stdout
    assert create.await_args.args[0] == "dev"
    assert create.await_args.kwargs["settings"].pool_size == 4
    pool.close.assert_awaited_once()


def test_cleanup() -> None:
    pool = mock_pool(cleanup=AsyncMock(return_value={"managed/pure_p2sh/40": "swept"}))

    with patch("walletpool.cli.ManagedWallets.create", AsyncMock(return_value=pool)):
        result = runner.invoke(app, ["--cleanup"])

    assert result.exit_code == 0
    assert "Retired 1 wallet(s)" in result.stdout
    assert "managed/pure_p2sh/40" in result.stdout


def test_reset_failure_exits_nonzero() -> None:
    dry = FaucetDryError(0, "2Nfaucet", [])
    error = AggregateReplenishmentError([ItemFailure("managed-faucet (f)", dry)])
    pool = mock_pool(reset_wallets=AsyncMock(side_effect=error))

    with patch("walletpool.cli.ManagedWallets.create", AsyncMock(return_value=pool)):
        result = runner.invoke(app, ["--reset"])

    assert result.exit_code == 1
    pool.close.assert_awaited_once()

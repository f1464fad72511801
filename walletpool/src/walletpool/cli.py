"""
Managed wallet pool maintenance CLI.
"""

from __future__ import annotations

import asyncio
import sys
from typing import Annotated

import typer
from loguru import logger

from walletpool.config import GROUP_PRESETS, get_group_config, load_settings
from walletpool.errors import AggregateReplenishmentError, WalletPoolError
from walletpool.pool import ManagedWallets

app = typer.Typer(
    name="walletpool",
    help="Managed wallet pool maintenance",
    add_completion=False,
)


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


async def _maintain(
    env: str,
    client_id: str,
    group: str,
    pool_size: int | None,
    cleanup: bool,
    access_token: str | None,
) -> None:
    group_config = get_group_config(group)
    settings = load_settings(pool_size=pool_size, access_token=access_token)
    pool = await ManagedWallets.create(env, client_id, group_config, settings=settings)
    try:
        if cleanup:
            actions = await pool.cleanup()
            typer.echo(f"Retired {len(actions)} wallet(s)")
            for label, action in sorted(actions.items()):
                typer.echo(f"  {action:<8} {label}")
        else:
            report = await pool.reset_wallets()
            typer.echo(
                f"Healthy: {len(report.healthy)}  Self-reset: {len(report.self_reset)}  "
                f"Swept: {len(report.swept)}  Faucet-funded: {len(report.faucet_funded)}  "
                f"Transactions: {report.transaction_count}"
            )
    finally:
        await pool.close()


@app.command()
def main(
    env: Annotated[str, typer.Option("--env", "-e", help="Wallet service environment")] = "test",
    pool_size: Annotated[
        int | None,
        typer.Option("--pool-size", "--poolSize", help="Number of pooled wallets"),
    ] = None,
    group: Annotated[
        str,
        typer.Option("--group", "-g", help=f"Wallet group: {' | '.join(GROUP_PRESETS)}"),
    ] = "pure_p2sh",
    cleanup: Annotated[
        bool, typer.Option("--cleanup", help="Sweep and remove wallets outside the pool")
    ] = False,
    reset: Annotated[bool, typer.Option("--reset", help="Restore pool wallet health")] = False,
    client_id: Annotated[
        str, typer.Option("--client-id", envvar="MW_CLIENT_ID", help="Harness user identity")
    ] = "walletpool",
    access_token: Annotated[
        str | None,
        typer.Option("--access-token", envvar="MW_ACCESS_TOKEN", help="API access token"),
    ] = None,
    log_level: Annotated[str, typer.Option("--log-level", "-l")] = "INFO",
) -> None:
    """Run --cleanup or --reset on a managed wallet pool."""
    setup_logging(log_level)

    if cleanup == reset:
        logger.error("Specify exactly one of --cleanup or --reset")
        raise typer.Exit(2)

    try:
        asyncio.run(_maintain(env, client_id, group, pool_size, cleanup, access_token))
    except AggregateReplenishmentError as e:
        for failure in e.failures:
            logger.error(str(failure))
        logger.error(f"Maintenance finished with {len(e.failures)} failure(s)")
        raise typer.Exit(1)
    except WalletPoolError as e:
        logger.error(f"Maintenance failed: {e}")
        raise typer.Exit(1)


def run() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    run()

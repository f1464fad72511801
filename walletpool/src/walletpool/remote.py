"""
Guard for calls into the external wallet service.

Every call gets a timeout and failures are normalized to RemoteOperationError.
No retries are attempted.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from loguru import logger

from walletpool.errors import RemoteOperationError, WalletPoolError

T = TypeVar("T")


async def call_remote(awaitable: Awaitable[T], operation: str, timeout: float | None) -> T:
    """
    Await a remote call with a timeout.

    Args:
        awaitable: The pending call
        operation: Description used in error messages (e.g. "unspents managed/a/0")
        timeout: Seconds before giving up, None to wait forever

    Returns:
        The call result

    Raises:
        RemoteOperationError: On timeout or any client error
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except TimeoutError as e:
        logger.error(f"Remote call timed out: {operation}")
        raise RemoteOperationError(operation, f"timed out after {timeout}s") from e
    except WalletPoolError:
        raise
    except Exception as e:
        logger.error(f"Remote call failed: {operation} - {e}")
        raise RemoteOperationError(operation, str(e)) from e

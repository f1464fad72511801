"""
Read-only view of the chain state used for confirmation and fee math.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from walletpool.backends.base import WalletClient
from walletpool.constants import (
    P2PKH_OUTPUT_VSIZE,
    P2SH_INPUT_VSIZE,
    P2SH_OUTPUT_VSIZE,
    P2SH_P2WSH_INPUT_VSIZE,
    P2WPKH_OUTPUT_VSIZE,
    P2WSH_INPUT_VSIZE,
    P2WSH_OUTPUT_VSIZE,
    TX_OVERHEAD_VSIZE,
)
from walletpool.models import P2SH, P2SH_P2WSH, P2WSH, Unspent, group_for_chain
from walletpool.remote import call_remote

INPUT_VSIZE_BY_GROUP = {
    P2SH: P2SH_INPUT_VSIZE,
    P2SH_P2WSH: P2SH_P2WSH_INPUT_VSIZE,
    P2WSH: P2WSH_INPUT_VSIZE,
}

SEGWIT_HRPS = ("bc1", "tb1", "bcrt1")


def output_vsize(address: str) -> int:
    """Estimate the size of an output paying to address"""
    lowered = address.lower()
    if lowered.startswith(SEGWIT_HRPS):
        # v0 witness programs: 20 bytes (P2WPKH) or 32 bytes (P2WSH)
        return P2WSH_OUTPUT_VSIZE if len(address) > 50 else P2WPKH_OUTPUT_VSIZE
    if address[:1] in ("2", "3"):
        return P2SH_OUTPUT_VSIZE
    return P2PKH_OUTPUT_VSIZE


@dataclass(frozen=True)
class ChainView:
    """
    Snapshot of the chain tip and network.

    Confirmations are blocks mined on top of the unspent's block: an unspent
    in the tip block has none.
    """

    height: int
    network: str = "testnet"

    @classmethod
    async def fetch(cls, client: WalletClient, timeout: float | None = None) -> ChainView:
        height = await call_remote(client.get_block_height(), "get block height", timeout)
        logger.debug(f"Chain view at height {height} ({client.network})")
        return cls(height=height, network=client.network)

    def confirmations(self, unspent: Unspent) -> int:
        if unspent.block_height is None or unspent.block_height <= 0:
            return 0
        if unspent.block_height > self.height:
            return 0
        return self.height - unspent.block_height

    def is_confirmed(self, unspent: Unspent, min_confirmations: int = 1) -> bool:
        return self.confirmations(unspent) >= min_confirmations

    def estimate_vsize(self, unspents: list[Unspent], addresses: list[str]) -> int:
        """
        Estimate virtual size of a transaction spending unspents to addresses.

        Inputs are sized by script family (2-of-3 multisig), outputs by address type.
        """
        input_vsize = sum(INPUT_VSIZE_BY_GROUP[group_for_chain(u.chain)] for u in unspents)
        outputs_vsize = sum(output_vsize(a) for a in addresses)
        return TX_OVERHEAD_VSIZE + input_vsize + outputs_vsize

    def max_spendable(self, unspents: list[Unspent], addresses: list[str], fee_rate: int) -> int:
        """
        Maximum amount that can be sent when spending all unspents.

        Args:
            unspents: Inputs of the transaction
            addresses: Output addresses (the amount is split among them by the caller)
            fee_rate: Fee rate in sat/vbyte

        Returns:
            Total input value minus the estimated fee, never negative
        """
        total = sum(u.value for u in unspents)
        fee = self.estimate_vsize(unspents, addresses) * fee_rate
        return max(0, total - fee)

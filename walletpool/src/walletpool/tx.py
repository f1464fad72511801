"""
Minimal raw transaction inspection.

Only what is needed to check the shape of transactions returned by the
wallet service; no signing or construction.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass


@dataclass
class TxOutput:
    value: int
    scriptpubkey: str


def read_varint(data: bytes, offset: int) -> tuple[int, int]:
    """Read varint and return (value, bytes_consumed)."""
    first = data[offset]
    if first < 0xFD:
        return first, 1
    elif first == 0xFD:
        return struct.unpack("<H", data[offset + 1 : offset + 3])[0], 3
    elif first == 0xFE:
        return struct.unpack("<I", data[offset + 1 : offset + 5])[0], 5
    else:
        return struct.unpack("<Q", data[offset + 1 : offset + 9])[0], 9


def parse_outputs(tx_hex: str) -> list[TxOutput]:
    """
    Parse the outputs of a serialized transaction.

    Handles both legacy and SegWit serialization.

    Raises:
        ValueError: If the transaction is truncated or not valid hex
    """
    try:
        tx_bytes = bytes.fromhex(tx_hex)
        offset = 4  # version

        # SegWit marker and flag
        if tx_bytes[offset] == 0x00 and tx_bytes[offset + 1] == 0x01:
            offset += 2

        input_count, size = read_varint(tx_bytes, offset)
        offset += size
        for _ in range(input_count):
            offset += 32 + 4  # outpoint
            script_len, size = read_varint(tx_bytes, offset)
            offset += size + script_len + 4  # scriptSig + sequence

        output_count, size = read_varint(tx_bytes, offset)
        offset += size
        outputs = []
        for _ in range(output_count):
            value = struct.unpack("<Q", tx_bytes[offset : offset + 8])[0]
            offset += 8
            script_len, size = read_varint(tx_bytes, offset)
            offset += size
            if offset + script_len > len(tx_bytes):
                raise ValueError("output script exceeds transaction length")
            outputs.append(TxOutput(value, tx_bytes[offset : offset + script_len].hex()))
            offset += script_len
    except (IndexError, struct.error) as e:
        raise ValueError(f"Truncated transaction: {e}") from e

    return outputs

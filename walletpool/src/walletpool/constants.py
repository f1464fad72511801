"""
Managed wallet pool constants.

Balances are expressed in base units (satoshis for tbtc).
"""

from __future__ import annotations

# Default number of wallets in a pool (overridable via MW_POOL_SIZE)
DEFAULT_POOL_SIZE = 32

# Upper bound of simultaneously in-flight remote calls during fan-out steps
DEFAULT_CONCURRENCY = 8

# Seconds before a single remote call is abandoned
DEFAULT_REMOTE_TIMEOUT = 60.0

# Seconds before a spending call (sendMany, sweep) is abandoned. Building and
# signing a transaction over many unspents can take minutes.
DEFAULT_SEND_TIMEOUT = 300.0

# Fee rate used for self-resets and sweeps (sat/vbyte)
DEFAULT_FEE_RATE = 10

# Smallest unspent that counts towards a group's minimum (0.001 BTC)
DEFAULT_MIN_UNSPENT_BALANCE = 100_000

# Self-reset requires a balance 10% above the cost of a full reset
SELF_RESET_MARGIN = 1.1

# Unspents need more than this many confirmations to make a wallet ready
READY_MIN_CONFIRMATIONS = 2

# Page size used when listing wallets, unspents and addresses
PAGE_LIMIT = 100

# Label of the wallet acting as value source/sink during replenishment
FAUCET_LABEL = "managed-faucet"

# Labels used before wallets were namespaced by group
LEGACY_LABEL_FORMAT = "managed-{index}"

LABEL_PREFIX_FORMAT = "managed/{group}/"

# echo -n 'managed' | sha256sum
PASSPHRASE_SEED = b"managed"

# Transaction size estimates (vbytes) for 2-of-3 multisig wallets
TX_OVERHEAD_VSIZE = 11
P2SH_INPUT_VSIZE = 298
P2SH_P2WSH_INPUT_VSIZE = 140
P2WSH_INPUT_VSIZE = 105
P2SH_OUTPUT_VSIZE = 32
P2WSH_OUTPUT_VSIZE = 43
P2WPKH_OUTPUT_VSIZE = 31
P2PKH_OUTPUT_VSIZE = 34

"""
Bitcoin and coinjoin round constants.

Virtual sizes follow the usual segwit estimates:
- P2WPKH: 31 vbyte output, 68 vbyte input
- Taproot (P2TR key path): 43 vbyte output, 58 vbyte input
"""

from __future__ import annotations

# Output/input virtual sizes per script kind (vbytes)
P2WPKH_OUTPUT_VSIZE = 31
P2WPKH_INPUT_VSIZE = 68
TAPROOT_OUTPUT_VSIZE = 43
TAPROOT_INPUT_VSIZE = 58

# Bitcoin Core standardness limit on transaction size (vbytes)
MAX_STANDARD_TX_VSIZE = 100_000

# Version (4) + input count (1) + output count (1) + locktime (4) + segwit marker/flag
SHARED_OVERHEAD_VSIZE = 11

# Upper bound of the vsize credential a single input can present to the coordinator.
# With more than ~400 inputs in a round the per-input allocation drops below this.
MAX_VSIZE_CREDENTIAL_VALUE = 255

# Hard cap on outputs a participant may register in one round
MAX_OUTPUTS_PER_PARTICIPANT = 8

# Denomination usage cap bounds for the naive decomposition (inclusive)
MIN_DENOMINATION_USAGE = 2
MAX_DENOMINATION_USAGE = 7

# Candidates whose cost is within this factor of the best one are sampled from
CANDIDATE_COST_MARGIN = 1.2

# Round defaults
DEFAULT_MIN_ALLOWED_OUTPUT_AMOUNT = 5_000  # satoshis
DEFAULT_MAX_ALLOWED_OUTPUT_AMOUNT = 4_300_000_000  # 43 BTC

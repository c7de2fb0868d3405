"""
cjcore - Core value types for coinjoin output decomposition

Provides fee rates, script kinds, the Output value model and round constants.
"""

__version__ = "0.1.0"

from cjcore.constants import (
    DEFAULT_MAX_ALLOWED_OUTPUT_AMOUNT,
    DEFAULT_MIN_ALLOWED_OUTPUT_AMOUNT,
    MAX_OUTPUTS_PER_PARTICIPANT,
    MAX_STANDARD_TX_VSIZE,
    MAX_VSIZE_CREDENTIAL_VALUE,
    SHARED_OVERHEAD_VSIZE,
)
from cjcore.fees import FeeRate, ScriptMetadata, ScriptType
from cjcore.models import Output

__all__ = [
    "DEFAULT_MAX_ALLOWED_OUTPUT_AMOUNT",
    "DEFAULT_MIN_ALLOWED_OUTPUT_AMOUNT",
    "FeeRate",
    "MAX_OUTPUTS_PER_PARTICIPANT",
    "MAX_STANDARD_TX_VSIZE",
    "MAX_VSIZE_CREDENTIAL_VALUE",
    "Output",
    "SHARED_OVERHEAD_VSIZE",
    "ScriptMetadata",
    "ScriptType",
]

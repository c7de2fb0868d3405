"""
mixer - Coinjoin output decomposition

Splits the inputs of every participant of a round into standard denominations
chosen so that unrelated participants are likely to share output values.
"""

__version__ = "0.1.0"

from mixer.config import MixerConfig, Settings, get_settings
from mixer.context import MixerContext
from mixer.decomposer import (
    Candidate,
    Decomposer,
    DecompositionError,
    ExcessiveLossError,
    InsufficientFundsError,
    ValueCreationError,
    VsizeBudgetError,
)
from mixer.denominations import create_denominations
from mixer.frequency import get_filtered_denominations
from mixer.mixer import Mixer, RoundSummary, summarize_round
from mixer.search import BoundedCombinationSearch, CombinationSearch, SearchExhaustedError

__all__ = [
    "BoundedCombinationSearch",
    "Candidate",
    "CombinationSearch",
    "Decomposer",
    "DecompositionError",
    "ExcessiveLossError",
    "InsufficientFundsError",
    "Mixer",
    "MixerConfig",
    "MixerContext",
    "RoundSummary",
    "SearchExhaustedError",
    "Settings",
    "ValueCreationError",
    "VsizeBudgetError",
    "create_denominations",
    "get_filtered_denominations",
    "get_settings",
    "summarize_round",
]

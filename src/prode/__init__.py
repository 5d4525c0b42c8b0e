"""
PRODE - Protein-network Refined Overall Dependency Estimation

Scores genes by combining a per-gene linear-model signal with the rank
aggregation (RRA) of that signal over each gene's network neighbors:

    NIE   neighborhood-informed essentiality (average signal)
    NICE  neighborhood-informed context essentiality (case - control signal)
"""

__version__ = "0.1.0"

from prode.core.exceptions import (
    ProdeError,
    ConfigurationError,
    FittingError,
    ConsistencyError,
    BackgroundError,
    EmptyNeighborhoodWarning,
)
from prode.core.modality import Modality
from prode.core.prode_input import ProdeInput
from prode.core.results import ProdeResults
from prode.core.design import build_design_matrix
from prode.pipeline import ProdeConfig, run_prode

__all__ = [
    "ProdeInput",
    "ProdeResults",
    "ProdeConfig",
    "Modality",
    "run_prode",
    "build_design_matrix",
    "ProdeError",
    "ConfigurationError",
    "FittingError",
    "ConsistencyError",
    "BackgroundError",
    "EmptyNeighborhoodWarning",
]

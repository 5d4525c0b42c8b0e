"""
Core data structures for PRODE runs.

1. ProdeInput: score matrix + design matrix + adjacency matrix + modality
2. ProdeResults: immutable bundle of every stage's output
3. Modality / ModalityPolicy: NIE vs NICE behavior table
4. build_design_matrix: intercept (+ covariates) (+ group) designs

Design Philosophy:
    - Immutability: inputs are validated once and never modified
    - Explicit variants: modality differences live in one policy table
"""

from .exceptions import (
    ProdeError,
    ConfigurationError,
    FittingError,
    ConsistencyError,
    BackgroundError,
    EmptyNeighborhoodWarning,
)
from .modality import Modality, ModalityPolicy, MODALITY_POLICIES, get_policy
from .prode_input import ProdeInput
from .results import ProdeResults
from .design import build_design_matrix, GROUP_COLUMN

__all__ = [
    "ProdeError",
    "ConfigurationError",
    "FittingError",
    "ConsistencyError",
    "BackgroundError",
    "EmptyNeighborhoodWarning",
    "Modality",
    "ModalityPolicy",
    "MODALITY_POLICIES",
    "get_policy",
    "ProdeInput",
    "ProdeResults",
    "build_design_matrix",
    "GROUP_COLUMN",
]

"""
Statistical engine.

Exports core functions for:
- Batch per-gene OLS fits against a shared design
- Adjacency filtering and neighbor lookup
- Rank Rho Aggregation (RRA) over neighborhoods
- Simulated and Weibull background models for rho
- Percentiles, FDR correction and composite scores
"""

from .linear_fit import (
    FIT_COLUMNS,
    EXTENDED_COLUMNS,
    BatchLinearFitter,
    group_summaries,
    fit_linear_models,
)
from .adjacency import (
    FilteredData,
    FILTER_REASONS,
    filter_adjacency_matrix,
    check_consistency,
    neighbor_indices,
)
from .rra import beta_scores, rho_score, rho_scores_matrix, compute_rhos
from .background import (
    BackgroundModel,
    SimulatedBackground,
    FittedBackground,
    simulate_null_rhos,
    fit_background_table,
)
from .scoring import rank_percentiles, gene_percentiles, fdr_correction, compose_scores

__all__ = [
    "FIT_COLUMNS",
    "EXTENDED_COLUMNS",
    "BatchLinearFitter",
    "group_summaries",
    "fit_linear_models",
    "FilteredData",
    "FILTER_REASONS",
    "filter_adjacency_matrix",
    "check_consistency",
    "neighbor_indices",
    "beta_scores",
    "rho_score",
    "rho_scores_matrix",
    "compute_rhos",
    "BackgroundModel",
    "SimulatedBackground",
    "FittedBackground",
    "simulate_null_rhos",
    "fit_background_table",
    "rank_percentiles",
    "gene_percentiles",
    "fdr_correction",
    "compose_scores",
]

"""
Rank Rho Aggregation (RRA) over first-order network neighborhoods.

For a gene g with k neighbors whose gene-level percentiles, sorted
ascending, are p_(1) <= ... <= p_(k), RRA asks how unusually small each order
statistic is under a null of k i.i.d. Uniform(0, 1) values. The i-th order
statistic of k uniforms is Beta(i, k - i + 1) distributed, so

    beta_i = P(U_(i) <= p_(i)) = I_{p_(i)}(i, k - i + 1)
    rho(g) = min_i beta_i

Low percentiles are the signal of interest (more negative scores are
stronger), so percentiles are used as they are, without inversion. rho is
itself an extreme-value statistic whose null distribution depends on k; the
background model turns it into a calibrated p-value.

References:
    Kolde et al. (2012) "Robust rank aggregation for gene list integration
    and meta-analysis", Bioinformatics 28(4):573-580.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray
from scipy import stats as scipy_stats

__all__ = ['beta_scores', 'rho_score', 'rho_scores_matrix', 'compute_rhos']


def beta_scores(percentiles: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Order-statistic tail probabilities for a set of percentiles.

    Args:
        percentiles: Values in [0, 1] (any order)

    Returns:
        Array of length k with P(U_(i) <= p_(i)) for the ascending-sorted input.
    """
    p = np.sort(np.asarray(percentiles, dtype=np.float64))
    k = p.size
    i = np.arange(1, k + 1)
    return scipy_stats.beta.cdf(p, i, k - i + 1)


def rho_score(percentiles: NDArray[np.float64]) -> float:
    """
    RRA rho statistic: minimum of the beta scores.

    Args:
        percentiles: Neighbor percentiles in [0, 1]; must be non-empty.

    Returns:
        rho in (0, 1] for percentiles in (0, 1]

    Raises:
        ValueError: If no percentiles are given or any lies outside [0, 1]
    """
    p = np.asarray(percentiles, dtype=np.float64)
    if p.size == 0:
        raise ValueError("rho is undefined for an empty neighborhood")
    if np.any((p < 0) | (p > 1)) or np.any(np.isnan(p)):
        raise ValueError("percentiles must lie in [0, 1]")
    return float(np.min(beta_scores(p)))


def rho_scores_matrix(values: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Row-wise rho for a matrix of percentiles sharing the same size k.

    Args:
        values: (n_rows × k) array of percentiles in [0, 1]

    Returns:
        Array of n_rows rho values
    """
    values = np.sort(np.asarray(values, dtype=np.float64), axis=1)
    k = values.shape[1]
    i = np.arange(1, k + 1)
    return scipy_stats.beta.cdf(values, i, k - i + 1).min(axis=1)


def compute_rhos(
    percentiles: NDArray[np.float64],
    neighbors: list[NDArray[np.int64]],
) -> tuple[NDArray[np.int64], NDArray[np.float64]]:
    """
    rho for every gene from its neighbors' percentiles.

    Genes are grouped by neighborhood size so each size is one vectorized
    call.

    Args:
        percentiles: Gene-level percentile per gene (positional)
        neighbors: Neighbor positions per gene, as from neighbor_indices()

    Returns:
        Tuple (n_neighbors, rho). rho is NaN for genes without neighbors.
    """
    percentiles = np.asarray(percentiles, dtype=np.float64)
    if len(neighbors) != percentiles.size:
        raise ValueError(
            f"neighbors has {len(neighbors)} entries for {percentiles.size} genes"
        )

    sizes = np.array([len(nb) for nb in neighbors], dtype=np.int64)
    rho = np.full(percentiles.size, np.nan)

    for k in np.unique(sizes[sizes > 0]):
        genes = np.flatnonzero(sizes == k)
        block = percentiles[np.stack([neighbors[g] for g in genes])]
        rho[genes] = rho_scores_matrix(block)

    return sizes, rho

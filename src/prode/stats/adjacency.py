"""
Restrict the fit table and adjacency matrix to a common gene set.

Filtering steps (in order):
    1. Keep genes present in both the fit table and the adjacency matrix.
    2. Optionally (NICE, filter_ctrl=True) drop genes whose control-group mean
       is greater than zero.

Every dropped gene is returned with a reason so the filtering is part of the
results rather than a side effect. The surviving fit table and adjacency
matrix share the same genes in the same order (the fit-table order), which
check_consistency() enforces.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy import sparse

from prode.core.exceptions import ConsistencyError

__all__ = [
    'FilteredData',
    'FILTER_REASONS',
    'filter_adjacency_matrix',
    'check_consistency',
    'neighbor_indices',
]

logger = logging.getLogger(__name__)

FILTER_REASONS = (
    "missing_from_adjacency",
    "missing_from_scores",
    "ctrl_mean_positive",
    "no_neighbors",
)


@dataclass(frozen=True)
class FilteredData:
    """Output of filter_adjacency_matrix().

    Attributes:
        filtered: DataFrame indexed by gene with a ``reason`` column.
        fit_tab: Fit table restricted to retained genes.
        adjacency: Adjacency matrix restricted and re-ordered to fit_tab.
    """

    filtered: pd.DataFrame
    fit_tab: pd.DataFrame
    adjacency: pd.DataFrame

    @property
    def n_filtered(self) -> int:
        return len(self.filtered)

    @property
    def n_retained(self) -> int:
        return len(self.fit_tab)


def _reason_frame(genes, reason: str) -> pd.DataFrame:
    return pd.DataFrame({"reason": reason}, index=pd.Index(list(genes), name="gene"))


def filter_adjacency_matrix(
    fit_tab: pd.DataFrame,
    adjacency: pd.DataFrame,
    filter_ctrl: bool = False,
    ctrl_means: pd.Series | None = None,
) -> FilteredData:
    """
    Subset fit table and adjacency matrix to shared, valid genes.

    Args:
        fit_tab: Per-gene fit table indexed by gene id
        adjacency: Square genes × genes adjacency matrix
        filter_ctrl: Drop genes with control-group mean > 0. Callers apply the
            modality policy before passing this flag.
        ctrl_means: Control-group mean per gene. Defaults to the fit table's
            ``ctrl_mean`` column; required when filter_ctrl is True.

    Returns:
        FilteredData with the filtered-gene report and aligned tables

    Raises:
        ValueError: If filter_ctrl is set and no control means are available
        ConsistencyError: If the outputs fail check_consistency()
    """
    in_adjacency = fit_tab.index.isin(adjacency.index)
    in_scores = adjacency.index.isin(fit_tab.index)

    parts = [
        _reason_frame(fit_tab.index[~in_adjacency], "missing_from_adjacency"),
        _reason_frame(adjacency.index[~in_scores], "missing_from_scores"),
    ]
    keep = in_adjacency.copy()

    if filter_ctrl:
        if ctrl_means is None:
            if "ctrl_mean" not in fit_tab.columns:
                raise ValueError("filter_ctrl requires control-group means")
            ctrl_means = fit_tab["ctrl_mean"]
        ctrl_means = ctrl_means.reindex(fit_tab.index)
        positive = (ctrl_means > 0).to_numpy() & keep
        parts.append(_reason_frame(fit_tab.index[positive], "ctrl_mean_positive"))
        keep &= ~positive

    retained = fit_tab.index[keep]
    filtered = pd.concat(parts)
    filtered.index.name = "gene"
    logger.debug(
        f"Kept {len(retained)} of {len(fit_tab)} fitted genes; "
        f"{filtered['reason'].value_counts().to_dict()} filtered"
    )

    new_fit_tab = fit_tab.loc[retained]
    new_adjacency = adjacency.loc[retained, retained]

    check_consistency(new_fit_tab, new_adjacency)

    return FilteredData(filtered=filtered, fit_tab=new_fit_tab, adjacency=new_adjacency)


def check_consistency(fit_tab: pd.DataFrame, adjacency: pd.DataFrame) -> None:
    """
    Verify the fit table and adjacency matrix describe the same genes.

    Requires identical gene identifiers, in the same order, without duplicates,
    on the fit table rows and on both axes of the adjacency matrix.

    Raises:
        ConsistencyError: On any divergence
    """
    if not fit_tab.index.is_unique:
        raise ConsistencyError("Fit table contains duplicated gene identifiers")
    if not adjacency.index.equals(adjacency.columns):
        raise ConsistencyError("Adjacency matrix rows and columns diverge")
    if not fit_tab.index.equals(adjacency.index):
        n_only_fit = len(fit_tab.index.difference(adjacency.index))
        n_only_adj = len(adjacency.index.difference(fit_tab.index))
        raise ConsistencyError(
            f"Fit table and adjacency matrix gene sets diverge "
            f"({n_only_fit} only in fit table, {n_only_adj} only in adjacency, "
            f"or order differs)"
        )


def neighbor_indices(adjacency: pd.DataFrame) -> list[np.ndarray]:
    """
    First-order neighbors of every gene as positional indices.

    A non-zero entry (g, h) makes h a neighbor of g; the diagonal is ignored.

    Args:
        adjacency: Square genes × genes matrix (boolean or weighted)

    Returns:
        List (one entry per row) of sorted int arrays of neighbor positions.
        Genes without neighbors get an empty array.
    """
    if adjacency.shape[0] == 0:
        return []
    dense = adjacency.to_numpy() != 0
    np.fill_diagonal(dense, False)
    csr = sparse.csr_matrix(dense)
    return np.split(csr.indices.astype(np.int64), csr.indptr[1:-1])

"""
Composite NIE / NICE scores from gene-level and neighborhood-level percentiles.

    u_gene   percentile of the gene-level signal (estimate, or t-value when
             scaled_est=True) among all retained genes: average rank / (n + 1)
    u_neigh  RRA p-value of the gene's neighborhood
    score    ln(u_gene × u_neigh)

Lower (more negative) scores mean stronger combined evidence. The RRA
p-values are also corrected for multiple testing (rra_fdr), which is reported
but does not enter the score.
"""

from __future__ import annotations

from typing import Literal

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from prode.core.exceptions import ConfigurationError, ConsistencyError
from prode.core.modality import Modality, get_policy

__all__ = [
    'FDR_METHODS',
    'rank_percentiles',
    'gene_percentiles',
    'fdr_correction',
    'compose_scores',
]

FDR_METHODS = {"BH": "fdr_bh", "BY": "fdr_by", "bonferroni": "bonferroni"}


def rank_percentiles(values: NDArray[np.float64] | pd.Series) -> NDArray[np.float64]:
    """
    Tie-aware rank-to-percentile transform.

    Ties get their average rank; percentiles are rank / (n + 1), so they lie
    strictly inside (0, 1). Missing values rank last (weakest signal).

    Args:
        values: Signal per gene; smaller values get smaller percentiles

    Returns:
        Percentile per gene, same order as the input
    """
    series = pd.Series(np.asarray(values, dtype=np.float64))
    ranks = series.rank(method="average", na_option="bottom").to_numpy()
    return ranks / (len(series) + 1.0)


def gene_percentiles(fit_tab: pd.DataFrame, scaled_est: bool = True) -> pd.Series:
    """Gene-level percentile from ``t_value`` (scaled) or ``estimate``."""
    column = "t_value" if scaled_est else "estimate"
    return pd.Series(rank_percentiles(fit_tab[column]), index=fit_tab.index, name="u_gene")


def fdr_correction(
    pvalues: NDArray[np.float64],
    method: Literal["BH", "BY", "bonferroni"] = "BH",
) -> NDArray[np.float64]:
    """Adjusted p-values by BH, BY or Bonferroni; NaN entries stay NaN and
    are left out of the number of tests."""
    from statsmodels.stats.multitest import multipletests

    if method not in FDR_METHODS:
        raise ConfigurationError(
            f"Unknown FDR method '{method}'. Expected one of: {', '.join(FDR_METHODS)}"
        )

    pvalues = np.asarray(pvalues, dtype=np.float64)
    adjusted = np.full_like(pvalues, np.nan)
    tested = ~np.isnan(pvalues)
    if tested.any():
        adjusted[tested] = multipletests(pvalues[tested], method=FDR_METHODS[method])[1]
    return adjusted

    _, adj_pvals[valid_mask], _, _ = multipletests(
        pvalues[valid_mask],
        alpha=alpha,
        method=FDR_METHODS[method],
    )

    return adj_pvals


def compose_scores(
    fit_tab: pd.DataFrame,
    rra_tab: pd.DataFrame,
    modality: Modality | str,
    scaled_est: bool = True,
    fdr_method: str = "BH",
) -> pd.DataFrame:
    """
    Join gene-level and neighborhood-level statistics into the result table.

    Args:
        fit_tab: Filtered fit table (all retained genes). Percentiles are
            ranked across all of these genes.
        rra_tab: Neighborhood statistics with ``n_neighbors``, ``rra_score``
            and ``rra_p`` for genes with at least one neighbor.
        modality: Selects the score column name
        scaled_est: Rank t-values (True) or raw estimates (False)
        fdr_method: Multiple-testing method for ``rra_fdr``

    Returns:
        DataFrame (fit-table order, genes in rra_tab only) with the fit
        columns, ``n_neighbors``, ``rra_score``, ``rra_p``, ``rra_fdr``,
        ``u_gene``, ``u_neigh`` and ``NIE_score``/``NICE_score``.

    Raises:
        ConsistencyError: If rra_tab holds genes absent from fit_tab or lacks p-values
    """
    policy = get_policy(modality)

    unknown = rra_tab.index.difference(fit_tab.index)
    if len(unknown) > 0:
        raise ConsistencyError(
            f"{len(unknown)} genes have neighborhood statistics but no fit: {unknown[:5].tolist()}"
        )
    if rra_tab["rra_p"].isna().any():
        raise ConsistencyError("Neighborhood p-values are missing for some genes")

    u_gene = gene_percentiles(fit_tab, scaled_est=scaled_est)

    genes = fit_tab.index[fit_tab.index.isin(rra_tab.index)]
    result = fit_tab.loc[genes].copy()
    rra = rra_tab.loc[genes]

    result["n_neighbors"] = rra["n_neighbors"].astype(np.int64)
    result["rra_score"] = rra["rra_score"]
    result["rra_p"] = rra["rra_p"]
    result["rra_fdr"] = fdr_correction(rra["rra_p"].to_numpy(), method=fdr_method)
    result["u_gene"] = u_gene.loc[genes]
    result["u_neigh"] = result["rra_p"]
    result[policy.score_column] = np.log(result["u_gene"]) + np.log(result["u_neigh"])

    return result

"""
Result container produced at the end of a PRODE run.

ProdeResults bundles the artifacts of every stage:

    fit_table       per-gene linear fit of the retained genes
    result_table    one row per scored gene (fit columns, neighborhood
                    statistics, percentiles and the composite score), in the
                    filtered gene order
    adjacency       adjacency matrix restricted to the retained genes
    filtered_genes  genes dropped along the way, with the reason

The container is created once and never modified; accessors return views or
new frames.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from prode.core.modality import Modality, get_policy

__all__ = ['ProdeResults', 'RRA_COLUMNS']

RRA_COLUMNS = ["n_neighbors", "rra_score", "rra_p", "rra_fdr"]


@dataclass(frozen=True)
class ProdeResults:
    """Immutable output of run_prode().

    Attributes:
        result_table: Scored genes indexed by gene id
        fit_table: Fit table of the retained genes, aligned with adjacency
        adjacency: Filtered adjacency matrix
        filtered_genes: DataFrame indexed by gene with a ``reason`` column
        modality: NIE or NICE
        config: Effective (policy-resolved) configuration as a dict
        n_genes_input: Genes in the score matrix before filtering
    """

    result_table: pd.DataFrame
    fit_table: pd.DataFrame
    adjacency: pd.DataFrame
    filtered_genes: pd.DataFrame
    modality: Modality
    config: dict[str, Any] = field(default_factory=dict)
    n_genes_input: int | None = None

    @property
    def score_column(self) -> str:
        return get_policy(self.modality).score_column

    @property
    def rra_table(self) -> pd.DataFrame:
        """Neighborhood statistics per scored gene."""
        return self.result_table[RRA_COLUMNS]

    @property
    def scores(self) -> pd.Series:
        return self.result_table[self.score_column]

    @property
    def n_scored(self) -> int:
        return len(self.result_table)

    def top(self, n: int = 20) -> pd.DataFrame:
        """The n strongest genes (most negative score first)."""
        return self.result_table.sort_values(self.score_column, kind="mergesort").head(n)

    def filtered_counts(self) -> dict[str, int]:
        """Number of filtered genes per reason."""
        counts = self.filtered_genes["reason"].value_counts()
        return {str(reason): int(n) for reason, n in counts.items()}

    def summary(self) -> dict[str, Any]:
        """JSON-serializable run summary."""
        table = self.result_table
        return {
            "modality": self.modality.name,
            "score_column": self.score_column,
            "n_genes_input": int(
                len(self.fit_table) if self.n_genes_input is None else self.n_genes_input
            ),
            "n_genes_scored": int(len(table)),
            "n_genes_filtered": int(len(self.filtered_genes)),
            "filtered_by_reason": self.filtered_counts(),
            "n_fdr_below_0.05": int((table["rra_fdr"] < 0.05).sum()),
            "min_score": float(table[self.score_column].min()) if len(table) else None,
            "config": dict(self.config),
        }

    def __repr__(self) -> str:
        return (
            f"ProdeResults(modality={self.modality.name}, "
            f"scored={self.n_scored}, filtered={len(self.filtered_genes)})"
        )

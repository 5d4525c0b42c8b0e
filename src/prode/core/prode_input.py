"""
Input container for a PRODE run.

ProdeInput bundles the three inputs of the engine with the score modality:

    - scores:    gene × sample numeric matrix (rows keyed by unique gene ids)
    - design:    sample × covariate matrix, rows in the same order as the
                 score-matrix columns
    - adjacency: square gene × gene matrix; a non-zero entry (g, h) makes h a
                 first-order neighbor of g

Engineering Design:
    - Immutable: operations return new instances
    - Validated: the constructor checks identifiers, alignment and dtypes,
      raising ConfigurationError on malformed alignment
    - pandas for labelled data, numpy arrays handed to the numerical stages

Examples:
    >>> import pandas as pd
    >>> from prode.core.prode_input import ProdeInput
    >>> from prode.core.design import build_design_matrix
    >>>
    >>> scores = pd.DataFrame(
    ...     [[-1.0, -1.2, -0.9, -1.1], [0.1, 0.0, 0.2, -0.1]],
    ...     index=["G1", "G2"], columns=["s1", "s2", "s3", "s4"],
    ... )
    >>> design = build_design_matrix(None, sample_ids=scores.columns)
    >>> adjacency = pd.DataFrame([[0, 1], [1, 0]], index=["G1", "G2"], columns=["G1", "G2"])
    >>> prode_input = ProdeInput(scores, design, adjacency, modality="NIE")
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd

from prode.core.exceptions import ConfigurationError
from prode.core.modality import Modality, ModalityPolicy, get_policy

__all__ = ['ProdeInput']

logger = logging.getLogger(__name__)


def _check_unique(index: pd.Index, what: str) -> None:
    if not index.is_unique:
        dupes = index[index.duplicated()].unique().tolist()
        raise ConfigurationError(
            f"{what} must be unique; duplicated: {dupes[:5]}"
            + (" ..." if len(dupes) > 5 else "")
        )


def _check_numeric(frame: pd.DataFrame, what: str) -> None:
    non_numeric = [
        col for col, dtype in frame.dtypes.items()
        if not (pd.api.types.is_numeric_dtype(dtype) or pd.api.types.is_bool_dtype(dtype))
    ]
    if non_numeric:
        raise ConfigurationError(f"{what} has non-numeric columns: {non_numeric[:5]}")


class ProdeInput:
    """
    Immutable container for score matrix + design matrix + adjacency matrix.

    Attributes:
        scores: Score matrix (genes × samples)
        design: Design matrix (samples × covariates)
        adjacency: Adjacency matrix (genes × genes)
        modality: NIE or NICE
        group_column: Design column holding the 0/1 group indicator
            (NICE only; None for NIE)

    Shape Invariants:
        - design.index equals scores.columns
        - adjacency.index equals adjacency.columns
        - gene and sample identifiers are unique
        - at least one gene is shared by scores and adjacency
    """

    def __init__(
        self,
        scores: pd.DataFrame,
        design: pd.DataFrame,
        adjacency: pd.DataFrame,
        modality: Modality | str,
        group_column: str | None = None,
    ):
        """
        Initialize ProdeInput with validation.

        Args:
            scores: Genes × samples DataFrame of numeric scores
            design: Samples × covariates DataFrame. Rows must correspond to
                score columns; rows labelled with the same sample ids in a
                different order are re-ordered to match.
            adjacency: Square genes × genes DataFrame (boolean or weighted)
            modality: "NIE" / "NICE" or a Modality member
            group_column: Name of the 0/1 group indicator column for NICE.
                Defaults to the last design column.

        Raises:
            TypeError: If inputs are not DataFrames
            ConfigurationError: If identifiers, alignment or dtypes are invalid
        """
        for name, frame in (("scores", scores), ("design", design), ("adjacency", adjacency)):
            if not isinstance(frame, pd.DataFrame):
                raise TypeError(f"{name} must be pd.DataFrame, got {type(frame)}")

        try:
            modality = Modality.parse(modality)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        policy = get_policy(modality)

        # Scores
        _check_unique(scores.index, "Gene identifiers (score matrix rows)")
        _check_unique(scores.columns, "Sample identifiers (score matrix columns)")
        _check_numeric(scores, "Score matrix")
        if scores.shape[0] == 0 or scores.shape[1] == 0:
            raise ConfigurationError(f"Score matrix is empty (shape {scores.shape})")
        if scores.isna().to_numpy().any():
            raise ConfigurationError("Score matrix contains missing values")

        # Design
        if len(design.index) != len(scores.columns):
            raise ConfigurationError(
                f"Design matrix has {len(design.index)} rows but score matrix "
                f"has {len(scores.columns)} samples"
            )
        if not design.index.equals(scores.columns):
            if set(design.index) == set(scores.columns):
                logger.debug("Re-ordering design rows to match score-matrix columns")
                design = design.loc[scores.columns]
            elif isinstance(design.index, pd.RangeIndex):
                design = design.set_axis(scores.columns, axis=0)
            else:
                raise ConfigurationError(
                    "Design matrix rows must correspond to score matrix columns"
                )
        _check_numeric(design, "Design matrix")
        if design.shape[1] == 0:
            raise ConfigurationError("Design matrix has no covariate columns")
        if design.isna().to_numpy().any():
            raise ConfigurationError("Design matrix contains missing values")

        if policy.differential:
            if group_column is None:
                group_column = str(design.columns[-1])
            if group_column not in design.columns:
                raise ConfigurationError(
                    f"Group column '{group_column}' not found in design matrix "
                    f"(columns: {list(design.columns)})"
                )
            groups = design[group_column].to_numpy(dtype=float)
            if not np.isin(groups, (0.0, 1.0)).all():
                raise ConfigurationError(
                    f"Group column '{group_column}' must be a 0/1 indicator"
                )
            if groups.min() == groups.max():
                raise ConfigurationError(
                    f"Group column '{group_column}' must contain both control (0) "
                    f"and case (1) samples"
                )
        else:
            group_column = None

        # Adjacency
        if adjacency.shape[0] != adjacency.shape[1]:
            raise ConfigurationError(
                f"Adjacency matrix must be square, got shape {adjacency.shape}"
            )
        _check_unique(adjacency.index, "Adjacency matrix row identifiers")
        if not adjacency.index.equals(adjacency.columns):
            if set(adjacency.index) == set(adjacency.columns):
                logger.debug("Re-ordering adjacency columns to match rows")
                adjacency = adjacency.loc[:, adjacency.index]
            else:
                raise ConfigurationError(
                    "Adjacency matrix rows and columns must carry the same gene identifiers"
                )
        _check_numeric(adjacency, "Adjacency matrix")
        if adjacency.isna().to_numpy().any():
            raise ConfigurationError("Adjacency matrix contains missing values")

        n_shared = len(scores.index.intersection(adjacency.index))
        if n_shared == 0:
            raise ConfigurationError(
                "No genes shared between score matrix and adjacency matrix"
            )

        # Store as private attributes (immutability by convention)
        self._scores = scores
        self._design = design
        self._adjacency = adjacency
        self._modality = modality
        self._group_column = group_column

    @classmethod
    def from_graph(
        cls,
        scores: pd.DataFrame,
        design: pd.DataFrame,
        graph,
        modality: Modality | str,
        group_column: str | None = None,
    ) -> ProdeInput:
        """
        Build a ProdeInput from a networkx graph instead of an adjacency matrix.

        Args:
            scores: Genes × samples score matrix
            design: Samples × covariates design matrix
            graph: networkx.Graph or DiGraph whose nodes are gene identifiers
            modality: "NIE" / "NICE"
            group_column: Group indicator column (NICE)

        Returns:
            New ProdeInput
        """
        import networkx as nx

        nodes = sorted(graph.nodes, key=str)
        adjacency = nx.to_pandas_adjacency(graph, nodelist=nodes, weight=None, dtype=np.int8)
        return cls(scores, design, adjacency, modality, group_column=group_column)

    @property
    def scores(self) -> pd.DataFrame:
        """Score matrix (genes × samples)."""
        return self._scores

    @property
    def design(self) -> pd.DataFrame:
        """Design matrix (samples × covariates)."""
        return self._design

    @property
    def adjacency(self) -> pd.DataFrame:
        """Adjacency matrix (genes × genes)."""
        return self._adjacency

    @property
    def modality(self) -> Modality:
        return self._modality

    @property
    def policy(self) -> ModalityPolicy:
        return get_policy(self._modality)

    @property
    def group_column(self) -> str | None:
        return self._group_column

    @property
    def gene_ids(self) -> pd.Index:
        return self._scores.index

    @property
    def sample_ids(self) -> pd.Index:
        return self._scores.columns

    @property
    def n_genes(self) -> int:
        return self._scores.shape[0]

    @property
    def n_samples(self) -> int:
        return self._scores.shape[1]

    def group_indicator(self) -> np.ndarray | None:
        """Boolean case mask over samples (True = case), or None for NIE."""
        if self._group_column is None:
            return None
        return self._design[self._group_column].to_numpy(dtype=float) == 1.0

    def select_genes(self, mask: np.ndarray | pd.Series) -> ProdeInput:
        """
        Subset score-matrix rows.

        The adjacency matrix is left untouched; the filtering stage intersects
        it with the score-matrix genes.

        Args:
            mask: Boolean array/Series over score-matrix rows

        Returns:
            New ProdeInput with selected genes
        """
        if isinstance(mask, pd.Series):
            mask = mask.values
        if len(mask) != self.n_genes:
            raise ValueError(
                f"mask length ({len(mask)}) must match n_genes ({self.n_genes})"
            )
        return ProdeInput(
            scores=self._scores.loc[mask],
            design=self._design,
            adjacency=self._adjacency,
            modality=self._modality,
            group_column=self._group_column,
        )

    def __repr__(self) -> str:
        return (
            f"ProdeInput({self.modality.name}: {self.n_genes} genes × {self.n_samples} samples, "
            f"adjacency {self._adjacency.shape[0]} genes)\n"
            f"  Design columns: {list(self._design.columns)}"
        )

    def __str__(self) -> str:
        return self.__repr__()

"""
Design matrix construction for PRODE runs.

Builds the sample × covariate design shared by every per-gene fit:

    NIE:   X = [intercept | covariate_columns]
    NICE:  X = [intercept | covariate_columns | group]

The group indicator is placed last so that it is the default group column
picked up by ProdeInput. Control samples are coded 0, case samples 1, so the
group coefficient is the case - control difference.

Categorical covariates are dummy-coded (drop_first=True); numeric covariates
are standardized (zero mean, unit variance).
"""

from __future__ import annotations

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from prode.core.exceptions import ConfigurationError

__all__ = ['build_design_matrix', 'GROUP_COLUMN']

GROUP_COLUMN = "group"


def _covariate_block(covariates_df: pd.DataFrame) -> pd.DataFrame:
    parts: list[pd.DataFrame] = []
    for col in covariates_df.columns:
        series = covariates_df[col]
        if series.dtype == object or isinstance(series.dtype, pd.CategoricalDtype):
            # Categorical: dummy code (drop_first=True)
            parts.append(pd.get_dummies(series, prefix=col, drop_first=True, dtype=float))
        else:
            vals = series.to_numpy(dtype=np.float64)
            sigma = np.std(vals, ddof=1)
            if sigma < 1e-10:
                raise ConfigurationError(
                    f"Covariate '{col}' has zero variance; cannot standardize"
                )
            parts.append(pd.DataFrame({str(col): (vals - vals.mean()) / sigma}, index=series.index))
    return pd.concat(parts, axis=1) if parts else pd.DataFrame(index=covariates_df.index)


def build_design_matrix(
    sample_groups: NDArray | pd.Series | None,
    case: str | None = None,
    control: str | None = None,
    covariates_df: pd.DataFrame | None = None,
    sample_ids: pd.Index | list[str] | None = None,
) -> pd.DataFrame:
    """
    Build a design matrix for NIE (no groups) or NICE (case vs control).

    Args:
        sample_groups: Group label per sample, or None for an intercept-only
            (NIE) design. Labels other than ``case``/``control`` are rejected.
        case: Label of case samples (coded 1).
        control: Label of control samples (coded 0).
        covariates_df: Optional covariates, one row per sample.
        sample_ids: Row labels. Defaults to the index of ``sample_groups`` when
            it is a Series, else to the covariates index, else 0..n-1.

    Returns:
        DataFrame (samples × covariates) with a ``const`` column first and,
        for grouped designs, the ``group`` column last.

    Raises:
        ConfigurationError: If labels are unknown, covariates misaligned, or
            the design is rank-deficient.
    """
    if sample_groups is None and sample_ids is None and covariates_df is None:
        raise ConfigurationError("Need sample_groups, sample_ids or covariates_df to size the design")

    if sample_ids is None:
        if isinstance(sample_groups, pd.Series):
            sample_ids = sample_groups.index
        elif covariates_df is not None:
            sample_ids = covariates_df.index
        else:
            sample_ids = pd.RangeIndex(len(sample_groups))
    sample_ids = pd.Index(sample_ids)
    n_samples = len(sample_ids)

    X = pd.DataFrame(index=sample_ids)

    if covariates_df is not None and len(covariates_df.columns) > 0:
        if len(covariates_df) != n_samples:
            raise ConfigurationError(
                f"covariates_df has {len(covariates_df)} rows but design has {n_samples} samples"
            )
        if covariates_df.isna().any(axis=None):
            raise ConfigurationError("covariates_df contains missing values")
        block = _covariate_block(covariates_df)
        X = pd.DataFrame(block.to_numpy(dtype=np.float64), index=sample_ids, columns=block.columns)

    if sample_groups is not None:
        if case is None or control is None:
            raise ConfigurationError("case and control labels are required for a grouped design")
        labels = np.asarray(sample_groups).astype(str)
        if len(labels) != n_samples:
            raise ConfigurationError(
                f"sample_groups has {len(labels)} entries but design has {n_samples} samples"
            )
        unknown = sorted(set(labels) - {str(case), str(control)})
        if unknown:
            raise ConfigurationError(
                f"Unknown group labels {unknown}; expected '{case}' or '{control}'"
            )
        X[GROUP_COLUMN] = (labels == str(case)).astype(float)

    X.insert(0, "const", 1.0)

    n_params = X.shape[1]
    rank = np.linalg.matrix_rank(X.to_numpy(dtype=np.float64))
    if rank < n_params:
        raise ConfigurationError(
            f"Design matrix is rank-deficient: rank={rank}, n_params={n_params}. "
            f"Columns: {list(X.columns)}. A covariate may be collinear with the "
            f"group or another covariate."
        )

    return X

"""
Vectorized per-gene OLS fits against a shared design matrix.

Every gene (row of the score matrix) is regressed on the same design X, so
the expensive part of OLS depends only on X and is done once:

    X = QR                     (thin QR, computed once)
    β̂ = R⁻¹ Q'y                (per gene: one projection)
    σ̂² = ||y - Xβ̂||² / (n - p)
    Var(β̂_j) = σ̂² [(X'X)⁻¹]_jj,  (X'X)⁻¹ = R⁻¹R⁻ᵀ

The per-gene t-statistic β̂_j / SE(β̂_j) is referred to a Student-t
distribution with n - p degrees of freedom (two-sided p-value).

Performance:
    Genes are processed in batches of ``batch_size`` rows so that peak memory
    is O(batch_size × n_samples) regardless of the number of genes; each batch
    is a handful of BLAS calls.

Usage:
    >>> fitter = BatchLinearFitter(design, coefficient="group")
    >>> fit = fitter.fit(scores.to_numpy())
    >>> fit["estimate"], fit["p_value"]
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from scipy import linalg as sp_linalg
from scipy import stats as scipy_stats

from prode.core.exceptions import ConfigurationError, FittingError

__all__ = [
    'FIT_COLUMNS',
    'EXTENDED_COLUMNS',
    'BatchLinearFitter',
    'group_summaries',
    'fit_linear_models',
]

logger = logging.getLogger(__name__)

FIT_COLUMNS = ["estimate", "std_error", "t_value", "p_value"]
EXTENDED_COLUMNS = ["ctrl_mean", "case_mean", "ctrl_sd", "case_sd", "ctrl_n", "case_n"]


class BatchLinearFitter:
    """
    Batch OLS with a single factorization of the shared design matrix.

    Attributes:
        design_matrix_: Design matrix X (n_samples × n_params)
        coefficient_index_: Column of X whose coefficient is reported
        q_, r_inv_: Thin QR factor Q and R⁻¹ of X
        xtx_inv_diag_: Diagonal of (X'X)⁻¹
        df_resid: Residual degrees of freedom n - p
    """

    def __init__(
        self,
        design: pd.DataFrame | NDArray[np.float64],
        coefficient: str | int = 0,
        batch_size: int = 1000,
    ):
        """
        Factorize the design matrix.

        Args:
            design: Design matrix (n_samples × n_params)
            coefficient: Column name (DataFrame designs) or position of the
                coefficient to extract.
            batch_size: Number of genes projected per batch.

        Raises:
            FittingError: If n - p <= 0 or X is rank-deficient
            ConfigurationError: If the coefficient column does not exist
        """
        if isinstance(design, pd.DataFrame):
            columns = list(design.columns)
            X = design.to_numpy(dtype=np.float64)
        else:
            X = np.asarray(design, dtype=np.float64)
            columns = list(range(X.shape[1]))

        if X.ndim != 2:
            raise FittingError(f"Design matrix must be 2D, got shape {X.shape}")

        if isinstance(coefficient, str):
            if coefficient not in columns:
                raise ConfigurationError(
                    f"Coefficient '{coefficient}' not in design columns {columns}"
                )
            coefficient_index = columns.index(coefficient)
        else:
            coefficient_index = int(coefficient)
            if not 0 <= coefficient_index < X.shape[1]:
                raise ConfigurationError(
                    f"Coefficient index {coefficient_index} out of range for "
                    f"{X.shape[1]} design columns"
                )

        n_samples, n_params = X.shape
        df_resid = n_samples - n_params
        if df_resid <= 0:
            raise FittingError(
                f"Insufficient residual df: {n_samples} samples - {n_params} params = "
                f"{df_resid}. Reduce covariates or increase sample size."
            )

        rank = np.linalg.matrix_rank(X)
        if rank < n_params:
            raise FittingError(
                f"Design matrix is rank-deficient: rank={rank}, n_params={n_params}. "
                f"Columns: {columns}."
            )

        q, r = np.linalg.qr(X, mode="reduced")
        r_inv = sp_linalg.solve_triangular(r, np.eye(n_params), lower=False)

        self.design_matrix_ = X
        self.columns_ = columns
        self.coefficient_index_ = coefficient_index
        self.q_ = q
        self.r_inv_ = r_inv
        self.xtx_inv_diag_ = np.sum(r_inv ** 2, axis=1)
        self.batch_size = batch_size
        self.n_samples = n_samples
        self.n_params = n_params
        self.df_resid = df_resid

    def fit(self, scores: NDArray[np.float64]) -> dict[str, NDArray[np.float64]]:
        """
        Fit every row of ``scores`` against the design.

        Args:
            scores: Score matrix (n_genes × n_samples)

        Returns:
            Dict with arrays ``estimate``, ``std_error``, ``t_value``,
            ``p_value`` (each of length n_genes, in row order).

        Raises:
            ValueError: If the sample count does not match the design
        """
        scores = np.asarray(scores, dtype=np.float64)
        n_genes, n_samples = scores.shape
        if n_samples != self.n_samples:
            raise ValueError(
                f"Score matrix has {n_samples} samples but design has {self.n_samples}"
            )

        j = self.coefficient_index_
        estimate = np.empty(n_genes, dtype=np.float64)
        residual_var = np.empty(n_genes, dtype=np.float64)

        for start in range(0, n_genes, self.batch_size):
            end = min(start + self.batch_size, n_genes)
            Y = scores[start:end, :].T                     # n_samples × batch
            beta = self.r_inv_ @ (self.q_.T @ Y)           # n_params × batch
            resid = Y - self.design_matrix_ @ beta
            estimate[start:end] = beta[j, :]
            residual_var[start:end] = np.sum(resid ** 2, axis=0) / self.df_resid

        std_error = np.sqrt(residual_var * self.xtx_inv_diag_[j])
        with np.errstate(divide="ignore", invalid="ignore"):
            t_value = estimate / std_error
        # An all-zero row has no effect to test
        t_value[(estimate == 0) & (std_error == 0)] = 0.0
        p_value = 2.0 * scipy_stats.t.sf(np.abs(t_value), self.df_resid)

        return {
            "estimate": estimate,
            "std_error": std_error,
            "t_value": t_value,
            "p_value": p_value,
        }


def group_summaries(
    scores: NDArray[np.float64],
    case_mask: NDArray[np.bool_],
) -> dict[str, NDArray[np.float64]]:
    """
    Per-gene mean, standard deviation and sample count for control and case groups.

    Standard deviations use ddof=1 and are NaN for groups with fewer than
    two samples.

    Args:
        scores: Score matrix (n_genes × n_samples)
        case_mask: Boolean mask over samples (True = case, False = control)

    Returns:
        Dict with arrays ``ctrl_mean``, ``case_mean``, ``ctrl_sd``,
        ``case_sd``, ``ctrl_n``, ``case_n``.
    """
    scores = np.asarray(scores, dtype=np.float64)
    case_mask = np.asarray(case_mask, dtype=bool)
    n_genes = scores.shape[0]

    out: dict[str, NDArray[np.float64]] = {}
    for label, mask in (("ctrl", ~case_mask), ("case", case_mask)):
        group = scores[:, mask]
        n = group.shape[1]
        out[f"{label}_mean"] = group.mean(axis=1) if n > 0 else np.full(n_genes, np.nan)
        out[f"{label}_sd"] = group.std(axis=1, ddof=1) if n > 1 else np.full(n_genes, np.nan)
        out[f"{label}_n"] = np.full(n_genes, n, dtype=np.int64)

    return {col: out[col] for col in EXTENDED_COLUMNS}


def _coefficient_for(prode_input) -> str:
    """Design column whose coefficient is the gene-level estimate."""
    if prode_input.policy.estimate == "group":
        return prode_input.group_column

    design = prode_input.design
    for col in design.columns:
        if np.allclose(design[col].to_numpy(dtype=float), 1.0):
            return col
    raise ConfigurationError(
        f"{prode_input.modality.name} scores need an intercept column in the design matrix"
    )


def fit_linear_models(
    prode_input,
    extended_stats: bool = False,
    batch_size: int = 1000,
) -> pd.DataFrame:
    """
    Build the fit table for a ProdeInput.

    The estimate is the intercept (NIE) or the group coefficient (NICE), as
    given by the modality policy. Extended per-group statistics are added only
    when requested and the modality is differential.

    Args:
        prode_input: ProdeInput with scores and design
        extended_stats: Whether to add per-group descriptive statistics
        batch_size: Genes per projection batch

    Returns:
        DataFrame indexed by gene id (score-matrix order) with FIT_COLUMNS
        and optionally EXTENDED_COLUMNS.

    Raises:
        FittingError: If the design cannot support the fit
    """
    coefficient = _coefficient_for(prode_input)
    fitter = BatchLinearFitter(prode_input.design, coefficient=coefficient, batch_size=batch_size)

    values = prode_input.scores.to_numpy(dtype=np.float64)
    logger.debug(
        f"Fitting {values.shape[0]} genes on {fitter.n_params} design columns "
        f"(coefficient '{coefficient}', df={fitter.df_resid})"
    )
    fit = fitter.fit(values)
    fit_tab = pd.DataFrame(fit, index=prode_input.gene_ids, columns=FIT_COLUMNS)

    if extended_stats and prode_input.policy.allows_extended_stats:
        summaries = group_summaries(values, prode_input.group_indicator())
        for col in EXTENDED_COLUMNS:
            fit_tab[col] = summaries[col]

    return fit_tab

"""
PRODE orchestrator: fit → filter → RRA → background → composite score.

Usage:
    >>> from prode import ProdeInput, ProdeConfig, run_prode
    >>> data = ProdeInput(scores, design, adjacency, modality="NICE")
    >>> results = run_prode(data, ProdeConfig(filter_ctrl=True, seed=1))
    >>> results.top(10)

Each stage returns a new artifact; nothing is modified in place. The
background model is built once per run (or passed in) and only read
afterwards.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import asdict, dataclass, replace
from pathlib import Path

import numpy as np
import pandas as pd

from prode.core.exceptions import ConfigurationError, EmptyNeighborhoodWarning
from prode.core.modality import Modality, get_policy
from prode.core.prode_input import ProdeInput
from prode.core.results import ProdeResults
from prode.stats.adjacency import filter_adjacency_matrix, neighbor_indices
from prode.stats.background import BackgroundModel, FittedBackground, SimulatedBackground
from prode.stats.linear_fit import fit_linear_models, group_summaries
from prode.stats.rra import compute_rhos
from prode.stats.scoring import FDR_METHODS, compose_scores, gene_percentiles

__all__ = ['ProdeConfig', 'run_prode', 'build_background']

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProdeConfig:
    """Options of a PRODE run.

    Attributes:
        scaled_est: Rank genes by t-value (True) or by raw estimate (False)
        compute_background: Simulate the rho null instead of using the
            Weibull approximation
        filter_ctrl: Drop genes whose control-group mean is > 0 (NICE only)
        n_iter: Simulated rhos per neighborhood size (compute_background)
        workers: Worker processes for background simulation
        extended_stats: Add per-group descriptive statistics (NICE only)
        fdr_method: "BH", "BY" or "bonferroni"
        seed: Root seed of all random streams
        batch_size: Genes per fit batch and iterations per simulation unit
        calibration_iter: Simulated rhos per size when calibrating the
            Weibull table at run time
        background_table: Versioned Weibull table to load instead of calibrating
    """

    scaled_est: bool = True
    compute_background: bool = False
    filter_ctrl: bool = False
    n_iter: int = 10000
    workers: int = 1
    extended_stats: bool = False
    fdr_method: str = "BH"
    seed: int | None = None
    batch_size: int = 1000
    calibration_iter: int = 2000
    background_table: str | Path | None = None

    def validate(self) -> ProdeConfig:
        """
        Check option values.

        Returns:
            self, for chaining

        Raises:
            ConfigurationError: On any invalid value
        """
        for name in ("workers", "batch_size", "calibration_iter"):
            value = getattr(self, name)
            if not isinstance(value, (int, np.integer)) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
        if self.compute_background and (
            not isinstance(self.n_iter, (int, np.integer)) or self.n_iter <= 0
        ):
            raise ConfigurationError(
                f"n_iter must be a positive integer when compute_background is set, got {self.n_iter!r}"
            )
        if self.fdr_method not in FDR_METHODS:
            raise ConfigurationError(
                f"Unknown fdr_method '{self.fdr_method}'. Expected one of: {', '.join(FDR_METHODS)}"
            )
        if self.seed is not None and not isinstance(self.seed, (int, np.integer)):
            raise ConfigurationError(f"seed must be an integer or None, got {self.seed!r}")
        return self

    def resolve(self, modality: Modality | str) -> ProdeConfig:
        """Copy with flags the modality does not support forced off."""
        policy = get_policy(modality)
        filter_ctrl = self.filter_ctrl and policy.allows_filter_ctrl
        extended_stats = self.extended_stats and policy.allows_extended_stats
        if filter_ctrl != self.filter_ctrl or extended_stats != self.extended_stats:
            logger.debug(f"{Modality.parse(modality).name}: filter_ctrl and extended_stats forced off")
        return replace(self, filter_ctrl=filter_ctrl, extended_stats=extended_stats)

    def to_dict(self) -> dict:
        """JSON-serializable representation."""
        out = asdict(self)
        if out["background_table"] is not None:
            out["background_table"] = str(out["background_table"])
        return out


def build_background(config: ProdeConfig, sizes) -> BackgroundModel:
    """
    Background model covering the given neighborhood sizes.

    - compute_background: Monte-Carlo simulation with n_iter draws per size
    - background_table: Weibull table loaded from disk
    - otherwise: Weibull table calibrated from calibration_iter draws per
      size (seed defaults to 0 so the table is reproducible)
    """
    sizes = sorted({int(k) for k in sizes})

    if config.compute_background:
        logger.info(
            f"Simulating background: {len(sizes)} neighborhood sizes x {config.n_iter} "
            f"iterations on {config.workers} worker(s)"
        )
        return SimulatedBackground.build(
            sizes,
            n_iter=config.n_iter,
            workers=config.workers,
            seed=config.seed,
            batch_size=config.batch_size,
        )

    if config.background_table is not None:
        logger.info(f"Loading background table: {config.background_table}")
        return FittedBackground.from_csv(config.background_table)

    logger.info(f"Calibrating fitted background for {len(sizes)} neighborhood sizes")
    return FittedBackground.calibrate(
        sizes,
        n_iter=config.calibration_iter,
        workers=config.workers,
        seed=0 if config.seed is None else config.seed,
        batch_size=config.batch_size,
    )


def _ctrl_means(prode_input: ProdeInput, fit_tab: pd.DataFrame) -> pd.Series:
    if "ctrl_mean" in fit_tab.columns:
        return fit_tab["ctrl_mean"]
    summaries = group_summaries(
        prode_input.scores.to_numpy(dtype=np.float64), prode_input.group_indicator()
    )
    return pd.Series(summaries["ctrl_mean"], index=prode_input.gene_ids, name="ctrl_mean")


def run_prode(
    prode_input: ProdeInput,
    config: ProdeConfig | None = None,
    background: BackgroundModel | None = None,
    **options,
) -> ProdeResults:
    """
    Compute NIE or NICE scores.

    Args:
        prode_input: Validated scores, design and adjacency
        config: Run options (defaults to ProdeConfig())
        background: Prebuilt background model. When given, no background is
            built and the background options of config are ignored.
        **options: Overrides for individual ProdeConfig fields

    Returns:
        ProdeResults

    Raises:
        ConfigurationError: Invalid options, or no gene survives filtering
        FittingError: Design cannot support the per-gene fits
        ConsistencyError: Stages disagree on the gene set
        BackgroundError: Background simulation failed
    """
    config = config or ProdeConfig()
    if options:
        unknown = set(options) - set(ProdeConfig.__dataclass_fields__)
        if unknown:
            raise ConfigurationError(f"Unknown options: {sorted(unknown)}")
        config = replace(config, **options)
    config = config.validate().resolve(prode_input.modality)
    modality = prode_input.modality

    logger.info(f"{modality.name} scores: {prode_input.n_genes} genes, {prode_input.n_samples} samples")

    # 1. Per-gene linear fits
    logger.info("Running linear models fit")
    fit_tab = fit_linear_models(
        prode_input,
        extended_stats=config.extended_stats,
        batch_size=config.batch_size,
    )

    # 2. Common gene set
    logger.info("Subsetting adjacency matrix")
    filtered = filter_adjacency_matrix(
        fit_tab,
        prode_input.adjacency,
        filter_ctrl=config.filter_ctrl,
        ctrl_means=_ctrl_means(prode_input, fit_tab) if config.filter_ctrl else None,
    )
    logger.info(f"{filtered.n_filtered} genes filtered, {filtered.n_retained} remaining")
    if filtered.n_retained == 0:
        raise ConfigurationError("No genes left after filtering")

    # 3. Neighborhood aggregation
    u_gene = gene_percentiles(filtered.fit_tab, scaled_est=config.scaled_est)
    neighbors = neighbor_indices(filtered.adjacency)
    sizes, rho = compute_rhos(u_gene.to_numpy(), neighbors)

    has_neighbors = sizes > 0
    genes = filtered.fit_tab.index
    filtered_genes = filtered.filtered
    n_empty = int((~has_neighbors).sum())
    if n_empty:
        warnings.warn(
            f"{n_empty} genes have no neighbors after filtering and are not scored",
            EmptyNeighborhoodWarning,
            stacklevel=2,
        )
        isolated = pd.DataFrame(
            {"reason": "no_neighbors"}, index=pd.Index(genes[~has_neighbors], name="gene")
        )
        filtered_genes = pd.concat([filtered_genes, isolated])

    # 4. Background and neighborhood p-values
    rra_tab = pd.DataFrame(
        {
            "n_neighbors": sizes[has_neighbors],
            "rra_score": rho[has_neighbors],
        },
        index=genes[has_neighbors],
    )
    if has_neighbors.any():
        if background is None:
            background = build_background(config, rra_tab["n_neighbors"].unique())
        logger.info("Computing neighborhood p-values")
        rra_tab["rra_p"] = background.pvalues(
            rra_tab["rra_score"].to_numpy(), rra_tab["n_neighbors"].to_numpy()
        )
    else:
        logger.warning("No retained gene has neighbors; result table is empty")
        rra_tab["rra_p"] = pd.Series(dtype=np.float64)

    # 5. Composite score
    logger.info(f"Computing {get_policy(modality).score_column}")
    result_table = compose_scores(
        filtered.fit_tab,
        rra_tab,
        modality,
        scaled_est=config.scaled_est,
        fdr_method=config.fdr_method,
    )

    logger.info("Done")

    return ProdeResults(
        result_table=result_table,
        fit_table=filtered.fit_tab,
        adjacency=filtered.adjacency,
        filtered_genes=filtered_genes,
        modality=modality,
        config=config.to_dict(),
        n_genes_input=prode_input.n_genes,
    )

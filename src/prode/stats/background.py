"""
Null distribution of the RRA rho statistic as a function of neighborhood size.

rho for a gene with k neighbors is the minimum of k beta tail probabilities,
so its null distribution depends on k. Two background models convert an
observed (rho, k) into P(rho_null <= rho | k):

    SimulatedBackground  Monte-Carlo sample of rho_null for every observed k.
                         p = (#{rho_null <= rho} + 1) / (n_iter + 1)
    FittedBackground     Two-parameter Weibull (location 0) per k, evaluated
                         in closed form: p = F_Weibull(rho; shape_k, scale_k)

Both return p = 1 at rho = 1 and are non-decreasing in rho for fixed k.

Simulation is a map-reduce over independent (k, batch) work units. Each unit
draws from its own SeedSequence(seed, spawn_key=(k, batch)) stream, so the
merged result does not depend on the number of workers or completion order.
The Weibull table is either loaded from a versioned CSV or calibrated once per
run from such a simulation.
"""

from __future__ import annotations

import logging
import multiprocessing as mp
from abc import ABC, abstractmethod
from concurrent.futures import ProcessPoolExecutor, as_completed
from pathlib import Path

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from scipy import stats as scipy_stats

from prode.core.exceptions import BackgroundError, ConfigurationError
from prode.stats.rra import rho_scores_matrix
from prode.utils.fileio import atomic_write_text

__all__ = [
    'BackgroundModel',
    'SimulatedBackground',
    'FittedBackground',
    'simulate_null_rhos',
    'fit_background_table',
    'TABLE_VERSION',
]

logger = logging.getLogger(__name__)

TABLE_VERSION = 1
_TABLE_HEADER = "# prode-background v"
_P_FLOOR = np.finfo(np.float64).tiny


# =============================================================================
# Simulation (map-reduce over (k, batch) units)
# =============================================================================

def _simulate_unit(
    k: int,
    batch_index: int,
    n_draws: int,
    entropy: int,
) -> tuple[int, int, NDArray[np.float64]]:
    """Worker: rho_null for ``n_draws`` samples of k uniforms."""
    rng = np.random.default_rng(
        np.random.SeedSequence(entropy, spawn_key=(int(k), int(batch_index)))
    )
    uniforms = rng.random((n_draws, k))
    return k, batch_index, rho_scores_matrix(uniforms)


def simulate_null_rhos(
    sizes,
    n_iter: int,
    workers: int = 1,
    seed: int | None = None,
    batch_size: int = 1000,
) -> dict[int, NDArray[np.float64]]:
    """
    Simulate the null rho distribution for each neighborhood size.

    Args:
        sizes: Neighborhood sizes (duplicates and non-positive values ignored)
        n_iter: Simulated rho values per size
        workers: Number of worker processes; 1 runs in-process
        seed: Root seed. None draws fresh entropy.
        batch_size: Iterations per work unit

    Returns:
        Dict size -> sorted array of n_iter null rho values

    Raises:
        ConfigurationError: If n_iter, workers or batch_size is not positive
        BackgroundError: If any work unit fails
    """
    if n_iter <= 0:
        raise ConfigurationError(f"n_iter must be positive, got {n_iter}")
    if workers <= 0:
        raise ConfigurationError(f"workers must be positive, got {workers}")
    if batch_size <= 0:
        raise ConfigurationError(f"batch_size must be positive, got {batch_size}")

    sizes = sorted({int(k) for k in sizes if int(k) > 0})
    entropy = np.random.SeedSequence(seed).entropy

    units = []
    for k in sizes:
        for batch_index, start in enumerate(range(0, n_iter, batch_size)):
            units.append((k, batch_index, min(batch_size, n_iter - start), entropy))

    logger.debug(
        f"Simulating null rhos: {len(sizes)} sizes x {n_iter} iterations "
        f"({len(units)} units, {workers} workers)"
    )

    parts: dict[int, dict[int, NDArray[np.float64]]] = {k: {} for k in sizes}

    if workers == 1 or len(units) <= 1:
        for unit in units:
            try:
                k, b, rhos = _simulate_unit(*unit)
            except Exception as e:
                raise BackgroundError(
                    f"Background simulation failed for size {unit[0]}: {type(e).__name__}: {e}"
                ) from e
            parts[k][b] = rhos
    else:
        # 'spawn' gives clean worker processes (avoids fork issues)
        ctx = mp.get_context('spawn')
        with ProcessPoolExecutor(max_workers=workers, mp_context=ctx) as executor:
            futures = {executor.submit(_simulate_unit, *unit): unit for unit in units}
            for future in as_completed(futures):
                unit = futures[future]
                try:
                    k, b, rhos = future.result()
                except Exception as e:
                    for pending in futures:
                        pending.cancel()
                    raise BackgroundError(
                        f"Background simulation failed for size {unit[0]}: "
                        f"{type(e).__name__}: {e}"
                    ) from e
                parts[k][b] = rhos

    null_rhos = {}
    for k in sizes:
        merged = np.concatenate([parts[k][b] for b in sorted(parts[k])])
        merged.sort()
        null_rhos[k] = merged
        logger.debug(f"  size {k}: median null rho {np.median(merged):.4g}")

    return null_rhos


def fit_background_table(null_rhos: dict[int, NDArray[np.float64]]) -> pd.DataFrame:
    """
    Fit a two-parameter Weibull (location fixed at 0) per neighborhood size.

    Args:
        null_rhos: Dict size -> simulated null rho values

    Returns:
        DataFrame indexed by ``size`` with ``shape`` and ``scale`` columns
    """
    rows = []
    for k in sorted(null_rhos):
        shape, _, scale = scipy_stats.weibull_min.fit(null_rhos[k], floc=0)
        rows.append({"size": int(k), "shape": float(shape), "scale": float(scale)})
    return pd.DataFrame(rows, columns=["size", "shape", "scale"]).set_index("size")


# =============================================================================
# Background models
# =============================================================================

class BackgroundModel(ABC):
    """
    Read-only lookup from (rho, neighborhood size) to a null p-value.

    Implementations:
    - SimulatedBackground: empirical Monte-Carlo null per size
    - FittedBackground: Weibull approximation per size
    """

    @property
    @abstractmethod
    def sizes(self) -> list[int]:
        """Neighborhood sizes covered by this model."""
        pass

    @abstractmethod
    def _pvalues_for_size(self, rho: NDArray[np.float64], k: int) -> NDArray[np.float64]:
        """p-values for rho values that all share neighborhood size k."""
        pass

    def pvalues(
        self,
        rho: NDArray[np.float64],
        sizes: NDArray[np.int64],
    ) -> NDArray[np.float64]:
        """
        Convert observed rho values into p-values.

        Args:
            rho: Observed rho per gene
            sizes: Neighborhood size per gene (same length)

        Returns:
            p-values in (0, 1]; exactly 1 where rho >= 1
        """
        rho = np.asarray(rho, dtype=np.float64)
        sizes = np.asarray(sizes, dtype=np.int64)
        if rho.shape != sizes.shape:
            raise ValueError(f"rho shape {rho.shape} != sizes shape {sizes.shape}")

        p = np.ones_like(rho)
        for k in np.unique(sizes):
            idx = np.flatnonzero(sizes == k)
            p[idx] = self._pvalues_for_size(rho[idx], int(k))
        p[rho >= 1.0] = 1.0
        return p


class SimulatedBackground(BackgroundModel):
    """
    Empirical null distribution of rho per neighborhood size.

    Attributes:
        null_rhos: Dict size -> sorted simulated rho values
    """

    def __init__(self, null_rhos: dict[int, NDArray[np.float64]]):
        self._null_rhos = {int(k): np.sort(np.asarray(v, dtype=np.float64)) for k, v in null_rhos.items()}

    @classmethod
    def build(
        cls,
        sizes,
        n_iter: int = 10000,
        workers: int = 1,
        seed: int | None = None,
        batch_size: int = 1000,
    ) -> SimulatedBackground:
        """Simulate the background for the given neighborhood sizes."""
        return cls(simulate_null_rhos(sizes, n_iter, workers=workers, seed=seed, batch_size=batch_size))

    @property
    def sizes(self) -> list[int]:
        return sorted(self._null_rhos)

    @property
    def null_rhos(self) -> dict[int, NDArray[np.float64]]:
        return self._null_rhos

    def _pvalues_for_size(self, rho: NDArray[np.float64], k: int) -> NDArray[np.float64]:
        if k not in self._null_rhos:
            raise ConfigurationError(
                f"No simulated background for neighborhood size {k}"
            )
        null = self._null_rhos[k]
        n_le = np.searchsorted(null, rho, side="right")
        return (n_le + 1.0) / (null.size + 1.0)


class FittedBackground(BackgroundModel):
    """
    Weibull approximation of the rho null per neighborhood size.

    Sizes missing from the table use the nearest covered size (ties towards
    the larger size).

    Attributes:
        table: DataFrame indexed by size with ``shape`` and ``scale``
    """

    def __init__(self, table: pd.DataFrame, version: int = TABLE_VERSION):
        if not {"shape", "scale"}.issubset(table.columns):
            raise ConfigurationError(
                f"Background table needs 'shape' and 'scale' columns, got {list(table.columns)}"
            )
        if len(table) == 0:
            raise ConfigurationError("Background table is empty")
        table = table[["shape", "scale"]].astype(float).sort_index()
        table.index = table.index.astype(np.int64)
        table.index.name = "size"
        if (table.to_numpy() <= 0).any():
            raise ConfigurationError("Background table parameters must be positive")
        self._table = table
        self.version = version

    @classmethod
    def calibrate(
        cls,
        sizes,
        n_iter: int = 2000,
        workers: int = 1,
        seed: int | None = 0,
        batch_size: int = 1000,
    ) -> FittedBackground:
        """
        Fit the Weibull table from a fresh simulation.

        With a fixed seed the table, and therefore every p-value, is identical
        for any number of workers.
        """
        null_rhos = simulate_null_rhos(sizes, n_iter, workers=workers, seed=seed, batch_size=batch_size)
        return cls(fit_background_table(null_rhos))

    @classmethod
    def from_csv(cls, path: Path | str) -> FittedBackground:
        """
        Load a versioned table written by to_csv().

        Raises:
            ConfigurationError: If the header or version is missing/unsupported
        """
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Background table not found: {path}")
        with open(path, "r") as f:
            first = f.readline().strip()
        if not first.startswith(_TABLE_HEADER):
            raise ConfigurationError(
                f"{path} is not a PRODE background table (missing '{_TABLE_HEADER}N' header)"
            )
        try:
            version = int(first[len(_TABLE_HEADER):])
        except ValueError as e:
            raise ConfigurationError(f"Invalid background table header: {first!r}") from e
        if version > TABLE_VERSION:
            raise ConfigurationError(
                f"Background table version {version} is newer than supported ({TABLE_VERSION})"
            )
        table = pd.read_csv(path, comment="#", index_col="size")
        return cls(table, version=version)

    def to_csv(self, path: Path | str) -> None:
        """Write the table atomically with a version header."""
        body = self._table.to_csv(float_format="%.10g")
        atomic_write_text(path, f"{_TABLE_HEADER}{self.version}\n{body}")

    @property
    def table(self) -> pd.DataFrame:
        return self._table

    @property
    def sizes(self) -> list[int]:
        return self._table.index.tolist()

    def nearest_size(self, k: int) -> int:
        """Covered size used for k (k itself when covered)."""
        covered = self._table.index.to_numpy()
        distance = np.abs(covered - k)
        # Ties go to the larger size
        return int(covered[np.flatnonzero(distance == distance.min())[-1]])

    def parameters(self, k: int) -> tuple[float, float]:
        """(shape, scale) used for neighborhood size k."""
        row = self._table.loc[self.nearest_size(k)]
        return float(row["shape"]), float(row["scale"])

    def _pvalues_for_size(self, rho: NDArray[np.float64], k: int) -> NDArray[np.float64]:
        nearest = self.nearest_size(k)
        if nearest != k:
            logger.warning(f"Neighborhood size {k} not in background table; using size {nearest}")
        shape, scale = self.parameters(k)
        p = scipy_stats.weibull_min.cdf(rho, shape, loc=0, scale=scale)
        return np.clip(p, _P_FLOOR, 1.0)

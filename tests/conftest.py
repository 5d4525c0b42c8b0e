"""
Pytest configuration and shared fixtures.

This module provides synthetic data generators and shared fixtures for all
test suites: score matrices, random networks and ready-made ProdeInputs for
both modalities.
"""

import networkx as nx
import numpy as np
import pandas as pd
import pytest

from prode.core.design import build_design_matrix
from prode.core.prode_input import ProdeInput


def generate_scores(
    n_genes: int,
    n_samples: int,
    effect_genes: int = 0,
    effect: float = -2.0,
    case_mask: np.ndarray | None = None,
    seed: int = 42,
) -> pd.DataFrame:
    """
    Generate a synthetic genes × samples score matrix.

    Args:
        n_genes: Number of genes (rows)
        n_samples: Number of samples (columns)
        effect_genes: The first ``effect_genes`` genes get a shifted signal
        effect: Size of the shift
        case_mask: If given, the shift applies to case samples only
            (differential effect); otherwise to every sample
        seed: Random seed for reproducibility

    Design:
        - Gene baselines drawn from N(0, 0.5), noise N(0, 1)
        - Gene ids "g0", "g1", ...; sample ids "s0", "s1", ...
    """
    rng = np.random.default_rng(seed)
    baseline = rng.normal(0.0, 0.5, size=(n_genes, 1))
    data = baseline + rng.normal(0.0, 1.0, size=(n_genes, n_samples))

    if effect_genes:
        if case_mask is None:
            data[:effect_genes, :] += effect
        else:
            data[:effect_genes, np.asarray(case_mask, dtype=bool)] += effect

    return pd.DataFrame(
        data,
        index=[f"g{i}" for i in range(n_genes)],
        columns=[f"s{j}" for j in range(n_samples)],
    )


def generate_network(genes, p: float = 0.15, seed: int = 42) -> pd.DataFrame:
    """Erdős–Rényi adjacency matrix over ``genes`` (0/1, symmetric)."""
    genes = list(genes)
    graph = nx.gnp_random_graph(len(genes), p, seed=seed)
    graph = nx.relabel_nodes(graph, dict(enumerate(genes)))
    return nx.to_pandas_adjacency(graph, nodelist=genes, weight=None, dtype=np.int8)


def make_nice_input(n_genes=40, n_per_group=4, effect_genes=5, seed=42, **kwargs) -> ProdeInput:
    """NICE input with ``effect_genes`` genes depleted in case samples."""
    labels = np.array(["ctrl"] * n_per_group + ["case"] * n_per_group)
    scores = generate_scores(
        n_genes, 2 * n_per_group,
        effect_genes=effect_genes, case_mask=labels == "case", seed=seed,
    )
    groups = pd.Series(labels, index=scores.columns)
    design = build_design_matrix(groups, case="case", control="ctrl")
    adjacency = generate_network(scores.index, seed=seed)
    return ProdeInput(scores, design, adjacency, "NICE", **kwargs)


@pytest.fixture
def nie_input():
    """40 genes × 6 samples, intercept-only design, random network."""
    scores = generate_scores(40, 6, effect_genes=5, seed=1)
    design = build_design_matrix(None, sample_ids=scores.columns)
    adjacency = generate_network(scores.index, seed=1)
    return ProdeInput(scores, design, adjacency, "NIE")


@pytest.fixture
def nice_input():
    """40 genes × 8 samples (4 ctrl / 4 case), group design, random network."""
    return make_nice_input(seed=2)


@pytest.fixture
def path3_input():
    """Three genes on a path g1 - g2 - g3; g1 has the lowest average score."""
    noise = np.array([0.1, -0.1, 0.2, -0.2])
    scores = pd.DataFrame(
        [-3.0 + noise, -1.0 + noise, 1.0 + noise],
        index=["g1", "g2", "g3"],
        columns=["s1", "s2", "s3", "s4"],
    )
    design = build_design_matrix(None, sample_ids=scores.columns)
    adjacency = pd.DataFrame(
        [[0, 1, 0], [1, 0, 1], [0, 1, 0]],
        index=scores.index,
        columns=scores.index,
    )
    return ProdeInput(scores, design, adjacency, "NIE")

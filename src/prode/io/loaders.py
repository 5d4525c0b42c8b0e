"""
Table loaders for PRODE inputs.

Expected layouts (CSV or TSV; delimiter from the extension, sniffed for
anything else):

    score matrix      first column gene id, one column per sample
    design matrix     first column sample id, one column per covariate
    adjacency matrix  first column gene id, one column per gene (square)
    edge list         two columns of gene ids, one edge per row

Loaders only parse and check the file structure. Cross-table alignment is
validated by ProdeInput.

Examples:
    >>> from prode.io.loaders import load_score_matrix, load_edge_list
    >>> scores = load_score_matrix("crispr_scores.tsv")
    >>> adjacency = load_edge_list("string_edges.csv")
"""

from __future__ import annotations

import csv
from pathlib import Path

import numpy as np
import pandas as pd

__all__ = [
    'sniff_delimiter',
    'load_score_matrix',
    'load_design_matrix',
    'load_adjacency_matrix',
    'load_edge_list',
]

_EXTENSION_DELIMITERS = {".csv": ",", ".tsv": "\t", ".tab": "\t", ".txt": "\t"}


def sniff_delimiter(path: Path, sample_size: int = 8192) -> str:
    """
    Delimiter for a table file.

    Uses the extension when it is known, else csv.Sniffer with a fallback
    count of candidate characters in the first line.

    Raises:
        ValueError: If the delimiter cannot be determined
    """
    path = Path(path)
    suffixes = [s.lower() for s in path.suffixes if s.lower() != ".gz"]
    if suffixes and suffixes[-1] in _EXTENSION_DELIMITERS:
        return _EXTENSION_DELIMITERS[suffixes[-1]]

    with open(path, 'r', encoding='utf-8', errors='ignore') as f:
        sample = f.read(sample_size)

    try:
        dialect = csv.Sniffer().sniff(sample, delimiters='\t,;|')
        return dialect.delimiter
    except csv.Error:
        pass

    first_line = sample.split('\n')[0]
    counts = {'\t': first_line.count('\t'), ',': first_line.count(','), ';': first_line.count(';')}
    if max(counts.values()) == 0:
        raise ValueError(f"Could not detect delimiter in {path}")
    return max(counts, key=counts.get)


def _read_table(path: Path | str, what: str) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"{what} file not found: {path}")
    if not path.is_file():
        raise ValueError(f"Path is not a file: {path}")

    try:
        df = pd.read_csv(path, sep=sniff_delimiter(path), index_col=0)
    except pd.errors.EmptyDataError as e:
        raise ValueError(f"{what} file is empty: {path}") from e

    if df.shape[0] == 0 or df.shape[1] == 0:
        raise ValueError(f"{what} file contains no data: {path} (shape {df.shape})")

    df.index = df.index.astype(str)
    df.columns = df.columns.astype(str)
    return df


def _require_numeric(df: pd.DataFrame, what: str, path: Path | str) -> pd.DataFrame:
    try:
        return df.astype(np.float64)
    except ValueError as e:
        bad = [c for c in df.columns if not pd.api.types.is_numeric_dtype(df[c])]
        raise ValueError(
            f"{what} {path} contains non-numeric columns: {bad[:5]}"
        ) from e


def load_score_matrix(path: Path | str) -> pd.DataFrame:
    """
    Load a genes × samples score matrix.

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If the file is empty, non-numeric or has infinite values
    """
    df = _require_numeric(_read_table(path, "Score matrix"), "Score matrix", path)
    if np.isinf(df.to_numpy()).any():
        raise ValueError(f"Score matrix {path} contains infinite values")
    df.index.name = "gene"
    return df


def load_design_matrix(path: Path | str) -> pd.DataFrame:
    """
    Load a samples × covariates design matrix.

    Columns are kept as read; categorical columns are left for
    build_design_matrix() to encode.
    """
    df = _read_table(path, "Design matrix")
    df.index.name = "sample"
    return df


def load_adjacency_matrix(path: Path | str) -> pd.DataFrame:
    """
    Load a square genes × genes adjacency matrix.

    Raises:
        ValueError: If the matrix is not square or non-numeric
    """
    df = _require_numeric(_read_table(path, "Adjacency matrix"), "Adjacency matrix", path)
    if df.shape[0] != df.shape[1]:
        raise ValueError(f"Adjacency matrix {path} is not square (shape {df.shape})")
    df.index.name = None
    return df


def load_edge_list(
    path: Path | str,
    directed: bool = False,
    genes: list[str] | pd.Index | None = None,
) -> pd.DataFrame:
    """
    Build an adjacency matrix from a two-column edge list.

    Args:
        path: Edge list file; the first two columns are used, a header row is
            expected
        directed: Keep edge direction (default: undirected)
        genes: Extra genes to include as isolated nodes

    Returns:
        Square 0/1 adjacency DataFrame, genes sorted by identifier
    """
    import networkx as nx

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Edge list file not found: {path}")

    edges = pd.read_csv(path, sep=sniff_delimiter(path), dtype=str)
    if edges.shape[1] < 2:
        raise ValueError(f"Edge list {path} needs two columns, got {edges.shape[1]}")
    edges = edges.iloc[:, :2].dropna()

    graph = nx.DiGraph() if directed else nx.Graph()
    graph.add_edges_from(edges.itertuples(index=False, name=None))
    if genes is not None:
        graph.add_nodes_from(str(g) for g in genes)

    nodes = sorted(graph.nodes)
    return nx.to_pandas_adjacency(graph, nodelist=nodes, weight=None, dtype=np.int8)

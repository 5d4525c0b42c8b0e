"""Loaders for PRODE input tables and writers for run results."""

from prode.io.loaders import (
    sniff_delimiter,
    load_score_matrix,
    load_design_matrix,
    load_adjacency_matrix,
    load_edge_list,
)
from prode.io.writers import write_results, RESULT_FILES

__all__ = [
    'sniff_delimiter',
    'load_score_matrix',
    'load_design_matrix',
    'load_adjacency_matrix',
    'load_edge_list',
    'write_results',
    'RESULT_FILES',
]

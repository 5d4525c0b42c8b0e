"""
Result writers.

write_results() produces three files in the output directory:

    results.csv         result table, strongest genes first
    filtered_genes.csv  genes dropped during the run with the reason
    summary.json        counts, modality and the effective configuration

Each file is written atomically, so an interrupted run never leaves a
truncated file behind.
"""

from __future__ import annotations

import logging
from pathlib import Path

from prode.core.results import ProdeResults
from prode.utils.fileio import atomic_write_json, atomic_write_text

__all__ = ['write_results', 'RESULT_FILES']

logger = logging.getLogger(__name__)

RESULT_FILES = ("results.csv", "filtered_genes.csv", "summary.json")


def write_results(results: ProdeResults, out_dir: Path | str) -> dict[str, Path]:
    """
    Write a ProdeResults to ``out_dir`` (created if needed).

    Returns:
        Dict file name -> written path
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    ranked = results.result_table.sort_values(results.score_column, kind="mergesort")
    ranked = ranked.rename_axis("gene")
    filtered = results.filtered_genes.rename_axis("gene")

    paths = {name: out_dir / name for name in RESULT_FILES}
    atomic_write_text(paths["results.csv"], ranked.to_csv())
    atomic_write_text(paths["filtered_genes.csv"], filtered.to_csv())
    atomic_write_json(paths["summary.json"], results.summary())

    logger.info(f"Wrote {len(ranked)} scored genes to {paths['results.csv']}")
    return paths

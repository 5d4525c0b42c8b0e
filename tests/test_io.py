"""Tests for table loaders, result writers and atomic file helpers."""

import json

import numpy as np
import pandas as pd
import pytest

from prode.io.loaders import (
    load_adjacency_matrix,
    load_design_matrix,
    load_edge_list,
    load_score_matrix,
    sniff_delimiter,
)
from prode.io.writers import RESULT_FILES, write_results
from prode.pipeline import run_prode
from prode.utils.fileio import atomic_write_json, atomic_write_text


class TestLoaders:
    """CSV / TSV parsing."""

    def test_score_matrix_tsv(self, tmp_path):
        path = tmp_path / "scores.tsv"
        path.write_text("gene\ts1\ts2\nA\t-1.5\t0.2\nB\t0.3\t1\n")
        scores = load_score_matrix(path)
        assert scores.index.tolist() == ["A", "B"]
        assert scores.columns.tolist() == ["s1", "s2"]
        assert scores.loc["A", "s1"] == -1.5
        assert scores.dtypes.eq(np.float64).all()

    def test_score_matrix_non_numeric(self, tmp_path):
        path = tmp_path / "scores.csv"
        path.write_text("gene,s1,s2\nA,1.0,x\nB,0.3,1\n")
        with pytest.raises(ValueError, match="non-numeric"):
            load_score_matrix(path)

    def test_score_matrix_infinite(self, tmp_path):
        path = tmp_path / "scores.csv"
        path.write_text("gene,s1\nA,inf\n")
        with pytest.raises(ValueError, match="infinite"):
            load_score_matrix(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_score_matrix(tmp_path / "nope.csv")

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("")
        with pytest.raises(ValueError):
            load_score_matrix(path)

    def test_design_keeps_labels(self, tmp_path):
        path = tmp_path / "samples.csv"
        path.write_text("sample,condition,age\ns1,wt,30\ns2,mut,41\n")
        design = load_design_matrix(path)
        assert design.loc["s2", "condition"] == "mut"
        assert design.index.name == "sample"

    def test_adjacency_square(self, tmp_path):
        path = tmp_path / "adj.csv"
        path.write_text(",A,B\nA,0,1\nB,1,0\n")
        adjacency = load_adjacency_matrix(path)
        assert adjacency.index.tolist() == adjacency.columns.tolist() == ["A", "B"]
        assert adjacency.loc["A", "B"] == 1

    def test_adjacency_not_square(self, tmp_path):
        path = tmp_path / "adj.csv"
        path.write_text(",A,B,C\nA,0,1,0\nB,1,0,0\n")
        with pytest.raises(ValueError, match="square"):
            load_adjacency_matrix(path)

    def test_edge_list(self, tmp_path):
        path = tmp_path / "edges.csv"
        path.write_text("source,target\nB,A\nB,C\n")
        adjacency = load_edge_list(path, genes=["D"])
        assert adjacency.index.tolist() == ["A", "B", "C", "D"]
        assert adjacency.loc["A", "B"] == adjacency.loc["B", "A"] == 1
        assert adjacency.loc["A", "C"] == 0
        assert adjacency.loc["D"].sum() == 0

    def test_directed_edge_list(self, tmp_path):
        path = tmp_path / "edges.tsv"
        path.write_text("source\ttarget\nA\tB\n")
        adjacency = load_edge_list(path, directed=True)
        assert adjacency.loc["A", "B"] == 1
        assert adjacency.loc["B", "A"] == 0

    def test_sniff_unknown_extension(self, tmp_path):
        path = tmp_path / "table.dat"
        path.write_text("a;b;c\n1;2;3\n4;5;6\n")
        assert sniff_delimiter(path) == ";"


class TestWriters:
    """Result files."""

    def test_write_results(self, path3_input, tmp_path):
        results = run_prode(path3_input, seed=0)
        paths = write_results(results, tmp_path / "out")

        assert set(paths) == set(RESULT_FILES)
        table = pd.read_csv(paths["results.csv"], index_col="gene")
        assert table.index[0] == "g1"
        assert table["NIE_score"].is_monotonic_increasing
        pd.testing.assert_series_equal(
            table["NIE_score"].sort_index(),
            results.result_table["NIE_score"].rename_axis("gene").sort_index(),
        )

        filtered = pd.read_csv(paths["filtered_genes.csv"])
        assert list(filtered.columns) == ["gene", "reason"]

        summary = json.loads(paths["summary.json"].read_text())
        assert summary["n_genes_scored"] == 3
        assert summary["modality"] == "NIE"


class TestAtomicWrites:
    """Temp file + rename."""

    def test_text(self, tmp_path):
        path = tmp_path / "a.txt"
        atomic_write_text(path, "one")
        atomic_write_text(path, "two")
        assert path.read_text() == "two"
        assert list(tmp_path.iterdir()) == [path]

    def test_json(self, tmp_path):
        path = tmp_path / "a.json"
        atomic_write_json(path, {"x": [1, 2]})
        assert json.loads(path.read_text()) == {"x": [1, 2]}

    def test_failure_leaves_no_partial_file(self, tmp_path):
        path = tmp_path / "a.json"
        path.write_text("old")
        with pytest.raises(TypeError):
            atomic_write_json(path, {"x": object()})
        assert path.read_text() == "old"
        assert list(tmp_path.iterdir()) == [path]

"""Tests for the prode command-line interface."""

import json

import numpy as np
import pandas as pd
import pytest
import yaml

from prode.cli import main
from prode.cli.config import config_from_args, load_config, merge_config_with_args
from prode.core.exceptions import ConfigurationError
from prode.stats.background import FittedBackground

from conftest import generate_network, generate_scores


@pytest.fixture
def input_files(tmp_path):
    """Score matrix, adjacency, edge list and sample sheet on disk."""
    scores = generate_scores(20, 6, effect_genes=3, case_mask=np.array([0, 0, 0, 1, 1, 1], bool), seed=5)
    adjacency = generate_network(scores.index, p=0.3, seed=5)

    scores_path = tmp_path / "scores.tsv"
    scores.rename_axis("gene").to_csv(scores_path, sep="\t")
    adjacency_path = tmp_path / "adjacency.csv"
    adjacency.to_csv(adjacency_path)

    edges = [(a, b) for a in adjacency.index for b in adjacency.columns if a < b and adjacency.loc[a, b]]
    edges_path = tmp_path / "edges.csv"
    pd.DataFrame(edges, columns=["source", "target"]).to_csv(edges_path, index=False)

    samples_path = tmp_path / "samples.csv"
    pd.DataFrame(
        {"condition": ["wt"] * 3 + ["mut"] * 3, "batch": ["x", "y", "x", "y", "x", "y"]},
        index=pd.Index(scores.columns, name="sample"),
    ).to_csv(samples_path)

    return {
        "scores": scores_path,
        "adjacency": adjacency_path,
        "edges": edges_path,
        "samples": samples_path,
    }


class TestMain:
    """Dispatcher."""

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "prode" in capsys.readouterr().out

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert "0.1.0" in capsys.readouterr().out


class TestRunCommand:
    """prode run."""

    def test_nie(self, input_files, tmp_path):
        out = tmp_path / "nie"
        code = main([
            "run", "--scores", str(input_files["scores"]),
            "--adjacency", str(input_files["adjacency"]),
            "--modality", "NIE", "--output", str(out), "--seed", "0",
        ])
        assert code == 0
        table = pd.read_csv(out / "results.csv", index_col="gene")
        assert "NIE_score" in table.columns
        assert (table["NIE_score"] <= 0).all()

    def test_nice_from_groups_and_edge_list(self, input_files, tmp_path):
        out = tmp_path / "nice"
        code = main([
            "run", "--scores", str(input_files["scores"]),
            "--adjacency", str(input_files["edges"]), "--edge-list",
            "--groups", str(input_files["samples"]), "--case", "mut", "--control", "wt",
            "--covariates", "batch",
            "--modality", "NICE", "--extended-stats", "--fdr-method", "BY",
            "--output", str(out), "--seed", "1",
        ])
        assert code == 0
        table = pd.read_csv(out / "results.csv", index_col="gene")
        assert "NICE_score" in table.columns
        assert "ctrl_mean" in table.columns
        summary = json.loads((out / "summary.json").read_text())
        assert summary["config"]["fdr_method"] == "BY"
        assert summary["config"]["extended_stats"] is True

    def test_config_file_with_override(self, input_files, tmp_path):
        config_path = tmp_path / "run.yaml"
        config_path.write_text(yaml.safe_dump({
            "scores": str(input_files["scores"]),
            "adjacency": str(input_files["adjacency"]),
            "modality": "nie",
            "output": str(tmp_path / "from_config"),
            "compute_background": True,
            "n_iter": 50,
            "seed": 3,
        }))
        code = main(["run", "--config", str(config_path), "--n-iter", "99"])
        assert code == 0
        summary = json.loads((tmp_path / "from_config" / "summary.json").read_text())
        assert summary["config"]["n_iter"] == 99
        assert summary["config"]["compute_background"] is True

    def test_config_modality_by_score_name(self, input_files, tmp_path):
        """A config file may name the modality by its score column."""
        config_path = tmp_path / "run.yaml"
        config_path.write_text(yaml.safe_dump({
            "scores": str(input_files["scores"]),
            "adjacency": str(input_files["adjacency"]),
            "modality": "NIE_score",
            "output": str(tmp_path / "by_score_name"),
            "seed": 0,
        }))
        assert main(["run", "--config", str(config_path)]) == 0
        summary = json.loads((tmp_path / "by_score_name" / "summary.json").read_text())
        assert summary["modality"] == "NIE"

    def test_missing_inputs(self, tmp_path):
        assert main(["run", "--output", str(tmp_path)]) == 2

    def test_nice_without_groups_fails(self, input_files, tmp_path):
        code = main([
            "run", "--scores", str(input_files["scores"]),
            "--adjacency", str(input_files["adjacency"]),
            "--modality", "NICE", "--output", str(tmp_path / "x"),
        ])
        assert code == 1

    def test_invalid_positive_int(self, input_files):
        with pytest.raises(SystemExit):
            main(["run", "--scores", str(input_files["scores"]), "--n-iter", "0"])


class TestBackgroundCommand:
    """prode background."""

    def test_writes_loadable_table(self, tmp_path):
        out = tmp_path / "tables" / "bg.csv"
        code = main(["background", "--sizes", "1", "3", "--n-iter", "300", "--output", str(out)])
        assert code == 0
        table = FittedBackground.from_csv(out)
        assert table.sizes == [1, 3]

    def test_max_size(self, tmp_path):
        out = tmp_path / "bg.csv"
        assert main(["background", "--max-size", "4", "--n-iter", "200", "--output", str(out)]) == 0
        assert FittedBackground.from_csv(out).sizes == [1, 2, 3, 4]


class TestConfigFiles:
    """YAML / JSON config loading and merging."""

    def test_load_yaml_and_json(self, tmp_path):
        yaml_path = tmp_path / "c.yaml"
        yaml_path.write_text("workers: 2\nfdr_method: BY\n")
        json_path = tmp_path / "c.json"
        json_path.write_text('{"workers": 3}')
        assert load_config(yaml_path) == {"workers": 2, "fdr_method": "BY"}
        assert load_config(json_path) == {"workers": 3}

    def test_empty_config(self, tmp_path):
        path = tmp_path / "c.yml"
        path.write_text("")
        assert load_config(path) == {}

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "c.toml"
        path.write_text("workers = 2")
        with pytest.raises(ValueError, match="Unsupported"):
            load_config(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ValueError, match="mapping"):
            load_config(path)

    def test_cli_overrides_config(self):
        from argparse import Namespace

        args = Namespace(workers=4, seed=None, scores=None)
        merged = merge_config_with_args({"workers": 2, "seed": 7, "scores": "s.csv"}, args)
        assert merged.workers == 4
        assert merged.seed == 7
        assert str(merged.scores) == "s.csv"

        config = config_from_args(merged)
        assert config.workers == 4
        assert config.seed == 7
        assert config.n_iter == 10000

    def test_unknown_key(self):
        from argparse import Namespace

        with pytest.raises(ConfigurationError, match="Unknown config keys"):
            merge_config_with_args({"n_iterations": 5}, Namespace())

"""Tests for ProdeInput validation and design matrix construction."""

import networkx as nx
import numpy as np
import pandas as pd
import pytest

from prode.core.design import GROUP_COLUMN, build_design_matrix
from prode.core.exceptions import ConfigurationError
from prode.core.modality import Modality, get_policy
from prode.core.prode_input import ProdeInput

from conftest import generate_network, generate_scores


@pytest.fixture
def parts():
    scores = generate_scores(6, 4, seed=0)
    design = build_design_matrix(None, sample_ids=scores.columns)
    adjacency = generate_network(scores.index, p=0.5, seed=0)
    return scores, design, adjacency


class TestModality:
    """Tagged NIE / NICE variants."""

    @pytest.mark.parametrize("value", ["NIE", "nie", "NIE_score", Modality.NIE])
    def test_parse(self, value):
        assert Modality.parse(value) is Modality.NIE

    def test_parse_unknown(self):
        with pytest.raises(ValueError):
            Modality.parse("ESS")

    def test_policies(self):
        nie, nice = get_policy("NIE"), get_policy("NICE")
        assert not nie.allows_filter_ctrl and not nie.allows_extended_stats
        assert nice.allows_filter_ctrl and nice.allows_extended_stats
        assert nie.estimate == "intercept"
        assert nice.estimate == "group"
        assert (nie.score_column, nice.score_column) == ("NIE_score", "NICE_score")


class TestProdeInput:
    """Validation at construction."""

    def test_valid(self, parts):
        data = ProdeInput(*parts, "NIE")
        assert data.n_genes == 6
        assert data.n_samples == 4
        assert data.modality is Modality.NIE
        assert data.group_column is None
        assert data.group_indicator() is None

    def test_duplicate_genes(self, parts):
        scores, design, adjacency = parts
        scores = scores.rename(index={"g1": "g0"})
        with pytest.raises(ConfigurationError, match="duplicated"):
            ProdeInput(scores, design, adjacency, "NIE")

    def test_misaligned_samples(self, parts):
        scores, design, adjacency = parts
        design = design.rename(index={"s0": "other"})
        with pytest.raises(ConfigurationError, match="correspond"):
            ProdeInput(scores, design, adjacency, "NIE")

    def test_design_reordered_to_scores(self, parts):
        scores, design, adjacency = parts
        data = ProdeInput(scores, design.iloc[::-1], adjacency, "NIE")
        assert data.design.index.equals(scores.columns)

    def test_wrong_sample_count(self, parts):
        scores, design, adjacency = parts
        with pytest.raises(ConfigurationError):
            ProdeInput(scores, design.iloc[:3], adjacency, "NIE")

    def test_non_square_adjacency(self, parts):
        scores, design, adjacency = parts
        with pytest.raises(ConfigurationError, match="square"):
            ProdeInput(scores, design, adjacency.iloc[:, :5], "NIE")

    def test_adjacency_labels_differ(self, parts):
        scores, design, adjacency = parts
        adjacency = adjacency.rename(columns={"g0": "zzz"})
        with pytest.raises(ConfigurationError, match="same gene identifiers"):
            ProdeInput(scores, design, adjacency, "NIE")

    def test_adjacency_columns_reordered(self, parts):
        scores, design, adjacency = parts
        data = ProdeInput(scores, design, adjacency[adjacency.columns[::-1]], "NIE")
        assert data.adjacency.columns.equals(data.adjacency.index)

    def test_no_shared_genes(self, parts):
        scores, design, adjacency = parts
        adjacency = adjacency.rename(index=lambda g: "x" + g, columns=lambda g: "x" + g)
        with pytest.raises(ConfigurationError, match="No genes shared"):
            ProdeInput(scores, design, adjacency, "NIE")

    def test_missing_scores(self, parts):
        scores, design, adjacency = parts
        scores = scores.copy()
        scores.iloc[0, 0] = np.nan
        with pytest.raises(ConfigurationError, match="missing"):
            ProdeInput(scores, design, adjacency, "NIE")

    def test_missing_adjacency_entries(self, parts):
        """A blank adjacency cell must not be read as an edge."""
        scores, design, adjacency = parts
        adjacency = adjacency.astype(float)
        adjacency.iloc[0, 1] = np.nan
        with pytest.raises(ConfigurationError, match="Adjacency matrix contains missing"):
            ProdeInput(scores, design, adjacency, "NIE")

    def test_missing_adjacency_entries_from_csv(self, tmp_path):
        from prode.io.loaders import load_adjacency_matrix

        path = tmp_path / "adjacency.csv"
        path.write_text(",a,b,c\na,0,1,\nb,1,0,0\nc,,0,0\n")
        adjacency = load_adjacency_matrix(path)
        scores = generate_scores(3, 4, seed=1).set_axis(["a", "b", "c"], axis=0)
        design = build_design_matrix(None, sample_ids=scores.columns)
        with pytest.raises(ConfigurationError, match="missing"):
            ProdeInput(scores, design, adjacency, "NIE")

    def test_non_numeric_scores(self, parts):
        scores, design, adjacency = parts
        scores = scores.astype(object)
        scores.iloc[0, 0] = "high"
        with pytest.raises(ConfigurationError, match="non-numeric"):
            ProdeInput(scores, design, adjacency, "NIE")

    def test_not_a_dataframe(self, parts):
        scores, design, adjacency = parts
        with pytest.raises(TypeError):
            ProdeInput(scores.to_numpy(), design, adjacency, "NIE")

    def test_unknown_modality(self, parts):
        with pytest.raises(ConfigurationError):
            ProdeInput(*parts, "ESS")

    def test_nice_group_column_defaults_to_last(self, nice_input):
        assert nice_input.group_column == GROUP_COLUMN
        assert nice_input.group_indicator().sum() == 4

    def test_nice_group_must_be_binary(self, parts):
        scores, design, adjacency = parts
        design = design.assign(group=[0.0, 1.0, 2.0, 1.0])
        with pytest.raises(ConfigurationError, match="0/1"):
            ProdeInput(scores, design, adjacency, "NICE")

    def test_nice_needs_both_groups(self, parts):
        scores, design, adjacency = parts
        design = design.assign(group=1.0)
        with pytest.raises(ConfigurationError, match="both"):
            ProdeInput(scores, design, adjacency, "NICE")

    def test_from_graph(self, parts):
        scores, design, _ = parts
        graph = nx.path_graph(["g0", "g1", "g2"])
        graph.add_node("g5")
        data = ProdeInput.from_graph(scores, design, graph, "NIE")
        adjacency = data.adjacency
        assert adjacency.loc["g0", "g1"] == 1
        assert adjacency.loc["g1", "g2"] == 1
        assert adjacency.loc["g0", "g2"] == 0
        assert adjacency.loc["g5"].sum() == 0

    def test_select_genes_returns_new_instance(self, parts):
        data = ProdeInput(*parts, "NIE")
        subset = data.select_genes(np.array([True, False, True, False, True, False]))
        assert subset is not data
        assert subset.gene_ids.tolist() == ["g0", "g2", "g4"]
        assert data.n_genes == 6


class TestBuildDesignMatrix:
    """Intercept (+ covariates) (+ group) designs."""

    def test_intercept_only(self):
        design = build_design_matrix(None, sample_ids=["a", "b", "c"])
        assert list(design.columns) == ["const"]
        assert (design["const"] == 1.0).all()

    def test_group_last_and_coded(self):
        groups = pd.Series(["wt", "mut", "wt", "mut"], index=list("abcd"))
        design = build_design_matrix(groups, case="mut", control="wt")
        assert list(design.columns) == ["const", GROUP_COLUMN]
        assert design[GROUP_COLUMN].tolist() == [0.0, 1.0, 0.0, 1.0]
        assert design.index.tolist() == list("abcd")

    def test_covariates(self):
        groups = pd.Series(["wt", "mut", "wt", "mut", "wt", "mut"])
        covariates = pd.DataFrame({
            "batch": ["x", "x", "y", "y", "x", "y"],
            "age": [30.0, 40.0, 50.0, 35.0, 45.0, 60.0],
        })
        design = build_design_matrix(groups, case="mut", control="wt", covariates_df=covariates)
        assert design.columns[0] == "const"
        assert design.columns[-1] == GROUP_COLUMN
        assert "batch_y" in design.columns
        assert abs(design["age"].mean()) < 1e-10

    def test_unknown_label(self):
        with pytest.raises(ConfigurationError, match="Unknown group labels"):
            build_design_matrix(np.array(["wt", "mut", "other"]), case="mut", control="wt")

    def test_missing_case_control(self):
        with pytest.raises(ConfigurationError):
            build_design_matrix(np.array(["wt", "mut"]))

    def test_collinear_covariate(self):
        groups = pd.Series(["wt", "mut", "wt", "mut"])
        covariates = pd.DataFrame({"batch": ["x", "y", "x", "y"]})
        with pytest.raises(ConfigurationError, match="rank-deficient"):
            build_design_matrix(groups, case="mut", control="wt", covariates_df=covariates)

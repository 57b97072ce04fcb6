import numpy as np
import pandas as pd
import pytest

ad = pytest.importorskip("anndata")

import treecontrast.scanpy as tcsc
from treecontrast.contrasts import ContrastResult


@pytest.fixture
def adata():
    obs = pd.DataFrame(
        {"leiden": pd.Categorical(["0", "0", "1", "1", "2", None])},
        index=[f"cell{i}" for i in range(6)],
    )
    return ad.AnnData(X=np.zeros((6, 2)), obs=obs)


def test_one_against_all(adata):
    assert tcsc.tl.cluster_contrasts(adata, "leiden", "OneAgainstAll") is None

    stored = adata.uns["cluster_contrasts_leiden"]
    assert stored["contrast_matrix"].shape == (3, 3)
    assert stored["contrast_names"] == ["Cl01", "Cl02", "Cl03"]
    assert list(stored["levels"]["category"]) == ["0", "1", "2"]
    assert list(stored["levels"]["n_samples"]) == [2, 2, 1]
    assert list(stored["categories"]["category"]) == ["0", "1", "2"]
    assert adata.uns["cluster_contrasts_leiden_params"]["contrast_type"] == "OneAgainstAll"


def test_dendro_from_scanpy_dendrogram(adata):
    adata.uns["dendrogram_leiden"] = {
        "linkage": np.array([[0.0, 1.0, 0.1, 2.0], [2.0, 3.0, 1.0, 3.0]]),
        "groupby": ["leiden"],
    }

    tcsc.tl.cluster_contrasts(adata, "leiden", "Dendro")

    stored = adata.uns["cluster_contrasts_leiden"]
    assert stored["contrast_names"] is None
    assert stored["expressions"] == ["Cl03-(Cl01+Cl02)/2", "Cl01-Cl02"]


def test_dendro_requires_stored_dendrogram(adata):
    with pytest.raises(ValueError, match="Must run dendrogram"):
        tcsc.tl.cluster_contrasts(adata, "leiden", "Dendro")


def test_dendro_given_with_category_tips(adata):
    tcsc.tl.cluster_contrasts(adata, "leiden", "Dendro", dendro=(("0", "1"), "2"), key_added="contrasts")

    assert adata.uns["contrasts"]["expressions"] == ["(Cl01+Cl02)/2-Cl03", "Cl01-Cl02"]

    with pytest.raises(ValueError, match="tip names"):
        tcsc.tl.cluster_contrasts(adata, "leiden", "Dendro", dendro=(("0", "1"), "7"))


def test_dendro_given_as_linkage(adata):
    Z = np.array([[0.0, 1.0, 0.1, 2.0], [2.0, 3.0, 1.0, 3.0]])

    tcsc.tl.cluster_contrasts(adata, "leiden", "Dendro", dendro=Z, key_added="contrasts")

    assert adata.uns["contrasts"]["expressions"] == ["Cl03-(Cl01+Cl02)/2", "Cl01-Cl02"]


def test_pairs_with_category_pair_matrix(adata):
    tcsc.tl.cluster_contrasts(adata, "leiden", "Pairs", pair_matrix=[["0", "2"]])

    assert adata.uns["cluster_contrasts_leiden"]["contrast_names"] == ["Cl01-Cl03"]

    with pytest.raises(ValueError, match="do not match"):
        tcsc.tl.cluster_contrasts(adata, "leiden", "Pairs", pair_matrix=[["0", "5"]])


def test_copy(adata):
    result = tcsc.tl.cluster_contrasts(adata, "leiden", "Pairs", copy=True)

    assert "cluster_contrasts_leiden" in result.uns
    assert "cluster_contrasts_leiden" not in adata.uns


def test_hypothesis_output(adata):
    pytest.importorskip("patsy")

    tcsc.tl.cluster_contrasts(adata, "leiden", "Pairs", output_type="hypothesis")

    stored = adata.uns["cluster_contrasts_leiden"]
    assert stored["expressions"] == ["Cl01-Cl02", "Cl01-Cl03", "Cl02-Cl03"]
    assert stored["levels"] == ["Cl01", "Cl02", "Cl03"]


def test_missing_groupby(adata):
    with pytest.raises(ValueError, match="not found in adata.obs"):
        tcsc.tl.cluster_contrasts(adata, "louvain", "Pairs")


def test_array_input():
    result = tcsc.tl.cluster_contrasts(np.array([1, 2, 2, 3]), contrast_type="Pairs")

    assert isinstance(result, ContrastResult)
    assert result.contrast_names == ["Cl01-Cl02", "Cl01-Cl03", "Cl02-Cl03"]

import numpy as np
import pandas as pd
import pytest

from treecontrast import ClusterContrasts, cluster_contrasts
from treecontrast.contrasts import ContrastResult, Hypothesis
from treecontrast.contrasts import core
from treecontrast.tree import ClusterTree

CLUSTER = [1, 1, 2, 2, 3, 3, -1, -2]


def test_pairs():
    result = cluster_contrasts(CLUSTER, contrast_type="Pairs")

    assert isinstance(result, ContrastResult)
    assert result.contrast_names == ["Cl01-Cl02", "Cl01-Cl03", "Cl02-Cl03"]
    assert list(result.contrast_matrix.index) == ["Cl01", "Cl02", "Cl03"]
    assert list(result.contrast_matrix.columns) == ["Cl01-Cl02", "Cl01-Cl03", "Cl02-Cl03"]


def test_pairs_with_pair_matrix():
    result = cluster_contrasts(CLUSTER, contrast_type="Pairs", pair_matrix=[[2, 1]])

    assert result.contrast_names == ["Cl02-Cl01"]
    np.testing.assert_array_equal(result.contrast_matrix.to_numpy()[:, 0], [-1.0, 1.0, 0.0])


def test_invalid_pair_matrix_fails_before_building(monkeypatch):
    def _fail(*args, **kwargs):
        raise AssertionError("contrasts should not be built")

    monkeypatch.setattr(core, "build_contrasts", _fail)

    with pytest.raises(ValueError, match="2 columns"):
        cluster_contrasts(CLUSTER, contrast_type="Pairs", pair_matrix=np.array([[1, 2, 3]]))


def test_one_against_all():
    result = cluster_contrasts(CLUSTER, contrast_type="OneAgainstAll")

    assert result.contrast_names == ["Cl01", "Cl02", "Cl03"]
    assert list(result.contrast_matrix.columns) == [
        "Cl01-(Cl02+Cl03)/2",
        "Cl02-(Cl01+Cl03)/2",
        "Cl03-(Cl01+Cl02)/2",
    ]
    np.testing.assert_allclose(result.contrast_matrix.sum(axis=0).to_numpy(), 0.0, atol=1e-12)


def test_dendro_contrasts_are_unnamed():
    result = cluster_contrasts(CLUSTER, contrast_type="Dendro", dendro=(("1", "2"), "3"))

    assert result.contrast_names is None
    assert list(result.contrast_matrix.columns) == ["(Cl01+Cl02)/2-Cl03", "Cl01-Cl02"]
    assert list(result.contrast_matrix.index) == ["Cl01", "Cl02", "Cl03"]


def test_dendro_from_linkage():
    Z = np.array([[0.0, 1.0, 0.1, 2.0], [2.0, 3.0, 5.0, 3.0]])
    from treecontrast.tree import from_linkage

    result = cluster_contrasts(CLUSTER, contrast_type="Dendro", dendro=from_linkage(Z, labels=[1, 2, 3]))

    assert list(result.contrast_matrix.columns) == ["Cl03-(Cl01+Cl02)/2", "Cl01-Cl02"]


def test_dendro_from_raw_linkage_uses_level_order():
    Z = np.array([[0.0, 1.0, 0.1, 2.0], [2.0, 3.0, 5.0, 3.0]])

    for dendro in (Z, {"linkage": Z}):
        result = cluster_contrasts(CLUSTER, contrast_type="Dendro", dendro=dendro)
        assert list(result.contrast_matrix.columns) == ["Cl03-(Cl01+Cl02)/2", "Cl01-Cl02"]

    with pytest.raises(ValueError, match="leaves"):
        cluster_contrasts(CLUSTER, contrast_type="Dendro", dendro=Z[:1])


def test_empty_pair_matrix_is_rejected():
    with pytest.raises(ValueError, match="no rows"):
        cluster_contrasts(CLUSTER, contrast_type="Pairs", pair_matrix=np.empty((0, 2)))


def test_dendro_requires_dendrogram():
    with pytest.raises(ValueError, match="must provide dendrogram"):
        cluster_contrasts(CLUSTER, contrast_type="Dendro")


def test_dendro_tip_mismatch_produces_no_matrix():
    estimator = ClusterContrasts(contrast_type="Dendro")

    with pytest.raises(ValueError, match="tip names of dendro don't match"):
        estimator.fit(CLUSTER, dendro=(("1", "2"), "4"))
    assert estimator.contrast_matrix_ is None
    assert not estimator.is_fitted_


def test_failed_refit_clears_previous_result():
    estimator = ClusterContrasts(contrast_type="Dendro").fit(CLUSTER, dendro=(("1", "2"), "3"))
    assert estimator.is_fitted_

    with pytest.raises(ValueError, match="tip names"):
        estimator.fit(CLUSTER, dendro=(("1", "2"), "4"))
    assert estimator.levels_ is None
    assert estimator.contrast_matrix_ is None
    assert not estimator.is_fitted_
    with pytest.raises(ValueError, match="not been fitted"):
        estimator.get_result()


def test_keep_negative_clusters():
    result = cluster_contrasts([-1, 1, 2, 2], contrast_type="OneAgainstAll", remove_negative=False)

    assert list(result.contrast_matrix.index) == ["Cl_1", "Cl01", "Cl02"]
    assert result.contrast_names == ["Cl-1", "Cl01", "Cl02"]


def test_dendro_with_negative_cluster_tip():
    tree = ClusterTree(children=[[1, 2], [], [3, 4], [], []], labels=[None, "-1", None, "1", "2"])

    result = cluster_contrasts([-1, 1, 2], contrast_type="Dendro", dendro=tree, remove_negative=False)

    assert list(result.contrast_matrix.columns) == ["Cl_1-(Cl01+Cl02)/2", "Cl01-Cl02"]


def test_hypothesis_output():
    pytest.importorskip("patsy")

    hypothesis = cluster_contrasts(CLUSTER, contrast_type="Pairs", output_type="hypothesis")

    assert isinstance(hypothesis, Hypothesis)
    assert hypothesis.expressions == ["Cl01-Cl02", "Cl01-Cl03", "Cl02-Cl03"]
    assert hypothesis.levels == ["Cl01", "Cl02", "Cl03"]


def test_missing_hypothesis_dependency_fails_fast(monkeypatch):
    from treecontrast.contrasts import assembler

    monkeypatch.setattr(assembler, "PATSY_AVAILABLE", False)

    with pytest.raises(ImportError, match="patsy"):
        ClusterContrasts(contrast_type="Pairs", output_type="hypothesis")


def test_estimator_validation():
    with pytest.raises(ValueError, match="Unknown contrast_type"):
        ClusterContrasts(contrast_type="Tree")
    with pytest.raises(ValueError, match="Unknown output_type"):
        ClusterContrasts(output_type="MAST")
    with pytest.raises(ValueError, match="prefix"):
        ClusterContrasts(prefix="")
    with pytest.raises(ValueError, match="not been fitted"):
        ClusterContrasts().get_result()


def test_estimator_attributes():
    estimator = ClusterContrasts(contrast_type="OneAgainstAll", prefix="C").fit(pd.Series(CLUSTER))

    assert estimator.is_fitted_
    assert estimator.levels_.names == ["C01", "C02", "C03"]
    assert len(estimator.contrasts_) == 3
    assert estimator.contrast_names_ == ["C01", "C02", "C03"]
    assert estimator.hypothesis_ is None
    assert estimator.get_result().contrast_matrix.equals(estimator.contrast_matrix_)


def test_result_to_dict():
    result = cluster_contrasts(CLUSTER, contrast_type="Pairs")
    stored = result.to_dict()

    assert stored["contrast_names"] == result.contrast_names
    assert stored["expressions"] == ["Cl01-Cl02", "Cl01-Cl03", "Cl02-Cl03"]
    assert list(stored["levels"]["n_samples"]) == [2, 2, 2]


def test_verbose(capsys):
    cluster_contrasts(CLUSTER, contrast_type="Pairs", verbose=True)

    assert "Building 'Pairs' contrasts for 3 clusters (6 samples)" in capsys.readouterr().out

import numpy as np
import pandas as pd
import pytest

from treecontrast.contrasts import (
    Contrast,
    Hypothesis,
    build_contrasts,
    contrast_matrix,
    make_contrasts,
    make_hypothesis,
)
from treecontrast.contrasts import assembler
from treecontrast.labels import normalize_labels


@pytest.fixture
def levels():
    return normalize_labels([1, 2, 3, 3, 2, 1])


def test_one_against_all_matrix(levels):
    matrix = contrast_matrix(build_contrasts(levels, "OneAgainstAll"), levels.names)

    assert matrix.shape == (3, 3)
    assert list(matrix.index) == ["Cl01", "Cl02", "Cl03"]
    assert matrix.index.name == "Levels"
    assert matrix.columns.name == "Contrasts"
    np.testing.assert_allclose(np.diag(matrix.to_numpy()), 1.0)
    np.testing.assert_allclose(matrix["Cl01-(Cl02+Cl03)/2"].to_numpy(), [1.0, -0.5, -0.5])
    np.testing.assert_allclose(matrix.sum(axis=0).to_numpy(), 0.0, atol=1e-12)


def test_pairs_matrix(levels):
    matrix = contrast_matrix(build_contrasts(levels, "Pairs"), levels.names)

    assert list(matrix.columns) == ["Cl01-Cl02", "Cl01-Cl03", "Cl02-Cl03"]
    np.testing.assert_array_equal(matrix["Cl01-Cl03"].to_numpy(), [1.0, 0.0, -1.0])


def test_dendro_matrix(levels):
    matrix = contrast_matrix(build_contrasts(levels, "Dendro", tree=(("1", "2"), "3")), levels.names)

    np.testing.assert_allclose(matrix["(Cl01+Cl02)/2-Cl03"].to_numpy(), [0.5, 0.5, -1.0])
    np.testing.assert_allclose(matrix["Cl01-Cl02"].to_numpy(), [1.0, -1.0, 0.0])


def test_matrix_assembly_is_deterministic(levels):
    contrasts = build_contrasts(levels, "Dendro", tree=(("1", "2"), "3"))

    first = contrast_matrix(contrasts, levels.names)
    second = contrast_matrix(contrasts, levels.names)

    pd.testing.assert_frame_equal(first, second)
    assert first.to_numpy().tobytes() == second.to_numpy().tobytes()


def test_unknown_level_is_fatal():
    contrast = Contrast.difference(["Cl01"], ["Cl09"])

    with pytest.raises(ValueError, match="unknown levels"):
        contrast_matrix([contrast], ["Cl01", "Cl02"])
    with pytest.raises(ValueError, match="unknown levels"):
        make_hypothesis([contrast], ["Cl01", "Cl02"])


def test_matrix_checks_labels():
    contrast = Contrast.difference(["a"], ["b"])

    with pytest.raises(ValueError, match="unique"):
        contrast_matrix([contrast], ["a", "b", "a"])
    with pytest.raises(ValueError, match="column labels"):
        contrast_matrix([contrast], ["a", "b"], column_labels=["x", "y"])


def test_empty_contrast_list():
    matrix = contrast_matrix([], ["a", "b"])

    assert matrix.shape == (2, 0)


def test_make_contrasts():
    pytest.importorskip("patsy")

    named = make_contrasts({"first": "Cl01-(Cl02+Cl03)/2", "second": "Cl02-Cl03"}, ["Cl01", "Cl02", "Cl03"])
    unnamed = make_contrasts(["Cl02 - Cl03"], ["Cl01", "Cl02", "Cl03"])
    single = make_contrasts("Cl01-Cl02", ["Cl01", "Cl02"])

    assert list(named.columns) == ["first", "second"]
    assert named.index.name == "Levels"
    np.testing.assert_allclose(named["first"].to_numpy(), [1.0, -0.5, -0.5])
    assert list(unnamed.columns) == ["Cl02 - Cl03"]
    np.testing.assert_array_equal(unnamed.to_numpy()[:, 0], [0.0, 1.0, -1.0])
    assert single.shape == (2, 1)


def test_make_contrasts_numeric_coefficients():
    pytest.importorskip("patsy")

    matrix = make_contrasts(["0.5*Cl01 + 0.5*Cl02 - Cl03", "2*(Cl01-Cl02)/2"], ["Cl01", "Cl02", "Cl03"])

    np.testing.assert_allclose(matrix.to_numpy(), [[0.5, 1.0], [0.5, -1.0], [-1.0, 0.0]])


def test_make_contrasts_errors():
    pytest.importorskip("patsy")
    levels = ["Cl01", "Cl02", "Cl03"]

    with pytest.raises(ValueError, match="Cannot parse"):
        make_contrasts("Cl01-Cl09", levels)
    with pytest.raises(ValueError, match="Cannot parse"):
        make_contrasts("Cl01*Cl02", levels)
    with pytest.raises(ValueError, match="constant"):
        make_contrasts("Cl01-1", levels)
    with pytest.raises(ValueError, match="single"):
        make_contrasts("Cl01-Cl02, Cl02-Cl03", levels)
    with pytest.raises(ValueError, match="Empty"):
        make_contrasts(" ", levels)
    with pytest.raises(ValueError, match="unique"):
        make_contrasts("Cl01-Cl02", ["Cl01", "Cl01", "Cl02"])


def test_make_contrasts_requires_patsy(monkeypatch):
    monkeypatch.setattr(assembler, "PATSY_AVAILABLE", False)

    with pytest.raises(ImportError, match="patsy"):
        make_contrasts("Cl01-Cl02", ["Cl01", "Cl02"])


def test_built_expressions_reproduce_the_matrix():
    pytest.importorskip("patsy")
    levels = normalize_labels([1, 2, 3, 4])
    contrasts = (
        build_contrasts(levels, "OneAgainstAll")
        + build_contrasts(levels, "Pairs")
        + build_contrasts(levels, "Dendro", tree="((1,2),(3,4));")
    )

    expected = contrast_matrix(contrasts, levels.names)
    parsed = make_contrasts([c.expression for c in contrasts], levels.names)

    np.testing.assert_allclose(parsed.to_numpy(), expected.to_numpy())
    assert list(parsed.columns) == list(expected.columns)


def test_check_output_type(monkeypatch):
    assert assembler.check_output_type("limma") == "limma"
    with pytest.raises(ValueError, match="Unknown output_type"):
        assembler.check_output_type("MAST")

    monkeypatch.setattr(assembler, "PATSY_AVAILABLE", False)
    with pytest.raises(ImportError, match="patsy"):
        assembler.check_output_type("hypothesis")


def test_make_hypothesis(levels):
    dendro = make_hypothesis(build_contrasts(levels, "Dendro", tree=(("1", "2"), "3")), levels.names)
    pairs = make_hypothesis(build_contrasts(levels, "Pairs"), levels.names)

    assert dendro.expressions == ["(Cl01+Cl02)/2-Cl03", "Cl01-Cl02"]
    assert dendro.levels == ["Cl01", "Cl02", "Cl03"]
    assert dendro.names is None
    assert len(dendro) == 2
    assert pairs.names == ["Cl01-Cl02", "Cl01-Cl03", "Cl02-Cl03"]
    assert list(pairs.to_frame()["expression"]) == pairs.expressions


def test_hypothesis_names_must_match():
    with pytest.raises(ValueError, match="names"):
        Hypothesis(["a-b"], ["a", "b"], names=["x", "y"])


def test_hypothesis_linear_constraint_matches_matrix(levels):
    pytest.importorskip("patsy")
    contrasts = build_contrasts(levels, "OneAgainstAll")

    constraint = make_hypothesis(contrasts, levels.names).linear_constraint()
    matrix = contrast_matrix(contrasts, levels.names)

    assert list(constraint.variable_names) == levels.names
    np.testing.assert_allclose(constraint.coefs, matrix.to_numpy().T)
    np.testing.assert_allclose(constraint.constants, 0.0)


def test_assemble(levels):
    contrasts = build_contrasts(levels, "Pairs")

    assert isinstance(assembler.assemble(contrasts, levels.names), pd.DataFrame)
    if assembler.PATSY_AVAILABLE:
        assert isinstance(assembler.assemble(contrasts, levels.names, "hypothesis"), Hypothesis)

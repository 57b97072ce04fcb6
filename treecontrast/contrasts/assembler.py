"""
Assembly of contrasts into contrast matrices or hypothesis objects.

Two output formats are supported:
- 'limma': a numeric contrast matrix with one row per level and one column
  per contrast, as produced by limma's makeContrasts
- 'hypothesis': the symbolic contrast expressions together with the level
  names, for formula-based consumers (patsy / statsmodels)
"""

import numpy as np
import pandas as pd
from typing import Dict, Optional, Sequence, Union

from .contrast import Contrast, contrast_labels, contrast_names

# Import centralized availability flags
from .. import PATSY_AVAILABLE

OUTPUT_TYPES = ("limma", "hypothesis")


def _require_patsy(what: str) -> None:
    if not PATSY_AVAILABLE:
        raise ImportError(f"{what} requires package 'patsy'. "
                          "Please install with: pip install patsy")


def check_output_type(output_type: str) -> str:
    """Validate ``output_type`` and its optional dependency before any work is done."""

    if output_type not in OUTPUT_TYPES:
        raise ValueError(f"Unknown output_type '{output_type}'. Options: {list(OUTPUT_TYPES)}")
    if output_type == "hypothesis":
        _require_patsy("output_type 'hypothesis'")
    return output_type


def contrast_matrix(
    contrasts: Sequence[Contrast],
    level_names: Sequence[str],
    column_labels: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """
    Numeric contrast matrix.

    Parameters:
    -----------
    contrasts : Sequence[Contrast]
        Contrasts, one column each.
    level_names : Sequence[str]
        Full set of factor levels, one row each, in canonical order.
    column_labels : Sequence[str], optional
        Column labels. Defaults to the contrast expressions.

    Returns:
    --------
    pd.DataFrame
        Matrix of shape (n_levels, n_contrasts). Levels not referenced by a
        contrast have coefficient 0.
    """

    level_names = list(level_names)
    if len(set(level_names)) != len(level_names):
        raise ValueError("level_names must be unique")

    if column_labels is None:
        column_labels = contrast_labels(contrasts)
    elif len(column_labels) != len(contrasts):
        raise ValueError(f"Got {len(column_labels)} column labels for {len(contrasts)} contrasts")

    values = np.zeros((len(level_names), len(contrasts)), dtype=float)
    for j, contrast in enumerate(contrasts):
        values[:, j] = contrast.coefficients(level_names)

    return pd.DataFrame(
        values,
        index=pd.Index(level_names, name="Levels"),
        columns=pd.Index(list(column_labels), name="Contrasts"),
    )


def make_contrasts(
    contrasts: Union[str, Sequence[str], Dict[str, str]],
    levels: Sequence[str],
) -> pd.DataFrame:
    """
    Contrast matrix from symbolic expressions.

    Expressions are parsed by patsy as linear constraints over ``levels``, so
    any linear combination of level names works (``+ - * /``, parentheses,
    numeric factors).

    Parameters:
    -----------
    contrasts : str, list of str or dict
        Expressions such as ``"Cl01-Cl02"``. A dict maps column names to
        expressions.
    levels : Sequence[str]
        Factor levels the expressions refer to.

    Returns:
    --------
    pd.DataFrame
        Contrast matrix with one row per level and one column per expression.

    Examples:
    --------
    >>> m = make_contrasts({"first": "Cl01-(Cl02+Cl03)/2"}, ["Cl01", "Cl02", "Cl03"])
    >>> m["first"].tolist()
    [1.0, -0.5, -0.5]
    """

    _require_patsy("make_contrasts")
    from patsy import DesignInfo, PatsyError

    levels = list(levels)
    if len(set(levels)) != len(levels):
        raise ValueError("levels must be unique")

    if isinstance(contrasts, str):
        contrasts = [contrasts]
    if isinstance(contrasts, dict):
        column_labels = list(contrasts.keys())
        expressions = list(contrasts.values())
    else:
        expressions = list(contrasts)
        column_labels = expressions

    design_info = DesignInfo(levels)
    values = np.zeros((len(levels), len(expressions)), dtype=float)
    for j, expression in enumerate(expressions):
        if not str(expression).strip():
            raise ValueError("Empty contrast expression")
        try:
            constraint = design_info.linear_constraint(expression)
        except PatsyError as err:
            raise ValueError(f"Cannot parse contrast '{expression}' over levels {levels}: {err}") from err
        if constraint.coefs.shape[0] != 1:
            raise ValueError(f"Contrast '{expression}' must be a single linear expression")
        if np.any(constraint.constants != 0):
            raise ValueError(f"Contrast '{expression}' has a constant term")
        values[:, j] = constraint.coefs[0]

    return pd.DataFrame(
        values,
        index=pd.Index(levels, name="Levels"),
        columns=pd.Index(column_labels, name="Contrasts"),
    )


class Hypothesis:
    """
    Symbolic contrasts paired with the factor levels they refer to.

    Parameters:
    -----------
    expressions : Sequence[str]
        Contrast expressions, e.g. ``"Cl01-(Cl02+Cl03)/2"``.
    levels : Sequence[str]
        Factor level names, i.e. the coefficient names of the linear model.
    names : Sequence[str], optional
        Contrast names. None for unnamed (dendrogram) contrasts.
    """

    def __init__(
        self,
        expressions: Sequence[str],
        levels: Sequence[str],
        names: Optional[Sequence[str]] = None,
    ):
        self.expressions = list(expressions)
        self.levels = list(levels)
        self.names = None if names is None else list(names)

        if self.names is not None and len(self.names) != len(self.expressions):
            raise ValueError(f"Got {len(self.names)} names for {len(self.expressions)} contrasts")

    def __len__(self) -> int:
        return len(self.expressions)

    def __repr__(self) -> str:
        return f"Hypothesis(n_contrasts={len(self)}, levels={self.levels})"

    def linear_constraint(self):
        """
        Parse the expressions with patsy.

        Returns:
        --------
        patsy.LinearConstraint
            Constraint with one row per contrast over ``levels``; usable
            with statsmodels ``t_test``/``f_test`` on a model whose
            parameters are the levels.
        """

        _require_patsy("Hypothesis.linear_constraint")
        from patsy import DesignInfo

        return DesignInfo(self.levels).linear_constraint(self.expressions)

    def to_frame(self) -> pd.DataFrame:
        """Table of the contrast expressions and their names."""

        return pd.DataFrame({
            "name": self.names if self.names is not None else [None] * len(self),
            "expression": self.expressions,
        })


def make_hypothesis(contrasts: Sequence[Contrast], level_names: Sequence[str]) -> Hypothesis:
    """Package ``contrasts`` as a Hypothesis over ``level_names``."""

    level_names = list(level_names)
    for contrast in contrasts:
        # raises on levels outside level_names
        contrast.coefficients(level_names)
    return Hypothesis(contrast_labels(contrasts), level_names, contrast_names(contrasts))


def assemble(
    contrasts: Sequence[Contrast],
    level_names: Sequence[str],
    output_type: str = "limma",
) -> Union[pd.DataFrame, Hypothesis]:
    """Contrast matrix for 'limma', Hypothesis for 'hypothesis'."""

    check_output_type(output_type)
    if output_type == "hypothesis":
        return make_hypothesis(contrasts, level_names)
    return contrast_matrix(contrasts, level_names)

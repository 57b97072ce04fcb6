"""
Cluster label normalization for treecontrast.

This module converts arbitrary cluster label vectors into canonical, ordered
level identifiers. Cluster ids are zero-padded and prefixed so that their
display names sort like the numeric ids and can be used as symbolic names in
contrast expressions.
"""

import re
import numpy as np
import pandas as pd
from typing import Any, Dict, List, Sequence, Union

DEFAULT_PREFIX = "Cl"

_INVALID_CHARS = re.compile(r"[^A-Za-z0-9_]")


def convert_to_numeric(cluster: Union[Sequence[Any], np.ndarray, pd.Series, pd.Categorical]) -> np.ndarray:
    """
    Convert a cluster vector to integer cluster ids.

    Numeric strings, categoricals with numeric categories and floats with an
    integral value are accepted. Missing values are treated as unassigned (-1).

    Parameters:
    ----------
    cluster : array-like
        One-dimensional cluster assignment, one entry per sample.

    Returns:
    -------
    np.ndarray
        Integer cluster ids.
    """

    if np.ndim(np.asarray(cluster, dtype=object)) != 1:
        raise ValueError("cluster must be a one-dimensional vector")

    values = pd.Series(list(cluster), dtype=object)
    missing = values.isna()
    numeric = pd.to_numeric(values.where(~missing), errors="coerce")

    bad = numeric.isna() & ~missing
    if bad.any():
        examples = list(pd.unique(values[bad]))[:5]
        raise ValueError(f"cluster values must be coercible to integers, got {examples}")

    observed = numeric[~missing].to_numpy(dtype=float)
    if np.any(np.mod(observed, 1) != 0):
        raise ValueError("cluster values must be integers")

    return numeric.fillna(-1).to_numpy(dtype=float).astype(int)


def pad_width(n_levels: int) -> int:
    """Zero-padding width for cluster display names."""

    return 2 if n_levels < 100 else 3


def make_identifier(name: str) -> str:
    """
    Turn a display name into a syntactically valid symbolic name.

    Characters outside [A-Za-z0-9_] are replaced by "_", and "X" is prepended
    when the name does not start with a letter or an underscore.
    """

    name = _INVALID_CHARS.sub("_", str(name))
    if not name or not (name[0].isalpha() or name[0] == "_"):
        name = "X" + name
    return name


def pretty_names(values: Union[Sequence[int], np.ndarray], width: int, prefix: str = DEFAULT_PREFIX) -> List[str]:
    """Display names for integer cluster ids: prefix plus zero-padded id."""

    return [f"{prefix}{str(int(v)).rjust(width, '0')}" for v in values]


class ClusterLevels:
    """
    Canonical level set derived from a cluster assignment.

    Levels are ordered by the lexicographic order of their display names,
    which matches numeric order for positive ids thanks to zero-padding.

    Attributes:
    -----------
    values : np.ndarray
        Kept cluster ids, one per kept sample.
    mask : np.ndarray
        Boolean mask over the input marking kept samples.
    pretty : np.ndarray
        Display name per kept sample.
    levels : np.ndarray
        Unique kept cluster ids in canonical order.
    pretty_levels : List[str]
        Display names of the levels in canonical order.
    names : List[str]
        Identifier-safe level names in canonical order.
    factor : pd.Categorical
        Kept samples as a categorical over ``names``.
    width : int
        Zero-padding width used for the display names.
    """

    def __init__(
        self,
        values: np.ndarray,
        mask: np.ndarray,
        prefix: str = DEFAULT_PREFIX,
    ):
        self.values = np.asarray(values, dtype=int)
        self.mask = np.asarray(mask, dtype=bool)
        self.prefix = prefix

        unique_values = np.unique(self.values)
        self.width = pad_width(len(unique_values))
        self.pretty = np.array(pretty_names(self.values, self.width, prefix), dtype=object)

        unique_pretty = pretty_names(unique_values, self.width, prefix)
        order = np.argsort(np.array(unique_pretty, dtype=str), kind="stable")
        self.levels = unique_values[order]
        self.pretty_levels = [unique_pretty[i] for i in order]
        self.names = [make_identifier(p) for p in self.pretty_levels]

        if len(set(self.names)) != len(self.names):
            raise ValueError(f"Level names are not unique after sanitizing with prefix '{prefix}'")

        self._name_by_id: Dict[int, str] = {int(l): n for l, n in zip(self.levels, self.names)}
        self._id_by_name: Dict[str, int] = {n: int(l) for l, n in zip(self.levels, self.names)}

        sample_names = [self._name_by_id[int(v)] for v in self.values]
        self.factor = pd.Categorical(sample_names, categories=self.names, ordered=False)

    def __len__(self) -> int:
        return len(self.levels)

    def __repr__(self) -> str:
        return f"ClusterLevels(n_samples={len(self.values)}, levels={self.names})"

    def name_of(self, cluster_id: Any) -> str:
        """Identifier-safe level name for an original cluster id."""

        try:
            return self._name_by_id[int(cluster_id)]
        except (KeyError, TypeError, ValueError):
            raise ValueError(f"Cluster {cluster_id!r} is not a level. Available levels: {list(self.levels)}")

    def id_of(self, name: str) -> int:
        """Original cluster id for an identifier-safe level name."""

        if name not in self._id_by_name:
            raise ValueError(f"Level {name!r} not found. Available levels: {self.names}")
        return self._id_by_name[name]

    def resolve(self, label: Any) -> str:
        """
        Map an external label onto a level name.

        The label may be an original cluster id (``3`` or ``"3"``), a display
        name (``"Cl03"``) or an identifier-safe name.
        """

        text = str(label)
        if text in self._id_by_name:
            return text
        if text in self.pretty_levels:
            return self.names[self.pretty_levels.index(text)]
        try:
            numeric = float(text)
        except ValueError:
            numeric = None
        if numeric is not None and numeric.is_integer() and int(numeric) in self._name_by_id:
            return self._name_by_id[int(numeric)]
        raise ValueError(f"Label {label!r} does not match any cluster level. Available levels: {self.names}")

    def to_frame(self) -> pd.DataFrame:
        """Table of levels with their ids, display names and sample counts."""

        counts = pd.Series(self.values).value_counts()
        return pd.DataFrame(
            {
                "cluster": self.levels,
                "pretty": self.pretty_levels,
                "n_samples": [int(counts.get(l, 0)) for l in self.levels],
            },
            index=pd.Index(self.names, name="Levels"),
        )


def normalize_labels(
    cluster: Union[Sequence[Any], np.ndarray, pd.Series, pd.Categorical],
    remove_negative: bool = True,
    prefix: str = DEFAULT_PREFIX,
) -> ClusterLevels:
    """
    Normalize a cluster assignment into canonical levels.

    Parameters:
    ----------
    cluster : array-like
        Cluster assignment, one entry per sample. Negative values mark
        unassigned (-1) or unclustered (-2) samples.
    remove_negative : bool, default=True
        Whether to drop samples with non-positive cluster ids.
    prefix : str, default="Cl"
        Literal prefix of the display names.

    Returns:
    -------
    ClusterLevels
        Ordered levels and per-sample display names.

    Examples:
    --------
    >>> levels = normalize_labels([1, 3, -1, 10, 3])
    >>> levels.names
    ['Cl01', 'Cl03', 'Cl10']
    """

    values = convert_to_numeric(cluster)
    mask = values > 0 if remove_negative else np.ones(len(values), dtype=bool)

    if not np.any(mask):
        raise ValueError("No clusters left after removing non-positive cluster values")

    return ClusterLevels(values[mask], mask, prefix=prefix)

"""
Contrast construction from cluster levels and dendrograms.

Three contrast types are supported:
- 'Pairs': pairwise differences between clusters
- 'OneAgainstAll': each cluster against the average of all other clusters
- 'Dendro': for each internal node of the cluster dendrogram, the average of
  the clusters in the first branch against the average of the second branch
"""

import warnings
import numpy as np
from tqdm import tqdm
from typing import Any, List, Optional, Sequence, Tuple

from ..labels import ClusterLevels
from ..tree import ClusterTree, as_cluster_tree
from .contrast import Contrast

CONTRAST_TYPES = ("Dendro", "Pairs", "OneAgainstAll")


def check_contrast_type(contrast_type: str) -> str:
    if contrast_type not in CONTRAST_TYPES:
        raise ValueError(f"Unknown contrast_type '{contrast_type}'. Options: {list(CONTRAST_TYPES)}")
    return contrast_type


def check_pair_matrix(pair_matrix: Any) -> np.ndarray:
    """Validate the shape of a pair matrix and return it as an object array."""

    pairs = np.asarray(pair_matrix, dtype=object)
    if pairs.ndim != 2 or pairs.shape[1] != 2:
        raise ValueError(f"pair_matrix must be matrix of 2 columns, got shape {pairs.shape}")
    return pairs


def all_pairs(levels: ClusterLevels) -> np.ndarray:
    """All unordered pairs of distinct cluster ids, in canonical level order."""

    ids = list(levels.levels)
    pairs = [(ids[i], ids[j]) for i in range(len(ids)) for j in range(i + 1, len(ids))]
    return np.array(pairs, dtype=object).reshape(-1, 2)


def _check_enough_levels(levels: ClusterLevels, contrast_type: str) -> None:
    if len(levels) < 2:
        raise ValueError(f"need at least 2 clusters to build '{contrast_type}' contrasts, "
                         f"got {len(levels)} ({levels.names})")


def _progress(items: Sequence[Any], verbose: bool, desc: str):
    if verbose:
        return tqdm(items, desc=desc, unit="contrast")
    return items


def pair_contrasts(
    levels: ClusterLevels,
    pair_matrix: Optional[Any] = None,
    verbose: bool = False,
) -> List[Contrast]:
    """
    Pairwise contrasts ``A-B`` named ``"A-B"``.

    Parameters:
    -----------
    levels : ClusterLevels
        Normalized cluster levels.
    pair_matrix : array-like of shape (n_pairs, 2), optional
        Original cluster ids to compare. If None, all unordered pairs of
        distinct levels are used.
    verbose : bool, default=False
        Whether to show a progress bar.

    Returns:
    --------
    List[Contrast]
    """

    if pair_matrix is None:
        _check_enough_levels(levels, "Pairs")
        pairs = all_pairs(levels)
    else:
        pairs = check_pair_matrix(pair_matrix)
        if pairs.shape[0] == 0:
            raise ValueError("pair_matrix has no rows; need at least one pair of clusters")

    unmatched = []
    resolved: List[Tuple[str, str]] = []
    for first, second in pairs:
        names = []
        for value in (first, second):
            try:
                names.append(levels.resolve(value))
            except ValueError:
                unmatched.append(value)
        if len(names) == 2:
            resolved.append((names[0], names[1]))

    if unmatched:
        raise ValueError(f"Some elements of pair_matrix do not match cluster: {sorted(set(map(str, unmatched)))}")

    self_pairs = [a for a, b in resolved if a == b]
    if self_pairs:
        raise ValueError(f"pair_matrix compares clusters with themselves: {sorted(set(self_pairs))}")

    unique_pairs = list(dict.fromkeys(resolved))
    if len(unique_pairs) < len(resolved):
        warnings.warn(f"pair_matrix contains {len(resolved) - len(unique_pairs)} duplicated pairs, "
                      "which are ignored")

    contrasts = []
    for first, second in _progress(unique_pairs, verbose, "Pairs contrasts"):
        contrasts.append(Contrast.difference([first], [second], name=f"{first}-{second}"))
    return contrasts


def one_against_all_contrasts(levels: ClusterLevels, verbose: bool = False) -> List[Contrast]:
    """
    Contrasts of each level against the average of all other levels.

    The contrast for level L reads ``L-(R1+...+Rk)/k`` and is named by L's
    display name.
    """

    _check_enough_levels(levels, "OneAgainstAll")

    contrasts = []
    for index in _progress(range(len(levels)), verbose, "OneAgainstAll contrasts"):
        one = levels.names[index]
        others = levels.names[:index] + levels.names[index + 1:]
        contrasts.append(Contrast.difference([one], others, name=levels.pretty_levels[index]))
    return contrasts


def match_tree(levels: ClusterLevels, tree: Any) -> ClusterTree:
    """
    Relabel the tips of ``tree`` with level names.

    Tip labels may be original cluster ids or display names. Linkage-based
    inputs carry no labels; leaf i becomes the i-th level in canonical order.
    The tip set must match the level set exactly.
    """

    tree = as_cluster_tree(tree, labels=list(levels.levels))
    mapping = {}
    for label in tree.tip_labels():
        try:
            mapping[label] = levels.resolve(label)
        except ValueError:
            raise ValueError(
                "tip names of dendro don't match cluster vector values: "
                f"tip '{label}' is not one of {levels.names}"
            )
    matched = tree.relabel(mapping)
    matched.check_tips(levels.names)
    return matched


def dendro_contrasts(levels: ClusterLevels, tree: Any, verbose: bool = False) -> List[Contrast]:
    """
    One unnamed contrast per internal node of the cluster dendrogram.

    Internal nodes are visited in preorder (root first). At each node the
    tips under the first child are compared with the tips under the second
    child; a branch holding several clusters enters as their average.

    Parameters:
    -----------
    levels : ClusterLevels
        Normalized cluster levels.
    tree : ClusterTree or convertible
        Dendrogram over the clusters (not over samples).
    verbose : bool, default=False
        Whether to show a progress bar.

    Returns:
    --------
    List[Contrast]
    """

    if tree is None:
        raise ValueError("must provide dendrogram if contrast_type='Dendro'")
    _check_enough_levels(levels, "Dendro")

    tree = match_tree(levels, tree)

    contrasts = []
    for node in _progress(tree.internal_nodes(), verbose, "Dendro contrasts"):
        first, second = tree.children(node)
        contrasts.append(Contrast.difference(tree.descendant_tips(first), tree.descendant_tips(second)))
    return contrasts


def build_contrasts(
    levels: ClusterLevels,
    contrast_type: str,
    tree: Optional[Any] = None,
    pair_matrix: Optional[Any] = None,
    verbose: bool = False,
) -> List[Contrast]:
    """
    Build contrasts of the requested type.

    Parameters:
    -----------
    levels : ClusterLevels
        Normalized cluster levels.
    contrast_type : str
        One of 'Dendro', 'Pairs', 'OneAgainstAll'.
    tree : ClusterTree or convertible, optional
        Required for 'Dendro'.
    pair_matrix : array-like of shape (n_pairs, 2), optional
        Used by 'Pairs'.
    verbose : bool, default=False
        Whether to show a progress bar.

    Returns:
    --------
    List[Contrast]
        Contrasts in construction order. 'Dendro' contrasts are unnamed.
    """

    check_contrast_type(contrast_type)

    if contrast_type == "Dendro":
        return dendro_contrasts(levels, tree, verbose=verbose)
    if contrast_type == "OneAgainstAll":
        return one_against_all_contrasts(levels, verbose=verbose)
    return pair_contrasts(levels, pair_matrix, verbose=verbose)

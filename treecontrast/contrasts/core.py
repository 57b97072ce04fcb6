"""
Cluster contrasts for treecontrast.

This module provides the ClusterContrasts class and the cluster_contrasts
function, which turn a cluster assignment vector (and optionally a dendrogram
over the clusters) into contrasts for differential expression testing.
"""

import numpy as np
import pandas as pd
from typing import Any, List, Optional, Sequence, Union

from ..labels import ClusterLevels, DEFAULT_PREFIX, normalize_labels
from .assembler import Hypothesis, check_output_type, contrast_matrix, make_hypothesis
from .builder import build_contrasts, check_contrast_type, check_pair_matrix
from .contrast import Contrast, contrast_names


class ContrastResult:
    """
    Contrast matrix together with the contrasts it was built from.

    Attributes:
    -----------
    contrast_matrix : pd.DataFrame
        One row per level, one column per contrast.
    contrast_names : List[str] or None
        Name of each contrast; None for dendrogram contrasts.
    contrasts : List[Contrast]
        Structured contrasts.
    levels : ClusterLevels
        Levels the matrix rows refer to.
    """

    def __init__(
        self,
        contrast_matrix: pd.DataFrame,
        contrast_names: Optional[List[str]],
        contrasts: List[Contrast],
        levels: ClusterLevels,
    ):
        self.contrast_matrix = contrast_matrix
        self.contrast_names = contrast_names
        self.contrasts = contrasts
        self.levels = levels

    def __repr__(self) -> str:
        return (f"ContrastResult(n_levels={self.contrast_matrix.shape[0]}, "
                f"n_contrasts={self.contrast_matrix.shape[1]})")

    def to_dict(self) -> dict:
        """Plain dictionary representation, suitable for ``adata.uns``."""

        return {
            "contrast_matrix": self.contrast_matrix,
            "contrast_names": self.contrast_names,
            "expressions": [c.expression for c in self.contrasts],
            "levels": self.levels.to_frame(),
        }


class ClusterContrasts:
    """
    Contrasts between clusters for differential expression testing.

    The class follows an sklearn-style interface: parameters are validated in
    the constructor, ``fit`` builds the contrasts from a cluster assignment
    and stores the results as attributes with a trailing underscore.

    Contrast types:
    - 'Dendro': traverses the cluster dendrogram and contrasts the clusters on
      each side of every internal node
    - 'Pairs': pairwise contrasts for the pairs in ``pair_matrix`` (all pairs
      if None)
    - 'OneAgainstAll': each cluster against the average of all others
    """

    def __init__(
        self,
        contrast_type: str = "Dendro",
        output_type: str = "limma",
        remove_negative: bool = True,
        prefix: str = DEFAULT_PREFIX,
        verbose: bool = False,
    ):
        """
        Initialize the ClusterContrasts class.

        Parameters:
        -----------
        contrast_type : str, default='Dendro'
            Type of contrast: 'Dendro', 'Pairs' or 'OneAgainstAll'.

        output_type : str, default='limma'
            Output format:
            - 'limma': numeric contrast matrix (levels x contrasts)
            - 'hypothesis': symbolic expressions with level names; requires patsy

        remove_negative : bool, default=True
            Whether to remove samples with non-positive cluster values
            (-1 unassigned, -2 not clustered) before building levels. Pick True
            if the linear model is fit on samples that exclude them.

        prefix : str, default='Cl'
            Prefix of the level names. Cluster 3 becomes 'Cl03'.

        verbose : bool, default=False
            Whether to print progress information.

        Examples:
        --------
        >>> from treecontrast.contrasts import ClusterContrasts
        >>> cc = ClusterContrasts(contrast_type='OneAgainstAll')
        >>> result = cc.fit_transform([1, 1, 2, 2, 3, -1])
        >>> list(result.contrast_matrix.columns)
        ['Cl01-(Cl02+Cl03)/2', 'Cl02-(Cl01+Cl03)/2', 'Cl03-(Cl01+Cl02)/2']
        """
        self.contrast_type = check_contrast_type(contrast_type)
        self.output_type = check_output_type(output_type)
        self.remove_negative = bool(remove_negative)
        self.prefix = str(prefix)
        self.verbose = verbose

        if not self.prefix:
            raise ValueError("prefix must be a non-empty string")

        self._reset()

    def _reset(self) -> None:
        self.levels_ = None
        self.contrasts_ = None
        self.contrast_matrix_ = None
        self.contrast_names_ = None
        self.hypothesis_ = None
        self.is_fitted_ = False

    def fit(
        self,
        cluster: Union[Sequence[Any], np.ndarray, pd.Series, pd.Categorical],
        dendro: Optional[Any] = None,
        pair_matrix: Optional[Any] = None,
    ) -> 'ClusterContrasts':
        """
        Build contrasts for a cluster assignment.

        Parameters:
        -----------
        cluster : array-like
            Cluster assignment, one integer per sample.
        dendro : Any, optional
            Dendrogram over the clusters (not over samples). Required for
            'Dendro'. Accepts a ClusterTree, Newick string, igraph.Graph or
            nested tuples whose tips are the cluster values, or a scipy
            linkage, ClusterNode or scanpy dendrogram dict whose leaf i is the
            i-th level in canonical order.
        pair_matrix : array-like of shape (n_pairs, 2), optional
            Pairs of cluster values to contrast for 'Pairs'.

        Returns:
        --------
        self : ClusterContrasts
        """
        # a failed refit must not leave the previous result behind
        self._reset()

        if self.contrast_type == "Pairs" and pair_matrix is not None:
            check_pair_matrix(pair_matrix)
        if self.contrast_type == "Dendro" and dendro is None:
            raise ValueError("must provide dendrogram if contrast_type='Dendro'")

        levels = normalize_labels(cluster, remove_negative=self.remove_negative, prefix=self.prefix)
        if self.verbose:
            print(f"Building '{self.contrast_type}' contrasts for {len(levels)} clusters "
                  f"({len(levels.values)} samples)")

        contrasts = build_contrasts(
            levels,
            self.contrast_type,
            tree=dendro,
            pair_matrix=pair_matrix,
            verbose=self.verbose,
        )

        self.levels_ = levels
        self.contrasts_ = contrasts
        self.contrast_names_ = contrast_names(contrasts)
        if self.output_type == "hypothesis":
            self.hypothesis_ = make_hypothesis(contrasts, levels.names)
            self.contrast_matrix_ = None
        else:
            self.contrast_matrix_ = contrast_matrix(contrasts, levels.names)
            self.hypothesis_ = None

        self.is_fitted_ = True
        return self

    def get_result(self) -> Union[ContrastResult, Hypothesis]:
        """
        Result of the last fit.

        Returns:
        --------
        ContrastResult or Hypothesis
            ContrastResult for output_type='limma', Hypothesis otherwise.
        """
        if not self.is_fitted_:
            raise ValueError("ClusterContrasts has not been fitted yet. Call fit() first.")

        if self.output_type == "hypothesis":
            return self.hypothesis_
        return ContrastResult(self.contrast_matrix_, self.contrast_names_, self.contrasts_, self.levels_)

    def fit_transform(
        self,
        cluster: Union[Sequence[Any], np.ndarray, pd.Series, pd.Categorical],
        dendro: Optional[Any] = None,
        pair_matrix: Optional[Any] = None,
    ) -> Union[ContrastResult, Hypothesis]:
        """Fit and return the result."""
        return self.fit(cluster, dendro=dendro, pair_matrix=pair_matrix).get_result()


def cluster_contrasts(
    cluster: Union[Sequence[Any], np.ndarray, pd.Series, pd.Categorical],
    contrast_type: str = "Dendro",
    dendro: Optional[Any] = None,
    pair_matrix: Optional[Any] = None,
    output_type: str = "limma",
    remove_negative: bool = True,
    prefix: str = DEFAULT_PREFIX,
    verbose: bool = False,
) -> Union[ContrastResult, Hypothesis]:
    """
    Create contrasts for testing differential expression between clusters.

    Parameters:
    -----------
    cluster : array-like
        Cluster assignment, one integer per sample. -1 and -2 mark unassigned
        and unclustered samples.
    contrast_type : str, default='Dendro'
        'Dendro', 'Pairs' or 'OneAgainstAll'.
    dendro : Any, optional
        Dendrogram over the clusters, required for 'Dendro'.
    pair_matrix : array-like of shape (n_pairs, 2), optional
        Pairs of cluster values for 'Pairs'. All pairs if None.
    output_type : str, default='limma'
        'limma' for a contrast matrix, 'hypothesis' for a Hypothesis object.
    remove_negative : bool, default=True
        Whether to drop non-positive cluster values.
    prefix : str, default='Cl'
        Prefix of the level names.
    verbose : bool, default=False
        Whether to print progress information.

    Returns:
    --------
    ContrastResult or Hypothesis

    Examples:
    --------
    >>> from treecontrast import cluster_contrasts
    >>> result = cluster_contrasts([1, 2, 2, 3], contrast_type="Pairs")
    >>> result.contrast_names
    ['Cl01-Cl02', 'Cl01-Cl03', 'Cl02-Cl03']
    >>> result = cluster_contrasts([1, 2, 3], contrast_type="Dendro", dendro=(("1", "2"), "3"))
    >>> list(result.contrast_matrix.columns)
    ['(Cl01+Cl02)/2-Cl03', 'Cl01-Cl02']
    """
    estimator = ClusterContrasts(
        contrast_type=contrast_type,
        output_type=output_type,
        remove_negative=remove_negative,
        prefix=prefix,
        verbose=verbose,
    )
    return estimator.fit_transform(cluster, dendro=dendro, pair_matrix=pair_matrix)

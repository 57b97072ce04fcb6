"""
Scanpy-style contrast functions for treecontrast.

This module extracts a cluster assignment and a cluster dendrogram from an
AnnData object (as produced by ``scanpy.tl.leiden`` and
``scanpy.tl.dendrogram``), builds contrasts with treecontrast and stores the
results in ``adata.uns`` following scanpy conventions.
"""

import numpy as np
import pandas as pd
from typing import Any, Optional, Sequence, Union
import warnings

# Import centralized availability flags
from ... import ANNDATA_AVAILABLE

if ANNDATA_AVAILABLE:
    import anndata as ad
else:
    warnings.warn("AnnData not available. Functions will work with arrays but not AnnData objects.")

from ...contrasts import cluster_contrasts as _cluster_contrasts
from ...contrasts.builder import check_contrast_type, check_pair_matrix
from ...contrasts.assembler import check_output_type
from ...tree import as_cluster_tree


def _category_ids(obs_column: pd.Series):
    """Integer cluster ids from a categorical column: code + 1, missing -> -1."""

    if not isinstance(obs_column.dtype, pd.CategoricalDtype):
        obs_column = obs_column.astype("category")
    codes = obs_column.cat.codes.to_numpy()
    cluster = np.where(codes < 0, -1, codes + 1)
    return cluster, list(obs_column.cat.categories)


def _pair_ids(pair_matrix: Any, categories: Sequence[Any]) -> np.ndarray:
    pairs = check_pair_matrix(pair_matrix)
    lookup = {str(category): index + 1 for index, category in enumerate(categories)}
    unmatched = sorted({str(v) for v in pairs.ravel() if str(v) not in lookup})
    if unmatched:
        raise ValueError(f"Some elements of pair_matrix do not match cluster: {unmatched}")
    return np.array([[lookup[str(v)] for v in row] for row in pairs], dtype=int).reshape(-1, 2)


def cluster_contrasts(
    adata: Union['ad.AnnData', np.ndarray],
    groupby: Optional[str] = None,
    contrast_type: str = "Dendro",
    *,
    dendro: Optional[Any] = None,
    dendrogram_key: Optional[str] = None,
    pair_matrix: Optional[Any] = None,
    output_type: str = "limma",
    remove_negative: bool = True,
    key_added: Optional[str] = None,
    copy: bool = False,
    verbose: bool = False,
) -> Optional[Any]:
    """
    Build cluster contrasts for differential expression from an AnnData object.

    Similar in spirit to ``scanpy.tl.rank_genes_groups``' group handling:
    clusters are taken from ``adata.obs[groupby]`` and, for 'Dendro', the
    cluster dendrogram from ``adata.uns['dendrogram_<groupby>']`` as stored
    by ``scanpy.tl.dendrogram``.

    Parameters
    ----------
    adata : AnnData or np.ndarray
        Annotated data object or a plain cluster vector.

    groupby : str, optional
        Key in adata.obs holding the clustering. Required for AnnData input.

    contrast_type : str, default='Dendro'
        'Dendro', 'Pairs' or 'OneAgainstAll'.

    dendro : Any, optional
        Cluster dendrogram given directly (ClusterTree, Newick string, nested
        tuples, ...). For AnnData input its tips are categories of
        adata.obs[groupby]; it takes precedence over dendrogram_key.

    dendrogram_key : str, optional
        Key in adata.uns holding the cluster dendrogram.
        If None, uses 'dendrogram_<groupby>'.

    pair_matrix : array-like of shape (n_pairs, 2), optional
        Pairs of categories of adata.obs[groupby] to contrast for 'Pairs'.

    output_type : str, default='limma'
        'limma' or 'hypothesis'.

    remove_negative : bool, default=True
        Whether to drop cells without a cluster (missing values).

    key_added : str, optional
        Key in adata.uns under which to store the results.
        If None, uses 'cluster_contrasts_<groupby>'.

    copy : bool, default=False
        Whether to return a copy of adata.

    verbose : bool, default=False
        Whether to print progress information.

    Returns
    -------
    adata : AnnData or None
        Returns a copy of adata if copy=True, otherwise None. Adds results to
        adata.uns[key_added] and parameters to adata.uns[f'{key_added}_params'].
        For array input, returns the contrast result directly.

    Examples
    --------
    >>> import scanpy as sc
    >>> import treecontrast.scanpy as tcsc
    >>> sc.tl.leiden(adata)
    >>> sc.tl.dendrogram(adata, groupby='leiden')
    >>> tcsc.tl.cluster_contrasts(adata, 'leiden', contrast_type='Dendro')
    >>> adata.uns['cluster_contrasts_leiden']['contrast_matrix']
    """
    check_contrast_type(contrast_type)
    check_output_type(output_type)

    if not (ANNDATA_AVAILABLE and isinstance(adata, ad.AnnData)):
        if isinstance(adata, (np.ndarray, list, pd.Series, pd.Categorical)):
            return _cluster_contrasts(
                adata,
                contrast_type=contrast_type,
                dendro=dendro,
                pair_matrix=pair_matrix,
                output_type=output_type,
                remove_negative=remove_negative,
                verbose=verbose,
            )
        raise ImportError("anndata is required for AnnData input. Install with: pip install anndata")

    if groupby is None:
        raise ValueError("groupby must be given for AnnData input")
    if groupby not in adata.obs:
        raise ValueError(f"Key '{groupby}' not found in adata.obs. "
                         f"Available keys: {list(adata.obs.columns)}")

    adata = adata.copy() if copy else adata

    cluster, categories = _category_ids(adata.obs[groupby])
    tip_labels = [str(index + 1) for index in range(len(categories))]

    if contrast_type != "Dendro":
        dendro = None
    elif dendro is not None:
        lookup = {str(category): label for category, label in zip(categories, tip_labels)}
        # linkage leaf i is category i
        dendro = as_cluster_tree(dendro, labels=[str(category) for category in categories])
        unmatched = sorted(set(dendro.tip_labels()) - set(lookup))
        if unmatched:
            raise ValueError(f"tip names of dendro don't match cluster vector values: {unmatched}")
        dendro = dendro.relabel(lookup)
    else:
        if dendrogram_key is None:
            dendrogram_key = f"dendrogram_{groupby}"
        if dendrogram_key not in adata.uns:
            raise ValueError(f"Must run dendrogram before calling cluster_contrasts if "
                             f"contrast_type='Dendro'; '{dendrogram_key}' not found in adata.uns")
        dendro = as_cluster_tree(adata.uns[dendrogram_key], labels=tip_labels)

    pairs = None
    if contrast_type == "Pairs" and pair_matrix is not None:
        pairs = _pair_ids(pair_matrix, categories)

    result = _cluster_contrasts(
        cluster,
        contrast_type=contrast_type,
        dendro=dendro,
        pair_matrix=pairs,
        output_type=output_type,
        remove_negative=remove_negative,
        verbose=verbose,
    )

    if key_added is None:
        key_added = f"cluster_contrasts_{groupby}"

    category_map = pd.DataFrame(
        {"category": [str(c) for c in categories], "cluster": np.arange(1, len(categories) + 1)},
    )

    if output_type == "hypothesis":
        stored = {
            "expressions": result.expressions,
            "levels": result.levels,
            "contrast_names": result.names,
        }
    else:
        stored = result.to_dict()
        level_table = stored["levels"]
        level_table["category"] = [str(categories[c - 1]) if c > 0 else None for c in level_table["cluster"]]
    stored["categories"] = category_map
    adata.uns[key_added] = stored

    adata.uns[f'{key_added}_params'] = {
        'groupby': groupby,
        'contrast_type': contrast_type,
        'output_type': output_type,
        'remove_negative': remove_negative,
        'dendrogram_key': dendrogram_key,
    }

    return adata if copy else None

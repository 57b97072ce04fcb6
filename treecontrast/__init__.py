"""
TreeContrast: contrast construction for cluster-level differential expression.

TreeContrast turns a per-sample cluster assignment (and optionally a dendrogram
over the clusters) into contrast matrices for downstream differential
expression testing. Three contrast types are supported: pairwise comparisons,
one cluster against all others, and one contrast per internal node of the
cluster dendrogram.

Individual modules can be imported directly:
    from treecontrast.labels import normalize_labels
    from treecontrast.tree import ClusterTree, as_cluster_tree
    from treecontrast.contrasts import ClusterContrasts, cluster_contrasts
    from treecontrast.scanpy import tl
"""

__version__ = "0.0.1"

# Centralized availability checking for all optional dependencies
# These flags are imported throughout the treecontrast package

# Graph library used for hierarchy graphs
try:
    import igraph
    IGRAPH_AVAILABLE = True
except ImportError:
    IGRAPH_AVAILABLE = False

# Formula parser used for hypothesis output
try:
    import patsy
    PATSY_AVAILABLE = True
except ImportError:
    PATSY_AVAILABLE = False

# AnnData containers for the scanpy-style interface
try:
    import anndata
    ANNDATA_AVAILABLE = True
except ImportError:
    ANNDATA_AVAILABLE = False

from .contrasts import ClusterContrasts, cluster_contrasts

__all__ = [
    'ClusterContrasts',
    'cluster_contrasts',
]

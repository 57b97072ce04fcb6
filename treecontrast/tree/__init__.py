"""
Tree module for treecontrast.

This module provides the ClusterTree arena used to navigate dendrograms over
clusters and converters from common tree representations.
"""

from .cluster_tree import ClusterTree
from .conversion import (
    as_cluster_tree,
    from_igraph,
    from_linkage,
    from_nested,
    from_newick,
    from_scipy_node,
)

__all__ = [
    'ClusterTree',
    'as_cluster_tree',
    'from_igraph',
    'from_linkage',
    'from_nested',
    'from_newick',
    'from_scipy_node',
]

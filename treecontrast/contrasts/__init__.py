"""
Contrasts module for treecontrast.

This module builds contrasts between clusters (pairwise, one against all,
or along a cluster dendrogram) and assembles them into contrast matrices or
hypothesis objects for differential expression testing.
"""

from .contrast import Contrast
from .builder import (
    CONTRAST_TYPES,
    build_contrasts,
    dendro_contrasts,
    one_against_all_contrasts,
    pair_contrasts,
)
from .assembler import (
    OUTPUT_TYPES,
    Hypothesis,
    contrast_matrix,
    make_contrasts,
    make_hypothesis,
)
from .core import ClusterContrasts, ContrastResult, cluster_contrasts

__all__ = [
    'CONTRAST_TYPES',
    'OUTPUT_TYPES',
    'ClusterContrasts',
    'Contrast',
    'ContrastResult',
    'Hypothesis',
    'build_contrasts',
    'cluster_contrasts',
    'contrast_matrix',
    'dendro_contrasts',
    'make_contrasts',
    'make_hypothesis',
    'one_against_all_contrasts',
    'pair_contrasts',
]

"""
Scanpy-style tools for treecontrast.

This module provides scanpy-compatible functions that build cluster contrasts
from AnnData objects following the same patterns as scanpy.tl.
"""

from .contrasts import cluster_contrasts

__all__ = [
    'cluster_contrasts',
]

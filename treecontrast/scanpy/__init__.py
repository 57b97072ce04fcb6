"""
Scanpy-compatible interface for treecontrast.

This module provides scanpy-style functions and interfaces to make treecontrast
methods easily accessible to users familiar with scanpy's API.
"""

from . import tl

__all__ = ['tl']

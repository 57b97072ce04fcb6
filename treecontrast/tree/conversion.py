"""
Conversion of common dendrogram representations into ClusterTree objects.

Supported inputs are scipy linkage matrices and ClusterNode objects, nested
tuples, Newick strings, igraph hierarchy graphs and the dictionaries stored
by ``scanpy.tl.dendrogram``.
"""

import numpy as np
from scipy.cluster import hierarchy
from typing import Any, List, Optional, Sequence, Tuple, Union

from .cluster_tree import ClusterTree

# Import centralized availability flags
from .. import IGRAPH_AVAILABLE

if IGRAPH_AVAILABLE:
    import igraph


def from_scipy_node(node: hierarchy.ClusterNode, labels: Optional[Sequence[Any]] = None) -> ClusterTree:
    """
    Convert a scipy ClusterNode (as returned by ``to_tree``) into a ClusterTree.

    Parameters:
    -----------
    node : scipy.cluster.hierarchy.ClusterNode
        Root of the scipy tree.
    labels : Sequence, optional
        Label of each original observation, indexed by leaf id. If None,
        leaf ids are used as labels.

    Returns:
    --------
    ClusterTree
        Tree with nodes numbered in preorder; left child first.
    """

    children: List[List[int]] = []
    tree_labels: List[Optional[Any]] = []
    stack: List[Tuple[hierarchy.ClusterNode, int]] = [(node, -1)]

    while stack:
        current, parent = stack.pop()
        index = len(children)
        children.append([])
        if parent >= 0:
            children[parent].append(index)

        if current.is_leaf():
            leaf_id = current.get_id()
            if labels is None:
                tree_labels.append(str(leaf_id))
            else:
                if leaf_id >= len(labels):
                    raise ValueError(f"No label for leaf {leaf_id}; got {len(labels)} labels")
                tree_labels.append(labels[leaf_id])
        else:
            tree_labels.append(None)
            # right is pushed first so the left subtree is numbered first
            stack.append((current.get_right(), index))
            stack.append((current.get_left(), index))

    return ClusterTree(children, tree_labels)


def from_linkage(Z: Union[np.ndarray, Sequence[Sequence[float]]], labels: Optional[Sequence[Any]] = None) -> ClusterTree:
    """
    Convert a scipy linkage matrix into a ClusterTree.

    Parameters:
    -----------
    Z : array-like of shape (n_clusters - 1, 4)
        Linkage matrix as produced by ``scipy.cluster.hierarchy.linkage``.
    labels : Sequence, optional
        Label of each clustered item; ``labels[i]`` names leaf ``i``.

    Returns:
    --------
    ClusterTree
        Tree over the linkage leaves.
    """

    Z = np.asarray(Z, dtype=float)
    hierarchy.is_valid_linkage(Z, throw=True, name="Z")

    if labels is not None and len(labels) != Z.shape[0] + 1:
        raise ValueError(f"Linkage has {Z.shape[0] + 1} leaves but {len(labels)} labels were given")

    return from_scipy_node(hierarchy.to_tree(Z), labels)


def from_nested(obj: Union[tuple, list, Any]) -> ClusterTree:
    """
    Convert nested tuples or lists into a ClusterTree.

    Every tuple/list is an internal node, every other value is a tip label.

    Examples:
    --------
    >>> from_nested((("1", "2"), "3")).to_newick()
    '((1,2),3);'
    """

    children: List[List[int]] = []
    labels: List[Optional[Any]] = []
    stack: List[Tuple[Any, int]] = [(obj, -1)]

    while stack:
        current, parent = stack.pop()
        index = len(children)
        children.append([])
        if parent >= 0:
            children[parent].append(index)

        if isinstance(current, (tuple, list)):
            if len(current) == 0:
                raise ValueError("Empty group in nested tree")
            labels.append(None)
            for child in reversed(current):
                stack.append((child, index))
        else:
            labels.append(current)

    return ClusterTree(children, labels)


def _tokenize_newick(text: str) -> List[str]:
    tokens = []
    i = 0
    while i < len(text):
        char = text[i]
        if char.isspace():
            i += 1
        elif char in "(),:;":
            tokens.append(char)
            i += 1
        elif char == "'":
            end = text.find("'", i + 1)
            if end < 0:
                raise ValueError("Unterminated quoted label in Newick string")
            tokens.append(text[i:end + 1])
            i = end + 1
        else:
            start = i
            while i < len(text) and text[i] not in "(),:;" and not text[i].isspace():
                i += 1
            tokens.append(text[start:i])
    return tokens


def from_newick(text: str) -> ClusterTree:
    """
    Parse a Newick string into a ClusterTree.

    Branch lengths and internal node labels are ignored.

    Examples:
    --------
    >>> from_newick("((1:0.5,2:0.5):1,3:1.5);").descendant_tips(0)
    ['1', '2', '3']
    """

    tokens = _tokenize_newick(text)
    if not tokens:
        raise ValueError("Empty Newick string")

    children: List[List[int]] = []
    labels: List[Optional[str]] = []
    position = 0

    def _peek() -> Optional[str]:
        return tokens[position] if position < len(tokens) else None

    def _label_token(token: Optional[str]) -> bool:
        return token is not None and token not in "(),:;"

    def _parse_node() -> int:
        nonlocal position
        index = len(children)
        children.append([])
        labels.append(None)

        if _peek() == "(":
            position += 1
            while True:
                children[index].append(_parse_node())
                token = _peek()
                position += 1
                if token == ",":
                    continue
                if token == ")":
                    break
                raise ValueError(f"Unexpected token {token!r} in Newick string")
            # internal labels are ignored
            if _label_token(_peek()):
                position += 1
        else:
            token = _peek()
            if not _label_token(token):
                raise ValueError(f"Expected a tip label, got {token!r}")
            labels[index] = token.strip("'")
            position += 1

        if _peek() == ":":
            position += 1
            # branch length may be empty, as in "A:,B"
            if _label_token(_peek()):
                position += 1
        return index

    _parse_node()
    if _peek() == ";":
        position += 1
    if position != len(tokens):
        raise ValueError(f"Trailing tokens in Newick string: {tokens[position:]}")

    return ClusterTree(children, labels)


def from_igraph(graph: 'igraph.Graph', label_attr: str = "name", root: Optional[int] = None) -> ClusterTree:
    """
    Convert an igraph hierarchy into a ClusterTree.

    Parameters:
    -----------
    graph : igraph.Graph
        Tree graph. Directed graphs must have edges pointing from parent to
        child; undirected graphs need ``root``.
    label_attr : str, default="name"
        Vertex attribute holding tip labels. Vertex indices are used when the
        attribute is missing.
    root : int, optional
        Root vertex. Inferred as the vertex without incoming edges for
        directed graphs.

    Returns:
    --------
    ClusterTree
        Tree with the same node ids as the graph's vertex indices.
    """

    if not IGRAPH_AVAILABLE:
        raise ImportError("igraph is required to convert igraph hierarchies. "
                          "Please install with: pip install python-igraph")

    n_vertices = graph.vcount()
    if label_attr in graph.vs.attributes():
        labels = list(graph.vs[label_attr])
    else:
        labels = [str(v) for v in range(n_vertices)]

    if graph.is_directed():
        children = [graph.successors(v) for v in range(n_vertices)]
        tree = ClusterTree(children, labels)
        if root is not None and tree.root != root:
            raise ValueError(f"Vertex {root} is not the root of the directed graph (root is {tree.root})")
        return tree

    if root is None:
        raise ValueError("root must be given for undirected graphs")

    vids, _, parents = graph.bfs(root)
    if len(vids) != n_vertices:
        raise ValueError("Graph is not connected; cannot build a cluster tree")
    parents = list(parents)
    parents[root] = -1
    children: List[List[int]] = [[] for _ in range(n_vertices)]
    for v in vids:
        if parents[v] >= 0:
            children[parents[v]].append(v)
    return ClusterTree(children, labels)


def as_cluster_tree(obj: Any, labels: Optional[Sequence[Any]] = None) -> ClusterTree:
    """
    Convert any supported dendrogram representation into a ClusterTree.

    Parameters:
    -----------
    obj : Any
        ClusterTree, scipy linkage matrix (np.ndarray), scipy ClusterNode,
        scanpy dendrogram dict (with a 'linkage' entry), Newick string,
        igraph.Graph, or nested tuples/lists.
    labels : Sequence, optional
        Leaf labels for linkage-based inputs.

    Returns:
    --------
    ClusterTree
    """

    if isinstance(obj, ClusterTree):
        return obj
    if isinstance(obj, str):
        return from_newick(obj)
    if isinstance(obj, hierarchy.ClusterNode):
        return from_scipy_node(obj, labels)
    if isinstance(obj, np.ndarray):
        return from_linkage(obj, labels)
    if isinstance(obj, dict):
        if "linkage" not in obj:
            raise ValueError("Dendrogram dict must contain a 'linkage' entry")
        return from_linkage(obj["linkage"], labels)
    if IGRAPH_AVAILABLE and isinstance(obj, igraph.Graph):
        return from_igraph(obj)
    if isinstance(obj, (tuple, list)):
        return from_nested(obj)
    raise TypeError(f"Cannot convert object of type {type(obj).__name__} into a cluster tree")

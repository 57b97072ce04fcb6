"""
Arena representation of a dendrogram over clusters.

Nodes are stored in indexed arrays: every node has a kind (tip or internal),
tips carry a label and internal nodes carry the indices of their children.
Traversal and descendant queries are plain index operations.
"""

import numpy as np
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

TIP = 0
INTERNAL = 1


class ClusterTree:
    """
    Rooted tree whose leaves are clusters.

    The tree is immutable once built. Node ids are positions in the arena;
    the order of each node's children is preserved and defines what is
    "first" and "second" when contrasts are built.

    Parameters:
    -----------
    children : Sequence[Sequence[int]]
        For every node, the ids of its children. Tips have no children.
    labels : Sequence[Optional[str]]
        For every node, its label. Every tip must be labelled; labels of
        internal nodes are kept but not used.

    Examples:
    --------
    >>> # ((A, B), C) with the root at id 0
    >>> tree = ClusterTree(
    ...     children=[[1, 4], [2, 3], [], [], []],
    ...     labels=[None, None, "A", "B", "C"],
    ... )
    >>> tree.internal_nodes()
    [0, 1]
    >>> tree.descendant_tips(0)
    ['A', 'B', 'C']
    """

    def __init__(
        self,
        children: Sequence[Sequence[int]],
        labels: Sequence[Optional[Any]],
    ):
        n_nodes = len(children)
        if n_nodes == 0:
            raise ValueError("A cluster tree needs at least one node")
        if len(labels) != n_nodes:
            raise ValueError(f"Got {len(labels)} labels for {n_nodes} nodes")

        self._children: Tuple[Tuple[int, ...], ...] = tuple(tuple(int(c) for c in ch) for ch in children)
        self._labels: Tuple[Optional[str], ...] = tuple(None if l is None else str(l) for l in labels)
        self._kind = np.array([INTERNAL if len(ch) else TIP for ch in self._children], dtype=np.int8)
        self._parent = np.full(n_nodes, -1, dtype=int)

        for node, node_children in enumerate(self._children):
            for child in node_children:
                if child < 0 or child >= n_nodes:
                    raise ValueError(f"Node {node} has child {child} outside the tree")
                if child == node or self._parent[child] != -1:
                    raise ValueError(f"Node {child} has more than one parent")
                self._parent[child] = node

        roots = np.where(self._parent == -1)[0]
        if len(roots) != 1:
            raise ValueError(f"A cluster tree must have exactly one root, found {len(roots)}")
        self._root = int(roots[0])

        if len(self._preorder()) != n_nodes:
            raise ValueError("Cluster tree contains a cycle")

        for node in self._tip_ids():
            if self._labels[node] is None:
                raise ValueError(f"Tip {node} has no label")

    @classmethod
    def from_parents(cls, parents: Sequence[int], labels: Sequence[Optional[Any]]) -> 'ClusterTree':
        """
        Build a tree from a parent vector (-1 marks the root).

        Children are ordered by node id.
        """

        parents = [int(p) for p in parents]
        children: List[List[int]] = [[] for _ in parents]
        for node, parent in enumerate(parents):
            if parent >= 0:
                if parent >= len(parents):
                    raise ValueError(f"Node {node} has parent {parent} outside the tree")
                children[parent].append(node)
        return cls(children, labels)

    @classmethod
    def from_edges(
        cls,
        edges: Union[Sequence[Tuple[int, int]], np.ndarray],
        labels: Union[Sequence[Optional[Any]], Dict[int, Any]],
        n_nodes: Optional[int] = None,
    ) -> 'ClusterTree':
        """
        Build a tree from (parent, child) edges over node ids.

        Parameters:
        -----------
        edges : array-like of shape (n_edges, 2)
            Parent/child pairs. The order of edges defines child order.
        labels : sequence or dict
            Node labels, either one per node or a mapping node id -> label.
        n_nodes : int, optional
            Number of nodes. Inferred from edges and labels when omitted.
        """

        edges = np.asarray(edges, dtype=int).reshape(-1, 2)
        if n_nodes is None:
            label_ids = list(labels.keys()) if isinstance(labels, dict) else range(len(labels))
            n_nodes = int(max([int(edges.max()) if len(edges) else -1] + [int(i) for i in label_ids])) + 1
        if isinstance(labels, dict):
            labels = [labels.get(i) for i in range(n_nodes)]

        children: List[List[int]] = [[] for _ in range(n_nodes)]
        for parent, child in edges:
            children[parent].append(int(child))
        return cls(children, labels)

    @property
    def root(self) -> int:
        return self._root

    @property
    def n_nodes(self) -> int:
        return len(self._children)

    @property
    def n_tips(self) -> int:
        return int(np.sum(self._kind == TIP))

    def is_tip(self, node: int) -> bool:
        self._check_node(node)
        return bool(self._kind[node] == TIP)

    def label(self, node: int) -> Optional[str]:
        self._check_node(node)
        return self._labels[node]

    def parent(self, node: int) -> Optional[int]:
        self._check_node(node)
        parent = int(self._parent[node])
        return None if parent < 0 else parent

    def tip_labels(self) -> List[str]:
        """Labels of all tips, in node id order."""

        return [self._labels[node] for node in self._tip_ids()]

    def check_tips(self, names: Sequence[Any]) -> None:
        """Raise if the tip labels differ from ``names`` as sets."""

        tips = sorted(self.tip_labels())
        expected = sorted(str(n) for n in names)
        if tips != expected:
            raise ValueError(
                "tip names of dendro don't match cluster vector values: "
                f"tips={tips}, clusters={expected}"
            )

    def internal_nodes(self) -> List[int]:
        """Internal node ids in preorder from the root (root first)."""

        return [node for node in self._preorder() if self._kind[node] == INTERNAL]

    def children(self, node: int) -> Tuple[int, int]:
        """The two children of an internal node."""

        self._check_node(node)
        node_children = self._children[node]
        if len(node_children) != 2:
            raise ValueError(
                f"More than 2 children for internal node {node} "
                f"({len(node_children)} found); contrasts need binary splits"
            )
        return node_children[0], node_children[1]

    def descendant_tips(self, node: int) -> List[str]:
        """Labels of the tips below ``node``, left to right."""

        self._check_node(node)
        return [self._labels[n] for n in self._preorder(node) if self._kind[n] == TIP]

    def relabel(self, mapping: Union[Dict[str, Any], Callable[[str], Any]]) -> 'ClusterTree':
        """Return a new tree with tip labels passed through ``mapping``."""

        fn = mapping.__getitem__ if isinstance(mapping, dict) else mapping
        labels = [
            fn(label) if kind == TIP else label
            for label, kind in zip(self._labels, self._kind)
        ]
        return ClusterTree(self._children, labels)

    def to_newick(self) -> str:
        """Newick string of the topology (tip labels only)."""

        def _write(node: int) -> str:
            if self._kind[node] == TIP:
                return self._labels[node]
            return "(" + ",".join(_write(c) for c in self._children[node]) + ")"

        return _write(self._root) + ";"

    def __repr__(self) -> str:
        return f"ClusterTree(n_nodes={self.n_nodes}, n_tips={self.n_tips}, newick='{self.to_newick()}')"

    def _tip_ids(self) -> List[int]:
        return [int(i) for i in np.where(self._kind == TIP)[0]]

    def _preorder(self, start: Optional[int] = None) -> List[int]:
        start = self._root if start is None else start
        order = []
        stack = [start]
        while stack:
            node = stack.pop()
            order.append(node)
            stack.extend(reversed(self._children[node]))
        return order

    def _check_node(self, node: int) -> None:
        if not 0 <= int(node) < self.n_nodes:
            raise ValueError(f"Node {node} not found. Tree has {self.n_nodes} nodes")

import numpy as np
from scipy.cluster.hierarchy import linkage

from treecontrast import ClusterContrasts, cluster_contrasts
from treecontrast.contrasts import make_contrasts
from treecontrast.tree import from_linkage

# Set random seed for reproducibility
rng = np.random.default_rng(42)

# Five clusters with two unassigned (-1) and one unclustered (-2) sample
cluster = np.concatenate([rng.integers(1, 6, size=40), [-1, -1, -2]])

# Cluster means of a toy expression matrix, used to build the dendrogram
X = rng.normal(size=(len(cluster), 20)) + cluster[:, None]
ids = np.unique(cluster[cluster > 0])
means = np.vstack([X[cluster == i].mean(axis=0) for i in ids])
tree = from_linkage(linkage(means, method="average"), labels=list(ids))
print(f"Dendrogram: {tree.to_newick()}")

# Dendrogram contrasts (unnamed)
result = cluster_contrasts(cluster, contrast_type="Dendro", dendro=tree)
print("\n=== Dendro ===")
print(result.contrast_matrix.round(3))
print(f"Contrast names: {result.contrast_names}")

# Pairwise contrasts
result = cluster_contrasts(cluster, contrast_type="Pairs")
print("\n=== Pairs ===")
print(result.contrast_names)

# One against all, estimator interface
estimator = ClusterContrasts(contrast_type="OneAgainstAll", verbose=True)
estimator.fit(cluster)
print("\n=== OneAgainstAll ===")
print(estimator.contrast_matrix_.round(3))
print(estimator.levels_.to_frame())

# Custom contrasts in the same level space (parsed by patsy)
custom = make_contrasts({"early_vs_late": "(Cl01+Cl02)/2-(Cl04+Cl05)/2"}, estimator.levels_.names)
print("\n=== Custom ===")
print(custom)

import scanpy as sc
import treecontrast.scanpy as tcsc
import numpy as np

# Load example data with precomputed louvain clusters
adata = sc.datasets.pbmc3k_processed()
print(f"Data shape: {adata.shape}")
print(f"Clusters: {adata.obs['louvain'].nunique()}")

# Dendrogram over the clusters (required for 'Dendro' contrasts)
print("\n=== Computing cluster dendrogram ===")
sc.tl.dendrogram(adata, groupby='louvain')
print(f"Available in adata.uns: {list(adata.uns.keys())}")

# 1. One contrast per internal node of the dendrogram
print("\n1. Dendro contrasts...")
tcsc.tl.cluster_contrasts(adata, 'louvain', 'Dendro', key_added='dendro_contrasts')
dendro = adata.uns['dendro_contrasts']
print(f"Contrasts: {dendro['contrast_matrix'].shape[1]}")
for expression in dendro['expressions']:
    print(f"  {expression}")

# 2. Each cluster against all others
print("\n2. OneAgainstAll contrasts...")
tcsc.tl.cluster_contrasts(adata, 'louvain', 'OneAgainstAll', key_added='one_vs_all')
print(adata.uns['one_vs_all']['contrast_matrix'].round(3))

# 3. Selected pairs, given as louvain categories
print("\n3. Pairs contrasts...")
categories = list(adata.obs['louvain'].cat.categories)
pairs = np.array([[categories[0], categories[1]], [categories[0], categories[2]]])
tcsc.tl.cluster_contrasts(adata, 'louvain', 'Pairs', pair_matrix=pairs, key_added='pairs')
print(f"Pair names: {adata.uns['pairs']['contrast_names']}")
print(adata.uns['pairs']['levels'])

print("\n=== Success! All contrast types work ===")

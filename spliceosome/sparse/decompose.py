# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

"""Connected component block decomposition for parallel EM.

Splits the read-class x transcript compatibility matrix into independent
blocks using scipy.sparse.csgraph.connected_components on the transcript
adjacency graph. Transcripts that share no read class never influence
each other's estimates, so each block can be solved on its own.
"""

import numpy as np
from scipy.sparse.csgraph import connected_components

from .matrix import csr_matrix_plus


def find_blocks(compat_matrix):
    """Find independent blocks via connected components of the transcript graph.

    Two transcripts are connected if at least one read class is compatible
    with both.

    Args:
        compat_matrix: N x K sparse CSR matrix.

    Returns:
        (n_components, labels): number of blocks and per-transcript label array.
    """
    binary = (compat_matrix != 0).astype(np.float64)
    adj = binary.T @ binary
    n_components, labels = connected_components(adj, directed=False)
    return n_components, labels


def split_matrix(compat_matrix, labels, n_components):
    """Split the compatibility matrix into independent sub-problems.

    Args:
        compat_matrix: N x K sparse CSR matrix.
        labels: Per-transcript label array from find_blocks().
        n_components: Number of connected components.

    Returns:
        List of (sub_matrix, feat_indices, row_indices) tuples.
    """
    blocks = []
    for c in range(n_components):
        feat_indices = np.where(labels == c)[0]
        sub = compat_matrix.tocsc()[:, feat_indices].tocsr()
        row_indices = np.diff(sub.indptr).nonzero()[0]
        sub = csr_matrix_plus(sub[row_indices, :])
        blocks.append((sub, feat_indices, row_indices))
    return blocks


def merge_results(block_results, blocks_info, K):
    """Reassemble full-size abundance and count vectors from block results.

    Args:
        block_results: List of (theta_block, counts_block, lnl_block,
            n_iterations, final_change) tuples.
        blocks_info: List of (sub_matrix, feat_indices, row_indices) from split_matrix().
        K: Total number of transcripts in the original matrix.

    Returns:
        (theta, counts, lnl, n_iterations, final_change): merged results.
            Iterations and final change are the maxima over blocks.
    """
    theta = np.zeros(K, dtype=np.float64)
    counts = np.zeros(K, dtype=np.float64)
    total_lnl = 0.0
    n_iter = 0
    final_change = 0.0

    for (theta_b, counts_b, lnl_b, n_iter_b, change_b), (_, feat_indices, _rows) in zip(
            block_results, blocks_info):
        theta[feat_indices] = theta_b
        counts[feat_indices] = counts_b
        total_lnl += lnl_b
        n_iter = max(n_iter, n_iter_b)
        final_change = max(final_change, change_b)

    return theta, counts, total_lnl, n_iter, final_change

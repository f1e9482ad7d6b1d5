# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

"""Expectation-maximization over read-class compatibility.

Each read class distributes its count over the transcripts it is
compatible with, in proportion to their current abundance. Abundances are
re-estimated from the aggregated allocations until the largest relative
change falls below the convergence threshold.
"""

import logging as lg
import math
import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from time import time

import numpy as np
import pandas as pd

from ..exceptions import ConvergenceNotReached, EmptyInputWarning, InputValidationError
from ..sparse.decompose import find_blocks, merge_results, split_matrix
from ..sparse.matrix import csr_matrix_plus
from ..utils.helpers import format_minutes as fmtmins
from .params import EMParams


def _estep(Q, n, theta):
    """Allocate each row's count over its compatible columns.

    Rows whose weights are all zero fall back to a uniform split, so every
    row of the result sums to its count.
    """
    rows = Q.row_index()
    w = Q.data * theta[Q.indices]
    rowsum = np.bincount(rows, weights=w, minlength=Q.shape[0])
    _empty = rowsum[rows] == 0
    if _empty.any():
        w = np.where(_empty, Q.data, w)
        rowsum = np.bincount(rows, weights=w, minlength=Q.shape[0])
    data = n[rows] * w / rowsum[rows]
    return csr_matrix_plus((data, Q.indices.copy(), Q.indptr.copy()), shape=Q.shape)


def _mstep(A, bias=None):
    counts = np.asarray(A.sum(0)).ravel()
    theta = counts / bias if bias is not None else counts.copy()
    return theta, counts


def _relative_change(old, new):
    mask = old > 0
    if not mask.any():
        return 0.0
    return float(np.max(np.abs(new[mask] - old[mask]) / old[mask]))


def _lnl(Q, n, theta):
    _total = theta.sum()
    if _total <= 0:
        return 0.0
    p = theta / _total
    rowp = np.bincount(Q.row_index(), weights=Q.data * p[Q.indices], minlength=Q.shape[0])
    _mask = n > 0
    return float(np.sum(n[_mask] * np.log(rowp[_mask])))


def _initial_theta(Q, n):
    supported = np.diff(Q.tocsc().indptr) > 0
    theta = np.zeros(Q.shape[1], dtype=np.float64)
    if supported.any():
        theta[supported] = n.sum() / supported.sum()
    return theta


def _run_em(Q, n, bias, max_iterations, threshold, loglev=lg.DEBUG, theta_init=None):
    """Iterate E and M steps on one compatibility matrix.

    ``theta_init`` defaults to a uniform start over supported columns.

    Returns:
        (theta, counts, lnl, n_iterations, final_change, deltas)
    """
    K = Q.shape[1]
    if Q.shape[0] == 0:
        return np.zeros(K), np.zeros(K), 0.0, 0, 0.0, []

    theta = _initial_theta(Q, n) if theta_init is None else theta_init.copy()
    counts = np.zeros(K)
    deltas = []
    for inum in range(1, max_iterations + 1):
        A = _estep(Q, n, theta)
        new_theta, counts = _mstep(A, bias)
        change = _relative_change(theta, new_theta)
        deltas.append(change)
        theta = new_theta
        lg.log(loglev, f'  Iteration {inum}, change={change:.6g}')
        if change < threshold:
            break
    return theta, counts, _lnl(Q, n, theta), len(deltas), deltas[-1], deltas


def length_bias(lengths, supported):
    """Effective-length bias term relative to the mean supported length.

    Transcripts outside ``supported`` get a neutral term of 1.
    """
    lengths = np.asarray(lengths, dtype=np.float64)
    bias = np.ones_like(lengths)
    if supported.any():
        bias[supported] = lengths[supported] / lengths[supported].mean()
    return bias


class ReadClassLikelihood:
    """EM model for one sample.

    Args:
        compat_matrix: N x K binary matrix, read classes x transcripts.
        counts: Length-N read counts.
        lengths: Length-K exonic lengths, used for bias correction.
        params: EMParams.
    """

    def __init__(self, compat_matrix, counts, lengths=None, params=None):
        self.params = params or EMParams()
        self.Q = csr_matrix_plus((compat_matrix != 0).astype(np.float64))
        self.n = np.asarray(counts, dtype=np.float64)
        self.N, self.K = self.Q.shape
        if self.n.shape != (self.N,):
            raise ValueError(f'Expected {self.N} counts, got {self.n.shape}')

        self.supported = np.diff(self.Q.tocsc().indptr) > 0
        self.bias = None
        if self.params.bias_correction:
            if lengths is None:
                raise ValueError('Bias correction requires transcript lengths')
            self.bias = length_bias(lengths, self.supported)

        self.theta_init = _initial_theta(self.Q, self.n)
        self.theta = self.theta_init.copy()
        self.counts = np.zeros(self.K)
        self.initial_counts = _mstep(_estep(self.Q, self.n, np.ones(self.K)))[1]
        self.lnl = None
        self.num_iterations = 0
        self.final_change = math.inf
        self.converged = False
        self.deltas = []

    def estep(self, theta):
        """Allocation matrix A; row i sums to n_i."""
        return _estep(self.Q, self.n, theta)

    def mstep(self, A):
        """(theta, counts) from an allocation matrix."""
        return _mstep(A, self.bias)

    def calculate_lnl(self, theta):
        return _lnl(self.Q, self.n, theta)

    def _finish(self, theta, counts, lnl, n_iter, final_change):
        self.theta, self.counts, self.lnl = theta, counts, lnl
        self.num_iterations = n_iter
        self.final_change = final_change
        self.converged = final_change < self.params.convergence_threshold
        if not self.converged:
            msg = (f'EM did not converge after {n_iter} iterations '
                   f'(change={final_change:.4g}, threshold={self.params.convergence_threshold})')
            lg.warning(msg)
            warnings.warn(msg, ConvergenceNotReached, stacklevel=3)

    def em(self, loglev=lg.DEBUG):
        stime = time()
        theta, counts, lnl, n_iter, change, self.deltas = _run_em(
            self.Q, self.n, self.bias,
            self.params.max_iterations, self.params.convergence_threshold, loglev,
        )
        self._finish(theta, counts, lnl, n_iter, change)
        lg.log(loglev, f'EM finished after {n_iter} iterations in {fmtmins(time() - stime)}')

    def em_parallel(self, loglev=lg.DEBUG, max_workers=None):
        """Run EM on independent blocks with a thread pool.

        Every block starts from its slice of the joint starting abundances,
        so each block repeats the joint iterations restricted to its
        columns. Falls back to :meth:`em` when the matrix has a single block.
        """
        n_components, labels = find_blocks(self.Q)
        if n_components <= 1:
            return self.em(loglev=loglev)

        stime = time()
        blocks = split_matrix(self.Q, labels, n_components)
        lg.log(loglev, f'Solving {n_components} independent blocks')

        def _solve(block):
            sub, feat_indices, row_indices = block
            _bias = self.bias[feat_indices] if self.bias is not None else None
            theta_b, counts_b, lnl_b, n_iter_b, change_b, _deltas = _run_em(
                sub, self.n[row_indices], _bias,
                self.params.max_iterations, self.params.convergence_threshold, lg.DEBUG,
                theta_init=self.theta_init[feat_indices],
            )
            return theta_b, counts_b, lnl_b, n_iter_b, change_b

        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            block_results = list(pool.map(_solve, blocks))

        theta, counts, _lnl_blocks, n_iter, change = merge_results(block_results, blocks, self.K)
        self.deltas = []
        self._finish(theta, counts, self.calculate_lnl(theta), n_iter, change)
        lg.log(loglev, f'Block EM finished after {n_iter} iterations in {fmtmins(time() - stime)}')


@dataclass(frozen=True, eq=False)
class ExpressionEstimate:
    sample_id: str
    transcript_counts: pd.Series
    gene_counts: pd.Series
    initial_counts: pd.Series
    n_iterations: int
    final_change: float
    converged: bool
    unassigned: float
    log_likelihood: float

    @property
    def total(self):
        """Read count assigned to transcripts."""
        return float(self.transcript_counts.sum())


def _gene_counts(transcript_counts, annotation):
    _gmap = annotation.gene_map()
    if transcript_counts.empty:
        return pd.Series(0.0, index=list(annotation.genes), dtype=np.float64)
    return transcript_counts.groupby(_gmap).sum().reindex(list(annotation.genes), fill_value=0.0)


def quantify(read_class_set, annotation, params=None, strand_aware=False, junction_tolerance=10):
    """Estimate transcript and gene expression for one sample.

    Compatibility is recomputed against ``annotation``. Read classes
    compatible with no transcript are counted as unassigned.

    Raises:
        InputValidationError: on negative or non-finite counts.
    """
    params = params or EMParams()
    sample_id = read_class_set.sample_id
    for rc in read_class_set:
        if not math.isfinite(rc.count) or rc.count < 0:
            raise InputValidationError(f'Invalid read count {rc.count} for {rc.chain}', sample_id)

    tx_ids = list(annotation.transcripts)
    if len(read_class_set) == 0:
        warnings.warn(f'No read classes for sample {sample_id}', EmptyInputWarning, stacklevel=2)
        lg.warning(f'No read classes for sample {sample_id}')

    rcset = read_class_set.with_compatibility(annotation, junction_tolerance, strand_aware)
    _assigned = [rc for rc in rcset if rc.compatible]
    unassigned = float(sum(rc.count for rc in rcset if not rc.compatible))

    _col = {tid: j for j, tid in enumerate(tx_ids)}
    indptr = [0]
    indices = []
    for rc in _assigned:
        indices.extend(sorted(_col[tid] for tid in rc.compatible))
        indptr.append(len(indices))
    Q = csr_matrix_plus(
        (np.ones(len(indices)), np.array(indices, dtype=np.int64), np.array(indptr, dtype=np.int64)),
        shape=(len(_assigned), len(tx_ids)),
    )
    _lengths = [annotation.transcripts[tid].length for tid in tx_ids]

    tl = ReadClassLikelihood(Q, [rc.count for rc in _assigned], _lengths, params)
    lg.info(f'{sample_id}: {tl.N} read classes over {int(tl.supported.sum())} supported transcripts '
            f'({unassigned:g} reads unassigned)')
    if params.parallel_blocks:
        tl.em_parallel()
    else:
        tl.em()

    transcript_counts = pd.Series(tl.counts, index=tx_ids, dtype=np.float64, name=sample_id)
    gene_counts = _gene_counts(transcript_counts, annotation).rename(sample_id)
    return ExpressionEstimate(
        sample_id=sample_id,
        transcript_counts=transcript_counts,
        gene_counts=gene_counts,
        initial_counts=pd.Series(tl.initial_counts, index=tx_ids, dtype=np.float64, name=sample_id),
        n_iterations=tl.num_iterations,
        final_change=tl.final_change,
        converged=tl.converged,
        unassigned=unassigned,
        log_likelihood=tl.lnl,
    )

# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

"""CSR matrix with the row/column helpers used by the EM."""

import numpy as np
import scipy.sparse


class csr_matrix_plus(scipy.sparse.csr_matrix):
    def norm(self, axis=None):
        """Normalize the matrix.

        Args:
            axis: ``None`` divides by the total, ``1`` divides each row by
                its sum, ``0`` divides each column by its sum. All-zero
                rows or columns stay zero.

        Returns:
            csr_matrix_plus
        """
        if axis not in (None, 0, 1):
            raise ValueError(f'Invalid axis {axis}')
        if axis is None:
            _total = self.sum()
            ret = self.astype(np.float64)
            if _total != 0:
                ret.data /= _total
            return type(self)(ret)

        _sums = np.asarray(self.sum(axis)).ravel().astype(np.float64)
        _inv = np.divide(1.0, _sums, out=np.zeros_like(_sums), where=_sums != 0)
        if axis == 1:
            return self.scale_rows(_inv)
        return type(self)(self.multiply(_inv[None, :]).tocsr())

    def scale_rows(self, v):
        """Multiply row ``i`` by ``v[i]``."""
        v = np.asarray(v, dtype=np.float64)
        ret = self.astype(np.float64)
        ret.data *= np.repeat(v, np.diff(ret.indptr))
        return type(self)(ret)

    def count(self, axis=None):
        """Number of stored non-zero entries, overall or per row/column."""
        _binary = (self != 0).astype(np.int64)
        if axis is None:
            return int(_binary.sum())
        return np.asarray(_binary.sum(axis)).ravel()

    def row_index(self):
        """Row number of every stored entry, aligned with ``data``."""
        return np.repeat(np.arange(self.shape[0]), np.diff(self.indptr))

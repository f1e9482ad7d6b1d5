# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

"""Tests for csr_matrix_plus helpers."""
import numpy as np
import pytest
from numpy.testing import assert_array_almost_equal

from spliceosome.sparse.matrix import csr_matrix_plus


@pytest.fixture
def m():
    return csr_matrix_plus([
        [2, 2, 0],
        [0, 0, 0],
        [1, 0, 3],
    ], dtype=np.float64)


class TestNorm:

    def test_total(self, m):
        assert_array_almost_equal(m.norm().toarray(), m.toarray() / 8.0)

    def test_rows(self, m):
        assert_array_almost_equal(m.norm(1).toarray(), [
            [0.5, 0.5, 0],
            [0, 0, 0],
            [0.25, 0, 0.75],
        ])

    def test_columns(self, m):
        assert_array_almost_equal(m.norm(0).toarray(), [
            [2 / 3, 1, 0],
            [0, 0, 0],
            [1 / 3, 0, 1],
        ])

    def test_returns_subclass(self, m):
        assert isinstance(m.norm(1), csr_matrix_plus)
        assert isinstance(m.norm(0), csr_matrix_plus)

    def test_bad_axis(self, m):
        with pytest.raises(ValueError):
            m.norm(2)


class TestHelpers:

    def test_scale_rows(self, m):
        assert_array_almost_equal(m.scale_rows([1, 5, 2]).toarray(), [
            [2, 2, 0],
            [0, 0, 0],
            [2, 0, 6],
        ])

    def test_count(self, m):
        assert m.count() == 4
        assert list(m.count(1)) == [2, 0, 2]
        assert list(m.count(0)) == [2, 1, 1]

    def test_row_index(self, m):
        assert list(m.row_index()) == [0, 0, 2, 2]

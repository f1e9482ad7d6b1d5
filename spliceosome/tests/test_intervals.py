# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

"""Tests for exon chains and interval arithmetic.

Tests cover:
- GenomicInterval and ExonChain invariants
- Exonic overlap
- Structural subset with and without tolerance
- Junction distance and nearest-transcript search
- Strand-aware vs unstranded matching
"""
import math

import pytest

from spliceosome.annotation.model import Transcript
from spliceosome.core.intervals import (
    ExonChain,
    GenomicInterval,
    is_subset,
    junction_distance,
    max_boundary_shift,
    min_junction_distance,
    overlap_length,
    strands_compatible,
)
from spliceosome.exceptions import InputValidationError


def chain(blocks, strand='+', chrom='chr1'):
    return ExonChain.from_blocks(chrom, strand, blocks)


# --- Fixtures ---

@pytest.fixture
def three_exon():
    """Exons 100-200, 300-400, 500-600."""
    return chain([(100, 200), (300, 400), (500, 600)])


# --- Invariants ---

class TestGenomicInterval:

    def test_length_is_closed(self):
        assert GenomicInterval('chr1', 10, 10).length == 1
        assert GenomicInterval('chr1', 10, 19).length == 10

    def test_start_after_end(self):
        with pytest.raises(InputValidationError):
            GenomicInterval('chr1', 20, 10)

    def test_start_below_one(self):
        with pytest.raises(InputValidationError):
            GenomicInterval('chr1', 0, 10)

    def test_bad_strand(self):
        with pytest.raises(InputValidationError):
            GenomicInterval('chr1', 1, 10, '?')

    def test_error_carries_identifier(self):
        with pytest.raises(InputValidationError) as exc:
            GenomicInterval('chr1', 20, 10)
        assert exc.value.identifier == 'chr1:20-10(*)'


class TestExonChain:

    def test_derived_properties(self, three_exon):
        assert three_exon.start == 100
        assert three_exon.end == 600
        assert three_exon.n_exons == 3
        assert three_exon.introns == ((201, 299), (401, 499))
        assert three_exon.length == 303
        assert three_exon.span == 501
        assert three_exon.is_spliced

    def test_blocks_round_trip(self, three_exon):
        assert chain(three_exon.blocks) == three_exon

    def test_overlapping_exons(self):
        with pytest.raises(InputValidationError):
            chain([(100, 200), (150, 300)])

    def test_unsorted_exons(self):
        with pytest.raises(InputValidationError):
            chain([(300, 400), (100, 200)])

    def test_abutting_exons(self):
        """Adjacent exons need at least one intronic base between them."""
        with pytest.raises(InputValidationError):
            chain([(100, 200), (201, 300)])
        assert chain([(100, 200), (202, 300)]).introns == ((201, 201),)

    def test_empty(self):
        with pytest.raises(InputValidationError):
            ExonChain(())

    def test_mixed_strands(self):
        with pytest.raises(InputValidationError):
            ExonChain((GenomicInterval('chr1', 1, 10, '+'), GenomicInterval('chr1', 20, 30, '-')))

    def test_with_strand(self, three_exon):
        minus = three_exon.with_strand('-')
        assert minus.strand == '-'
        assert minus.blocks == three_exon.blocks

    def test_str(self):
        assert str(chain([(1, 10), (20, 30)])) == 'chr1:1-10,20-30(+)'


# --- Overlap ---

class TestOverlapLength:

    def test_identical(self, three_exon):
        assert overlap_length(three_exon, three_exon) == three_exon.length

    def test_intron_not_counted(self, three_exon):
        mono = chain([(150, 350)])
        assert overlap_length(mono, three_exon) == 51 + 51

    def test_different_chromosome(self, three_exon):
        assert overlap_length(chain([(100, 200)], chrom='chr2'), three_exon) == 0

    def test_disjoint(self, three_exon):
        assert overlap_length(chain([(700, 800)]), three_exon) == 0

    def test_opposite_strand(self, three_exon):
        minus = three_exon.with_strand('-')
        assert overlap_length(minus, three_exon) == three_exon.length
        assert overlap_length(minus, three_exon, strand_aware=True) == 0


# --- Structural subset ---

class TestIsSubset:

    def test_identity(self, three_exon):
        assert is_subset(three_exon, three_exon)

    def test_truncated_start(self, three_exon):
        assert is_subset(chain([(350, 400), (500, 550)]), three_exon)

    def test_consecutive_run_required(self):
        """Skipping the middle exon is not a subset."""
        b = chain([(100, 200), (300, 400), (500, 600)])
        a = chain([(150, 200), (500, 550)])
        assert not is_subset(a, b)

    def test_terminal_exon_into_intron(self, three_exon):
        a = chain([(250, 400), (500, 550)])
        assert not is_subset(a, three_exon)

    def test_extends_past_span(self, three_exon):
        assert not is_subset(chain([(100, 200), (300, 400), (500, 700)]), three_exon)

    def test_superset_is_not_subset(self, three_exon):
        bigger = chain([(100, 200), (300, 400), (500, 600), (700, 800)])
        assert not is_subset(bigger, three_exon)
        assert is_subset(three_exon, bigger)

    def test_tolerance(self, three_exon):
        shifted = chain([(100, 205), (305, 400), (500, 600)])
        assert not is_subset(shifted, three_exon)
        assert is_subset(shifted, three_exon, tolerance=5)
        assert not is_subset(shifted, three_exon, tolerance=4)

    def test_mono_exon_inside_exon(self, three_exon):
        assert is_subset(chain([(310, 390)]), three_exon)

    def test_mono_exon_across_intron(self, three_exon):
        assert not is_subset(chain([(150, 350)]), three_exon)

    def test_strand_modes(self, three_exon):
        minus = three_exon.with_strand('-')
        assert is_subset(minus, three_exon)
        assert not is_subset(minus, three_exon, strand_aware=True)
        assert is_subset(three_exon.with_strand('*'), three_exon, strand_aware=True)


# --- Junction distance ---

class TestJunctionDistance:

    def test_identical(self, three_exon):
        assert junction_distance(three_exon, three_exon) == 0

    def test_sum_of_shifts(self, three_exon):
        other = chain([(100, 203), (301, 400), (500, 600)])
        assert junction_distance(other, three_exon) == 3 + 1
        assert max_boundary_shift(other, three_exon) == 3

    def test_terminal_exons_ignored(self, three_exon):
        other = chain([(50, 200), (300, 400), (500, 900)])
        assert junction_distance(other, three_exon) == 0

    def test_different_intron_count(self, three_exon):
        assert junction_distance(chain([(100, 200), (300, 400)]), three_exon) == math.inf
        assert max_boundary_shift(chain([(100, 200), (300, 400)]), three_exon) == math.inf

    def test_mono_exon_pairs(self):
        assert junction_distance(chain([(100, 200)]), chain([(110, 190)])) == 20
        assert max_boundary_shift(chain([(100, 200)]), chain([(110, 190)])) == 10
        assert junction_distance(chain([(100, 200)]), chain([(300, 400)])) == math.inf

    def test_different_chromosome(self, three_exon):
        assert junction_distance(chain(three_exon.blocks, chrom='chr2'), three_exon) == math.inf


class TestMinJunctionDistance:

    def test_nearest(self, three_exon):
        near = Transcript('near', chain([(100, 202), (300, 400), (500, 600)]), 'g')
        far = Transcript('far', chain([(100, 220), (300, 400), (500, 600)]), 'g')
        dist, tx = min_junction_distance(three_exon, [far, near])
        assert dist == 2
        assert tx is near

    def test_tie_lowest_start_then_id(self, three_exon):
        b = Transcript('b', chain([(90, 200), (300, 400), (500, 600)]), 'g')
        a = Transcript('a', chain([(95, 200), (300, 400), (500, 600)]), 'g')
        c = Transcript('c', chain([(90, 200), (300, 400), (500, 600)]), 'g')
        assert min_junction_distance(three_exon, [a, c, b])[1] is b

    def test_empty(self, three_exon):
        assert min_junction_distance(three_exon, []) == (math.inf, None)


class TestStrandsCompatible:

    def test_unstranded_mode(self):
        assert strands_compatible('+', '-')

    def test_strand_aware_mode(self):
        assert not strands_compatible('+', '-', strand_aware=True)
        assert strands_compatible('+', '+', strand_aware=True)
        assert strands_compatible('*', '-', strand_aware=True)

# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

"""Tests for reading spliced alignments with pysam.

Tests cover:
- Block coordinates from CIGAR strings
- Unmapped, secondary, supplementary and low-quality filtering
- Transcript strand from XS, ts and alignment orientation
- BAM inputs resolved to read classes
"""
from collections import Counter

import pytest

from spliceosome.alignment import fetch_records
from spliceosome.core.ingest import BamInput, resolve_input
from spliceosome.core.params import RunParams
from spliceosome.tests.data import sam_line


# --- Blocks ---

class TestBlocks:

    def test_spliced(self, write_sam):
        path = write_sam('s1', [sam_line('r1', 120, '81M299N81M')])
        (rec,) = list(fetch_records(path))
        assert rec.read_id == 'r1'
        assert rec.chrom == 'chr1'
        assert rec.blocks == [(120, 200), (500, 580)]

    def test_deletion_splits_block(self, write_sam):
        path = write_sam('s1', [sam_line('r1', 100, '50M5D50M')])
        (rec,) = list(fetch_records(path))
        assert rec.blocks == [(100, 149), (155, 204)]

    def test_soft_clips_ignored(self, write_sam):
        path = write_sam('s1', [sam_line('r1', 100, '10S50M')])
        (rec,) = list(fetch_records(path))
        assert rec.blocks == [(100, 149)]


# --- Filtering ---

class TestFiltering:

    @pytest.fixture
    def mixed(self, write_sam):
        return write_sam('mixed', [
            sam_line('good', 100, '50M'),
            sam_line('unmapped', 0, '*', flag=4, chrom='*', mapq=0),
            sam_line('secondary', 100, '50M', flag=256),
            sam_line('supplementary', 100, '50M', flag=2048),
            sam_line('lowq', 100, '50M', mapq=5),
        ])

    def test_only_primary_mapped(self, mixed):
        alninfo = Counter()
        records = list(fetch_records(mixed, alninfo=alninfo))
        assert [r.read_id for r in records] == ['good', 'lowq']
        assert alninfo['total'] == 5
        assert alninfo['unmapped'] == 1
        assert alninfo['secondary'] == 2

    def test_min_mapq(self, mixed):
        alninfo = Counter()
        records = list(fetch_records(mixed, min_mapq=10, alninfo=alninfo))
        assert [r.read_id for r in records] == ['good']
        assert alninfo['low_mapq'] == 1
        assert alninfo['used'] == 1


# --- Strand ---

class TestStrand:

    @pytest.mark.parametrize('flag, tags, expected', [
        (0, (), '+'),
        (16, (), '-'),
        (0, ('XS:A:-',), '-'),
        (16, ('XS:A:+',), '+'),
        (0, ('ts:A:-',), '-'),
        (16, ('ts:A:+',), '-'),
        (16, ('ts:A:-',), '+'),
    ])
    def test_strand(self, write_sam, flag, tags, expected):
        path = write_sam('s1', [sam_line('r1', 100, '50M', flag=flag, tags=tags)])
        (rec,) = list(fetch_records(path))
        assert rec.strand == expected


# --- Ingestion ---

class TestBamInput:

    def test_read_classes(self, write_sam):
        path = write_sam('sampleA', [
            sam_line('r1', 120, '81M299N81M'),
            sam_line('r2', 120, '81M299N81M'),
            sam_line('r3', 150, '51M99N51M'),
            sam_line('r4', 150, '51M', flag=256),
        ])
        rcset = resolve_input(BamInput('sampleA', path), RunParams())
        assert rcset.sample_id == 'sampleA'
        assert rcset.n_records == 4
        assert rcset.n_skipped == 1
        assert sorted(rc.count for rc in rcset) == [1, 2]

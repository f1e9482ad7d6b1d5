# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

"""End-to-end tests for the Spliceosome pipeline.

Tests cover:
- Mixed sample inputs (alignment records and prebuilt read classes)
- Discovery followed by quantification against the extended annotation
- Quantification against the base annotation with discovery off
- Per-sample failures and duplicate sample ids
- Report files, including the RunInfo header
- Worker processes give the same result as a serial run
"""
import os

import pandas as pd
import pytest
from numpy.testing import assert_allclose

from spliceosome.alignment import AlignmentRecord
from spliceosome.annotation import Annotation, Transcript
from spliceosome.core.ingest import ReadClassInput, RecordsInput
from spliceosome.core.intervals import ExonChain
from spliceosome.core.model import Spliceosome, input_sample_id
from spliceosome.core.params import RunParams
from spliceosome.core.readclass import ReadClass, ReadClassSet
from spliceosome.core.reporter import novel_transcript_table

SKIP_BLOCKS = [(120, 200), (500, 580)]
T1_SUBSET_BLOCKS = [(150, 200), (300, 350)]


def chain(blocks):
    return ExonChain.from_blocks('chr1', '+', blocks)


# --- Fixtures ---

@pytest.fixture
def annot():
    return Annotation([Transcript('T1', chain([(100, 200), (300, 400), (500, 600)]), 'G1')])


@pytest.fixture
def inputs():
    """s1 as alignment records, s2 as prebuilt read classes.

    Both samples carry an exon-skipping structure absent from the
    annotation, plus reads fully explained by T1.
    """
    records = [AlignmentRecord(f'skip{i}', 'chr1', '+', SKIP_BLOCKS) for i in range(4)]
    records += [AlignmentRecord(f'known{i}', 'chr1', '+', T1_SUBSET_BLOCKS) for i in range(10)]
    s2 = ReadClassSet('s2', [
        ReadClass(chain(SKIP_BLOCKS), 2, 's2'),
        ReadClass(chain(T1_SUBSET_BLOCKS), 3, 's2'),
    ])
    return [RecordsInput('s1', records), ReadClassInput(s2)]


# --- Full run ---

class TestRun:

    def test_discovery_then_quantification(self, annot, inputs):
        sp = Spliceosome(RunParams(), annot)
        estimates, ext = sp.run(inputs)

        assert list(ext.transcripts) == ['T1', 'tx.1']
        assert ext.transcripts['tx.1'].gene_id == 'G1'
        assert ext.transcripts['tx.1'].chain.blocks == tuple(SKIP_BLOCKS)
        assert sp.base_annotation is annot
        assert sp.extension_report.rejected['known_subset'] == 2

        tx = sp.transcript_matrix()
        assert list(tx.columns) == ['s1', 's2']
        assert_allclose(tx.loc['T1'].values, [10.0, 3.0])
        assert_allclose(tx.loc['tx.1'].values, [4.0, 2.0])
        assert_allclose(sp.gene_matrix().loc['G1'].values, [14.0, 5.0])
        assert all(e.unassigned == 0 for e in estimates.values())

    def test_no_discovery(self, annot, inputs):
        sp = Spliceosome(RunParams(discovery=False), annot)
        estimates, ext = sp.run(inputs)
        assert ext is annot
        assert sp.extension_report is None
        assert estimates['s1'].unassigned == 4
        assert estimates['s1'].transcript_counts['T1'] == pytest.approx(10.0)

    def test_read_classes_kept_per_sample(self, annot, inputs):
        sp = Spliceosome(RunParams(), annot)
        sp.run(inputs)
        assert list(sp.read_class_sets) == ['s1', 's2']
        assert sp.read_class_sets['s1'].n_records == 14
        assert len(sp.read_class_sets['s1']) == 2

    def test_worker_processes(self, annot, inputs):
        serial = Spliceosome(RunParams(), annot)
        serial.run(inputs)
        parallel = Spliceosome(RunParams(ncpu=2), annot)
        parallel.run(inputs)
        assert parallel.annotation == serial.annotation
        pd.testing.assert_frame_equal(parallel.transcript_matrix(), serial.transcript_matrix())


class TestFailures:

    def test_failed_sample_does_not_stop_run(self, annot, inputs):
        bad = RecordsInput('bad', [AlignmentRecord('r1', 'chr1', '+', [(100, 200), (150, 300)])])
        sp = Spliceosome(RunParams(), annot)
        estimates, _ = sp.run(inputs + [bad])
        assert list(sp.failed) == ['bad']
        assert 'bad:r1' in sp.failed['bad']
        assert list(estimates) == ['s1', 's2']
        assert sp.run_info['failed_samples'] == 1

    def test_duplicate_sample_ids(self, annot, inputs):
        sp = Spliceosome(RunParams(), annot)
        with pytest.raises(ValueError):
            sp.build_read_classes(inputs + [RecordsInput('s1', [])])

    def test_input_sample_id(self, inputs):
        assert [input_sample_id(i) for i in inputs] == ['s1', 's2']


# --- Reports ---

class TestReports:

    def test_output_files(self, annot, inputs, tmp_path):
        sp = Spliceosome(RunParams(), annot)
        sp.run(inputs)
        written = sp.output_report(str(tmp_path), 'test')
        names = sorted(os.path.basename(p) for p in written)
        assert names == [
            'test-extended_annotation.gtf',
            'test-gene_counts.tsv',
            'test-run_stats.tsv',
            'test-transcript_counts.tsv',
        ]

        tx = pd.read_csv(tmp_path / 'test-transcript_counts.tsv', sep='\t', index_col=0)
        assert list(tx.columns) == ['gene_id', 's1', 's2']
        assert tx.loc['tx.1', 'gene_id'] == 'G1'

        with open(tmp_path / 'test-run_stats.tsv') as fh:
            header = fh.readline()
        assert header.startswith('## RunInfo')
        assert 'novel_transcripts:1' in header
        stats = pd.read_csv(tmp_path / 'test-run_stats.tsv', sep='\t', skiprows=1)
        assert list(stats['sample']) == ['s1', 's2']

    def test_no_annotation_without_discovery(self, annot, inputs, tmp_path):
        sp = Spliceosome(RunParams(discovery=False), annot)
        sp.run(inputs)
        written = sp.output_report(str(tmp_path), 'test')
        assert not any(p.endswith('.gtf') for p in written)

    def test_novel_transcript_table(self, annot, inputs):
        sp = Spliceosome(RunParams(), annot)
        sp.run(inputs)
        df = novel_transcript_table(sp.extension_report, sp.annotation)
        assert list(df['transcript_id']) == ['tx.1']
        assert df.loc[0, 'read_count'] == 6
        assert (df.loc[0, 's1'], df.loc[0, 's2']) == (4, 2)
        assert not df.loc[0, 'novel_gene']

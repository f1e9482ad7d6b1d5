# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

"""Report generation for Spliceosome.

Functions accept individual data pieces rather than the pipeline object so
they can be called on their own.
"""

import os
from collections import OrderedDict

import numpy as np
import pandas as pd

from ..annotation.gtf import write_gtf


def transcript_matrix(estimates, annotation):
    """Transcripts x samples count matrix, rows in annotation order."""
    _index = list(annotation.transcripts)
    if not estimates:
        return pd.DataFrame(index=_index, dtype=np.float64)
    return pd.concat([e.transcript_counts for e in estimates], axis=1).reindex(_index, fill_value=0.0)


def gene_matrix(estimates, annotation):
    """Genes x samples count matrix, rows in annotation order."""
    _index = list(annotation.genes)
    if not estimates:
        return pd.DataFrame(index=_index, dtype=np.float64)
    return pd.concat([e.gene_counts for e in estimates], axis=1).reindex(_index, fill_value=0.0)


def sample_stats(estimates, read_class_sets):
    """Per-sample run statistics as a DataFrame."""
    rows = []
    for e in estimates:
        rcset = read_class_sets.get(e.sample_id)
        rows.append({
            'sample': e.sample_id,
            'records': rcset.n_records if rcset is not None else 0,
            'skipped': rcset.n_skipped if rcset is not None else 0,
            'read_classes': len(rcset) if rcset is not None else 0,
            'assigned': e.total,
            'unassigned': e.unassigned,
            'iterations': e.n_iterations,
            'final_change': e.final_change,
            'converged': e.converged,
            'log_likelihood': e.log_likelihood,
        })
    columns = ['sample', 'records', 'skipped', 'read_classes', 'assigned', 'unassigned',
               'iterations', 'final_change', 'converged', 'log_likelihood']
    return pd.DataFrame(rows, columns=columns)


def output_report(estimates, annotation, run_info, read_class_sets, outdir, exp_tag, write_annotation=False):
    """Write count matrices, run statistics and, optionally, the annotation.

    Args:
        estimates: List of ExpressionEstimate.
        annotation: Annotation the estimates were computed against.
        run_info: OrderedDict written as the ``## RunInfo`` header line.
        read_class_sets: dict of sample id to ReadClassSet.
        outdir: Output directory.
        exp_tag: Prefix for every output file.
        write_annotation: Also write ``{exp_tag}-extended_annotation.gtf``.

    Returns:
        List of written file paths.
    """
    def _path(suffix):
        return os.path.join(outdir, f'{exp_tag}-{suffix}')

    written = []

    _tx = transcript_matrix(estimates, annotation)
    _tx.index.name = 'transcript_id'
    _gmap = annotation.gene_map()
    _tx.insert(0, 'gene_id', _gmap.reindex(_tx.index).values)
    _tx.to_csv(_path('transcript_counts.tsv'), sep='\t')
    written.append(_path('transcript_counts.tsv'))

    _gene = gene_matrix(estimates, annotation)
    _gene.index.name = 'gene_id'
    _gene.to_csv(_path('gene_counts.tsv'), sep='\t')
    written.append(_path('gene_counts.tsv'))

    _comment = ['## RunInfo']
    _comment += ['{}:{}'.format(*tup) for tup in run_info.items()]
    with open(_path('run_stats.tsv'), 'w') as outh:
        outh.write('\t'.join(_comment) + '\n')
        sample_stats(estimates, read_class_sets).to_csv(outh, sep='\t', index=False)
    written.append(_path('run_stats.tsv'))

    if write_annotation:
        write_gtf(annotation, _path('extended_annotation.gtf'))
        written.append(_path('extended_annotation.gtf'))

    return written


def novel_transcript_table(report, annotation):
    """One row per novel transcript with its structure and read support."""
    _samples = sorted({s for counts in report.sample_counts.values() for s in counts})
    rows = []
    for tid in report.novel_transcripts:
        tx = annotation.transcripts[tid]
        row = OrderedDict([
            ('transcript_id', tid),
            ('gene_id', tx.gene_id),
            ('novel_gene', tx.gene_id in report.novel_genes),
            ('chrom', tx.chrom),
            ('start', tx.start),
            ('end', tx.end),
            ('strand', tx.strand),
            ('n_exons', tx.chain.n_exons),
            ('read_count', report.novel_counts[tid]),
        ])
        for s in _samples:
            row[s] = report.sample_counts[tid].get(s, 0)
        rows.append(row)
    columns = ['transcript_id', 'gene_id', 'novel_gene', 'chrom', 'start', 'end', 'strand', 'n_exons',
               'read_count'] + _samples
    return pd.DataFrame(rows, columns=columns)

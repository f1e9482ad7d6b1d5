# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

"""Spliced alignment records from SAM/BAM files."""

import logging as lg
from collections import Counter

import pysam

from . import AlignmentRecord

_FLIP = {'+': '-', '-': '+'}


def _record_strand(aln):
    """Transcript strand of an alignment.

    ``XS`` is on the reference strand. minimap2's ``ts`` is relative to the
    read, so it is flipped for reverse alignments. Without either tag the
    alignment orientation is used.
    """
    if aln.has_tag('XS'):
        return aln.get_tag('XS')
    if aln.has_tag('ts'):
        ts = aln.get_tag('ts')
        return _FLIP.get(ts, ts) if aln.is_reverse else ts
    return '-' if aln.is_reverse else '+'


def fetch_records(samfile, min_mapq=0, alninfo=None):
    """Yield AlignmentRecord for each usable primary alignment.

    Args:
        samfile: Path to a SAM or BAM file.
        min_mapq: Alignments with lower mapping quality are skipped.
        alninfo: Optional Counter updated with per-category tallies.
    """
    alninfo = alninfo if alninfo is not None else Counter()
    with pysam.AlignmentFile(samfile, check_sq=False) as sf:
        for aln in sf.fetch(until_eof=True):
            alninfo['total'] += 1
            if aln.is_unmapped:
                alninfo['unmapped'] += 1
                continue
            if aln.is_secondary or aln.is_supplementary:
                alninfo['secondary'] += 1
                continue
            if aln.mapping_quality < min_mapq:
                alninfo['low_mapq'] += 1
                continue
            alninfo['used'] += 1
            blocks = [(s + 1, e) for s, e in aln.get_blocks()]
            yield AlignmentRecord(aln.query_name, aln.reference_name, _record_strand(aln), blocks)
    lg.debug(f'{samfile}: ' + ', '.join(f'{k}={v}' for k, v in sorted(alninfo.items())))

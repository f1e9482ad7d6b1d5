# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

from collections import defaultdict

from intervaltree import Interval, IntervalTree


class _TranscriptIntervalTree:
    """Per-chromosome interval trees over transcript spans.

    Intervals are stored half-open (``end + 1``) as intervaltree expects.
    """

    def __init__(self, transcripts):
        self.itree = defaultdict(IntervalTree)
        for tx in transcripts:
            self.itree[tx.chrom].add(Interval(tx.start, tx.end + 1, tx.transcript_id))

    def overlap(self, chrom, start, end):
        """Transcript ids whose span overlaps the closed range ``start-end``."""
        if chrom not in self.itree:
            return []
        return [iv.data for iv in self.itree[chrom].overlap(start, end + 1)]

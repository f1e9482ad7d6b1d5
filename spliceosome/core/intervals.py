# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

"""Exon/intron structures and the interval arithmetic built on them.

Coordinates are 1-based and closed, as in GTF. All comparison functions
are pure; ``strand_aware`` selects whether ``+`` and ``-`` structures with
matching coordinates are considered the same.
"""

import math
from dataclasses import dataclass

from ..exceptions import InputValidationError

UNSTRANDED = '*'
STRANDS = ('+', '-', UNSTRANDED)


@dataclass(frozen=True, order=True)
class GenomicInterval:
    chrom: str
    start: int
    end: int
    strand: str = UNSTRANDED

    def __post_init__(self):
        if self.strand not in STRANDS:
            raise InputValidationError(f'Invalid strand "{self.strand}"', self.label)
        if self.start < 1 or self.start > self.end:
            raise InputValidationError('Interval start must be >= 1 and <= end', self.label)

    @property
    def label(self):
        return f'{self.chrom}:{self.start}-{self.end}({self.strand})'

    @property
    def length(self):
        return self.end - self.start + 1

    def overlap_length(self, other):
        if self.chrom != other.chrom:
            return 0
        return max(0, min(self.end, other.end) - max(self.start, other.start) + 1)


@dataclass(frozen=True)
class ExonChain:
    """Ordered, non-overlapping exons on one chromosome and strand."""

    exons: tuple

    def __post_init__(self):
        object.__setattr__(self, 'exons', tuple(self.exons))
        self.validate()

    @classmethod
    def from_blocks(cls, chrom, strand, blocks):
        """Build a chain from ``(start, end)`` pairs."""
        return cls(tuple(GenomicInterval(chrom, int(s), int(e), strand) for s, e in blocks))

    def validate(self, identifier=None):
        """Check chain invariants.

        Raises:
            InputValidationError: if the chain is empty, mixes chromosomes
                or strands, or has unsorted, overlapping or abutting exons.
        """
        if not self.exons:
            raise InputValidationError('Exon chain has no exons', identifier)
        first = self.exons[0]
        identifier = identifier or first.label
        for prev, cur in zip(self.exons, self.exons[1:]):
            if cur.chrom != first.chrom:
                raise InputValidationError('Exons on different chromosomes', identifier)
            if cur.strand != first.strand:
                raise InputValidationError('Exons on different strands', identifier)
            if cur.start <= prev.end:
                raise InputValidationError('Exons are unsorted or overlapping', identifier)
            if cur.start - prev.end < 2:
                raise InputValidationError('Adjacent exons are not separated by an intron', identifier)

    @property
    def chrom(self):
        return self.exons[0].chrom

    @property
    def strand(self):
        return self.exons[0].strand

    @property
    def start(self):
        return self.exons[0].start

    @property
    def end(self):
        return self.exons[-1].end

    @property
    def span(self):
        return self.end - self.start + 1

    @property
    def n_exons(self):
        return len(self.exons)

    @property
    def is_spliced(self):
        return len(self.exons) > 1

    @property
    def length(self):
        """Number of exonic bases."""
        return sum(e.length for e in self.exons)

    @property
    def blocks(self):
        return tuple((e.start, e.end) for e in self.exons)

    @property
    def introns(self):
        return tuple((a.end + 1, b.start - 1) for a, b in zip(self.exons, self.exons[1:]))

    def with_strand(self, strand):
        return type(self).from_blocks(self.chrom, strand, self.blocks)

    def __str__(self):
        _blocks = ','.join(f'{s}-{e}' for s, e in self.blocks)
        return f'{self.chrom}:{_blocks}({self.strand})'


def strands_compatible(a, b, strand_aware=False):
    """Whether two strand symbols may describe the same molecule."""
    if not strand_aware:
        return True
    return a == b or UNSTRANDED in (a, b)


def _comparable(a, b, strand_aware):
    return a.chrom == b.chrom and strands_compatible(a.strand, b.strand, strand_aware)


def _spans_overlap(a, b):
    return a.start <= b.end and b.start <= a.end


def overlap_length(a, b, strand_aware=False):
    """Number of exonic bases shared by chains ``a`` and ``b``."""
    if not _comparable(a, b, strand_aware) or not _spans_overlap(a, b):
        return 0
    total = 0
    i = j = 0
    ea, eb = a.exons, b.exons
    while i < len(ea) and j < len(eb):
        x, y = ea[i], eb[j]
        total += max(0, min(x.end, y.end) - max(x.start, y.start) + 1)
        if x.end < y.end:
            i += 1
        else:
            j += 1
    return total


def _introns_match(x, y, tolerance):
    return abs(x[0] - y[0]) <= tolerance and abs(x[1] - y[1]) <= tolerance


def is_subset(a, b, tolerance=0, strand_aware=False):
    """Whether chain ``a`` is a structural subset of chain ``b``.

    The introns of ``a`` must match a consecutive run of introns of ``b``
    (each boundary within ``tolerance`` bases), and the terminal exons of
    ``a`` must stay inside the exons of ``b`` flanking that run. A
    mono-exon ``a`` must lie inside a single exon of ``b``.
    """
    if not _comparable(a, b, strand_aware):
        return False
    if a.start < b.start or a.end > b.end:
        return False

    a_introns = a.introns
    b_introns = b.introns
    if not a_introns:
        return any(e.start <= a.start and a.end <= e.end for e in b.exons)

    m = len(a_introns)
    for k in range(len(b_introns) - m + 1):
        if not all(_introns_match(x, y, tolerance) for x, y in zip(a_introns, b_introns[k:k + m])):
            continue
        if a.start >= b.exons[k].start and a.end <= b.exons[k + m].end:
            return True
    return False


def junction_distance(a, b, strand_aware=False):
    """Structural distance between two chains.

    Sum of absolute intron boundary displacements when both chains have
    the same number of introns. Two overlapping mono-exon chains are
    compared by their terminal positions. Anything else is infinitely far.
    """
    if not _comparable(a, b, strand_aware):
        return math.inf
    ia, ib = a.introns, b.introns
    if len(ia) != len(ib):
        return math.inf
    if not ia:
        if not _spans_overlap(a, b):
            return math.inf
        return abs(a.start - b.start) + abs(a.end - b.end)
    return sum(abs(x[0] - y[0]) + abs(x[1] - y[1]) for x, y in zip(ia, ib))


def max_boundary_shift(a, b, strand_aware=False):
    """Largest single boundary displacement between two chains with the
    same intron count (terminal positions for mono-exon chains)."""
    if not _comparable(a, b, strand_aware):
        return math.inf
    ia, ib = a.introns, b.introns
    if len(ia) != len(ib):
        return math.inf
    if not ia:
        if not _spans_overlap(a, b):
            return math.inf
        return max(abs(a.start - b.start), abs(a.end - b.end))
    return max(max(abs(x[0] - y[0]), abs(x[1] - y[1])) for x, y in zip(ia, ib))


def min_junction_distance(chain, transcripts, strand_aware=False):
    """Find the structurally nearest transcript.

    Args:
        chain: Query ExonChain.
        transcripts: Iterable of objects with ``chain`` and
            ``transcript_id`` attributes.
        strand_aware: Strand matching mode.

    Returns:
        (distance, transcript) tuple; ``(inf, None)`` if nothing is
        comparable. Ties go to the lowest start, then the lowest id.
    """
    best_dist, best_tx = math.inf, None
    for tx in sorted(transcripts, key=lambda t: (t.chain.start, t.transcript_id)):
        d = junction_distance(chain, tx.chain, strand_aware)
        if d < best_dist:
            best_dist, best_tx = d, tx
    return best_dist, best_tx

# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

"""Read classes: reads grouped by splice pattern.

Spliced reads sharing the same intron chain form one read class whose
terminal coordinates are the median of its members. Unspliced reads are
merged when they overlap.
"""

import logging as lg
import math
from collections import defaultdict
from dataclasses import dataclass, replace

import numpy as np

from ..exceptions import InputValidationError
from .intervals import UNSTRANDED, ExonChain, is_subset


@dataclass(frozen=True)
class ReadClass:
    chain: ExonChain
    count: int
    sample_id: str
    compatible: frozenset = frozenset()

    @property
    def chrom(self):
        return self.chain.chrom

    @property
    def strand(self):
        return self.chain.strand

    @property
    def start(self):
        return self.chain.start

    @property
    def end(self):
        return self.chain.end

    @property
    def label(self):
        return f'{self.sample_id}:{self.chain}'

    def with_compatibility(self, compatible):
        return replace(self, compatible=frozenset(compatible))

    def validate(self):
        """Raise InputValidationError for malformed chains or counts."""
        self.chain.validate(self.label)
        if not math.isfinite(self.count) or self.count < 0:
            raise InputValidationError(f'Invalid read count {self.count}', self.label)


def compatible_transcripts(chain, annotation, tolerance=0, strand_aware=False):
    """Transcript ids in ``annotation`` of which ``chain`` is a structural subset."""
    hits = annotation.overlapping(chain.chrom, chain.start, chain.end, chain.strand, strand_aware)
    return frozenset(tx.transcript_id for tx in hits if is_subset(chain, tx.chain, tolerance, strand_aware))


@dataclass(frozen=True)
class ReadClassSet:
    """All read classes of one sample."""
    sample_id: str
    read_classes: tuple = ()
    n_records: int = 0
    n_skipped: int = 0

    def __post_init__(self):
        object.__setattr__(self, 'read_classes', tuple(self.read_classes))

    def __len__(self):
        return len(self.read_classes)

    def __iter__(self):
        return iter(self.read_classes)

    @property
    def total(self):
        return sum(rc.count for rc in self.read_classes)

    def validate(self):
        for rc in self.read_classes:
            rc.validate()

    def with_compatibility(self, annotation, tolerance=0, strand_aware=False):
        """Return a copy with compatibility recomputed against ``annotation``."""
        _rcs = tuple(
            rc.with_compatibility(compatible_transcripts(rc.chain, annotation, tolerance, strand_aware))
            for rc in self.read_classes
        )
        return replace(self, read_classes=_rcs)


def _merge_blocks(blocks, min_intron_length):
    """Sort blocks and join those separated by fewer than
    ``min_intron_length`` bases."""
    merged = []
    for start, end in sorted(blocks):
        if merged and start - merged[-1][1] - 1 < min_intron_length:
            if start <= merged[-1][1]:
                raise InputValidationError(f'Overlapping alignment blocks {merged[-1]} and {(start, end)}')
            merged[-1][1] = max(merged[-1][1], end)
        else:
            merged.append([start, end])
    return [tuple(b) for b in merged]


def _consensus_strand(strands):
    _known = set(strands) - {UNSTRANDED}
    return _known.pop() if len(_known) == 1 else UNSTRANDED


class ReadClassBuilder:
    """Group alignment records into read classes.

    Args:
        min_intron_length: Gaps shorter than this are treated as deletions
            and the flanking blocks joined.
        strand_aware: Keep reads from different strands apart.
        junction_tolerance: Intron boundary tolerance used when computing
            compatibility with an annotation.
    """

    def __init__(self, min_intron_length=20, strand_aware=False, junction_tolerance=10):
        self.min_intron_length = min_intron_length
        self.strand_aware = strand_aware
        self.junction_tolerance = junction_tolerance

    @classmethod
    def from_params(cls, params):
        return cls(params.min_intron_length, params.strand_aware, params.junction_tolerance)

    def _strand_key(self, strand):
        return strand if self.strand_aware else UNSTRANDED

    def build(self, sample_id, records, annotation=None):
        """Build the read-class set of one sample.

        Args:
            sample_id: Sample identifier.
            records: Iterable of AlignmentRecord.
            annotation: If given, compatibility sets are filled in.

        Returns:
            ReadClassSet

        Raises:
            InputValidationError: on malformed records; names the sample and read.
        """
        spliced = defaultdict(list)
        unspliced = defaultdict(list)
        n_records = n_skipped = 0

        for rec in records:
            n_records += 1
            if not rec.blocks:
                n_skipped += 1
                continue
            try:
                blocks = _merge_blocks(rec.blocks, self.min_intron_length)
                chain = ExonChain.from_blocks(rec.chrom, rec.strand, blocks)
            except InputValidationError as exc:
                raise InputValidationError(exc.message, f'{sample_id}:{rec.read_id}') from exc

            key = (chain.chrom, self._strand_key(chain.strand))
            if chain.is_spliced:
                spliced[key + (chain.introns,)].append(chain)
            else:
                unspliced[key].append(chain)

        read_classes = [self._collapse_spliced(sample_id, chains) for chains in spliced.values()]
        for chains in unspliced.values():
            read_classes.extend(self._collapse_unspliced(sample_id, chains))
        read_classes.sort(key=lambda rc: (rc.chrom, rc.start, rc.end, rc.chain.introns, rc.strand))

        rcset = ReadClassSet(sample_id, read_classes, n_records=n_records, n_skipped=n_skipped)
        if annotation is not None:
            rcset = rcset.with_compatibility(annotation, self.junction_tolerance, self.strand_aware)

        lg.info(f'{sample_id}: {n_records} records in {len(rcset)} read classes ({n_skipped} skipped)')
        return rcset

    @staticmethod
    def _collapse_spliced(sample_id, chains):
        introns = chains[0].introns
        start = int(math.floor(np.median([c.start for c in chains])))
        end = int(math.ceil(np.median([c.end for c in chains])))
        strand = _consensus_strand(c.strand for c in chains)

        bounds = [start] + [b for intron in introns for b in (intron[0] - 1, intron[1] + 1)] + [end]
        blocks = list(zip(bounds[::2], bounds[1::2]))
        return ReadClass(ExonChain.from_blocks(chains[0].chrom, strand, blocks), len(chains), sample_id)

    @staticmethod
    def _collapse_unspliced(sample_id, chains):
        chains = sorted(chains, key=lambda c: (c.start, c.end))
        groups = []
        for c in chains:
            if groups and c.start <= groups[-1][2]:
                groups[-1][1].append(c)
                groups[-1][2] = max(groups[-1][2], c.end)
            else:
                groups.append([c.start, [c], c.end])

        ret = []
        for start, members, end in groups:
            strand = _consensus_strand(c.strand for c in members)
            chain = ExonChain.from_blocks(members[0].chrom, strand, [(start, end)])
            ret.append(ReadClass(chain, len(members), sample_id))
        return ret

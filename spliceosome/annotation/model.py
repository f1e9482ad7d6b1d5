# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

"""Transcript, gene and annotation models.

An :class:`Annotation` is built once and never modified; extending it
produces a new object.
"""

import logging as lg
from collections import Counter, OrderedDict
from dataclasses import dataclass
from types import MappingProxyType

import pandas as pd

from ..core.intervals import UNSTRANDED, strands_compatible
from ..exceptions import InputValidationError
from .intervaltree import _TranscriptIntervalTree


@dataclass(frozen=True)
class Transcript:
    transcript_id: str
    chain: object  # ExonChain
    gene_id: str
    novel: bool = False

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
    def length(self):
        return self.chain.length

    @property
    def provenance(self):
        return 'novel' if self.novel else 'known'


@dataclass(frozen=True)
class Gene:
    gene_id: str
    transcript_ids: tuple
    chrom: str
    strand: str
    start: int
    end: int
    novel: bool = False


def _build_gene(gene_id, transcripts):
    chroms = {tx.chrom for tx in transcripts}
    if len(chroms) > 1:
        raise InputValidationError('Gene has transcripts on several chromosomes', gene_id)
    strands = {tx.strand for tx in transcripts}
    strand = strands.pop() if len(strands) == 1 else UNSTRANDED
    return Gene(
        gene_id=gene_id,
        transcript_ids=tuple(tx.transcript_id for tx in transcripts),
        chrom=transcripts[0].chrom,
        strand=strand,
        start=min(tx.start for tx in transcripts),
        end=max(tx.end for tx in transcripts),
        novel=all(tx.novel for tx in transcripts),
    )


class Annotation:
    """Read-only mapping of genes to transcripts with a spatial index.

    Args:
        transcripts: Iterable of :class:`Transcript`.

    Raises:
        InputValidationError: on duplicate transcript ids or genes spread
            across chromosomes.
    """

    def __init__(self, transcripts=()):
        _transcripts = OrderedDict()
        _by_gene = OrderedDict()
        for tx in transcripts:
            if tx.transcript_id in _transcripts:
                raise InputValidationError('Duplicate transcript id', tx.transcript_id)
            _transcripts[tx.transcript_id] = tx
            _by_gene.setdefault(tx.gene_id, []).append(tx)

        _genes = OrderedDict()
        for gene_id, txs in _by_gene.items():
            _genes[gene_id] = _build_gene(gene_id, txs)

        self._transcripts = _transcripts
        self._genes = _genes
        self._index = _TranscriptIntervalTree(_transcripts.values())

    @property
    def transcripts(self):
        """Mapping of transcript id to :class:`Transcript`."""
        return MappingProxyType(self._transcripts)

    @property
    def genes(self):
        """Mapping of gene id to :class:`Gene`."""
        return MappingProxyType(self._genes)

    def __len__(self):
        return len(self._transcripts)

    def __contains__(self, transcript_id):
        return transcript_id in self._transcripts

    def __eq__(self, other):
        if not isinstance(other, Annotation):
            return NotImplemented
        return dict(self._transcripts) == dict(other._transcripts)

    __hash__ = None

    def __repr__(self):
        _novel = sum(tx.novel for tx in self._transcripts.values())
        return f'<Annotation genes={len(self._genes)} transcripts={len(self._transcripts)} novel={_novel}>'

    def gene_of(self, transcript_id):
        return self._genes[self._transcripts[transcript_id].gene_id]

    def transcripts_of(self, gene_id):
        return [self._transcripts[t] for t in self._genes[gene_id].transcript_ids]

    def overlapping(self, chrom, start, end, strand=UNSTRANDED, strand_aware=False):
        """Transcripts whose span overlaps ``chrom:start-end``, ordered by
        start then id."""
        hits = [
            self._transcripts[tid]
            for tid in self._index.overlap(chrom, start, end)
        ]
        hits = [tx for tx in hits if strands_compatible(tx.strand, strand, strand_aware)]
        hits.sort(key=lambda tx: (tx.start, tx.transcript_id))
        return hits

    def feature_length(self):
        """Get feature lengths

        Returns:
            (dict of str: int): Transcript ids to exonic lengths

        """
        return Counter({tid: tx.length for tid, tx in self._transcripts.items()})

    def gene_map(self):
        """pandas Series mapping transcript id to gene id."""
        return pd.Series(
            {tid: tx.gene_id for tid, tx in self._transcripts.items()},
            dtype=object,
        )

    def validate(self):
        """Re-check every transcript structure. A failure here is fatal for
        the whole run."""
        for tid, tx in self._transcripts.items():
            tx.chain.validate(tid)
        lg.debug(f'Validated {len(self._transcripts)} transcripts in {len(self._genes)} genes')

    def extend(self, transcripts):
        """Return a new Annotation containing these transcripts plus ``transcripts``."""
        return type(self)(list(self._transcripts.values()) + list(transcripts))

    def to_frame(self):
        rows = [
            {
                'transcript_id': tx.transcript_id,
                'gene_id': tx.gene_id,
                'chrom': tx.chrom,
                'start': tx.start,
                'end': tx.end,
                'strand': tx.strand,
                'n_exons': tx.chain.n_exons,
                'length': tx.length,
                'provenance': tx.provenance,
            }
            for tx in self._transcripts.values()
        ]
        columns = ['transcript_id', 'gene_id', 'chrom', 'start', 'end', 'strand', 'n_exons', 'length', 'provenance']
        return pd.DataFrame(rows, columns=columns)

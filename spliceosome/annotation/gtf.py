# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

"""GTF input and output for annotations."""

import logging as lg
import re
from collections import OrderedDict, defaultdict, namedtuple

from ..core.intervals import STRANDS, UNSTRANDED, ExonChain
from ..exceptions import InputValidationError
from .model import Annotation, Transcript

GTFRow = namedtuple('GTFRow', ['chrom', 'source', 'feature', 'start', 'end', 'score', 'strand', 'frame', 'attribute'])

_ATTR_RE = re.compile(r'(\w+)\s+"(.+?)";')


def load_gtf(gtf_file, feature_type='exon', gene_key='gene_id', transcript_key='transcript_id'):
    """Load a GTF into an :class:`Annotation`.

    Rows of ``feature_type`` are grouped by ``transcript_key``; the gene is
    taken from ``gene_key`` (falling back to the transcript id). A
    ``provenance "novel"`` attribute, as written by :func:`write_gtf`,
    marks novel transcripts.

    Args:
        gtf_file: Path or open file handle.

    Raises:
        InputValidationError: on malformed rows or exon structures.
    """
    _meta = OrderedDict()
    _exons = defaultdict(list)

    _opened = isinstance(gtf_file, str)
    fh = open(gtf_file) if _opened else gtf_file  # noqa: SIM115
    try:
        for rownum, line in enumerate(fh):
            if line.startswith('#') or not line.strip():
                continue
            fields = line.rstrip('\n').split('\t')
            if len(fields) != 9:
                raise InputValidationError(f'Malformed GTF row {rownum}: expected 9 columns, got {len(fields)}')
            f = GTFRow(*fields)
            if f.feature != feature_type:
                continue
            attr = dict(_ATTR_RE.findall(f.attribute))
            if transcript_key not in attr:
                lg.warning(f'Skipping row {rownum}: missing attribute "{transcript_key}"')
                continue

            tid = attr[transcript_key]
            strand = f.strand if f.strand in STRANDS else UNSTRANDED
            meta = (attr.get(gene_key, tid), f.chrom, strand, attr.get('provenance') == 'novel')
            if _meta.setdefault(tid, meta)[1:3] != meta[1:3]:
                raise InputValidationError('Exons on inconsistent chromosome or strand', tid)
            try:
                _exons[tid].append((int(f.start), int(f.end)))
            except ValueError as exc:
                raise InputValidationError(f'Malformed coordinates in GTF row {rownum}', tid) from exc
    finally:
        if _opened:
            fh.close()

    transcripts = []
    for tid, (gid, chrom, strand, novel) in _meta.items():
        try:
            chain = ExonChain.from_blocks(chrom, strand, sorted(_exons[tid]))
        except InputValidationError as exc:
            raise InputValidationError(exc.message, tid) from exc
        transcripts.append(Transcript(tid, chain, gid, novel=novel))

    annot = Annotation(transcripts)
    lg.info(f'Loaded {len(annot.transcripts)} transcripts in {len(annot.genes)} genes')
    return annot


def _format_attrs(tx, exon_number=None):
    ret = f'gene_id "{tx.gene_id}"; transcript_id "{tx.transcript_id}";'
    if exon_number is not None:
        ret += f' exon_number "{exon_number}";'
    ret += f' provenance "{tx.provenance}";'
    return ret


def write_gtf(annotation, filename, source='spliceosome'):
    """Write transcript and exon rows for every transcript, sorted by
    position."""
    _txs = sorted(annotation.transcripts.values(), key=lambda t: (t.chrom, t.start, t.end, t.transcript_id))
    with open(filename, 'w') as outh:
        for tx in _txs:
            strand = tx.strand if tx.strand != UNSTRANDED else '.'
            row = [tx.chrom, source, 'transcript', tx.start, tx.end, '.', strand, '.', _format_attrs(tx)]
            outh.write('\t'.join(map(str, row)) + '\n')
            for n, (start, end) in enumerate(tx.chain.blocks, 1):
                row = [tx.chrom, source, 'exon', start, end, '.', strand, '.', _format_attrs(tx, n)]
                outh.write('\t'.join(map(str, row)) + '\n')
    lg.info(f'Wrote {len(_txs)} transcripts to {filename}')

# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

"""Annotation extension from pooled read classes.

Read classes from every sample are pooled and partitioned into loci
together with the known genes they overlap. Each locus is clustered and
filtered independently; identifiers for the surviving novel structures are
handed out afterwards, in locus order, so the result does not depend on
how the loci were scheduled.
"""

import logging as lg
import warnings
from collections import Counter, OrderedDict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from ..annotation.model import Transcript
from ..exceptions import EmptyInputWarning, InputValidationError
from .intervals import (
    UNSTRANDED,
    is_subset,
    junction_distance,
    max_boundary_shift,
    min_junction_distance,
    overlap_length,
)
from .params import DiscoveryParams

REJECT_REASONS = ('invalid', 'min_read_count', 'known_subset', 'read_fraction', 'sample_number', 'exon_distance')


@dataclass
class ExtensionReport:
    """What happened to the read classes and candidates of one extension run."""
    n_samples: int = 0
    n_read_classes: int = 0
    n_loci: int = 0
    n_candidates: int = 0
    rejected: Counter = field(default_factory=Counter)
    novel_genes: list = field(default_factory=list)
    novel_transcripts: list = field(default_factory=list)
    novel_counts: dict = field(default_factory=OrderedDict)
    sample_counts: dict = field(default_factory=OrderedDict)
    aborted_loci: list = field(default_factory=list)

    def to_dict(self):
        ret = OrderedDict([
            ('samples', self.n_samples),
            ('read_classes', self.n_read_classes),
            ('loci', self.n_loci),
            ('candidates', self.n_candidates),
        ])
        for reason in REJECT_REASONS:
            ret[f'rejected_{reason}'] = self.rejected[reason]
        ret['novel_genes'] = len(self.novel_genes)
        ret['novel_transcripts'] = len(self.novel_transcripts)
        ret['aborted_loci'] = len(self.aborted_loci)
        return ret


class IdCounter:
    """Generates ``{prefix}gene.{n}`` and ``{prefix}tx.{n}`` identifiers,
    skipping any already in ``taken``."""

    def __init__(self, prefix='', taken=()):
        self.prefix = prefix
        self.gene = 0
        self.tx = 0
        self._taken = set(taken)

    def _next(self, kind):
        while True:
            n = getattr(self, kind) + 1
            setattr(self, kind, n)
            _id = f'{self.prefix}{kind}.{n}'
            if _id not in self._taken:
                self._taken.add(_id)
                return _id

    def next_gene(self):
        return self._next('gene')

    def next_transcript(self):
        return self._next('tx')


@dataclass
class _Locus:
    chrom: str
    strand: str
    start: int
    end: int
    read_classes: list = field(default_factory=list)
    gene_ids: list = field(default_factory=list)

    def add(self, start, end, kind, obj):
        self.start = min(self.start, start)
        self.end = max(self.end, end)
        if kind == 0:
            self.read_classes.append(obj)
        else:
            self.gene_ids.append(obj)

    @property
    def label(self):
        return f'{self.chrom}:{self.start}-{self.end}({self.strand})'


@dataclass
class _Candidate:
    chain: object
    count: float
    sample_counts: Counter
    known_distance: float

    @property
    def start(self):
        return self.chain.start


def _consensus_strand(chains):
    _known = {c.strand for c in chains} - {UNSTRANDED}
    return _known.pop() if len(_known) == 1 else UNSTRANDED


def _envelope_chain(rep, chains):
    """``rep`` with its terminal exons stretched to the outermost ends of
    ``chains`` and the consensus strand of ``chains``."""
    blocks = [list(b) for b in rep.blocks]
    blocks[0][0] = min(c.start for c in chains)
    blocks[-1][1] = max(c.end for c in chains)
    return type(rep).from_blocks(rep.chrom, _consensus_strand(chains), blocks)


def _merge_spans(items):
    """Group sorted ``(chrom, strand, start, end, kind, obj)`` items into
    loci of overlapping spans."""
    loci = []
    cur = None
    for chrom, strand, start, end, kind, obj in sorted(items, key=lambda t: t[:5]):
        if cur is None or (chrom, strand) != (cur.chrom, cur.strand) or start > cur.end:
            cur = _Locus(chrom, strand, start, end)
            loci.append(cur)
        cur.add(start, end, kind, obj)
    return loci


def _host_locus(loci, chrom, start, end):
    """Stranded locus sharing the most span with ``start..end``; ties go to
    the earlier locus."""
    best, best_ov = None, 0
    for locus in loci:
        if locus.chrom != chrom:
            continue
        _ov = min(end, locus.end) - max(start, locus.start) + 1
        if _ov > best_ov:
            best, best_ov = locus, _ov
    return best


def partition_loci(read_classes, annotation, strand_aware=False):
    """Merge overlapping read-class and gene spans into loci.

    Loci are per chromosome, and per strand in strand-aware mode. There,
    unstranded read classes and genes join the stranded locus they overlap
    most, and form loci of their own only where no stranded locus overlaps
    them. Only loci holding at least one read class are returned, ordered
    by chromosome, strand and start.
    """
    items = []
    for rc in read_classes:
        _strand = rc.strand if strand_aware else UNSTRANDED
        items.append((rc.chrom, _strand, rc.start, rc.end, 0, rc))
    for gene in annotation.genes.values():
        _strand = gene.strand if strand_aware else UNSTRANDED
        items.append((gene.chrom, _strand, gene.start, gene.end, 1, gene.gene_id))

    if not strand_aware:
        loci = _merge_spans(items)
    else:
        loci = _merge_spans(t for t in items if t[1] != UNSTRANDED)
        loose = []
        for item in sorted((t for t in items if t[1] == UNSTRANDED), key=lambda t: t[:5]):
            chrom, _strand, start, end, kind, obj = item
            host = _host_locus(loci, chrom, start, end)
            if host is None:
                loose.append(item)
            else:
                host.add(start, end, kind, obj)
        loci.extend(_merge_spans(loose))
        loci.sort(key=lambda lc: (lc.chrom, lc.strand, lc.start, lc.end))
    return [locus for locus in loci if locus.read_classes]


class AnnotationExtender:
    """Extend an annotation with novel structures supported by read classes.

    Args:
        params: DiscoveryParams.
        strand_aware: Strand matching mode.
        junction_tolerance: Intron boundary tolerance, in bases, for
            clustering and known-subset removal.
        ncpu: Worker threads used for loci.
    """

    def __init__(self, params=None, strand_aware=False, junction_tolerance=10, ncpu=1):
        self.params = params or DiscoveryParams()
        self.strand_aware = strand_aware
        self.junction_tolerance = junction_tolerance
        self.ncpu = ncpu

    @classmethod
    def from_params(cls, run_params):
        return cls(
            run_params.discovery_params,
            strand_aware=run_params.strand_aware,
            junction_tolerance=run_params.junction_tolerance,
            ncpu=run_params.ncpu,
        )

    def extend(self, read_class_sets, annotation):
        """Build the extended annotation.

        Args:
            read_class_sets: Sequence of ReadClassSet, one per sample.
            annotation: Base Annotation.

        Returns:
            (Annotation, ExtensionReport). The base annotation object itself
            is returned when nothing novel survives.
        """
        read_class_sets = list(read_class_sets)
        report = ExtensionReport(n_samples=len(read_class_sets))
        pooled = [rc for rcset in read_class_sets for rc in rcset]
        report.n_read_classes = len(pooled)

        if not pooled:
            self._warn_empty('No read classes in any sample; annotation unchanged')
            return annotation, report

        loci = partition_loci(pooled, annotation, self.strand_aware)
        report.n_loci = len(loci)
        lg.info(f'Extending annotation: {len(pooled)} read classes in {len(loci)} loci')

        with ThreadPoolExecutor(max_workers=self.ncpu) as pool:
            futures = [pool.submit(self._process_locus, locus, annotation) for locus in loci]

        counter = IdCounter(self.params.id_prefix, taken=set(annotation.transcripts) | set(annotation.genes))
        novel = []
        for locus, fut in zip(loci, futures):
            try:
                accepted, rejected, n_candidates = fut.result()
            except InputValidationError as exc:
                lg.warning(f'Skipping locus {locus.label}: {exc}')
                report.aborted_loci.append((locus.label, str(exc)))
                report.rejected['invalid'] += len(locus.read_classes)
                continue
            report.rejected.update(rejected)
            report.n_candidates += n_candidates

            _new_genes = {}
            for cand, (kind, ref) in accepted:
                if kind == 'known':
                    gene_id = ref
                else:
                    if ref not in _new_genes:
                        _new_genes[ref] = counter.next_gene()
                        report.novel_genes.append(_new_genes[ref])
                    gene_id = _new_genes[ref]
                tx = Transcript(counter.next_transcript(), cand.chain, gene_id, novel=True)
                novel.append(tx)
                report.novel_transcripts.append(tx.transcript_id)
                report.novel_counts[tx.transcript_id] = cand.count
                report.sample_counts[tx.transcript_id] = dict(sorted(cand.sample_counts.items()))

        if not novel:
            self._warn_empty('No novel candidates passed filtering; annotation unchanged')
            return annotation, report

        extended = annotation.extend(novel)
        lg.info(f'Added {len(novel)} novel transcripts ({len(report.novel_genes)} novel genes)')
        return extended, report

    @staticmethod
    def _warn_empty(msg):
        lg.warning(msg)
        warnings.warn(msg, EmptyInputWarning, stacklevel=3)

    def _process_locus(self, locus, annotation):
        """Cluster, filter and place the read classes of one locus.

        Returns:
            (accepted, rejected, n_candidates) where ``accepted`` is a list
            of ``(candidate, (kind, ref))`` in assignment order; ``kind`` is
            ``'known'`` with a gene id or ``'novel'`` with a locus-local key.

        Raises:
            InputValidationError: if any read class in the locus is malformed.
        """
        p = self.params
        tol, sa = self.junction_tolerance, self.strand_aware
        for rc in locus.read_classes:
            rc.validate()

        known = [tx for gid in locus.gene_ids for tx in annotation.transcripts_of(gid)]
        locus_total = sum(rc.count for rc in locus.read_classes)

        rejected = Counter()
        survivors = []
        for rc in locus.read_classes:
            if rc.count < p.min_read_count:
                rejected['min_read_count'] += 1
            elif p.remove_known_subset and any(is_subset(rc.chain, tx.chain, tol, sa) for tx in known):
                rejected['known_subset'] += 1
            else:
                survivors.append(rc)

        candidates = self._cluster(survivors, known)

        passed = []
        for cand in candidates:
            _frac = cand.count / locus_total if locus_total > 0 else 0.0
            _nsamples = sum(1 for c in cand.sample_counts.values() if c >= p.min_read_count)
            if _frac < p.min_read_fraction_by_gene:
                rejected['read_fraction'] += 1
            elif _nsamples < p.min_sample_number:
                rejected['sample_number'] += 1
            elif cand.known_distance < p.min_exon_distance:
                rejected['exon_distance'] += 1
            else:
                passed.append(cand)

        accepted = self._assign_genes(passed, known, annotation)
        lg.debug(f'Locus {locus.label}: {len(candidates)} candidates, {len(accepted)} accepted')
        return accepted, rejected, len(candidates)

    def _cluster(self, read_classes, known):
        """Cluster read classes with identical or near-identical chains."""
        sa = self.strand_aware
        groups = OrderedDict()
        for rc in read_classes:
            _key = (rc.strand if sa else UNSTRANDED, rc.chain.blocks)
            groups.setdefault(_key, []).append(rc)

        _groups = sorted(
            groups.values(),
            key=lambda g: (-sum(rc.count for rc in g), g[0].start, g[0].end, g[0].chain.introns),
        )

        clusters = []
        for members in _groups:
            chain = members[0].chain
            best, best_key = None, None
            for cl in clusters:
                if max_boundary_shift(chain, cl['rep'], sa) > self.junction_tolerance:
                    continue
                _k = (junction_distance(chain, cl['rep'], sa), cl['known_distance'], cl['rep'].start)
                if best_key is None or _k < best_key:
                    best, best_key = cl, _k
            if best is None:
                best = {
                    'rep': chain,
                    'members': [],
                    'known_distance': min_junction_distance(chain, known, sa)[0],
                }
                clusters.append(best)
            best['members'].extend(members)

        candidates = []
        for cl in clusters:
            _chains = [rc.chain for rc in cl['members']]
            sample_counts = Counter()
            for rc in cl['members']:
                sample_counts[rc.sample_id] += rc.count
            candidates.append(_Candidate(
                chain=_envelope_chain(cl['rep'], _chains),
                count=sum(sample_counts.values()),
                sample_counts=sample_counts,
                known_distance=cl['known_distance'],
            ))
        return candidates

    def _assign_genes(self, candidates, known, annotation):
        """Place each candidate in the gene it overlaps most, or a new gene."""
        sa = self.strand_aware
        # gene key -> [sort key, strand, chains]
        genes = OrderedDict()
        for tx in known:
            gene = annotation.genes[tx.gene_id]
            _entry = genes.setdefault(('known', gene.gene_id), [(gene.start, 0, gene.gene_id), gene.strand, []])
            _entry[2].append(tx.chain)

        accepted = []
        n_new = 0
        for cand in sorted(candidates, key=lambda c: (c.start, c.chain.blocks, c.chain.strand)):
            best, best_key = None, None
            for gkey, (sort_key, _strand, chains) in genes.items():
                _ov = max(overlap_length(cand.chain, c, sa) for c in chains)
                if _ov < self.params.min_exon_overlap or _ov == 0:
                    continue
                _k = (-_ov, sort_key)
                if best_key is None or _k < best_key:
                    best, best_key = gkey, _k

            if best is None:
                n_new += 1
                best = ('novel', n_new)
                genes[best] = [(cand.start, 1, n_new), cand.chain.strand, []]
            elif cand.chain.strand == UNSTRANDED and genes[best][1] != UNSTRANDED:
                cand.chain = cand.chain.with_strand(genes[best][1])

            genes[best][2].append(cand.chain)
            accepted.append((cand, best))
        return accepted

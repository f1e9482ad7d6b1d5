# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

""" Spliceosome run

"""
import logging as lg
import os
import sys
from time import time

from . import SubcommandOptions, configure_logging
from .console import Stopwatch
from ..annotation.gtf import load_gtf
from ..core.ingest import BamInput, sample_id_from_path
from ..core.model import Spliceosome
from ..core.params import RunParams
from ..utils.helpers import format_minutes as fmtmins


_INPUT_OPTS = """
    - Input Options:
        - gtffile:
            positional: True
            help: Path to the base annotation (GTF format).
        - samfiles:
            positional: True
            nargs: "+"
            help: Alignment files, one per sample, in SAM or BAM format. The
                  sample id is the file name without its extension.
        - min_mapq:
            type: int
            default: 0
            help: Skip alignments with lower mapping quality.
        - min_intron_length:
            type: int
            default: 20
            help: Gaps shorter than this are treated as deletions, not introns.
        - strand_aware:
            action: store_true
            help: Only match structures on the same strand.
    - Reporting Options:
        - quiet:
            action: store_true
            help: Silence (most) output.
        - verbose:
            action: store_true
            help: Show detailed progress including EM iterations and timing.
        - debug:
            action: store_true
            help: Print debug messages.
        - logfile:
            type: argparse.FileType('w')
            help: Log output to this file.
        - outdir:
            default: .
            help: Output directory.
        - exp_tag:
            default: spliceosome
            help: Experiment tag, used as prefix for output files.
"""

_RUN_MODE_OPTS = """
    - Run Modes:
        - no_discovery:
            action: store_true
            help: Quantify against the base annotation without extending it.
"""

_DISCOVERY_OPTS = """
    - Discovery Parameters:
        - min_read_count:
            type: int
            default: 2
            help: Minimum read count of a read class within one sample.
        - min_read_fraction_by_gene:
            type: float
            default: 0.05
            help: Minimum fraction of the locus read count a novel candidate
                  must carry.
        - min_sample_number:
            type: int
            default: 1
            help: Number of samples in which a candidate must reach
                  --min_read_count.
        - min_exon_distance:
            type: int
            default: 35
            help: Candidates closer than this junction distance to a known
                  transcript are rejected.
        - min_exon_overlap:
            type: int
            default: 10
            help: Minimum exonic overlap, in bases, for a novel transcript to
                  join an existing gene.
        - keep_known_subset:
            action: store_true
            help: Keep read classes that are structural subsets of known
                  transcripts as discovery candidates.
        - id_prefix:
            default: ""
            help: Prefix for novel gene and transcript identifiers.
        - junction_tolerance:
            type: int
            default: 10
            help: Intron boundaries within this many bases are considered
                  equal.
"""

_EM_OPTS = """
    - EM Parameters:
        - max_iterations:
            type: int
            default: 10000
            help: EM Algorithm maximum iterations.
        - convergence_threshold:
            type: float
            default: 0.0001
            help: Stop when the largest relative change in abundance falls
                  below this value.
        - bias_correction:
            action: store_true
            help: Correct abundances for transcript length.
"""

_PERFORMANCE_OPTS = """
    - Performance Options:
        - ncpu:
            type: int
            default: 1
            help: Number of worker processes for samples, and threads for
                  discovery loci.
        - parallel_blocks:
            action: store_true
            help: Decompose the EM into independent blocks and solve them in
                  parallel.
"""


class RunOptions(SubcommandOptions):

    OPTS = _INPUT_OPTS + _RUN_MODE_OPTS + _DISCOVERY_OPTS + _EM_OPTS + _PERFORMANCE_OPTS

    def __init__(self, args):
        super().__init__(args)
        if getattr(self, 'logfile', None) is None:
            self.logfile = sys.stderr
        self.remove_known_subset = not getattr(self, 'keep_known_subset', False)

    def outfile_path(self, suffix):
        return os.path.join(self.outdir, f'{self.exp_tag}-{suffix}')


def _load(opts, console, stopwatch):
    """Load the base annotation and build read classes for every sample."""
    params = RunParams.from_opts(opts)

    console.section('Input')
    console.item('Annotation', os.path.basename(opts.gtffile))
    console.item('Samples', len(opts.samfiles))
    console.item('Discovery', 'on' if params.discovery else 'off')
    console.blank()

    stopwatch.start('Annotation')
    stime = time()
    annot = load_gtf(opts.gtffile)
    lg.info(f'Loaded annotation in {fmtmins(time() - stime)}')
    console.status(f'Loading annotation... done ({len(annot.transcripts):,} transcripts, {len(annot.genes):,} genes)')

    sp = Spliceosome(params, annot)
    stopwatch.start('Read classes')
    inputs = [BamInput(sample_id_from_path(p), p) for p in opts.samfiles]
    sp.build_read_classes(inputs)
    for sample_id, rcset in sp.read_class_sets.items():
        console.detail(f'{sample_id}: {rcset.n_records:,} records, {len(rcset):,} read classes')
    for sample_id, msg in sp.failed.items():
        console.detail(f'{sample_id}: FAILED ({msg})')
    return sp


def _report_discovery(sp, console):
    _r = sp.extension_report
    if _r is None:
        return
    console.status(f'Discovery... {len(_r.novel_transcripts):,} novel transcripts, {len(_r.novel_genes):,} novel genes')
    console.verbose(f'{_r.n_candidates:,} candidates in {_r.n_loci:,} loci, {len(_r.aborted_loci)} loci aborted')


def run(args):
    """Build read classes, extend the annotation and quantify every sample.

    Args:
        args: Parsed argparse namespace.
    """
    opts = RunOptions(args)
    console = configure_logging(opts)
    lg.info('\n{}\n'.format(opts))
    total_time = time()
    stopwatch = Stopwatch()
    os.makedirs(opts.outdir, exist_ok=True)

    console.banner(opts.version)
    sp = _load(opts, console, stopwatch)

    stopwatch.start('Discovery')
    sp.extend_annotation()
    _report_discovery(sp, console)

    stopwatch.start('EM')
    sp.quantify()
    for sample_id, est in sp.estimates.items():
        _con = 'converged' if est.converged else 'terminated'
        console.detail(f'{sample_id}: EM {_con} after {est.n_iterations} iterations')
        console.verbose(f'Final log-likelihood: {est.log_likelihood:,.2f}')

    stopwatch.start('Report')
    written = sp.output_report(opts.outdir, opts.exp_tag)
    stopwatch.stop()
    sp.print_summary(lg.INFO)

    console.blank()
    console.section('Output')
    for path in written:
        console.detail(path)
    console.blank()
    console.timing_table(stopwatch)
    console.blank()
    lg.info('spliceosome run complete (%s)' % fmtmins(time() - total_time))

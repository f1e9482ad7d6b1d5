# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

""" Spliceosome extend

"""
import logging as lg
import os
from time import time

from . import configure_logging
from .console import Stopwatch
from .run import _DISCOVERY_OPTS, _INPUT_OPTS, RunOptions, _load, _report_discovery
from ..annotation.gtf import write_gtf
from ..core.reporter import novel_transcript_table
from ..utils.helpers import format_minutes as fmtmins


class ExtendOptions(RunOptions):

    OPTS = _INPUT_OPTS + _DISCOVERY_OPTS + """
    - Performance Options:
        - ncpu:
            type: int
            default: 1
            help: Number of worker processes for samples, and threads for
                  discovery loci.
"""


def run(args):
    """Build read classes and write the extended annotation, without EM.

    Args:
        args: Parsed argparse namespace.
    """
    opts = ExtendOptions(args)
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

    stopwatch.start('Report')
    _gtf = opts.outfile_path('extended_annotation.gtf')
    write_gtf(sp.annotation, _gtf)
    _tsv = opts.outfile_path('novel_transcripts.tsv')
    _comment = ['## RunInfo']
    _comment += ['{}:{}'.format(*tup) for tup in sp.run_info.items()]
    with open(_tsv, 'w') as outh:
        outh.write('\t'.join(_comment) + '\n')
        novel_transcript_table(sp.extension_report, sp.annotation).to_csv(outh, sep='\t', index=False)
    stopwatch.stop()
    sp.print_summary(lg.INFO)

    console.blank()
    console.section('Output')
    console.detail(_gtf)
    console.detail(_tsv)
    console.blank()
    console.timing_table(stopwatch)
    console.blank()
    lg.info('spliceosome extend complete (%s)' % fmtmins(time() - total_time))

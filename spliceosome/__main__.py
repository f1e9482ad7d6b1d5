#! /usr/bin/env python
# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

""" Main functionality of Spliceosome

"""
import argparse
import sys

from spliceosome import __version__
from .cli import extend as cli_extend
from .cli import run as cli_run


USAGE = ''' %(prog)s <command> [<args>]

The most commonly used commands are:
   run            Discover novel transcripts and quantify every sample
   extend         Discover novel transcripts and write the extended annotation

'''


def build_parser():
    parser = argparse.ArgumentParser(
        description='Long-read transcript discovery and quantification',
    )
    parser.add_argument('--version',
        action='version',
        version=__version__,
        default=__version__,
    )

    subparser = parser.add_subparsers(help='Sub-command help', dest='subcommand')

    ''' Parser for run '''
    run_parser = subparser.add_parser('run',
        description='''Build read classes, extend the annotation and quantify each sample''',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    cli_run.RunOptions.add_arguments(run_parser)
    run_parser.set_defaults(func=cli_run.run)

    ''' Parser for extend '''
    extend_parser = subparser.add_parser('extend',
        description='''Build read classes and write the extended annotation''',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    cli_extend.ExtendOptions.add_arguments(extend_parser)
    extend_parser.set_defaults(func=cli_extend.run)
    return parser


def main():
    if len(sys.argv) == 1:
        empty_parser = argparse.ArgumentParser(
            description='Long-read transcript discovery and quantification',
            usage=USAGE,
        )
        empty_parser.print_help(sys.stderr)
        sys.exit(1)

    args = build_parser().parse_args()
    args.func(args)


if __name__ == '__main__':
    main()

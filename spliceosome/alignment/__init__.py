# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

from collections import namedtuple

# Blocks are 1-based closed (start, end) pairs in reference order
AlignmentRecord = namedtuple('AlignmentRecord', ['read_id', 'chrom', 'strand', 'blocks'])

from .bam import fetch_records  # noqa: E402,F401

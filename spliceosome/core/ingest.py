# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

"""Sample inputs.

A sample is supplied as a BAM path, as in-memory alignment records, or as
an already built :class:`ReadClassSet`. :func:`resolve_input` turns any of
them into a ReadClassSet before the core sees it.
"""

import logging as lg
import os
from collections import Counter, namedtuple

from ..alignment import fetch_records
from .readclass import ReadClassBuilder, ReadClassSet

BamInput = namedtuple('BamInput', ['sample_id', 'path'])
RecordsInput = namedtuple('RecordsInput', ['sample_id', 'records'])
ReadClassInput = namedtuple('ReadClassInput', ['read_classes'])


def sample_id_from_path(path):
    """Sample id from a file name, minus directory and extension."""
    return os.path.splitext(os.path.basename(path))[0]


def resolve_input(inp, params, annotation=None):
    """Resolve one sample input to a ReadClassSet.

    Args:
        inp: BamInput, RecordsInput or ReadClassInput.
        params: RunParams.
        annotation: If given, compatibility sets are computed.

    Returns:
        ReadClassSet

    Raises:
        TypeError: for unknown input types.
        InputValidationError: for malformed alignment records.
    """
    builder = ReadClassBuilder.from_params(params)
    if isinstance(inp, BamInput):
        lg.info(f'Reading alignments for {inp.sample_id} from {inp.path}')
        alninfo = Counter()
        rcset = builder.build(inp.sample_id, fetch_records(inp.path, params.min_mapq, alninfo), annotation)
        _filtered = alninfo['total'] - alninfo['used']
        return ReadClassSet(rcset.sample_id, rcset.read_classes, alninfo['total'], rcset.n_skipped + _filtered)
    elif isinstance(inp, RecordsInput):
        return builder.build(inp.sample_id, inp.records, annotation)
    elif isinstance(inp, ReadClassInput):
        rcset = inp.read_classes
        if not isinstance(rcset, ReadClassSet):
            raise TypeError(f'Expected ReadClassSet, got {type(rcset).__name__}')
        if annotation is not None:
            rcset = rcset.with_compatibility(annotation, params.junction_tolerance, params.strand_aware)
        return rcset
    else:
        raise TypeError(f'Unsupported sample input: {type(inp).__name__}')

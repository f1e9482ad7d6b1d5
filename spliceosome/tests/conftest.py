# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

import logging

import pytest

from .data import GTF, SAM_HEADER


@pytest.fixture
def write_sam(tmp_path):
    """Write SAM records to ``tmp_path/<name>.sam`` and return the path."""
    def _write(name, lines):
        path = tmp_path / f'{name}.sam'
        path.write_text(SAM_HEADER + '\n'.join(lines) + '\n')
        return str(path)
    return _write


@pytest.fixture
def gtf_path(tmp_path):
    path = tmp_path / 'annotation.gtf'
    path.write_text(GTF)
    return str(path)


@pytest.fixture
def reset_logging():
    """Undo global logging changes made by configure_logging."""
    yield
    logging.captureWarnings(False)
    root = logging.getLogger()
    for h in [h for h in root.handlers if type(h) is logging.StreamHandler]:
        root.removeHandler(h)
    root.setLevel(logging.WARNING)

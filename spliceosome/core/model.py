# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

"""Spliceosome pipeline: read classes, discovery, then quantification.

Discovery needs the read classes of every sample, so :meth:`Spliceosome.run`
builds all of them before extending the annotation, and only then
quantifies each sample against the extended annotation.
"""

import logging as lg
from collections import OrderedDict
from multiprocessing import Pool

from .. import __version__
from ..exceptions import InputValidationError
from .extend import AnnotationExtender
from .ingest import ReadClassInput, resolve_input
from .likelihood import quantify as _quantify
from .params import RunParams
from .reporter import gene_matrix, transcript_matrix
from .reporter import output_report as _output_report_func


def input_sample_id(inp):
    if isinstance(inp, ReadClassInput):
        return inp.read_classes.sample_id
    return inp.sample_id


def _build_sample(task):
    inp, params = task
    try:
        return resolve_input(inp, params)
    except InputValidationError as exc:
        return exc


def _quantify_sample(task):
    rcset, annotation, params = task
    try:
        return _quantify(rcset, annotation, params.em_params, params.strand_aware, params.junction_tolerance)
    except InputValidationError as exc:
        return exc


class Spliceosome:
    """Two-phase pipeline over a set of samples.

    Args:
        params: RunParams.
        annotation: Base Annotation. It is validated here; a malformed
            base annotation aborts the run.
    """

    def __init__(self, params, annotation):
        self.params = params or RunParams()
        annotation.validate()
        self.base_annotation = annotation
        self.annotation = annotation
        self.read_class_sets = OrderedDict()
        self.estimates = OrderedDict()
        self.failed = OrderedDict()
        self.extension_report = None
        self.run_info = OrderedDict([('version', __version__)])

    def _map(self, func, tasks):
        if self.params.ncpu > 1 and len(tasks) > 1:
            with Pool(processes=self.params.ncpu) as pool:
                return pool.map(func, tasks)
        return [func(t) for t in tasks]

    def _record_failure(self, sample_id, exc, stage):
        lg.error(f'Sample {sample_id} failed during {stage}: {exc}')
        self.failed[sample_id] = str(exc)

    def build_read_classes(self, inputs):
        """Resolve every sample input to a ReadClassSet.

        Raises:
            ValueError: on duplicate sample ids.
        """
        inputs = list(inputs)
        _ids = [input_sample_id(inp) for inp in inputs]
        _dups = sorted({s for s in _ids if _ids.count(s) > 1})
        if _dups:
            raise ValueError(f'Duplicate sample ids: {", ".join(_dups)}')

        results = self._map(_build_sample, [(inp, self.params) for inp in inputs])
        for sample_id, res in zip(_ids, results):
            if isinstance(res, InputValidationError):
                self._record_failure(sample_id, res, 'read class building')
                continue
            self.read_class_sets[sample_id] = res
        self.run_info['samples'] = len(self.read_class_sets)
        self.run_info['failed_samples'] = len(self.failed)
        return self.read_class_sets

    def extend_annotation(self):
        """Extend the base annotation with the pooled read classes.

        A no-op when discovery is disabled.
        """
        if not self.params.discovery:
            lg.info('Discovery disabled, quantifying against the base annotation')
            return self.annotation

        extender = AnnotationExtender.from_params(self.params)
        self.annotation, self.extension_report = extender.extend(
            self.read_class_sets.values(), self.base_annotation,
        )
        self.run_info.update(self.extension_report.to_dict())
        return self.annotation

    def quantify(self):
        """Quantify every sample against the current annotation."""
        _samples = list(self.read_class_sets.values())
        results = self._map(_quantify_sample, [(rcset, self.annotation, self.params) for rcset in _samples])
        for rcset, res in zip(_samples, results):
            if isinstance(res, InputValidationError):
                self._record_failure(rcset.sample_id, res, 'quantification')
                continue
            self.estimates[rcset.sample_id] = res
        self.run_info['failed_samples'] = len(self.failed)
        return self.estimates

    def run(self, inputs):
        """Build read classes, extend the annotation, then quantify.

        Returns:
            (estimates, annotation)
        """
        self.build_read_classes(inputs)
        # Every sample's read classes must exist before discovery starts
        self.extend_annotation()
        self.quantify()
        return self.estimates, self.annotation

    def transcript_matrix(self):
        return transcript_matrix(list(self.estimates.values()), self.annotation)

    def gene_matrix(self):
        return gene_matrix(list(self.estimates.values()), self.annotation)

    def output_report(self, outdir, exp_tag):
        """Generate TSV reports. Delegates to reporter.output_report()."""
        return _output_report_func(
            list(self.estimates.values()),
            self.annotation,
            self.run_info,
            self.read_class_sets,
            outdir,
            exp_tag,
            write_annotation=self.params.discovery,
        )

    def print_summary(self, loglev=lg.WARNING):
        lg.log(loglev, 'Run Summary:')
        lg.log(loglev, f'    {len(self.read_class_sets)} samples loaded, {len(self.failed)} failed.')
        for sample_id, rcset in self.read_class_sets.items():
            lg.log(loglev, f'        {sample_id}: {rcset.n_records} records in {len(rcset)} read classes.')
        if self.extension_report is not None:
            _r = self.extension_report
            lg.log(loglev, '--')
            lg.log(loglev, f'    {_r.n_candidates} candidates in {_r.n_loci} loci; of these')
            lg.log(loglev, f'        {len(_r.novel_transcripts)} novel transcripts accepted.')
            lg.log(loglev, f'        {len(_r.novel_genes)} novel genes created.')
            lg.log(loglev, f'        {len(_r.aborted_loci)} loci aborted.')
        lg.log(loglev, '--')
        for sample_id, est in self.estimates.items():
            _con = 'converged' if est.converged else 'terminated'
            lg.log(
                loglev,
                f'    {sample_id}: {est.total:.1f} assigned, {est.unassigned:g} unassigned, '
                f'EM {_con} after {est.n_iterations} iterations.',
            )

    def __str__(self):
        return f'<Spliceosome samples={len(self.read_class_sets)} annotation={self.annotation!r}>'

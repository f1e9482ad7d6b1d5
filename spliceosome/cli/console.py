# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

"""Stage-by-stage progress on stdout for the Spliceosome CLI.

Diagnostics go through :mod:`logging` to stderr; the Console only prints
what a user running the pipeline wants to follow.
"""

import sys
from time import perf_counter


class Stopwatch:
    """Timestamps pipeline stages for the end-of-run timing table.

    Each :meth:`start` closes the previous stage.
    """

    def __init__(self):
        self._marks = []     # [(stage name or None, timestamp)]

    def start(self, name):
        self._marks.append((name, perf_counter()))

    def stop(self):
        if self._marks and self._marks[-1][0] is not None:
            self._marks.append((None, perf_counter()))

    @property
    def total(self):
        if not self._marks:
            return 0.0
        return perf_counter() - self._marks[0][1]

    @property
    def timings(self):
        """[(stage, seconds)] for every closed stage."""
        return [
            (name, t1 - t0)
            for (name, t0), (_next, t1) in zip(self._marks, self._marks[1:])
            if name is not None
        ]


class Console:
    QUIET = 0
    NORMAL = 1
    VERBOSE = 2
    DEBUG = 3

    def __init__(self, level=NORMAL, stream=None):
        self.level = level
        self.stream = stream or sys.stdout
        self._use_color = getattr(self.stream, 'isatty', lambda: False)()

    def _emit(self, text, indent=0, min_level=NORMAL):
        if self.level >= min_level:
            print(' ' * indent + text, file=self.stream)

    def banner(self, version):
        _title = f'Spliceosome v{version}'
        if self._use_color:
            _title = f'\033[1m{_title}\033[0m'
        self._emit('')
        self._emit(f'{_title} -- Long-read Transcript Discovery & Quantification')
        self._emit('')

    def section(self, title):
        self._emit(title, indent=2)

    def item(self, label, value):
        self._emit(f'{label + ":":<16}{value}', indent=4)

    def status(self, message):
        self._emit(message, indent=2)

    def detail(self, message):
        self._emit(message, indent=4)

    def verbose(self, message):
        """Print only in verbose/debug mode."""
        self._emit(message, indent=4, min_level=self.VERBOSE)

    def blank(self):
        self._emit('')

    def timing_table(self, stopwatch):
        timings = stopwatch.timings
        if not timings:
            return
        total = stopwatch.total
        self.section('Timing')
        for name, elapsed in timings:
            pct = f'{elapsed / total * 100:>4.0f}%' if total > 0 else ''
            self._emit(f'{name:<18}{elapsed:>5.1f}s{pct:>8}', indent=4)
        self._emit('-' * 30, indent=4)
        self._emit(f'{"Total":<18}{total:>5.1f}s', indent=4)

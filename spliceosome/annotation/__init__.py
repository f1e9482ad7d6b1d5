# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

from .model import Annotation, Gene, Transcript  # noqa: F401

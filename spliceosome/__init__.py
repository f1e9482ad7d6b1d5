# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

__version__ = '0.1.0'

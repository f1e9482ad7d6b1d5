# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.


def format_minutes(seconds):
    mins = seconds // 60
    secs = seconds - (mins * 60)
    return '%d minutes and %d secs' % (mins, secs)

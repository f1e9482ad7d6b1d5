# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

import argparse
import logging
from collections import OrderedDict

import yaml

from .console import Console

# Type names allowed in YAML-defined CLI options
_SAFE_TYPES = {
    'int': int,
    'float': float,
    'str': str,
    "argparse.FileType('w')": argparse.FileType('w'),
}

_LOGFMT = '%(asctime)s %(levelname)-8s %(message)s'
_DEBUG_LOGFMT = '%(asctime)s %(levelname)-8s %(message)-60s (%(funcName)s in %(filename)s:%(lineno)d)'

# flag -> (console level, log level, log format); first set flag wins
_VERBOSITY = OrderedDict([
    ('quiet', (Console.QUIET, logging.WARNING, _LOGFMT)),
    ('debug', (Console.DEBUG, logging.DEBUG, _DEBUG_LOGFMT)),
    ('verbose', (Console.VERBOSE, logging.INFO, _LOGFMT)),
])
_DEFAULT_VERBOSITY = (Console.NORMAL, logging.WARNING, _LOGFMT)


def parse_option_groups(opts_yaml):
    """Parse YAML option declarations.

    The YAML is a list of single-key mappings, group name to a list of
    single-key mappings, option name to argparse keyword arguments.
    Subcommands build it by concatenating chunks, so an option declared
    twice is an error.

    Returns:
        OrderedDict of group name to OrderedDict of option name to kwargs.
    """
    groups = OrderedDict()
    seen = set()
    for grp in yaml.safe_load(opts_yaml):
        (grp_name, args), = grp.items()
        _grp = groups.setdefault(grp_name, OrderedDict())
        for arg in args:
            (arg_name, kwargs), = arg.items()
            if arg_name in seen:
                raise ValueError(f"CLI option '{arg_name}' is declared more than once")
            seen.add(arg_name)
            _grp[arg_name] = dict(kwargs or {})
    return groups


def _argparse_kwargs(arg_name, kwargs):
    _d = dict(kwargs)
    _type = _d.pop('type', None)
    if _type is not None:
        if _type not in _SAFE_TYPES:
            raise ValueError(
                f"Unsupported type '{_type}' in CLI option '{arg_name}'. "
                f'Allowed: {list(_SAFE_TYPES)}'
            )
        _d['type'] = _SAFE_TYPES[_type]
    if _d.pop('positional', False):
        return arg_name, _d
    return (f'-{arg_name}' if len(arg_name) == 1 else f'--{arg_name}'), _d


class SubcommandOptions:
    """Options of one subcommand, declared in YAML.

    Subclasses set ``OPTS``. Parsed argparse values become attributes of
    the instance, so the object can be handed to the ``from_opts``
    constructors of the parameter classes.
    """

    OPTS = """
    - Input Options:
        - infile:
            positional: True
            help: Input file.
    """

    def __init__(self, args):
        self.opt_groups = parse_option_groups(self.OPTS)
        self.opt_names = [name for grp in self.opt_groups.values() for name in grp]
        vars(self).update(vars(args))

    @classmethod
    def add_arguments(cls, parser):
        for group_name, args in parse_option_groups(cls.OPTS).items():
            argparse_grp = parser.add_argument_group(group_name, '')
            for arg_name, kwargs in args.items():
                if kwargs.get('hide', False):
                    continue
                kwargs = {k: v for k, v in kwargs.items() if k != 'hide'}
                flag, _d = _argparse_kwargs(arg_name, kwargs)
                argparse_grp.add_argument(flag, **_d)

    def group_values(self, group_name):
        """Current values of the options in one group."""
        return OrderedDict((name, getattr(self, name, None)) for name in self.opt_groups[group_name])

    def __str__(self):
        ret = []
        if hasattr(self, 'version'):
            ret.append('{:34}{}'.format('Version:', self.version))
        for group_name in self.opt_groups:
            ret.append(group_name)
            for arg_name, v in self.group_values(group_name).items():
                v = getattr(v, 'name', v)
                ret.append('    {:30}{}'.format(arg_name + ':', v))
        return '\n'.join(ret)


def configure_logging(opts):
    """Configure logging and create Console for structured stdout output.

    Log records go to ``opts.logfile`` (stderr by default) at WARNING
    unless ``--verbose`` or ``--debug`` is set. Warnings raised through
    the ``warnings`` module are routed into the log.

    Args:
        opts: SubcommandOptions object. Important attributes are "quiet",
              "verbose", "debug", and "logfile".
    Returns:
        Console instance for structured stdout output.
    """
    console_level, loglev, logfmt = next(
        (v for flag, v in _VERBOSITY.items() if getattr(opts, flag, False)),
        _DEFAULT_VERBOSITY,
    )
    logging.basicConfig(level=loglev, format=logfmt, datefmt='%Y-%m-%d %H:%M:%S', stream=opts.logfile)
    logging.captureWarnings(True)
    return Console(level=console_level)

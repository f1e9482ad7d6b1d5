# -*- coding: utf-8 -*-

# This file is part of Spliceosome.
# Long-read transcript discovery and quantification.
#
# Licensed under MIT License.

"""Frozen parameter sets for discovery, EM and the run as a whole.

Each class can be built from a parsed options object with ``from_opts``;
attributes missing on the options object keep their defaults.
"""

from dataclasses import dataclass, field, fields


def _from_opts(cls, opts, **overrides):
    kwargs = {f.name: getattr(opts, f.name) for f in fields(cls) if f.init and hasattr(opts, f.name)}
    kwargs.update(overrides)
    return cls(**kwargs)


@dataclass(frozen=True)
class DiscoveryParams:
    """Thresholds controlling annotation extension."""
    min_read_count: int = 2
    min_read_fraction_by_gene: float = 0.05
    min_sample_number: int = 1
    min_exon_distance: int = 35
    min_exon_overlap: int = 10
    remove_known_subset: bool = True
    id_prefix: str = ''

    def __post_init__(self):
        if self.min_read_count < 0:
            raise ValueError('min_read_count must be >= 0')
        if not 0 <= self.min_read_fraction_by_gene <= 1:
            raise ValueError('min_read_fraction_by_gene must be between 0 and 1')
        if self.min_sample_number < 1:
            raise ValueError('min_sample_number must be >= 1')
        if self.min_exon_distance < 0 or self.min_exon_overlap < 0:
            raise ValueError('min_exon_distance and min_exon_overlap must be >= 0')

    @classmethod
    def from_opts(cls, opts):
        return _from_opts(cls, opts, id_prefix=getattr(opts, 'id_prefix', None) or '')


@dataclass(frozen=True)
class EMParams:
    """Settings for the EM estimator."""
    max_iterations: int = 10000
    bias_correction: bool = False
    convergence_threshold: float = 0.0001
    parallel_blocks: bool = False

    def __post_init__(self):
        if self.max_iterations < 1:
            raise ValueError('max_iterations must be >= 1')
        if not self.convergence_threshold > 0:
            raise ValueError('convergence_threshold must be > 0')

    @classmethod
    def from_opts(cls, opts):
        return _from_opts(cls, opts)


@dataclass(frozen=True)
class RunParams:
    """Run-level settings shared by every stage."""
    discovery: bool = True
    strand_aware: bool = False
    junction_tolerance: int = 10
    min_intron_length: int = 20
    min_mapq: int = 0
    ncpu: int = 1
    discovery_params: DiscoveryParams = field(default_factory=DiscoveryParams)
    em_params: EMParams = field(default_factory=EMParams)

    def __post_init__(self):
        if self.junction_tolerance < 0:
            raise ValueError('junction_tolerance must be >= 0')
        if self.min_intron_length < 1:
            raise ValueError('min_intron_length must be >= 1')
        if self.ncpu < 1:
            raise ValueError('ncpu must be >= 1')

    @classmethod
    def from_opts(cls, opts):
        return _from_opts(
            cls,
            opts,
            discovery=not getattr(opts, 'no_discovery', False),
            discovery_params=DiscoveryParams.from_opts(opts),
            em_params=EMParams.from_opts(opts),
        )

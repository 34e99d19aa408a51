#!/usr/bin/env python3
"""
kpower - parametric bootstrap power for mixture-model complexity.

Fits mixture models with K categories to an alignment using IQ-TREE,
simulates replicate alignments under the best-fitting K with AliSim,
refits every K on each replicate and reports how often the empirical
choice of K is recovered.
"""

from .core.constants import VERSION

__version__ = VERSION

from .analysis.models import (
    Criterion, FitRecord, FitTable, KPowerResult, MixtureFamily,
    PowerResult, ReplicateOutcome, TreeHandling, TreeMode
)
from .analysis.pipeline import kpower, run_kpower

__all__ = [
    '__version__',
    'Criterion',
    'FitRecord',
    'FitTable',
    'KPowerResult',
    'MixtureFamily',
    'PowerResult',
    'ReplicateOutcome',
    'TreeHandling',
    'TreeMode',
    'kpower',
    'run_kpower',
]

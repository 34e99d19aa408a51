#!/usr/bin/env python3
"""
Analysis components for kpower:
- Data model for fits and bootstrap results
- Single fits and per-alignment batches
- AliSim simulation and power assessment
- The top-level pipeline
"""

from .models import (
    Criterion, FitRecord, FitTable, KPowerResult, MixtureFamily, PowerResult,
    ReplicateOutcome, TreeHandling, TreeMode
)
from .model_fit import FitSettings, ModelFitOrchestrator
from .batch_fitter import BatchFitter
from .simulation import (
    ConstructedCommandStrategy, ReplayCommandStrategy, SimulationDriver, SimulationSettings
)
from .power_assessment import PowerAssessor, PowerSettings, compute_power
from .pipeline import KPowerPipeline, kpower, run_kpower

__all__ = [
    'Criterion',
    'FitRecord',
    'FitTable',
    'KPowerResult',
    'MixtureFamily',
    'PowerResult',
    'ReplicateOutcome',
    'TreeHandling',
    'TreeMode',
    'FitSettings',
    'ModelFitOrchestrator',
    'BatchFitter',
    'ConstructedCommandStrategy',
    'ReplayCommandStrategy',
    'SimulationDriver',
    'SimulationSettings',
    'PowerAssessor',
    'PowerSettings',
    'compute_power',
    'KPowerPipeline',
    'kpower',
    'run_kpower',
]

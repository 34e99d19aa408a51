#!/usr/bin/env python3
"""
Exception hierarchy for kpower.

Fatal conditions are exceptions rooted at KPowerError; recoverable
conditions are warning categories rooted at KPowerWarning.
"""

from .analysis_exceptions import (
    KPowerError, ConfigurationError, PipelineStageError,
    SimulationError, SimulationOutputMissing
)
from .tool_exceptions import (
    ExternalToolError, ExecutableNotFound, ExternalToolFailure, TimeoutExceeded
)
from .io_exceptions import ReportFileError
from .warning_types import (
    KPowerWarning, ReportParseIncomplete, ReplayCommandAbsent,
    SimulationOutputCountMismatch
)

__all__ = [
    'KPowerError',
    'ConfigurationError',
    'PipelineStageError',
    'SimulationError',
    'SimulationOutputMissing',
    'ExternalToolError',
    'ExecutableNotFound',
    'ExternalToolFailure',
    'TimeoutExceeded',
    'ReportFileError',
    'KPowerWarning',
    'ReportParseIncomplete',
    'ReplayCommandAbsent',
    'SimulationOutputCountMismatch',
]

#!/usr/bin/env python3
"""
Base and pipeline-level exceptions for kpower.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union


def _rebuild_error(cls, args, state):
    error = cls.__new__(cls)
    error.args = args
    error.__dict__.update(state)
    return error


class KPowerError(Exception):
    """
    Base exception for all kpower errors.
    
    Attributes:
        context: Free-form diagnostic details (labels, paths, commands)
    """
    
    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = dict(context) if context else {}
    
    def __reduce__(self):
        # Keeps subclass attributes intact across process-pool boundaries
        return (_rebuild_error, (self.__class__, self.args, self.__dict__))
    
    def __repr__(self):
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(KPowerError):
    """Invalid or unreadable configuration."""
    
    def __init__(self, message: str, config_file: Optional[Union[str, Path]] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)
        self.config_file = config_file
        if config_file is not None:
            self.context['config_file'] = str(config_file)


class SimulationError(KPowerError):
    """Base class for simulation-stage failures."""


class SimulationOutputMissing(SimulationError):
    """AliSim finished but left no recognisable replicate alignments."""
    
    def __init__(self, message: str, directory: Optional[Union[str, Path]] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)
        self.directory = Path(directory) if directory is not None else None
        if directory is not None:
            self.context['directory'] = str(directory)


class PipelineStageError(KPowerError):
    """
    Raised by the top-level driver when a stage aborts the run.
    
    Attributes:
        stage: Name of the failing stage (empirical_fit, simulation, bootstrap_fit)
        label: Alignment or replicate label being processed, if known
        partial_result: Results computed before the failure
    """
    
    def __init__(self, message: str, stage: str, label: Optional[str] = None,
                 partial_result: Optional[Dict[str, Any]] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)
        self.stage = stage
        self.label = label
        self.partial_result = partial_result or {}
        self.context['stage'] = stage
        if label is not None:
            self.context['label'] = label

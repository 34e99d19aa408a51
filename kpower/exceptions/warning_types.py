#!/usr/bin/env python3
"""
Warning categories for recoverable conditions.

These are issued with warnings.warn() and never abort a run.
"""


class KPowerWarning(UserWarning):
    """Base category for kpower warnings."""


class ReportParseIncomplete(KPowerWarning):
    """One or more statistics were missing from an IQ-TREE report."""


class ReplayCommandAbsent(KPowerWarning):
    """No usable AliSim command in the report; arguments were constructed instead."""


class SimulationOutputCountMismatch(KPowerWarning):
    """AliSim produced a different number of replicates than requested."""

#!/usr/bin/env python3
"""
Fitting every K to one alignment.
"""

import logging
from pathlib import Path
from typing import Sequence, Union

from .model_fit import ModelFitOrchestrator
from .models import FitTable

logger = logging.getLogger(__name__)


def validate_k_values(k_values: Sequence[int]) -> list:
    """Check that K values are positive integers without duplicates."""
    k_values = list(k_values)
    if not k_values:
        raise ValueError("At least one K value is required")
    for k in k_values:
        if isinstance(k, bool) or not isinstance(k, int) or k < 1:
            raise ValueError(f"K values must be positive integers, got {k!r}")
    if len(set(k_values)) != len(k_values):
        raise ValueError(f"Duplicate K values: {k_values}")
    return k_values


class BatchFitter:
    """Fits a list of K values serially, one IQ-TREE run per K."""

    def __init__(self, orchestrator: ModelFitOrchestrator):
        self.orchestrator = orchestrator

    def fit_all(self, alignment: Union[str, Path], k_values: Sequence[int],
                output_dir: Union[str, Path], label_prefix: str = "") -> FitTable:
        """
        Fit each K to the alignment.

        Args:
            alignment: Alignment file
            k_values: K values, fitted and returned in this order
            output_dir: Directory for the per-K run directories
            label_prefix: Prepended to "K{k}" to form each run label

        Returns:
            FitTable with one record per K
        """
        k_values = validate_k_values(k_values)
        records = []
        for k in k_values:
            label = f"{label_prefix}K{k}"
            records.append(self.orchestrator.fit(alignment, k, output_dir, label=label))
            logger.debug(f"{label}: BIC={records[-1].BIC}")
        return FitTable(records)

#!/usr/bin/env python3
"""
Fitting a single mixture model with IQ-TREE.

This module builds the IQ-TREE argument list for one value of K, runs it
and turns the resulting report into a FitRecord.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Union

from ..core.constants import (
    DEFAULT_BASE_MODEL, DEFAULT_FIT_TIMEOUT, DEFAULT_THREADS,
    LOGFILE_SUFFIX, REPORT_SUFFIX, TREEFILE_SUFFIX
)
from ..core.utils import make_prefix
from ..exceptions import ExternalToolError
from ..io.report_parser import parse_fit_report
from .models import FitRecord, MixtureFamily, TreeHandling

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FitSettings:
    """
    Model and runtime settings shared by every fit of one analysis.

    Attributes:
        base_model: Base substitution model (e.g. GTR, LG)
        family: Mixture family providing the K suffix
        tree: Tree handling policy
        threads: Value for IQ-TREE -T
        timeout: Seconds before a fit is killed
    """
    base_model: str = DEFAULT_BASE_MODEL
    family: MixtureFamily = MixtureFamily.FREERATE
    tree: TreeHandling = field(default_factory=TreeHandling)
    threads: Union[int, str] = DEFAULT_THREADS
    timeout: float = DEFAULT_FIT_TIMEOUT

    def descriptor(self, k: int) -> str:
        return self.family.descriptor(self.base_model, k)


class ModelFitOrchestrator:
    """
    Runs one IQ-TREE fit per call and parses its report.

    Tool failures and timeouts propagate to the caller unchanged; retrying
    is left to whoever owns the surrounding loop.
    """

    def __init__(self, runner, settings: FitSettings):
        """
        Initialize the orchestrator.

        Args:
            runner: ExternalToolRunner bound to the IQ-TREE executable
            settings: Model and runtime settings
        """
        self.runner = runner
        self.settings = settings

    def build_fit_args(self, alignment: Union[str, Path], k: int, prefix: Union[str, Path]) -> List[str]:
        """
        Argument list for fitting K categories.

        Args:
            alignment: Alignment file
            k: Number of mixture categories
            prefix: IQ-TREE --prefix for all output files

        Returns:
            Argument list for the process invoker
        """
        args = [
            "-s", str(alignment),
            "-m", self.settings.descriptor(k),
            "--fast",
            "--prefix", str(prefix),
            "-T", str(self.settings.threads),
            "--redo",
        ]
        args.extend(self.settings.tree.arguments())
        return args

    def fit(self, alignment: Union[str, Path], k: int, output_dir: Union[str, Path],
            label: str = None) -> FitRecord:
        """
        Fit the K-category model to an alignment.

        Args:
            alignment: Alignment file
            k: Number of mixture categories
            output_dir: Directory receiving the run's own subdirectory
            label: Run label, defaults to "K{k}"

        Returns:
            FitRecord for the completed fit

        Raises:
            ExternalToolFailure: IQ-TREE exited with an error
            TimeoutExceeded: IQ-TREE ran past the timeout
        """
        if label is None:
            label = f"K{k}"
        prefix = make_prefix(output_dir, label)
        args = self.build_fit_args(alignment, k, prefix)

        logger.debug(f"Fitting {self.settings.descriptor(k)} to {alignment} ({label})")
        try:
            self.runner.invoke(args, timeout=self.settings.timeout)
        except ExternalToolError as e:
            e.context.setdefault('label', label)
            e.context.setdefault('alignment', str(alignment))
            raise

        report_location = Path(f"{prefix}{REPORT_SUFFIX}")
        stats = parse_fit_report(report_location)

        return FitRecord(
            K=k,
            model_descriptor=self.settings.descriptor(k),
            tree_mode=self.settings.tree.mode,
            output_namespace=prefix,
            log_likelihood=stats.log_likelihood,
            free_parameter_count=stats.free_parameter_count,
            AIC=stats.AIC,
            AICc=stats.AICc,
            BIC=stats.BIC,
            report_location=report_location,
            tree_location=Path(f"{prefix}{TREEFILE_SUFFIX}"),
            log_location=Path(f"{prefix}{LOGFILE_SUFFIX}"),
        )

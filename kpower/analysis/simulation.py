#!/usr/bin/env python3
"""
Simulating replicate alignments under the best-fitting model with AliSim.

The preferred source of the simulation command is the AliSim line that
IQ-TREE writes into the report of the fit, since it carries the fully
estimated model parameters and tree. When the report has no such line
the command is built from the fit record itself. Both sources are
strategies tried in order; each returns an argument list or None when it
does not apply.
"""

import logging
import re
import warnings
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..core.constants import (
    DEFAULT_SIMULATION_TIMEOUT, DEFAULT_THREADS, SIM_FILE_STEM,
    SIM_OUTPUT_EXTENSIONS, SIMULATIONS_DIR
)
from ..exceptions import (
    ReplayCommandAbsent, SimulationOutputCountMismatch, SimulationOutputMissing
)
from ..external_tools.command_rewriter import build_replay_args
from ..io.report_parser import ReplayVariant, parse_replay_command
from .models import FitRecord, MixtureFamily

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationSettings:
    """
    Attributes:
        threads: Value for IQ-TREE -T
        timeout: Seconds before the AliSim run is killed
        mimic_gaps: Copy the empirical gap pattern into the replicates
        variant: Which AliSim line to take from the report
    """
    threads: Union[int, str] = DEFAULT_THREADS
    timeout: float = DEFAULT_SIMULATION_TIMEOUT
    mimic_gaps: bool = True
    variant: ReplayVariant = ReplayVariant.PLAIN


@dataclass(frozen=True)
class SimulationRequest:
    """Inputs shared by the command strategies for one AliSim run."""
    fit_record: FitRecord
    alignment: Path
    n_sites: int
    replicates: int
    seed: int
    sim_prefix: Path
    threads: Union[int, str]
    family: MixtureFamily = MixtureFamily.FREERATE


class SimulationCommandStrategy(ABC):
    """One way of producing the AliSim argument list."""

    name = "strategy"

    @abstractmethod
    def build(self, request: SimulationRequest) -> Optional[List[str]]:
        """Return the argument list, or None if this strategy does not apply."""


class ReplayCommandStrategy(SimulationCommandStrategy):
    """Reuse the AliSim command printed in the fit's report."""

    name = "report replay command"

    def __init__(self, variant: ReplayVariant = ReplayVariant.PLAIN, mimic_gaps: bool = True):
        self.variant = variant
        self.mimic_gaps = mimic_gaps

    def build(self, request: SimulationRequest) -> Optional[List[str]]:
        command = parse_replay_command(request.fit_record.report_location, self.variant)
        if command is None:
            message = (f"ALISIM COMMAND ({self.variant.name.lower()}) not found in "
                       f"{request.fit_record.report_location}; constructing from fit parameters")
            logger.info(message)
            warnings.warn(message, ReplayCommandAbsent, stacklevel=2)
            return None

        # The gap-reproducing line already names the alignment
        copy_gaps_from = None
        if self.mimic_gaps and self.variant is ReplayVariant.PLAIN:
            copy_gaps_from = request.alignment

        logger.info("Using AliSim command from the ALISIM COMMAND section of the report"
                    + (" (gap-mimicking)." if copy_gaps_from or self.variant is ReplayVariant.GAP_REPRODUCING
                       else " (plain simulation)."))
        return build_replay_args(
            command, request.sim_prefix, request.replicates, request.seed,
            request.n_sites, request.threads, alignment=copy_gaps_from
        )


class ConstructedCommandStrategy(SimulationCommandStrategy):
    """Build the AliSim command from the fit record's model and tree."""

    name = "constructed command"

    def build(self, request: SimulationRequest) -> Optional[List[str]]:
        record = request.fit_record
        args = [
            "--alisim", str(request.sim_prefix),
            "-m", record.model_descriptor,
            "-t", str(record.tree_location),
            "--length", str(request.n_sites),
            "--num-alignments", str(request.replicates),
        ]
        args.extend(request.family.simulation_flags())
        args.extend([
            "--seed", str(request.seed),
            "-T", str(request.threads),
            "--redo",
        ])
        return args


def collect_simulation_outputs(sim_dir: Union[str, Path], expected: int,
                               stem: str = SIM_FILE_STEM,
                               extensions: Sequence[str] = SIM_OUTPUT_EXTENSIONS) -> List[Path]:
    """
    Find the replicate alignments written by AliSim.

    Args:
        sim_dir: Simulation output directory
        expected: Number of replicates requested
        stem: File name stem before "_<n>"
        extensions: Recognised alignment extensions

    Returns:
        Matching files, sorted by name

    Raises:
        SimulationOutputMissing: No matching file was found
    """
    sim_dir = Path(sim_dir)
    ext_pattern = "|".join(re.escape(ext.lstrip('.')) for ext in extensions)
    pattern = re.compile(rf"^{re.escape(stem)}_[0-9]+\.({ext_pattern})$")

    sim_files = []
    if sim_dir.is_dir():
        sim_files = sorted(p for p in sim_dir.iterdir() if p.is_file() and pattern.match(p.name))

    if not sim_files:
        raise SimulationOutputMissing(f"AliSim produced no output files in: {sim_dir}",
                                      directory=sim_dir)
    if len(sim_files) != expected:
        message = f"Expected {expected} simulated files but found {len(sim_files)}."
        logger.warning(message)
        warnings.warn(message, SimulationOutputCountMismatch, stacklevel=2)

    return sim_files


class SimulationDriver:
    """Runs AliSim once to produce all bootstrap replicates."""

    def __init__(self, runner, settings: SimulationSettings = None,
                 family: MixtureFamily = MixtureFamily.FREERATE,
                 strategies: Optional[Sequence[SimulationCommandStrategy]] = None):
        """
        Initialize the driver.

        Args:
            runner: ExternalToolRunner bound to the IQ-TREE executable
            settings: Simulation settings
            family: Mixture family of the fitted model
            strategies: Command strategies in order of preference
        """
        self.runner = runner
        self.settings = settings or SimulationSettings()
        self.family = family
        if strategies is None:
            strategies = [
                ReplayCommandStrategy(self.settings.variant, self.settings.mimic_gaps),
                ConstructedCommandStrategy(),
            ]
        self.strategies = list(strategies)

    def build_args(self, request: SimulationRequest) -> List[str]:
        for strategy in self.strategies:
            args = strategy.build(request)
            if args is not None:
                logger.debug(f"AliSim arguments from {strategy.name}: {args}")
                return args
            logger.debug(f"Simulation strategy not applicable: {strategy.name}")
        raise ValueError("No simulation command strategy produced arguments")

    def simulate(self, fit_record: FitRecord, alignment: Union[str, Path], site_count: int,
                 replicate_count: int, seed: int, output_dir: Union[str, Path]) -> List[Path]:
        """
        Simulate replicate alignments under a fitted model.

        Args:
            fit_record: Fit of the model to simulate from
            alignment: Empirical alignment (gap pattern source)
            site_count: Sites per simulated alignment
            replicate_count: Number of replicates
            seed: AliSim random seed
            output_dir: Run output directory; files go to its simulations/ subdirectory

        Returns:
            Sorted list of simulated alignment files

        Raises:
            SimulationOutputMissing: AliSim left no replicate files
        """
        sim_dir = Path(output_dir) / SIMULATIONS_DIR
        sim_dir.mkdir(parents=True, exist_ok=True)

        for stale in sim_dir.glob(f"{SIM_FILE_STEM}_*"):
            if stale.is_file():
                logger.debug(f"Removing stale simulation output {stale}")
                stale.unlink()

        request = SimulationRequest(
            fit_record=fit_record,
            alignment=Path(alignment),
            n_sites=site_count,
            replicates=replicate_count,
            seed=seed,
            sim_prefix=sim_dir / SIM_FILE_STEM,
            threads=self.settings.threads,
            family=self.family,
        )
        args = self.build_args(request)

        self.runner.invoke(args, timeout=self.settings.timeout)

        return collect_simulation_outputs(sim_dir, replicate_count)

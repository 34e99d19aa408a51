#!/usr/bin/env python3
"""
Top-level kpower workflow.

1. Fit every K to the empirical alignment and pick K_best
2. Simulate B replicate alignments under the K_best fit with AliSim
3. Refit every K on each replicate and estimate the power to recover K_best
4. Draw the criterion profile figure and write the result files

A failing stage raises PipelineStageError naming the stage and carrying
whatever was computed before it.
"""

import logging
import math
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from ..config_loader import build_configuration
from ..config_models import (
    ComputationalConfig, InputOutputConfig, KPowerConfig, ModelConfig, SimulationConfig
)
from ..core.constants import EMPIRICAL_DIR, EMPIRICAL_LABEL_PREFIX, FIGURE_FN
from ..core.progress_logger import ProgressLogger
from ..core.utils import alignment_length, get_display_path
from ..exceptions import KPowerError, PipelineStageError
from ..external_tools.tool_locator import find_iqtree
from ..external_tools.tool_runner import ExternalToolRunner
from ..io.output_manager import OutputManager
from ..visualization.plot_manager import PlotManager
from .batch_fitter import BatchFitter
from .model_fit import ModelFitOrchestrator
from .models import Criterion, FitTable, KPowerResult, TreeHandling
from .power_assessment import PowerAssessor
from .simulation import SimulationDriver

logger = logging.getLogger(__name__)


class KPowerPipeline:
    """
    Runs the empirical fits, the simulation and the bootstrap refits for
    one configuration.
    """

    def __init__(self, config: KPowerConfig, runner_factory: Callable = ExternalToolRunner,
                 progress: Optional[ProgressLogger] = None):
        """
        Initialize the pipeline.

        Args:
            config: Validated configuration
            runner_factory: Builds a runner from (executable, debug=...)
            progress: Progress display; a quiet one is used if omitted
        """
        self.config = config
        self.runner_factory = runner_factory
        self.progress = progress or ProgressLogger(show_progress=False)
        self.debug = config.input_output.debug

        settings = config.to_settings()
        self.fit_settings = settings['fit']
        self.simulation_settings = settings['simulation']
        self.power_settings = settings['power']

        self.criterion = Criterion.parse(config.model.criterion)
        self.k_values = config.k_values
        self.alignment = Path(config.input_output.alignment_file)
        self.output_dir = Path(config.input_output.output_dir)
        self.executable = None
        self.runner = None

    def run_info(self) -> Dict[str, Any]:
        model = self.config.model
        sim = self.config.simulation
        return {
            'Alignment': get_display_path(self.alignment),
            'Base model': model.base_model,
            'Mixture type': model.mix_type,
            'K range': f"{model.k_min}-{model.k_max}",
            'Tree mode': model.tree_mode,
            'Replicates (B)': sim.replicates,
            'Seed': sim.seed,
            'IQ-TREE': self.executable,
        }

    def prepare(self):
        """Locate IQ-TREE and build the shared runner."""
        self.executable = find_iqtree(self.config.computational.iqtree_path)
        self.runner = self.runner_factory(self.executable, debug=self.debug)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def fit_empirical(self) -> FitTable:
        k_min, k_max = self.k_values[0], self.k_values[-1]
        self.progress.section_header(f"Fitting K = {k_min} to {k_max} on empirical alignment")
        fitter = BatchFitter(ModelFitOrchestrator(self.runner, self.fit_settings))
        table = fitter.fit_all(self.alignment, self.k_values,
                               self.output_dir / EMPIRICAL_DIR,
                               label_prefix=EMPIRICAL_LABEL_PREFIX)
        self.progress.complete("Empirical fits finished", len(table), "models")
        return table

    def select_best_k(self, table: FitTable) -> int:
        best_k = table.best_k(self.criterion)
        if best_k is None:
            raise KPowerError(
                f"No empirical fit reported {self.criterion.value}; cannot select K",
                context={'k_values': table.k_values}
            )
        logger.info(f"K_best = {best_k} (selected by {self.criterion.value})")
        return best_k

    def simulate(self, table: FitTable, best_k: int):
        n_sites = alignment_length(self.alignment, self.config.input_output.alignment_format)
        replicates = self.config.simulation.replicates
        self.progress.section_header(f"Simulating {replicates} alignments of {n_sites} sites via AliSim")
        driver = SimulationDriver(self.runner, self.simulation_settings, family=self.fit_settings.family)
        sim_files = driver.simulate(table.record_for(best_k), self.alignment, n_sites,
                                    replicates, self.config.simulation.seed, self.output_dir)
        self.progress.complete("Simulation finished", len(sim_files), "alignments")
        return sim_files

    def assess(self, sim_files, best_k: int):
        self.progress.section_header(
            f"Refitting K = {self.k_values[0]} to {self.k_values[-1]} on {len(sim_files)} simulated alignments"
        )
        assessor = PowerAssessor(self.fit_settings, self.executable, self.power_settings,
                                 debug=self.debug, runner_factory=self.runner_factory)
        return assessor.assess(sim_files, self.k_values, best_k, self.criterion,
                               self.output_dir, progress=self.progress)

    def plot(self, result: KPowerResult) -> Optional[Path]:
        if not self.config.input_output.make_plot:
            return None
        plotter = PlotManager()
        if not plotter.check_matplotlib_availability():
            return None
        return plotter.plot_ic_profiles(
            result.empirical.to_rows(), result.simulation_table, result.best_k,
            result.power, self.criterion.value, self.output_dir / FIGURE_FN,
            format=self.config.input_output.figure_format
        )

    def run(self) -> KPowerResult:
        """
        Run every stage.

        Returns:
            KPowerResult

        Raises:
            PipelineStageError: A stage failed; partial_result holds the
                empirical table when it was computed
        """
        partial: Dict[str, Any] = {}

        try:
            self.prepare()
            empirical = self.fit_empirical()
            partial['empirical'] = empirical
            best_k = self.select_best_k(empirical)
            partial['best_k'] = best_k
        except (KPowerError, OSError) as e:
            raise self._stage_error('empirical_fit', e, partial) from e

        try:
            sim_files = self.simulate(empirical, best_k)
            partial['sim_files'] = sim_files
        except (KPowerError, OSError, ValueError) as e:
            raise self._stage_error('simulation', e, partial) from e

        try:
            power_result = self.assess(sim_files, best_k)
        except (KPowerError, OSError) as e:
            raise self._stage_error('bootstrap_fit', e, partial) from e

        if not math.isnan(power_result.power_estimate):
            logger.info(f"Power: {power_result.power_estimate * 100:.1f}% of simulations recover "
                        f"K_best = {best_k} under {self.criterion.value}")

        result = KPowerResult(
            empirical=empirical,
            simulation_table=power_result.simulation_table,
            best_k=best_k,
            power=power_result.power_estimate,
            criterion=self.criterion,
            sim_files=list(sim_files),
            usable_replicates=power_result.usable_replicates,
            failed_replicates=power_result.failed_replicates,
            selection_counts=power_result.selection_counts(self.criterion),
        )
        result.figure_path = self.plot(result)
        OutputManager(self.output_dir, debug=self.debug).write_results(result, self.run_info())
        return result

    def _stage_error(self, stage: str, error: Exception, partial: Dict[str, Any]) -> PipelineStageError:
        context = getattr(error, 'context', {}) or {}
        label = context.get('label')
        if label is None and 'replicate' in context:
            label = f"replicate {context['replicate']}"
        if label is None and stage == 'empirical_fit':
            label = get_display_path(self.alignment)
        message = str(error).splitlines()[0] if str(error) else type(error).__name__
        logger.error(f"Stage {stage} failed: {message}")
        return PipelineStageError(f"{stage} failed: {message}", stage=stage, label=label,
                                  partial_result=dict(partial), context=dict(context))


def run_kpower(config: KPowerConfig, runner_factory: Callable = ExternalToolRunner,
               progress: Optional[ProgressLogger] = None) -> KPowerResult:
    """Run the whole kpower workflow for a validated configuration."""
    return KPowerPipeline(config, runner_factory=runner_factory, progress=progress).run()


def kpower(alignment, k_max: int, k_min: int = 1, base_model: str = "GTR", mix_type: str = "+R",
           ic: str = "BIC", fixed_tree="NJ", B: int = 1000, seed: int = 1,
           outdir="kpower_output", iqtree_bin=None, n_cores: int = 1, timeout: int = 3600,
           make_plot: bool = True, **options) -> KPowerResult:
    """
    Keyword-argument entry point.

    `fixed_tree` is "NJ" for a fixed BIONJ tree, None for a full tree
    search, or the path of a tree file to fix. Extra keyword arguments go
    to the matching configuration section field (e.g. mimic_gaps,
    missing_policy, isolate_failures).
    """
    tree = TreeHandling.from_option(fixed_tree)
    tree_mode, tree_path = tree.mode.value, tree.path

    data = {
        'input_output': {'alignment_file': alignment, 'output_dir': outdir, 'make_plot': make_plot},
        'model': {'base_model': base_model, 'mix_type': mix_type, 'k_min': k_min, 'k_max': k_max,
                  'criterion': ic, 'tree_mode': tree_mode, 'fixed_tree': tree_path},
        'simulation': {'replicates': B, 'seed': seed},
        'computational': {'iqtree_path': iqtree_bin, 'n_cores': n_cores, 'fit_timeout': timeout},
    }
    sections = {
        'input_output': InputOutputConfig.model_fields,
        'model': ModelConfig.model_fields,
        'simulation': SimulationConfig.model_fields,
        'computational': ComputationalConfig.model_fields,
    }
    for key, value in options.items():
        for name, fields in sections.items():
            if key in fields:
                data[name][key] = value
                break
        else:
            raise TypeError(f"kpower() got an unexpected keyword argument '{key}'")

    return run_kpower(build_configuration(data))

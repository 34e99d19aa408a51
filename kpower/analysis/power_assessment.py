#!/usr/bin/env python3
"""
Parametric-bootstrap power estimation.

Every simulated replicate is refitted at each K and the K minimising the
chosen criterion is compared with the empirical best K. Replicates are
independent, so they can be spread over a process pool; each worker
builds its own runner and writes under its own label directories.
"""

import logging
import math
import re
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from ..core.constants import SIM_FILE_STEM, SIM_FITS_DIR, SIM_LABEL_WIDTH
from ..core.utils import pad_int
from ..exceptions import KPowerError
from ..external_tools.tool_runner import ExternalToolRunner
from .batch_fitter import BatchFitter, validate_k_values
from .model_fit import FitSettings, ModelFitOrchestrator
from .models import Criterion, PowerResult, ReplicateOutcome

logger = logging.getLogger(__name__)

MISSING_POLICIES = ("exclude", "non_match")
SIM_NUMBER_PATTERN = re.compile(rf"^{re.escape(SIM_FILE_STEM)}_([0-9]+)\.")


@dataclass(frozen=True)
class PowerSettings:
    """
    Attributes:
        worker_count: Parallel replicate workers; 1 runs in-process
        missing_policy: "exclude" drops replicates lacking the criterion
            from the denominator, "non_match" counts them as misses
        isolate_failures: Record failed replicates and carry on instead of
            aborting the run
    """
    worker_count: int = 1
    missing_policy: str = "exclude"
    isolate_failures: bool = True

    def __post_init__(self):
        if self.worker_count < 1:
            raise ValueError(f"worker_count must be at least 1, got {self.worker_count}")
        if self.missing_policy not in MISSING_POLICIES:
            raise ValueError(f"missing_policy must be one of {MISSING_POLICIES}, "
                             f"got {self.missing_policy!r}")


@dataclass(frozen=True)
class ReplicateTask:
    """Everything a worker needs to refit one replicate."""
    replicate_index: int
    alignment: Path
    k_values: Tuple[int, ...]
    output_dir: Path
    fit_settings: FitSettings
    executable: str
    isolate_failures: bool = True
    debug: bool = False
    runner_factory: Callable = ExternalToolRunner

    @property
    def label_prefix(self) -> str:
        return f"{SIM_FILE_STEM}{pad_int(self.replicate_index, SIM_LABEL_WIDTH)}_"


def fit_replicate(task: ReplicateTask) -> ReplicateOutcome:
    """
    Refit every K on one simulated alignment.

    Module-level so that it can be shipped to pool workers.
    """
    runner = task.runner_factory(task.executable, debug=task.debug)
    fitter = BatchFitter(ModelFitOrchestrator(runner, task.fit_settings))
    try:
        table = fitter.fit_all(task.alignment, task.k_values,
                               task.output_dir / SIM_FITS_DIR,
                               label_prefix=task.label_prefix)
    except KPowerError as e:
        if not task.isolate_failures:
            e.context.setdefault('replicate', task.replicate_index)
            raise
        logger.warning(f"Replicate {task.replicate_index} failed: {e.message.splitlines()[0]}")
        return ReplicateOutcome(task.replicate_index, None, task.alignment, error=str(e))
    except OSError as e:
        if not task.isolate_failures:
            raise KPowerError(
                f"Replicate {task.replicate_index} could not be refitted: {e}",
                context={'replicate': task.replicate_index, 'alignment': str(task.alignment)}
            ) from e
        logger.warning(f"Replicate {task.replicate_index} failed: {e}")
        return ReplicateOutcome(task.replicate_index, None, task.alignment, error=str(e))
    return ReplicateOutcome(task.replicate_index, table, task.alignment)


def replicate_numbers(replicate_files: Sequence[Union[str, Path]]) -> List[int]:
    """
    Replicate index for each file.

    AliSim names its outputs sim_<n>; that n is the index. Files that do
    not all carry a distinct number are numbered by position instead.
    """
    numbers = []
    for path in replicate_files:
        match = SIM_NUMBER_PATTERN.match(Path(path).name)
        numbers.append(int(match.group(1)) if match else None)
    if None in numbers or len(set(numbers)) != len(numbers):
        return list(range(1, len(numbers) + 1))
    return numbers


def compute_power(outcomes: Sequence[ReplicateOutcome], best_k: int, criterion,
                  missing_policy: str = "exclude") -> Tuple[float, int, int]:
    """
    Fraction of usable replicates that recover the empirical K.

    Args:
        outcomes: Replicate outcomes
        best_k: Empirical best K
        criterion: Information criterion
        missing_policy: "exclude" or "non_match"

    Returns:
        (power, usable, matching); power is NaN when nothing was usable
    """
    criterion = Criterion.parse(criterion)
    usable = 0
    matching = 0

    for outcome in outcomes:
        if not outcome.succeeded:
            continue
        if outcome.fit_table.has_missing(criterion):
            if missing_policy == "exclude":
                logger.debug(f"Replicate {outcome.replicate_index} lacks {criterion.value}; excluded")
                continue
            usable += 1
            continue
        usable += 1
        if outcome.selected_k(criterion) == best_k:
            matching += 1

    if usable == 0:
        logger.error("No usable bootstrap replicates; power cannot be estimated")
        return math.nan, 0, 0
    return matching / usable, usable, matching


class PowerAssessor:
    """Refits simulated replicates and estimates the power to recover K."""

    def __init__(self, fit_settings: FitSettings, executable: Union[str, Path],
                 settings: PowerSettings = None, debug: bool = False,
                 runner_factory: Callable = ExternalToolRunner):
        """
        Initialize the assessor.

        Args:
            fit_settings: Settings used for the empirical fits
            executable: IQ-TREE executable
            settings: Pool size and replicate policies
            debug: Passed on to each worker's runner
            runner_factory: Builds a runner from (executable, debug=...);
                must be picklable when worker_count > 1
        """
        self.fit_settings = fit_settings
        self.executable = str(executable)
        self.settings = settings or PowerSettings()
        self.debug = debug
        self.runner_factory = runner_factory

    def _tasks(self, replicate_files, k_values, output_dir) -> List[ReplicateTask]:
        return [
            ReplicateTask(
                replicate_index=index,
                alignment=Path(path),
                k_values=tuple(k_values),
                output_dir=Path(output_dir),
                fit_settings=self.fit_settings,
                executable=self.executable,
                isolate_failures=self.settings.isolate_failures,
                debug=self.debug,
                runner_factory=self.runner_factory,
            )
            for index, path in zip(replicate_numbers(replicate_files), replicate_files)
        ]

    def _run_serial(self, tasks, progress) -> List[ReplicateOutcome]:
        outcomes = []
        for completed, task in enumerate(tasks, start=1):
            outcome = fit_replicate(task)
            outcomes.append(outcome)
            if progress is not None:
                progress.replicate_done(task.replicate_index, completed, len(tasks), outcome.succeeded)
        return outcomes

    def _run_pool(self, tasks, progress) -> List[ReplicateOutcome]:
        results: Dict[int, ReplicateOutcome] = {}
        with ProcessPoolExecutor(max_workers=self.settings.worker_count) as executor:
            futures = {executor.submit(fit_replicate, task): task for task in tasks}
            try:
                for future in as_completed(futures):
                    outcome = future.result()
                    results[outcome.replicate_index] = outcome
                    if progress is not None:
                        progress.replicate_done(outcome.replicate_index, len(results),
                                                len(tasks), outcome.succeeded)
            except BaseException:
                for future in futures:
                    future.cancel()
                raise
        return [results[task.replicate_index] for task in tasks]

    def assess(self, replicate_files: Sequence[Union[str, Path]], k_values: Sequence[int],
               best_k: int, criterion, output_dir: Union[str, Path],
               progress=None) -> PowerResult:
        """
        Refit each replicate at every K and estimate power.

        Args:
            replicate_files: Simulated alignments; sim_<n> files are replicate n
            k_values: K values to refit
            best_k: Empirical best K
            criterion: Information criterion used for selection
            output_dir: Run output directory; fits go to its sim_fits/ subdirectory
            progress: Optional ProgressLogger

        Returns:
            PowerResult with the long-format simulation table

        Raises:
            KPowerError: A replicate failed and isolate_failures is off
        """
        k_values = validate_k_values(k_values)
        criterion = Criterion.parse(criterion)
        tasks = self._tasks(replicate_files, k_values, output_dir)
        if not tasks:
            logger.error("No replicate alignments to assess")

        logger.info(f"Refitting {len(tasks)} replicates x {len(k_values)} K values "
                    f"with {self.settings.worker_count} worker(s)")

        if self.settings.worker_count > 1 and len(tasks) > 1:
            outcomes = self._run_pool(tasks, progress)
        else:
            outcomes = self._run_serial(tasks, progress)

        failed = [o.replicate_index for o in outcomes if not o.succeeded]
        if failed:
            logger.warning(f"{len(failed)} replicate(s) failed and were excluded: {failed[:10]}"
                           + (" ..." if len(failed) > 10 else ""))

        power, usable, matching = compute_power(outcomes, best_k, criterion,
                                                self.settings.missing_policy)

        simulation_table = []
        for outcome in outcomes:
            simulation_table.extend(outcome.to_rows())

        if progress is not None:
            progress.complete("Bootstrap refits finished", len(outcomes), "replicates")

        return PowerResult(
            simulation_table=simulation_table,
            power_estimate=power,
            usable_replicates=usable,
            matching_replicates=matching,
            outcomes=outcomes,
        )

#!/usr/bin/env python3
"""
Configuration models for kpower using Pydantic for validation.

This module defines the structure and validation rules for kpower
configuration files, supporting YAML, TOML and legacy INI formats.
"""

from typing import Any, Dict, List, Literal, Optional, Union
from pathlib import Path
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .core.constants import (
    DEFAULT_BASE_MODEL, DEFAULT_CRITERION, DEFAULT_FIGURE_FORMAT, DEFAULT_FIT_TIMEOUT,
    DEFAULT_K_MIN, DEFAULT_MIX_TYPE, DEFAULT_N_CORES, DEFAULT_REPLICATES, DEFAULT_SEED,
    DEFAULT_SIMULATION_TIMEOUT, DEFAULT_TREE_MODE
)


class InputOutputConfig(BaseModel):
    """Input/Output configuration settings."""

    alignment_file: Path = Field(..., description="Path to the empirical alignment")
    alignment_format: Optional[Literal["fasta", "phylip-relaxed", "nexus"]] = Field(
        default=None, description="Biopython alignment format; guessed from the extension if unset"
    )
    output_dir: Path = Field(
        default=Path("kpower_output"), description="Directory for all IQ-TREE runs and results"
    )
    make_plot: bool = Field(
        default=True, description="Draw the criterion profile figure"
    )
    figure_format: Literal["png", "pdf", "svg"] = Field(
        default=DEFAULT_FIGURE_FORMAT, description="Figure file format"
    )
    log_file: Optional[Path] = Field(
        default=None, description="Optional file receiving detailed debug logging"
    )
    debug: bool = Field(
        default=False, description="Enable debug mode with detailed logging"
    )

    @field_validator('alignment_file')
    @classmethod
    def validate_alignment_file(cls, v):
        """Validate that alignment file exists."""
        if not Path(v).exists():
            raise ValueError(f"Alignment file not found: {v}")
        return v


class ModelConfig(BaseModel):
    """Mixture model and selection settings."""

    base_model: str = Field(
        default=DEFAULT_BASE_MODEL, min_length=1, description="Base substitution model (GTR, LG, ...)"
    )
    mix_type: Literal["+R", "+H"] = Field(
        default=DEFAULT_MIX_TYPE, description="Mixture family: +R free rates, +H heterotachy"
    )
    k_min: int = Field(
        default=DEFAULT_K_MIN, ge=1, description="Smallest number of mixture categories"
    )
    k_max: int = Field(
        ..., ge=1, description="Largest number of mixture categories"
    )
    criterion: Literal["AIC", "AICc", "BIC"] = Field(
        default=DEFAULT_CRITERION, description="Information criterion used to select K"
    )
    tree_mode: Literal["nj", "fixed", "search"] = Field(
        default=DEFAULT_TREE_MODE, description="nj: fixed BIONJ tree, fixed: user tree, search: full tree search"
    )
    fixed_tree: Optional[Path] = Field(
        default=None, description="Newick tree used when tree_mode is 'fixed'"
    )

    @field_validator('fixed_tree')
    @classmethod
    def validate_fixed_tree(cls, v):
        """Validate fixed tree exists."""
        if v is not None and not Path(v).exists():
            raise ValueError(f"Tree file not found: {v}")
        return v

    @model_validator(mode='after')
    def validate_k_range(self):
        if self.k_max < self.k_min:
            raise ValueError(f"k_max ({self.k_max}) must be >= k_min ({self.k_min})")
        if self.tree_mode == "fixed" and self.fixed_tree is None:
            raise ValueError("tree_mode 'fixed' requires fixed_tree")
        return self


class SimulationConfig(BaseModel):
    """Parametric bootstrap settings."""

    replicates: int = Field(
        default=DEFAULT_REPLICATES, ge=1, description="Number of simulated alignments (B)"
    )
    seed: int = Field(
        default=DEFAULT_SEED, description="AliSim random seed"
    )
    mimic_gaps: bool = Field(
        default=True, description="Copy the empirical gap pattern into simulated alignments"
    )
    replay_variant: Literal["plain", "gap_reproducing"] = Field(
        default="plain", description="Which AliSim command to take from the IQ-TREE report"
    )


class ComputationalConfig(BaseModel):
    """Computational settings configuration."""

    iqtree_path: Optional[str] = Field(
        default=None, description="IQ-TREE executable; searched on PATH if unset"
    )
    threads: Optional[Union[int, Literal["AUTO"]]] = Field(
        default=None, description="IQ-TREE -T value; defaults to n_cores"
    )
    n_cores: int = Field(
        default=DEFAULT_N_CORES, ge=1, description="Parallel workers for replicate refits"
    )
    fit_timeout: int = Field(
        default=DEFAULT_FIT_TIMEOUT, ge=1, description="Timeout for each model fit (seconds)"
    )
    simulation_timeout: int = Field(
        default=DEFAULT_SIMULATION_TIMEOUT, ge=1, description="Timeout for the AliSim run (seconds)"
    )
    missing_policy: Literal["exclude", "non_match"] = Field(
        default="exclude", description="Treatment of replicates lacking the chosen criterion"
    )
    isolate_failures: bool = Field(
        default=True, description="Skip failed replicates instead of aborting"
    )

    @field_validator('threads', mode='before')
    @classmethod
    def validate_threads(cls, v):
        """Validate thread specification."""
        if isinstance(v, str):
            try:
                v = int(v)
            except ValueError:
                v = v.strip().upper()
        if isinstance(v, int) and v < 1:
            raise ValueError("Thread count must be positive")
        return v


class KPowerConfig(BaseModel):
    """Main kpower configuration model."""

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True
    )

    input_output: InputOutputConfig
    model: ModelConfig
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    computational: ComputationalConfig = Field(default_factory=ComputationalConfig)

    @property
    def k_values(self) -> List[int]:
        return list(range(self.model.k_min, self.model.k_max + 1))

    def get_thread_setting(self) -> Union[int, str]:
        """IQ-TREE -T value; n_cores unless threads is set explicitly."""
        if self.computational.threads is None:
            return self.computational.n_cores
        return self.computational.threads

    def to_settings(self) -> Dict[str, Any]:
        """
        Build the settings objects used by the analysis components.

        Returns:
            Dictionary with 'fit', 'simulation' and 'power' settings
        """
        from .analysis.model_fit import FitSettings
        from .analysis.models import MixtureFamily, TreeHandling, TreeMode
        from .analysis.power_assessment import PowerSettings
        from .analysis.simulation import SimulationSettings
        from .io.report_parser import ReplayVariant

        threads = self.get_thread_setting()
        tree_mode = TreeMode(self.model.tree_mode)
        tree = TreeHandling(tree_mode, self.model.fixed_tree if tree_mode is TreeMode.FIXED_PATH else None)
        variant = (ReplayVariant.GAP_REPRODUCING if self.simulation.replay_variant == "gap_reproducing"
                   else ReplayVariant.PLAIN)

        return {
            'fit': FitSettings(
                base_model=self.model.base_model,
                family=MixtureFamily.from_suffix(self.model.mix_type),
                tree=tree,
                threads=threads,
                timeout=self.computational.fit_timeout,
            ),
            'simulation': SimulationSettings(
                threads=threads,
                timeout=self.computational.simulation_timeout,
                mimic_gaps=self.simulation.mimic_gaps,
                variant=variant,
            ),
            'power': PowerSettings(
                worker_count=self.computational.n_cores,
                missing_policy=self.computational.missing_policy,
                isolate_failures=self.computational.isolate_failures,
            ),
        }

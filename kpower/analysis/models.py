#!/usr/bin/env python3
"""
Data model for kpower fits, replicates and results.

A FitRecord describes one IQ-TREE fit at a given K, a FitTable collects
the fits of every K for one alignment, and the bootstrap results are
assembled from one FitTable per simulated replicate.
"""

import enum
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

STAT_COLUMNS = ('lnL', 'df', 'AIC', 'AICc', 'BIC')


class Criterion(str, enum.Enum):
    """Information criterion used to select K; lower is better."""
    AIC = "AIC"
    AICc = "AICc"
    BIC = "BIC"

    @classmethod
    def parse(cls, value) -> "Criterion":
        if isinstance(value, cls):
            return value
        for member in cls:
            if member.value.lower() == str(value).lower():
                return member
        raise ValueError(f"Unknown information criterion: {value} (choose AIC, AICc or BIC)")


class MixtureFamily(enum.Enum):
    """
    Mixture model families and their IQ-TREE conventions.

    Each member knows how to write its model descriptor and which extra
    AliSim flags a constructed simulation command needs.
    """
    FREERATE = "+R"
    HETEROTACHY = "+H"

    @property
    def suffix(self) -> str:
        return self.value

    @classmethod
    def from_suffix(cls, suffix) -> "MixtureFamily":
        if isinstance(suffix, cls):
            return suffix
        text = str(suffix).strip().upper()
        if not text.startswith('+'):
            text = '+' + text
        for member in cls:
            if member.value == text:
                return member
        raise ValueError(f"Unsupported mixture type: {suffix} (choose +R or +H)")

    def descriptor(self, base_model: str, k: int) -> str:
        """Model string for K categories; the base model alone when K is 1."""
        if k < 1:
            raise ValueError(f"K must be positive, got {k}")
        if k == 1:
            return base_model
        return f"{base_model}{self.suffix}{k}"

    def simulation_flags(self) -> List[str]:
        if self is MixtureFamily.FREERATE:
            # Draw per-site rates from the fitted categories
            return ["--site-rate", "SAMPLING"]
        return []


class TreeMode(enum.Enum):
    """How the tree is handled while fitting each K."""
    AUTO_NJ = "nj"
    FIXED_PATH = "fixed"
    HEURISTIC = "search"


@dataclass(frozen=True)
class TreeHandling:
    """
    Tree policy for model fits.

    Attributes:
        mode: AUTO_NJ fixes a BIONJ tree built for each K, FIXED_PATH fixes
            the tree in `path` for every K, HEURISTIC runs a full search
        path: Tree file for FIXED_PATH
    """
    mode: TreeMode = TreeMode.AUTO_NJ
    path: Optional[Path] = None

    def __post_init__(self):
        if self.mode is TreeMode.FIXED_PATH and self.path is None:
            raise ValueError("A fixed tree path is required for tree mode 'fixed'")

    @classmethod
    def from_option(cls, value) -> "TreeHandling":
        """Interpret "NJ", None, or a tree file path."""
        if isinstance(value, cls):
            return value
        if value is None:
            return cls(TreeMode.HEURISTIC)
        if isinstance(value, TreeMode):
            return cls(value)
        text = str(value)
        for mode in TreeMode:
            if text.lower() == mode.value:
                return cls(mode)
        return cls(TreeMode.FIXED_PATH, Path(text))

    def arguments(self) -> List[str]:
        if self.mode is TreeMode.AUTO_NJ:
            return ["-t", "BIONJ", "--tree-fix"]
        if self.mode is TreeMode.FIXED_PATH:
            return ["-t", str(self.path), "--tree-fix"]
        return []


@dataclass(frozen=True)
class FitRecord:
    """
    One completed IQ-TREE fit.

    Attributes:
        K: Number of mixture categories
        model_descriptor: Model string passed to -m
        tree_mode: Tree policy used for the fit
        output_namespace: IQ-TREE --prefix of the run
        log_likelihood, free_parameter_count, AIC, AICc, BIC: Fit
            statistics, None where the report lacked them
        report_location: The `.iqtree` report
        tree_location: The `.treefile`
        log_location: The `.log` file
    """
    K: int
    model_descriptor: str
    tree_mode: TreeMode
    output_namespace: Path
    log_likelihood: Optional[float]
    free_parameter_count: Optional[float]
    AIC: Optional[float]
    AICc: Optional[float]
    BIC: Optional[float]
    report_location: Path
    tree_location: Path
    log_location: Optional[Path] = None

    def criterion_value(self, criterion) -> Optional[float]:
        value = getattr(self, Criterion.parse(criterion).value)
        if value is None or math.isnan(value):
            return None
        return value

    def to_row(self) -> Dict[str, Any]:
        return {
            'K': self.K,
            'lnL': self.log_likelihood,
            'df': self.free_parameter_count,
            'AIC': self.AIC,
            'AICc': self.AICc,
            'BIC': self.BIC,
        }


class FitTable:
    """
    Fits of every requested K for one alignment, in request order.

    The table is immutable and holds exactly one record per K.
    """

    def __init__(self, records: Sequence[FitRecord]):
        records = tuple(records)
        seen = set()
        for record in records:
            if record.K in seen:
                raise ValueError(f"Duplicate K={record.K} in fit table")
            seen.add(record.K)
        self._records: Tuple[FitRecord, ...] = records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[FitRecord]:
        return iter(self._records)

    def __getitem__(self, index) -> FitRecord:
        return self._records[index]

    def __repr__(self) -> str:
        return f"FitTable(K={self.k_values})"

    @property
    def records(self) -> Tuple[FitRecord, ...]:
        return self._records

    @property
    def k_values(self) -> List[int]:
        return [record.K for record in self._records]

    def record_for(self, k: int) -> FitRecord:
        for record in self._records:
            if record.K == k:
                return record
        raise KeyError(f"No fit for K={k}")

    def criterion_values(self, criterion) -> List[Optional[float]]:
        return [record.criterion_value(criterion) for record in self._records]

    def has_missing(self, criterion) -> bool:
        return any(value is None for value in self.criterion_values(criterion))

    def best_k(self, criterion) -> Optional[int]:
        """
        K with the smallest criterion value.

        Ties go to the lowest K. Records without the criterion are skipped;
        None is returned when no record has it.
        """
        scored = [(value, record.K) for record, value
                  in zip(self._records, self.criterion_values(criterion))
                  if value is not None]
        if not scored:
            return None
        return min(scored)[1]

    def to_rows(self) -> List[Dict[str, Any]]:
        return [record.to_row() for record in self._records]


@dataclass
class ReplicateOutcome:
    """
    Result of refitting every K on one simulated alignment.

    Attributes:
        replicate_index: Replicate number (1-based, as in the file labels)
        fit_table: The replicate's fits, None when the replicate failed
        alignment_path: Simulated alignment that was refitted
        error: Failure description for a failed replicate
    """
    replicate_index: int
    fit_table: Optional[FitTable]
    alignment_path: Optional[Path] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.fit_table is not None

    def selected_k(self, criterion) -> Optional[int]:
        if self.fit_table is None:
            return None
        return self.fit_table.best_k(criterion)

    def to_rows(self) -> List[Dict[str, Any]]:
        if self.fit_table is None:
            return []
        rows = []
        for row in self.fit_table.to_rows():
            rows.append({'replicate': self.replicate_index, **row})
        return rows


@dataclass
class PowerResult:
    """
    Aggregated bootstrap outcome.

    Attributes:
        simulation_table: Long-format rows (replicate, K, lnL, df, AIC, AICc, BIC)
        power_estimate: Fraction of usable replicates recovering the
            empirical K; NaN when no replicate was usable
        usable_replicates: Size of the denominator
        matching_replicates: Replicates selecting the empirical K
        outcomes: Per-replicate outcomes in replicate order
    """
    simulation_table: List[Dict[str, Any]]
    power_estimate: float
    usable_replicates: int
    matching_replicates: int
    outcomes: List[ReplicateOutcome] = field(default_factory=list)

    @property
    def failed_replicates(self) -> List[int]:
        return sorted(o.replicate_index for o in self.outcomes if not o.succeeded)

    def selection_counts(self, criterion) -> Dict[int, int]:
        """How often each K was selected across successful replicates."""
        counts: Dict[int, int] = {}
        for outcome in self.outcomes:
            k = outcome.selected_k(criterion)
            if k is not None:
                counts[k] = counts.get(k, 0) + 1
        return dict(sorted(counts.items()))


@dataclass
class KPowerResult:
    """Everything a kpower run produces."""
    empirical: FitTable
    simulation_table: List[Dict[str, Any]]
    best_k: int
    power: float
    criterion: Criterion
    sim_files: List[Path] = field(default_factory=list)
    usable_replicates: int = 0
    failed_replicates: List[int] = field(default_factory=list)
    selection_counts: Dict[int, int] = field(default_factory=dict)
    figure_path: Optional[Path] = None

    def summary(self) -> str:
        power_text = "NaN" if math.isnan(self.power) else f"{self.power * 100:.1f}%"
        return "\n".join([
            "kpower result",
            f"  IC used  : {self.criterion.value}",
            f"  K_best   : {self.best_k}",
            f"  Power    : {power_text}",
        ])

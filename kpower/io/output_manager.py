#!/usr/bin/env python3
"""
Output management for kpower.

Writes the empirical and simulated criterion tables as CSV and a
plain-text summary of the run.
"""

import csv
import datetime
import logging
import math
from pathlib import Path
from typing import Any, Dict, IO, List, Optional, Sequence, Union

from ..core.constants import EMPIRICAL_TABLE_FN, SIMULATION_TABLE_FN, SUMMARY_FN, VERSION

logger = logging.getLogger(__name__)

EMPIRICAL_COLUMNS = ['K', 'lnL', 'df', 'AIC', 'AICc', 'BIC']
SIMULATION_COLUMNS = ['replicate'] + EMPIRICAL_COLUMNS


def _format_cell(value: Any) -> str:
    if value is None:
        return "NA"
    if isinstance(value, float):
        if math.isnan(value):
            return "NA"
        return f"{value:.4f}"
    return str(value)


class OutputManager:
    """
    Writes kpower result files into the run's output directory.
    """

    def __init__(self, output_dir: Union[str, Path], debug: bool = False):
        """
        Initialize the output manager.

        Args:
            output_dir: Directory receiving the result files
            debug: Enable debug mode
        """
        self.output_dir = Path(output_dir)
        self.debug = debug

    def write_table(self, path: Union[str, Path], rows: Sequence[Dict[str, Any]],
                    columns: Sequence[str]) -> Path:
        """
        Write rows as CSV with a fixed column order; missing values become NA.

        Args:
            path: Output file
            rows: Table rows
            columns: Column order

        Returns:
            The written path
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', newline='') as f:
            writer = csv.writer(f)
            writer.writerow(columns)
            for row in rows:
                writer.writerow([_format_cell(row.get(col)) for col in columns])
        logger.debug(f"Wrote {len(rows)} rows to {path}")
        return path

    def write_analysis_summary(self, f: IO, result, run_info: Dict[str, Any]) -> None:
        """
        Write the human-readable summary.

        Args:
            f: File handle to write to
            result: KPowerResult
            run_info: Run settings to report (model, replicates, ...)
        """
        title = "kpower: Power to Recover the Number of Mixture Categories"
        separator = "=" * len(title)

        f.write(separator + "\n")
        f.write(f"{title:^{len(separator)}}\n")
        f.write(separator + "\n\n")

        f.write(result.summary() + "\n\n")

        f.write("Run Settings\n")
        f.write("─" * 12 + "\n")
        for key, value in run_info.items():
            f.write(f"• {key}: {value}\n")
        f.write("\n")

        f.write("Empirical Fits\n")
        f.write("─" * 14 + "\n")
        criterion = result.criterion.value
        f.write(f"{'K':>4}  {'lnL':>14}  {'df':>6}  {criterion:>14}\n")
        for record in result.empirical:
            marker = "  <- K_best" if record.K == result.best_k else ""
            f.write(f"{record.K:>4}  {_format_cell(record.log_likelihood):>14}  "
                    f"{_format_cell(record.free_parameter_count):>6}  "
                    f"{_format_cell(record.criterion_value(criterion)):>14}{marker}\n")
        f.write("\n")

        f.write("Bootstrap Replicates\n")
        f.write("─" * 20 + "\n")
        f.write(f"• Simulated alignments: {len(result.sim_files)}\n")
        f.write(f"• Usable replicates: {result.usable_replicates}\n")
        if result.failed_replicates:
            f.write(f"• Failed replicates: {len(result.failed_replicates)} "
                    f"({', '.join(str(i) for i in result.failed_replicates[:20])}"
                    f"{', ...' if len(result.failed_replicates) > 20 else ''})\n")
        if result.selection_counts:
            total = sum(result.selection_counts.values())
            f.write(f"• K selected by {criterion} across replicates:\n")
            for k, count in result.selection_counts.items():
                f.write(f"    K={k}: {count} ({count / total * 100:.1f}%)\n")

    def create_results_summary(self, result) -> Dict[str, Any]:
        """
        Summary statistics of a run as a dictionary.

        Returns:
            Dictionary with best K, power and replicate counts
        """
        return {
            'version': VERSION,
            'criterion': result.criterion.value,
            'best_k': result.best_k,
            'power': result.power,
            'usable_replicates': result.usable_replicates,
            'failed_replicates': len(result.failed_replicates),
            'simulated_alignments': len(result.sim_files),
            'timestamp': datetime.datetime.now().isoformat(),
        }

    def write_results(self, result, run_info: Optional[Dict[str, Any]] = None) -> Dict[str, Path]:
        """
        Write both tables and the summary.

        Args:
            result: KPowerResult
            run_info: Run settings included in the summary

        Returns:
            Mapping of output kind to written path
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        paths = {
            'empirical': self.write_table(self.output_dir / EMPIRICAL_TABLE_FN,
                                          result.empirical.to_rows(), EMPIRICAL_COLUMNS),
            'simulation': self.write_table(self.output_dir / SIMULATION_TABLE_FN,
                                           result.simulation_table, SIMULATION_COLUMNS),
        }

        summary_path = self.output_dir / SUMMARY_FN
        info = dict(run_info or {})
        info.setdefault('Generated', self.create_results_summary(result)['timestamp'])
        with open(summary_path, 'w') as f:
            self.write_analysis_summary(f, result, info)
        paths['summary'] = summary_path

        logger.info(f"Results written to {self.output_dir}")
        return paths


def read_table(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """Read a table written by OutputManager back into rows (NA -> None)."""
    rows = []
    with open(path, newline='') as f:
        for raw in csv.DictReader(f):
            row = {}
            for key, value in raw.items():
                if value == "NA":
                    row[key] = None
                elif key in ('K', 'replicate'):
                    row[key] = int(value)
                else:
                    row[key] = float(value)
            rows.append(row)
    return rows

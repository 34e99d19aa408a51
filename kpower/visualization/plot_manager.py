#!/usr/bin/env python3
"""
Plot management module for kpower visualizations.

This module centralizes all matplotlib imports and draws the criterion
profile figure: one faint line per simulated replicate, the empirical
profile on top and K_best ringed.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import numpy as np

# Centralized matplotlib imports
try:
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt
    from matplotlib.lines import Line2D
    import seaborn as sns
    HAS_MATPLOTLIB = True
except ImportError:
    HAS_MATPLOTLIB = False
    plt = None
    sns = None

logger = logging.getLogger(__name__)

REPLICATE_COLOUR = "#4393c3"
EMPIRICAL_COLOUR = "#d6604d"


def replicate_profiles(simulation_table: Sequence[Dict[str, Any]], criterion: str,
                       k_values: Sequence[int]) -> np.ndarray:
    """
    Pivot long-format replicate rows into a replicates x K matrix.

    Missing values are NaN so that matplotlib breaks the line there.
    """
    column = {k: i for i, k in enumerate(k_values)}
    replicates = sorted({row['replicate'] for row in simulation_table})
    index = {r: i for i, r in enumerate(replicates)}
    matrix = np.full((len(replicates), len(k_values)), np.nan)
    for row in simulation_table:
        value = row.get(criterion)
        if value is None or row['K'] not in column:
            continue
        matrix[index[row['replicate']], column[row['K']]] = value
    return matrix


class PlotManager:
    """
    Draws kpower figures.
    """

    def __init__(self, dpi: int = 150, figsize: Tuple[int, int] = (8, 6)):
        """
        Initialize the plot manager.

        Args:
            dpi: Resolution for saved plots
            figsize: Figure size (width, height)
        """
        self.dpi = dpi
        self.figsize = figsize

        if not HAS_MATPLOTLIB:
            logger.error("Matplotlib not available. Install matplotlib and seaborn for visualization support.")
            return

        sns.set_theme(style="whitegrid", context="notebook", font_scale=1.1)

    def check_matplotlib_availability(self) -> bool:
        return HAS_MATPLOTLIB

    def plot_ic_profiles(self, empirical_rows: Sequence[Dict[str, Any]],
                         simulation_table: Sequence[Dict[str, Any]], best_k: int,
                         power: float, criterion: str, output_path: Union[str, Path],
                         format: str = "png") -> Optional[Path]:
        """
        Criterion against K for the empirical data and every replicate.

        Args:
            empirical_rows: Rows of the empirical fit table
            simulation_table: Long-format replicate rows
            best_k: Empirical best K
            power: Estimated power (NaN allowed)
            criterion: Criterion column to plot
            output_path: File path without or with extension
            format: Output format (png, pdf, svg)

        Returns:
            Saved figure path, or None if plotting was not possible
        """
        if not HAS_MATPLOTLIB:
            logger.error("Matplotlib not available for plotting")
            return None

        output_path = Path(output_path)
        if output_path.suffix.lstrip('.') != format:
            output_path = output_path.with_name(f"{output_path.name}.{format}")

        k_values = [row['K'] for row in empirical_rows]
        empirical = np.array([np.nan if row.get(criterion) is None else row[criterion]
                              for row in empirical_rows], dtype=float)

        fig, ax = plt.subplots(figsize=self.figsize)
        try:
            profiles = replicate_profiles(simulation_table, criterion, k_values)
            for profile in profiles:
                ax.plot(k_values, profile, color=REPLICATE_COLOUR, alpha=0.05, linewidth=0.6)

            ax.plot(k_values, empirical, color=EMPIRICAL_COLOUR, linewidth=2.4,
                    marker='o', markersize=6, zorder=3)

            if best_k in k_values:
                best_value = empirical[k_values.index(best_k)]
                ax.scatter([best_k], [best_value], s=160, facecolors='white',
                           edgecolors=EMPIRICAL_COLOUR, linewidths=2, zorder=4)

            if np.isnan(power):
                power_label = f"Power unavailable (no usable simulations), K_best = {best_k}"
            else:
                power_label = f"Power = {power * 100:.1f}% of simulations select K = {best_k}"

            handles = [
                Line2D([], [], color=EMPIRICAL_COLOUR, linewidth=2.4, marker='o', label="Empirical"),
                Line2D([], [], color=REPLICATE_COLOUR, linewidth=1.0, label=f"Simulated ({len(profiles)})"),
                Line2D([], [], color='none', label=power_label),
            ]
            ax.legend(handles=handles, loc='upper center', bbox_to_anchor=(0.5, -0.12),
                      ncol=1, frameon=False, fontsize=10)

            ax.set_xticks(k_values)
            ax.set_xlabel("Number of mixture categories (K)")
            ax.set_ylabel(criterion)

            output_path.parent.mkdir(parents=True, exist_ok=True)
            fig.savefig(str(output_path), dpi=self.dpi, format=format, bbox_inches='tight')
        finally:
            plt.close(fig)

        logger.info(f"Created criterion profile plot: {output_path}")
        return output_path

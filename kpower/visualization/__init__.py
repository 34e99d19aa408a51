#!/usr/bin/env python3
"""
Visualization for kpower results.
"""

from .plot_manager import HAS_MATPLOTLIB, PlotManager

__all__ = ['HAS_MATPLOTLIB', 'PlotManager']

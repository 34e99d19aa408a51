#!/usr/bin/env python3
"""
File input/output for kpower:
- IQ-TREE report parsing
- Result tables and summary output
"""

from .report_parser import (
    ReplayVariant, ReportStatistics, parse_fit_report, parse_replay_command
)
from .output_manager import OutputManager

__all__ = [
    'ReplayVariant',
    'ReportStatistics',
    'parse_fit_report',
    'parse_replay_command',
    'OutputManager',
]

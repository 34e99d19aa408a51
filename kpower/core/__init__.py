#!/usr/bin/env python3
"""
Core utilities for kpower:
- Constants and defaults
- Logging, alignment and path helpers
- Console progress reporting
"""

from .progress_logger import ProgressLogger
from .utils import alignment_length, make_prefix, pad_int, setup_logging

__all__ = [
    'ProgressLogger',
    'alignment_length',
    'make_prefix',
    'pad_int',
    'setup_logging',
]

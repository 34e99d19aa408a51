#!/usr/bin/env python3
"""
Utility functions for kpower.

Common helpers for logging setup, alignment inspection and the
per-run output layout.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from Bio import AlignIO

logger = logging.getLogger(__name__)

ALIGNMENT_FORMATS = {
    '.fa': 'fasta',
    '.fas': 'fasta',
    '.fasta': 'fasta',
    '.fna': 'fasta',
    '.faa': 'fasta',
    '.phy': 'phylip-relaxed',
    '.phylip': 'phylip-relaxed',
    '.nex': 'nexus',
    '.nexus': 'nexus',
}


def setup_logging(debug_mode: bool = False, log_file: Optional[Union[str, Path]] = None) -> logging.Logger:
    """
    Setup logging for kpower with a console handler and an optional file handler.
    
    Args:
        debug_mode: Enable debug logging
        log_file: Optional log file path for detailed output
        
    Returns:
        The configured package logger
    """
    package_logger = logging.getLogger('kpower')
    package_logger.handlers.clear()
    package_logger.setLevel(logging.DEBUG if debug_mode else logging.INFO)
    
    # Console handler for user-friendly output
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter('%(message)s'))
    console_handler.setLevel(logging.DEBUG if debug_mode else logging.INFO)
    package_logger.addHandler(console_handler)
    
    # File handler for detailed debug output
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        file_handler.setLevel(logging.DEBUG)
        package_logger.addHandler(file_handler)
    
    return package_logger


def guess_alignment_format(path: Union[str, Path]) -> str:
    """Guess a Biopython alignment format name from the file extension."""
    return ALIGNMENT_FORMATS.get(Path(path).suffix.lower(), 'fasta')


def alignment_length(path: Union[str, Path], fmt: Optional[str] = None) -> int:
    """
    Count the number of sites in an alignment.
    
    Args:
        path: Alignment file (FASTA, PHYLIP or NEXUS)
        fmt: Biopython format name; guessed from the extension if omitted
        
    Returns:
        Number of alignment columns
    """
    fmt = fmt or guess_alignment_format(path)
    alignment = AlignIO.read(str(path), fmt)
    n_sites = alignment.get_alignment_length()
    logger.debug(f"Alignment {path}: {len(alignment)} sequences, {n_sites} sites")
    return n_sites


def make_prefix(outdir: Union[str, Path], label: str) -> Path:
    """
    Build a unique IQ-TREE --prefix inside its own directory.
    
    Every label gets a directory of its own so that concurrent runs
    never share output files.
    
    Args:
        outdir: Base output directory
        label: Short label such as "empirical_K4" or "sim0003_K2"
        
    Returns:
        Path prefix outdir/label/label
    """
    run_dir = Path(outdir) / label
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir / label


def pad_int(i: int, width: int = 4) -> str:
    """Zero-pad an integer for consistent file naming."""
    return f"{i:0{width}d}"


def get_display_path(path: Union[str, Path]) -> str:
    """Get a display-friendly path representation."""
    path_obj = Path(path)
    
    if path_obj.is_absolute():
        try:
            rel_path = path_obj.relative_to(Path.cwd())
            if len(str(rel_path)) < len(str(path_obj)):
                return str(rel_path)
        except ValueError:
            pass  # Path is not below the current directory
    
    return str(path_obj)

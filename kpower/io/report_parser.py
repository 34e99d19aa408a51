#!/usr/bin/env python3
"""
Parsing of IQ-TREE `.iqtree` report files.

Two things are read from a report: the fit statistics printed under
fixed English labels, and the AliSim command section that IQ-TREE
appends to every report so the fit can be replayed as a simulation.
"""

import enum
import logging
import re
import warnings
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import List, Optional, Union

from ..core.constants import ALISIM_FLAG, ALISIM_SECTION_MARKER
from ..exceptions import ReportFileError, ReportParseIncomplete

logger = logging.getLogger(__name__)

NUMBER_PATTERN = r'([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)'

REPORT_LABELS = {
    'log_likelihood': r'Log-likelihood of the tree:',
    'free_parameter_count': r'Number of free parameters.*?:',
    'AIC': r'Akaike information criterion \(AIC\) score:',
    'AICc': r'Corrected Akaike information criterion \(AICc\) score:',
    'BIC': r'Bayesian information criterion \(BIC\) score:',
}


@dataclass(frozen=True)
class ReportStatistics:
    """Fit statistics from one report; None marks a value that was not found."""
    log_likelihood: Optional[float] = None
    free_parameter_count: Optional[float] = None
    AIC: Optional[float] = None
    AICc: Optional[float] = None
    BIC: Optional[float] = None
    
    def missing_fields(self) -> List[str]:
        return [name for name, value in asdict(self).items() if value is None]


class ReplayVariant(enum.Enum):
    """Which AliSim command to take from the report, keyed by its output name."""
    PLAIN = "simulated"
    GAP_REPRODUCING = "mimicked"
    
    @property
    def keyword(self) -> str:
        return self.value


def _read_lines(report_path: Path) -> List[str]:
    try:
        return report_path.read_text().splitlines()
    except OSError as e:
        raise ReportFileError(f"Cannot read IQ-TREE report {report_path}: {e}",
                              file_path=report_path) from e


def extract_labelled_number(lines: List[str], label_pattern: str) -> Optional[float]:
    """
    Find the first line matching a label and parse the number after it.
    
    Args:
        lines: Report lines
        label_pattern: Regular expression for the label text
        
    Returns:
        Parsed value, or None if no line carries the label
    """
    regex = re.compile(label_pattern + r'\s*' + NUMBER_PATTERN)
    for line in lines:
        match = regex.search(line)
        if match:
            return float(match.group(1))
    return None


def parse_fit_report(report_path: Union[str, Path]) -> ReportStatistics:
    """
    Extract log-likelihood, free parameters, AIC, AICc and BIC from a report.
    
    Missing labels give None for that field and a ReportParseIncomplete
    warning; they never raise.
    
    Args:
        report_path: Path to a `.iqtree` report file
        
    Returns:
        ReportStatistics for the report
        
    Raises:
        ReportFileError: The report file cannot be read
    """
    report_path = Path(report_path)
    lines = _read_lines(report_path)
    
    values = {field: extract_labelled_number(lines, pattern)
              for field, pattern in REPORT_LABELS.items()}
    stats = ReportStatistics(**values)
    
    missing = stats.missing_fields()
    if missing:
        message = f"Report {report_path.name} is missing: {', '.join(missing)}"
        logger.warning(message)
        warnings.warn(message, ReportParseIncomplete, stacklevel=2)
    
    return stats


def parse_replay_command(report_path: Union[str, Path],
                         variant: ReplayVariant = ReplayVariant.PLAIN) -> Optional[str]:
    """
    Extract an AliSim command line from the ALISIM COMMAND section.
    
    Args:
        report_path: Path to a `.iqtree` report file
        variant: PLAIN (`--alisim simulated_MSA ...`) or GAP_REPRODUCING
            (`... --alisim mimicked_MSA`)
        
    Returns:
        The first matching command line, stripped, or None when the report,
        the section or the requested variant is absent
    """
    report_path = Path(report_path)
    if not report_path.exists():
        logger.debug(f"No report at {report_path}")
        return None
    
    lines = _read_lines(report_path)
    
    section_idx = None
    for idx, line in enumerate(lines):
        if line.startswith(ALISIM_SECTION_MARKER):
            section_idx = idx
            break
    if section_idx is None:
        logger.debug(f"No {ALISIM_SECTION_MARKER} section in {report_path.name}")
        return None
    
    output_name = re.compile(re.escape(ALISIM_FLAG) + r'\s+(\S+)')
    for line in lines[section_idx + 1:]:
        stripped = line.strip()
        if not stripped:
            continue
        match = output_name.search(stripped)
        if match and variant.keyword in match.group(1):
            return stripped
    
    logger.debug(f"No {variant.name.lower()} AliSim command in {report_path.name}")
    return None

#!/usr/bin/env python3
"""
Locating the IQ-TREE executable.
"""

import logging
import shutil
from pathlib import Path
from typing import Optional, Sequence, Union

from ..core.constants import IQTREE_CANDIDATES
from ..exceptions import ExecutableNotFound
from .tool_runner import ExternalToolRunner

logger = logging.getLogger(__name__)


def find_iqtree(preferred: Optional[Union[str, Path]] = None,
                candidates: Sequence[str] = IQTREE_CANDIDATES) -> str:
    """
    Find the IQ-TREE executable.
    
    The caller-supplied path is tried first (as a file, then as a name on
    PATH), followed by each candidate binary name on PATH.
    
    Args:
        preferred: Explicit path or name set by the caller
        candidates: Binary names searched on PATH, in order
        
    Returns:
        Path to the executable as a string
        
    Raises:
        ExecutableNotFound: Nothing resolved; lists every candidate tried
    """
    tried = []
    
    if preferred:
        preferred = str(preferred)
        tried.append(preferred)
        if Path(preferred).is_file():
            logger.debug(f"Using IQ-TREE from configured path: {preferred}")
            return preferred
        resolved = shutil.which(preferred)
        if resolved:
            logger.debug(f"Resolved configured IQ-TREE {preferred} -> {resolved}")
            return resolved
        logger.warning(f"Configured IQ-TREE path not found: {preferred}; searching PATH")
    
    for name in candidates:
        tried.append(name)
        resolved = shutil.which(name)
        if resolved:
            logger.debug(f"Found IQ-TREE on PATH: {resolved}")
            return resolved
    
    raise ExecutableNotFound(
        "IQ-TREE executable not found (tried: " + ", ".join(tried) + "). "
        "Install IQ-TREE and ensure it is on PATH, or set computational.iqtree_path.",
        candidates=tried
    )


def check_iqtree(preferred: Optional[Union[str, Path]] = None, runner_factory=None) -> str:
    """
    Locate IQ-TREE and report its version line.
    
    Args:
        preferred: Explicit path or name set by the caller
        runner_factory: Builds the runner for the located binary
        
    Returns:
        First line of `iqtree --version`
    """
    executable = find_iqtree(preferred)
    runner = (runner_factory or ExternalToolRunner)(executable)
    return runner.check_version()

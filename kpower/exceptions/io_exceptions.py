#!/usr/bin/env python3
"""
File-related exceptions for kpower.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union

from .analysis_exceptions import KPowerError


class ReportFileError(KPowerError):
    """An IQ-TREE report exists in name only: missing or unreadable."""
    
    def __init__(self, message: str, file_path: Optional[Union[str, Path]] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)
        self.file_path = Path(file_path) if file_path is not None else None
        if file_path is not None:
            self.context['file_path'] = str(file_path)

#!/usr/bin/env python3
"""
Exceptions raised while locating or running the inference tool.
"""

from typing import Any, Dict, List, Optional, Sequence

from .analysis_exceptions import KPowerError


class ExternalToolError(KPowerError):
    """Base class for failures of the external inference tool."""
    
    def __init__(self, message: str, tool_name: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)
        self.tool_name = tool_name
        if tool_name is not None:
            self.context['tool_name'] = tool_name


class ExecutableNotFound(ExternalToolError):
    """None of the candidate IQ-TREE executables could be resolved."""
    
    def __init__(self, message: str, candidates: Optional[Sequence[str]] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context=context)
        self.candidates: List[str] = list(candidates or [])
        self.context['candidates'] = self.candidates


class ExternalToolFailure(ExternalToolError):
    """The tool exited with a non-zero status."""
    
    def __init__(self, message: str, exit_status: Optional[int] = None,
                 stderr_excerpt: str = "", tool_name: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, tool_name=tool_name, context=context)
        self.exit_status = exit_status
        self.stderr_excerpt = stderr_excerpt
        self.context['exit_status'] = exit_status


class TimeoutExceeded(ExternalToolError):
    """The tool ran past its timeout and was killed."""
    
    def __init__(self, message: str, timeout_seconds: Optional[float] = None,
                 tool_name: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, tool_name=tool_name, context=context)
        self.timeout_seconds = timeout_seconds
        self.context['timeout_seconds'] = timeout_seconds

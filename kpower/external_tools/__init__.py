#!/usr/bin/env python3
"""
Interaction with the external inference tool.

- Executable discovery
- Process invocation with timeouts
- Replay command tokenizing and rewriting
"""

from .tool_runner import ExternalToolRunner, ToolExecutionResult
from .tool_locator import check_iqtree, find_iqtree
from .command_rewriter import build_replay_args, replace_or_append, strip_executable, tokenize

__all__ = [
    'ExternalToolRunner',
    'ToolExecutionResult',
    'check_iqtree',
    'find_iqtree',
    'build_replay_args',
    'replace_or_append',
    'strip_executable',
    'tokenize',
]

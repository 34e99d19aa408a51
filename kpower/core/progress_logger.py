#!/usr/bin/env python3
"""
Console progress reporting for kpower.

Long bootstrap runs refit every K on hundreds of replicates; this module
keeps the console to one overwriting status line per stage instead of a
log line per IQ-TREE invocation.
"""

import sys
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class ProgressLogger:
    """
    Overwriting progress line for the stages of a kpower run.

    With verbose output enabled the overwriting line is suppressed and
    messages go through the logging module instead.
    """

    def __init__(self, show_progress: bool = True, verbose: bool = False, stream=None):
        """
        Initialize progress logger.

        Args:
            show_progress: Whether to show dynamic progress updates
            verbose: Whether detailed logging is on (disables overwriting)
            stream: Output stream, defaults to stdout
        """
        self.show_progress = show_progress and not verbose
        self.verbose = verbose
        self.stream = stream if stream is not None else sys.stdout
        self.current_line = ""
        self.failures = 0

    def _clear(self):
        if self.current_line:
            self.stream.write('\r' + ' ' * len(self.current_line) + '\r')
            self.current_line = ""

    def progress(self, message: str, current: Optional[int] = None,
                 total: Optional[int] = None):
        """
        Show a progress message, replacing the previous one.

        Args:
            message: Progress message to display
            current: Items finished so far
            total: Total number of items
        """
        if current is not None and total is not None:
            progress_msg = f"{message} [{current}/{total}]"
        else:
            progress_msg = message

        if not self.show_progress:
            logger.debug(progress_msg)
            return

        self._clear()
        self.stream.write(progress_msg)
        self.stream.flush()
        self.current_line = progress_msg

    def replicate_done(self, replicate_index: int, completed: int, total: int, ok: bool = True):
        """Record one finished replicate and refresh the progress line."""
        if not ok:
            self.failures += 1
        suffix = f" ({self.failures} failed)" if self.failures else ""
        self.progress(f"Refitting replicates{suffix}", completed, total)
        logger.debug(f"Replicate {replicate_index} finished ({'ok' if ok else 'failed'})")

    def complete(self, final_message: str, count: Optional[int] = None, item_type: str = "items"):
        """
        Finish the current progress line with a completion message.

        Args:
            final_message: Final completion message
            count: Number of items processed
            item_type: Noun describing the items
        """
        if count is not None:
            completion_msg = f"✓ {final_message} ({count} {item_type})"
        else:
            completion_msg = f"✓ {final_message}"

        if not self.show_progress:
            logger.info(completion_msg)
            return

        self._clear()
        self.stream.write(completion_msg + "\n")
        self.stream.flush()

    def section_header(self, title: str):
        """Display a stage header."""
        if not self.show_progress:
            logger.info(title)
            return

        self._clear()
        self.stream.write(f"\n{title}\n{'-' * len(title)}\n")
        self.stream.flush()

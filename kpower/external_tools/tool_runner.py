#!/usr/bin/env python3
"""
Process invoker for the external inference tool (IQ-TREE / AliSim).

Arguments are always passed as a list, never through a shell, so the
tokens handed in here are exactly what IQ-TREE receives.
"""

import logging
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

from ..core.constants import STDERR_EXCERPT_CHARS
from ..exceptions import ExecutableNotFound, ExternalToolFailure, TimeoutExceeded

logger = logging.getLogger(__name__)


@dataclass
class ToolExecutionResult:
    """Captured outcome of one tool invocation."""
    args: List[str]
    returncode: int
    stdout: str
    stderr: str
    execution_time: float


def _excerpt(stderr: str, stdout: str, limit: int = STDERR_EXCERPT_CHARS) -> str:
    # IQ-TREE writes most errors to stdout, so fall back to it
    text = stderr.strip() or stdout.strip()
    if len(text) > limit:
        return "..." + text[-limit:]
    return text


class ExternalToolRunner:
    """Runs one executable with argument lists, a timeout and captured streams."""
    
    def __init__(self, executable: Union[str, Path], debug: bool = False):
        """
        Initialize the runner.
        
        Args:
            executable: Path to (or name of) the IQ-TREE binary
            debug: Log full commands and output samples
        """
        self.executable = str(executable)
        self.debug = debug
    
    def invoke(self, args: Sequence[str], timeout: Optional[float] = None,
               cwd: Optional[Union[str, Path]] = None) -> ToolExecutionResult:
        """
        Run the executable with the given arguments.
        
        Args:
            args: Argument list (no shell interpretation)
            timeout: Seconds before the process is killed; None waits forever
            cwd: Working directory for the process
            
        Returns:
            ToolExecutionResult for a zero exit status
            
        Raises:
            ExecutableNotFound: The executable could not be started
            ExternalToolFailure: Non-zero exit status
            TimeoutExceeded: The run exceeded the timeout and was killed
        """
        cmd = [self.executable] + [str(a) for a in args]
        logger.debug(f"Running: {' '.join(cmd)}")
        start_time = time.time()
        
        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                cwd=str(cwd) if cwd is not None else None
            )
        except FileNotFoundError as e:
            raise ExecutableNotFound(
                f"Cannot execute {self.executable}: {e}",
                candidates=[self.executable]
            ) from e
        
        try:
            stdout, stderr = process.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            process.kill()
            process.communicate()
            logger.error(f"{Path(self.executable).name} timed out after {timeout} seconds")
            raise TimeoutExceeded(
                f"{Path(self.executable).name} timed out after {timeout} seconds",
                timeout_seconds=timeout,
                tool_name=self.executable,
                context={'command': ' '.join(cmd)}
            )
        
        execution_time = time.time() - start_time
        stdout = stdout or ""
        stderr = stderr or ""
        
        if self.debug and stdout:
            sample = stdout[:500] + "..." if len(stdout) > 500 else stdout
            logger.debug(f"stdout sample:\n{sample}")
        
        if process.returncode != 0:
            excerpt = _excerpt(stderr, stdout)
            logger.error(f"{Path(self.executable).name} failed with exit code {process.returncode}")
            raise ExternalToolFailure(
                f"{Path(self.executable).name} failed with exit code {process.returncode}:\n{excerpt}",
                exit_status=process.returncode,
                stderr_excerpt=excerpt,
                tool_name=self.executable,
                context={'command': ' '.join(cmd)}
            )
        
        logger.debug(f"Finished in {execution_time:.1f}s")
        return ToolExecutionResult(
            args=cmd,
            returncode=process.returncode,
            stdout=stdout,
            stderr=stderr,
            execution_time=execution_time
        )
    
    def check_version(self, timeout: float = 60) -> str:
        """Run `--version` and return the first line of output."""
        result = self.invoke(["--version"], timeout=timeout)
        lines = result.stdout.strip().splitlines()
        version_line = lines[0] if lines else ""
        logger.info(f"IQ-TREE found: {self.executable}")
        logger.info(version_line)
        return version_line

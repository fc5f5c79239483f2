#!/usr/bin/env python3
"""
Execution of external phylogenetic programs.

Every job writes its stdout and stderr streams to files inside its own
working directory; the runner enforces the job's timeout and turns process
failures into ExternalToolError subclasses.
"""

import subprocess
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from ..core.constants import STDOUT_SAMPLE_SIZE
from ..exceptions import ToolExecutionError, ToolNotFoundError, ToolTimeoutError

logger = logging.getLogger(__name__)


@dataclass
class ToolExecutionResult:
    """Outcome of one external program run."""
    args: List[str]
    returncode: int
    stdout_path: Path
    stderr_path: Path
    execution_time: float = 0.0


class ExternalToolRunner:
    """Handles execution of external phylogenetic software (Parsimonator, RAxML)."""

    def __init__(self, debug: bool = False):
        self.debug = debug

    def run(self, command: List[str], cwd: Union[str, Path],
            stdout_path: Union[str, Path], stderr_path: Union[str, Path],
            timeout_sec: Optional[float] = None,
            tool_name: Optional[str] = None) -> ToolExecutionResult:
        """
        Run a command to completion, streaming its output into files.

        Args:
            command: Program and arguments
            cwd: Working directory of the process
            stdout_path: File receiving the standard output stream
            stderr_path: File receiving the standard error stream
            timeout_sec: Kill the process after this many seconds
            tool_name: Name used in log and error messages

        Returns:
            ToolExecutionResult of the finished process
        """
        command = [str(c) for c in command]
        tool_name = tool_name or Path(command[0]).name
        stdout_path = Path(stdout_path)
        stderr_path = Path(stderr_path)
        logger.debug(f"Running {tool_name}: {' '.join(command)} (cwd: {cwd})")

        start_time = time.time()
        with open(stdout_path, 'w') as f_out, open(stderr_path, 'w') as f_err:
            try:
                process = subprocess.Popen(
                    command, stdout=f_out, stderr=f_err, text=True, cwd=str(cwd)
                )
            except FileNotFoundError as e:
                raise ToolNotFoundError(f"{tool_name} executable not found: {command[0]}",
                                        tool_name=tool_name, command=command) from e

            try:
                process.wait(timeout=timeout_sec)
            except subprocess.TimeoutExpired:
                process.kill()
                process.wait()
                raise ToolTimeoutError(
                    f"{tool_name} timed out after {timeout_sec} seconds",
                    tool_name=tool_name, command=command, timeout=timeout_sec
                )

        execution_time = time.time() - start_time
        logger.debug(f"{tool_name} finished in {execution_time:.2f}s "
                     f"with return code {process.returncode}")

        if self.debug:
            self._log_output_sample(tool_name, stdout_path)

        if process.returncode != 0:
            logger.error(f"{tool_name} failed with return code {process.returncode} "
                         f"(stderr: {stderr_path})")
            raise ToolExecutionError(
                f"{tool_name} failed with exit code {process.returncode}",
                tool_name=tool_name, command=command,
                returncode=process.returncode, stderr_path=stderr_path
            )

        return ToolExecutionResult(
            args=command,
            returncode=process.returncode,
            stdout_path=stdout_path,
            stderr_path=stderr_path,
            execution_time=execution_time
        )

    def _log_output_sample(self, tool_name: str, stdout_path: Path) -> None:
        if not stdout_path.exists():
            return
        content = stdout_path.read_text(errors='replace')
        if content:
            sample = (content[:STDOUT_SAMPLE_SIZE] + "..."
                      if len(content) > STDOUT_SAMPLE_SIZE else content)
            logger.debug(f"{tool_name} stdout sample:\n{sample}")

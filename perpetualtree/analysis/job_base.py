#!/usr/bin/env python3
"""
Base classes and interfaces for perpetualtree candidate jobs.

This module defines the common interface of the jobs that generate, refine
and score candidate trees. Every job consumes a JobOptions record, runs one
external program in its output directory and leaves a result artifact whose
name is derived from the job name.
"""

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from .external_tools import ExternalToolRunner
from ..exceptions import FileOperationError, ScoreNotFoundError, ToolExecutionError

logger = logging.getLogger(__name__)


@dataclass
class JobOptions:
    """
    Options record handed to a candidate job.

    Attributes:
        alignment: Input alignment (PHYLIP)
        outdir: Directory receiving every file of the job
        name: Job name; the result artifacts are named after it
        stdout: Standard output stream file
        stderr: Standard error stream file
        partition_file: Optional partition scheme
        starting_tree: Optional starting topology
        seed: Optional random seed
        num_trees: Optional number of trees to produce
        num_threads: Optional worker thread hint, passed through untouched
        flags: Extra program flags
    """
    alignment: Path
    outdir: Path
    name: str
    stdout: Path
    stderr: Path
    partition_file: Optional[Path] = None
    starting_tree: Optional[Path] = None
    seed: Optional[int] = None
    num_trees: Optional[int] = None
    num_threads: Optional[int] = None
    flags: Optional[List[str]] = None


@dataclass
class JobResult:
    """Files left behind by a finished job."""
    name: str
    result_path: Path
    stdout_path: Path
    stderr_path: Path
    execution_time: float = 0.0


def input_arg(path) -> str:
    """Absolute form of an input path; programs run with their output directory as cwd."""
    return str(Path(path).absolute())


def parse_score(stream_path: Path, marker: str) -> float:
    """
    Read a score from the first line of a stream starting with `marker`.

    The score is the trailing whitespace-separated field of that line.

    Raises:
        ScoreNotFoundError: If no such line exists or its last field is not a number
    """
    stream_path = Path(stream_path)
    if not stream_path.exists():
        raise ScoreNotFoundError(stream_path, marker, context={'reason': 'missing stream'})

    with open(stream_path, errors='replace') as stream:
        for line in stream:
            if line.lstrip().startswith(marker):
                remainder = line.strip()[len(marker):].split()
                if not remainder:
                    break
                try:
                    return float(remainder[-1])
                except ValueError:
                    raise ScoreNotFoundError(stream_path, marker,
                                             context={'line': line.strip()})
    raise ScoreNotFoundError(stream_path, marker)


class CandidateJobRunner(ABC):
    """
    Abstract base class for jobs that produce or score candidate trees.

    Subclasses decide the command line and where the result artifact lands;
    running, stream capture and error translation are shared here.
    """

    tool_name = "job"

    def __init__(self, executable: str, external_runner: Optional[ExternalToolRunner] = None,
                 timeout_sec: Optional[float] = None, debug: bool = False):
        """
        Initialize the job runner.

        Args:
            executable: Program to run
            external_runner: ExternalToolRunner instance for running external tools
            timeout_sec: Per-job timeout
            debug: Enable debug logging
        """
        self.executable = executable
        self.external_runner = external_runner or ExternalToolRunner(debug=debug)
        self.timeout_sec = timeout_sec
        self.debug = debug

    @abstractmethod
    def build_command(self, options: JobOptions) -> List[str]:
        """Return the command line for the given options."""

    @abstractmethod
    def result_path(self, options: JobOptions) -> Path:
        """Return the result artifact a successful run leaves behind."""

    def validate_options(self, options: JobOptions) -> None:
        """Check that the input files named by the options exist."""
        if not Path(options.alignment).exists():
            raise FileOperationError(f"Alignment not found: {options.alignment}",
                                     options.alignment, 'validate_options')
        if options.partition_file is not None and not Path(options.partition_file).exists():
            raise FileOperationError(f"Partition file not found: {options.partition_file}",
                                     options.partition_file, 'validate_options')
        if options.starting_tree is not None and not Path(options.starting_tree).exists():
            raise FileOperationError(f"Starting tree not found: {options.starting_tree}",
                                     options.starting_tree, 'validate_options')

    def run(self, options: JobOptions) -> JobResult:
        """
        Run the job to completion.

        Returns:
            JobResult pointing at the result artifact

        Raises:
            ExternalToolError: If the program fails or leaves no result artifact
        """
        self.validate_options(options)
        options.outdir.mkdir(parents=True, exist_ok=True)
        command = self.build_command(options)

        execution = self.external_runner.run(
            command, cwd=options.outdir, stdout_path=options.stdout,
            stderr_path=options.stderr, timeout_sec=self.timeout_sec,
            tool_name=self.tool_name
        )

        result_path = self.result_path(options)
        if not result_path.exists():
            raise ToolExecutionError(
                f"{self.tool_name} job {options.name} left no result at {result_path}",
                tool_name=self.tool_name, command=command, returncode=execution.returncode,
                stderr_path=options.stderr
            )

        logger.debug(f"{self.tool_name} job {options.name} produced {result_path}")
        return JobResult(
            name=options.name,
            result_path=result_path,
            stdout_path=Path(options.stdout),
            stderr_path=Path(options.stderr),
            execution_time=execution.execution_time
        )

    def _common_args(self, options: JobOptions) -> List[str]:
        args = ["-s", input_arg(options.alignment), "-n", options.name]
        if options.partition_file is not None:
            args.extend(["-q", input_arg(options.partition_file)])
        if options.num_threads:
            args.extend(["-T", str(options.num_threads)])
        if options.flags:
            args.extend(options.flags)
        return args


class ScoringJobRunner(CandidateJobRunner):
    """A job whose output carries a log-likelihood behind a fixed marker."""

    score_marker = ""

    @abstractmethod
    def score_stream(self, options: JobOptions) -> Path:
        """Return the stream holding the score line."""

    def likelihood(self, options: JobOptions) -> float:
        """
        Parse the likelihood of a finished job.

        Raises:
            ScoreNotFoundError: If the stream has no usable score line
        """
        value = parse_score(self.score_stream(options), self.score_marker)
        if math.isnan(value):
            raise ScoreNotFoundError(self.score_stream(options), self.score_marker,
                                     context={'reason': 'score is NaN'})
        return value


def options_summary(options: JobOptions) -> Dict[str, Any]:
    """Options as a flat dict of strings, for logging."""
    return {f.name: str(getattr(options, f.name)) for f in fields(options)
            if getattr(options, f.name) is not None}

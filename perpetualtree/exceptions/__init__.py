#!/usr/bin/env python3
"""
Exception hierarchy for perpetualtree.

- Iteration errors raised by the coordinator and the ranker
- External tool errors raised by the job runners
- File errors raised by the tree splitter and the persister
"""

from .iteration_exceptions import (
    PerpetualTreeError, ConfigurationError, IterationError,
    PrerequisiteMissingError, InvalidKeepCountError, RoundDirectoryExistsError,
    CandidateError, CandidateGenerationError, CandidateEvaluationError,
    InsufficientSurvivorsError, EmptyCandidateSetError
)
from .tool_exceptions import (
    ExternalToolError, ToolNotFoundError, ToolExecutionError,
    ToolTimeoutError, ScoreNotFoundError
)
from .io_exceptions import FileOperationError, TreeParsingError, BunchIncompleteError

__all__ = [
    'PerpetualTreeError',
    'ConfigurationError',
    'IterationError',
    'PrerequisiteMissingError',
    'InvalidKeepCountError',
    'RoundDirectoryExistsError',
    'CandidateError',
    'CandidateGenerationError',
    'CandidateEvaluationError',
    'InsufficientSurvivorsError',
    'EmptyCandidateSetError',
    'ExternalToolError',
    'ToolNotFoundError',
    'ToolExecutionError',
    'ToolTimeoutError',
    'ScoreNotFoundError',
    'FileOperationError',
    'TreeParsingError',
    'BunchIncompleteError'
]

#!/usr/bin/env python3
"""
Exceptions raised by the iteration coordinator and the ranking layer.
"""

from typing import Any, Dict, Optional


class PerpetualTreeError(Exception):
    """Base class for every perpetualtree error, with a context dictionary."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = dict(context) if context else {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(PerpetualTreeError):
    """Invalid or unreadable configuration."""

    def __init__(self, message: str, config_key: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)
        self.config_key = config_key
        if config_key is not None:
            self.context['config_key'] = config_key


class IterationError(PerpetualTreeError):
    """An error attached to one round of the search."""

    def __init__(self, message: str, update_id: Optional[int] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)
        self.update_id = update_id
        if update_id is not None:
            self.context['update_id'] = update_id


class PrerequisiteMissingError(IterationError):
    """A warm-start round was requested but the previous best bunch is not available."""

    def __init__(self, message: str, missing_path=None, update_id: Optional[int] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, update_id, context)
        self.missing_path = missing_path
        if missing_path is not None:
            self.context['missing_path'] = str(missing_path)


class InvalidKeepCountError(IterationError):
    """The requested keep count cannot be satisfied by the round's candidate count."""

    def __init__(self, keep_count: int, candidate_count: int,
                 update_id: Optional[int] = None):
        message = (f"#bestML trees ({keep_count}) can't be higher than "
                   f"iteration number of trees {candidate_count}")
        if keep_count < 1:
            message = f"#bestML trees must be at least 1, got {keep_count}"
        super().__init__(message, update_id, {
            'keep_count': keep_count,
            'candidate_count': candidate_count,
        })
        self.keep_count = keep_count
        self.candidate_count = candidate_count


class RoundDirectoryExistsError(IterationError):
    """The working directories of a round already exist on disk."""

    def __init__(self, existing_paths, update_id: Optional[int] = None):
        paths = [str(p) for p in existing_paths]
        super().__init__(f"Round working directories already exist: {', '.join(paths)}",
                         update_id, {'existing_paths': paths})
        self.existing_paths = paths


class CandidateError(IterationError):
    """An error attached to a single candidate tree."""

    def __init__(self, message: str, candidate_id: Optional[str] = None,
                 update_id: Optional[int] = None, stage: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, update_id, context)
        self.candidate_id = candidate_id
        self.stage = stage
        if candidate_id is not None:
            self.context['candidate_id'] = candidate_id
        if stage is not None:
            self.context['stage'] = stage


class CandidateGenerationError(CandidateError):
    """A candidate starting tree could not be generated; fatal for the round."""


class CandidateEvaluationError(CandidateError):
    """Refinement or scoring failed for one candidate; recorded, not fatal."""


class InsufficientSurvivorsError(IterationError):
    """Fewer candidates survived evaluation than the round must keep."""

    def __init__(self, survivors: int, keep_count: int, failures=None,
                 update_id: Optional[int] = None):
        failures = list(failures or [])
        super().__init__(
            f"Only {survivors} candidates survived evaluation, "
            f"{keep_count} are required for the best bunch",
            update_id,
            {
                'survivors': survivors,
                'keep_count': keep_count,
                'failed_candidates': [f.candidate.name for f in failures],
            }
        )
        self.survivors = survivors
        self.keep_count = keep_count
        self.failures = failures


class EmptyCandidateSetError(PerpetualTreeError):
    """Ranking was requested for a round without evaluated candidates."""

    def __init__(self, message: str = "No evaluated candidates to rank",
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)

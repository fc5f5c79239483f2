#!/usr/bin/env python3
"""
Core orchestration logic for perpetualtree.

This package contains the main orchestration classes and utilities:
- Iteration coordinator and round model
- Candidate dispatcher
- Progress reporting and common utilities
"""

from .round_model import (
    RoundState, InitialRound, WarmStartRound, FromScratchRound, CandidateTree,
    EvaluatedCandidate, CandidateFailure, Ranking, BunchEntry, BestBunch, RoundLayout
)
from .candidate_dispatcher import CandidateDispatcher
from .iteration_coordinator import IterationCoordinator, IterationRound
from .progress_logger import ProgressLogger
from .utils import setup_logging, derive_seed

__all__ = [
    'RoundState',
    'InitialRound',
    'WarmStartRound',
    'FromScratchRound',
    'CandidateTree',
    'EvaluatedCandidate',
    'CandidateFailure',
    'Ranking',
    'BunchEntry',
    'BestBunch',
    'RoundLayout',
    'CandidateDispatcher',
    'IterationCoordinator',
    'IterationRound',
    'ProgressLogger',
    'setup_logging',
    'derive_seed'
]

#!/usr/bin/env python3
"""
perpetualtree: multi-round maximum-likelihood tree search.

Each round draws parsimony starting trees (fresh, or seeded by the best trees
of the previous round), refines and scores them under ML, and keeps the best
ones as the seed of the next round.
"""

from .core.constants import VERSION
from .core.iteration_coordinator import IterationCoordinator
from .core.round_model import InitialRound, WarmStartRound, FromScratchRound, RoundState
from .config_loader import load_configuration

__version__ = VERSION

__all__ = [
    'IterationCoordinator',
    'InitialRound',
    'WarmStartRound',
    'FromScratchRound',
    'RoundState',
    'load_configuration',
    '__version__'
]

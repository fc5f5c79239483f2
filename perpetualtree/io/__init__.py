#!/usr/bin/env python3
"""
I/O operations for perpetualtree.

This package handles all file-level work on trees and round results:
- Splitting multi-tree bundles
- Ranking evaluated candidates
- Persisting and loading best-ML bunches
- Iteration results tables
"""

from .tree_splitter import TreeSetSplitter
from .result_ranker import ResultRanker
from .best_set_persister import BestSetPersister
from .iteration_report import IterationReport, summarize_likelihoods

__all__ = [
    'TreeSetSplitter',
    'ResultRanker',
    'BestSetPersister',
    'IterationReport',
    'summarize_likelihoods'
]

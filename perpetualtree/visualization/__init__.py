#!/usr/bin/env python3
"""
Visualization system for perpetualtree.

This package handles all visualization operations using matplotlib:
- Per-round likelihood plots marking the kept trees
"""

from .plot_manager import PlotManager, HAS_MATPLOTLIB

__all__ = [
    'PlotManager',
    'HAS_MATPLOTLIB'
]

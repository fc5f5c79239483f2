#!/usr/bin/env python3
"""
Plot management module for perpetualtree visualizations.

This module centralizes all matplotlib imports and draws the per-round
likelihood plot. Plotting is optional: without matplotlib installed every
plot request is logged and skipped.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional, Tuple, Union

import numpy as np

# Centralized matplotlib imports
try:
    import matplotlib.pyplot as plt
    HAS_MATPLOTLIB = True
except ImportError:
    HAS_MATPLOTLIB = False
    plt = None

from ..core.round_model import CandidateFailure, Ranking

logger = logging.getLogger(__name__)


class PlotManager:
    """
    Manages plotting operations for perpetualtree.

    Plot failures never fail a round; every method reports success as a bool.
    """

    def __init__(self, dpi: int = 150, figsize: Tuple[int, int] = (10, 6),
                 font_size: int = 12, format: str = "png"):
        """
        Initialize the plot manager.

        Args:
            dpi: Resolution for saved plots
            figsize: Default figure size (width, height)
            font_size: Base font size
            format: Output format (png, pdf, svg)
        """
        self.dpi = dpi
        self.figsize = tuple(figsize)
        self.font_size = font_size
        self.format = format

        if not HAS_MATPLOTLIB:
            logger.error("Matplotlib not available. Install the 'visualization' extra for plot support.")

    @classmethod
    def from_config(cls, visualization_config) -> Optional['PlotManager']:
        """PlotManager for an enabled VisualizationConfig, else None."""
        if not visualization_config.enable:
            return None
        static = visualization_config.static
        return cls(dpi=static.get('dpi', 150),
                   figsize=tuple(static.get('figsize', (10, 6))),
                   font_size=static.get('font_size', 12),
                   format=visualization_config.format)

    def create_likelihood_plot(self, ranking: Ranking, keep_count: int,
                               output_path: Union[str, Path],
                               failures: Iterable[CandidateFailure] = ()) -> bool:
        """
        Plot every ranked likelihood, highlighting the kept trees.

        Args:
            ranking: Ranked candidates of the round
            keep_count: Number of kept trees
            output_path: Path to save the plot; its suffix follows the configured format
            failures: Failed candidates, reported in the title

        Returns:
            True if plot created successfully, False otherwise
        """
        if not HAS_MATPLOTLIB:
            logger.error("Matplotlib not available for plotting")
            return False

        output_path = Path(output_path).with_suffix(f".{self.format}")
        failures = list(failures)
        try:
            values = np.array(ranking.likelihoods, dtype=float)
            ranks = np.arange(len(values))
            kept = ranks < keep_count

            fig, ax = plt.subplots(figsize=self.figsize)
            ax.scatter(ranks[~kept], values[~kept], color='grey', alpha=0.7, label="ranked")
            ax.scatter(ranks[kept], values[kept], color='tab:green', edgecolor='black',
                       label=f"kept ({int(kept.sum())})")
            if len(values) > 1:
                ax.axhline(values.mean(), color='tab:blue', linestyle='--', alpha=0.5,
                           label=f"mean {values.mean():.2f}")

            ax.set_xlabel("Rank", fontsize=self.font_size)
            ax.set_ylabel("Log-likelihood", fontsize=self.font_size)
            title = f"Round {ranking.best.candidate.update_id}: {len(values)} ML trees"
            if failures:
                title += f", {len(failures)} failed"
            ax.set_title(title, fontsize=self.font_size + 2, fontweight='bold')
            ax.grid(True, alpha=0.3)
            ax.legend()

            plt.tight_layout()
            plt.savefig(str(output_path), dpi=self.dpi, format=self.format, bbox_inches='tight')
            plt.close(fig)

            logger.info(f"Created likelihood plot: {output_path}")
            return True

        except Exception as e:
            logger.error(f"Failed to create likelihood plot: {e}")
            return False

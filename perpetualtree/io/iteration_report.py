#!/usr/bin/env python3
"""
Iteration results table for perpetualtree.

After ranking, every round writes a tab-separated table listing each ranked
candidate, whether it was kept in the best bunch, and every candidate that
failed evaluation, followed by summary statistics of the likelihoods.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Union

import numpy as np

from ..core.round_model import CandidateFailure, Ranking

logger = logging.getLogger(__name__)

HEADER = ["rank", "candidate", "parent", "seed", "lh", "status", "detail"]


def summarize_likelihoods(ranking: Ranking) -> Dict[str, Any]:
    """
    Summary statistics of a ranking's likelihoods.

    Returns:
        Dictionary with count, best, worst, mean, std and spread
    """
    values = np.array(ranking.likelihoods, dtype=float)
    if values.size == 0:
        return {'count': 0}
    return {
        'count': int(values.size),
        'best': float(values.max()),
        'worst': float(values.min()),
        'mean': float(values.mean()),
        'std': float(values.std()),
        'spread': float(values.max() - values.min()),
    }


class IterationReport:
    """Writes the per-round results table."""

    def __init__(self, update_id: int, ranking: Ranking, keep_count: int,
                 failures: Iterable[CandidateFailure] = ()):
        self.update_id = update_id
        self.ranking = ranking
        self.keep_count = keep_count
        self.failures = list(failures)

    def rows(self):
        for rank, evaluated in enumerate(self.ranking):
            candidate = evaluated.candidate
            status = "kept" if rank < self.keep_count else "ranked"
            yield [str(rank), candidate.name,
                   candidate.parent.name if candidate.parent else "-",
                   str(candidate.seed), repr(evaluated.lh), status, str(evaluated.tree_path)]
        for failure in sorted(self.failures, key=lambda f: f.candidate.index):
            candidate = failure.candidate
            yield ["-", candidate.name,
                   candidate.parent.name if candidate.parent else "-",
                   str(candidate.seed), "-", f"failed:{failure.stage}",
                   " ".join(failure.error.split())]

    def summary_lines(self):
        summary = summarize_likelihoods(self.ranking)
        lines = [f"# update_id\t{self.update_id}",
                 f"# survivors\t{len(self.ranking)}",
                 f"# failed\t{len(self.failures)}",
                 f"# kept\t{min(self.keep_count, len(self.ranking))}"]
        for key in ('best', 'worst', 'mean', 'std', 'spread'):
            if key in summary:
                lines.append(f"# {key}_lh\t{summary[key]:.6f}")
        return lines

    def write(self, output_path: Union[str, Path]) -> Path:
        """Write the table and return its path."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w') as f:
            f.write("\t".join(HEADER) + "\n")
            for row in self.rows():
                f.write("\t".join(row) + "\n")
            for line in self.summary_lines():
                f.write(line + "\n")
        logger.debug(f"Iteration results written to {output_path}")
        return output_path

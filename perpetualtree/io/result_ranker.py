#!/usr/bin/env python3
"""
Ranking of the evaluated candidates of a round.
"""

import logging
from typing import Iterable

from ..core.round_model import EvaluatedCandidate, Ranking
from ..exceptions import EmptyCandidateSetError

logger = logging.getLogger(__name__)


class ResultRanker:
    """
    Orders evaluated candidates by log-likelihood, best first.

    Likelihoods are compared exactly, without any tolerance. Equal values
    are ordered by candidate creation index, so the ranking depends only on
    the (candidate, likelihood) pairs and never on completion order.
    """

    @staticmethod
    def sort_key(evaluated: EvaluatedCandidate):
        return (-evaluated.lh, evaluated.creation_index)

    def rank(self, evaluated_candidates: Iterable[EvaluatedCandidate]) -> Ranking:
        """
        Rank the evaluated candidates of one round.

        Raises:
            EmptyCandidateSetError: If there is nothing to rank
        """
        candidates = list(evaluated_candidates)
        if not candidates:
            raise EmptyCandidateSetError()

        ordered = tuple(sorted(candidates, key=self.sort_key))
        logger.debug("Ranking: " + ", ".join(f"{e.name}={e.lh}" for e in ordered))
        return Ranking(ordered)

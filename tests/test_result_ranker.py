"""
Tests for ResultRanker.
"""

from pathlib import Path

import pytest

from perpetualtree.core.round_model import CandidateTree, EvaluatedCandidate
from perpetualtree.exceptions import EmptyCandidateSetError
from perpetualtree.io.result_ranker import ResultRanker


def evaluated(index, lh):
    candidate = CandidateTree(0, index, 123 + index)
    return EvaluatedCandidate(candidate, Path(f"tree_{index}"), lh)


class TestResultRanker:

    def test_best_first_with_ties_by_creation_order(self):
        candidates = [evaluated(0, -5000.1), evaluated(1, -4998.3),
                      evaluated(2, -5001.9), evaluated(3, -4998.3)]

        ranking = ResultRanker().rank(candidates)

        assert [e.creation_index for e in ranking] == [1, 3, 0, 2]
        assert ranking.best.lh == -4998.3
        assert ranking.likelihoods == [-4998.3, -4998.3, -5000.1, -5001.9]

    def test_independent_of_input_order(self):
        candidates = [evaluated(i, lh) for i, lh in enumerate([-10.0, -9.0, -10.0, -8.0])]

        forward = ResultRanker().rank(candidates)
        backward = ResultRanker().rank(reversed(candidates))

        assert list(forward) == list(backward)

    def test_exact_comparison(self):
        candidates = [evaluated(0, -100.0000001), evaluated(1, -100.0)]

        ranking = ResultRanker().rank(candidates)

        assert [e.creation_index for e in ranking] == [1, 0]

    def test_top(self):
        ranking = ResultRanker().rank([evaluated(i, -float(i)) for i in range(5)])

        assert [e.creation_index for e in ranking.top(2)] == [0, 1]
        assert len(ranking.top(10)) == 5

    def test_empty_input(self):
        with pytest.raises(EmptyCandidateSetError):
            ResultRanker().rank([])

"""
Tests for BestSetPersister: bundle, order manifest and completion marker.
"""

import json

import pytest

from perpetualtree.core.round_model import CandidateTree, EvaluatedCandidate
from perpetualtree.exceptions import (
    BunchIncompleteError, FileOperationError, InvalidKeepCountError,
)
from perpetualtree.io.best_set_persister import BestSetPersister, write_durably
from perpetualtree.io.result_ranker import ResultRanker


@pytest.fixture
def ranking(temp_dir):
    """Three refined trees, ranked."""
    entries = []
    for index, lh in enumerate([-12.5, -10.25, -11.0]):
        tree_path = temp_dir / f"RAxML_result.refine_{index}"
        tree_path.write_text(f"(seqA:0.1,seqB:0.2,\n(seqC:0.3,seqD:0.{index + 1}))\n")
        candidate = CandidateTree(1, index, 100124 + index)
        entries.append(EvaluatedCandidate(candidate, tree_path, lh))
    return ResultRanker().rank(entries)


class TestBestSetPersister:

    def test_persist_writes_all_files(self, temp_dir, ranking):
        bundle = temp_dir / "best" / "best_bunch.nw"

        bunch = BestSetPersister().persist(ranking, 2, bundle, update_id=1)

        assert bundle.exists()
        assert bunch.manifest_path.exists()
        assert (bundle.parent / "FINISHED").exists()
        assert len(bunch) == 2
        assert bunch.likelihoods == [-10.25, -11.0]
        assert bunch.best_likelihood == -10.25

    def test_bundle_one_tree_per_line_in_rank_order(self, temp_dir, ranking):
        bundle = temp_dir / "best" / "best_bunch.nw"

        BestSetPersister().persist(ranking, 3, bundle)

        lines = bundle.read_text().splitlines()
        assert len(lines) == 3
        assert all(line.endswith(";") for line in lines)
        assert "seqD:0.2" in lines[0]
        assert "seqD:0.3" in lines[1]
        assert "seqD:0.1" in lines[2]

    def test_manifest_records_order(self, temp_dir, ranking):
        bundle = temp_dir / "best" / "best_bunch.nw"

        BestSetPersister().persist(ranking, 2, bundle, update_id=1)

        manifest = json.loads((bundle.parent / "best_bunch_order.json").read_text())
        assert manifest['update_id'] == 1
        assert manifest['bundle'] == "best_bunch.nw"
        assert [e['candidate'] for e in manifest['entries']] == [
            "r1_c001_s100125", "r1_c002_s100126"]
        assert manifest['entries'][0]['lh'] == -10.25
        assert manifest['entries'][0]['seed'] == 100125

    def test_write_leaves_bunch_incomplete(self, temp_dir, ranking):
        bundle = temp_dir / "best" / "best_bunch.nw"
        persister = BestSetPersister()

        bunch = persister.write(ranking, 2, bundle)

        assert not persister.is_complete(bundle)
        with pytest.raises(BunchIncompleteError):
            persister.load(bundle)

        persister.mark_complete(bunch)
        assert persister.is_complete(bundle)

    def test_load_round_trip(self, temp_dir, ranking):
        bundle = temp_dir / "best" / "best_bunch.nw"
        persister = BestSetPersister()
        written = persister.persist(ranking, 2, bundle, update_id=1)

        loaded = persister.load(bundle)

        assert loaded.entries == written.entries
        assert loaded.update_id == 1

    def test_invalid_keep_count(self, temp_dir, ranking):
        with pytest.raises(InvalidKeepCountError):
            BestSetPersister().persist(ranking, 0, temp_dir / "best" / "best_bunch.nw")

    def test_refuses_completed_bunch(self, temp_dir, ranking):
        bundle = temp_dir / "best" / "best_bunch.nw"
        persister = BestSetPersister()
        persister.persist(ranking, 1, bundle)

        with pytest.raises(FileOperationError):
            persister.persist(ranking, 1, bundle)

    def test_unreadable_manifest(self, temp_dir, ranking):
        bundle = temp_dir / "best" / "best_bunch.nw"
        persister = BestSetPersister()
        persister.persist(ranking, 1, bundle)
        persister.manifest_path_for(bundle).write_text("{not json")

        with pytest.raises(BunchIncompleteError):
            persister.load(bundle)

    def test_missing_tree_file(self, temp_dir, ranking):
        ranking.best.tree_path.unlink()
        with pytest.raises(FileOperationError):
            BestSetPersister().persist(ranking, 1, temp_dir / "best" / "best_bunch.nw")


def test_write_durably_replaces_content(temp_dir):
    target = temp_dir / "file.txt"
    write_durably(target, "first\n")
    write_durably(target, "second\n")

    assert target.read_text() == "second\n"
    assert [p.name for p in temp_dir.iterdir()] == ["file.txt"]

#!/usr/bin/env python3
"""
Data model for one round of the perpetual tree search.

A round generates candidate starting trees, evaluates each of them and keeps
the best ones as the seed of the next round. The records defined here are
immutable once created; evaluation results are never revised in place.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

from .constants import (
    ALIGNMENT_DIR_NAME,
    CANDIDATE_DIR_NAME,
    CANDIDATE_SEED_DIR_NAME,
    ML_DIR_NAME,
    DEFAULT_BEST_ML_FOLDER_NAME,
    DEFAULT_BEST_ML_BUNCH_NAME,
    DEFAULT_BUNCH_MANIFEST_NAME,
    COMPLETION_MARKER_NAME,
    UPDATE_ALIGNMENT_PREFIX,
)

logger = logging.getLogger(__name__)


class RoundState(Enum):
    """Lifecycle of a round. FAILED is reachable from every non-terminal state."""

    PREPARING = "preparing"
    GENERATING_CANDIDATES = "generating_candidates"
    EVALUATING = "evaluating"
    RANKING = "ranking"
    PERSISTED = "persisted"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RoundState.DONE, RoundState.FAILED)


# --- Round modes ---

@dataclass(frozen=True)
class InitialRound:
    """First round: candidates are built from the base alignment."""


@dataclass(frozen=True)
class WarmStartRound:
    """Update round seeded by the best bunch of a previous round.

    Attributes:
        previous_round_dir: Base directory of the previous round
    """
    previous_round_dir: Path

    def __post_init__(self):
        object.__setattr__(self, 'previous_round_dir', Path(self.previous_round_dir))


@dataclass(frozen=True)
class FromScratchRound:
    """Update round that ignores history and starts from the update alignment."""


RoundMode = Union[InitialRound, WarmStartRound, FromScratchRound]


def describe_mode(mode: RoundMode) -> str:
    """Short human-readable label for a round mode."""
    if isinstance(mode, InitialRound):
        return "initial"
    if isinstance(mode, WarmStartRound):
        return "warm-start"
    if isinstance(mode, FromScratchRound):
        return "from-scratch"
    raise TypeError(f"Unknown round mode: {mode!r}")


# --- Candidates ---

@dataclass(frozen=True)
class CandidateTree:
    """
    One starting topology produced in the generation phase.

    Attributes:
        update_id: Round the candidate belongs to
        index: Creation order within the round (0-based)
        seed: Seed handed to the generation job
        parent: Previous-round tree the candidate derives from (warm-start only)
        parent_index: Position of the parent in the previous best bunch
    """
    update_id: int
    index: int
    seed: int
    parent: Optional[Path] = None
    parent_index: Optional[int] = None

    @property
    def name(self) -> str:
        """File-system identity; unique within and across rounds."""
        if self.parent_index is None:
            return f"r{self.update_id}_c{self.index:03d}_s{self.seed}"
        return f"r{self.update_id}_p{self.parent_index:02d}_c{self.index:03d}_s{self.seed}"


@dataclass(frozen=True)
class EvaluatedCandidate:
    """
    Result of refining and scoring one candidate.

    Attributes:
        candidate: The evaluated starting tree
        tree_path: Refined topology artifact
        lh: Log-likelihood reported by the scoring job
        starting_tree: Starting tree file used for the refinement
        job_names: Names of the refinement and scoring jobs
        outputs: Output locations kept for audit
    """
    candidate: CandidateTree
    tree_path: Path
    lh: float
    starting_tree: Optional[Path] = None
    job_names: Tuple[str, ...] = ()
    outputs: Dict[str, Path] = field(default_factory=dict, compare=False)

    @property
    def name(self) -> str:
        return self.candidate.name

    @property
    def creation_index(self) -> int:
        return self.candidate.index


@dataclass(frozen=True)
class CandidateFailure:
    """A candidate whose refinement or scoring failed."""
    candidate: CandidateTree
    stage: str
    error: str


@dataclass(frozen=True)
class Ranking:
    """Evaluated candidates of one round, best likelihood first."""
    entries: Tuple[EvaluatedCandidate, ...]

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[EvaluatedCandidate]:
        return iter(self.entries)

    def __getitem__(self, index):
        return self.entries[index]

    @property
    def best(self) -> EvaluatedCandidate:
        return self.entries[0]

    @property
    def likelihoods(self) -> List[float]:
        return [entry.lh for entry in self.entries]

    def top(self, count: int) -> Tuple[EvaluatedCandidate, ...]:
        return self.entries[:count]


# --- Best bunch ---

@dataclass(frozen=True)
class BunchEntry:
    """One tree of a persisted best bunch, as recorded in the order manifest."""
    rank: int
    candidate: str
    lh: float
    source_tree: str
    seed: Optional[int] = None
    parent: Optional[str] = None


@dataclass(frozen=True)
class BestBunch:
    """
    Persisted top-K trees of a round.

    Attributes:
        update_id: Round that produced the bunch
        bundle_path: Multi-tree Newick file, one tree per line in rank order
        manifest_path: Explicit order record of the bundle
        entries: Bunch entries in rank order
    """
    update_id: int
    bundle_path: Path
    manifest_path: Path
    entries: Tuple[BunchEntry, ...]

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[BunchEntry]:
        return iter(self.entries)

    @property
    def likelihoods(self) -> List[float]:
        return [entry.lh for entry in self.entries]

    @property
    def best_likelihood(self) -> Optional[float]:
        return self.entries[0].lh if self.entries else None


# --- Directory layout ---

class RoundLayout:
    """
    Working directory tree of a round.

    The candidate, ML and best-set directories are exclusively owned by the
    round. They are created once and never reused.
    """

    def __init__(self, base_dir: Union[str, Path],
                 best_ml_folder_name: str = DEFAULT_BEST_ML_FOLDER_NAME,
                 bunch_name: str = DEFAULT_BEST_ML_BUNCH_NAME,
                 manifest_name: str = DEFAULT_BUNCH_MANIFEST_NAME):
        self.base_dir = Path(base_dir)
        self.best_ml_folder_name = best_ml_folder_name
        self.bunch_name = bunch_name
        self.manifest_name = manifest_name

    @property
    def alignment_dir(self) -> Path:
        return self.base_dir / ALIGNMENT_DIR_NAME

    @property
    def candidate_dir(self) -> Path:
        return self.base_dir / CANDIDATE_DIR_NAME

    @property
    def seed_dir(self) -> Path:
        return self.candidate_dir / CANDIDATE_SEED_DIR_NAME

    @property
    def ml_dir(self) -> Path:
        return self.base_dir / ML_DIR_NAME

    @property
    def best_dir(self) -> Path:
        return self.base_dir / self.best_ml_folder_name

    @property
    def bunch_path(self) -> Path:
        return self.best_dir / self.bunch_name

    @property
    def manifest_path(self) -> Path:
        return self.best_dir / self.manifest_name

    @property
    def marker_path(self) -> Path:
        return self.best_dir / COMPLETION_MARKER_NAME

    def update_alignment_path(self, update_id: int) -> Path:
        return self.alignment_dir / f"{UPDATE_ALIGNMENT_PREFIX}{update_id}"

    def working_dirs(self) -> List[Path]:
        return [self.alignment_dir, self.candidate_dir, self.ml_dir, self.best_dir]

    def existing_dirs(self) -> List[Path]:
        return [d for d in self.working_dirs() if d.exists()]

    def create(self) -> None:
        """Create every working directory; none of them may exist yet."""
        for directory in self.working_dirs():
            directory.mkdir(parents=True, exist_ok=False)
            logger.debug(f"Created {directory}")

    def for_previous_round(self, previous_base_dir: Union[str, Path]) -> 'RoundLayout':
        """Layout of an earlier round sharing this round's naming."""
        return RoundLayout(previous_base_dir, self.best_ml_folder_name,
                           self.bunch_name, self.manifest_name)

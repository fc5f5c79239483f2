"""
Pytest configuration and shared fixtures.

This module contains shared test fixtures and configuration
for the perpetualtree test suite. External programs are replaced by a
scripted tool runner that writes the artifacts RAxML would leave behind.
"""

import re
import shutil
import logging
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional, Set, Tuple

import pytest

from perpetualtree.analysis.external_tools import ExternalToolRunner, ToolExecutionResult
from perpetualtree.analysis.raxml_jobs import (
    ParsimonyStarterJob, NNIRefinementJob, GammaScoringJob, GammaSearchJob
)
from perpetualtree.core.candidate_dispatcher import CandidateDispatcher
from perpetualtree.core.constants import (
    GENERATION_STAGE, REFINEMENT_STAGE, SCORING_STAGE, SEARCH_JOB_NAME,
    GAMMA_SCORE_MARKER, SEARCH_SCORE_MARKER,
)
from perpetualtree.core.iteration_coordinator import IterationCoordinator
from perpetualtree.core.progress_logger import ProgressLogger
from perpetualtree.exceptions import ToolExecutionError

# Configure logging for tests
logging.basicConfig(level=logging.DEBUG)

CANDIDATE_INDEX = re.compile(r"_c(\d+)_s")


def candidate_tree(index: int) -> str:
    """A four-taxon Newick tree whose last branch length identifies the candidate."""
    return f"(seqA:0.1,seqB:0.2,(seqC:0.3,seqD:{0.01 * (index + 1):.2f}):0.05);"


class ScriptedToolRunner(ExternalToolRunner):
    """
    Stands in for the RAxML family of programs.

    Every run writes the result files of the job named after `-n`, with the
    likelihood scripted per candidate index. Failures can be scripted per
    (stage, candidate index).
    """

    def __init__(self, likelihoods: Optional[Dict[int, float]] = None,
                 failures: Optional[Set[Tuple[str, int]]] = None,
                 search_likelihood: float = -4321.5):
        super().__init__()
        self.likelihoods = likelihoods or {}
        self.failures = failures or set()
        self.search_likelihood = search_likelihood
        self.commands = []
        self._lock = threading.Lock()

    def run(self, command, cwd, stdout_path, stderr_path, timeout_sec=None, tool_name=None):
        command = [str(c) for c in command]
        with self._lock:
            self.commands.append(command)

        cwd = Path(cwd)
        stdout_path = Path(stdout_path)
        stderr_path = Path(stderr_path)
        stdout_path.write_text("")
        stderr_path.write_text("")
        name = command[command.index("-n") + 1]

        if name == SEARCH_JOB_NAME:
            (cwd / f"RAxML_bestTree.{name}").write_text(candidate_tree(0) + "\n")
            stdout_path.write_text(f"{SEARCH_SCORE_MARKER} {self.search_likelihood}\n")
            return ToolExecutionResult(command, 0, stdout_path, stderr_path)

        stage = name.split("_", 1)[0]
        index = int(CANDIDATE_INDEX.search(name).group(1))
        if (stage, index) in self.failures:
            stderr_path.write_text("scripted failure\n")
            raise ToolExecutionError(f"{tool_name} failed with exit code 1",
                                     tool_name=tool_name, command=command,
                                     returncode=1, stderr_path=stderr_path)

        if stage == GENERATION_STAGE:
            (cwd / f"RAxML_parsimonyTree.{name}.0").write_text(candidate_tree(index) + "\n")
        elif stage == REFINEMENT_STAGE:
            (cwd / f"RAxML_result.{name}").write_text(candidate_tree(index) + "\n")
        elif stage == SCORING_STAGE:
            lh = self.likelihoods.get(index, -1000.0 - index)
            (cwd / f"RAxML_result.{name}").write_text(candidate_tree(index) + "\n")
            (cwd / f"RAxML_info.{name}").write_text(
                f"This is RAxML\n\n{GAMMA_SCORE_MARKER} {lh}\n\nOverall Time\n")
        return ToolExecutionResult(command, 0, stdout_path, stderr_path)

    def commands_for(self, stage: str):
        return [c for c in self.commands if c[c.index("-n") + 1].startswith(stage + "_")]


@pytest.fixture
def scripted_runner():
    """Factory for ScriptedToolRunner instances."""
    return ScriptedToolRunner


@pytest.fixture
def temp_dir():
    """Create a temporary directory for each test."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def sample_phylip_alignment():
    """Provide a small PHYLIP alignment."""
    return (
        " 4 16\n"
        "seqA       ATCGATCGATCGATCG\n"
        "seqB       ATCGATCGATCGATCC\n"
        "seqC       ATCGATCGATCGATAA\n"
        "seqD       ATCGATCGATCGTTTT\n"
    )


@pytest.fixture
def sample_tree():
    """Provide a sample phylogenetic tree."""
    return candidate_tree(0)


@pytest.fixture
def alignment_file(temp_dir, sample_phylip_alignment):
    return create_test_file(temp_dir, "alignment.phy", sample_phylip_alignment)


@pytest.fixture
def partition_file(temp_dir):
    return create_test_file(temp_dir, "partitions.txt", "DNA, gene1 = 1-8\nDNA, gene2 = 9-16\n")


@pytest.fixture
def quiet_progress():
    """Progress sink without the overwriting progress line or colours."""
    return ProgressLogger(show_progress=False, use_color=False)


@pytest.fixture
def make_coordinator(temp_dir, alignment_file, quiet_progress):
    """Factory building a coordinator whose jobs run through a ScriptedToolRunner."""

    def factory(runner: ScriptedToolRunner, round_name: str = "round_0", update_id: int = 0,
                prev_dir=None, partition_file=None, max_workers: int = 1, **kwargs):
        return IterationCoordinator(
            alignment=kwargs.pop('alignment', alignment_file),
            base_dir=temp_dir / round_name,
            update_id=update_id,
            prev_dir=prev_dir,
            partition_file=partition_file,
            generator=ParsimonyStarterJob(external_runner=runner),
            refiner=NNIRefinementJob(external_runner=runner),
            scorer=GammaScoringJob(external_runner=runner),
            searcher=GammaSearchJob(external_runner=runner),
            dispatcher=CandidateDispatcher(max_workers=max_workers),
            progress=quiet_progress,
            **kwargs
        )

    return factory


@pytest.fixture
def restore_package_logger():
    """setup_logging reconfigures the package logger; put it back afterwards."""
    package_logger = logging.getLogger("perpetualtree")
    handlers = list(package_logger.handlers)
    level = package_logger.level
    propagate = package_logger.propagate
    yield package_logger
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        package_logger.addHandler(handler)
    package_logger.setLevel(level)
    package_logger.propagate = propagate


@pytest.fixture
def caplog_debug(caplog):
    """Capture debug logs during tests."""
    with caplog.at_level(logging.DEBUG):
        yield caplog


def create_test_file(temp_dir: Path, filename: str, content: str) -> Path:
    """Helper function to create test files."""
    file_path = temp_dir / filename
    file_path.write_text(content)
    return file_path


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
    config.addinivalue_line(
        "markers", "external: mark test as requiring external tools"
    )


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on test names."""
    for item in items:
        # Add unit marker to test_* files
        if "test_" in item.nodeid and "integration" not in item.nodeid:
            item.add_marker(pytest.mark.unit)

        # Add integration marker to integration tests
        if "integration" in item.nodeid:
            item.add_marker(pytest.mark.integration)

        # Add slow marker to tests that might be slow
        if any(keyword in item.name.lower() for keyword in ['large', 'parallel']):
            item.add_marker(pytest.mark.slow)

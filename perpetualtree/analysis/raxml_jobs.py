#!/usr/bin/env python3
"""
Candidate jobs backed by the RAxML family of programs.

- Parsimonator builds randomized stepwise-addition parsimony starting trees
- RAxML-Light refines a starting tree by NNI moves under CAT
- RAxML scores a refined tree under GAMMA (-f e)
- RAxML runs a full GAMMA search from scratch
"""

import logging
from pathlib import Path
from typing import List

from .job_base import CandidateJobRunner, ScoringJobRunner, JobOptions, input_arg
from ..core.constants import (
    DEFAULT_PARSIMONATOR_PATH,
    DEFAULT_RAXML_LIGHT_PATH,
    DEFAULT_RAXML_PATH,
    DEFAULT_CAT_MODEL,
    DEFAULT_GAMMA_MODEL,
    RF_CONVERGENCE_FLAG,
    RAXML_PARSIMONY_TREE_PREFIX,
    RAXML_RESULT_PREFIX,
    RAXML_INFO_PREFIX,
    RAXML_BEST_TREE_PREFIX,
    GAMMA_SCORE_MARKER,
    SEARCH_SCORE_MARKER,
)

logger = logging.getLogger(__name__)


class ParsimonyStarterJob(CandidateJobRunner):
    """
    Parsimony starting tree generation with Parsimonator.

    Parsimonator writes into its working directory and numbers the trees it
    produces; with one tree per job the result is `<prefix>.<name>.0`.
    """

    tool_name = "Parsimonator"

    def __init__(self, executable: str = DEFAULT_PARSIMONATOR_PATH, **kwargs):
        super().__init__(executable, **kwargs)

    def build_command(self, options: JobOptions) -> List[str]:
        command = [self.executable, "-s", input_arg(options.alignment), "-n", options.name,
                   "-N", str(options.num_trees or 1)]
        if options.seed is not None:
            command.extend(["-p", str(options.seed)])
        if options.starting_tree is not None:
            command.extend(["-t", input_arg(options.starting_tree)])
        if options.flags:
            command.extend(options.flags)
        return command

    def result_path(self, options: JobOptions) -> Path:
        return options.outdir / f"{RAXML_PARSIMONY_TREE_PREFIX}.{options.name}.0"


class NNIRefinementJob(CandidateJobRunner):
    """ML refinement of a starting tree with RAxML-Light and an RF convergence criterion."""

    tool_name = "RAxML-Light"

    def __init__(self, executable: str = DEFAULT_RAXML_LIGHT_PATH,
                 model: str = DEFAULT_CAT_MODEL, **kwargs):
        super().__init__(executable, **kwargs)
        self.model = model

    def build_command(self, options: JobOptions) -> List[str]:
        command = [self.executable, "-m", self.model, "-w", str(options.outdir.resolve())]
        command.extend(self._common_args(options))
        if options.starting_tree is not None:
            command.extend(["-t", input_arg(options.starting_tree)])
        if not options.flags or RF_CONVERGENCE_FLAG not in options.flags:
            command.append(RF_CONVERGENCE_FLAG)
        return command

    def result_path(self, options: JobOptions) -> Path:
        return options.outdir / f"{RAXML_RESULT_PREFIX}.{options.name}"


class GammaScoringJob(ScoringJobRunner):
    """Likelihood scoring of a fixed topology under GAMMA (raxml -f e)."""

    tool_name = "RAxML"
    score_marker = GAMMA_SCORE_MARKER

    def __init__(self, executable: str = DEFAULT_RAXML_PATH,
                 model: str = DEFAULT_GAMMA_MODEL, **kwargs):
        super().__init__(executable, **kwargs)
        self.model = model

    def build_command(self, options: JobOptions) -> List[str]:
        command = [self.executable, "-f", "e", "-m", self.model,
                   "-w", str(options.outdir.resolve())]
        command.extend(self._common_args(options))
        if options.starting_tree is not None:
            command.extend(["-t", input_arg(options.starting_tree)])
        return command

    def result_path(self, options: JobOptions) -> Path:
        return options.outdir / f"{RAXML_RESULT_PREFIX}.{options.name}"

    def score_stream(self, options: JobOptions) -> Path:
        return options.outdir / f"{RAXML_INFO_PREFIX}.{options.name}"


class GammaSearchJob(ScoringJobRunner):
    """Full ML search from scratch under GAMMA; the score is read from stdout."""

    tool_name = "RAxML"
    score_marker = SEARCH_SCORE_MARKER

    def __init__(self, executable: str = DEFAULT_RAXML_PATH,
                 model: str = DEFAULT_GAMMA_MODEL, **kwargs):
        super().__init__(executable, **kwargs)
        self.model = model

    def build_command(self, options: JobOptions) -> List[str]:
        command = [self.executable, "-m", self.model, "-w", str(options.outdir.resolve()),
                   "-N", str(options.num_trees or 1)]
        if options.seed is not None:
            command.extend(["-p", str(options.seed)])
        command.extend(self._common_args(options))
        return command

    def result_path(self, options: JobOptions) -> Path:
        return options.outdir / f"{RAXML_BEST_TREE_PREFIX}.{options.name}"

    def score_stream(self, options: JobOptions) -> Path:
        return Path(options.stdout)

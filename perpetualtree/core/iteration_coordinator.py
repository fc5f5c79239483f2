#!/usr/bin/env python3
"""
Iteration coordinator for perpetualtree.

This module drives one round of the perpetual tree search: it validates the
round request, prepares the round's working directories, generates the
candidate starting trees, evaluates every candidate (ML refinement followed
by GAMMA scoring), ranks the survivors and persists the best-ML bunch that
seeds the next round.
"""

import logging
import math
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .candidate_dispatcher import CandidateDispatcher
from .constants import (
    DEFAULT_NUM_CANDIDATES,
    DEFAULT_SEED_BASE,
    SEED_ROUND_STRIDE,
    DEFAULT_BEST_ML_FOLDER_NAME,
    DEFAULT_BEST_ML_BUNCH_NAME,
    DEFAULT_BUNCH_MANIFEST_NAME,
    DEFAULT_ITERATION_RESULTS_NAME,
    GENERATION_STAGE,
    REFINEMENT_STAGE,
    SCORING_STAGE,
    PREVIOUS_TREE_PREFIX,
    SEARCH_JOB_NAME,
)
from .progress_logger import ProgressLogger
from .round_model import (
    RoundState, RoundMode, InitialRound, WarmStartRound, FromScratchRound,
    CandidateTree, EvaluatedCandidate, CandidateFailure, Ranking, BestBunch,
    RoundLayout, describe_mode,
)
from .utils import derive_seed, get_display_path, setup_logging
from ..analysis.job_base import CandidateJobRunner, ScoringJobRunner, JobOptions, options_summary
from ..analysis.raxml_jobs import (
    ParsimonyStarterJob, NNIRefinementJob, GammaScoringJob, GammaSearchJob
)
from ..analysis.external_tools import ExternalToolRunner
from ..exceptions import (
    ConfigurationError, PrerequisiteMissingError, InvalidKeepCountError,
    RoundDirectoryExistsError, CandidateGenerationError, CandidateEvaluationError,
    InsufficientSurvivorsError, BunchIncompleteError, TreeParsingError,
)
from ..io.best_set_persister import BestSetPersister
from ..io.iteration_report import IterationReport
from ..io.result_ranker import ResultRanker
from ..io.tree_splitter import TreeSetSplitter
from ..visualization.plot_manager import PlotManager

logger = logging.getLogger(__name__)


@dataclass
class IterationRound:
    """State of one round as it moves through the pipeline."""

    update_id: int
    mode: RoundMode
    layout: RoundLayout
    requested_candidate_count: int
    requested_keep_count: int
    state: RoundState = RoundState.PREPARING
    candidates: List[CandidateTree] = field(default_factory=list)
    evaluated: List[EvaluatedCandidate] = field(default_factory=list)
    failures: List[CandidateFailure] = field(default_factory=list)
    ranking: Optional[Ranking] = None
    bunch: Optional[BestBunch] = None
    results_path: Optional[Path] = None

    def transition(self, new_state: RoundState) -> None:
        if self.state.is_terminal:
            raise RuntimeError(f"Round {self.update_id} is already {self.state.value}")
        logger.debug(f"Round {self.update_id}: {self.state.value} -> {new_state.value}")
        self.state = new_state


class IterationCoordinator:
    """
    Coordinates one round of candidate generation, evaluation and selection.

    A coordinator owns exactly one round identifier; running a second round
    requires a new coordinator on a fresh base directory. Job runners, the
    dispatcher and the progress sink are injected so that deployments can
    swap the external programs or the scheduling policy without touching the
    round logic.
    """

    SUPPORTED_OPTIONS = ('num_candidates', 'num_best', 'initial_iteration', 'from_scratch',
                         'exp_name', 'cycle_batch_script')

    def __init__(self,
                 alignment: Union[str, Path],
                 base_dir: Union[str, Path],
                 update_id: int = 0,
                 prev_dir: Optional[Union[str, Path]] = None,
                 partition_file: Optional[Union[str, Path]] = None,
                 num_threads: int = 0,
                 seed_base: int = DEFAULT_SEED_BASE,
                 generator: Optional[CandidateJobRunner] = None,
                 refiner: Optional[CandidateJobRunner] = None,
                 scorer: Optional[ScoringJobRunner] = None,
                 searcher: Optional[ScoringJobRunner] = None,
                 splitter: Optional[TreeSetSplitter] = None,
                 ranker: Optional[ResultRanker] = None,
                 persister: Optional[BestSetPersister] = None,
                 dispatcher: Optional[CandidateDispatcher] = None,
                 progress: Optional[ProgressLogger] = None,
                 best_ml_folder_name: str = DEFAULT_BEST_ML_FOLDER_NAME,
                 bunch_name: str = DEFAULT_BEST_ML_BUNCH_NAME,
                 manifest_name: str = DEFAULT_BUNCH_MANIFEST_NAME,
                 iteration_results_name: str = DEFAULT_ITERATION_RESULTS_NAME,
                 plot_manager=None,
                 debug: bool = False):
        """
        Initialize the coordinator.

        Args:
            alignment: Alignment of this round (the base alignment for the initial round)
            base_dir: Base directory of this round
            update_id: Round identifier, 0 for the initial round
            prev_dir: Base directory of the previous round (warm-start)
            partition_file: Optional partition scheme; must exist when given
            num_threads: Thread hint passed to the jobs (0 = let the programs decide)
            seed_base: First seed of the deterministic seed sequence
            generator: Job producing candidate starting trees
            refiner: Job refining a starting tree
            scorer: Job scoring a refined tree
            searcher: Job running a full search from scratch
            splitter: Splits the previous best bunch into single trees
            ranker: Ranks the evaluated candidates
            persister: Writes and loads best bunches
            dispatcher: Runs candidate jobs, sequentially or through a pool
            progress: Progress sink (info, error, success)
            plot_manager: Optional PlotManager drawing the round's likelihoods
            debug: Enable debug logging
        """
        # Jobs run inside their output directories, so inputs must not be cwd-relative
        self.alignment = Path(alignment).absolute()
        self.update_id = update_id
        self.prev_dir = Path(prev_dir).absolute() if prev_dir is not None else None
        self.partition_file = Path(partition_file).absolute() if partition_file is not None else None
        self.num_threads = num_threads
        self.seed_base = seed_base
        self.debug = debug

        self.layout = RoundLayout(Path(base_dir).absolute(), best_ml_folder_name,
                                  bunch_name, manifest_name)
        self.iteration_results_name = iteration_results_name

        external_runner = ExternalToolRunner(debug=debug)
        self.generator = generator or ParsimonyStarterJob(external_runner=external_runner)
        self.refiner = refiner or NNIRefinementJob(external_runner=external_runner)
        self.scorer = scorer or GammaScoringJob(external_runner=external_runner)
        self.searcher = searcher or GammaSearchJob(external_runner=external_runner)
        self.splitter = splitter or TreeSetSplitter()
        self.ranker = ranker or ResultRanker()
        self.persister = persister or BestSetPersister(manifest_name=manifest_name)
        self.dispatcher = dispatcher or CandidateDispatcher(max_workers=1)
        self.progress = progress or ProgressLogger()
        self.plot_manager = plot_manager
        if self.dispatcher.progress_callback is None:
            self.dispatcher.progress_callback = self._report_progress

        self.current_round: Optional[IterationRound] = None

    @classmethod
    def from_config(cls, config, progress: Optional[ProgressLogger] = None,
                    plot_manager=None) -> 'IterationCoordinator':
        """
        Build a coordinator and its RAxML job runners from a PerpetualTreeConfig.

        Also routes the package log to the configured iteration log file.
        """
        io_cfg = config.input_output
        comp = config.computational
        naming = config.naming
        debug = io_cfg.debug

        log_file = Path(config.get_log_file())
        log_file.parent.mkdir(parents=True, exist_ok=True)
        setup_logging(debug, log_file)
        logger.info(f"Iteration log: {log_file}")

        external_runner = ExternalToolRunner(debug=debug)
        return cls(
            alignment=io_cfg.alignment_file,
            base_dir=io_cfg.base_dir,
            update_id=config.iteration.update_id,
            prev_dir=io_cfg.prev_dir,
            partition_file=io_cfg.partition_file,
            num_threads=comp.threads,
            seed_base=config.iteration.seed_base,
            generator=ParsimonyStarterJob(comp.parsimonator_path, external_runner=external_runner,
                                          timeout_sec=comp.generation_timeout, debug=debug),
            refiner=NNIRefinementJob(comp.raxml_light_path, model=comp.cat_model,
                                     external_runner=external_runner,
                                     timeout_sec=comp.refinement_timeout, debug=debug),
            scorer=GammaScoringJob(comp.raxml_path, model=comp.gamma_model,
                                   external_runner=external_runner,
                                   timeout_sec=comp.scoring_timeout, debug=debug),
            searcher=GammaSearchJob(comp.raxml_path, model=comp.gamma_model,
                                    external_runner=external_runner,
                                    timeout_sec=comp.search_timeout, debug=debug),
            persister=BestSetPersister(manifest_name=naming.manifest_name),
            dispatcher=CandidateDispatcher(max_workers=comp.max_workers),
            progress=progress,
            best_ml_folder_name=naming.best_ml_folder_name,
            bunch_name=naming.best_ml_bunch_name,
            manifest_name=naming.manifest_name,
            iteration_results_name=naming.iteration_results_name,
            plot_manager=plot_manager or PlotManager.from_config(config.visualization),
            debug=debug,
        )

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def start_iteration(self, options: Mapping[str, Any]) -> Tuple[float, BestBunch]:
        """
        Run the round described by an options mapping.

        Recognized keys: num_candidates, num_best, initial_iteration,
        from_scratch, exp_name, cycle_batch_script. Unknown keys are logged
        and ignored.
        """
        self.progress.info("Preparing new iteration...")
        self.check_options(options)

        num_candidates = options.get('num_candidates', DEFAULT_NUM_CANDIDATES)
        num_best = options.get('num_best', max(1, num_candidates // 2))

        if options.get('initial_iteration'):
            mode = InitialRound()
        elif options.get('from_scratch'):
            mode = FromScratchRound()
        elif self.prev_dir is not None:
            mode = WarmStartRound(self.prev_dir)
        else:
            error = PrerequisiteMissingError("Update iteration requested without a previous round directory",
                                             update_id=self.update_id)
            self.progress.error(str(error))
            raise error

        return self.run_iteration(mode, num_candidates, num_best)

    def check_options(self, options: Mapping[str, Any]) -> List[str]:
        """Log every option key the coordinator does not recognize."""
        unknown = [key for key in options if key not in self.SUPPORTED_OPTIONS]
        for key in unknown:
            self.progress.warning(f"Option {key} is unknown")
        return unknown

    def run_iteration(self, mode: RoundMode, requested_candidate_count: int,
                      requested_keep_count: int) -> Tuple[float, BestBunch]:
        """
        Run one full round.

        Args:
            mode: InitialRound, WarmStartRound or FromScratchRound
            requested_candidate_count: Candidates per round (per previous tree when warm-starting)
            requested_keep_count: Number of trees kept in the best bunch

        Returns:
            Tuple of (best likelihood, persisted BestBunch)

        Raises:
            InvalidKeepCountError: If the keep count exceeds the round's total
                number of candidates, or is below 1 (an empty bunch cannot
                seed a later round)
            PrerequisiteMissingError: If a warm-start round has no complete previous bunch
            CandidateGenerationError: If any generation job fails
            InsufficientSurvivorsError: If fewer candidates than the keep count survive evaluation
        """
        round_ = IterationRound(self.update_id, mode, self.layout,
                                requested_candidate_count, requested_keep_count)
        self.current_round = round_

        try:
            self.progress.section_header(f"Iteration {self.update_id} ({describe_mode(mode)})")
            return self._run_round(round_)
        except Exception as e:
            round_.state = RoundState.FAILED
            context = getattr(e, 'context', None)
            detail = f" {context}" if context else ""
            self.progress.error(f"Iteration {self.update_id} failed in "
                                f"{describe_mode(mode)} mode: {e}{detail}")
            raise

    def standard_search(self, num_gamma_trees: Optional[int] = None) -> float:
        """
        Run a full GAMMA ML search from scratch on the round alignment.

        Returns:
            Likelihood of the best tree found
        """
        outdir = self.layout.base_dir / SEARCH_JOB_NAME
        options = JobOptions(
            alignment=self.alignment,
            partition_file=self.partition_file,
            outdir=outdir,
            name=SEARCH_JOB_NAME,
            num_trees=num_gamma_trees or 1,
            seed=self.seed_base,
            num_threads=self.num_threads or None,
            stdout=outdir / "info",
            stderr=outdir / "err",
        )
        self.progress.section_header("Standard GAMMA search")
        self.progress.info(f"Start ML search from scratch with {options.num_trees} trees")
        self.searcher.run(options)
        best_lh = self.searcher.likelihood(options)
        self.progress.info(f"Done ML search from scratch with {options.num_trees} trees")
        return best_lh

    # ------------------------------------------------------------------
    # Round pipeline
    # ------------------------------------------------------------------

    def _run_round(self, round_: IterationRound) -> Tuple[float, BestBunch]:
        mode = round_.mode
        candidate_count = round_.requested_candidate_count
        keep_count = round_.requested_keep_count

        if candidate_count < 1:
            raise ConfigurationError(f"Number of candidates must be at least 1, got {candidate_count}",
                                     config_key='num_candidates')
        self._validate_partition_file()

        previous_bunch = None
        if isinstance(mode, InitialRound):
            self.progress.success("Initial iteration")
            total_candidates = candidate_count
            self.progress.info(f"{total_candidates} ML trees will be generated from "
                               f"{candidate_count} new parsimony trees")
        elif isinstance(mode, FromScratchRound):
            self.progress.success("Update iteration from scratch")
            total_candidates = candidate_count
            self.progress.info(f"{total_candidates} ML trees will be generated from "
                               f"{candidate_count} new parsimony trees on the update alignment")
        elif isinstance(mode, WarmStartRound):
            self.progress.success("Update iteration")
            self.progress.info("Looking for parsimony start trees from previous bunch")
            previous_bunch = self._load_previous_bunch(mode)
            total_candidates = candidate_count * len(previous_bunch)
            self.progress.info(f"{len(previous_bunch)} initial trees available from previous iteration")
            self.progress.info(f"{total_candidates} ML trees will be generated, based on "
                               f"{candidate_count} new parsimony trees from each of "
                               f"{len(previous_bunch)} previous trees")
        else:
            raise TypeError(f"Unknown round mode: {mode!r}")

        if keep_count < 1 or keep_count > total_candidates:
            raise InvalidKeepCountError(keep_count, total_candidates, self.update_id)

        existing = self.layout.existing_dirs()
        if existing:
            raise RoundDirectoryExistsError(existing, self.update_id)

        self.layout.create()
        alignment = self._prepare_alignments(mode)

        self.progress.success(f"****** Start iteration no {self.update_id} ********")

        round_.transition(RoundState.GENERATING_CANDIDATES)
        self.progress.success(f"step 1 of 2 : Compute {total_candidates} parsimony starting trees")
        seed_trees = self._split_previous_bunch(previous_bunch) if previous_bunch else None
        round_.candidates = self._plan_candidates(candidate_count, seed_trees)
        starting_trees = self._generate_candidates(round_.candidates, alignment)

        round_.transition(RoundState.EVALUATING)
        self.progress.success(f"step 2 of 2 : Compute {total_candidates} ML trees "
                              f"and select the {keep_count} best")
        round_.evaluated, round_.failures = self._evaluate_candidates(
            round_.candidates, starting_trees, alignment)

        if len(round_.evaluated) < keep_count:
            raise InsufficientSurvivorsError(len(round_.evaluated), keep_count,
                                             round_.failures, self.update_id)

        round_.transition(RoundState.RANKING)
        round_.ranking = self.ranker.rank(round_.evaluated)
        self._log_ranking(round_.ranking)
        round_.results_path = IterationReport(
            self.update_id, round_.ranking, keep_count, round_.failures
        ).write(self.layout.ml_dir / self.iteration_results_name)

        bunch = self.persister.write(round_.ranking, keep_count, self.layout.bunch_path,
                                     self.update_id)
        round_.transition(RoundState.PERSISTED)
        self.persister.mark_complete(bunch)
        round_.bunch = bunch
        round_.transition(RoundState.DONE)

        if self.plot_manager is not None:
            self.plot_manager.create_likelihood_plot(
                round_.ranking, keep_count,
                self.layout.best_dir / f"likelihoods_r{self.update_id}.png",
                failures=round_.failures)

        best_lh = round_.ranking.best.lh
        self.progress.success(f"****** Finished iteration no {self.update_id} ********")
        self.progress.info(f"Bunch of {len(bunch)} ML trees ready at "
                           f"{get_display_path(bunch.bundle_path)}")
        return best_lh, bunch

    def _validate_partition_file(self) -> None:
        if self.partition_file is None:
            return
        if not self.partition_file.exists():
            raise ConfigurationError(f"Partition file not found: {self.partition_file}",
                                     config_key='partition_file')

    def _load_previous_bunch(self, mode: WarmStartRound) -> BestBunch:
        previous_layout = self.layout.for_previous_round(mode.previous_round_dir)
        bundle_path = previous_layout.bunch_path
        try:
            bunch = self.persister.load(bundle_path)
        except BunchIncompleteError as e:
            raise PrerequisiteMissingError(f"prev bunch not ready {bundle_path}",
                                           missing_path=bundle_path,
                                           update_id=self.update_id) from e
        if len(bunch) == 0:
            raise PrerequisiteMissingError(f"prev bunch is empty {bundle_path}",
                                           missing_path=bundle_path,
                                           update_id=self.update_id)
        return bunch

    def _prepare_alignments(self, mode: RoundMode) -> Path:
        """Copy the round inputs into its alignment directory; return the alignment to use."""
        alignment_dir = self.layout.alignment_dir
        if self.partition_file is not None:
            shutil.copy(self.partition_file, alignment_dir)
        else:
            logger.debug("No partition file; running unpartitioned")

        if isinstance(mode, InitialRound):
            shutil.copy(self.alignment, alignment_dir)
            return self.alignment

        update_alignment = self.layout.update_alignment_path(self.update_id)
        self.progress.info(f"Copying new update alignment from {get_display_path(self.alignment)} "
                           f"to {get_display_path(update_alignment)}")
        shutil.copy(self.alignment, update_alignment)
        return update_alignment

    def _split_previous_bunch(self, previous_bunch: BestBunch) -> List[Path]:
        seed_trees = self.splitter.split(previous_bunch.bundle_path,
                                         self.layout.seed_dir / PREVIOUS_TREE_PREFIX)
        if len(seed_trees) != len(previous_bunch):
            raise TreeParsingError(
                f"Previous bunch holds {len(seed_trees)} trees but its manifest lists "
                f"{len(previous_bunch)}", previous_bunch.bundle_path)
        return seed_trees

    def _plan_candidates(self, candidate_count: int,
                         seed_trees: Optional[List[Path]]) -> List[CandidateTree]:
        """One candidate per slot; each previous tree gets `candidate_count` slots."""
        if seed_trees is None:
            return [CandidateTree(self.update_id, slot, self._seed(slot))
                    for slot in range(candidate_count)]

        candidates = []
        for parent_index, seed_tree in enumerate(seed_trees):
            for offset in range(candidate_count):
                slot = parent_index * candidate_count + offset
                candidates.append(CandidateTree(self.update_id, slot, self._seed(slot),
                                                parent=seed_tree, parent_index=parent_index))
        return candidates

    def _seed(self, slot: int) -> int:
        return derive_seed(self.seed_base, self.update_id, slot, SEED_ROUND_STRIDE)

    def _job_options(self, stage: str, candidate: CandidateTree, alignment: Path,
                     outdir: Path, **extra) -> JobOptions:
        name = f"{stage}_{candidate.name}"
        return JobOptions(
            alignment=alignment,
            outdir=outdir,
            name=name,
            stdout=outdir / f"info_{name}",
            stderr=outdir / f"err_{name}",
            num_threads=self.num_threads or None,
            **extra
        )

    def _generate_candidates(self, candidates: List[CandidateTree],
                             alignment: Path) -> Dict[int, Path]:
        """Run every generation job; any failure aborts the round."""
        candidate_dir = self.layout.candidate_dir
        self.progress.info(f"Results stored in {get_display_path(candidate_dir)}")

        def generate(candidate: CandidateTree) -> Path:
            options = self._job_options(GENERATION_STAGE, candidate, alignment, candidate_dir,
                                        seed=candidate.seed, num_trees=1,
                                        starting_tree=candidate.parent)
            logger.debug(f"Generation options for {candidate.name}: {options_summary(options)}")
            return self.generator.run(options).result_path

        outcomes = self.dispatcher.dispatch(candidates, generate)
        failed = [outcome for outcome in outcomes if not outcome.success]
        for outcome in failed:
            self.progress.error(f"Parsimony tree for {outcome.candidate.name} failed: {outcome.error}")
        if failed:
            first = failed[0]
            raise CandidateGenerationError(
                f"Candidate generation failed for {first.candidate.name}: {first.error}",
                candidate_id=first.candidate.name, update_id=self.update_id,
                stage=GENERATION_STAGE,
                context={'failed_candidates': [o.candidate.name for o in failed]}
            ) from first.error

        self.progress.info(f"Done with {len(outcomes)} parsimony starting trees")
        return {outcome.candidate.index: outcome.value for outcome in outcomes}

    def _evaluate_candidates(self, candidates: List[CandidateTree],
                             starting_trees: Dict[int, Path],
                             alignment: Path) -> Tuple[List[EvaluatedCandidate], List[CandidateFailure]]:
        """Refine and score every candidate; failures are recorded per candidate."""
        ml_dir = self.layout.ml_dir

        def evaluate(candidate: CandidateTree) -> EvaluatedCandidate:
            return self._evaluate_candidate(candidate, starting_trees[candidate.index],
                                            alignment, ml_dir)

        outcomes = self.dispatcher.dispatch(candidates, evaluate)

        evaluated = []
        failures = []
        for outcome in outcomes:
            if outcome.success:
                evaluated.append(outcome.value)
                self.progress.info(f"Score for tree {outcome.candidate.name}: {outcome.value.lh}")
                continue
            error = outcome.error
            stage = getattr(error, 'stage', None) or 'evaluation'
            failures.append(CandidateFailure(outcome.candidate, stage, str(error)))
            self.progress.error(f"Evaluation of {outcome.candidate.name} failed at {stage}: {error}")

        self.progress.info(f"{len(evaluated)} of {len(candidates)} candidates evaluated, "
                           f"{len(failures)} failed")
        return evaluated, failures

    def _evaluate_candidate(self, candidate: CandidateTree, starting_tree: Path,
                            alignment: Path, ml_dir: Path) -> EvaluatedCandidate:
        refine_options = self._job_options(REFINEMENT_STAGE, candidate, alignment, ml_dir,
                                           partition_file=self.partition_file,
                                           starting_tree=starting_tree)
        try:
            refined = self.refiner.run(refine_options)
        except Exception as e:
            raise CandidateEvaluationError(
                f"ML search failed for {candidate.name}: {e}", candidate_id=candidate.name,
                update_id=self.update_id, stage=REFINEMENT_STAGE) from e

        score_options = self._job_options(SCORING_STAGE, candidate, alignment, ml_dir,
                                          partition_file=self.partition_file,
                                          starting_tree=refined.result_path)
        try:
            self.scorer.run(score_options)
            lh = self.scorer.likelihood(score_options)
        except Exception as e:
            raise CandidateEvaluationError(
                f"Scoring failed for {candidate.name}: {e}", candidate_id=candidate.name,
                update_id=self.update_id, stage=SCORING_STAGE) from e
        if math.isnan(lh):
            raise CandidateEvaluationError(
                f"Scoring of {candidate.name} returned NaN", candidate_id=candidate.name,
                update_id=self.update_id, stage=SCORING_STAGE)

        return EvaluatedCandidate(
            candidate=candidate,
            tree_path=refined.result_path,
            lh=lh,
            starting_tree=starting_tree,
            job_names=(refine_options.name, score_options.name),
            outputs={
                'refine_stdout': refine_options.stdout,
                'refine_stderr': refine_options.stderr,
                'score_stdout': score_options.stdout,
                'score_stderr': score_options.stderr,
                'score_stream': self.scorer.score_stream(score_options),
            },
        )

    def _report_progress(self, completed: int, total: int, outcome) -> None:
        self.progress.progress(f"Candidate {outcome.candidate.name}", completed, total)

    def _log_ranking(self, ranking: Ranking) -> None:
        for rank, evaluated in enumerate(ranking):
            self.progress.info(f"  #{rank} {evaluated.name} lh={evaluated.lh}")

#!/usr/bin/env python3
"""
Parallel dispatch of candidate jobs for perpetualtree.

Candidates of one phase are independent and touch only their own files, so
their jobs can run through a bounded worker pool. The coordinator stays a
single control thread: it hands a phase to the dispatcher and gets back one
outcome per candidate, in candidate creation order, whatever order the jobs
finished in.
"""

import asyncio
import logging
import time
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from .round_model import CandidateTree

logger = logging.getLogger(__name__)


@dataclass
class CandidateTask:
    """Represents one candidate job of a phase."""

    candidate: CandidateTree
    position: int
    total: int

    def __repr__(self) -> str:
        return f"CandidateTask({self.candidate.name}, {self.position}/{self.total})"


@dataclass
class TaskOutcome:
    """Represents the outcome of a candidate job."""

    task: CandidateTask
    success: bool
    value: Any = None
    error: Optional[Exception] = None
    processing_time: float = 0.0

    @property
    def candidate(self) -> CandidateTree:
        return self.task.candidate

    def __repr__(self) -> str:
        status = "SUCCESS" if self.success else "FAILED"
        return f"TaskOutcome({self.candidate.name}, {status}, {self.processing_time:.2f}s)"


class ProgressTracker:
    """Thread-safe progress tracking for a dispatched phase."""

    def __init__(self, total_tasks: int, update_callback: Optional[Callable] = None):
        self.total_tasks = total_tasks
        self.completed_tasks = 0
        self.failed_tasks = 0
        self.start_time = time.time()
        self.update_callback = update_callback
        self._lock = threading.Lock()

    def update(self, outcome: TaskOutcome) -> None:
        """Update progress with a completed task outcome."""
        with self._lock:
            self.completed_tasks += 1
            if not outcome.success:
                self.failed_tasks += 1
            completed = self.completed_tasks

            logger.debug(
                f"Progress: {completed}/{self.total_tasks} • "
                f"Failed: {self.failed_tasks} • "
                f"Task: {outcome.candidate.name}"
            )

            if self.update_callback:
                self.update_callback(completed, self.total_tasks, outcome)

    def get_summary(self) -> Dict[str, Any]:
        """Get progress summary statistics."""
        with self._lock:
            elapsed_time = time.time() - self.start_time
            return {
                'total_tasks': self.total_tasks,
                'completed_tasks': self.completed_tasks,
                'failed_tasks': self.failed_tasks,
                'elapsed_time': elapsed_time,
                'avg_time_per_task': elapsed_time / max(1, self.completed_tasks)
            }


class CandidateDispatcher:
    """Runs one job per candidate through a bounded thread pool."""

    def __init__(self, max_workers: int = 1, progress_callback: Optional[Callable] = None):
        """
        Initialize the dispatcher.

        Args:
            max_workers: Maximum number of concurrently running jobs (1 = sequential)
            progress_callback: Called as callback(completed, total, outcome) after each job
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self.max_workers = max_workers
        self.progress_callback = progress_callback
        self._progress_tracker: Optional[ProgressTracker] = None

    def dispatch(self, candidates: Sequence[CandidateTree],
                 worker: Callable[[CandidateTree], Any]) -> List[TaskOutcome]:
        """
        Run `worker` once per candidate.

        Exceptions raised by the worker are captured in the candidate's
        outcome; they never stop sibling jobs.

        Returns:
            One TaskOutcome per candidate, ordered by candidate creation index
        """
        tasks = [CandidateTask(candidate, position, len(candidates))
                 for position, candidate in enumerate(candidates, 1)]
        self._progress_tracker = ProgressTracker(len(tasks), self.progress_callback)
        if not tasks:
            return []

        if self.max_workers == 1:
            outcomes = [self._execute(task, worker) for task in tasks]
        else:
            outcomes = asyncio.run(self._dispatch_async(tasks, worker))

        summary = self._progress_tracker.get_summary()
        logger.debug(f"Dispatched {summary['total_tasks']} tasks with {self.max_workers} workers "
                     f"in {summary['elapsed_time']:.2f}s ({summary['failed_tasks']} failed)")
        return sorted(outcomes, key=lambda outcome: outcome.candidate.index)

    async def _dispatch_async(self, tasks: List[CandidateTask],
                              worker: Callable[[CandidateTree], Any]) -> List[TaskOutcome]:
        loop = asyncio.get_running_loop()
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [loop.run_in_executor(executor, self._execute, task, worker)
                       for task in tasks]
            return list(await asyncio.gather(*futures))

    def _execute(self, task: CandidateTask, worker: Callable[[CandidateTree], Any]) -> TaskOutcome:
        start_time = time.time()
        try:
            value = worker(task.candidate)
            outcome = TaskOutcome(task=task, success=True, value=value,
                                  processing_time=time.time() - start_time)
        except Exception as e:
            outcome = TaskOutcome(task=task, success=False, error=e,
                                  processing_time=time.time() - start_time)
        self._progress_tracker.update(outcome)
        return outcome

    def get_performance_summary(self) -> Dict[str, Any]:
        """Get performance summary for the last dispatched phase."""
        if self._progress_tracker is None:
            return {}
        return self._progress_tracker.get_summary()

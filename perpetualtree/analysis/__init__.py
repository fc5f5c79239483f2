#!/usr/bin/env python3
"""
Candidate jobs for perpetualtree.

This package contains the collaborators that run external programs:
- The external tool runner (process execution, stream capture, timeouts)
- The job interface and its options record
- RAxML family jobs for generation, refinement, scoring and full search
"""

from .external_tools import ExternalToolRunner, ToolExecutionResult
from .job_base import (
    CandidateJobRunner, ScoringJobRunner, JobOptions, JobResult, parse_score
)
from .raxml_jobs import ParsimonyStarterJob, NNIRefinementJob, GammaScoringJob, GammaSearchJob

__all__ = [
    'ExternalToolRunner',
    'ToolExecutionResult',
    'CandidateJobRunner',
    'ScoringJobRunner',
    'JobOptions',
    'JobResult',
    'parse_score',
    'ParsimonyStarterJob',
    'NNIRefinementJob',
    'GammaScoringJob',
    'GammaSearchJob'
]

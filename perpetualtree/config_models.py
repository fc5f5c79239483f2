#!/usr/bin/env python3
"""
Configuration models for perpetualtree using Pydantic for validation.

This module defines the structure and validation rules for perpetualtree
configuration files, supporting both YAML and TOML formats.
"""

from typing import Dict, Optional, Any, Literal
from pathlib import Path
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict

from .core.constants import (
    DEFAULT_NUM_CANDIDATES,
    DEFAULT_SEED_BASE,
    DEFAULT_BEST_ML_FOLDER_NAME,
    DEFAULT_BEST_ML_BUNCH_NAME,
    DEFAULT_BUNCH_MANIFEST_NAME,
    DEFAULT_ITERATION_RESULTS_NAME,
    DEFAULT_ITERATION_LOG_NAME,
    DEFAULT_PARSIMONATOR_PATH,
    DEFAULT_RAXML_LIGHT_PATH,
    DEFAULT_RAXML_PATH,
    DEFAULT_CAT_MODEL,
    DEFAULT_GAMMA_MODEL,
    DEFAULT_GENERATION_TIMEOUT,
    DEFAULT_REFINEMENT_TIMEOUT,
    DEFAULT_SCORING_TIMEOUT,
    DEFAULT_SEARCH_TIMEOUT,
)
from .core.round_model import InitialRound, WarmStartRound, FromScratchRound, RoundMode


class InputOutputConfig(BaseModel):
    """Input/Output configuration settings."""

    alignment_file: Path = Field(..., description="Alignment of this round (PHYLIP)")
    partition_file: Optional[Path] = Field(
        default=None, description="Optional partition scheme"
    )
    base_dir: Path = Field(..., description="Base directory of this round")
    prev_dir: Optional[Path] = Field(
        default=None, description="Base directory of the previous round (warm-start)"
    )
    log_file: Optional[Path] = Field(
        default=None, description="Log file; defaults to the iteration log in base_dir"
    )
    debug: bool = Field(
        default=False, description="Enable debug mode with detailed logging"
    )

    @field_validator('alignment_file')
    @classmethod
    def validate_alignment_file(cls, v):
        """Validate that alignment file exists."""
        if not Path(v).exists():
            raise ValueError(f"Alignment file not found: {v}")
        return v

    @field_validator('partition_file')
    @classmethod
    def validate_partition_file(cls, v):
        """An explicitly requested partition file must exist."""
        if v is not None and not Path(v).exists():
            raise ValueError(f"Partition file not found: {v}")
        return v


class IterationConfig(BaseModel):
    """Round settings."""

    update_id: int = Field(
        default=0, ge=0, description="Round identifier, 0 for the initial round"
    )
    mode: Optional[Literal["initial", "warm_start", "from_scratch"]] = Field(
        default=None, description="Round mode; derived from update_id when omitted"
    )
    num_candidates: int = Field(
        default=DEFAULT_NUM_CANDIDATES, ge=1,
        description="Candidates per round (per previous tree when warm-starting)"
    )
    num_best: Optional[int] = Field(
        default=None, ge=1, description="Trees kept in the best bunch (default: half the candidates)"
    )
    seed_base: int = Field(
        default=DEFAULT_SEED_BASE, ge=0, description="First seed of the deterministic seed sequence"
    )

    def resolved_mode(self) -> str:
        if self.mode is not None:
            return self.mode
        return "initial" if self.update_id == 0 else "warm_start"

    def resolved_keep_count(self) -> int:
        if self.num_best is not None:
            return self.num_best
        return max(1, self.num_candidates // 2)


class ComputationalConfig(BaseModel):
    """Computational settings configuration."""

    threads: int = Field(
        default=0, ge=0, description="Thread hint passed to the jobs (0 = let the programs decide)"
    )
    max_workers: int = Field(
        default=1, ge=1, le=64, description="Maximum number of candidate jobs running at once"
    )
    parsimonator_path: str = Field(
        default=DEFAULT_PARSIMONATOR_PATH, description="Path to the parsimony starting tree program"
    )
    raxml_light_path: str = Field(
        default=DEFAULT_RAXML_LIGHT_PATH, description="Path to the ML refinement program"
    )
    raxml_path: str = Field(
        default=DEFAULT_RAXML_PATH, description="Path to the RAxML executable used for scoring"
    )
    cat_model: str = Field(
        default=DEFAULT_CAT_MODEL, description="Model used for ML refinement"
    )
    gamma_model: str = Field(
        default=DEFAULT_GAMMA_MODEL, description="Model used for scoring and full searches"
    )

    # Timeouts (seconds)
    generation_timeout: int = Field(
        default=DEFAULT_GENERATION_TIMEOUT, ge=1, description="Timeout for one parsimony job"
    )
    refinement_timeout: int = Field(
        default=DEFAULT_REFINEMENT_TIMEOUT, ge=1, description="Timeout for one ML refinement job"
    )
    scoring_timeout: int = Field(
        default=DEFAULT_SCORING_TIMEOUT, ge=1, description="Timeout for one scoring job"
    )
    search_timeout: int = Field(
        default=DEFAULT_SEARCH_TIMEOUT, ge=1, description="Timeout for a full search from scratch"
    )


class NamingConfig(BaseModel):
    """File and folder names of a round."""

    best_ml_folder_name: str = Field(default=DEFAULT_BEST_ML_FOLDER_NAME)
    best_ml_bunch_name: str = Field(default=DEFAULT_BEST_ML_BUNCH_NAME)
    manifest_name: str = Field(default=DEFAULT_BUNCH_MANIFEST_NAME)
    iteration_results_name: str = Field(default=DEFAULT_ITERATION_RESULTS_NAME)
    iteration_log_name: str = Field(default=DEFAULT_ITERATION_LOG_NAME)

    @field_validator('*')
    @classmethod
    def validate_plain_name(cls, v):
        """Names are single path components."""
        if not v or Path(v).name != v:
            raise ValueError(f"Expected a plain file name, got {v!r}")
        return v


class VisualizationConfig(BaseModel):
    """Visualization configuration settings."""

    enable: bool = Field(
        default=False, description="Draw the likelihood plot of each round"
    )
    format: Literal["png", "pdf", "svg"] = Field(
        default="png", description="Plot file format"
    )
    static: Dict[str, Any] = Field(
        default={
            "dpi": 300,
            "figsize": [10, 6],
            "font_size": 12,
        },
        description="Static plot configuration"
    )


class PerpetualTreeConfig(BaseModel):
    """Main perpetualtree configuration model."""

    model_config = ConfigDict(
        extra='forbid',  # Don't allow extra fields
        validate_assignment=True,  # Validate on assignment
    )

    # Configuration sections
    input_output: InputOutputConfig
    iteration: IterationConfig = Field(default_factory=IterationConfig)
    computational: ComputationalConfig = Field(default_factory=ComputationalConfig)
    naming: NamingConfig = Field(default_factory=NamingConfig)
    visualization: VisualizationConfig = Field(default_factory=VisualizationConfig)

    @model_validator(mode='after')
    def validate_previous_round(self):
        """A warm-start round needs the previous round's directory."""
        if self.iteration.resolved_mode() == "warm_start" and self.input_output.prev_dir is None:
            raise ValueError("prev_dir is required for a warm_start round")
        return self

    def get_mode(self) -> RoundMode:
        """Round mode object for the configured round."""
        mode = self.iteration.resolved_mode()
        if mode == "initial":
            return InitialRound()
        if mode == "from_scratch":
            return FromScratchRound()
        return WarmStartRound(self.input_output.prev_dir)

    def get_log_file(self) -> Path:
        if self.input_output.log_file is not None:
            return self.input_output.log_file
        return self.input_output.base_dir / self.naming.iteration_log_name

    def to_iteration_options(self) -> Dict[str, Any]:
        """Options mapping accepted by IterationCoordinator.start_iteration."""
        mode = self.iteration.resolved_mode()
        return {
            'num_candidates': self.iteration.num_candidates,
            'num_best': self.iteration.resolved_keep_count(),
            'initial_iteration': mode == "initial",
            'from_scratch': mode == "from_scratch",
        }

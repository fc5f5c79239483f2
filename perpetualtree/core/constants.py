#!/usr/bin/env python3
"""
Constants for perpetualtree.

File names, directory names, defaults and output markers shared by the
iteration coordinator, the job runners and the persistence layer.
"""

VERSION = "0.3.0"

# --- Round directory layout ---
ALIGNMENT_DIR_NAME = "alignments"
CANDIDATE_DIR_NAME = "parsimony_trees"
CANDIDATE_SEED_DIR_NAME = "seeds"
ML_DIR_NAME = "ml_trees"
DEFAULT_BEST_ML_FOLDER_NAME = "best_ml_trees"

# --- Best bunch artifacts ---
DEFAULT_BEST_ML_BUNCH_NAME = "best_bunch.nw"
DEFAULT_BUNCH_MANIFEST_NAME = "best_bunch_order.json"
COMPLETION_MARKER_NAME = "FINISHED"
DEFAULT_ITERATION_RESULTS_NAME = "iteration_results.tsv"
DEFAULT_ITERATION_LOG_NAME = "iteration.log"

# --- Candidate naming ---
UPDATE_ALIGNMENT_PREFIX = "phy_"
PREVIOUS_TREE_PREFIX = "prev_best_tree"
TREE_FILE_EXTENSION = "nw"
GENERATION_STAGE = "parsimony"
REFINEMENT_STAGE = "refine"
SCORING_STAGE = "score"
SEARCH_JOB_NAME = "std_GAMMA_search"

# --- Iteration defaults ---
DEFAULT_NUM_CANDIDATES = 4
DEFAULT_SEED_BASE = 123
# Seeds of consecutive rounds never overlap while a round stays below this many candidates
SEED_ROUND_STRIDE = 100000

# --- External programs ---
DEFAULT_PARSIMONATOR_PATH = "parsimonator"
DEFAULT_RAXML_LIGHT_PATH = "raxmlLight"
DEFAULT_RAXML_PATH = "raxmlHPC"
DEFAULT_CAT_MODEL = "GTRCAT"
DEFAULT_GAMMA_MODEL = "GTRGAMMA"
RF_CONVERGENCE_FLAG = "-D"

# --- RAxML output file prefixes ---
RAXML_PARSIMONY_TREE_PREFIX = "RAxML_parsimonyTree"
RAXML_RESULT_PREFIX = "RAxML_result"
RAXML_INFO_PREFIX = "RAxML_info"
RAXML_BEST_TREE_PREFIX = "RAxML_bestTree"

# --- Score markers ---
GAMMA_SCORE_MARKER = "Final GAMMA  likelihood:"
SEARCH_SCORE_MARKER = "Final GAMMA-based Score of best tree"

# --- Timeouts (seconds) ---
DEFAULT_GENERATION_TIMEOUT = 1800
DEFAULT_REFINEMENT_TIMEOUT = 7200
DEFAULT_SCORING_TIMEOUT = 3600
DEFAULT_SEARCH_TIMEOUT = 14400

# --- Process handling ---
STDOUT_SAMPLE_SIZE = 500

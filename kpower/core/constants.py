#!/usr/bin/env python3
"""
Constants and defaults shared across kpower modules.
"""

VERSION = "0.3.0"

# --- IQ-TREE discovery ---
IQTREE_CANDIDATES = ("iqtree3", "iqtree2", "iqtree")

# --- Model defaults ---
DEFAULT_BASE_MODEL = "GTR"
DEFAULT_MIX_TYPE = "+R"
DEFAULT_K_MIN = 1
DEFAULT_CRITERION = "BIC"
DEFAULT_TREE_MODE = "nj"
CRITERIA = ("AIC", "AICc", "BIC")

# --- Bootstrap defaults ---
DEFAULT_REPLICATES = 1000
DEFAULT_SEED = 1
DEFAULT_THREADS = "AUTO"
DEFAULT_N_CORES = 1

# --- Timeouts (seconds) ---
DEFAULT_FIT_TIMEOUT = 3600       # 1 hour per IQ-TREE fit
DEFAULT_SIMULATION_TIMEOUT = 7200  # 2 hours for one AliSim run

# --- Output layout ---
EMPIRICAL_DIR = "empirical"
SIMULATIONS_DIR = "simulations"
SIM_FITS_DIR = "sim_fits"
EMPIRICAL_LABEL_PREFIX = "empirical_"
SIM_FILE_STEM = "sim"
SIM_LABEL_WIDTH = 4
SIM_OUTPUT_EXTENSIONS = (".fa", ".fasta", ".phy")

# --- IQ-TREE output suffixes ---
REPORT_SUFFIX = ".iqtree"
TREEFILE_SUFFIX = ".treefile"
LOGFILE_SUFFIX = ".log"

# --- Report parsing ---
ALISIM_SECTION_MARKER = "ALISIM COMMAND"
ALISIM_FLAG = "--alisim"
STDERR_EXCERPT_CHARS = 2000

# --- Result files ---
EMPIRICAL_TABLE_FN = "empirical_ic.csv"
SIMULATION_TABLE_FN = "simulation_ic.csv"
SUMMARY_FN = "kpower_summary.txt"
FIGURE_FN = "kpower_ic_profile"
DEFAULT_FIGURE_FORMAT = "png"

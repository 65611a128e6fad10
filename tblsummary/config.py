"""
Configuration module: paths, table defaults, dataset constants, and logging.
"""

from pathlib import Path
import logging
import os
import sys

# ============================================================================
# PROJECT PATHS (all relative to PROJECT_ROOT)
# ============================================================================

# Detect PROJECT_ROOT: either cwd or parent if in notebooks/scripts
def get_project_root():
    """Auto-detect project root by checking for data/ and tblsummary/ folders."""
    cwd = Path.cwd()

    # If already in project root
    if (cwd / "data").exists() or (cwd / "tblsummary").exists():
        return cwd

    # If in notebooks/ or scripts/
    if cwd.name in ["notebooks", "scripts"]:
        return cwd.parent

    return cwd

PROJECT_ROOT = get_project_root()

# Core data paths
DATA_DIR = PROJECT_ROOT / "data"
ORIGINAL_DIR = DATA_DIR / "original"
PROCESSED_DIR = DATA_DIR / "processed"
OUTPUTS_DIR = PROJECT_ROOT / "outputs"
TABLES_DIR = OUTPUTS_DIR / "tables"
FIGURES_DIR = OUTPUTS_DIR / "figures"

# Input files (raw data)
INPUT_FILES = {
    "diabetes": ORIGINAL_DIR / "diabetes.csv",
}

# Output files (processed data + rendered tables)
OUTPUT_FILES = {
    "diabetes_clean": PROCESSED_DIR / "diabetes_clean.csv",
    "table1_html": TABLES_DIR / "table1_by_outcome.html",
    "table1_tex": TABLES_DIR / "table1_by_outcome.tex",
    "table1_xlsx": TABLES_DIR / "table1_by_outcome.xlsx",
    "table_strata_html": TABLES_DIR / "table_by_pregnancy_group.html",
    "regression_html": TABLES_DIR / "logistic_regression.html",
    "regression_rtf": TABLES_DIR / "logistic_regression.rtf",
    "regression_txt": TABLES_DIR / "logistic_regression.txt",
    "forest_plot": FIGURES_DIR / "odds_ratios_forest.png",
}


def ensure_output_dirs():
    """Create processed/output directories if missing."""
    for directory in (PROCESSED_DIR, TABLES_DIR, FIGURES_DIR):
        directory.mkdir(parents=True, exist_ok=True)

# ============================================================================
# TABLE DEFAULTS
# ============================================================================

DEFAULT_DIGITS = 1                 # decimals for means, SDs, percentages
DEFAULT_PVALUE_DIGITS = 3
DEFAULT_MISSING_TEXT = "Unknown"   # label of the missing-value bucket
DEFAULT_OVERALL_LABEL = "Overall"
DEFAULT_PERCENT_MODE = "column"    # 'column', 'row', or 'cell'
DEFAULT_SHOW_MISSING = "ifany"     # 'ifany', 'always', or 'no'
MAX_CATEGORICAL_LEVELS = 10        # numeric fields with fewer distinct values are categorical

# Tokens read as missing by the CSV loader
NA_VALUES = ["", "NA", "N/A", "NaN", "nan", "null", "NULL", "."]

# ============================================================================
# DIABETES DATASET CONSTANTS
# ============================================================================

OUTCOME_COLUMN = "diabetes"
OUTCOME_LABELS = {0: "neg", 1: "pos", "0": "neg", "1": "pos"}

# Physiologically impossible zeros encode missing measurements
ZERO_AS_MISSING_COLUMNS = ["glucose", "pressure", "triceps", "insulin", "mass"]

# Number of pregnancies -> parity group, intervals closed on the right
PREGNANCY_BOUNDARIES = [float("-inf"), 0, 4, float("inf")]
PREGNANCY_LABELS = ["nulliparous", "multiparous", "grand multiparous"]
PREGNANCY_GROUP_COLUMN = "pregnancy_group"

FIELD_LABELS = {
    "pregnant": "Number of pregnancies",
    "glucose": "Plasma glucose (mg/dL)",
    "pressure": "Diastolic blood pressure (mm Hg)",
    "triceps": "Triceps skin fold thickness (mm)",
    "insulin": "2-hour serum insulin (mu U/ml)",
    "mass": "Body mass index (kg/m²)",
    "pedigree": "Diabetes pedigree function",
    "age": "Age (years)",
    "diabetes": "Diabetes",
    "pregnancy_group": "Parity group",
}

# ============================================================================
# LOGGING & VERBOSITY
# ============================================================================

VERBOSE = True
LOG_LEVEL = os.environ.get("TBLSUMMARY_LOG_LEVEL", "INFO")  # DEBUG, INFO, WARNING, ERROR

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level=None, force=False):
    """
    Attach a stderr handler to the 'tblsummary' logger (never the root logger).

    Scripts call this; library code only uses logging.getLogger(__name__).

    Args:
        level: Logging level name or number. Defaults to LOG_LEVEL.
        force: If True, replace existing handlers instead of keeping them.

    Returns:
        The configured 'tblsummary' logger
    """
    if level is None:
        level = LOG_LEVEL
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger("tblsummary")
    logger.setLevel(level)

    if force:
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)
    else:
        for handler in logger.handlers:
            if isinstance(handler, logging.StreamHandler) and handler.stream is sys.stderr:
                return logger

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT))
    logger.addHandler(console)
    return logger


def print_config():
    """Print all configuration settings."""
    print("\n" + "=" * 80)
    print("PIPELINE CONFIGURATION")
    print("=" * 80)
    print(f"\nPROJECT ROOT: {PROJECT_ROOT}")
    print(f"DATA DIR: {DATA_DIR}")
    print(f"PROCESSED DIR: {PROCESSED_DIR}")
    print(f"OUTPUTS DIR: {OUTPUTS_DIR}")
    print(f"\nTable defaults:")
    print(f"   Digits: {DEFAULT_DIGITS} (p-values: {DEFAULT_PVALUE_DIGITS})")
    print(f"   Percent denominator: {DEFAULT_PERCENT_MODE}")
    print(f"   Missing values: {DEFAULT_SHOW_MISSING} -> '{DEFAULT_MISSING_TEXT}'")
    print(f"\n✓ Configuration loaded successfully")
    print("=" * 80 + "\n")

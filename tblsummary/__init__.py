"""
Descriptive Table Pipeline
Package for summary ("Table 1"), stratified, and regression result tables
built from a tabular health dataset.
"""

import logging

__version__ = "1.0.0"

# Library modules only log; scripts call config.configure_logging()
logging.getLogger(__name__).addHandler(logging.NullHandler())

# Lazy imports to avoid long startup times (statsmodels, matplotlib)
# Import as needed in code

__all__ = [
    "config",
    "errors",
    "io",
    "cleaning",
    "options",
    "aggregate",
    "hypothesis",
    "table",
    "regression",
    "export",
    "plots",
    "qc",
]

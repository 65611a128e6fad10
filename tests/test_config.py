"""Tests for logging configuration and errors."""

import logging

from tblsummary import config
from tblsummary.errors import ConfigurationError, ExportError, RangeError, TblSummaryError


def test_configure_logging_is_package_scoped() -> None:
    root_handlers = list(logging.getLogger().handlers)
    logger = config.configure_logging("DEBUG", force=True)
    config.configure_logging("DEBUG")

    assert logger.name == "tblsummary"
    assert logger.level == logging.DEBUG
    assert len([h for h in logger.handlers if isinstance(h, logging.StreamHandler)]) == 1
    assert logging.getLogger().handlers == root_handlers

    config.configure_logging("WARNING", force=True)


def test_error_hierarchy() -> None:
    assert issubclass(ConfigurationError, ValueError)
    assert issubclass(ExportError, OSError)
    err = RangeError(12, 3, column="pregnant")
    assert isinstance(err, TblSummaryError)
    assert "12" in str(err) and "row 3" in str(err) and "pregnant" in str(err)

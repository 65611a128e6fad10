"""Tests for quality checks."""

import pandas as pd
import pytest

from tblsummary.aggregate import SummaryRow, summarize
from tblsummary.options import FieldKind, SummaryOptions
from tblsummary.qc import (
    check_bucket_coverage,
    check_columns_present,
    check_equal_lengths,
    check_idempotent,
    check_level_counts,
    check_percent_totals,
    print_qc_report,
)


def _level(count, n, percent):
    return SummaryRow(
        field="f", label="f", kind=FieldKind.CATEGORICAL, stratum="s", level=str(count),
        row_type="level", n=n, count=count, percent=percent,
    )


def test_columns_present() -> None:
    df = pd.DataFrame({"a": [1], "b": [2]})
    assert check_columns_present(df, ["a"]).startswith("✓")
    with pytest.raises(AssertionError):
        check_columns_present(df, ["c"])


def test_equal_lengths() -> None:
    assert check_equal_lengths({"a": [1, 2], "b": [3, 4]}).startswith("✓")
    with pytest.raises(AssertionError):
        check_equal_lengths({"a": [1, 2], "b": [3]})


def test_equal_lengths_reports_dataframe_shape(small_df) -> None:
    assert check_equal_lengths(small_df) == "✓ 4 columns x 10 rows"


def test_bucket_coverage() -> None:
    df = pd.DataFrame({"x": [1, None, 3], "g": ["lo", None, "hi"]})
    assert check_bucket_coverage(df, "x", "g").startswith("✓")
    df.loc[0, "g"] = None
    with pytest.raises(AssertionError):
        check_bucket_coverage(df, "x", "g")


def test_level_counts_and_percents_on_real_rows(small_df) -> None:
    rows = summarize(small_df, SummaryOptions(fields=["color", "score"], by="group", add_overall=True))
    assert check_level_counts(rows).startswith("✓")
    assert check_percent_totals(rows).startswith("✓")


def test_level_counts_detect_mismatch() -> None:
    with pytest.raises(AssertionError):
        check_level_counts([_level(2, 5, 40.0), _level(2, 5, 40.0)])


def test_percent_totals_detect_mismatch() -> None:
    with pytest.raises(AssertionError):
        check_percent_totals([_level(3, 5, 60.0), _level(1, 5, 20.0)])


def test_idempotent(small_df) -> None:
    assert check_idempotent(summarize, small_df, SummaryOptions(fields=["score"])).startswith("✓")
    counter = iter(range(10))
    with pytest.raises(AssertionError):
        check_idempotent(lambda: [next(counter)])


def test_qc_report_counts_failures(capsys) -> None:
    df = pd.DataFrame({"a": [1]})
    failures = print_qc_report([
        ("present", check_columns_present, {"df": df, "columns": ["a"]}),
        ("absent", check_columns_present, {"df": df, "columns": ["z"]}),
        ("bad column", check_bucket_coverage, {"df": df, "source": "a", "derived": "zz"}),
    ])

    out = capsys.readouterr().out
    assert failures == 2
    assert "QUALITY CONTROL REPORT" in out
    assert "❌ absent" in out
    assert "⚠️  bad column" in out

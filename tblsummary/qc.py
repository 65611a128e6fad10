"""
Quality Control (QC) module: Assertions and data quality checks.
"""

from collections import defaultdict

import pandas as pd

from .errors import TblSummaryError
from .options import FieldKind


def check_columns_present(df, columns):
    """Assert every required column exists."""
    missing = [col for col in columns if col not in df.columns]
    assert not missing, f"Missing columns: {missing}"
    return f"✓ All {len(columns)} required columns present"


def check_equal_lengths(data):
    """
    Assert all columns of a mapping share the same row count.

    A DataFrame cannot hold columns of unequal length, so for one this only
    reports its shape and never fails.
    """
    if isinstance(data, pd.DataFrame):
        return f"✓ {data.shape[1]} columns x {len(data)} rows"
    lengths = {name: len(values) for name, values in data.items()}
    assert len(set(lengths.values())) <= 1, f"Unequal column lengths: {lengths}"
    return f"✓ {len(lengths)} columns of equal length"


def check_bucket_coverage(df, source, derived):
    """Assert each non-missing source value received exactly one label, and missing stayed missing."""
    unlabelled = (df[source].notna() & df[derived].isna()).sum()
    invented = (df[source].isna() & df[derived].notna()).sum()
    assert unlabelled == 0, f"{unlabelled} values of {source} have no {derived} label"
    assert invented == 0, f"{invented} missing {source} values were labelled"
    return f"✓ {derived} covers all {int(df[source].notna().sum())} non-missing {source} values"


def check_level_counts(rows):
    """Assert categorical level counts sum to the non-missing count per field and stratum."""
    totals = defaultdict(int)
    expected = {}
    for row in rows:
        if row.row_type != "level" or row.kind != FieldKind.CATEGORICAL:
            continue
        key = (row.field, row.stratum)
        totals[key] += row.count
        expected[key] = row.n
    bad = {key: (totals[key], n) for key, n in expected.items() if totals[key] != n}
    assert not bad, f"Level counts do not sum to n: {bad}"
    return f"✓ Level counts consistent for {len(expected)} field/stratum pairs"


def check_percent_totals(rows, tolerance=0.5):
    """Assert column percentages of each categorical field sum to 100 within a stratum."""
    totals = defaultdict(float)
    for row in rows:
        if row.row_type == "level" and row.kind == FieldKind.CATEGORICAL and row.percent is not None:
            totals[(row.field, row.stratum)] += row.percent
    bad = {key: round(total, 3) for key, total in totals.items() if abs(total - 100.0) > tolerance}
    assert not bad, f"Percentages do not sum to 100: {bad}"
    return f"✓ Percentages sum to 100 for {len(totals)} field/stratum pairs"


def check_idempotent(func, *args, **kwargs):
    """Assert two calls with identical inputs return identical results."""
    first = func(*args, **kwargs)
    second = func(*args, **kwargs)
    assert first == second, f"{func.__name__} returned different results on identical input"
    return f"✓ {func.__name__} is repeatable ({len(first)} rows)"


def print_qc_report(checks, title="QUALITY CONTROL REPORT"):
    """
    Print formatted QC report.

    Args:
        checks: List of (name, check_func, kwargs) tuples
        title: Report heading

    Returns:
        Number of failed checks
    """
    print("\n" + "=" * 80)
    print(title)
    print("=" * 80)

    failures = 0
    for name, check_func, kwargs in checks:
        try:
            result = check_func(**kwargs)
            print(f"\n{name}")
            print(f"  {result}")
        except AssertionError as e:
            failures += 1
            print(f"\n❌ {name}")
            print(f"  ERROR: {e}")
        except (TblSummaryError, KeyError) as e:
            failures += 1
            print(f"\n⚠️  {name}")
            print(f"  WARNING: {e}")

    print("\n" + "=" * 80)
    return failures

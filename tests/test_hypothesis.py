"""Tests for between-group p-values."""

import pandas as pd
import pytest
from scipy import stats

from tblsummary.hypothesis import compare_groups, compute_pvalues, format_pvalue
from tblsummary.io import load_dataset
from tblsummary.options import FieldKind, SummaryOptions, Theme


@pytest.mark.parametrize(
    "p_value, digits, expected",
    [
        (None, 3, "—"),
        (0.0004, 3, "<0.001"),
        (0.5, 3, "0.500"),
        (0.0123, 3, "0.012"),
        (0.995, 3, ">0.99"),
        (0.004, 2, "<0.01"),
        (0.04, 2, "0.04"),
    ],
)
def test_format_pvalue(p_value, digits, expected) -> None:
    assert format_pvalue(p_value, digits) == expected


def test_two_group_continuous_uses_rank_sum(small_df) -> None:
    result = compare_groups(small_df, "score", "group", FieldKind.CONTINUOUS)

    expected = stats.mannwhitneyu([1, 3, 5, 7, 9], [2, 4, 6, 8, 10], alternative="two-sided").pvalue
    assert result.test == "Wilcoxon rank sum test"
    assert result.p_value == pytest.approx(expected)


def test_parametric_two_group_uses_welch(small_df) -> None:
    result = compare_groups(small_df, "score", "group", "continuous", parametric=True)

    expected = stats.ttest_ind([1, 3, 5, 7, 9], [2, 4, 6, 8, 10], equal_var=False).pvalue
    assert result.test == "Welch Two Sample t-test"
    assert result.p_value == pytest.approx(expected)


def test_three_groups_use_kruskal_wallis() -> None:
    df = load_dataset({"g": list("xxxyyyzzz"), "v": [1.0, 2, 3, 4, 5, 6, 7, 8, 9]})
    result = compare_groups(df, "v", "g", FieldKind.CONTINUOUS)
    assert result.test == "Kruskal-Wallis rank sum test"
    assert 0 < result.p_value < 0.05


def test_small_two_by_two_uses_fisher(small_df) -> None:
    result = compare_groups(small_df, "smoker", "group", FieldKind.DICHOTOMOUS)
    expected = stats.fisher_exact([[3, 3], [2, 2]])[1]
    assert result.test == "Fisher's exact test"
    assert result.p_value == pytest.approx(expected)


def test_large_table_uses_chi_squared(diabetes_df) -> None:
    result = compare_groups(diabetes_df, "pregnancy_group", "diabetes", FieldKind.CATEGORICAL)

    tab = pd.crosstab(diabetes_df["pregnancy_group"], diabetes_df["diabetes"])
    expected = stats.chi2_contingency(tab.to_numpy(), correction=False)[1]
    assert result.test == "Pearson's Chi-squared test"
    assert result.p_value == pytest.approx(expected)


def test_single_group_has_no_pvalue() -> None:
    df = load_dataset({"g": ["x", "x", None], "v": [1.0, 2.0, 3.0]})
    result = compare_groups(df, "v", "g", FieldKind.CONTINUOUS)
    assert result.p_value is None
    assert result.test == "-"


def test_compute_pvalues_follows_theme(small_df) -> None:
    options = SummaryOptions(fields=["score", "color"], by="group", add_p=True)

    default = compute_pvalues(small_df, options)
    parametric = compute_pvalues(small_df, options, Theme(parametric_tests=True))

    assert list(default) == ["score", "color"]
    assert default["score"].test == "Wilcoxon rank sum test"
    assert parametric["score"].test == "Welch Two Sample t-test"
    assert default["color"].test == parametric["color"].test

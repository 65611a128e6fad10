"""
Hypothesis module: between-group p-values for summary tables.
"""

from dataclasses import dataclass
import logging
import warnings
from typing import Optional

import pandas as pd
from scipy import stats

from .options import DEFAULT_THEME, FieldKind, resolve_fields

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GroupComparison:
    """Result of comparing one field across the strata of a grouping column."""

    field: str
    p_value: Optional[float]
    test: str


def compare_groups(df, field, by, kind, parametric=False):
    """
    Test whether a field differs across groups.

    Continuous fields use the Wilcoxon rank-sum / Kruskal-Wallis tests (or
    Welch's t-test / one-way ANOVA when `parametric`). Categorical fields use
    Pearson's chi-squared test, or Fisher's exact test for 2x2 tables with an
    expected count below 5. Rows with a missing field or group are dropped.

    Args:
        df: Dataset
        field: Column to test
        by: Grouping column
        kind: FieldKind of `field`
        parametric: Use mean-based tests for continuous fields

    Returns:
        GroupComparison (p_value is None when fewer than two groups have data)
    """
    data = df[[field, by]].dropna()
    kind = FieldKind(kind)

    if kind == FieldKind.CONTINUOUS:
        groups = [
            pd.to_numeric(sub[field]).astype(float).to_numpy()
            for _, sub in data.groupby(by, sort=False, observed=True)
        ]
        groups = [g for g in groups if len(g) > 0]
        if len(groups) < 2:
            return GroupComparison(field, None, "-")

        if parametric:
            if len(groups) == 2:
                test, func = "Welch Two Sample t-test", lambda: stats.ttest_ind(*groups, equal_var=False)
            else:
                test, func = "One-way ANOVA", lambda: stats.f_oneway(*groups)
        elif len(groups) == 2:
            test, func = "Wilcoxon rank sum test", lambda: stats.mannwhitneyu(*groups, alternative="two-sided")
        else:
            test, func = "Kruskal-Wallis rank sum test", lambda: stats.kruskal(*groups)

        try:
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", RuntimeWarning)
                result = func()
        except ValueError as exc:
            logger.warning("%s failed for %r: %s", test, field, exc)
            return GroupComparison(field, None, test)
        return GroupComparison(field, _finite_or_none(result.pvalue), test)

    tab = pd.crosstab(data[field].astype(object), data[by].astype(object))
    tab = tab.loc[tab.sum(axis=1) > 0, tab.sum(axis=0) > 0]
    if tab.shape[0] < 2 or tab.shape[1] < 2:
        return GroupComparison(field, None, "-")

    _, p_value, _, expected = stats.chi2_contingency(tab.to_numpy(), correction=False)
    if tab.shape == (2, 2) and expected.min() < 5:
        _, p_fisher = stats.fisher_exact(tab.to_numpy())
        return GroupComparison(field, _finite_or_none(p_fisher), "Fisher's exact test")
    return GroupComparison(field, _finite_or_none(p_value), "Pearson's Chi-squared test")


def _finite_or_none(value):
    value = float(value)
    return value if pd.notna(value) else None


def compute_pvalues(df, options, theme=DEFAULT_THEME):
    """p-value per summarized field, keyed by field name."""
    specs = resolve_fields(df, options, theme)
    results = {}
    for spec in specs:
        results[spec.name] = compare_groups(
            df, spec.name, options.by, spec.kind, parametric=theme.parametric_tests
        )
        logger.debug("%s: %s p=%s", spec.name, results[spec.name].test, results[spec.name].p_value)
    return results


def format_pvalue(p_value, digits=3):
    """Format a p-value, flooring tiny values (e.g. '<0.001') and capping at '>0.99'."""
    if p_value is None:
        return "—"
    floor = 10 ** -digits
    if p_value < floor:
        return f"<{floor:.{digits}f}"
    if p_value > 0.99:
        return ">0.99"
    return f"{p_value:.{digits}f}"

"""
Regression module: logistic models and their result tables.

Design matrices follow the usual convention: categorical predictors become
dummy columns with the first level as reference, and a constant is added at
fit time.
"""

from dataclasses import dataclass
import logging
import math
from typing import Optional
import warnings

import numpy as np
import pandas as pd
import statsmodels.api as sm
from statsmodels.tools.sm_exceptions import (
    ConvergenceWarning,
    PerfectSeparationError,
    PerfectSeparationWarning,
)

from .errors import ConfigurationError
from .hypothesis import format_pvalue
from .io import require_columns
from .options import DEFAULT_THEME, FieldKind, infer_kind, level_text, ordered_levels
from .table import LABEL, SummaryTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Term:
    """One predictor and the design-matrix columns it expands into."""

    field: str
    label: str
    kind: FieldKind
    levels: tuple = ()
    columns: tuple = ()


@dataclass(frozen=True, eq=False)
class Design:
    """Complete-case outcome vector and predictor matrix (no constant)."""

    y: pd.Series
    X: pd.DataFrame
    terms: tuple
    outcome: str
    event: str

    @property
    def n(self):
        return int(len(self.y))

    @property
    def n_events(self):
        return int(self.y.sum())


def _observed_levels(series):
    present = set(series.dropna().astype(object).map(level_text))
    return [level_text(v) for v in ordered_levels(series) if level_text(v) in present]


def prepare_design(df, outcome, predictors, event=None, theme=DEFAULT_THEME, labels=None):
    """
    Build the design for a binary logistic model.

    Args:
        df: Dataset
        outcome: Binary outcome column (exactly two observed levels)
        predictors: Predictor columns, in display order
        event: Outcome level modelled as 1 (default: the second level)
        theme: Theme (categorical level threshold)
        labels: Optional {column: display label}

    Returns:
        Design

    Raises:
        ConfigurationError: on unknown columns, a non-binary outcome, or a
            predictor without variation
    """
    predictors = [predictors] if isinstance(predictors, str) else list(predictors)
    if not predictors:
        raise ConfigurationError("At least one predictor is required")
    if outcome in predictors:
        raise ConfigurationError(f"Outcome {outcome!r} cannot also be a predictor")
    if len(set(predictors)) != len(predictors):
        raise ConfigurationError(f"Predictors listed more than once: {predictors}")
    require_columns(df, [outcome] + predictors)
    labels = labels or {}

    data = df[[outcome] + predictors].dropna()
    n_dropped = len(df) - len(data)
    if n_dropped:
        logger.info("Dropped %d incomplete rows for %s ~ %s", n_dropped, outcome, " + ".join(predictors))

    levels = _observed_levels(data[outcome])
    if len(levels) != 2:
        raise ConfigurationError(f"Outcome {outcome!r} must have exactly two levels, found {levels}")
    event = levels[1] if event is None else level_text(event)
    if event not in levels:
        raise ConfigurationError(f"Event {event!r} is not a level of {outcome!r}: {levels}")
    y = (data[outcome].astype(object).map(level_text) == event).astype(float).rename(outcome)

    blocks, terms = [], []
    for name in predictors:
        series = data[name]
        label = labels.get(name, name)
        kind = infer_kind(df[name], theme.max_categorical_levels)
        if kind == FieldKind.CONTINUOUS:
            blocks.append(pd.to_numeric(series).astype(float).to_frame(name))
            terms.append(Term(name, label, kind, columns=(name,)))
            continue

        term_levels = _observed_levels(series)
        if len(term_levels) < 2:
            raise ConfigurationError(f"Predictor {name!r} has a single level {term_levels}; nothing to estimate")
        codes = pd.Series(
            pd.Categorical(series.astype(object).map(level_text), categories=term_levels),
            index=series.index,
        )
        dummies = pd.get_dummies(codes, prefix=name, prefix_sep="=", drop_first=True, dtype=float)
        blocks.append(dummies)
        terms.append(Term(name, label, FieldKind.CATEGORICAL, tuple(term_levels), tuple(dummies.columns)))

    X = pd.concat(blocks, axis=1)
    return Design(y=y, X=X, terms=tuple(terms), outcome=outcome, event=event)


def fit_logistic(design, maxiter=100):
    """
    Fit a logistic regression by maximum likelihood.

    Args:
        design: Design from prepare_design()
        maxiter: Newton iterations

    Returns:
        statsmodels LogitResults

    Raises:
        ConfigurationError: if the model cannot be estimated (perfect
            separation, singular design)
    """
    X_const = sm.add_constant(design.X, has_constant="add")
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("error", PerfectSeparationWarning)
            warnings.simplefilter("ignore", ConvergenceWarning)
            result = sm.Logit(design.y, X_const).fit(disp=0, maxiter=maxiter)
    except (PerfectSeparationError, PerfectSeparationWarning) as exc:
        raise ConfigurationError(f"Perfect separation in model for {design.outcome!r}: {exc}") from exc
    except np.linalg.LinAlgError as exc:
        raise ConfigurationError(f"Singular design matrix for {design.outcome!r}: {exc}") from exc

    if np.allclose(result.predict(), design.y, atol=1e-6):
        raise ConfigurationError(f"Perfect separation in model for {design.outcome!r}: fitted values match the outcome")
    if not result.mle_retvals.get("converged", True):
        logger.warning("Logistic model for %r did not converge in %d iterations", design.outcome, maxiter)
    logger.info(
        "Fitted logit %s ~ %s (n=%d, events=%d)",
        design.outcome, " + ".join(t.field for t in design.terms), design.n, design.n_events,
    )
    return result


@dataclass(frozen=True)
class RegressionRow:
    """One coefficient (or reference level) of a fitted model."""

    field: str
    label: str
    level: Optional[str]
    estimate: Optional[float]
    ci_low: Optional[float]
    ci_high: Optional[float]
    p_value: Optional[float]
    reference: bool
    n: int


def _check_conf_level(conf_level):
    if not 0 < conf_level < 1:
        raise ConfigurationError(f"conf_level must be between 0 and 1, got {conf_level!r}")


def regression_rows(result, design, exponentiate=True, conf_level=0.95):
    """
    Coefficient rows in predictor order; categorical predictors start with
    their reference level.

    Args:
        result: Fitted statsmodels results
        design: Design the model was fitted on
        exponentiate: Report odds ratios instead of log-odds
        conf_level: Confidence level of the intervals

    Returns:
        List of RegressionRow
    """
    _check_conf_level(conf_level)
    ci = result.conf_int(alpha=1 - conf_level)
    transform = math.exp if exponentiate else float

    def _row(term, column, level):
        return RegressionRow(
            field=term.field,
            label=term.label,
            level=level,
            estimate=transform(result.params[column]),
            ci_low=transform(ci.loc[column, 0]),
            ci_high=transform(ci.loc[column, 1]),
            p_value=float(result.pvalues[column]),
            reference=False,
            n=design.n,
        )

    rows = []
    for term in design.terms:
        if term.kind == FieldKind.CONTINUOUS:
            rows.append(_row(term, term.field, None))
            continue
        rows.append(RegressionRow(term.field, term.label, term.levels[0], None, None, None, None, True, design.n))
        for level, column in zip(term.levels[1:], term.columns):
            rows.append(_row(term, column, level))
    return rows


def _regression_summary_table(rows, theme, exponentiate, conf_level, n_column=False, caption=None):
    d = theme.estimate_digits
    columns = [LABEL] + (["n"] if n_column else []) + ["estimate", "ci", "p_value"]
    headers = {
        LABEL: theme.label_header,
        "n": "N",
        "estimate": "OR" if exponentiate else "log(OR)",
        "ci": f"{conf_level * 100:g}% CI",
        "p_value": "p-value",
    }
    headers = {key: headers[key] for key in columns}

    records, row_types, row_keys = [], [], []

    def _add(kind, key, **values):
        record = {col: "" for col in columns}
        record.update(values)
        records.append(record)
        row_types.append(kind)
        row_keys.append(key)

    def _cells(row):
        if row.reference:
            return {"estimate": "—", "ci": "—", "p_value": ""}
        return {
            "estimate": f"{row.estimate:.{d}f}",
            "ci": f"{row.ci_low:.{d}f}, {row.ci_high:.{d}f}",
            "p_value": format_pvalue(row.p_value, theme.pvalue_digits),
        }

    for row in rows:
        n = {"n": str(row.n)} if n_column else {}
        if row.level is None:
            _add("label", (row.field, None), label=row.label, **n, **_cells(row))
            continue
        if row.reference:
            _add("label", (row.field, None), label=row.label, **n)
        _add("level", (row.field, row.level), label=row.level, **_cells(row))

    footnotes = ("OR = Odds Ratio, CI = Confidence Interval",) if exponentiate else ("CI = Confidence Interval",)
    return SummaryTable(
        body=pd.DataFrame.from_records(records, columns=columns),
        headers=headers,
        footnotes=footnotes,
        caption=caption,
        row_types=tuple(row_types),
        row_keys=tuple(row_keys),
        indent=theme.indent,
    )


def regression_table(
    df,
    outcome,
    predictors,
    *,
    event=None,
    exponentiate=True,
    conf_level=0.95,
    theme=DEFAULT_THEME,
    labels=None,
    caption=None,
):
    """
    Fit one multivariable logistic model and tabulate its coefficients.

    Args:
        df: Dataset
        outcome: Binary outcome column
        predictors: Predictor columns
        event: Outcome level modelled as 1
        exponentiate: Report odds ratios
        conf_level: Confidence level
        theme: Theme (digits, labels, indentation)
        labels: Optional {column: display label}
        caption: Optional caption

    Returns:
        SummaryTable
    """
    _check_conf_level(conf_level)
    design = prepare_design(df, outcome, predictors, event=event, theme=theme, labels=labels)
    result = fit_logistic(design)
    rows = regression_rows(result, design, exponentiate=exponentiate, conf_level=conf_level)
    return _regression_summary_table(rows, theme, exponentiate, conf_level, caption=caption)


def univariable_table(
    df,
    outcome,
    predictors,
    *,
    event=None,
    exponentiate=True,
    conf_level=0.95,
    theme=DEFAULT_THEME,
    labels=None,
    caption=None,
):
    """One logistic model per predictor, tabulated together with each model's N."""
    _check_conf_level(conf_level)
    predictors = [predictors] if isinstance(predictors, str) else list(predictors)
    rows = []
    for name in predictors:
        design = prepare_design(df, outcome, [name], event=event, theme=theme, labels=labels)
        result = fit_logistic(design)
        rows.extend(regression_rows(result, design, exponentiate=exponentiate, conf_level=conf_level))
    return _regression_summary_table(rows, theme, exponentiate, conf_level, n_column=True, caption=caption)

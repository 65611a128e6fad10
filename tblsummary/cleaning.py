"""
Cleaning module: recoding, outcome labelling, and derived categorical fields.
"""

from dataclasses import dataclass
import logging
import math

import numpy as np
import pandas as pd

from . import config
from .errors import ConfigurationError, RangeError
from .io import require_columns

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BucketRule:
    """
    Boundaries and labels partitioning the real line into labelled intervals.

    `boundaries` may hold either the N-1 interior cut points (outer bounds
    become -inf/+inf) or all N+1 edges for N labels. With closed="right"
    intervals are (lower, upper]; with closed="left" they are [lower, upper).
    """

    boundaries: tuple
    labels: tuple
    closed: str = "right"

    def __post_init__(self):
        try:
            boundaries = tuple(float(b) for b in self.boundaries)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Bucket boundaries must be numeric: {self.boundaries!r}") from exc
        labels = tuple(str(label) for label in self.labels)
        object.__setattr__(self, "boundaries", boundaries)
        object.__setattr__(self, "labels", labels)

        if not labels:
            raise ConfigurationError("A bucketing rule needs at least one label")
        if len(set(labels)) != len(labels):
            raise ConfigurationError(f"Bucket labels must be unique: {list(labels)}")
        if len(boundaries) not in (len(labels) - 1, len(labels) + 1):
            raise ConfigurationError(
                f"{len(labels)} labels need {len(labels) - 1} interior boundaries or "
                f"{len(labels) + 1} edges, got {len(boundaries)}"
            )
        if any(math.isnan(b) for b in boundaries):
            raise ConfigurationError("Bucket boundaries cannot be NaN")
        if any(lo >= hi for lo, hi in zip(boundaries, boundaries[1:])):
            raise ConfigurationError(f"Bucket boundaries must be strictly increasing: {list(boundaries)}")
        if self.closed not in ("right", "left"):
            raise ConfigurationError(f"closed must be 'right' or 'left', got {self.closed!r}")

    @property
    def edges(self):
        """All interval edges, including the outer bounds."""
        if len(self.boundaries) == len(self.labels) - 1:
            return (-math.inf,) + self.boundaries + (math.inf,)
        return self.boundaries

    @property
    def n_intervals(self):
        return len(self.labels)

    @property
    def has_finite_bounds(self):
        edges = self.edges
        return math.isfinite(edges[0]) or math.isfinite(edges[-1])


def bucketize(series: pd.Series, rule: BucketRule) -> pd.Series:
    """
    Map a numeric series onto the labels of a bucketing rule.

    Args:
        series: Numeric values (missing values stay missing)
        rule: BucketRule describing intervals and labels

    Returns:
        Ordered categorical pd.Series with the same index and name

    Raises:
        ConfigurationError: if the series holds non-numeric values
        RangeError: if a value lies outside every interval
    """
    values = pd.to_numeric(series, errors="coerce")
    non_numeric = values.isna() & series.notna()
    if non_numeric.any():
        row = non_numeric.idxmax()
        raise ConfigurationError(
            f"Cannot bucket non-numeric value {series.loc[row]!r} at row {row!r} of {series.name!r}"
        )

    binned = pd.cut(
        values,
        bins=list(rule.edges),
        labels=list(rule.labels),
        right=rule.closed == "right",
    )

    outside = values.notna() & binned.isna()
    if outside.any():
        row = outside.idxmax()
        raise RangeError(series.loc[row], row, column=series.name)

    return binned.rename(series.name)


def add_bucketed_column(df, source, rule, name):
    """
    Add a derived categorical column built from a numeric column.

    Args:
        df: Input DataFrame (not modified)
        source: Name of the numeric column
        rule: BucketRule
        name: Name of the new column

    Returns:
        New DataFrame and log info
    """
    require_columns(df, [source])
    log = []
    df_out = df.copy()
    df_out[name] = bucketize(df_out[source], rule)

    counts = df_out[name].value_counts(sort=False)
    summary = ", ".join(f"{label}={int(n)}" for label, n in counts.items())
    log.append(f"✓ {name} derived from {source} ({summary})")
    missing = int(df_out[name].isna().sum())
    if missing > 0:
        log.append(f"⚠️  {missing} rows with missing {source} left unassigned")

    logger.debug("Bucketed %s into %s: %s", source, name, summary)
    return df_out, log


def recode_as_missing(df, columns, value=0):
    """
    Treat a sentinel value as missing in the given columns.

    Args:
        df: Input DataFrame (not modified)
        columns: Columns to recode; absent columns are skipped
        value: Sentinel value (default 0)

    Returns:
        New DataFrame and log info
    """
    log = []
    df_out = df.copy()
    for col in columns:
        if col not in df_out.columns:
            log.append(f"⚠️  {col} not found; skipped")
            continue
        mask = df_out[col] == value
        n_recoded = int(mask.sum())
        if n_recoded > 0:
            df_out[col] = df_out[col].mask(mask, np.nan)
            log.append(f"⚠️  {col}: {n_recoded} values of {value!r} set to missing")
        else:
            log.append(f"✓ {col}: no {value!r} values")
    return df_out, log


def label_outcome(df, column, mapping):
    """
    Recode outcome codes into an ordered categorical (order = mapping values).

    Args:
        df: Input DataFrame (not modified)
        column: Outcome column
        mapping: Dict of raw code -> label; labels already present are kept

    Returns:
        New DataFrame and log info
    """
    require_columns(df, [column])
    log = []
    df_out = df.copy()

    categories = list(dict.fromkeys(mapping.values()))

    def _label(value):
        if pd.isna(value) or value in categories:
            return value
        return mapping.get(value, value)

    labelled = df_out[column].map(_label)

    unknown = labelled.notna() & ~labelled.isin(categories)
    if unknown.any():
        bad = sorted(labelled[unknown].astype(str).unique())
        raise ConfigurationError(f"Unmapped values in {column!r}: {bad}")

    df_out[column] = pd.Categorical(labelled, categories=categories, ordered=True)
    counts = df_out[column].value_counts(sort=False)
    log.append(f"✓ {column} labelled ({', '.join(f'{k}={int(v)}' for k, v in counts.items())})")
    return df_out, log


def clean_diabetes(df_raw):
    """
    Clean the diabetes screening dataset.

    Steps: normalize column names, recode impossible zeros to missing, label
    the outcome, and derive the parity group from the number of pregnancies.

    Args:
        df_raw: Raw diabetes DataFrame

    Returns:
        Cleaned DataFrame and log info
    """
    log = []
    df_clean = df_raw.copy()

    # 1. Normalize column names
    df_clean.columns = [str(col).strip().lower().replace(' ', '_') for col in df_clean.columns]
    log.append("✓ Column names normalized")

    # 2. Zeros that encode missing measurements
    present = [col for col in config.ZERO_AS_MISSING_COLUMNS if col in df_clean.columns]
    df_clean, step_log = recode_as_missing(df_clean, present, value=0)
    log.extend(step_log)

    # 3. Outcome labels
    if config.OUTCOME_COLUMN in df_clean.columns:
        df_clean, step_log = label_outcome(df_clean, config.OUTCOME_COLUMN, config.OUTCOME_LABELS)
        log.extend(step_log)
    else:
        log.append(f"⚠️  Outcome column '{config.OUTCOME_COLUMN}' not found")

    # 4. Parity group
    if 'pregnant' in df_clean.columns:
        rule = BucketRule(config.PREGNANCY_BOUNDARIES, config.PREGNANCY_LABELS)
        df_clean, step_log = add_bucketed_column(
            df_clean, 'pregnant', rule, config.PREGNANCY_GROUP_COLUMN
        )
        log.extend(step_log)

    log.append(f"✓ Diabetes cleaning complete: {df_raw.shape} → {df_clean.shape}")
    return df_clean, log


def restore_categories(df):
    """
    Re-apply the ordered categories of a cleaned diabetes dataset.

    CSV files do not keep categorical order, so outcome labels and the parity
    group are rebuilt after reloading processed data.

    Args:
        df: Cleaned DataFrame read back from disk

    Returns:
        DataFrame and log info
    """
    log = []
    df_out, step_log = label_outcome(df, config.OUTCOME_COLUMN, config.OUTCOME_LABELS)
    log.extend(step_log)
    rule = BucketRule(config.PREGNANCY_BOUNDARIES, config.PREGNANCY_LABELS)
    df_out, step_log = add_bucketed_column(df_out, 'pregnant', rule, config.PREGNANCY_GROUP_COLUMN)
    log.extend(step_log)
    return df_out, log

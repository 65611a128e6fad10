"""
Aggregation module: per-field, per-stratum summary statistics.

Each request computes SummaryRow objects from a read-only snapshot of the
dataset; rows are immutable and never updated after they are returned.
"""

from dataclasses import dataclass
import logging
from typing import Optional

import pandas as pd

from .options import (
    DEFAULT_THEME,
    ContinuousStat,
    FieldKind,
    PercentMode,
    ShowMissing,
    level_text,
    ordered_levels,
    resolve_fields,
)
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

N_PERCENT = "n_percent"


@dataclass(frozen=True)
class SummaryRow:
    """One aggregated statistic for a field within a stratum.

    Attributes:
        field: Column name.
        label: Display label of the field.
        kind: FieldKind of the field.
        stratum: Stratum label (the overall label when not grouped).
        level: Level text for categorical rows, None for continuous statistics.
        row_type: "statistic" (continuous), "level" (categorical), or "missing".
        n: Non-missing values of the field in the stratum.
        count: Rows at this level (or missing rows for "missing" rows).
        percent: count as a percentage of the configured denominator.
        statistic: "mean_sd", "median_iqr", or "n_percent".
        digits: Decimal places used when formatting.
    """

    field: str
    label: str
    kind: FieldKind
    stratum: str
    level: Optional[str]
    row_type: str
    n: int
    count: Optional[int] = None
    percent: Optional[float] = None
    mean: Optional[float] = None
    sd: Optional[float] = None
    median: Optional[float] = None
    q1: Optional[float] = None
    q3: Optional[float] = None
    statistic: str = N_PERCENT
    digits: int = 1

    def formatted(self) -> str:
        """Render the statistic as table cell text."""
        d = self.digits
        if self.row_type == "missing":
            return f"{self.count}"
        if self.row_type == "statistic":
            if self.n == 0:
                return "—"
            if self.statistic == ContinuousStat.MEDIAN_IQR.value:
                return f"{self.median:.{d}f} ({self.q1:.{d}f}, {self.q3:.{d}f})"
            sd = "—" if self.sd is None else f"{self.sd:.{d}f}"
            return f"{self.mean:.{d}f} ({sd})"
        pct = "—" if self.percent is None else f"{self.percent:.{d}f}%"
        return f"{self.count} ({pct})"


def _stratum_keys(df, by, theme):
    """Stratum label of every row; missing values map to the missing sentinel."""
    return df[by].astype(object).map(lambda v: theme.missing_text if pd.isna(v) else level_text(v))


def stratum_labels(df, by, by_order=None, theme=DEFAULT_THEME):
    """
    Ordered stratum labels for a grouping column.

    An explicit `by_order` wins; a categorical dtype's category order counts as
    explicit; otherwise labels follow first appearance. The missing sentinel,
    when present, comes last.

    Args:
        df: Dataset
        by: Grouping column
        by_order: Optional explicit ordering of stratum labels
        theme: Theme supplying the missing sentinel label

    Returns:
        List of stratum labels
    """
    keys = _stratum_keys(df, by, theme)
    observed = list(dict.fromkeys(keys.tolist()))
    has_missing = theme.missing_text in observed

    if by_order is None and isinstance(df[by].dtype, pd.CategoricalDtype):
        by_order = [level_text(v) for v in df[by].cat.categories]

    if by_order is None:
        order = [label for label in observed if label != theme.missing_text]
    else:
        order = [level_text(label) for label in by_order]
        unlisted = [label for label in observed if label not in order and label != theme.missing_text]
        if unlisted:
            raise ConfigurationError(f"Strata {unlisted} of {by!r} are missing from by_order {order}")

    if has_missing and theme.missing_text not in order:
        order.append(theme.missing_text)
    return order


def _strata(df, options, theme):
    """Return (label, boolean mask) per stratum, overall first when requested."""
    everything = pd.Series(True, index=df.index)
    strata = []
    if options.by is None or options.add_overall:
        strata.append((theme.overall_label, everything))
    if options.by is not None:
        keys = _stratum_keys(df, options.by, theme)
        for label in stratum_labels(df, options.by, options.by_order, theme):
            if label == theme.overall_label:
                raise ConfigurationError(f"Stratum label {label!r} clashes with the overall column")
            strata.append((label, keys == label))
    return strata


def stratum_sizes(df, options, theme=DEFAULT_THEME):
    """Number of rows per stratum label."""
    return {label: int(mask.sum()) for label, mask in _strata(df, options, theme)}


def _percent(count, denominator):
    if not denominator:
        return None
    return 100.0 * count / denominator


def _continuous_row(spec, stratum, values):
    numeric = pd.to_numeric(values, errors="coerce").dropna().astype(float)
    n = int(len(numeric))
    row = dict(field=spec.name, label=spec.label, kind=spec.kind, stratum=stratum, level=None,
               row_type="statistic", n=n, statistic=spec.statistic.value, digits=spec.digits)
    if n > 0:
        row.update(
            mean=float(numeric.mean()),
            sd=float(numeric.std(ddof=1)) if n > 1 else None,
            median=float(numeric.median()),
            q1=float(numeric.quantile(0.25)),
            q3=float(numeric.quantile(0.75)),
        )
    return SummaryRow(**row)


def summarize(df, options, theme=DEFAULT_THEME):
    """
    Compute Summary Rows for every requested field and stratum.

    Row order: field order as requested, then stratum order (overall first when
    added), then level order. Missing values never enter a statistic; they are
    reported as a separate "missing" row according to the show-missing policy.

    Args:
        df: Dataset (treated as read-only)
        options: SummaryOptions
        theme: Theme supplying defaults

    Returns:
        List of SummaryRow
    """
    specs = resolve_fields(df, options, theme)
    percent_mode = options.resolved_percent_mode(theme)
    show_missing = options.resolved_show_missing(theme)
    strata = _strata(df, options, theme)

    for label, mask in strata:
        if not mask.any():
            logger.warning("Stratum %r of %r has no rows", label, options.by)

    rows = []
    for spec in specs:
        series = df[spec.name]
        include_missing = show_missing == ShowMissing.ALWAYS or (
            show_missing == ShowMissing.IFANY and bool(series.isna().any())
        )

        if spec.kind == FieldKind.CONTINUOUS:
            for stratum, mask in strata:
                sub = series[mask]
                rows.append(_continuous_row(spec, stratum, sub))
                if include_missing:
                    rows.append(_missing_row(spec, stratum, sub))
            continue

        texts = series.dropna().astype(object).map(level_text)
        if spec.kind == FieldKind.DICHOTOMOUS:
            levels = [level_text(spec.value)]
        else:
            levels = [level_text(level) for level in ordered_levels(series)]
        level_totals = texts.value_counts()
        field_total = int(len(texts))

        for stratum, mask in strata:
            sub = series[mask]
            sub_texts = texts[mask.loc[texts.index]]
            counts = sub_texts.value_counts()
            n = int(len(sub_texts))
            for level in levels:
                count = int(counts.get(level, 0))
                if percent_mode == PercentMode.COLUMN:
                    denominator = n
                elif percent_mode == PercentMode.ROW:
                    denominator = int(level_totals.get(level, 0))
                else:
                    denominator = field_total
                rows.append(
                    SummaryRow(
                        field=spec.name, label=spec.label, kind=spec.kind, stratum=stratum,
                        level=level, row_type="level", n=n, count=count,
                        percent=_percent(count, denominator), statistic=N_PERCENT,
                        digits=spec.digits,
                    )
                )
            if include_missing:
                rows.append(_missing_row(spec, stratum, sub))

    logger.debug("Summarized %d fields into %d rows", len(specs), len(rows))
    return rows


def _missing_row(spec, stratum, sub):
    return SummaryRow(
        field=spec.name, label=spec.label, kind=spec.kind, stratum=stratum,
        level=None, row_type="missing", n=int(sub.notna().sum()),
        count=int(sub.isna().sum()),
        statistic=spec.statistic.value if spec.statistic else N_PERCENT,
        digits=spec.digits,
    )

"""
Options module: validated per-request configuration and document-wide themes.

Every option is an explicit, immutable value passed into the pipeline; there is
no hidden global theme. Unknown or contradictory settings are rejected when the
object is built rather than ignored later.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields as dataclass_fields, replace
from enum import Enum
from typing import Any, Optional

import pandas as pd

from . import config
from .errors import ConfigurationError
from .io import require_columns


class FieldKind(str, Enum):
    CONTINUOUS = "continuous"
    CATEGORICAL = "categorical"
    DICHOTOMOUS = "dichotomous"


class ContinuousStat(str, Enum):
    MEAN_SD = "mean_sd"
    MEDIAN_IQR = "median_iqr"


class PercentMode(str, Enum):
    """Denominator used for categorical percentages.

    COLUMN: non-missing values of the field within the stratum.
    ROW: all non-missing values of that level across strata.
    CELL: all non-missing values of the field across strata.
    """

    COLUMN = "column"
    ROW = "row"
    CELL = "cell"


class ShowMissing(str, Enum):
    IFANY = "ifany"
    ALWAYS = "always"
    NO = "no"


_ALIASES = {
    PercentMode: {"non-missing": "column", "col": "column"},
}


def _coerce(enum_cls, value, what):
    if value is None or isinstance(value, enum_cls):
        return value
    text = str(value).strip().lower()
    text = _ALIASES.get(enum_cls, {}).get(text, text)
    try:
        return enum_cls(text)
    except ValueError:
        allowed = [member.value for member in enum_cls]
        raise ConfigurationError(f"Unknown {what} {value!r}; expected one of {allowed}") from None


def _check_digits(value, what):
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigurationError(f"{what} must be a non-negative integer, got {value!r}")


def level_text(value) -> str:
    """Display text of a level; integral floats lose their '.0'."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _numeric_sort_key(value):
    text = level_text(value)
    try:
        return (0, float(text), "")
    except ValueError:
        return (1, 0.0, text)


def ordered_levels(series: pd.Series) -> list:
    """Levels of a series: category order for categoricals, else natural order."""
    if isinstance(series.dtype, pd.CategoricalDtype):
        return list(series.cat.categories)
    return sorted(series.dropna().unique().tolist(), key=_numeric_sort_key)


@dataclass(frozen=True)
class FieldSpec:
    """Per-field settings; unset values are resolved from the data and the Theme."""

    name: str
    kind: Optional[FieldKind] = None
    label: Optional[str] = None
    digits: Optional[int] = None
    statistic: Optional[ContinuousStat] = None
    value: Any = None

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name:
            raise ConfigurationError(f"Field name must be a non-empty string, got {self.name!r}")
        kind = _coerce(FieldKind, self.kind, "field kind")
        statistic = _coerce(ContinuousStat, self.statistic, "continuous statistic")
        _check_digits(self.digits, f"digits for {self.name!r}")

        if statistic is not None:
            if kind not in (None, FieldKind.CONTINUOUS):
                raise ConfigurationError(f"{self.name!r}: statistic only applies to continuous fields")
            kind = FieldKind.CONTINUOUS
        if self.value is not None:
            if kind not in (None, FieldKind.DICHOTOMOUS):
                raise ConfigurationError(f"{self.name!r}: value only applies to dichotomous fields")
            kind = FieldKind.DICHOTOMOUS

        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "statistic", statistic)

    @classmethod
    def from_value(cls, item):
        """Build a FieldSpec from a column name, a mapping, or an existing spec."""
        if isinstance(item, cls):
            return item
        if isinstance(item, str):
            return cls(item)
        if isinstance(item, Mapping):
            _reject_unknown_keys(cls, item, "field setting")
            return cls(**item)
        raise ConfigurationError(f"Cannot interpret field specification {item!r}")


@dataclass(frozen=True)
class Theme:
    """Document-wide defaults, passed explicitly to each request."""

    digits: int = config.DEFAULT_DIGITS
    pvalue_digits: int = config.DEFAULT_PVALUE_DIGITS
    estimate_digits: int = 2
    continuous_statistic: ContinuousStat = ContinuousStat.MEAN_SD
    percent_mode: PercentMode = PercentMode(config.DEFAULT_PERCENT_MODE)
    show_missing: ShowMissing = ShowMissing(config.DEFAULT_SHOW_MISSING)
    missing_text: str = config.DEFAULT_MISSING_TEXT
    overall_label: str = config.DEFAULT_OVERALL_LABEL
    label_header: str = "Characteristic"
    indent: str = "    "
    max_categorical_levels: int = config.MAX_CATEGORICAL_LEVELS
    parametric_tests: bool = False

    def __post_init__(self):
        object.__setattr__(
            self, "continuous_statistic",
            _coerce(ContinuousStat, self.continuous_statistic, "continuous statistic"),
        )
        object.__setattr__(self, "percent_mode", _coerce(PercentMode, self.percent_mode, "percent mode"))
        object.__setattr__(self, "show_missing", _coerce(ShowMissing, self.show_missing, "missing policy"))
        for name in ("digits", "pvalue_digits", "estimate_digits", "max_categorical_levels"):
            _check_digits(getattr(self, name), name)
        if self.pvalue_digits < 1:
            raise ConfigurationError("pvalue_digits must be at least 1")
        if not self.missing_text or not self.overall_label:
            raise ConfigurationError("missing_text and overall_label cannot be empty")
        if self.missing_text == self.overall_label:
            raise ConfigurationError("missing_text and overall_label must differ")

    def replace(self, **changes):
        """Return a copy with `changes` applied (validated)."""
        _reject_unknown_keys(Theme, changes, "theme setting")
        return replace(self, **changes)

    @classmethod
    def preset(cls, name):
        """Named theme: 'default', 'jama', or 'compact'."""
        try:
            settings = THEME_PRESETS[name]
        except KeyError:
            raise ConfigurationError(
                f"Unknown theme {name!r}; expected one of {sorted(THEME_PRESETS)}"
            ) from None
        return cls(**settings)


THEME_PRESETS = {
    "default": {},
    "jama": {"continuous_statistic": "median_iqr", "pvalue_digits": 2},
    "compact": {"indent": "  ", "show_missing": "no"},
}

DEFAULT_THEME = Theme()


def _reject_unknown_keys(cls, mapping, what):
    allowed = {f.name for f in dataclass_fields(cls)}
    unknown = sorted(set(mapping) - allowed)
    if unknown:
        raise ConfigurationError(f"Unknown {what}(s) {unknown}; allowed: {sorted(allowed)}")


@dataclass(frozen=True)
class SummaryOptions:
    """One summary-table request: which fields, how to stratify, what to add."""

    fields: tuple
    by: Optional[str] = None
    by_order: Optional[tuple] = None
    percent_mode: Optional[PercentMode] = None
    show_missing: Optional[ShowMissing] = None
    add_overall: bool = False
    add_n: bool = False
    add_p: bool = False
    caption: Optional[str] = None
    footnotes: tuple = ()
    spanning_header: Optional[str] = None
    header_labels: Mapping = field(default_factory=dict)

    def __post_init__(self):
        items = [self.fields] if isinstance(self.fields, (str, Mapping, FieldSpec)) else list(self.fields)
        specs = tuple(FieldSpec.from_value(item) for item in items)
        if not specs:
            raise ConfigurationError("At least one field is required")
        names = [spec.name for spec in specs]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ConfigurationError(f"Fields listed more than once: {duplicates}")

        if self.by is not None and self.by in names:
            raise ConfigurationError(f"Grouping column {self.by!r} cannot also be a summarized field")
        if self.by is None and self.add_p:
            raise ConfigurationError("add_p requires a grouping column (by)")
        if self.by is None and self.by_order is not None:
            raise ConfigurationError("by_order requires a grouping column (by)")
        if self.by is None and self.spanning_header is not None:
            raise ConfigurationError("spanning_header requires a grouping column (by)")

        by_order = None if self.by_order is None else tuple(level_text(v) for v in self.by_order)
        if by_order is not None and len(set(by_order)) != len(by_order):
            raise ConfigurationError(f"by_order has duplicates: {list(by_order)}")

        footnotes = (self.footnotes,) if isinstance(self.footnotes, str) else tuple(self.footnotes)

        object.__setattr__(self, "fields", specs)
        object.__setattr__(self, "by_order", by_order)
        object.__setattr__(self, "percent_mode", _coerce(PercentMode, self.percent_mode, "percent mode"))
        object.__setattr__(self, "show_missing", _coerce(ShowMissing, self.show_missing, "missing policy"))
        object.__setattr__(self, "footnotes", footnotes)
        object.__setattr__(self, "header_labels", dict(self.header_labels))

    @classmethod
    def from_dict(cls, mapping):
        """Build options from plain key/value settings, rejecting unknown keys."""
        _reject_unknown_keys(cls, mapping, "option")
        if "fields" not in mapping:
            raise ConfigurationError("Option 'fields' is required")
        return cls(**mapping)

    @property
    def field_names(self):
        return [spec.name for spec in self.fields]

    def resolved_percent_mode(self, theme):
        return self.percent_mode or theme.percent_mode

    def resolved_show_missing(self, theme):
        return self.show_missing or theme.show_missing


def infer_kind(series: pd.Series, max_levels=config.MAX_CATEGORICAL_LEVELS) -> FieldKind:
    """Guess how a column should be summarized."""
    if pd.api.types.is_bool_dtype(series):
        return FieldKind.DICHOTOMOUS
    if isinstance(series.dtype, pd.CategoricalDtype) or not pd.api.types.is_numeric_dtype(series):
        return FieldKind.CATEGORICAL
    observed = set(series.dropna().unique().tolist())
    if observed and observed <= {0, 1}:
        return FieldKind.DICHOTOMOUS
    if 0 < len(observed) < max_levels:
        return FieldKind.CATEGORICAL
    return FieldKind.CONTINUOUS


def default_dichotomous_value(series: pd.Series):
    """Level reported for a dichotomous field: True, 1, else the last level."""
    levels = ordered_levels(series)
    if not levels:
        raise ConfigurationError(f"Cannot pick a dichotomous level for empty column {series.name!r}")
    texts = [level_text(level) for level in levels]
    for candidate in ("True", "1"):
        if candidate in texts:
            return levels[texts.index(candidate)]
    return levels[-1]


def resolve_fields(df, options, theme=DEFAULT_THEME):
    """
    Fill in every unset FieldSpec attribute from the data and the theme.

    Args:
        df: Dataset
        options: SummaryOptions
        theme: Theme supplying defaults

    Returns:
        Tuple of fully specified FieldSpec objects, in request order
    """
    columns = options.field_names + ([options.by] if options.by else [])
    require_columns(df, columns)

    resolved = []
    for spec in options.fields:
        series = df[spec.name]
        kind = spec.kind or infer_kind(series, theme.max_categorical_levels)
        statistic = None
        value = None
        if kind == FieldKind.CONTINUOUS:
            if not pd.api.types.is_numeric_dtype(series) or pd.api.types.is_bool_dtype(series):
                raise ConfigurationError(f"Continuous field {spec.name!r} is not numeric")
            statistic = spec.statistic or theme.continuous_statistic
        elif kind == FieldKind.DICHOTOMOUS:
            value = spec.value if spec.value is not None else default_dichotomous_value(series)
            known = {level_text(v) for v in ordered_levels(series)}
            if level_text(value) not in known:
                raise ConfigurationError(f"Dichotomous value {value!r} not found in {spec.name!r}")
        resolved.append(
            FieldSpec(
                name=spec.name,
                kind=kind,
                label=spec.label or spec.name,
                digits=spec.digits if spec.digits is not None else theme.digits,
                statistic=statistic,
                value=value,
            )
        )
    return tuple(resolved)

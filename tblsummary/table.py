"""
Table module: assemble Summary Rows into an annotated, renderable table.

A SummaryTable is a plain value object. Building one never touches the
filesystem; rendering returns strings and exporting lives in export.py.
"""

from dataclasses import dataclass, replace
import html
import logging
from typing import Optional

import pandas as pd

from .aggregate import stratum_labels, stratum_sizes, summarize
from .errors import ConfigurationError
from .hypothesis import compute_pvalues, format_pvalue
from .io import require_columns
from .options import DEFAULT_THEME, FieldKind, level_text, ordered_levels, resolve_fields

logger = logging.getLogger(__name__)

LABEL = "label"

STATISTIC_LEGEND = {
    "mean_sd": "Mean (SD)",
    "median_iqr": "Median (Q1, Q3)",
    "n_percent": "n (%)",
}


@dataclass(frozen=True)
class Spanner:
    """Header spanning several columns (given by column key)."""

    label: str
    columns: tuple


@dataclass(frozen=True, eq=False)
class SummaryTable:
    """
    Rendered-ready table.

    Attributes:
        body: DataFrame of strings; a 'label' column then one column per key.
        headers: Column key -> header text (including 'label').
        spanners: Spanner objects over body column keys.
        footnotes: Footnote lines, in display order.
        caption: Optional caption.
        row_types: Per body row: 'label', 'level', 'missing', or 'group'.
        row_keys: Per body row: hashable identity used to align merged tables.
    """

    body: pd.DataFrame
    headers: dict
    spanners: tuple = ()
    footnotes: tuple = ()
    caption: Optional[str] = None
    row_types: tuple = ()
    row_keys: tuple = ()
    indent: str = DEFAULT_THEME.indent

    @property
    def columns(self):
        """Body column keys, excluding the label column."""
        return [col for col in self.body.columns if col != LABEL]

    def _display_labels(self):
        return [
            f"{self.indent}{text}" if kind in ("level", "missing") else text
            for text, kind in zip(self.body[LABEL], self.row_types)
        ]

    def to_frame(self, flat=False):
        """
        Display DataFrame with header text as column names.

        Args:
            flat: If True, spanners are folded into single-level names
                ('Spanner: header'); otherwise they form a column MultiIndex.
        """
        frame = self.body.copy()
        frame[LABEL] = self._display_labels()
        spanner_of = {col: sp.label for sp in self.spanners for col in sp.columns}
        keys = list(frame.columns)
        if flat:
            frame.columns = [
                f"{spanner_of[key]}: {self.headers[key]}" if key in spanner_of else self.headers[key]
                for key in keys
            ]
        elif self.spanners:
            frame.columns = pd.MultiIndex.from_tuples(
                [(spanner_of.get(key, ""), self.headers[key]) for key in keys]
            )
        else:
            frame.columns = [self.headers[key] for key in keys]
        return frame

    def to_text(self):
        """Plain-text rendering with caption and numbered footnotes."""
        frame = self.to_frame()
        labels = frame.iloc[:, 0].tolist()
        frame = frame.iloc[:, 1:]
        frame.index = labels
        lines = []
        if self.caption:
            lines.extend([self.caption, ""])
        lines.append(frame.to_string(justify="left"))
        if self.footnotes:
            lines.append("")
            lines.extend(f"{i}. {note}" for i, note in enumerate(self.footnotes, start=1))
        return "\n".join(lines) + "\n"

    def _styler(self):
        frame = self.to_frame()
        label_col = frame.columns[0]
        bold = [kind in ("label", "group") for kind in self.row_types]

        def _bold_labels(column):
            return ["font-weight: bold" if flag else "" for flag in bold]

        styler = frame.style.hide(axis="index")
        return styler.apply(_bold_labels, subset=[label_col], axis=0)

    def to_html(self):
        """HTML rendering (pandas Styler) with caption and footnotes."""
        styler = self._styler()
        if self.caption:
            styler = styler.set_caption(html.escape(self.caption))
        parts = [styler.to_html()]
        for i, note in enumerate(self.footnotes, start=1):
            parts.append(f'<p class="footnote"><sup>{i}</sup> {html.escape(note)}</p>')
        return "\n".join(parts) + "\n"

    def to_latex(self):
        """LaTeX rendering (pandas Styler, booktabs rules) with footnotes."""
        styler = self._styler().format(escape="latex").format_index(escape="latex", axis=1)
        latex = styler.to_latex(
            caption=_latex_escape(self.caption) if self.caption else None,
            hrules=True,
            convert_css=True,
            environment="table",
            multicol_align="c",
        )
        if self.footnotes:
            notes = "\n".join(
                f"\\par\\footnotesize{{{i}. {_latex_escape(note)}}}"
                for i, note in enumerate(self.footnotes, start=1)
            )
            end = "\\end{table}"
            if end in latex:
                head, tail = latex.rsplit(end, 1)
                latex = f"{head}{notes}\n{end}{tail}"
            else:
                latex = f"{latex}{notes}\n"
        return latex


def _latex_escape(text):
    replacements = {
        "\\": r"\textbackslash{}", "&": r"\&", "%": r"\%", "$": r"\$", "#": r"\#",
        "_": r"\_", "{": r"\{", "}": r"\}", "~": r"\textasciitilde{}", "^": r"\textasciicircum{}",
    }
    return "".join(replacements.get(ch, ch) for ch in text)


# ============================================================================
# TABLE CONSTRUCTION
# ============================================================================

def _ordered_unique(values):
    return list(dict.fromkeys(values))


def _resolve_keys(names, key_of, what):
    """Translate stratum labels or column keys into column keys."""
    resolved = []
    for name in names:
        name = level_text(name)
        if name in key_of:
            resolved.append(key_of[name])
        elif name in key_of.values():
            resolved.append(name)
        else:
            raise ConfigurationError(f"Unknown {what} {name!r}; known: {list(key_of)}")
    return resolved


def _build_spanners(spanners, key_of):
    built = []
    for spanner in spanners or ():
        if not isinstance(spanner, Spanner):
            label, columns = spanner
            spanner = Spanner(label, tuple(columns))
        built.append(Spanner(spanner.label, tuple(_resolve_keys(spanner.columns, key_of, "spanner column"))))
    claimed = [col for sp in built for col in sp.columns]
    if len(set(claimed)) != len(claimed):
        raise ConfigurationError("A column can belong to only one spanner")
    return tuple(built)


def assemble_table(
    rows,
    *,
    theme=DEFAULT_THEME,
    column_order=None,
    headers=None,
    spanners=None,
    footnotes=(),
    caption=None,
    pvalues=None,
    stratum_sizes=None,
    n_column=None,
    label_header=None,
):
    """
    Arrange Summary Rows into a SummaryTable.

    Fields keep their input order. Stratum columns follow first appearance in
    `rows` unless `column_order` is given (explicit order wins; strata it does
    not list follow in first-appearance order).

    Args:
        rows: Sequence of SummaryRow
        theme: Theme (missing label, indentation, p-value digits)
        column_order: Optional explicit stratum order
        headers: Optional {stratum label or column key: header text}
        spanners: Optional Spanner objects or (label, [strata]) pairs
        footnotes: Extra footnotes, after the generated ones
        caption: Optional caption
        pvalues: Optional {field: GroupComparison}
        stratum_sizes: Optional {stratum: N} used in default headers
        n_column: Optional {field: N} adding an 'N' column
        label_header: Header of the label column

    Returns:
        SummaryTable
    """
    rows = list(rows)
    if not rows:
        raise ConfigurationError("Cannot assemble a table from zero summary rows")

    strata = _ordered_unique(row.stratum for row in rows)
    if column_order is not None:
        explicit = [level_text(s) for s in column_order]
        unknown = [s for s in explicit if s not in strata]
        if unknown:
            raise ConfigurationError(f"column_order names unknown strata {unknown}; known: {strata}")
        strata = explicit + [s for s in strata if s not in explicit]

    key_of = {stratum: f"stat_{i}" for i, stratum in enumerate(strata)}
    columns = [LABEL]
    if n_column is not None:
        columns.append("n")
    columns.extend(key_of[s] for s in strata)
    if pvalues is not None:
        columns.append("p_value")

    header_text = {LABEL: label_header or theme.label_header, "n": "N", "p_value": "p-value"}
    for stratum in strata:
        size = (stratum_sizes or {}).get(stratum)
        header_text[key_of[stratum]] = stratum if size is None else f"{stratum} (N = {size})"
    for name, text in (headers or {}).items():
        name = level_text(name)
        if name in key_of:
            header_text[key_of[name]] = text
        elif name in columns:
            header_text[name] = text
        else:
            raise ConfigurationError(f"Unknown header column {name!r}; known: {strata + columns}")
    header_text = {key: header_text[key] for key in columns}

    cells = {}
    for row in rows:
        cells[(row.field, row.row_type, row.level, row.stratum)] = row.formatted()

    records, row_types, row_keys = [], [], []
    legend = []

    def _add(kind, key, label, values):
        record = {col: "" for col in columns}
        record[LABEL] = label
        record.update(values)
        records.append(record)
        row_types.append(kind)
        row_keys.append(key)

    for field in _ordered_unique(row.field for row in rows):
        field_rows = [row for row in rows if row.field == field]
        first = field_rows[0]
        legend.append(STATISTIC_LEGEND.get(first.statistic, first.statistic))

        label_values = {}
        if n_column is not None and field in n_column:
            label_values["n"] = str(n_column[field])
        if pvalues is not None and field in pvalues:
            label_values["p_value"] = format_pvalue(pvalues[field].p_value, theme.pvalue_digits)

        if first.kind == FieldKind.CONTINUOUS:
            for stratum in strata:
                label_values[key_of[stratum]] = cells.get((field, "statistic", None, stratum), "")
            _add("label", (field, None), first.label, label_values)
        elif first.kind == FieldKind.DICHOTOMOUS:
            level = next(row.level for row in field_rows if row.row_type == "level")
            for stratum in strata:
                label_values[key_of[stratum]] = cells.get((field, "level", level, stratum), "")
            _add("label", (field, None), first.label, label_values)
        else:
            _add("label", (field, None), first.label, label_values)
            for level in _ordered_unique(row.level for row in field_rows if row.row_type == "level"):
                _add("level", (field, level), level, {
                    key_of[s]: cells.get((field, "level", level, s), "") for s in strata
                })

        if any(row.row_type == "missing" for row in field_rows):
            _add("missing", (field, theme.missing_text), theme.missing_text, {
                key_of[s]: cells.get((field, "missing", None, s), "") for s in strata
            })

    generated = ["; ".join(_ordered_unique(legend))]
    if pvalues:
        tests = _ordered_unique(c.test for c in pvalues.values() if c.test != "-")
        if tests:
            generated.append("; ".join(tests))
    if isinstance(footnotes, str):
        footnotes = (footnotes,)

    return SummaryTable(
        body=pd.DataFrame.from_records(records, columns=columns),
        headers=header_text,
        spanners=_build_spanners(spanners, key_of),
        footnotes=tuple(_ordered_unique(generated + list(footnotes))),
        caption=caption,
        row_types=tuple(row_types),
        row_keys=tuple(row_keys),
        indent=theme.indent,
    )


def summary_table(df, options, theme=DEFAULT_THEME):
    """
    Summarize a dataset and assemble the table in one request.

    Args:
        df: Dataset
        options: SummaryOptions
        theme: Theme

    Returns:
        SummaryTable
    """
    rows = summarize(df, options, theme)
    sizes = stratum_sizes(df, options, theme)
    pvalues = compute_pvalues(df, options, theme) if options.add_p else None

    n_column = None
    if options.add_n:
        n_column = {name: int(df[name].notna().sum()) for name in options.field_names}

    spanners = None
    if options.spanning_header:
        by_strata = [s for s in sizes if s != theme.overall_label or not options.add_overall]
        spanners = [Spanner(options.spanning_header, tuple(by_strata))]

    table = assemble_table(
        rows,
        theme=theme,
        headers=options.header_labels,
        spanners=spanners,
        footnotes=options.footnotes,
        caption=options.caption,
        pvalues=pvalues,
        stratum_sizes=sizes,
        n_column=n_column,
    )
    logger.info("Built summary table: %d fields, %d columns", len(options.fields), len(table.columns))
    return table


def stratified_table(df, strata, options, theme=DEFAULT_THEME):
    """
    One summary table per level of `strata`, merged side by side.

    Field kinds, categorical levels and the column order of `options.by` are
    resolved once on the full dataset so every stratum reports the same rows
    and columns in the same order.

    Args:
        df: Dataset
        strata: Column whose levels become spanning headers
        options: SummaryOptions applied inside each stratum
        theme: Theme

    Returns:
        SummaryTable
    """
    require_columns(df, [strata])
    if strata in options.field_names or strata == options.by:
        raise ConfigurationError(f"Stratifying column {strata!r} cannot also be a field or the by column")

    inner = replace(
        options,
        fields=resolve_fields(df, options, theme),
        caption=None,
        footnotes=(),
        spanning_header=None,
    )
    if options.by is not None and options.by_order is None:
        order = [s for s in stratum_labels(df, options.by, None, theme) if s != theme.missing_text]
        inner = replace(inner, by_order=tuple(order))

    # A stratum may lack some levels; pin them to the full-data levels
    frame = df.copy()
    for spec in inner.fields:
        if spec.kind in (FieldKind.CATEGORICAL, FieldKind.DICHOTOMOUS):
            frame[spec.name] = pd.Categorical(df[spec.name], categories=ordered_levels(df[spec.name]))
    df = frame

    keys = df[strata].astype(object).map(lambda v: None if pd.isna(v) else level_text(v))
    n_dropped = int(keys.isna().sum())
    if n_dropped:
        logger.warning("Dropped %d rows with missing %r", n_dropped, strata)

    tables, labels = [], []
    for level in ordered_levels(df[strata]):
        subset = df[keys == level_text(level)]
        if subset.empty:
            logger.warning("Stratum %r of %r has no rows; skipped", level, strata)
            continue
        tables.append(summary_table(subset, inner, theme))
        labels.append(f"{level_text(level)} (N = {len(subset)})")

    if not tables:
        raise ConfigurationError(f"No non-empty strata in {strata!r}")

    merged = merge_tables(tables, spanners=labels)
    return replace(
        merged,
        caption=options.caption,
        footnotes=tuple(_ordered_unique(list(merged.footnotes) + list(options.footnotes))),
    )


def _insert_position(order, key):
    """Index just past the last key of the same field, else the end."""
    if not isinstance(key, tuple) or not key:
        return len(order)
    for idx in range(len(order) - 1, -1, -1):
        other = order[idx]
        if isinstance(other, tuple) and other and other[0] == key[0]:
            return idx + 1
    return len(order)


def merge_tables(tables, spanners=None):
    """
    Place tables side by side, aligning rows by identity.

    Rows follow the first table; a row only present in a later table goes
    after the last row of its field, or at the end for a new field. Columns of table i are keyed 't{i}_<key>' and grouped under
    spanner i (default 'Table i'). Inner spanners and captions are dropped.

    Args:
        tables: Sequence of SummaryTable
        spanners: Optional spanner label per table

    Returns:
        SummaryTable
    """
    tables = list(tables)
    if not tables:
        raise ConfigurationError("merge_tables needs at least one table")
    if spanners is None:
        spanners = [f"Table {i}" for i in range(1, len(tables) + 1)]
    spanners = list(spanners)
    if len(spanners) != len(tables):
        raise ConfigurationError(f"Got {len(spanners)} spanners for {len(tables)} tables")

    order, label_of, type_of = [], {}, {}
    for table in tables:
        for key, label, kind in zip(table.row_keys, table.body[LABEL], table.row_types):
            if key not in label_of:
                order.insert(_insert_position(order, key), key)
                label_of[key] = label
                type_of[key] = kind

    columns = [LABEL]
    headers = {LABEL: tables[0].headers[LABEL]}
    built_spanners = []
    lookups = []
    for i, table in enumerate(tables, start=1):
        renamed = [f"t{i}_{col}" for col in table.columns]
        columns.extend(renamed)
        headers.update({f"t{i}_{col}": table.headers[col] for col in table.columns})
        built_spanners.append(Spanner(spanners[i - 1], tuple(renamed)))
        position = {key: idx for idx, key in enumerate(table.row_keys)}
        lookups.append((i, table, position))

    records = []
    for key in order:
        record = {col: "" for col in columns}
        record[LABEL] = label_of[key]
        for i, table, position in lookups:
            if key in position:
                source = table.body.iloc[position[key]]
                for col in table.columns:
                    record[f"t{i}_{col}"] = source[col]
        records.append(record)

    footnotes = _ordered_unique(note for table in tables for note in table.footnotes)
    return SummaryTable(
        body=pd.DataFrame.from_records(records, columns=columns),
        headers=headers,
        spanners=tuple(built_spanners),
        footnotes=tuple(footnotes),
        caption=None,
        row_types=tuple(type_of[key] for key in order),
        row_keys=tuple(order),
        indent=tables[0].indent,
    )


def stack_tables(tables, group_labels=None):
    """
    Stack tables vertically; all tables must share the same column keys.

    Args:
        tables: Sequence of SummaryTable
        group_labels: Optional header row text inserted above each table

    Returns:
        SummaryTable (headers, spanners and caption from the first table)
    """
    tables = list(tables)
    if not tables:
        raise ConfigurationError("stack_tables needs at least one table")
    columns = list(tables[0].body.columns)
    for table in tables[1:]:
        if list(table.body.columns) != columns:
            raise ConfigurationError(
                f"Cannot stack tables with different columns: {columns} vs {list(table.body.columns)}"
            )
    if group_labels is not None and len(group_labels) != len(tables):
        raise ConfigurationError(f"Got {len(group_labels)} group labels for {len(tables)} tables")

    frames, row_types, row_keys = [], [], []
    for i, table in enumerate(tables):
        if group_labels is not None:
            header = {col: "" for col in columns}
            header[LABEL] = str(group_labels[i])
            frames.append(pd.DataFrame([header], columns=columns))
            row_types.append("group")
            row_keys.append((i, "__group__"))
        frames.append(table.body)
        row_types.extend(table.row_types)
        row_keys.extend((i,) + tuple(key) for key in table.row_keys)

    footnotes = _ordered_unique(note for table in tables for note in table.footnotes)
    return replace(
        tables[0],
        body=pd.concat(frames, ignore_index=True),
        footnotes=tuple(footnotes),
        row_types=tuple(row_types),
        row_keys=tuple(row_keys),
    )


# ============================================================================
# ANNOTATION HELPERS (return new tables)
# ============================================================================

def with_caption(table, caption):
    return replace(table, caption=caption)


def with_footnote(table, note):
    return replace(table, footnotes=table.footnotes + (note,))


def with_spanner(table, label, columns):
    key_of = {table.headers[col]: col for col in table.columns}
    spanner = Spanner(label, tuple(_resolve_keys(columns, key_of, "spanner column")))
    kept = [sp for sp in table.spanners if not set(sp.columns) & set(spanner.columns)]
    return replace(table, spanners=tuple(kept) + (spanner,))


def with_headers(table, **headers):
    unknown = sorted(set(headers) - set(table.headers))
    if unknown:
        raise ConfigurationError(f"Unknown header column(s) {unknown}; known: {list(table.headers)}")
    return replace(table, headers={**table.headers, **headers})

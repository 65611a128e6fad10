"""
Export module: write rendered tables to disk, format chosen by file extension.

Export is separate from table construction: a table that was built
successfully can still fail to export, and that failure is an ExportError.
"""

from pathlib import Path
import os
import logging

import pandas as pd
from openpyxl.styles import Alignment, Font
from openpyxl.utils.exceptions import IllegalCharacterError

from .errors import ExportError

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".html", ".htm", ".tex", ".txt", ".csv", ".xlsx", ".rtf")


def export_table(table, path):
    """
    Write a SummaryTable to `path`.

    Args:
        table: SummaryTable
        path: Output file; its extension selects the format

    Returns:
        Path to the written file

    Raises:
        ExportError: for an unsupported extension or any failure while
            writing; an existing file at `path` is left untouched
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_EXTENSIONS:
        raise ExportError(
            f"Unsupported export format '{suffix or path.name}'; expected one of {list(SUPPORTED_EXTENSIONS)}",
            path=path,
        )

    partial = path.with_name(f".{path.stem}.partial{path.suffix}")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        if suffix in (".html", ".htm"):
            partial.write_text(table.to_html(), encoding="utf-8")
        elif suffix == ".tex":
            partial.write_text(table.to_latex(), encoding="utf-8")
        elif suffix == ".txt":
            partial.write_text(table.to_text(), encoding="utf-8")
        elif suffix == ".csv":
            table.to_frame(flat=True).to_csv(partial, index=False)
        elif suffix == ".xlsx":
            _write_xlsx(table, partial)
        else:
            partial.write_text(to_rtf(table), encoding="ascii")
        os.replace(partial, path)
    except (OSError, ValueError, IllegalCharacterError) as exc:
        _discard(partial)
        raise ExportError(f"Could not write {path}: {exc}", path=path) from exc

    logger.info("Exported table to %s", path)
    return path


def _discard(partial):
    """Remove a half-written output file."""
    try:
        partial.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not remove partial file %s: %s", partial, exc)


def _write_xlsx(table, path, sheet_name="Table"):
    keys = list(table.body.columns)
    frame = table.to_frame()
    frame.columns = [table.headers[key] for key in keys]

    start = 0
    if table.caption:
        start += 2
    if table.spanners:
        start += 1

    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        frame.to_excel(writer, sheet_name=sheet_name, index=False, startrow=start)
        sheet = writer.sheets[sheet_name]

        if table.caption:
            sheet.cell(row=1, column=1, value=table.caption).font = Font(bold=True)

        if table.spanners:
            row = start
            for spanner in table.spanners:
                cols = [keys.index(col) + 1 for col in spanner.columns]
                first, last = min(cols), max(cols)
                cell = sheet.cell(row=row, column=first, value=spanner.label)
                cell.font = Font(bold=True)
                cell.alignment = Alignment(horizontal="center")
                if last > first:
                    sheet.merge_cells(start_row=row, start_column=first, end_row=row, end_column=last)

        header_row = start + 1
        for offset, kind in enumerate(table.row_types, start=1):
            if kind in ("label", "group"):
                sheet.cell(row=header_row + offset, column=1).font = Font(bold=True)

        note_row = header_row + len(table.row_types) + 2
        for i, note in enumerate(table.footnotes, start=1):
            sheet.cell(row=note_row + i - 1, column=1, value=f"{i}. {note}")

        widest = int(frame.iloc[:, 0].astype(str).str.len().max())
        sheet.column_dimensions["A"].width = min(60, max(12, widest + 2))


# ============================================================================
# RTF
# ============================================================================

LABEL_WIDTH = 3600   # twips
CELL_WIDTH = 1800


def _rtf_escape(text):
    out = []
    for ch in str(text):
        code = ord(ch)
        if ch in "\\{}":
            out.append("\\" + ch)
        elif ch == "\n":
            out.append("\\line ")
        elif code < 128:
            out.append(ch)
        elif code <= 0xFFFF:
            out.append(f"\\u{code if code < 32768 else code - 65536}?")
        else:
            out.append("?")
    return "".join(out)


def _rtf_row(cells, bold=False, merges=None):
    """One table row; `merges` marks cells as 'first' or 'cont' of a merge."""
    parts = ["\\trowd\\trgaph108"]
    edge = 0
    for i in range(len(cells)):
        edge += LABEL_WIDTH if i == 0 else CELL_WIDTH
        merge = (merges or {}).get(i)
        if merge == "first":
            parts.append("\\clmgf")
        elif merge == "cont":
            parts.append("\\clmrg")
        parts.append(f"\\cellx{edge}")
    parts.append("\n")
    for i, text in enumerate(cells):
        align = "\\ql" if i == 0 else "\\qc"
        body = _rtf_escape(text)
        if bold:
            body = f"\\b {body}\\b0"
        parts.append(f"\\pard\\intbl{align} {body}\\cell\n")
    parts.append("\\row\n")
    return "".join(parts)


def to_rtf(table):
    """Render a SummaryTable as a minimal RTF document."""
    keys = list(table.body.columns)
    frame = table.to_frame()
    lines = ["{\\rtf1\\ansi\\deff0{\\fonttbl{\\f0 Times New Roman;}}\\f0\\fs20\n"]

    if table.caption:
        lines.append(f"{{\\pard\\b {_rtf_escape(table.caption)}\\b0\\par}}\n")

    if table.spanners:
        cells = [""] * len(keys)
        merges = {}
        for spanner in table.spanners:
            cols = sorted(keys.index(col) for col in spanner.columns)
            cells[cols[0]] = spanner.label
            if len(cols) > 1:
                merges[cols[0]] = "first"
                merges.update({col: "cont" for col in cols[1:]})
        lines.append(_rtf_row(cells, bold=True, merges=merges))

    lines.append(_rtf_row([table.headers[key] for key in keys], bold=True))
    for (_, record), kind in zip(frame.iterrows(), table.row_types):
        lines.append(_rtf_row(list(record), bold=kind in ("label", "group")))

    for i, note in enumerate(table.footnotes, start=1):
        lines.append(f"\\pard\\fs16 {i}. {_rtf_escape(note)}\\par\n")
    lines.append("}\n")
    return "".join(lines)

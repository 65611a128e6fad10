#!/usr/bin/env python
"""
Descriptive tables: diabetes screening dataset
Table 1: characteristics by diabetes status (overall column, N, p-values)
Table 2: Table 1 stratified by parity group
"""

from pathlib import Path
import sys

# ensure repo root on path for `tblsummary` package imports when running as script
REPO_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(REPO_ROOT))

from tblsummary import config
from tblsummary.aggregate import summarize
from tblsummary.cleaning import restore_categories
from tblsummary.export import export_table
from tblsummary.io import load_dataset
from tblsummary.options import SummaryOptions, Theme
from tblsummary.qc import check_idempotent, check_level_counts, check_percent_totals, print_qc_report
from tblsummary.table import stratified_table, summary_table, with_footnote

FIELDS = ["age", "pregnancy_group", "glucose", "pressure", "mass", "insulin", "pedigree"]


def main():
    config.configure_logging()
    config.ensure_output_dirs()

    # ============================================================================
    # 1. LOAD PROCESSED DATA
    # ============================================================================
    print("=" * 80)
    print("DESCRIPTIVE TABLES")
    print("=" * 80)

    df = load_dataset(config.OUTPUT_FILES["diabetes_clean"])
    df, _ = restore_categories(df)
    print(f"\n[DATA] Loaded {len(df)} subjects")

    theme = Theme()
    fields = [
        {"name": name, "label": config.FIELD_LABELS.get(name, name)}
        for name in FIELDS
    ]
    fields[FIELDS.index("insulin")]["statistic"] = "median_iqr"
    fields[FIELDS.index("pedigree")]["digits"] = 2

    options = SummaryOptions.from_dict({
        "fields": fields,
        "by": config.OUTCOME_COLUMN,
        "add_overall": True,
        "add_n": True,
        "add_p": True,
        "spanning_header": "Diabetes status",
        "caption": "Table 1. Characteristics of screened women by diabetes status",
    })

    # ============================================================================
    # 2. TABLE 1
    # ============================================================================
    print("\n" + "=" * 80)
    print("TABLE 1: BY DIABETES STATUS")
    print("=" * 80)

    table1 = summary_table(df, options, theme)
    table1 = with_footnote(table1, "Zero glucose, blood pressure, skin fold, insulin and BMI recorded as missing.")
    print("\n" + table1.to_text())

    for key in ("table1_html", "table1_tex", "table1_xlsx"):
        path = export_table(table1, config.OUTPUT_FILES[key])
        print(f"✓ Saved: {path}")

    rows = summarize(df, options, theme)
    checks = [
        ("Level counts", check_level_counts, {"rows": rows}),
        ("Percent totals", check_percent_totals, {"rows": rows}),
        ("Repeatable aggregation", check_idempotent,
         {"func": summarize, "df": df, "options": options, "theme": theme}),
    ]
    print_qc_report(checks, title="TABLE 1 CHECKS")

    # ============================================================================
    # 3. STRATIFIED TABLE
    # ============================================================================
    print("\n" + "=" * 80)
    print("TABLE 2: BY DIABETES STATUS WITHIN PARITY GROUP")
    print("=" * 80)

    strata_options = SummaryOptions.from_dict({
        "fields": [f for f in fields if f["name"] != config.PREGNANCY_GROUP_COLUMN],
        "by": config.OUTCOME_COLUMN,
        "caption": "Table 2. Characteristics by diabetes status within parity group",
    })
    table2 = stratified_table(df, config.PREGNANCY_GROUP_COLUMN, strata_options, theme)
    print("\n" + table2.to_text())

    path = export_table(table2, config.OUTPUT_FILES["table_strata_html"])
    print(f"✓ Saved: {path}")

    print("\n" + "=" * 80)
    print("✓ DESCRIPTIVE TABLES COMPLETE")
    print("=" * 80)


if __name__ == "__main__":
    main()

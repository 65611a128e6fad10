#!/usr/bin/env python
"""
Logistic regression: diabetes status
Univariable models: one predictor at a time
Multivariable model: all predictors jointly
Merged side-by-side table + forest plot of adjusted odds ratios
"""

from pathlib import Path
import sys

# ensure repo root on path for `tblsummary` package imports when running as script
REPO_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(REPO_ROOT))

from tblsummary import config
from tblsummary.cleaning import restore_categories
from tblsummary.export import export_table
from tblsummary.io import load_dataset
from tblsummary.options import Theme
from tblsummary.plots import plot_forest
from tblsummary.regression import (
    fit_logistic,
    prepare_design,
    regression_rows,
    regression_table,
    univariable_table,
)
from tblsummary.table import merge_tables, with_caption

PREDICTORS = ["age", "pregnancy_group", "glucose", "mass", "pedigree"]


def main():
    config.configure_logging()
    config.ensure_output_dirs()

    # ============================================================================
    # 1. LOAD PROCESSED DATA
    # ============================================================================
    print("=" * 80)
    print("LOGISTIC REGRESSION: DIABETES STATUS")
    print("=" * 80)

    df = load_dataset(config.OUTPUT_FILES["diabetes_clean"])
    df, _ = restore_categories(df)
    print(f"\n[DATA] Loaded {len(df)} subjects")
    print(f"Predictors ({len(PREDICTORS)}): {', '.join(PREDICTORS)}")

    theme = Theme()
    labels = config.FIELD_LABELS

    # ============================================================================
    # 2. UNIVARIABLE + MULTIVARIABLE TABLES
    # ============================================================================
    print("\n" + "=" * 80)
    print("MODEL TABLES")
    print("=" * 80)

    uv_table = univariable_table(df, config.OUTCOME_COLUMN, PREDICTORS, theme=theme, labels=labels)
    mv_table = regression_table(df, config.OUTCOME_COLUMN, PREDICTORS, theme=theme, labels=labels)

    merged = merge_tables([uv_table, mv_table], spanners=["Univariable", "Multivariable"])
    merged = with_caption(merged, "Table 3. Odds ratios for diabetes")
    print("\n" + merged.to_text())

    for key in ("regression_html", "regression_rtf", "regression_txt"):
        path = export_table(merged, config.OUTPUT_FILES[key])
        print(f"✓ Saved: {path}")

    # ============================================================================
    # 3. FOREST PLOT
    # ============================================================================
    print("\n" + "=" * 80)
    print("CREATING FIGURES")
    print("=" * 80)

    design = prepare_design(df, config.OUTCOME_COLUMN, PREDICTORS, labels=labels)
    result = fit_logistic(design)
    print(f"\nMultivariable model: n={design.n}, events={design.n_events}, "
          f"pseudo R-squared={result.prsquared:.4f}, AIC={result.aic:.2f}")

    plot_forest(
        regression_rows(result, design),
        filepath=config.OUTPUT_FILES["forest_plot"],
        title="Adjusted odds ratios for diabetes",
    )
    print(f"✓ Saved: {config.OUTPUT_FILES['forest_plot']}")

    print("\n" + "=" * 80)
    print("✓ ANALYSIS COMPLETE")
    print("=" * 80)


if __name__ == "__main__":
    main()

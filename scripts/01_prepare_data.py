#!/usr/bin/env python
"""
Data preparation: diabetes screening dataset
- Load raw CSV (data/original/diabetes.csv)
- Recode impossible zeros, label the outcome, derive the parity group
- Quality checks
- Save cleaned data into data/processed/
"""

from pathlib import Path
import sys

# ensure repo root on path for `tblsummary` package imports when running as script
REPO_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(REPO_ROOT))

from tblsummary import config
from tblsummary.cleaning import clean_diabetes
from tblsummary.io import file_size_mb, load_dataset, save_csv
from tblsummary.qc import (
    check_bucket_coverage,
    check_columns_present,
    check_equal_lengths,
    print_qc_report,
)


def main():
    config.configure_logging()
    config.ensure_output_dirs()

    # ============================================================================
    # 1. LOAD RAW DATA
    # ============================================================================
    print("=" * 80)
    print("DATA PREPARATION: DIABETES SCREENING")
    print("=" * 80)

    raw_path = config.INPUT_FILES["diabetes"]
    df_raw = load_dataset(raw_path)
    print(f"\n[DATA] Loaded {len(df_raw)} rows x {df_raw.shape[1]} columns from {raw_path.name}")

    # ============================================================================
    # 2. CLEAN
    # ============================================================================
    print("\n" + "=" * 80)
    print("CLEANING")
    print("=" * 80)

    df_clean, log = clean_diabetes(df_raw)
    for line in log:
        print(f"  {line}")

    print("\nMissing values after recoding:")
    for col, n_missing in df_clean.isna().sum().items():
        if n_missing > 0:
            print(f"  {col:20s}: {n_missing:4d} ({100 * n_missing / len(df_clean):.1f}%)")

    # ============================================================================
    # 3. QUALITY CHECKS
    # ============================================================================
    checks = [
        ("Required columns", check_columns_present,
         {"df": df_clean, "columns": ["pregnant", config.OUTCOME_COLUMN, config.PREGNANCY_GROUP_COLUMN]}),
        ("Column lengths", check_equal_lengths, {"data": df_clean}),
        ("Parity group coverage", check_bucket_coverage,
         {"df": df_clean, "source": "pregnant", "derived": config.PREGNANCY_GROUP_COLUMN}),
    ]
    failures = print_qc_report(checks)
    if failures:
        print(f"\n❌ {failures} QC check(s) failed; processed data not saved")
        sys.exit(1)

    # ============================================================================
    # 4. SAVE
    # ============================================================================
    out_path = save_csv(df_clean, config.OUTPUT_FILES["diabetes_clean"])
    print(f"\n✓ Saved: {out_path} ({file_size_mb(out_path):.2f} MB)")

    print("\n" + "=" * 80)
    print("✓ DATA PREPARATION COMPLETE")
    print("=" * 80)


if __name__ == "__main__":
    main()

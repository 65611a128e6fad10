"""
I/O module: Load datasets (CSV, TSV, Parquet, in-memory) and save processed data.
"""

from collections.abc import Mapping
from pathlib import Path
import logging

import pandas as pd

from . import config
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def load_csv(filepath, **kwargs):
    """
    Load CSV file with error handling.

    Args:
        filepath: Path to CSV file
        **kwargs: Additional arguments for pd.read_csv()

    Returns:
        pd.DataFrame
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"CSV file not found: {filepath}")

    kwargs.setdefault("na_values", config.NA_VALUES)
    return pd.read_csv(filepath, **kwargs)


def load_parquet(filepath, **kwargs):
    """
    Load Parquet file.

    Args:
        filepath: Path to Parquet file
        **kwargs: Additional arguments for pd.read_parquet()

    Returns:
        pd.DataFrame
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Parquet file not found: {filepath}")

    return pd.read_parquet(filepath, **kwargs)


def require_columns(df, columns):
    """Raise ConfigurationError naming every column of `columns` absent from df."""
    missing = [col for col in columns if col not in df.columns]
    if missing:
        raise ConfigurationError(
            f"Unknown column(s) {missing}; available: {list(df.columns)}"
        )


def _frame_from_mapping(data):
    lengths = {name: len(values) for name, values in data.items()}
    if len(set(lengths.values())) > 1:
        raise ConfigurationError(f"All columns must share the same row count, got {lengths}")
    return pd.DataFrame({name: list(values) for name, values in data.items()})


def load_dataset(source, columns=None, **kwargs) -> pd.DataFrame:
    """
    Load a Dataset from a file path, a DataFrame, or a mapping of columns.

    The returned frame is a copy with a fresh RangeIndex, so row labels are
    stable identities for error reporting.

    Args:
        source: Path (.csv, .tsv, .parquet), pd.DataFrame, or {name: values}
        columns: Optional subset of columns to keep (in this order)
        **kwargs: Passed to the file reader

    Returns:
        pd.DataFrame
    """
    if isinstance(source, pd.DataFrame):
        df = source.copy()
    elif isinstance(source, Mapping):
        df = _frame_from_mapping(source)
    else:
        path = Path(source)
        suffix = path.suffix.lower()
        if suffix == ".csv":
            df = load_csv(path, **kwargs)
        elif suffix == ".tsv":
            df = load_csv(path, sep="\t", **kwargs)
        elif suffix == ".parquet":
            df = load_parquet(path, **kwargs)
        else:
            raise ConfigurationError(f"Unsupported dataset format '{suffix}' for {path}")
        logger.info("Loaded %s (%d rows x %d columns)", path.name, len(df), df.shape[1])

    if columns is not None:
        columns = list(columns)
        require_columns(df, columns)
        df = df[columns]

    return df.reset_index(drop=True)


def save_csv(df, filepath, **kwargs):
    """
    Save DataFrame to CSV.

    Args:
        df: DataFrame to save
        filepath: Output path
        **kwargs: Additional arguments for df.to_csv()

    Returns:
        Path to saved file
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    df.to_csv(filepath, index=False, **kwargs)

    return filepath


def file_size_mb(filepath):
    """Get file size in MB."""
    return Path(filepath).stat().st_size / (1024 ** 2)

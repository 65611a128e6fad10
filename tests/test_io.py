"""Tests for dataset loading."""

import pandas as pd
import pytest

from tblsummary.errors import ConfigurationError
from tblsummary.io import load_csv, load_dataset, require_columns, save_csv


def test_mapping_becomes_frame() -> None:
    df = load_dataset({"a": [1, 2, 3], "b": ["x", "y", "z"]})
    assert df.shape == (3, 2)
    assert list(df.index) == [0, 1, 2]


def test_mapping_requires_equal_lengths() -> None:
    with pytest.raises(ConfigurationError):
        load_dataset({"a": [1, 2, 3], "b": ["x"]})


def test_frame_is_copied_and_reindexed() -> None:
    source = pd.DataFrame({"a": [1, 2]}, index=[10, 20])
    df = load_dataset(source)
    df.loc[0, "a"] = 99
    assert list(df.index) == [0, 1]
    assert source["a"].tolist() == [1, 2]


def test_column_subset(tmp_path) -> None:
    path = save_csv(pd.DataFrame({"a": [1], "b": [2], "c": [3]}), tmp_path / "d.csv")
    assert list(load_dataset(path, columns=["c", "a"]).columns) == ["c", "a"]
    with pytest.raises(ConfigurationError, match="zzz"):
        load_dataset(path, columns=["zzz"])


def test_csv_missing_tokens(tmp_path) -> None:
    path = tmp_path / "d.csv"
    path.write_text("a,b\n1,NA\n.,2\n", encoding="utf-8")
    df = load_csv(path)
    assert df.isna().sum().tolist() == [1, 1]


def test_tsv_is_read(tmp_path) -> None:
    path = tmp_path / "d.tsv"
    path.write_text("a\tb\n1\t2\n", encoding="utf-8")
    assert load_dataset(path).columns.tolist() == ["a", "b"]


def test_unknown_format_rejected(tmp_path) -> None:
    with pytest.raises(ConfigurationError):
        load_dataset(tmp_path / "data.json")


def test_missing_file(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_dataset(tmp_path / "absent.csv")


def test_require_columns_lists_all_missing() -> None:
    with pytest.raises(ConfigurationError) as excinfo:
        require_columns(pd.DataFrame({"a": [1]}), ["a", "b", "c"])
    assert "['b', 'c']" in str(excinfo.value)

"""Tests for table assembly, merging, stacking and rendering."""

import pandas as pd
import pytest

from tblsummary.aggregate import summarize
from tblsummary.errors import ConfigurationError
from tblsummary.options import SummaryOptions, Theme
from tblsummary.table import (
    Spanner,
    assemble_table,
    merge_tables,
    stack_tables,
    stratified_table,
    summary_table,
    with_caption,
    with_footnote,
    with_headers,
    with_spanner,
)


@pytest.fixture
def grouped_options():
    return SummaryOptions(
        fields=["score", {"name": "color", "label": "Colour"}, "smoker"],
        by="group",
    )


# ---------------------------------------------------------------------------
# Assembly


def test_rows_follow_field_order(small_df, grouped_options) -> None:
    table = summary_table(small_df, grouped_options)

    assert table.body["label"].tolist() == ["score", "Colour", "blue", "red", "Unknown", "smoker"]
    assert table.row_types == ("label", "label", "level", "level", "missing", "label")
    assert table.columns == ["stat_0", "stat_1"]
    assert table.headers["stat_0"] == "a (N = 5)"
    assert table.headers["label"] == "Characteristic"


def test_cells_hold_formatted_statistics(small_df, grouped_options) -> None:
    body = summary_table(small_df, grouped_options).body.set_index("label")

    assert body.loc["score", "stat_0"] == "5.0 (3.2)"
    assert body.loc["red", "stat_0"] == "3 (75.0%)"
    assert body.loc["Unknown", "stat_1"] == "1"
    assert body.loc["smoker", "stat_1"] == "2 (40.0%)"
    assert body.loc["Colour", "stat_0"] == ""


def test_statistic_footnote_is_generated(small_df, grouped_options) -> None:
    table = summary_table(small_df, grouped_options)
    assert table.footnotes[0] == "Mean (SD); n (%)"


def test_columns_follow_first_appearance(small_df) -> None:
    rows = summarize(small_df, SummaryOptions(fields=["score"], by="group", by_order=["b", "a"]))
    assert assemble_table(rows).headers["stat_0"] == "b"
    assert assemble_table(rows, column_order=["a"]).headers["stat_0"] == "a"


def test_unknown_column_order_rejected(small_df) -> None:
    rows = summarize(small_df, SummaryOptions(fields=["score"], by="group"))
    with pytest.raises(ConfigurationError):
        assemble_table(rows, column_order=["c"])


def test_empty_rows_rejected() -> None:
    with pytest.raises(ConfigurationError):
        assemble_table([])


def test_overall_n_and_p_columns(small_df) -> None:
    options = SummaryOptions(
        fields=["score", "color"], by="group", add_overall=True, add_n=True, add_p=True
    )
    table = summary_table(small_df, options)

    assert list(table.body.columns) == ["label", "n", "stat_0", "stat_1", "stat_2", "p_value"]
    assert table.headers["stat_0"] == "Overall (N = 10)"
    assert table.headers["p_value"] == "p-value"
    body = table.body.set_index("label")
    assert body.loc["score", "n"] == "10"
    assert body.loc["color", "n"] == "8"
    assert body.loc["score", "p_value"] != ""
    assert "Wilcoxon rank sum test" in table.footnotes[1]


def test_header_overrides_and_spanner(small_df) -> None:
    options = SummaryOptions(
        fields=["score"],
        by="group",
        add_overall=True,
        spanning_header="Group",
        header_labels={"a": "Arm A", "label": "Variable"},
        caption="Table 1",
        footnotes=["Simulated data."],
    )
    table = summary_table(small_df, options)

    assert table.headers["stat_1"] == "Arm A"
    assert table.headers["label"] == "Variable"
    assert table.spanners == (Spanner("Group", ("stat_1", "stat_2")),)
    assert table.caption == "Table 1"
    assert table.footnotes[-1] == "Simulated data."


def test_unknown_header_rejected(small_df) -> None:
    rows = summarize(small_df, SummaryOptions(fields=["score"], by="group"))
    with pytest.raises(ConfigurationError):
        assemble_table(rows, headers={"z": "Zed"})


# ---------------------------------------------------------------------------
# Rendering


def test_to_frame_uses_multiindex_with_spanners(small_df) -> None:
    options = SummaryOptions(fields=["score"], by="group", spanning_header="Group")
    table = summary_table(small_df, options)

    frame = table.to_frame()
    assert isinstance(frame.columns, pd.MultiIndex)
    assert frame.columns[1] == ("Group", "a (N = 5)")
    assert table.to_frame(flat=True).columns[1] == "Group: a (N = 5)"


def test_level_rows_are_indented(small_df) -> None:
    table = summary_table(small_df, SummaryOptions(fields=["color"]), Theme(indent="  "))
    labels = table.to_frame().iloc[:, 0].tolist()
    assert labels == ["color", "  blue", "  red", "  Unknown"]


def test_text_rendering(small_df, grouped_options) -> None:
    table = with_caption(summary_table(small_df, grouped_options), "Table 1. Demo")
    text = table.to_text()

    assert text.startswith("Table 1. Demo")
    assert "a (N = 5)" in text
    assert "1. Mean (SD); n (%)" in text


def test_html_rendering(small_df, grouped_options) -> None:
    table = with_caption(summary_table(small_df, grouped_options), "Ages & stages")
    html = table.to_html()

    assert "<table" in html
    assert "Ages &amp; stages" in html
    assert "font-weight: bold" in html
    assert '<p class="footnote"><sup>1</sup> Mean (SD); n (%)</p>' in html


def test_latex_rendering(small_df, grouped_options) -> None:
    table = with_footnote(summary_table(small_df, grouped_options), "50% of rows")
    latex = table.to_latex()

    assert "\\begin{table}" in latex
    assert "\\toprule" in latex
    assert "n (\\%)" in latex
    assert latex.index("50\\% of rows") < latex.index("\\end{table}")


# ---------------------------------------------------------------------------
# Merge / stack / stratify


def test_merge_aligns_rows(small_df) -> None:
    left = summary_table(small_df, SummaryOptions(fields=["score", "color"], by="group"))
    right = summary_table(small_df, SummaryOptions(fields=["color", "smoker"]))

    merged = merge_tables([left, right])

    assert merged.columns == ["t1_stat_0", "t1_stat_1", "t2_stat_0"]
    assert [sp.label for sp in merged.spanners] == ["Table 1", "Table 2"]
    assert merged.body["label"].tolist() == ["score", "color", "blue", "red", "Unknown", "smoker"]
    body = merged.body.set_index("label")
    assert body.loc["red", "t2_stat_0"] == "5 (62.5%)"
    assert body.loc["score", "t2_stat_0"] == ""
    assert body.loc["smoker", "t1_stat_0"] == ""


def test_merge_spanner_count_must_match(small_df) -> None:
    table = summary_table(small_df, SummaryOptions(fields=["score"]))
    with pytest.raises(ConfigurationError):
        merge_tables([table, table], spanners=["only one"])


def test_stack_adds_group_rows(small_df) -> None:
    top = summary_table(small_df, SummaryOptions(fields=["score"]))
    bottom = summary_table(small_df, SummaryOptions(fields=["smoker"]))

    stacked = stack_tables([top, bottom], group_labels=["Measures", "Habits"])

    assert stacked.body["label"].tolist() == ["Measures", "score", "Habits", "smoker"]
    assert stacked.row_types == ("group", "label", "group", "label")


def test_stack_requires_matching_columns(small_df) -> None:
    plain = summary_table(small_df, SummaryOptions(fields=["score"]))
    grouped = summary_table(small_df, SummaryOptions(fields=["score"], by="group"))
    with pytest.raises(ConfigurationError):
        stack_tables([plain, grouped])


def test_stratified_table(diabetes_df) -> None:
    options = SummaryOptions(fields=["age", "glucose"], by="diabetes", caption="By parity")
    table = stratified_table(diabetes_df, "pregnancy_group", options)

    labels = [sp.label.split(" (N")[0] for sp in table.spanners]
    assert labels == ["nulliparous", "multiparous", "grand multiparous"]
    assert table.columns[:2] == ["t1_stat_0", "t1_stat_1"]
    assert table.headers["t1_stat_0"].startswith("neg")
    assert table.caption == "By parity"


def test_stratified_table_stratum_without_dichotomous_value() -> None:
    df = pd.DataFrame({
        "site": ["x", "x", "x", "x", "y", "y", "y", "y"],
        "arm": ["a", "b", "a", "b", "a", "b", "a", "b"],
        "smoker": [0, 0, 0, 0, 1, 0, 1, 1],
    })
    table = stratified_table(df, "site", SummaryOptions(fields=["smoker"], by="arm"))

    body = table.body.set_index("label")
    assert body.loc["smoker", "t1_stat_0"] == "0 (0.0%)"
    assert body.loc["smoker", "t2_stat_0"] == "2 (100.0%)"


def test_stratified_table_keeps_full_data_level_order() -> None:
    df = pd.DataFrame({
        "site": ["x", "x", "y", "y", "y"],
        "color": ["red", None, "blue", "red", "green"],
    })
    table = stratified_table(df, "site", SummaryOptions(fields=["color"]))

    assert table.body["label"].tolist() == ["color", "blue", "green", "red", "Unknown"]
    body = table.body.set_index("label")
    assert body.loc["blue", "t1_stat_0"] == "0 (0.0%)"
    assert body.loc["Unknown", "t2_stat_0"] == ""


def test_merge_places_late_rows_with_their_field() -> None:
    df = pd.DataFrame({
        "site": ["x", "x", "x", "y", "y"],
        "color": ["blue", "red", "green", "red", None],
        "score": [1.0, 2.0, 3.0, 4.0, 5.0],
    })
    options = SummaryOptions(fields=["color", {"name": "score", "kind": "continuous"}])
    table = stratified_table(df, "site", options)

    assert table.body["label"].tolist() == ["color", "blue", "green", "red", "Unknown", "score"]
    assert table.body.set_index("label").loc["Unknown", "t2_stat_0"] == "1"


def test_stratified_table_rejects_field_as_strata(diabetes_df) -> None:
    with pytest.raises(ConfigurationError):
        stratified_table(diabetes_df, "age", SummaryOptions(fields=["age"]))


# ---------------------------------------------------------------------------
# Annotation helpers


def test_with_helpers_return_new_tables(small_df, grouped_options) -> None:
    table = summary_table(small_df, grouped_options)

    spanned = with_spanner(table, "Group", ["a (N = 5)", "stat_1"])
    renamed = with_headers(table, stat_0="A")

    assert spanned.spanners == (Spanner("Group", ("stat_0", "stat_1")),)
    assert renamed.headers["stat_0"] == "A"
    assert table.spanners == ()
    assert table.headers["stat_0"] == "a (N = 5)"
    with pytest.raises(ConfigurationError):
        with_headers(table, stat_9="?")

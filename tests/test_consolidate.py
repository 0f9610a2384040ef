"""Contracts for the append / summary / pivot strategies."""

from __future__ import annotations

import pytest

from spreadsheet_consolidator import SOURCE_COLUMN, UNSPECIFIED
from spreadsheet_consolidator.consolidate import (
    Aggregate,
    consolidate,
    consolidate_with_report,
    discover_columns,
)
from spreadsheet_consolidator.models import ConsolidationSettings, Table


@pytest.fixture
def sales_tables() -> list[Table]:
    return [
        Table(name="A", rows=[{"Region": "Moscow", "Sales": 100}, {"Region": "Kazan", "Sales": 50}]),
        Table(name="B", rows=[{"Region": "Moscow", "Sales": 30}]),
    ]


def _summary(**changes: object) -> ConsolidationSettings:
    base = ConsolidationSettings(
        consolidation_type="summary", group_by_column="Region", value_columns=["Sales"]
    )
    return base.updated(**changes)


# ── Column discovery ────────────────────────────────────────────


def test_discover_columns_is_first_seen_union_ignoring_selection() -> None:
    tables = [
        Table(name="a", rows=[{"x": 1, "y": 2}]),
        Table(name="b", rows=[{"y": 1, "z": 2}], selected=False),
    ]

    assert discover_columns(tables) == ["x", "y", "z"]
    assert discover_columns([]) == []


# ── Append ──────────────────────────────────────────────────────


def test_append_keeps_table_then_row_order(sales_tables: list[Table]) -> None:
    settings = ConsolidationSettings(skip_empty_rows=False)

    result = consolidate(sales_tables, settings)

    assert result is not None
    assert [row["Sales"] for row in result.rows] == [100, 50, 30]
    assert result.columns == ["Region", "Sales"]


def test_append_row_count_equals_sum_of_inputs_without_skipping() -> None:
    tables = [
        Table(name="a", rows=[{"x": 1}, {"x": None}]),
        Table(name="b", rows=[{"x": ""}, {"x": 4}, {"x": 5}]),
    ]

    result = consolidate(tables, ConsolidationSettings(skip_empty_rows=False))

    assert result is not None
    assert len(result) == 5


def test_append_skips_rows_where_every_field_is_empty() -> None:
    tables = [
        Table(name="a", rows=[{"x": 1, "y": "a"}, {"x": None, "y": ""}]),
        Table(name="b", rows=[{"x": None, "y": "kept"}]),
    ]

    result, report = consolidate_with_report(tables, ConsolidationSettings(skip_empty_rows=True))

    assert result is not None
    assert len(result) == 2
    assert report.skipped_rows == 1
    assert report.rows_in == 3
    assert report.rows_out == 2
    assert "Skipped 1 empty row" in report.warnings


def test_append_tags_source_when_headers_not_preserved(sales_tables: list[Table]) -> None:
    result = consolidate(sales_tables, ConsolidationSettings(preserve_headers=False))

    assert result is not None
    assert [row[SOURCE_COLUMN] for row in result.rows] == ["A", "A", "B"]
    assert result.columns == ["Region", "Sales", SOURCE_COLUMN]


def test_append_never_mutates_input_rows(sales_tables: list[Table]) -> None:
    consolidate(sales_tables, ConsolidationSettings(preserve_headers=False))

    for table in sales_tables:
        assert all(SOURCE_COLUMN not in row for row in table.rows)


def test_append_preserving_headers_adds_no_source_column(sales_tables: list[Table]) -> None:
    result = consolidate(sales_tables, ConsolidationSettings(preserve_headers=True))

    assert result is not None
    assert all(SOURCE_COLUMN not in row for row in result.rows)


def test_append_output_columns_are_union_and_missing_fields_stay_absent() -> None:
    tables = [
        Table(name="a", rows=[{"x": 1}]),
        Table(name="b", rows=[{"x": 2, "y": 3}]),
    ]

    result = consolidate(tables, ConsolidationSettings())

    assert result is not None
    assert result.columns == ["x", "y"]
    assert "y" not in result.rows[0]


def test_append_columns_include_fields_only_later_rows_carry() -> None:
    table = Table(name="a", rows=[{"Region": "Moscow"}, {"Region": "Kazan", "Sales": 5}])
    assert table.columns == ["Region"]

    result = consolidate([table], ConsolidationSettings(preserve_headers=False))

    assert result is not None
    assert result.columns == ["Region", "Sales", SOURCE_COLUMN]
    assert result.rows[1]["Sales"] == 5


def test_append_ignores_unselected_tables(sales_tables: list[Table]) -> None:
    sales_tables[1].selected = False

    result = consolidate(sales_tables, ConsolidationSettings())

    assert result is not None
    assert len(result) == 2


def test_append_with_no_selected_tables_is_empty() -> None:
    result = consolidate([], ConsolidationSettings())

    assert result is not None
    assert len(result) == 0


# ── Summary ─────────────────────────────────────────────────────


def test_summary_example_scenario(sales_tables: list[Table]) -> None:
    result = consolidate(sales_tables, _summary())

    assert result is not None
    assert result.rows == [
        {"Region": "Moscow", "Sales (sum)": 130},
        {"Region": "Kazan", "Sales (sum)": 50},
    ]
    assert result.columns == ["Region", "Sales (sum)"]


def test_summary_sum_is_conserved_across_groups() -> None:
    tables = [
        Table(name="a", rows=[{"g": "x", "v": 1.5}, {"g": "y", "v": 2}, {"g": "x", "v": "4"}]),
        Table(name="b", rows=[{"g": "z", "v": 10}, {"g": "y", "v": -3}]),
    ]

    result = consolidate(tables, _summary(group_by_column="g", value_columns=["v"]))

    assert result is not None
    assert len(result) == 3
    assert sum(row["v (sum)"] for row in result.rows) == pytest.approx(14.5)


def test_summary_count_ignores_cell_values() -> None:
    table = Table(
        name="a",
        rows=[
            {"Region": "Moscow", "Sales": "n/a"},
            {"Region": "Moscow", "Sales": 5},
            {"Region": "Moscow", "Sales": None},
            {"Region": "Kazan", "Sales": 0},
        ],
    )

    result = consolidate([table], _summary(aggregation_function="count"))

    assert result is not None
    assert result.rows == [
        {"Region": "Moscow", "Sales (count)": 3},
        {"Region": "Kazan", "Sales (count)": 1},
    ]


def test_summary_average_counts_unparsable_cells_as_zero() -> None:
    table = Table(
        name="a",
        rows=[
            {"Region": "Moscow", "Sales": 10},
            {"Region": "Moscow", "Sales": "abc"},
            {"Region": "Moscow", "Sales": "20"},
        ],
    )

    result, report = consolidate_with_report([table], _summary(aggregation_function="average"))

    assert result is not None
    assert result.rows[0]["Sales (average)"] == pytest.approx(10.0)
    assert "Treated 1 non-numeric value in 'Sales' as 0" in report.warnings


def test_summary_min_and_max_are_seeded_by_first_value() -> None:
    table = Table(
        name="a",
        rows=[{"Region": "Moscow", "Sales": -5}, {"Region": "Moscow", "Sales": -2}],
    )
    positive = Table(
        name="b",
        rows=[{"Region": "Kazan", "Sales": 7}, {"Region": "Kazan", "Sales": 3}],
    )

    maxed = consolidate([table], _summary(aggregation_function="max"))
    minned = consolidate([positive], _summary(aggregation_function="min"))

    assert maxed is not None and minned is not None
    assert maxed.rows[0]["Sales (max)"] == -2
    assert minned.rows[0]["Sales (min)"] == 3


def test_summary_skips_only_on_empty_group_key() -> None:
    table = Table(
        name="a",
        rows=[
            {"Region": "Moscow", "Sales": None},
            {"Region": None, "Sales": 10},
            {"Region": "", "Sales": 20},
        ],
    )

    result, report = consolidate_with_report([table], _summary(skip_empty_rows=True))

    assert result is not None
    assert result.rows == [{"Region": "Moscow", "Sales (sum)": 0}]
    assert report.skipped_rows == 2


def test_summary_groups_empty_keys_under_unspecified_when_not_skipping() -> None:
    table = Table(
        name="a",
        rows=[{"Region": None, "Sales": 10}, {"Sales": 5}, {"Region": "", "Sales": 1}],
        columns=["Region", "Sales"],
    )

    result, report = consolidate_with_report([table], _summary(skip_empty_rows=False))

    assert result is not None
    assert result.rows == [{"Region": UNSPECIFIED, "Sales (sum)": 16}]
    assert any(UNSPECIFIED in warning for warning in report.warnings)


def test_summary_merges_integral_float_and_int_keys() -> None:
    table = Table(name="a", rows=[{"Year": 2024, "v": 1}, {"Year": 2024.0, "v": 2}])

    result = consolidate([table], _summary(group_by_column="Year", value_columns=["v"]))

    assert result is not None
    assert result.rows == [{"Year": "2024", "v (sum)": 3}]


def test_summary_keeps_value_column_order_and_labels() -> None:
    table = Table(name="a", rows=[{"g": "x", "b": 1, "a": 2}])

    result = consolidate([table], _summary(group_by_column="g", value_columns=["b", "a"]))

    assert result is not None
    assert result.columns == ["g", "b (sum)", "a (sum)"]


@pytest.mark.parametrize(
    "changes",
    [
        {"group_by_column": None},
        {"value_columns": []},
        {"group_by_column": "Nowhere"},
    ],
)
def test_summary_returns_none_when_not_applicable(
    sales_tables: list[Table], changes: dict[str, object]
) -> None:
    assert consolidate(sales_tables, _summary(**changes)) is None


def test_summary_group_column_must_be_in_a_selected_table() -> None:
    tables = [
        Table(name="a", rows=[{"Region": "Moscow", "Sales": 1}], selected=False),
        Table(name="b", rows=[{"City": "Kazan", "Sales": 1}]),
    ]

    assert consolidate(tables, _summary()) is None


def test_summary_with_no_tables_is_not_applicable() -> None:
    result, report = consolidate_with_report([], _summary())

    assert result is None
    assert report.tables_in == 0


def test_summary_warns_about_missing_value_columns() -> None:
    tables = [
        Table(name="a", rows=[{"Region": "Moscow", "Sales": 1}]),
        Table(name="b", rows=[{"Region": "Kazan"}]),
    ]

    _result, report = consolidate_with_report(tables, _summary())

    assert "Value column 'Sales' not found in table 'b'" in report.warnings


def test_consolidate_is_idempotent(sales_tables: list[Table]) -> None:
    first = consolidate(sales_tables, _summary(aggregation_function="average"))
    second = consolidate(sales_tables, _summary(aggregation_function="average"))

    assert first is not None and second is not None
    assert first.rows == second.rows
    assert first.columns == second.columns


# ── Pivot ───────────────────────────────────────────────────────


def test_pivot_fans_out_by_source_table() -> None:
    tables = [
        Table(
            name="A",
            rows=[
                {"Region": "Moscow", "Sales": 100},
                {"Region": "Moscow", "Sales": 20},
                {"Region": "Kazan", "Sales": 50},
            ],
        ),
        Table(name="B", rows=[{"Region": "Moscow", "Sales": 30}]),
    ]

    result = consolidate(tables, _summary(consolidation_type="pivot"))

    assert result is not None
    assert result.columns == ["Region", "A - Sales", "B - Sales"]
    assert result.rows == [
        {"Region": "Moscow", "A - Sales": 120, "B - Sales": 30},
        {"Region": "Kazan", "A - Sales": 50},
    ]


def test_pivot_leaves_unobserved_combinations_absent_not_zero() -> None:
    tables = [
        Table(name="A", rows=[{"Region": "Kazan", "Sales": 0}]),
        Table(name="B", rows=[{"Region": "Moscow", "Cost": 4}], columns=["Region", "Cost"]),
    ]

    result = consolidate(tables, _summary(consolidation_type="pivot", value_columns=["Sales", "Cost"]))

    assert result is not None
    kazan, moscow = result.rows
    assert kazan == {"Region": "Kazan", "A - Sales": 0}
    assert "B - Sales" not in moscow
    assert moscow["B - Cost"] == 4


def test_pivot_aggregates_within_a_table_only() -> None:
    tables = [
        Table(name="A", rows=[{"g": "x", "v": 2}, {"g": "x", "v": 4}]),
        Table(name="B", rows=[{"g": "x", "v": 100}]),
    ]

    result = consolidate(
        tables,
        _summary(
            consolidation_type="pivot",
            group_by_column="g",
            value_columns=["v"],
            aggregation_function="average",
        ),
    )

    assert result is not None
    assert result.rows == [{"g": "x", "A - v": 3.0, "B - v": 100.0}]


def test_pivot_applies_group_key_skip_rule() -> None:
    table = Table(name="A", rows=[{"g": "", "v": 1}, {"g": "x", "v": 2}])

    result, report = consolidate_with_report(
        [table],
        _summary(consolidation_type="pivot", group_by_column="g", value_columns=["v"]),
    )

    assert result is not None
    assert result.rows == [{"g": "x", "A - v": 2}]
    assert report.skipped_rows == 1


def test_pivot_returns_none_without_value_columns(sales_tables: list[Table]) -> None:
    assert consolidate(sales_tables, _summary(consolidation_type="pivot", value_columns=[])) is None


# ── Aggregate ───────────────────────────────────────────────────


def test_aggregate_results_per_function() -> None:
    aggregate = Aggregate()
    for number in (4.0, -1.0, 3.0):
        aggregate.add(number)

    assert aggregate.result("sum") == 6.0
    assert aggregate.result("average") == 2.0
    assert aggregate.result("min") == -1.0
    assert aggregate.result("max") == 4.0
    assert aggregate.result("count") == 3
    with pytest.raises(ValueError, match="aggregation"):
        aggregate.result("median")  # type: ignore[arg-type]

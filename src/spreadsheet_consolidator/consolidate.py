"""Consolidation engine — pure functions, no side effects.

Tables are only read; every strategy builds fresh row dicts.  Precondition
failures return ``None`` instead of raising so callers can check settings
up front and treat ``None`` as "not applicable".
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from spreadsheet_consolidator import SOURCE_COLUMN, UNSPECIFIED
from spreadsheet_consolidator.models import (
    AggregationFunction,
    ConsolidationReport,
    ConsolidationSettings,
    Row,
    Table,
)
from spreadsheet_consolidator.values import (
    is_empty_row,
    is_empty_value,
    is_numeric,
    to_number,
    to_text,
)

CONSOLIDATED_NAME = "Consolidated"


def _plural(count: int) -> str:
    return "" if count == 1 else "s"


# ── Column discovery ────────────────────────────────────────────


def discover_columns(tables: Iterable[Table]) -> list[str]:
    """Union of every table's columns, first-seen order, selection ignored."""
    seen: dict[str, None] = {}
    for table in tables:
        for column in table.columns or []:
            seen.setdefault(column, None)
    return list(seen)


# ── Aggregation ─────────────────────────────────────────────────


@dataclass
class Aggregate:
    """Running aggregate for one (group, column) cell."""

    total: float = 0.0
    count: int = 0
    low: float | None = None
    high: float | None = None

    def add(self, number: float) -> None:
        self.total += number
        self.count += 1
        self.low = number if self.low is None else min(self.low, number)
        self.high = number if self.high is None else max(self.high, number)

    def result(self, function: AggregationFunction) -> float | int:
        if function == "sum":
            return self.total
        if function == "average":
            return self.total / self.count if self.count else 0.0
        if function == "min":
            return self.low if self.low is not None else 0.0
        if function == "max":
            return self.high if self.high is not None else 0.0
        if function == "count":
            return self.count
        raise ValueError(f"Unknown aggregation function: {function!r}")


def aggregate_label(column: str, function: AggregationFunction) -> str:
    return f"{column} ({function})"


def pivot_label(table_name: str, column: str) -> str:
    return f"{table_name} - {column}"


class _CoercionTally:
    """Counts non-empty cells that could not be read as numbers, per column."""

    def __init__(self) -> None:
        self.counts: dict[str, int] = {}

    def coerce(self, column: str, value: object) -> float:
        if not is_empty_value(value) and not is_numeric(value):
            self.counts[column] = self.counts.get(column, 0) + 1
        return to_number(value)

    def warnings(self) -> list[str]:
        return [
            f"Treated {count} non-numeric value{_plural(count)} in {column!r} as 0"
            for column, count in self.counts.items()
        ]


def _missing_value_column_warnings(
    tables: Sequence[Table], value_columns: Sequence[str]
) -> list[str]:
    warnings: list[str] = []
    for table in tables:
        present = set(table.columns or [])
        for column in value_columns:
            if column not in present:
                warnings.append(f"Value column {column!r} not found in table {table.name!r}")
    return warnings


def _grouping_column(tables: Sequence[Table], settings: ConsolidationSettings) -> str | None:
    """Return the group column when summary/pivot can run, else ``None``."""
    group = settings.group_by_column
    if group is None or not settings.value_columns:
        return None
    if not any(group in (table.columns or []) for table in tables):
        return None
    return group


class _Grouper:
    """Maps rows to group keys; only the group cell decides emptiness."""

    def __init__(self, column: str, skip_empty: bool) -> None:
        self.column = column
        self.skip_empty = skip_empty
        self.skipped = 0
        self.unspecified = 0

    def key(self, row: Row) -> str | None:
        """Return the group key for *row*, or ``None`` when the row is skipped."""
        value = row.get(self.column)
        if is_empty_value(value):
            if self.skip_empty:
                self.skipped += 1
                return None
            self.unspecified += 1
        return to_text(value)

    def finish(self, report: ConsolidationReport) -> None:
        report.skipped_rows += self.skipped
        if self.skipped:
            report.warnings.append(
                f"Skipped {self.skipped} row{_plural(self.skipped)} "
                f"with an empty {self.column!r}"
            )
        if self.unspecified:
            report.warnings.append(
                f"Grouped {self.unspecified} row{_plural(self.unspecified)} with an empty "
                f"{self.column!r} under {UNSPECIFIED!r}"
            )


# ── Strategies ──────────────────────────────────────────────────


def append_rows(
    tables: Sequence[Table],
    *,
    skip_empty_rows: bool,
    preserve_headers: bool,
    report: ConsolidationReport | None = None,
    name: str = CONSOLIDATED_NAME,
) -> Table:
    """Concatenate rows in table order, then row order."""
    report = report if report is not None else ConsolidationReport()
    rows: list[Row] = []
    for table in tables:
        for row in table.rows:
            if skip_empty_rows and is_empty_row(row):
                report.skipped_rows += 1
                continue
            out = dict(row)
            if not preserve_headers:
                out[SOURCE_COLUMN] = table.name
            rows.append(out)

    seen = dict.fromkeys(discover_columns(tables))
    # rows of one table may carry fields its header row lacks
    for row in rows:
        for column in row:
            seen.setdefault(column, None)
    if not preserve_headers:
        seen.pop(SOURCE_COLUMN, None)
        seen[SOURCE_COLUMN] = None
    columns = list(seen)
    if report.skipped_rows:
        report.warnings.append(
            f"Skipped {report.skipped_rows} empty row{_plural(report.skipped_rows)}"
        )
    return Table(name=name, rows=rows, columns=columns)


def summarize(
    tables: Sequence[Table],
    settings: ConsolidationSettings,
    report: ConsolidationReport | None = None,
) -> Table | None:
    """Group rows by ``group_by_column`` and aggregate every value column."""
    group = _grouping_column(tables, settings)
    if group is None:
        return None
    report = report if report is not None else ConsolidationReport()
    function = settings.aggregation_function
    coercion = _CoercionTally()
    grouper = _Grouper(group, settings.skip_empty_rows)

    groups: dict[str, dict[str, Aggregate]] = {}
    for table in tables:
        for row in table.rows:
            key = grouper.key(row)
            if key is None:
                continue
            cells = groups.setdefault(
                key, {column: Aggregate() for column in settings.value_columns}
            )
            for column in settings.value_columns:
                cells[column].add(coercion.coerce(column, row.get(column)))

    labels = [aggregate_label(column, function) for column in settings.value_columns]
    rows: list[Row] = []
    for key, cells in groups.items():
        out: Row = {group: key}
        for column, label in zip(settings.value_columns, labels):
            out[label] = cells[column].result(function)
        rows.append(out)

    report.warnings.extend(_missing_value_column_warnings(tables, settings.value_columns))
    grouper.finish(report)
    report.warnings.extend(coercion.warnings())
    return Table(name=CONSOLIDATED_NAME, rows=rows, columns=[group, *labels])


def pivot(
    tables: Sequence[Table],
    settings: ConsolidationSettings,
    report: ConsolidationReport | None = None,
) -> Table | None:
    """One row per group key, one field per (source table, value column).

    Tables sharing a name share their fields.  Cells of a (table, column)
    pair that never received a row for a group are left out of that row.
    """
    group = _grouping_column(tables, settings)
    if group is None:
        return None
    report = report if report is not None else ConsolidationReport()
    function = settings.aggregation_function
    coercion = _CoercionTally()
    grouper = _Grouper(group, settings.skip_empty_rows)

    groups: dict[str, dict[str, Aggregate]] = {}
    observed: set[str] = set()
    for table in tables:
        for row in table.rows:
            key = grouper.key(row)
            if key is None:
                continue
            cells = groups.setdefault(key, {})
            for column in settings.value_columns:
                if column not in row:
                    continue
                label = pivot_label(table.name, column)
                observed.add(label)
                aggregate = cells.setdefault(label, Aggregate())
                aggregate.add(coercion.coerce(column, row[column]))

    # table order, then value-column order
    ordered = dict.fromkeys(
        pivot_label(table.name, column)
        for table in tables
        for column in settings.value_columns
    )
    columns = [group, *(label for label in ordered if label in observed)]
    rows: list[Row] = []
    for key, cells in groups.items():
        out: Row = {group: key}
        for label in columns[1:]:
            if label in cells:
                out[label] = cells[label].result(function)
        rows.append(out)

    names = [table.name for table in tables]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        report.warnings.append(
            f"Tables share a name, pivot fields combined: {', '.join(duplicates)}"
        )
    report.warnings.extend(_missing_value_column_warnings(tables, settings.value_columns))
    grouper.finish(report)
    report.warnings.extend(coercion.warnings())
    return Table(name=CONSOLIDATED_NAME, rows=rows, columns=columns)


# ── Entry points ────────────────────────────────────────────────


def consolidate_with_report(
    tables: Sequence[Table], settings: ConsolidationSettings
) -> tuple[Table | None, ConsolidationReport]:
    """Run the configured strategy over the selected *tables*.

    Returns ``(table_or_none, report)``.  Zero selected tables give an empty
    table for ``append`` and ``None`` for ``summary`` / ``pivot``.
    """
    selected = [table for table in tables if table.selected]
    report = ConsolidationReport(
        tables_in=len(selected), rows_in=sum(len(table) for table in selected)
    )

    result: Table | None
    if settings.consolidation_type == "append":
        result = append_rows(
            selected,
            skip_empty_rows=settings.skip_empty_rows,
            preserve_headers=settings.preserve_headers,
            report=report,
        )
    elif settings.consolidation_type == "summary":
        result = summarize(selected, settings, report)
    elif settings.consolidation_type == "pivot":
        result = pivot(selected, settings, report)
    else:
        raise ValueError(f"Unknown consolidation type: {settings.consolidation_type!r}")

    if result is not None:
        report.rows_out = len(result)
    return result, report


def consolidate(tables: Sequence[Table], settings: ConsolidationSettings) -> Table | None:
    result, _report = consolidate_with_report(tables, settings)
    return result

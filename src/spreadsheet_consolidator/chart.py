"""Chart-ready projections of an output table (read-only)."""

from __future__ import annotations

from typing import Any

from spreadsheet_consolidator.models import Table
from spreadsheet_consolidator.values import is_numeric, to_number, to_text

ChartRow = dict[str, Any]


def project_chart(table: Table, group_by_column: str) -> list[ChartRow]:
    """Project every row to ``{"name": <group>, <column>: <number>, ...}``."""
    others = [column for column in table.columns or [] if column != group_by_column]
    projected: list[ChartRow] = []
    for row in table.rows:
        item: ChartRow = {"name": to_text(row.get(group_by_column))}
        for column in others:
            item[column] = to_number(row.get(column))
        projected.append(item)
    return projected


def chart_columns(table: Table, max_columns: int = 2) -> list[str]:
    """First *max_columns* columns whose first-row value reads as a number."""
    if not table.rows:
        return []
    first = table.rows[0]
    numeric = [column for column in table.columns or [] if is_numeric(first.get(column))]
    return numeric[:max_columns]


def preview_chart(table: Table, max_rows: int = 5, max_columns: int = 2) -> list[ChartRow]:
    """Quick-look series: the first rows, named ``Row 1``, ``Row 2``, ..."""
    columns = chart_columns(table, max_columns)
    preview: list[ChartRow] = []
    for index, row in enumerate(table.rows[:max_rows], start=1):
        item: ChartRow = {"name": f"Row {index}"}
        for column in columns:
            item[column] = to_number(row.get(column))
        preview.append(item)
    return preview

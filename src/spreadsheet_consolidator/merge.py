"""Merge engine — vertical concatenation or horizontal join by key."""

from __future__ import annotations

from collections.abc import Sequence

from spreadsheet_consolidator.consolidate import append_rows
from spreadsheet_consolidator.models import ConsolidationReport, MergeOptions, Row, Table
from spreadsheet_consolidator.values import is_empty_value

MERGED_NAME = "Merged"

# every empty key value (None, NaN, "") shares this bucket
_EMPTY_KEY = object()


def conflict_label(field_name: str, table_name: str) -> str:
    return f"{field_name} ({table_name})"


def _values_differ(left: object, right: object) -> bool:
    if is_empty_value(left) and is_empty_value(right):
        return False
    try:
        return bool(left != right)
    except (TypeError, ValueError):
        return True


def merge_horizontal(
    tables: Sequence[Table],
    key_column: str,
    *,
    ignore_empty_cells: bool = False,
    report: ConsolidationReport | None = None,
) -> Table:
    """Build one row per distinct *key_column* value.

    A field already holding a different value keeps it; the newcomer is
    stored as ``"<field> (<table name>)"``.
    """
    report = report if report is not None else ConsolidationReport()
    merged: dict[object, Row] = {}
    renamed = 0

    for table in tables:
        for row in table.rows:
            key_value = row.get(key_column)
            if is_empty_value(key_value):
                if ignore_empty_cells:
                    report.skipped_rows += 1
                    continue
                bucket: object = _EMPTY_KEY
            else:
                bucket = key_value
            target = merged.setdefault(bucket, {})
            for field_name, value in row.items():
                if (
                    field_name != key_column
                    and field_name in target
                    and _values_differ(target[field_name], value)
                ):
                    target[conflict_label(field_name, table.name)] = value
                    renamed += 1
                else:
                    target[field_name] = value

    rows = list(merged.values())
    columns: dict[str, None] = {}
    for row in rows:
        for field_name in row:
            columns.setdefault(field_name, None)

    if report.skipped_rows:
        count = report.skipped_rows
        report.warnings.append(
            f"Dropped {count} row{'' if count == 1 else 's'} with an empty {key_column!r}"
        )
    if renamed:
        report.warnings.append(
            f"Kept {renamed} conflicting value{'' if renamed == 1 else 's'} "
            "under source-suffixed columns"
        )
    return Table(name=MERGED_NAME, rows=rows, columns=list(columns))


def merge_with_report(
    tables: Sequence[Table], options: MergeOptions
) -> tuple[Table | None, ConsolidationReport]:
    """Merge the selected *tables*; returns ``(table_or_none, report)``.

    ``vertical`` always applies.  ``horizontal`` needs two or more selected
    tables and a key column, otherwise the result is ``None``.
    """
    selected = [table for table in tables if table.selected]
    report = ConsolidationReport(
        tables_in=len(selected), rows_in=sum(len(table) for table in selected)
    )

    result: Table | None
    if options.merge_type == "vertical":
        result = append_rows(
            selected,
            skip_empty_rows=False,
            preserve_headers=True,
            report=report,
            name=MERGED_NAME,
        )
    elif options.merge_type == "horizontal":
        if len(selected) < 2 or options.key_column is None:
            result = None
        else:
            result = merge_horizontal(
                selected,
                options.key_column,
                ignore_empty_cells=options.ignore_empty_cells,
                report=report,
            )
    else:
        raise ValueError(f"Unknown merge type: {options.merge_type!r}")

    if result is not None:
        report.rows_out = len(result)
    return result, report


def merge(tables: Sequence[Table], options: MergeOptions) -> Table | None:
    result, _report = merge_with_report(tables, options)
    return result

"""Excel writer — produces Consolidated.xlsx from an output table."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, cast

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table as ExcelTable
from openpyxl.worksheet.table import TableStyleInfo
from openpyxl.worksheet.worksheet import Worksheet

from spreadsheet_consolidator.models import (
    ConsolidationReport,
    ConsolidationSettings,
    MergeOptions,
    Table,
)

REPORT_FILENAME = "Consolidated.xlsx"

# ── Style constants ──────────────────────────────────────────────

HEADER_FONT = Font(name="Calibri", bold=True, size=11, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="2F5496", end_color="2F5496", fill_type="solid")
HEADER_ALIGN = Alignment(horizontal="center", vertical="center", wrap_text=True)

TITLE_FONT = Font(name="Calibri", bold=True, size=14, color="2F5496")
SUBTITLE_FONT = Font(name="Calibri", bold=False, size=10, color="808080")
LABEL_FONT = Font(name="Calibri", bold=True, size=11)
VALUE_FONT = Font(name="Calibri", size=11)
WARN_FONT = Font(name="Calibri", italic=True, size=10, color="CC6600")

NOTE_FILL = PatternFill(start_color="FFF2CC", end_color="FFF2CC", fill_type="solid")
SETTINGS_FILL = PatternFill(start_color="D6E4F0", end_color="D6E4F0", fill_type="solid")

DECIMAL_FMT = "#,##0.00"
INT_FMT = "#,##0"

_AUTO_WIDTH_SAMPLE_ROWS = 300
_EXCEL_FORMULA_PREFIXES = ("=", "+", "-", "@")


# ── Helpers ──────────────────────────────────────────────────────


def _style_header(ws: Worksheet, ncols: int) -> None:
    for c in range(1, ncols + 1):
        cell = ws.cell(row=1, column=c)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGN


def _auto_width(ws: Worksheet) -> None:
    max_row = min(ws.max_row, _AUTO_WIDTH_SAMPLE_ROWS + 1)  # include header row
    for c_idx in range(1, ws.max_column + 1):
        width = max(
            len(str(row[0].value or ""))
            for row in ws.iter_rows(min_row=1, max_row=max_row, min_col=c_idx, max_col=c_idx)
        )
        ws.column_dimensions[get_column_letter(c_idx)].width = min(width + 4, 40)


def _number_format(series: pd.Series) -> str | None:
    if pd.api.types.is_bool_dtype(series):
        return None
    if pd.api.types.is_integer_dtype(series):
        return INT_FMT
    if pd.api.types.is_float_dtype(series):
        return DECIMAL_FMT
    return None


def _apply_number_formats(ws: Worksheet, df: pd.DataFrame) -> None:
    """Format numeric data columns (rows 2+) by dtype."""
    if ws.max_row < 2:
        return
    for c_idx, name in enumerate(df.columns, 1):
        fmt = _number_format(df[name])
        if not fmt:
            continue
        for row in ws.iter_rows(min_row=2, max_row=ws.max_row, min_col=c_idx, max_col=c_idx):
            for cell in row:
                cell.number_format = fmt


def _sanitize_table_name(name: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9_]", "_", name)
    if not cleaned:
        cleaned = "Table"
    if not re.match(r"^[A-Za-z_]", cleaned):
        cleaned = f"_{cleaned}"
    return cleaned[:255]


def _unique_table_name(ws: Worksheet, base_name: str) -> str:
    parent = ws.parent
    if parent is None:
        return base_name

    existing: set[str] = set()
    for sheet in parent.worksheets:
        existing.update(cast(Iterable[str], sheet.tables.keys()))
    candidate = base_name
    suffix = 1
    while candidate in existing:
        suffix_str = f"_{suffix}"
        candidate = f"{base_name[: 255 - len(suffix_str)]}{suffix_str}"
        suffix += 1
    return candidate


def _add_excel_table(ws: Worksheet, name: str, ncols: int, nrows: int) -> None:
    """Turn the data range into a proper Excel Table object."""
    if nrows < 1 or ncols < 1:
        return
    ref = f"A1:{get_column_letter(ncols)}{nrows + 1}"  # +1 for header
    table = ExcelTable(displayName=_unique_table_name(ws, _sanitize_table_name(name)), ref=ref)
    table.tableStyleInfo = TableStyleInfo(
        name="TableStyleMedium9", showFirstColumn=False,
        showLastColumn=False, showRowStripes=True, showColumnStripes=False,
    )
    ws.add_table(table)


def _excel_value(val: Any) -> Any:
    try:
        if pd.isna(val):
            return None
    except (TypeError, ValueError):
        return str(val)

    if isinstance(val, pd.Timestamp):
        val = val.to_pydatetime()
    if isinstance(val, datetime) and val.tzinfo:
        return val.replace(tzinfo=None)

    if isinstance(val, str):
        if val.startswith("'"):
            return val
        stripped = val.lstrip()
        if stripped and stripped[0] in _EXCEL_FORMULA_PREFIXES:
            return f"'{val}"

    item = getattr(val, "item", None)
    if callable(item):
        return item()
    return val


def _df_to_sheet(wb: Workbook, name: str, df: pd.DataFrame) -> Worksheet:
    ws = wb.create_sheet(title=name)
    col_names = [str(column) for column in df.columns]

    if not col_names:
        ws.cell(row=1, column=1, value="No data").font = VALUE_FONT
        ws.column_dimensions["A"].width = 18
        return ws

    for c_idx, col_name in enumerate(col_names, 1):
        ws.cell(row=1, column=c_idx, value=col_name)
    for r_idx, row_vals in enumerate(df.itertuples(index=False, name=None), 2):
        for c_idx, val in enumerate(row_vals, 1):
            ws.cell(row=r_idx, column=c_idx, value=_excel_value(val))
    _style_header(ws, len(col_names))
    _apply_number_formats(ws, df)
    ws.freeze_panes = "A2"
    _auto_width(ws)
    # Excel tables need unique, non-empty headers
    if len(df) > 0 and len(set(col_names)) == len(col_names) and all(col_names):
        _add_excel_table(ws, name, len(col_names), len(df))
    elif len(df) > 0:
        ws.auto_filter.ref = ws.dimensions
    return ws


def _fill_row(ws: Worksheet, row: int, fill: PatternFill) -> None:
    for c in range(1, 5):
        ws.cell(row=row, column=c).fill = fill


def _write_summary(
    wb: Workbook,
    table: Table,
    report: ConsolidationReport,
    settings: ConsolidationSettings | MergeOptions | None,
) -> None:
    ws = wb.create_sheet(title="Summary")

    ws.cell(row=1, column=1, value=f"spreadsheet-consolidator — {table.name}").font = TITLE_FONT
    ws.merge_cells("A1:D1")
    generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    ws.cell(row=2, column=1, value=f"Generated {generated}").font = SUBTITLE_FONT
    ws.merge_cells("A2:D2")

    # ── Notes block (from the report) ────────────────────────────
    row = 4
    ws.cell(row=row, column=1, value="Notes").font = LABEL_FONT
    ws.merge_cells(f"A{row}:D{row}")
    _fill_row(ws, row, NOTE_FILL)
    row += 1
    ws.cell(row=row, column=1, value=f"Tables: {report.tables_in}")
    ws.cell(row=row, column=2, value=f"Rows in: {report.rows_in}")
    ws.cell(row=row, column=3, value=f"Rows out: {report.rows_out}")
    ws.cell(row=row, column=4, value=f"Skipped: {report.skipped_rows}")
    _fill_row(ws, row, NOTE_FILL)
    row += 1
    for warn in report.warnings or ["No warnings"]:
        font = WARN_FONT if report.warnings else VALUE_FONT
        text = f"⚠ {warn}" if report.warnings else warn
        ws.cell(row=row, column=1, value=text).font = font
        _fill_row(ws, row, NOTE_FILL)
        row += 1

    # ── Settings block ───────────────────────────────────────────
    if settings is not None:
        row += 1
        ws.cell(row=row, column=1, value="Settings").font = LABEL_FONT
        ws.merge_cells(f"A{row}:D{row}")
        _fill_row(ws, row, SETTINGS_FILL)
        row += 1
        for label, value in settings.to_dict().items():
            if isinstance(value, list):
                value = ", ".join(value)
            lbl_cell = ws.cell(row=row, column=1, value=label)
            lbl_cell.font = LABEL_FONT
            lbl_cell.fill = SETTINGS_FILL
            val_cell = ws.cell(row=row, column=2, value="" if value is None else str(value))
            val_cell.font = VALUE_FONT
            val_cell.fill = SETTINGS_FILL
            row += 1

    ws.column_dimensions["A"].width = 24
    ws.column_dimensions["B"].width = 24
    ws.column_dimensions["C"].width = 18
    ws.column_dimensions["D"].width = 18


# ── Public API ───────────────────────────────────────────────────


def write_report(
    out_dir: Path,
    table: Table,
    report: ConsolidationReport | None = None,
    settings: ConsolidationSettings | MergeOptions | None = None,
    chart: Sequence[Mapping[str, Any]] | None = None,
) -> Path:
    """Write ``Consolidated.xlsx`` and return the path.

    Sheets: ``Summary`` (notes + settings), ``Data`` (the output table) and,
    when *chart* is given, ``Chart`` with the projected series.
    """
    if report is None:
        report = ConsolidationReport(rows_out=len(table))

    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    report_path = out_dir / REPORT_FILENAME

    wb = Workbook()
    active_sheet = wb.active
    if active_sheet is not None:
        wb.remove(active_sheet)  # remove default sheet

    _write_summary(wb, table, report, settings)
    _df_to_sheet(wb, "Data", table.to_frame())
    if chart is not None:
        _df_to_sheet(wb, "Chart", pd.DataFrame.from_records(list(chart)))

    tmp_path = out_dir / "Consolidated.tmp.xlsx"
    wb.save(tmp_path)
    tmp_path.replace(report_path)
    return report_path

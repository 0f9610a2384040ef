"""I/O helpers — decode input files into tables, write JSON artifacts."""

from __future__ import annotations

import json
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Literal, cast

import pandas as pd

from spreadsheet_consolidator.models import Row, Table
from spreadsheet_consolidator.values import is_missing

_EXCEL_SUFFIXES = (".xlsx", ".xlsm", ".xltx", ".xltm")

# ── Loading ──────────────────────────────────────────────────────


def load_table(path: Path, delimiter: str | None = None) -> pd.DataFrame:
    """Load a CSV or Excel file and return a raw DataFrame.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ValueError
        If the extension is not supported, or CSV decoding/parsing fails.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".csv":
        last_exc: Exception | None = None
        engine: Literal["c", "python"] = "c" if delimiter else "python"
        for encoding in ("utf-8-sig", "utf-8", "latin-1"):
            try:
                return pd.read_csv(
                    path,
                    sep=delimiter or None,
                    engine=engine,
                    encoding=encoding,
                    encoding_errors="strict",
                    skip_blank_lines=False,
                )
            except (UnicodeDecodeError, pd.errors.ParserError) as exc:
                last_exc = exc
        raise ValueError(f"Could not read CSV {path} (decode or parse failed)") from last_exc

    if suffix in _EXCEL_SUFFIXES:
        read_excel = cast(Callable[..., pd.DataFrame], getattr(pd, "read_excel"))
        return read_excel(path, engine="openpyxl")

    raise ValueError(f"Unsupported file type: {suffix!r}. Use .csv or .xlsx")


def _python_value(val: Any) -> Any:
    """Map pandas/numpy cells onto plain Python scalars (missing -> None)."""
    if is_missing(val):
        return None
    if isinstance(val, pd.Timestamp):
        return val.to_pydatetime()
    item = getattr(val, "item", None)
    if callable(item):
        return item()
    return val


def frame_to_table(df: pd.DataFrame, name: str) -> Table:
    """Convert a decoded DataFrame into a :class:`Table` named *name*."""
    columns = [str(column) for column in df.columns]
    rows: list[Row] = []
    for values in df.itertuples(index=False, name=None):
        rows.append({col: _python_value(val) for col, val in zip(columns, values)})
    return Table(name=name, rows=rows, columns=columns)


def read_table(path: Path, delimiter: str | None = None, name: str | None = None) -> Table:
    """Load *path* and wrap it as a selected table named after the file."""
    path = Path(path)
    return frame_to_table(load_table(path, delimiter=delimiter), name or path.name)


# ── Writing ──────────────────────────────────────────────────────


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    item = getattr(obj, "item", None)
    if callable(item):
        converted = item()
        if isinstance(converted, (str, int, float, bool)) or converted is None:
            return converted
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def write_json(path: Path, data: Any) -> Path:
    """Write *data* as pretty-printed JSON to *path* (atomic + deterministic)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = json.dumps(
        data,
        indent=2,
        sort_keys=True,
        ensure_ascii=False,
        default=_json_default,
    ) + "\n"
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(payload, encoding="utf-8")
    tmp_path.replace(path)
    return path

"""Data models / typed dataclasses used across the package."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from numbers import Integral
from typing import Any, Literal, get_args
from uuid import uuid4

import pandas as pd

Row = dict[str, Any]
ConsolidationType = Literal["append", "summary", "pivot"]
AggregationFunction = Literal["sum", "average", "min", "max", "count"]
MergeType = Literal["vertical", "horizontal"]

CONSOLIDATION_TYPES: tuple[str, ...] = get_args(ConsolidationType)
AGGREGATION_FUNCTIONS: tuple[str, ...] = get_args(AggregationFunction)
MERGE_TYPES: tuple[str, ...] = get_args(MergeType)


def _to_non_negative_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TypeError(f"{field_name} must be an integer")
    result = int(value)
    if result < 0:
        raise ValueError(f"{field_name} must be >= 0")
    return result


def _to_string_list(values: Sequence[Any] | None, field_name: str) -> list[str]:
    if values is None:
        return []
    if isinstance(values, str):
        raise TypeError(f"{field_name} must be a sequence of strings")
    normalized: list[str] = []
    for item in values:
        if not isinstance(item, str):
            raise TypeError(f"{field_name} items must be strings")
        normalized.append(item)
    return normalized


def _to_optional_column(value: Any, field_name: str) -> str | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string or None")
    return value


def _to_bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"{field_name} must be a boolean")
    return value


def _to_choice(value: Any, choices: tuple[str, ...], field_name: str) -> str:
    if value not in choices:
        raise ValueError(
            f"Invalid {field_name}: {value!r}. Use {'/'.join(choices)}."
        )
    return str(value)


def _new_table_id() -> str:
    return uuid4().hex


@dataclass
class Table:
    """One imported dataset.

    ``columns`` defaults to the keys of the first row.  Rows are copied on
    construction so a table never shares row dicts with its caller.  ``id``
    is fixed once the table is built.
    """

    name: str
    rows: list[Row] = field(default_factory=list)
    columns: list[str] | None = None
    selected: bool = True
    id: str = field(default_factory=_new_table_id)

    def __post_init__(self) -> None:
        if not isinstance(self.name, str):
            raise TypeError("name must be a string")
        copied: list[Row] = []
        for row in self.rows:
            if not isinstance(row, Mapping):
                raise TypeError("rows items must be mappings")
            copied.append({str(key): val for key, val in row.items()})
        self.rows = copied
        if self.columns is None:
            self.columns = list(self.rows[0]) if self.rows else []
        else:
            self.columns = _to_string_list(self.columns, "columns")
        self.selected = _to_bool(self.selected, "selected")

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "id" and "id" in self.__dict__:
            raise AttributeError("Table.id is read-only")
        super().__setattr__(name, value)

    def __len__(self) -> int:
        return len(self.rows)

    def to_frame(self) -> pd.DataFrame:
        """Return the rows as a DataFrame in ``columns`` order."""
        return pd.DataFrame.from_records(self.rows, columns=self.columns)


@dataclass
class ConsolidationSettings:
    consolidation_type: ConsolidationType = "append"
    preserve_headers: bool = True
    skip_empty_rows: bool = True
    aggregation_function: AggregationFunction = "sum"
    group_by_column: str | None = None
    value_columns: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.consolidation_type = _to_choice(  # type: ignore[assignment]
            self.consolidation_type, CONSOLIDATION_TYPES, "consolidation type"
        )
        self.aggregation_function = _to_choice(  # type: ignore[assignment]
            self.aggregation_function, AGGREGATION_FUNCTIONS, "aggregation function"
        )
        self.preserve_headers = _to_bool(self.preserve_headers, "preserve_headers")
        self.skip_empty_rows = _to_bool(self.skip_empty_rows, "skip_empty_rows")
        self.group_by_column = _to_optional_column(self.group_by_column, "group_by_column")
        # ordered set: keep first occurrence
        self.value_columns = list(
            dict.fromkeys(_to_string_list(self.value_columns, "value_columns"))
        )

    def updated(self, **changes: Any) -> ConsolidationSettings:
        """Return a copy with only *changes* replaced."""
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "consolidation_type": self.consolidation_type,
            "preserve_headers": self.preserve_headers,
            "skip_empty_rows": self.skip_empty_rows,
            "aggregation_function": self.aggregation_function,
            "group_by_column": self.group_by_column,
            "value_columns": list(self.value_columns),
        }


@dataclass
class MergeOptions:
    merge_type: MergeType = "vertical"
    key_column: str | None = None
    ignore_empty_cells: bool = False

    def __post_init__(self) -> None:
        self.merge_type = _to_choice(self.merge_type, MERGE_TYPES, "merge type")  # type: ignore[assignment]
        self.key_column = _to_optional_column(self.key_column, "key_column")
        self.ignore_empty_cells = _to_bool(self.ignore_empty_cells, "ignore_empty_cells")

    def updated(self, **changes: Any) -> MergeOptions:
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "merge_type": self.merge_type,
            "key_column": self.key_column,
            "ignore_empty_cells": self.ignore_empty_cells,
        }


@dataclass
class ConsolidationReport:
    """Row accounting and warnings emitted alongside every engine call.

    Contract invariant: ``skipped_rows <= rows_in``.
    """

    tables_in: int = 0
    rows_in: int = 0
    rows_out: int = 0
    skipped_rows: int = 0
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.tables_in = _to_non_negative_int(self.tables_in, "tables_in")
        self.rows_in = _to_non_negative_int(self.rows_in, "rows_in")
        self.rows_out = _to_non_negative_int(self.rows_out, "rows_out")
        self.skipped_rows = _to_non_negative_int(self.skipped_rows, "skipped_rows")
        self.warnings = _to_string_list(self.warnings, "warnings")
        if self.skipped_rows > self.rows_in:
            raise ValueError("skipped_rows must be <= rows_in")

    def to_dict(self) -> dict[str, Any]:
        return {
            "tables_in": self.tables_in,
            "rows_in": self.rows_in,
            "rows_out": self.rows_out,
            "skipped_rows": self.skipped_rows,
            "warnings": list(self.warnings),
        }


@dataclass
class RunManifest:
    """Audit-trail manifest for a single CLI run."""

    tool: str = "spreadsheet-consolidator"
    version: str = ""
    command: str = ""
    inputs: list[dict[str, str]] = field(default_factory=list)
    output_dir: str = ""
    created_at_utc: str = ""
    rows_in: int = 0
    rows_out: int = 0
    status: str = "success"
    error_code: int | None = None
    error_message: str = ""

    def __post_init__(self) -> None:
        self.rows_in = _to_non_negative_int(self.rows_in, "rows_in")
        self.rows_out = _to_non_negative_int(self.rows_out, "rows_out")
        if self.status not in {"success", "failed"}:
            raise ValueError(f"status must be success or failed, got {self.status!r}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "version": self.version,
            "command": self.command,
            "inputs": [dict(item) for item in self.inputs],
            "output_dir": self.output_dir,
            "created_at_utc": self.created_at_utc,
            "rows_in": self.rows_in,
            "rows_out": self.rows_out,
            "status": self.status,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }

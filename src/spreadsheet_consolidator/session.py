"""Caller-owned session state: loaded tables, selection and settings.

The engine keeps nothing between calls; a :class:`Session` is the value a
front end holds on to and passes wholesale into each engine invocation.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from spreadsheet_consolidator.consolidate import consolidate_with_report, discover_columns
from spreadsheet_consolidator.merge import merge_with_report
from spreadsheet_consolidator.models import (
    ConsolidationReport,
    ConsolidationSettings,
    MergeOptions,
    Table,
)


class SessionError(ValueError):
    """A request the caller can reject before invoking the engine."""


@dataclass
class Session:
    tables: list[Table] = field(default_factory=list)
    settings: ConsolidationSettings = field(default_factory=ConsolidationSettings)
    merge_options: MergeOptions = field(default_factory=MergeOptions)
    result: Table | None = None

    # ── Tables ───────────────────────────────────────────────────

    def add_table(
        self,
        name: str,
        rows: Sequence[Mapping[str, Any]],
        columns: Sequence[str] | None = None,
    ) -> Table:
        return self.add(
            Table(
                name=name,
                rows=[dict(row) for row in rows],
                columns=None if columns is None else list(columns),
            )
        )

    def add(self, table: Table) -> Table:
        """Register an already decoded table (selected by default)."""
        self.tables.append(table)
        self._prune_column_choices()
        return table

    def get_table(self, table_id: str) -> Table:
        for table in self.tables:
            if table.id == table_id:
                return table
        raise KeyError(f"No table with id {table_id!r}")

    def remove_table(self, table_id: str) -> None:
        table = self.get_table(table_id)
        self.tables.remove(table)
        self.result = None
        self._prune_column_choices()

    def toggle_table(self, table_id: str) -> bool:
        table = self.get_table(table_id)
        table.selected = not table.selected
        return table.selected

    def select_all(self, selected: bool) -> None:
        for table in self.tables:
            table.selected = selected

    def selected_tables(self) -> list[Table]:
        return [table for table in self.tables if table.selected]

    def available_columns(self) -> list[str]:
        return discover_columns(self.tables)

    # ── Settings ─────────────────────────────────────────────────

    def update_settings(self, **changes: Any) -> ConsolidationSettings:
        self.settings = self.settings.updated(**changes)
        return self.settings

    def update_merge_options(self, **changes: Any) -> MergeOptions:
        self.merge_options = self.merge_options.updated(**changes)
        return self.merge_options

    def _prune_column_choices(self) -> None:
        """Drop column choices that no loaded table offers any more."""
        available = set(self.available_columns())
        settings = self.settings
        group = settings.group_by_column if settings.group_by_column in available else None
        values = [column for column in settings.value_columns if column in available]
        if group != settings.group_by_column or values != settings.value_columns:
            self.settings = settings.updated(group_by_column=group, value_columns=values)
        key = self.merge_options.key_column
        if key is not None and key not in available:
            self.merge_options = self.merge_options.updated(key_column=None)

    # ── Validation ───────────────────────────────────────────────

    def check_consolidation(self) -> list[Table]:
        """Return the selected tables or raise :class:`SessionError`."""
        selected = self.selected_tables()
        if not selected:
            raise SessionError("No tables selected. Load or select at least one table.")
        settings = self.settings
        if settings.consolidation_type in ("summary", "pivot"):
            if settings.group_by_column is None:
                raise SessionError(
                    f"A group-by column is required for {settings.consolidation_type}."
                )
            if not any(settings.group_by_column in (t.columns or []) for t in selected):
                raise SessionError(
                    f"Group-by column {settings.group_by_column!r} "
                    "is not present in any selected table."
                )
            if not settings.value_columns:
                raise SessionError(
                    f"At least one value column is required for {settings.consolidation_type}."
                )
        return selected

    def check_merge(self) -> list[Table]:
        selected = self.selected_tables()
        if len(selected) < 2:
            raise SessionError("Select at least two tables to merge.")
        if self.merge_options.merge_type == "horizontal" and not self.merge_options.key_column:
            raise SessionError("A key column is required for a horizontal merge.")
        return selected

    # ── Runs ─────────────────────────────────────────────────────

    def run_consolidation(self) -> tuple[Table, ConsolidationReport]:
        selected = self.check_consolidation()
        result, report = consolidate_with_report(selected, self.settings)
        if result is None or len(result) == 0:
            raise SessionError("Consolidation produced no rows from the selected tables.")
        self.result = result
        return result, report

    def run_merge(self) -> tuple[Table, ConsolidationReport]:
        selected = self.check_merge()
        result, report = merge_with_report(selected, self.merge_options)
        if result is None:
            raise SessionError("The selected tables could not be merged.")
        self.result = result
        return result, report

    def reset(self) -> None:
        self.result = None

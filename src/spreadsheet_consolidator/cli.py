"""CLI entry point for spreadsheet-consolidator."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table as RichTable

from spreadsheet_consolidator import __version__
from spreadsheet_consolidator.chart import ChartRow, preview_chart, project_chart
from spreadsheet_consolidator.consolidate import discover_columns
from spreadsheet_consolidator.io import read_table, write_json
from spreadsheet_consolidator.models import ConsolidationReport, RunManifest, Table
from spreadsheet_consolidator.qc import write_consolidation_report
from spreadsheet_consolidator.report import write_report
from spreadsheet_consolidator.session import Session, SessionError
from spreadsheet_consolidator.utils import describe_inputs, utcnow_iso

app = typer.Typer(
    name="sconsolidate",
    help="spreadsheet-consolidator — Combine several spreadsheets into one table.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()


class ConsolidationTypeOption(str, Enum):
    append = "append"
    summary = "summary"
    pivot = "pivot"


class AggregationOption(str, Enum):
    sum = "sum"
    average = "average"
    min = "min"
    max = "max"
    count = "count"


class MergeTypeOption(str, Enum):
    vertical = "vertical"
    horizontal = "horizontal"


# profile key -> (settings field, kind)
_CONSOLIDATE_PROFILE_KEYS: dict[str, tuple[str, str]] = {
    "type": ("consolidation_type", "text"),
    "group_by": ("group_by_column", "text"),
    "value": ("value_columns", "list"),
    "aggregation": ("aggregation_function", "text"),
    "skip_empty": ("skip_empty_rows", "bool"),
    "preserve_headers": ("preserve_headers", "bool"),
}
_MERGE_PROFILE_KEYS: dict[str, tuple[str, str]] = {
    "type": ("merge_type", "text"),
    "key": ("key_column", "text"),
    "ignore_empty": ("ignore_empty_cells", "bool"),
}
_TRUE_WORDS = {"1", "true", "yes", "on"}
_FALSE_WORDS = {"0", "false", "no", "off"}


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


def _printer(quiet: bool) -> Callable[..., None]:
    return _noop if quiet else console.print


def _err(msg: str) -> None:
    console.print(f"[red]x[/red] {msg}")


# ── Helpers ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"spreadsheet-consolidator v{__version__}")
        raise typer.Exit()


def _load_profile_lines(profile: Path | None) -> list[str]:
    """Return the ``key=value`` lines of a profile file."""
    if not profile:
        return []
    if not profile.exists():
        raise ValueError(f"Profile not found: {profile} (expected lines like group_by=Region)")
    if profile.is_dir():
        raise ValueError(f"Profile is a directory, not a file: {profile}")
    try:
        text = profile.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read profile {profile}: {exc}") from exc

    lines: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        lines.append(stripped)
    return lines


def _parse_bool(raw: str, key: str) -> bool:
    word = raw.strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    raise ValueError(f"Invalid boolean for {key!r}: {raw!r} (use true/false)")


def _parse_profile(lines: list[str], keys: dict[str, tuple[str, str]]) -> dict[str, Any]:
    """Parse profile lines into a partial settings update."""
    changes: dict[str, Any] = {}
    for item in lines:
        if "=" not in item:
            raise ValueError(f"Invalid profile line: {item!r}  (expected key=value)")
        key, raw = (part.strip() for part in item.split("=", 1))
        if key not in keys:
            raise ValueError(
                f"Unknown profile key {key!r}. Use one of: {', '.join(sorted(keys))}"
            )
        field_name, kind = keys[key]
        if kind == "list":
            changes.setdefault(field_name, []).append(raw)
        elif kind == "bool":
            changes[field_name] = _parse_bool(raw, key)
        else:
            changes[field_name] = raw or None
    return changes


def _write_manifest(
    out_dir: Path,
    command: str,
    inputs: list[Path],
    created_at: str,
    report: ConsolidationReport,
    *,
    status: str = "success",
    error_code: int | None = None,
    error_message: str = "",
) -> Path:
    manifest = RunManifest(
        version=__version__,
        command=command,
        inputs=describe_inputs(inputs),
        output_dir=str(out_dir.resolve()),
        created_at_utc=created_at,
        rows_in=report.rows_in,
        rows_out=report.rows_out,
        status=status,
        error_code=error_code,
        error_message=error_message,
    )
    return write_json(out_dir / "run_manifest.json", manifest.to_dict())


def _fail(
    out_dir: Path,
    command: str,
    inputs: list[Path],
    created_at: str,
    *,
    message: str,
    report: ConsolidationReport | None = None,
    error_code: int = 2,
) -> typer.Exit:
    """Write failure artifacts, print the error and return the exit to raise."""
    failed = ConsolidationReport(
        tables_in=report.tables_in if report else 0,
        rows_in=report.rows_in if report else 0,
        warnings=[*(report.warnings if report else []), message],
    )
    report_path = write_consolidation_report(out_dir, failed)
    manifest_path = _write_manifest(
        out_dir,
        command,
        inputs,
        created_at,
        failed,
        status="failed",
        error_code=error_code,
        error_message=message,
    )
    _err(message)
    console.print(f"  Report   -> {report_path}")
    console.print(f"  Manifest -> {manifest_path}")
    return typer.Exit(code=error_code)


def _preview_or_none(result: Table) -> list[ChartRow] | None:
    """Quick-look chart rows, or ``None`` when no column reads as a number."""
    preview = preview_chart(result)
    if not preview or len(preview[0]) < 2:
        return None
    return preview


def _load_session(inputs: list[Path], delimiter: str | None, echo: Callable[..., None]) -> Session:
    session = Session()
    for path in inputs:
        echo(f"[blue]>[/blue] Loading {path.name} …")
        table = session.add(read_table(path, delimiter=delimiter))
        echo(f"  {len(table)} rows x {len(table.columns or [])} columns")
    return session


def _run_job(
    *,
    command: str,
    inputs: list[Path],
    out_dir: Path,
    delimiter: str | None,
    quiet: bool,
    configure: Callable[[Session], Any],
    execute: Callable[[Session], tuple[Table, ConsolidationReport]],
    chart_for: Callable[[Session, Table], list[ChartRow] | None],
) -> None:
    """Shared load -> configure -> run -> write flow of consolidate and merge."""
    echo = _printer(quiet)
    created_at = utcnow_iso()
    out_dir.mkdir(parents=True, exist_ok=True)

    if not quiet:
        listing = "\n".join(f"  {path}" for path in inputs)
        console.print(Panel(
            f"[bold]spreadsheet-consolidator[/bold] v{__version__}  [dim]{command}[/dim]\n"
            f"Inputs:\n{listing}\nOutput: {out_dir}",
            title="Run Start", border_style="blue",
        ))

    try:
        session = _load_session(inputs, delimiter, echo)
    except (FileNotFoundError, ValueError, OSError) as exc:
        raise _fail(out_dir, command, inputs, created_at, message=str(exc))

    try:
        configure(session)
    except (TypeError, ValueError) as exc:
        raise _fail(out_dir, command, inputs, created_at, message=str(exc))

    try:
        echo(f"[blue]>[/blue] Running {command} …")
        try:
            result, report = execute(session)
        except SessionError as exc:
            selected = session.selected_tables()
            partial = ConsolidationReport(
                tables_in=len(selected), rows_in=sum(len(t) for t in selected)
            )
            raise _fail(out_dir, command, inputs, created_at, message=str(exc), report=partial)

        report_path = write_consolidation_report(out_dir, report)
        echo(f"  Report   -> {report_path}")
        if not quiet:
            for warning in report.warnings:
                console.print(f"  [yellow]![/yellow] {warning}")
            console.print(f"  {report.rows_out} rows x {len(result.columns or [])} columns")

        settings = session.settings if command == "consolidate" else session.merge_options
        workbook_path = write_report(
            out_dir, result, report, settings=settings, chart=chart_for(session, result)
        )
        echo(f"  Workbook -> {workbook_path}")

        manifest_path = _write_manifest(out_dir, command, inputs, created_at, report)
        echo(f"  Manifest -> {manifest_path}")

        if not quiet:
            console.print(Panel(
                f"[green]Done[/green] — {report.rows_out} rows -> {workbook_path}",
                title="Run Complete", border_style="green",
            ))
    except typer.Exit:
        raise
    except Exception as exc:
        raise _fail(
            out_dir,
            command,
            inputs,
            created_at,
            message=f"Unexpected internal error: {exc}",
            error_code=1,
        )


# ── Callbacks ────────────────────────────────────────────────────


@app.callback()
def main(
    version: bool | None = typer.Option(
        None, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """spreadsheet-consolidator CLI."""


# ── consolidate command ──────────────────────────────────────────


@app.command()
def consolidate(
    inputs: list[Path] = typer.Option(
        ..., "--input", "-i",
        help="CSV or XLSX input file (repeat for several tables).",
        exists=True, readable=True,
    ),
    out_dir: Path = typer.Option(
        Path("output"), "--out-dir", "-o",
        help="Output directory for workbook + report + manifest.",
    ),
    consolidation_type: ConsolidationTypeOption | None = typer.Option(
        None, "--type", "-t",
        help="Strategy: append, summary or pivot (default append).",
    ),
    group_by: str | None = typer.Option(
        None, "--group-by", "-g",
        help="Grouping column for summary / pivot.",
    ),
    value_columns: list[str] | None = typer.Option(
        None, "--value", "-v",
        help="Value column to aggregate (repeatable).",
    ),
    aggregation: AggregationOption | None = typer.Option(
        None, "--aggregation", "-a",
        help="Aggregation: sum, average, min, max or count (default sum).",
    ),
    skip_empty: bool | None = typer.Option(
        None, "--skip-empty/--keep-empty",
        help="Drop empty rows (append) or rows with an empty group value.",
    ),
    preserve_headers: bool | None = typer.Option(
        None, "--preserve-headers/--tag-source",
        help="Keep headers as-is, or add a 'Source file' column (append).",
    ),
    profile: Path | None = typer.Option(
        None, "--profile",
        help="Profile file with key=value settings lines.",
    ),
    delimiter: str | None = typer.Option(
        None, "--delimiter",
        help="CSV delimiter (sniffed when omitted).",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output; still writes all artifacts.",
    ),
) -> None:
    """Consolidate tables by appending, summarising or pivoting them."""

    def configure(session: Session) -> None:
        changes = _parse_profile(_load_profile_lines(profile), _CONSOLIDATE_PROFILE_KEYS)
        if consolidation_type is not None:
            changes["consolidation_type"] = consolidation_type.value
        if group_by is not None:
            changes["group_by_column"] = group_by
        if value_columns:
            changes["value_columns"] = list(value_columns)
        if aggregation is not None:
            changes["aggregation_function"] = aggregation.value
        if skip_empty is not None:
            changes["skip_empty_rows"] = skip_empty
        if preserve_headers is not None:
            changes["preserve_headers"] = preserve_headers
        session.update_settings(**changes)

    def chart_for(session: Session, result: Table) -> list[ChartRow] | None:
        settings = session.settings
        if settings.consolidation_type == "append" or settings.group_by_column is None:
            return _preview_or_none(result)
        return project_chart(result, settings.group_by_column)

    _run_job(
        command="consolidate",
        inputs=inputs,
        out_dir=out_dir,
        delimiter=delimiter,
        quiet=quiet,
        configure=configure,
        execute=lambda session: session.run_consolidation(),
        chart_for=chart_for,
    )


# ── merge command ────────────────────────────────────────────────


@app.command()
def merge(
    inputs: list[Path] = typer.Option(
        ..., "--input", "-i",
        help="CSV or XLSX input file (repeat, at least two).",
        exists=True, readable=True,
    ),
    out_dir: Path = typer.Option(
        Path("output"), "--out-dir", "-o",
        help="Output directory for workbook + report + manifest.",
    ),
    merge_type: MergeTypeOption | None = typer.Option(
        None, "--type", "-t",
        help="vertical (stack rows) or horizontal (join by key).",
    ),
    key_column: str | None = typer.Option(
        None, "--key", "-k",
        help="Key column for a horizontal merge.",
    ),
    ignore_empty: bool | None = typer.Option(
        None, "--ignore-empty/--keep-empty-keys",
        help="Drop rows whose key value is empty (horizontal).",
    ),
    profile: Path | None = typer.Option(
        None, "--profile",
        help="Profile file with key=value settings lines.",
    ),
    delimiter: str | None = typer.Option(
        None, "--delimiter",
        help="CSV delimiter (sniffed when omitted).",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output; still writes all artifacts.",
    ),
) -> None:
    """Merge tables vertically or join them horizontally on a key column."""

    def configure(session: Session) -> None:
        changes = _parse_profile(_load_profile_lines(profile), _MERGE_PROFILE_KEYS)
        if merge_type is not None:
            changes["merge_type"] = merge_type.value
        if key_column is not None:
            changes["key_column"] = key_column
        if ignore_empty is not None:
            changes["ignore_empty_cells"] = ignore_empty
        session.update_merge_options(**changes)

    _run_job(
        command="merge",
        inputs=inputs,
        out_dir=out_dir,
        delimiter=delimiter,
        quiet=quiet,
        configure=configure,
        execute=lambda session: session.run_merge(),
        chart_for=lambda _session, result: _preview_or_none(result),
    )


# ── columns command ──────────────────────────────────────────────


@app.command()
def columns(
    inputs: list[Path] = typer.Option(
        ..., "--input", "-i",
        help="CSV or XLSX input file (repeatable).",
        exists=True, readable=True,
    ),
    delimiter: str | None = typer.Option(
        None, "--delimiter",
        help="CSV delimiter (sniffed when omitted).",
    ),
) -> None:
    """List the columns available across the input files."""
    try:
        tables = [read_table(path, delimiter=delimiter) for path in inputs]
    except (FileNotFoundError, ValueError, OSError) as exc:
        _err(str(exc))
        raise typer.Exit(code=2)

    tbl = RichTable(title="Available Columns", show_lines=False)
    tbl.add_column("Column", style="bold")
    tbl.add_column("Tables")
    for column in discover_columns(tables):
        owners = [table.name for table in tables if column in (table.columns or [])]
        tbl.add_row(column, ", ".join(owners))
    console.print(tbl)

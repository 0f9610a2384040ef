"""Consolidation report persistence."""

from __future__ import annotations

from pathlib import Path

from spreadsheet_consolidator.io import write_json
from spreadsheet_consolidator.models import ConsolidationReport

REPORT_FILENAME = "consolidation_report.json"


def write_consolidation_report(out_dir: Path, report: ConsolidationReport) -> Path:
    """Write ``consolidation_report.json`` into *out_dir* and return the path."""
    return write_json(Path(out_dir) / REPORT_FILENAME, report.to_dict())

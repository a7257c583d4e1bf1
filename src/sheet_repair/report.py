"""Findings report — pandas summaries and the Findings_Report.xlsx writer."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, cast

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo
from openpyxl.worksheet.worksheet import Worksheet

from sheet_repair.models import Finding, Severity

# ── Style constants ──────────────────────────────────────────────

HEADER_FONT = Font(name="Calibri", bold=True, size=11, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="2F5496", end_color="2F5496", fill_type="solid")
HEADER_ALIGN = Alignment(horizontal="center", vertical="center", wrap_text=True)

TITLE_FONT = Font(name="Calibri", bold=True, size=14, color="2F5496")
SUBTITLE_FONT = Font(name="Calibri", bold=False, size=10, color="808080")
LABEL_FONT = Font(name="Calibri", bold=True, size=11)
VALUE_FONT = Font(name="Calibri", size=11)

KPI_FILL = PatternFill(start_color="D6E4F0", end_color="D6E4F0", fill_type="solid")
SEVERITY_FILLS: dict[str, PatternFill] = {
    Severity.CRITICAL.value: PatternFill(start_color="F8CBAD", end_color="F8CBAD", fill_type="solid"),
    Severity.WARNING.value: PatternFill(start_color="FFF2CC", end_color="FFF2CC", fill_type="solid"),
    Severity.INFO.value: PatternFill(start_color="DDEBF7", end_color="DDEBF7", fill_type="solid"),
}

FINDING_COLUMNS: list[str] = [
    "index", "sheet", "cell", "kind", "severity", "value", "proposed", "reason",
]
SUMMARY_COLUMNS: list[str] = ["sheet", "kind", "severity", "count"]

_AUTO_WIDTH_SAMPLE_ROWS = 300
_MAX_COL_WIDTH = 60
_EXCEL_FORMULA_PREFIXES = ("=", "+", "-", "@")
_SEVERITY_ORDER = {s.value: i for i, s in enumerate(Severity)}


# ── DataFrames ───────────────────────────────────────────────────


def findings_frame(findings: Sequence[Finding]) -> pd.DataFrame:
    """One row per finding, in analysis order."""
    rows = [
        {
            "index": f.index if f.index is not None else i,
            "sheet": f.sheet,
            "cell": f.address,
            "kind": f.kind.value,
            "severity": f.severity.value,
            "value": f.value,
            "proposed": f.proposed or "",
            "reason": f.reason or "",
        }
        for i, f in enumerate(findings)
    ]
    return pd.DataFrame(rows, columns=FINDING_COLUMNS)


def summarize_findings(findings: Sequence[Finding]) -> pd.DataFrame:
    """Finding counts grouped by sheet, kind and severity.

    Sheets keep their analysis order; within a sheet, critical groups come
    first, then larger groups.
    """
    df = findings_frame(findings)
    if df.empty:
        return pd.DataFrame(columns=SUMMARY_COLUMNS)
    sheet_order = {name: i for i, name in enumerate(dict.fromkeys(df["sheet"]))}
    summary = (
        df.groupby(["sheet", "kind", "severity"], as_index=False, sort=False)
        .size()
        .rename(columns={"size": "count"})
    )
    summary["_sheet"] = summary["sheet"].map(sheet_order)
    summary["_severity"] = summary["severity"].map(_SEVERITY_ORDER)
    return (
        summary.sort_values(
            ["_sheet", "_severity", "count", "kind"], ascending=[True, True, False, True]
        )
        .drop(columns=["_sheet", "_severity"])
        .reset_index(drop=True)[SUMMARY_COLUMNS]
    )


def severity_counts(findings: Sequence[Finding]) -> dict[str, int]:
    """``{"critical": n, "warning": n, "info": n}``, always with all three keys."""
    counts = {s.value: 0 for s in Severity}
    for f in findings:
        counts[f.severity.value] += 1
    return counts


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
        letter = get_column_letter(c_idx)
        width = 0
        for row in ws.iter_rows(min_row=1, max_row=max_row, min_col=c_idx, max_col=c_idx):
            width = max(width, len(str(row[0].value or "")))
        ws.column_dimensions[letter].width = min(width + 4, _MAX_COL_WIDTH)


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
    if base_name not in existing:
        return base_name

    suffix = 1
    while True:
        suffix_str = f"_{suffix}"
        candidate = f"{base_name[: 255 - len(suffix_str)]}{suffix_str}"
        if candidate not in existing:
            return candidate
        suffix += 1


def _add_excel_table(ws: Worksheet, name: str, ncols: int, nrows: int) -> None:
    if nrows < 1 or ncols < 1:
        return
    ref = f"A1:{get_column_letter(ncols)}{nrows + 1}"  # +1 for header
    table = Table(displayName=_unique_table_name(ws, _sanitize_table_name(name)), ref=ref)
    table.tableStyleInfo = TableStyleInfo(
        name="TableStyleMedium9", showFirstColumn=False,
        showLastColumn=False, showRowStripes=True, showColumnStripes=False,
    )
    ws.add_table(table)


def _excel_value(val: Any) -> Any:
    """Store formulas and formula-like text as literal text."""
    try:
        if pd.isna(val):
            return None
    except (TypeError, ValueError):
        return val

    if isinstance(val, str):
        if val.startswith("'"):
            return val
        stripped = val.lstrip()
        if stripped and stripped[0] in _EXCEL_FORMULA_PREFIXES:
            return f"'{val}"
    return val


def _df_to_sheet(wb: Workbook, name: str, df: pd.DataFrame, *, severity_col: str | None = None) -> None:
    ws = wb.create_sheet(title=name)
    col_names = list(df.columns)

    for c_idx, col_name in enumerate(col_names, 1):
        ws.cell(row=1, column=c_idx, value=col_name)
    if df.empty:
        ws.cell(row=2, column=1, value="No findings").font = VALUE_FONT
    sev_idx = col_names.index(severity_col) if severity_col in col_names else None
    for r_idx, row_vals in enumerate(df.itertuples(index=False, name=None), 2):
        for c_idx, val in enumerate(row_vals, 1):
            ws.cell(row=r_idx, column=c_idx, value=_excel_value(val))
        if sev_idx is not None:
            fill = SEVERITY_FILLS.get(str(row_vals[sev_idx]))
            if fill is not None:
                ws.cell(row=r_idx, column=sev_idx + 1).fill = fill
    _style_header(ws, len(col_names))
    ws.freeze_panes = "A2"
    _auto_width(ws)
    if len(df) > 0:
        _add_excel_table(ws, name, len(col_names), len(df))


def _write_dashboard(
    wb: Workbook, findings: Sequence[Finding], source_name: str, sheets: Sequence[str]
) -> None:
    ws = wb.create_sheet(title="Dashboard")

    ws.cell(row=1, column=1, value="sheet-repair — Findings").font = TITLE_FONT
    ws.merge_cells("A1:D1")
    generated = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    ws.cell(row=2, column=1, value=f"{source_name} · generated {generated}").font = SUBTITLE_FONT
    ws.merge_cells("A2:D2")

    counts = severity_counts(findings)
    analysed = list(sheets) or list(dict.fromkeys(f.sheet for f in findings))
    metrics: list[tuple[str, Any]] = [
        ("Total findings", len(findings)),
        ("Critical", counts[Severity.CRITICAL.value]),
        ("Warnings", counts[Severity.WARNING.value]),
        ("Info", counts[Severity.INFO.value]),
        ("With proposed fix", sum(1 for f in findings if f.proposed)),
        ("Sheets analysed", len(analysed)),
    ]

    row = 4
    ws.cell(row=row, column=1, value="Key Metrics").font = LABEL_FONT
    ws.merge_cells(f"A{row}:D{row}")
    for c in range(1, 5):
        ws.cell(row=row, column=c).fill = KPI_FILL
    row += 1
    for label, value in metrics:
        lbl_cell = ws.cell(row=row, column=1, value=label)
        lbl_cell.font = LABEL_FONT
        lbl_cell.fill = KPI_FILL
        val_cell = ws.cell(row=row, column=2, value=value)
        val_cell.font = VALUE_FONT
        val_cell.fill = KPI_FILL
        val_cell.alignment = Alignment(horizontal="right")
        row += 1

    if analysed:
        row += 1
        ws.cell(row=row, column=1, value="Sheets").font = LABEL_FONT
        row += 1
        for name in analysed:
            ws.cell(row=row, column=1, value=_excel_value(name)).font = VALUE_FONT
            row += 1

    ws.column_dimensions["A"].width = 24
    ws.column_dimensions["B"].width = 14
    ws.column_dimensions["C"].width = 14
    ws.column_dimensions["D"].width = 14


# ── Public API ───────────────────────────────────────────────────


def write_report(
    out_dir: Path,
    findings: Sequence[Finding],
    *,
    source_name: str = "",
    sheets: Sequence[str] = (),
) -> Path:
    """Write ``Findings_Report.xlsx`` into *out_dir* and return the path."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    report_path = out_dir / "Findings_Report.xlsx"

    wb = Workbook()
    active_sheet = wb.active
    if active_sheet is not None:
        wb.remove(active_sheet)  # remove default sheet

    _write_dashboard(wb, findings, source_name, sheets)
    _df_to_sheet(wb, "Summary", summarize_findings(findings), severity_col="severity")
    _df_to_sheet(wb, "Findings", findings_frame(findings), severity_col="severity")

    tmp_path = out_dir / "Findings_Report.tmp.xlsx"
    wb.save(tmp_path)
    tmp_path.replace(report_path)
    return report_path

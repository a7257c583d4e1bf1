"""openpyxl-backed codec — workbook bytes in, cell grid out, and back."""

from __future__ import annotations

import io
from datetime import date, datetime, time
from pathlib import Path
from typing import Any

import openpyxl
from openpyxl.cell.cell import MergedCell
from openpyxl.worksheet.formula import ArrayFormula, DataTableFormula
from openpyxl.worksheet.worksheet import Worksheet

from sheet_repair.errors import DecodeError, EncodeError
from sheet_repair.grid import Cell, CellKind, CellRange, Sheet, Workbook

_NUMERIC_TYPES = (int, float, datetime, date, time)


# ── Decoding ─────────────────────────────────────────────────────


def _formula_text(value: Any) -> str | None:
    if isinstance(value, ArrayFormula):
        text = value.text or ""
    elif isinstance(value, str) and value.startswith("=") and len(value) > 1:
        text = value
    else:
        return None
    return text[1:] if text.startswith("=") else text


def _cached_values(ws: Worksheet | None) -> dict[tuple[int, int], tuple[Any, str]]:
    if ws is None:
        return {}
    cached: dict[tuple[int, int], tuple[Any, str]] = {}
    for row in ws.iter_rows():
        for cell in row:
            if isinstance(cell, MergedCell) or cell.value is None:
                continue
            if isinstance(cell.value, DataTableFormula):
                continue
            cached[(cell.row - 1, cell.column - 1)] = (cell.value, cell.data_type)
    return cached


def _to_cell(raw: Any, data_type: str, cached: tuple[Any, str] | None, number_format: str) -> Cell:
    formula = _formula_text(raw) if data_type == "f" or isinstance(raw, ArrayFormula) else None
    if formula is not None:
        value, cached_type = cached if cached is not None else (None, "n")
        error = str(value) if cached_type == "e" and value is not None else None
        return Cell(CellKind.FORMULA, value=value, formula=formula, error=error,
                    number_format=number_format)
    if data_type == "e":
        return Cell(CellKind.ERROR, value=str(raw), error=str(raw), number_format=number_format)
    if isinstance(raw, bool):
        return Cell(CellKind.TEXT, value=raw, number_format=number_format)
    if isinstance(raw, _NUMERIC_TYPES):
        return Cell(CellKind.NUMERIC, value=raw, number_format=number_format)
    return Cell(CellKind.TEXT, value=str(raw), number_format=number_format)


def _read_sheet(ws: Worksheet, cached_ws: Worksheet | None) -> Sheet:
    cached = _cached_values(cached_ws)
    cells: dict[tuple[int, int], Cell] = {}
    for row in ws.iter_rows():
        for cell in row:
            if isinstance(cell, MergedCell) or cell.value is None:
                continue
            key = (cell.row - 1, cell.column - 1)
            if isinstance(cell.value, DataTableFormula):
                # data table outputs keep only their computed value
                if key not in cached:
                    continue
                value, data_type = cached[key]
                cells[key] = _to_cell(value, data_type, None, cell.number_format)
                continue
            cells[key] = _to_cell(cell.value, cell.data_type, cached.get(key), cell.number_format)

    merged = [
        CellRange(rng.min_row - 1, rng.min_col - 1, rng.max_row - 1, rng.max_col - 1)
        for rng in sorted(ws.merged_cells.ranges, key=lambda r: (r.min_row, r.min_col))
    ]
    return Sheet(name=ws.title, cells=cells, merged=merged, worksheet=ws)


def decode(data: bytes) -> Workbook:
    """Decode workbook *data* into the cell-grid model.

    Raises
    ------
    DecodeError
        If the bytes are not a workbook openpyxl can read.
    """
    try:
        book = openpyxl.load_workbook(io.BytesIO(data), data_only=False)
        values = openpyxl.load_workbook(io.BytesIO(data), data_only=True)
        sheets: list[Sheet] = []
        for ws in book.worksheets:
            cached_ws = values[ws.title] if ws.title in values.sheetnames else None
            sheets.append(_read_sheet(ws, cached_ws))
        return Workbook(sheets=sheets, book=book)
    except Exception as exc:
        raise DecodeError(f"Could not read workbook: {exc}") from exc


def load_workbook_file(path: Path) -> Workbook:
    """Read *path* and decode it."""
    path = Path(path)
    if not path.exists():
        raise DecodeError(f"Input file not found: {path}")
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise DecodeError(f"Cannot read {path}: {exc}") from exc
    return decode(data)


# ── Encoding ─────────────────────────────────────────────────────


def _write_cell(ws: Worksheet, row: int, col: int, cell: Cell) -> None:
    target = ws.cell(row=row + 1, column=col + 1)
    if cell.kind is CellKind.FORMULA:
        target.value = f"={cell.formula}"
    elif cell.kind is CellKind.ERROR:
        target.value = cell.error or cell.value
    elif cell.kind is CellKind.TEXT and isinstance(cell.value, str):
        target.value = cell.value
        target.data_type = "s"
    else:
        target.value = cell.value
    if cell.number_format != "General":
        target.number_format = cell.number_format


def _build_book(workbook: Workbook) -> openpyxl.Workbook:
    book = openpyxl.Workbook()
    active = book.active
    if active is not None:
        book.remove(active)
    for sheet in workbook.sheets:
        ws = book.create_sheet(title=sheet.name)
        for row, col, cell in sheet.iter_cells():
            _write_cell(ws, row, col, cell)
        for rng in sheet.merged:
            ws.merge_cells(
                start_row=rng.min_row + 1,
                start_column=rng.min_col + 1,
                end_row=rng.max_row + 1,
                end_column=rng.max_col + 1,
            )
    return book


def encode(workbook: Workbook) -> bytes:
    """Serialize *workbook* to xlsx bytes.

    A decoded workbook is saved through its backing openpyxl book; one built
    in memory is written out from the cell model.
    """
    try:
        book = workbook.book if workbook.book is not None else _build_book(workbook)
        buffer = io.BytesIO()
        book.save(buffer)
    except Exception as exc:
        raise EncodeError(f"Could not write workbook: {exc}") from exc
    return buffer.getvalue()

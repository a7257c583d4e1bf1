"""Cell-grid model: workbooks, sheets, cells and A1 addressing.

Rows and columns are 0-based inside the grid; findings and addresses use the
spreadsheet's 1-based row numbers and letter column labels.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import Any

_ADDRESS_RE = re.compile(r"^\$?([A-Za-z]{1,3})\$?(\d+)$")


# ── Addressing ───────────────────────────────────────────────────


def column_label(index: int) -> str:
    """Return the letter label of a 0-based column index (0 -> "A", 26 -> "AA")."""
    if isinstance(index, bool) or not isinstance(index, int) or index < 0:
        raise ValueError(f"column index must be a non-negative integer, got {index!r}")
    label = ""
    n = index + 1
    while n:
        n, rem = divmod(n - 1, 26)
        label = chr(ord("A") + rem) + label
    return label


def column_index(label: str) -> int:
    """Return the 0-based column index of a letter label ("A" -> 0)."""
    if not label or not label.isalpha() or not label.isascii():
        raise ValueError(f"Invalid column label: {label!r}")
    n = 0
    for ch in label.upper():
        n = n * 26 + (ord(ch) - ord("A") + 1)
    return n - 1


def cell_address(row: int, col: int) -> str:
    """Return the "A1"-style address of a 0-based (row, col) pair."""
    if row < 0:
        raise ValueError(f"row must be >= 0, got {row}")
    return f"{column_label(col)}{row + 1}"


def parse_address(address: str) -> tuple[int, int]:
    """Return the 0-based (row, col) of an "A1"-style address."""
    match = _ADDRESS_RE.match(address.strip())
    if not match or int(match.group(2)) < 1:
        raise ValueError(f"Invalid cell address: {address!r}")
    return int(match.group(2)) - 1, column_index(match.group(1))


# ── Cells ────────────────────────────────────────────────────────


class CellKind(str, Enum):
    EMPTY = "empty"
    NUMERIC = "numeric"
    TEXT = "text"
    FORMULA = "formula"
    ERROR = "error"


@dataclass
class Cell:
    """A tagged cell.

    For formula cells ``value`` is the last cached result and ``formula`` the
    formula text without its leading ``=``. ``error`` is the native error code
    the codec reported (``"#DIV/0!"``), for error literals and formulas alike.
    """

    kind: CellKind = CellKind.EMPTY
    value: Any = None
    formula: str | None = None
    error: str | None = None
    number_format: str = "General"

    @classmethod
    def numeric(cls, value: Any, number_format: str = "General") -> Cell:
        return cls(CellKind.NUMERIC, value=value, number_format=number_format)

    @classmethod
    def text(cls, value: Any) -> Cell:
        return cls(CellKind.TEXT, value=value)

    @classmethod
    def with_formula(
        cls, formula: str, cached: Any = None, error: str | None = None
    ) -> Cell:
        return cls(CellKind.FORMULA, value=cached, formula=strip_formula_prefix(formula), error=error)

    @classmethod
    def error_value(cls, code: str) -> Cell:
        return cls(CellKind.ERROR, value=code, error=code)

    @property
    def is_empty(self) -> bool:
        return self.kind is CellKind.EMPTY

    @property
    def has_formula(self) -> bool:
        return bool(self.formula)

    @property
    def display(self) -> str:
        """The cell's value as the user would read it."""
        value = self.value
        if value is None:
            return self.error or ""
        if isinstance(value, bool):
            return "TRUE" if value else "FALSE"
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        if isinstance(value, datetime):
            if value.time() == time(0, 0):
                return value.date().isoformat()
            return value.isoformat(sep=" ")
        if isinstance(value, (date, time)):
            return value.isoformat()
        return str(value)


EMPTY_CELL = Cell()


def strip_formula_prefix(text: str) -> str:
    return text[1:] if text.startswith("=") else text


@dataclass(frozen=True)
class CellRange:
    """An inclusive, 0-based rectangle of cells."""

    min_row: int
    min_col: int
    max_row: int
    max_col: int

    def __post_init__(self) -> None:
        if self.min_row < 0 or self.min_col < 0:
            raise ValueError("range coordinates must be >= 0")
        if self.max_row < self.min_row or self.max_col < self.min_col:
            raise ValueError("range max must be >= min")

    @property
    def ref(self) -> str:
        return f"{cell_address(self.min_row, self.min_col)}:{cell_address(self.max_row, self.max_col)}"

    def __contains__(self, item: object) -> bool:
        if not isinstance(item, tuple) or len(item) != 2:
            return False
        row, col = item
        return self.min_row <= row <= self.max_row and self.min_col <= col <= self.max_col


# ── Sheets and workbooks ─────────────────────────────────────────


@dataclass
class Sheet:
    """A sparse grid of cells plus its merged ranges.

    ``worksheet`` is the codec's backing worksheet, if any; writes go through
    to it so styles and everything else the model does not carry survive.
    """

    name: str
    cells: dict[tuple[int, int], Cell] = field(default_factory=dict)
    merged: list[CellRange] = field(default_factory=list)
    worksheet: Any = field(default=None, repr=False, compare=False)

    def bounds(self) -> CellRange | None:
        """Bounding range of populated cells, or ``None`` for an empty sheet."""
        keys = [key for key, cell in self.cells.items() if not cell.is_empty]
        if not keys:
            return None
        rows = [r for r, _ in keys]
        cols = [c for _, c in keys]
        return CellRange(min(rows), min(cols), max(rows), max(cols))

    def cell(self, row: int, col: int) -> Cell:
        return self.cells.get((row, col), EMPTY_CELL)

    def iter_cells(self) -> Iterator[tuple[int, int, Cell]]:
        """Yield populated cells in row-major order."""
        for (row, col) in sorted(self.cells):
            cell = self.cells[(row, col)]
            if not cell.is_empty:
                yield row, col, cell

    def columns(self) -> list[int]:
        return sorted({col for (_, col), cell in self.cells.items() if not cell.is_empty})

    def column_cells(self, col: int) -> list[tuple[int, Cell]]:
        """Populated cells of one column, top to bottom."""
        return sorted(
            ((row, cell) for (row, c), cell in self.cells.items() if c == col and not cell.is_empty),
            key=lambda item: item[0],
        )

    def set_formula(self, row: int, col: int, formula: str) -> Cell:
        """Replace the cell's content with *formula* and drop its cached value."""
        text = strip_formula_prefix(formula)
        existing = self.cells.get((row, col))
        number_format = existing.number_format if existing is not None else "General"
        cell = Cell(CellKind.FORMULA, value=None, formula=text, number_format=number_format)
        self.cells[(row, col)] = cell
        if self.worksheet is not None:
            self.worksheet.cell(row=row + 1, column=col + 1).value = f"={text}"
        return cell


@dataclass
class Workbook:
    """An ordered collection of uniquely named sheets."""

    sheets: list[Sheet] = field(default_factory=list)
    book: Any = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for sheet in self.sheets:
            key = sheet.name.casefold()
            if key in seen:
                raise ValueError(f"Duplicate sheet name: {sheet.name!r}")
            seen.add(key)

    @property
    def sheet_names(self) -> list[str]:
        return [sheet.name for sheet in self.sheets]

    @property
    def first_sheet(self) -> Sheet | None:
        return self.sheets[0] if self.sheets else None

    def get_sheet(self, name: str | None) -> Sheet | None:
        for sheet in self.sheets:
            if sheet.name == name:
                return sheet
        return None


def sheet_statistics(workbook: Workbook) -> list[dict[str, Any]]:
    """Return row, column and formula counts for every sheet."""
    stats: list[dict[str, Any]] = []
    for sheet in workbook.sheets:
        bounds = sheet.bounds()
        stats.append(
            {
                "sheet": sheet.name,
                "rows": 0 if bounds is None else bounds.max_row - bounds.min_row + 1,
                "columns": 0 if bounds is None else bounds.max_col - bounds.min_col + 1,
                "formulas": sum(1 for _, _, cell in sheet.iter_cells() if cell.has_formula),
            }
        )
    return stats

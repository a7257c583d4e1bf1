from __future__ import annotations

from datetime import datetime

import pytest

from sheet_repair.grid import (
    Cell,
    CellKind,
    CellRange,
    Sheet,
    Workbook,
    cell_address,
    column_index,
    column_label,
    parse_address,
    sheet_statistics,
)


@pytest.mark.parametrize(
    ("index", "label"),
    [(0, "A"), (1, "B"), (25, "Z"), (26, "AA"), (27, "AB"), (51, "AZ"), (52, "BA"), (701, "ZZ"), (702, "AAA")],
)
def test_column_label_and_index_agree(index: int, label: str) -> None:
    assert column_label(index) == label
    assert column_index(label) == index
    assert column_index(label.lower()) == index


def test_column_label_round_trip_up_to_three_letters() -> None:
    for index in range(18278):
        assert column_index(column_label(index)) == index
        assert parse_address(cell_address(index % 50, index)) == (index % 50, index)
    assert column_label(18277) == "ZZZ"


def test_column_label_rejects_negative_index() -> None:
    with pytest.raises(ValueError):
        column_label(-1)


def test_parse_address_accepts_absolute_markers() -> None:
    assert parse_address("A1") == (0, 0)
    assert parse_address("$C$10") == (9, 2)
    assert cell_address(9, 2) == "C10"


@pytest.mark.parametrize("address", ["", "A0", "1A", "ABCD1", "A-1"])
def test_parse_address_rejects_malformed(address: str) -> None:
    with pytest.raises(ValueError):
        parse_address(address)


def test_cell_display_renders_values_the_way_a_user_reads_them() -> None:
    assert Cell.numeric(3.0).display == "3"
    assert Cell.numeric(2.5).display == "2.5"
    assert Cell.text(True).display == "TRUE"
    assert Cell.numeric(datetime(2024, 1, 31)).display == "2024-01-31"
    assert Cell.with_formula("=A1/B1", error="#DIV/0!").display == "#DIV/0!"
    assert Cell().display == ""


def test_with_formula_strips_leading_equals() -> None:
    cell = Cell.with_formula("=SUM(A1:A3)", cached=6)
    assert cell.kind is CellKind.FORMULA
    assert cell.formula == "SUM(A1:A3)"
    assert cell.value == 6


def test_bounds_ignore_empty_cells() -> None:
    sheet = Sheet("S", {(1, 1): Cell.numeric(1), (4, 3): Cell.text("x"), (9, 9): Cell()})
    bounds = sheet.bounds()
    assert bounds == CellRange(1, 1, 4, 3)
    assert bounds.ref == "B2:D5"
    assert (2, 2) in bounds
    assert (0, 0) not in bounds


def test_empty_sheet_has_no_bounds() -> None:
    assert Sheet("Empty").bounds() is None


def test_iter_cells_is_row_major() -> None:
    sheet = Sheet("S", {(1, 0): Cell.numeric(3), (0, 1): Cell.numeric(2), (0, 0): Cell.numeric(1)})
    assert [(r, c) for r, c, _ in sheet.iter_cells()] == [(0, 0), (0, 1), (1, 0)]


def test_set_formula_drops_cached_value_and_keeps_format() -> None:
    sheet = Sheet("S", {(0, 0): Cell(CellKind.FORMULA, value=7, formula="A2", number_format="0.00")})
    cell = sheet.set_formula(0, 0, "=IFERROR(A2, 0)")
    assert cell.formula == "IFERROR(A2, 0)"
    assert cell.value is None
    assert cell.number_format == "0.00"
    assert sheet.cell(0, 0) is cell


def test_workbook_rejects_duplicate_sheet_names() -> None:
    with pytest.raises(ValueError, match="Duplicate sheet name"):
        Workbook([Sheet("Data"), Sheet("data")])


def test_sheet_statistics_counts_rows_columns_and_formulas() -> None:
    workbook = Workbook(
        [
            Sheet("A", {(0, 0): Cell.numeric(1), (2, 1): Cell.with_formula("A1*2")}),
            Sheet("B"),
        ]
    )
    assert sheet_statistics(workbook) == [
        {"sheet": "A", "rows": 3, "columns": 2, "formulas": 1},
        {"sheet": "B", "rows": 0, "columns": 0, "formulas": 0},
    ]

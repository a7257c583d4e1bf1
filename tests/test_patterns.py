from __future__ import annotations

from datetime import datetime

import pytest

from sheet_repair.grid import Cell
from sheet_repair.models import FindingKind
from sheet_repair.patterns import DEFAULT_LIBRARY, PatternLibrary, code_only, map_code

lib = DEFAULT_LIBRARY


@pytest.mark.parametrize(
    ("code", "kind"),
    [
        ("#DIV/0!", FindingKind.DIVISION_BY_ZERO),
        ("#REF!", FindingKind.BROKEN_REFERENCE),
        ("#¡REF!", FindingKind.BROKEN_REFERENCE),
        ("#VALOR!", FindingKind.VALUE_TYPE),
        ("#NOME?", FindingKind.UNKNOWN_NAME),
        ("#N/A", FindingKind.NOT_APPLICABLE),
        ("#N/D", FindingKind.NOT_APPLICABLE),
        ("#NUM!", FindingKind.NUMERIC_OVERFLOW),
        ("#NULL!", FindingKind.NULL_INTERSECTION),
        ("#GETTING_DATA", FindingKind.STILL_COMPUTING),
    ],
)
def test_classify_native_error_exact_signatures(code: str, kind: FindingKind) -> None:
    assert lib.classify_native_error(code) is kind


def test_classify_native_error_falls_back_to_keywords() -> None:
    assert lib.classify_native_error("#NOMBRE?") is FindingKind.UNKNOWN_NAME
    assert lib.classify_native_error("#DIV!") is FindingKind.DIVISION_BY_ZERO
    assert lib.classify_native_error("#SPILL!") is None


def test_match_signature_searches_inside_text() -> None:
    assert lib.match_signature("Total: #REF!") is FindingKind.BROKEN_REFERENCE
    assert lib.match_signature("no errors here") is None
    assert lib.match_signature("") is None


def test_classify_cell_error_uses_tag_then_display_then_formula() -> None:
    assert lib.classify_cell_error(Cell.with_formula("A1/B1", error="#DIV/0!")) is FindingKind.DIVISION_BY_ZERO
    assert lib.classify_cell_error(Cell.text("#N/A")) is FindingKind.NOT_APPLICABLE
    assert lib.classify_cell_error(Cell.with_formula("SUM(#REF!)")) is FindingKind.BROKEN_REFERENCE
    assert lib.classify_cell_error(Cell.numeric(3)) is None


@pytest.mark.parametrize(
    ("text", "shape"),
    [
        ("ana@example.com", "email"),
        ("R$ 1.234,56", "currency"),
        ("12,50 €", "currency"),
        ("2024-01-31", "date"),
        ("31/01/2024", "date"),
        ("1.234,56", "numeric"),
        ("42%", "numeric"),
        ("(21) 9876-5432", "phone"),
        ("912-345-678", "phone"),
        ("Lisbon", "text"),
        ("", "text"),
    ],
)
def test_shape_of_text(text: str, shape: str) -> None:
    assert lib.shape_of_text(text) == shape


def test_shape_of_native_values() -> None:
    assert lib.shape_of(Cell.numeric(3)) == "numeric"
    assert lib.shape_of(Cell.numeric(3, number_format='"€"#,##0.00')) == "currency"
    assert lib.shape_of(Cell.numeric(datetime(2024, 1, 1))) == "date"
    assert lib.shape_of(Cell.text(True)) == "text"


def test_is_numeric() -> None:
    assert lib.is_numeric(Cell.numeric(1.5))
    assert lib.is_numeric(Cell.text("1,5"))
    assert not lib.is_numeric(Cell.text("abc"))
    assert not lib.is_numeric(Cell.text(False))


def test_lookup_call_maps_localized_names() -> None:
    assert lib.lookup_call("VLOOKUP(A1,B:C,2,FALSE)") == "VLOOKUP"
    assert lib.lookup_call('IFERROR(procv(A1;B:C;2;0);"")') == "VLOOKUP"
    assert lib.lookup_call("BUSCARH(A1,B1:D2,2)") == "HLOOKUP"
    assert lib.lookup_call("SUM(A1:A3)") is None


def test_lookup_call_ignores_string_literals() -> None:
    assert lib.lookup_call('CONCAT("VLOOKUP(", A1)') is None


def test_conditional_depth() -> None:
    assert lib.conditional_depth("A1+1") == 0
    assert lib.conditional_depth("IF(A1>0,IF(B1>0,1,2),3)") == 2
    assert lib.conditional_depth("IF(SUM(IF(A1,1,0)),1,0)") == 2
    assert lib.conditional_depth('IF(A1,"IF(IF(",0)') == 1


def test_first_alias_prefers_longest_name() -> None:
    wrong, right, _ = lib.first_alias('SOMASE(A:A,"x")')  # type: ignore[misc]
    assert (wrong, right) == ("SOMASE", "SUMIF")
    assert lib.first_alias("SUM(A1:A3)") is None
    assert lib.first_alias("CASE(A1)") is None


def test_code_only_keeps_positions() -> None:
    formula = 'IF(A1,"x(y)",B1)'
    blanked = code_only(formula)
    assert len(blanked) == len(formula)
    assert "(" not in blanked[6:11]


def test_map_code_leaves_literals_alone() -> None:
    assert map_code('a"a"a', str.upper) == 'A"a"A'


def test_custom_library_tables() -> None:
    custom = PatternLibrary(lookup_functions=(("XLOOKUP", "XLOOKUP"),))
    assert custom.lookup_call("XLOOKUP(A1,B:B,C:C)") == "XLOOKUP"
    assert custom.lookup_call("VLOOKUP(A1,B:C,2)") is None


def test_custom_lookup_table_is_case_insensitive() -> None:
    custom = PatternLibrary(lookup_functions=(("procv", "VLOOKUP"),))
    assert custom.lookup_call("PROCV(A1;B:C;2;0)") == "VLOOKUP"
    assert custom.lookup_call("procv(A1;B:C;2;0)") == "VLOOKUP"

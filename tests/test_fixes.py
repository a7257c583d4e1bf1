from __future__ import annotations

from sheet_repair.fixes import STRATEGIES, propose_fix
from sheet_repair.grid import CellRange
from sheet_repair.models import ERROR_KINDS, FindingKind

BOUNDS = CellRange(0, 0, 9, 2)


def test_every_error_kind_has_a_strategy() -> None:
    assert set(STRATEGIES) == ERROR_KINDS


def test_broken_lookup_uses_sheet_bounds_and_exact_match() -> None:
    proposal = propose_fix(FindingKind.BROKEN_REFERENCE, "=VLOOKUP(A2,#REF!,2,TRUE)", BOUNDS)
    assert proposal is not None
    assert proposal.formula == "=VLOOKUP(A2, A1:C10, 2, FALSE)"
    assert "A1:C10" in proposal.reason


def test_broken_lookup_inside_wrapper_reads_lookup_arguments() -> None:
    proposal = propose_fix(FindingKind.BROKEN_REFERENCE, 'IFERROR(PROCH(A2,#REF!,3,0),"")', BOUNDS)
    assert proposal is not None
    assert proposal.formula == "=HLOOKUP(A2, A1:C10, 3, FALSE)"


def test_broken_reference_without_lookup_has_no_fix() -> None:
    assert propose_fix(FindingKind.BROKEN_REFERENCE, "=#REF!+1", BOUNDS) is None
    assert propose_fix(FindingKind.BROKEN_REFERENCE, "=VLOOKUP(A2,#REF!)", BOUNDS) is None


def test_value_error_is_wrapped_with_zero() -> None:
    proposal = propose_fix(FindingKind.VALUE_TYPE, "=A1+B1", BOUNDS)
    assert proposal is not None
    assert proposal.formula == "=IFERROR(A1+B1, 0)"


def test_division_by_zero_is_wrapped_with_na_text() -> None:
    proposal = propose_fix(FindingKind.DIVISION_BY_ZERO, "A5/B5", BOUNDS)
    assert proposal is not None
    assert proposal.formula == '=IFERROR(A5/B5, "N/A")'


def test_unknown_name_renames_first_call_outside_literals() -> None:
    proposal = propose_fix(FindingKind.UNKNOWN_NAME, '="SOMA("&SOMA(A1:A3)+soma(B1:B3)', BOUNDS)
    assert proposal is not None
    assert proposal.formula == '="SOMA("&SUM(A1:A3)+soma(B1:B3)'
    assert proposal.reason == "Renamed function SOMA to SUM."


def test_unknown_name_without_known_alias_has_no_fix() -> None:
    assert propose_fix(FindingKind.UNKNOWN_NAME, "=FOO(A1)", BOUNDS) is None


def test_kinds_without_strategy_and_missing_formula() -> None:
    for kind in (
        FindingKind.NULL_INTERSECTION,
        FindingKind.NOT_APPLICABLE,
        FindingKind.NUMERIC_OVERFLOW,
        FindingKind.STILL_COMPUTING,
    ):
        assert propose_fix(kind, "=A1 B1", BOUNDS) is None
    assert propose_fix(FindingKind.DIVISION_BY_ZERO, None, BOUNDS) is None
    assert propose_fix(FindingKind.TYPE_MISMATCH, "=A1", BOUNDS) is None

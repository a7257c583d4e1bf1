"""End-to-end checks of the analysis pipeline and the bytes round trips."""

from __future__ import annotations

import asyncio
import io

import openpyxl

from sheet_repair.analyzer import (
    analyze,
    analyze_bytes,
    analyze_bytes_async,
    fix_bytes,
    fix_bytes_async,
    select_sheets,
)
from sheet_repair.codec import decode
from sheet_repair.config import AnalyzerConfig
from sheet_repair.grid import Cell, Sheet, Workbook, parse_address
from sheet_repair.models import FindingKind, Severity


def _sheet(name: str, cells: dict[str, Cell]) -> Sheet:
    return Sheet(name, {parse_address(addr): cell for addr, cell in cells.items()})


def _prices_xlsx() -> bytes:
    book = openpyxl.Workbook()
    ws = book.active
    ws.title = "Prices"
    ws["A1"] = "apple"
    ws["B1"] = 10
    ws["A2"] = "pear"
    ws["B2"] = 20
    ws["C1"] = "=VLOOKUP(A1,#REF!,2,FALSE)"
    buffer = io.BytesIO()
    book.save(buffer)
    return buffer.getvalue()


def _mixed_workbook() -> Workbook:
    numbers = {f"C{r}": Cell.numeric(r) for r in range(1, 11)}
    numbers["C11"] = Cell.text("abc")
    return Workbook(
        [
            _sheet("Sheet1", {"B2": Cell.with_formula("VLOOKUP(A1,Sheet9!A:B,2)")}),
            _sheet("Numbers", numbers),
            _sheet(
                "Calc",
                {"D5": Cell.with_formula("A5/B5", cached="#DIV/0!", error="#DIV/0!")},
            ),
            _sheet("Cities", {"E1": Cell.text("Lisbon"), "E2": Cell.text("Lisbon")}),
        ]
    )


def test_missing_sheet_lookup_reports_reference_then_lock() -> None:
    workbook = Workbook([_sheet("Sheet1", {"B2": Cell.with_formula("VLOOKUP(A1,Sheet9!A:B,2)")})])

    findings = analyze(workbook)

    assert [(f.kind, f.severity) for f in findings] == [
        (FindingKind.CROSS_SHEET_REFERENCE, Severity.CRITICAL),
        (FindingKind.UNLOCKED_LOOKUP, Severity.WARNING),
    ]
    assert findings[0].proposed == "=VLOOKUP(A1,Sheet1!A:B,2)"
    assert findings[1].proposed == "=VLOOKUP($A$1,Sheet9!$A:$B,2)"


def test_analyze_whole_workbook_in_sheet_order() -> None:
    findings = analyze(_mixed_workbook())

    assert [(f.sheet, f.address, f.kind) for f in findings] == [
        ("Sheet1", "B2", FindingKind.CROSS_SHEET_REFERENCE),
        ("Sheet1", "B2", FindingKind.UNLOCKED_LOOKUP),
        ("Numbers", "C11", FindingKind.TYPE_MISMATCH),
        ("Calc", "D5", FindingKind.DIVISION_BY_ZERO),
        ("Cities", "E1", FindingKind.DUPLICATE_VALUE),
        ("Cities", "E2", FindingKind.DUPLICATE_VALUE),
    ]
    assert findings[3].proposed == '=IFERROR(A5/B5, "N/A")'
    assert findings[3].severity is Severity.CRITICAL


def test_indices_are_positions() -> None:
    findings = analyze(_mixed_workbook())
    assert [f.index for f in findings] == list(range(len(findings)))


def test_every_proposal_carries_a_reason() -> None:
    for finding in analyze(_mixed_workbook()):
        assert finding.severity in set(Severity)
        if finding.proposed:
            assert finding.reason


def test_analyze_is_deterministic() -> None:
    assert analyze(_mixed_workbook()) == analyze(_mixed_workbook())


def test_empty_workbook_and_sheets_have_no_findings() -> None:
    assert analyze(Workbook()) == []
    assert analyze(Workbook([Sheet("Empty")])) == []


def test_sheet_selection_skips_unknown_and_repeated_names() -> None:
    workbook = _mixed_workbook()

    assert [s.name for s in select_sheets(workbook, ["Calc", "Nope", "Calc"])] == ["Calc"]
    assert [s.name for s in select_sheets(workbook, [])] == workbook.sheet_names

    findings = analyze(workbook, ["Cities", "Calc"])
    assert [f.sheet for f in findings] == ["Cities", "Cities", "Calc"]
    assert [f.index for f in findings] == [0, 1, 2]


def test_disabled_detectors_do_not_run() -> None:
    config = AnalyzerConfig(detectors=("errors", "type_mismatch"))
    kinds = {f.kind for f in analyze(_mixed_workbook(), config=config)}
    assert kinds == {FindingKind.TYPE_MISMATCH, FindingKind.DIVISION_BY_ZERO}


def test_analyze_bytes_finds_broken_lookup() -> None:
    [finding] = analyze_bytes(_prices_xlsx())

    assert finding.sheet == "Prices"
    assert finding.address == "C1"
    assert finding.kind is FindingKind.BROKEN_REFERENCE
    assert finding.severity is Severity.CRITICAL
    assert finding.proposed == "=VLOOKUP(A1, A1:C2, 2, FALSE)"


def test_fix_bytes_writes_only_accepted_cells() -> None:
    data = _prices_xlsx()
    findings = analyze_bytes(data)

    fixed = decode(fix_bytes(data, findings, [0]))

    sheet = fixed.get_sheet("Prices")
    assert sheet is not None
    assert sheet.cell(0, 2).formula == "VLOOKUP(A1, A1:C2, 2, FALSE)"
    assert sheet.cell(0, 2).value is None
    assert sheet.cell(0, 1).value == 10
    assert sheet.cell(1, 0).value == "pear"


def test_fix_bytes_with_nothing_accepted_keeps_formulas() -> None:
    data = _prices_xlsx()
    fixed = decode(fix_bytes(data, analyze_bytes(data), []))
    assert fixed.sheets[0].cell(0, 2).formula == "VLOOKUP(A1,#REF!,2,FALSE)"


def test_async_variants_match_sync_results() -> None:
    data = _prices_xlsx()

    findings = asyncio.run(analyze_bytes_async(data))
    fixed = asyncio.run(fix_bytes_async(data, findings, [0]))

    assert findings == analyze_bytes(data)
    assert decode(fixed).sheets[0].cell(0, 2).formula == "VLOOKUP(A1, A1:C2, 2, FALSE)"

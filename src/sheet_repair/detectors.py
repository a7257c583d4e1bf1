"""Independent scan passes over one sheet.

Each detector takes ``(sheet, bounds, context)`` and returns findings without
touching the sheet. A cell that shows a spreadsheet error belongs to the
error detector alone; every other pass skips it.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from sheet_repair.config import AnalyzerConfig
from sheet_repair.fixes import propose_fix
from sheet_repair.grid import Cell, CellRange, Sheet, Workbook, cell_address, column_label
from sheet_repair.models import Finding, FindingKind, Severity
from sheet_repair.patterns import (
    CRITICAL_ERROR_KINDS,
    DEFAULT_LIBRARY,
    PatternLibrary,
    code_only,
    map_code,
)

_SHEET_REF_RE = re.compile(r"'((?:[^']|'')+)'!|(?<![\w.$#\]'])([^\W\d][\w.]*)!")
_BARE_SHEET_NAME_RE = re.compile(r"[^\W\d][\w.]*")
_CELL_LIKE_RE = re.compile(r"[A-Za-z]{1,3}\d+")
_REFERENCE_RE = re.compile(
    r"(?P<quoted>'(?:[^']|'')*')"
    r"|(?<![\w$.])(?P<col1>[A-Za-z]{1,3}):(?P<col2>[A-Za-z]{1,3})(?![\w(])"
    r"|(?<![\w$.])(?P<col>[A-Za-z]{1,3})(?P<row>\d+)(?![\w(!])"
)


@dataclass(frozen=True)
class DetectorContext:
    """Workbook-level facts shared by every detector during one analysis."""

    sheet_names: tuple[str, ...]
    library: PatternLibrary = DEFAULT_LIBRARY
    config: AnalyzerConfig = field(default_factory=AnalyzerConfig)

    @classmethod
    def for_workbook(
        cls,
        workbook: Workbook,
        library: PatternLibrary = DEFAULT_LIBRARY,
        config: AnalyzerConfig | None = None,
    ) -> DetectorContext:
        return cls(tuple(workbook.sheet_names), library, config or AnalyzerConfig())

    @property
    def first_sheet(self) -> str | None:
        return self.sheet_names[0] if self.sheet_names else None

    def is_error(self, cell: Cell) -> bool:
        return self.library.classify_cell_error(cell) is not None


Detector = Callable[[Sheet, CellRange, DetectorContext], list[Finding]]


# ── Helpers ──────────────────────────────────────────────────────


def _finding(
    sheet: Sheet,
    row: int,
    col: int,
    kind: FindingKind,
    severity: Severity,
    value: str,
    *,
    proposed: str | None = None,
    reason: str | None = None,
) -> Finding:
    return Finding(
        sheet=sheet.name,
        row=row + 1,
        col=column_label(col),
        kind=kind,
        severity=severity,
        value=value,
        proposed=proposed,
        reason=reason,
    )


def _formula_text(cell: Cell) -> str:
    return f"={cell.formula}"


def _preview(cell: Cell, length: int) -> str:
    text = _formula_text(cell)
    return text if len(text) <= length else text[:length] + "..."


def _formula_cells(sheet: Sheet, context: DetectorContext) -> list[tuple[int, int, Cell]]:
    return [
        (row, col, cell)
        for row, col, cell in sheet.iter_cells()
        if cell.has_formula and not context.is_error(cell)
    ]


def _data_cells(
    sheet: Sheet, col: int, bounds: CellRange, context: DetectorContext
) -> list[tuple[int, Cell]]:
    first_row = bounds.min_row + context.config.header_rows
    return [
        (row, cell)
        for row, cell in sheet.column_cells(col)
        if row >= first_row and not context.is_error(cell)
    ]


def quote_sheet_name(name: str) -> str:
    """Return *name* as it must appear before ``!`` in a formula."""
    if _BARE_SHEET_NAME_RE.fullmatch(name) and not _CELL_LIKE_RE.fullmatch(name):
        return name
    escaped = name.replace("'", "''")
    return f"'{escaped}'"


def sheet_references(formula: str) -> list[str]:
    """Sheet names referenced as ``Name!`` or ``'Name'!`` in *formula*."""
    names: list[str] = []
    for match in _SHEET_REF_RE.finditer(code_only(formula)):
        if match.group(1) is not None:
            name = match.group(1).replace("''", "'")
        else:
            name = match.group(2)
        if "[" in name or "]" in name:
            continue
        if name not in names:
            names.append(name)
    return names


def replace_sheet_references(formula: str, missing: set[str], replacement: str) -> str:
    target = quote_sheet_name(replacement)

    def _swap(match: re.Match[str]) -> str:
        name = match.group(1).replace("''", "'") if match.group(1) is not None else match.group(2)
        return f"{target}!" if name in missing else match.group(0)

    return map_code(formula, lambda code: _SHEET_REF_RE.sub(_swap, code))


def lock_references(formula: str) -> str:
    """Insert ``$`` markers before every column and row of each cell reference."""

    def _lock(match: re.Match[str]) -> str:
        if match.group("quoted") is not None:
            return match.group(0)
        if match.group("col1") is not None:
            return f"${match.group('col1')}:${match.group('col2')}"
        return f"${match.group('col')}${match.group('row')}"

    return map_code(formula, lambda code: _REFERENCE_RE.sub(_lock, code))


# ── Detectors ────────────────────────────────────────────────────


def detect_errors(sheet: Sheet, bounds: CellRange, context: DetectorContext) -> list[Finding]:
    """Cells showing a spreadsheet error value, with a fix where one is known."""
    findings: list[Finding] = []
    for row, col, cell in sheet.iter_cells():
        kind = context.library.classify_cell_error(cell)
        if kind is None:
            continue
        severity = Severity.CRITICAL if kind in CRITICAL_ERROR_KINDS else Severity.WARNING
        value = _formula_text(cell) if cell.has_formula else cell.display
        proposal = propose_fix(kind, cell.formula, bounds, context.library)
        findings.append(
            _finding(
                sheet, row, col, kind, severity, value,
                proposed=proposal.formula if proposal else None,
                reason=proposal.reason if proposal else None,
            )
        )
    return findings


def detect_type_mismatch(sheet: Sheet, bounds: CellRange, context: DetectorContext) -> list[Finding]:
    """Text values sitting in a column whose sampled values are numeric."""
    cfg = context.config
    lib = context.library
    findings: list[Finding] = []
    for col in sheet.columns():
        cells = [
            (row, cell)
            for row, cell in _data_cells(sheet, col, bounds, context)
            if not cell.has_formula
        ]
        sample = cells[: cfg.type_sample_rows]
        numeric = sum(1 for _, cell in sample if lib.is_numeric(cell))
        non_numeric = len(sample) - numeric
        if numeric <= cfg.type_min_numeric or non_numeric >= numeric * cfg.type_max_non_numeric_ratio:
            continue
        label = column_label(col)
        for row, cell in cells:
            if lib.is_numeric(cell) or not cell.display.strip():
                continue
            findings.append(
                _finding(
                    sheet, row, col, FindingKind.TYPE_MISMATCH, Severity.WARNING, cell.display,
                    reason=(
                        f"Column {label} holds numbers ({numeric} of {len(sample)} sampled) "
                        "but this cell is not numeric."
                    ),
                )
            )
    return findings


def detect_merged_cells(sheet: Sheet, bounds: CellRange, context: DetectorContext) -> list[Finding]:
    """Formulas anchored in a merged range."""
    findings: list[Finding] = []
    for rng in sheet.merged:
        cell = sheet.cell(rng.min_row, rng.min_col)
        if not cell.has_formula or context.is_error(cell):
            continue
        findings.append(
            _finding(
                sheet, rng.min_row, rng.min_col, FindingKind.MERGED_FORMULA, Severity.WARNING,
                _formula_text(cell),
                reason=f"Formula in merged range {rng.ref} may recalculate unpredictably.",
            )
        )
    return findings


def detect_cross_sheet(sheet: Sheet, bounds: CellRange, context: DetectorContext) -> list[Finding]:
    """References to sheets the workbook does not have."""
    known = {name.casefold() for name in context.sheet_names}
    first = context.first_sheet
    findings: list[Finding] = []
    for row, col, cell in _formula_cells(sheet, context):
        formula = cell.formula or ""
        missing = [name for name in sheet_references(formula) if name.casefold() not in known]
        if not missing:
            continue
        proposed = reason = None
        if first is not None:
            proposed = "=" + replace_sheet_references(formula, set(missing), first)
            reason = (
                f"Sheet {', '.join(repr(n) for n in missing)} does not exist; "
                f"pointed the reference at {first!r}."
            )
        findings.append(
            _finding(
                sheet, row, col, FindingKind.CROSS_SHEET_REFERENCE, Severity.CRITICAL,
                _formula_text(cell), proposed=proposed, reason=reason,
            )
        )
    return findings


def detect_complexity(sheet: Sheet, bounds: CellRange, context: DetectorContext) -> list[Finding]:
    """Very long formulas and deeply nested conditionals."""
    cfg = context.config
    findings: list[Finding] = []
    for row, col, cell in _formula_cells(sheet, context):
        formula = cell.formula or ""
        if len(formula) > cfg.long_formula_length:
            findings.append(
                _finding(
                    sheet, row, col, FindingKind.COMPLEX_FORMULA, Severity.INFO,
                    _preview(cell, cfg.preview_length),
                    reason=f"Formula is {len(formula)} characters long; consider helper cells.",
                )
            )
        depth = context.library.conditional_depth(formula)
        if depth > cfg.max_nested_conditionals:
            findings.append(
                _finding(
                    sheet, row, col, FindingKind.NESTED_CONDITIONALS, Severity.WARNING,
                    _preview(cell, cfg.preview_length),
                    reason=f"{depth} nested conditional calls; consider IFS or a lookup table.",
                )
            )
    return findings


def detect_lookup_lock(sheet: Sheet, bounds: CellRange, context: DetectorContext) -> list[Finding]:
    """Lookup formulas whose references shift when the formula is copied."""
    findings: list[Finding] = []
    for row, col, cell in _formula_cells(sheet, context):
        formula = cell.formula or ""
        function = context.library.lookup_call(formula)
        if function is None or "$" in code_only(formula):
            continue
        locked = lock_references(formula)
        proposed = reason = None
        if locked != formula:
            proposed = f"={locked}"
            reason = f"Locked the {function} references with $ so copying the formula keeps its range."
        findings.append(
            _finding(
                sheet, row, col, FindingKind.UNLOCKED_LOOKUP, Severity.WARNING,
                _formula_text(cell), proposed=proposed, reason=reason,
            )
        )
    return findings


def detect_duplicates(sheet: Sheet, bounds: CellRange, context: DetectorContext) -> list[Finding]:
    """Repeated text values within a column, one finding per occurrence."""
    min_length = context.config.duplicate_min_length
    findings: list[Finding] = []
    for col in sheet.columns():
        entries = [
            (row, cell, cell.value.strip().casefold())
            for row, cell in _data_cells(sheet, col, bounds, context)
            if not cell.has_formula and isinstance(cell.value, str)
        ]
        entries = [entry for entry in entries if len(entry[2]) > min_length]
        counts = Counter(norm for _, _, norm in entries)
        for row, cell, norm in entries:
            if counts[norm] < 2:
                continue
            findings.append(
                _finding(
                    sheet, row, col, FindingKind.DUPLICATE_VALUE, Severity.INFO, cell.display,
                    reason=(
                        f"{cell.value.strip()!r} appears {counts[norm]} times "
                        f"in column {column_label(col)}."
                    ),
                )
            )
    return findings


def detect_empty_gaps(sheet: Sheet, bounds: CellRange, context: DetectorContext) -> list[Finding]:
    """Empty cells with populated cells above and below in the same column."""
    findings: list[Finding] = []
    for col in sheet.columns():
        rows = [row for row, _ in sheet.column_cells(col)]
        for above, below in zip(rows, rows[1:]):
            for row in range(above + 1, below):
                findings.append(
                    _finding(
                        sheet, row, col, FindingKind.EMPTY_GAP, Severity.INFO, "",
                        reason=(
                            f"Empty between {cell_address(above, col)} and {cell_address(below, col)}."
                        ),
                    )
                )
    return findings


def detect_format_consistency(
    sheet: Sheet, bounds: CellRange, context: DetectorContext
) -> list[Finding]:
    """Cells whose data shape differs from the column's majority shape."""
    lib = context.library
    findings: list[Finding] = []
    for col in sheet.columns():
        shaped = [
            (row, cell, lib.shape_of(cell))
            for row, cell in _data_cells(sheet, col, bounds, context)
            if cell.display.strip()
        ]
        if not shaped:
            continue
        counts = Counter(shape for _, _, shape in shaped)
        majority, majority_count = counts.most_common(1)[0]
        if majority == "text" or majority_count * 2 <= len(shaped):
            continue
        deviants = [entry for entry in shaped if entry[2] not in (majority, "text")]
        if not deviants or len(deviants) >= context.config.format_max_deviations:
            continue
        for row, cell, shape in deviants:
            findings.append(
                _finding(
                    sheet, row, col, FindingKind.FORMAT_MISMATCH, Severity.INFO, cell.display,
                    reason=f"Looks like {shape} in a column of {majority} values.",
                )
            )
    return findings


DETECTORS: Mapping[str, Detector] = MappingProxyType(
    {
        "errors": detect_errors,
        "type_mismatch": detect_type_mismatch,
        "merged_cells": detect_merged_cells,
        "cross_sheet": detect_cross_sheet,
        "complexity": detect_complexity,
        "lookup_lock": detect_lookup_lock,
        "duplicates": detect_duplicates,
        "empty_gaps": detect_empty_gaps,
        "format_consistency": detect_format_consistency,
    }
)

"""Repair strategies for formulas that evaluate to a spreadsheet error.

Proposals are best-effort rewrites of the cell's formula. They are returned
with a leading ``=`` and always carry a human-readable reason.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from sheet_repair.grid import CellRange, strip_formula_prefix
from sheet_repair.models import ERROR_KINDS, FindingKind
from sheet_repair.patterns import DEFAULT_LIBRARY, PatternLibrary

_FIRST_GROUP_RE = re.compile(r"\(([^)]+)\)")


@dataclass(frozen=True)
class Proposal:
    formula: str
    reason: str


Strategy = Callable[[str, CellRange, PatternLibrary], Proposal | None]


def _fix_broken_lookup(formula: str, bounds: CellRange, library: PatternLibrary) -> Proposal | None:
    call = library.lookup_match(formula)
    if call is None:
        return None
    function = library.lookup_call(formula)
    match = _FIRST_GROUP_RE.search(formula, call.end() - 1)
    if match is None:
        return None
    args = [arg.strip() for arg in match.group(1).split(",")]
    if len(args) < 3:
        return None
    key, _old_range, result_col = args[0], args[1], args[2]
    proposed = f"{function}({key}, {bounds.ref}, {result_col}, FALSE)"
    return Proposal(
        formula=f"={proposed}",
        reason=(
            "Replaced the broken (#REF!) lookup range with the sheet's populated range "
            f"{bounds.ref} and requested an exact match."
        ),
    )


def _fix_value_type(formula: str, bounds: CellRange, library: PatternLibrary) -> Proposal | None:
    return Proposal(
        formula=f"=IFERROR({formula}, 0)",
        reason="Wrapped in IFERROR so a #VALUE! error returns 0 instead.",
    )


def _fix_unknown_name(formula: str, bounds: CellRange, library: PatternLibrary) -> Proposal | None:
    alias = library.first_alias(formula)
    if alias is None:
        return None
    wrong, right, match = alias
    fixed = formula[: match.start()] + right + formula[match.end() :]
    return Proposal(
        formula=f"={fixed}",
        reason=f"Renamed function {wrong} to {right}.",
    )


def _fix_division_by_zero(formula: str, bounds: CellRange, library: PatternLibrary) -> Proposal | None:
    return Proposal(
        formula=f'=IFERROR({formula}, "N/A")',
        reason='Wrapped in IFERROR so a division by zero shows "N/A" instead of #DIV/0!.',
    )


def _no_fix(formula: str, bounds: CellRange, library: PatternLibrary) -> Proposal | None:
    return None


STRATEGIES: Mapping[FindingKind, Strategy] = MappingProxyType(
    {
        FindingKind.BROKEN_REFERENCE: _fix_broken_lookup,
        FindingKind.VALUE_TYPE: _fix_value_type,
        FindingKind.UNKNOWN_NAME: _fix_unknown_name,
        FindingKind.DIVISION_BY_ZERO: _fix_division_by_zero,
        FindingKind.NULL_INTERSECTION: _no_fix,
        FindingKind.NOT_APPLICABLE: _no_fix,
        FindingKind.NUMERIC_OVERFLOW: _no_fix,
        FindingKind.STILL_COMPUTING: _no_fix,
    }
)


def propose_fix(
    kind: FindingKind,
    formula: str | None,
    bounds: CellRange,
    library: PatternLibrary = DEFAULT_LIBRARY,
) -> Proposal | None:
    """Return a repair for a formula showing error *kind*, or ``None``."""
    if not formula or kind not in ERROR_KINDS:
        return None
    strategy = STRATEGIES[kind]
    return strategy(strip_formula_prefix(formula), bounds, library)

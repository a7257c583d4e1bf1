"""Error signatures, data shapes and formula vocabularies.

Everything here is data. Detectors and the fix proposer read the tables
through a :class:`PatternLibrary`, which is built once and never mutated.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any

from sheet_repair.grid import Cell
from sheet_repair.models import FindingKind

# ── Error signatures ─────────────────────────────────────────────

# (kind, literal error text) in English, Portuguese and Spanish spellings.
ERROR_SIGNATURES: tuple[tuple[FindingKind, str], ...] = (
    (FindingKind.BROKEN_REFERENCE, "#REF!"),
    (FindingKind.BROKEN_REFERENCE, "#¡REF!"),
    (FindingKind.VALUE_TYPE, "#VALUE!"),
    (FindingKind.VALUE_TYPE, "#VALOR!"),
    (FindingKind.VALUE_TYPE, "#¡VALOR!"),
    (FindingKind.UNKNOWN_NAME, "#NAME?"),
    (FindingKind.UNKNOWN_NAME, "#NOME?"),
    (FindingKind.UNKNOWN_NAME, "#¿NOMBRE?"),
    (FindingKind.DIVISION_BY_ZERO, "#DIV/0!"),
    (FindingKind.DIVISION_BY_ZERO, "#¡DIV/0!"),
    (FindingKind.NULL_INTERSECTION, "#NULL!"),
    (FindingKind.NULL_INTERSECTION, "#NULO!"),
    (FindingKind.NULL_INTERSECTION, "#¡NULO!"),
    (FindingKind.NOT_APPLICABLE, "#N/A"),
    (FindingKind.NOT_APPLICABLE, "#N/D"),
    (FindingKind.NUMERIC_OVERFLOW, "#NUM!"),
    (FindingKind.NUMERIC_OVERFLOW, "#NÚM!"),
    (FindingKind.NUMERIC_OVERFLOW, "#¡NUM!"),
    (FindingKind.STILL_COMPUTING, "#GETTING_DATA"),
    (FindingKind.STILL_COMPUTING, "#OBTENDO_DADOS"),
)

# Fallback for native error tags that match no exact signature.
ERROR_KEYWORDS: tuple[tuple[FindingKind, str], ...] = (
    (FindingKind.DIVISION_BY_ZERO, "DIV"),
    (FindingKind.BROKEN_REFERENCE, "REF"),
    (FindingKind.UNKNOWN_NAME, "NAME"),
    (FindingKind.UNKNOWN_NAME, "NOM"),
    (FindingKind.VALUE_TYPE, "VAL"),
    (FindingKind.NULL_INTERSECTION, "NUL"),
    (FindingKind.NUMERIC_OVERFLOW, "NUM"),
    (FindingKind.NUMERIC_OVERFLOW, "NÚM"),
    (FindingKind.STILL_COMPUTING, "GETTING"),
    (FindingKind.STILL_COMPUTING, "OBTENDO"),
    (FindingKind.NOT_APPLICABLE, "N/A"),
    (FindingKind.NOT_APPLICABLE, "N/D"),
)

CRITICAL_ERROR_KINDS: frozenset[FindingKind] = frozenset(
    {FindingKind.BROKEN_REFERENCE, FindingKind.DIVISION_BY_ZERO}
)

# ── Data shapes ──────────────────────────────────────────────────

CURRENCY_SYMBOLS = "$€£¥₹"

SHAPE_PATTERNS: tuple[tuple[str, str], ...] = (
    ("email", r"^[\w.+-]+@[\w-]+(\.[\w-]+)+$"),
    (
        "currency",
        rf"^(?:[-+]?\s*(?:R\$|US\$|[{CURRENCY_SYMBOLS}])\s*[-+]?\d[\d.,\s]*"
        rf"|[-+]?\d[\d.,\s]*\s*(?:[{CURRENCY_SYMBOLS}]|EUR|USD|BRL))$",
    ),
    (
        "date",
        r"^(?:\d{4}-\d{1,2}-\d{1,2}(?:[ T]\d{1,2}:\d{2}(?::\d{2})?)?"
        r"|\d{1,2}[/.-]\d{1,2}[/.-]\d{2,4})$",
    ),
    ("numeric", r"^[-+]?(?:\d+|\d{1,3}(?:[.,\s]\d{3})+)(?:[.,]\d+)?%?$"),
    ("phone", r"^(?=(?:\D*\d){8,15}\D*$)\+?\(?\d[\d\s().-]*[\s().-][\d\s().-]*\d$"),
)

# ── Formula vocabularies ─────────────────────────────────────────

# Lookup function name -> canonical English name.
LOOKUP_FUNCTIONS: tuple[tuple[str, str], ...] = (
    ("VLOOKUP", "VLOOKUP"),
    ("PROCV", "VLOOKUP"),
    ("BUSCARV", "VLOOKUP"),
    ("HLOOKUP", "HLOOKUP"),
    ("PROCH", "HLOOKUP"),
    ("BUSCARH", "HLOOKUP"),
)

CONDITIONAL_FUNCTIONS: tuple[str, ...] = ("IF", "IFS", "IFERROR", "IFNA", "SE", "SEERRO", "SI", "SI.ERROR")

# Localized or misspelled function name -> canonical name, longest first.
FUNCTION_ALIASES: tuple[tuple[str, str], ...] = (
    ("CONTAR.SI", "COUNTIF"),
    ("SUMAR.SI", "SUMIF"),
    ("CONT.SE", "COUNTIF"),
    ("SOMASE", "SUMIF"),
    ("CONTSE", "COUNTIF"),
    ("SUMA", "SUM"),
    ("SOMA", "SUM"),
    ("SE", "IF"),
    ("SI", "IF"),
)

_STRING_LITERAL_RE = re.compile(r'"(?:[^"]|"")*"')
_NAME_START = r"(?<![A-Za-z0-9_.$#\]])"


def map_code(formula: str, fn: Callable[[str], str]) -> str:
    """Apply *fn* to the parts of *formula* outside string literals."""
    out: list[str] = []
    pos = 0
    for match in _STRING_LITERAL_RE.finditer(formula):
        out.append(fn(formula[pos:match.start()]))
        out.append(match.group(0))
        pos = match.end()
    out.append(fn(formula[pos:]))
    return "".join(out)


def code_only(formula: str) -> str:
    """Return *formula* with string literal contents blanked, positions intact."""
    return _STRING_LITERAL_RE.sub(lambda m: '"' + " " * (len(m.group(0)) - 2) + '"', formula)


def _call_pattern(names: Any) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(n) for n in sorted(names, key=len, reverse=True))
    return re.compile(rf"{_NAME_START}({alternatives})\s*\(", re.IGNORECASE)


# ── Library ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class PatternLibrary:
    """Compiled, read-only view of the pattern tables."""

    error_signatures: tuple[tuple[FindingKind, str], ...] = ERROR_SIGNATURES
    error_keywords: tuple[tuple[FindingKind, str], ...] = ERROR_KEYWORDS
    shape_patterns: tuple[tuple[str, str], ...] = SHAPE_PATTERNS
    lookup_functions: tuple[tuple[str, str], ...] = LOOKUP_FUNCTIONS
    conditional_functions: tuple[str, ...] = CONDITIONAL_FUNCTIONS
    function_aliases: tuple[tuple[str, str], ...] = FUNCTION_ALIASES
    currency_symbols: str = CURRENCY_SYMBOLS

    _signature_res: tuple[tuple[FindingKind, re.Pattern[str]], ...] = field(
        init=False, repr=False, compare=False
    )
    _shape_res: tuple[tuple[str, re.Pattern[str]], ...] = field(init=False, repr=False, compare=False)
    _lookup_re: re.Pattern[str] = field(init=False, repr=False, compare=False)
    _conditional_re: re.Pattern[str] = field(init=False, repr=False, compare=False)
    _alias_res: tuple[tuple[str, str, re.Pattern[str]], ...] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "_signature_res",
            tuple((kind, re.compile(re.escape(sig), re.IGNORECASE)) for kind, sig in self.error_signatures),
        )
        object.__setattr__(
            self,
            "_shape_res",
            tuple((name, re.compile(pattern, re.IGNORECASE)) for name, pattern in self.shape_patterns),
        )
        object.__setattr__(self, "_lookup_re", _call_pattern(name for name, _ in self.lookup_functions))
        object.__setattr__(self, "_conditional_re", _call_pattern(self.conditional_functions))
        object.__setattr__(
            self,
            "_alias_res",
            tuple(
                (wrong, right, re.compile(rf"{_NAME_START}{re.escape(wrong)}(?=\s*\()", re.IGNORECASE))
                for wrong, right in self.function_aliases
            ),
        )

    # -- error classification --------------------------------------------

    def match_signature(self, text: str) -> FindingKind | None:
        """Return the error kind whose signature appears in *text*."""
        if not text or "#" not in text:
            return None
        for kind, pattern in self._signature_res:
            if pattern.search(text):
                return kind
        return None

    def classify_native_error(self, code: str) -> FindingKind | None:
        """Classify a codec error tag, sniffing keywords when it is not exact."""
        stripped = code.strip()
        for kind, signature in self.error_signatures:
            if stripped.upper() == signature.upper():
                return kind
        upper = stripped.upper()
        for kind, keyword in self.error_keywords:
            if keyword in upper:
                return kind
        return None

    def classify_cell_error(self, cell: Cell) -> FindingKind | None:
        """Return the error kind a cell exhibits, if any."""
        if cell.error:
            kind = self.classify_native_error(cell.error)
            if kind is None:
                kind = self.classify_native_error(cell.display)
            if kind is not None:
                return kind
        kind = self.match_signature(cell.display)
        if kind is None and cell.formula:
            kind = self.match_signature(cell.formula)
        return kind

    # -- data shapes -----------------------------------------------------

    def shape_of_text(self, text: str) -> str:
        """Return the first recognized shape of *text*, or ``"text"``."""
        stripped = text.strip()
        if not stripped:
            return "text"
        for name, pattern in self._shape_res:
            if pattern.match(stripped):
                return name
        return "text"

    def shape_of(self, cell: Cell) -> str:
        """Classify a cell's displayed value as numeric/date/email/phone/currency/text."""
        value = cell.value
        if isinstance(value, bool):
            return "text"
        if isinstance(value, (datetime, date)):
            return "date"
        if isinstance(value, time):
            return "text"
        if isinstance(value, (int, float)):
            if any(symbol in cell.number_format for symbol in self.currency_symbols):
                return "currency"
            return "numeric"
        return self.shape_of_text(cell.display)

    def is_numeric(self, cell: Cell) -> bool:
        value = cell.value
        if isinstance(value, bool):
            return False
        if isinstance(value, (int, float)):
            return True
        if isinstance(value, str):
            return self.shape_of_text(value) == "numeric"
        return False

    # -- formula vocabularies --------------------------------------------

    def lookup_match(self, formula: str) -> re.Match[str] | None:
        """Locate the first lookup call in *formula*; the match ends at its "("."""
        return self._lookup_re.search(code_only(formula))

    def lookup_call(self, formula: str) -> str | None:
        """Return the canonical lookup function *formula* calls, if any."""
        match = self.lookup_match(formula)
        if match is None:
            return None
        name = match.group(1).upper()
        return next(canonical for alias, canonical in self.lookup_functions if alias.upper() == name)

    def conditional_depth(self, formula: str) -> int:
        """Deepest nesting of conditional calls in *formula*."""
        code = code_only(formula)
        starts = {m.end() - 1 for m in self._conditional_re.finditer(code)}
        stack: list[bool] = []
        depth = deepest = 0
        for pos, ch in enumerate(code):
            if ch == "(":
                is_conditional = pos in starts
                stack.append(is_conditional)
                if is_conditional:
                    depth += 1
                    deepest = max(deepest, depth)
            elif ch == ")" and stack:
                if stack.pop():
                    depth -= 1
        return deepest

    def first_alias(self, formula: str) -> tuple[str, str, re.Match[str]] | None:
        """Return ``(alias, canonical, match)`` for the first alias called in *formula*."""
        code = code_only(formula)
        for wrong, right, pattern in self._alias_res:
            match = pattern.search(code)
            if match is not None:
                return wrong, right, match
        return None


DEFAULT_LIBRARY = PatternLibrary()

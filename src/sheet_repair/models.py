"""Data models used across the package."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from numbers import Integral
from typing import Any


class Severity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class FindingKind(str, Enum):
    """Every kind of issue a detector can report."""

    # Spreadsheet error values
    BROKEN_REFERENCE = "broken-reference"
    VALUE_TYPE = "value-type"
    UNKNOWN_NAME = "unknown-name"
    DIVISION_BY_ZERO = "division-by-zero"
    NULL_INTERSECTION = "null-intersection"
    NOT_APPLICABLE = "not-applicable"
    NUMERIC_OVERFLOW = "numeric-overflow"
    STILL_COMPUTING = "still-computing"

    # Heuristic findings
    TYPE_MISMATCH = "type-mismatch"
    MERGED_FORMULA = "merged-formula"
    CROSS_SHEET_REFERENCE = "cross-sheet-reference"
    COMPLEX_FORMULA = "complex-formula"
    NESTED_CONDITIONALS = "nested-conditionals"
    UNLOCKED_LOOKUP = "unlocked-lookup"
    DUPLICATE_VALUE = "duplicate-value"
    EMPTY_GAP = "empty-gap"
    FORMAT_MISMATCH = "format-mismatch"


ERROR_KINDS: frozenset[FindingKind] = frozenset(
    {
        FindingKind.BROKEN_REFERENCE,
        FindingKind.VALUE_TYPE,
        FindingKind.UNKNOWN_NAME,
        FindingKind.DIVISION_BY_ZERO,
        FindingKind.NULL_INTERSECTION,
        FindingKind.NOT_APPLICABLE,
        FindingKind.NUMERIC_OVERFLOW,
        FindingKind.STILL_COMPUTING,
    }
)


def _to_non_negative_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TypeError(f"{field_name} must be an integer")
    result = int(value)
    if result < 0:
        raise ValueError(f"{field_name} must be >= 0")
    return result


def _to_string_list(values: Sequence[Any] | None, field_name: str) -> list[str]:
    if values is None:
        return []
    if isinstance(values, str):
        raise TypeError(f"{field_name} must be a sequence of strings")
    normalized: list[str] = []
    for item in values:
        if not isinstance(item, str):
            raise TypeError(f"{field_name} items must be strings")
        normalized.append(item)
    return normalized


def _to_optional_text(value: Any, field_name: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string")
    return value or None


@dataclass(frozen=True)
class Finding:
    """One reported issue, optionally carrying a proposed replacement formula.

    ``index`` is the finding's position in the analysis result and the only
    identity it has; it is assigned once by the orchestrator.
    Contract invariant: ``proposed`` implies ``reason``.
    """

    sheet: str
    row: int
    col: str
    kind: FindingKind
    severity: Severity
    value: str = ""
    proposed: str | None = None
    reason: str | None = None
    index: int | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.sheet, str):
            raise TypeError("sheet must be a string")
        row = _to_non_negative_int(self.row, "row")
        if row < 1:
            raise ValueError("row must be >= 1")
        if not isinstance(self.col, str) or not self.col.isalpha() or not self.col.isupper():
            raise ValueError(f"col must be a column label like 'A', got {self.col!r}")
        object.__setattr__(self, "row", row)
        object.__setattr__(self, "kind", FindingKind(self.kind))
        object.__setattr__(self, "severity", Severity(self.severity))
        object.__setattr__(self, "value", "" if self.value is None else str(self.value))
        proposed = _to_optional_text(self.proposed, "proposed")
        reason = _to_optional_text(self.reason, "reason")
        if proposed and not reason:
            raise ValueError("reason is required when proposed is set")
        object.__setattr__(self, "proposed", proposed)
        object.__setattr__(self, "reason", reason)
        if self.index is not None:
            object.__setattr__(self, "index", _to_non_negative_int(self.index, "index"))

    @property
    def address(self) -> str:
        return f"{self.col}{self.row}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "sheet": self.sheet,
            "row": self.row,
            "col": self.col,
            "kind": self.kind.value,
            "severity": self.severity.value,
            "value": self.value,
            "proposed": self.proposed,
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Finding:
        missing = [key for key in ("sheet", "row", "col", "kind", "severity") if key not in data]
        if missing:
            raise ValueError(f"Finding is missing fields: {', '.join(missing)}")
        return cls(
            sheet=data["sheet"],
            row=data["row"],
            col=data["col"],
            kind=FindingKind(data["kind"]),
            severity=Severity(data["severity"]),
            value=data.get("value", ""),
            proposed=data.get("proposed"),
            reason=data.get("reason"),
            index=data.get("index"),
        )


@dataclass
class RunManifest:
    """Audit-trail manifest for a single analyze or fix run."""

    tool: str = "sheet-repair"
    command: str = "analyze"
    version: str = ""
    input_path: str = ""
    output_path: str = ""
    created_at_utc: str = ""
    sha256: str = ""
    sheets: list[str] = field(default_factory=list)
    findings: int = 0
    status: str = "success"
    error_message: str = ""

    def __post_init__(self) -> None:
        self.findings = _to_non_negative_int(self.findings, "findings")
        self.sheets = _to_string_list(self.sheets, "sheets")
        if self.status not in {"success", "failed"}:
            raise ValueError("status must be 'success' or 'failed'")

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "command": self.command,
            "version": self.version,
            "input_path": self.input_path,
            "output_path": self.output_path,
            "created_at_utc": self.created_at_utc,
            "sha256": self.sha256,
            "sheets": list(self.sheets),
            "findings": self.findings,
            "status": self.status,
            "error_message": self.error_message,
        }

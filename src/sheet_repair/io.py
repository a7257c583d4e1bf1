"""I/O helpers — findings JSON, workbook output paths, atomic writes."""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from sheet_repair import FIXED_SUFFIX
from sheet_repair.models import Finding

# ── Writing ──────────────────────────────────────────────────────


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    item = getattr(obj, "item", None)
    if callable(item):
        converted = item()
        if isinstance(converted, (str, int, float, bool)) or converted is None:
            return converted
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def write_json(path: Path, data: Any) -> Path:
    """Write *data* as pretty-printed JSON to *path* (atomic + deterministic)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = json.dumps(
        data,
        indent=2,
        sort_keys=True,
        ensure_ascii=False,
        default=_json_default,
    ) + "\n"
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(payload, encoding="utf-8")
    tmp_path.replace(path)
    return path


def write_bytes(path: Path, data: bytes) -> Path:
    """Write *data* to *path* atomically."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.stem}.tmp{path.suffix}")
    tmp_path.write_bytes(data)
    tmp_path.replace(path)
    return path


def write_findings(path: Path, findings: Sequence[Finding]) -> Path:
    """Write the finding sequence, in order, to *path*."""
    return write_json(path, [finding.to_dict() for finding in findings])


# ── Loading ──────────────────────────────────────────────────────


def read_findings(path: Path) -> list[Finding]:
    """Load findings written by :func:`write_findings`.

    Raises
    ------
    ValueError
        If the file is missing, not JSON, or not a list of findings.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ValueError(f"Findings file not found: {path}") from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise ValueError(f"Could not read findings {path}: {exc}") from exc
    if not isinstance(data, list):
        raise ValueError(f"Findings file {path} must contain a JSON list")

    findings: list[Finding] = []
    for position, item in enumerate(data):
        if not isinstance(item, dict):
            raise ValueError(f"Finding #{position} in {path} is not an object")
        try:
            finding = Finding.from_dict(item)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Finding #{position} in {path} is invalid: {exc}") from exc
        if finding.index is not None and finding.index != position:
            raise ValueError(
                f"Finding #{position} in {path} has index {finding.index}; order was changed"
            )
        findings.append(finding)
    return findings


def fixed_output_name(path: Path, suffix: str = FIXED_SUFFIX) -> Path:
    """``book.xlsx`` -> ``book_corrigido.xlsx`` (always an .xlsx)."""
    path = Path(path)
    return path.with_name(f"{path.stem}{suffix}.xlsx")

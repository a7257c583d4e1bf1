"""Detector thresholds and the detector pipeline."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from numbers import Integral, Real
from pathlib import Path
from typing import Any

DETECTOR_NAMES: tuple[str, ...] = (
    "errors",
    "type_mismatch",
    "merged_cells",
    "cross_sheet",
    "complexity",
    "lookup_lock",
    "duplicates",
    "empty_gaps",
    "format_consistency",
)


@dataclass(frozen=True)
class AnalyzerConfig:
    """Tunable thresholds for every detector.

    Defaults reproduce the stock behaviour; ``detectors`` selects and orders
    the scan passes (it must be a subsequence of :data:`DETECTOR_NAMES`).
    """

    type_sample_rows: int = 21
    type_min_numeric: int = 5
    type_max_non_numeric_ratio: float = 1 / 3
    long_formula_length: int = 500
    preview_length: int = 100
    max_nested_conditionals: int = 5
    duplicate_min_length: int = 2
    format_max_deviations: int = 5
    header_rows: int = 0
    detectors: tuple[str, ...] = DETECTOR_NAMES

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "detectors":
                continue
            if f.name == "type_max_non_numeric_ratio":
                if isinstance(value, bool) or not isinstance(value, Real) or not 0 < value <= 1:
                    raise ValueError(f"{f.name} must be a number in (0, 1]")
                continue
            if isinstance(value, bool) or not isinstance(value, Integral):
                raise TypeError(f"{f.name} must be an integer")
            if value < 0:
                raise ValueError(f"{f.name} must be >= 0")

        detectors = self.detectors
        if isinstance(detectors, str):
            raise TypeError("detectors must be a sequence of detector names")
        detectors = tuple(detectors)
        unknown = [name for name in detectors if name not in DETECTOR_NAMES]
        if unknown:
            raise ValueError(f"Unknown detectors: {', '.join(map(str, unknown))}")
        positions = [DETECTOR_NAMES.index(name) for name in detectors]
        if positions != sorted(set(positions)):
            raise ValueError("detectors must keep the pipeline order without repeats")
        object.__setattr__(self, "detectors", detectors)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["detectors"] = list(self.detectors)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnalyzerConfig:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def from_file(cls, path: Path) -> AnalyzerConfig:
        """Load overrides from a JSON file; absent keys keep their defaults."""
        path = Path(path)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise ValueError(f"Cannot read config {path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise ValueError(f"Config {path} is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ValueError(f"Config {path} must contain a JSON object")
        return cls.from_dict(data)

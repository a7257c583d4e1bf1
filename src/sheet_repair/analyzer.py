"""Run the detector pipeline over a workbook, or over raw workbook bytes.

``analyze`` is pure: it reads a decoded workbook and returns findings.
The ``*_bytes`` helpers bracket the engine with the codec, and their async
variants run that whole unit of work off the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Collection, Sequence
from dataclasses import replace

from sheet_repair.codec import decode, encode
from sheet_repair.config import AnalyzerConfig
from sheet_repair.detectors import DETECTORS, DetectorContext
from sheet_repair.grid import Sheet, Workbook
from sheet_repair.models import Finding
from sheet_repair.patch import apply_fixes
from sheet_repair.patterns import DEFAULT_LIBRARY, PatternLibrary

logger = logging.getLogger(__name__)


def select_sheets(workbook: Workbook, names: Sequence[str] | None = None) -> list[Sheet]:
    """Return the sheets to analyse, in selection order.

    An empty or missing selection means every sheet; unknown names are skipped.
    """
    if not names:
        return list(workbook.sheets)
    selected: list[Sheet] = []
    for name in dict.fromkeys(names):
        sheet = workbook.get_sheet(name)
        if sheet is None:
            logger.warning("Sheet %r not found; skipping", name)
            continue
        selected.append(sheet)
    return selected


def analyze_sheet(sheet: Sheet, context: DetectorContext) -> list[Finding]:
    """Run every enabled detector over one sheet, in pipeline order."""
    bounds = sheet.bounds()
    if bounds is None:
        logger.debug("Sheet %r is empty", sheet.name)
        return []
    findings: list[Finding] = []
    for name in context.config.detectors:
        found = DETECTORS[name](sheet, bounds, context)
        logger.debug("Sheet %r: %s found %d issue(s)", sheet.name, name, len(found))
        findings.extend(found)
    return findings


def analyze(
    workbook: Workbook,
    sheets: Sequence[str] | None = None,
    *,
    config: AnalyzerConfig | None = None,
    library: PatternLibrary = DEFAULT_LIBRARY,
) -> list[Finding]:
    """Scan *workbook* and return its findings.

    Each finding's ``index`` is its position in the returned list; the same
    workbook, selection and config always produce the same list.
    """
    context = DetectorContext.for_workbook(workbook, library, config)
    findings: list[Finding] = []
    for sheet in select_sheets(workbook, sheets):
        found = analyze_sheet(sheet, context)
        logger.info("Sheet %r: %d finding(s)", sheet.name, len(found))
        findings.extend(found)
    return [replace(finding, index=i) for i, finding in enumerate(findings)]


# ── Codec round trips ────────────────────────────────────────────


def analyze_bytes(
    data: bytes,
    sheets: Sequence[str] | None = None,
    *,
    config: AnalyzerConfig | None = None,
) -> list[Finding]:
    """Decode *data* and analyse it. Raises ``DecodeError`` on bad input."""
    return analyze(decode(data), sheets, config=config)


def fix_bytes(data: bytes, findings: Sequence[Finding], accepted: Collection[int]) -> bytes:
    """Decode *data*, apply the accepted findings and encode the result."""
    workbook = apply_fixes(decode(data), findings, accepted)
    return encode(workbook)


async def analyze_bytes_async(
    data: bytes,
    sheets: Sequence[str] | None = None,
    *,
    config: AnalyzerConfig | None = None,
) -> list[Finding]:
    return await asyncio.to_thread(analyze_bytes, data, sheets, config=config)


async def fix_bytes_async(
    data: bytes, findings: Sequence[Finding], accepted: Collection[int]
) -> bytes:
    return await asyncio.to_thread(fix_bytes, data, findings, accepted)

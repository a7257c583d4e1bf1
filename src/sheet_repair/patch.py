"""Write accepted proposals back into a workbook."""

from __future__ import annotations

import logging
from collections.abc import Collection, Sequence

from sheet_repair.grid import Workbook, parse_address, strip_formula_prefix
from sheet_repair.models import Finding

logger = logging.getLogger(__name__)


def apply_fixes(
    workbook: Workbook,
    findings: Sequence[Finding],
    accepted: Collection[int],
) -> Workbook:
    """Apply the proposals of the findings at *accepted* indices, in place.

    Each patched cell gets the proposal (minus its leading ``=``) as formula
    and loses its cached value. Indices that are out of range, have no
    proposal, or point at a missing sheet are skipped with a warning.
    Returns *workbook*.
    """
    applied = 0
    for index in sorted(set(accepted)):
        if not 0 <= index < len(findings):
            logger.warning("Finding index %d out of range (0..%d); skipping", index, len(findings) - 1)
            continue
        finding = findings[index]
        if not finding.proposed:
            logger.debug("Finding %d has no proposal; skipping", index)
            continue

        sheet = workbook.get_sheet(finding.sheet) if finding.sheet else workbook.first_sheet
        if sheet is None:
            logger.warning(
                "Finding %d targets missing sheet %r; skipping", index, finding.sheet
            )
            continue

        row, col = parse_address(finding.address)
        sheet.set_formula(row, col, strip_formula_prefix(finding.proposed))
        applied += 1

    logger.info("Applied %d of %d accepted fix(es)", applied, len(set(accepted)))
    return workbook

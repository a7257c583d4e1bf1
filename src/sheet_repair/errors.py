"""Codec-boundary exceptions.

Everything found inside a workbook is reported as a finding; only failures
to read or write the container itself surface as exceptions.
"""

from __future__ import annotations


class SheetRepairError(Exception):
    """Base class for sheet-repair failures."""


class DecodeError(SheetRepairError, ValueError):
    """The input bytes are not a readable workbook."""


class EncodeError(SheetRepairError, ValueError):
    """The workbook could not be written back to bytes."""

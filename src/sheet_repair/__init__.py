"""sheet-repair — Find spreadsheet errors and propose formula fixes."""

__version__ = "0.2.0"

FIXED_SUFFIX: str = "_corrigido"

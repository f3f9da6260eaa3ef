"""Sheet data providers (in-memory and Excel workbook backends)."""

from .excel import ExcelSheetProvider
from .memory import InMemorySheetProvider
from .provider import SheetProvider, sheet_operation

__all__ = [
    "SheetProvider",
    "sheet_operation",
    "InMemorySheetProvider",
    "ExcelSheetProvider",
]

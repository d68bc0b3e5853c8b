"""gridcalc - an Excel-style formula engine over a flat map of cells.

Usage::

    from gridcalc import Cell, evaluate, recalculate_all

    cells = {"A1": Cell("10"), "B1": Cell("=A1*2"), "C1": Cell("=B1+A1")}
    cells = recalculate_all(cells)
    print(cells["C1"].calculated_value)   # 30
    print(evaluate("SUM(A1:C1)", cells))  # 60
"""

from gridcalc._cell import Cell, CellMap
from gridcalc._utils import CellCoord, InvalidReferenceError, column_to_index, index_to_column, parse_ref
from gridcalc._worker import RecalcRequest, RecalcResponse, RecalcWorker, RecalcWorkerError, handle_request
from gridcalc.calc import (
    BLANK,
    ExcelError,
    SpreadsheetEngine,
    coerce,
    evaluate,
    expand_range,
    recalculate_all,
    recalculate_subset,
    to_display,
)
from gridcalc.config import Settings, settings

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "BLANK",
    "Cell",
    "CellCoord",
    "CellMap",
    "ExcelError",
    "InvalidReferenceError",
    "RecalcRequest",
    "RecalcResponse",
    "RecalcWorker",
    "RecalcWorkerError",
    "Settings",
    "SpreadsheetEngine",
    "coerce",
    "column_to_index",
    "evaluate",
    "expand_range",
    "handle_request",
    "index_to_column",
    "parse_ref",
    "recalculate_all",
    "recalculate_subset",
    "settings",
    "to_display",
]

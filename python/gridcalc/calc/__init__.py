"""gridcalc.calc - Formula evaluation engine for gridcalc cell maps."""

from gridcalc.calc._coerce import coerce, to_display
from gridcalc.calc._engine import (
    SpreadsheetEngine,
    evaluate,
    recalculate_all,
    recalculate_subset,
    schedule_recalculation,
)
from gridcalc.calc._evaluator import FormulaEvaluator
from gridcalc.calc._functions import FUNCTION_CATEGORIES, FunctionRegistry, is_supported
from gridcalc.calc._graph import DependencyGraph
from gridcalc.calc._parser import FormulaSyntaxError, all_references, expand_range, parse_formula
from gridcalc.calc._protocol import CalcEngine, CellDelta, RecalcResult
from gridcalc.calc._values import BLANK, ExcelError, RangeValue

__all__ = [
    "BLANK",
    "CalcEngine",
    "CellDelta",
    "DependencyGraph",
    "ExcelError",
    "FUNCTION_CATEGORIES",
    "FormulaEvaluator",
    "FormulaSyntaxError",
    "FunctionRegistry",
    "RangeValue",
    "RecalcResult",
    "SpreadsheetEngine",
    "all_references",
    "coerce",
    "evaluate",
    "expand_range",
    "is_supported",
    "parse_formula",
    "recalculate_all",
    "recalculate_subset",
    "schedule_recalculation",
    "to_display",
]

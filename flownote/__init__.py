"""
flownote: plain-text notes with live calculations.

A document mixes prose with lines that look like code:
- Assignments (``hotel.nights = 4``) build up a scope, with dot-paths
  creating nested objects
- Function definitions (``tip(amount, pct) = amount * pct / 100``)
- Bare expressions, whose value becomes ``ans``

Every code line is evaluated in order; a failing line never stops the rest.
"""

from flownote.expression import EvaluationError, ExpressionSyntaxError, evaluate
from flownote.kernel import (
    DocumentKernel,
    EvaluationOutput,
    EvaluationResult,
    ResultType,
    evaluate_document,
)
from flownote.parser import LineType, ParsedLine, classify_line, parse_document
from flownote.scope import Scope, UserFunction
from flownote.values import UNDEFINED

__version__ = "0.1.0"
__all__ = [
    "classify_line",
    "evaluate_document",
    "evaluate",
    "parse_document",
    "DocumentKernel",
    "EvaluationOutput",
    "EvaluationResult",
    "ResultType",
    "LineType",
    "ParsedLine",
    "Scope",
    "UserFunction",
    "EvaluationError",
    "ExpressionSyntaxError",
    "UNDEFINED",
]

"""
Document evaluation: runs every line of a document in order.
"""

import logging
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

from flownote.expression import EvaluationError, evaluate
from flownote.functions import BUILTIN_FUNCTIONS, MATH_FUNCTIONS
from flownote.parser import LineType, ParsedLine, parse_document
from flownote.scope import Scope, UserFunction
from flownote.values import UNDEFINED, to_jsonable

logger = logging.getLogger(__name__)

# User functions may recurse; each call costs a dozen interpreter frames
RECURSION_LIMIT = 10_000


class ResultType(str, Enum):
    """Kind of a line's evaluation result."""
    VALUE = "value"
    ASSIGNMENT = "assignment"
    FUNCTION_DEF = "function-def"
    TEXT = "text"
    COMMENT = "comment"
    ERROR = "error"


@dataclass
class EvaluationResult:
    """Result of evaluating one line."""
    line_number: int
    type: ResultType
    result: Any = UNDEFINED
    error: Optional[str] = None

    @property
    def has_value(self) -> bool:
        return self.type in (ResultType.VALUE, ResultType.ASSIGNMENT)

    def to_dict(self) -> dict:
        """Convert to a JSON-compatible dictionary."""
        data = {
            "line_number": self.line_number,
            "type": self.type.value,
        }
        if self.has_value:
            data["result"] = to_jsonable(self.result)
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class EvaluationOutput:
    """All line results of a document plus the final scope."""
    results: list[EvaluationResult] = field(default_factory=list)
    scope: Scope = field(default_factory=Scope)

    @property
    def variables(self) -> dict[str, Any]:
        return self.scope.get_top_level_variables()

    @property
    def errors(self) -> list[EvaluationResult]:
        return [r for r in self.results if r.type == ResultType.ERROR]

    def to_dict(self) -> dict:
        return {
            "results": [r.to_dict() for r in self.results],
            "variables": to_jsonable(self.variables),
        }


def _make_user_function(func: UserFunction, context: dict[str, Any]):
    """Callable that evaluates a user function body with its parameters bound."""

    def call(*args):
        local_context = dict(context)
        for index, param in enumerate(func.params):
            local_context[param] = args[index] if index < len(args) else UNDEFINED
        return evaluate(func.body, local_context)

    return call


def build_eval_context(
    scope: Scope,
    ans: Any,
    external_variables: Optional[Mapping[str, Any]] = None,
) -> dict[str, Any]:
    """
    Build the bindings table for one line.

    Later layers shadow earlier ones: math library, builtin aggregates,
    external variables, scope variables, user functions, then ``ans``/``_``.
    """
    context: dict[str, Any] = dict(MATH_FUNCTIONS)
    context.update(BUILTIN_FUNCTIONS)
    if external_variables:
        context.update(external_variables)
    context.update(scope.get_top_level_variables())

    # Wrappers read ``context`` at call time, so they see each other
    for name, func in scope.functions.items():
        context[name] = _make_user_function(func, context)

    context["ans"] = ans
    context["_"] = ans
    return context


def evaluate_line(
    parsed: ParsedLine,
    scope: Scope,
    line_number: int,
    ans: Any,
    external_variables: Optional[Mapping[str, Any]] = None,
) -> EvaluationResult:
    """
    Evaluate a single parsed line, updating the scope.

    Failures never raise; they become an error result and leave the
    scope untouched.
    """
    if parsed.type == LineType.TEXT:
        return EvaluationResult(line_number=line_number, type=ResultType.TEXT)

    if parsed.type == LineType.COMMENT:
        return EvaluationResult(line_number=line_number, type=ResultType.COMMENT)

    if parsed.type == LineType.FUNCTION_DEF:
        scope.define_function(parsed.func_name, parsed.func_params, parsed.func_body)
        return EvaluationResult(line_number=line_number, type=ResultType.FUNCTION_DEF)

    try:
        context = build_eval_context(scope, ans, external_variables)
        result = evaluate(parsed.expression, context)
    except EvaluationError as e:
        logger.debug("Line %d failed: %s", line_number, e)
        return EvaluationResult(line_number=line_number, type=ResultType.ERROR, error=str(e))

    if parsed.var_name:
        scope.set_variable(parsed.var_name, result)
        return EvaluationResult(line_number=line_number, type=ResultType.ASSIGNMENT, result=result)

    return EvaluationResult(line_number=line_number, type=ResultType.VALUE, result=result)


def evaluate_document(
    content: str,
    external_variables: Optional[Mapping[str, Any]] = None,
) -> EvaluationOutput:
    """
    Evaluate an entire document line by line.

    Args:
        content: Document text, lines separated by ``\\n``
        external_variables: Extra top-level names (e.g. global constants),
            shadowed by assignments made in the document

    Returns:
        EvaluationOutput with one result per line and the final scope
    """
    scope = Scope()
    results = []
    ans: Any = 0

    previous_limit = sys.getrecursionlimit()
    sys.setrecursionlimit(max(previous_limit, RECURSION_LIMIT))
    try:
        for index, parsed in enumerate(parse_document(content)):
            result = evaluate_line(parsed, scope, index + 1, ans, external_variables)
            results.append(result)

            if result.has_value and result.result is not UNDEFINED:
                ans = result.result
                scope.set_variable("ans", ans)
                scope.set_variable("_", ans)
    finally:
        sys.setrecursionlimit(previous_limit)

    errors = sum(1 for r in results if r.type == ResultType.ERROR)
    logger.debug("Evaluated %d lines, %d error(s)", len(results), errors)

    return EvaluationOutput(results=results, scope=scope)


class DocumentKernel:
    """
    Keeps a document and its global variables, re-evaluating on every change.

    Each evaluation starts from a fresh scope; the kernel only remembers
    the document text, the last output and a history of evaluations.
    """

    def __init__(self, external_variables: Optional[Mapping[str, Any]] = None):
        self.external_variables: dict[str, Any] = dict(external_variables or {})
        self.lines: list[str] = []
        self.execution_count = 0
        self.last_output = EvaluationOutput()
        self._history: list[tuple[int, str, EvaluationOutput]] = []

    @property
    def content(self) -> str:
        return "\n".join(self.lines)

    def execute(self, content: str) -> EvaluationOutput:
        """Replace the document and evaluate it."""
        self.lines = content.split("\n")
        return self._run()

    def append_line(self, line: str) -> EvaluationResult:
        """Append a line, re-evaluate, and return the new line's result."""
        self.lines.append(line)
        return self._run().results[-1]

    def _run(self) -> EvaluationOutput:
        self.execution_count += 1
        content = self.content
        output = evaluate_document(content, self.external_variables)
        self.last_output = output
        self._history.append((self.execution_count, content, output))
        return output

    def get_variable(self, path: str) -> Any:
        """Get a variable from the last evaluation, supporting dot notation."""
        return self.last_output.scope.get_variable(path)

    def get_namespace(self) -> dict[str, Any]:
        """Top-level variables of the last evaluation, without ans/_."""
        return {
            k: v for k, v in self.last_output.variables.items()
            if k not in ("ans", "_")
        }

    def get_defined_names(self) -> list[str]:
        return [n for n in self.last_output.scope.defined_names() if n not in ("ans", "_")]

    def get_history(self) -> list[tuple[int, str, EvaluationOutput]]:
        return self._history.copy()

    def clear_history(self):
        self._history.clear()

    def reset(self):
        """Forget the document and all results."""
        self.lines = []
        self.execution_count = 0
        self.last_output = EvaluationOutput()
        self._history.clear()

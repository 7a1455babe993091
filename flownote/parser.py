"""
Line parser: classifies each line of a document as code or prose.
"""

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class LineType(str, Enum):
    """Kind of a document line."""
    EXPRESSION = "expression"
    COMMENT = "comment"
    TEXT = "text"
    FUNCTION_DEF = "function-def"


IDENTIFIER = r"[a-zA-Z_$][a-zA-Z0-9_$]*"

# name(args) = expression
FUNCTION_DEF_PATTERN = re.compile(rf"^({IDENTIFIER})\s*\(([^)]*)\)\s*=\s*(.+)$")

# varName = expression, varName may be a dot-path
ASSIGNMENT_PATTERN = re.compile(rf"^({IDENTIFIER}(?:\.{IDENTIFIER})*)\s*=\s*(.+)$")

_PARAMETER = re.compile(rf"^{IDENTIFIER}$")

_EXPRESSION_HINTS = [
    re.compile(r"[+\-*/%^]"),                   # arithmetic
    re.compile(r"[a-zA-Z_$][a-zA-Z0-9_$]*\s*\("),  # function call
    re.compile(r"[<>]=?|[!=]="),                # comparison
    re.compile(r"="),                           # assignment operator
    re.compile(r"^\s*-?\d+\.?\d*\s*$"),         # bare number
]
_BARE_PATH = re.compile(r"^[a-zA-Z_$][a-zA-Z0-9_$.]*$")


class ParsedLine(BaseModel):
    """A single classified line."""
    model_config = ConfigDict(frozen=True)

    type: LineType
    raw: str
    var_name: Optional[str] = None
    expression: Optional[str] = None
    func_name: Optional[str] = None
    func_params: list[str] = Field(default_factory=list)
    func_body: Optional[str] = None

    @model_validator(mode="after")
    def _check_kind(self) -> "ParsedLine":
        if self.type == LineType.FUNCTION_DEF:
            if not self.func_name or self.func_body is None:
                raise ValueError("function definition needs a name and a body")
            if self.var_name is not None or self.expression is not None:
                raise ValueError("function definition cannot carry an assignment")
        elif self.type == LineType.EXPRESSION:
            if self.expression is None:
                raise ValueError("expression line needs an expression")
            if self.func_name is not None:
                raise ValueError("expression line cannot carry a function definition")
        elif any(v is not None for v in (self.var_name, self.expression, self.func_name, self.func_body)):
            raise ValueError(f"{self.type.value} line cannot carry code")
        return self

    @property
    def is_assignment(self) -> bool:
        return self.type == LineType.EXPRESSION and self.var_name is not None


def looks_like_expression(line: str) -> bool:
    """
    Check if a line looks like an expression rather than prose.

    True for lines with an operator, a call shape, a comparison, an ``=``,
    a bare number, or a bare (dot-path) identifier.
    """
    if any(pattern.search(line) for pattern in _EXPRESSION_HINTS):
        return True
    return bool(_BARE_PATH.match(line.strip()))


def _is_assignment_operator(line: str, index: int) -> bool:
    """The ``=`` at index is not part of ``==``, ``!=``, ``<=`` or ``>=``."""
    if index <= 0:
        return False
    before = line[index - 1]
    after = line[index + 1] if index + 1 < len(line) else ""
    return before not in "!=<>" and after != "="


def parse_line(line: str) -> ParsedLine:
    """
    Classify a single line.

    Never raises: anything that is not recognised as code is text.

    Args:
        line: Raw line, kept verbatim in ``raw``

    Returns:
        The classified line
    """
    trimmed = line.strip()

    if trimmed == "":
        return ParsedLine(type=LineType.TEXT, raw=line)

    if trimmed.startswith("#") or trimmed.startswith("//"):
        return ParsedLine(type=LineType.COMMENT, raw=line)

    func_match = FUNCTION_DEF_PATTERN.match(trimmed)
    if func_match and not func_match.group(3).startswith("="):
        func_name, params_str, func_body = func_match.groups()
        func_params = [p.strip() for p in params_str.split(",") if p.strip() != ""]
        # Parameters must be plain names
        if all(_PARAMETER.match(p) for p in func_params):
            return ParsedLine(
                type=LineType.FUNCTION_DEF,
                raw=line,
                func_name=func_name,
                func_params=func_params,
                func_body=func_body,
            )

    assignment_match = ASSIGNMENT_PATTERN.match(trimmed)
    if assignment_match:
        var_name, expression = assignment_match.groups()
        if _is_assignment_operator(trimmed, trimmed.index("=")):
            return ParsedLine(
                type=LineType.EXPRESSION,
                raw=line,
                var_name=var_name,
                expression=expression,
            )

    if looks_like_expression(trimmed):
        return ParsedLine(type=LineType.EXPRESSION, raw=line, expression=trimmed)

    return ParsedLine(type=LineType.TEXT, raw=line)


classify_line = parse_line


def parse_document(content: str) -> list[ParsedLine]:
    """Classify every line of a document."""
    return [parse_line(line) for line in content.split("\n")]

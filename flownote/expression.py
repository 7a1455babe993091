"""
Expression evaluator: lark grammar, AST builder and interpreter.

Expressions use a small JavaScript-flavoured syntax and are evaluated
against an explicit bindings dict; names outside that dict are not
reachable.

Usage:
    evaluate("hotel.perNight * nights", {"hotel": {"perNight": 180}, "nights": 4})
    # 720
"""

import math
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from lark import Lark, Transformer, UnexpectedCharacters, UnexpectedEOF, UnexpectedToken, v_args

from flownote.functions import power
from flownote.values import UNDEFINED, is_number, is_truthy, to_safe_number, to_text, type_name


class EvaluationError(Exception):
    """Raised when an expression fails to parse or to run."""


class ExpressionSyntaxError(EvaluationError):
    """The expression text is not a valid expression."""


KEYWORDS = {
    "true": True,
    "false": False,
    "null": None,
    "undefined": UNDEFINED,
    "Infinity": math.inf,
    "NaN": math.nan,
}

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0"}
_ESCAPE = re.compile(r"\\(.)", re.DOTALL)


# ── AST ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Identifier:
    name: str


@dataclass(frozen=True)
class ArrayLiteral:
    items: tuple


@dataclass(frozen=True)
class ObjectLiteral:
    entries: tuple  # of (key, node)


@dataclass(frozen=True)
class Unary:
    op: str
    operand: Any


@dataclass(frozen=True)
class Binary:
    op: str
    left: Any
    right: Any


@dataclass(frozen=True)
class Logical:
    op: str  # "&&", "||", "??"
    left: Any
    right: Any


@dataclass(frozen=True)
class Conditional:
    test: Any
    consequent: Any
    alternate: Any


@dataclass(frozen=True)
class Member:
    object: Any
    name: str


@dataclass(frozen=True)
class Index:
    object: Any
    index: Any


@dataclass(frozen=True)
class Call:
    callee: Any
    args: tuple


# ── Grammar ──────────────────────────────────────────────────────────

# Precedence, lowest to highest: ?:, ??, ||, &&, |, ^, &, equality,
# relational, additive, multiplicative, unary (- + !), ** (right
# associative, binds tighter than unary), then calls, member access and
# indexing.
GRAMMAR = r"""
    start: conditional

    ?conditional: nullish
        | nullish "?" conditional ":" conditional -> ternary

    ?nullish: logical_or
        | nullish NULLISH logical_or -> logical

    ?logical_or: logical_and
        | logical_or OR logical_and -> logical

    ?logical_and: bit_or
        | logical_and AND bit_or -> logical

    ?bit_or: bit_xor
        | bit_or PIPE bit_xor -> binary

    ?bit_xor: bit_and
        | bit_xor CARET bit_and -> binary

    ?bit_and: equality
        | bit_and AMP equality -> binary

    ?equality: relational
        | equality (STRICT_EQ | STRICT_NE | EQ | NE) relational -> binary

    ?relational: additive
        | relational (LE | GE | LT | GT) additive -> binary

    ?additive: multiplicative
        | additive (PLUS | MINUS) multiplicative -> binary

    ?multiplicative: unary
        | multiplicative (STAR | SLASH | PERCENT) unary -> binary

    ?unary: exponent
        | (MINUS | PLUS | BANG) unary -> prefix

    ?exponent: postfix
        | postfix POW unary -> binary

    ?postfix: primary
        | postfix "(" arguments? ")" -> call
        | postfix "." NAME -> member
        | postfix "[" conditional "]" -> index

    ?primary: NUMBER -> number
        | STRING -> string
        | NAME -> name
        | "(" conditional ")"
        | "[" arguments? "]" -> array
        | "{" entries? "}" -> object

    arguments: conditional ("," conditional)* ","?
    entries: entry ("," entry)* ","?
    entry: (NAME | STRING | NUMBER) ":" conditional

    NULLISH: "??"
    OR: "||"
    AND: "&&"
    PIPE: "|"
    CARET: "^"
    AMP: "&"
    STRICT_EQ: "==="
    STRICT_NE: "!=="
    EQ: "=="
    NE: "!="
    LE: "<="
    GE: ">="
    LT: "<"
    GT: ">"
    PLUS: "+"
    MINUS: "-"
    STAR: "*"
    SLASH: "/"
    PERCENT: "%"
    POW: "**"
    BANG: "!"

    NAME: /[a-zA-Z_$][a-zA-Z0-9_$]*/
    NUMBER: /(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?/
    STRING: /"(?:[^"\\]|\\.)*"/s | /'(?:[^'\\]|\\.)*'/s

    %import common.WS
    %ignore WS
"""


def _number(text: str):
    # Long digit strings go through float so they never exceed 2**53
    if text.isdigit() and len(text) < 16:
        return int(text)
    return float(text)


def _unquote(text: str) -> str:
    return _ESCAPE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), text[1:-1])


@v_args(inline=True)
class ASTBuilder(Transformer):
    """Turns the lark parse tree into the immutable AST below."""

    def start(self, node):
        return node

    def ternary(self, test, consequent, alternate):
        return Conditional(test, consequent, alternate)

    def logical(self, left, op, right):
        return Logical(str(op), left, right)

    def binary(self, left, op, right):
        return Binary(str(op), left, right)

    def prefix(self, op, operand):
        return Unary(str(op), operand)

    def call(self, callee, args=()):
        return Call(callee, args)

    def member(self, target, name):
        return Member(target, str(name))

    def index(self, target, key):
        return Index(target, key)

    def number(self, token):
        return Literal(_number(str(token)))

    def string(self, token):
        return Literal(_unquote(str(token)))

    def name(self, token):
        if token in KEYWORDS:
            return Literal(KEYWORDS[token])
        return Identifier(str(token))

    def array(self, items=()):
        return ArrayLiteral(items)

    def object(self, entries=()):
        return ObjectLiteral(entries)

    def arguments(self, *items):
        return tuple(items)

    def entries(self, *items):
        return tuple(items)

    def entry(self, key, value):
        if key.type == "NUMBER":
            return to_text(_number(str(key))), value
        if key.type == "STRING":
            return _unquote(str(key)), value
        return str(key), value


_parser = Lark(GRAMMAR, start="start", parser="lalr")
_builder = ASTBuilder()


@lru_cache(maxsize=1024)
def parse_expression(expression: str):
    """
    Parse expression text into an AST. Results are cached.

    Raises:
        ExpressionSyntaxError: with a message naming the offending token
    """
    try:
        tree = _parser.parse(expression)
    except UnexpectedCharacters as e:
        raise ExpressionSyntaxError(f"Invalid or unexpected token '{e.char}'") from None
    except UnexpectedToken as e:
        if e.token.type == "$END":
            raise ExpressionSyntaxError("Unexpected end of input") from None
        raise ExpressionSyntaxError(f"Unexpected token '{e.token}'") from None
    except UnexpectedEOF:
        raise ExpressionSyntaxError("Unexpected end of input") from None
    return _builder.transform(tree)


# ── Interpreter ──────────────────────────────────────────────────────


def _describe(node) -> str:
    """Source-like name of a callee for error messages."""
    if isinstance(node, Identifier):
        return node.name
    if isinstance(node, Member):
        return f"{_describe(node.object)}.{node.name}"
    return "expression"


def _to_number(value, op: str):
    if is_number(value):
        return value
    if isinstance(value, bool):
        return int(value)
    raise EvaluationError(f"Unsupported operand type for {op}: {type_name(value)}")


def _to_integer(value, op: str) -> int:
    number = _to_number(value, op)
    if not math.isfinite(number):
        return 0
    return math.trunc(number)


def _remainder(a, b):
    # Sign follows the dividend
    if b == 0:
        raise ZeroDivisionError("modulo by zero")
    if isinstance(a, int) and isinstance(b, int):
        result = abs(a) % abs(b)
        return result if a >= 0 else -result
    return math.fmod(a, b)


def strict_equals(a, b) -> bool:
    if is_number(a) and is_number(b):
        return a == b
    if type_name(a) != type_name(b):
        return False
    if isinstance(a, (dict, list)) or callable(a):
        return a is b
    return a == b


def loose_equals(a, b) -> bool:
    if (a is None or a is UNDEFINED) and (b is None or b is UNDEFINED):
        return True
    return strict_equals(a, b)


_ARITHMETIC = {
    "-": lambda a, b: a - b,
    "*": lambda a, b: a * b,
    "/": lambda a, b: a / b,
    "%": _remainder,
    "**": power,
}

_BITWISE = {
    "&": lambda a, b: a & b,
    "|": lambda a, b: a | b,
    "^": lambda a, b: a ^ b,
}

_RELATIONAL = {
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
}


class Interpreter:
    """Walks an AST against a fixed bindings table."""

    def __init__(self, bindings: dict[str, Any]):
        self.bindings = bindings

    def evaluate(self, node) -> Any:
        method = getattr(self, f"_eval_{type(node).__name__.lower()}")
        # Numbers stay within double precision
        return to_safe_number(method(node))

    def _eval_literal(self, node: Literal):
        return node.value

    def _eval_identifier(self, node: Identifier):
        if node.name not in self.bindings:
            raise EvaluationError(f"{node.name} is not defined")
        return self.bindings[node.name]

    def _eval_arrayliteral(self, node: ArrayLiteral):
        return [self.evaluate(item) for item in node.items]

    def _eval_objectliteral(self, node: ObjectLiteral):
        return {key: self.evaluate(value) for key, value in node.entries}

    def _eval_unary(self, node: Unary):
        operand = self.evaluate(node.operand)
        if node.op == "!":
            return not is_truthy(operand)
        number = _to_number(operand, node.op)
        return -number if node.op == "-" else number

    def _eval_binary(self, node: Binary):
        left = self.evaluate(node.left)
        right = self.evaluate(node.right)
        op = node.op

        if op == "+":
            if isinstance(left, str) or isinstance(right, str):
                return to_text(left) + to_text(right)
            return _to_number(left, op) + _to_number(right, op)
        if op in _ARITHMETIC:
            return _ARITHMETIC[op](_to_number(left, op), _to_number(right, op))
        if op in _BITWISE:
            return _BITWISE[op](_to_integer(left, op), _to_integer(right, op))
        if op == "===":
            return strict_equals(left, right)
        if op == "!==":
            return not strict_equals(left, right)
        if op == "==":
            return loose_equals(left, right)
        if op == "!=":
            return not loose_equals(left, right)

        if isinstance(left, str) and isinstance(right, str):
            return _RELATIONAL[op](left, right)
        return _RELATIONAL[op](_to_number(left, op), _to_number(right, op))

    def _eval_logical(self, node: Logical):
        left = self.evaluate(node.left)
        if node.op == "&&":
            return self.evaluate(node.right) if is_truthy(left) else left
        if node.op == "||":
            return left if is_truthy(left) else self.evaluate(node.right)
        return self.evaluate(node.right) if left is None or left is UNDEFINED else left

    def _eval_conditional(self, node: Conditional):
        if is_truthy(self.evaluate(node.test)):
            return self.evaluate(node.consequent)
        return self.evaluate(node.alternate)

    def _eval_member(self, node: Member):
        return self._property(self.evaluate(node.object), node.name)

    def _eval_index(self, node: Index):
        target = self.evaluate(node.object)
        key = self.evaluate(node.index)
        if isinstance(target, (list, str)) and is_number(key):
            if float(key).is_integer() and 0 <= key < len(target):
                return target[int(key)]
            return UNDEFINED
        return self._property(target, to_text(key))

    def _property(self, target, name: str):
        if target is None or target is UNDEFINED:
            raise EvaluationError(
                f"Cannot read properties of {type_name(target)} (reading '{name}')"
            )
        if isinstance(target, dict):
            return target.get(name, UNDEFINED)
        if isinstance(target, (list, str)) and name == "length":
            return len(target)
        return UNDEFINED

    def _eval_call(self, node: Call):
        func = self.evaluate(node.callee)
        if not callable(func):
            raise EvaluationError(f"{_describe(node.callee)} is not a function")
        args = [self.evaluate(arg) for arg in node.args]
        return func(*args)


def evaluate(expression: str, bindings: dict[str, Any]) -> Any:
    """
    Evaluate an expression against an explicit bindings table.

    Args:
        expression: Expression text, e.g. ``"amount * pct / 100"``
        bindings: The only names visible to the expression

    Returns:
        The expression's value

    Raises:
        EvaluationError: if parsing or evaluation fails; the message of the
            underlying failure is kept verbatim
    """
    try:
        return Interpreter(bindings).evaluate(parse_expression(expression))
    except EvaluationError:
        raise
    except (ArithmeticError, TypeError, ValueError, LookupError, RecursionError) as e:
        raise EvaluationError(str(e)) from e

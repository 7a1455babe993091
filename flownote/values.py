"""
Value model shared by the scope, the builtins and the evaluator.

Values are plain Python objects: int/float, str, bool, None, list and dict.
A missing lookup yields ``UNDEFINED``, which is distinct from ``None``.
"""

import math
from typing import Any


class Undefined:
    """The absent value. Use the ``UNDEFINED`` singleton."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (Undefined, ())


UNDEFINED = Undefined()

# Largest integer a double holds exactly
MAX_SAFE_INTEGER = 2 ** 53 - 1


def is_number(value: Any) -> bool:
    """True for ints and floats; booleans are not numbers here."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_finite_number(value: Any) -> bool:
    return is_number(value) and (isinstance(value, int) or math.isfinite(value))


def to_safe_number(value: Any) -> Any:
    """
    Keep numbers within double precision.

    Integers beyond +-(2**53 - 1) become floats, and integers too large for
    a float become +-Infinity. Anything else is returned unchanged.
    """
    if is_number(value) and isinstance(value, int) and abs(value) > MAX_SAFE_INTEGER:
        try:
            return float(value)
        except OverflowError:
            return math.inf if value > 0 else -math.inf
    return value


def is_truthy(value: Any) -> bool:
    """Truthiness of the notation language: empty lists and dicts are truthy."""
    if value is None or value is UNDEFINED:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if is_number(value):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ""
    return True


def type_name(value: Any) -> str:
    """Name of a value's type as users see it in error messages."""
    if value is None:
        return "null"
    if value is UNDEFINED:
        return "undefined"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    if callable(value):
        return "function"
    return type(value).__name__


def to_text(value: Any) -> str:
    """String conversion used by ``+`` concatenation."""
    value = to_safe_number(value)
    if value is None:
        return "null"
    if value is UNDEFINED:
        return "undefined"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return repr(value)
    if isinstance(value, (list, tuple)):
        return ",".join("" if v is None or v is UNDEFINED else to_text(v) for v in value)
    if isinstance(value, dict):
        return "[object Object]"
    return str(value)


def to_jsonable(value: Any) -> Any:
    """Convert a value to something ``json.dumps`` accepts."""
    value = to_safe_number(value)
    if value is UNDEFINED:
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return to_text(value)
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if callable(value):
        return "[Function]"
    return to_text(value)

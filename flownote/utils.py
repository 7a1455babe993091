"""
Utility functions for flownote: value formatting and parsing.
"""

import json
import math
import re
from typing import Any

from rich.text import Text

from flownote.kernel import EvaluationResult, ResultType
from flownote.values import UNDEFINED, is_number, to_safe_number, to_text

_VARIABLE_NAME = re.compile(r"^[a-zA-Z_$][a-zA-Z0-9_$]*$")
_NUMBER = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")


def format_number(num) -> str:
    """
    Format a number for display.

    At most 6 decimal places, with thousands separators:
    1234.5 -> "1,234.5", 0.1 + 0.2 -> "0.3".
    """
    num = to_safe_number(num)
    if isinstance(num, int):
        return f"{num:,}"
    if not math.isfinite(num):
        return to_text(num)
    text = f"{round(num, 6):,.6f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def format_value(value: Any) -> str:
    """Short display form of a value, as shown next to a line."""
    if value is None:
        return "null"
    if value is UNDEFINED:
        return "undefined"
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return format_number(value)
    if isinstance(value, str):
        return f'"{value}"'
    if isinstance(value, (list, tuple)):
        return f"[{len(value)} items]"
    if isinstance(value, dict):
        return "{...}"
    if callable(value):
        return "ƒ"
    return str(value)


def format_global_value(value: Any) -> str:
    """Editable form of a global variable: strings bare, everything else JSON."""
    if value is None:
        return "null"
    if value is UNDEFINED:
        return "undefined"
    if isinstance(value, str):
        return value
    if isinstance(value, bool) or is_number(value):
        return to_text(value)
    return json.dumps(value)


def _reject_constant(name: str):
    raise ValueError(f"not a JSON value: {name}")


def parse_value(value_str: str) -> Any:
    """
    Parse a user-entered value.

    JSON first (numbers, booleans, null, arrays, objects); then quoted
    strings, bare numbers, and true/false/null in any case. Anything else
    is kept as a plain string.

    Raises:
        ValueError: if the value is empty
    """
    trimmed = value_str.strip()

    if trimmed == "":
        raise ValueError("Value cannot be empty")

    try:
        return to_safe_number(json.loads(trimmed, parse_constant=_reject_constant))
    except ValueError:
        pass

    if len(trimmed) >= 2 and trimmed[0] == trimmed[-1] and trimmed[0] in "\"'":
        return trimmed[1:-1]

    if _NUMBER.match(trimmed):
        if trimmed.lstrip("+-").isdigit() and len(trimmed) < 16:
            return int(trimmed)
        return float(trimmed)

    lowered = trimmed.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if lowered == "null":
        return None

    return trimmed


def is_valid_variable_name(name: str) -> bool:
    """Check that a name is a valid identifier (letters, digits, _ and $)."""
    return bool(name) and bool(_VARIABLE_NAME.match(name))


def format_rich_result(result: EvaluationResult) -> Text:
    """
    Format a line result as a Rich renderable.

    Values get an arrow, errors are red, other lines render empty.
    """
    text = Text()
    if result.type == ResultType.ERROR:
        text.append("✗ ", style="bold red")
        text.append(result.error or "", style="red")
    elif result.type == ResultType.ASSIGNMENT:
        text.append("→ ", style="dim")
        text.append(format_value(result.result), style="green")
    elif result.type == ResultType.VALUE:
        text.append("→ ", style="dim")
        text.append(format_value(result.result), style="cyan")
    elif result.type == ResultType.FUNCTION_DEF:
        text.append("ƒ", style="magenta")
    return text


def get_result_status(result: EvaluationResult) -> tuple[str, str]:
    """
    Get status indicator and style for a line result.

    Returns:
        Tuple of (indicator_string, rich_style)
    """
    if result.type == ResultType.ERROR:
        return ("err", "red")
    if result.has_value or result.type == ResultType.FUNCTION_DEF:
        return ("ok", "green")
    return ("--", "dim")

"""
Built-in functions available to every expression.

``BUILTIN_FUNCTIONS`` holds the aggregates (sum, avg, min, max) which accept
any mix of numbers, lists and objects. ``MATH_FUNCTIONS`` is the allow-listed
math library: nothing else from the host is reachable from an expression.
"""

import math
import random
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable

from flownote.values import is_finite_number, is_number


def flatten_values(args: Iterable[Any]) -> list:
    """
    Flatten all numeric values from a mix of numbers, lists and objects.

    Nested containers are walked recursively. Strings, booleans, null,
    NaN and infinities are dropped.
    """
    result = []
    for arg in args:
        if is_finite_number(arg):
            result.append(arg)
        elif isinstance(arg, dict):
            result.extend(flatten_values(arg.values()))
        elif isinstance(arg, (list, tuple)):
            result.extend(flatten_values(arg))
    return result


def sum_values(*args):
    """
    Sum all values. Works with individual numbers or objects.

    sum(1, 2, 3) => 6
    sum(hotel) where hotel = {perNight: 180, nights: 4} => 184
    """
    return sum(flatten_values(args), 0)


def average(*args):
    """Average of all values; 0 when there is nothing to average."""
    values = flatten_values(args)
    if not values:
        return 0
    return sum(values) / len(values)


def min_value(*args):
    """Minimum of all values; +Infinity when empty."""
    values = flatten_values(args)
    if not values:
        return math.inf
    return min(values)


def max_value(*args):
    """Maximum of all values; -Infinity when empty."""
    values = flatten_values(args)
    if not values:
        return -math.inf
    return max(values)


BUILTIN_FUNCTIONS = {
    "sum": sum_values,
    "avg": average,
    "min": min_value,
    "max": max_value,
}


def power(base, exponent):
    """
    ``base ** exponent`` with double precision semantics.

    Exact integer powers are kept while they fit in 53 bits. Otherwise the
    result is a float: overflow gives +-Infinity and a complex result
    (negative base, fractional exponent) gives NaN.
    """
    if isinstance(base, int) and isinstance(exponent, int) and exponent >= 0:
        if abs(base) <= 1 or exponent * math.log2(abs(base)) < 53:
            return base ** exponent
    try:
        return math.pow(base, exponent)
    except OverflowError:
        negative = base < 0 and float(exponent).is_integer() and exponent % 2 == 1
        return -math.inf if negative else math.inf
    except ValueError:
        # 0 ** -n and negative ** fraction
        return math.inf if base == 0 else math.nan


def _require_integer(name: str, value) -> int:
    if is_number(value) and float(value).is_integer():
        return int(value)
    raise ValueError(f"Parameters in function {name} must be integer numbers")


def _round(x, n=0):
    # Half away from zero
    if not is_finite_number(x):
        return x
    n = _require_integer("round", n)
    rounded = Decimal(str(x)).quantize(Decimal(1).scaleb(-n), rounding=ROUND_HALF_UP)
    return int(rounded) if n <= 0 else float(rounded)


def _log(x, base=None):
    if base is None:
        return math.log(x)
    return math.log(x, base)


def _sign(x):
    if math.isnan(x):
        return x
    return (x > 0) - (x < 0)


def _random_number(lower=None, upper=None):
    if lower is None:
        return random.random()
    if upper is None:
        lower, upper = 0, lower
    return random.uniform(lower, upper)


def _factorial(n):
    if is_number(n) and float(n).is_integer() and n >= 0:
        if n > 170:
            return math.inf
        return math.factorial(int(n))
    return math.gamma(n + 1)


def _gcd(*args):
    return math.gcd(*(_require_integer("gcd", a) for a in args))


def _lcm(*args):
    return math.lcm(*(_require_integer("lcm", a) for a in args))


def _mod(x, y):
    if y == 0:
        return x
    return x % y


def _nth_root(a, root=2):
    root = _require_integer("nthRoot", root)
    if root == 0:
        raise ValueError("Root must be non-zero")
    if a < 0:
        if root % 2 == 0:
            raise ValueError("Root must be odd when a is negative.")
        return -_nth_root(-a, root)
    result = a ** (1 / root)
    nearest = round(result)
    if nearest ** root == a:
        return nearest
    return result


MATH_FUNCTIONS = {
    "abs": abs,
    "acos": math.acos,
    "acosh": math.acosh,
    "asin": math.asin,
    "asinh": math.asinh,
    "atan": math.atan,
    "atan2": math.atan2,
    "atanh": math.atanh,
    "cbrt": math.cbrt,
    "ceil": math.ceil,
    "cos": math.cos,
    "cosh": math.cosh,
    "exp": math.exp,
    "floor": math.floor,
    "log": _log,
    "log10": math.log10,
    "log2": math.log2,
    "pow": power,
    "round": _round,
    "sign": _sign,
    "sin": math.sin,
    "sinh": math.sinh,
    "sqrt": math.sqrt,
    "tan": math.tan,
    "tanh": math.tanh,
    "trunc": math.trunc,
    "random": _random_number,
    "factorial": _factorial,
    "gcd": _gcd,
    "lcm": _lcm,
    "mod": _mod,
    "nthRoot": _nth_root,
    "pi": math.pi,
    "e": math.e,
    "phi": (1 + math.sqrt(5)) / 2,
    "tau": math.tau,
}

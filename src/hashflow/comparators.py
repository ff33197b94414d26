"""Comparison operators for hashflow conditions.

Supported value kinds: None, blank ('', whitespace, empty collections),
booleans, strings and numbers (including numeric strings such as "18").

Operators:
- Equality: = == != <>
- Ordering: > < >= <= (both operands must be numeric)
- Regex: ~ (find), !~ (not find), @ (full match), !@ (not full match)
"""

import math
import re
from collections.abc import Mapping, Set
from decimal import Decimal, InvalidOperation
from typing import Any

from hashflow.errors import OperandTypeError

EQUALITY_OPERATORS = frozenset({"=", "==", "!=", "<>"})
ORDERING_OPERATORS = frozenset({">", "<", ">=", "<="})
REGEX_OPERATORS = frozenset({"~", "!~", "@", "!@"})
OPERATORS = EQUALITY_OPERATORS | ORDERING_OPERATORS | REGEX_OPERATORS

_NUMERIC_STRING = re.compile(r"\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?\s*")


def is_blank(value: Any) -> bool:
    """Return True for None, whitespace-only strings and empty collections."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, Set, Mapping)):
        return len(value) == 0
    return False


def is_numeric(value: Any) -> bool:
    """Return True for numbers (not booleans or NaN) and numeric strings."""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float, Decimal)):
        return not _is_nan(value)
    if isinstance(value, str):
        return _NUMERIC_STRING.fullmatch(value) is not None
    return False


def _is_nan(value: Any) -> bool:
    if isinstance(value, Decimal):
        return value.is_nan()
    return isinstance(value, float) and math.isnan(value)


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def to_number(value: Any) -> Decimal:
    """Convert a numeric value or numeric string to Decimal."""
    try:
        if isinstance(value, float):
            return Decimal(repr(value))
        return Decimal(str(value).strip())
    except InvalidOperation as e:
        raise OperandTypeError(f"Not a number: {value!r}") from e


def equals(a: Any, b: Any) -> bool:
    """Loose equality used by ``==``, ``#case`` matching and the ``in`` pipe.

    Blanks match blanks and numbers match by value. Anything else compares
    by string form, with booleans written ``true``/``false``.
    """
    if is_blank(a) and is_blank(b):
        return True
    if isinstance(a, bool) and isinstance(b, bool):
        return a == b
    if is_numeric(a) and is_numeric(b):
        return to_number(a) == to_number(b)
    if is_blank(a) or is_blank(b):
        return False
    return _as_text(a) == _as_text(b)


def compare_number(a: Any, op: str, b: Any) -> bool:
    """Numeric ordering.

    Raises:
        OperandTypeError: If either operand is not numeric
    """
    if is_blank(a) and is_blank(b):
        return False
    if not (is_numeric(a) and is_numeric(b)):
        raise OperandTypeError(
            f"Invalid compare: {a!r} {op} {b!r}, operator '{op}' takes 2 numbers"
        )
    left = to_number(a)
    right = to_number(b)
    if op == ">":
        return left > right
    if op == ">=":
        return left >= right
    if op == "<":
        return left < right
    if op == "<=":
        return left <= right
    raise OperandTypeError(f"Unknown ordering operator: {op}")


def regex_pass(content: Any, pattern: Any, full_match: bool) -> bool:
    """Test a string against a regex; non-string operands never match.

    Raises:
        OperandTypeError: If the pattern is not a valid regular expression
    """
    if not isinstance(content, str) or not isinstance(pattern, str):
        return False
    try:
        compiled = re.compile(pattern)
    except re.error as e:
        raise OperandTypeError(f"Invalid regular expression '{pattern}': {e}") from e
    if full_match:
        return compiled.fullmatch(content) is not None
    return compiled.search(content) is not None


def compare(a: Any, op: str, b: Any) -> bool:
    """Apply a comparison operator to two values.

    Raises:
        OperandTypeError: For unknown operators or invalid operands
    """
    if op in ("=", "=="):
        return equals(a, b)
    if op in ("!=", "<>"):
        return not equals(a, b)
    if op in ORDERING_OPERATORS:
        return compare_number(a, op, b)
    if op == "~":
        return regex_pass(a, b, False)
    if op == "!~":
        return not regex_pass(a, b, False)
    if op == "@":
        return regex_pass(a, b, True)
    if op == "!@":
        return not regex_pass(a, b, True)
    raise OperandTypeError(f"Unknown operation for compare: {a!r} {op} {b!r}")

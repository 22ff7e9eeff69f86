"""Runtime values and coercion rules.

A value is one of four Python types:
- float: Number
- str: Text
- bool: Boolean
- None: Null

Host values are normalized with to_value() before they enter a context.
Comparison operators try a numeric comparison first and fall back to a
text comparison when either side is not numeric.
"""

import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Union

from ruleforge.expressions.errors import TypeMismatchError

Value = Union[float, str, bool, None]

_NUMERIC_TEXT = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")


def is_number(value: Any) -> bool:
    """True for int/float/Decimal values, excluding booleans."""
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def to_value(value: Any) -> Value:
    """Normalize a host Python value into an expression value.

    Raises:
        TypeError: If the value has no expression equivalent
    """
    if value is None or isinstance(value, (bool, str)):
        return value
    if is_number(value):
        return float(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    raise TypeError(f"Unsupported value type: {type(value).__name__}")


def type_name(value: Any) -> str:
    """Name of a value's tag, for error messages."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "text"
    return type(value).__name__


def truthy(value: Any) -> bool:
    """Convert a value to boolean."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return value != 0
    if isinstance(value, str):
        return len(value) > 0
    return True


def format_number(value: float) -> str:
    """Format a number the way it reads in source: 14, not 14.0."""
    if value != value or value in (float("inf"), float("-inf")):
        return repr(value)
    if float(value).is_integer() and abs(value) < 1e16:
        return str(int(value))
    text = repr(float(value))
    if "e" in text or "E" in text:
        text = format(Decimal(text), "f")
    return text


def to_text(value: Any) -> str:
    """Text form of a value, used by text comparisons and LOG output."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if is_number(value):
        return format_number(float(value))
    return str(value)


def to_number(value: Any) -> float | None:
    """Numeric parse of a value, or None if it does not look like a number.

    Numbers parse as themselves and numeric-looking text ("007", " 2.5 ")
    parses to its number. Booleans and null never parse.
    """
    if isinstance(value, bool) or value is None:
        return None
    if is_number(value):
        return float(value)
    if isinstance(value, str) and _NUMERIC_TEXT.match(value):
        return float(value)
    return None


def to_datetime(value: Any) -> datetime | None:
    """Parse an ISO-8601 date or datetime from text."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.strip())
    except ValueError:
        return None


def equals(left: Any, right: Any) -> bool:
    """Equality with numeric-then-text coercion.

    Null equals only null; a boolean equals only an equal boolean.
    """
    if left is None or right is None:
        return left is None and right is None

    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right

    left_num = to_number(left)
    right_num = to_number(right)
    if left_num is not None and right_num is not None:
        return left_num == right_num

    return to_text(left) == to_text(right)


def compare(left: Any, right: Any) -> int:
    """Order two values, returning -1, 0, or 1.

    Raises:
        TypeMismatchError: If either side is null or boolean
    """
    for value in (left, right):
        if value is None or isinstance(value, bool):
            raise TypeMismatchError(
                f"Cannot order {type_name(left)} and {type_name(right)}"
            )

    left_num = to_number(left)
    right_num = to_number(right)
    if left_num is not None and right_num is not None:
        a: Any = left_num
        b: Any = right_num
    else:
        a = to_text(left)
        b = to_text(right)

    if a < b:
        return -1
    if a > b:
        return 1
    return 0


def like(value: Any, pattern: Any) -> bool:
    """Wildcard match where '%' may appear at either end of the pattern.

    "%x%" is a substring match, "x%" a prefix match, "%x" a suffix match,
    and a pattern without a leading or trailing '%' must match exactly.
    """
    if value is None or pattern is None:
        return False

    text = to_text(value)
    pat = to_text(pattern)

    if len(pat) >= 2 and pat.startswith("%") and pat.endswith("%"):
        return pat[1:-1] in text
    if pat.startswith("%"):
        return text.endswith(pat[1:])
    if pat.endswith("%"):
        return text.startswith(pat[:-1])
    return text == pat


def contains(container: Any, item: Any) -> bool:
    """Substring test on the text forms of both values."""
    if container is None or item is None:
        return False
    return to_text(item) in to_text(container)

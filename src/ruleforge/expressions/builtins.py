"""Built-in functions for the RuleForge expression language.

register_builtins() adds the standard library to a FunctionRegistry;
EvaluationContext.with_builtins() does this for you.

Categories:
- Math: abs, ceil, floor, round, sqrt, exp, ln, fmod, pow, min, max, pi
- String: len, upper, lower, trim, concat, substr, reverse, rep, find,
  replace, startsWith, endsWith, format
- Logic: coalesce, isNull, isEmpty, toNumber, toText, iif
- Date: today, daysBetween

Null arguments pass through as null for math and date functions, and read
as the empty string for string functions.
"""

import math
import re
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from ruleforge.expressions.errors import TypeMismatchError
from ruleforge.expressions.functions import (
    FunctionCategory,
    FunctionDefinition,
    FunctionParameter,
    FunctionRegistry,
)
from ruleforge.expressions.values import (
    format_number,
    is_number,
    to_datetime,
    to_number,
    to_text,
    type_name,
)


def register_builtins(registry: FunctionRegistry) -> FunctionRegistry:
    """Register all built-in functions with the given registry."""
    _register_math_functions(registry)
    _register_string_functions(registry)
    _register_logic_functions(registry)
    _register_date_functions(registry)
    return registry


def create_builtin_registry() -> FunctionRegistry:
    """A fresh registry holding only the built-in functions."""
    return register_builtins(FunctionRegistry())


def _number(value: Any, func: str) -> float:
    if not is_number(value):
        raise TypeMismatchError(f"{func}() expects a number, got {type_name(value)}")
    return float(value)


def _integer(value: Any, func: str) -> int:
    number = _number(value, func)
    if not number.is_integer():
        raise TypeMismatchError(f"{func}() expects a whole number, got {format_number(number)}")
    return int(number)


def _string(value: Any) -> str:
    if value is None:
        return ""
    return to_text(value)


# -----------------------------------------------------------------------------
# Math Functions
# -----------------------------------------------------------------------------


def _abs(value: Any) -> float | None:
    if value is None:
        return None
    return abs(_number(value, "abs"))


def _ceil(value: Any) -> float | None:
    if value is None:
        return None
    return float(math.ceil(_number(value, "ceil")))


def _floor(value: Any) -> float | None:
    if value is None:
        return None
    return float(math.floor(_number(value, "floor")))


def _round_num(value: Any, decimals: Any = 0.0) -> float | None:
    """Round half away from zero to the given number of decimal places."""
    if value is None:
        return None
    number = Decimal(repr(_number(value, "round")))
    places = _integer(decimals, "round")
    return float(number.quantize(Decimal(10) ** -places, rounding=ROUND_HALF_UP))


def _sqrt(value: Any) -> float | None:
    if value is None:
        return None
    return math.sqrt(_number(value, "sqrt"))


def _exp(value: Any) -> float | None:
    if value is None:
        return None
    return math.exp(_number(value, "exp"))


def _ln(value: Any, base: Any = None) -> float | None:
    if value is None:
        return None
    if base is None:
        return math.log(_number(value, "ln"))
    return math.log(_number(value, "ln"), _number(base, "ln"))


def _fmod(x: Any, y: Any) -> float | None:
    if x is None or y is None:
        return None
    return math.fmod(_number(x, "fmod"), _number(y, "fmod"))


def _pow(x: Any, y: Any) -> float | None:
    if x is None or y is None:
        return None
    return math.pow(_number(x, "pow"), _number(y, "pow"))


def _min_val(*args: Any) -> float | None:
    """Return minimum of non-null values."""
    values = [_number(a, "min") for a in args if a is not None]
    return min(values) if values else None


def _max_val(*args: Any) -> float | None:
    """Return maximum of non-null values."""
    values = [_number(a, "max") for a in args if a is not None]
    return max(values) if values else None


def _pi() -> float:
    return math.pi


def _register_math_functions(registry: FunctionRegistry) -> None:
    number = FunctionParameter("value", "number", "The number")

    registry.register(
        FunctionDefinition(
            name="abs",
            implementation=_abs,
            description="Returns the absolute value",
            category=FunctionCategory.MATH,
            parameters=[number],
            return_type="number",
            examples=["abs(balance) < 0.01"],
        )
    )
    registry.register(
        FunctionDefinition(
            name="ceil",
            implementation=_ceil,
            description="Rounds up to the nearest whole number",
            category=FunctionCategory.MATH,
            parameters=[number],
            return_type="number",
            examples=["ceil(2.3) = 3"],
        )
    )
    registry.register(
        FunctionDefinition(
            name="floor",
            implementation=_floor,
            description="Rounds down to the nearest whole number",
            category=FunctionCategory.MATH,
            parameters=[number],
            return_type="number",
            examples=["floor(2.7) = 2"],
        )
    )
    registry.register(
        FunctionDefinition(
            name="round",
            implementation=_round_num,
            description="Rounds half away from zero to the given decimal places",
            category=FunctionCategory.MATH,
            parameters=[
                number,
                FunctionParameter("decimals", "number", "Decimal places", required=False),
            ],
            return_type="number",
            examples=["round(price * 1.08, 2)"],
        )
    )
    registry.register(
        FunctionDefinition(
            name="sqrt",
            implementation=_sqrt,
            description="Returns the square root",
            category=FunctionCategory.MATH,
            parameters=[number],
            return_type="number",
            examples=["sqrt(16) = 4"],
        )
    )
    registry.register(
        FunctionDefinition(
            name="exp",
            implementation=_exp,
            description="Returns e raised to the given power",
            category=FunctionCategory.MATH,
            parameters=[number],
            return_type="number",
        )
    )
    registry.register(
        FunctionDefinition(
            name="ln",
            implementation=_ln,
            description="Natural logarithm, or logarithm in the given base",
            category=FunctionCategory.MATH,
            parameters=[
                number,
                FunctionParameter("base", "number", "Logarithm base", required=False),
            ],
            return_type="number",
            examples=["ln(8, 2) = 3"],
        )
    )
    registry.register(
        FunctionDefinition(
            name="fmod",
            implementation=_fmod,
            description="Remainder of x / y, with the sign of x",
            category=FunctionCategory.MATH,
            parameters=[
                FunctionParameter("x", "number", "Dividend"),
                FunctionParameter("y", "number", "Divisor"),
            ],
            return_type="number",
            examples=["fmod(7, 3) = 1"],
        )
    )
    registry.register(
        FunctionDefinition(
            name="pow",
            implementation=_pow,
            description="Raises x to the power y",
            category=FunctionCategory.MATH,
            parameters=[
                FunctionParameter("x", "number", "Base"),
                FunctionParameter("y", "number", "Exponent"),
            ],
            return_type="number",
        )
    )
    registry.register(
        FunctionDefinition(
            name="min",
            implementation=_min_val,
            description="Returns the smallest of the non-null arguments",
            category=FunctionCategory.MATH,
            parameters=[
                FunctionParameter("first", "number", "First value"),
                FunctionParameter("rest", "number", "More values", required=False, variadic=True),
            ],
            return_type="number",
            examples=["min(quantity, stock) > 0"],
        )
    )
    registry.register(
        FunctionDefinition(
            name="max",
            implementation=_max_val,
            description="Returns the largest of the non-null arguments",
            category=FunctionCategory.MATH,
            parameters=[
                FunctionParameter("first", "number", "First value"),
                FunctionParameter("rest", "number", "More values", required=False, variadic=True),
            ],
            return_type="number",
            examples=["max(1, 5, 3) = 5"],
        )
    )
    registry.register(
        FunctionDefinition(
            name="pi",
            implementation=_pi,
            description="The constant pi",
            category=FunctionCategory.MATH,
            parameters=[],
            return_type="number",
        )
    )


# -----------------------------------------------------------------------------
# String Functions
# -----------------------------------------------------------------------------


def _len(value: Any) -> float:
    """Length of the text form, 0 for null."""
    return float(len(_string(value)))


def _upper(value: Any) -> str:
    return _string(value).upper()


def _lower(value: Any) -> str:
    return _string(value).lower()


def _trim(value: Any) -> str:
    return _string(value).strip()


def _concat(*args: Any) -> str:
    """Concatenate all arguments as text, skipping null values."""
    return "".join(to_text(a) for a in args if a is not None)


def _substr(value: Any, start: Any, end: Any = None) -> str:
    """Substring from start to end, 1-based and inclusive.

    Negative indices count from the end of the string, so
    substr("abcdef", -3) is "def".
    """
    text = _string(value)
    length = len(text)
    i = _integer(start, "substr")
    j = length if end is None else _integer(end, "substr")

    if i < 0:
        i = max(length + i + 1, 1)
    elif i == 0:
        i = 1
    if j < 0:
        j = length + j + 1
    elif j > length:
        j = length

    if i > j:
        return ""
    return text[i - 1:j]


def _reverse(value: Any) -> str:
    return _string(value)[::-1]


def _rep(value: Any, count: Any, separator: Any = None) -> str:
    """Repeat text count times, optionally joined by a separator."""
    times = _integer(count, "rep")
    if times <= 0:
        return ""
    return _string(separator).join([_string(value)] * times)


def _find(value: Any, needle: Any) -> float:
    """1-based position of needle in value, 0 when absent."""
    return float(_string(value).find(_string(needle)) + 1)


def _replace(value: Any, old: Any, new: Any) -> str:
    return _string(value).replace(_string(old), _string(new))


def _starts_with(value: Any, prefix: Any) -> bool:
    if value is None:
        return False
    return _string(value).startswith(_string(prefix))


def _ends_with(value: Any, suffix: Any) -> bool:
    if value is None:
        return False
    return _string(value).endswith(_string(suffix))


_FORMAT_SPEC = re.compile(r"%(?:\.(\d+))?([sdf%])")


def _format(template: Any, *args: Any) -> str:
    """printf-style formatting supporting %s, %d, %f, %.Nf and %%."""
    remaining = list(args)

    def substitute(match: re.Match) -> str:
        precision, conversion = match.groups()
        if conversion == "%":
            return "%"
        if not remaining:
            raise ValueError("not enough arguments for format string")
        arg = remaining.pop(0)
        if conversion == "s":
            return to_text(arg)
        if conversion == "d":
            return str(int(_number(arg, "format")))
        digits = 6 if precision is None else int(precision)
        return f"{_number(arg, 'format'):.{digits}f}"

    return _FORMAT_SPEC.sub(substitute, _string(template))


def _register_string_functions(registry: FunctionRegistry) -> None:
    text = FunctionParameter("value", "text", "The text")

    registry.register(
        FunctionDefinition(
            name="len",
            implementation=_len,
            description="Returns the length of the text form of a value",
            category=FunctionCategory.STRING,
            parameters=[text],
            return_type="number",
            examples=["len(description) <= 500"],
        )
    )
    registry.register(
        FunctionDefinition(
            name="upper",
            implementation=_upper,
            description="Converts text to uppercase",
            category=FunctionCategory.STRING,
            parameters=[text],
            return_type="text",
            examples=['upper(countryCode) = "US"'],
        )
    )
    registry.register(
        FunctionDefinition(
            name="lower",
            implementation=_lower,
            description="Converts text to lowercase",
            category=FunctionCategory.STRING,
            parameters=[text],
            return_type="text",
        )
    )
    registry.register(
        FunctionDefinition(
            name="trim",
            implementation=_trim,
            description="Removes whitespace from both ends of text",
            category=FunctionCategory.STRING,
            parameters=[text],
            return_type="text",
            examples=['trim(name) != ""'],
        )
    )
    registry.register(
        FunctionDefinition(
            name="concat",
            implementation=_concat,
            description="Concatenates all arguments as text",
            category=FunctionCategory.STRING,
            parameters=[
                FunctionParameter("values", "any", "Values to join", required=False, variadic=True)
            ],
            return_type="text",
            examples=['concat(firstName, " ", lastName)'],
        )
    )
    registry.register(
        FunctionDefinition(
            name="substr",
            implementation=_substr,
            description="Extracts text from start to end (1-based, inclusive)",
            category=FunctionCategory.STRING,
            parameters=[
                text,
                FunctionParameter("start", "number", "First character position"),
                FunctionParameter("end", "number", "Last character position", required=False),
            ],
            return_type="text",
            examples=['substr("abcdef", 2, 4) = "bcd"'],
        )
    )
    registry.register(
        FunctionDefinition(
            name="reverse",
            implementation=_reverse,
            description="Reverses text",
            category=FunctionCategory.STRING,
            parameters=[text],
            return_type="text",
        )
    )
    registry.register(
        FunctionDefinition(
            name="rep",
            implementation=_rep,
            description="Repeats text a number of times, with an optional separator",
            category=FunctionCategory.STRING,
            parameters=[
                text,
                FunctionParameter("count", "number", "Number of repetitions"),
                FunctionParameter("separator", "text", "Text between repetitions", required=False),
            ],
            return_type="text",
            examples=['rep("ab", 3, "-") = "ab-ab-ab"'],
        )
    )
    registry.register(
        FunctionDefinition(
            name="find",
            implementation=_find,
            description="Returns the 1-based position of a substring, or 0",
            category=FunctionCategory.STRING,
            parameters=[text, FunctionParameter("needle", "text", "Text to look for")],
            return_type="number",
            examples=['find(email, "@") > 1'],
        )
    )
    registry.register(
        FunctionDefinition(
            name="replace",
            implementation=_replace,
            description="Replaces every occurrence of old with new",
            category=FunctionCategory.STRING,
            parameters=[
                text,
                FunctionParameter("old", "text", "Text to replace"),
                FunctionParameter("new", "text", "Replacement"),
            ],
            return_type="text",
        )
    )
    registry.register(
        FunctionDefinition(
            name="startsWith",
            implementation=_starts_with,
            description="Tests whether text starts with a prefix",
            category=FunctionCategory.STRING,
            parameters=[text, FunctionParameter("prefix", "text", "The prefix")],
            return_type="boolean",
        )
    )
    registry.register(
        FunctionDefinition(
            name="endsWith",
            implementation=_ends_with,
            description="Tests whether text ends with a suffix",
            category=FunctionCategory.STRING,
            parameters=[text, FunctionParameter("suffix", "text", "The suffix")],
            return_type="boolean",
        )
    )
    registry.register(
        FunctionDefinition(
            name="format",
            implementation=_format,
            description="printf-style formatting with %s, %d, %f and %.Nf",
            category=FunctionCategory.STRING,
            parameters=[
                FunctionParameter("template", "text", "Format string"),
                FunctionParameter("values", "any", "Values to format", required=False, variadic=True),
            ],
            return_type="text",
            examples=['format("%d + %d = %d", 2, 3, 5)'],
        )
    )


# -----------------------------------------------------------------------------
# Logic Functions
# -----------------------------------------------------------------------------


def _coalesce(*args: Any) -> Any:
    """Return first non-null value."""
    for arg in args:
        if arg is not None:
            return arg
    return None


def _is_null(value: Any) -> bool:
    return value is None


def _is_empty(value: Any) -> bool:
    """True for null and for blank text."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def _to_number(value: Any) -> float | None:
    """Numeric parse of a value, null when it does not look like a number."""
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    return to_number(value)


def _to_text(value: Any) -> str:
    return to_text(value)


def _iif(condition: Any, true_value: Any, false_value: Any = None) -> Any:
    """Return true_value if condition is true, else false_value."""
    return true_value if condition else false_value


def _register_logic_functions(registry: FunctionRegistry) -> None:
    value = FunctionParameter("value", "any", "The value")

    registry.register(
        FunctionDefinition(
            name="coalesce",
            implementation=_coalesce,
            description="Returns the first non-null argument",
            category=FunctionCategory.LOGIC,
            parameters=[
                FunctionParameter("values", "any", "Candidates", required=False, variadic=True)
            ],
            return_type="any",
            examples=["coalesce(nickname, firstName)"],
        )
    )
    registry.register(
        FunctionDefinition(
            name="isNull",
            implementation=_is_null,
            description="Returns true if the value is null",
            category=FunctionCategory.LOGIC,
            parameters=[value],
            return_type="boolean",
        )
    )
    registry.register(
        FunctionDefinition(
            name="isEmpty",
            implementation=_is_empty,
            description="Returns true if the value is null or blank text",
            category=FunctionCategory.LOGIC,
            parameters=[value],
            return_type="boolean",
            examples=['isEmpty(middleName)'],
        )
    )
    registry.register(
        FunctionDefinition(
            name="toNumber",
            implementation=_to_number,
            description="Parses a number from text, null when it is not numeric",
            category=FunctionCategory.LOGIC,
            parameters=[value],
            return_type="number",
            examples=['toNumber("42") + 1'],
        )
    )
    registry.register(
        FunctionDefinition(
            name="toText",
            implementation=_to_text,
            description="Converts any value to its text form",
            category=FunctionCategory.LOGIC,
            parameters=[value],
            return_type="text",
        )
    )
    registry.register(
        FunctionDefinition(
            name="iif",
            implementation=_iif,
            description="Returns one of two values depending on a condition",
            category=FunctionCategory.LOGIC,
            parameters=[
                FunctionParameter("condition", "boolean", "Condition to test"),
                FunctionParameter("trueValue", "any", "Value when true"),
                FunctionParameter("falseValue", "any", "Value when false", required=False),
            ],
            return_type="any",
            examples=['iif(total > 100, "large", "small")'],
        )
    )


# -----------------------------------------------------------------------------
# Date Functions
# -----------------------------------------------------------------------------


def _today() -> str:
    return date.today().isoformat()


def _days_between(start: Any, end: Any) -> float | None:
    """Return number of days from start to end."""
    if start is None or end is None:
        return None

    start_dt = to_datetime(start)
    end_dt = to_datetime(end)
    if start_dt is None or end_dt is None:
        raise TypeMismatchError("daysBetween() expects ISO-8601 dates")

    return float((end_dt.date() - start_dt.date()).days)


def _register_date_functions(registry: FunctionRegistry) -> None:
    registry.register(
        FunctionDefinition(
            name="today",
            implementation=_today,
            description="Returns the current date as ISO-8601 text",
            category=FunctionCategory.DATE,
            parameters=[],
            return_type="text",
            examples=["dueDate AFTER today()"],
        )
    )
    registry.register(
        FunctionDefinition(
            name="daysBetween",
            implementation=_days_between,
            description="Returns the number of days from start to end",
            category=FunctionCategory.DATE,
            parameters=[
                FunctionParameter("start", "date", "Start date"),
                FunctionParameter("end", "date", "End date"),
            ],
            return_type="number",
            examples=['daysBetween(startDate, endDate) <= 30'],
        )
    )

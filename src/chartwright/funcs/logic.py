"""Defaults, comparisons, boolean logic and integer math."""

from __future__ import annotations

from typing import Any

from chartwright.errors import FailError, InvalidArgumentError, RequiredValueError
from chartwright.funcs.coerce import as_float, as_int, as_str, is_number
from chartwright.funcs.registry import FunctionLibrary
from chartwright.values import is_truthy, is_zero, kind_of

library = FunctionLibrary()


# =============================================================================
# Defaults
# =============================================================================


@library.register("default", 1, 2)
def default(fallback: Any, value: Any = None) -> Any:
    """`fallback` when `value` is absent, null or a zero value."""
    return fallback if is_zero(value) else value


@library.register("required", 2)
def required(message: Any, value: Any) -> Any:
    if is_zero(value):
        raise RequiredValueError(as_str(message, "required"), function="required")
    return value


@library.register("fail", 1)
def fail(message: Any) -> Any:
    raise FailError(as_str(message, "fail"), function="fail")


@library.register("empty", 1)
def empty(value: Any) -> bool:
    return is_zero(value)


@library.register("coalesce", 1, None)
def coalesce(*values: Any) -> Any:
    for value in values:
        if not is_zero(value):
            return value
    return None


@library.register("ternary", 3)
def ternary(true_value: Any, false_value: Any, condition: Any) -> Any:
    return true_value if is_truthy(condition) else false_value


@library.register("kindOf", 1)
def kind_of_value(value: Any) -> str:
    return kind_of(value)


@library.register("kindIs", 2)
def kind_is(kind: Any, value: Any) -> bool:
    return as_str(kind, "kindIs") == kind_of(value)


# =============================================================================
# Comparison
# =============================================================================


def _equal(a: Any, b: Any) -> bool:
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return a == b


def _ordered(func: str, a: Any, b: Any) -> tuple[Any, Any]:
    if is_number(a) and is_number(b):
        return a, b
    if isinstance(a, str) and isinstance(b, str):
        return a, b
    raise InvalidArgumentError(
        f"{func}: incompatible types for comparison: {kind_of(a)} and {kind_of(b)}",
        function=func,
    )


@library.register("eq", 2, None)
def eq(first: Any, *others: Any) -> bool:
    """True if `first` equals any of the other arguments."""
    return any(_equal(first, other) for other in others)


@library.register("ne", 2)
def ne(a: Any, b: Any) -> bool:
    return not _equal(a, b)


@library.register("lt", 2)
def lt(a: Any, b: Any) -> bool:
    x, y = _ordered("lt", a, b)
    return x < y


@library.register("le", 2)
def le(a: Any, b: Any) -> bool:
    x, y = _ordered("le", a, b)
    return x <= y


@library.register("gt", 2)
def gt(a: Any, b: Any) -> bool:
    x, y = _ordered("gt", a, b)
    return x > y


@library.register("ge", 2)
def ge(a: Any, b: Any) -> bool:
    x, y = _ordered("ge", a, b)
    return x >= y


# `and` and `or` short-circuit in the evaluator; these are the eager forms
# used when they are called as ordinary functions.
@library.register("and", 1, None)
def and_(*values: Any) -> Any:
    for value in values:
        if not is_truthy(value):
            return value
    return values[-1]


@library.register("or", 1, None)
def or_(*values: Any) -> Any:
    for value in values:
        if is_truthy(value):
            return value
    return values[-1]


@library.register("not", 1)
def not_(value: Any) -> bool:
    return not is_truthy(value)


# =============================================================================
# Math (integer, like sprig)
# =============================================================================


@library.register("add", 1, None)
def add(*values: Any) -> int:
    return sum(as_int(v, "add") for v in values)


@library.register("sub", 2)
def sub(a: Any, b: Any) -> int:
    return as_int(a, "sub") - as_int(b, "sub")


@library.register("mul", 1, None)
def mul(*values: Any) -> int:
    result = 1
    for v in values:
        result *= as_int(v, "mul")
    return result


def _divisor(value: Any, func: str) -> int:
    divisor = as_int(value, func)
    if divisor == 0:
        raise InvalidArgumentError(f"{func}: integer divide by zero", function=func)
    return divisor


def _truncated_div(a: int, b: int) -> int:
    quotient = abs(a) // abs(b)
    return quotient if (a >= 0) == (b >= 0) else -quotient


@library.register("div", 2)
def div(a: Any, b: Any) -> int:
    return _truncated_div(as_int(a, "div"), _divisor(b, "div"))


@library.register("mod", 2)
def mod(a: Any, b: Any) -> int:
    x, y = as_int(a, "mod"), _divisor(b, "mod")
    return x - y * _truncated_div(x, y)


@library.register("max", 1, None)
def max_(*values: Any) -> int:
    return max(as_int(v, "max") for v in values)


@library.register("min", 1, None)
def min_(*values: Any) -> int:
    return min(as_int(v, "min") for v in values)


@library.register("int", 1)
def to_int(value: Any) -> int:
    return as_int(value, "int")


@library.register("float64", 1)
def to_float(value: Any) -> float:
    return as_float(value, "float64")

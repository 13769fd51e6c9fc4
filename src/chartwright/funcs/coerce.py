"""Argument coercion shared by the function modules."""

from __future__ import annotations

from typing import Any, List, Mapping

from chartwright.errors import InvalidArgumentError
from chartwright.values import APIVersions, kind_of, to_text


def as_str(value: Any, func: str) -> str:
    """Scalars print to text; collections are rejected."""
    if isinstance(value, (Mapping, list, tuple)):
        raise InvalidArgumentError(
            f"{func}: expected string, got {kind_of(value)}", function=func
        )
    return to_text(value)


def as_int(value: Any, func: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return int(float(text))
        except ValueError:
            pass
    raise InvalidArgumentError(
        f"{func}: expected integer, got {kind_of(value)} {to_text(value)!r}", function=func
    )


def as_float(value: Any, func: str) -> float:
    if value is None:
        return 0.0
    if isinstance(value, (bool, int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            pass
    raise InvalidArgumentError(
        f"{func}: expected number, got {kind_of(value)} {to_text(value)!r}", function=func
    )


def as_mapping(value: Any, func: str, allow_none: bool = False) -> Mapping[str, Any]:
    """`allow_none` reads an absent or null map as empty."""
    if value is None and allow_none:
        return {}
    if isinstance(value, Mapping):
        return value
    raise InvalidArgumentError(f"{func}: expected map, got {kind_of(value)}", function=func)


def as_list(value: Any, func: str) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, APIVersions)):
        return list(value)
    raise InvalidArgumentError(f"{func}: expected list, got {kind_of(value)}", function=func)


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)

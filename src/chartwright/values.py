"""Value context model.

Values are plain Python trees: dicts, lists, str, int, float, bool and None.
Path resolution never raises for absent keys; it returns the `MISSING`
sentinel so templates can check-then-default. Three outcomes stay distinct:

- absent: `MISSING`, the key never existed
- null: `None`, the key exists with an explicit null
- present: anything else, including empty strings and collections
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Sequence

from chartwright.errors import EvaluationError


class _Missing:
    """Sentinel type for absent values."""

    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> "_Missing":
        return self

    def __deepcopy__(self, memo: dict) -> "_Missing":
        return self


MISSING: Any = _Missing()


def is_missing(value: Any) -> bool:
    return value is MISSING


def is_zero(value: Any) -> bool:
    """True for absent, null and zero values (`""`, `0`, `False`, empty collections)."""
    if value is MISSING or value is None:
        return True
    if isinstance(value, bool):
        return not value
    if isinstance(value, (int, float)):
        return value == 0
    if isinstance(value, (str, bytes, Mapping, Sequence)):
        return len(value) == 0
    return False


def is_truthy(value: Any) -> bool:
    return not is_zero(value)


def get_field(value: Any, name: str, strict: bool = False) -> Any:
    """Resolve one field step against `value`.

    Mappings yield the key or `MISSING`. Absent and null values yield
    `MISSING`. Objects expose public attributes (e.g. `APIVersions.Has`).
    """
    if value is MISSING or value is None:
        return MISSING
    if isinstance(value, Mapping):
        if name in value:
            return value[name]
        if strict:
            raise EvaluationError(f'map has no entry for key "{name}"')
        return MISSING
    if isinstance(value, (str, bytes, int, float, bool, list, tuple)):
        raise EvaluationError(
            f"can't evaluate field {name} in type {kind_of(value)}"
        )
    if not name.startswith("_") and hasattr(value, name):
        return getattr(value, name)
    raise EvaluationError(f"can't evaluate field {name} in type {type(value).__name__}")


def lookup_path(root: Any, path: str | Sequence[str], strict: bool = False) -> Any:
    """Resolve a dotted path such as `"a.b.c"` against `root`."""
    parts = path.split(".") if isinstance(path, str) else list(path)
    value = root
    for part in parts:
        if part == "":
            continue
        value = get_field(value, part, strict=strict)
    return value


def has_key(mapping: Any, key: str) -> bool:
    """Existence test only; a key bound to null still exists."""
    return isinstance(mapping, Mapping) and key in mapping


def to_plain(value: Any) -> Any:
    """Convert a value tree into builtin types suitable for serializers."""
    if value is MISSING:
        return None
    if isinstance(value, Mapping):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    if isinstance(value, APIVersions):
        return list(value)
    return value


def kind_of(value: Any) -> str:
    """Go reflect kind names, as reported by `kindOf`."""
    if value is MISSING or value is None:
        return "invalid"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float64"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "map"
    if isinstance(value, (list, tuple, APIVersions)):
        return "slice"
    if callable(value):
        return "func"
    return "struct"


def format_float(value: float) -> str:
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if math.isnan(value):
        return "NaN"
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def _inner_text(value: Any) -> str:
    if value is MISSING or value is None:
        return "<nil>"
    return to_text(value)


def to_text(value: Any) -> str:
    """Render a value the way an action prints it.

    Absent and null values print as empty text.
    """
    if value is MISSING or value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return format_float(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Mapping):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "map[" + " ".join(f"{k}:{_inner_text(v)}" for k, v in items) + "]"
    if isinstance(value, (list, tuple, APIVersions)):
        return "[" + " ".join(_inner_text(v) for v in value) + "]"
    return str(value)


class APIVersions:
    """Capabilities.APIVersions; supports `.Has "apps/v1"` and ranging."""

    def __init__(self, versions: Sequence[str]):
        self._versions = list(versions)

    def Has(self, version: str) -> bool:  # noqa: N802 - template-facing name
        return version in self._versions

    def __iter__(self) -> Iterator[str]:
        return iter(self._versions)

    def __len__(self) -> int:
        return len(self._versions)

    def __repr__(self) -> str:
        return f"APIVersions({self._versions!r})"


# =============================================================================
# Scope
# =============================================================================


@dataclass
class Cell:
    """Holder for one variable's value; `$x = v` updates it in place."""

    value: Any


@dataclass(frozen=True)
class Scope:
    """One immutable frame of the scope stack.

    `push` returns a child frame; the parent is never modified, so bindings
    made inside a block disappear when the block's frame is dropped.
    """

    dot: Any
    bindings: Mapping[str, Cell] = field(default_factory=dict)
    parent: "Scope | None" = None

    @classmethod
    def root(cls, dot: Any) -> "Scope":
        """Fresh scope for a template invocation: `$` and dot are `dot`."""
        return cls(dot=dot, bindings={"$": Cell(dot)})

    def push(self, dot: Any = MISSING, **bindings: Any) -> "Scope":
        new_dot = self.dot if dot is MISSING else dot
        return Scope(
            dot=new_dot,
            bindings={name: Cell(value) for name, value in bindings.items()},
            parent=self,
        )

    def bind(self, name: str, value: Any) -> "Scope":
        """Child frame with the same dot and one extra binding."""
        return Scope(dot=self.dot, bindings={name: Cell(value)}, parent=self)

    def _cell(self, name: str) -> Cell | None:
        scope: Scope | None = self
        while scope is not None:
            cell = scope.bindings.get(name)
            if cell is not None:
                return cell
            scope = scope.parent
        return None

    def resolve(self, name: str) -> Any:
        cell = self._cell(name)
        if cell is None:
            raise EvaluationError(f"undefined variable: {name}")
        return cell.value

    def assign(self, name: str, value: Any) -> None:
        cell = self._cell(name)
        if cell is None:
            raise EvaluationError(f"undefined variable: {name}")
        cell.value = value

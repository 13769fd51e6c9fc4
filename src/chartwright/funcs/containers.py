"""Lists and dictionaries.

None of these functions mutate their arguments; every result is a new
container.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Mapping

from chartwright.errors import ArityError, EvaluationError, InvalidArgumentError
from chartwright.funcs.coerce import as_int, as_list, as_mapping, as_str
from chartwright.funcs.registry import FunctionLibrary
from chartwright.values import APIVersions, has_key, kind_of, to_text

library = FunctionLibrary()


def deep_merge(dst: Mapping[str, Any], src: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge `src` into a copy of `dst`; nested mappings merge, other values from `src` win."""
    result: Dict[str, Any] = copy.deepcopy(dict(dst))
    for key, value in src.items():
        current = result.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            result[key] = deep_merge(current, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


# =============================================================================
# Construction
# =============================================================================


@library.register("list", 0, None)
def list_(*items: Any) -> List[Any]:
    return list(items)


@library.register("dict", 0, None)
def dict_(*pairs: Any) -> Dict[str, Any]:
    if len(pairs) % 2:
        raise ArityError(
            f"dict: expected an even number of arguments, got {len(pairs)}", function="dict"
        )
    result: Dict[str, Any] = {}
    for i in range(0, len(pairs), 2):
        result[to_text(pairs[i])] = pairs[i + 1]
    return result


@library.register("until", 1)
def until(count: Any) -> List[int]:
    return list(range(as_int(count, "until")))


# =============================================================================
# Dictionaries
# =============================================================================


@library.register("merge", 1, None)
def merge(dst: Any, *sources: Any) -> Dict[str, Any]:
    """Deep merge left to right; later sources override earlier values."""
    result = deep_merge(as_mapping(dst, "merge"), {})
    for src in sources:
        if src is None:
            continue
        result = deep_merge(result, as_mapping(src, "merge"))
    return result


library.register("mergeOverwrite", 1, None)(merge)


@library.register("hasKey", 2)
def has_key_(mapping: Any, key: Any) -> bool:
    return has_key(as_mapping(mapping, "hasKey", allow_none=True), as_str(key, "hasKey"))


@library.register("get", 2)
def get(mapping: Any, key: Any) -> Any:
    m = as_mapping(mapping, "get", allow_none=True)
    return m.get(as_str(key, "get"), "")


@library.register("pluck", 1, None)
def pluck(key: Any, *mappings: Any) -> List[Any]:
    """Value at `key` from each mapping that has it, in argument order."""
    name = as_str(key, "pluck")
    result = []
    for m in mappings:
        mapping = as_mapping(m, "pluck", allow_none=True)
        if name in mapping:
            result.append(mapping[name])
    return result


@library.register("pick", 1, None)
def pick(mapping: Any, *keys: Any) -> Dict[str, Any]:
    m = as_mapping(mapping, "pick", allow_none=True)
    wanted = [as_str(k, "pick") for k in keys]
    return {k: m[k] for k in wanted if k in m}


@library.register("omit", 1, None)
def omit(mapping: Any, *keys: Any) -> Dict[str, Any]:
    m = as_mapping(mapping, "omit", allow_none=True)
    dropped = {as_str(k, "omit") for k in keys}
    return {k: v for k, v in m.items() if k not in dropped}


@library.register("keys", 1, None)
def keys(*mappings: Any) -> List[str]:
    """All keys of the given mappings, sorted."""
    found: List[str] = []
    for m in mappings:
        found.extend(str(k) for k in as_mapping(m, "keys", allow_none=True))
    return sorted(found)


@library.register("values", 1)
def values(mapping: Any) -> List[Any]:
    """Values ordered by their sorted keys."""
    m = as_mapping(mapping, "values", allow_none=True)
    return [m[k] for k in sorted(m)]


# =============================================================================
# Lists
# =============================================================================


@library.register("first", 1)
def first(items: Any) -> Any:
    seq = as_list(items, "first")
    return seq[0] if seq else None


@library.register("last", 1)
def last(items: Any) -> Any:
    seq = as_list(items, "last")
    return seq[-1] if seq else None


@library.register("append", 2)
def append(items: Any, value: Any) -> List[Any]:
    return as_list(items, "append") + [value]


@library.register("uniq", 1)
def uniq(items: Any) -> List[Any]:
    result: List[Any] = []
    for item in as_list(items, "uniq"):
        if item not in result:
            result.append(item)
    return result


@library.register("sortAlpha", 1)
def sort_alpha(items: Any) -> List[str]:
    return sorted(to_text(i) for i in as_list(items, "sortAlpha"))


@library.register("len", 1)
def len_(value: Any) -> int:
    if isinstance(value, (str, list, tuple, Mapping, APIVersions)):
        return len(value)
    raise InvalidArgumentError(f"len of type {kind_of(value)}", function="len")


@library.register("index", 1, None)
def index(collection: Any, *keys: Any) -> Any:
    """`index m "a" 0` is `m["a"][0]`; missing map keys give null."""
    current = collection
    for key in keys:
        if current is None:
            raise EvaluationError("index of untyped nil", function="index")
        if isinstance(current, Mapping):
            current = current.get(to_text(key))
        elif isinstance(current, (list, tuple, str)):
            i = as_int(key, "index")
            if i < 0 or i >= len(current):
                raise EvaluationError(
                    f"index out of range: {i}", function="index"
                )
            current = current[i]
        else:
            raise EvaluationError(f"can't index item of type {kind_of(current)}", function="index")
    return current

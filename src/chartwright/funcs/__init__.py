"""Template function library."""

from chartwright.funcs import containers, logic, semver, serialize, strings
from chartwright.funcs.registry import FunctionLibrary, FunctionSpec


def default_library() -> FunctionLibrary:
    """The pure functions every render gets."""
    library = FunctionLibrary()
    for module in (logic, strings, containers, serialize, semver):
        library = library.extend(module.library)
    return library


__all__ = ["FunctionLibrary", "FunctionSpec", "default_library"]

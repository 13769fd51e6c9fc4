"""Function registry - named template functions with declared arity."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional

from chartwright.errors import ArityError


@dataclass(frozen=True)
class FunctionSpec:
    """Descriptor of one template function.

    `contextual` functions receive the running evaluator as their first
    argument (before the template-supplied arguments).
    """

    name: str
    func: Callable[..., Any]
    min_args: int
    max_args: Optional[int]
    contextual: bool = False

    def check_arity(self, count: int) -> None:
        if count < self.min_args or (self.max_args is not None and count > self.max_args):
            if self.max_args is None:
                want = f"at least {self.min_args}"
            elif self.min_args == self.max_args:
                want = str(self.min_args)
            else:
                want = f"{self.min_args}..{self.max_args}"
            raise ArityError(
                f"wrong number of args for {self.name}: want {want} got {count}",
                function=self.name,
            )


class FunctionLibrary:
    """Registry of template functions.

    Instances are treated as immutable once handed to an `Engine`;
    `extend` returns a new library instead of changing this one.
    """

    def __init__(self, specs: Optional[Dict[str, FunctionSpec]] = None):
        self._specs: Dict[str, FunctionSpec] = dict(specs or {})

    def register(
        self,
        name: str,
        min_args: int = 0,
        max_args: Optional[int] = -1,
        contextual: bool = False,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator registering `func` under `name`.

        `max_args=-1` (the default) means "same as min_args"; `None` means
        variadic.
        """

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            upper = min_args if max_args == -1 else max_args
            self._specs[name] = FunctionSpec(name, func, min_args, upper, contextual)
            return func

        return decorator

    def add(self, spec: FunctionSpec) -> None:
        self._specs[spec.name] = spec

    def extend(self, other: "FunctionLibrary") -> "FunctionLibrary":
        merged = dict(self._specs)
        merged.update(other._specs)
        return FunctionLibrary(merged)

    def get(self, name: str) -> Optional[FunctionSpec]:
        return self._specs.get(name)

    def names(self) -> frozenset:
        return frozenset(self._specs)

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def __iter__(self) -> Iterator[str]:
        return iter(self._specs)

    def __len__(self) -> int:
        return len(self._specs)

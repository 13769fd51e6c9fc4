"""Functions bound to the running evaluator: `include`, `tpl` and `lookup`."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from chartwright.funcs.coerce import as_str
from chartwright.funcs.registry import FunctionLibrary

if TYPE_CHECKING:
    from chartwright.engine.evaluator import Evaluator

library = FunctionLibrary()


@library.register("include", 1, 2, contextual=True)
def include(ev: "Evaluator", name: Any, data: Any = None) -> str:
    """Render a named template and return its text as a pipeline value."""
    return ev.render_named(as_str(name, "include"), data)


@library.register("tpl", 2, contextual=True)
def tpl(ev: "Evaluator", text: Any, data: Any) -> str:
    """Render `text` as a template with `data` as its dot."""
    return ev.render_text(as_str(text, "tpl"), data)


@library.register("lookup", 4, contextual=True)
def lookup(ev: "Evaluator", api_version: Any, kind: Any, namespace: Any, name: Any) -> Any:
    return ev.lookup_resource(
        as_str(api_version, "lookup"),
        as_str(kind, "lookup"),
        as_str(namespace, "lookup"),
        as_str(name, "lookup"),
    )

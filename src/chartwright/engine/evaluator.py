"""Control-flow evaluator.

Walks an action tree against a scope chain and writes text fragments to an
output list. One `Evaluator` serves one render; it owns the registry view,
the depth counters and the lookup source for that render.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Iterator, List, Mapping, Optional, Sequence, Tuple

from chartwright.ast.node import (
    ActionNode,
    BreakNode,
    ChainNode,
    CommandNode,
    ContinueNode,
    DotNode,
    FieldNode,
    IdentifierNode,
    IfNode,
    LiteralNode,
    Node,
    Operand,
    PipeNode,
    RangeNode,
    TemplateNode,
    TextNode,
    VariableNode,
    WithNode,
)
from chartwright.ast.parser import Parser
from chartwright.config import RenderConfig
from chartwright.engine.registry import TemplateRegistry
from chartwright.errors import (
    EvaluationError,
    ExternalLookupError,
    RecursionLimitError,
    RenderError,
    SourceLocation,
)
from chartwright.funcs.registry import FunctionLibrary, FunctionSpec
from chartwright.lookup.base import LookupSource
from chartwright.values import MISSING, APIVersions, Scope, get_field, is_truthy, kind_of, to_text

logger = logging.getLogger(__name__)

# Python exceptions a template function may raise on bad input; they become
# EvaluationError with the calling action's location.
_CALL_ERRORS = (TypeError, ValueError, ArithmeticError, KeyError, IndexError, AttributeError)


class _NoValue:
    def __repr__(self) -> str:
        return "NO_VALUE"


# Marks "nothing piped in"; distinct from MISSING, which is a real value.
_NO_VALUE: Any = _NoValue()


class _Break(Exception):
    pass


class _Continue(Exception):
    pass


def _sorted_keys(mapping: Any) -> List[Any]:
    try:
        return sorted(mapping)
    except TypeError:
        return sorted(mapping, key=str)


def _iterate(value: Any) -> Iterator[Tuple[Any, Any]]:
    """(key, element) pairs for `range`."""
    if value is MISSING or value is None:
        return iter(())
    if isinstance(value, Mapping):
        return ((k, value[k]) for k in _sorted_keys(value))
    if isinstance(value, (list, tuple, APIVersions)):
        return enumerate(value)
    if isinstance(value, int) and not isinstance(value, bool):
        if value < 0:
            raise EvaluationError(f"range can't iterate over negative count {value}")
        return ((i, i) for i in range(value))
    raise EvaluationError(f"range can't iterate over {to_text(value)} ({kind_of(value)})")


def _at(error: RenderError, location: SourceLocation) -> RenderError:
    if error.location is None:
        error.location = location
    return error


class Evaluator:
    """Executes parsed templates for a single render."""

    def __init__(
        self,
        registry: TemplateRegistry,
        functions: FunctionLibrary,
        lookup: LookupSource,
        config: RenderConfig,
        parser: Optional[Parser] = None,
    ):
        self.registry = registry
        self.functions = functions
        self.lookup_source = lookup
        self.config = config
        self.parser = parser or Parser(functions.names())
        self.include_depth = 0
        self.tpl_depth = 0

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def render_nodes(self, nodes: Sequence[Node], dot: Any) -> str:
        """Render `nodes` with a fresh scope where `$` and dot are `dot`."""
        out: List[str] = []
        self.execute(nodes, Scope.root(dot), out)
        return "".join(out)

    def render_named(self, name: str, dot: Any, location: Optional[SourceLocation] = None) -> str:
        """Render a registered template; used by `template` and `include`."""
        limit = self.config.max_include_depth
        if self.include_depth >= limit:
            raise RecursionLimitError(
                f'template "{name}" exceeded max include depth of {limit}', location=location
            )
        nodes = self.registry.lookup(name, location)
        self.include_depth += 1
        try:
            return self.render_nodes(nodes, dot)
        except RecursionError:
            raise RecursionLimitError(
                f'template "{name}" nested too deeply', location=location
            ) from None
        finally:
            self.include_depth -= 1

    def render_text(self, text: str, dot: Any, name: str = "tpl") -> str:
        """Parse and render template text at render time (`tpl`).

        Definitions in `text` go to an overlay registry and vanish afterwards.
        """
        limit = self.config.max_tpl_depth
        if self.tpl_depth >= limit:
            raise RecursionLimitError(f"tpl exceeded max nesting depth of {limit}")
        parsed = self.parser.parse(text, name=name)
        overlay = self.registry.child()
        for definition in parsed.definitions:
            overlay.define(definition.name, definition.body, override=definition.override)

        saved = self.registry
        self.registry = overlay
        self.tpl_depth += 1
        try:
            return self.render_nodes(parsed.root, dot)
        finally:
            self.tpl_depth -= 1
            self.registry = saved

    def lookup_resource(self, api_version: str, kind: str, namespace: str, name: str) -> Any:
        source = self.lookup_source
        logger.debug(
            "lookup %s %s %s/%s via %s", api_version, kind, namespace, name or "*", source.name
        )
        try:
            if name:
                found = source.get(api_version, kind, namespace, name)
                return MISSING if found is None else found
            items = source.list(api_version, kind, namespace)
        except RenderError:
            raise
        except Exception as e:
            raise ExternalLookupError(
                f"lookup {api_version}/{kind} {namespace}/{name}: {e}"
            ) from e
        if items is None:
            return MISSING
        return {"apiVersion": api_version, "kind": f"{kind}List", "items": list(items)}

    # -------------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------------

    def execute(self, nodes: Sequence[Node], scope: Scope, out: List[str]) -> Scope:
        """Run `nodes` in order; returns the scope extended by any `:=` actions."""
        for node in nodes:
            try:
                scope = self._execute_node(node, scope, out)
            except RenderError as e:
                raise _at(e, node.location)
        return scope

    def _execute_node(self, node: Node, scope: Scope, out: List[str]) -> Scope:
        if isinstance(node, TextNode):
            out.append(node.text)
        elif isinstance(node, ActionNode):
            value = self.eval_pipe(node.pipe, scope)
            if node.pipe.decls:
                return self._bind(node.pipe, scope, value)
            out.append(to_text(value))
        elif isinstance(node, IfNode):
            value = self.eval_pipe(node.pipe, scope)
            inner = self._bind(node.pipe, scope.push(), value)
            self.execute(node.body if is_truthy(value) else node.else_body, inner, out)
        elif isinstance(node, WithNode):
            value = self.eval_pipe(node.pipe, scope)
            if is_truthy(value):
                self.execute(node.body, self._bind(node.pipe, scope.push(dot=value), value), out)
            else:
                self.execute(node.else_body, self._bind(node.pipe, scope.push(), value), out)
        elif isinstance(node, RangeNode):
            self._range(node, scope, out)
        elif isinstance(node, TemplateNode):
            dot = self.eval_pipe(node.pipe, scope) if node.pipe is not None else None
            out.append(self.render_named(node.name, dot, node.location))
        elif isinstance(node, BreakNode):
            raise _Break()
        elif isinstance(node, ContinueNode):
            raise _Continue()
        else:
            raise EvaluationError(f"unknown node {type(node).__name__}", location=node.location)
        return scope

    def _bind(self, pipe: PipeNode, scope: Scope, value: Any) -> Scope:
        if not pipe.decls:
            return scope
        name = pipe.decls[0]
        if pipe.is_assign:
            scope.assign(name, value)
            return scope
        return scope.bind(name, value)

    def _range(self, node: RangeNode, scope: Scope, out: List[str]) -> None:
        value = self.eval_pipe(node.pipe, scope)
        decls = node.pipe.decls
        for key, element in _iterate(value):
            if len(decls) == 2:
                frame = scope.push(element, **{decls[0]: key, decls[1]: element})
            elif len(decls) == 1:
                frame = scope.push(element, **{decls[0]: element})
            else:
                frame = scope.push(element)
            try:
                self.execute(node.body, frame, out)
            except _Continue:
                continue
            except _Break:
                break

    # -------------------------------------------------------------------------
    # Pipelines
    # -------------------------------------------------------------------------

    def eval_pipe(self, pipe: PipeNode, scope: Scope) -> Any:
        value = _NO_VALUE
        for command in pipe.commands:
            value = self.eval_command(command, scope, value)
        return value

    def eval_command(self, command: CommandNode, scope: Scope, piped: Any = _NO_VALUE) -> Any:
        first, rest = command.args[0], command.args[1:]
        if isinstance(first, IdentifierNode):
            return self.call_function(first, rest, scope, piped)
        if rest:
            args = [self.eval_arg(arg, scope) for arg in rest]
            if isinstance(first, FieldNode):
                return self._walk(scope.dot, first.path, args)
            if isinstance(first, VariableNode):
                return self._walk(scope.resolve(first.name), first.path, args)
            if isinstance(first, ChainNode):
                return self._walk(self.eval_pipe(first.pipe, scope), first.path, args)
            raise EvaluationError("can't give argument to non-function")
        return self.eval_arg(first, scope)

    def eval_arg(self, node: Operand, scope: Scope) -> Any:
        if isinstance(node, DotNode):
            return scope.dot
        if isinstance(node, FieldNode):
            return self._walk(scope.dot, node.path)
        if isinstance(node, VariableNode):
            return self._walk(scope.resolve(node.name), node.path)
        if isinstance(node, LiteralNode):
            return node.value
        if isinstance(node, PipeNode):
            return self.eval_pipe(node, scope)
        if isinstance(node, ChainNode):
            return self._walk(self.eval_pipe(node.pipe, scope), node.path)
        if isinstance(node, IdentifierNode):
            return self.call_function(node, [], scope, _NO_VALUE)
        raise EvaluationError(f"can't evaluate {type(node).__name__}")

    def _walk(self, value: Any, path: Sequence[str], args: Optional[List[Any]] = None) -> Any:
        """Resolve a field chain; methods on the way are called.

        With `args`, the last step must be a method and receives them.
        """
        strict = self.config.strict
        last = len(path) - 1
        for i, name in enumerate(path):
            value = get_field(value, name, strict=strict)
            if inspect.ismethod(value):
                call_args = args if i == last and args is not None else []
                try:
                    value = value(*[None if a is MISSING else a for a in call_args])
                except _CALL_ERRORS as e:
                    raise EvaluationError(f"error calling {name}: {e}") from e
                if i == last and args is not None:
                    return value
        if args is not None:
            raise EvaluationError(f"{'.'.join(path)} is not a method but has arguments")
        return value

    def call_function(
        self, ident: IdentifierNode, arg_nodes: Sequence[Operand], scope: Scope, piped: Any
    ) -> Any:
        name = ident.name
        spec = self.functions.get(name)
        if spec is None:
            raise EvaluationError(f'function "{name}" not defined', location=ident.location)

        if name in ("and", "or"):
            return self._short_circuit(spec, arg_nodes, scope, piped)

        args = [self.eval_arg(arg, scope) for arg in arg_nodes]
        if piped is not _NO_VALUE:
            args.append(piped)
        spec.check_arity(len(args))
        return self._invoke(spec, [None if a is MISSING else a for a in args])

    def _invoke(self, spec: FunctionSpec, args: List[Any]) -> Any:
        try:
            if spec.contextual:
                return spec.func(self, *args)
            return spec.func(*args)
        except RenderError as e:
            if e.function is None:
                e.function = spec.name
            raise
        except _CALL_ERRORS as e:
            raise EvaluationError(f"error calling {spec.name}: {e}", function=spec.name) from e

    def _short_circuit(
        self, spec: FunctionSpec, arg_nodes: Sequence[Operand], scope: Scope, piped: Any
    ) -> Any:
        """`and` returns the first falsy argument, `or` the first truthy one."""
        count = len(arg_nodes) + (piped is not _NO_VALUE)
        spec.check_arity(count)
        want = spec.name == "or"
        value: Any = None
        for arg in arg_nodes:
            value = self.eval_arg(arg, scope)
            if is_truthy(value) == want:
                return value
        if piped is not _NO_VALUE:
            value = piped
        return value

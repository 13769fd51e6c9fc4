"""Action tree produced by the parser."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple, Union

from chartwright.errors import SourceLocation


# =============================================================================
# Operands
# =============================================================================


@dataclass
class DotNode:
    location: SourceLocation


@dataclass
class FieldNode:
    """`.a.b` - field chain on the current dot."""

    location: SourceLocation
    path: Tuple[str, ...]


@dataclass
class VariableNode:
    """`$x.a.b` - variable with an optional field chain."""

    location: SourceLocation
    name: str
    path: Tuple[str, ...] = ()


@dataclass
class IdentifierNode:
    """Function name."""

    location: SourceLocation
    name: str


@dataclass
class LiteralNode:
    location: SourceLocation
    value: Any


@dataclass
class ChainNode:
    """`(pipeline).a.b` - field chain applied to a parenthesized pipeline."""

    location: SourceLocation
    pipe: "PipeNode"
    path: Tuple[str, ...]


Operand = Union[DotNode, FieldNode, VariableNode, IdentifierNode, LiteralNode, ChainNode, "PipeNode"]


@dataclass
class CommandNode:
    location: SourceLocation
    args: List[Operand] = field(default_factory=list)


@dataclass
class PipeNode:
    """Stages separated by `|`, with optional `$x :=` / `$x =` prefix."""

    location: SourceLocation
    commands: List[CommandNode] = field(default_factory=list)
    decls: List[str] = field(default_factory=list)
    is_assign: bool = False


# =============================================================================
# Statements
# =============================================================================


@dataclass
class TextNode:
    location: SourceLocation
    text: str


@dataclass
class ActionNode:
    location: SourceLocation
    pipe: PipeNode


@dataclass
class IfNode:
    location: SourceLocation
    pipe: PipeNode
    body: List["Node"]
    else_body: List["Node"] = field(default_factory=list)


@dataclass
class WithNode:
    location: SourceLocation
    pipe: PipeNode
    body: List["Node"]
    else_body: List["Node"] = field(default_factory=list)


@dataclass
class RangeNode:
    location: SourceLocation
    pipe: PipeNode
    body: List["Node"]


@dataclass
class TemplateNode:
    """`{{ template "name" pipeline }}`; also emitted for `block`."""

    location: SourceLocation
    name: str
    pipe: Optional[PipeNode] = None


@dataclass
class BreakNode:
    location: SourceLocation


@dataclass
class ContinueNode:
    location: SourceLocation


Node = Union[
    TextNode,
    ActionNode,
    IfNode,
    WithNode,
    RangeNode,
    TemplateNode,
    BreakNode,
    ContinueNode,
]


@dataclass
class Definition:
    """A `define` (override=True) or `block` (override=False) body."""

    name: str
    body: List[Node]
    location: SourceLocation
    override: bool = True


@dataclass
class ParsedTemplate:
    """One parsed source: its own body plus the definitions it contains."""

    name: str
    root: List[Node]
    definitions: List[Definition] = field(default_factory=list)

"""Named-template registry"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List, Optional

from chartwright.ast.node import Node, ParsedTemplate
from chartwright.errors import SourceLocation, TemplateNotFoundError

logger = logging.getLogger(__name__)


class TemplateRegistry:
    """Maps template names to node sequences.

    Later definitions of a name replace earlier ones. A registry created by
    `child()` shadows its parent without changing it.
    """

    def __init__(self, parent: Optional["TemplateRegistry"] = None):
        self._templates: Dict[str, List[Node]] = {}
        self._parent = parent

    def define(self, name: str, nodes: List[Node], override: bool = True) -> bool:
        """Register `nodes` under `name`; returns False if a block was skipped."""
        if name in self:
            if not override:
                return False
            logger.debug("Template %r redefined", name)
        self._templates[name] = nodes
        return True

    def register(self, parsed: ParsedTemplate) -> None:
        """Register a parsed source under its own name plus all its definitions."""
        self.define(parsed.name, parsed.root)
        for definition in parsed.definitions:
            self.define(definition.name, definition.body, override=definition.override)

    def register_all(self, sources: Iterable[ParsedTemplate]) -> None:
        for parsed in sources:
            self.register(parsed)

    def lookup(self, name: str, location: Optional[SourceLocation] = None) -> List[Node]:
        registry: Optional[TemplateRegistry] = self
        while registry is not None:
            nodes = registry._templates.get(name)
            if nodes is not None:
                return nodes
            registry = registry._parent
        raise TemplateNotFoundError(name, location=location)

    def child(self) -> "TemplateRegistry":
        return TemplateRegistry(parent=self)

    def names(self) -> List[str]:
        found = set(self._templates)
        if self._parent is not None:
            found.update(self._parent.names())
        return sorted(found)

    def __contains__(self, name: object) -> bool:
        if name in self._templates:
            return True
        return self._parent is not None and name in self._parent

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self.names())

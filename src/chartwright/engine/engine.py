"""Render entry points.

An `Engine` bundles the function library, the parser and the lookup source.
`parse` runs the parser and the registration pre-pass over a set of sources;
each render then gets its own `Evaluator`, so a parsed `TemplateSet` can be
shared between renders.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, Mapping, Optional, Union

from chartwright.ast.node import ParsedTemplate
from chartwright.ast.parser import Parser
from chartwright.config import RenderConfig, is_partial
from chartwright.engine import builtins
from chartwright.engine.evaluator import Evaluator
from chartwright.engine.registry import TemplateRegistry
from chartwright.errors import TemplateNotFoundError
from chartwright.funcs import FunctionLibrary, default_library
from chartwright.lookup.base import LookupSource, NullLookup

logger = logging.getLogger(__name__)


class TemplateSet:
    """Parsed sources and the registry built from them; read-only after `Engine.parse`."""

    def __init__(self, templates: Dict[str, ParsedTemplate], registry: TemplateRegistry):
        self.templates = templates
        self.registry = registry

    def __getitem__(self, name: str) -> ParsedTemplate:
        try:
            return self.templates[name]
        except KeyError:
            raise TemplateNotFoundError(name) from None

    def __contains__(self, name: object) -> bool:
        return name in self.templates

    def __iter__(self) -> Iterator[str]:
        return iter(self.templates)

    def __len__(self) -> int:
        return len(self.templates)


Sources = Union[Mapping[str, str], TemplateSet]


class Engine:
    """Template rendering engine.

    Args:
        config: Render settings and chart metadata.
        lookup: Source for the `lookup` function; offline when omitted.
        functions: Pure function library; the built-in library when omitted.
            `include`, `tpl` and `lookup` are always added.
    """

    def __init__(
        self,
        config: Optional[RenderConfig] = None,
        lookup: Optional[LookupSource] = None,
        functions: Optional[FunctionLibrary] = None,
    ):
        self.config = config or RenderConfig()
        self.lookup = lookup or NullLookup()
        base = functions if functions is not None else default_library()
        self.functions = base.extend(builtins.library)
        self.parser = Parser(self.functions.names())

    def parse(self, sources: Mapping[str, str]) -> TemplateSet:
        """Parse every source, then register all of them and their definitions.

        All sources are parsed before anything is registered, so a parse
        error anywhere fails the whole set.
        """
        parsed = {name: self.parser.parse(text, name) for name, text in sources.items()}
        registry = TemplateRegistry()
        registry.register_all(parsed.values())
        logger.debug("Registered %d templates", len(registry))
        return TemplateSet(parsed, registry)

    def evaluator(self, templates: TemplateSet) -> Evaluator:
        """A fresh evaluator for one render over `templates`."""
        return Evaluator(templates.registry, self.functions, self.lookup, self.config, self.parser)

    def render(self, text: str, context: Any, name: str = "template") -> str:
        """Render a single template source against a ready-made context."""
        return self.render_template(self.parse({name: text}), name, context)

    def render_template(self, templates: TemplateSet, name: str, context: Any) -> str:
        output = self.evaluator(templates).render_nodes(templates[name].root, context)
        logger.debug("Rendered %s (%d bytes)", name, len(output))
        return output

    def render_templates(self, sources: Sources, context: Any) -> Dict[str, str]:
        """Render every non-partial source with the same context."""
        templates = self._template_set(sources)
        rendered = {
            name: self.render_template(templates, name, context)
            for name in templates
            if not is_partial(name)
        }
        logger.info("Rendered %d templates", len(rendered))
        return rendered

    def render_chart(self, sources: Sources, values: Mapping[str, Any]) -> Dict[str, str]:
        """Render every non-partial source with a full chart context.

        Each template sees `.Values`, `.Release`, `.Chart`, `.Capabilities`
        and its own `.Template.Name`.
        """
        templates = self._template_set(sources)
        rendered: Dict[str, str] = {}
        for name in templates:
            if is_partial(name):
                continue
            context = self.config.build_context(dict(values), template_name=name)
            rendered[name] = self.render_template(templates, name, context)
        logger.info("Rendered %d templates for chart %s", len(rendered), self.config.chart.name)
        return rendered

    def _template_set(self, sources: Sources) -> TemplateSet:
        if isinstance(sources, TemplateSet):
            return sources
        return self.parse(sources)


def join_manifests(rendered: Mapping[str, str]) -> str:
    """Concatenate rendered templates into one YAML stream.

    Templates whose output is only whitespace are left out.
    """
    parts = []
    for name, text in rendered.items():
        if not text.strip():
            continue
        body = text.strip("\n")
        parts.append(f"---\n# Source: {name}\n{body}\n")
    return "".join(parts)


def render(text: str, context: Any, lookup: Optional[LookupSource] = None) -> str:
    """Render one template with the default configuration."""
    return Engine(lookup=lookup).render(text, context)

"""Template evaluation and rendering."""

from chartwright.engine.engine import Engine, TemplateSet, join_manifests, render
from chartwright.engine.evaluator import Evaluator
from chartwright.engine.registry import TemplateRegistry

__all__ = ["Engine", "Evaluator", "TemplateRegistry", "TemplateSet", "join_manifests", "render"]

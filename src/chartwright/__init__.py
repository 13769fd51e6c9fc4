"""chartwright - Helm-style configuration template rendering"""

from chartwright._version import __version__
from chartwright.config import RenderConfig
from chartwright.engine import Engine, TemplateSet, join_manifests, render
from chartwright.errors import RenderError, SourceLocation
from chartwright.funcs import FunctionLibrary, default_library
from chartwright.lookup import LookupSource, NullLookup, StaticLookup
from chartwright.values import MISSING

__all__ = [
    "MISSING",
    "Engine",
    "FunctionLibrary",
    "LookupSource",
    "NullLookup",
    "RenderConfig",
    "RenderError",
    "SourceLocation",
    "StaticLookup",
    "TemplateSet",
    "__version__",
    "default_library",
    "join_manifests",
    "render",
]

"""External lookup sources."""

from chartwright.lookup.base import LookupSource, NullLookup, Resource, StaticLookup

__all__ = ["LookupSource", "NullLookup", "Resource", "StaticLookup"]

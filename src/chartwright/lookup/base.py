"""External lookup abstraction.

`lookup` is the only template operation that reads live state. Sources are
injected when an engine is created; the rest of a render stays deterministic.
"""

from __future__ import annotations

import copy
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)

Resource = Dict[str, Any]


class LookupSource(ABC):
    """Base class for lookup backends.

    `get` returns None when the object does not exist; `list` returns None
    when the backend cannot list at all (offline). Transport and
    authorization failures are raised.
    """

    @abstractmethod
    def get(self, api_version: str, kind: str, namespace: str, name: str) -> Optional[Resource]:
        pass

    @abstractmethod
    def list(self, api_version: str, kind: str, namespace: str) -> Optional[List[Resource]]:
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        pass


class NullLookup(LookupSource):
    """Offline source: every lookup is absent."""

    def get(self, api_version: str, kind: str, namespace: str, name: str) -> Optional[Resource]:
        return None

    def list(self, api_version: str, kind: str, namespace: str) -> Optional[List[Resource]]:
        return None

    @property
    def name(self) -> str:
        return "offline"


class StaticLookup(LookupSource):
    """In-memory source seeded with resource manifests."""

    def __init__(self, resources: Iterable[Resource] = ()):
        self._resources: List[Resource] = [copy.deepcopy(r) for r in resources]

    def add(self, resource: Resource) -> None:
        self._resources.append(copy.deepcopy(resource))

    @staticmethod
    def _matches(resource: Resource, api_version: str, kind: str, namespace: str) -> bool:
        meta = resource.get("metadata") or {}
        if resource.get("apiVersion") != api_version or resource.get("kind") != kind:
            return False
        return not namespace or meta.get("namespace", "") == namespace

    def get(self, api_version: str, kind: str, namespace: str, name: str) -> Optional[Resource]:
        for resource in self._resources:
            if self._matches(resource, api_version, kind, namespace):
                if (resource.get("metadata") or {}).get("name") == name:
                    return copy.deepcopy(resource)
        return None

    def list(self, api_version: str, kind: str, namespace: str) -> Optional[List[Resource]]:
        return [
            copy.deepcopy(r)
            for r in self._resources
            if self._matches(r, api_version, kind, namespace)
        ]

    @property
    def name(self) -> str:
        return "static"

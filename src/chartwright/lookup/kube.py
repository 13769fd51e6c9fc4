"""Kubernetes-backed lookup source using the dynamic client."""

from __future__ import annotations

import logging
import os
from typing import Any, List, Optional

from kubernetes import client
from kubernetes import config as k8s_config
from kubernetes.client import Configuration
from kubernetes.config.config_exception import ConfigException
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.exceptions import NotFoundError, ResourceNotFoundError

from chartwright.errors import ExternalLookupError
from chartwright.lookup.base import LookupSource, Resource

logger = logging.getLogger(__name__)


def setup() -> None:
    """Configure the Kubernetes client.

    Uses K8S_PROXY if set (e.g. `kubectl proxy`), then in-cluster config,
    then the local kubeconfig.
    """
    proxy = os.getenv("K8S_PROXY")

    if proxy:
        logger.info("Using K8S_PROXY=%s", proxy)
        config = Configuration.get_default_copy()
        config.host = proxy.rstrip("/")
        Configuration.set_default(config)
        return

    try:
        k8s_config.load_incluster_config()
        logger.info("Loaded in-cluster config")
        return
    except ConfigException:
        logger.debug("Not running in-cluster, trying kubeconfig")

    try:
        k8s_config.load_kube_config()
        logger.info("Loaded kubeconfig")
    except (ConfigException, OSError) as e:
        logger.error("Failed to load config: %s", e)
        raise ExternalLookupError(
            "Kubernetes unavailable. Set K8S_PROXY, run in-cluster, or provide a kubeconfig."
        ) from e


class KubernetesLookup(LookupSource):
    """Reads live objects through a `DynamicClient`."""

    def __init__(self, dynamic_client: Any):
        self._client = dynamic_client

    @classmethod
    def from_environment(cls) -> "KubernetesLookup":
        setup()
        return cls(DynamicClient(client.ApiClient()))

    @property
    def name(self) -> str:
        return "kubernetes"

    def _resource(self, api_version: str, kind: str) -> Any:
        try:
            return self._client.resources.get(api_version=api_version, kind=kind)
        except ResourceNotFoundError as e:
            raise ExternalLookupError(
                f"unable to find API resource {api_version}/{kind}: {e}"
            ) from e

    def get(self, api_version: str, kind: str, namespace: str, name: str) -> Optional[Resource]:
        resource = self._resource(api_version, kind)
        kwargs = {"name": name}
        if namespace and resource.namespaced:
            kwargs["namespace"] = namespace
        try:
            obj = resource.get(**kwargs)
        except NotFoundError:
            logger.debug("lookup %s/%s %s/%s: not found", api_version, kind, namespace, name)
            return None
        return obj.to_dict()

    def list(self, api_version: str, kind: str, namespace: str) -> Optional[List[Resource]]:
        resource = self._resource(api_version, kind)
        kwargs = {}
        if namespace and resource.namespaced:
            kwargs["namespace"] = namespace
        try:
            result = resource.get(**kwargs)
        except NotFoundError:
            return []
        return list(result.to_dict().get("items") or [])

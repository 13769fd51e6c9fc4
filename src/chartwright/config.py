"""Render configuration and chart directory loading"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from chartwright.errors import DecodeError
from chartwright.funcs.containers import deep_merge
from chartwright.values import APIVersions

logger = logging.getLogger(__name__)

TEMPLATE_SUFFIXES = (".yaml", ".yml", ".tpl", ".json")

DEFAULT_API_VERSIONS = [
    "v1",
    "admissionregistration.k8s.io/v1",
    "apiextensions.k8s.io/v1",
    "apps/v1",
    "autoscaling/v1",
    "autoscaling/v2",
    "batch/v1",
    "coordination.k8s.io/v1",
    "networking.k8s.io/v1",
    "policy/v1",
    "rbac.authorization.k8s.io/v1",
    "storage.k8s.io/v1",
]


class ReleaseInfo(BaseModel):
    """`.Release` metadata"""

    name: str = "release-name"
    namespace: str = "default"
    revision: int = 1
    is_install: bool = True
    is_upgrade: bool = False
    service: str = "chartwright"

    def to_context(self) -> Dict[str, Any]:
        return {
            "Name": self.name,
            "Namespace": self.namespace,
            "Revision": self.revision,
            "IsInstall": self.is_install,
            "IsUpgrade": self.is_upgrade,
            "Service": self.service,
        }


class ChartInfo(BaseModel):
    """Chart.yaml contents"""

    api_version: str = Field("v2", alias="apiVersion")
    name: str = "chart"
    version: str = "0.1.0"
    app_version: Optional[str] = Field(None, alias="appVersion")
    description: str = ""
    type: str = "application"
    kube_version: Optional[str] = Field(None, alias="kubeVersion")
    keywords: List[str] = []

    model_config = {"extra": "allow", "populate_by_name": True}

    @field_validator("version", "app_version", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        # YAML reads `version: 1.0` as a float
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @classmethod
    def load(cls, path: Path) -> "ChartInfo":
        """Load Chart.yaml; a missing file gives defaults named after the directory"""
        if not path.exists():
            return cls(name=path.parent.name)
        data = load_yaml_file(path)
        return cls.model_validate(data)

    def to_context(self) -> Dict[str, Any]:
        return {
            "ApiVersion": self.api_version,
            "Name": self.name,
            "Version": self.version,
            "AppVersion": self.app_version or "",
            "Description": self.description,
            "Type": self.type,
            "KubeVersion": self.kube_version or "",
            "Keywords": list(self.keywords),
        }


class KubeVersion(BaseModel):
    """`.Capabilities.KubeVersion`"""

    version: str = "v1.30.0"

    @property
    def major(self) -> str:
        return self.version.lstrip("v").split(".")[0]

    @property
    def minor(self) -> str:
        parts = self.version.lstrip("v").split(".")
        return parts[1] if len(parts) > 1 else "0"

    def to_context(self) -> Dict[str, Any]:
        return {
            "Version": self.version,
            "GitVersion": self.version,
            "Major": self.major,
            "Minor": self.minor,
        }


class CapabilitiesInfo(BaseModel):
    """`.Capabilities`"""

    kube_version: KubeVersion = Field(default_factory=KubeVersion)
    api_versions: List[str] = Field(default_factory=lambda: list(DEFAULT_API_VERSIONS))

    def to_context(self) -> Dict[str, Any]:
        return {
            "KubeVersion": self.kube_version.to_context(),
            "APIVersions": APIVersions(self.api_versions),
        }


class RenderConfig(BaseModel):
    """Settings for one engine.

    `strict` turns a missing map key into an error instead of an absent
    value. The depth limits bound `tpl` and `include`/`template` nesting.
    """

    strict: bool = False
    max_tpl_depth: int = Field(32, ge=1)
    max_include_depth: int = Field(1000, ge=1)
    release: ReleaseInfo = Field(default_factory=ReleaseInfo)
    chart: ChartInfo = Field(default_factory=ChartInfo)
    capabilities: CapabilitiesInfo = Field(default_factory=CapabilitiesInfo)

    @property
    def base_path(self) -> str:
        return f"{self.chart.name}/templates"

    def build_context(self, values: Dict[str, Any], template_name: str = "") -> Dict[str, Any]:
        """Top-level context for one template of a chart render"""
        return {
            "Values": values,
            "Release": self.release.to_context(),
            "Chart": self.chart.to_context(),
            "Capabilities": self.capabilities.to_context(),
            "Template": {"Name": template_name, "BasePath": self.base_path},
        }


# =============================================================================
# Chart directory loading
# =============================================================================


def load_yaml_file(path: Path) -> Dict[str, Any]:
    """Read a YAML mapping; an empty file is an empty mapping"""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise DecodeError(f"{path}: {e}") from e
    if not isinstance(data, dict):
        raise DecodeError(f"{path}: expected a mapping at top level")
    return data


def load_values(defaults: Path | None, overrides: Iterable[Path] = ()) -> Dict[str, Any]:
    """Chart defaults deep-merged with each override file in order"""
    values: Dict[str, Any] = {}
    if defaults is not None and defaults.exists():
        values = load_yaml_file(defaults)
    for path in overrides:
        logger.info("Merging values from %s", path)
        values = deep_merge(values, load_yaml_file(path))
    return values


def load_templates(chart_dir: Path, chart_name: str) -> Dict[str, str]:
    """Template sources under `templates/`, keyed `<chart>/templates/<rel>`, sorted"""
    root = chart_dir / "templates"
    if not root.is_dir():
        return {}
    sources: Dict[str, str] = {}
    for path in sorted(root.rglob("*")):
        if not path.is_file() or path.suffix not in TEMPLATE_SUFFIXES:
            continue
        name = f"{chart_name}/templates/{path.relative_to(root).as_posix()}"
        sources[name] = path.read_text(encoding="utf-8")
    logger.debug("Loaded %d template sources from %s", len(sources), root)
    return sources


def is_partial(name: str) -> bool:
    """Partials (`_helpers.tpl`) hold definitions and render no output"""
    return name.rsplit("/", 1)[-1].startswith("_")


def apply_set_values(values: Dict[str, Any], assignments: Iterable[str]) -> Dict[str, Any]:
    """Apply `a.b.c=value` overrides; each value is parsed as a YAML scalar"""
    result = values
    for assignment in assignments:
        path, sep, raw = assignment.partition("=")
        if not sep or not path:
            raise ValueError(f"invalid --set value {assignment!r}, expected key=value")
        try:
            value = yaml.safe_load(raw) if raw else ""
        except yaml.YAMLError:
            value = raw
        override: Dict[str, Any] = {}
        node = override
        keys = path.split(".")
        for key in keys[:-1]:
            node = node.setdefault(key, {})
        node[keys[-1]] = value
        result = deep_merge(result, override)
    return result

"""Render command - render a chart directory to a manifest stream"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError

from chartwright.config import (
    ChartInfo,
    ReleaseInfo,
    RenderConfig,
    apply_set_values,
    load_templates,
    load_values,
)
from chartwright.engine import Engine, join_manifests
from chartwright.errors import RenderError
from chartwright.lookup.base import LookupSource

from .utils import exit_with_error

logger = logging.getLogger(__name__)


def _cluster_lookup() -> LookupSource:
    from chartwright.lookup.kube import KubernetesLookup

    return KubernetesLookup.from_environment()


def _select(rendered: dict[str, str], chart_name: str, show_only: List[str]) -> dict[str, str]:
    wanted = set(show_only) | {f"{chart_name}/{name}" for name in show_only}
    selected = {name: text for name, text in rendered.items() if name in wanted}
    if not selected:
        raise ValueError(f"could not find template(s) {', '.join(show_only)} in chart")
    return selected


def render_command(
    chart_dir: Path,
    values_files: List[Path],
    set_values: List[str],
    release_name: str,
    namespace: str,
    strict: bool,
    show_only: List[str],
    cluster: bool,
    output: Optional[Path],
) -> None:
    """Render every template of the chart at `chart_dir`."""
    if not chart_dir.is_dir():
        exit_with_error(ValueError(f"chart directory not found: {chart_dir}"))

    try:
        chart = ChartInfo.load(chart_dir / "Chart.yaml")
        values = load_values(chart_dir / "values.yaml", values_files)
        values = apply_set_values(values, set_values)
        config = RenderConfig(
            strict=strict,
            release=ReleaseInfo(name=release_name, namespace=namespace),
            chart=chart,
        )
        lookup = _cluster_lookup() if cluster else None
        engine = Engine(config=config, lookup=lookup)

        rendered = engine.render_chart(load_templates(chart_dir, chart.name), values)
        if show_only:
            rendered = _select(rendered, chart.name, show_only)
    except (RenderError, ValidationError, ValueError, OSError) as e:
        logger.debug("Render failed", exc_info=True)
        exit_with_error(e)

    manifest = join_manifests(rendered)
    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(manifest, encoding="utf-8")
        logger.info("Wrote %s", output)
        return
    typer.echo(manifest, nl=False)

"""Chartwright CLI Main Entry Point

Usage:
    chartwright render CHART_DIR                    # render to stdout
    chartwright render CHART_DIR -f prod.yaml       # extra values file
    chartwright render CHART_DIR --set image.tag=v2 # single value override
    chartwright render CHART_DIR --cluster          # live `lookup`
    chartwright version
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer

from chartwright._version import __version__

from .render import render_command
from .utils import setup_logging

app = typer.Typer(help="Render Helm-style chart templates.", no_args_is_help=True)


@app.command()
def render(
    chart_dir: Path = typer.Argument(..., help="Chart directory (Chart.yaml, values.yaml, templates/)."),
    values: Optional[List[Path]] = typer.Option(
        None, "-f", "--values", help="Values file merged over values.yaml; repeatable."
    ),
    set_values: Optional[List[str]] = typer.Option(
        None, "--set", help="Override a value, e.g. image.tag=v2; repeatable."
    ),
    release_name: str = typer.Option("release-name", "--release-name", help="Release name."),
    namespace: str = typer.Option("default", "-n", "--namespace", help="Release namespace."),
    strict: bool = typer.Option(False, "--strict", help="Fail on missing map keys."),
    show_only: Optional[List[str]] = typer.Option(
        None, "-s", "--show-only", help="Only output the named template(s)."
    ),
    cluster: bool = typer.Option(
        False, "--cluster", help="Answer `lookup` from the current Kubernetes cluster."
    ),
    output: Optional[Path] = typer.Option(None, "-o", "--output", help="Write to file instead of stdout."),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Show info logs."),
) -> None:
    """Render a chart directory to a multi-document YAML stream."""
    setup_logging(verbose)
    render_command(
        chart_dir,
        values_files=list(values or []),
        set_values=list(set_values or []),
        release_name=release_name,
        namespace=namespace,
        strict=strict,
        show_only=list(show_only or []),
        cluster=cluster,
        output=output,
    )


@app.command()
def version() -> None:
    """Show version and exit."""
    typer.echo(f"chartwright {__version__}")


if __name__ == "__main__":
    app()

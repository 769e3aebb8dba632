"""
The ``appchart`` CLI: inspect process files and render application charts.

Usage::

    appchart procfile Procfile                         # Parsed processes
    appchart render app.yaml env.yaml                  # Print values.yaml
    appchart render app.yaml env.yaml -t templates/ -o charts/
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, NoReturn

import pydantic
import typer
import yaml
from rich.console import Console
from rich.table import Table

from appchart.chart.compiler import compile_application, new_chart_config
from appchart.chart.models import ApplicationSpec, EnvironmentSpec
from appchart.chart.procfile import parse_procfile
from appchart.chart.templates import read_directory
from appchart.core.errors import AppChartError
from appchart.core.logging import configure_logging
from appchart.core.settings import get_settings

app = typer.Typer(
    name="appchart",
    help="appchart: compile application specs into deployment charts.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()
err_console = Console(stderr=True)


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("appchart")
        except PackageNotFoundError:
            v = "0.1.0"
        typer.echo(f"appchart {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    """appchart CLI for process files, values and charts."""
    settings = get_settings()
    configure_logging(
        level="DEBUG" if verbose else settings.log_level,
        json_format=settings.log_format == "json",
        stream=sys.stderr,
    )


def _fail(message: str) -> NoReturn:
    err_console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(1)


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
        _fail(f"cannot read {path}: {e}")
    if not isinstance(data, dict):
        _fail(f"{path} must contain a mapping")
    return data


@app.command()
def procfile(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Procfile to parse."),
) -> None:
    """Show the processes of a Procfile and which one is routable."""
    try:
        text = file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        _fail(f"cannot read {file}: {e}")
    try:
        parsed = parse_procfile(text)
    except AppChartError as e:
        _fail(e.message)

    table = Table(title=str(file))
    table.add_column("Process", style="cyan")
    table.add_column("Command")
    table.add_column("Routable", justify="center")
    for name in parsed.sorted_names():
        table.add_row(
            name,
            " ".join(parsed.processes[name]),
            "[green]✓[/green]" if parsed.is_routable(name) else "",
        )
    console.print(table)


@app.command()
def render(
    app_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Application spec (YAML)."),
    env_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Environment spec (YAML)."),
    templates: Path | None = typer.Option(
        None, "--templates", "-t", file_okay=False, help="Directory of chart templates."
    ),
    output: Path | None = typer.Option(
        None, "--output", "-o", file_okay=False, help="Export the chart under this directory."
    ),
) -> None:
    """Compile an application for an environment.

    Prints ``values.yaml`` unless ``--output`` is given, in which case the
    whole chart is written to ``<output>/<app name>/``.
    """
    try:
        application = ApplicationSpec.model_validate(_load_yaml(app_file))
        environment = EnvironmentSpec.model_validate(_load_yaml(env_file))
    except pydantic.ValidationError as e:
        _fail(str(e))

    settings = get_settings()
    try:
        template_set = read_directory(templates) if templates is not None else None
        chart = compile_application(application, environment, templates=template_set, settings=settings)
    except AppChartError as e:
        _fail(e.message)

    if output is None:
        typer.echo(chart.values_yaml(), nl=False)
        return

    chart_dir = chart.export_to_directory(output, new_chart_config(application, settings))
    console.print(f"[green]✓[/green] Chart written to {chart_dir}")


__all__ = ["app"]

"""
CLI for scaffold-env.

Provides commands to inspect namespaces and destination configuration and to
prepare the environment for a set of generators.
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape

from . import __version__
from .environment import Environment
from .exceptions import EnvironmentPreparationError
from .exceptions import InvalidNamespaceError
from .namespace import parse_namespace
from .settings import load_settings

console = Console()


def create_environment(project_dir: Path | None = None) -> Environment:
    """Environment used by the commands, configured from the settings files."""
    return Environment(load_settings(project_dir=project_dir))


def _parse_or_exit(raw: str):
    try:
        return parse_namespace(raw)
    except InvalidNamespaceError as e:
        click.secho(str(e), fg="red", err=True)
        sys.exit(2)


@click.group()
@click.version_option(version=__version__, prog_name="scaffold-env")
def cli() -> None:
    """scaffold-env - Generator namespace and composition tools."""
    pass


@cli.command()
@click.argument("namespace")
def parse(namespace: str) -> None:
    """Show the parts of a NAMESPACE.

    Examples:

        scaffold-env parse foo:sub#one:run@^1.0.0

        scaffold-env parse @acme/foo:app
    """
    ns = _parse_or_exit(namespace)
    fields = {
        "id": ns.id,
        "complete": ns.complete,
        "package": ns.package_hint,
        "generator": ns.generator_path or None,
        "instance": ns.instance_id,
        "methods": ",".join(ns.methods) or None,
        "range": ns.version_range,
    }
    for name, value in fields.items():
        shown = value if value is not None else click.style("-", dim=True)
        click.echo(f"  {click.style(name, fg='cyan', bold=True):20} {shown}")


@cli.command()
@click.argument("namespace")
@click.option(
    "--destination",
    "-d",
    type=click.Path(file_okay=False, path_type=Path),
    default=".",
    help="Destination root holding the configuration file",
)
@click.option(
    "--generator",
    "-g",
    "generator_config",
    is_flag=True,
    help="Show the generator configuration instead of the package configuration",
)
def config(namespace: str, destination: Path, generator_config: bool) -> None:
    """Print the stored configuration of NAMESPACE as JSON."""
    ns = _parse_or_exit(namespace)
    env = create_environment(destination)
    compose = env.create_compose(destination)
    click.echo(json.dumps(compose.get_config(ns, generator_config=generator_config), indent=2))


@cli.command()
@click.argument("namespaces", nargs=-1, required=True)
@click.option("--verbose", "-v", is_flag=True, help="Log resolution steps")
def prepare(namespaces: tuple[str, ...], verbose: bool) -> None:
    """Install or look up the generators named by NAMESPACES.

    Examples:

        scaffold-env prepare foo:app bar:sub@^2.0.0
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    parsed = [_parse_or_exit(raw) for raw in namespaces]
    env = create_environment()

    try:
        asyncio.run(env.prepare_environment(parsed))
    except EnvironmentPreparationError as e:
        console.print("[bold red]Could not prepare the environment[/bold red]")
        for missing in e.missing:
            console.print(f"  [red]✗[/red] {escape(missing)}")
        sys.exit(1)

    console.print("[bold green]Environment ready[/bold green]")
    for ns in parsed:
        console.print(f"  [green]✓[/green] {escape(ns.complete)}")


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()

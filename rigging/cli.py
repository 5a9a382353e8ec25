"""
Rigging CLI - Inspect fixture registries without running tests.

Provides commands for validating a registry, showing the construction order
of fixtures, and dumping declarations. Nothing here constructs a fixture.
"""

from __future__ import annotations

import importlib
import json
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from rigging.fixtures.activator import AutoFixtureActivator
from rigging.fixtures.errors import FixtureConfigurationError
from rigging.fixtures.models import FixtureScope
from rigging.fixtures.registry import FixtureRegistry
from rigging.fixtures.resolver import FixtureResolver
from rigging.logging import configure_logging

app = typer.Typer(
    name="rigging",
    help="Fixture dependency-injection engine - inspect and validate fixture registries",
    add_completion=False,
)

console = Console()


def version_callback(value: bool) -> None:
    """Display version information."""
    if value:
        from rigging import __version__

        console.print(f"[bold blue]Rigging[/bold blue] v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Rigging - Fixture dependency-injection and lifecycle engine."""
    configure_logging()


def load_registry(target: str) -> FixtureRegistry:
    """Import a registry given as 'package.module:attribute'.

    The attribute may be a FixtureRegistry or a callable returning one. The
    current directory is importable, so local conftest-style modules work.

    Raises:
        typer.BadParameter: If the target cannot be imported or is not a registry.
    """
    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise typer.BadParameter(f"Expected 'module:attribute', got '{target}'")

    cwd = str(Path.cwd())
    if cwd not in sys.path:
        sys.path.insert(0, cwd)

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise typer.BadParameter(f"Cannot import module '{module_name}': {e}") from e

    try:
        obj = getattr(module, attr)
    except AttributeError:
        raise typer.BadParameter(f"Module '{module_name}' has no attribute '{attr}'") from None

    if callable(obj) and not isinstance(obj, FixtureRegistry):
        obj = obj()
    if not isinstance(obj, FixtureRegistry):
        raise typer.BadParameter(f"'{target}' is {type(obj).__name__}, not a FixtureRegistry")
    return obj


@app.command()
def check(
    target: str = typer.Argument(..., help="Registry as 'package.module:attribute'"),
    format_: str = typer.Option("console", "--format", "-f", help="Output format: console, json"),
) -> None:
    """
    Run the static validation pass over a fixture registry.

    Reports missing dependencies, circular dependencies and run-scoped
    fixtures that depend on case-scoped ones. Exits with status 1 on problems.
    """
    registry = load_registry(target)
    problems = registry.validate()

    if format_ == "json":
        typer.echo(
            json.dumps(
                {
                    "target": target,
                    "fixtures": len(registry),
                    "valid": not problems,
                    "problems": problems,
                },
                indent=2,
            )
        )
    else:
        console.print(
            Panel(
                f"[bold]Checking:[/bold] {target}",
                title="🔧 Rigging Check",
                border_style="blue",
            )
        )
        _display_registry(registry)
        if problems:
            console.print(f"\n[red]✗ {len(problems)} problem(s) found:[/red]")
            for problem in problems:
                console.print(f"  [red]•[/red] {problem}")
        else:
            console.print(f"\n[green]✓[/green] {len(registry)} fixtures, no problems found")

    if problems:
        raise typer.Exit(1)


@app.command()
def plan(
    target: str = typer.Argument(..., help="Registry as 'package.module:attribute'"),
    names: list[str] = typer.Argument(..., help="Fixtures a test case would request"),
    no_auto: bool = typer.Option(False, "--no-auto", help="Leave auto fixtures out"),
) -> None:
    """
    Show the order fixtures would be constructed and torn down in.

    Auto fixtures are included unless --no-auto is given.
    """
    registry = load_registry(target)
    wanted = list(names) if no_auto else AutoFixtureActivator(registry).expand(names)

    try:
        order = FixtureResolver().resolve_many(wanted, registry)
    except FixtureConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Fixture", style="cyan")
    table.add_column("Scope")
    table.add_column("Auto")
    for index, name in enumerate(order, 1):
        definition = registry.get(name)
        scope_style = "magenta" if definition.scope == FixtureScope.RUN else "green"
        table.add_row(
            str(index),
            name,
            f"[{scope_style}]{definition.scope.value}[/{scope_style}]",
            "✓" if definition.auto else "",
        )
    console.print(table)

    tree = Tree("[bold]Dependencies[/bold]")
    for name in wanted:
        _add_dependency_branch(tree, registry, name)
    console.print(tree)

    case_order = [n for n in order if registry.get(n).scope == FixtureScope.CASE]
    console.print(f"\n[bold]Setup:[/bold] {' → '.join(order)}")
    console.print(f"[bold]Case teardown:[/bold] {' → '.join(reversed(case_order)) or '-'}")


@app.command()
def describe(
    target: str = typer.Argument(..., help="Registry as 'package.module:attribute'"),
    output: str = typer.Option(None, "--output", "-o", help="Write YAML to this file"),
) -> None:
    """
    Dump every fixture declaration as YAML.
    """
    registry = load_registry(target)
    yaml_text = registry.to_yaml()
    if output:
        Path(output).write_text(yaml_text)
        console.print(f"[green]✓[/green] Output written to {output}")
    else:
        typer.echo(yaml_text, nl=False)


def _display_registry(registry: FixtureRegistry) -> None:
    """Display registered fixtures as a table."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("Fixture", style="cyan")
    table.add_column("Scope")
    table.add_column("Auto")
    table.add_column("Async")
    table.add_column("Dependencies")
    table.add_column("Description", style="dim")

    for definition in registry.list_all():
        table.add_row(
            definition.name,
            definition.scope.value,
            "✓" if definition.auto else "",
            "✓" if definition.is_async else "",
            ", ".join(definition.dependencies) or "-",
            definition.description,
        )
    console.print(table)


def _add_dependency_branch(
    parent: Tree, registry: FixtureRegistry, name: str, seen: frozenset[str] = frozenset()
) -> None:
    """Add a fixture and its dependencies to the tree, stopping at repeats."""
    definition = registry.get(name)
    branch = parent.add(f"[cyan]{name}[/cyan] [dim]({definition.scope.value})[/dim]")
    if name in seen:
        return
    for dep in definition.dependencies:
        _add_dependency_branch(branch, registry, dep, seen | {name})


if __name__ == "__main__":
    app()

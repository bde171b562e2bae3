"""Dependency graph command.

Prints a Graphviz (DOT) graph on stdout, e.g.
``aurctl deps foo | dot -Tpng > foo.png``.
"""

from pathlib import Path
from typing import Annotated

import typer

from aurctl.cli.types import fail, get_aur_client, get_database, get_settings, handle_errors
from aurctl.core.graph import installed_graph, to_dot
from aurctl.core.resolver import Resolver
from aurctl.utils.formatting import print_error, print_success


def graph(
    packages: Annotated[
        list[str] | None,
        typer.Argument(help="Packages to start from (default: everything installed)."),
    ] = None,
    aur: Annotated[
        bool,
        typer.Option("--aur", "-a", help="Resolve the packages against the AUR instead."),
    ] = False,
    reverse: Annotated[
        bool,
        typer.Option("--reverse", "-r", help="Show what requires the packages."),
    ] = False,
    optional: Annotated[
        bool,
        typer.Option("--optional", help="Include installed optional dependencies."),
    ] = False,
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-l", min=0, help="Maximum depth below the packages."),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the graph to a file."),
    ] = None,
) -> None:
    """Print the dependency graph of packages as DOT."""
    names = packages or []

    if aur:
        if not names:
            fail("--aur needs at least one package")
        if reverse or optional:
            fail("--reverse and --optional only apply to installed packages")
        settings = get_settings()
        with handle_errors(), get_aur_client(settings) as aur_client:
            resolution = Resolver(aur_client, get_database()).resolve(names)
        for target, error in resolution.errors.items():
            print_error(f"{target}: {error}")
        if not resolution.roots:
            raise typer.Exit(code=1)
        dot = to_dot(resolution.nodes, resolution.roots, limit)
    else:
        database = get_database()
        with handle_errors():
            nodes = installed_graph(
                database.installed(),
                foreign=database.foreign(),
                reverse=reverse,
                optional=optional,
            )
        unknown = [n for n in names if n not in nodes]
        if unknown:
            fail(f"Not installed: {', '.join(unknown)}")
        dot = to_dot(nodes, names or None, limit)

    if output is None:
        typer.echo(dot, nl=False)
        return
    try:
        output.write_text(dot, encoding="utf-8")
    except OSError as e:
        fail(f"Failed to write {output}: {e}")
    print_success(f"Wrote {output}")

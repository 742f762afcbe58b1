"""CLI package for seabox.

This package contains the CLI commands and supporting modules:
- __init__: Click command definitions
- utils: Consoles, error handling, shared options, session construction

Every command accepts --dry-run (print the podman commands instead of
running them) and --verbose.
"""

from __future__ import annotations

import click
from rich.table import Table

from .. import __version__
from ..config import get_config_path
from ..run_config import RunConfig
from .utils import (
    build_session,
    common_options,
    console,
    container_options,
    err_console,
    handle_errors,
    load_effective_config,
)

__all__ = ["cli"]


@click.group()
@click.version_option(version=__version__, prog_name="seabox")
def cli() -> None:
    """seabox - Development containers on podman, mapped to your host user.

    Create a persistent box with 'seabox create NAME', then 'seabox enter NAME'.
    """


@cli.command()
@click.argument("name")
@container_options
@common_options
@handle_errors
def create(name: str, dry_run: bool, verbose: bool, **options: object) -> None:
    """Create a persistent container and enter it."""
    run = RunConfig.from_cli(name=name, dry_run=dry_run, verbose=verbose, **options)  # type: ignore[arg-type]
    session = build_session(dry_run=dry_run, verbose=verbose, cli_overrides=run.cli_overrides())
    session.create(run)


@cli.command()
@container_options
@common_options
@handle_errors
def temp(dry_run: bool, verbose: bool, **options: object) -> None:
    """Run a throwaway container, removed on exit."""
    run = RunConfig.from_cli(dry_run=dry_run, verbose=verbose, **options)  # type: ignore[arg-type]
    session = build_session(dry_run=dry_run, verbose=verbose, cli_overrides=run.cli_overrides())
    session.temp(run)


@cli.command()
@click.argument("name")
@click.option("--user", "-u", help="User to enter as (defaults to the container's user)")
@click.option("--shell", "-s", help="Shell to run (defaults to the user's login shell)")
@common_options
@handle_errors
def enter(name: str, user: str | None, shell: str | None, dry_run: bool, verbose: bool) -> None:
    """Enter a container, starting it if needed."""
    session = build_session(dry_run=dry_run, verbose=verbose, image_profiles=False)
    session.enter(name, user=user, shell=shell)


@cli.command()
@click.argument("names", nargs=-1, required=True)
@common_options
@handle_errors
def remove(names: tuple[str, ...], dry_run: bool, verbose: bool) -> None:
    """Stop and delete containers."""
    build_session(dry_run=dry_run, verbose=verbose, image_profiles=False).remove(names)


@cli.command()
@click.argument("names", nargs=-1, required=True)
@common_options
@handle_errors
def restart(names: tuple[str, ...], dry_run: bool, verbose: bool) -> None:
    """Stop and start containers again."""
    build_session(dry_run=dry_run, verbose=verbose, image_profiles=False).restart(names)


@cli.command(name="list")
@common_options
@handle_errors
def list_command(dry_run: bool, verbose: bool) -> None:
    """List containers created by seabox."""
    build_session(dry_run=dry_run, verbose=verbose, image_profiles=False).list_containers()


# Short aliases
cli.add_command(remove, name="rm")
cli.add_command(temp, name="tmp")
cli.add_command(list_command, name="ls")


@cli.group(invoke_without_command=True)
@click.pass_context
def config(ctx: click.Context) -> None:
    """Show the config file path (or use a subcommand)."""
    if ctx.invoked_subcommand is None:
        console.print(str(get_config_path()), markup=False)


@config.command()
@click.option("--resolved", is_flag=True, help="Show the effective configuration instead")
@click.option("--image", "-i", help="Image whose profile to apply (with --resolved)")
@handle_errors
def show(resolved: bool, image: str | None) -> None:
    """Print the config file, or the effective configuration."""
    if resolved:
        _show_resolved(image)
        return

    path = get_config_path()
    if not path.exists():
        err_console.print(f"Config file not found at {path}", markup=False)
        return

    console.print(f"# Viewing '{path}'", markup=False)
    console.print(path.read_text(encoding="utf-8"), markup=False)


def _show_resolved(image: str | None) -> None:
    run = RunConfig(image=image)
    effective = load_effective_config(run.cli_overrides())

    table = Table(title="Effective Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    for key, value in effective.as_dict().items():
        shown = "[dim]unset[/dim]" if value is None else repr(value)
        table.add_row(key, shown)

    console.print(table)


if __name__ == "__main__":  # pragma: no cover
    cli()

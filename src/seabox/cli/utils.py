"""CLI utilities for seabox.

Console setup, error conversion, shared options and session construction.
"""

from __future__ import annotations

import functools
import sys
from collections.abc import Callable
from typing import Any, TypeVar

import click
from rich.console import Console
from rich.markup import escape

from ..config import Config, Profile, load_config_file, resolve_config
from ..errors import SeaboxError
from ..logging import get_logger, set_debug
from ..runtime import CommandExecutor, SubprocessExecutor
from ..session import Session

F = TypeVar("F", bound=Callable[..., Any])

console = Console(highlight=False, soft_wrap=True)
err_console = Console(stderr=True, highlight=False, soft_wrap=True)

logger = get_logger(__name__)


def handle_errors(func: F) -> F:
    """Turn SeaboxError into a red error line and a non-zero exit."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except SeaboxError as e:
            err_console.print(f"[red]Error: {escape(str(e))}[/red]")
            sys.exit(e.exit_code)

    return wrapper  # type: ignore[return-value]


def common_options(func: F) -> F:
    """--dry-run and --verbose, accepted by every command."""
    func = click.option(
        "--verbose",
        is_flag=True,
        help="Verbose output (debug logging, chatty entry script)",
    )(func)
    func = click.option(
        "--dry-run",
        is_flag=True,
        help="Print the podman commands instead of running them",
    )(func)
    return func


def _boolish_option(*names: str, help: str) -> Callable[[F], F]:
    # Bare flag means true; an explicit value (true/false/yes/no/1/0) may follow
    return click.option(
        *names,
        type=click.BOOL,
        is_flag=False,
        flag_value="true",
        default=None,
        help=help,
    )


def container_options(func: F) -> F:
    """Options shared by create and temp."""
    decorators = [
        click.option("--image", "-i", help="Image to use (overrides config)"),
        click.option("--shell", "-s", help="Shell to start in the container"),
        click.option(
            "--directory",
            "-d",
            help="Directory to mount at /mount (defaults to the current directory)",
        ),
        click.option("--no-dir", is_flag=True, help="Do not mount the current directory"),
        click.option(
            "--volume",
            "-v",
            multiple=True,
            help="Additional mount 'host_directory:container_directory' (repeatable)",
        ),
        click.option(
            "--pass-through",
            "-p",
            help='Extra podman arguments, split like a shell would (e.g. "--pidfile /tmp/p")',
        ),
        click.option(
            "--root",
            "-r",
            is_flag=True,
            help="Use the root user in the container instead of a normal user",
        ),
        _boolish_option(
            "--install-sudo",
            help="Install sudo and su in the container if missing",
        ),
        _boolish_option(
            "--no-password",
            "--no-passwd",
            "no_password",
            help="Skip setting a password for the container user",
        ),
        _boolish_option(
            "--unsafe-passwordless-sudo",
            "unsafe_passwordless_sudo",
            help="Allow passwordless sudo in the container (gives root without a password)",
        ),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def get_executor() -> CommandExecutor:
    return SubprocessExecutor()


def load_effective_config(
    cli_overrides: Profile | None = None,
    *,
    image_profiles: bool = True,
) -> Config:
    """Load the config file and resolve it against env and CLI layers."""
    config = resolve_config(load_config_file(), cli_overrides, image_profiles=image_profiles)
    logger.debug("Effective config: %s", config)
    return config


def build_session(
    *,
    dry_run: bool,
    verbose: bool,
    cli_overrides: Profile | None = None,
    image_profiles: bool = True,
) -> Session:
    """Resolve configuration and wire a session to the real executor.

    Commands that only address existing containers pass image_profiles=False.
    """
    if verbose:
        set_debug(True)
    config = load_effective_config(cli_overrides, image_profiles=image_profiles)
    return Session(config, get_executor(), dry_run=dry_run, console=console)

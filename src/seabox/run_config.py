"""Run configuration dataclass for seabox.

Bundles the create/temp CLI arguments into a single configuration object for
cleaner function signatures and easier testing.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .config import Profile


@dataclass(frozen=True)
class RunConfig:
    """Arguments shared by `seabox create` and `seabox temp`.

    Immutable; the configuration-layer fields (image, install_sudo,
    no_password, unsafe_passwordless_sudo) stay None unless given on the
    command line so they can be merged as the CLI layer.
    """

    # Container name (empty for temp containers)
    name: str = ""

    # Configuration layer
    image: str | None = None
    install_sudo: bool | None = None
    no_password: bool | None = None
    unsafe_passwordless_sudo: bool | None = None

    # Container shape
    shell: str | None = None
    directory: str | None = None
    no_dir: bool = False
    volumes: tuple[str, ...] = ()
    pass_through: str | None = None
    root: bool = False

    # Per-command flags
    dry_run: bool = False
    verbose: bool = False

    @classmethod
    def from_cli(
        cls,
        *,
        name: str = "",
        image: str | None = None,
        shell: str | None = None,
        directory: str | None = None,
        no_dir: bool = False,
        volume: Iterable[str] = (),
        pass_through: str | None = None,
        root: bool = False,
        install_sudo: bool | None = None,
        no_password: bool | None = None,
        unsafe_passwordless_sudo: bool | None = None,
        dry_run: bool = False,
        verbose: bool = False,
    ) -> RunConfig:
        """Create RunConfig from CLI arguments.

        Handles argument transformation (e.g., repeated --volume -> tuple).
        """
        return cls(
            name=name,
            image=image,
            install_sudo=install_sudo,
            no_password=no_password,
            unsafe_passwordless_sudo=unsafe_passwordless_sudo,
            shell=shell,
            directory=directory,
            no_dir=no_dir,
            volumes=tuple(volume),
            pass_through=pass_through,
            root=root,
            dry_run=dry_run,
            verbose=verbose,
        )

    def cli_overrides(self) -> Profile:
        """The configuration layer contributed by command-line flags.

        An empty --image counts as not given.
        """
        return Profile(
            image=self.image or None,
            install_sudo=self.install_sudo,
            no_password=self.no_password,
            unsafe_passwordless_sudo=self.unsafe_passwordless_sudo,
        )

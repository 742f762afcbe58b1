"""Runtime command synthesis for seabox.

Builds the exact argument vectors handed to podman. Nothing in this module
executes anything; see seabox.runtime for that.
"""

from __future__ import annotations

import shlex
from collections.abc import Sequence
from dataclasses import dataclass, replace

from .constants import (
    CONTAINER_LABEL,
    ENTRY_SHELL,
    HOSTNAME_PREFIX,
    MOUNT_ROOT,
    PASSWD_PATH,
    ROOT_IDMAP_RANGE,
    RUNTIME_BINARY,
)
from .errors import ValidationError


def idmap_expression(
    *,
    root: bool,
    host_uid: int = 0,
    host_gid: int = 0,
    container_uid: int = 0,
    container_gid: int = 0,
) -> str:
    """Build the idmap value for a bind mount.

    Non-root maps exactly one host id onto the container id, plus root onto
    root, so no other host ids become visible. Root mode identity-maps the
    low id range instead.

    Examples:
        >>> idmap_expression(root=True)
        '0-0-2000;gids=0-0-2000'
        >>> idmap_expression(root=False, host_uid=1001, host_gid=1001,
        ...                  container_uid=1042, container_gid=1042)
        '1001-1042-1#0-0-1;gids=1001-1042-1#0-0-1'
    """
    if root:
        return f"0-0-{ROOT_IDMAP_RANGE};gids=0-0-{ROOT_IDMAP_RANGE}"
    return (
        f"{host_uid}-{container_uid}-1#0-0-1;"
        f"gids={host_gid}-{container_gid}-1#0-0-1"
    )


@dataclass(frozen=True)
class MountSpec:
    """A bind mount: host path, container path and idmap expression."""

    host_path: str
    container_path: str
    idmap: str

    def to_arg(self) -> str:
        """Value for podman's --mount flag."""
        return (
            f"type=bind,source={self.host_path},"
            f"destination={self.container_path},idmap=uids={self.idmap}"
        )


def parse_mount_spec(spec: str, idmap: str) -> MountSpec:
    """Parse a user-supplied 'host:container' pair.

    Raises:
        ValidationError: Unless the spec has exactly two colon-separated fields.
    """
    parts = spec.split(":")
    if len(parts) != 2:
        raise ValidationError(f"Invalid format for mount: {spec}")
    host_path, container_path = parts
    return MountSpec(host_path, container_path, idmap)


def split_pass_through(pass_through: str | None) -> list[str]:
    """Tokenize extra runtime arguments with shell word splitting.

    Raises:
        ValidationError: If the string has unbalanced quotes.
    """
    if not pass_through:
        return []
    try:
        return shlex.split(pass_through)
    except ValueError as e:
        raise ValidationError(f"Invalid pass-through arguments '{pass_through}': {e}") from e


def render_command(argv: Sequence[str]) -> str:
    """Render argv as one shell-quoted line (dry-run output)."""
    return shlex.join(argv)


@dataclass(frozen=True)
class RunSpec:
    """Everything needed for a `podman run` that creates a seabox container.

    Temp containers always start as root (0:0); the entry script switches to
    the unprivileged user. An empty name lets the runtime pick one.
    """

    image: str
    name: str
    temp: bool
    container_uid: int = 0
    container_gid: int = 0
    mounts: tuple[MountSpec, ...] = ()
    pass_through: tuple[str, ...] = ()
    command: tuple[str, ...] = ()

    @property
    def user(self) -> str:
        if self.temp:
            return "0:0"
        return f"{self.container_uid}:{self.container_gid}"

    @property
    def hostname(self) -> str:
        return f"{HOSTNAME_PREFIX}-{self.name}" if self.name else HOSTNAME_PREFIX


class CommandSynthesizer:
    """Builds argument vectors for every runtime operation.

    Every vector starts with the runtime invoker (e.g. sudo) unless it is
    empty, followed by the runtime binary.
    """

    def __init__(self, runtime_invoker: str, runtime: str = RUNTIME_BINARY) -> None:
        self.runtime_invoker = runtime_invoker
        self.runtime = runtime

    def _base(self, *args: str) -> list[str]:
        prefix = [self.runtime_invoker] if self.runtime_invoker else []
        return [*prefix, self.runtime, *args]

    def container_inspect(self, name: str) -> list[str]:
        return self._base("container", "inspect", name)

    def image_inspect(self, image: str) -> list[str]:
        return self._base("image", "inspect", image)

    def pull(self, image: str) -> list[str]:
        return self._base("pull", image)

    def dump_passwd(self, image: str) -> list[str]:
        """Throwaway run printing the image's user database."""
        return self._base("run", "--rm", "--entrypoint", "cat", image, PASSWD_PATH)

    def stop(self, name: str) -> list[str]:
        return self._base("kill", name)

    def delete(self, name: str) -> list[str]:
        return self._base("container", "rm", "--force", name)

    def start(self, name: str) -> list[str]:
        return self._base("start", name)

    def list_containers(self) -> list[str]:
        return self._base("ps", "--all", "--filter", f"label={CONTAINER_LABEL}")

    def enter(
        self,
        name: str,
        user: str,
        command: Sequence[str],
        relative_path: str = "",
    ) -> list[str]:
        """Interactive exec into a running container.

        The working directory is the mount root joined with relative_path.
        """
        return [
            *self._base("exec", "-it", "-w", f"{MOUNT_ROOT}{relative_path}", "--user", user, name),
            *command,
        ]

    def run(self, spec: RunSpec) -> list[str]:
        """Create a container.

        Temp containers are removed on exit; persistent ones are detached.
        """
        cmd = self._base("run", "--label", CONTAINER_LABEL, "--privileged", "-it")
        cmd.append("--rm" if spec.temp else "-d")
        cmd.extend(spec.pass_through)

        hostname = spec.hostname
        cmd.extend(
            [
                "--network",
                "host",
                "--hostname",
                hostname,
                "--add-host",
                f"{hostname}:127.0.0.1",
                "-u",
                spec.user,
                "--passwd=false",
                "-w",
                MOUNT_ROOT,
            ]
        )

        for mount in spec.mounts:
            cmd.extend(["--mount", mount.to_arg()])

        if spec.name:
            cmd.extend(["--name", spec.name])
        cmd.append(spec.image)
        cmd.extend(spec.command)
        return cmd

    def create(self, spec: RunSpec) -> list[str]:
        """Persistent container idling on a shell until entered."""
        return self.run(replace(spec, temp=False, command=(ENTRY_SHELL,)))

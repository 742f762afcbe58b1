"""Container operations for seabox.

A Session ties an effective Config to a command executor and carries out
one CLI operation: create, temp, enter, remove, restart or list.

Dry-run sessions print every synthesized command as a shell-quoted line.
Read-only queries (container/image inspect, the /etc/passwd dump of a local
image) still run because later commands depend on their answers; nothing
that pulls, creates, starts, stops, removes or execs is run.
"""

from __future__ import annotations

import json
import os
from collections.abc import Sequence
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path

from rich.console import Console

from .commands import (
    CommandSynthesizer,
    MountSpec,
    RunSpec,
    idmap_expression,
    parse_mount_spec,
    render_command,
    split_pass_through,
)
from .config import Config
from .constants import MOUNT_ROOT, NEW_USER_USERNAME
from .errors import (
    ContainerCreateError,
    ContainerExistsError,
    ContainerNotFoundError,
    ContainerStartError,
    NoImageError,
    OutputParseError,
    RuntimeCommandError,
)
from .generator import DEFAULT_SHELL_COMMAND, entry_command, generate_entry_script
from .identity import ImageIdentityResolver, UidGidDecision
from .logging import get_logger, is_verbose
from .paths import primary_mount_source, relative_enter_path, resolve_mount_directory
from .run_config import RunConfig
from .runtime import CommandExecutor, CommandResult

logger = get_logger(__name__)


class EnterStep(str, Enum):
    """States of the enter operation. EXEC is terminal."""

    INSPECTING = "inspecting"
    STARTING = "starting"
    EXEC = "exec"


@dataclass(frozen=True)
class ContainerInfo:
    """The parts of `podman container inspect` that enter needs."""

    running: bool
    user: str
    mount_source: str | None

    @classmethod
    def from_inspect(cls, output: str) -> ContainerInfo:
        """Parse inspect JSON.

        Raises:
            OutputParseError: If the output is not the expected shape.
        """
        try:
            data = json.loads(output)
            entry = data[0]
            running = entry["State"]["Running"]
            user = entry["Config"]["User"]
            mounts = entry.get("Mounts") or []
        except (json.JSONDecodeError, LookupError, TypeError, AttributeError) as e:
            raise OutputParseError(f"Unparsable container inspect output: {e}") from e

        if not isinstance(running, bool) or not isinstance(user, str):
            raise OutputParseError("Unexpected container inspect output: State/Config")
        return cls(running=running, user=user, mount_source=primary_mount_source(mounts))


@dataclass(frozen=True)
class ContainerPlan:
    """A synthesized container plus the identity decision behind it."""

    spec: RunSpec
    decision: UidGidDecision


class Session:
    """Carries out one seabox operation.

    Args:
        config: Effective configuration.
        executor: Runs runtime commands.
        dry_run: Print commands instead of running anything with side effects.
        console: Output for dry-run lines and progress messages.
        host_ids: Host (uid, gid); defaults to the effective ids of this process.
        cwd: Caller's working directory; defaults to the process cwd.
    """

    def __init__(
        self,
        config: Config,
        executor: CommandExecutor,
        *,
        dry_run: bool = False,
        console: Console | None = None,
        host_ids: tuple[int, int] | None = None,
        cwd: str | Path | None = None,
    ) -> None:
        self.config = config
        self.executor = executor
        self.dry_run = dry_run
        self.console = console or Console(highlight=False, soft_wrap=True)
        self.host_ids = host_ids or (os.geteuid(), os.getegid())
        self.cwd = Path(cwd) if cwd is not None else Path.cwd()
        self.commands = CommandSynthesizer(config.runtime_invoker)
        self.identity = ImageIdentityResolver(
            self.commands,
            executor,
            echo=self.echo if dry_run else None,
        )

    def echo(self, line: str) -> None:
        self.console.print(line, markup=False)

    def print_command(self, argv: Sequence[str]) -> None:
        self.echo(render_command(argv))

    def _run(self, argv: Sequence[str], *, capture_output: bool = True) -> CommandResult:
        return self.executor.run(argv, capture_output=capture_output)

    # === Planning ===

    def resolve_image(self) -> str:
        """The configured image.

        Raises:
            NoImageError: If neither --image nor any config layer names one.
        """
        if not self.config.image:
            raise NoImageError("No default image found and no image provided with --image")
        return self.config.image

    def plan_container(self, run: RunConfig, *, temp: bool) -> ContainerPlan:
        """Decide image, identity, mounts and extra args for a new container.

        Raises:
            NoImageError, PathError, ValidationError: On bad input.
            DryRunAbort, ImagePullError, OutputParseError: From identity resolution.
        """
        image = self.resolve_image()
        mount_dir = None if run.no_dir else resolve_mount_directory(run.directory)
        pass_through = tuple(split_pass_through(run.pass_through))

        if run.root:
            decision = UidGidDecision.mapped(0, 0)
        else:
            decision = self.identity.determine_uid_gid(image, allow_pull=not self.dry_run)
        container_uid, container_gid = decision.ids()

        host_uid, host_gid = self.host_ids
        idmap = idmap_expression(
            root=run.root,
            host_uid=host_uid,
            host_gid=host_gid,
            container_uid=container_uid,
            container_gid=container_gid,
        )

        mounts: list[MountSpec] = []
        if mount_dir is not None:
            mounts.append(MountSpec(str(mount_dir), MOUNT_ROOT, idmap))
        mounts.extend(parse_mount_spec(volume, idmap) for volume in run.volumes)

        spec = RunSpec(
            image=image,
            name=run.name,
            temp=temp,
            container_uid=container_uid,
            container_gid=container_gid,
            mounts=tuple(mounts),
            pass_through=pass_through,
        )
        logger.debug("Planned container: %s (%s)", spec, decision)
        return ContainerPlan(spec=spec, decision=decision)

    def entry_script_command(self, plan: ContainerPlan, run: RunConfig) -> tuple[str, ...]:
        """Command that sets up the container user and switches to it."""
        script = generate_entry_script(
            create_user=plan.decision.create_user,
            username=NEW_USER_USERNAME,
            container_uid=plan.spec.container_uid,
            passwordless_sudo=self.config.unsafe_passwordless_sudo,
            no_password=self.config.no_password,
            install_sudo=self.config.install_sudo,
            shell=run.shell,
            verbose=run.verbose or is_verbose(),
        )
        return entry_command(script)

    # === Operations ===

    def create(self, run: RunConfig) -> None:
        """Create a persistent container and enter it for first-time setup.

        Raises:
            ContainerExistsError: If the name is taken.
            ContainerCreateError: If the runtime fails to create it.
        """
        inspect_cmd = self.commands.container_inspect(run.name)

        if self.dry_run:
            self.print_command(inspect_cmd)
        elif self._run(inspect_cmd).ok:
            raise ContainerExistsError(f"A container with name '{run.name}' already exists")

        plan = self.plan_container(run, temp=False)
        create_cmd = self.commands.create(plan.spec)

        if self.dry_run:
            self.print_command(create_cmd)
            return

        result = self._run(create_cmd)
        if not result.ok:
            detail = result.stderr.strip()
            raise ContainerCreateError(
                f"Failed to create container '{run.name}'" + (f": {detail}" if detail else ""),
                returncode=result.exit_code,
                cmd=create_cmd,
            )
        logger.debug("Created container %s", run.name)

        first_command = () if run.root else self.entry_script_command(plan, run)
        self.enter(run.name, user="root", shell=run.shell, command=first_command)

    def temp(self, run: RunConfig) -> None:
        """Run a throwaway container in the foreground; it is removed on exit."""
        plan = self.plan_container(run, temp=True)

        if run.root:
            command = (run.shell,) if run.shell else DEFAULT_SHELL_COMMAND
        else:
            command = self.entry_script_command(plan, run)
        run_cmd = self.commands.run(replace(plan.spec, command=command))

        if self.dry_run:
            self.print_command(run_cmd)
            return

        result = self._run(run_cmd, capture_output=False)
        logger.debug("Temp container exited with %d", result.exit_code)

    def enter(
        self,
        name: str,
        *,
        user: str | None = None,
        shell: str | None = None,
        command: Sequence[str] = (),
    ) -> None:
        """Enter a container, starting it first if it is stopped.

        Outside dry-run mode this never returns: the process is replaced by
        `podman exec`.

        Raises:
            ContainerNotFoundError: If no container has that name.
            ContainerStartError: If a stopped container fails to start.
        """
        if command:
            shell_command = tuple(command)
        elif shell:
            shell_command = (shell,)
        else:
            shell_command = DEFAULT_SHELL_COMMAND

        inspect_cmd = self.commands.container_inspect(name)
        start_cmd = self.commands.start(name)

        logger.debug("enter %s: %s", name, EnterStep.INSPECTING.value)
        result = self._run(inspect_cmd)
        if not result.ok:
            raise ContainerNotFoundError(f"A container with name '{name}' does not exist")
        info = ContainerInfo.from_inspect(result.stdout)

        relative = relative_enter_path(info.mount_source, self.cwd) if info.mount_source else ""
        enter_cmd = self.commands.enter(name, user or info.user or "root", shell_command, relative)

        if self.dry_run:
            self.print_command(inspect_cmd)
            self.print_command(start_cmd)
            self.print_command(enter_cmd)
            return

        if not info.running:
            logger.debug("enter %s: %s", name, EnterStep.STARTING.value)
            started = self._run(start_cmd, capture_output=False)
            if not started.ok:
                raise ContainerStartError(
                    f"Failed to start container '{name}'",
                    returncode=started.exit_code,
                    cmd=start_cmd,
                )

        logger.debug("enter %s: %s", name, EnterStep.EXEC.value)
        self.executor.replace_process(enter_cmd)

    def remove(self, names: Sequence[str]) -> None:
        """Stop and force-remove containers.

        A failing kill is ignored (the container may already be stopped).
        """
        for name in names:
            stop_cmd = self.commands.stop(name)
            delete_cmd = self.commands.delete(name)

            if self.dry_run:
                self.print_command(stop_cmd)
                self.print_command(delete_cmd)
                continue

            self.echo(f"Deleting container {name}")
            self._run(stop_cmd)
            result = self._run(delete_cmd, capture_output=False)
            if not result.ok:
                raise RuntimeCommandError(
                    f"Failed to remove container '{name}'",
                    returncode=result.exit_code,
                    cmd=delete_cmd,
                )

    def restart(self, names: Sequence[str]) -> None:
        """Stop and start containers again."""
        for name in names:
            stop_cmd = self.commands.stop(name)
            start_cmd = self.commands.start(name)

            if self.dry_run:
                self.print_command(stop_cmd)
                self.print_command(start_cmd)
                continue

            self._run(stop_cmd)
            result = self._run(start_cmd, capture_output=False)
            if not result.ok:
                raise ContainerStartError(
                    f"Failed to start container '{name}'",
                    returncode=result.exit_code,
                    cmd=start_cmd,
                )

    def list_containers(self) -> None:
        """Show every container seabox created (running or not)."""
        list_cmd = self.commands.list_containers()

        if self.dry_run:
            self.print_command(list_cmd)
            return

        result = self._run(list_cmd, capture_output=False)
        if not result.ok:
            raise RuntimeCommandError(
                "Failed to list containers", returncode=result.exit_code, cmd=list_cmd
            )

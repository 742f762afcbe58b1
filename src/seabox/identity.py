"""Container user identity detection for seabox.

Decides which uid/gid a process in a given image should run as. Evidence,
first hit wins:

1. The image label SEABOX_USER_ID (used for both uid and gid).
2. The image's /etc/passwd: the entry with the largest uid inside the
   normal-user band [1000, 2000).
3. Nothing found: a user has to be created by the entry script.

A missing image is pulled before step 1. Malformed labels or passwd lines
abort; the result decides what the container process runs as.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import NamedTuple

from .commands import CommandSynthesizer, render_command
from .constants import DEFAULT_USER_ID, NORMAL_USER_ID_MAX, NORMAL_USER_ID_MIN, USER_ID_LABEL
from .errors import DryRunAbort, ImagePullError, OutputParseError
from .logging import get_logger
from .runtime import CommandExecutor, CommandResult

logger = get_logger(__name__)

PULL_NOTICE = "# Need to pull image at this point - cannot proceed with dry run"


@dataclass(frozen=True)
class UidGidDecision:
    """Result of identity resolution.

    Either a known container uid/gid, or create_user=True with no ids, in
    which case callers use DEFAULT_USER_ID until the user exists.
    """

    container_uid: int | None = None
    container_gid: int | None = None
    create_user: bool = False

    @classmethod
    def mapped(cls, uid: int, gid: int) -> UidGidDecision:
        return cls(container_uid=uid, container_gid=gid, create_user=False)

    @classmethod
    def needs_user(cls) -> UidGidDecision:
        return cls(create_user=True)

    def ids(self, default: int = DEFAULT_USER_ID) -> tuple[int, int]:
        """Container (uid, gid), with the fallback applied for new users."""
        if self.create_user or self.container_uid is None or self.container_gid is None:
            return default, default
        return self.container_uid, self.container_gid


class PasswdEntry(NamedTuple):
    name: str
    uid: int
    gid: int


def parse_passwd(text: str) -> list[PasswdEntry]:
    """Parse /etc/passwd content (name:password:uid:gid:...).

    Blank lines are skipped.

    Raises:
        OutputParseError: On a line without numeric uid and gid fields.
    """
    entries = []
    for line in text.splitlines():
        if not line.strip():
            continue
        values = line.split(":")
        if len(values) < 4:
            raise OutputParseError(f"Malformed passwd line: {line!r}")
        try:
            entries.append(PasswdEntry(values[0], int(values[2]), int(values[3])))
        except ValueError as e:
            raise OutputParseError(f"Malformed passwd line: {line!r}") from e
    return entries


def is_normal_user_id(uid: int) -> bool:
    """Whether uid lies in the conventional first-normal-user band.

    Below 1000 are system accounts; 2000 and above are left to dynamic
    allocation.
    """
    return NORMAL_USER_ID_MIN <= uid < NORMAL_USER_ID_MAX


def select_primary_user(entries: Iterable[PasswdEntry]) -> PasswdEntry | None:
    """Pick the in-band entry with the largest uid, or None."""
    candidates = [entry for entry in entries if is_normal_user_id(entry.uid)]
    if not candidates:
        return None
    return max(candidates, key=lambda entry: entry.uid)


def parse_image_inspect(output: str) -> list[dict]:
    """Parse `podman image inspect` JSON.

    Raises:
        OutputParseError: If the output is not a JSON array of objects.
    """
    try:
        data = json.loads(output)
    except json.JSONDecodeError as e:
        raise OutputParseError(f"Unparsable image inspect output: {e}") from e
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise OutputParseError("Unexpected image inspect output: expected a JSON array")
    return data


def user_id_from_labels(inspect: Sequence[dict]) -> int | None:
    """Read the SEABOX_USER_ID label of the first inspected image.

    Raises:
        OutputParseError: If the label is present but not an integer.
    """
    if not inspect:
        return None
    labels = inspect[0].get("Labels") or {}
    value = labels.get(USER_ID_LABEL)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise OutputParseError(f"Invalid {USER_ID_LABEL} label value: {value!r}") from e


class ImageIdentityResolver:
    """Determines the container uid/gid for an image.

    Args:
        commands: Synthesizer for the inspect, pull and passwd commands.
        executor: Runs those commands.
        echo: Called with each command line before it runs (dry-run output).
    """

    def __init__(
        self,
        commands: CommandSynthesizer,
        executor: CommandExecutor,
        *,
        echo: Callable[[str], None] | None = None,
    ) -> None:
        self.commands = commands
        self.executor = executor
        self.echo = echo

    def _run(self, argv: list[str], *, capture_output: bool = True) -> CommandResult:
        if self.echo:
            self.echo(render_command(argv))
        return self.executor.run(argv, capture_output=capture_output)

    def _inspect(self, image: str) -> str | None:
        result = self._run(self.commands.image_inspect(image))
        return result.stdout if result.ok else None

    def _inspect_or_pull(self, image: str, allow_pull: bool) -> str:
        output = self._inspect(image)
        if output is not None:
            return output

        pull_cmd = self.commands.pull(image)
        if not allow_pull:
            if self.echo:
                self.echo(PULL_NOTICE)
                self.echo(render_command(pull_cmd))
            raise DryRunAbort(f"Image '{image}' is not present locally; a dry run cannot pull it")

        logger.debug("Image %s not found locally, pulling", image)
        result = self.executor.run(pull_cmd, capture_output=False)
        if not result.ok:
            raise ImagePullError(
                f"Failed to pull image '{image}'", returncode=result.exit_code, cmd=pull_cmd
            )

        output = self._inspect(image)
        if output is None:
            raise OutputParseError(f"Image '{image}' still cannot be inspected after pulling")
        return output

    def determine_uid_gid(self, image: str, *, allow_pull: bool = True) -> UidGidDecision:
        """Resolve the container identity for image.

        Args:
            image: Image name.
            allow_pull: If False (dry run), a missing image raises DryRunAbort.

        Raises:
            DryRunAbort: Image missing and pulling not allowed.
            ImagePullError: Pull failed.
            OutputParseError: Malformed inspect output, label, or passwd line.
        """
        inspect = parse_image_inspect(self._inspect_or_pull(image, allow_pull))

        uid = user_id_from_labels(inspect)
        if uid is not None:
            logger.debug("Image %s declares %s=%d", image, USER_ID_LABEL, uid)
            return UidGidDecision.mapped(uid, uid)

        result = self._run(self.commands.dump_passwd(image))
        if not result.ok:
            logger.warning("Could not read /etc/passwd from %s (exit %d)", image, result.exit_code)

        entry = select_primary_user(parse_passwd(result.stdout))
        if entry is None:
            logger.debug("No normal user in %s, one will be created", image)
            return UidGidDecision.needs_user()

        logger.debug(
            "Using passwd user %s (%d:%d) from %s", entry.name, entry.uid, entry.gid, image
        )
        return UidGidDecision.mapped(entry.uid, entry.gid)

"""Unified exception hierarchy for seabox.

All custom exceptions inherit from SeaboxError for consistent error handling.
The CLI catches these and converts them to a red error line and exit code 1.

Dependency direction:
    This module has NO internal dependencies (leaf module).
    It may be imported by: all other seabox modules.
    It should NOT import from any other seabox modules.
"""

from __future__ import annotations

from collections.abc import Sequence


class SeaboxError(Exception):
    """Base exception for all seabox errors.

    All seabox-specific exceptions should inherit from this class.
    This enables consistent error handling at the CLI layer.
    """

    exit_code = 1


class ConfigError(SeaboxError):
    """Configuration-related errors.

    Examples:
        - Config file is not valid TOML
        - Unknown configuration key
        - Environment override with an unparsable boolean
    """


class ValidationError(SeaboxError):
    """Input validation errors.

    Examples:
        - Mount specifier without exactly one colon
        - Pass-through string with unbalanced quotes
        - Shell override that cannot be embedded in the entry script
    """


class PathError(SeaboxError):
    """Raised when an explicit mount directory does not exist."""


class NoImageError(SeaboxError):
    """Raised when no image was given and none is configured."""


class DryRunAbort(SeaboxError):
    """Raised when a dry run reaches a step that needs live runtime state."""


class OutputParseError(SeaboxError):
    """Malformed runtime output.

    Raised for unparsable inspect JSON, a non-numeric user id label, or a
    malformed /etc/passwd line. The uid mapping depends on this data, so
    it is never guessed around.
    """


class ContainerRuntimeError(SeaboxError):
    """Container runtime errors.

    Base class for all podman-related exceptions.
    """


class RuntimeNotFoundError(ContainerRuntimeError):
    """Raised when the runtime or its invoker is not installed or not in PATH."""


class RuntimeCommandError(ContainerRuntimeError):
    """Raised when a runtime command exits with a non-zero status."""

    def __init__(self, message: str, *, returncode: int, cmd: Sequence[str] = ()) -> None:
        super().__init__(f"{message} (exit code {returncode})")
        self.returncode = returncode
        self.cmd = list(cmd)


class ImagePullError(RuntimeCommandError):
    """Raised when pulling an image fails."""


class ContainerCreateError(RuntimeCommandError):
    """Raised when the runtime fails to create a container."""


class ContainerStartError(RuntimeCommandError):
    """Raised when a stopped container cannot be started."""


class ContainerExistsError(ContainerRuntimeError):
    """Raised when creating a container whose name is already taken."""


class ContainerNotFoundError(ContainerRuntimeError):
    """Raised when entering or restarting a container that does not exist."""

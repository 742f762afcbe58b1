"""Configuration management for seabox.

Configuration is layered, highest precedence first:

    CLI flags > SEABOX_* environment > per-image profile > global profile > defaults

The image name is itself a configuration value, so resolution runs in two
passes: the first pass (ignoring per-image profiles) yields a provisional
image name, and the second pass slots the matching per-image profile in
between the global profile and the environment.

Every stage is a pure function over frozen dataclasses; nothing here mutates
a previously built value.
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import click

from .constants import (
    CONFIG_FILE_NAME,
    DEFAULT_RUNTIME_INVOKER,
    ENV_PREFIX,
    FALSE_VALUES,
    SEABOX_NAME,
    TRUE_VALUES,
)
from .errors import ConfigError
from .logging import get_logger

logger = get_logger(__name__)

# Legacy key -> field name, accepted in the config file and environment
FIELD_ALIASES: dict[str, str] = {
    "sudo_command": "runtime_invoker",
    "unsafe_setup_passwordless_sudo": "unsafe_passwordless_sudo",
}

FIELD_TYPES: dict[str, type] = {
    "image": str,
    "runtime_invoker": str,
    "install_sudo": bool,
    "no_password": bool,
    "unsafe_passwordless_sudo": bool,
}


@dataclass(frozen=True)
class Profile:
    """Sparse partial configuration.

    Every field is optional; None means "inherit from the next lower layer".
    Used for the defaults, the global file section, each per-image section,
    the environment, and the CLI flags.
    """

    image: str | None = None
    runtime_invoker: str | None = None
    install_sudo: bool | None = None
    no_password: bool | None = None
    unsafe_passwordless_sudo: bool | None = None

    def overlay(self, other: Profile | None) -> Profile:
        """Return a new profile with every field set in `other` taking precedence."""
        if other is None:
            return self
        updates = {f.name: getattr(other, f.name) for f in fields(other)}
        return replace(self, **{k: v for k, v in updates.items() if v is not None})

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def as_dict(self) -> dict[str, Any]:
        """Only the fields that are set."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], source: str = "config") -> Profile:
        """Build a profile from a parsed TOML table or similar mapping.

        Raises:
            ConfigError: On unknown keys, wrong value types, or a key given
                under both its name and its alias.
        """
        values: dict[str, Any] = {}
        for key, value in data.items():
            name = FIELD_ALIASES.get(key, key)
            if name not in FIELD_TYPES:
                raise ConfigError(f"Unknown configuration key '{key}' in {source}")
            if name in values:
                raise ConfigError(f"Configuration key '{name}' given twice in {source}")
            expected = FIELD_TYPES[name]
            if not isinstance(value, expected):
                raise ConfigError(
                    f"Invalid value for '{key}' in {source}: "
                    f"expected {expected.__name__}, got {type(value).__name__}"
                )
            if name == "image" and not value:
                continue
            values[name] = value
        return cls(**values)


DEFAULT_PROFILE = Profile(
    image=None,
    runtime_invoker=DEFAULT_RUNTIME_INVOKER,
    install_sudo=None,
    no_password=False,
    unsafe_passwordless_sudo=False,
)


@dataclass(frozen=True)
class Config:
    """Effective configuration for one invocation.

    Always fully populated: `install_sudo` keeps its tri-state (None means
    "ask inside the container"), everything else has a concrete value.
    """

    image: str | None = None
    runtime_invoker: str = DEFAULT_RUNTIME_INVOKER
    install_sudo: bool | None = None
    no_password: bool = False
    unsafe_passwordless_sudo: bool = False

    @classmethod
    def from_profile(cls, profile: Profile) -> Config:
        """Collapse a merged profile, falling back to built-in defaults."""
        merged = DEFAULT_PROFILE.overlay(profile)
        return cls(
            image=merged.image or None,
            runtime_invoker=merged.runtime_invoker or "",
            install_sudo=merged.install_sudo,
            no_password=bool(merged.no_password),
            unsafe_passwordless_sudo=bool(merged.unsafe_passwordless_sudo),
        )

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ConfigFile:
    """On-disk configuration: a global profile plus per-image profiles.

    Read once at startup and never mutated.
    """

    base: Profile = field(default_factory=Profile)
    images: Mapping[str, Profile] = field(default_factory=dict)
    path: Path | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], path: Path | None = None) -> ConfigFile:
        """Split top-level scalars (global profile) from tables (image profiles)."""
        source = str(path) if path else "config"
        base_values: dict[str, Any] = {}
        images: dict[str, Profile] = {}
        for key, value in data.items():
            if isinstance(value, dict):
                images[key] = Profile.from_mapping(value, f"{source} [{key}]")
            else:
                base_values[key] = value
        return cls(base=Profile.from_mapping(base_values, source), images=images, path=path)

    def profile_for(self, image: str | None) -> Profile | None:
        """Per-image profile for an exact image name, if any."""
        if not image:
            return None
        return self.images.get(image)


def get_config_dir() -> Path:
    """Get the seabox configuration directory based on platform."""
    return Path(click.get_app_dir(SEABOX_NAME))


def get_config_path() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / CONFIG_FILE_NAME


def load_config_file(path: Path | None = None) -> ConfigFile:
    """Load the config file, or return an empty one if it does not exist.

    Raises:
        ConfigError: If the file is not valid TOML or has invalid keys.
    """
    config_path = path or get_config_path()

    if not config_path.exists():
        logger.debug("No config file at %s, using defaults", config_path)
        return ConfigFile(path=config_path)

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Error reading {config_path}: {e}") from e

    logger.debug("Loaded config from %s", config_path)
    return ConfigFile.from_mapping(data, config_path)


def parse_bool(value: str, source: str) -> bool:
    """Parse a boolish string the way click's BOOL type does."""
    normalized = value.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise ConfigError(f"Invalid boolean value '{value}' for {source}")


def profile_from_env(environ: Mapping[str, str] | None = None) -> Profile:
    """Read SEABOX_<FIELD> overrides from the environment.

    Empty values are ignored. Aliases (SEABOX_SUDO_COMMAND) are accepted,
    the canonical name wins when both are present.
    """
    env = os.environ if environ is None else environ
    values: dict[str, Any] = {}

    names = list(FIELD_ALIASES.items())
    names += [(name, name) for name in FIELD_TYPES]
    for key, name in names:
        var = f"{ENV_PREFIX}{key.upper()}"
        raw = env.get(var)
        if not raw:
            continue
        values[name] = parse_bool(raw, var) if FIELD_TYPES[name] is bool else raw

    return Profile(**values)


def first_pass(
    defaults: Profile,
    global_profile: Profile,
    env_overrides: Profile,
    cli_overrides: Profile,
) -> Config:
    """Merge without per-image profiles to learn the provisional image."""
    merged = defaults.overlay(global_profile).overlay(env_overrides).overlay(cli_overrides)
    return Config.from_profile(merged)


def second_pass(
    provisional_image: str | None,
    defaults: Profile,
    global_profile: Profile,
    per_image_profiles: Mapping[str, Profile],
    env_overrides: Profile,
    cli_overrides: Profile,
) -> Config | None:
    """Re-merge with the per-image profile matching the provisional image.

    Returns None when no profile matches, meaning the first pass is final.
    The matched profile's own `image` value is not followed any further.
    """
    if not provisional_image or provisional_image not in per_image_profiles:
        return None

    merged = (
        defaults.overlay(global_profile)
        .overlay(per_image_profiles[provisional_image])
        .overlay(env_overrides)
        .overlay(cli_overrides)
    )
    return Config.from_profile(merged)


def resolve(
    defaults: Profile,
    global_profile: Profile,
    per_image_profiles: Mapping[str, Profile],
    cli_overrides: Profile,
    env_overrides: Profile,
) -> Config:
    """Resolve the effective configuration. Never fails."""
    provisional = first_pass(defaults, global_profile, env_overrides, cli_overrides)
    logger.debug("Provisional config: %s", provisional)

    final = second_pass(
        provisional.image,
        defaults,
        global_profile,
        per_image_profiles,
        env_overrides,
        cli_overrides,
    )
    if final is None:
        return provisional

    logger.debug("Applied image profile '%s': %s", provisional.image, final)
    return final


def resolve_config(
    config_file: ConfigFile,
    cli_overrides: Profile | None = None,
    env_overrides: Profile | None = None,
    *,
    image_profiles: bool = True,
) -> Config:
    """Resolve against a loaded config file with built-in defaults.

    With image_profiles=False the per-image sections are ignored; commands
    that address existing containers by name (enter, remove, restart, list)
    only see the global section and the environment.
    """
    return resolve(
        DEFAULT_PROFILE,
        config_file.base,
        config_file.images if image_profiles else {},
        cli_overrides or Profile(),
        profile_from_env() if env_overrides is None else env_overrides,
    )
